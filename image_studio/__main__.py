from image_studio.main import main

if __name__ == "__main__":
    main()
