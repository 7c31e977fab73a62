"""Image ingestion using pyvips.

Decodes the first still frame of a file into an `ImageSource` (RGB or RGBA
uint8 numpy array). Animated containers are flagged, never decoded frame by frame.
"""

import contextlib
import os
from pathlib import Path
from typing import Any

import numpy as np

from image_studio.errors import ImageLoadError
from image_studio.logger import get_logger
from image_studio.models import ImageSource

_logger = get_logger("decoder")

RGB_CHANNELS = 3
RGBA_CHANNELS = 4
GREY_ALPHA_CHANNELS = 2
PIXEL_ARRAY_NDIM = 3
_ANIMATED_LOADERS = ("gifload", "webpload")

# Optional libvips location for Windows installs without it on PATH
_LIBVIPS_BIN = os.environ.get("LIBVIPS_BIN")
if _LIBVIPS_BIN and os.name == "nt":
    with contextlib.suppress(Exception):
        os.add_dll_directory(_LIBVIPS_BIN)


_pyvips: Any | None = None


def _get_pyvips_module() -> Any:
    global _pyvips
    if _pyvips is None:
        import pyvips  # type: ignore

        _pyvips = pyvips
    return _pyvips


def configure_vips_caches() -> None:
    """Disable pyvips operation caches to avoid memory growth across exports."""
    pyvips = _get_pyvips_module()
    with contextlib.suppress(Exception):
        pyvips.cache_set_max(0)
        pyvips.cache_set_max_mem(0)
        pyvips.cache_set_max_files(0)


def _is_animated(image: Any) -> bool:
    try:
        loader = str(image.get("vips-loader"))
    except Exception:
        return False
    if not loader.startswith(_ANIMATED_LOADERS):
        return False
    try:
        return int(image.get("n-pages")) > 1
    except Exception:
        return False


def _normalize_bands(image: Any) -> Any:
    """sRGB uchar with 3 bands, or 4 when the source carries alpha."""
    with contextlib.suppress(Exception):
        image = image.colourspace("srgb")
    if image.format != "uchar":
        image = image.cast("uchar")
    if image.bands == 1:
        image = image.bandjoin([image, image])
    elif image.bands == GREY_ALPHA_CHANNELS:
        grey = image[0]
        image = grey.bandjoin([grey, grey, image[1]])
    elif image.bands > RGBA_CHANNELS:
        image = image.extract_band(0, n=RGBA_CHANNELS)
    return image


def vips_to_array(image: Any) -> "np.ndarray":
    mem = image.write_to_memory()
    return np.frombuffer(mem, dtype=np.uint8).reshape(image.height, image.width, image.bands).copy()


def load_image_source(path: str | Path) -> ImageSource:
    """Decode `path` into an ImageSource. Raises ImageLoadError on failure."""
    pyvips = _get_pyvips_module()
    configure_vips_caches()
    p = Path(path)
    try:
        image = pyvips.Image.new_from_file(str(p), access="sequential")
        animated = _is_animated(image)
        image = image.copy_memory()
        # EXIF orientation; a no-op for files without the tag.
        image = image.autorot()
        image = _normalize_bands(image)
        array = vips_to_array(image)
    except pyvips.Error as e:
        _logger.debug("decode failed for %s: %s", p, e)
        raise ImageLoadError(f"Failed to decode {p}: {e}") from e

    try:
        byte_size = p.stat().st_size
    except OSError:
        byte_size = 0

    _logger.debug("decoded %s: %dx%d bands=%d animated=%s", p.name, array.shape[1], array.shape[0], array.shape[2], animated)
    return ImageSource(
        width=int(array.shape[1]),
        height=int(array.shape[0]),
        pixels=array,
        byte_size=byte_size,
        name=p.name,
        is_animated=animated,
    )


def image_source_from_array(array: "np.ndarray", name: str = "", byte_size: int = 0) -> ImageSource:
    """Wrap an in-memory (H, W, 3|4) uint8 array."""
    if array.ndim != PIXEL_ARRAY_NDIM or array.shape[2] not in (RGB_CHANNELS, RGBA_CHANNELS):
        raise ImageLoadError(f"Unsupported array shape: {array.shape}")
    arr = np.ascontiguousarray(array, dtype=np.uint8)
    return ImageSource(width=int(arr.shape[1]), height=int(arr.shape[0]), pixels=arr, byte_size=byte_size, name=name)
