from __future__ import annotations

import json
from pathlib import Path

from image_studio.models import ImageFormat
from image_studio.settings_manager import SettingsManager


def test_last_open_dir_is_normalized_and_directory(tmp_path: Path) -> None:
    settings_path = tmp_path / "settings.json"
    sm = SettingsManager(str(settings_path))

    folder = tmp_path / "some_folder"
    folder.mkdir()

    sm.set("last_open_dir", str(folder))

    # Stored values are normalized to absolute, OS-native directory paths.
    assert sm.last_open_dir is not None
    assert Path(sm.last_open_dir).is_dir()
    assert Path(sm.last_open_dir) == folder.resolve()


def test_setting_last_open_dir_to_file_coerces_to_parent_dir(tmp_path: Path) -> None:
    settings_path = tmp_path / "settings.json"
    sm = SettingsManager(str(settings_path))

    folder = tmp_path / "some_folder"
    folder.mkdir()

    file_path = folder / "x.jpg"
    file_path.write_bytes(b"x")

    sm.set("last_open_dir", str(file_path))

    assert sm.last_open_dir == str(folder.resolve())


def test_values_persist_across_instances(tmp_path: Path) -> None:
    settings_path = tmp_path / "nested" / "settings.json"
    SettingsManager(str(settings_path)).set("export_format", "webp")

    sm = SettingsManager(str(settings_path))
    assert sm.has("export_format")
    assert sm.get("export_format") == "webp"


def test_defaults_build_export_settings(tmp_path: Path) -> None:
    sm = SettingsManager(str(tmp_path / "settings.json"))
    settings = sm.default_export_settings()

    assert settings.format is ImageFormat.JPEG
    assert settings.quality == 0.9
    assert settings.maintain_aspect_ratio is True
    assert settings.target_size_bytes is None
    assert settings.watermark.enabled is False
    assert settings.watermark.color == (255, 255, 255, 255)


def test_stored_preferences_are_applied(tmp_path: Path) -> None:
    settings_path = tmp_path / "settings.json"
    settings_path.write_text(
        json.dumps(
            {
                "export_format": "webp",
                "export_quality": 0.5,
                "watermark_text": "Draft",
                "watermark_color": "#ff0000",
                "watermark_opacity": 2,
            }
        ),
        encoding="utf-8",
    )
    settings = SettingsManager(str(settings_path)).default_export_settings()

    assert settings.format is ImageFormat.WEBP
    assert settings.quality == 0.5
    assert settings.watermark.text == "Draft"
    assert settings.watermark.color == (255, 0, 0, 255)
    assert settings.watermark.opacity == 1.0
    # A stored watermark text never switches the watermark on by itself.
    assert settings.watermark.enabled is False


def test_invalid_values_fall_back_to_defaults(tmp_path: Path) -> None:
    settings_path = tmp_path / "settings.json"
    settings_path.write_text(
        json.dumps(
            {
                "export_format": "tiff",
                "export_quality": "high",
                "watermark_color": "no-such-colour",
                "watermark_spacing_x": None,
            }
        ),
        encoding="utf-8",
    )
    sm = SettingsManager(str(settings_path))
    settings = sm.default_export_settings()

    assert settings.format is ImageFormat.JPEG
    assert settings.quality == 0.9
    assert settings.watermark.color == (255, 255, 255, 255)
    assert settings.watermark.spacing_x == 200.0


def test_corrupt_file_loads_empty(tmp_path: Path) -> None:
    settings_path = tmp_path / "settings.json"
    settings_path.write_text("{not json", encoding="utf-8")
    sm = SettingsManager(str(settings_path))
    assert sm.data == {}
    assert sm.get("export_quality") == 0.9


def test_get_float_falls_back_on_malformed_values(tmp_path: Path) -> None:
    settings_path = tmp_path / "settings.json"
    stored = {"view_padding": "wide", "wheel_zoom_in": "nan", "wheel_zoom_out": "0.5"}
    settings_path.write_text(json.dumps(stored), encoding="utf-8")
    sm = SettingsManager(str(settings_path))

    assert sm.get_float("view_padding") == 80.0
    assert sm.get_float("wheel_zoom_in") == 1.25
    assert sm.get_float("wheel_zoom_out") == 0.5
