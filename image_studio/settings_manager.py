from __future__ import annotations

import json
import math
import os
from typing import Any

from .logger import get_logger
from .models import ExportSettings, ImageFormat, WatermarkSettings
from .path_utils import abs_dir_str
from .render.watermark import parse_color

_logger = get_logger("settings")


class SettingsManager:
    def __init__(self, settings_path: str):
        self.settings_path = settings_path
        self._settings: dict[str, Any] = {}
        self.load()

    DEFAULTS: dict[str, Any] = {
        "export_format": "jpeg",
        "export_quality": 0.9,
        "maintain_aspect_ratio": True,
        "watermark_text": "",
        "watermark_color": "#ffffff",
        "watermark_opacity": 0.3,
        "watermark_rotation": 0.0,
        "watermark_spacing_x": 200.0,
        "watermark_spacing_y": 150.0,
        "view_padding": 80.0,
        "wheel_zoom_in": 1.25,
        "wheel_zoom_out": 0.75,
    }

    def load(self) -> None:
        try:
            if os.path.exists(self.settings_path):
                with open(self.settings_path, encoding="utf-8") as f:
                    data = json.load(f)
                    if isinstance(data, dict):
                        self._settings = data
                        _logger.debug("settings loaded: %s", self.settings_path)
                        return
        except (OSError, ValueError) as e:
            _logger.warning("settings load failed: %s", e)
        self._settings = {}

    def save(self) -> None:
        try:
            parent = os.path.dirname(self.settings_path)
            if parent:
                os.makedirs(parent, exist_ok=True)
            with open(self.settings_path, "w", encoding="utf-8") as f:
                json.dump(self._settings, f, ensure_ascii=False, indent=2)
            _logger.debug("settings saved: %s", self.settings_path)
        except OSError as e:
            _logger.error("settings save failed: %s", e)

    def get(self, key: str, default: Any = None) -> Any:
        if key in self._settings:
            return self._settings[key]
        if default is not None:
            return default
        return self.DEFAULTS.get(key)

    def has(self, key: str) -> bool:
        return key in self._settings

    def set(self, key: str, value: Any) -> None:
        if key == "last_open_dir" and isinstance(value, str) and value:
            value = abs_dir_str(value)
        self._settings[key] = value
        self.save()

    @property
    def data(self) -> dict[str, Any]:
        return self._settings

    @property
    def last_open_dir(self) -> str | None:
        val = self.get("last_open_dir")
        return val if isinstance(val, str) and os.path.isdir(val) else None

    def get_float(self, key: str) -> float:
        """Numeric preference; a malformed stored value is logged and the default returned."""
        try:
            value = float(self.get(key))
        except (TypeError, ValueError):
            value = math.nan
        if not math.isfinite(value):
            _logger.warning("saved %s invalid: %r", key, self._settings.get(key))
            return float(self.DEFAULTS[key])
        return value

    def default_export_settings(self) -> ExportSettings:
        """Build the session's starting ExportSettings from stored preferences."""
        try:
            fmt = ImageFormat.parse(self.get("export_format"))
        except ValueError:
            _logger.warning("saved export_format invalid: %r", self._settings.get("export_format"))
            fmt = ImageFormat.JPEG

        try:
            color = parse_color(self.get("watermark_color"))
        except (TypeError, ValueError):
            _logger.warning("saved watermark_color invalid: %r", self._settings.get("watermark_color"))
            color = (255, 255, 255, 255)

        quality = self.get_float("export_quality")
        if not 0.0 < quality <= 1.0:
            _logger.warning("saved export_quality out of range: %s", quality)
            quality = float(self.DEFAULTS["export_quality"])

        watermark = WatermarkSettings(
            enabled=False,
            text=str(self.get("watermark_text") or ""),
            color=color,
            opacity=max(0.0, min(1.0, self.get_float("watermark_opacity"))),
            rotation_deg=self.get_float("watermark_rotation"),
            spacing_x=self.get_float("watermark_spacing_x"),
            spacing_y=self.get_float("watermark_spacing_y"),
        )
        return ExportSettings(
            format=fmt,
            quality=quality,
            maintain_aspect_ratio=bool(self.get("maintain_aspect_ratio")),
            watermark=watermark,
        )
