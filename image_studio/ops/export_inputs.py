"""Parsing and mapping of export-panel inputs (dimensions, target size)."""

from __future__ import annotations

import math
from dataclasses import replace

from image_studio.errors import InvalidDimensionInput
from image_studio.models import ExportSettings, ImageFormat

BYTES_PER_MB = 1024 * 1024
MIN_TARGET_MB = 0.1
SLIDER_MAX = 100.0
_SLIDER_KNEE = 50.0
_KNEE_MB = 1.0
_MB_UNIT_THRESHOLD = 10.0


def parse_dimension_text(text: str | None) -> int | None:
    """Parse a width/height field. Empty clears the value; junk raises InvalidDimensionInput."""
    if text is None:
        return None
    s = str(text).strip()
    if not s:
        return None
    try:
        value = int(s)
    except ValueError:
        raise InvalidDimensionInput(text) from None
    if value <= 0:
        raise InvalidDimensionInput(text)
    return value


def apply_dimension_input(
    settings: ExportSettings, key: str, value: int | None, crop_width: float, crop_height: float
) -> ExportSettings:
    """Set targetWidth/targetHeight, deriving the other one from the crop aspect when locked."""
    if key not in {"target_width", "target_height"}:
        raise ValueError(f"Unknown dimension key: {key!r}")
    out = replace(settings, **{key: value})
    if not (settings.maintain_aspect_ratio and value and crop_height > 0):
        return out
    ratio = crop_width / crop_height
    if key == "target_width":
        return replace(out, target_height=max(1, round(value / ratio)))
    return replace(out, target_width=max(1, round(value * ratio)))


def derive_target_size(
    source_width: int,
    source_height: int,
    target_width: int | None,
    target_height: int | None,
    maintain_aspect_ratio: bool,
) -> tuple[int, int] | None:
    """Final output size for the resize stage, or None when no resize is requested."""
    if not target_width and not target_height:
        return None
    tw = int(target_width or source_width)
    th = int(target_height or source_height)
    ratio = source_width / source_height if source_height else 1.0
    if target_width and not target_height and maintain_aspect_ratio:
        th = round(tw / ratio)
    elif target_height and not target_width and maintain_aspect_ratio:
        tw = round(th * ratio)
    return max(1, tw), max(1, th)


# ---- target size slider ----


def max_target_mb(original_bytes: int) -> float:
    """Slider upper bound: the original size, but at least 1 MB."""
    return max(_KNEE_MB, original_bytes / BYTES_PER_MB)


def slider_to_mb(value: float, max_mb: float) -> float | None:
    """Non-linear slider: 0..50 -> 0.1..1 MB, 50..100 -> 1..max MB. 0 clears the target."""
    if value <= 0:
        return None
    if value <= _SLIDER_KNEE:
        mb = MIN_TARGET_MB + (value / _SLIDER_KNEE) * (_KNEE_MB - MIN_TARGET_MB)
    else:
        mb = _KNEE_MB + ((value - _SLIDER_KNEE) / _SLIDER_KNEE) * (max_mb - _KNEE_MB)
    return min(mb, max_mb)


def mb_to_slider(mb: float | None, max_mb: float) -> float:
    if not mb:
        return 0.0
    if mb <= _KNEE_MB:
        v = ((mb - MIN_TARGET_MB) / (_KNEE_MB - MIN_TARGET_MB)) * _SLIDER_KNEE
    elif max_mb <= _KNEE_MB:
        v = SLIDER_MAX
    else:
        v = _SLIDER_KNEE + ((mb - _KNEE_MB) / (max_mb - _KNEE_MB)) * _SLIDER_KNEE
    return max(0.0, min(SLIDER_MAX, v))


def parse_target_size_text(text: str, unit: str, max_mb: float, previous: int | None) -> int | None:
    """Manual size field in KB or MB. Empty clears; out-of-range or junk keeps `previous`."""
    s = (text or "").strip()
    if not s:
        return None
    try:
        num = float(s)
    except ValueError:
        return previous
    if math.isnan(num):
        return previous
    mb = num / 1024.0 if unit.upper() == "KB" else num
    if mb < MIN_TARGET_MB or mb > max_mb:
        return previous
    return int(mb * BYTES_PER_MB)


def default_size_unit(original_bytes: int) -> str:
    return "MB" if original_bytes / BYTES_PER_MB > _MB_UNIT_THRESHOLD else "KB"


def format_bytes(num_bytes: int, decimals: int = 2) -> str:
    if not num_bytes:
        return "0 Bytes"
    if num_bytes < 0:
        raise ValueError("num_bytes must be non-negative")
    k = 1024
    sizes = ("Bytes", "KB", "MB", "GB")
    i = min(len(sizes) - 1, int(math.floor(math.log(num_bytes, k))))
    value = round(num_bytes / math.pow(k, i), max(0, decimals))
    text = f"{value:.{max(0, decimals)}f}".rstrip("0").rstrip(".") if decimals > 0 else f"{value:.0f}"
    return f"{text} {sizes[i]}"


def output_filename(source_name: str, fmt: ImageFormat) -> str:
    stem = source_name.rsplit(".", 1)[0] if "." in source_name else source_name
    return f"{stem}_processed.{fmt.extension}"
