"""Pure geometry helpers: screen/image mapping, rotated bounds, viewport fit.

Keep this module free of Qt and pyvips dependencies.
"""

from __future__ import annotations

import math

from .models import ViewTransform

# Chrome padding around the image so handles hanging off the edge stay visible.
DEFAULT_VIEW_PADDING = 80.0
_MIN_AVAILABLE = 10.0
_FALLBACK_FIT_SCALE = 1.0
_MIN_SAFE_SCALE = 1e-4


def rotated_bounding_box(width: float, height: float, rotation_deg: float) -> tuple[float, float]:
    """Return (w, h) of the axis-aligned box holding a (width x height) rect rotated by rotation_deg."""
    rad = math.radians(rotation_deg)
    c = abs(math.cos(rad))
    s = abs(math.sin(rad))
    return width * c + height * s, width * s + height * c


def screen_delta_to_image(dx: float, dy: float, view: ViewTransform) -> tuple[float, float]:
    """Map a pointer displacement in screen space to image space.

    Undo the rotation, undo the flip as an independent sign flip, then divide by
    the combined fit/user scale. No rounding is performed.
    """
    rad = math.radians(-view.rotation_deg)
    cos_r = math.cos(rad)
    sin_r = math.sin(rad)
    rx = dx * cos_r - dy * sin_r
    ry = dx * sin_r + dy * cos_r

    if view.flip_x:
        rx = -rx
    if view.flip_y:
        ry = -ry

    scale = view.total_scale
    if scale <= 0:
        scale = _FALLBACK_FIT_SCALE
    return rx / scale, ry / scale


def handle_compensation(view: ViewTransform) -> tuple[float, float]:
    """Per-axis factor that keeps handle glyphs a constant on-screen size and upright."""
    scale = view.total_scale
    safe = scale if scale > _MIN_SAFE_SCALE else 1.0
    inv = 1.0 / safe
    return (-inv if view.flip_x else inv), (-inv if view.flip_y else inv)


def fit_scale(
    viewport_width: float,
    viewport_height: float,
    image_width: float,
    image_height: float,
    rotation_deg: float,
    padding: float = DEFAULT_VIEW_PADDING,
) -> float:
    """Scale that fits the rotated image inside the viewport minus padding.

    Transient zero-sized containers fall back to 1.0 instead of a degenerate scale.
    """
    bb_w, bb_h = rotated_bounding_box(image_width, image_height, rotation_deg)
    if bb_w <= 0 or bb_h <= 0:
        return _FALLBACK_FIT_SCALE
    avail_w = max(_MIN_AVAILABLE, viewport_width - padding)
    avail_h = max(_MIN_AVAILABLE, viewport_height - padding)
    scale = min(avail_w / bb_w, avail_h / bb_h)
    return scale if scale > 0 else _FALLBACK_FIT_SCALE


def normalize_rotation(rotation_deg: float) -> float:
    """Wrap an angle into [0, 360)."""
    r = math.fmod(rotation_deg, 360.0)
    if r < 0:
        r += 360.0
    # fmod(-0.0) and tiny negatives can land exactly on 360 after the shift
    return 0.0 if r >= 360.0 else r
