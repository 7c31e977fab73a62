"""Crop resolver: handle-drag resizing of an image-space crop rectangle.

Rules:
- The rect stays inside [0, image_w] x [0, image_h] and never drops below the
  minimum crop size on either axis (capped at the image extent for tiny images).
- Edge handles keep the opposite edge fixed and never honor aspect lock.
- Corner handles keep the opposite (anchor) corner fixed. With aspect lock the
  new size is width-driven and an update that would break bounds or minimum
  size is rejected as a whole (no clamping, so the ratio cannot drift).
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from image_studio.geometry import screen_delta_to_image
from image_studio.logger import get_logger
from image_studio.models import MIN_CROP_SIZE, CropRect, ViewTransform

_logger = get_logger("crop_controller")

_EPS = 1e-9

BODY = "body"
CORNER_HANDLES = frozenset({"nw", "ne", "sw", "se"})
EDGE_HANDLES = frozenset({"n", "s", "e", "w"})
HANDLES = frozenset({BODY}) | CORNER_HANDLES | EDGE_HANDLES

# Aliases accepted from presentation layers that name handles by position.
_ALIASES = {
    "move": BODY,
    "center": BODY,
    "c": BODY,
    "tl": "nw",
    "tr": "ne",
    "bl": "sw",
    "br": "se",
    "t": "n",
    "b": "s",
    "l": "w",
    "r": "e",
}


def canonical_handle(handle: str) -> str:
    h = (handle or "").strip().lower()
    h = _ALIASES.get(h, h)
    if h not in HANDLES:
        raise ValueError(f"Unknown crop handle: {handle!r}")
    return h


def _clamp(v: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, v))


def effective_min_size(img_width: float, img_height: float, min_size: float = MIN_CROP_SIZE) -> tuple[float, float]:
    """Per-axis minimum crop size; images smaller than `min_size` cap it at their own extent."""
    return min(min_size, img_width), min(min_size, img_height)


def is_valid_crop(rect: CropRect, img_width: float, img_height: float, min_size: float = MIN_CROP_SIZE) -> bool:
    """Check bounds and minimum size, with a small float tolerance."""
    if rect.x < -_EPS or rect.y < -_EPS:
        return False
    min_w, min_h = effective_min_size(img_width, img_height, min_size)
    if rect.width < min_w - _EPS or rect.height < min_h - _EPS:
        return False
    if rect.x2 > img_width + _EPS:
        return False
    return not rect.y2 > img_height + _EPS


# ---- single-axis moves: (origin, size) -> (origin, size) ----


def _move_near_edge(origin: float, size: float, delta: float, min_size: float) -> tuple[float, float]:
    """Drag the left/top edge; the far edge stays fixed."""
    new_origin = min(origin + size - min_size, max(0.0, origin + delta))
    return new_origin, size + (origin - new_origin)


def _move_far_edge(origin: float, size: float, delta: float, limit: float, min_size: float) -> tuple[float, float]:
    """Drag the right/bottom edge; the origin stays fixed."""
    return origin, max(min_size, min(limit - origin, size + delta))


def _resize_free(
    handle: str, start: CropRect, dx: float, dy: float, img_w: float, img_h: float, min_size: float
) -> CropRect:
    min_w, min_h = effective_min_size(img_w, img_h, min_size)
    x, w = start.x, start.width
    y, h = start.y, start.height
    if "w" in handle:
        x, w = _move_near_edge(x, w, dx, min_w)
    elif "e" in handle:
        x, w = _move_far_edge(x, w, dx, img_w, min_w)
    if "n" in handle:
        y, h = _move_near_edge(y, h, dy, min_h)
    elif "s" in handle:
        y, h = _move_far_edge(y, h, dy, img_h, min_h)
    return CropRect(x, y, w, h)


def _resize_locked_corner(
    handle: str, start: CropRect, dx: float, img_w: float, img_h: float, min_size: float
) -> CropRect | None:
    ratio = start.width / start.height
    grows_right = handle in {"ne", "se"}
    new_w = start.width + dx if grows_right else start.width - dx
    new_h = new_w / ratio

    # Anchor is the opposite corner.
    x = start.x if grows_right else start.x2 - new_w
    y = start.y if handle in {"sw", "se"} else start.y2 - new_h

    candidate = CropRect(x, y, new_w, new_h)
    if not is_valid_crop(candidate, img_w, img_h, min_size):
        return None
    return candidate


def resize_crop_rect(
    *,
    handle: str,
    start: CropRect,
    dx: float,
    dy: float,
    image_size: tuple[float, float],
    aspect_locked: bool = False,
    min_size: float = MIN_CROP_SIZE,
) -> CropRect | None:
    """Compute the rect for an image-space drag delta measured from drag start.

    Returns None when an aspect-locked corner update is rejected; callers keep
    the rect from the previous tick.
    """
    h = canonical_handle(handle)
    img_w, img_h = float(image_size[0]), float(image_size[1])

    if h == BODY:
        x = _clamp(start.x + dx, 0.0, max(0.0, img_w - start.width))
        y = _clamp(start.y + dy, 0.0, max(0.0, img_h - start.height))
        return CropRect(x, y, start.width, start.height)

    if h in CORNER_HANDLES and aspect_locked and start.height > 0:
        return _resize_locked_corner(h, start, dx, img_w, img_h, min_size)

    return _resize_free(h, start, dx, dy, img_w, img_h, min_size)


class DragPhase(Enum):
    IDLE = "idle"
    DRAGGING = "dragging"


@dataclass(frozen=True, slots=True)
class DragSession:
    handle: str
    start_x: float
    start_y: float
    start_rect: CropRect


class CropResolver:
    """Per-drag state machine: Idle -> Dragging(handle, start pointer, start rect) -> Idle.

    Deltas are always measured from the drag start and mapped with the view
    transform of the current event, so nothing is integrated across ticks.
    """

    def __init__(self, min_size: float = MIN_CROP_SIZE) -> None:
        self._min_size = float(min_size)
        self._session: DragSession | None = None

    @property
    def phase(self) -> DragPhase:
        return DragPhase.IDLE if self._session is None else DragPhase.DRAGGING

    @property
    def session(self) -> DragSession | None:
        return self._session

    def begin(self, handle: str, screen_x: float, screen_y: float, rect: CropRect | None, is_cropping: bool) -> bool:
        if not is_cropping or rect is None:
            return False
        if self._session is not None:
            _logger.debug("begin while dragging: previous session discarded")
        self._session = DragSession(canonical_handle(handle), float(screen_x), float(screen_y), rect)
        return True

    def move(
        self,
        screen_x: float,
        screen_y: float,
        *,
        view: ViewTransform,
        image_size: tuple[float, float],
        aspect_locked: bool,
        current: CropRect,
    ) -> CropRect:
        """Return the rect for this pointer position (or `current` when idle/rejected)."""
        s = self._session
        if s is None:
            return current
        dx, dy = screen_delta_to_image(screen_x - s.start_x, screen_y - s.start_y, view)
        out = resize_crop_rect(
            handle=s.handle,
            start=s.start_rect,
            dx=dx,
            dy=dy,
            image_size=image_size,
            aspect_locked=aspect_locked,
            min_size=self._min_size,
        )
        if out is None:
            return current
        return out

    def cancel(self) -> None:
        self._session = None
