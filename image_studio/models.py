"""Value objects shared by the geometry kernel, crop resolver and export pipeline.

All state objects are frozen; a mutation produces a new object via
`dataclasses.replace`, so no mutable reference crosses component boundaries.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import numpy as np

MIN_CROP_SIZE = 20.0


class ImageFormat(str, Enum):
    JPEG = "image/jpeg"
    PNG = "image/png"
    WEBP = "image/webp"

    @property
    def extension(self) -> str:
        """File extension without dot, as used for output names."""
        return self.value.split("/", 1)[1]

    @property
    def suffix(self) -> str:
        """pyvips save suffix."""
        return {ImageFormat.JPEG: ".jpg", ImageFormat.PNG: ".png", ImageFormat.WEBP: ".webp"}[self]

    @property
    def is_lossy(self) -> bool:
        return self is not ImageFormat.PNG

    @property
    def has_alpha(self) -> bool:
        return self is not ImageFormat.JPEG

    @classmethod
    def parse(cls, value: str | ImageFormat) -> ImageFormat:
        if isinstance(value, ImageFormat):
            return value
        v = str(value).strip().lower()
        aliases = {"jpg": cls.JPEG, "jpeg": cls.JPEG, "png": cls.PNG, "webp": cls.WEBP}
        if v in aliases:
            return aliases[v]
        return cls(v)


@dataclass(frozen=True, slots=True)
class CropRect:
    """Crop rectangle in original image-space pixels."""

    x: float
    y: float
    width: float
    height: float

    @property
    def x2(self) -> float:
        return self.x + self.width

    @property
    def y2(self) -> float:
        return self.y + self.height

    @property
    def aspect(self) -> float:
        return self.width / self.height if self.height else 0.0

    @classmethod
    def full(cls, width: float, height: float) -> CropRect:
        return cls(0.0, 0.0, float(width), float(height))

    def to_pixel_box(self, img_width: int, img_height: int) -> tuple[int, int, int, int]:
        """Return an integer (left, top, width, height) box clipped to the image."""
        left = max(0, min(img_width - 1, int(round(self.x))))
        top = max(0, min(img_height - 1, int(round(self.y))))
        right = max(left + 1, min(img_width, int(round(self.x2))))
        bottom = max(top + 1, min(img_height, int(round(self.y2))))
        return left, top, right - left, bottom - top


@dataclass(frozen=True, eq=False)
class ImageSource:
    """Decoded still image. Replaced wholesale when another image becomes active."""

    width: int
    height: int
    pixels: np.ndarray  # (height, width, bands) uint8
    byte_size: int = 0
    name: str = ""
    is_animated: bool = False

    @property
    def bands(self) -> int:
        return int(self.pixels.shape[2]) if self.pixels.ndim == 3 else 1


@dataclass(frozen=True, slots=True)
class EditState:
    scale: float = 1.0
    rotation_deg: float = 0.0
    flip_x: bool = False
    flip_y: bool = False
    is_cropping: bool = False
    crop_rect: CropRect | None = None
    crop_aspect_locked: bool = False

    @classmethod
    def for_image(cls, width: int, height: int) -> EditState:
        return cls(crop_rect=CropRect.full(width, height))


@dataclass(frozen=True, slots=True)
class WatermarkSettings:
    enabled: bool = False
    text: str = ""
    color: tuple[int, int, int, int] = (255, 255, 255, 255)
    opacity: float = 0.3
    rotation_deg: float = 0.0
    # Non-positive spacing means "derive from the output size".
    spacing_x: float = 200.0
    spacing_y: float = 150.0

    @property
    def active(self) -> bool:
        return bool(self.enabled and self.text)


@dataclass(frozen=True, slots=True)
class ExportSettings:
    format: ImageFormat = ImageFormat.JPEG
    quality: float = 0.9
    target_size_bytes: int | None = None
    target_width: int | None = None
    target_height: int | None = None
    maintain_aspect_ratio: bool = True
    watermark: WatermarkSettings = field(default_factory=WatermarkSettings)

    def for_new_image(self) -> ExportSettings:
        """Settings carried over to a newly activated image: sizing targets are cleared."""
        return replace(self, target_width=None, target_height=None, target_size_bytes=None)


@dataclass(frozen=True, slots=True)
class ViewTransform:
    """Screen mapping of the interactive view. Derived, never persisted."""

    fit_scale: float = 1.0
    user_scale: float = 1.0
    rotation_deg: float = 0.0
    flip_x: bool = False
    flip_y: bool = False
    pan_x: float = 0.0
    pan_y: float = 0.0

    @property
    def total_scale(self) -> float:
        return self.fit_scale * self.user_scale


@dataclass(frozen=True, slots=True)
class ExportResult:
    blob: bytes
    format: ImageFormat
    width: int
    height: int

    @property
    def byte_size(self) -> int:
        return len(self.blob)
