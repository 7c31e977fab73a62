"""Raster surface over a pyvips image.

A surface is an RGBA uchar image. pyvips images are immutable, so every drawing
call returns a new surface. Any pyvips failure while acquiring or drawing a
surface is reported as RenderSurfaceError.
"""

from __future__ import annotations

import math
from typing import TYPE_CHECKING, Any

from image_studio.decoder import PIXEL_ARRAY_NDIM, RGB_CHANNELS, RGBA_CHANNELS, _get_pyvips_module, vips_to_array
from image_studio.errors import EncodeError, RenderSurfaceError
from image_studio.logger import get_logger
from image_studio.models import ImageFormat

if TYPE_CHECKING:
    import numpy as np

_logger = get_logger("surface")

_TRANSPARENT = [0, 0, 0, 0]
_JPEG_BACKGROUND = [0, 0, 0]
_PNG_COMPRESSION = 6
MIN_QUALITY = 0.01
MAX_QUALITY = 1.0


def quality_to_q(quality: float) -> int:
    """Map a (0, 1] quality to the codec's 1..100 Q scale."""
    q = max(MIN_QUALITY, min(MAX_QUALITY, float(quality)))
    return max(1, min(100, int(round(q * 100))))


def _as_rgba(image: Any) -> Any:
    if image.format != "uchar":
        image = image.cast("uchar")
    if image.bands == 1:
        image = image.bandjoin([image, image])
    if image.bands == RGB_CHANNELS:
        image = image.bandjoin(255)
    elif image.bands > RGBA_CHANNELS:
        image = image.extract_band(0, n=RGBA_CHANNELS)
    return image.copy(interpretation="srgb")


class RasterSurface:
    """Immutable RGBA drawing surface."""

    def __init__(self, image: Any) -> None:
        self._image = image

    # ---- acquisition ----
    @classmethod
    def blank(cls, width: int, height: int) -> RasterSurface:
        """Transparent surface of the given size."""
        pyvips = _get_pyvips_module()
        if width <= 0 or height <= 0:
            raise RenderSurfaceError(f"Cannot create a {width}x{height} surface")
        try:
            image = pyvips.Image.black(int(width), int(height), bands=RGBA_CHANNELS).cast("uchar").copy(interpretation="srgb")
        except pyvips.Error as e:
            raise RenderSurfaceError(f"Failed to allocate {width}x{height} surface: {e}") from e
        return cls(image)

    @classmethod
    def from_array(cls, array: np.ndarray) -> RasterSurface:
        pyvips = _get_pyvips_module()
        try:
            h, w = int(array.shape[0]), int(array.shape[1])
            bands = int(array.shape[2]) if array.ndim == PIXEL_ARRAY_NDIM else 1
            image = pyvips.Image.new_from_memory(array.tobytes(), w, h, bands, "uchar")
            return cls(_as_rgba(image))
        except pyvips.Error as e:
            raise RenderSurfaceError(f"Failed to wrap pixel buffer: {e}") from e

    # ---- properties ----
    @property
    def image(self) -> Any:
        return self._image

    @property
    def width(self) -> int:
        return int(self._image.width)

    @property
    def height(self) -> int:
        return int(self._image.height)

    def to_array(self) -> np.ndarray:
        return vips_to_array(self._image)

    # ---- drawing ----
    def draw_image(
        self,
        src: RasterSurface,
        src_box: tuple[int, int, int, int],
        *,
        rotation_deg: float = 0.0,
        scale_x: float = 1.0,
        scale_y: float = 1.0,
    ) -> RasterSurface:
        """Draw `src_box` of `src` centred on this surface.

        Equivalent to translate(center) -> rotate -> scale(scale_x, scale_y) ->
        drawImage(src, box, centred at the origin). Negative scales mirror.
        Pixel centres sit at +0.5 so exact flips and right-angle turns stay pixel-exact.
        """
        pyvips = _get_pyvips_module()
        left, top, sw, sh = src_box
        rad = math.radians(rotation_deg)
        cos_r, sin_r = math.cos(rad), math.sin(rad)
        matrix = [cos_r * scale_x, -sin_r * scale_y, sin_r * scale_x, cos_r * scale_y]
        try:
            window = src.image.crop(left, top, sw, sh).premultiply()
            drawn = window.affine(
                matrix,
                interpolate=pyvips.Interpolate.new("bilinear"),
                oarea=[0, 0, self.width, self.height],
                idx=0.5 - sw / 2.0,
                idy=0.5 - sh / 2.0,
                odx=self.width / 2.0 - 0.5,
                ody=self.height / 2.0 - 0.5,
                background=_TRANSPARENT,
                extend="background",
            )
            drawn = drawn.unpremultiply().cast("uchar")
        except pyvips.Error as e:
            raise RenderSurfaceError(f"Failed to draw source region {src_box}: {e}") from e
        return self.composite(RasterSurface(drawn))

    def composite(self, layer: RasterSurface) -> RasterSurface:
        """Alpha-composite `layer` over this surface (same size)."""
        pyvips = _get_pyvips_module()
        try:
            out = self._image.composite2(layer.image, "over").cast("uchar")
        except pyvips.Error as e:
            raise RenderSurfaceError(f"Failed to composite layer: {e}") from e
        return RasterSurface(out)

    def resampled(self, width: int, height: int) -> RasterSurface:
        """High-quality (lanczos) resample to exactly width x height."""
        pyvips = _get_pyvips_module()
        if width <= 0 or height <= 0:
            raise RenderSurfaceError(f"Cannot resample to {width}x{height}")
        try:
            out = self._image.thumbnail_image(int(width), height=int(height), size=pyvips.Size.FORCE)
        except pyvips.Error as e:
            raise RenderSurfaceError(f"Failed to resample to {width}x{height}: {e}") from e
        return RasterSurface(_as_rgba(out))

    # ---- encoding ----
    def to_encoded_bytes(self, fmt: ImageFormat, quality: float = MAX_QUALITY) -> bytes:
        pyvips = _get_pyvips_module()
        image = self._image
        try:
            if not fmt.has_alpha:
                image = image.flatten(background=_JPEG_BACKGROUND).cast("uchar")
            if fmt.is_lossy:
                buf = image.write_to_buffer(fmt.suffix, Q=quality_to_q(quality))
            else:
                buf = image.write_to_buffer(fmt.suffix, compression=_PNG_COMPRESSION)
        except pyvips.Error as e:
            _logger.error("encode failed: format=%s q=%.3f: %s", fmt.name, quality, e)
            raise EncodeError(f"{fmt.name} encoder failed: {e}") from e
        if not buf:
            raise EncodeError(f"{fmt.name} encoder returned no data")
        return bytes(buf)
