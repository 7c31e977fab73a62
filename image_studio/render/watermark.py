"""Tiled text watermark rendered with Pillow.

The layer is a transparent RGBA image the size of the output. Every tile shares
the same text, colour, opacity and rotation, so one tile is rendered and pasted
across the grid.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

from PIL import Image, ImageColor, ImageDraw, ImageFont

from image_studio.logger import get_logger
from image_studio.models import WatermarkSettings

_logger = get_logger("watermark")

FONT_SIZE_RATIO = 0.03
MIN_FONT_SIZE = 16.0
AUTO_SPACING_X_RATIO = 0.2
AUTO_SPACING_Y_RATIO = 0.15
MIN_AUTO_SPACING_X = 200.0
MIN_AUTO_SPACING_Y = 150.0

_FONT_DIR = Path(__file__).resolve().parents[2] / "third_party" / "fonts"
_RGB_LEN = 3
_FONT_CANDIDATES = ("DejaVuSans.ttf", "Arial.ttf", "arial.ttf", "LiberationSans-Regular.ttf")


@dataclass(frozen=True, slots=True)
class TileGrid:
    rows: int
    cols: int
    spacing_x: float
    spacing_y: float

    def centers(self) -> list[tuple[float, float]]:
        """Tile centres, starting one step before the origin so edge tiles bleed."""
        return [
            (col * self.spacing_x, row * self.spacing_y)
            for row in range(-1, self.rows)
            for col in range(-1, self.cols)
        ]


def watermark_font_size(width: int, height: int) -> float:
    return max(FONT_SIZE_RATIO * min(width, height), MIN_FONT_SIZE)


def effective_spacing(wm: WatermarkSettings, width: int, height: int) -> tuple[float, float]:
    sx = wm.spacing_x if wm.spacing_x and wm.spacing_x > 0 else max(width * AUTO_SPACING_X_RATIO, MIN_AUTO_SPACING_X)
    sy = wm.spacing_y if wm.spacing_y and wm.spacing_y > 0 else max(height * AUTO_SPACING_Y_RATIO, MIN_AUTO_SPACING_Y)
    return float(sx), float(sy)


def tile_grid(width: int, height: int, spacing_x: float, spacing_y: float) -> TileGrid:
    rows = math.ceil(height / spacing_y) + 2
    cols = math.ceil(width / spacing_x) + 2
    return TileGrid(rows=rows, cols=cols, spacing_x=spacing_x, spacing_y=spacing_y)


def parse_color(value: str | tuple[int, ...]) -> tuple[int, int, int, int]:
    """Accept '#rrggbb', '#rrggbbaa', CSS names or an RGB/RGBA tuple."""
    if isinstance(value, str):
        rgba = ImageColor.getcolor(value, "RGBA")
    else:
        rgba = tuple(int(c) for c in value)
    if len(rgba) == _RGB_LEN:
        rgba = (*rgba, 255)
    r, g, b, a = (max(0, min(255, int(c))) for c in rgba[:4])
    return r, g, b, a


@lru_cache(maxsize=32)
def _load_font(size: int) -> ImageFont.FreeTypeFont | ImageFont.ImageFont:
    for name in _FONT_CANDIDATES:
        bundled = _FONT_DIR / name
        for candidate in (bundled, name):
            try:
                return ImageFont.truetype(str(candidate), size)
            except OSError:
                continue
    _logger.debug("no TrueType font found; using Pillow default at %dpx", size)
    return ImageFont.load_default(size=size)


def render_tile(wm: WatermarkSettings, font_size: float) -> Image.Image:
    """One rotated text tile, centred in its own transparent image."""
    font = _load_font(max(1, int(round(font_size))))
    r, g, b, a = wm.color
    opacity = max(0.0, min(1.0, float(wm.opacity)))
    fill = (r, g, b, int(round(a * opacity)))

    left, top, right, bottom = font.getbbox(wm.text)
    pad = 2
    tile = Image.new("RGBA", (int(right - left) + 2 * pad, int(bottom - top) + 2 * pad), (0, 0, 0, 0))
    ImageDraw.Draw(tile).text((pad - left, pad - top), wm.text, font=font, fill=fill)
    if wm.rotation_deg:
        # Pillow rotates counter-clockwise; screen rotation is clockwise.
        tile = tile.rotate(-float(wm.rotation_deg), resample=Image.Resampling.BICUBIC, expand=True)
    return tile


def _paste_over(layer: Image.Image, tile: Image.Image, left: int, top: int) -> None:
    """alpha_composite `tile` at (left, top), clipping to the layer bounds."""
    src_l = max(0, -left)
    src_t = max(0, -top)
    src_r = min(tile.width, layer.width - left)
    src_b = min(tile.height, layer.height - top)
    if src_l >= src_r or src_t >= src_b:
        return
    layer.alpha_composite(tile, dest=(left + src_l, top + src_t), source=(src_l, src_t, src_r, src_b))


def render_watermark_layer(width: int, height: int, wm: WatermarkSettings) -> Image.Image:
    """Transparent RGBA layer with the watermark tiled over a width x height canvas."""
    layer = Image.new("RGBA", (int(width), int(height)), (0, 0, 0, 0))
    if not wm.active:
        return layer

    spacing_x, spacing_y = effective_spacing(wm, width, height)
    grid = tile_grid(width, height, spacing_x, spacing_y)
    tile = render_tile(wm, watermark_font_size(width, height))
    half_w = tile.width / 2.0
    half_h = tile.height / 2.0

    for cx, cy in grid.centers():
        _paste_over(layer, tile, int(round(cx - half_w)), int(round(cy - half_h)))

    _logger.debug(
        "watermark: %dx%d grid=%dx%d spacing=(%.1f,%.1f) tile=%dx%d",
        width,
        height,
        grid.rows,
        grid.cols,
        spacing_x,
        spacing_y,
        tile.width,
        tile.height,
    )
    return layer
