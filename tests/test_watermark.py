from __future__ import annotations

import pytest

from image_studio.models import WatermarkSettings
from image_studio.render.watermark import (
    effective_spacing,
    parse_color,
    render_watermark_layer,
    tile_grid,
    watermark_font_size,
)


def test_font_size_scales_with_short_side() -> None:
    assert watermark_font_size(100, 100) == 16
    assert watermark_font_size(2000, 1000) == pytest.approx(30)


def test_spacing_auto_and_explicit() -> None:
    auto = WatermarkSettings(spacing_x=0, spacing_y=0)
    assert effective_spacing(auto, 2000, 2000) == (400.0, 300.0)
    assert effective_spacing(auto, 500, 500) == (200.0, 150.0)

    explicit = WatermarkSettings(spacing_x=120, spacing_y=80)
    assert effective_spacing(explicit, 2000, 2000) == (120.0, 80.0)


@pytest.mark.parametrize(("w", "h", "sx", "sy"), [(1, 1, 200, 150), (1000, 700, 200, 150), (333, 4000, 57.5, 91)])
def test_grid_covers_canvas(w: int, h: int, sx: float, sy: float) -> None:
    grid = tile_grid(w, h, sx, sy)
    assert (grid.rows - 2) * sy >= h
    assert (grid.cols - 2) * sx >= w

    centers = grid.centers()
    assert centers[0] == (-sx, -sy)
    assert len(centers) == (grid.rows + 1) * (grid.cols + 1)


def test_parse_color() -> None:
    assert parse_color("#ff000080") == (255, 0, 0, 128)
    assert parse_color("#00ff00") == (0, 255, 0, 255)
    assert parse_color("red") == (255, 0, 0, 255)
    assert parse_color((1, 2, 3)) == (1, 2, 3, 255)
    with pytest.raises(ValueError):
        parse_color("not-a-colour")


def test_inactive_watermark_is_transparent() -> None:
    layer = render_watermark_layer(200, 100, WatermarkSettings(enabled=True, text=""))
    assert layer.size == (200, 100)
    assert layer.getchannel("A").getextrema() == (0, 0)


def test_layer_alpha_follows_opacity() -> None:
    wm = WatermarkSettings(enabled=True, text="SAMPLE", opacity=0.3)
    layer = render_watermark_layer(400, 300, wm)
    assert layer.mode == "RGBA"
    lo, hi = layer.getchannel("A").getextrema()
    assert hi > 0
    assert hi <= round(255 * 0.3)


def test_rotated_watermark_renders() -> None:
    wm = WatermarkSettings(enabled=True, text="SAMPLE", opacity=1.0, rotation_deg=-45)
    layer = render_watermark_layer(400, 300, wm)
    assert layer.getchannel("A").getextrema()[1] > 0
