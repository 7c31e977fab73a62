"""Deterministic composition pipeline for export.

crop window -> rotate/flip/scale render -> optional resize -> optional
watermark -> encode. The same EditState that drives the interactive view
drives this pipeline, so the export matches what the view implies.
"""

from __future__ import annotations

import time

import numpy as np
from PIL import Image

from image_studio.decoder import configure_vips_caches
from image_studio.geometry import rotated_bounding_box
from image_studio.logger import get_logger
from image_studio.models import EditState, ExportResult, ExportSettings, ImageSource
from image_studio.ops.export_inputs import derive_target_size

from . import encoder
from .surface import RasterSurface
from .watermark import render_watermark_layer

_logger = get_logger("compose")


def source_window(source: ImageSource, edit: EditState) -> tuple[int, int, int, int]:
    """Integer (left, top, width, height) region of the source to render."""
    if edit.is_cropping and edit.crop_rect is not None:
        return edit.crop_rect.to_pixel_box(source.width, source.height)
    return 0, 0, source.width, source.height


def render_size(sw: float, sh: float, rotation_deg: float, render_scale: float = 1.0) -> tuple[int, int]:
    """Working canvas size: the rotated bounding box times `render_scale`, truncated."""
    rot_w, rot_h = rotated_bounding_box(sw, sh, rotation_deg)
    return max(1, int(rot_w * render_scale)), max(1, int(rot_h * render_scale))


def compose_image(
    source: ImageSource,
    edit: EditState,
    settings: ExportSettings,
    *,
    render_scale: float = 1.0,
) -> RasterSurface:
    """Render the final pixel buffer (before encoding).

    `EditState.scale` is interactive zoom only and never reaches exported
    pixels. `render_scale` exists for reduced-size previews; export sizing is
    otherwise controlled by targetWidth/targetHeight.
    """
    left, top, sw, sh = source_window(source, edit)
    width, height = render_size(sw, sh, edit.rotation_deg, render_scale)

    src = RasterSurface.from_array(source.pixels)
    canvas = RasterSurface.blank(width, height).draw_image(
        src,
        (left, top, sw, sh),
        rotation_deg=edit.rotation_deg,
        scale_x=-render_scale if edit.flip_x else render_scale,
        scale_y=-render_scale if edit.flip_y else render_scale,
    )

    target = derive_target_size(
        canvas.width,
        canvas.height,
        settings.target_width,
        settings.target_height,
        settings.maintain_aspect_ratio,
    )
    if target is not None:
        canvas = canvas.resampled(*target)

    wm = settings.watermark
    if wm.active:
        layer = render_watermark_layer(canvas.width, canvas.height, wm)
        canvas = canvas.composite(RasterSurface.from_array(_pil_to_array(layer)))

    return canvas


def _pil_to_array(img: Image.Image) -> np.ndarray:
    return np.asarray(img.convert("RGBA"), dtype=np.uint8)


def export_image(source: ImageSource, edit: EditState, settings: ExportSettings) -> ExportResult:
    """Run the whole pipeline and encode. Raises ExportError subclasses on failure."""
    configure_vips_caches()
    t0 = time.perf_counter()
    _logger.info(
        "export start: %s %dx%d -> %s q=%.2f target=%s size=%sx%s",
        source.name or "<memory>",
        source.width,
        source.height,
        settings.format.name,
        settings.quality,
        settings.target_size_bytes,
        settings.target_width,
        settings.target_height,
    )
    canvas = compose_image(source, edit, settings)
    blob = encoder.encode(canvas, settings.format, settings.quality, settings.target_size_bytes)
    result = ExportResult(blob=blob, format=settings.format, width=canvas.width, height=canvas.height)
    _logger.info(
        "export done: %dx%d %d bytes in %.1f ms",
        result.width,
        result.height,
        result.byte_size,
        (time.perf_counter() - t0) * 1000.0,
    )
    return result
