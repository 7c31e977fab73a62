"""Command-line export: load one image, apply edits, write the re-encoded copy."""

from __future__ import annotations

import argparse
import os
import sys
from dataclasses import replace
from pathlib import Path

from image_studio.decoder import load_image_source
from image_studio.errors import ExportError, ImageLoadError, InvalidDimensionInput
from image_studio.geometry import normalize_rotation
from image_studio.logger import ENV_LOG_CATS, ENV_LOG_LEVEL, get_logger, setup_logger
from image_studio.models import CropRect, EditState, ExportSettings, ImageFormat
from image_studio.ops.crop_controller import is_valid_crop
from image_studio.ops.export_inputs import BYTES_PER_MB, format_bytes, output_filename, parse_dimension_text
from image_studio.path_utils import abs_path
from image_studio.render.compose import export_image
from image_studio.render.watermark import parse_color
from image_studio.settings_manager import SettingsManager

_logger = get_logger("main")

_CROP_PARTS = 4
_SPACING_PARTS = 2


def _apply_cli_logging_options(args: argparse.Namespace) -> None:
    # Mirror CLI logging options into env so every later setup_logger() call sees them.
    if args.log_level:
        os.environ[ENV_LOG_LEVEL] = args.log_level
    if args.log_cats:
        os.environ[ENV_LOG_CATS] = args.log_cats
    setup_logger()


def _floats(text: str, count: int, what: str) -> list[float]:
    parts = [p.strip() for p in text.split(",")]
    if len(parts) != count:
        raise argparse.ArgumentTypeError(f"{what} expects {count} comma-separated numbers")
    try:
        return [float(p) for p in parts]
    except ValueError:
        raise argparse.ArgumentTypeError(f"{what} expects numbers, got {text!r}") from None


def _dimension(text: str) -> int | None:
    try:
        return parse_dimension_text(text)
    except InvalidDimensionInput as e:
        raise argparse.ArgumentTypeError(str(e)) from None


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="image-studio", description="Crop, rotate, watermark and re-encode an image")
    parser.add_argument("input", help="Source image file")
    parser.add_argument("-o", "--output", help="Output file (default: <name>_processed.<ext> beside the input)")
    parser.add_argument("--format", choices=["jpeg", "jpg", "png", "webp"], help="Output format")
    parser.add_argument("--quality", type=float, help="Quality in (0, 1], ignored for PNG")
    size = parser.add_mutually_exclusive_group()
    size.add_argument("--target-kb", type=float, help="Target output size in KB (lossy formats)")
    size.add_argument("--target-mb", type=float, help="Target output size in MB (lossy formats)")
    parser.add_argument("--width", type=_dimension, help="Output width in pixels")
    parser.add_argument("--height", type=_dimension, help="Output height in pixels")
    parser.add_argument("--no-keep-aspect", action="store_true", help="Do not derive a missing dimension")
    parser.add_argument("--rotate", type=float, default=0.0, help="Rotation in degrees (clockwise)")
    parser.add_argument("--flip-x", action="store_true", help="Mirror horizontally")
    parser.add_argument("--flip-y", action="store_true", help="Mirror vertically")
    parser.add_argument("--crop", help="Crop rectangle x,y,width,height in source pixels")
    parser.add_argument("--watermark", help="Tile this text over the output")
    parser.add_argument("--watermark-color", help="Watermark colour, e.g. '#ffffff'")
    parser.add_argument("--watermark-opacity", type=float, help="Watermark opacity in [0, 1]")
    parser.add_argument("--watermark-rotation", type=float, help="Watermark tile rotation in degrees")
    parser.add_argument("--watermark-spacing", help="Tile spacing x,y (0 means automatic)")
    parser.add_argument("--settings", help="Settings JSON with default export preferences")
    parser.add_argument("--log-level", help="Set log level")
    parser.add_argument("--log-cats", help="Set log categories")
    return parser


def _build_export_settings(args: argparse.Namespace, base: ExportSettings) -> ExportSettings:
    settings = base
    if args.format:
        settings = replace(settings, format=ImageFormat.parse(args.format))
    if args.quality is not None:
        if not 0.0 < args.quality <= 1.0:
            raise argparse.ArgumentTypeError("--quality must be in (0, 1]")
        settings = replace(settings, quality=args.quality)
    if args.target_kb:
        settings = replace(settings, target_size_bytes=int(args.target_kb * 1024))
    elif args.target_mb:
        settings = replace(settings, target_size_bytes=int(args.target_mb * BYTES_PER_MB))
    settings = replace(
        settings,
        target_width=args.width,
        target_height=args.height,
        maintain_aspect_ratio=settings.maintain_aspect_ratio and not args.no_keep_aspect,
    )

    wm = settings.watermark
    if args.watermark:
        wm = replace(wm, enabled=True, text=args.watermark)
    if args.watermark_color:
        try:
            wm = replace(wm, color=parse_color(args.watermark_color))
        except ValueError as e:
            raise argparse.ArgumentTypeError(f"--watermark-color: {e}") from None
    if args.watermark_opacity is not None:
        wm = replace(wm, opacity=max(0.0, min(1.0, args.watermark_opacity)))
    if args.watermark_rotation is not None:
        wm = replace(wm, rotation_deg=args.watermark_rotation)
    if args.watermark_spacing:
        sx, sy = _floats(args.watermark_spacing, _SPACING_PARTS, "--watermark-spacing")
        wm = replace(wm, spacing_x=sx, spacing_y=sy)
    return replace(settings, watermark=wm)


def _build_edit_state(args: argparse.Namespace, width: int, height: int) -> EditState:
    state = replace(
        EditState.for_image(width, height),
        rotation_deg=normalize_rotation(args.rotate),
        flip_x=args.flip_x,
        flip_y=args.flip_y,
    )
    if args.crop:
        rect = CropRect(*_floats(args.crop, _CROP_PARTS, "--crop"))
        if not is_valid_crop(rect, width, height):
            raise argparse.ArgumentTypeError(f"--crop {args.crop} is outside the {width}x{height} image or too small")
        state = replace(state, is_cropping=True, crop_rect=rect)
    return state


def _resolve_input(text: str, settings_manager: SettingsManager | None) -> Path:
    """A relative input missing from the working directory is looked up in the last opened folder."""
    path = Path(text)
    if path.is_absolute() or path.exists() or settings_manager is None:
        return path
    last_dir = settings_manager.last_open_dir
    if last_dir and (Path(last_dir) / path).exists():
        _logger.debug("input %s resolved against last folder %s", text, last_dir)
        return Path(last_dir) / path
    return path


def run(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    _apply_cli_logging_options(args)

    settings_manager = SettingsManager(str(abs_path(args.settings))) if args.settings else None
    base = settings_manager.default_export_settings() if settings_manager is not None else ExportSettings()
    input_path = _resolve_input(args.input, settings_manager)

    try:
        source = load_image_source(input_path)
    except ImageLoadError as e:
        _logger.error("%s", e)
        return 1
    if source.is_animated:
        _logger.warning("%s is animated; only the first frame is exported", source.name)

    try:
        settings = _build_export_settings(args, base)
        edit = _build_edit_state(args, source.width, source.height)
    except argparse.ArgumentTypeError as e:
        parser.error(str(e))

    try:
        result = export_image(source, edit, settings)
    except ExportError as e:
        _logger.error("export failed: %s", e, exc_info=True)
        return 1

    out = Path(args.output) if args.output else input_path.with_name(output_filename(input_path.name, result.format))
    out.write_bytes(result.blob)
    print(f"{out} {result.width}x{result.height} {format_bytes(result.byte_size)}")
    if settings_manager is not None:
        settings_manager.set("last_open_dir", str(input_path))
    return 0


def main() -> None:
    sys.exit(run())
