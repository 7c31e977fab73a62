"""Exception taxonomy for the edit/export core.

Export-time failures all derive from `ExportError` so callers can treat them as a
single failed-export signal. Crop-rectangle constraint violations never show up
here; the crop resolver clamps or rejects them silently.
"""

from __future__ import annotations


class ImageStudioError(Exception):
    """Base class for project errors."""


class ImageLoadError(ImageStudioError):
    """The source file could not be decoded into an ImageSource."""


class ExportError(ImageStudioError):
    """An export attempt failed. Not retried automatically."""


class RenderSurfaceError(ExportError):
    """A drawing surface could not be acquired for one of the pipeline stages."""


class EncodeError(ExportError):
    """The codec returned no data."""


class InvalidDimensionInput(ImageStudioError, ValueError):
    """Malformed numeric text input. Callers keep the prior value."""

    def __init__(self, text: object) -> None:
        super().__init__(f"Invalid dimension input: {text!r}")
        self.text = text


class UnreachableSizeTarget(UserWarning):
    """The byte budget could not be met; a best-effort result was returned."""

    def __init__(self, target_bytes: int, actual_bytes: int) -> None:
        super().__init__(f"Target size {target_bytes} bytes unreachable, best effort is {actual_bytes} bytes")
        self.target_bytes = target_bytes
        self.actual_bytes = actual_bytes
