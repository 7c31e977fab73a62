"""Adaptive encoder: fixed-quality encode, or bisection over quality to meet a byte budget.

The encoder only needs something with `to_encoded_bytes(format, quality)`;
`RasterSurface` is the production implementation.
"""

from __future__ import annotations

import warnings
from typing import Protocol

from image_studio.errors import UnreachableSizeTarget
from image_studio.logger import get_logger
from image_studio.models import ImageFormat

_logger = get_logger("encoder")

MAX_SEARCH_QUALITY = 1.0
MIN_SEARCH_QUALITY = 0.01
MAX_SEARCH_ITERATIONS = 6


class Encodable(Protocol):
    def to_encoded_bytes(self, fmt: ImageFormat, quality: float = ...) -> bytes: ...


def encode(buffer: Encodable, fmt: ImageFormat, quality: float, target_bytes: int | None = None) -> bytes:
    """Encode `buffer`.

    - PNG: a single lossless encode; quality and target are ignored.
    - Lossy without a target: a single encode at `quality`.
    - Lossy with a target: try quality 1.0, then at most 6 bisection steps over
      [0.01, 1.0], then (only if nothing fit) one final encode at the lower bound.
      Never more than 8 encode calls; an unreachable target yields the
      best-effort result and an UnreachableSizeTarget warning.
    """
    if not fmt.is_lossy:
        blob = buffer.to_encoded_bytes(fmt)
        _logger.debug("png encode: %d bytes (target=%s ignored)", len(blob), target_bytes)
        return blob

    if not target_bytes or target_bytes <= 0:
        blob = buffer.to_encoded_bytes(fmt, quality)
        _logger.debug("%s encode q=%.3f: %d bytes", fmt.name, quality, len(blob))
        return blob

    return _encode_to_target(buffer, fmt, int(target_bytes))


def _encode_to_target(buffer: Encodable, fmt: ImageFormat, target_bytes: int) -> bytes:
    blob = buffer.to_encoded_bytes(fmt, MAX_SEARCH_QUALITY)
    _logger.debug("%s first encode q=1.0: %d bytes (target %d)", fmt.name, len(blob), target_bytes)
    if len(blob) <= target_bytes:
        return blob

    lo, hi = MIN_SEARCH_QUALITY, MAX_SEARCH_QUALITY
    best: bytes | None = None
    for step in range(MAX_SEARCH_ITERATIONS):
        mid = (lo + hi) / 2.0
        candidate = buffer.to_encoded_bytes(fmt, mid)
        if len(candidate) > target_bytes:
            hi = mid
        else:
            lo = mid
            best = candidate
        _logger.debug("%s bisect #%d q=%.4f: %d bytes -> [%.4f, %.4f]", fmt.name, step + 1, mid, len(candidate), lo, hi)

    if best is not None:
        return best

    fallback = buffer.to_encoded_bytes(fmt, lo)
    if len(fallback) > target_bytes:
        _logger.info("target %d bytes unreachable; best effort %d bytes at q=%.3f", target_bytes, len(fallback), lo)
        warnings.warn(UnreachableSizeTarget(target_bytes, len(fallback)), stacklevel=3)
    return fallback
