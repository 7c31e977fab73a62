"""Export pipeline: raster surface, composition, watermark and adaptive encoder."""

from .compose import compose_image, export_image
from .encoder import encode
from .surface import RasterSurface

__all__ = [
    "RasterSurface",
    "compose_image",
    "encode",
    "export_image",
]
