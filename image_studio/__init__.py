"""Interactive crop/rotate/flip/watermark editing core with size-targeted export."""

__version__ = "0.1.0"
