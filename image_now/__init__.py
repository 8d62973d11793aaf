"""Chainable resize, crop, rotate, blur and watermark operations for raster images."""

from .core import (
    DocumentClosedError,
    ImageDecodeError,
    ImageDocument,
    ImageNotFoundError,
    ImageNowError,
    MimeType,
    OpenCVRasterEngine,
    RasterEngine,
    UnsupportedFormatError,
    WatermarkPosition,
)

__version__ = "0.1.0"

__all__ = [
    "ImageDocument",
    "RasterEngine",
    "OpenCVRasterEngine",
    "MimeType",
    "WatermarkPosition",
    "ImageNowError",
    "ImageNotFoundError",
    "ImageDecodeError",
    "UnsupportedFormatError",
    "DocumentClosedError",
]
