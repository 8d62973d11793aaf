"""Core transformation package for image_now."""

from . import geometry
from .batch_manager import BatchItem, BatchResult, BatchTransformProcessor
from .document import ImageDocument
from .engine import Canvas, OpenCVRasterEngine, RasterEngine
from .errors import (
    DocumentClosedError,
    ImageDecodeError,
    ImageNotFoundError,
    ImageNowError,
    UnsupportedFormatError,
)
from .logger import get_logger, setup_logging
from .types import Color, ImageInfo, MimeType, WatermarkPosition

__all__ = [
    "ImageDocument",
    "RasterEngine",
    "OpenCVRasterEngine",
    "Canvas",
    "MimeType",
    "WatermarkPosition",
    "Color",
    "ImageInfo",
    "BatchTransformProcessor",
    "BatchItem",
    "BatchResult",
    "ImageNowError",
    "ImageNotFoundError",
    "ImageDecodeError",
    "UnsupportedFormatError",
    "DocumentClosedError",
    "geometry",
    "get_logger",
    "setup_logging",
]
