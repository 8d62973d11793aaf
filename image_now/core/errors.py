"""Exception hierarchy raised while loading and transforming images."""

from __future__ import annotations


class ImageNowError(Exception):
    """Base class for every error raised by the image pipeline."""


class ImageNotFoundError(ImageNowError, FileNotFoundError):
    """The image path is empty, missing, or not readable."""


class ImageDecodeError(ImageNowError, ValueError):
    """The file exists but its type and dimensions cannot be determined."""


class UnsupportedFormatError(ImageNowError, ValueError):
    """The file is an image, but not a JPEG, PNG or GIF."""


class DocumentClosedError(ImageNowError, RuntimeError):
    """An operation was attempted after the document was saved or closed."""


__all__ = [
    "ImageNowError",
    "ImageNotFoundError",
    "ImageDecodeError",
    "UnsupportedFormatError",
    "DocumentClosedError",
]
