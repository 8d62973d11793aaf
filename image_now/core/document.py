"""Mutable image document exposing a chainable set of transformations."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Mapping, Optional, Tuple, Union

from .engine import Canvas, OpenCVRasterEngine, RasterEngine
from .errors import DocumentClosedError, ImageNotFoundError
from .geometry import anchor_offset, cover_crop, fit_inside
from .types import ImageInfo, MimeType, WatermarkPosition

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]
PositionLike = Union[WatermarkPosition, int, str]

DEFAULT_JPEG_QUALITY = 90
DEFAULT_PNG_QUALITY = 6
DEFAULT_BLUR_FACTOR = 3


def _clamp(value: int, lower: int, upper: int) -> int:
    return max(lower, min(upper, int(value)))


def load_raster(engine: RasterEngine, path: Optional[PathLike]) -> Tuple[ImageInfo, Canvas]:
    """Check, sniff and decode an image file.

    Raises:
        ImageNotFoundError: If the path is empty, missing or unreadable.
        ImageDecodeError: If the file is not a recognisable image.
        UnsupportedFormatError: If the image is not a JPEG, PNG or GIF.
    """
    if path is None or str(path) == "":
        raise ImageNotFoundError("File does not exist: no path given")
    path = Path(path)
    if not path.is_file() or not os.access(path, os.R_OK):
        raise ImageNotFoundError(f"File does not exist: {path}")
    info = engine.detect(path)
    return info, engine.decode(path, info.mime_type)


class ImageDocument:
    """One loaded raster image and the operations that rewrite it in place.

    Every transformation returns the document itself so calls can be chained::

        ImageDocument("photo.jpg").crop(200, 200).blur().save("thumb.jpg")

    ``save`` is terminal: the pixel buffer is released and further calls raise
    :class:`DocumentClosedError`.
    """

    def __init__(
        self,
        path: Optional[PathLike],
        *,
        engine: Optional[RasterEngine] = None,
        jpeg_quality: int = DEFAULT_JPEG_QUALITY,
        png_quality: int = DEFAULT_PNG_QUALITY,
        blur_factor: int = DEFAULT_BLUR_FACTOR,
    ) -> None:
        self.engine = engine or OpenCVRasterEngine()
        info, canvas = load_raster(self.engine, path)
        self.source_path = Path(path)
        self.mime_type: MimeType = info.mime_type
        self.jpeg_quality = _clamp(jpeg_quality, 0, 100)
        self.png_quality = _clamp(png_quality, 0, 9)
        self.blur_factor = int(blur_factor)
        self._buffer: Optional[Canvas] = None
        self._width = 0
        self._height = 0
        self._replace_buffer(canvas)
        logger.info(
            "Loaded %s (%s, %sx%s)", self.source_path, self.mime_type.value, self._width, self._height
        )

    @classmethod
    def load(cls, path: Optional[PathLike], **kwargs: Any) -> "ImageDocument":
        return cls(path, **kwargs)

    @classmethod
    def from_config(
        cls,
        path: Optional[PathLike],
        config: Mapping[str, Any],
        *,
        engine: Optional[RasterEngine] = None,
    ) -> "ImageDocument":
        settings = dict(config.get("document", {}) or {})
        return cls(
            path,
            engine=engine or OpenCVRasterEngine.from_config(config),
            jpeg_quality=int(settings.get("jpeg_quality", DEFAULT_JPEG_QUALITY)),
            png_quality=int(settings.get("png_quality", DEFAULT_PNG_QUALITY)),
            blur_factor=int(settings.get("blur_factor", DEFAULT_BLUR_FACTOR)),
        )

    # -- state --------------------------------------------------------------

    @property
    def width(self) -> int:
        return self._width

    @property
    def height(self) -> int:
        return self._height

    @property
    def aspect_ratio(self) -> float:
        return self._width / self._height

    @property
    def closed(self) -> bool:
        return self._buffer is None

    @property
    def buffer(self) -> Canvas:
        """The current pixel buffer; owned by the document."""
        return self._require_buffer()

    def _require_buffer(self) -> Canvas:
        if self._buffer is None:
            raise DocumentClosedError(f"Image {self.source_path} has already been saved or closed.")
        return self._buffer

    def _replace_buffer(self, canvas: Canvas) -> None:
        previous = self._buffer
        self._buffer = canvas
        self._width = canvas.width
        self._height = canvas.height
        if previous is not None and previous is not canvas:
            self.engine.release(previous)

    def _preserve_transparency(self, canvas: Canvas) -> Canvas:
        """Prepare a fresh canvas so resampled pixels keep the source's transparency."""
        if self.mime_type is MimeType.PNG:
            self.engine.set_alpha_blending(canvas, False)
            self.engine.set_save_alpha(canvas, True)
        elif self.mime_type is MimeType.GIF:
            background = self.engine.allocate_color(canvas, 255, 255, 255)
            background = self.engine.set_transparent_color(canvas, background)
            self.engine.fill(canvas, background)
        return canvas

    def _new_canvas(self, width: int, height: int) -> Canvas:
        return self._preserve_transparency(self.engine.create_canvas(width, height))

    # -- encoding parameters ------------------------------------------------

    def set_jpeg_quality(self, quality: int = DEFAULT_JPEG_QUALITY) -> "ImageDocument":
        self.jpeg_quality = _clamp(quality, 0, 100)
        return self

    def set_png_quality(self, quality: int = DEFAULT_PNG_QUALITY) -> "ImageDocument":
        self.png_quality = _clamp(quality, 0, 9)
        return self

    # -- transformations ----------------------------------------------------

    def resize(self, width: int, height: int) -> "ImageDocument":
        """Scale to fit inside ``width`` x ``height`` keeping the aspect ratio."""
        source = self._require_buffer()
        width, height = fit_inside(width, height, self.aspect_ratio)
        canvas = self._new_canvas(width, height)
        self.engine.resample(canvas, source, width, height)
        self._replace_buffer(canvas)
        logger.debug("Resized %s to %sx%s", self.source_path, width, height)
        return self

    def crop(self, width: int, height: int) -> "ImageDocument":
        """Scale to cover ``width`` x ``height`` and keep the centred window."""
        source = self._require_buffer()
        plan = cover_crop(width, height, self.aspect_ratio)
        cover = self._new_canvas(plan.cover_width, plan.cover_height)
        try:
            self.engine.resample(cover, source, plan.cover_width, plan.cover_height)
            canvas = self._new_canvas(width, height)
            try:
                self.engine.copy(canvas, cover, 0, 0, plan.offset_x, plan.offset_y, width, height)
            except BaseException:
                self.engine.release(canvas)
                raise
        finally:
            self.engine.release(cover)
        self._replace_buffer(canvas)
        logger.debug(
            "Cropped %s to %sx%s (offset %s,%s)",
            self.source_path,
            width,
            height,
            plan.offset_x,
            plan.offset_y,
        )
        return self

    def rotate(self, degrees: float = 0) -> "ImageDocument":
        """Rotate counter-clockwise; uncovered corners become transparent white."""
        source = self._require_buffer()
        background = self.engine.allocate_color(source, 255, 255, 255, 0)
        self._replace_buffer(self.engine.rotate(source, degrees, background))
        logger.debug(
            "Rotated %s by %s degrees (now %sx%s)", self.source_path, degrees, self._width, self._height
        )
        return self

    def blur(self, blur_factor: Optional[int] = None) -> "ImageDocument":
        """Apply ``blur_factor`` Gaussian passes in place."""
        buffer = self._require_buffer()
        passes = self.blur_factor if blur_factor is None else int(blur_factor)
        for _ in range(max(passes, 0)):
            self.engine.gaussian_blur(buffer)
        logger.debug("Blurred %s with %s pass(es)", self.source_path, max(passes, 0))
        return self

    def watermark(self, path: Optional[PathLike], position: PositionLike) -> "ImageDocument":
        """Stamp the image at ``path`` onto one of the nine anchor positions.

        The overlay is copied pixel for pixel without scaling. An overlay larger
        than the document is clipped to the document's bounds.
        """
        buffer = self._require_buffer()
        position = WatermarkPosition.parse(position)
        _, overlay = load_raster(self.engine, path)
        try:
            x, y = anchor_offset(
                position, (self._width, self._height), (overlay.width, overlay.height)
            )
            if overlay.width > self._width or overlay.height > self._height:
                logger.warning(
                    "Watermark %s (%sx%s) exceeds image %sx%s; it will be clipped.",
                    path,
                    overlay.width,
                    overlay.height,
                    self._width,
                    self._height,
                )
            self.engine.copy(buffer, overlay, x, y, 0, 0, overlay.width, overlay.height)
        finally:
            self.engine.release(overlay)
        logger.debug("Watermarked %s at %s (%s,%s)", self.source_path, position.name, x, y)
        return self

    # -- lifecycle ----------------------------------------------------------

    def _quality(self) -> Optional[int]:
        if self.mime_type is MimeType.JPEG:
            return self.jpeg_quality
        if self.mime_type is MimeType.PNG:
            return self.png_quality
        return None

    def save(self, destination: Optional[PathLike] = None) -> None:
        """Encode to ``destination`` (default: the source path) and release the buffer."""
        buffer = self._require_buffer()
        target = Path(destination) if destination else self.source_path
        try:
            self.engine.encode(buffer, target, self.mime_type, self._quality())
            logger.info("Saved %s to %s", self.source_path, target)
        finally:
            self.close()

    def close(self) -> None:
        if self._buffer is None:
            return
        self.engine.release(self._buffer)
        self._buffer = None

    def __enter__(self) -> "ImageDocument":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def __repr__(self) -> str:
        state = "closed" if self.closed else f"{self._width}x{self._height}"
        return f"ImageDocument({str(self.source_path)!r}, {self.mime_type.value}, {state})"


__all__ = ["ImageDocument", "load_raster"]
