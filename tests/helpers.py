from __future__ import annotations

from pathlib import Path
from typing import Optional, Set, Tuple

import cv2
import numpy as np
from PIL import Image

from image_now.core.engine import Canvas, OpenCVRasterEngine
from image_now.core.types import Color, MimeType


def create_gradient(width: int, height: int) -> np.ndarray:
    """BGR gradient so resampling and blurring have something to work on."""
    gradient = np.tile(np.linspace(30, 220, width, dtype=np.uint8), (height, 1))
    return np.dstack([gradient, np.full_like(gradient, 90), gradient[:, ::-1]])


def write_image(
    path: Path,
    width: int,
    height: int,
    *,
    bgr: Optional[Tuple[int, int, int]] = None,
) -> Path:
    """Write a JPEG/PNG/GIF/BMP sample; the format follows the file suffix."""
    if bgr is None:
        pixels = create_gradient(width, height)
    else:
        pixels = np.full((height, width, 3), bgr, dtype=np.uint8)
    if path.suffix.lower() == ".gif":
        Image.fromarray(cv2.cvtColor(pixels, cv2.COLOR_BGR2RGB)).save(path, format="GIF")
    else:
        if not cv2.imwrite(str(path), pixels):
            raise IOError(f"Failed to write fixture {path}")
    return path


def write_png_with_alpha(path: Path, width: int, height: int) -> Path:
    """PNG whose left half is fully transparent and right half opaque blue."""
    pixels = np.zeros((height, width, 4), dtype=np.uint8)
    pixels[:, width // 2 :] = (255, 0, 0, 255)
    cv2.imwrite(str(path), pixels)
    return path


def write_gif_with_transparency(path: Path, width: int, height: int) -> Path:
    """GIF with a transparent white border (index 0) around a red square (index 1)."""
    image = Image.new("P", (width, height), 0)
    image.putpalette([255, 255, 255, 200, 10, 10] + [0, 0, 0] * 254)
    image.paste(1, (width // 4, height // 4, 3 * width // 4, 3 * height // 4))
    image.save(path, format="GIF", transparency=0)
    return path


def pixel(canvas: Canvas, x: int, y: int) -> Color:
    return OpenCVRasterEngine().color_at(canvas, x, y)


class TrackingEngine(OpenCVRasterEngine):
    """Engine that records which canvases are still allocated."""

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self.live: Set[Canvas] = set()
        self.allocated = 0

    def _track(self, canvas: Canvas) -> Canvas:
        self.live.add(canvas)
        self.allocated += 1
        return canvas

    def decode(self, path, mime_type: MimeType) -> Canvas:
        return self._track(super().decode(path, mime_type))

    def create_canvas(self, width: int, height: int) -> Canvas:
        return self._track(super().create_canvas(width, height))

    def rotate(self, canvas: Canvas, degrees: float, fill: Color) -> Canvas:
        return self._track(super().rotate(canvas, degrees, fill))

    def release(self, canvas: Canvas) -> None:
        self.live.discard(canvas)
        super().release(canvas)
