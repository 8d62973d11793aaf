"""Raster engine: codecs, canvases and pixel primitives built on OpenCV."""

from __future__ import annotations

import abc
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping, Optional, Union

import cv2
import numpy as np
from PIL import Image, UnidentifiedImageError

from .errors import ImageDecodeError, UnsupportedFormatError
from .geometry import round_half_away
from .types import Color, ImageInfo, MimeType

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

INTERPOLATIONS = {
    "nearest": cv2.INTER_NEAREST,
    "linear": cv2.INTER_LINEAR,
    "cubic": cv2.INTER_CUBIC,
    "area": cv2.INTER_AREA,
    "lanczos": cv2.INTER_LANCZOS4,
}

GIF_TRANSPARENT_INDEX = 255

ENCODE_EXTENSIONS = {
    MimeType.JPEG: ".jpg",
    MimeType.PNG: ".png",
}


def _empty_pixels() -> np.ndarray:
    return np.zeros((0, 0, 4), dtype=np.uint8)


@dataclass(eq=False)
class Canvas:
    """A BGRA pixel buffer plus the drawing flags that travel with it."""

    pixels: np.ndarray
    alpha_blending: bool = True
    save_alpha: bool = False
    transparent_color: Optional[Color] = None
    released: bool = field(default=False, repr=False)

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])


class RasterEngine(abc.ABC):
    """Capabilities the image document needs from a pixel library."""

    @abc.abstractmethod
    def detect(self, path: PathLike) -> ImageInfo:
        """Detect type and dimensions from the file's content."""

    @abc.abstractmethod
    def decode(self, path: PathLike, mime_type: MimeType) -> Canvas:
        ...

    @abc.abstractmethod
    def encode(
        self,
        canvas: Canvas,
        path: PathLike,
        mime_type: MimeType,
        quality: Optional[int] = None,
    ) -> None:
        ...

    @abc.abstractmethod
    def create_canvas(self, width: int, height: int) -> Canvas:
        ...

    @abc.abstractmethod
    def set_alpha_blending(self, canvas: Canvas, enabled: bool) -> None:
        ...

    @abc.abstractmethod
    def set_save_alpha(self, canvas: Canvas, enabled: bool) -> None:
        ...

    @abc.abstractmethod
    def allocate_color(
        self, canvas: Canvas, red: int, green: int, blue: int, alpha: int = 255
    ) -> Color:
        ...

    @abc.abstractmethod
    def color_at(self, canvas: Canvas, x: int, y: int) -> Color:
        ...

    @abc.abstractmethod
    def set_transparent_color(self, canvas: Canvas, color: Color) -> Color:
        ...

    @abc.abstractmethod
    def fill(self, canvas: Canvas, color: Color) -> None:
        ...

    @abc.abstractmethod
    def has_transparency(self, canvas: Canvas) -> bool:
        ...

    @abc.abstractmethod
    def resample(self, dst: Canvas, src: Canvas, width: int, height: int) -> None:
        """Scale all of ``src`` into the top-left ``width`` x ``height`` region of ``dst``."""

    @abc.abstractmethod
    def copy(
        self,
        dst: Canvas,
        src: Canvas,
        dst_x: int,
        dst_y: int,
        src_x: int,
        src_y: int,
        width: int,
        height: int,
    ) -> None:
        ...

    @abc.abstractmethod
    def rotate(self, canvas: Canvas, degrees: float, fill: Color) -> Canvas:
        ...

    @abc.abstractmethod
    def gaussian_blur(self, canvas: Canvas) -> None:
        ...

    @abc.abstractmethod
    def release(self, canvas: Canvas) -> None:
        ...


def _to_bgra(image: np.ndarray) -> np.ndarray:
    if image.dtype == np.uint16:
        image = (image // 257).astype(np.uint8)
    if image.ndim == 2:
        return cv2.cvtColor(image, cv2.COLOR_GRAY2BGRA)
    if image.shape[2] == 3:
        return cv2.cvtColor(image, cv2.COLOR_BGR2BGRA)
    return np.ascontiguousarray(image)


def _blend_over(src: np.ndarray, dst: np.ndarray) -> np.ndarray:
    """Composite ``src`` over ``dst`` (both BGRA, straight alpha)."""
    src_f = src.astype(np.float32) / 255.0
    dst_f = dst.astype(np.float32) / 255.0
    src_a = src_f[..., 3:4]
    dst_a = dst_f[..., 3:4]
    out_a = src_a + dst_a * (1.0 - src_a)
    out_rgb = src_f[..., :3] * src_a + dst_f[..., :3] * dst_a * (1.0 - src_a)
    out_rgb = np.divide(out_rgb, out_a, out=np.zeros_like(out_rgb), where=out_a > 0)
    out = np.concatenate([out_rgb, out_a], axis=2)
    return np.clip(np.rint(out * 255.0), 0, 255).astype(np.uint8)


class OpenCVRasterEngine(RasterEngine):
    """Default engine: OpenCV for pixels and JPEG/PNG, Pillow for sniffing and GIF."""

    def __init__(
        self,
        *,
        downscale_interpolation: str = "area",
        upscale_interpolation: str = "cubic",
        rotate_interpolation: str = "linear",
    ) -> None:
        for name in (downscale_interpolation, upscale_interpolation, rotate_interpolation):
            if name not in INTERPOLATIONS:
                raise ValueError(f"Unsupported interpolation: {name}")
        self.downscale_interpolation = downscale_interpolation
        self.upscale_interpolation = upscale_interpolation
        self.rotate_interpolation = rotate_interpolation
        logger.debug(
            "Initialized OpenCVRasterEngine (down=%s, up=%s, rotate=%s)",
            downscale_interpolation,
            upscale_interpolation,
            rotate_interpolation,
        )

    # -- codecs -------------------------------------------------------------

    def detect(self, path: PathLike) -> ImageInfo:
        try:
            with Image.open(path) as image:
                name = image.format or ""
                width, height = image.size
        except (UnidentifiedImageError, OSError) as exc:
            raise ImageDecodeError(f"Could not read image: {path}") from exc
        try:
            mime_type = MimeType.from_pil_format(name)
        except ValueError as exc:
            raise UnsupportedFormatError(f"Unsupported image type {name!r}: {path}") from exc
        return ImageInfo(mime_type, width, height)

    def decode(self, path: PathLike, mime_type: MimeType) -> Canvas:
        if mime_type is MimeType.GIF:
            try:
                with Image.open(path) as image:
                    image.seek(0)
                    rgba = np.asarray(image.convert("RGBA"))
            except (UnidentifiedImageError, OSError) as exc:
                raise ImageDecodeError(f"Unable to decode image: {path}") from exc
            canvas = Canvas(cv2.cvtColor(rgba, cv2.COLOR_RGBA2BGRA))
        else:
            raw = cv2.imdecode(np.fromfile(str(path), dtype=np.uint8), cv2.IMREAD_UNCHANGED)
            if raw is None:
                raise ImageDecodeError(f"Unable to decode image: {path}")
            has_alpha = raw.ndim == 3 and raw.shape[2] == 4
            canvas = Canvas(_to_bgra(raw), save_alpha=mime_type is MimeType.PNG and has_alpha)
        logger.debug("Decoded %s as %s (%sx%s)", path, mime_type.value, canvas.width, canvas.height)
        return canvas

    def encode(
        self,
        canvas: Canvas,
        path: PathLike,
        mime_type: MimeType,
        quality: Optional[int] = None,
    ) -> None:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        if canvas.released or canvas.pixels.size == 0:
            raise ValueError("Cannot save an empty image.")

        if mime_type is MimeType.GIF:
            self._encode_gif(canvas, path)
        else:
            if mime_type is MimeType.JPEG:
                pixels = cv2.cvtColor(canvas.pixels, cv2.COLOR_BGRA2BGR)
                params = [cv2.IMWRITE_JPEG_QUALITY, 90 if quality is None else int(quality)]
            else:
                pixels = canvas.pixels
                if not canvas.save_alpha:
                    pixels = cv2.cvtColor(pixels, cv2.COLOR_BGRA2BGR)
                params = [cv2.IMWRITE_PNG_COMPRESSION, 6 if quality is None else int(quality)]
            success, buffer = cv2.imencode(ENCODE_EXTENSIONS[mime_type], pixels, params)
            if not success:
                raise IOError(f"Failed to encode image for {path}")
            buffer.tofile(str(path))
        logger.debug("Saved %s image to %s", mime_type.value, path)

    def _encode_gif(self, canvas: Canvas, path: Path) -> None:
        rgb = cv2.cvtColor(canvas.pixels, cv2.COLOR_BGRA2RGB)
        if not self.has_transparency(canvas):
            Image.fromarray(rgb).save(path, format="GIF")
            return
        # Index 255 is kept out of the palette and marks transparent pixels.
        image = Image.fromarray(rgb).convert("P", palette=Image.Palette.ADAPTIVE, colors=255)
        mask = Image.fromarray(np.where(canvas.pixels[..., 3] < 128, 255, 0).astype(np.uint8))
        image.paste(GIF_TRANSPARENT_INDEX, mask=mask)
        image.save(path, format="GIF", transparency=GIF_TRANSPARENT_INDEX, optimize=False)

    # -- canvases and colours -----------------------------------------------

    def create_canvas(self, width: int, height: int) -> Canvas:
        if width <= 0 or height <= 0:
            raise ValueError(f"Canvas dimensions must be positive, got {width}x{height}.")
        pixels = np.zeros((int(height), int(width), 4), dtype=np.uint8)
        pixels[..., 3] = 255
        return Canvas(pixels)

    def set_alpha_blending(self, canvas: Canvas, enabled: bool) -> None:
        canvas.alpha_blending = bool(enabled)

    def set_save_alpha(self, canvas: Canvas, enabled: bool) -> None:
        canvas.save_alpha = bool(enabled)

    def allocate_color(
        self, canvas: Canvas, red: int, green: int, blue: int, alpha: int = 255
    ) -> Color:
        for channel in (red, green, blue, alpha):
            if not 0 <= channel <= 255:
                raise ValueError(f"Colour channel out of range: {channel}")
        return Color(int(red), int(green), int(blue), int(alpha))

    def color_at(self, canvas: Canvas, x: int, y: int) -> Color:
        blue, green, red, alpha = (int(v) for v in canvas.pixels[y, x])
        return Color(red, green, blue, alpha)

    def set_transparent_color(self, canvas: Canvas, color: Color) -> Color:
        transparent = color._replace(alpha=0)
        canvas.transparent_color = transparent
        return transparent

    def fill(self, canvas: Canvas, color: Color) -> None:
        canvas.pixels[...] = color.to_bgra()

    def has_transparency(self, canvas: Canvas) -> bool:
        return bool((canvas.pixels[..., 3] < 255).any())

    # -- pixel operations ---------------------------------------------------

    def resample(self, dst: Canvas, src: Canvas, width: int, height: int) -> None:
        width = min(width, dst.width)
        height = min(height, dst.height)
        shrinking = width * height < src.width * src.height
        name = self.downscale_interpolation if shrinking else self.upscale_interpolation
        scaled = cv2.resize(src.pixels, (width, height), interpolation=INTERPOLATIONS[name])
        region = dst.pixels[:height, :width]
        if dst.alpha_blending:
            region[...] = _blend_over(scaled, region)
        else:
            region[...] = scaled

    def copy(
        self,
        dst: Canvas,
        src: Canvas,
        dst_x: int,
        dst_y: int,
        src_x: int,
        src_y: int,
        width: int,
        height: int,
    ) -> None:
        # Clip against the destination first, then against the source.
        if dst_x < 0:
            src_x -= dst_x
            width += dst_x
            dst_x = 0
        if dst_y < 0:
            src_y -= dst_y
            height += dst_y
            dst_y = 0
        width = min(width, dst.width - dst_x, src.width - src_x)
        height = min(height, dst.height - dst_y, src.height - src_y)
        if width <= 0 or height <= 0:
            logger.debug("Copy region is empty after clipping; nothing to do.")
            return
        dst.pixels[dst_y : dst_y + height, dst_x : dst_x + width] = src.pixels[
            src_y : src_y + height, src_x : src_x + width
        ]

    def rotate(self, canvas: Canvas, degrees: float, fill: Color) -> Canvas:
        quarter_turns, remainder = divmod(float(degrees), 90.0)
        if remainder == 0:
            pixels = np.ascontiguousarray(np.rot90(canvas.pixels, k=int(quarter_turns) % 4))
        else:
            height, width = canvas.pixels.shape[:2]
            matrix = cv2.getRotationMatrix2D((width / 2.0, height / 2.0), float(degrees), 1.0)
            cos, sin = abs(matrix[0, 0]), abs(matrix[0, 1])
            new_width = max(1, round_half_away(height * sin + width * cos))
            new_height = max(1, round_half_away(height * cos + width * sin))
            matrix[0, 2] += new_width / 2.0 - width / 2.0
            matrix[1, 2] += new_height / 2.0 - height / 2.0
            pixels = cv2.warpAffine(
                canvas.pixels,
                matrix,
                (new_width, new_height),
                flags=INTERPOLATIONS[self.rotate_interpolation],
                borderMode=cv2.BORDER_CONSTANT,
                borderValue=fill.to_bgra(),
            )
        return Canvas(
            pixels,
            alpha_blending=canvas.alpha_blending,
            save_alpha=canvas.save_alpha,
            transparent_color=canvas.transparent_color,
        )

    def gaussian_blur(self, canvas: Canvas) -> None:
        # sigma 0 with a 3x3 window yields the 1-2-1 binomial kernel.
        canvas.pixels[...] = cv2.GaussianBlur(canvas.pixels, (3, 3), 0)

    def release(self, canvas: Canvas) -> None:
        if canvas.released:
            return
        canvas.pixels = _empty_pixels()
        canvas.released = True

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> "OpenCVRasterEngine":
        settings = dict(config.get("engine", {}) or {})
        return cls(
            downscale_interpolation=settings.get("downscale_interpolation", "area"),
            upscale_interpolation=settings.get("upscale_interpolation", "cubic"),
            rotate_interpolation=settings.get("rotate_interpolation", "linear"),
        )


__all__ = ["Canvas", "RasterEngine", "OpenCVRasterEngine", "INTERPOLATIONS"]
