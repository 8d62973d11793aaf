"""Value types shared by the raster engine and the image document."""

from __future__ import annotations

from enum import Enum
from typing import NamedTuple, Tuple, Union


class MimeType(str, Enum):
    JPEG = "image/jpeg"
    PNG = "image/png"
    GIF = "image/gif"

    @classmethod
    def from_pil_format(cls, name: str) -> "MimeType":
        """Map a Pillow format name (``"JPEG"``, ``"PNG"``...) to a mime type."""
        try:
            return _PIL_FORMATS[name.upper()]
        except KeyError:
            raise ValueError(f"Unsupported image format: {name}") from None


_PIL_FORMATS = {
    "JPEG": MimeType.JPEG,
    "MPO": MimeType.JPEG,
    "PNG": MimeType.PNG,
    "GIF": MimeType.GIF,
}


class Anchor(Enum):
    START = "start"
    CENTER = "center"
    END = "end"


class WatermarkPosition(Enum):
    """The nine slots of the 3x3 placement grid."""

    TOP_LEFT = 1
    TOP_CENTER = 2
    TOP_RIGHT = 3
    CENTER_LEFT = 4
    CENTER_CENTER = 5
    CENTER_RIGHT = 6
    BOTTOM_LEFT = 7
    BOTTOM_CENTER = 8
    BOTTOM_RIGHT = 9

    @property
    def horizontal(self) -> Anchor:
        return _AXIS[(self.value - 1) % 3]

    @property
    def vertical(self) -> Anchor:
        return _AXIS[(self.value - 1) // 3]

    @classmethod
    def parse(cls, value: Union["WatermarkPosition", int, str]) -> "WatermarkPosition":
        """Resolve an enum member, its numeric value, or a name like ``"bottom-right"``."""
        if isinstance(value, cls):
            return value
        if isinstance(value, int) and not isinstance(value, bool):
            try:
                return cls(value)
            except ValueError:
                raise ValueError(f"Unknown watermark position: {value}") from None
        if isinstance(value, str):
            key = value.strip().upper().replace("-", "_").replace(" ", "_")
            if key == "CENTER":
                return cls.CENTER_CENTER
            if key in cls.__members__:
                return cls.__members__[key]
        raise ValueError(f"Unknown watermark position: {value!r}")


_AXIS = (Anchor.START, Anchor.CENTER, Anchor.END)


class Color(NamedTuple):
    """RGBA colour; ``alpha`` 255 is opaque and 0 fully transparent."""

    red: int
    green: int
    blue: int
    alpha: int = 255

    def to_bgra(self) -> Tuple[int, int, int, int]:
        return (self.blue, self.green, self.red, self.alpha)


class ImageInfo(NamedTuple):
    mime_type: MimeType
    width: int
    height: int


__all__ = ["MimeType", "Anchor", "WatermarkPosition", "Color", "ImageInfo"]
