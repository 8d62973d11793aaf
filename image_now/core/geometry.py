"""Size and offset arithmetic behind resize, crop and watermark placement."""

from __future__ import annotations

import math
from typing import NamedTuple, Tuple

from .types import Anchor, WatermarkPosition

Size = Tuple[int, int]


class CropPlan(NamedTuple):
    cover_width: int
    cover_height: int
    offset_x: int
    offset_y: int


def round_half_away(value: float) -> int:
    """Round to the nearest integer, halves away from zero (2.5 -> 3, -2.5 -> -3)."""
    return int(math.copysign(math.floor(abs(value) + 0.5), value))


def fit_inside(width: int, height: int, aspect_ratio: float) -> Size:
    """Largest size with ``aspect_ratio`` that fits in the ``width`` x ``height`` box."""
    if width / height > aspect_ratio:
        width = round_half_away(height * aspect_ratio)
    else:
        height = round_half_away(width / aspect_ratio)
    return width, height


def cover_crop(width: int, height: int, aspect_ratio: float) -> CropPlan:
    """Intermediate size covering the box, and the offset of the centred window.

    Only one axis overflows, so exactly one of the offsets is non-zero.
    """
    if width / height > aspect_ratio:
        cover_height = round_half_away(width / aspect_ratio)
        return CropPlan(width, cover_height, 0, round_half_away((cover_height - height) / 2))
    cover_width = round_half_away(height * aspect_ratio)
    return CropPlan(cover_width, height, round_half_away((cover_width - width) / 2), 0)


def _axis_offset(anchor: Anchor, outer: int, inner: int) -> int:
    if anchor is Anchor.START:
        return 0
    if anchor is Anchor.CENTER:
        return round_half_away((outer - inner) / 2)
    return outer - inner


def anchor_offset(position: WatermarkPosition, canvas_size: Size, overlay_size: Size) -> Size:
    """Top-left corner at which ``overlay_size`` sits in ``canvas_size`` for ``position``.

    Offsets go negative when the overlay is larger than the canvas.
    """
    canvas_width, canvas_height = canvas_size
    overlay_width, overlay_height = overlay_size
    return (
        _axis_offset(position.horizontal, canvas_width, overlay_width),
        _axis_offset(position.vertical, canvas_height, overlay_height),
    )


__all__ = ["CropPlan", "round_half_away", "fit_inside", "cover_crop", "anchor_offset"]
