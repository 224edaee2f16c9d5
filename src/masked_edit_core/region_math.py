from __future__ import annotations

import math
from typing import Iterable, List, Optional, Sequence, Tuple

from .types import MaskRegion, PixelRect


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def to_pixel_rect(region: MaskRegion, size: Tuple[int, int]) -> Optional[PixelRect]:
    """Convert a fractional region to a pixel rectangle inside an image of `size`.

    Regions that spill over the image edge are clamped, not rejected, because
    callers may have computed them against a slightly different canvas. Returns
    None when nothing of the region is left after clamping.
    """
    width, height = size
    if width <= 0 or height <= 0:
        return None

    left = _round_half_up(region.x * width)
    top = _round_half_up(region.y * height)
    w = _round_half_up(region.width * width)
    h = _round_half_up(region.height * height)

    left = min(max(left, 0), width)
    top = min(max(top, 0), height)
    w = min(w, width - left)
    h = min(h, height - top)
    if w <= 0 or h <= 0:
        return None
    return PixelRect(left, top, w, h)


def to_pixel_rects(regions: Iterable[MaskRegion], size: Tuple[int, int]) -> List[PixelRect]:
    """Rectangles for every non-degenerate region, in region order."""
    rects = []
    for region in regions:
        rect = to_pixel_rect(region, size)
        if rect is not None:
            rects.append(rect)
    return rects


def describe_position(region: MaskRegion) -> str:
    x_percent = _round_half_up(region.x * 100)
    y_percent = _round_half_up(region.y * 100)
    if y_percent < 33:
        vertical = "top"
    elif y_percent < 66:
        vertical = "middle"
    else:
        vertical = "bottom"
    if x_percent < 33:
        horizontal = "left"
    elif x_percent < 66:
        horizontal = "center"
    else:
        horizontal = "right"
    return f"{vertical} {horizontal}"


def describe_regions(regions: Sequence[MaskRegion]) -> str:
    lines = []
    for i, region in enumerate(regions, start=1):
        lines.append(
            f"Area {i}: {describe_position(region)} "
            f"({_round_half_up(region.x * 100)}% from left, "
            f"{_round_half_up(region.y * 100)}% from top, "
            f"width {_round_half_up(region.width * 100)}%, "
            f"height {_round_half_up(region.height * 100)}%)"
        )
    return "\n".join(lines)
