"""Detect and heal the red border left on images by the old background-unify bug.

Detection looks at a band along all four edges and counts pixels matching the
red predicate. Repair walks each edge band and replaces red pixels with the
first clean pixel found moving inward from a reference offset.
"""

from __future__ import annotations

import logging
from typing import Iterable, Optional, Sequence, Tuple

from PIL import Image

from .image_utils import normalize_mode

logger = logging.getLogger(__name__)

RED_THRESHOLD = 180
GREEN_BLUE_THRESHOLD = 100
DETECT_BAND = 6
REPAIR_BAND = 5
RED_RATIO_THRESHOLD = 0.05
# Reference pixels are taken this far past the band, where the body starts.
REFERENCE_GAP = 2

Pixel = Tuple[int, ...]


def _rgb(pixel) -> Tuple[int, int, int]:
    if isinstance(pixel, int):
        return pixel, pixel, pixel
    if len(pixel) < 3:
        return pixel[0], pixel[0], pixel[0]
    return pixel[0], pixel[1], pixel[2]


def is_red_pixel(pixel) -> bool:
    r, g, b = _rgb(pixel)
    return r > RED_THRESHOLD and g < GREEN_BLUE_THRESHOLD and b < GREEN_BLUE_THRESHOLD


def _border_coords(width: int, height: int, band: int) -> Iterable[Tuple[int, int]]:
    band_h = min(band, height)
    for y in range(band_h):
        for x in range(width):
            yield x, y
    for y in range(max(height - band, band_h), height):
        for x in range(width):
            yield x, y
    for y in range(band, height - band):
        for x in range(min(band, width)):
            yield x, y
        for x in range(max(width - band, band), width):
            yield x, y


def red_border_ratio(img: Image.Image, band: int = DETECT_BAND) -> float:
    img = normalize_mode(img)
    px = img.load()
    total = 0
    red = 0
    for x, y in _border_coords(img.width, img.height, band):
        total += 1
        if is_red_pixel(px[x, y]):
            red += 1
    return red / total if total else 0.0


def has_red_border(
    img: Image.Image, band: int = DETECT_BAND, threshold: float = RED_RATIO_THRESHOLD
) -> bool:
    ratio = red_border_ratio(img, band)
    logger.info("Red pixel ratio in border: %.2f%%", ratio * 100)
    return ratio >= threshold


def _first_clean(px, coords: Iterable[Tuple[int, int]]) -> Optional[Pixel]:
    for x, y in coords:
        value = px[x, y]
        if not is_red_pixel(value):
            return value
    return None


def _gray(pixel):
    r, g, b = _rgb(pixel)
    lum = int(round(0.299 * r + 0.587 * g + 0.114 * b))
    if isinstance(pixel, int):
        return lum
    if len(pixel) == 4:
        return (lum, lum, lum, pixel[3])
    if len(pixel) == 3:
        return (lum, lum, lum)
    return pixel


def _heal(px, x: int, y: int, primary: Sequence[Tuple[int, int]], secondary: Sequence[Tuple[int, int]]) -> None:
    replacement = _first_clean(px, primary)
    if replacement is None:
        replacement = _first_clean(px, secondary)
    if replacement is None:
        replacement = _gray(px[x, y])
    px[x, y] = replacement


def remove_red_border(img: Image.Image, band: int = REPAIR_BAND) -> Image.Image:
    """Return a copy of `img` with red pixels in the outer `band` replaced.

    Each edge pulls colour from inside the image: the top band from below, the
    bottom band from above, the left band from the right, the right band from
    the left. The scan starts `REFERENCE_GAP` pixels past the band and moves
    inward until a non-red pixel is found; if the whole line is red (frame
    corners), the diagonal towards the image centre is tried, then the pixel is
    desaturated.
    """
    out = normalize_mode(img).copy()
    w, h = out.size
    px = out.load()
    ref = band + REFERENCE_GAP

    def col_down(x, y0):
        return [(x, yy) for yy in range(max(y0, 0), h)]

    def col_up(x, y0):
        return [(x, yy) for yy in range(min(y0, h - 1), -1, -1)]

    def row_right(y, x0):
        return [(xx, y) for xx in range(max(x0, 0), w)]

    def row_left(y, x0):
        return [(xx, y) for xx in range(min(x0, w - 1), -1, -1)]

    def towards_centre(x, y):
        dx = 1 if x < w // 2 else -1
        dy = 1 if y < h // 2 else -1
        coords = []
        cx, cy = x + dx, y + dy
        while 0 <= cx < w and 0 <= cy < h:
            coords.append((cx, cy))
            cx, cy = cx + dx, cy + dy
        return coords

    for y in range(min(band, h)):
        for x in range(w):
            if is_red_pixel(px[x, y]):
                _heal(px, x, y, col_down(x, min(ref, h - 1)), towards_centre(x, y))

    for y in range(max(h - band, 0), h):
        for x in range(w):
            if is_red_pixel(px[x, y]):
                _heal(px, x, y, col_up(x, max(h - band - 3, 0)), towards_centre(x, y))

    for y in range(h):
        for x in range(min(band, w)):
            if is_red_pixel(px[x, y]):
                _heal(px, x, y, row_right(y, min(ref, w - 1)), towards_centre(x, y))

    for y in range(h):
        for x in range(max(w - band, 0), w):
            if is_red_pixel(px[x, y]):
                _heal(px, x, y, row_left(y, max(w - band - 3, 0)), towards_centre(x, y))

    return out
