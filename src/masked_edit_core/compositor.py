from __future__ import annotations

import logging
from typing import Optional, Sequence

from PIL import Image

from .image_utils import ensure_size, normalize_mode
from .region_math import to_pixel_rects
from .types import MaskRegion

logger = logging.getLogger(__name__)


def match_source(
    source: Image.Image, generated: Image.Image, log: Optional[logging.Logger] = None
) -> Image.Image:
    """Stretch `generated` to the source size and mode.

    The model is free to return another resolution; the output slot never is.
    """
    log = log or logger
    if generated.size != source.size:
        log.info(
            "Resizing generated image: %dx%d -> %dx%d",
            generated.width, generated.height, source.width, source.height,
        )
        generated = ensure_size(generated, source.size)
    if generated.mode != source.mode:
        generated = generated.convert(source.mode)
    return generated


def apply_region_safeguard(
    source: Image.Image,
    generated: Image.Image,
    regions: Sequence[MaskRegion],
    log: Optional[logging.Logger] = None,
) -> Image.Image:
    """Restore every pixel outside `regions` from `source`.

    The original is the base; only the requested rectangles are cut from the
    generated image and stamped back at the same coordinates, so whatever the
    model did elsewhere is discarded.
    """
    source = normalize_mode(source)
    generated = match_source(source, generated, log)
    out = source.copy()
    for rect in to_pixel_rects(regions, source.size):
        out.paste(generated.crop(rect.box), (rect.left, rect.top))
    return out


def apply_whole_frame(
    source: Image.Image, generated: Image.Image, log: Optional[logging.Logger] = None
) -> Image.Image:
    """Full restyle: the generated frame replaces the source, at the source size."""
    return match_source(normalize_mode(source), generated, log)
