from __future__ import annotations

import base64

import pytest
from PIL import Image

from masked_edit_core.errors import InvalidRequestError
from masked_edit_core.image_utils import (
    create_mask_image,
    create_overlay_image,
    decode_image,
    encode_png,
    normalize_mode,
    parse_base64_image,
)
from masked_edit_core.types import MaskRegion

from conftest import solid


def test_mask_image_is_black_with_white_regions() -> None:
    mask = create_mask_image((100, 50), [MaskRegion(x=0.1, y=0.2, width=0.2, height=0.4)])
    assert mask.mode == "RGBA"
    assert mask.size == (100, 50)
    assert mask.getpixel((10, 10)) == (255, 255, 255, 255)
    assert mask.getpixel((29, 29)) == (255, 255, 255, 255)
    assert mask.getpixel((30, 10)) == (0, 0, 0, 255)
    assert mask.getpixel((0, 0)) == (0, 0, 0, 255)


def test_overlay_tints_region_and_leaves_rest() -> None:
    src = solid((100, 100), (0, 0, 255))
    overlay = create_overlay_image(src, [MaskRegion(x=0.2, y=0.2, width=0.5, height=0.5)])
    assert overlay.size == src.size
    # outside untouched
    assert overlay.getpixel((5, 5)) == (0, 0, 255, 255)
    # stroke on the edge
    assert overlay.getpixel((20, 40)) == (255, 0, 0, 255)
    # translucent fill inside
    r, g, b, a = overlay.getpixel((45, 45))
    assert a == 255
    assert r > 100 and b > 100 and b < 255
    # source untouched
    assert src.getpixel((45, 45)) == (0, 0, 255)


def test_overlay_later_region_is_drawn_on_top() -> None:
    src = solid((100, 100), (0, 0, 0))
    regions = [
        MaskRegion(x=0.0, y=0.0, width=0.6, height=0.6),
        MaskRegion(x=0.3, y=0.3, width=0.6, height=0.6),
    ]
    overlay = create_overlay_image(src, regions)
    # second region's stroke crosses the inside of the first
    assert overlay.getpixel((30, 45)) == (255, 0, 0, 255)


def test_overlay_skips_degenerate_region() -> None:
    src = solid((50, 50), (0, 200, 0))
    overlay = create_overlay_image(src, [MaskRegion(x=0.5, y=0.5, width=0.0, height=0.0)])
    assert list(overlay.getdata()) == list(src.convert("RGBA").getdata())


def test_decode_rejects_garbage() -> None:
    with pytest.raises(InvalidRequestError):
        decode_image(b"not an image")


def test_unusual_modes_are_normalized() -> None:
    img = Image.new("P", (4, 4))
    assert normalize_mode(img).mode == "RGBA"
    assert normalize_mode(Image.new("LA", (4, 4))).mode == "LA"


def test_parse_base64_with_and_without_header() -> None:
    png = encode_png(solid((3, 3)))
    raw = base64.b64encode(png).decode()
    data, mime = parse_base64_image(f"data:image/jpeg;base64,{raw}")
    assert data == png and mime == "image/jpeg"
    # missing padding is tolerated
    data, mime = parse_base64_image(raw.rstrip("="))
    assert data == png and mime == "image/png"


def test_parse_base64_rejects_invalid() -> None:
    with pytest.raises(InvalidRequestError):
        parse_base64_image("%%%not-base64%%%")
