from __future__ import annotations

import base64
import binascii
import io
import mimetypes
import re
from pathlib import Path
from typing import Iterable, Sequence, Tuple
from urllib.parse import urlparse
from urllib.request import url2pathname

import requests
from PIL import Image, ImageDraw

from .errors import InvalidRequestError
from .region_math import to_pixel_rects
from .types import ImagePayload, MaskRegion

SUPPORTED_MODES = ("L", "LA", "RGB", "RGBA")

OVERLAY_FILL_RGBA = (239, 68, 68, 128)
OVERLAY_STROKE_RGBA = (255, 0, 0, 255)
OVERLAY_STROKE_WIDTH = 3

_DATA_URL_RE = re.compile(r"^data:(image/[\w.+-]+);base64,", re.I)


def normalize_mode(img: Image.Image) -> Image.Image:
    """Keep 1-4 channel 8-bit modes as they are; anything else becomes RGBA."""
    if img.mode in SUPPORTED_MODES:
        return img
    return img.convert("RGBA")


def decode_image(data: bytes) -> Image.Image:
    try:
        img = Image.open(io.BytesIO(data))
        img.load()
    except (OSError, Image.DecompressionBombError) as e:
        raise InvalidRequestError(f"Unreadable image data: {e}") from e
    return normalize_mode(img)


def encode_png(img: Image.Image) -> bytes:
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


def to_payload(img: Image.Image) -> ImagePayload:
    return ImagePayload(data=encode_png(img), mime_type="image/png")


def fetch_image_bytes(url: str, timeout: int = 20) -> Tuple[bytes, str]:
    resp = requests.get(url, timeout=timeout)
    resp.raise_for_status()
    mime_type = resp.headers.get("content-type", "image/png").split(";")[0].strip()
    return resp.content, mime_type or "image/png"


def read_image_bytes(ref: str, timeout: int = 20) -> Tuple[bytes, str]:
    """Bytes behind an http(s) URL, a `file://` URI or a local path."""
    if ref.startswith("http://") or ref.startswith("https://"):
        return fetch_image_bytes(ref, timeout=timeout)
    path = Path(url2pathname(urlparse(ref).path)) if ref.startswith("file:") else Path(ref)
    mime_type = mimetypes.guess_type(path.name)[0] or "image/png"
    return path.read_bytes(), mime_type


def load_image(path_or_url: str, timeout: int = 20) -> Image.Image:
    data, _ = read_image_bytes(path_or_url, timeout=timeout)
    return decode_image(data)


def parse_base64_image(data: str) -> Tuple[bytes, str]:
    """Decode a base64 image, with or without a `data:image/...;base64,` header."""
    mime_type = "image/png"
    match = _DATA_URL_RE.match(data)
    if match:
        mime_type = match.group(1).lower()
        data = data[match.end():]
    b64 = "".join(data.split())
    padding = len(b64) % 4
    if padding:
        b64 += "=" * (4 - padding)
    try:
        return base64.b64decode(b64, validate=True), mime_type
    except (binascii.Error, ValueError) as e:
        raise InvalidRequestError(f"Invalid base64 image: {e}") from e


def ensure_size(img: Image.Image, size: Tuple[int, int]) -> Image.Image:
    if img.size == size:
        return img
    return img.resize(size, Image.LANCZOS)


def create_mask_image(size: Tuple[int, int], regions: Iterable[MaskRegion]) -> Image.Image:
    """Opaque black canvas with every region filled white (white = editable)."""
    mask = Image.new("RGBA", size, (0, 0, 0, 255))
    draw = ImageDraw.Draw(mask)
    for rect in to_pixel_rects(regions, size):
        draw.rectangle([rect.left, rect.top, rect.right - 1, rect.bottom - 1], fill=(255, 255, 255, 255))
    return mask


def create_overlay_image(
    source: Image.Image,
    regions: Sequence[MaskRegion],
    fill_rgba: Tuple[int, int, int, int] = OVERLAY_FILL_RGBA,
    stroke_rgba: Tuple[int, int, int, int] = OVERLAY_STROKE_RGBA,
    stroke_width: int = OVERLAY_STROKE_WIDTH,
) -> Image.Image:
    """Source image with each region highlighted so the model can see the edit zone.

    Regions are composited one by one, so a later region is drawn over an earlier
    one where they overlap.
    """
    out = source.convert("RGBA")
    for rect in to_pixel_rects(regions, out.size):
        layer = Image.new("RGBA", out.size, (0, 0, 0, 0))
        draw = ImageDraw.Draw(layer)
        draw.rectangle(
            [rect.left, rect.top, rect.right - 1, rect.bottom - 1],
            fill=fill_rgba,
            outline=stroke_rgba,
            width=stroke_width,
        )
        out = Image.alpha_composite(out, layer)
    return out
