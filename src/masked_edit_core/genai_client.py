from __future__ import annotations

from typing import Any, List, Optional, Sequence

import httpx
from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from .broker import ContentPart, GenerationConfig, ModelResponse
from .errors import TransportError


# Ratio labels the image endpoint accepts
ASPECT_RATIOS = ("1:1", "2:3", "3:2", "3:4", "4:3", "4:5", "5:4", "9:16", "16:9", "21:9")

# (longest side limit, size label)
RESOLUTION_STEPS = ((1024, "1K"), (2048, "2K"))


def _ratio_value(label: str) -> float:
    w, h = label.split(":")
    return int(w) / int(h)


def closest_aspect_ratio_label(width: int, height: int) -> str:
    target = width / height if height else 1.0
    return min(ASPECT_RATIOS, key=lambda label: abs(_ratio_value(label) - target))


def resolution_label(width: int, height: int) -> str:
    side = max(width, height)
    for limit, label in RESOLUTION_STEPS:
        if side <= limit:
            return label
    return "4K"


def _to_genai_part(part: ContentPart) -> types.Part:
    if part.is_image:
        return types.Part.from_bytes(data=part.data, mime_type=part.mime_type or "image/png")
    return types.Part.from_text(text=part.text or "")


def _build_config(config: GenerationConfig) -> types.GenerateContentConfig:
    image_config = None
    if config.image_size or config.aspect_ratio:
        image_config = types.ImageConfig(
            image_size=config.image_size,
            aspect_ratio=config.aspect_ratio,
        )
    return types.GenerateContentConfig(
        temperature=config.temperature,
        response_modalities=list(config.response_modalities),
        image_config=image_config,
    )


def to_model_response(resp: Any) -> ModelResponse:
    """Flatten the first candidate's parts; a response without candidates has no parts."""
    candidates = getattr(resp, "candidates", None) or []
    if not candidates:
        return ModelResponse(parts=())
    content = getattr(candidates[0], "content", None)
    parts: List[ContentPart] = []
    for part in getattr(content, "parts", None) or []:
        inline = getattr(part, "inline_data", None)
        if inline is not None and getattr(inline, "data", None):
            parts.append(ContentPart(data=bytes(inline.data), mime_type=inline.mime_type or "image/png"))
        elif getattr(part, "text", None):
            parts.append(ContentPart(text=part.text))
    return ModelResponse(parts=tuple(parts))


class GenaiTransport:
    """`EditTransport` backed by the Google GenAI SDK (`models.generate_content`)."""

    def __init__(self, api_key: Optional[str] = None, client: Optional[Any] = None) -> None:
        if client is None:
            if not api_key:
                raise ValueError("GOOGLE_API_KEY is not configured")
            client = genai.Client(api_key=api_key)
        self._client = client

    def generate(
        self, model: str, parts: Sequence[ContentPart], config: GenerationConfig
    ) -> ModelResponse:
        contents = [types.Content(role="user", parts=[_to_genai_part(p) for p in parts])]
        try:
            resp = self._client.models.generate_content(
                model=model,
                contents=contents,
                config=_build_config(config),
            )
        except genai_errors.APIError as e:
            raise TransportError(str(e.message or e), status_code=e.code) from e
        except httpx.HTTPError as e:
            raise TransportError(f"{type(e).__name__}: {e}") from e
        return to_model_response(resp)
