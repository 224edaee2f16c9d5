from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, List, Optional, Protocol, Sequence, Tuple

from .errors import ErrorKind, InvalidRequestError, TransportError, user_message
from .image_utils import decode_image
from .types import EditRequest, EditResult, ImagePayload, RetryPolicy
from .utils.prompt import render_instruction

logger = logging.getLogger(__name__)

PRIMARY_IMAGE_MODEL = "gemini-3-pro-image-preview"
FALLBACK_IMAGE_MODEL = "gemini-2.5-flash-preview-image-generation"


@dataclass(frozen=True)
class ContentPart:
    """One element of the model's ordered part list: inline image bytes or text."""

    text: Optional[str] = None
    data: Optional[bytes] = None
    mime_type: Optional[str] = None

    @classmethod
    def from_image(cls, payload: ImagePayload) -> "ContentPart":
        return cls(data=payload.data, mime_type=payload.mime_type)

    @classmethod
    def from_text(cls, text: str) -> "ContentPart":
        return cls(text=text)

    @property
    def is_image(self) -> bool:
        return bool(self.data)


@dataclass(frozen=True)
class GenerationConfig:
    temperature: Optional[float] = None
    response_modalities: Tuple[str, ...] = ("IMAGE", "TEXT")
    image_size: Optional[str] = None
    aspect_ratio: Optional[str] = None


@dataclass(frozen=True)
class ModelResponse:
    parts: Sequence[ContentPart] = ()


class EditTransport(Protocol):
    def generate(
        self, model: str, parts: Sequence[ContentPart], config: GenerationConfig
    ) -> ModelResponse:
        """Call `model`; raise TransportError on network failure or non-success status."""


def extract_image(response: ModelResponse) -> Tuple[Optional[ContentPart], Optional[str]]:
    """First part carrying inline image bytes, plus any text parts joined for diagnostics."""
    image: Optional[ContentPart] = None
    texts: List[str] = []
    for part in response.parts:
        if image is None and part.is_image:
            image = part
        elif part.text:
            texts.append(part.text)
    return image, ("\n".join(texts) if texts else None)


def build_parts(request: EditRequest) -> List[ContentPart]:
    if not request.instruction or not request.instruction.strip():
        raise InvalidRequestError("An instruction is required")
    parts: List[ContentPart] = []
    ref = request.style_reference
    if ref is not None and request.reference_first:
        parts.append(ContentPart.from_image(ref))
        if request.reference_label:
            parts.append(ContentPart.from_text(request.reference_label))
    if request.source is not None:
        parts.append(ContentPart.from_image(request.source))
    if ref is not None and not request.reference_first:
        parts.append(ContentPart.from_image(ref))
    parts.append(ContentPart.from_text(render_instruction(request)))
    return parts


def with_retry(
    policy: RetryPolicy,
    attempt_fn: Callable[[int], EditResult],
    sleep: Callable[[float], None] = time.sleep,
    log: Optional[logging.Logger] = None,
) -> EditResult:
    """Run `attempt_fn(attempt)` until it yields an image or the policy is exhausted.

    Waits `policy.backoff_seconds(attempt)` between attempts, never after the last
    one. The exhausted result is tagged with the failure kind seen on most
    attempts; a tie goes to the most recent attempt.
    """
    log = log or logger
    counts = {ErrorKind.UPSTREAM_UNAVAILABLE: 0, ErrorKind.NO_IMAGE_IN_RESPONSE: 0}
    last = EditResult(error_kind=ErrorKind.UPSTREAM_UNAVAILABLE)
    rate_limited = False
    for attempt in range(policy.max_attempts):
        result = attempt_fn(attempt)
        if result.ok:
            return result.model_copy(update={"attempts": attempt + 1})
        kind = result.error_kind or ErrorKind.UPSTREAM_UNAVAILABLE
        counts[kind] = counts.get(kind, 0) + 1
        rate_limited = rate_limited or result.rate_limited
        last = result
        if attempt < policy.max_attempts - 1:
            wait = policy.backoff_seconds(attempt)
            log.info("Waiting %.1fs before retry (%s)", wait, kind)
            sleep(wait)

    last_kind = last.error_kind or ErrorKind.UPSTREAM_UNAVAILABLE
    dominant = max(counts, key=lambda k: (counts[k], k == last_kind))
    log.error("Giving up after %d attempts: %s", policy.max_attempts, dominant)
    return EditResult(
        error_kind=dominant,
        message=user_message(dominant, rate_limited=rate_limited),
        text_response=last.text_response,
        model_used=last.model_used,
        attempts=policy.max_attempts,
        rate_limited=rate_limited,
    )


class GenerativeEditBroker:
    """Resilient wrapper around the external image model.

    Every attempt calls the primary model; if that fails outright the fallback
    model gets the same payload before the attempt counts as failed.
    """

    def __init__(
        self,
        transport: EditTransport,
        *,
        primary_model: str = PRIMARY_IMAGE_MODEL,
        fallback_model: Optional[str] = FALLBACK_IMAGE_MODEL,
        policy: Optional[RetryPolicy] = None,
        sleep: Callable[[float], None] = time.sleep,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.transport = transport
        self.primary_model = primary_model
        self.fallback_model = fallback_model
        self.policy = policy or RetryPolicy()
        self._sleep = sleep
        self._log = logger or logging.getLogger(__name__)

    def submit(self, request: EditRequest, policy: Optional[RetryPolicy] = None) -> EditResult:
        policy = policy or self.policy
        parts = build_parts(request)
        config = GenerationConfig(
            temperature=request.temperature,
            image_size=request.image_size,
            aspect_ratio=request.aspect_ratio,
        )
        return self.submit_parts(parts, config, policy)

    def submit_parts(
        self,
        parts: Sequence[ContentPart],
        config: GenerationConfig,
        policy: Optional[RetryPolicy] = None,
    ) -> EditResult:
        policy = policy or self.policy

        def attempt_fn(attempt: int) -> EditResult:
            self._log.info("Generating image (attempt %d/%d)", attempt + 1, policy.max_attempts)
            return self._attempt(parts, config)

        return with_retry(policy, attempt_fn, sleep=self._sleep, log=self._log)

    def _call(
        self, model: str, parts: Sequence[ContentPart], config: GenerationConfig
    ) -> Tuple[Optional[ModelResponse], Optional[TransportError]]:
        try:
            return self.transport.generate(model, parts, config), None
        except TransportError as e:
            self._log.warning("Model %s failed (%s): %s", model, e.status_code, e.message[:200])
            return None, e
        except Exception as e:
            self._log.exception("Model %s raised %s", model, type(e).__name__)
            return None, TransportError(str(e))

    def _attempt(self, parts: Sequence[ContentPart], config: GenerationConfig) -> EditResult:
        model = self.primary_model
        response, error = self._call(model, parts, config)
        rate_limited = bool(error and error.rate_limited)
        if response is None and self.fallback_model:
            self._log.info("Trying fallback model %s", self.fallback_model)
            model = self.fallback_model
            response, error = self._call(model, parts, config)
            rate_limited = rate_limited or bool(error and error.rate_limited)
        if response is None:
            return EditResult(
                error_kind=ErrorKind.UPSTREAM_UNAVAILABLE,
                message=user_message(ErrorKind.UPSTREAM_UNAVAILABLE, rate_limited=rate_limited),
                rate_limited=rate_limited,
            )

        image, text = extract_image(response)
        if image is None:
            self._log.error("No image data in response from %s", model)
            return EditResult(
                error_kind=ErrorKind.NO_IMAGE_IN_RESPONSE,
                message=user_message(ErrorKind.NO_IMAGE_IN_RESPONSE),
                text_response=text,
                model_used=model,
            )
        try:
            decode_image(image.data)
        except InvalidRequestError:
            self._log.error("Unreadable image data in response from %s", model)
            return EditResult(
                error_kind=ErrorKind.NO_IMAGE_IN_RESPONSE,
                message=user_message(ErrorKind.NO_IMAGE_IN_RESPONSE),
                text_response=text,
                model_used=model,
            )
        return EditResult(image=image.data, text_response=text, model_used=model)
