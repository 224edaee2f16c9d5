from __future__ import annotations

import re
from enum import StrEnum
from typing import Optional


class ErrorKind(StrEnum):
    VALIDATION = "ValidationError"
    UPSTREAM_UNAVAILABLE = "UpstreamUnavailable"
    NO_IMAGE_IN_RESPONSE = "NoImageInResponse"
    UPLOAD_FAILURE = "UploadFailure"
    STREAM_ERROR = "StreamError"


class PipelineError(Exception):
    """Base class for failures the pipeline reports to its callers."""

    kind: ErrorKind = ErrorKind.STREAM_ERROR

    def __init__(self, message: str, *, rate_limited: bool = False) -> None:
        super().__init__(message)
        self.message = message
        self.rate_limited = rate_limited


class InvalidRequestError(PipelineError):
    kind = ErrorKind.VALIDATION


class UpstreamUnavailableError(PipelineError):
    kind = ErrorKind.UPSTREAM_UNAVAILABLE


class NoImageInResponseError(PipelineError):
    kind = ErrorKind.NO_IMAGE_IN_RESPONSE


class UploadFailureError(PipelineError):
    kind = ErrorKind.UPLOAD_FAILURE


class StreamClosedError(RuntimeError):
    """Raised when an event is written to a progress stream after its terminal event."""


class TransportError(Exception):
    """Raised by model transports on network failure or a non-success status."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code

    @property
    def rate_limited(self) -> bool:
        return is_rate_limit_error(self.status_code, self.message)


_RATE_LIMIT_RE = re.compile(r"RESOURCE_EXHAUSTED|quota|rate.?limit|too many requests", re.I)


def is_rate_limit_error(status_code: Optional[int], detail: Optional[str]) -> bool:
    if status_code == 429:
        return True
    return bool(detail and _RATE_LIMIT_RE.search(detail))


_MESSAGES = {
    ErrorKind.VALIDATION: "The request is invalid. Check the selected areas and the instruction.",
    ErrorKind.UPSTREAM_UNAVAILABLE: "The image model is temporarily unavailable. Please try again later.",
    ErrorKind.NO_IMAGE_IN_RESPONSE: (
        "The image could not be edited. Try changing the selected area or the instruction."
    ),
    ErrorKind.UPLOAD_FAILURE: "The generated image could not be saved.",
    ErrorKind.STREAM_ERROR: "An unexpected error occurred while processing the request.",
}

_QUOTA_MESSAGE = (
    "The image model usage limit has been reached. Wait a moment or check your API quota."
)


def user_message(kind: ErrorKind, *, rate_limited: bool = False) -> str:
    """Map an error kind to caller-facing text; raw upstream errors are never surfaced."""
    if rate_limited and kind in (ErrorKind.UPSTREAM_UNAVAILABLE, ErrorKind.NO_IMAGE_IN_RESPONSE):
        return _QUOTA_MESSAGE
    return _MESSAGES.get(kind, _MESSAGES[ErrorKind.STREAM_ERROR])
