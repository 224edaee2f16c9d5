from __future__ import annotations

from pathlib import Path
import sys
from typing import Any, List, Optional

import pytest
from PIL import Image

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT / "src") not in sys.path:
    sys.path.insert(0, str(ROOT / "src"))

from masked_edit_core.broker import ContentPart, GenerativeEditBroker, ModelResponse
from masked_edit_core.image_utils import encode_png
from masked_edit_core.types import ImagePayload, RetryPolicy
from masked_edit_core.utils.records import JsonSectionRepository
from masked_edit_core.utils.storage import LocalObjectStorage


def solid(size=(40, 30), color=(10, 120, 200), mode="RGB") -> Image.Image:
    return Image.new(mode, size, color)


def payload(img: Image.Image) -> ImagePayload:
    return ImagePayload(data=encode_png(img), mime_type="image/png")


def image_response(img: Image.Image, text: Optional[str] = None) -> ModelResponse:
    parts = []
    if text:
        parts.append(ContentPart(text=text))
    parts.append(ContentPart(data=encode_png(img), mime_type="image/png"))
    return ModelResponse(parts=tuple(parts))


def text_response(text: str = "I cannot edit this image.") -> ModelResponse:
    return ModelResponse(parts=(ContentPart(text=text),))


class FakeTransport:
    """Plays back a script of responses; an exception instance in the script is raised.

    A callable entry is called with (model, parts, config) and its return value used.
    Once the script runs out, `default` answers every call.
    """

    def __init__(self, script: Optional[List[Any]] = None, default: Any = None) -> None:
        self.script = list(script or [])
        self.default = default
        self.calls: List[tuple] = []

    def generate(self, model, parts, config):
        self.calls.append((model, list(parts), config))
        item = self.script.pop(0) if self.script else self.default
        if isinstance(item, Exception):
            raise item
        if callable(item):
            item = item(model, parts, config)
        if item is None:
            return ModelResponse(parts=())
        return item

    @property
    def models(self) -> List[str]:
        return [c[0] for c in self.calls]


class SleepRecorder:
    def __init__(self) -> None:
        self.waits: List[float] = []

    def __call__(self, seconds: float) -> None:
        self.waits.append(seconds)


@pytest.fixture()
def sleeper() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture()
def make_broker(sleeper: SleepRecorder):
    def _make(transport: FakeTransport, max_attempts: int = 3, backoff_base_ms: int = 4000) -> GenerativeEditBroker:
        return GenerativeEditBroker(
            transport,
            primary_model="primary",
            fallback_model="fallback",
            policy=RetryPolicy(max_attempts=max_attempts, backoff_base_ms=backoff_base_ms),
            sleep=sleeper,
        )

    return _make


@pytest.fixture()
def storage(tmp_path: Path) -> LocalObjectStorage:
    return LocalObjectStorage(tmp_path / "storage")


@pytest.fixture()
def repository(tmp_path: Path) -> JsonSectionRepository:
    return JsonSectionRepository(tmp_path / "records.json")
