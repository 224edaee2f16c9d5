"""Ordered progress events for long-running jobs, and their event-stream encoding."""

from __future__ import annotations

import json
import logging
import queue
import threading
from typing import Any, Callable, Dict, Iterator, List, Optional

from .errors import StreamClosedError
from .types import ProgressEvent

logger = logging.getLogger(__name__)

Sink = Callable[[ProgressEvent], None]


class ProgressStream:
    """Single-writer, append-only event channel.

    Events reach the sink in emission order. Exactly one terminal event
    (`complete` or `error`) closes the stream; anything written afterwards
    raises StreamClosedError.
    """

    def __init__(self, sink: Optional[Sink] = None) -> None:
        self._sink = sink
        self._closed = False
        self.events: List[ProgressEvent] = []

    @property
    def closed(self) -> bool:
        return self._closed

    def emit(self, event: ProgressEvent) -> None:
        if self._closed:
            raise StreamClosedError(f"stream already closed, dropped {event.type} event")
        self.events.append(event)
        if event.terminal:
            self._closed = True
        if self._sink is not None:
            self._sink(event)

    def progress(
        self,
        message: str,
        *,
        step: Optional[str] = None,
        current: Optional[int] = None,
        total: Optional[int] = None,
    ) -> None:
        self.emit(ProgressEvent(type="progress", step=step, message=message, current=current, total=total))

    def complete(
        self,
        *,
        updated_count: int,
        total_count: int,
        sections: Optional[List[Dict[str, Any]]] = None,
    ) -> None:
        self.emit(
            ProgressEvent(
                type="complete",
                success=True,
                updated_count=updated_count,
                total_count=total_count,
                sections=sections or [],
            )
        )

    def error(self, message: str) -> None:
        self.emit(ProgressEvent(type="error", message=message))


def to_sse(event: ProgressEvent) -> str:
    return f"data: {json.dumps(event.to_wire(), ensure_ascii=False)}\n\n"


def run_job(job: Callable[[ProgressStream], None], stream: ProgressStream, error_message: Callable[[Exception], str]) -> None:
    """Run `job`, turning an uncaught exception into the terminal `error` event."""
    try:
        job(stream)
    except Exception as e:
        logger.exception("Streamed job failed")
        if not stream.closed:
            stream.error(error_message(e))
        return
    if not stream.closed:
        stream.error("Job ended without a result")


def iter_sse(
    job: Callable[[ProgressStream], None],
    error_message: Callable[[Exception], str],
) -> Iterator[str]:
    """Run `job` on a worker thread and yield its events as `data: <json>` frames.

    The generator ends right after the terminal event.
    """
    events: "queue.Queue[ProgressEvent]" = queue.Queue()
    stream = ProgressStream(sink=events.put)
    worker = threading.Thread(target=run_job, args=(job, stream, error_message), daemon=True)
    worker.start()
    while True:
        event = events.get()
        yield to_sse(event)
        if event.terminal:
            break
    worker.join()
