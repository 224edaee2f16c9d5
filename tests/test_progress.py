from __future__ import annotations

import json

import pytest

from masked_edit_core.errors import InvalidRequestError, StreamClosedError
from masked_edit_core.progress import ProgressStream, iter_sse, run_job, to_sse


def test_events_are_kept_in_order_and_forwarded() -> None:
    seen = []
    stream = ProgressStream(sink=seen.append)
    stream.progress("Starting", step="init")
    stream.progress("Section 1/2", step="processing", current=1, total=2)
    stream.complete(updated_count=1, total_count=2, sections=[])

    assert [e.type for e in stream.events] == ["progress", "progress", "complete"]
    assert seen == stream.events
    assert stream.closed


def test_writing_after_terminal_event_raises() -> None:
    stream = ProgressStream()
    stream.error("failed")
    with pytest.raises(StreamClosedError):
        stream.progress("late")
    with pytest.raises(StreamClosedError):
        stream.complete(updated_count=0, total_count=0)
    assert len(stream.events) == 1


def test_sse_frame_format() -> None:
    stream = ProgressStream()
    stream.complete(updated_count=2, total_count=3, sections=[{"sectionId": 1}])
    frame = to_sse(stream.events[0])
    assert frame.startswith("data: ")
    assert frame.endswith("\n\n")
    body = json.loads(frame[len("data: "):])
    assert body == {
        "type": "complete",
        "success": True,
        "updatedCount": 2,
        "totalCount": 3,
        "sections": [{"sectionId": 1}],
    }


def test_progress_frame_omits_unset_fields() -> None:
    stream = ProgressStream()
    stream.progress("Generating design tokens...", step="tokens")
    body = json.loads(to_sse(stream.events[0])[6:])
    assert body == {"type": "progress", "step": "tokens", "message": "Generating design tokens..."}


def test_run_job_turns_exception_into_error_event() -> None:
    stream = ProgressStream()

    def job(s: ProgressStream) -> None:
        s.progress("Starting", step="init")
        raise InvalidRequestError("No sections with images found")

    run_job(job, stream, str)

    assert [e.type for e in stream.events] == ["progress", "error"]
    assert stream.events[-1].message == "No sections with images found"


def test_run_job_closes_stream_left_open() -> None:
    stream = ProgressStream()
    run_job(lambda s: s.progress("only"), stream, str)
    assert stream.events[-1].type == "error"


def test_iter_sse_stops_after_terminal_event() -> None:
    def job(s: ProgressStream) -> None:
        s.progress("one", step="init")
        s.complete(updated_count=0, total_count=0)

    frames = list(iter_sse(job, str))

    assert len(frames) == 2
    assert json.loads(frames[-1][6:])["type"] == "complete"


def test_iter_sse_reports_crash_once() -> None:
    def job(s: ProgressStream) -> None:
        raise RuntimeError("secret upstream detail")

    frames = list(iter_sse(job, lambda e: "Restyle failed"))

    assert [json.loads(f[6:]) for f in frames] == [{"type": "error", "message": "Restyle failed"}]
