from __future__ import annotations

import pytest
from pydantic import ValidationError

from masked_edit_core.broker import ContentPart
from masked_edit_core.errors import ErrorKind, InvalidRequestError, TransportError, UploadFailureError
from masked_edit_core.processes.restyle import (
    RestyleOptions,
    SegmentConsistencyOrchestrator,
    plan_segments,
    run_page_restyle,
    segment_temperature,
)
from masked_edit_core.progress import ProgressStream
from masked_edit_core.types import RestyleMode, SegmentRole
from masked_edit_core.utils.prompt import STYLE_REFERENCE_LABEL

from conftest import FakeTransport, image_response, payload, solid, text_response

RED = (220, 30, 30)


def three_segments():
    return plan_segments([payload(solid((40, 20), (i * 10, 0, 0))) for i in range(3)])


def images_in(parts):
    return [p for p in parts if isinstance(p, ContentPart) and p.is_image]


def test_plan_segments_assigns_roles() -> None:
    jobs = plan_segments([payload(solid()) for _ in range(4)])
    assert [j.role for j in jobs] == [SegmentRole.FIRST, SegmentRole.MIDDLE, SegmentRole.MIDDLE, SegmentRole.LAST]
    assert [j.order_index for j in jobs] == [0, 1, 2, 3]
    assert plan_segments([payload(solid())])[0].role == SegmentRole.FIRST


def test_temperatures() -> None:
    assert segment_temperature(RestyleMode.LIGHT, False) == 0.15
    assert segment_temperature(RestyleMode.HEAVY, False) == 0.35
    assert segment_temperature(RestyleMode.HEAVY, True) == 0.1


def test_reference_is_threaded_for_non_sampling_style(make_broker) -> None:
    transport = FakeTransport(default=image_response(solid((40, 20), RED)))
    orchestrator = SegmentConsistencyOrchestrator(make_broker(transport))

    summary = orchestrator.run(three_segments(), RestyleOptions(style="professional"), ProgressStream())

    assert summary.updated_count == 3
    first, second, third = (c[1] for c in transport.calls)
    assert len(images_in(first)) == 1
    assert len(images_in(second)) == 2
    assert len(images_in(third)) == 2
    # reference first, labelled, then the target
    assert second[1].text == STYLE_REFERENCE_LABEL
    assert [o.temperature for o in summary.outcomes] == [0.15, 0.1, 0.1]
    assert [c[2].temperature for c in transport.calls] == [0.15, 0.1, 0.1]
    assert [o.used_style_reference for o in summary.outcomes] == [False, True, True]


def test_sampling_style_never_attaches_reference(make_broker) -> None:
    transport = FakeTransport(default=image_response(solid((40, 20), RED)))
    orchestrator = SegmentConsistencyOrchestrator(make_broker(transport))

    summary = orchestrator.run(three_segments(), RestyleOptions(style="sampling", mode="heavy"), ProgressStream())

    assert summary.updated_count == 3
    assert all(len(images_in(c[1])) == 1 for c in transport.calls)
    assert [c[2].temperature for c in transport.calls] == [0.35, 0.35, 0.35]


def test_failed_first_segment_means_no_reference(make_broker) -> None:
    ok = image_response(solid((40, 20), RED))
    transport = FakeTransport([text_response(), ok, ok])
    orchestrator = SegmentConsistencyOrchestrator(make_broker(transport, max_attempts=1))

    summary = orchestrator.run(three_segments(), RestyleOptions(style="luxury"), ProgressStream())

    assert [o.state for o in summary.outcomes] == ["failed", "succeeded", "succeeded"]
    assert all(len(images_in(c[1])) == 1 for c in transport.calls)


def test_failed_segment_does_not_stop_the_run(make_broker) -> None:
    ok = image_response(solid((40, 20), RED))
    down = TransportError("down", 503)
    # segment 1 fails on both endpoints for its single attempt
    transport = FakeTransport([ok, down, down, ok])
    stream = ProgressStream()
    orchestrator = SegmentConsistencyOrchestrator(make_broker(transport, max_attempts=1))

    summary = orchestrator.run(three_segments(), RestyleOptions(style="pops"), stream)

    assert summary.updated_count == 2
    assert summary.total_count == 3
    assert summary.outcomes[1].state == "failed"
    assert summary.outcomes[1].error_kind == ErrorKind.UPSTREAM_UNAVAILABLE
    assert [e.current for e in stream.events if e.step == "processing"] == [1, 2, 3]


def test_upload_failure_is_isolated(make_broker) -> None:
    transport = FakeTransport(default=image_response(solid((40, 20), RED)))
    stored = []

    def persist(job, image):
        if job.order_index == 0:
            raise UploadFailureError("bucket full")
        stored.append(job.order_index)
        return 100 + job.order_index, f"mem://{job.order_index}"

    orchestrator = SegmentConsistencyOrchestrator(make_broker(transport), persist=persist)
    summary = orchestrator.run(three_segments(), RestyleOptions(style="minimal"), ProgressStream())

    assert stored == [1, 2]
    assert summary.outcomes[0].error_kind == ErrorKind.UPLOAD_FAILURE
    # the accepted generation still serves as reference even though its upload failed
    assert summary.outcomes[1].used_style_reference
    assert summary.updated_sections()[0] == {
        "sectionId": None,
        "oldImageId": None,
        "newImageId": 101,
        "newImageUrl": "mem://1",
    }


def test_unexpected_persist_error_is_isolated(make_broker) -> None:
    transport = FakeTransport(default=image_response(solid((40, 20), RED)))
    stored = []

    def persist(job, image):
        if job.order_index == 1:
            raise KeyError(f"section {job.order_index + 1} not found")
        stored.append(job.order_index)
        return 100 + job.order_index, f"mem://{job.order_index}"

    orchestrator = SegmentConsistencyOrchestrator(make_broker(transport), persist=persist)
    summary = orchestrator.run(three_segments(), RestyleOptions(style="pops"), ProgressStream())

    assert len(transport.calls) == 3
    assert stored == [0, 2]
    assert summary.updated_count == 2
    assert summary.total_count == 3
    assert summary.outcomes[1].state == "failed"
    assert summary.outcomes[1].error_kind == ErrorKind.STREAM_ERROR


def test_results_are_resized_to_segment_size(make_broker) -> None:
    transport = FakeTransport(default=image_response(solid((80, 40), RED)))
    sizes = []

    def persist(job, image):
        sizes.append(image.size)
        return 1, "x"

    SegmentConsistencyOrchestrator(make_broker(transport), persist=persist).run(
        three_segments(), RestyleOptions(style="emotional"), ProgressStream()
    )
    assert sizes == [(40, 20)] * 3


def test_options_validation() -> None:
    opts = RestyleOptions.model_validate({"style": "pops", "colorScheme": "blue", "layoutOption": "compact"})
    assert opts.mode == RestyleMode.LIGHT
    with pytest.raises(ValidationError):
        RestyleOptions.model_validate({"style": "neon"})
    with pytest.raises(ValidationError):
        RestyleOptions.model_validate({"style": "pops", "customPrompt": "x" * 501})
    with pytest.raises(ValidationError):
        RestyleOptions.model_validate({"style": "pops", "mode": "extreme"})


def test_page_restyle_persists_and_completes(make_broker, storage, repository) -> None:
    page_id = 7
    sections = []
    for i in range(3):
        url = storage.upload("images", f"orig-{i}.png", payload(solid((40, 20), (0, i * 50, 0))).data)
        media = repository.create_media(file_path=url, width=40, height=20)
        sections.append(repository.add_section(page_id, order=i, image_id=media.id))
    ok = image_response(solid((40, 20), RED))
    down = TransportError("down", 503)
    transport = FakeTransport([ok, down, down, ok])
    stream = ProgressStream()

    summary = run_page_restyle(
        page_id,
        RestyleOptions(style="professional", customPrompt="warmer"),
        stream,
        broker=make_broker(transport, max_attempts=1),
        storage=storage,
        repository=repository,
    )

    assert summary.updated_count == 2
    steps = [e.step for e in stream.events if e.type == "progress"]
    assert steps == ["init", "tokens", "processing", "processing", "processing"]
    done = stream.events[-1]
    assert done.type == "complete"
    assert done.to_wire()["updatedCount"] == 2
    assert done.to_wire()["totalCount"] == 3
    assert [s["sectionId"] for s in done.sections] == [sections[0].id, sections[2].id]

    # failed segment keeps its image, the others point at new media
    assert repository.get_section(sections[1].id).image_id == sections[1].image_id
    updated = repository.get_section(sections[0].id)
    assert updated.image_id != sections[0].image_id
    new_media = repository.get_media(updated.image_id)
    assert new_media.source_type == "restyle-light"
    assert "restyle-" in new_media.file_path and new_media.file_path.endswith("-seg-0.png")
    history = repository.history(sections[0].id)
    assert history[0].action_type == "restyle"
    assert history[0].previous_image_id == sections[0].image_id
    assert history[0].prompt == "warmer"


def test_page_without_images_is_rejected(make_broker, storage, repository) -> None:
    repository.add_section(1, order=0)
    with pytest.raises(InvalidRequestError):
        run_page_restyle(
            1,
            RestyleOptions(style="pops"),
            ProgressStream(),
            broker=make_broker(FakeTransport()),
            storage=storage,
            repository=repository,
        )
