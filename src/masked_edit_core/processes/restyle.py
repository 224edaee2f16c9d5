from __future__ import annotations

import logging
from typing import Callable, List, Optional, Sequence, Tuple

from PIL import Image
from pydantic import BaseModel, ConfigDict, Field

from ..broker import GenerativeEditBroker
from ..compositor import apply_whole_frame
from ..design_tokens import generate_design_tokens, tokens_to_prompt_description
from ..errors import ErrorKind, InvalidRequestError, PipelineError
from ..image_utils import decode_image, read_image_bytes
from ..progress import ProgressStream
from ..types import (
    ColorScheme,
    EditRequest,
    ImagePayload,
    LayoutOption,
    RestyleMode,
    RestyleStyle,
    RestyleSummary,
    RetryPolicy,
    SegmentJob,
    SegmentOutcome,
    SegmentRole,
)
from ..utils.prompt import (
    STYLE_DESCRIPTIONS,
    STYLE_REFERENCE_LABEL,
    TARGET_LABEL,
    build_restyle_prompt,
)
from ..utils.records import SectionRepository
from ..utils.saver import replace_section_image, save_result_image
from ..utils.storage import ObjectStorage, make_filename

logger = logging.getLogger(__name__)

LIGHT_TEMPERATURE = 0.15
HEAVY_TEMPERATURE = 0.35
REFERENCE_TEMPERATURE = 0.1

# (job, final image) -> (new media id, public url)
SegmentSink = Callable[[SegmentJob, Image.Image], Tuple[int, str]]


class RestyleOptions(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    style: RestyleStyle
    color_scheme: Optional[ColorScheme] = Field(default=None, alias="colorScheme")
    layout_option: Optional[LayoutOption] = Field(default=None, alias="layoutOption")
    custom_prompt: Optional[str] = Field(default=None, alias="customPrompt", max_length=500)
    mode: RestyleMode = RestyleMode.LIGHT


def segment_temperature(mode: RestyleMode, has_reference: bool) -> float:
    if has_reference:
        return REFERENCE_TEMPERATURE
    return HEAVY_TEMPERATURE if mode == RestyleMode.HEAVY else LIGHT_TEMPERATURE


def segment_role(index: int, total: int) -> SegmentRole:
    if index == 0:
        return SegmentRole.FIRST
    if index == total - 1:
        return SegmentRole.LAST
    return SegmentRole.MIDDLE


def plan_segments(
    sources: Sequence[ImagePayload],
    section_ids: Optional[Sequence[Optional[int]]] = None,
    image_ids: Optional[Sequence[Optional[int]]] = None,
) -> List[SegmentJob]:
    """One job per source, in order; a single segment is framed as `first`."""
    total = len(sources)
    return [
        SegmentJob(
            order_index=i,
            source=src,
            role=segment_role(i, total),
            section_id=section_ids[i] if section_ids else None,
            image_id=image_ids[i] if image_ids else None,
        )
        for i, src in enumerate(sources)
    ]


class SegmentConsistencyOrchestrator:
    """Restyles segments one after another, carrying the first segment's result
    forward as a style reference for the rest.

    A failed segment keeps its previous image; the run always goes on to the next.
    """

    def __init__(
        self,
        broker: GenerativeEditBroker,
        *,
        persist: Optional[SegmentSink] = None,
        policy: Optional[RetryPolicy] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.broker = broker
        self.persist = persist
        self.policy = policy
        self._log = logger or logging.getLogger(__name__)

    def run(
        self,
        jobs: Sequence[SegmentJob],
        options: RestyleOptions,
        stream: ProgressStream,
    ) -> RestyleSummary:
        jobs = sorted(jobs, key=lambda j: j.order_index)
        total = len(jobs)
        sampling = options.style == RestyleStyle.SAMPLING

        stream.progress("Generating design tokens...", step="tokens")
        tokens = generate_design_tokens(options.style, options.color_scheme, options.layout_option)
        tokens_description = tokens_to_prompt_description(tokens)
        style_description = STYLE_DESCRIPTIONS.get(
            options.style, STYLE_DESCRIPTIONS[RestyleStyle.PROFESSIONAL]
        )

        summary = RestyleSummary(
            outcomes=[
                SegmentOutcome(order_index=j.order_index, section_id=j.section_id, old_image_id=j.image_id)
                for j in jobs
            ]
        )
        reference: Optional[ImagePayload] = None

        for i, (job, outcome) in enumerate(zip(jobs, summary.outcomes)):
            use_reference = not sampling and job.order_index > 0 and reference is not None
            message = f"Processing section {i + 1}/{total}..."
            if use_reference:
                message += " (matching the first section's style)"
            stream.progress(message, step="processing", current=i + 1, total=total)

            outcome.state = "generating"
            outcome.used_style_reference = use_reference
            outcome.temperature = segment_temperature(options.mode, use_reference)
            prompt = build_restyle_prompt(
                mode=options.mode,
                role=job.role,
                index=i,
                total=total,
                style_description=style_description,
                tokens_description=tokens_description,
                custom_prompt=options.custom_prompt,
                has_style_reference=use_reference,
            )
            request = EditRequest(
                source=job.source,
                instruction=f"{TARGET_LABEL}\n\n{prompt}" if use_reference else prompt,
                style_reference=reference if use_reference else None,
                reference_first=True,
                reference_label=STYLE_REFERENCE_LABEL,
                temperature=outcome.temperature,
            )

            try:
                result = self.broker.submit(request, self.policy)
                if not result.ok:
                    outcome.state = "failed"
                    outcome.error_kind = result.error_kind
                    self._log.error(
                        "Section %d/%d: no image after %d attempts (%s)",
                        i + 1, total, result.attempts, result.error_kind,
                    )
                    continue

                if job.order_index == 0 and not sampling:
                    reference = ImagePayload(data=result.image, mime_type="image/png")
                    self._log.info("Section 1 accepted as style reference")

                final = apply_whole_frame(decode_image(job.source.data), decode_image(result.image), self._log)
                if self.persist is not None:
                    outcome.new_image_id, outcome.new_image_url = self.persist(job, final)
                outcome.state = "succeeded"
                self._log.info("Section %d/%d restyled with %s", i + 1, total, result.model_used)
            except PipelineError as e:
                outcome.state = "failed"
                outcome.error_kind = e.kind
                self._log.error("Section %d/%d failed: %s", i + 1, total, e)
            except Exception as e:
                outcome.state = "failed"
                outcome.error_kind = ErrorKind.UPLOAD_FAILURE if isinstance(e, OSError) else ErrorKind.STREAM_ERROR
                self._log.exception("Section %d/%d failed: %s", i + 1, total, e)

        self._log.info("Restyle finished: %d/%d updated", summary.updated_count, summary.total_count)
        return summary


def run_page_restyle(
    page_id: int,
    options: RestyleOptions,
    stream: ProgressStream,
    *,
    broker: GenerativeEditBroker,
    storage: ObjectStorage,
    repository: SectionRepository,
    bucket: str = "images",
    user_id: Optional[str] = None,
    fetch: Callable[[str], Tuple[bytes, str]] = read_image_bytes,
    policy: Optional[RetryPolicy] = None,
) -> RestyleSummary:
    """Restyle every section image of a page, streaming progress and persisting results."""
    stream.progress("Starting restyle...", step="init")

    sections = []
    sources: List[ImagePayload] = []
    for section in repository.list_page_sections(page_id):
        media = repository.get_media(section.image_id) if section.image_id is not None else None
        if media is None:
            continue
        data, mime_type = fetch(media.file_path)
        sections.append((section, media))
        sources.append(ImagePayload(data=data, mime_type=mime_type))
    if not sections:
        raise InvalidRequestError("No sections with images found")

    jobs = plan_segments(
        sources,
        section_ids=[s.id for s, _ in sections],
        image_ids=[s.image_id for s, _ in sections],
    )
    by_index = {job.order_index: pair for job, pair in zip(jobs, sections)}

    def persist(job: SegmentJob, image: Image.Image) -> Tuple[int, str]:
        section, old_media = by_index[job.order_index]
        media = save_result_image(
            storage=storage,
            repository=repository,
            bucket=bucket,
            filename=make_filename("restyle", index=job.order_index),
            image=image,
            source_type=f"restyle-{options.mode}",
            source_url=old_media.file_path,
            user_id=user_id,
        )
        replace_section_image(
            repository=repository,
            section=section,
            media=media,
            action_type="restyle",
            prompt=options.custom_prompt or f"Style: {options.style}",
            user_id=user_id,
        )
        return media.id, media.file_path

    orchestrator = SegmentConsistencyOrchestrator(broker, persist=persist, policy=policy)
    summary = orchestrator.run(jobs, options, stream)
    stream.complete(
        updated_count=summary.updated_count,
        total_count=summary.total_count,
        sections=summary.updated_sections(),
    )
    return summary
