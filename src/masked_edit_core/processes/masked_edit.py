from __future__ import annotations

import logging
import time
from typing import Optional, Sequence

from ..broker import GenerativeEditBroker
from ..compositor import apply_region_safeguard, match_source
from ..errors import InvalidRequestError
from ..image_utils import create_overlay_image, decode_image, to_payload
from ..types import DesignDefinition, EditRequest, ImagePayload, MaskedEditResult, MaskRegion, RetryPolicy
from ..utils.prompt import build_masked_edit_prompt
from ..utils.records import SectionRepository
from ..utils.saver import save_result_image
from ..utils.storage import ObjectStorage, make_filename

logger = logging.getLogger(__name__)

INPAINT_TEMPERATURE = 1.0
INPAINT_IMAGE_SIZE = "2K"


def run_masked_edit(
    source: ImagePayload,
    regions: Sequence[MaskRegion],
    instruction: str,
    *,
    broker: GenerativeEditBroker,
    design_style: Optional[DesignDefinition] = None,
    reference_image: Optional[ImagePayload] = None,
    storage: Optional[ObjectStorage] = None,
    repository: Optional[SectionRepository] = None,
    bucket: str = "images",
    original_ref: Optional[str] = None,
    user_id: Optional[str] = None,
    policy: Optional[RetryPolicy] = None,
) -> MaskedEditResult:
    """Edit only the highlighted rectangles of `source`.

    The model sees the source with the regions painted in; whatever it returns is
    cut back to those regions, so every pixel outside them is the source pixel.
    When storage and a repository are given the result is uploaded and an
    `inpaint` history row is appended.
    """
    if not instruction or not instruction.strip():
        raise InvalidRequestError("An edit instruction is required")
    if not regions:
        raise InvalidRequestError("At least one mask region is required")

    src = decode_image(source.data)
    overlay = create_overlay_image(src, regions)
    prompt = build_masked_edit_prompt(
        instruction,
        regions,
        has_reference_image=reference_image is not None,
        has_design_style=design_style is not None,
    )
    request = EditRequest(
        source=to_payload(overlay),
        instruction=prompt,
        style_reference=reference_image,
        design_style=design_style,
        temperature=INPAINT_TEMPERATURE,
        image_size=INPAINT_IMAGE_SIZE,
    )

    logger.info("Masked edit: %d region(s), %dx%d source", len(regions), src.width, src.height)
    start = time.monotonic()
    edit = broker.submit(request, policy)
    duration_ms = int((time.monotonic() - start) * 1000)

    result = MaskedEditResult(
        prompt_used=prompt,
        text_response=edit.text_response,
        model_used=edit.model_used,
        duration_ms=duration_ms,
        metadata={"process": "masked_edit", "regions": len(regions), "attempts": edit.attempts},
    )
    if not edit.ok:
        result.error_kind = edit.error_kind
        result.message = edit.message
        result.rate_limited = edit.rate_limited
        return result

    generated = match_source(src, decode_image(edit.image))
    result.pre_safeguard_image = generated
    result.image = apply_region_safeguard(src, generated, regions)

    if storage is not None and repository is not None:
        media = save_result_image(
            storage=storage,
            repository=repository,
            bucket=bucket,
            filename=make_filename("inpaint", random_suffix=True),
            image=result.image,
            source_type="inpaint",
            source_url=original_ref,
            user_id=user_id,
        )
        history = repository.append_history(
            new_image_id=media.id,
            action_type="inpaint",
            prompt=instruction,
            user_id=user_id,
            detail={
                "originalImage": original_ref,
                "masks": [r.model_dump() for r in regions],
                "model": edit.model_used,
                "durationMs": duration_ms,
            },
        )
        result.image_url = media.file_path
        result.media_id = media.id
        result.history_id = history.id
    return result
