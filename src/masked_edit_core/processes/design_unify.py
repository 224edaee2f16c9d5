from __future__ import annotations

import logging
from typing import Callable, Optional, Sequence, Tuple

from ..broker import GenerativeEditBroker
from ..compositor import apply_region_safeguard, match_source
from ..errors import InvalidRequestError
from ..image_utils import create_overlay_image, decode_image, read_image_bytes, to_payload
from ..types import EditRequest, ImagePayload, MaskedEditResult, MaskRegion, RetryPolicy
from ..utils.prompt import UNIFY_REFERENCE_LABEL, build_unify_prompt
from ..utils.records import SectionRepository
from ..utils.saver import replace_section_image, save_result_image
from ..utils.storage import ObjectStorage, make_filename

logger = logging.getLogger(__name__)

UNIFY_TEMPERATURE = 0.4


def run_design_unify(
    section_id: int,
    reference: ImagePayload,
    regions: Sequence[MaskRegion],
    *,
    broker: GenerativeEditBroker,
    storage: ObjectStorage,
    repository: SectionRepository,
    extra_prompt: Optional[str] = None,
    bucket: str = "images",
    user_id: Optional[str] = None,
    fetch: Callable[[str], Tuple[bytes, str]] = read_image_bytes,
    policy: Optional[RetryPolicy] = None,
) -> MaskedEditResult:
    """Repaint the masked areas of a section so they follow a reference design."""
    if not regions:
        raise InvalidRequestError("At least one mask region is required")
    section = repository.get_section(section_id)
    if section is None:
        raise InvalidRequestError(f"Section {section_id} not found")
    media = repository.get_media(section.image_id) if section.image_id is not None else None
    if media is None:
        raise InvalidRequestError(f"Section {section_id} has no image")

    data, _ = fetch(media.file_path)
    target = decode_image(data)
    overlay = create_overlay_image(target, regions)
    prompt = build_unify_prompt(extra_prompt)
    request = EditRequest(
        source=to_payload(overlay),
        instruction=prompt,
        style_reference=reference,
        reference_first=True,
        reference_label=UNIFY_REFERENCE_LABEL,
        temperature=UNIFY_TEMPERATURE,
    )

    logger.info("Design unify: section %d, %d region(s)", section_id, len(regions))
    edit = broker.submit(request, policy)
    result = MaskedEditResult(
        prompt_used=prompt,
        text_response=edit.text_response,
        model_used=edit.model_used,
        metadata={"process": "design_unify", "section_id": section_id},
    )
    if not edit.ok:
        result.error_kind = edit.error_kind
        result.message = edit.message
        result.rate_limited = edit.rate_limited
        return result

    generated = match_source(target, decode_image(edit.image))
    result.pre_safeguard_image = generated
    result.image = apply_region_safeguard(target, generated, regions)

    new_media = save_result_image(
        storage=storage,
        repository=repository,
        bucket=bucket,
        filename=make_filename("design-unify", ident=section_id),
        image=result.image,
        source_type="design-unified",
        source_url=media.file_path,
        user_id=user_id,
    )
    history = replace_section_image(
        repository=repository,
        section=section,
        media=new_media,
        action_type="design-unify",
        prompt=extra_prompt or "Design unification",
        user_id=user_id,
        require_previous=True,
    )
    result.image_url = new_media.file_path
    result.media_id = new_media.id
    result.history_id = history.id if history else None
    return result
