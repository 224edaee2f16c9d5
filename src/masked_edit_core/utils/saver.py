from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from PIL import Image

from ..image_utils import encode_png
from .records import HistoryRecord, MediaRecord, SectionRecord, SectionRepository
from .storage import ObjectStorage

logger = logging.getLogger(__name__)


def save_result_image(
    *,
    storage: ObjectStorage,
    repository: SectionRepository,
    bucket: str,
    filename: str,
    image: Image.Image,
    source_type: str,
    source_url: Optional[str] = None,
    user_id: Optional[str] = None,
) -> MediaRecord:
    """Upload a final image under a fresh name and register it as a media record.

    Raises UploadFailureError when the object store refuses the write.
    """
    url = storage.upload(bucket, filename, encode_png(image), "image/png")
    media = repository.create_media(
        file_path=url,
        mime="image/png",
        width=image.width,
        height=image.height,
        source_type=source_type,
        source_url=source_url,
        user_id=user_id,
    )
    logger.info("Saved %s as media %d", filename, media.id)
    return media


def replace_section_image(
    *,
    repository: SectionRepository,
    section: SectionRecord,
    media: MediaRecord,
    action_type: str,
    prompt: Optional[str] = None,
    user_id: Optional[str] = None,
    detail: Optional[Dict[str, Any]] = None,
    require_previous: bool = False,
) -> Optional[HistoryRecord]:
    """Point `section` at `media` and append the history row for the swap.

    With `require_previous`, no row is written when the section had no image.
    """
    previous = section.image_id
    repository.set_section_image(section.id, media.id)
    if require_previous and previous is None:
        return None
    return repository.append_history(
        section_id=section.id,
        previous_image_id=previous,
        new_image_id=media.id,
        action_type=action_type,
        prompt=prompt,
        user_id=user_id,
        detail=detail or {},
    )
