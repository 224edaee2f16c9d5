from __future__ import annotations

import logging
from typing import Callable, List, Optional, Tuple

from pydantic import BaseModel

from ..errors import PipelineError
from ..image_utils import decode_image, encode_png, read_image_bytes
from ..repair import has_red_border, remove_red_border
from ..utils.records import MediaRecord, SectionRepository
from ..utils.storage import ObjectStorage, make_filename

logger = logging.getLogger(__name__)

Fetch = Callable[[str], Tuple[bytes, str]]


class BorderFixOutcome(BaseModel):
    source: str
    fixed: bool = False
    new_url: Optional[str] = None
    media_id: Optional[int] = None
    error: Optional[str] = None


class BorderFixSummary(BaseModel):
    outcomes: List[BorderFixOutcome] = []

    @property
    def fixed(self) -> int:
        return sum(1 for o in self.outcomes if o.fixed)

    @property
    def skipped(self) -> int:
        return sum(1 for o in self.outcomes if not o.fixed and o.error is None)

    @property
    def errors(self) -> int:
        return sum(1 for o in self.outcomes if o.error is not None)


def is_background_unified(media: MediaRecord) -> bool:
    return "bg-unify-" in media.file_path or media.source_type == "background-unified"


def fix_image(
    ref: str,
    *,
    storage: ObjectStorage,
    bucket: str = "images",
    media_id: Optional[int] = None,
    repository: Optional[SectionRepository] = None,
    fetch: Fetch = read_image_bytes,
) -> BorderFixOutcome:
    """Heal a red border on the image behind `ref` and upload the result under a new name.

    With a media id the media record is pointed at the repaired file.
    """
    data, _ = fetch(ref)
    img = decode_image(data)
    if not has_red_border(img):
        logger.info("No red border in %s", ref)
        return BorderFixOutcome(source=ref, media_id=media_id)

    logger.info("Red border found in %s, repairing", ref)
    fixed = remove_red_border(img)
    filename = make_filename("fixed", ident=media_id)
    url = storage.upload(bucket, filename, encode_png(fixed), "image/png")
    if media_id is not None and repository is not None:
        repository.update_media_path(media_id, url)
        logger.info("Media %d now points at %s", media_id, url)
    return BorderFixOutcome(source=ref, fixed=True, new_url=url, media_id=media_id)


def fix_section(
    section_id: int,
    *,
    storage: ObjectStorage,
    repository: SectionRepository,
    bucket: str = "images",
    fetch: Fetch = read_image_bytes,
) -> BorderFixOutcome:
    section = repository.get_section(section_id)
    media = repository.get_media(section.image_id) if section and section.image_id is not None else None
    if media is None:
        return BorderFixOutcome(source=f"section:{section_id}", error=f"Section {section_id} has no image")
    return fix_image(
        media.file_path,
        storage=storage,
        bucket=bucket,
        media_id=media.id,
        repository=repository,
        fetch=fetch,
    )


def fix_all_background_unified(
    *,
    storage: ObjectStorage,
    repository: SectionRepository,
    bucket: str = "images",
    fetch: Fetch = read_image_bytes,
) -> BorderFixSummary:
    """Scan every background-unified media record, newest first."""
    summary = BorderFixSummary()
    images = repository.list_media(is_background_unified)
    logger.info("Found %d background-unified images", len(images))
    for media in images:
        try:
            outcome = fix_image(
                media.file_path,
                storage=storage,
                bucket=bucket,
                media_id=media.id,
                repository=repository,
                fetch=fetch,
            )
        except (PipelineError, OSError) as e:
            logger.error("Error processing image %d: %s", media.id, e)
            outcome = BorderFixOutcome(source=media.file_path, media_id=media.id, error=str(e))
        summary.outcomes.append(outcome)
    return summary
