from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Callable, List, Optional, Sequence

from ..broker import GenerativeEditBroker
from ..genai_client import closest_aspect_ratio_label
from ..image_utils import decode_image
from ..types import BusinessInfo, EditRequest, RetryPolicy, SectionBatchSummary, SectionImageResult
from ..utils.prompt import build_section_prompt
from ..utils.records import SectionRepository
from ..utils.saver import save_result_image
from ..utils.storage import ObjectStorage, make_filename

logger = logging.getLogger(__name__)

SECTION_IMAGE_SIZE = (768, 1366)


class SectionBatchGenerator:
    """Generates one image per landing-page section.

    Sections have no dependency on each other, so they run on a thread pool.
    Section i starts `stagger_ms * i` after the batch, and a semaphore shared by
    the batch caps how many model calls are in flight at once.
    """

    def __init__(
        self,
        broker: GenerativeEditBroker,
        *,
        storage: ObjectStorage,
        repository: SectionRepository,
        bucket: str = "images",
        stagger_ms: int = 500,
        max_concurrent: int = 3,
        sleep: Callable[[float], None] = time.sleep,
        policy: Optional[RetryPolicy] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.broker = broker
        self.storage = storage
        self.repository = repository
        self.bucket = bucket
        self.stagger_ms = stagger_ms
        self.max_concurrent = max(1, max_concurrent)
        self._sleep = sleep
        self.policy = policy
        self._log = logger or logging.getLogger(__name__)

    def run(
        self,
        section_types: Sequence[str],
        info: BusinessInfo,
        user_id: Optional[str] = None,
    ) -> SectionBatchSummary:
        if not section_types:
            return SectionBatchSummary()
        slots = threading.BoundedSemaphore(self.max_concurrent)
        results: List[Optional[SectionImageResult]] = [None] * len(section_types)

        with ThreadPoolExecutor(max_workers=len(section_types)) as pool:
            futures = {
                pool.submit(self._generate_one, i, section_type, info, slots, user_id): i
                for i, section_type in enumerate(section_types)
            }
            for future in as_completed(futures):
                i = futures[future]
                try:
                    results[i] = future.result()
                except Exception as e:
                    # all-settled: one section never sinks the batch
                    self._log.error("Section %d (%s) failed: %s", i, section_types[i], e)
                    results[i] = SectionImageResult(index=i, section_type=section_types[i], error=str(e))

        summary = SectionBatchSummary(results=[r for r in results if r is not None])
        self._log.info(
            "Section images: %d generated, %d failed", summary.success_count, summary.failure_count
        )
        return summary

    def _generate_one(
        self,
        index: int,
        section_type: str,
        info: BusinessInfo,
        slots: threading.BoundedSemaphore,
        user_id: Optional[str],
    ) -> SectionImageResult:
        prompt = build_section_prompt(section_type, info)
        if prompt is None:
            self._log.warning("Unknown section type: %s", section_type)
            return SectionImageResult(index=index, section_type=section_type, error="unknown section type")

        if self.stagger_ms and index:
            self._sleep(self.stagger_ms * index / 1000.0)

        request = EditRequest(
            instruction=prompt,
            aspect_ratio=closest_aspect_ratio_label(*SECTION_IMAGE_SIZE),
        )
        with slots:
            self._log.info("Generating %s image", section_type)
            edit = self.broker.submit(request, self.policy)
        if not edit.ok:
            return SectionImageResult(index=index, section_type=section_type, error=edit.message)

        image = decode_image(edit.image)
        media = save_result_image(
            storage=self.storage,
            repository=self.repository,
            bucket=self.bucket,
            filename=make_filename("lp", ident=section_type, random_suffix=True),
            image=image,
            source_type="lp-builder",
            user_id=user_id,
        )
        return SectionImageResult(
            index=index,
            section_type=section_type,
            image_id=media.id,
            image_url=media.file_path,
        )


def generate_section_images(
    section_types: Sequence[str],
    info: BusinessInfo,
    *,
    broker: GenerativeEditBroker,
    storage: ObjectStorage,
    repository: SectionRepository,
    **kwargs,
) -> SectionBatchSummary:
    user_id = kwargs.pop("user_id", None)
    generator = SectionBatchGenerator(broker, storage=storage, repository=repository, **kwargs)
    return generator.run(section_types, info, user_id=user_id)
