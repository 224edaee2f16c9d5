from .broker import GenerativeEditBroker, with_retry
from .compositor import apply_region_safeguard, apply_whole_frame
from .errors import ErrorKind, PipelineError
from .image_utils import create_mask_image, create_overlay_image
from .progress import ProgressStream
from .region_math import to_pixel_rect
from .repair import has_red_border, remove_red_border
from .types import EditRequest, EditResult, MaskRegion, RetryPolicy, SegmentJob
from .processes import (
    run_masked_edit,
    run_design_unify,
    run_page_restyle,
    SegmentConsistencyOrchestrator,
    SectionBatchGenerator,
)

__all__ = [
    "GenerativeEditBroker",
    "with_retry",
    "apply_region_safeguard",
    "apply_whole_frame",
    "ErrorKind",
    "PipelineError",
    "create_mask_image",
    "create_overlay_image",
    "ProgressStream",
    "to_pixel_rect",
    "has_red_border",
    "remove_red_border",
    "EditRequest",
    "EditResult",
    "MaskRegion",
    "RetryPolicy",
    "SegmentJob",
    "run_masked_edit",
    "run_design_unify",
    "run_page_restyle",
    "SegmentConsistencyOrchestrator",
    "SectionBatchGenerator",
]
