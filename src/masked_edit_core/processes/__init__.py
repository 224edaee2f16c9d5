from .masked_edit import run_masked_edit
from .design_unify import run_design_unify
from .restyle import RestyleOptions, SegmentConsistencyOrchestrator, plan_segments, run_page_restyle
from .section_batch import SectionBatchGenerator, generate_section_images

__all__ = [
    "run_masked_edit",
    "run_design_unify",
    "RestyleOptions",
    "SegmentConsistencyOrchestrator",
    "plan_segments",
    "run_page_restyle",
    "SectionBatchGenerator",
    "generate_section_images",
]
