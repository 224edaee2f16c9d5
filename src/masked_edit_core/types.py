from __future__ import annotations

from enum import StrEnum
from typing import Any, Dict, List, Literal, NamedTuple, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

from .errors import ErrorKind


class SegmentRole(StrEnum):
    FIRST = "first"    # header / hero framing
    MIDDLE = "middle"  # generic content framing
    LAST = "last"      # footer framing


class RestyleStyle(StrEnum):
    SAMPLING = "sampling"  # identity style: keep the original design
    PROFESSIONAL = "professional"
    POPS = "pops"
    LUXURY = "luxury"
    MINIMAL = "minimal"
    EMOTIONAL = "emotional"


class ColorScheme(StrEnum):
    ORIGINAL = "original"
    BLUE = "blue"
    GREEN = "green"
    PURPLE = "purple"
    ORANGE = "orange"
    MONOCHROME = "monochrome"


class LayoutOption(StrEnum):
    KEEP = "keep"
    MODERNIZE = "modernize"
    COMPACT = "compact"


class RestyleMode(StrEnum):
    LIGHT = "light"  # conservative: layout preserved
    HEAVY = "heavy"  # aggressive: layout may be re-composed


class MaskRegion(BaseModel):
    """Rectangle in fractions of the target image size."""

    model_config = ConfigDict(frozen=True)

    x: float = Field(ge=0.0, le=1.0)
    y: float = Field(ge=0.0, le=1.0)
    width: float = Field(ge=0.0, le=1.0)
    height: float = Field(ge=0.0, le=1.0)


class PixelRect(NamedTuple):
    left: int
    top: int
    width: int
    height: int

    @property
    def right(self) -> int:
        return self.left + self.width

    @property
    def bottom(self) -> int:
        return self.top + self.height

    @property
    def box(self) -> Tuple[int, int, int, int]:
        # PIL crop box: right/bottom exclusive
        return (self.left, self.top, self.right, self.bottom)

    def contains(self, x: int, y: int) -> bool:
        return self.left <= x < self.right and self.top <= y < self.bottom


class ImagePayload(BaseModel):
    data: bytes
    mime_type: str = "image/png"


class ColorPalette(BaseModel):
    primary: str
    secondary: str
    accent: str
    background: str


class TypographySpec(BaseModel):
    style: str
    mood: str


class LayoutSpec(BaseModel):
    density: str
    style: str


class DesignDefinition(BaseModel):
    """Style analysed from a reference design; only interpolated into prompts."""

    model_config = ConfigDict(populate_by_name=True)

    color_palette: ColorPalette = Field(alias="colorPalette")
    typography: TypographySpec
    layout: LayoutSpec
    vibe: str
    description: str


class EditRequest(BaseModel):
    source: Optional[ImagePayload] = None  # None only for text-to-image generation
    instruction: str
    style_reference: Optional[ImagePayload] = None
    reference_first: bool = False
    reference_label: Optional[str] = None
    design_style: Optional[DesignDefinition] = None
    temperature: Optional[float] = None
    image_size: Optional[str] = None
    aspect_ratio: Optional[str] = None


class EditResult(BaseModel):
    image: Optional[bytes] = None
    error_kind: Optional[ErrorKind] = None
    message: Optional[str] = None
    text_response: Optional[str] = None
    model_used: Optional[str] = None
    attempts: int = 0
    rate_limited: bool = False

    @property
    def ok(self) -> bool:
        return self.image is not None


class RetryPolicy(BaseModel):
    max_attempts: int = Field(default=3, ge=1)
    backoff_base_ms: int = Field(default=4000, ge=0)

    def backoff_seconds(self, attempt: int) -> float:
        """Wait after the failed 0-based `attempt`: base * 2^attempt."""
        return self.backoff_base_ms * (2 ** attempt) / 1000.0


class SegmentJob(BaseModel):
    order_index: int
    source: ImagePayload
    role: SegmentRole
    section_id: Optional[int] = None
    image_id: Optional[int] = None


class ProgressEvent(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    type: Literal["progress", "complete", "error"]
    step: Optional[str] = None
    message: Optional[str] = None
    current: Optional[int] = None
    total: Optional[int] = None
    success: Optional[bool] = None
    updated_count: Optional[int] = Field(default=None, alias="updatedCount")
    total_count: Optional[int] = Field(default=None, alias="totalCount")
    sections: Optional[List[Dict[str, Any]]] = None

    @property
    def terminal(self) -> bool:
        return self.type != "progress"

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class MaskedEditResult(BaseModel):
    image: Any = None  # PIL.Image.Image, composited
    pre_safeguard_image: Any | None = None  # model output resized to the source
    image_url: Optional[str] = None
    media_id: Optional[int] = None
    history_id: Optional[int] = None
    prompt_used: Optional[str] = None
    text_response: Optional[str] = None
    model_used: Optional[str] = None
    duration_ms: Optional[int] = None
    error_kind: Optional[ErrorKind] = None
    message: Optional[str] = None
    rate_limited: bool = False
    metadata: Dict[str, Any] = {}

    @property
    def ok(self) -> bool:
        return self.image is not None


class SegmentOutcome(BaseModel):
    order_index: int
    state: Literal["pending", "generating", "succeeded", "failed"] = "pending"
    section_id: Optional[int] = None
    old_image_id: Optional[int] = None
    new_image_id: Optional[int] = None
    new_image_url: Optional[str] = None
    error_kind: Optional[ErrorKind] = None
    used_style_reference: bool = False
    temperature: Optional[float] = None


class RestyleSummary(BaseModel):
    outcomes: List[SegmentOutcome] = []

    @property
    def total_count(self) -> int:
        return len(self.outcomes)

    @property
    def updated_count(self) -> int:
        return sum(1 for o in self.outcomes if o.state == "succeeded")

    def updated_sections(self) -> List[Dict[str, Any]]:
        return [
            {
                "sectionId": o.section_id,
                "oldImageId": o.old_image_id,
                "newImageId": o.new_image_id,
                "newImageUrl": o.new_image_url,
            }
            for o in self.outcomes
            if o.state == "succeeded"
        ]


class BusinessInfo(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    business_name: str = Field(alias="businessName")
    industry: str
    service: str
    target: str
    strengths: str = ""
    tone: str = "professional"


class SectionImageResult(BaseModel):
    index: int
    section_type: str
    image_id: Optional[int] = None
    image_url: Optional[str] = None
    error: Optional[str] = None


class SectionBatchSummary(BaseModel):
    results: List[SectionImageResult] = []

    @property
    def success_count(self) -> int:
        return sum(1 for r in self.results if r.image_id is not None)

    @property
    def failure_count(self) -> int:
        return len(self.results) - self.success_count
