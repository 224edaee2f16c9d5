"""Request bodies of the HTTP endpoints.

Images arrive either as base64 (with or without a `data:image/...;base64,` header)
or as a URL that is fetched server side.
"""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .types import BusinessInfo, DesignDefinition, MaskRegion


class _Body(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class InpaintRequest(_Body):
    image_base64: Optional[str] = Field(default=None, alias="imageBase64")
    image_url: Optional[str] = Field(default=None, alias="imageUrl")
    masks: List[MaskRegion] = []
    mask: Optional[MaskRegion] = None  # single-mask form
    prompt: str = ""
    reference_image_base64: Optional[str] = Field(default=None, alias="referenceImageBase64")
    reference_image_url: Optional[str] = Field(default=None, alias="referenceImageUrl")
    design_definition: Optional[DesignDefinition] = Field(default=None, alias="designDefinition")

    def regions(self) -> List[MaskRegion]:
        if self.masks:
            return list(self.masks)
        return [self.mask] if self.mask is not None else []


class DesignUnifyRequest(_Body):
    section_id: int = Field(alias="sectionId")
    reference_image_base64: Optional[str] = Field(default=None, alias="referenceImageBase64")
    reference_image_url: Optional[str] = Field(default=None, alias="referenceImageUrl")
    masks: List[MaskRegion] = []
    prompt: Optional[str] = None


class SectionBatchRequest(_Body):
    sections: List[str]
    business_info: BusinessInfo = Field(alias="businessInfo")
