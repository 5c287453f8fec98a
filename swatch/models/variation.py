"""Color variation data models."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel

from swatch.models.garment import AppliedGarment, Garment

ORIGINAL_KEY = "original"


class VariantStatus(str, Enum):
    ORIGINAL = "original"
    GENERATING = "generating"
    DONE = "done"
    ERROR = "error"


class Variant(BaseModel):
    color_key: str
    preview_url: str = ""
    content: bytes | None = None
    status: VariantStatus
    batch_id: int | None = None
    error: str | None = None

    @property
    def applicable(self) -> bool:
        return self.status in (VariantStatus.ORIGINAL, VariantStatus.DONE) and bool(self.content)


class VariantView(BaseModel):
    """A variant as exposed to polling clients, without the raw image bytes."""

    index: int
    color_key: str
    preview_url: str
    status: VariantStatus
    has_content: bool
    error: str | None = None


class VariationState(BaseModel):
    garment: Garment | None = None
    variants: list[VariantView] = []
    selected_index: int = 0
    is_generating: bool = False
    error: str | None = None
    can_generate: bool = False
    can_apply: bool = False
    revision: int = 0


class SelectVariationRequest(BaseModel):
    index: int


class ApplyResponse(BaseModel):
    garment: AppliedGarment
    image: str  # PNG data URL
