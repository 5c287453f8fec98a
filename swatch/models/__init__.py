"""Pydantic data models for the sidecar API."""

from swatch.models.garment import AppliedGarment, Garment
from swatch.models.tryon import ImageResponse, ModelPhotoRequest, PoseRequest, TryOnRequest
from swatch.models.variation import (
    ORIGINAL_KEY,
    ApplyResponse,
    SelectVariationRequest,
    Variant,
    VariantStatus,
    VariantView,
    VariationState,
)

__all__ = [
    "ORIGINAL_KEY",
    "AppliedGarment",
    "ApplyResponse",
    "Garment",
    "ImageResponse",
    "ModelPhotoRequest",
    "PoseRequest",
    "SelectVariationRequest",
    "TryOnRequest",
    "Variant",
    "VariantStatus",
    "VariantView",
    "VariationState",
]
