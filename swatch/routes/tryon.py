"""Virtual try-on routes: model photo, garment try-on and pose variations."""

from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException, Request

from swatch.models.tryon import ImageResponse, ModelPhotoRequest, PoseRequest, TryOnRequest
from swatch.services.generation_client import GenerationClient, ImageGenerationError
from swatch.services.materializer import MaterializationError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/try-on")


def _client(request: Request) -> GenerationClient:
    client = request.app.state.generation_client
    if client is None:
        raise HTTPException(
            status_code=503,
            detail="Gemini API client not available. Set GEMINI_API_KEY env var.",
        )
    return client


async def _load(request: Request, location: str) -> bytes:
    try:
        return await request.app.state.materializer.materialize(location)
    except MaterializationError as e:
        raise HTTPException(status_code=400, detail=f"Could not load image: {e}")


@router.post("/model", response_model=ImageResponse)
async def model_photo(req: ModelPhotoRequest, request: Request) -> ImageResponse:
    """Turn a user photo into a studio model photo."""
    client = _client(request)
    image = await _load(request, req.image)
    try:
        return ImageResponse(image=await client.transform_to_model(image))
    except ImageGenerationError as e:
        logger.warning(f"Model photo generation failed: {e}")
        raise HTTPException(status_code=502, detail=str(e))


@router.post("/garment", response_model=ImageResponse)
async def try_on_garment(req: TryOnRequest, request: Request) -> ImageResponse:
    """Dress the model photo in the given garment."""
    client = _client(request)
    person = await _load(request, req.person_image)
    garment = await _load(request, req.garment_image)
    try:
        return ImageResponse(image=await client.virtual_try_on(person, garment))
    except ImageGenerationError as e:
        logger.warning(f"Virtual try-on failed: {e}")
        raise HTTPException(status_code=502, detail=str(e))


@router.post("/pose", response_model=ImageResponse)
async def pose_variation(req: PoseRequest, request: Request) -> ImageResponse:
    """Regenerate a try-on image from a different perspective."""
    client = _client(request)
    image = await _load(request, req.image)
    try:
        return ImageResponse(image=await client.pose_variation(image, req.pose_instruction))
    except ImageGenerationError as e:
        logger.warning(f"Pose variation failed: {e}")
        raise HTTPException(status_code=502, detail=str(e))
