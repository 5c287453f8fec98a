"""Color variation routes for the open garment detail view."""

from __future__ import annotations

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request, Response

from swatch.models.garment import Garment
from swatch.models.variation import ApplyResponse, SelectVariationRequest, VariationState
from swatch.services.materializer import to_data_url
from swatch.services.variation_controller import VariationController

router = APIRouter()


def get_controller(request: Request) -> VariationController:
    return request.app.state.controller


@router.post("/garment/open", response_model=VariationState)
async def open_garment(req: Garment, controller: VariationController = Depends(get_controller)) -> VariationState:
    """Open a garment and load its original image as the first variant."""
    if not await controller.initialize(req):
        raise HTTPException(status_code=400, detail=controller.error or "Could not open garment.")
    return controller.snapshot()


@router.post("/garment/close", response_model=VariationState)
async def close_garment(controller: VariationController = Depends(get_controller)) -> VariationState:
    controller.close()
    return controller.snapshot()


@router.get("/variations", response_model=VariationState)
async def get_variations(
    host_loading: bool = False,
    controller: VariationController = Depends(get_controller),
) -> VariationState:
    """Current variation state, for polling while a batch runs."""
    return controller.snapshot(host_loading=host_loading)


@router.post("/variations/generate", response_model=VariationState, status_code=202)
async def generate_variations(
    request: Request,
    background_tasks: BackgroundTasks,
    controller: VariationController = Depends(get_controller),
) -> VariationState:
    """Start a color variation batch; progress is reported through polling."""
    if request.app.state.generation_client is None:
        raise HTTPException(
            status_code=503,
            detail="Gemini API client not available. Set GEMINI_API_KEY env var.",
        )
    batch = controller.begin_batch()
    if batch is None:
        raise HTTPException(
            status_code=409,
            detail="Cannot generate variations: no original image loaded or a batch is already running.",
        )
    background_tasks.add_task(controller.run_batch, batch)
    return controller.snapshot()


@router.post("/variations/select", response_model=VariationState)
async def select_variation(
    req: SelectVariationRequest,
    controller: VariationController = Depends(get_controller),
) -> VariationState:
    try:
        controller.select_variation(req.index)
    except IndexError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return controller.snapshot()


@router.post("/variations/apply", response_model=ApplyResponse)
async def apply_variation(controller: VariationController = Depends(get_controller)) -> ApplyResponse:
    """Apply the selected variation to the try-on model."""
    result = controller.apply()
    if result is None:
        raise HTTPException(status_code=409, detail="The selected variation is not ready to apply.")
    content, garment = result
    return ApplyResponse(garment=garment, image=to_data_url(content))


@router.get("/variations/{index}/image")
async def variation_image(index: int, controller: VariationController = Depends(get_controller)) -> Response:
    """Raw PNG bytes of a materialized variant."""
    if not 0 <= index < len(controller.variants) or not controller.variants[index].content:
        raise HTTPException(status_code=404, detail=f"No image for variation {index}")
    return Response(content=controller.variants[index].content, media_type="image/png")
