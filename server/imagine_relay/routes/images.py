# ─────────────────────────────────────────────────────────────────────────────
# Image endpoints — /imagine, /variation, /upscale, /simpleimage, /zoomout
# ─────────────────────────────────────────────────────────────────────────────
# Thin wiring only: parse the body, hand it to ImageRelayService. Errors are
# exceptions rendered by the handlers in exceptions.py.
# A missing body is treated like an empty JSON object.
# ─────────────────────────────────────────────────────────────────────────────


from fastapi import APIRouter, Depends

from imagine_relay.dependencies import get_relay_service
from imagine_relay.schemas import (
    ErrorResponse,
    GenerationResult,
    PromptRequest,
    UpscaleRequest,
    VariationRequest,
    ZoomOutRequest,
)
from imagine_relay.services.relay import ImageRelayService

router = APIRouter()

_ERRORS = {400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}}


@router.post("/imagine", response_model=GenerationResult, responses=_ERRORS)
async def imagine(
    body: PromptRequest | None = None,
    service: ImageRelayService = Depends(get_relay_service),
) -> GenerationResult:
    """Generate a four-image grid from a prompt."""
    return await service.imagine(body or PromptRequest())


@router.post("/variation", response_model=GenerationResult, responses=_ERRORS)
async def variation(
    body: VariationRequest | None = None,
    service: ImageRelayService = Depends(get_relay_service),
) -> GenerationResult:
    return await service.variation(body or VariationRequest())


@router.post("/upscale", response_model=GenerationResult, responses=_ERRORS)
async def upscale(
    body: UpscaleRequest | None = None,
    service: ImageRelayService = Depends(get_relay_service),
) -> GenerationResult:
    return await service.upscale(body or UpscaleRequest())


@router.post("/simpleimage", response_model=GenerationResult, responses=_ERRORS)
async def simple_image(
    body: PromptRequest | None = None,
    service: ImageRelayService = Depends(get_relay_service),
) -> GenerationResult:
    """Imagine a grid and return the upscale of its first image."""
    return await service.simple_image(body or PromptRequest())


@router.post("/zoomout", response_model=GenerationResult, responses=_ERRORS)
async def zoom_out(
    body: ZoomOutRequest | None = None,
    service: ImageRelayService = Depends(get_relay_service),
) -> GenerationResult:
    return await service.zoom_out(body or ZoomOutRequest())
