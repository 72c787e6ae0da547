# ─────────────────────────────────────────────────────────────────────────────
# Health Check Routes — liveness and readiness
# ─────────────────────────────────────────────────────────────────────────────
#   /health        → Liveness probe. Returns 200 while the process is up.
#   /health/ready  → Readiness probe. 503 until the image client has
#                    finished init() (it runs in the background at startup).
# ─────────────────────────────────────────────────────────────────────────────

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from imagine_relay.clients.base import ImageClient
from imagine_relay.dependencies import get_image_client
from imagine_relay.schemas import LivenessResponse, ReadinessResponse

router = APIRouter()


@router.get("/health", response_model=LivenessResponse)
async def liveness() -> LivenessResponse:
    return LivenessResponse(status="ok")


@router.get("/health/ready", response_model=ReadinessResponse)
async def readiness(
    client: ImageClient = Depends(get_image_client),
) -> JSONResponse:
    """Report whether the image client can accept jobs."""
    ready = client.is_ready
    response = ReadinessResponse(
        status="ready" if ready else "not_ready",
        client_ready=ready,
    )
    return JSONResponse(
        status_code=200 if ready else 503,
        content=response.model_dump(),
    )
