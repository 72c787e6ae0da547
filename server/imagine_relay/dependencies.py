# ─────────────────────────────────────────────────────────────────────────────
# Dependency Injection — FastAPI Depends() providers
# ─────────────────────────────────────────────────────────────────────────────
# State flows: lifespan creates → app.state stores → Depends() injects.
# No global variables. Every dependency is explicit in endpoint signatures.
# ─────────────────────────────────────────────────────────────────────────────


from fastapi import Request

from imagine_relay.clients.base import ImageClient
from imagine_relay.services.relay import ImageRelayService


def get_image_client(request: Request) -> ImageClient:
    """Inject the shared ImageClient into endpoints via Depends()."""
    return request.app.state.image_client


def get_relay_service(request: Request) -> ImageRelayService:
    """Inject ImageRelayService into endpoints via Depends()."""
    return request.app.state.relay_service
