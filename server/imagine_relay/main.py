# ─────────────────────────────────────────────────────────────────────────────
# FastAPI Application Factory + Lifespan
# ─────────────────────────────────────────────────────────────────────────────
# Entrypoint: uvicorn imagine_relay.main:create_app --factory --port 3000
#         or: python -m imagine_relay
# ─────────────────────────────────────────────────────────────────────────────

import asyncio
import os
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from imagine_relay.clients.base import ImageClient
from imagine_relay.clients.discord import DiscordImageClient
from imagine_relay.config import get_settings
from imagine_relay.exceptions import register_exception_handlers
from imagine_relay.logging_config import configure_logging
from imagine_relay.middleware import RequestContextMiddleware
from imagine_relay.routes import health, images
from imagine_relay.services.relay import ImageRelayService

logger = structlog.get_logger(__name__)


def _configure_otel(exporter_type: str) -> None:
    """Configure OpenTelemetry tracing.

    Only "console" is supported; anything else is logged and ignored.
    """
    if exporter_type != "console":
        logger.warning("unknown_otel_exporter", exporter=exporter_type)
        return

    from opentelemetry import trace
    from opentelemetry.sdk.trace import TracerProvider
    from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter

    provider = TracerProvider()
    provider.add_span_processor(BatchSpanProcessor(ConsoleSpanExporter()))
    trace.set_tracer_provider(provider)
    logger.info("otel_configured", exporter=exporter_type)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage startup and shutdown lifecycle.

    The image client is constructed here (missing credentials raise
    ConfigurationError and abort startup) and stored in app.state for
    injection via Depends(). Its init() runs in a background task so
    uvicorn binds the port immediately; /health/ready returns 503 until
    it completes. An init failure is logged and the server keeps running.
    """
    settings = get_settings()

    otel_exporter = os.environ.get("OTEL_EXPORTER", "")
    if otel_exporter:
        _configure_otel(otel_exporter)

    client = DiscordImageClient.from_settings(settings)
    app.state.image_client = client
    app.state.relay_service = ImageRelayService(client)

    init_task: asyncio.Task | None = None
    if not settings.skip_client_init:
        init_task = asyncio.create_task(_init_client(client))

    yield  # App is running, serving requests

    if init_task is not None and not init_task.done():
        init_task.cancel()
    await client.close()


async def _init_client(client: ImageClient) -> None:
    """Initialize the image client in the background."""
    try:
        logger.info("client_init_start")
        await client.init()
        logger.info("client_initialized")
    except Exception:
        logger.exception("client_init_failed")


def _parse_origins(allowed_origins: str) -> list[str]:
    """Parse comma-separated origin string into a list.

    Returns ``["*"]`` if the input is empty (development mode).
    """
    if not allowed_origins.strip():
        return ["*"]
    return [origin.strip() for origin in allowed_origins.split(",") if origin.strip()]


def create_app() -> FastAPI:
    """Application factory. Invoked by: uvicorn imagine_relay.main:create_app --factory

    Building the app has no side effects beyond logging setup; the image
    client only exists once the lifespan runs.
    """
    settings = get_settings()
    configure_logging(log_level=settings.log_level, json_output=settings.log_json)

    app = FastAPI(
        title="Imagine Relay",
        description="HTTP relay for Midjourney imagine / upscale / variation / zoom jobs",
        version="0.1.0",
        lifespan=lifespan,
    )

    # ── Middleware stack ─────────────────────────────────────────────────────
    # Starlette applies middleware in reverse order of add_middleware calls:
    #   CORS → RequestContext → route handler

    app.add_middleware(RequestContextMiddleware)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=_parse_origins(settings.allowed_origins),
        allow_methods=["POST", "GET", "OPTIONS"],
        allow_headers=["Content-Type", "X-Request-ID"],
    )

    register_exception_handlers(app)

    app.include_router(health.router, tags=["health"])
    app.include_router(images.router, tags=["images"])

    return app
