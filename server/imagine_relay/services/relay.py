# ─────────────────────────────────────────────────────────────────────────────
# Image Relay Service — request validation, client delegation, normalization
# ─────────────────────────────────────────────────────────────────────────────
# Endpoints delegate here. Every operation has the same shape:
#   validate → call the image client → normalize the message → return
# Failures are raised as RelayError subclasses and rendered by the handlers
# in exceptions.py. Nothing is retried and nothing is compensated.
# ─────────────────────────────────────────────────────────────────────────────

from collections.abc import Awaitable, Callable
from typing import Any

import structlog
from opentelemetry import trace

from imagine_relay.clients.base import ClientMessage, ImageClient, JobOptions, LoadingCallback
from imagine_relay.exceptions import (
    EmptyResultError,
    MissingParametersError,
    OperationFailedError,
)
from imagine_relay.schemas import (
    GenerationResult,
    PromptRequest,
    UpscaleRequest,
    VariationRequest,
    ZoomOutRequest,
)

logger = structlog.get_logger(__name__)
tracer = trace.get_tracer(__name__)

# The composite endpoint always upscales the first image of the grid.
SIMPLE_IMAGE_INDEX = 1


def normalize_result(message: ClientMessage | None, operation: str) -> GenerationResult:
    """Reduce a client message to the four public fields.

    A message without id, hash or uri (or no message at all) counts as a
    failed operation even though the client call returned normally.
    """
    if (
        message is None
        or not message.id
        or not message.hash
        or not message.uri
        or message.flags is None
    ):
        raise EmptyResultError(operation)
    return GenerationResult(
        id=message.id,
        flags=message.flags,
        hash=message.hash,
        uri=message.uri,
    )


def progress_logger(operation: str) -> LoadingCallback:
    """Build a loading callback that logs each progress update."""
    log = logger.bind(operation=operation)

    def loading(uri: str, progress: str) -> None:
        log.info("generation_progress", uri=uri, progress=progress)

    return loading


class ImageRelayService:
    """Validates requests and relays them to the shared image client.

    Created once in the lifespan and injected via Depends(); holds no
    per-request state, so concurrent requests share it freely.
    """

    def __init__(self, client: ImageClient) -> None:
        self._client = client

    async def imagine(self, request: PromptRequest) -> GenerationResult:
        if not request.prompt:
            raise MissingParametersError("Prompt is required")

        with tracer.start_as_current_span("imagine"):
            message = await self._call(
                "imagine", self._client.imagine, request.prompt, progress_logger("imagine")
            )
            return normalize_result(message, "Imagine")

    async def variation(self, request: VariationRequest) -> GenerationResult:
        if (
            not request.message_id
            or request.index is None
            or request.flags is None
            or request.hash is None
        ):
            raise MissingParametersError()

        with tracer.start_as_current_span("variation") as span:
            span.set_attribute("message_id", request.message_id)
            options = JobOptions(
                msg_id=request.message_id,
                index=request.index,
                flags=request.flags,
                hash=request.hash,
                loading=progress_logger("variation"),
            )
            message = await self._call("variation", self._client.variation, options)
            return normalize_result(message, "Variation")

    async def upscale(self, request: UpscaleRequest) -> GenerationResult:
        if (
            not request.message_id
            or request.index is None
            or request.flags is None
            or request.custom_id is None
            or request.hash is None
        ):
            raise MissingParametersError()

        with tracer.start_as_current_span("upscale") as span:
            span.set_attribute("message_id", request.message_id)
            options = JobOptions(
                msg_id=request.message_id,
                index=request.index,
                flags=request.flags,
                hash=request.hash,
                custom_id=request.custom_id,
                loading=progress_logger("upscale"),
            )
            message = await self._call("upscale", self._client.upscale, options)
            return normalize_result(message, "Upscale")

    async def simple_image(self, request: PromptRequest) -> GenerationResult:
        """Imagine a grid, then upscale its first image.

        A failure in either step stops the chain. An imagined grid is left on
        the platform if the upscale fails.
        """
        if not request.prompt:
            raise MissingParametersError("Prompt is required")

        with tracer.start_as_current_span("simpleimage") as span:
            imagined = await self._call(
                "simpleimage",
                self._client.imagine,
                request.prompt,
                progress_logger("simpleimage.imagine"),
            )
            if imagined is None:
                raise EmptyResultError("Imagine")
            if not imagined.id:
                raise EmptyResultError("Imagine", "Missing required message id")
            span.set_attribute("imagine_id", imagined.id)

            options = JobOptions(
                msg_id=imagined.id,
                index=SIMPLE_IMAGE_INDEX,
                flags=imagined.flags or 0,
                hash=imagined.hash or "",
                loading=progress_logger("simpleimage.upscale"),
            )
            upscaled = await self._call("simpleimage", self._client.upscale, options)
            return normalize_result(upscaled, "Upscale")

    async def zoom_out(self, request: ZoomOutRequest) -> GenerationResult:
        if not request.imagine_id or request.flags is None or request.hash is None:
            raise MissingParametersError()

        with tracer.start_as_current_span("zoomout") as span:
            span.set_attribute("message_id", request.imagine_id)
            options = JobOptions(
                msg_id=request.imagine_id,
                flags=request.flags,
                hash=request.hash,
                level=request.level or "2x",
                loading=progress_logger("zoomout"),
            )
            message = await self._call("zoomout", self._client.zoom_out, options)
            return normalize_result(message, "ZoomOut")

    async def _call(
        self,
        operation: str,
        job: Callable[..., Awaitable[ClientMessage | None]],
        *args: Any,
    ) -> ClientMessage | None:
        """Await a client job, wrapping any failure in OperationFailedError."""
        try:
            return await job(*args)
        except Exception as e:
            raise OperationFailedError(operation) from e
