# ─────────────────────────────────────────────────────────────────────────────
# Request / Response Schemas
# ─────────────────────────────────────────────────────────────────────────────
# Request fields are all optional at the schema level: presence rules differ
# per endpoint and produce a 400 with an endpoint-specific message, which is
# checked in the relay service rather than by Pydantic (which would 422).
# ─────────────────────────────────────────────────────────────────────────────

from pydantic import BaseModel, ConfigDict, Field

from imagine_relay.clients.base import ZoomLevel


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


# ── Requests ─────────────────────────────────────────────────────────────────


class PromptRequest(_CamelModel):
    """Body of POST /imagine and POST /simpleimage."""

    prompt: str | None = None


class VariationRequest(_CamelModel):
    message_id: str | None = Field(default=None, alias="messageId")
    index: int | None = None
    flags: int | None = None
    hash: str | None = None


class UpscaleRequest(_CamelModel):
    message_id: str | None = Field(default=None, alias="messageId")
    index: int | None = None
    flags: int | None = None
    custom_id: str | None = Field(default=None, alias="customId")
    hash: str | None = None


class ZoomOutRequest(_CamelModel):
    imagine_id: str | None = Field(default=None, alias="imagineId")
    flags: int | None = None
    hash: str | None = None
    level: ZoomLevel | None = None


# ── Responses ────────────────────────────────────────────────────────────────


class GenerationResult(BaseModel):
    """Normalized result returned by every image endpoint."""

    id: str
    flags: int
    hash: str
    uri: str


class ErrorResponse(BaseModel):
    error: str


class LivenessResponse(BaseModel):
    status: str


class ReadinessResponse(BaseModel):
    status: str
    client_ready: bool
