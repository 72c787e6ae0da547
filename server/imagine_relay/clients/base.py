# ─────────────────────────────────────────────────────────────────────────────
# Image Client Contract — what the relay needs from a Midjourney client
# ─────────────────────────────────────────────────────────────────────────────
# The relay service only ever talks to this protocol. DiscordImageClient is
# the production implementation; tests substitute a fake.
# ─────────────────────────────────────────────────────────────────────────────

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Literal, Protocol, runtime_checkable

from pydantic import BaseModel

# (uri, progress), called zero or more times before a job finishes.
LoadingCallback = Callable[[str, str], None]

ZoomLevel = Literal["1.5x", "2x"]


class ClientMessage(BaseModel):
    """Raw message returned by the image client.

    Every field is optional: the relay decides whether a message is
    complete enough to return (see ``services.relay.normalize_result``).
    """

    id: str | None = None
    flags: int | None = None
    hash: str | None = None
    uri: str | None = None
    content: str | None = None
    progress: str | None = None


@dataclass
class JobOptions:
    """Options for follow-up jobs on an existing grid message."""

    msg_id: str
    hash: str
    flags: int
    index: int = 1
    custom_id: str | None = None
    level: ZoomLevel | None = None
    loading: LoadingCallback | None = None


# ── Client errors ────────────────────────────────────────────────────────────


class ImageClientError(Exception):
    """Base class for image client failures."""


class ConfigurationError(ImageClientError):
    """Raised when required credentials are missing."""


class ClientNotReadyError(ImageClientError):
    """Raised when a job is submitted before init() succeeded."""


class ClientRequestError(ImageClientError):
    """Raised when the upstream API rejects or fails a request."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        retry_after: float | None = None,
    ):
        self.status_code = status_code
        self.retry_after = retry_after
        super().__init__(message)


class ClientTimeoutError(ImageClientError):
    """Raised when a job does not finish within the polling budget."""


@runtime_checkable
class ImageClient(Protocol):
    """Async Midjourney client contract.

    Implementations must tolerate concurrent calls from many in-flight
    requests; the relay does no locking of its own.
    """

    @property
    def is_ready(self) -> bool: ...

    async def init(self) -> None: ...

    async def close(self) -> None: ...

    async def imagine(
        self, prompt: str, loading: LoadingCallback | None = None
    ) -> ClientMessage | None: ...

    async def variation(self, options: JobOptions) -> ClientMessage | None: ...

    async def upscale(self, options: JobOptions) -> ClientMessage | None: ...

    async def zoom_out(self, options: JobOptions) -> ClientMessage | None: ...
