# ─────────────────────────────────────────────────────────────────────────────
# Custom Exceptions + FastAPI Exception Handlers
# ─────────────────────────────────────────────────────────────────────────────
# Response bodies are always {"error": <message>}. Client exception details
# are logged server-side and never copied into a response.
# ─────────────────────────────────────────────────────────────────────────────


import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = structlog.get_logger(__name__)


# ── Exception hierarchy ──────────────────────────────────────────────────────


class RelayError(Exception):
    """Base exception for all errors returned by the relay endpoints."""

    def __init__(self, message: str, status_code: int = 500):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class MissingParametersError(RelayError):
    """Raised when a request lacks a required field."""

    def __init__(self, message: str = "Missing required parameters"):
        super().__init__(message, status_code=400)


class EmptyResultError(RelayError):
    """Raised when the image client resolved without a usable message."""

    def __init__(self, operation: str, message: str | None = None):
        self.operation = operation
        super().__init__(message or f"No message from {operation}", status_code=500)


class OperationFailedError(RelayError):
    """Raised when the image client call itself failed."""

    def __init__(self, operation: str):
        self.operation = operation
        super().__init__(f"Failed to process {operation} request", status_code=500)


# ── Handler registration ────────────────────────────────────────────────────


def register_exception_handlers(app: FastAPI) -> None:
    """Register all custom exception handlers on the FastAPI app.

    Services raise RelayError subclasses; these handlers catch them
    and return structured JSON; endpoints carry no inline try/except.
    """

    @app.exception_handler(RelayError)
    async def relay_error_handler(request: Request, exc: RelayError) -> JSONResponse:
        log = logger.warning if exc.status_code < 500 else logger.error
        log(
            "relay_error",
            path=request.url.path,
            error=exc.message,
            error_type=type(exc).__name__,
            exc_info=exc.__cause__,
        )
        return JSONResponse(status_code=exc.status_code, content={"error": exc.message})

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        logger.warning("invalid_request_body", path=request.url.path, errors=exc.errors())
        return JSONResponse(status_code=400, content={"error": "Invalid request body"})

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error("unhandled_error", error=str(exc), exc_info=True)
        return JSONResponse(status_code=500, content={"error": "Internal server error"})
