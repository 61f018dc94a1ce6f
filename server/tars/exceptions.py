# ─────────────────────────────────────────────────────────────────────────────
# Custom Exceptions + FastAPI Exception Handlers
# ─────────────────────────────────────────────────────────────────────────────


import math
from datetime import UTC, datetime
from http import HTTPStatus
from typing import Any

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = structlog.get_logger(__name__)


# ── Exception hierarchy ──────────────────────────────────────────────────────


class TarsError(Exception):
    """Base exception for all gate and registry errors."""

    def __init__(self, message: str, status_code: int = 500):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class UnauthorizedError(TarsError):
    """Missing or unknown credential."""

    def __init__(self, message: str = "API key required"):
        super().__init__(message, status_code=401)


class ForbiddenError(TarsError):
    """Valid credential without the privilege the path requires."""

    def __init__(self, message: str = "Admin access required"):
        super().__init__(message, status_code=403)


class RateLimitedError(TarsError):
    """Admission denied for the current fixed window.

    retry_after_seconds is the time left in the window; the handler turns
    it into a Retry-After header on the 429 response.
    """

    def __init__(self, limit: int, retry_after_seconds: float = 60.0):
        self.limit = limit
        self.retry_after_seconds = retry_after_seconds
        super().__init__("Rate limit exceeded", status_code=429)


class ConflictError(TarsError):
    """Duplicate name, contact or credential."""

    def __init__(self, message: str):
        super().__init__(message, status_code=409)


class NotFoundError(TarsError):
    """Unknown client id."""

    def __init__(self, client_id: int):
        self.client_id = client_id
        super().__init__(f"Client not found: id={client_id}", status_code=404)


class InvalidArgumentError(TarsError):
    """Blank required field, non-positive limit, negative id."""

    def __init__(self, message: str):
        super().__init__(message, status_code=400)


class PersistenceError(TarsError):
    """Registry file write did not complete. In-memory state is kept."""

    def __init__(self, path: str, reason: str):
        self.path = path
        super().__init__(f"Failed to persist registry to {path}: {reason}", status_code=500)


# ── Error payload ────────────────────────────────────────────────────────────


def error_body(
    status_code: int, message: str, path: str, details: list[str] | None = None
) -> dict[str, Any]:
    """Structured error payload shared by the gate and the exception handlers."""
    try:
        reason = HTTPStatus(status_code).phrase
    except ValueError:
        reason = "Error"
    body: dict[str, Any] = {
        "status": status_code,
        "error": reason,
        "message": message,
        "path": path,
        "timestamp": datetime.now(UTC).isoformat().replace("+00:00", "Z"),
    }
    if details:
        body["details"] = details
    return body


def error_response(
    status_code: int,
    message: str,
    path: str,
    *,
    details: list[str] | None = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=error_body(status_code, message, path, details),
        headers=headers,
    )


# ── Handler registration ────────────────────────────────────────────────────


def register_exception_handlers(app: FastAPI) -> None:
    """Register all custom exception handlers on the FastAPI app.

    Endpoints raise TarsError subclasses; these handlers catch them
    and return structured JSON -- no inline try/except in endpoints.
    """

    @app.exception_handler(RateLimitedError)
    async def rate_limited_handler(request: Request, exc: RateLimitedError) -> JSONResponse:
        retry_after = max(1, math.ceil(exc.retry_after_seconds))
        logger.warning("rate_limited_response", path=request.url.path, retry_after=retry_after)
        return error_response(
            429,
            exc.message,
            request.url.path,
            headers={"Retry-After": str(retry_after)},
        )

    @app.exception_handler(TarsError)
    async def tars_error_handler(request: Request, exc: TarsError) -> JSONResponse:
        log = logger.error if exc.status_code >= 500 else logger.warning
        log(
            "tars_error",
            status=exc.status_code,
            path=request.url.path,
            error=exc.message,
            error_type=type(exc).__name__,
        )
        return error_response(exc.status_code, exc.message, request.url.path)

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        """Router-level 404/405 (and any HTTPException) in the shared body shape."""
        logger.info("http_error", status=exc.status_code, path=request.url.path)
        return error_response(
            exc.status_code,
            str(exc.detail),
            request.url.path,
            headers=exc.headers,
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        details = [
            f"{'.'.join(str(part) for part in err['loc'] if part != 'body')}: {err['msg']}"
            for err in exc.errors()
        ]
        logger.warning("request_validation_failed", path=request.url.path, details=details)
        return error_response(400, "Validation failed", request.url.path, details=details)

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error("unhandled_error", path=request.url.path, error=str(exc), exc_info=True)
        return error_response(500, "Internal server error", request.url.path)
