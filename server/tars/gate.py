# Request gate: every non-public request is authenticated by credential header,
# checked against the admin namespace, and admitted through the per-client
# fixed window before any route runs. Rejections are structured JSON.

import math
from typing import Any, Protocol

import structlog
from starlette.concurrency import run_in_threadpool
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from tars.config import GatePolicy
from tars.exceptions import (
    ForbiddenError,
    RateLimitedError,
    TarsError,
    UnauthorizedError,
    error_response,
)
from tars.registry.admission import ADMIN_KEY, UNLIMITED, AdmissionController, AdmissionDecision
from tars.registry.client_store import ClientStore
from tars.schemas import ClientIdentity
from tars.services.metrics import GateMetrics

logger = structlog.get_logger(__name__)


class RequestInterceptor(Protocol):
    """One stage of request handling: inspect, then reject or call next."""

    async def handle(self, request: Request, call_next: RequestResponseEndpoint) -> Response: ...


def synthetic_admin() -> ClientIdentity:
    """Identity attached to admin-key callers that have no registry row."""
    return ClientIdentity(id=ADMIN_KEY, name="admin", contact="admin@tars.local")


class RequestGate:
    """Authentication, authorization and admission for every inbound request.

    Holds only references to the store and controller; it never mutates
    registry state. Built once at startup in create_app().
    """

    def __init__(
        self,
        policy: GatePolicy,
        store: ClientStore,
        admission: AdmissionController,
        metrics: GateMetrics | None = None,
    ) -> None:
        self._policy = policy
        self._store = store
        self._admission = admission
        self._metrics = metrics or GateMetrics()

    async def handle(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        # CORS preflight never carries custom headers
        if request.method == "OPTIONS":
            return await call_next(request)

        path = request.url.path
        if self._policy.is_public(path):
            self._metrics.record_public()
            return await call_next(request)

        try:
            # Registry lookup takes the store lock, which writers hold across fsync
            identity, is_admin, decision = await run_in_threadpool(self._authorize, request)
        except TarsError as exc:
            return self._reject(request, exc)
        except Exception as exc:
            logger.error(
                "gate_internal_error",
                path=path,
                error=str(exc),
                error_type=type(exc).__name__,
                exc_info=True,
            )
            return self._reject(request, TarsError("Internal server error", status_code=500))

        request.state.client = identity
        request.state.is_admin = is_admin
        structlog.contextvars.bind_contextvars(client_id=identity.id)
        self._metrics.record_admitted(admin=is_admin)

        response = await call_next(request)
        if not is_admin:
            response.headers["X-RateLimit-Limit"] = str(decision.limit)
            response.headers["X-RateLimit-Remaining"] = str(decision.remaining)
        return response

    def _authorize(self, request: Request) -> tuple[ClientIdentity, bool, AdmissionDecision]:
        """Resolve identity and privilege, then admit. Raises on any rejection."""
        path = request.url.path
        credential = request.headers.get(self._policy.header_name, "").strip()
        if not credential:
            raise UnauthorizedError("API key required")

        client = self._store.find_by_credential(credential)
        is_admin = self._policy.is_admin_credential(credential)
        if client is None and not is_admin:
            raise UnauthorizedError("Invalid API key")

        if self._policy.is_admin_path(path) and not is_admin:
            raise ForbiddenError("Admin access required")

        if client is None:
            # Admin key with no registry row
            identity, key, limit = synthetic_admin(), ADMIN_KEY, UNLIMITED
        elif is_admin:
            identity, key, limit = client, client.id, UNLIMITED
        else:
            identity, key, limit = client, client.id, client.requests_per_minute

        decision = self._admission.check(key, limit)
        if not decision.allowed:
            raise RateLimitedError(decision.limit, decision.retry_after_seconds)

        return identity, is_admin, decision

    def _reject(self, request: Request, exc: TarsError) -> JSONResponse:
        headers: dict[str, str] | None = None
        if isinstance(exc, RateLimitedError):
            headers = {"Retry-After": str(max(1, math.ceil(exc.retry_after_seconds)))}

        logger.warning(
            "gate_rejected",
            status=exc.status_code,
            path=request.url.path,
            method=request.method,
            message=exc.message,
        )
        self._metrics.record_rejected(exc.status_code)
        return error_response(exc.status_code, exc.message, request.url.path, headers=headers)


class GateMiddleware(BaseHTTPMiddleware):
    """Starlette adapter that runs a RequestGate for every request."""

    def __init__(self, app: Any, *, gate: RequestInterceptor) -> None:
        super().__init__(app)
        self._gate = gate

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        return await self._gate.handle(request, call_next)
