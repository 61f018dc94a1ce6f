# ─────────────────────────────────────────────────────────────────────────────
# Request Middleware — request ID, timing, access log
# ─────────────────────────────────────────────────────────────────────────────
# Outermost of the app middlewares (inside CORS), so requests the gate
# rejects are timed and logged exactly like admitted ones.
# ─────────────────────────────────────────────────────────────────────────────


import re
import time
import uuid

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

logger = structlog.get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"

# Upstream ids are echoed back, so only accept short opaque tokens
_VALID_REQUEST_ID = re.compile(r"[A-Za-z0-9._-]{1,64}")


def _request_id_for(request: Request) -> str:
    inbound = request.headers.get(REQUEST_ID_HEADER, "")
    if _VALID_REQUEST_ID.fullmatch(inbound):
        return inbound
    return uuid.uuid4().hex[:8]


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Binds a request id to the log context and writes one access line per request.

    Rejections (4xx) log at warning and server errors at error; /health
    checks are not logged at all.
    """

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = _request_id_for(request)
        request.state.request_id = request_id
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request_id)
        start = time.perf_counter()

        response: Response = await call_next(request)
        duration_ms = round((time.perf_counter() - start) * 1000, 1)

        if not request.url.path.startswith("/health"):
            client = getattr(request.state, "client", None)
            if response.status_code >= 500:
                log = logger.error
            elif response.status_code >= 400:
                log = logger.warning
            else:
                log = logger.info
            log(
                "request_completed",
                method=request.method,
                path=request.url.path,
                status=response.status_code,
                client_id=client.id if client is not None else None,
                admin=getattr(request.state, "is_admin", False),
                duration_ms=duration_ms,
            )

        response.headers[REQUEST_ID_HEADER] = request_id
        response.headers["X-Response-Time-Ms"] = str(duration_ms)
        return response
