# FastAPI application factory with lifespan management.
# Entrypoint: uvicorn tars.main:create_app --factory --host 0.0.0.0 --port 8080

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi.errors import RateLimitExceeded
from starlette.requests import Request
from starlette.responses import JSONResponse

from tars.config import GatePolicy, Settings, get_settings
from tars.exceptions import error_response, register_exception_handlers
from tars.gate import GateMiddleware, RequestGate
from tars.logging_config import configure_logging
from tars.middleware import RequestContextMiddleware
from tars.rate_limit import build_limiter
from tars.registry.admission import AdmissionController
from tars.registry.client_store import ClientStore
from tars.routes import account, clients, health
from tars.routes import prometheus as prometheus_routes
from tars.services.metrics import GateMetrics

logger = structlog.get_logger(__name__)


async def _rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Per-IP 429 for public routes, same body shape as gate rejections."""
    logger.warning(
        "public_rate_limit_exceeded",
        path=request.url.path,
        method=request.method,
        detail=str(exc.detail),
    )
    return error_response(
        429,
        f"Rate limit exceeded: {exc.detail}",
        request.url.path,
        headers={"Retry-After": "60"},
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Log the effective gate policy on startup. Collaborators are built in create_app."""
    settings: Settings = app.state.settings
    store: ClientStore = app.state.client_store
    logger.info(
        "tars_startup",
        security_enabled=settings.security_enabled,
        api_key_header=settings.api_key_header,
        registry_path=str(store.path),
        clients=store.count,
    )
    yield
    logger.info("tars_shutdown", persistence_healthy=store.persistence_healthy)


def _parse_origins(allowed_origins: str) -> list[str]:
    """Parse comma-separated CORS origins. Empty string → deny all."""
    if not allowed_origins.strip():
        return []
    return [origin.strip() for origin in allowed_origins.split(",") if origin.strip()]


def create_app(
    settings: Settings | None = None, *, admission: AdmissionController | None = None
) -> FastAPI:
    """Application factory. Invoked by: uvicorn tars.main:create_app --factory

    The store, admission controller and gate are built exactly once here and
    shared by reference with the middleware and the route dependencies.
    """
    settings = settings or get_settings()
    configure_logging(log_level=settings.log_level, json_output=settings.log_json)

    app = FastAPI(
        title="TARS API",
        description="Client registry and request gate",
        version="0.1.0",
        lifespan=lifespan,
    )

    store = ClientStore(
        settings.registry_path,
        default_rate_limit=settings.default_rate_limit,
        default_max_concurrent=settings.default_max_concurrent,
    )
    admission = admission or AdmissionController()
    metrics = GateMetrics()
    policy = GatePolicy.from_settings(settings)

    app.state.settings = settings
    app.state.client_store = store
    app.state.admission = admission
    app.state.metrics = metrics

    limiter = build_limiter()
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)  # type: ignore[arg-type]

    # Middleware order (Starlette applies in reverse): CORS → RequestContext → Gate
    if settings.security_enabled:
        gate = RequestGate(policy, store, admission, metrics)
        app.add_middleware(GateMiddleware, gate=gate)
        if not policy.admin_credentials:
            logger.warning("no_admin_keys_configured", hint="Set ADMIN_API_KEYS to manage clients.")
        logger.info("request_gate_enabled", header=policy.header_name)
    else:
        logger.warning("request_gate_disabled", reason="SECURITY_ENABLED=false")

    app.add_middleware(RequestContextMiddleware)

    origins = _parse_origins(settings.allowed_origins)
    if not origins:
        logger.warning(
            "cors_no_origins_configured",
            hint="Set ALLOWED_ORIGINS env var. Cross-origin requests will be rejected.",
        )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", policy.header_name],
    )

    register_exception_handlers(app)

    app.include_router(
        health.build_welcome_router(limiter, settings.public_rate_limit), tags=["welcome"]
    )
    app.include_router(health.router, tags=["health"])
    app.include_router(prometheus_routes.router, tags=["prometheus"])
    app.include_router(account.router, tags=["account"])
    app.include_router(clients.router, tags=["clients"])

    return app
