# ─────────────────────────────────────────────────────────────────────────────
# Public Routes — welcome page, liveness, readiness, metrics
# ─────────────────────────────────────────────────────────────────────────────
#   /, /index      → Welcome. Per-IP slowapi limit (the gate skips these).
#   /health        → Liveness. Returns 200 always; no dependencies.
#   /health/ready  → Readiness. 503 while the last registry write failed.
#   /metrics       → Gate decision counters.
#
# Handlers that read the store are plain `def`: the store lock can be held
# by a writer for a full fsync, so they must not wait on the event loop.
# ─────────────────────────────────────────────────────────────────────────────

from typing import Any

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from slowapi import Limiter

from tars.dependencies import get_admission, get_client_store, get_metrics
from tars.registry.admission import AdmissionController
from tars.registry.client_store import ClientStore
from tars.schemas import LivenessResponse, ReadinessResponse, WelcomeResponse
from tars.services.metrics import GateMetrics

router = APIRouter()


def build_welcome_router(limiter: Limiter, limit: str) -> APIRouter:
    """Welcome page bound to one app's limiter and its configured per-IP limit."""
    welcome = APIRouter()

    @welcome.get("/", response_model=WelcomeResponse)
    @welcome.get("/index", response_model=WelcomeResponse)
    @limiter.limit(limit)
    async def index(request: Request) -> WelcomeResponse:
        return WelcomeResponse(
            message="Welcome to the TARS API. Send your API key in the configured header."
        )

    return welcome


@router.get("/health", response_model=LivenessResponse)
async def liveness() -> LivenessResponse:
    """Liveness check — is the process alive? Keep it minimal: no deps, no I/O."""
    return LivenessResponse(status="ok")


@router.get("/health/ready", response_model=ReadinessResponse)
def readiness(store: ClientStore = Depends(get_client_store)) -> JSONResponse:
    """Readiness check — not ready while registry writes are failing.

    Mutations still succeed in memory during that time, but would be lost
    on restart, so traffic should be drained.
    """
    healthy = store.persistence_healthy
    response = ReadinessResponse(
        status="ready" if healthy else "not_ready",
        clients_registered=store.count,
        persistence_healthy=healthy,
    )
    return JSONResponse(
        status_code=200 if healthy else 503,
        content=response.model_dump(),
    )


@router.get("/metrics")
def metrics_endpoint(
    metrics: GateMetrics = Depends(get_metrics),
    store: ClientStore = Depends(get_client_store),
    admission: AdmissionController = Depends(get_admission),
) -> dict[str, Any]:
    """Gate decision counters plus registry and window sizes."""
    return {
        **metrics.to_dict(),
        "clients_registered": store.count,
        "active_rate_windows": admission.active_windows,
    }
