# ─────────────────────────────────────────────────────────────────────────────
# Prometheus Metrics Endpoint — text exposition format
# ─────────────────────────────────────────────────────────────────────────────
# GET /metrics/prometheus → text/plain Prometheus format
# Bridges GateMetrics + registry state → prometheus-client gauges.
# ─────────────────────────────────────────────────────────────────────────────

from fastapi import APIRouter, Depends
from fastapi.responses import Response
from prometheus_client import CollectorRegistry, Gauge, generate_latest

from tars.dependencies import get_admission, get_client_store, get_metrics
from tars.registry.admission import AdmissionController
from tars.registry.client_store import ClientStore
from tars.services.metrics import GateMetrics

router = APIRouter()

# ── Prometheus metrics (custom registry to avoid default process metrics) ─────

_registry = CollectorRegistry()

# Gauges mirror GateMetrics totals, which are already monotonic counters
_gate_decisions = Gauge(
    "tars_gate_decisions",
    "Gate decisions since process start",
    ["outcome"],
    registry=_registry,
)

_gate_rejections = Gauge(
    "tars_gate_rejections",
    "Gate rejections since process start, by HTTP status",
    ["status"],
    registry=_registry,
)

_clients_registered = Gauge(
    "tars_clients_registered",
    "Identities currently in the registry",
    registry=_registry,
)

_active_windows = Gauge(
    "tars_active_rate_windows",
    "Per-client admission windows held in memory",
    registry=_registry,
)

_persistence_healthy = Gauge(
    "tars_registry_persistence_healthy",
    "1 if the last registry write succeeded, else 0",
    registry=_registry,
)


def _sync_metrics(
    metrics: GateMetrics, store: ClientStore, admission: AdmissionController
) -> None:
    """Sync gate and registry state into Prometheus gauges."""
    data = metrics.to_dict()
    _gate_decisions.labels(outcome="admitted").set(data["admitted"])
    _gate_decisions.labels(outcome="public").set(data["public_bypassed"])
    for status in (401, 403, 429, 500):
        _gate_rejections.labels(status=str(status)).set(0)
    for status, count in metrics.rejections().items():
        _gate_rejections.labels(status=str(status)).set(count)

    _clients_registered.set(store.count)
    _active_windows.set(admission.active_windows)
    _persistence_healthy.set(1 if store.persistence_healthy else 0)


@router.get("/metrics/prometheus")
def prometheus_metrics(
    metrics: GateMetrics = Depends(get_metrics),
    store: ClientStore = Depends(get_client_store),
    admission: AdmissionController = Depends(get_admission),
) -> Response:
    """Prometheus text exposition format metrics endpoint."""
    _sync_metrics(metrics, store, admission)
    return Response(
        content=generate_latest(_registry),
        media_type="text/plain; version=0.0.4; charset=utf-8",
    )
