# ─────────────────────────────────────────────────────────────────────────────
# Dependency Injection — FastAPI Depends() providers
# ─────────────────────────────────────────────────────────────────────────────
# State flows: create_app builds → app.state stores → Depends() injects.
# No global variables. Every dependency is explicit in endpoint signatures.
# ─────────────────────────────────────────────────────────────────────────────


from fastapi import Request

from tars.exceptions import UnauthorizedError
from tars.registry.admission import AdmissionController
from tars.registry.client_store import ClientStore
from tars.schemas import ClientIdentity
from tars.services.metrics import GateMetrics


def get_client_store(request: Request) -> ClientStore:
    """Inject ClientStore into endpoints via Depends()."""
    return request.app.state.client_store  # type: ignore[no-any-return]


def get_admission(request: Request) -> AdmissionController:
    """Inject AdmissionController into endpoints via Depends()."""
    return request.app.state.admission  # type: ignore[no-any-return]


def get_metrics(request: Request) -> GateMetrics:
    """Inject GateMetrics into endpoints via Depends()."""
    return request.app.state.metrics  # type: ignore[no-any-return]


def get_current_client(request: Request) -> ClientIdentity:
    """Identity the gate attached to this request."""
    client = getattr(request.state, "client", None)
    if client is None:
        # Only reachable when the gate is disabled
        raise UnauthorizedError("No authenticated client")
    return client  # type: ignore[no-any-return]
