# ─────────────────────────────────────────────────────────────────────────────
# Client Registry Routes — administrator namespace (THIN)
# ─────────────────────────────────────────────────────────────────────────────
# The gate already rejected non-admin callers with 403 before these run.
# Handlers are plain `def` so FastAPI runs them on its worker pool; the
# store serializes access with its own lock. Errors are exceptions.
# ─────────────────────────────────────────────────────────────────────────────


from fastapi import APIRouter, Depends, Response

from tars.dependencies import get_admission, get_client_store
from tars.exceptions import InvalidArgumentError, NotFoundError
from tars.registry.admission import AdmissionController
from tars.registry.client_store import ClientStore
from tars.schemas import (
    ClientIdentity,
    ClientSummary,
    CreateClientRequest,
    CredentialResponse,
    ErrorResponse,
    RateLimitRequest,
    UpdateClientRequest,
)

router = APIRouter(
    responses={
        status: {"model": ErrorResponse}
        for status in (400, 401, 403, 404, 409, 429)
    }
)


def _require_client(store: ClientStore, client_id: int) -> ClientIdentity:
    if client_id < 0:
        raise InvalidArgumentError("Client id cannot be negative.")
    client = store.get(client_id)
    if client is None:
        raise NotFoundError(client_id)
    return client


@router.get("/clients", response_model=list[ClientSummary])
def list_clients(store: ClientStore = Depends(get_client_store)) -> list[ClientSummary]:
    """All registered clients in id order. Credentials are not included."""
    return [ClientSummary.from_identity(c) for c in store.list()]


@router.get("/clients/{client_id}", response_model=ClientSummary)
def get_client(client_id: int, store: ClientStore = Depends(get_client_store)) -> ClientSummary:
    return ClientSummary.from_identity(_require_client(store, client_id))


@router.post("/client/create", response_model=ClientIdentity, status_code=201)
def create_client(
    body: CreateClientRequest,
    store: ClientStore = Depends(get_client_store),
) -> ClientIdentity:
    """Register a client. The response is the only time the credential is shown."""
    missing = [field for field in ("name", "contact") if getattr(body, field) is None]
    if missing:
        raise InvalidArgumentError(
            "Missing " + " and ".join(f"'{field}'" for field in missing) + "."
        )
    return store.create(body.name or "", body.contact or "")


@router.put("/clients/{client_id}", response_model=ClientSummary)
def update_client(
    client_id: int,
    body: UpdateClientRequest,
    store: ClientStore = Depends(get_client_store),
) -> ClientSummary:
    """Partial update; omitted fields and the credential keep their stored values."""
    current = _require_client(store, client_id)
    changes = body.model_dump(exclude_none=True)
    merged = current.model_copy(update={**changes, "credential": ""})
    return ClientSummary.from_identity(store.update(merged))


@router.delete("/clients/{client_id}", status_code=204)
def delete_client(
    client_id: int,
    store: ClientStore = Depends(get_client_store),
    admission: AdmissionController = Depends(get_admission),
) -> Response:
    if client_id < 0:
        raise InvalidArgumentError("Client id cannot be negative.")
    if not store.remove(client_id):
        raise NotFoundError(client_id)
    admission.forget(client_id)
    return Response(status_code=204)


@router.post("/clients/{client_id}/rotateKey", response_model=CredentialResponse)
def rotate_key(
    client_id: int,
    store: ClientStore = Depends(get_client_store),
) -> CredentialResponse:
    """Replace the client's credential. The old one is rejected from the next request."""
    if client_id < 0:
        raise InvalidArgumentError("Client id cannot be negative.")
    return CredentialResponse(client_id=client_id, api_key=store.rotate_credential(client_id))


@router.post("/clients/{client_id}/setRateLimit", response_model=ClientSummary)
def set_rate_limit(
    client_id: int,
    body: RateLimitRequest,
    store: ClientStore = Depends(get_client_store),
) -> ClientSummary:
    """Change requests-per-minute. Takes effect on the client's next request."""
    if client_id < 0:
        raise InvalidArgumentError("Client id cannot be negative.")
    return ClientSummary.from_identity(store.set_rate_limit(client_id, body.limit))
