# ─────────────────────────────────────────────────────────────────────────────
# GET /me — the caller's own identity as resolved by the gate
# ─────────────────────────────────────────────────────────────────────────────


from fastapi import APIRouter, Depends

from tars.dependencies import get_current_client
from tars.schemas import ClientIdentity, ClientSummary, ErrorResponse

router = APIRouter(responses={401: {"model": ErrorResponse}, 429: {"model": ErrorResponse}})


@router.get("/me", response_model=ClientSummary)
def whoami(client: ClientIdentity = Depends(get_current_client)) -> ClientSummary:
    """Smallest protected route: counts against the caller's window like any other."""
    return ClientSummary.from_identity(client)
