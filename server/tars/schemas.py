# ─────────────────────────────────────────────────────────────────────────────
# Pydantic v2 Models — registry records, request / response schemas
# ─────────────────────────────────────────────────────────────────────────────


from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

DEFAULT_REQUESTS_PER_MINUTE = 60
DEFAULT_MAX_CONCURRENT = 5


class _CamelModel(BaseModel):
    """Accepts both snake_case and camelCase; dumps camelCase with by_alias=True."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ClientIdentity(_CamelModel):
    """One registered caller. Persisted as a row of the registry JSON array.

    Field limits are enforced by ClientStore so that a bad value surfaces as
    InvalidArgumentError instead of a model validation error.
    """

    id: int
    name: str
    contact: str
    credential: str = ""
    requests_per_minute: int = DEFAULT_REQUESTS_PER_MINUTE
    max_concurrent: int = DEFAULT_MAX_CONCURRENT


class ClientSummary(_CamelModel):
    """Identity as shown by list/get endpoints — the credential is never echoed."""

    id: int
    name: str
    contact: str
    requests_per_minute: int
    max_concurrent: int

    @classmethod
    def from_identity(cls, identity: ClientIdentity) -> "ClientSummary":
        return cls.model_validate(identity.model_dump(exclude={"credential"}))


class CreateClientRequest(BaseModel):
    """POST /client/create body. "email" is accepted as an alias of contact."""

    name: str | None = None
    contact: str | None = Field(None, validation_alias=AliasChoices("contact", "email"))


class UpdateClientRequest(_CamelModel):
    """PUT /clients/{id} body. Omitted fields keep their stored value."""

    name: str | None = None
    contact: str | None = None
    requests_per_minute: int | None = None
    max_concurrent: int | None = None


class RateLimitRequest(BaseModel):
    """POST /clients/{id}/setRateLimit body."""

    limit: int


class CredentialResponse(_CamelModel):
    """Returned by credential rotation."""

    client_id: int
    api_key: str


class ErrorResponse(BaseModel):
    """Structured error body shared by every rejection."""

    status: int
    error: str
    message: str
    path: str
    timestamp: str
    details: list[str] | None = None


class WelcomeResponse(BaseModel):
    message: str
    docs: str = "/docs"


class LivenessResponse(BaseModel):
    """Liveness check — minimal, near-zero cost."""

    status: str = "ok"


class ReadinessResponse(BaseModel):
    """Readiness check — is the registry usable and durable?"""

    status: str  # "ready" or "not_ready"
    clients_registered: int
    persistence_healthy: bool
