# ─────────────────────────────────────────────────────────────────────────────
# Settings — Pydantic v2 BaseSettings + immutable gate policy
# ─────────────────────────────────────────────────────────────────────────────


import secrets
from dataclasses import dataclass
from functools import lru_cache

from pydantic import SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


def _split_csv(value: str) -> list[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


class Settings(BaseSettings):
    """Server configuration sourced from environment variables.

    Uses pydantic-settings v2 (separate package from pydantic).
    """

    model_config = SettingsConfigDict(env_prefix="", env_file=".env")

    # ── Infrastructure ───────────────────────────────────────────────────────
    registry_path: str = "./data/clients.json"
    port: int = 8080

    # ── Security ─────────────────────────────────────────────────────────────
    # False skips the gate entirely (local dev / test only).
    security_enabled: bool = True
    api_key_header: str = "X-API-Key"

    # Comma-separated exact paths that bypass auth and admission control.
    public_paths: str = (
        "/,/index,/health,/health/ready,/metrics,/metrics/prometheus,/docs,/redoc,/openapi.json"
    )
    # Comma-separated prefixes that bypass auth (static assets).
    public_prefixes: str = "/static/,/assets/,/favicon"
    # Registry management namespace. "/clients" also matches "/clients/...".
    admin_path_prefixes: str = "/clients,/client/"

    # SecretStr keeps administrator keys out of logs, repr() and model_dump().
    # Comma-separated. Empty = no administrators.
    admin_api_keys: SecretStr = SecretStr("")

    # Comma-separated origins for CORS. Empty string = deny all cross-origin requests.
    allowed_origins: str = ""

    # ── Limits ───────────────────────────────────────────────────────────────
    default_rate_limit: int = 60  # requests per minute for new clients
    default_max_concurrent: int = 5
    public_rate_limit: str = "120/minute"  # slowapi format, per IP, index page only

    # ── Logging ──────────────────────────────────────────────────────────────
    log_level: str = "INFO"
    log_json: bool = True


@dataclass(frozen=True)
class GatePolicy:
    """Declarative gate policy, built once at startup and never mutated."""

    header_name: str
    public_paths: frozenset[str]
    public_prefixes: tuple[str, ...]
    admin_prefixes: tuple[str, ...]
    admin_credentials: frozenset[str]

    @classmethod
    def from_settings(cls, settings: Settings) -> "GatePolicy":
        return cls(
            header_name=settings.api_key_header.strip() or "X-API-Key",
            public_paths=frozenset(_split_csv(settings.public_paths)),
            public_prefixes=tuple(_split_csv(settings.public_prefixes)),
            admin_prefixes=tuple(_split_csv(settings.admin_path_prefixes)),
            admin_credentials=frozenset(_split_csv(settings.admin_api_keys.get_secret_value())),
        )

    def is_public(self, path: str) -> bool:
        if path in self.public_paths:
            return True
        return any(path.startswith(prefix) for prefix in self.public_prefixes)

    def is_admin_path(self, path: str) -> bool:
        for prefix in self.admin_prefixes:
            if prefix.endswith("/"):
                if path.startswith(prefix):
                    return True
            elif path == prefix or path.startswith(prefix + "/"):
                return True
        return False

    def is_admin_credential(self, credential: str) -> bool:
        # Constant-time comparison against every configured key
        matched = False
        for admin_key in self.admin_credentials:
            if secrets.compare_digest(credential.encode(), admin_key.encode()):
                matched = True
        return matched


@lru_cache
def get_settings() -> Settings:
    """Cached settings singleton."""
    return Settings()
