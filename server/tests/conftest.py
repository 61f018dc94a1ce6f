# ─────────────────────────────────────────────────────────────────────────────
# Test Fixtures — shared across all tests
# ─────────────────────────────────────────────────────────────────────────────

from collections.abc import Iterator
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from pydantic import SecretStr

from tars.config import Settings, get_settings
from tars.main import create_app
from tars.registry.admission import AdmissionController
from tars.registry.client_store import ClientStore
from tars.schemas import ClientIdentity

ADMIN_KEY = "adminkey000000000000000000000000"


class FakeClock:
    """Monotonic clock the tests advance by hand."""

    def __init__(self, start: float = 1_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture(autouse=True)
def _clear_settings_cache() -> Iterator[None]:
    """get_settings() is cached process-wide; env-driven tests need a fresh read."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def registry_path(tmp_path: Path) -> Path:
    return tmp_path / "data" / "clients.json"


@pytest.fixture
def test_settings(registry_path: Path) -> Settings:
    """Settings configured for testing — temp registry, one admin key, console logs."""
    return Settings(
        _env_file=None,
        registry_path=str(registry_path),
        admin_api_keys=SecretStr(ADMIN_KEY),
        allowed_origins="*",
        log_json=False,
        log_level="DEBUG",
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store(registry_path: Path) -> ClientStore:
    return ClientStore(registry_path)


@pytest.fixture
def app(test_settings: Settings, clock: FakeClock):
    return create_app(test_settings, admission=AdmissionController(clock=clock))


@pytest.fixture
def client(app) -> Iterator[TestClient]:
    """TestClient with lifespan; server errors come back as 500 responses."""
    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client


@pytest.fixture
def admin_headers() -> dict[str, str]:
    return {"X-API-Key": ADMIN_KEY}


@pytest.fixture
def acme(app) -> ClientIdentity:
    """A registered non-admin client, created straight through the shared store."""
    return app.state.client_store.create("Acme", "ops@acme.com")


@pytest.fixture
def acme_headers(acme: ClientIdentity) -> dict[str, str]:
    return {"X-API-Key": acme.credential}
