# ─────────────────────────────────────────────────────────────────────────────
# Tests — Settings parsing, gate policy, logging redaction
# ─────────────────────────────────────────────────────────────────────────────

import pytest
from pydantic import SecretStr

from tars.config import GatePolicy, Settings
from tars.logging_config import redact_credentials


@pytest.fixture
def policy() -> GatePolicy:
    return GatePolicy.from_settings(
        Settings(_env_file=None, admin_api_keys=SecretStr(" alpha , beta ,"))
    )


class TestGatePolicy:
    def test_defaults(self, policy: GatePolicy):
        assert policy.header_name == "X-API-Key"
        assert {"/", "/index", "/health", "/health/ready", "/metrics"} <= policy.public_paths
        assert policy.admin_credentials == frozenset({"alpha", "beta"})

    def test_blank_header_falls_back(self):
        policy = GatePolicy.from_settings(Settings(_env_file=None, api_key_header="  "))
        assert policy.header_name == "X-API-Key"

    @pytest.mark.parametrize(
        ("path", "public"),
        [
            ("/", True),
            ("/health", True),
            ("/healthz", False),
            ("/static/logo.png", True),
            ("/me", False),
        ],
    )
    def test_is_public(self, policy: GatePolicy, path: str, public: bool):
        assert policy.is_public(path) is public

    @pytest.mark.parametrize(
        ("path", "admin"),
        [
            ("/clients", True),
            ("/clients/3", True),
            ("/clients/3/rotateKey", True),
            ("/client/create", True),
            ("/clientsfoo", False),
            ("/client", False),
            ("/me", False),
        ],
    )
    def test_is_admin_path(self, policy: GatePolicy, path: str, admin: bool):
        assert policy.is_admin_path(path) is admin

    def test_is_admin_credential(self, policy: GatePolicy):
        assert policy.is_admin_credential("alpha")
        assert policy.is_admin_credential("beta")
        assert not policy.is_admin_credential("gamma")
        assert not policy.is_admin_credential("ключ")

    def test_no_admin_keys(self):
        policy = GatePolicy.from_settings(Settings(_env_file=None))
        assert policy.admin_credentials == frozenset()
        assert not policy.is_admin_credential("")


class TestSettings:
    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("API_KEY_HEADER", "X-Custom")
        monkeypatch.setenv("DEFAULT_RATE_LIMIT", "15")
        settings = Settings(_env_file=None)
        assert settings.api_key_header == "X-Custom"
        assert settings.default_rate_limit == 15

    def test_admin_keys_hidden_from_repr(self):
        settings = Settings(_env_file=None, admin_api_keys=SecretStr("top-secret"))
        assert "top-secret" not in repr(settings)


class TestRedaction:
    def test_masks_credential_fields(self):
        event = {"event": "client_created", "credential": "abcdef0123456789", "client_id": 3}
        assert redact_credentials(None, "info", event) == {
            "event": "client_created",
            "credential": "abcd…",
            "client_id": 3,
        }

    def test_leaves_other_fields(self):
        event = {"event": "gate_rejected", "path": "/me", "api_key": ""}
        assert redact_credentials(None, "warning", dict(event)) == event
