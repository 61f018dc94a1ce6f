# ─────────────────────────────────────────────────────────────────────────────
# Schema Factory Tests — polyfactory
# ─────────────────────────────────────────────────────────────────────────────
# polyfactory builds valid model instances so the wire format is exercised
# with arbitrary data instead of one hand-written fixture.
# ─────────────────────────────────────────────────────────────────────────────

import pytest
from dirty_equals import IsInstance, IsInt, IsStr
from polyfactory.factories.pydantic_factory import ModelFactory
from pydantic import TypeAdapter, ValidationError

from tars.schemas import (
    ClientIdentity,
    ClientSummary,
    CreateClientRequest,
    CredentialResponse,
    RateLimitRequest,
    UpdateClientRequest,
)

# ─── Factories ───────────────────────────────────────────────────────────────


class ClientIdentityFactory(ModelFactory):
    __model__ = ClientIdentity


class UpdateClientRequestFactory(ModelFactory):
    __model__ = UpdateClientRequest


class CredentialResponseFactory(ModelFactory):
    __model__ = CredentialResponse


# ─── Tests ───────────────────────────────────────────────────────────────────


class TestClientIdentity:
    def test_dumps_camel_case(self):
        identity = ClientIdentityFactory.build()
        assert identity.model_dump(by_alias=True) == {
            "id": IsInt,
            "name": IsStr,
            "contact": IsStr,
            "credential": IsStr,
            "requestsPerMinute": IsInt,
            "maxConcurrent": IsInt,
        }

    def test_registry_row_round_trip(self):
        rows = ClientIdentityFactory.batch(size=5)
        adapter = TypeAdapter(list[ClientIdentity])
        assert adapter.validate_json(adapter.dump_json(rows, by_alias=True)) == rows

    def test_accepts_snake_case_too(self):
        identity = ClientIdentity.model_validate(
            {"id": 1, "name": "Acme", "contact": "a@acme.com", "requests_per_minute": 7}
        )
        assert identity.requests_per_minute == 7
        assert identity.credential == ""

    def test_summary_drops_credential(self):
        identity = ClientIdentityFactory.build()
        summary = ClientSummary.from_identity(identity)
        assert "credential" not in summary.model_dump()
        assert summary.id == identity.id


class TestRequestBodies:
    def test_create_accepts_email_alias(self):
        body = CreateClientRequest.model_validate({"name": "Acme", "email": "a@acme.com"})
        assert body.contact == "a@acme.com"

    def test_create_fields_optional_at_parse_time(self):
        assert CreateClientRequest.model_validate({}) == IsInstance(CreateClientRequest)

    def test_update_partial_dump(self):
        body = UpdateClientRequestFactory.build(name="Acme", contact=None)
        dumped = body.model_dump(exclude_none=True)
        assert dumped["name"] == "Acme"
        assert "contact" not in dumped

    @pytest.mark.parametrize("limit", ["abc", None, 1.5])
    def test_rate_limit_must_be_integer(self, limit):
        with pytest.raises(ValidationError):
            RateLimitRequest.model_validate({"limit": limit})

    def test_credential_response_aliases(self):
        response = CredentialResponseFactory.build()
        assert set(response.model_dump(by_alias=True)) == {"clientId", "apiKey"}
