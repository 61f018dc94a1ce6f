# ─────────────────────────────────────────────────────────────────────────────
# Client Registry Route Tests — status-code contracts for the admin API
# ─────────────────────────────────────────────────────────────────────────────

import pytest
from dirty_equals import IsList, IsPositiveInt, IsStr


class TestCreateClient:
    def test_created(self, client, admin_headers):
        response = client.post(
            "/client/create",
            json={"name": "Acme", "contact": "ops@acme.com"},
            headers=admin_headers,
        )
        assert response.status_code == 201
        assert response.json() == {
            "id": IsPositiveInt,
            "name": "Acme",
            "contact": "ops@acme.com",
            "credential": IsStr(regex=r"[0-9a-f]{32}"),
            "requestsPerMinute": 60,
            "maxConcurrent": 5,
        }

    def test_email_alias_accepted(self, client, admin_headers):
        response = client.post(
            "/client/create",
            json={"name": "Acme", "email": "ops@acme.com"},
            headers=admin_headers,
        )
        assert response.status_code == 201
        assert response.json()["contact"] == "ops@acme.com"

    def test_missing_fields(self, client, admin_headers):
        response = client.post("/client/create", json={}, headers=admin_headers)
        assert response.status_code == 400
        assert response.json()["message"] == "Missing 'name' and 'contact'."

    def test_blank_name(self, client, admin_headers):
        response = client.post(
            "/client/create",
            json={"name": "  ", "contact": "ops@acme.com"},
            headers=admin_headers,
        )
        assert response.status_code == 400
        assert response.json()["message"] == "Client name cannot be blank."

    def test_malformed_json(self, client, admin_headers):
        response = client.post(
            "/client/create",
            content=b"{not json",
            headers={**admin_headers, "Content-Type": "application/json"},
        )
        assert response.status_code == 400
        assert response.json()["details"] == IsList(length=1)

    def test_duplicate_name_conflict(self, client, acme, admin_headers):
        response = client.post(
            "/client/create",
            json={"name": "acme", "contact": "other@acme.com"},
            headers=admin_headers,
        )
        assert response.status_code == 409
        assert response.json()["message"] == "Client name already exists."


class TestReadClients:
    def test_list_hides_credentials(self, client, acme, admin_headers):
        response = client.get("/clients", headers=admin_headers)
        assert response.status_code == 200
        assert response.json() == [
            {
                "id": acme.id,
                "name": "Acme",
                "contact": "ops@acme.com",
                "requestsPerMinute": 60,
                "maxConcurrent": 5,
            }
        ]

    def test_get_one(self, client, acme, admin_headers):
        response = client.get(f"/clients/{acme.id}", headers=admin_headers)
        assert response.status_code == 200
        assert response.json()["name"] == "Acme"
        assert "credential" not in response.json()

    def test_get_unknown(self, client, admin_headers):
        response = client.get("/clients/999", headers=admin_headers)
        assert response.status_code == 404
        assert response.json()["message"] == "Client not found: id=999"

    def test_get_negative_id(self, client, admin_headers):
        response = client.get("/clients/-1", headers=admin_headers)
        assert response.status_code == 400

    def test_get_non_numeric_id(self, client, admin_headers):
        response = client.get("/clients/abc", headers=admin_headers)
        assert response.status_code == 400
        assert response.json()["message"] == "Validation failed"


class TestUpdateClient:
    def test_partial_update(self, client, acme, admin_headers):
        response = client.put(
            f"/clients/{acme.id}",
            json={"name": "Acme Corp", "maxConcurrent": 9},
            headers=admin_headers,
        )
        assert response.status_code == 200
        assert response.json() == {
            "id": acme.id,
            "name": "Acme Corp",
            "contact": "ops@acme.com",
            "requestsPerMinute": 60,
            "maxConcurrent": 9,
        }

    def test_credential_survives_update(self, client, acme, acme_headers, admin_headers):
        client.put(f"/clients/{acme.id}", json={"name": "Acme Corp"}, headers=admin_headers)
        assert client.get("/me", headers=acme_headers).status_code == 200

    def test_conflict(self, client, app, acme, admin_headers):
        app.state.client_store.create("Globex", "it@globex.com")
        response = client.put(
            f"/clients/{acme.id}", json={"name": "GLOBEX"}, headers=admin_headers
        )
        assert response.status_code == 409

    def test_unknown(self, client, admin_headers):
        response = client.put("/clients/42", json={"name": "Nobody"}, headers=admin_headers)
        assert response.status_code == 404


class TestDeleteClient:
    def test_delete_then_gone(self, client, acme, admin_headers):
        assert client.delete(f"/clients/{acme.id}", headers=admin_headers).status_code == 204
        assert client.get(f"/clients/{acme.id}", headers=admin_headers).status_code == 404

    def test_delete_unknown(self, client, admin_headers):
        assert client.delete("/clients/42", headers=admin_headers).status_code == 404

    def test_delete_forgets_window(self, client, app, acme, acme_headers, admin_headers):
        app.state.client_store.set_rate_limit(acme.id, 1)
        client.get("/me", headers=acme_headers)
        assert not app.state.admission.check(acme.id, 1).allowed

        client.delete(f"/clients/{acme.id}", headers=admin_headers)
        # A fresh window: the spent slot went with the deleted identity
        assert app.state.admission.check(acme.id, 1).allowed


class TestRotateKey:
    def test_rotate(self, client, acme, admin_headers):
        response = client.post(f"/clients/{acme.id}/rotateKey", headers=admin_headers)
        assert response.status_code == 200
        assert response.json() == {
            "clientId": acme.id,
            "apiKey": IsStr(regex=r"[0-9a-f]{32}"),
        }
        assert response.json()["apiKey"] != acme.credential

    def test_rotate_unknown(self, client, admin_headers):
        assert client.post("/clients/42/rotateKey", headers=admin_headers).status_code == 404


class TestSetRateLimit:
    @pytest.mark.parametrize("body", [{"limit": 0}, {"limit": -3}, {"limit": "abc"}, {}])
    def test_invalid_limit(self, client, acme, admin_headers, body):
        response = client.post(
            f"/clients/{acme.id}/setRateLimit", json=body, headers=admin_headers
        )
        assert response.status_code == 400

    def test_set_then_read_back(self, client, acme, admin_headers):
        response = client.post(
            f"/clients/{acme.id}/setRateLimit", json={"limit": 25}, headers=admin_headers
        )
        assert response.status_code == 200
        assert response.json()["requestsPerMinute"] == 25

        fetched = client.get(f"/clients/{acme.id}", headers=admin_headers).json()
        assert fetched["requestsPerMinute"] == 25

    def test_unknown_client(self, client, admin_headers):
        response = client.post(
            "/clients/42/setRateLimit", json={"limit": 10}, headers=admin_headers
        )
        assert response.status_code == 404


class TestUnexpectedErrors:
    def test_route_failure_is_generic_500(self, client, app, admin_headers, monkeypatch):
        def explode() -> list:
            raise RuntimeError("disk on fire")

        monkeypatch.setattr(app.state.client_store, "list", explode)
        response = client.get("/clients", headers=admin_headers)

        assert response.status_code == 500
        assert response.json()["message"] == "Internal server error"
        assert "disk on fire" not in response.text
