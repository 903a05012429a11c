"""Tests for the HTTP gateway."""

from unittest.mock import patch

import httpx
import pytest
from fastapi.testclient import TestClient

from qrest.core.config import APIConfig, Config, ServerConfig
from qrest.server.app import create_app


@pytest.fixture
def config(petstore_spec, monkeypatch):
    monkeypatch.delenv("QREST_HOST", raising=False)
    monkeypatch.delenv("QREST_PORT", raising=False)
    return Config(
        server=ServerConfig(cors_origins=["http://localhost:3000"]),
        apis=[APIConfig(name="petstore", spec_inline=petstore_spec, auth={"type": "bearer", "token": "secret"})],
    )


@pytest.fixture
def client(config):
    with TestClient(create_app(config)) as test_client:
        yield test_client


class TestHealth:
    """Tests for the health endpoint."""

    def test_ok(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok", "tables": 5, "failed_apis": {}}

    def test_degraded(self, petstore_spec, tmp_path):
        config = Config(apis=[
            APIConfig(name="petstore", spec_inline=petstore_spec),
            APIConfig(name="broken", spec_path=str(tmp_path / "missing.yaml")),
        ])
        with TestClient(create_app(config)) as client:
            data = client.get("/health").json()

        assert data["status"] == "degraded"
        assert data["tables"] == 5
        assert "broken" in data["failed_apis"]


class TestQueryEndpoint:
    """Tests for POST /query."""

    def test_select(self, client, mock_response):
        body = [{"id": 1, "name": "Rex", "status": "sold"}, {"id": 2, "name": "Tom", "status": "sold"}]
        with patch.object(httpx.Client, "get", return_value=mock_response(json_data=body)) as mock_get:
            response = client.post("/query", json={"sql": "SELECT id FROM findByStatus WHERE status = 'sold'"})

        assert response.status_code == 200
        data = response.json()
        assert data["data"] == [{"id": 1}, {"id": 2}]
        assert data["total"] == 2
        assert data["error"] is None
        assert mock_get.call_args[1]["headers"]["Authorization"] == "Bearer secret"

    def test_validation_error_is_400(self, client):
        with patch.object(httpx.Client, "get") as mock_get:
            response = client.post("/query", json={"sql": "SELECT * FROM findByStatus WHERE name = 'x'"})

        assert response.status_code == 400
        data = response.json()
        assert "not available for filtering" in data["error"]
        assert data["element"] == "name"
        assert data["allowed"] == ["status"]
        assert data["suggestions"]
        mock_get.assert_not_called()

    def test_limit_over_maximum_names_limit(self, client):
        response = client.post("/query", json={"sql": "SELECT * FROM findByStatus WHERE status = 'sold' LIMIT 5000"})

        assert response.status_code == 400
        assert "exceeds maximum allowed limit of 1000" in response.json()["error"]
        assert response.json()["element"] == "5000"

    def test_unknown_table_is_400(self, client):
        response = client.post("/query", json={"sql": "SELECT * FROM nope"})
        assert response.status_code == 400
        assert "No SELECT table 'nope'" in response.json()["error"]

    def test_named_placeholder_wins_over_id(self, client, mock_response):
        with patch.object(httpx.Client, "delete", return_value=mock_response(status_code=204)) as mock_delete:
            response = client.post("/query", json={"sql": "DELETE FROM pet WHERE petId = 1 AND id = 2"})

        assert response.status_code == 200
        assert mock_delete.call_args[0][0] == "https://petstore.example.com/v2/pet/1"
        assert response.json()["warnings"] == [
            "Condition on 'id' ignored: DELETE targets a single resource"
        ]

    def test_delete_without_where_is_400(self, client):
        response = client.post("/query", json={"sql": "DELETE FROM pet"})
        assert response.status_code == 400
        assert response.json()["element"] == "WHERE"

    def test_upstream_error_is_reported_in_body(self, client, mock_response):
        with patch.object(httpx.Client, "get", return_value=mock_response(status_code=503, text="down")):
            response = client.post("/query", json={"sql": "SELECT * FROM findByStatus WHERE status = 'sold'"})

        assert response.status_code == 200
        data = response.json()
        assert "status 503" in data["error"]
        assert data["data"] == []

    def test_empty_sql_is_400(self, client):
        response = client.post("/query", json={"sql": ""})
        assert response.status_code == 400
        assert response.json()["data"] == []
        assert "Invalid request" in response.json()["error"]


class TestCatalogEndpoints:
    """Tests for grammar, capabilities and config endpoints."""

    def test_grammar_all(self, client):
        data = client.get("/grammar").json()
        assert set(data) == {"pet_post", "pet_put", "findByStatus", "pet", "pet_delete"}

    def test_grammar_one_table(self, client):
        data = client.get("/grammar", params={"table": "findByStatus"}).json()
        assert list(data) == ["findByStatus"]
        assert data["findByStatus"]["limit"]["max"] == 1000

    def test_grammar_unknown_table(self, client):
        response = client.get("/grammar", params={"table": "nope"})
        assert response.status_code == 404

    def test_capabilities(self, client):
        data = client.get("/capabilities").json()
        assert data["pet_delete"]["method"] == "DELETE"
        assert data["pet_delete"]["path"] == "/pet/{petId}"
        assert data["findByStatus"]["api"] == "petstore"

    def test_config_hides_tokens(self, client):
        response = client.get("/config")

        assert response.status_code == 200
        assert "secret" not in response.text
        assert response.json()["apis"][0]["auth"]["type"] == "bearer"

    def test_cors(self, client):
        response = client.options(
            "/query",
            headers={"Origin": "http://localhost:3000", "Access-Control-Request-Method": "POST"},
        )
        assert response.headers["access-control-allow-origin"] == "http://localhost:3000"
