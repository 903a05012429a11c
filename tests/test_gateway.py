"""Tests for the multi-API query gateway."""

from unittest.mock import patch

import httpx
import pytest

from qrest.catalog.gateway import QueryGateway
from qrest.catalog.translator import ValidationError
from qrest.core.config import APIConfig, Config, DefaultsConfig
from qrest.core.models import StatementKind


@pytest.fixture
def petstore_gateway(petstore_spec):
    config = Config(apis=[APIConfig(name="petstore", spec_inline=petstore_spec)])
    with QueryGateway(config) as gateway:
        yield gateway


@pytest.fixture
def multi_gateway(petstore_spec, users_spec):
    config = Config(apis=[
        APIConfig(name="petstore", spec_inline=petstore_spec),
        APIConfig(name="users", spec_inline=users_spec, auth={"type": "bearer", "token": "tok"}),
    ])
    with QueryGateway(config) as gateway:
        yield gateway


class TestLoad:
    """Tests for discovery across configured APIs."""

    def test_single_api_tables_are_not_namespaced(self, petstore_gateway):
        assert petstore_gateway.tables == ["pet_post", "pet_put", "findByStatus", "pet", "pet_delete"]
        assert petstore_gateway.capabilities["pet"].api_name == "petstore"

    def test_multiple_apis_are_namespaced(self, multi_gateway):
        tables = multi_gateway.tables
        assert "petstore_findByStatus" in tables
        assert "users_users" in tables
        assert "users_users_patch" in tables
        assert multi_gateway.capabilities["users_users"].api_name == "users"
        assert multi_gateway.grammars["petstore_findByStatus"].table_name == "petstore_findByStatus"

    def test_failed_api_is_recorded_and_skipped(self, tmp_path, petstore_spec):
        config = Config(apis=[
            APIConfig(name="broken", spec_path=str(tmp_path / "missing.json")),
            APIConfig(name="petstore", spec_inline=petstore_spec),
        ])
        gateway = QueryGateway(config).load()

        assert "broken" in gateway.failures
        assert "not found" in gateway.failures["broken"]
        assert "petstore_findByStatus" in gateway.tables

    def test_configured_limits_reach_grammars(self, petstore_spec):
        config = Config(
            apis=[APIConfig(name="petstore", spec_inline=petstore_spec)],
            defaults=DefaultsConfig(default_limit=20, max_limit=50),
        )
        grammar = QueryGateway(config).load().grammars["findByStatus"]
        assert grammar.default_limit == 20
        assert grammar.max_limit == 50

    def test_base_url_override(self, petstore_spec):
        config = Config(apis=[
            APIConfig(name="petstore", spec_inline=petstore_spec, base_url="http://localhost:8080"),
        ])
        capability = QueryGateway(config).load().capabilities["findByStatus"]
        assert capability.url == "http://localhost:8080/pet/findByStatus"

    def test_load_is_idempotent(self, petstore_gateway):
        petstore_gateway.load()
        first = dict(petstore_gateway.grammars)
        petstore_gateway.load()
        assert petstore_gateway.grammars == first


class TestRouting:
    """Tests for statement-to-table routing."""

    @pytest.mark.parametrize("sql,table", [
        ("SELECT * FROM findByStatus", "findByStatus"),
        ("INSERT INTO pet (name) VALUES ('Rex')", "pet_post"),
        ("UPDATE pet SET name = 'Rex' WHERE id = 1", "pet_put"),
        ("DELETE FROM pet WHERE id = 1", "pet_delete"),
        ("DELETE FROM pet_delete WHERE id = 1", "pet_delete"),
    ])
    def test_resolve_table(self, petstore_gateway, sql, table):
        assert petstore_gateway.resolve_table(sql) == table

    def test_update_prefers_patch(self, users_spec):
        users_spec["paths"]["/api/v1/users/{id}"]["put"] = {
            "responses": {"200": {"description": "ok"}},
        }
        gateway = QueryGateway(Config(apis=[APIConfig(name="users", spec_inline=users_spec)]))
        assert gateway.resolve_table("UPDATE users SET name = 'x' WHERE id = 1") == "users_patch"

    def test_unknown_table(self, petstore_gateway):
        with pytest.raises(LookupError, match="No SELECT table 'nope'"):
            petstore_gateway.resolve_table("SELECT * FROM nope")

    def test_write_to_read_only_resource(self, petstore_gateway):
        with pytest.raises(LookupError, match="Available tables: pet_post"):
            petstore_gateway.resolve_table("INSERT INTO findByStatus (name) VALUES ('x')")

    def test_parse_returns_capability_and_query(self, petstore_gateway):
        capability, query = petstore_gateway.parse("DELETE FROM pet WHERE id = 3")
        assert capability.method == "DELETE"
        assert query.kind is StatementKind.DELETE
        assert query.conditions[0].value == 3


class TestExecute:
    """Tests for end-to-end execution through the gateway."""

    def test_select(self, petstore_gateway, mock_response):
        body = [{"id": 1, "name": "Rex", "status": "sold"}]
        with patch.object(httpx.Client, "get", return_value=mock_response(json_data=body)) as mock_get:
            result = petstore_gateway.execute("SELECT name FROM findByStatus WHERE status = 'sold'")

        assert mock_get.call_args[0][0] == "https://petstore.example.com/v2/pet/findByStatus?status=sold"
        assert result.rows == [{"name": "Rex"}]
        assert result.warnings == []

    def test_update_routes_to_put(self, petstore_gateway, mock_response):
        with patch.object(httpx.Client, "put", return_value=mock_response(json_data={"id": 5})) as mock_put:
            result = petstore_gateway.execute("UPDATE pet SET name = 'Rex' WHERE id = 5")

        assert mock_put.call_args[0][0] == "https://petstore.example.com/v2/pet/5"
        assert mock_put.call_args[1]["json"] == {"name": "Rex"}
        assert result.ok

    def test_namespaced_delete_uses_api_credentials(self, multi_gateway, mock_response):
        with patch.object(httpx.Client, "delete", return_value=mock_response(status_code=204)) as mock_delete:
            result = multi_gateway.execute("DELETE FROM users_users WHERE id = 7")

        assert mock_delete.call_args[0][0] == "https://api.example.com/api/v1/users/7"
        assert mock_delete.call_args[1]["headers"]["Authorization"] == "Bearer tok"
        assert result.ok

    def test_validation_happens_before_http(self, petstore_gateway):
        with patch.object(httpx.Client, "get") as mock_get:
            with pytest.raises(ValidationError, match="not available for filtering"):
                petstore_gateway.execute("SELECT * FROM findByStatus WHERE name = 'Rex'")
        mock_get.assert_not_called()


class TestIntrospection:
    """Tests for grammar and suggestion lookups."""

    def test_grammar_overview_all(self, petstore_gateway):
        overview = petstore_gateway.grammar_overview()
        assert set(overview) == set(petstore_gateway.tables)
        assert overview["findByStatus"]["where"] == {"status": ["="]}

    def test_grammar_overview_one_table(self, petstore_gateway):
        assert list(petstore_gateway.grammar_overview("pet_delete")) == ["pet_delete"]

    def test_grammar_overview_unknown_table(self, petstore_gateway):
        with pytest.raises(LookupError, match="Table 'nope' not found"):
            petstore_gateway.grammar_overview("nope")

    def test_suggestions_for(self, petstore_gateway):
        suggestions = petstore_gateway.suggestions_for("SELECT * FROM findByStatus WHERE name = 'x'")
        assert any("pagination" in s for s in suggestions)

    def test_suggestions_for_unroutable_statement(self, petstore_gateway):
        assert petstore_gateway.suggestions_for("SELECT * FROM nope") == []
        assert petstore_gateway.suggestions_for("not sql at all") == []
