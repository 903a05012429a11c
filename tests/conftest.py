"""Shared fixtures: sample API descriptions, grammars and mock HTTP responses."""

import copy
import json
from unittest.mock import Mock

import httpx
import pytest

from qrest.core.models import Grammar


PETSTORE_SWAGGER = {
    "swagger": "2.0",
    "info": {"title": "Petstore", "version": "1.0"},
    "host": "petstore.example.com",
    "basePath": "/v2",
    "schemes": ["https"],
    "paths": {
        "/pet": {
            "post": {
                "operationId": "addPet",
                "summary": "Add a new pet to the store",
                "parameters": [
                    {"in": "body", "name": "body", "schema": {"$ref": "#/definitions/Pet"}},
                ],
                "responses": {"200": {"description": "ok", "schema": {"$ref": "#/definitions/Pet"}}},
            },
            "put": {
                "operationId": "updatePet",
                "parameters": [
                    {"in": "body", "name": "body", "schema": {"$ref": "#/definitions/Pet"}},
                ],
                "responses": {"200": {"description": "ok", "schema": {"$ref": "#/definitions/Pet"}}},
            },
        },
        "/pet/findByStatus": {
            "get": {
                "operationId": "findPetsByStatus",
                "summary": "Finds Pets by status",
                "parameters": [
                    {
                        "name": "status",
                        "in": "query",
                        "required": True,
                        "type": "array",
                        "items": {"type": "string", "enum": ["available", "pending", "sold"]},
                    },
                ],
                "responses": {
                    "200": {
                        "description": "ok",
                        "schema": {"type": "array", "items": {"$ref": "#/definitions/Pet"}},
                    },
                },
            },
        },
        "/pet/{petId}": {
            "get": {
                "operationId": "getPetById",
                "parameters": [
                    {"name": "petId", "in": "path", "required": True, "type": "integer"},
                ],
                "responses": {"200": {"description": "ok", "schema": {"$ref": "#/definitions/Pet"}}},
            },
            "delete": {
                "operationId": "deletePet",
                "parameters": [
                    {"name": "api_key", "in": "header", "type": "string"},
                    {"name": "petId", "in": "path", "required": True, "type": "integer"},
                ],
                "responses": {"400": {"description": "Invalid ID supplied"}},
            },
        },
    },
    "definitions": {
        "Pet": {
            "type": "object",
            "properties": {
                "id": {"type": "integer"},
                "name": {"type": "string"},
                "status": {"type": "string"},
                "photoUrls": {"type": "array", "items": {"type": "string"}},
            },
        },
    },
}


USERS_OPENAPI = {
    "openapi": "3.0.3",
    "info": {"title": "Users", "version": "1.0"},
    "servers": [{"url": "https://api.example.com"}],
    "paths": {
        "/api/v1/users": {
            "get": {
                "operationId": "listUsers",
                "parameters": [
                    {"name": "age_gt", "in": "query", "schema": {"type": "integer"}},
                    {"name": "name_like", "in": "query", "schema": {"type": "string"}},
                    {"name": "role", "in": "query", "schema": {"type": "string", "enum": ["admin", "user"]}},
                    {"name": "created_date", "in": "query", "schema": {"type": "string", "format": "date"}},
                    {"name": "limit", "in": "query", "schema": {"type": "integer", "maximum": 500}},
                    {"name": "offset", "in": "query", "schema": {"type": "integer"}},
                    {"name": "sort", "in": "query", "schema": {"type": "string"}},
                ],
                "responses": {
                    "200": {
                        "description": "ok",
                        "content": {
                            "application/json": {
                                "schema": {"type": "array", "items": {"$ref": "#/components/schemas/User"}},
                            },
                        },
                    },
                },
            },
            "post": {
                "operationId": "createUser",
                "requestBody": {"$ref": "#/components/requestBodies/UserBody"},
                "responses": {"201": {"$ref": "#/components/responses/UserResponse"}},
            },
        },
        "/api/v1/users/{id}": {
            "parameters": [
                {"name": "id", "in": "path", "required": True, "schema": {"type": "integer"}},
            ],
            "get": {
                "operationId": "getUser",
                "responses": {"200": {"$ref": "#/components/responses/UserResponse"}},
            },
            "patch": {
                "operationId": "updateUser",
                "requestBody": {"$ref": "#/components/requestBodies/UserBody"},
                "responses": {"200": {"$ref": "#/components/responses/UserResponse"}},
            },
            "delete": {
                "operationId": "deleteUser",
                "responses": {"204": {"description": "deleted"}},
            },
        },
    },
    "components": {
        "schemas": {
            "User": {
                "type": "object",
                "properties": {
                    "id": {"type": "integer"},
                    "name": {"type": "string"},
                    "age": {"type": "integer"},
                    "role": {"type": "string"},
                    "email": {"type": "string"},
                },
            },
        },
        "requestBodies": {
            "UserBody": {
                "content": {"application/json": {"schema": {"$ref": "#/components/schemas/User"}}},
            },
        },
        "responses": {
            "UserResponse": {
                "description": "ok",
                "content": {"application/json": {"schema": {"$ref": "#/components/schemas/User"}}},
            },
        },
    },
}


@pytest.fixture
def petstore_spec():
    """Swagger 2.0 petstore document."""
    return copy.deepcopy(PETSTORE_SWAGGER)


@pytest.fixture
def users_spec():
    """OpenAPI 3 users document with operator-suffixed parameters."""
    return copy.deepcopy(USERS_OPENAPI)


@pytest.fixture
def find_by_status_grammar():
    """Grammar for the findByStatus table."""
    return Grammar(
        table_name="findByStatus",
        columns=("id", "name", "status"),
        filters={"status": ("=",)},
        orderable=("name",),
        max_limit=1000,
        default_limit=100,
    )


@pytest.fixture
def mock_response():
    """Factory for creating mock HTTP responses."""
    def _create(
        status_code: int = 200,
        json_data=None,
        text: str = None,
        content_type: str = "application/json",
    ):
        response = Mock(spec=httpx.Response)
        response.status_code = status_code
        response.headers = {"content-type": content_type}
        if json_data is not None:
            response.json.return_value = json_data
            response.text = json.dumps(json_data)
        elif text is not None:
            response.text = text
            response.json.side_effect = json.JSONDecodeError("Expecting value", text, 0)
        else:
            response.text = ""
            response.json.side_effect = json.JSONDecodeError("Expecting value", "", 0)
        response.content = response.text.encode()
        return response
    return _create
