"""Shared test fixtures for specsync.

Provides raw spec dictionaries, helpers that write them to disk, an
isolated cache store, and CLI helpers.  These fixtures are automatically
discovered by pytest and available to all test modules without explicit
imports.
"""

from __future__ import annotations

import copy
import json
from pathlib import Path
from typing import Any, Callable

import pytest
import yaml
from typer.testing import CliRunner

from specsync.cache.store import CacheStore
from specsync.models import SpecDocument
from specsync.output import reset_output
from specsync.parser.normalizer import build_document


def _ref(name: str) -> dict[str, str]:
    return {"$ref": f"#/components/schemas/{name}"}


def _json_content(schema: dict[str, Any]) -> dict[str, Any]:
    return {"application/json": {"schema": schema}}


PETSTORE_30: dict[str, Any] = {
    "openapi": "3.0.3",
    "info": {"title": "Petstore", "version": "1.0.0", "description": "Sample pet store API"},
    "servers": [{"url": "https://api.example.com/v1"}],
    "tags": [{"name": "users"}, {"name": "pets"}],
    "paths": {
        "/users": {
            "get": {
                "operationId": "listUsers",
                "summary": "List users",
                "tags": ["users"],
                "parameters": [
                    {"name": "limit", "in": "query", "schema": {"type": "integer", "format": "int32"}}
                ],
                "responses": {
                    "200": {
                        "description": "OK",
                        "content": _json_content({"type": "array", "items": _ref("User")}),
                    }
                },
            },
            "post": {
                "operationId": "createUser",
                "summary": "Create a user",
                "tags": ["users"],
                "requestBody": {"required": True, "content": _json_content(_ref("NewUser"))},
                "responses": {
                    "201": {"description": "Created", "content": _json_content(_ref("User"))}
                },
            },
        },
        "/users/{userId}": {
            "parameters": [
                {"name": "userId", "in": "path", "required": True, "schema": {"type": "string"}}
            ],
            "get": {
                "operationId": "getUser",
                "tags": ["users"],
                "responses": {
                    "200": {"description": "OK", "content": _json_content(_ref("User"))},
                    "404": {"description": "Not found"},
                },
            },
        },
        "/pets": {
            "get": {
                "operationId": "listPets",
                "tags": ["Pets"],
                "responses": {
                    "200": {
                        "description": "OK",
                        "content": _json_content({"type": "array", "items": _ref("Pet")}),
                    }
                },
            }
        },
    },
    "components": {
        "schemas": {
            "User": {
                "type": "object",
                "required": ["id", "name"],
                "properties": {
                    "id": {"type": "integer", "format": "int64"},
                    "name": {"type": "string"},
                    "email": {"type": "string", "format": "email"},
                    "address": _ref("Address"),
                    "status": _ref("Status"),
                },
            },
            "NewUser": {
                "type": "object",
                "required": ["name"],
                "properties": {"name": {"type": "string"}, "email": {"type": "string"}},
            },
            "Address": {
                "type": "object",
                "properties": {"street": {"type": "string"}, "city": {"type": "string"}},
            },
            "Status": {"type": "string", "enum": ["active", "disabled"]},
            "Pet": {
                "type": "object",
                "required": ["name"],
                "properties": {
                    "name": {"type": "string"},
                    "owner": _ref("User"),
                    "tags": {"type": "array", "items": _ref("Tag")},
                },
            },
            "Tag": {"type": "object", "properties": {"label": {"type": "string"}}},
            "Node": {
                "type": "object",
                "properties": {
                    "value": {"type": "string"},
                    "children": {"type": "array", "items": _ref("Node")},
                },
            },
        }
    },
}


SWAGGER_20: dict[str, Any] = {
    "swagger": "2.0",
    "info": {"title": "Legacy Pets", "version": "2.1.0"},
    "host": "legacy.example.com",
    "basePath": "/api",
    "schemes": ["https"],
    "paths": {
        "/pets/{petId}": {
            "get": {
                "operationId": "getPet",
                "parameters": [{"name": "petId", "in": "path", "required": True, "type": "string"}],
                "responses": {"200": {"description": "OK", "schema": {"$ref": "#/definitions/Pet"}}},
            }
        },
        "/pets": {
            "post": {
                "operationId": "addPet",
                "parameters": [
                    {"name": "body", "in": "body", "required": True, "schema": {"$ref": "#/definitions/Pet"}}
                ],
                "responses": {"201": {"description": "Created"}},
            }
        },
    },
    "definitions": {
        "Pet": {
            "type": "object",
            "required": ["name"],
            "properties": {"name": {"type": "string"}, "tag": {"type": "string", "x-nullable": True}},
        }
    },
    "securityDefinitions": {"apiKey": {"type": "apiKey", "name": "X-API-Key", "in": "header"}},
}


OPENAPI_31: dict[str, Any] = {
    "openapi": "3.1.0",
    "info": {"title": "Components Only", "version": "0.1.0"},
    "components": {
        "schemas": {
            "Item": {
                "type": "object",
                "properties": {
                    "id": {"type": "string"},
                    "note": {"type": ["string", "null"]},
                },
            }
        }
    },
}


# ---------------------------------------------------------------------------
# Auto-reset global output state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Reset the global OutputManager after every test.

    The OutputManager caches references to sys.stdout/sys.stderr at
    creation time.  When Typer's CliRunner redirects those streams during
    a test and the test finishes, the cached references become stale
    ("I/O operation on closed file").  Resetting forces a fresh manager
    to be created on next use.
    """
    yield
    reset_output()


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep host SPECSYNC_* variables out of every test."""
    for name in ("SPECSYNC_TTL_SECONDS", "SPECSYNC_TIMEOUT", "SPECSYNC_DEFAULT_LIMIT", "NO_COLOR"):
        monkeypatch.delenv(name, raising=False)


# ---------------------------------------------------------------------------
# Raw spec fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def petstore_30_raw() -> dict[str, Any]:
    return copy.deepcopy(PETSTORE_30)


@pytest.fixture
def swagger_20_raw() -> dict[str, Any]:
    return copy.deepcopy(SWAGGER_20)


@pytest.fixture
def openapi_31_raw() -> dict[str, Any]:
    return copy.deepcopy(OPENAPI_31)


@pytest.fixture
def petstore_doc(petstore_30_raw: dict[str, Any]) -> SpecDocument:
    """The petstore fixture normalized into the IR."""
    return build_document(petstore_30_raw, source="petstore.json")


# ---------------------------------------------------------------------------
# Files, stores and CLI
# ---------------------------------------------------------------------------


@pytest.fixture
def write_spec(tmp_path: Path) -> Callable[..., Path]:
    """Return a helper writing a spec dict to ``tmp_path`` as JSON or YAML."""

    def _write(spec: dict[str, Any], name: str = "openapi.json") -> Path:
        path = tmp_path / name
        if name.endswith((".yaml", ".yml")):
            path.write_text(yaml.safe_dump(spec, sort_keys=False), encoding="utf-8")
        else:
            path.write_text(json.dumps(spec, indent=2), encoding="utf-8")
        return path

    return _write


@pytest.fixture
def petstore_file(write_spec: Callable[..., Path], petstore_30_raw: dict[str, Any]) -> Path:
    return write_spec(petstore_30_raw, "petstore.json")


@pytest.fixture
def project_dir(tmp_path: Path) -> Path:
    path = tmp_path / "project"
    path.mkdir()
    return path


@pytest.fixture
def store(project_dir: Path) -> CacheStore:
    """An opened cache store rooted in an isolated project directory."""
    cache = CacheStore(project_dir)
    cache.open()
    yield cache
    cache.close()


@pytest.fixture
def cli_runner() -> CliRunner:
    return CliRunner()
