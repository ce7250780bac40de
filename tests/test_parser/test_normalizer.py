"""Tests for specsync.parser.normalizer."""

from __future__ import annotations

import json
from typing import Any

import pytest

from specsync.exceptions import SpecParseError
from specsync.models import HTTPMethod, ParameterLocation, SchemaKind, SpecVersion
from specsync.parser.normalizer import build_document, normalize


# ---------------------------------------------------------------------------
# OpenAPI 3.0
# ---------------------------------------------------------------------------


class TestOpenAPI30:
    def test_metadata(self, petstore_30_raw: dict[str, Any]) -> None:
        doc = build_document(petstore_30_raw, source="petstore.json")
        assert doc.spec_version == SpecVersion.OPENAPI_30
        assert doc.openapi_version == "3.0.3"
        assert doc.info.title == "Petstore"
        assert doc.info.version == "1.0.0"
        assert [server.url for server in doc.servers] == ["https://api.example.com/v1"]
        assert doc.warnings == []

    def test_endpoints_keyed_in_document_order(self, petstore_30_raw: dict[str, Any]) -> None:
        doc = build_document(petstore_30_raw)
        assert list(doc.endpoints) == [
            "GET /users",
            "POST /users",
            "GET /users/{userId}",
            "GET /pets",
        ]
        endpoint = doc.endpoints["POST /users"]
        assert endpoint.method == HTTPMethod.POST
        assert endpoint.operation_id == "createUser"

    def test_component_refs_stay_named(self, petstore_30_raw: dict[str, Any]) -> None:
        doc = build_document(petstore_30_raw)
        user = doc.schemas["User"]
        assert user.kind == SchemaKind.OBJECT
        assert user.properties["address"].ref == "Address"
        assert user.properties["name"].inline is not None
        assert user.required == ["id", "name"]

    def test_recursive_schema_is_not_expanded(self, petstore_30_raw: dict[str, Any]) -> None:
        doc = build_document(petstore_30_raw)
        children = doc.schemas["Node"].properties["children"].inline
        assert children is not None
        assert children.kind == SchemaKind.ARRAY
        assert children.items is not None and children.items.ref == "Node"

    def test_path_level_parameters_are_merged(self, petstore_30_raw: dict[str, Any]) -> None:
        doc = build_document(petstore_30_raw)
        params = doc.endpoints["GET /users/{userId}"].parameters
        assert [(p.name, p.location, p.required) for p in params] == [
            ("userId", ParameterLocation.PATH, True)
        ]

    def test_operation_parameter_overrides_path_level(self, petstore_30_raw: dict[str, Any]) -> None:
        petstore_30_raw["paths"]["/users/{userId}"]["get"]["parameters"] = [
            {"name": "userId", "in": "path", "required": True, "schema": {"type": "integer"}}
        ]
        doc = build_document(petstore_30_raw)
        (param,) = doc.endpoints["GET /users/{userId}"].parameters
        assert param.schema_.inline.type == "integer"

    def test_request_body_and_responses(self, petstore_30_raw: dict[str, Any]) -> None:
        doc = build_document(petstore_30_raw)
        endpoint = doc.endpoints["POST /users"]
        assert endpoint.request_body is not None
        assert endpoint.request_body.required is True
        assert endpoint.request_body.schema_.ref == "NewUser"
        assert endpoint.responses["201"].schema_.ref == "User"
        assert doc.endpoints["GET /users/{userId}"].responses["404"].schema_ is None

    def test_tags_collects_declared_then_used(self, petstore_30_raw: dict[str, Any]) -> None:
        doc = build_document(petstore_30_raw)
        assert doc.tags == ["users", "pets", "Pets"]

    def test_missing_info_defaults(self) -> None:
        doc = build_document({"openapi": "3.0.0", "paths": {}})
        assert doc.info.title == "Untitled API"
        assert doc.info.version == "0.0.0"
        assert any(issue.pointer == "/info" for issue in doc.warnings)

    def test_unsupported_keywords_are_recorded(self) -> None:
        raw = {
            "openapi": "3.0.0",
            "info": {"title": "t", "version": "1"},
            "paths": {},
            "components": {"schemas": {"NotString": {"not": {"type": "string"}}}},
        }
        doc = build_document(raw)
        assert doc.schemas["NotString"].unsupported == ["not"]


# ---------------------------------------------------------------------------
# OpenAPI 3.1
# ---------------------------------------------------------------------------


class TestOpenAPI31:
    def test_components_only_document_is_valid(self, openapi_31_raw: dict[str, Any]) -> None:
        doc = build_document(openapi_31_raw)
        assert doc.spec_version == SpecVersion.OPENAPI_31
        assert doc.endpoints == {}
        assert doc.warnings == []

    def test_type_array_with_null_is_nullable(self, openapi_31_raw: dict[str, Any]) -> None:
        doc = build_document(openapi_31_raw)
        note = doc.schemas["Item"].properties["note"].inline
        assert note.type == "string"
        assert note.nullable is True


# ---------------------------------------------------------------------------
# normalize() and strictness
# ---------------------------------------------------------------------------


class TestNormalize:
    def test_hash_is_of_raw_bytes(self, petstore_30_raw: dict[str, Any]) -> None:
        compact = json.dumps(petstore_30_raw).encode()
        pretty = json.dumps(petstore_30_raw, indent=2).encode()
        first = normalize(compact, hint="json")
        second = normalize(compact, hint="json")
        third = normalize(pretty, hint="json")
        assert first.spec_hash == second.spec_hash
        assert first.spec_hash != third.spec_hash
        assert first.endpoints == third.endpoints

    def test_records_source(self, petstore_30_raw: dict[str, Any]) -> None:
        doc = normalize(json.dumps(petstore_30_raw), source="https://example.com/spec.json")
        assert doc.source == "https://example.com/spec.json"

    def test_lenient_mode_collects_every_violation(self) -> None:
        raw = {
            "openapi": "3.0.0",
            "info": {"title": "t"},
            "paths": {
                "/items/{id}": {
                    "get": {
                        "responses": {
                            "200": {
                                "description": "ok",
                                "content": {
                                    "application/json": {
                                        "schema": {"$ref": "#/components/schemas/Missing"}
                                    }
                                },
                            }
                        }
                    }
                }
            },
        }
        doc = build_document(raw)
        pointers = [issue.pointer for issue in doc.warnings]
        assert "/info/version" in pointers
        assert "/paths/~1items~1{id}/get" in pointers
        assert any(pointer.endswith("/$ref") for pointer in pointers)

    def test_strict_mode_raises_with_all_violations(self) -> None:
        raw = {"openapi": "3.0.0", "info": {"title": "t"}}
        with pytest.raises(SpecParseError) as exc_info:
            build_document(raw, strict=True)
        error = exc_info.value
        assert error.condition == "validation"
        assert {v["pointer"] for v in error.violations} == {"/info/version", "/paths"}

    def test_wrong_value_type_raises(self) -> None:
        raw = {
            "openapi": "3.0.0",
            "info": {"title": "t", "version": "1"},
            "paths": {"/x": {"get": {"operationId": ["not", "a", "string"], "responses": {}}}},
        }
        with pytest.raises(SpecParseError) as exc_info:
            build_document(raw)
        assert exc_info.value.condition == "validation"


class TestMalformedShapes:
    def _doc(self, paths: dict[str, Any], schemas: dict[str, Any] | None = None) -> dict[str, Any]:
        raw: dict[str, Any] = {
            "openapi": "3.0.3",
            "info": {"title": "t", "version": "1"},
            "paths": paths,
        }
        if schemas is not None:
            raw["components"] = {"schemas": schemas}
        return raw

    def test_boolean_required_on_property_is_a_violation(self) -> None:
        raw = self._doc(
            {},
            {"Item": {"type": "object", "properties": {"id": {"type": "integer", "required": True}}}},
        )
        doc = build_document(raw)
        item = doc.schemas["Item"]
        assert item.kind == SchemaKind.OBJECT
        assert item.properties["id"].inline.required == []
        assert [issue.pointer for issue in doc.warnings] == [
            "/components/schemas/Item/properties/id/required"
        ]

    def test_boolean_required_fails_strict_mode(self) -> None:
        raw = self._doc({}, {"Item": {"type": "object", "required": True}})
        with pytest.raises(SpecParseError) as exc_info:
            build_document(raw, strict=True)
        assert exc_info.value.pointer == "/components/schemas/Item/required"

    def test_scalar_operation_tags_are_not_split(self) -> None:
        raw = self._doc({"/pets": {"get": {"tags": "pets", "responses": {}}}})
        doc = build_document(raw)
        assert doc.endpoints["GET /pets"].tags == []
        assert doc.tags == []
        assert [issue.pointer for issue in doc.warnings] == ["/paths/~1pets/get/tags"]

    def test_scalar_document_tags(self) -> None:
        raw = self._doc({})
        raw["tags"] = "pets"
        doc = build_document(raw)
        assert doc.tags == []
        assert [issue.pointer for issue in doc.warnings] == ["/tags"]


class TestPathParameterPointers:
    def test_path_level_parameter_points_at_path_item(self) -> None:
        raw = {
            "openapi": "3.0.3",
            "info": {"title": "t", "version": "1"},
            "paths": {
                "/pets": {
                    "parameters": [
                        {"name": "petId", "in": "path", "required": True, "schema": {"type": "string"}}
                    ],
                    "get": {
                        "parameters": [{"name": "limit", "in": "query", "schema": {"type": "integer"}}],
                        "responses": {},
                    },
                }
            },
        }
        doc = build_document(raw)
        assert [issue.pointer for issue in doc.warnings] == ["/paths/~1pets/parameters/0"]

    def test_swagger2_pointer_skips_body_parameters(self, swagger_20_raw: dict[str, Any]) -> None:
        swagger_20_raw["paths"]["/pets"]["post"]["parameters"].append(
            {"name": "petId", "in": "path", "required": True, "type": "string"}
        )
        doc = build_document(swagger_20_raw)
        assert [issue.pointer for issue in doc.warnings] == ["/paths/~1pets/post/parameters/1"]
