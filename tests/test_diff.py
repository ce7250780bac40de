"""Tests for specsync.diff: change detection and breaking-change classification."""

from __future__ import annotations

import copy
from typing import Any

import pytest

from specsync.diff import diff_specs, summarize
from specsync.diff.rules import ROLE_RULES, classify_for_roles, is_format_widening
from specsync.models import ChangeKind, Severity
from specsync.parser.normalizer import build_document


def _diff(old: dict[str, Any], new: dict[str, Any], **kwargs: Any) -> list:
    return diff_specs(build_document(old), build_document(new), **kwargs)


@pytest.fixture
def old(petstore_30_raw: dict[str, Any]) -> dict[str, Any]:
    return petstore_30_raw


@pytest.fixture
def new(petstore_30_raw: dict[str, Any]) -> dict[str, Any]:
    return copy.deepcopy(petstore_30_raw)


def _schemas(spec: dict[str, Any]) -> dict[str, Any]:
    return spec["components"]["schemas"]


# ---------------------------------------------------------------------------
# Basics
# ---------------------------------------------------------------------------


class TestBasics:
    def test_identical_documents_have_no_changes(self, old: dict[str, Any], new: dict[str, Any]) -> None:
        assert _diff(old, new) == []

    def test_key_order_does_not_matter(self, old: dict[str, Any], new: dict[str, Any]) -> None:
        new["paths"] = dict(reversed(list(new["paths"].items())))
        new["components"]["schemas"] = dict(reversed(list(_schemas(new).items())))
        assert _diff(old, new) == []

    def test_changes_are_sorted_by_path(self, old: dict[str, Any], new: dict[str, Any]) -> None:
        del new["paths"]["/pets"]
        del _schemas(new)["User"]["properties"]["email"]
        _schemas(new)["Status"]["enum"].append("banned")
        changes = _diff(old, new)
        paths = [change.path for change in changes]
        assert paths == sorted(paths)
        assert len(changes) == 3

    def test_result_is_deterministic(self, old: dict[str, Any], new: dict[str, Any]) -> None:
        del _schemas(new)["Address"]["properties"]["city"]
        new["paths"]["/users"]["get"]["deprecated"] = True
        assert _diff(old, new) == _diff(old, new)


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


class TestEndpoints:
    def test_removed_endpoint_is_breaking(self, old: dict[str, Any], new: dict[str, Any]) -> None:
        del new["paths"]["/pets"]
        (change,) = _diff(old, new)
        assert change.path == "endpoints/GET /pets"
        assert change.kind == ChangeKind.REMOVED
        assert change.is_breaking

    def test_added_endpoint_is_not_breaking(self, old: dict[str, Any], new: dict[str, Any]) -> None:
        new["paths"]["/pets"]["post"] = {"operationId": "addPet", "responses": {"201": {"description": "ok"}}}
        (change,) = _diff(old, new)
        assert change.rule == "endpoint-added"
        assert change.severity == Severity.NON_BREAKING

    def test_required_parameter_added(self, old: dict[str, Any], new: dict[str, Any]) -> None:
        new["paths"]["/pets"]["get"]["parameters"] = [
            {"name": "kind", "in": "query", "required": True, "schema": {"type": "string"}}
        ]
        (change,) = _diff(old, new)
        assert change.path == "endpoints/GET /pets/parameters/query:kind"
        assert change.rule == "parameter-added-required"
        assert change.is_breaking

    def test_optional_parameter_became_required(self, old: dict[str, Any], new: dict[str, Any]) -> None:
        new["paths"]["/users"]["get"]["parameters"][0]["required"] = True
        (change,) = _diff(old, new)
        assert change.path == "endpoints/GET /users/parameters/query:limit/required"
        assert change.is_breaking

    def test_response_status_removed(self, old: dict[str, Any], new: dict[str, Any]) -> None:
        del new["paths"]["/users/{userId}"]["get"]["responses"]["404"]
        (change,) = _diff(old, new)
        assert change.path == "endpoints/GET /users/{userId}/responses/404"
        assert change.rule == "response-removed"

    def test_response_reference_changed(self, old: dict[str, Any], new: dict[str, Any]) -> None:
        responses = new["paths"]["/users/{userId}"]["get"]["responses"]
        responses["200"]["content"]["application/json"]["schema"] = {"$ref": "#/components/schemas/Pet"}
        (change,) = _diff(old, new)
        assert change.path == "endpoints/GET /users/{userId}/responses/200/schema"
        assert change.rule == "reference-changed"
        assert change.old_value == "$ref:User"
        assert change.new_value == "$ref:Pet"

    def test_request_body_became_optional(self, old: dict[str, Any], new: dict[str, Any]) -> None:
        new["paths"]["/users"]["post"]["requestBody"]["required"] = False
        (change,) = _diff(old, new)
        assert change.path == "endpoints/POST /users/requestBody/required"
        assert not change.is_breaking

    def test_deprecation_is_not_breaking(self, old: dict[str, Any], new: dict[str, Any]) -> None:
        new["paths"]["/pets"]["get"]["deprecated"] = True
        (change,) = _diff(old, new)
        assert change.rule == "endpoint-deprecated"
        assert not change.is_breaking


# ---------------------------------------------------------------------------
# Schemas and roles
# ---------------------------------------------------------------------------


class TestSchemas:
    def test_removed_response_field_is_the_only_breaking_change(
        self, old: dict[str, Any], new: dict[str, Any]
    ) -> None:
        user = _schemas(new)["User"]
        del user["properties"]["name"]
        user["required"] = ["id"]
        changes = _diff(old, new)
        assert len(changes) == 1
        change = changes[0]
        assert change.path == "schemas/User/properties/name"
        assert change.kind == ChangeKind.REMOVED
        assert change.rule == "field-removed.response"
        assert change.is_breaking

    def test_optional_field_added_has_no_breaking_changes(
        self, old: dict[str, Any], new: dict[str, Any]
    ) -> None:
        _schemas(new)["User"]["properties"]["nickname"] = {"type": "string"}
        assert _diff(old, new, breaking_only=True) == []
        (change,) = _diff(old, new)
        assert change.rule == "optional-field-added"

    def test_required_request_field_added_is_breaking(
        self, old: dict[str, Any], new: dict[str, Any]
    ) -> None:
        new_user = _schemas(new)["NewUser"]
        new_user["properties"]["password"] = {"type": "string"}
        new_user["required"].append("password")
        (change,) = _diff(old, new)
        assert change.rule == "required-field-added.request"
        assert change.is_breaking
        assert change.flags == []

    def test_required_response_field_added_is_flagged(
        self, old: dict[str, Any], new: dict[str, Any]
    ) -> None:
        user = _schemas(new)["User"]
        user["properties"]["createdAt"] = {"type": "string", "format": "date-time"}
        user["required"].append("createdAt")
        (change,) = _diff(old, new)
        assert change.rule == "required-field-added.response"
        assert not change.is_breaking
        assert change.flags == ["strict-deserializer"]

    def test_field_in_both_roles_is_mixed(self, old: dict[str, Any], new: dict[str, Any]) -> None:
        for spec in (old, new):
            _schemas(spec)["NewUser"]["properties"]["address"] = {"$ref": "#/components/schemas/Address"}
        del _schemas(new)["Address"]["properties"]["city"]
        (change,) = _diff(old, new)
        assert change.rule == "field-removed.mixed"
        assert change.severity == Severity.BREAKING
        assert change.interpretations == {
            "request": Severity.NON_BREAKING,
            "response": Severity.BREAKING,
        }

    def test_unused_schema_is_treated_as_response(
        self, old: dict[str, Any], new: dict[str, Any]
    ) -> None:
        del _schemas(new)["Node"]["properties"]["value"]
        (change,) = _diff(old, new)
        assert change.rule == "field-removed.response"

    def test_enum_value_removed_and_added(self, old: dict[str, Any], new: dict[str, Any]) -> None:
        _schemas(new)["Status"]["enum"] = ["active", "suspended"]
        changes = _diff(old, new)
        assert [(c.path, c.rule, c.severity) for c in changes] == [
            ('schemas/Status/enum/"disabled"', "enum-value-removed", Severity.BREAKING),
            ('schemas/Status/enum/"suspended"', "enum-value-added", Severity.NON_BREAKING),
        ]

    def test_integer_to_number_is_widening(self, old: dict[str, Any], new: dict[str, Any]) -> None:
        _schemas(new)["User"]["properties"]["id"] = {"type": "number", "format": "int64"}
        (change,) = _diff(old, new)
        assert change.path == "schemas/User/properties/id/type"
        assert change.rule == "type-widened"
        assert not change.is_breaking

    def test_number_to_integer_is_breaking(self, old: dict[str, Any], new: dict[str, Any]) -> None:
        _schemas(old)["User"]["properties"]["id"] = {"type": "number", "format": "int64"}
        (change,) = _diff(old, new)
        assert change.rule == "type-changed"
        assert change.is_breaking

    def test_nullable_added_to_response_schema(self, old: dict[str, Any], new: dict[str, Any]) -> None:
        _schemas(new)["User"]["properties"]["email"]["nullable"] = True
        (change,) = _diff(old, new)
        assert change.path == "schemas/User/properties/email/nullable"
        assert change.rule == "nullable-added.response"
        assert change.is_breaking

    def test_schema_removed(self, old: dict[str, Any], new: dict[str, Any]) -> None:
        del _schemas(new)["Tag"]
        changes = _diff(old, new)
        assert ("schemas/Tag", "schema-removed") in [(c.path, c.rule) for c in changes]

    def test_all_of_member_added_is_breaking(self, old: dict[str, Any], new: dict[str, Any]) -> None:
        _schemas(old)["Dog"] = {"allOf": [{"$ref": "#/components/schemas/Pet"}]}
        _schemas(new)["Dog"] = {
            "allOf": [{"$ref": "#/components/schemas/Pet"}, {"$ref": "#/components/schemas/Tag"}]
        }
        (change,) = _diff(old, new)
        assert change.path == "schemas/Dog/allOf/$ref:Tag"
        assert change.rule == "all-of-member-added"
        assert change.is_breaking


# ---------------------------------------------------------------------------
# Rules and summary
# ---------------------------------------------------------------------------


class TestRules:
    def test_every_role_rule_covers_both_roles(self) -> None:
        for outcomes in ROLE_RULES.values():
            assert set(outcomes) == {"request", "response"}

    def test_classify_unused_defaults_to_response(self) -> None:
        rule_id, severity, interpretations, flags = classify_for_roles("field-removed", set())
        assert rule_id == "field-removed.response"
        assert severity == Severity.BREAKING
        assert interpretations == {}
        assert flags == []

    @pytest.mark.parametrize(
        ("old", "new", "widened"),
        [("int32", "int64", True), ("float", "double", True), ("date", None, True), ("int64", "int32", False)],
    )
    def test_format_widening(self, old: str, new: str | None, widened: bool) -> None:
        assert is_format_widening(old, new) is widened


class TestSummarize:
    def test_counts(self, old: dict[str, Any], new: dict[str, Any]) -> None:
        del new["paths"]["/pets"]
        _schemas(new)["User"]["properties"]["nickname"] = {"type": "string"}
        summary = summarize(_diff(old, new))
        assert summary == {
            "total": 2,
            "breaking": 1,
            "non_breaking": 1,
            "by_kind": {"added": 1, "removed": 1, "modified": 0},
            "has_breaking_changes": True,
        }

    def test_empty(self) -> None:
        summary = summarize([])
        assert summary["total"] == 0
        assert summary["has_breaking_changes"] is False
