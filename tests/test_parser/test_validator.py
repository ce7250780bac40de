"""Tests for specsync.parser.validator and specsync.parser.resolver."""

from __future__ import annotations

from typing import Any

import pytest

from specsync.exceptions import SpecParseError
from specsync.models import SpecVersion, ValidationIssue
from specsync.parser.resolver import (
    follow_ref,
    iter_refs,
    join_pointer,
    resolve_pointer,
    schema_name_from_ref,
)
from specsync.parser.validator import (
    check_path_parameters,
    check_refs,
    check_required_sections,
    template_parameters,
)


# ---------------------------------------------------------------------------
# Required sections
# ---------------------------------------------------------------------------


class TestRequiredSections:
    def test_complete_document(self) -> None:
        issues: list[ValidationIssue] = []
        check_required_sections(
            {"info": {"title": "t", "version": "1"}, "paths": {}}, SpecVersion.OPENAPI_30, issues
        )
        assert issues == []

    def test_missing_paths_in_30(self) -> None:
        issues: list[ValidationIssue] = []
        check_required_sections({"info": {"title": "t", "version": "1"}}, SpecVersion.OPENAPI_30, issues)
        assert [issue.pointer for issue in issues] == ["/paths"]

    def test_31_accepts_webhooks_instead_of_paths(self) -> None:
        issues: list[ValidationIssue] = []
        check_required_sections(
            {"info": {"title": "t", "version": "1"}, "webhooks": {}}, SpecVersion.OPENAPI_31, issues
        )
        assert issues == []

    def test_31_requires_one_of_the_sections(self) -> None:
        issues: list[ValidationIssue] = []
        check_required_sections({"info": {"title": "t", "version": "1"}}, SpecVersion.OPENAPI_31, issues)
        assert len(issues) == 1
        assert "webhooks" in issues[0].message

    def test_paths_must_be_object(self) -> None:
        issues: list[ValidationIssue] = []
        check_required_sections(
            {"info": {"title": "t", "version": "1"}, "paths": []}, SpecVersion.OPENAPI_30, issues
        )
        assert issues[0].message == "'paths' must be an object"


# ---------------------------------------------------------------------------
# Path parameters
# ---------------------------------------------------------------------------


class TestPathParameters:
    def test_template_parameters(self) -> None:
        assert template_parameters("/orgs/{org}/repos/{repo}") == ["org", "repo"]

    def test_matching_declarations(self) -> None:
        issues: list[ValidationIssue] = []
        declared = [("/paths/~1pets~1{petId}/get/parameters/0", "petId")]
        check_path_parameters("/pets/{petId}", declared, "/paths/~1pets~1{petId}/get", issues)
        assert issues == []

    def test_templated_but_not_declared(self) -> None:
        issues: list[ValidationIssue] = []
        check_path_parameters("/pets/{petId}", [], "/paths/~1pets~1{petId}/get", issues)
        assert issues[0].pointer == "/paths/~1pets~1{petId}/get"
        assert "templated" in issues[0].message

    def test_declared_but_not_templated(self) -> None:
        issues: list[ValidationIssue] = []
        check_path_parameters(
            "/pets", [("/paths/~1pets/parameters/2", "petId")], "/paths/~1pets/get", issues
        )
        assert issues[0].pointer == "/paths/~1pets/parameters/2"


# ---------------------------------------------------------------------------
# References
# ---------------------------------------------------------------------------


class TestRefs:
    @pytest.fixture
    def spec(self) -> dict[str, Any]:
        return {
            "components": {
                "schemas": {"a/b": {"type": "string"}, "Pet": {"$ref": "#/components/schemas/Alias"}},
                "parameters": {"Limit": {"$ref": "#/components/parameters/Page"}, "Page": {"name": "page"}},
            },
            "list": [{"x": 1}],
        }

    def test_resolve_escaped_segment(self, spec: dict[str, Any]) -> None:
        assert resolve_pointer("#/components/schemas/a~1b", spec) == {"type": "string"}

    def test_resolve_list_index(self, spec: dict[str, Any]) -> None:
        assert resolve_pointer("#/list/0/x", spec) == 1

    def test_resolve_missing(self, spec: dict[str, Any]) -> None:
        with pytest.raises(SpecParseError, match="not found"):
            resolve_pointer("#/components/schemas/Nope", spec)

    def test_external_ref(self, spec: dict[str, Any]) -> None:
        with pytest.raises(SpecParseError, match="External"):
            resolve_pointer("other.yaml#/Pet", spec)

    def test_follow_ref_chain(self, spec: dict[str, Any]) -> None:
        target = follow_ref({"$ref": "#/components/parameters/Limit"}, spec)
        assert target == {"name": "page"}

    def test_follow_ref_cycle(self) -> None:
        spec = {"a": {"$ref": "#/b"}, "b": {"$ref": "#/a"}}
        with pytest.raises(SpecParseError, match="Circular"):
            follow_ref({"$ref": "#/a"}, spec)

    def test_schema_name_from_ref(self) -> None:
        assert schema_name_from_ref("#/components/schemas/Pet") == "Pet"
        assert schema_name_from_ref("#/components/schemas/a~1b") == "a/b"
        assert schema_name_from_ref("#/components/schemas/Pet/properties/id") is None
        assert schema_name_from_ref("#/definitions/Pet") is None

    def test_join_pointer_escapes(self) -> None:
        assert join_pointer("/paths", "/pets/{id}", "get") == "/paths/~1pets~1{id}/get"
        assert join_pointer("/", "a~b") == "/a~0b"

    def test_iter_refs_in_document_order(self, spec: dict[str, Any]) -> None:
        refs = list(iter_refs(spec))
        assert refs == [
            ("/components/schemas/Pet/$ref", "#/components/schemas/Alias"),
            ("/components/parameters/Limit/$ref", "#/components/parameters/Page"),
        ]

    def test_check_refs_reports_unresolved_and_external(self) -> None:
        spec = {
            "a": {"$ref": "#/missing"},
            "b": {"$ref": "https://example.com/schema.json"},
        }
        issues: list[ValidationIssue] = []
        check_refs(spec, issues)
        assert [issue.pointer for issue in issues] == ["/a/$ref", "/b/$ref"]
        assert "External" in issues[1].message
