"""Tests for specsync.generator.naming."""

from __future__ import annotations

import pytest

from specsync.generator.naming import (
    NameRegistry,
    apply_type_naming,
    camel_case,
    pascal_case,
    python_identifier,
    python_type_name,
    snake_case,
    split_words,
    typescript_identifier,
    typescript_property,
)


class TestCaseTransforms:
    def test_split_words(self) -> None:
        assert split_words("XMLHttpRequest_v2-final") == ["XML", "Http", "Request", "v", "2", "final"]

    @pytest.mark.parametrize(
        ("name", "expected"),
        [("user_address", "UserAddress"), ("listUsers", "ListUsers"), ("GET /users", "GETUsers")],
    )
    def test_pascal_case(self, name: str, expected: str) -> None:
        assert pascal_case(name) == expected

    def test_camel_case(self) -> None:
        assert camel_case("list-users") == "listUsers"
        assert camel_case("") == ""

    def test_snake_case(self) -> None:
        assert snake_case("getUserById") == "get_user_by_id"

    @pytest.mark.parametrize(
        ("style", "expected"),
        [("PascalCase", "NewUser"), ("camelCase", "newUser"), ("snake_case", "new_user")],
    )
    def test_apply_type_naming(self, style: str, expected: str) -> None:
        assert apply_type_naming("NewUser", style) == expected

    def test_apply_type_naming_empty_name(self) -> None:
        assert apply_type_naming("---", "PascalCase") == "Model"


class TestIdentifiers:
    @pytest.mark.parametrize(
        ("name", "expected"),
        [
            ("petId", "pet_id"),
            ("X-Request-ID", "x_request_id"),
            ("class", "class_"),
            ("123abc", "_123abc"),
            ("---", "field"),
        ],
    )
    def test_python_identifier(self, name: str, expected: str) -> None:
        assert python_identifier(name) == expected

    def test_python_type_name(self) -> None:
        assert python_type_name("2fa") == "_2fa"
        assert python_type_name("None") == "None_"

    def test_typescript_identifier(self) -> None:
        assert typescript_identifier("user-id") == "userId"
        assert typescript_identifier("delete") == "delete_"

    def test_typescript_property_quotes_when_needed(self) -> None:
        assert typescript_property("name") == "name"
        assert typescript_property("x-rate") == '"x-rate"'


class TestNameRegistry:
    def test_collisions_get_numeric_suffixes(self) -> None:
        registry = NameRegistry()
        assert [registry.claim("User") for _ in range(3)] == ["User", "User2", "User3"]

    def test_separator(self) -> None:
        registry = NameRegistry()
        registry.claim("id")
        assert registry.claim("id", "_") == "id_2"

    def test_reserved_names(self) -> None:
        registry = NameRegistry(("BaseModel",))
        assert "BaseModel" in registry
        assert registry.claim("BaseModel") == "BaseModel2"
