"""Tests for specsync.graph.SchemaGraph."""

from __future__ import annotations

from typing import Any

import pytest

from specsync.exceptions import ConfigError
from specsync.graph import SchemaGraph
from specsync.models import Direction, EdgeKind, SpecDocument
from specsync.parser.normalizer import build_document


@pytest.fixture
def graph(petstore_doc: SpecDocument) -> SchemaGraph:
    return SchemaGraph.build(petstore_doc)


def _nodes(entries: list) -> list[str]:
    return [entry.node for entry in entries]


# ---------------------------------------------------------------------------
# Construction
# ---------------------------------------------------------------------------


class TestBuild:
    def test_stats(self, graph: SchemaGraph) -> None:
        stats = graph.stats()
        assert stats["schemas"] == 7
        assert stats["endpoints"] == 4
        assert stats["nodes"] == 11
        assert stats["edges"] == len(graph.edges)

    def test_node_kinds(self, graph: SchemaGraph) -> None:
        assert graph.node_kind("User") == "schema"
        assert graph.node_kind("GET /users") == "endpoint"
        assert "Address" in graph
        assert "Missing" not in graph

    def test_edge_kinds_follow_the_container(self, graph: SchemaGraph) -> None:
        edges = {(edge.source, edge.target): edge.kind for edge in graph.edges}
        assert edges[("User", "Address")] == EdgeKind.PROPERTY
        assert edges[("Pet", "Tag")] == EdgeKind.ARRAY_ITEM
        assert edges[("GET /users", "User")] == EdgeKind.RESPONSE_BODY
        assert edges[("POST /users", "NewUser")] == EdgeKind.REQUEST_BODY

    def test_direct_refs(self, graph: SchemaGraph) -> None:
        assert graph.direct_refs("User") == ["Address", "Status"]
        assert graph.direct_refs("POST /users") == ["NewUser", "User"]
        assert graph.direct_refs("Status") == []

    def test_unknown_refs_are_skipped(self, petstore_30_raw: dict[str, Any]) -> None:
        petstore_30_raw["components"]["schemas"]["Tag"]["properties"]["owner"] = {
            "$ref": "#/components/schemas/Ghost"
        }
        graph = SchemaGraph.build(build_document(petstore_30_raw))
        assert graph.direct_refs("Tag") == []

    def test_schema_roles(self, graph: SchemaGraph) -> None:
        roles = graph.schema_roles()
        assert roles["NewUser"] == {"request"}
        assert roles["User"] == {"response"}
        assert roles["Address"] == {"response"}
        assert "Node" not in roles


# ---------------------------------------------------------------------------
# Impact queries
# ---------------------------------------------------------------------------


class TestQuery:
    def test_downstream_ranked_by_depth_then_name(self, graph: SchemaGraph) -> None:
        entries = graph.downstream("Address")
        assert [(entry.node, entry.depth) for entry in entries] == [
            ("User", 1),
            ("GET /users", 2),
            ("GET /users/{userId}", 2),
            ("POST /users", 2),
            ("Pet", 2),
            ("GET /pets", 3),
        ]
        assert all(entry.direction == Direction.DOWNSTREAM for entry in entries)
        assert entries[0].via == "Address"
        assert entries[-1].via == "Pet"

    def test_upstream(self, graph: SchemaGraph) -> None:
        entries = graph.upstream("Pet")
        assert [(entry.node, entry.depth) for entry in entries] == [
            ("Tag", 1),
            ("User", 1),
            ("Address", 2),
            ("Status", 2),
        ]
        tag = entries[0]
        assert tag.edge_kinds == [EdgeKind.ARRAY_ITEM]
        assert tag.node_kind == "schema"

    def test_endpoint_upstream(self, graph: SchemaGraph) -> None:
        assert _nodes(graph.upstream("GET /users/{userId}")) == ["User", "Address", "Status"]

    def test_both_tags_direction(self, graph: SchemaGraph) -> None:
        entries = {entry.node: entry for entry in graph.both("User")}
        assert entries["Address"].direction == Direction.UPSTREAM
        assert entries["Pet"].direction == Direction.DOWNSTREAM
        assert entries["GET /pets"].depth == 2
        assert "User" not in entries

    def test_query_accepts_string_direction(self, graph: SchemaGraph) -> None:
        assert graph.query("Address", "downstream") == graph.downstream("Address")

    def test_leaf_schema_has_no_upstream(self, graph: SchemaGraph) -> None:
        assert graph.upstream("Status") == []

    def test_self_reference_is_reported_once_at_depth_zero(self, graph: SchemaGraph) -> None:
        upstream = graph.upstream("Node")
        assert len(upstream) == 1
        assert upstream[0].node == "Node"
        assert upstream[0].depth == 0
        assert upstream[0].edge_kinds == [EdgeKind.ARRAY_ITEM]

        downstream = graph.downstream("Node")
        assert [(entry.node, entry.depth) for entry in downstream] == [("Node", 0)]

    def test_mutual_recursion_terminates(self) -> None:
        raw = {
            "openapi": "3.0.0",
            "info": {"title": "t", "version": "1"},
            "paths": {},
            "components": {
                "schemas": {
                    "A": {"type": "object", "properties": {"b": {"$ref": "#/components/schemas/B"}}},
                    "B": {"type": "object", "properties": {"a": {"$ref": "#/components/schemas/A"}}},
                }
            },
        }
        graph = SchemaGraph.build(build_document(raw))
        assert [(entry.node, entry.depth) for entry in graph.upstream("A")] == [("A", 0), ("B", 1)]

    def test_unknown_schema(self, graph: SchemaGraph) -> None:
        with pytest.raises(ConfigError) as exc_info:
            graph.query("Ghost")
        assert exc_info.value.condition == "unknown_schema"
