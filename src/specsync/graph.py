"""Schema dependency graph and impact queries.

Nodes are component schema names plus one synthetic node per endpoint
(keyed ``"METHOD /path"``).  An edge ``A -> B`` means *A references B*; it
carries the :class:`~specsync.models.EdgeKind` of the reference.  There is
one edge per reference occurrence, so a schema referencing another twice has
two parallel edges.

Directions follow the reference arrow:

* **upstream** of ``X`` -- what ``X`` depends on (follow ``X -> target``).
* **downstream** of ``X`` -- what depends on ``X`` (follow edges in reverse).
* **both** -- the union, each node tagged with the direction it was found in.

Traversal is breadth-first with a visited set, so self-referential and
mutually recursive schemas terminate.  The start node is reported (once, at
depth 0) only when a cycle leads back to it.

Example::

    graph = SchemaGraph.build(document)
    for entry in graph.query("User", Direction.DOWNSTREAM):
        print(entry.depth, entry.node, entry.via)
"""

from __future__ import annotations

from collections import Counter
from typing import Optional

import rustworkx as rx

from specsync.exceptions import ConfigError
from specsync.models import (
    Direction,
    EdgeKind,
    GraphEdge,
    ImpactEntry,
    Schema,
    SchemaKind,
    SchemaRef,
    SpecDocument,
)

_REQUEST_KINDS = frozenset({EdgeKind.PARAMETER, EdgeKind.REQUEST_BODY})


class SchemaGraph:
    """Reference graph over one :class:`~specsync.models.SpecDocument`.

    Build with :meth:`build`; the graph is immutable afterwards.
    """

    def __init__(self) -> None:
        self._graph: rx.PyDiGraph[str, EdgeKind] = rx.PyDiGraph(check_cycle=False)
        self._indices: dict[str, int] = {}
        self._endpoints: set[str] = set()

    @classmethod
    def build(cls, document: SpecDocument) -> SchemaGraph:
        """Index every reference in *document*.

        References to schemas the document does not define are skipped;
        the normalizer reports them as validation issues.
        """
        graph = cls()
        for name in document.schemas:
            graph._add_node(name)
        for key in document.endpoints:
            graph._add_node(key)
            graph._endpoints.add(key)

        for name, schema in document.schemas.items():
            graph._walk_schema(name, schema)

        for key, endpoint in document.endpoints.items():
            for param in endpoint.parameters:
                graph._walk_ref(key, param.schema_, EdgeKind.PARAMETER, fixed=True)
            if endpoint.request_body is not None:
                graph._walk_ref(key, endpoint.request_body.schema_, EdgeKind.REQUEST_BODY, fixed=True)
            for response in endpoint.responses.values():
                graph._walk_ref(key, response.schema_, EdgeKind.RESPONSE_BODY, fixed=True)
        return graph

    # --- construction ---

    def _add_node(self, name: str) -> None:
        if name not in self._indices:
            self._indices[name] = self._graph.add_node(name)

    def _add_edge(self, source: str, target: str, kind: EdgeKind) -> None:
        target_idx = self._indices.get(target)
        if target_idx is None or target in self._endpoints:
            return
        self._graph.add_edge(self._indices[source], target_idx, kind)

    def _walk_ref(
        self,
        source: str,
        ref: Optional[SchemaRef],
        kind: EdgeKind,
        fixed: bool = False,
    ) -> None:
        if ref is None:
            return
        if ref.ref is not None:
            self._add_edge(source, ref.ref, kind)
        elif ref.inline is not None:
            self._walk_schema(source, ref.inline, kind if fixed else None)

    def _walk_schema(self, source: str, schema: Schema, fixed: Optional[EdgeKind] = None) -> None:
        """Record edges for every named reference inside *schema*.

        Without *fixed*, the edge kind is decided by the reference's
        immediate container.  Endpoint walks pass *fixed* so that every
        schema reached through, e.g., a request body is a request-body edge.
        """

        def kind(default: EdgeKind) -> EdgeKind:
            return fixed or default

        if schema.kind == SchemaKind.REFERENCE and schema.reference:
            self._add_edge(source, schema.reference, kind(EdgeKind.COMPOSITION_MEMBER))
        for prop in schema.properties.values():
            self._walk_ref(source, prop, kind(EdgeKind.PROPERTY), fixed is not None)
        self._walk_ref(source, schema.items, kind(EdgeKind.ARRAY_ITEM), fixed is not None)
        self._walk_ref(
            source, schema.additional_properties, kind(EdgeKind.PROPERTY), fixed is not None
        )
        for member in (*schema.all_of, *schema.one_of, *schema.any_of):
            self._walk_ref(source, member, kind(EdgeKind.COMPOSITION_MEMBER), fixed is not None)

    # --- inspection ---

    def __contains__(self, name: object) -> bool:
        return name in self._indices

    @property
    def nodes(self) -> list[str]:
        return sorted(self._indices)

    @property
    def edges(self) -> list[GraphEdge]:
        """All edges, sorted by (source, target, kind)."""
        edges = [
            GraphEdge(source=self._graph[src], target=self._graph[tgt], kind=kind)
            for src, tgt, kind in self._graph.weighted_edge_list()
        ]
        return sorted(edges, key=lambda e: (e.source, e.target, e.kind.value))

    def node_kind(self, name: str) -> str:
        return "endpoint" if name in self._endpoints else "schema"

    def stats(self) -> dict[str, object]:
        """Node and edge counts, with a per-edge-kind breakdown."""
        kinds = Counter(kind.value for kind in self._graph.edges())
        return {
            "nodes": self._graph.num_nodes(),
            "schemas": self._graph.num_nodes() - len(self._endpoints),
            "endpoints": len(self._endpoints),
            "edges": self._graph.num_edges(),
            "edge_kinds": dict(sorted(kinds.items())),
        }

    def direct_refs(self, name: str) -> list[str]:
        """Names of the schemas a node references directly, sorted."""
        idx = self._require(name)
        return sorted({self._graph[tgt] for _, tgt, _ in self._graph.out_edges(idx)})

    def schema_roles(self) -> dict[str, set[str]]:
        """Map each schema to the roles it plays: ``request`` and/or ``response``.

        A schema plays a role if an endpoint reaches it through a parameter
        or request body (``request``) or a response body (``response``),
        directly or through any chain of schema references.  Schemas no
        endpoint reaches are absent from the result.
        """
        roles: dict[str, set[str]] = {}
        for key in sorted(self._endpoints):
            for _, tgt, kind in self._graph.out_edges(self._indices[key]):
                role = "request" if kind in _REQUEST_KINDS else "response"
                for idx in {tgt} | set(rx.descendants(self._graph, tgt)):
                    roles.setdefault(self._graph[idx], set()).add(role)
        return roles

    # --- queries ---

    def query(self, name: str, direction: Direction | str = Direction.BOTH) -> list[ImpactEntry]:
        """Return the nodes reachable from *name* in *direction*.

        Results are ordered by depth, then node name.

        Raises:
            ConfigError: ``unknown_schema`` if *name* is not a node.
        """
        direction = Direction(direction)
        start = self._require(name)
        if direction == Direction.UPSTREAM:
            hits = self._bfs(start, forward=True)
        elif direction == Direction.DOWNSTREAM:
            hits = self._bfs(start, forward=False)
        else:
            hits = self._merge(self._bfs(start, forward=True), self._bfs(start, forward=False))
        return sorted(hits.values(), key=lambda e: (e.depth, e.node))

    def upstream(self, name: str) -> list[ImpactEntry]:
        return self.query(name, Direction.UPSTREAM)

    def downstream(self, name: str) -> list[ImpactEntry]:
        return self.query(name, Direction.DOWNSTREAM)

    def both(self, name: str) -> list[ImpactEntry]:
        return self.query(name, Direction.BOTH)

    def _require(self, name: str) -> int:
        idx = self._indices.get(name)
        if idx is None:
            raise ConfigError(
                f"Unknown schema or endpoint: '{name}'", condition="unknown_schema"
            )
        return idx

    def _bfs(self, start: int, forward: bool) -> dict[str, ImpactEntry]:
        direction = Direction.UPSTREAM if forward else Direction.DOWNSTREAM
        hits: dict[str, ImpactEntry] = {}
        visited = {start}
        frontier = [start]
        depth = 0

        while frontier:
            depth += 1
            next_level: list[int] = []
            for idx in sorted(frontier, key=lambda i: self._graph[i]):
                via = self._graph[idx]
                edges = self._graph.out_edges(idx) if forward else self._graph.in_edges(idx)
                for src, tgt, kind in edges:
                    neighbor = tgt if forward else src
                    name = self._graph[neighbor]
                    if neighbor == start:
                        # Cycle back to the start: reported once, at depth 0
                        entry = hits.get(name)
                        if entry is None:
                            hits[name] = self._entry(name, 0, direction, via, kind)
                        elif entry.via == via and kind not in entry.edge_kinds:
                            entry.edge_kinds.append(kind)
                        continue
                    if neighbor in visited:
                        entry = hits.get(name)
                        if entry is not None and entry.depth == depth and entry.via == via:
                            if kind not in entry.edge_kinds:
                                entry.edge_kinds.append(kind)
                        continue
                    visited.add(neighbor)
                    next_level.append(neighbor)
                    hits[name] = self._entry(name, depth, direction, via, kind)
            frontier = next_level

        for entry in hits.values():
            entry.edge_kinds.sort(key=lambda k: k.value)
        return hits

    def _entry(
        self, name: str, depth: int, direction: Direction, via: str, kind: EdgeKind
    ) -> ImpactEntry:
        return ImpactEntry(
            node=name,
            node_kind=self.node_kind(name),
            depth=depth,
            direction=direction,
            via=via,
            edge_kinds=[kind],
        )

    @staticmethod
    def _merge(
        upstream: dict[str, ImpactEntry], downstream: dict[str, ImpactEntry]
    ) -> dict[str, ImpactEntry]:
        merged = dict(upstream)
        for name, entry in downstream.items():
            existing = merged.get(name)
            if existing is None:
                merged[name] = entry
                continue
            # Keep the shallower hop; upstream wins ties
            keep = entry if entry.depth < existing.depth else existing
            merged[name] = keep.model_copy(update={"direction": Direction.BOTH})
        return merged
