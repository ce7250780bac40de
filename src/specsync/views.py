"""Paginated, filtered views over a parsed document.

These build the plain-dict payloads returned by :func:`specsync.tools.parse`.
Pagination always follows document order; nothing here re-sorts.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any, Optional

from pydantic import BaseModel, Field

from specsync.exceptions import ConfigError
from specsync.graph import SchemaGraph
from specsync.models import Endpoint, Schema, SpecDocument

DEFAULT_LIMIT = 50

PARSE_FORMATS = ("summary", "endpoints-list", "schemas-list", "endpoints", "schemas", "full")


class Page(BaseModel):
    """One window over an ordered sequence."""

    items: list[Any] = Field(default_factory=list)
    total: int
    offset: int
    limit: int
    has_more: bool

    def info(self) -> dict[str, Any]:
        """The pagination block without the items."""
        return self.model_dump(exclude={"items"})


def paginate(items: Sequence[Any], limit: Optional[int] = None, offset: int = 0) -> Page:
    """Return ``items[offset:offset + limit]`` with totals.

    Args:
        items: The full ordered sequence.
        limit: Page size; ``None`` means :data:`DEFAULT_LIMIT`.
        offset: Index of the first item on the page.

    Raises:
        ConfigError: ``invalid_pagination`` for a negative limit or offset.

    Example::

        >>> page = paginate(list(range(25)), limit=10, offset=20)
        >>> len(page.items), page.total, page.has_more
        (5, 25, False)
    """
    if limit is None:
        limit = DEFAULT_LIMIT
    if limit < 0 or offset < 0:
        raise ConfigError(
            f"limit and offset must be non-negative (got limit={limit}, offset={offset})",
            condition="invalid_pagination",
        )
    window = list(items[offset : offset + limit])
    return Page(
        items=window,
        total=len(items),
        offset=offset,
        limit=limit,
        has_more=offset + len(window) < len(items),
    )


def filter_endpoints(
    document: SpecDocument,
    tag: Optional[str] = None,
    path_prefix: Optional[str] = None,
) -> list[Endpoint]:
    """Endpoints in document order, keeping those tagged *tag* (case-insensitive)
    and whose path starts with *path_prefix*."""
    wanted = tag.lower() if tag else None
    result = []
    for endpoint in document.endpoints.values():
        if wanted is not None and wanted not in {t.lower() for t in endpoint.tags}:
            continue
        if path_prefix and not endpoint.path.startswith(path_prefix):
            continue
        result.append(endpoint)
    return result


def metadata(document: SpecDocument) -> dict[str, Any]:
    return {
        "title": document.info.title,
        "version": document.info.version,
        "description": document.info.description,
        "spec_version": document.spec_version.value,
        "openapi_version": document.openapi_version,
        "spec_hash": document.spec_hash,
        "source": document.source,
        "servers": [server.url for server in document.servers],
        "tags": list(document.tags),
        "endpoint_count": len(document.endpoints),
        "schema_count": len(document.schemas),
        "warning_count": len(document.warnings),
    }


def endpoint_summary(endpoint: Endpoint, graph: SchemaGraph) -> dict[str, Any]:
    return {
        "key": endpoint.key,
        "path": endpoint.path,
        "method": endpoint.method.value.upper(),
        "operation_id": endpoint.operation_id,
        "summary": endpoint.summary,
        "tags": list(endpoint.tags),
        "deprecated": endpoint.deprecated,
        "schema_refs": graph.direct_refs(endpoint.key),
    }


def schema_summary(schema: Schema, graph: SchemaGraph) -> dict[str, Any]:
    return {
        "name": schema.name,
        "kind": schema.kind.value,
        "description": schema.description,
        "refs": graph.direct_refs(schema.name),
    }


def parse_view(
    document: SpecDocument,
    format: str = "summary",
    limit: Optional[int] = None,
    offset: int = 0,
    tag: Optional[str] = None,
    path_prefix: Optional[str] = None,
    graph: Optional[SchemaGraph] = None,
) -> dict[str, Any]:
    """Build the payload for one parse output format.

    Formats:

    * ``summary`` -- metadata and graph stats only.
    * ``endpoints-list`` / ``schemas-list`` -- keys or names only, unpaginated.
    * ``endpoints`` / ``schemas`` -- paginated summaries.
    * ``full`` -- paginated full endpoint and schema records.

    The tag and path-prefix filters apply to endpoints in every format.

    Raises:
        ConfigError: ``invalid_format`` for an unknown format,
            ``invalid_pagination`` for a negative limit or offset.
    """
    if format not in PARSE_FORMATS:
        raise ConfigError(
            f"Unknown parse format '{format}'. Available formats: {', '.join(PARSE_FORMATS)}",
            condition="invalid_format",
        )
    if graph is None:
        graph = SchemaGraph.build(document)

    view: dict[str, Any] = {
        "format": format,
        "metadata": metadata(document),
        "graph_stats": graph.stats(),
    }
    if document.warnings:
        view["warnings"] = [issue.model_dump() for issue in document.warnings]

    endpoints = filter_endpoints(document, tag, path_prefix)
    schemas = list(document.schemas.values())

    if format == "endpoints-list":
        view["endpoint_keys"] = [endpoint.key for endpoint in endpoints]
    elif format == "schemas-list":
        view["schema_names"] = [schema.name for schema in schemas]
    elif format == "endpoints":
        page = paginate(endpoints, limit, offset)
        view["endpoints"] = [endpoint_summary(e, graph) for e in page.items]
        view["pagination"] = page.info()
    elif format == "schemas":
        page = paginate(schemas, limit, offset)
        view["schemas"] = [schema_summary(s, graph) for s in page.items]
        view["pagination"] = page.info()
    elif format == "full":
        endpoint_page = paginate(endpoints, limit, offset)
        schema_page = paginate(schemas, limit, offset)
        view["endpoints"] = [
            e.model_dump(mode="json", by_alias=True, exclude_none=True) for e in endpoint_page.items
        ]
        view["schemas"] = [
            s.model_dump(mode="json", by_alias=True, exclude_none=True) for s in schema_page.items
        ]
        view["security_schemes"] = {
            name: scheme.model_dump(mode="json", exclude_none=True)
            for name, scheme in document.security_schemes.items()
        }
        view["pagination"] = {
            "endpoints": endpoint_page.info(),
            "schemas": schema_page.info(),
        }
    return view
