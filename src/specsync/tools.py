"""The five tool operations exposed to a tool-calling layer.

Each operation is a plain function returning a JSON-serialisable dict and
raising a :class:`~specsync.exceptions.SpecsyncError` subclass on failure.
:func:`run_tool` wraps them in the ``{"success": ..., ...}`` envelope a
tool-calling layer consumes.

A :class:`~specsync.cache.store.CacheStore` is never opened implicitly by
``parse``, ``deps``, ``diff`` or ``generate``: pass one to enable caching.
Every operation given a store flushes it before returning.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Callable, Iterator, Optional

from specsync.cache.store import CacheStore, utcnow
from specsync.config import Settings, resolve_settings, write_files
from specsync.diff import diff_specs, summarize
from specsync.exceptions import SpecsyncError
from specsync.generator import CodeGenerator
from specsync.graph import SchemaGraph
from specsync.loader import LoadResult, SpecLoader
from specsync.models import CacheEntry, Direction, GenerationStyle
from specsync.views import parse_view

logger = logging.getLogger(__name__)


@contextmanager
def _flushing(store: Optional[CacheStore]) -> Iterator[None]:
    if store is not None:
        store.open()
    try:
        yield
    finally:
        if store is not None:
            store.flush()


def _loader(store: Optional[CacheStore], settings: Optional[Settings]) -> SpecLoader:
    settings = settings or Settings()
    ttl = store.ttl_seconds if store is not None else settings.ttl_seconds
    return SpecLoader(store, timeout=settings.timeout, ttl_seconds=ttl)


def _document_ref(result: LoadResult) -> dict[str, Any]:
    document = result.document
    return {
        "source": result.source_key,
        "title": document.info.title,
        "version": document.info.version,
        "spec_hash": document.spec_hash,
        "freshness": result.freshness.value,
    }


# --- operations ---


def parse(
    source: str,
    format: str = "summary",
    use_cache: bool = True,
    limit: Optional[int] = None,
    offset: int = 0,
    tag: Optional[str] = None,
    path_prefix: Optional[str] = None,
    strict: bool = False,
    store: Optional[CacheStore] = None,
    settings: Optional[Settings] = None,
) -> dict[str, Any]:
    """Load and normalize *source* and return one view of it.

    Args:
        source: Local path or HTTP(S) URL.
        format: One of :data:`~specsync.views.PARSE_FORMATS`.
        use_cache: Serve from *store* when an entry is fresh.
        limit: Page size for paginated formats (default from *settings*).
        offset: First item of the page.
        tag: Only endpoints carrying this tag (case-insensitive).
        path_prefix: Only endpoints whose path starts with this prefix.
        strict: Raise on structural violations.
        store: Optional cache.
        settings: Optional settings; defaults apply otherwise.
    """
    settings = settings or Settings()
    with _flushing(store):
        result = _loader(store, settings).load(source, use_cache=use_cache, strict=strict)
    view = parse_view(
        result.document,
        format=format,
        limit=settings.default_limit if limit is None else limit,
        offset=offset,
        tag=tag,
        path_prefix=path_prefix,
    )
    view["freshness"] = result.freshness.value
    return view


def deps(
    source: str,
    schema: str,
    direction: Direction | str = Direction.BOTH,
    store: Optional[CacheStore] = None,
    settings: Optional[Settings] = None,
) -> dict[str, Any]:
    """Impact analysis for one schema.

    Affected schemas and affected endpoints are listed separately, each
    ranked by hop distance and then name.

    Raises:
        ConfigError: ``unknown_schema`` if *schema* is not in the document.
    """
    direction = Direction(direction)
    with _flushing(store):
        result = _loader(store, settings).load(source)
    graph = SchemaGraph.build(result.document)
    impact = graph.query(schema, direction)
    schemas = [entry.model_dump(mode="json") for entry in impact if entry.node_kind == "schema"]
    endpoints = [entry.model_dump(mode="json") for entry in impact if entry.node_kind == "endpoint"]
    return {
        "schema": schema,
        "direction": direction.value,
        "document": _document_ref(result),
        "affected_schemas": schemas,
        "affected_endpoints": endpoints,
        "total": len(impact),
    }


def diff(
    old_source: str,
    new_source: str,
    breaking_only: bool = False,
    store: Optional[CacheStore] = None,
    settings: Optional[Settings] = None,
) -> dict[str, Any]:
    """Diff two spec versions.

    ``changes`` honours *breaking_only*; ``summary`` always counts every
    change so callers can see what was filtered out.

    Raises:
        SpecParseError: Either side failed to normalize.
    """
    loader = _loader(store, settings)
    with _flushing(store):
        old = loader.load(old_source)
        new = loader.load(new_source)
    changes = diff_specs(old.document, new.document)
    shown = [change for change in changes if change.is_breaking] if breaking_only else changes
    return {
        "old": _document_ref(old),
        "new": _document_ref(new),
        "breaking_only": breaking_only,
        "changes": [change.model_dump(mode="json") for change in shown],
        "summary": summarize(changes),
    }


def status(
    project_dir: str | Path,
    check_remote: bool = False,
    store: Optional[CacheStore] = None,
    settings: Optional[Settings] = None,
) -> dict[str, Any]:
    """Report the freshness of every cached source of a project.

    With *check_remote*, every entry is revalidated (conditional request for
    URLs, mtime/hash check for local files).  A failure is reported on that
    entry and the remaining entries are still checked.
    """
    project_dir = Path(project_dir)
    owns_store = store is None
    if store is None:
        settings = settings or resolve_settings(project_dir)
        store = CacheStore(
            project_dir, ttl_seconds=settings.ttl_seconds, cache_dirname=settings.cache_dirname
        )
    try:
        with _flushing(store):
            entries = [_entry_status(entry) for entry in store.entries()]
            if check_remote:
                loader = _loader(store, settings)
                for item in entries:
                    item["check"] = _check_entry(loader, item["source"])
                    refreshed = store.get(item["source"])
                    if refreshed is not None:
                        item.update(_entry_status(refreshed))
        stats = store.stats()
    finally:
        if owns_store:
            store.close()

    expired = sum(1 for item in entries if item["expired"])
    return {
        "project_dir": str(project_dir),
        "cache": stats,
        "entries": entries,
        "summary": {
            "total": len(entries),
            "fresh": len(entries) - expired,
            "expired": expired,
            "errors": sum(1 for item in entries if "error" in item.get("check", {})),
        },
    }


def _entry_status(entry: CacheEntry) -> dict[str, Any]:
    document = entry.document
    return {
        "source": entry.source_key,
        "title": document.info.title,
        "version": document.info.version,
        "content_hash": entry.content_hash,
        "etag": entry.etag,
        "last_modified": entry.last_modified,
        "fetched_at": entry.fetched_at.isoformat(),
        "validated_at": entry.validated_at.isoformat(),
        "expires_at": entry.expires_at.isoformat(),
        "expired": entry.is_expired(utcnow()),
        "endpoints": len(document.endpoints),
        "schemas": len(document.schemas),
    }


def _check_entry(loader: SpecLoader, source: str) -> dict[str, Any]:
    try:
        result = loader.load(source, check_remote=True)
    except SpecsyncError as exc:
        logger.warning("Revalidation of %s failed: %s", source, exc.message)
        return {"error": exc.to_dict()}
    return {"freshness": result.freshness.value}


def generate(
    source: str,
    target: str,
    style: GenerationStyle | dict[str, Any] | None = None,
    out_dir: str | Path | None = None,
    strict: bool = True,
    store: Optional[CacheStore] = None,
    settings: Optional[Settings] = None,
) -> dict[str, Any]:
    """Generate code for *target*, optionally writing it to *out_dir*.

    Generation is strict by default: a document with structural violations
    is rejected rather than turned into code.  Pass ``strict=False`` to
    generate anyway.

    Raises:
        ConfigError: Unknown target or invalid style option.
        SpecParseError: *strict* and the document has violations.
        CodegenError: A template failed to render.
        FilesystemError: ``write_failed`` if *out_dir* cannot be written.
    """
    generator = CodeGenerator(target, style)
    with _flushing(store):
        result = _loader(store, settings).load(source, strict=strict)
    generated = generator.generate(result.document)
    payload: dict[str, Any] = {
        "target": generated.target,
        "document": _document_ref(result),
        "files": generated.files,
        "warnings": [warning.model_dump() for warning in generated.warnings],
        "summary": {
            "files": len(generated.files),
            "types": generated.types_generated,
            "operations": generated.operations_generated,
            "warnings": len(generated.warnings),
        },
    }
    if out_dir is not None:
        written = write_files(Path(out_dir), generated.files)
        payload["written"] = [str(path) for path in written]
    return payload


# --- tool-calling envelope ---

TOOLS: dict[str, Callable[..., dict[str, Any]]] = {
    "parse": parse,
    "deps": deps,
    "diff": diff,
    "status": status,
    "generate": generate,
}


def run_tool(name: str, **arguments: Any) -> dict[str, Any]:
    """Invoke a tool by name and wrap the outcome.

    Returns:
        ``{"success": True, **result}`` or ``{"success": False, "error":
        {"category", "condition", "message", ...}}``.
    """
    tool = TOOLS.get(name)
    if tool is None:
        return {
            "success": False,
            "error": {
                "category": "configuration",
                "condition": "unknown_tool",
                "message": f"Unknown tool '{name}'. Available tools: {', '.join(TOOLS)}",
            },
        }
    try:
        result = tool(**arguments)
    except SpecsyncError as exc:
        logger.debug("Tool %s failed: %s", name, exc.message)
        return {"success": False, "error": exc.to_dict()}
    return {"success": True, **result}

