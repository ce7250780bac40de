"""Resolve ``$ref`` JSON Reference pointers in spec documents.

Component schemas are never inlined: the normalizer keeps
``#/components/schemas/<Name>`` references as named
:class:`~specsync.models.SchemaRef` values, so the IR stays small and
recursive schemas remain representable.  Every other reference (parameters,
responses, request bodies, schema fragments) is resolved in place with
:func:`follow_ref`.

Only **internal** references (those starting with ``#/``) are supported.
External file or URL references are reported as validation issues.
"""

from __future__ import annotations

from typing import Any, Iterator, Optional

from specsync.exceptions import SpecParseError

SCHEMA_REF_PREFIX = "#/components/schemas/"
LEGACY_SCHEMA_REF_PREFIX = "#/definitions/"


def escape_token(token: str) -> str:
    """Escape one JSON Pointer token (RFC 6901)."""
    return token.replace("~", "~0").replace("/", "~1")


def join_pointer(base: str, *tokens: Any) -> str:
    """Append escaped tokens to a JSON Pointer."""
    pointer = base.rstrip("/") if base != "/" else ""
    for token in tokens:
        pointer += "/" + escape_token(str(token))
    return pointer or "/"


def schema_name_from_ref(ref: str) -> Optional[str]:
    """Return the component schema name for a top-level schema ref, else ``None``.

    ``#/components/schemas/Pet`` yields ``Pet``; a ref into a schema's
    interior (``#/components/schemas/Pet/properties/tag``) yields ``None``.
    """
    if not ref.startswith(SCHEMA_REF_PREFIX):
        return None
    tail = ref[len(SCHEMA_REF_PREFIX):]
    if "/" in tail:
        return None
    return tail.replace("~1", "/").replace("~0", "~")


def resolve_pointer(ref: str, root: dict[str, Any]) -> Any:
    """Resolve a single ``$ref`` string against the root document.

    Parses JSON Pointer references like ``#/components/schemas/Pet`` and
    navigates the root dict to locate the referenced value.  Handles
    RFC 6901 escaping (``~0`` for ``~``, ``~1`` for ``/``).

    Raises:
        SpecParseError: If the reference is external, or any segment in the
            pointer path does not exist in the document.
    """
    if not ref.startswith("#/"):
        raise SpecParseError(
            f"External $ref not supported: {ref}. "
            "Only internal references (#/...) are handled.",
            condition="validation",
            pointer=ref,
        )

    current: Any = root
    for segment in ref[2:].split("/"):
        segment = segment.replace("~1", "/").replace("~0", "~")

        if isinstance(current, dict):
            if segment not in current:
                raise SpecParseError(
                    f"Cannot resolve $ref '{ref}': key '{segment}' not found at path",
                    condition="validation",
                    pointer=ref,
                )
            current = current[segment]
        elif isinstance(current, list):
            try:
                current = current[int(segment)]
            except (ValueError, IndexError) as exc:
                raise SpecParseError(
                    f"Cannot resolve $ref '{ref}': invalid array index '{segment}'",
                    condition="validation",
                    pointer=ref,
                ) from exc
        else:
            raise SpecParseError(
                f"Cannot resolve $ref '{ref}': cannot navigate into {type(current).__name__}",
                condition="validation",
                pointer=ref,
            )

    return current


def follow_ref(obj: Any, root: dict[str, Any]) -> Any:
    """Follow a chain of ``$ref`` objects until a concrete value is reached.

    A ref pointing back into its own chain raises rather than looping.
    Non-ref values are returned unchanged.
    """
    seen: set[str] = set()
    while isinstance(obj, dict) and isinstance(obj.get("$ref"), str):
        ref = obj["$ref"]
        if ref in seen:
            raise SpecParseError(
                f"Circular $ref chain at '{ref}'", condition="validation", pointer=ref
            )
        seen.add(ref)
        obj = resolve_pointer(ref, root)
    return obj


def iter_refs(obj: Any, pointer: str = "") -> Iterator[tuple[str, str]]:
    """Yield ``(pointer, ref)`` for every ``$ref`` string found in *obj*.

    Walks dicts and lists depth-first in document order.
    """
    if isinstance(obj, dict):
        ref = obj.get("$ref")
        if isinstance(ref, str):
            yield join_pointer(pointer, "$ref"), ref
        for key, value in obj.items():
            if key == "$ref":
                continue
            yield from iter_refs(value, join_pointer(pointer, key))
    elif isinstance(obj, list):
        for index, item in enumerate(obj):
            yield from iter_refs(item, join_pointer(pointer, index))
