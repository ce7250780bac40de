"""Canonical Pydantic models shared across all specsync modules.

This is the single source of truth for data shapes in the project. Every other
module imports from here rather than defining its own models. The models fall
into four groups:

**Intermediate representation (IR)** -- produced once per successful parse by
the normalizer and never mutated afterwards:
    :class:`SpecVersion`, :class:`HTTPMethod`, :class:`ParameterLocation`,
    :class:`SchemaKind`, :class:`Schema`, :class:`SchemaRef`,
    :class:`Parameter`, :class:`RequestBody`, :class:`Response`,
    :class:`Endpoint`, :class:`APIInfo`, :class:`ServerInfo`,
    :class:`SecurityScheme`, :class:`ValidationIssue`, and
    :class:`SpecDocument`.

**Cache models** -- persisted by :class:`~specsync.cache.store.CacheStore`:
    :class:`CacheEntry`.

**Query results** -- graph impact entries and diff changes:
    :class:`EdgeKind`, :class:`Direction`, :class:`GraphEdge`,
    :class:`ImpactEntry`, :class:`ChangeKind`, :class:`Severity`,
    :class:`Change`.

**Generation models** -- :class:`GenerationStyle`,
:class:`GenerationWarning`, and :class:`GenerationResult`.

IR models are frozen so that a cached snapshot can be shared between
concurrent operations without copying.
"""

from __future__ import annotations

import enum
from datetime import datetime
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


# --- Enumerations ---


class SpecVersion(str, enum.Enum):
    """Source document family, detected from the top-level discriminator field."""

    SWAGGER_2 = "swagger-2.0"
    OPENAPI_30 = "openapi-3.0"
    OPENAPI_31 = "openapi-3.1"


class HTTPMethod(str, enum.Enum):
    """HTTP methods recognised in path-item objects."""

    GET = "get"
    POST = "post"
    PUT = "put"
    PATCH = "patch"
    DELETE = "delete"
    HEAD = "head"
    OPTIONS = "options"
    TRACE = "trace"


class ParameterLocation(str, enum.Enum):
    """Locations where an API parameter can appear, per the ``in`` field."""

    QUERY = "query"
    HEADER = "header"
    PATH = "path"
    COOKIE = "cookie"


class SchemaKind(str, enum.Enum):
    """Structural kind of a :class:`Schema`."""

    OBJECT = "object"
    ARRAY = "array"
    PRIMITIVE = "primitive"
    REFERENCE = "reference"
    COMPOSITION = "composition"


# --- IR ---


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


class SchemaRef(_Frozen):
    """Either a named reference to a component schema or an inline schema.

    Exactly one of ``ref`` and ``inline`` is set.  Resolving a named
    reference is a lookup in :attr:`SpecDocument.schemas`; the referenced
    schema is never copied into the referrer, which keeps cycles
    representable.
    """

    ref: Optional[str] = None
    inline: Optional[Schema] = None

    @property
    def is_ref(self) -> bool:
        return self.ref is not None

    def describe(self) -> str:
        """Short human-readable summary used in diff output."""
        if self.ref is not None:
            return f"$ref:{self.ref}"
        if self.inline is not None:
            return self.inline.describe()
        return "any"


class Schema(_Frozen):
    """A canonical schema, either a named component or an inline fragment.

    ``type`` holds the JSON Schema primitive type (``string``, ``integer``,
    ``number``, ``boolean``, ``object``, ``array``, ``null``) when one is
    declared.  ``required`` keeps document order and contains no duplicates.
    """

    name: str = ""
    kind: SchemaKind = SchemaKind.OBJECT
    type: Optional[str] = None
    format: Optional[str] = None
    description: Optional[str] = None
    nullable: bool = False
    properties: dict[str, SchemaRef] = Field(default_factory=dict)
    required: list[str] = Field(default_factory=list)
    reference: Optional[str] = Field(
        default=None, description="Target schema name when kind is reference"
    )
    items: Optional[SchemaRef] = None
    additional_properties: Optional[SchemaRef] = None
    all_of: list[SchemaRef] = Field(default_factory=list)
    one_of: list[SchemaRef] = Field(default_factory=list)
    any_of: list[SchemaRef] = Field(default_factory=list)
    enum: Optional[list[Any]] = None
    default: Any = None
    unsupported: list[str] = Field(
        default_factory=list,
        description="Keywords the IR cannot represent (e.g. 'not')",
    )

    def describe(self) -> str:
        """Short human-readable summary used in diff output."""
        if self.kind == SchemaKind.REFERENCE:
            return f"$ref:{self.reference}"
        if self.kind == SchemaKind.ARRAY:
            inner = self.items.describe() if self.items else "any"
            return f"array<{inner}>"
        if self.kind == SchemaKind.COMPOSITION:
            parts = []
            for label, members in (
                ("allOf", self.all_of),
                ("oneOf", self.one_of),
                ("anyOf", self.any_of),
            ):
                if members:
                    parts.append(f"{label}[{len(members)}]")
            return " ".join(parts) or "composition"
        base = self.type or self.kind.value
        if self.format:
            base = f"{base}({self.format})"
        return base


class Parameter(_Frozen):
    """A single parameter of an :class:`Endpoint` (after path/operation merging)."""

    name: str
    location: ParameterLocation
    required: bool = False
    description: Optional[str] = None
    schema_: Optional[SchemaRef] = Field(default=None, alias="schema")
    deprecated: bool = False

    model_config = ConfigDict(frozen=True, populate_by_name=True)


class RequestBody(_Frozen):
    """Unified request body.  Swagger 2.0 body/formData parameters fold into this shape."""

    required: bool = False
    description: Optional[str] = None
    content_types: list[str] = Field(default_factory=list)
    schema_: Optional[SchemaRef] = Field(default=None, alias="schema")

    model_config = ConfigDict(frozen=True, populate_by_name=True)


class Response(_Frozen):
    """Response metadata for one status code."""

    status_code: str
    description: Optional[str] = None
    content_types: list[str] = Field(default_factory=list)
    schema_: Optional[SchemaRef] = Field(default=None, alias="schema")

    model_config = ConfigDict(frozen=True, populate_by_name=True)


class Endpoint(_Frozen):
    """One API operation (path template + HTTP method)."""

    path: str
    method: HTTPMethod
    operation_id: Optional[str] = None
    summary: Optional[str] = None
    description: Optional[str] = None
    tags: list[str] = Field(default_factory=list)
    deprecated: bool = False
    parameters: list[Parameter] = Field(default_factory=list)
    request_body: Optional[RequestBody] = None
    responses: dict[str, Response] = Field(default_factory=dict)
    security: list[dict[str, Any]] = Field(default_factory=list)

    @property
    def key(self) -> str:
        """Endpoint key, e.g. ``"GET /pets/{petId}"``."""
        return endpoint_key(self.method, self.path)


class APIInfo(_Frozen):
    """API metadata from the document's *Info Object*."""

    title: str
    version: str
    description: Optional[str] = None
    terms_of_service: Optional[str] = None
    contact_name: Optional[str] = None
    contact_email: Optional[str] = None
    contact_url: Optional[str] = None
    license_name: Optional[str] = None
    license_url: Optional[str] = None


class ServerInfo(_Frozen):
    """A server entry.  Swagger 2.0 ``host``/``basePath``/``schemes`` are folded into these."""

    url: str
    description: Optional[str] = None


class SecurityScheme(_Frozen):
    """A security scheme definition.

    The ``type`` field discriminates between ``apiKey``, ``http``, ``oauth2``,
    ``openIdConnect`` and the Swagger 2.0 ``basic`` scheme (normalised to
    ``http`` + ``basic``).
    """

    name: str
    type: str
    description: Optional[str] = None
    param_name: Optional[str] = None
    location: Optional[str] = None
    scheme: Optional[str] = None
    bearer_format: Optional[str] = None
    flows: Optional[dict[str, Any]] = None
    openid_connect_url: Optional[str] = None


class ValidationIssue(_Frozen):
    """One structural violation found by the validator."""

    pointer: str
    message: str


class SpecDocument(_Frozen):
    """Canonical, version-independent representation of one spec document.

    ``endpoints`` and ``schemas`` preserve source declaration order.  A new
    parse always produces a new instance.

    See Also:
        :func:`specsync.parser.normalizer.normalize`: The only producer.
    """

    source: str = ""
    spec_version: SpecVersion
    openapi_version: str = Field(description="Raw version string, e.g. '2.0' or '3.1.0'")
    spec_hash: str = ""
    info: APIInfo
    servers: list[ServerInfo] = Field(default_factory=list)
    endpoints: dict[str, Endpoint] = Field(default_factory=dict)
    schemas: dict[str, Schema] = Field(default_factory=dict)
    security_schemes: dict[str, SecurityScheme] = Field(default_factory=dict)
    tags: list[str] = Field(default_factory=list)
    warnings: list[ValidationIssue] = Field(default_factory=list)

    def resolve(self, ref: SchemaRef | None) -> Optional[Schema]:
        """Return the schema a :class:`SchemaRef` points at, or ``None`` if unresolvable."""
        if ref is None:
            return None
        if ref.ref is not None:
            return self.schemas.get(ref.ref)
        return ref.inline


def endpoint_key(method: HTTPMethod | str, path: str) -> str:
    """Build the canonical endpoint key ``"METHOD /path"``."""
    value = method.value if isinstance(method, HTTPMethod) else method
    return f"{value.upper()} {path}"


# --- Cache ---


class CacheEntry(BaseModel):
    """One cached document, keyed by normalized source.

    ``content_hash`` must equal ``document.spec_hash``; an entry failing that
    check is treated as corrupted and discarded.
    """

    source_key: str
    content_hash: str
    etag: Optional[str] = None
    last_modified: Optional[str] = None
    mtime: Optional[float] = Field(default=None, description="Local file mtime at fetch")
    fetched_at: datetime
    validated_at: datetime
    expires_at: datetime
    ttl_seconds: int
    schema_version: int
    document: SpecDocument

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at


# --- Graph ---


class EdgeKind(str, enum.Enum):
    """Why one node references another."""

    PROPERTY = "property"
    ARRAY_ITEM = "array-item"
    COMPOSITION_MEMBER = "composition-member"
    REQUEST_BODY = "request-body"
    RESPONSE_BODY = "response-body"
    PARAMETER = "parameter"


class Direction(str, enum.Enum):
    """Traversal direction for impact queries."""

    DOWNSTREAM = "downstream"
    UPSTREAM = "upstream"
    BOTH = "both"


class GraphEdge(_Frozen):
    source: str
    target: str
    kind: EdgeKind


class ImpactEntry(BaseModel):
    """One node reached by an impact query, annotated for ranking."""

    node: str
    node_kind: Literal["schema", "endpoint"]
    depth: int
    direction: Direction
    via: Optional[str] = None
    edge_kinds: list[EdgeKind] = Field(default_factory=list)


# --- Diff ---


class ChangeKind(str, enum.Enum):
    ADDED = "added"
    REMOVED = "removed"
    MODIFIED = "modified"


class Severity(str, enum.Enum):
    BREAKING = "breaking"
    NON_BREAKING = "non-breaking"


class Change(BaseModel):
    """One structural difference between two documents.

    ``rule`` names the classification rule that produced ``severity`` so that
    ambiguous cases stay inspectable.  ``interpretations`` is populated when a
    schema plays more than one role and the roles disagree.
    """

    path: str
    kind: ChangeKind
    severity: Severity
    rule: str
    message: str
    old_value: Optional[str] = None
    new_value: Optional[str] = None
    flags: list[str] = Field(default_factory=list)
    interpretations: dict[str, Severity] = Field(default_factory=dict)

    @property
    def is_breaking(self) -> bool:
        return self.severity == Severity.BREAKING


# --- Generation ---


class GenerationStyle(BaseModel):
    """Style options recognised by the code generator.  Unknown keys are rejected."""

    model_config = ConfigDict(extra="forbid")

    type_naming: Literal["PascalCase", "camelCase", "snake_case"] = "PascalCase"
    generate_docs: bool = True


class GenerationWarning(BaseModel):
    """A non-fatal degradation recorded while rendering."""

    pointer: str
    message: str


class GenerationResult(BaseModel):
    """Named output files plus warnings and counts."""

    target: str
    files: dict[str, str] = Field(default_factory=dict)
    warnings: list[GenerationWarning] = Field(default_factory=list)
    types_generated: int = 0
    operations_generated: int = 0


SchemaRef.model_rebuild()
Schema.model_rebuild()
