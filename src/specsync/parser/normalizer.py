"""Normalize decoded spec documents into the canonical IR.

The single public entry point for bytes is :func:`normalize`; for an already
decoded dictionary use :func:`build_document`.  Both produce a
:class:`~specsync.models.SpecDocument`, the version-independent IR every
downstream component works against.

Pipeline:

1. :func:`~specsync.parser.loader.decode_content` -- JSON or YAML.
2. :func:`~specsync.parser.loader.detect_version` -- Swagger 2.0 routes
   through :func:`~specsync.parser.legacy.convert_swagger2`; OpenAPI 3.0
   and 3.1 documents are already in the canonical input shape.
3. Structural validation (:mod:`specsync.parser.validator`).  All
   violations are collected; ``strict=True`` raises
   :class:`~specsync.exceptions.SpecParseError` listing every one of them,
   otherwise they are attached to :attr:`SpecDocument.warnings`.
4. The canonical pass below builds info, servers, endpoints, schemas and
   security schemes.  Component schema references stay named
   (:class:`~specsync.models.SchemaRef`), so recursive schemas never expand.
"""

from __future__ import annotations

import hashlib
import json
import logging
from typing import Any, Optional

from pydantic import ValidationError

from specsync.exceptions import SpecParseError
from specsync.models import (
    APIInfo,
    Endpoint,
    HTTPMethod,
    Parameter,
    ParameterLocation,
    RequestBody,
    Response,
    Schema,
    SchemaKind,
    SchemaRef,
    SecurityScheme,
    ServerInfo,
    SpecDocument,
    SpecVersion,
    ValidationIssue,
    endpoint_key,
)
from specsync.parser.legacy import SOURCE_POINTER_KEY, convert_swagger2
from specsync.parser.loader import decode_content, detect_version
from specsync.parser.resolver import (
    follow_ref,
    join_pointer,
    resolve_pointer,
    schema_name_from_ref,
)
from specsync.parser.validator import (
    check_path_parameters,
    check_refs,
    check_required_sections,
)

logger = logging.getLogger(__name__)

# Document order of methods inside a path item follows the item's own keys
_HTTP_METHODS = frozenset(m.value for m in HTTPMethod)
_UNSUPPORTED_KEYWORDS = ("not", "if", "then", "else", "patternProperties", "prefixItems")


def normalize(
    content: bytes | str,
    hint: str = "",
    source: str = "",
    strict: bool = False,
) -> SpecDocument:
    """Decode raw content and normalize it into a :class:`SpecDocument`.

    Args:
        content: Raw document bytes (or text).
        hint: ``'json'``, ``'yaml'`` or ``''`` for auto-detection.
        source: Where the content came from; recorded on the document.
        strict: Raise on any structural violation instead of attaching
            warnings.

    Raises:
        SpecParseError: If decoding fails, the version is unsupported, or
            (in strict mode) any structural violation is found.
    """
    raw_bytes = content.encode("utf-8") if isinstance(content, str) else content
    spec_hash = hashlib.sha256(raw_bytes).hexdigest()
    raw = decode_content(content, hint=hint)
    return build_document(raw, source=source, spec_hash=spec_hash, strict=strict)


def build_document(
    raw: dict[str, Any],
    source: str = "",
    spec_hash: str = "",
    strict: bool = False,
) -> SpecDocument:
    """Normalize an already decoded document.

    See :func:`normalize` for arguments.  When ``spec_hash`` is empty the
    hash is derived from a canonical JSON dump of *raw*.
    """
    version, version_str = detect_version(raw)
    issues: list[ValidationIssue] = []
    check_required_sections(raw, version, issues)

    if version == SpecVersion.SWAGGER_2:
        spec = convert_swagger2(raw, issues)
    else:
        spec = raw

    check_refs(spec, issues)

    if not spec_hash:
        spec_hash = _hash_raw(raw)

    builder = _DocumentBuilder(spec, issues)
    try:
        endpoints = builder.endpoints()
        schemas = builder.schemas()
        info = builder.info()
        servers = builder.servers()
        security_schemes = builder.security_schemes()
        tags = builder.tags(endpoints)
    except ValidationError as exc:
        error = exc.errors()[0]
        raise SpecParseError(
            f"Spec contains a value of the wrong type: {error['msg']}",
            condition="validation",
            pointer="/" + "/".join(str(loc) for loc in error["loc"]),
        ) from exc
    if version == SpecVersion.SWAGGER_2:
        issues = [_legacy_pointer(issue) for issue in issues]
    issues = _dedupe(issues)

    if strict:
        raise_for_issues(issues)
    for issue in issues:
        logger.warning("%s: %s (%s)", source or "<document>", issue.message, issue.pointer)

    return SpecDocument(
        source=source,
        spec_version=version,
        openapi_version=version_str,
        spec_hash=spec_hash,
        info=info,
        servers=servers,
        endpoints=endpoints,
        schemas=schemas,
        security_schemes=security_schemes,
        tags=tags,
        warnings=issues,
    )


def raise_for_issues(issues: list[ValidationIssue]) -> None:
    """Raise a :class:`SpecParseError` listing every issue, if there are any.

    Used for strict mode, both while normalizing and when a strict caller is
    served a document that was normalized leniently.
    """
    if not issues:
        return
    raise SpecParseError(
        f"Spec failed structural validation with {len(issues)} violation(s); "
        f"first at {issues[0].pointer}: {issues[0].message}",
        condition="validation",
        pointer=issues[0].pointer,
        violations=[issue.model_dump() for issue in issues],
    )


def _hash_raw(raw: dict[str, Any]) -> str:
    dumped = json.dumps(raw, sort_keys=True, default=str).encode("utf-8")
    return hashlib.sha256(dumped).hexdigest()


def _legacy_pointer(issue: ValidationIssue) -> ValidationIssue:
    """Map a pointer into the converted document back to Swagger 2.0 naming."""
    pointer = issue.pointer
    if pointer.startswith("/components/schemas/"):
        pointer = "/definitions/" + pointer[len("/components/schemas/"):]
    return ValidationIssue(pointer=pointer, message=issue.message)


def _dedupe(issues: list[ValidationIssue]) -> list[ValidationIssue]:
    seen: set[tuple[str, str]] = set()
    unique: list[ValidationIssue] = []
    for issue in issues:
        key = (issue.pointer, issue.message)
        if key not in seen:
            seen.add(key)
            unique.append(issue)
    return unique


class _DocumentBuilder:
    """Canonical pass over an OpenAPI 3.x-shaped dictionary."""

    def __init__(self, spec: dict[str, Any], issues: list[ValidationIssue]) -> None:
        self._spec = spec
        self._issues = issues
        components = spec.get("components")
        self._components: dict[str, Any] = components if isinstance(components, dict) else {}
        raw_schemas = self._components.get("schemas")
        self._raw_schemas: dict[str, Any] = raw_schemas if isinstance(raw_schemas, dict) else {}

    def _list_value(self, owner: dict[str, Any], key: str, pointer: str) -> list[Any]:
        """Return ``owner[key]`` if it is a list; otherwise record an issue and return ``[]``."""
        value = owner.get(key)
        if value is None:
            return []
        if not isinstance(value, list):
            self._issues.append(
                ValidationIssue(pointer=join_pointer(pointer, key), message=f"'{key}' must be a list")
            )
            return []
        return value

    # --- info / servers / security ---

    def info(self) -> APIInfo:
        info = self._spec.get("info")
        info = info if isinstance(info, dict) else {}
        contact = info.get("contact")
        contact = contact if isinstance(contact, dict) else {}
        license_info = info.get("license")
        license_info = license_info if isinstance(license_info, dict) else {}
        return APIInfo(
            title=str(info.get("title", "Untitled API")),
            version=str(info.get("version", "0.0.0")),
            description=info.get("description"),
            terms_of_service=info.get("termsOfService"),
            contact_name=contact.get("name"),
            contact_email=contact.get("email"),
            contact_url=contact.get("url"),
            license_name=license_info.get("name"),
            license_url=license_info.get("url"),
        )

    def servers(self) -> list[ServerInfo]:
        servers = self._spec.get("servers") or []
        return [
            ServerInfo(url=server.get("url", "/"), description=server.get("description"))
            for server in servers
            if isinstance(server, dict)
        ]

    def security_schemes(self) -> dict[str, SecurityScheme]:
        raw = self._components.get("securitySchemes")
        if not isinstance(raw, dict):
            return {}
        schemes: dict[str, SecurityScheme] = {}
        for name, data in raw.items():
            try:
                data = follow_ref(data, self._spec)
            except SpecParseError:
                continue  # reported by check_refs
            if not isinstance(data, dict):
                continue
            schemes[name] = SecurityScheme(
                name=name,
                type=data.get("type", ""),
                description=data.get("description"),
                param_name=data.get("name"),
                location=data.get("in"),
                scheme=data.get("scheme"),
                bearer_format=data.get("bearerFormat"),
                flows=data.get("flows"),
                openid_connect_url=data.get("openIdConnectUrl"),
            )
        return schemes

    def tags(self, endpoints: dict[str, Endpoint]) -> list[str]:
        tags: list[str] = []
        for tag in self._list_value(self._spec, "tags", ""):
            name = tag.get("name") if isinstance(tag, dict) else None
            if name and name not in tags:
                tags.append(name)
        for endpoint in endpoints.values():
            for name in endpoint.tags:
                if name not in tags:
                    tags.append(name)
        return tags

    # --- schemas ---

    def schemas(self) -> dict[str, Schema]:
        schemas: dict[str, Schema] = {}
        for name, raw in self._raw_schemas.items():
            pointer = join_pointer("/components/schemas", name)
            ref = self.schema_ref(raw, pointer)
            if ref.ref is not None:
                schemas[name] = Schema(
                    name=name,
                    kind=SchemaKind.REFERENCE,
                    reference=ref.ref,
                    description=raw.get("description") if isinstance(raw, dict) else None,
                )
            else:
                inline = ref.inline or Schema(kind=SchemaKind.PRIMITIVE)
                schemas[name] = inline.model_copy(update={"name": name})
        return schemas

    def schema_ref(
        self, raw: Any, pointer: str, seen: Optional[frozenset[str]] = None
    ) -> SchemaRef:
        """Convert a raw schema (or ``$ref``) into a :class:`SchemaRef`."""
        seen = seen or frozenset()
        if not isinstance(raw, dict):
            # OpenAPI 3.1 boolean schemas and malformed values collapse to "any"
            return SchemaRef(inline=Schema(kind=SchemaKind.PRIMITIVE))

        ref = raw.get("$ref")
        if isinstance(ref, str):
            name = schema_name_from_ref(ref)
            if name is not None:
                return SchemaRef(ref=name)
            if not ref.startswith("#/") or ref in seen:
                return SchemaRef(inline=Schema(kind=SchemaKind.PRIMITIVE, unsupported=["$ref"]))
            try:
                target = resolve_pointer(ref, self._spec)
            except SpecParseError:
                return SchemaRef(inline=Schema(kind=SchemaKind.PRIMITIVE, unsupported=["$ref"]))
            return self.schema_ref(target, pointer, seen | {ref})

        return SchemaRef(inline=self._convert_schema(raw, pointer, seen))

    def _convert_schema(self, raw: dict[str, Any], pointer: str, seen: frozenset[str]) -> Schema:
        type_value = raw.get("type")
        nullable = bool(raw.get("nullable") or raw.get("x-nullable"))
        any_of: list[SchemaRef] = []
        schema_type: Optional[str]

        # OpenAPI 3.1 allows type arrays, e.g. ["string", "null"]
        if isinstance(type_value, list):
            non_null = [str(t) for t in type_value if t != "null"]
            nullable = nullable or "null" in type_value
            if len(non_null) == 1:
                schema_type = non_null[0]
            else:
                schema_type = None
                any_of = [SchemaRef(inline=Schema(kind=_kind_for_type(t), type=t)) for t in non_null]
        else:
            schema_type = str(type_value) if type_value is not None else None

        def members(keyword: str) -> list[SchemaRef]:
            values = raw.get(keyword)
            if not isinstance(values, list):
                return []
            return [
                self.schema_ref(member, join_pointer(pointer, keyword, index), seen)
                for index, member in enumerate(values)
            ]

        all_of = members("allOf")
        one_of = members("oneOf")
        any_of = any_of + members("anyOf")

        properties: dict[str, SchemaRef] = {}
        raw_properties = raw.get("properties")
        if isinstance(raw_properties, dict):
            for prop_name, prop_schema in raw_properties.items():
                properties[str(prop_name)] = self.schema_ref(
                    prop_schema, join_pointer(pointer, "properties", prop_name), seen
                )

        required: list[str] = []
        for name in self._list_value(raw, "required", pointer):
            if isinstance(name, str) and name not in required:
                required.append(name)

        items: Optional[SchemaRef] = None
        if "items" in raw:
            items = self.schema_ref(raw["items"], join_pointer(pointer, "items"), seen)

        additional: Optional[SchemaRef] = None
        raw_additional = raw.get("additionalProperties")
        if isinstance(raw_additional, dict):
            additional = self.schema_ref(raw_additional, join_pointer(pointer, "additionalProperties"), seen)
        elif raw_additional is True:
            additional = SchemaRef(inline=Schema(kind=SchemaKind.PRIMITIVE))

        if all_of or one_of or any_of:
            kind = SchemaKind.COMPOSITION
        elif schema_type == "array" or items is not None:
            kind = SchemaKind.ARRAY
            schema_type = schema_type or "array"
        elif schema_type == "object" or properties or additional is not None:
            kind = SchemaKind.OBJECT
            schema_type = schema_type or "object"
        else:
            kind = SchemaKind.PRIMITIVE

        enum_values = raw.get("enum")
        return Schema(
            kind=kind,
            type=schema_type,
            format=raw.get("format"),
            description=raw.get("description"),
            nullable=nullable,
            properties=properties,
            required=required,
            items=items,
            additional_properties=additional,
            all_of=all_of,
            one_of=one_of,
            any_of=any_of,
            enum=list(enum_values) if isinstance(enum_values, list) else None,
            default=raw.get("default"),
            unsupported=[key for key in _UNSUPPORTED_KEYWORDS if key in raw],
        )

    # --- endpoints ---

    def endpoints(self) -> dict[str, Endpoint]:
        paths = self._spec.get("paths")
        if not isinstance(paths, dict):
            return {}
        global_security = self._spec.get("security") or []
        endpoints: dict[str, Endpoint] = {}

        for path, path_item in paths.items():
            path = str(path)
            item_pointer = join_pointer("/paths", path)
            try:
                path_item = follow_ref(path_item, self._spec)
            except SpecParseError:
                continue  # reported by check_refs
            if not isinstance(path_item, dict):
                self._issues.append(
                    ValidationIssue(pointer=item_pointer, message="Path item must be an object")
                )
                continue

            path_params = self._resolve_parameters(path_item.get("parameters"), item_pointer)

            for method_str, operation in path_item.items():
                if method_str not in _HTTP_METHODS or not isinstance(operation, dict):
                    continue
                pointer = join_pointer(item_pointer, method_str)
                op_params = self._resolve_parameters(operation.get("parameters"), pointer)
                converted = self._convert_parameters(_merge_parameters(path_params, op_params))
                parameters = [param for _, param in converted]

                check_path_parameters(
                    path,
                    [
                        (param_pointer, param.name)
                        for param_pointer, param in converted
                        if param.location == ParameterLocation.PATH
                    ],
                    pointer,
                    self._issues,
                )

                op_security = operation.get("security")
                method = HTTPMethod(method_str)
                endpoints[endpoint_key(method, path)] = Endpoint(
                    path=path,
                    method=method,
                    operation_id=operation.get("operationId"),
                    summary=operation.get("summary"),
                    description=operation.get("description"),
                    tags=[str(tag) for tag in self._list_value(operation, "tags", pointer)],
                    deprecated=bool(operation.get("deprecated", False)),
                    parameters=parameters,
                    request_body=self._convert_request_body(
                        operation.get("requestBody"), join_pointer(pointer, "requestBody")
                    ),
                    responses=self._convert_responses(
                        operation.get("responses"), join_pointer(pointer, "responses")
                    ),
                    security=op_security if op_security is not None else global_security,
                )

        return endpoints

    def _resolve_parameters(self, params: Any, pointer: str) -> list[tuple[str, dict[str, Any]]]:
        """Resolve parameter refs, pairing each parameter with its source pointer.

        Parameters converted from Swagger 2.0 carry their original pointer,
        since body and form parameters no longer occupy a slot in the list.
        """
        resolved: list[tuple[str, dict[str, Any]]] = []
        for index, param in enumerate(params if isinstance(params, list) else []):
            try:
                target = follow_ref(param, self._spec)
            except SpecParseError:
                continue  # reported by check_refs
            if isinstance(target, dict):
                source_pointer = target.get(SOURCE_POINTER_KEY) or join_pointer(
                    pointer, "parameters", index
                )
                resolved.append((str(source_pointer), target))
        return resolved

    def _convert_parameters(
        self, params: list[tuple[str, dict[str, Any]]]
    ) -> list[tuple[str, Parameter]]:
        parameters: list[tuple[str, Parameter]] = []
        for param_pointer, param in params:
            try:
                location = ParameterLocation(param.get("in", "query"))
            except ValueError:
                self._issues.append(
                    ValidationIssue(
                        pointer=join_pointer(param_pointer, "in"),
                        message=f"Unknown parameter location '{param.get('in')}'",
                    )
                )
                continue

            raw_schema = param.get("schema")
            if raw_schema is None and isinstance(param.get("content"), dict):
                raw_schema = _first_content_schema(param["content"])
            schema = (
                self.schema_ref(raw_schema, join_pointer(param_pointer, "schema"))
                if raw_schema is not None
                else None
            )

            # Path parameters are always required
            required = bool(param.get("required", False)) or location == ParameterLocation.PATH
            parameters.append(
                (
                    param_pointer,
                    Parameter(
                        name=str(param.get("name", "")),
                        location=location,
                        required=required,
                        description=param.get("description"),
                        schema=schema,
                        deprecated=bool(param.get("deprecated", False)),
                    ),
                )
            )
        return parameters

    def _convert_request_body(self, body: Any, pointer: str) -> Optional[RequestBody]:
        if body is None:
            return None
        try:
            body = follow_ref(body, self._spec)
        except SpecParseError:
            return None  # reported by check_refs
        if not isinstance(body, dict):
            return None

        content = body.get("content") or {}
        raw_schema = _first_content_schema(content)
        return RequestBody(
            required=bool(body.get("required", False)),
            description=body.get("description"),
            content_types=[str(ct) for ct in content],
            schema=self.schema_ref(raw_schema, join_pointer(pointer, "content"))
            if raw_schema is not None
            else None,
        )

    def _convert_responses(self, responses: Any, pointer: str) -> dict[str, Response]:
        result: dict[str, Response] = {}
        if not isinstance(responses, dict):
            return result
        for status, response in responses.items():
            status = str(status)
            try:
                response = follow_ref(response, self._spec)
            except SpecParseError:
                continue  # reported by check_refs
            if not isinstance(response, dict):
                continue
            content = response.get("content") or {}
            raw_schema = _first_content_schema(content)
            result[status] = Response(
                status_code=status,
                description=response.get("description"),
                content_types=[str(ct) for ct in content],
                schema=self.schema_ref(raw_schema, join_pointer(pointer, status, "content"))
                if raw_schema is not None
                else None,
            )
        return result


def _kind_for_type(type_name: str) -> SchemaKind:
    if type_name == "array":
        return SchemaKind.ARRAY
    if type_name == "object":
        return SchemaKind.OBJECT
    return SchemaKind.PRIMITIVE


def _first_content_schema(content: dict[str, Any]) -> Any:
    """Return the schema of the first media type that declares one."""
    for media in content.values():
        if isinstance(media, dict) and "schema" in media:
            return media["schema"]
    return None


def _merge_parameters(
    path_params: list[tuple[str, dict[str, Any]]],
    op_params: list[tuple[str, dict[str, Any]]],
) -> list[tuple[str, dict[str, Any]]]:
    """Merge path-level and operation-level parameters.

    Operation-level parameters override path-level parameters with the same
    name and location (``in`` field).
    """
    op_keys = {(param.get("name", ""), param.get("in", "")) for _, param in op_params}
    merged = [
        (pointer, param)
        for pointer, param in path_params
        if (param.get("name", ""), param.get("in", "")) not in op_keys
    ]
    merged.extend(op_params)
    return merged
