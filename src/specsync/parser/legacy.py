"""Convert Swagger 2.0 documents into the OpenAPI 3.x shape.

This is the one conversion pass for the legacy input shape.  Its output is
an OpenAPI 3.0-shaped dictionary, so the canonical pass in
:mod:`specsync.parser.normalizer` is written once against a single shape.

Rewrites performed by :func:`convert_swagger2`:

* ``definitions`` become ``components.schemas`` and every
  ``#/definitions/`` reference is rewritten accordingly.
* ``in: body`` parameters fold into ``requestBody`` using the operation's
  (or document's) ``consumes`` list; ``in: formData`` parameters fold into a
  form request body.
* Response ``schema`` + ``produces`` become ``content`` entries.
* Parameter-level ``type``/``format``/``items``/``enum``/``default`` move
  into a parameter ``schema``.
* ``securityDefinitions`` become ``components.securitySchemes``.
* ``host``/``basePath``/``schemes`` become ``servers``.

References to ``#/parameters/`` and ``#/responses/`` are resolved against the
original document during conversion; failures are collected as issues.
"""

from __future__ import annotations

import copy
from typing import Any

from specsync.exceptions import SpecParseError
from specsync.models import HTTPMethod, ValidationIssue
from specsync.parser.resolver import (
    LEGACY_SCHEMA_REF_PREFIX,
    SCHEMA_REF_PREFIX,
    follow_ref,
    join_pointer,
)

_HTTP_METHODS = [m.value for m in HTTPMethod]
_DEFAULT_MEDIA_TYPE = "application/json"
_PARAM_SCHEMA_KEYS = (
    "type",
    "format",
    "items",
    "enum",
    "default",
    "minimum",
    "maximum",
    "pattern",
    "minLength",
    "maxLength",
)
SOURCE_POINTER_KEY = "x-specsync-source-pointer"
"""Extension key recording where a converted parameter is written in the original document."""

_OAUTH2_FLOWS = {
    "implicit": "implicit",
    "password": "password",
    "application": "clientCredentials",
    "accessCode": "authorizationCode",
}


def convert_swagger2(spec: dict[str, Any], issues: list[ValidationIssue]) -> dict[str, Any]:
    """Return an OpenAPI 3.0-shaped copy of a Swagger 2.0 document.

    Args:
        spec: The decoded Swagger 2.0 document.  It is not modified.
        issues: Accumulator for references that could not be resolved.

    Returns:
        A new dictionary with ``openapi: "3.0.3"``.
    """
    consumes = _media_types(spec, "consumes", "", issues) or [_DEFAULT_MEDIA_TYPE]
    produces = _media_types(spec, "produces", "", issues) or [_DEFAULT_MEDIA_TYPE]

    converted: dict[str, Any] = {
        "openapi": "3.0.3",
        "info": copy.deepcopy(spec.get("info", {})),
        "servers": _convert_servers(spec),
    }
    for key in ("tags", "security", "externalDocs"):
        if key in spec:
            converted[key] = copy.deepcopy(spec[key])

    paths = spec.get("paths")
    if isinstance(paths, dict):
        converted["paths"] = {
            path: _convert_path_item(spec, path, item, consumes, produces, issues)
            for path, item in paths.items()
        }
    elif paths is not None:
        converted["paths"] = copy.deepcopy(paths)

    components: dict[str, Any] = {}
    definitions = spec.get("definitions")
    if isinstance(definitions, dict):
        components["schemas"] = _rewrite_refs(definitions)
    security_definitions = spec.get("securityDefinitions")
    if isinstance(security_definitions, dict):
        components["securitySchemes"] = {
            name: _convert_security_scheme(scheme)
            for name, scheme in security_definitions.items()
            if isinstance(scheme, dict)
        }
    if components:
        converted["components"] = components

    return converted


def _convert_servers(spec: dict[str, Any]) -> list[dict[str, Any]]:
    host = spec.get("host")
    base_path = spec.get("basePath", "") or ""
    if not host:
        return [{"url": base_path}] if base_path else []
    schemes = spec.get("schemes") or ["https"]
    return [{"url": f"{scheme}://{host}{base_path}"} for scheme in schemes]


def _media_types(
    owner: dict[str, Any], key: str, pointer: str, issues: list[ValidationIssue]
) -> list[str]:
    """Return the ``consumes``/``produces`` list of *owner*, or ``[]`` if absent or malformed."""
    value = owner.get(key)
    if value is None:
        return []
    if not isinstance(value, list):
        issues.append(
            ValidationIssue(pointer=join_pointer(pointer, key), message=f"'{key}' must be a list")
        )
        return []
    return [str(media_type) for media_type in value]


def _convert_path_item(
    spec: dict[str, Any],
    path: str,
    item: Any,
    consumes: list[str],
    produces: list[str],
    issues: list[ValidationIssue],
) -> Any:
    if not isinstance(item, dict):
        return copy.deepcopy(item)

    pointer = join_pointer("/paths", path)
    path_params = _resolve_parameters(spec, item.get("parameters", []), pointer, issues)

    converted: dict[str, Any] = {}
    for key, value in item.items():
        if key == "parameters":
            continue
        if key in _HTTP_METHODS and isinstance(value, dict):
            converted[key] = _convert_operation(
                spec,
                value,
                path_params,
                consumes,
                produces,
                join_pointer(pointer, key),
                issues,
            )
        else:
            converted[key] = copy.deepcopy(value)
    return converted


def _resolve_parameters(
    spec: dict[str, Any],
    params: Any,
    pointer: str,
    issues: list[ValidationIssue],
) -> list[tuple[str, dict[str, Any]]]:
    """Resolve parameter refs, pairing each parameter with its pointer."""
    resolved: list[tuple[str, dict[str, Any]]] = []
    if not isinstance(params, list):
        return resolved
    for index, param in enumerate(params):
        param_pointer = join_pointer(pointer, "parameters", index)
        try:
            target = follow_ref(param, spec)
        except SpecParseError as exc:
            issues.append(ValidationIssue(pointer=param_pointer, message=exc.message))
            continue
        if isinstance(target, dict):
            resolved.append((param_pointer, target))
    return resolved


def _convert_operation(
    spec: dict[str, Any],
    operation: dict[str, Any],
    path_params: list[tuple[str, dict[str, Any]]],
    consumes: list[str],
    produces: list[str],
    pointer: str,
    issues: list[ValidationIssue],
) -> dict[str, Any]:
    op_params = _resolve_parameters(spec, operation.get("parameters", []), pointer, issues)

    # Operation-level parameters override path-level ones with the same name and location
    overridden = {(p.get("name"), p.get("in")) for _, p in op_params}
    merged = [(ptr, p) for ptr, p in path_params if (p.get("name"), p.get("in")) not in overridden]
    merged.extend(op_params)

    op_consumes = _media_types(operation, "consumes", pointer, issues) or consumes
    op_produces = _media_types(operation, "produces", pointer, issues) or produces

    converted: dict[str, Any] = {
        key: copy.deepcopy(value)
        for key, value in operation.items()
        if key not in ("parameters", "responses", "consumes", "produces", "schemes")
    }

    parameters: list[dict[str, Any]] = []
    body_param: dict[str, Any] | None = None
    form_params: list[dict[str, Any]] = []
    for param_pointer, param in merged:
        location = param.get("in")
        if location == "body":
            body_param = param
        elif location == "formData":
            form_params.append(param)
        else:
            parameters.append(_convert_parameter(param, param_pointer))
    if parameters:
        converted["parameters"] = parameters

    if body_param is not None:
        converted["requestBody"] = _body_to_request_body(body_param, op_consumes)
    elif form_params:
        converted["requestBody"] = _form_to_request_body(form_params, op_consumes)

    responses = operation.get("responses")
    if isinstance(responses, dict):
        converted["responses"] = {
            str(status): _convert_response(
                spec, response, op_produces, join_pointer(pointer, "responses", status), issues
            )
            for status, response in responses.items()
        }

    return converted


def _parameter_schema(param: dict[str, Any]) -> dict[str, Any]:
    if "schema" in param:
        return _rewrite_refs(param["schema"])
    if param.get("type") == "file":
        return {"type": "string", "format": "binary"}
    schema = {key: copy.deepcopy(param[key]) for key in _PARAM_SCHEMA_KEYS if key in param}
    if "items" in schema:
        schema["items"] = _rewrite_refs(schema["items"])
    return schema


def _convert_parameter(param: dict[str, Any], pointer: str) -> dict[str, Any]:
    converted: dict[str, Any] = {
        "name": param.get("name", ""),
        "in": param.get("in", "query"),
        "schema": _parameter_schema(param),
        SOURCE_POINTER_KEY: pointer,
    }
    for key in ("required", "description", "deprecated"):
        if key in param:
            converted[key] = param[key]
    return converted


def _body_to_request_body(param: dict[str, Any], consumes: list[str]) -> dict[str, Any]:
    schema = _rewrite_refs(param.get("schema", {}))
    body: dict[str, Any] = {
        "required": param.get("required", False),
        "content": {media_type: {"schema": copy.deepcopy(schema)} for media_type in consumes},
    }
    if "description" in param:
        body["description"] = param["description"]
    return body


def _form_to_request_body(params: list[dict[str, Any]], consumes: list[str]) -> dict[str, Any]:
    media_type = (
        "multipart/form-data"
        if "multipart/form-data" in consumes
        else "application/x-www-form-urlencoded"
    )
    schema: dict[str, Any] = {
        "type": "object",
        "properties": {p.get("name", ""): _parameter_schema(p) for p in params},
    }
    required = [p.get("name", "") for p in params if p.get("required")]
    if required:
        schema["required"] = required
    return {
        "required": bool(required),
        "content": {media_type: {"schema": schema}},
    }


def _convert_response(
    spec: dict[str, Any],
    response: Any,
    produces: list[str],
    pointer: str,
    issues: list[ValidationIssue],
) -> Any:
    try:
        response = follow_ref(response, spec)
    except SpecParseError as exc:
        issues.append(ValidationIssue(pointer=pointer, message=exc.message))
        return {"description": ""}
    if not isinstance(response, dict):
        return copy.deepcopy(response)

    converted: dict[str, Any] = {"description": response.get("description", "")}
    if "schema" in response:
        schema = _rewrite_refs(response["schema"])
        converted["content"] = {
            media_type: {"schema": copy.deepcopy(schema)} for media_type in produces
        }
    if "headers" in response:
        converted["headers"] = copy.deepcopy(response["headers"])
    return converted


def _convert_security_scheme(scheme: dict[str, Any]) -> dict[str, Any]:
    scheme_type = scheme.get("type", "")
    converted: dict[str, Any] = {}
    if "description" in scheme:
        converted["description"] = scheme["description"]

    if scheme_type == "basic":
        converted.update({"type": "http", "scheme": "basic"})
    elif scheme_type == "apiKey":
        converted.update({"type": "apiKey", "name": scheme.get("name"), "in": scheme.get("in")})
    elif scheme_type == "oauth2":
        flow_name = _OAUTH2_FLOWS.get(scheme.get("flow", ""), "implicit")
        flow: dict[str, Any] = {"scopes": copy.deepcopy(scheme.get("scopes", {}))}
        if "authorizationUrl" in scheme:
            flow["authorizationUrl"] = scheme["authorizationUrl"]
        if "tokenUrl" in scheme:
            flow["tokenUrl"] = scheme["tokenUrl"]
        converted.update({"type": "oauth2", "flows": {flow_name: flow}})
    else:
        converted.update(copy.deepcopy(scheme))
    return converted


def _rewrite_refs(obj: Any) -> Any:
    """Deep-copy *obj*, pointing ``#/definitions/`` refs at ``#/components/schemas/``."""
    if isinstance(obj, dict):
        rewritten: dict[str, Any] = {}
        for key, value in obj.items():
            if key == "$ref" and isinstance(value, str) and value.startswith(LEGACY_SCHEMA_REF_PREFIX):
                rewritten[key] = SCHEMA_REF_PREFIX + value[len(LEGACY_SCHEMA_REF_PREFIX):]
            else:
                rewritten[key] = _rewrite_refs(value)
        return rewritten
    if isinstance(obj, list):
        return [_rewrite_refs(item) for item in obj]
    return obj
