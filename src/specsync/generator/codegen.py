"""Render a :class:`~specsync.models.SpecDocument` into source files.

The generation process:

1. The target is looked up in the capability table
   (:mod:`specsync.generator.targets`) and the style options are validated.
2. :class:`_DeclarationBuilder` turns every named schema into a type
   declaration.  Inline object schemas nested in properties, array items,
   request bodies and responses are hoisted into synthetic named types
   (``UserAddress``, ``CreateUserRequest``); collisions get numeric suffixes.
3. For client targets, every endpoint becomes an operation declaration.
4. A Jinja2 environment renders the declarations with the templates in
   ``generator/templates/``.

Output is a pure function of ``(document, target, style)``: iteration
follows the document's declaration order or sorted order, and no timestamps
are emitted.  Constructs the target cannot express (``not``, non-object
``allOf`` members, references to undefined schemas) become the language's
any-type and are reported as :class:`~specsync.models.GenerationWarning`.

Example::

    result = CodeGenerator("python-httpx").generate(document)
    for filename, text in result.files.items():
        print(filename, len(text))
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

from jinja2 import Environment, FileSystemLoader, TemplateError, select_autoescape
from pydantic import ValidationError

from specsync.exceptions import CodegenError, ConfigError
from specsync.generator.naming import (
    NameRegistry,
    apply_type_naming,
    camel_case,
    pascal_case,
    python_identifier,
    python_type_name,
    snake_case,
    typescript_identifier,
    typescript_property,
    typescript_type_name,
)
from specsync.generator.targets import PYTHON, LanguageProfile, Target, get_target
from specsync.models import (
    Endpoint,
    GenerationResult,
    GenerationStyle,
    GenerationWarning,
    ParameterLocation,
    Schema,
    SchemaKind,
    SchemaRef,
    SpecDocument,
)

logger = logging.getLogger(__name__)

TEMPLATE_DIR = Path(__file__).parent / "templates"
"""Path to the Jinja2 template directory (``generator/templates/``)."""

_PYTHON_RESERVED_TYPES = (
    "Any", "Optional", "Union", "Literal", "BaseModel", "ConfigDict", "Field",
    "TypeAdapter", "datetime", "date", "UUID", "ApiError", "httpx", "quote",
)
_TYPESCRIPT_RESERVED_TYPES = (
    "ApiError", "ClientOptions", "RequestOptions", "Record", "Array", "Promise",
    "Blob", "Error", "URLSearchParams",
)
# Names a pydantic model field may not take
_PYDANTIC_RESERVED_FIELDS = frozenset(
    {
        "construct", "copy", "dict", "fields", "from_orm", "json", "parse_file",
        "parse_obj", "parse_raw", "schema", "schema_json", "update_forward_refs",
        "validate",
    }
)
_TOKEN_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")
_PATH_PARAM_RE = re.compile(r"\{([^{}]+)\}")


# --- declarations handed to templates ---


@dataclass
class FieldDecl:
    name: str
    wire_name: str
    type_expr: str
    required: bool
    doc: list[str] = field(default_factory=list)
    # Python only: full annotation and default, e.g. ": Optional[int] = None"
    declaration: str = ""


@dataclass
class TypeDecl:
    name: str
    kind: str  # "object" or "alias"
    doc: list[str] = field(default_factory=list)
    fields: list[FieldDecl] = field(default_factory=list)
    type_expr: str = ""
    refs: set[str] = field(default_factory=set)


@dataclass
class ParamDecl:
    name: str
    wire_name: str
    type_expr: str
    required: bool
    location: str
    access: str = ""


@dataclass
class OperationDecl:
    name: str
    method: str
    path: str
    path_expr: str
    signature: str
    return_type: str
    response_type: Optional[str]
    doc: list[str] = field(default_factory=list)
    path_params: list[ParamDecl] = field(default_factory=list)
    query_params: list[ParamDecl] = field(default_factory=list)
    header_params: list[ParamDecl] = field(default_factory=list)
    body_type: Optional[str] = None
    body_required: bool = False
    deprecated: bool = False


# --- public API ---


class CodeGenerator:
    """Generate source files for one target under one style.

    Args:
        target: Target identifier, e.g. ``"typescript"`` or ``"python-httpx"``.
        style: A :class:`~specsync.models.GenerationStyle` or a dict of
            style options.  ``None`` uses the defaults.

    Raises:
        ConfigError: ``unknown_target`` for an unknown target,
            ``invalid_style`` for an unknown option or invalid value.
    """

    def __init__(
        self,
        target: str,
        style: GenerationStyle | dict[str, Any] | None = None,
    ) -> None:
        self.target: Target = get_target(target)
        self.style = coerce_style(style)
        self._env = _create_jinja_env()

    def generate(self, document: SpecDocument) -> GenerationResult:
        """Render *document*.

        Returns:
            A :class:`~specsync.models.GenerationResult` with one entry per
            output file, plus warnings and counts.

        Raises:
            CodegenError: If a template fails to render.
        """
        builder = _DeclarationBuilder(document, self.target.profile, self.style)
        builder.declare_schemas()
        client_name = ""
        operations: list[OperationDecl] = []
        if self.target.emits_client:
            client_name = builder.claim_client_name()
            operations = builder.declare_operations()

        types = builder.types
        context: dict[str, Any] = {
            "header": _header(document),
            "docs": self.style.generate_docs,
            "title": _one_line(document.info.title),
            "version": _one_line(document.info.version),
            "base_url": document.servers[0].url if document.servers else "",
            "types": types,
            "operations": operations,
            "client_name": client_name,
        }

        files: dict[str, str] = {}
        if self.target.language == "typescript":
            files["types.ts"] = self._render("types.ts.j2", context)
            if self.target.emits_client:
                context["type_imports"] = sorted(
                    {ref for op in operations for ref in _tokens(_operation_exprs(op))}
                    & {decl.name for decl in types}
                )
                files["client.ts"] = self._render("client.ts.j2", context)
        else:
            classes = [decl for decl in types if decl.kind == "object"]
            aliases = builder.ordered_aliases()
            context.update(
                classes=classes,
                aliases=aliases,
                imports=_python_imports(_type_exprs(types)),
            )
            files["models.py"] = self._render("models.py.j2", context)
            if self.target.emits_client:
                exprs = [expr for op in operations for expr in _operation_exprs(op)]
                context["client_imports"] = _python_imports(exprs)
                context["model_imports"] = sorted(
                    _tokens(exprs) & {decl.name for decl in types}
                )
                files["client.py"] = self._render("client.py.j2", context)
                files["__init__.py"] = self._render("package_init.py.j2", context)

        logger.debug(
            "Generated %d file(s) for target %s (%d types, %d operations, %d warnings)",
            len(files),
            self.target.name,
            len(types),
            len(operations),
            len(builder.warnings),
        )
        return GenerationResult(
            target=self.target.name,
            files=dict(sorted(files.items())),
            warnings=builder.warnings,
            types_generated=len(types),
            operations_generated=len(operations),
        )

    def _render(self, template_name: str, context: dict[str, Any]) -> str:
        try:
            return self._env.get_template(template_name).render(**context)
        except TemplateError as exc:
            raise CodegenError(
                f"Failed to render {template_name} for target {self.target.name}: {exc}",
                condition="template_error",
            ) from exc


def coerce_style(style: GenerationStyle | dict[str, Any] | None) -> GenerationStyle:
    """Validate style options.

    Raises:
        ConfigError: ``invalid_style`` for unknown keys or invalid values.
    """
    if isinstance(style, GenerationStyle):
        return style
    try:
        return GenerationStyle.model_validate(style or {})
    except ValidationError as exc:
        problems = "; ".join(
            f"{'.'.join(str(loc) for loc in err['loc']) or 'style'}: {err['msg']}"
            for err in exc.errors()
        )
        raise ConfigError(f"Invalid style options: {problems}", condition="invalid_style") from exc


def _create_jinja_env() -> Environment:
    """Create the Jinja2 environment for code templates.

    Autoescape is disabled for the code templates (they produce source, not
    HTML).  Block trimming and lstrip are enabled for cleaner template
    authoring, and a ``quote`` filter renders JSON-style string literals.
    """
    env = Environment(
        loader=FileSystemLoader(str(TEMPLATE_DIR)),
        autoescape=select_autoescape(disabled_extensions=("ts.j2", "py.j2")),
        trim_blocks=True,
        lstrip_blocks=True,
        keep_trailing_newline=True,
    )
    env.filters["quote"] = json.dumps
    return env


# --- declaration building ---


class _DeclarationBuilder:
    def __init__(
        self, document: SpecDocument, profile: LanguageProfile, style: GenerationStyle
    ) -> None:
        self.document = document
        self.profile = profile
        self.style = style
        self.python = profile is PYTHON
        self.types: list[TypeDecl] = []
        self.warnings: list[GenerationWarning] = []
        self._registry = NameRegistry(
            _PYTHON_RESERVED_TYPES if self.python else _TYPESCRIPT_RESERVED_TYPES
        )
        self._type_names: dict[str, str] = {}
        self._refs: Optional[set[str]] = None
        self._warned: set[tuple[str, str]] = set()

    # --- naming ---

    def _type_name(self, raw: str) -> str:
        styled = apply_type_naming(raw, self.style.type_naming)
        safe = python_type_name(styled) if self.python else typescript_type_name(styled)
        return self._registry.claim(safe)

    def claim_client_name(self) -> str:
        base = pascal_case(self.document.info.title) or "Api"
        if base[0].isdigit():
            base = f"Api{base}"
        return self._registry.claim(f"{base}Client")

    def _warn(self, pointer: str, message: str) -> None:
        key = (pointer, message)
        if key not in self._warned:
            self._warned.add(key)
            self.warnings.append(GenerationWarning(pointer=pointer, message=message))

    # --- schemas ---

    def declare_schemas(self) -> None:
        for raw_name in self.document.schemas:
            self._type_names[raw_name] = self._type_name(raw_name)
        for raw_name, schema in self.document.schemas.items():
            self._declare(
                self._type_names[raw_name], raw_name, schema, f"schemas/{raw_name}"
            )

    def _declare(self, name: str, raw_name: str, schema: Schema, pointer: str) -> None:
        doc = _doc_lines(schema.description)
        if _is_object_like(schema):
            collected = self._object_properties(schema, pointer, frozenset())
            if collected is not None:
                # Reserve the slot first so hoisted children follow their parent
                decl = TypeDecl(name=name, kind="object", doc=doc)
                self.types.append(decl)
                properties, required = collected
                decl.fields = self._fields(raw_name, properties, required, pointer)
                return
            expr = self.profile.any_type
            refs: set[str] = set()
        else:
            outer, self._refs = self._refs, set()
            try:
                expr = self._schema_type(schema, pointer, raw_name)
            finally:
                refs, self._refs = self._refs, outer
        self.types.append(TypeDecl(name=name, kind="alias", doc=doc, type_expr=expr, refs=refs))

    def _fields(
        self,
        raw_parent: str,
        properties: dict[str, SchemaRef],
        required: list[str],
        pointer: str,
    ) -> list[FieldDecl]:
        names = NameRegistry()
        fields: list[FieldDecl] = []
        for wire_name, prop in properties.items():
            prop_pointer = f"{pointer}/properties/{wire_name}"
            type_expr = self._ref_type(prop, prop_pointer, f"{raw_parent} {wire_name}")
            inline = prop.inline
            doc = _doc_lines(inline.description if inline is not None else None)
            is_required = wire_name in required
            if self.python:
                ident = python_identifier(wire_name)
                if ident.startswith("_") or ident.startswith("model_") or ident in _PYDANTIC_RESERVED_FIELDS:
                    ident = f"field_{ident.lstrip('_')}"
                ident = names.claim(ident, "_")
                field_decl = FieldDecl(ident, wire_name, type_expr, is_required, doc)
                field_decl.declaration = self._python_field(field_decl)
            else:
                ident = names.claim(typescript_property(wire_name))
                field_decl = FieldDecl(ident, wire_name, type_expr, is_required, doc)
            fields.append(field_decl)
        return fields

    def _python_field(self, decl: FieldDecl) -> str:
        annotation = decl.type_expr if decl.required else _py_optional(decl.type_expr)
        options: list[str] = []
        if not decl.required:
            options.append("default=None")
        if decl.name != decl.wire_name:
            options.append(f"alias={json.dumps(decl.wire_name)}")
        if self.style.generate_docs and decl.doc:
            options.append(f"description={json.dumps(' '.join(decl.doc))}")
        if not options:
            return f": {annotation}"
        if options == ["default=None"]:
            return f": {annotation} = None"
        return f": {annotation} = Field({', '.join(options)})"

    def _object_properties(
        self, schema: Schema, pointer: str, seen: frozenset[str]
    ) -> Optional[tuple[dict[str, SchemaRef], list[str]]]:
        """Merge ``allOf`` members and own properties, or ``None`` if unsupported."""
        properties: dict[str, SchemaRef] = {}
        required: list[str] = []
        for index, member in enumerate(schema.all_of):
            member_pointer = f"{pointer}/allOf/{index}"
            if member.ref is not None and member.ref in seen:
                continue
            target = self._resolve(member)
            if target is None:
                self._warn(member_pointer, f"Unresolvable reference '{member.ref}'; using {self.profile.any_type}")
                return None
            if not (_is_object_like(target) or (target.kind == SchemaKind.OBJECT and not target.properties)):
                self._warn(
                    member_pointer,
                    f"allOf member {member.describe()} is not an object; using {self.profile.any_type}",
                )
                return None
            nested_seen = seen | {member.ref} if member.ref is not None else seen
            collected = self._object_properties(target, member_pointer, nested_seen)
            if collected is None:
                return None
            properties.update(collected[0])
            required.extend(name for name in collected[1] if name not in required)
        properties.update(schema.properties)
        required.extend(name for name in schema.required if name not in required)
        return properties, required

    def _resolve(self, ref: SchemaRef) -> Optional[Schema]:
        """Resolve *ref*, following named aliases of kind ``reference``."""
        schema = self.document.resolve(ref)
        seen: set[str] = set()
        while schema is not None and schema.kind == SchemaKind.REFERENCE and schema.reference:
            if schema.reference in seen:
                return None
            seen.add(schema.reference)
            schema = self.document.schemas.get(schema.reference)
        return schema

    def _named(self, raw_name: str, pointer: str) -> str:
        name = self._type_names.get(raw_name)
        if name is None:
            self._warn(pointer, f"Unresolvable reference '{raw_name}'; using {self.profile.any_type}")
            return self.profile.any_type
        if self._refs is not None:
            self._refs.add(name)
        return name

    def _ref_type(self, ref: Optional[SchemaRef], pointer: str, hint: str) -> str:
        if ref is None:
            return self.profile.any_type
        if ref.ref is not None:
            return self._named(ref.ref, pointer)
        if ref.inline is None:
            return self.profile.any_type
        return self._schema_type(ref.inline, pointer, hint)

    def _schema_type(self, schema: Schema, pointer: str, hint: str) -> str:
        for keyword in schema.unsupported:
            if keyword in ("not", "$ref"):
                self._warn(pointer, f"Unsupported construct '{keyword}'; using {self.profile.any_type}")
                return self.profile.any_type
            self._warn(pointer, f"Keyword '{keyword}' is not supported by this target and was ignored")

        expr = self._base_type(schema, pointer, hint)
        if schema.nullable and expr != self.profile.any_type:
            expr = self.profile.nullable.format(expr)
        return expr

    def _base_type(self, schema: Schema, pointer: str, hint: str) -> str:
        profile = self.profile
        if schema.kind == SchemaKind.REFERENCE and schema.reference:
            return self._named(schema.reference, pointer)

        if schema.kind == SchemaKind.COMPOSITION:
            if _is_object_like(schema):
                if len(schema.all_of) == 1 and not schema.properties:
                    return self._ref_type(schema.all_of[0], f"{pointer}/allOf/0", hint)
                return self._hoist(schema, pointer, hint)
            if schema.all_of:
                # allOf mixed with oneOf/anyOf
                self._warn(pointer, f"allOf combined with oneOf/anyOf; using {profile.any_type}")
                return profile.any_type
            members: list[str] = []
            for keyword, refs in (("oneOf", schema.one_of), ("anyOf", schema.any_of)):
                for index, member in enumerate(refs):
                    expr = self._ref_type(
                        member, f"{pointer}/{keyword}/{index}", f"{hint} option {len(members) + 1}"
                    )
                    if expr not in members:
                        members.append(expr)
            if profile.any_type in members:
                return profile.any_type
            if len(members) == 1:
                return members[0]
            return " | ".join(members) if not self.python else f"Union[{', '.join(members)}]"

        if schema.enum is not None and schema.kind == SchemaKind.PRIMITIVE:
            return self._enum_type(schema.enum, pointer)

        if schema.kind == SchemaKind.ARRAY:
            item = self._ref_type(schema.items, f"{pointer}/items", f"{hint} item")
            return profile.array.format(item)

        if schema.kind == SchemaKind.OBJECT:
            if schema.properties:
                return self._hoist(schema, pointer, hint)
            if schema.additional_properties is not None:
                value = self._ref_type(
                    schema.additional_properties, f"{pointer}/additionalProperties", f"{hint} value"
                )
                return profile.mapping.format(value)
            return profile.primitives["object"]

        return profile.primitive(schema.type, schema.format) or profile.any_type

    def _enum_type(self, values: list[Any], pointer: str) -> str:
        literals: list[str] = []
        for value in values:
            if value is None:
                literal = self.profile.null_type
            elif isinstance(value, bool):
                literal = ("True" if value else "False") if self.python else json.dumps(value)
            elif isinstance(value, (str, int, float)):
                literal = json.dumps(value)
            else:
                self._warn(pointer, f"Enum value {json.dumps(value, default=str)} cannot be expressed; using {self.profile.any_type}")
                return self.profile.any_type
            if literal not in literals:
                literals.append(literal)
        if not literals:
            return self.profile.any_type
        if self.python:
            return f"Literal[{', '.join(literals)}]"
        return " | ".join(literals)

    def _hoist(self, schema: Schema, pointer: str, hint: str) -> str:
        name = self._type_name(hint)
        outer, self._refs = self._refs, None
        try:
            self._declare(name, hint, schema, pointer)
        finally:
            self._refs = outer
        if self._refs is not None:
            self._refs.add(name)
        return name

    def ordered_aliases(self) -> list[TypeDecl]:
        """Aliases ordered so that each follows the aliases it refers to."""
        aliases = {decl.name: decl for decl in self.types if decl.kind == "alias"}
        ordered: list[TypeDecl] = []
        done: set[str] = set()
        active: set[str] = set()

        def visit(decl: TypeDecl) -> None:
            if decl.name in done:
                return
            active.add(decl.name)
            for ref in sorted(decl.refs):
                dependency = aliases.get(ref)
                if dependency is None or dependency.name in done:
                    continue
                if dependency.name in active:
                    self._warn(f"types/{decl.name}", f"Alias cycle through '{ref}'; using {self.profile.any_type}")
                    decl.type_expr = self.profile.any_type
                    decl.refs = set()
                    break
                visit(dependency)
            active.discard(decl.name)
            done.add(decl.name)
            ordered.append(decl)

        for decl in aliases.values():
            visit(decl)
        return ordered

    # --- operations ---

    def declare_operations(self) -> list[OperationDecl]:
        names = NameRegistry(("close", "request") if self.python else ("request", "constructor"))
        return [
            self._operation(key, endpoint, names)
            for key, endpoint in self.document.endpoints.items()
        ]

    def _operation(self, key: str, endpoint: Endpoint, names: NameRegistry) -> OperationDecl:
        pointer = f"endpoints/{key}"
        raw_name = endpoint.operation_id or _derive_operation_name(endpoint)
        if self.python:
            name = names.claim(python_identifier(snake_case(raw_name) or raw_name), "_")
        else:
            name = names.claim(typescript_identifier(raw_name))

        params = NameRegistry(("self", "body", "params") if self.python else ("body", "params"))
        path_params: list[ParamDecl] = []
        query_params: list[ParamDecl] = []
        header_params: list[ParamDecl] = []
        declared_path: set[str] = set()
        for param in endpoint.parameters:
            param_pointer = f"{pointer}/parameters/{param.location.value}:{param.name}"
            if param.location == ParameterLocation.COOKIE:
                self._warn(param_pointer, "Cookie parameters are not emitted by this target")
                continue
            ident = python_identifier(param.name) if self.python else typescript_identifier(param.name)
            decl = ParamDecl(
                name=params.claim(ident, "_"),
                wire_name=param.name,
                type_expr=self._ref_type(param.schema_, param_pointer, f"{raw_name} {param.name}"),
                required=param.required,
                location=param.location.value,
            )
            if param.location == ParameterLocation.PATH:
                declared_path.add(param.name)
                path_params.append(decl)
            elif param.location == ParameterLocation.QUERY:
                query_params.append(decl)
            else:
                header_params.append(decl)

        for placeholder in _PATH_PARAM_RE.findall(endpoint.path):
            if placeholder not in declared_path:
                ident = python_identifier(placeholder) if self.python else typescript_identifier(placeholder)
                path_params.append(
                    ParamDecl(
                        name=params.claim(ident, "_"),
                        wire_name=placeholder,
                        type_expr=self.profile.primitives["string"],
                        required=True,
                        location="path",
                    )
                )
                declared_path.add(placeholder)

        body_type: Optional[str] = None
        body_required = False
        if endpoint.request_body is not None:
            body_type = self._ref_type(
                endpoint.request_body.schema_, f"{pointer}/requestBody", f"{raw_name} request"
            )
            body_required = endpoint.request_body.required

        response_type: Optional[str] = None
        status = _primary_status(endpoint)
        if status is not None and endpoint.responses[status].schema_ is not None:
            response_type = self._ref_type(
                endpoint.responses[status].schema_,
                f"{pointer}/responses/{status}",
                f"{raw_name} response",
            )

        doc = _doc_lines(endpoint.summary)
        if endpoint.description and endpoint.description != endpoint.summary:
            doc = doc + ([""] if doc else []) + _doc_lines(endpoint.description)
        if endpoint.deprecated:
            doc = doc + ([""] if doc else []) + (
                ["Deprecated."] if self.python else ["@deprecated"]
            )

        op = OperationDecl(
            name=name,
            method=endpoint.method.value.upper(),
            path=endpoint.path,
            path_expr="",
            signature="",
            return_type="",
            response_type=response_type,
            doc=doc,
            path_params=path_params,
            query_params=query_params,
            header_params=header_params,
            body_type=body_type,
            body_required=body_required,
            deprecated=endpoint.deprecated,
        )
        if self.python:
            self._python_signature(op)
        else:
            self._typescript_signature(op)
        return op

    def _python_signature(self, op: OperationDecl) -> None:
        by_wire = {p.wire_name: p.name for p in op.path_params}
        path = _PATH_PARAM_RE.sub(
            lambda m: "{quote(str(" + by_wire[m.group(1)] + "), safe='')}",
            op.path,
        )
        op.path_expr = "f" + json.dumps(path) if op.path_params else json.dumps(op.path)

        parts = ["self"]
        parts.extend(f"{p.name}: {p.type_expr}" for p in op.path_params)
        if op.body_type is not None:
            if op.body_required:
                parts.append(f"body: {op.body_type}")
            else:
                parts.append(f"body: {_py_optional(op.body_type)} = None")
        keyword_params = op.query_params + op.header_params
        if keyword_params:
            parts.append("*")
            for p in keyword_params:
                if p.required:
                    parts.append(f"{p.name}: {p.type_expr}")
                else:
                    parts.append(f"{p.name}: {_py_optional(p.type_expr)} = None")
            for p in keyword_params:
                p.access = p.name
        op.signature = ", ".join(parts)
        op.return_type = op.response_type or "None"

    def _typescript_signature(self, op: OperationDecl) -> None:
        by_wire = {p.wire_name: p.name for p in op.path_params}
        path = _PATH_PARAM_RE.sub(
            lambda m: "${encodeURIComponent(String(" + by_wire[m.group(1)] + "))}",
            op.path.replace("\\", "\\\\").replace("`", "\\`"),
        )
        op.path_expr = path

        parts = [f"{p.name}: {p.type_expr}" for p in op.path_params]
        if op.body_type is not None:
            parts.append(f"body{'' if op.body_required else '?'}: {op.body_type}")
        keyword_params = op.query_params + op.header_params
        if keyword_params:
            members = "; ".join(
                f"{typescript_property(p.wire_name)}{'' if p.required else '?'}: {p.type_expr}"
                for p in keyword_params
            )
            any_required = any(p.required for p in keyword_params)
            parts.append(f"params: {{ {members} }}" + ("" if any_required else " = {}"))
            for p in keyword_params:
                p.access = f"params[{json.dumps(p.wire_name)}]"
        op.signature = ", ".join(parts)
        op.return_type = op.response_type or "void"


# --- helpers ---


def _is_object_like(schema: Schema) -> bool:
    """True for schemas rendered as a class/interface rather than an alias."""
    if schema.kind == SchemaKind.OBJECT:
        return bool(schema.properties)
    if schema.kind == SchemaKind.COMPOSITION:
        return bool(schema.all_of) and not schema.one_of and not schema.any_of
    return False


def _primary_status(endpoint: Endpoint) -> Optional[str]:
    for status in endpoint.responses:
        if status.startswith("2"):
            return status
    if "default" in endpoint.responses:
        return "default"
    return None


def _derive_operation_name(endpoint: Endpoint) -> str:
    words = [endpoint.method.value]
    for segment in endpoint.path.strip("/").split("/"):
        if not segment:
            continue
        match = _PATH_PARAM_RE.fullmatch(segment)
        if match:
            words.extend(["by", match.group(1)])
        else:
            words.append(segment)
    return " ".join(words)


def _doc_lines(text: Optional[str]) -> list[str]:
    if not text:
        return []
    # Backslashes first so the escapes added below survive
    cleaned = text.replace("\\", "\\\\").replace("*/", "*\\/").replace('"""', '\\"\\"\\"')
    return [line.rstrip() for line in cleaned.strip().splitlines()]


def _one_line(text: Optional[str]) -> str:
    """Escape *text* like :func:`_doc_lines` and fold it onto a single line."""
    return " ".join(line.strip() for line in _doc_lines(text) if line.strip())


def _py_optional(expr: str) -> str:
    if expr == "Any" or expr.startswith("Optional["):
        return expr
    return f"Optional[{expr}]"


def _header(document: SpecDocument) -> str:
    return (
        f"Generated by specsync from {_one_line(document.info.title)} "
        f"{_one_line(document.info.version)}. "
        "Do not edit by hand."
    )


def _tokens(exprs: list[str]) -> set[str]:
    return {token for expr in exprs for token in _TOKEN_RE.findall(expr)}


def _type_exprs(types: list[TypeDecl]) -> list[str]:
    exprs: list[str] = []
    for decl in types:
        exprs.append(decl.type_expr)
        exprs.extend(f.declaration or f.type_expr for f in decl.fields)
    return exprs


def _operation_exprs(op: OperationDecl) -> list[str]:
    exprs = [op.signature, op.return_type]
    if op.response_type:
        exprs.append(op.response_type)
    return exprs


def _python_imports(exprs: list[str]) -> dict[str, list[str]]:
    tokens = _tokens(exprs)
    return {
        "typing": sorted({"Any", "Literal", "Optional", "Union"} & tokens),
        "datetime": sorted({"date", "datetime"} & tokens),
        "uuid": sorted({"UUID"} & tokens),
    }
