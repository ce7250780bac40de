"""Structural diff between two normalized spec documents.

:func:`diff_specs` compares endpoints, parameters, request bodies,
responses and named schemas, producing one :class:`~specsync.models.Change`
per difference.  Severity comes from :mod:`specsync.diff.rules`.

Change paths are structural pointers such as::

    endpoints/GET /users
    endpoints/GET /users/parameters/query:limit
    endpoints/POST /users/responses/201/schema
    schemas/User/properties/name
    schemas/Status/enum/"archived"

Output is sorted by ``(path, kind, rule)``, so it does not depend on key
order in either source document.  Both documents must already be
normalized; a document that failed to parse never reaches this module.
"""

from __future__ import annotations

import json
import logging
from collections import Counter
from typing import Any, Iterable, Optional

from specsync.diff import rules
from specsync.graph import SchemaGraph
from specsync.models import (
    Change,
    ChangeKind,
    Endpoint,
    Parameter,
    Schema,
    SchemaKind,
    SchemaRef,
    Severity,
    SpecDocument,
)

logger = logging.getLogger(__name__)

_REQUEST_ROLES = frozenset({rules.REQUEST})
_RESPONSE_ROLES = frozenset({rules.RESPONSE})


def diff_specs(
    old: SpecDocument,
    new: SpecDocument,
    breaking_only: bool = False,
) -> list[Change]:
    """Compare two documents.

    Args:
        old: The previous version.
        new: The candidate version.
        breaking_only: Drop non-breaking changes (order is preserved).

    Returns:
        Changes sorted by structural path, then kind, then rule.
    """
    differ = _Differ(old, new)
    differ.compare_endpoints()
    differ.compare_schemas()

    changes = sorted(differ.changes, key=lambda c: (c.path, c.kind.value, c.rule))
    logger.debug(
        "Diff found %d change(s), %d breaking",
        len(changes),
        sum(1 for c in changes if c.is_breaking),
    )
    if breaking_only:
        changes = [c for c in changes if c.is_breaking]
    return changes


def summarize(changes: Iterable[Change]) -> dict[str, Any]:
    """Count changes by severity and kind."""
    changes = list(changes)
    kinds = Counter(c.kind.value for c in changes)
    breaking = sum(1 for c in changes if c.is_breaking)
    return {
        "total": len(changes),
        "breaking": breaking,
        "non_breaking": len(changes) - breaking,
        "by_kind": {kind.value: kinds.get(kind.value, 0) for kind in ChangeKind},
        "has_breaking_changes": breaking > 0,
    }


class _Differ:
    def __init__(self, old: SpecDocument, new: SpecDocument) -> None:
        self.old = old
        self.new = new
        self.changes: list[Change] = []
        self._roles = _merge_roles(
            SchemaGraph.build(old).schema_roles(),
            SchemaGraph.build(new).schema_roles(),
        )

    # --- recording ---

    def _add(
        self,
        path: str,
        kind: ChangeKind,
        rule: str,
        message: str,
        old_value: Optional[str] = None,
        new_value: Optional[str] = None,
    ) -> None:
        self.changes.append(
            Change(
                path=path,
                kind=kind,
                severity=rules.fixed(rule),
                rule=rule,
                message=message,
                old_value=old_value,
                new_value=new_value,
            )
        )

    def _add_for_roles(
        self,
        path: str,
        kind: ChangeKind,
        rule: str,
        roles: Iterable[str],
        message: str,
        old_value: Optional[str] = None,
        new_value: Optional[str] = None,
    ) -> None:
        rule_id, severity, interpretations, flags = rules.classify_for_roles(rule, roles)
        self.changes.append(
            Change(
                path=path,
                kind=kind,
                severity=severity,
                rule=rule_id,
                message=message,
                old_value=old_value,
                new_value=new_value,
                flags=flags,
                interpretations=interpretations,
            )
        )

    # --- endpoints ---

    def compare_endpoints(self) -> None:
        old_eps, new_eps = self.old.endpoints, self.new.endpoints
        for key in sorted(set(old_eps) | set(new_eps)):
            path = f"endpoints/{key}"
            if key not in new_eps:
                self._add(path, ChangeKind.REMOVED, "endpoint-removed", f"Endpoint {key} removed")
            elif key not in old_eps:
                self._add(path, ChangeKind.ADDED, "endpoint-added", f"Endpoint {key} added")
            else:
                self._compare_endpoint(path, old_eps[key], new_eps[key])

    def _compare_endpoint(self, path: str, old: Endpoint, new: Endpoint) -> None:
        if new.deprecated and not old.deprecated:
            self._add(
                f"{path}/deprecated",
                ChangeKind.MODIFIED,
                "endpoint-deprecated",
                f"Endpoint {new.key} deprecated",
                "false",
                "true",
            )
        self._compare_parameters(path, old.parameters, new.parameters)
        self._compare_request_body(path, old, new)
        self._compare_responses(path, old, new)

    def _compare_parameters(
        self, path: str, old: list[Parameter], new: list[Parameter]
    ) -> None:
        old_params = {f"{p.location.value}:{p.name}": p for p in old}
        new_params = {f"{p.location.value}:{p.name}": p for p in new}
        for key in sorted(set(old_params) | set(new_params)):
            param_path = f"{path}/parameters/{key}"
            old_param, new_param = old_params.get(key), new_params.get(key)
            if new_param is None:
                self._add(param_path, ChangeKind.REMOVED, "parameter-removed", f"Parameter {key} removed")
            elif old_param is None:
                if new_param.required:
                    self._add(
                        param_path,
                        ChangeKind.ADDED,
                        "parameter-added-required",
                        f"Required parameter {key} added",
                    )
                else:
                    self._add(
                        param_path,
                        ChangeKind.ADDED,
                        "parameter-added-optional",
                        f"Optional parameter {key} added",
                    )
            else:
                if new_param.required and not old_param.required:
                    self._add(
                        f"{param_path}/required",
                        ChangeKind.MODIFIED,
                        "parameter-became-required",
                        f"Parameter {key} is now required",
                        "false",
                        "true",
                    )
                elif old_param.required and not new_param.required:
                    self._add(
                        f"{param_path}/required",
                        ChangeKind.MODIFIED,
                        "parameter-became-optional",
                        f"Parameter {key} is now optional",
                        "true",
                        "false",
                    )
                self._compare_ref(
                    f"{param_path}/schema", old_param.schema_, new_param.schema_, _REQUEST_ROLES
                )

    def _compare_request_body(self, path: str, old: Endpoint, new: Endpoint) -> None:
        body_path = f"{path}/requestBody"
        old_body, new_body = old.request_body, new.request_body
        if old_body is None and new_body is None:
            return
        if new_body is None:
            self._add(body_path, ChangeKind.REMOVED, "request-body-removed", "Request body removed")
            return
        if old_body is None:
            if new_body.required:
                self._add(
                    body_path, ChangeKind.ADDED, "request-body-added-required", "Required request body added"
                )
            else:
                self._add(
                    body_path, ChangeKind.ADDED, "request-body-added-optional", "Optional request body added"
                )
            return

        if new_body.required and not old_body.required:
            self._add(
                f"{body_path}/required",
                ChangeKind.MODIFIED,
                "request-body-became-required",
                "Request body is now required",
                "false",
                "true",
            )
        elif old_body.required and not new_body.required:
            self._add(
                f"{body_path}/required",
                ChangeKind.MODIFIED,
                "request-body-became-optional",
                "Request body is now optional",
                "true",
                "false",
            )
        self._compare_ref(f"{body_path}/schema", old_body.schema_, new_body.schema_, _REQUEST_ROLES)

    def _compare_responses(self, path: str, old: Endpoint, new: Endpoint) -> None:
        for status in sorted(set(old.responses) | set(new.responses)):
            response_path = f"{path}/responses/{status}"
            old_resp, new_resp = old.responses.get(status), new.responses.get(status)
            if new_resp is None:
                self._add(response_path, ChangeKind.REMOVED, "response-removed", f"Response {status} removed")
            elif old_resp is None:
                self._add(response_path, ChangeKind.ADDED, "response-added", f"Response {status} added")
            elif old_resp.schema_ is not None and new_resp.schema_ is None:
                self._add(
                    f"{response_path}/schema",
                    ChangeKind.REMOVED,
                    "response-schema-removed",
                    f"Response {status} no longer declares a body",
                    old_resp.schema_.describe(),
                )
            elif old_resp.schema_ is None and new_resp.schema_ is not None:
                self._add(
                    f"{response_path}/schema",
                    ChangeKind.ADDED,
                    "response-schema-added",
                    f"Response {status} now declares a body",
                    None,
                    new_resp.schema_.describe(),
                )
            else:
                self._compare_ref(
                    f"{response_path}/schema", old_resp.schema_, new_resp.schema_, _RESPONSE_ROLES
                )

    # --- schemas ---

    def compare_schemas(self) -> None:
        old_schemas, new_schemas = self.old.schemas, self.new.schemas
        for name in sorted(set(old_schemas) | set(new_schemas)):
            path = f"schemas/{name}"
            if name not in new_schemas:
                self._add(path, ChangeKind.REMOVED, "schema-removed", f"Schema {name} removed")
            elif name not in old_schemas:
                self._add(path, ChangeKind.ADDED, "schema-added", f"Schema {name} added")
            else:
                self._compare_schema(
                    path, old_schemas[name], new_schemas[name], self._roles.get(name, set())
                )

    def _compare_ref(
        self,
        path: str,
        old: Optional[SchemaRef],
        new: Optional[SchemaRef],
        roles: Iterable[str],
    ) -> None:
        """Compare two schema slots.  Named schemas are compared on their own."""
        if old is None or new is None:
            return
        if old.ref is not None and new.ref is not None:
            if old.ref != new.ref:
                self._add(
                    path,
                    ChangeKind.MODIFIED,
                    "reference-changed",
                    f"Reference changed from {old.ref} to {new.ref}",
                    old.describe(),
                    new.describe(),
                )
            return
        if old.inline is not None and new.inline is not None:
            self._compare_schema(path, old.inline, new.inline, roles)
            return
        self._add(
            path,
            ChangeKind.MODIFIED,
            "kind-changed",
            f"Schema changed from {old.describe()} to {new.describe()}",
            old.describe(),
            new.describe(),
        )

    def _compare_schema(self, path: str, old: Schema, new: Schema, roles: Iterable[str]) -> None:
        roles = frozenset(roles)
        if old.kind != new.kind:
            self._add(
                path,
                ChangeKind.MODIFIED,
                "kind-changed",
                f"Schema kind changed from {old.kind.value} to {new.kind.value}",
                old.describe(),
                new.describe(),
            )
            return

        if old.kind == SchemaKind.REFERENCE and old.reference != new.reference:
            self._add(
                path,
                ChangeKind.MODIFIED,
                "reference-changed",
                f"Reference changed from {old.reference} to {new.reference}",
                old.describe(),
                new.describe(),
            )

        self._compare_type(path, old, new)
        self._compare_format(path, old, new)
        self._compare_nullable(path, old, new, roles)
        self._compare_enum(path, old.enum, new.enum)
        self._compare_properties(path, old, new, roles)
        self._compare_ref(f"{path}/items", old.items, new.items, roles)
        self._compare_additional(path, old, new, roles)
        self._compare_composition(path, old, new)

    def _compare_type(self, path: str, old: Schema, new: Schema) -> None:
        if old.type == new.type:
            return
        rule = "type-widened" if rules.is_type_widening(old.type, new.type) else "type-changed"
        self._add(
            f"{path}/type",
            ChangeKind.MODIFIED,
            rule,
            f"Type changed from {old.type or 'any'} to {new.type or 'any'}",
            old.type,
            new.type,
        )

    def _compare_format(self, path: str, old: Schema, new: Schema) -> None:
        if old.format == new.format:
            return
        rule = "format-widened" if rules.is_format_widening(old.format, new.format) else "format-changed"
        kind = ChangeKind.MODIFIED
        if old.format is None:
            kind = ChangeKind.ADDED
        elif new.format is None:
            kind = ChangeKind.REMOVED
        self._add(
            f"{path}/format",
            kind,
            rule,
            f"Format changed from {old.format or 'none'} to {new.format or 'none'}",
            old.format,
            new.format,
        )

    def _compare_nullable(self, path: str, old: Schema, new: Schema, roles: frozenset[str]) -> None:
        if old.nullable == new.nullable:
            return
        rule = "nullable-added" if new.nullable else "nullable-removed"
        self._add_for_roles(
            f"{path}/nullable",
            ChangeKind.MODIFIED,
            rule,
            roles,
            "Schema is now nullable" if new.nullable else "Schema is no longer nullable",
            str(old.nullable).lower(),
            str(new.nullable).lower(),
        )

    def _compare_enum(
        self, path: str, old: Optional[list[Any]], new: Optional[list[Any]]
    ) -> None:
        if old == new:
            return
        if old is None:
            self._add(
                f"{path}/enum",
                ChangeKind.ADDED,
                "enum-constraint-added",
                "Values are now restricted to an enum",
                None,
                _dump(new),
            )
            return
        if new is None:
            self._add(
                f"{path}/enum",
                ChangeKind.REMOVED,
                "enum-constraint-removed",
                "Enum restriction removed",
                _dump(old),
                None,
            )
            return

        old_values = {_dump(v) for v in old}
        new_values = {_dump(v) for v in new}
        for value in sorted(old_values - new_values):
            self._add(
                f"{path}/enum/{value}",
                ChangeKind.REMOVED,
                "enum-value-removed",
                f"Enum value {value} removed",
                value,
                None,
            )
        for value in sorted(new_values - old_values):
            self._add(
                f"{path}/enum/{value}",
                ChangeKind.ADDED,
                "enum-value-added",
                f"Enum value {value} added",
                None,
                value,
            )

    def _compare_properties(
        self, path: str, old: Schema, new: Schema, roles: frozenset[str]
    ) -> None:
        old_required, new_required = set(old.required), set(new.required)
        for name in sorted(set(old.properties) | set(new.properties)):
            prop_path = f"{path}/properties/{name}"
            old_prop, new_prop = old.properties.get(name), new.properties.get(name)
            if new_prop is None:
                self._add_for_roles(
                    prop_path,
                    ChangeKind.REMOVED,
                    "field-removed",
                    roles,
                    f"Field '{name}' removed",
                    old_prop.describe() if old_prop else None,
                )
            elif old_prop is None:
                if name in new_required:
                    self._add_for_roles(
                        prop_path,
                        ChangeKind.ADDED,
                        "required-field-added",
                        roles,
                        f"Required field '{name}' added",
                        None,
                        new_prop.describe(),
                    )
                else:
                    self._add(
                        prop_path,
                        ChangeKind.ADDED,
                        "optional-field-added",
                        f"Optional field '{name}' added",
                        None,
                        new_prop.describe(),
                    )
            else:
                if name in new_required and name not in old_required:
                    self._add_for_roles(
                        f"{prop_path}/required",
                        ChangeKind.MODIFIED,
                        "field-became-required",
                        roles,
                        f"Field '{name}' is now required",
                        "false",
                        "true",
                    )
                elif name in old_required and name not in new_required:
                    self._add_for_roles(
                        f"{prop_path}/required",
                        ChangeKind.MODIFIED,
                        "field-became-optional",
                        roles,
                        f"Field '{name}' is now optional",
                        "true",
                        "false",
                    )
                self._compare_ref(prop_path, old_prop, new_prop, roles)

    def _compare_additional(
        self, path: str, old: Schema, new: Schema, roles: frozenset[str]
    ) -> None:
        extra_path = f"{path}/additionalProperties"
        if old.additional_properties is not None and new.additional_properties is None:
            self._add(
                extra_path,
                ChangeKind.REMOVED,
                "additional-properties-removed",
                "Additional properties are no longer allowed",
                old.additional_properties.describe(),
            )
        elif old.additional_properties is None and new.additional_properties is not None:
            self._add(
                extra_path,
                ChangeKind.ADDED,
                "additional-properties-added",
                "Additional properties are now allowed",
                None,
                new.additional_properties.describe(),
            )
        else:
            self._compare_ref(extra_path, old.additional_properties, new.additional_properties, roles)

    def _compare_composition(self, path: str, old: Schema, new: Schema) -> None:
        for keyword, old_members, new_members, added_rule in (
            ("allOf", old.all_of, new.all_of, "all-of-member-added"),
            ("oneOf", old.one_of, new.one_of, "one-of-member-added"),
            ("anyOf", old.any_of, new.any_of, "any-of-member-added"),
        ):
            old_keys = {member.describe() for member in old_members}
            new_keys = {member.describe() for member in new_members}
            for member in sorted(old_keys - new_keys):
                self._add(
                    f"{path}/{keyword}/{member}",
                    ChangeKind.REMOVED,
                    "composition-member-removed",
                    f"{keyword} member {member} removed",
                    member,
                    None,
                )
            for member in sorted(new_keys - old_keys):
                self._add(
                    f"{path}/{keyword}/{member}",
                    ChangeKind.ADDED,
                    added_rule,
                    f"{keyword} member {member} added",
                    None,
                    member,
                )


def _merge_roles(*role_maps: dict[str, set[str]]) -> dict[str, set[str]]:
    merged: dict[str, set[str]] = {}
    for role_map in role_maps:
        for name, roles in role_map.items():
            merged.setdefault(name, set()).update(roles)
    return merged


def _dump(value: Any) -> str:
    return json.dumps(value, sort_keys=True, default=str)
