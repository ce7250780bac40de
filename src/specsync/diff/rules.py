"""Breaking-change classification policy.

Every :class:`~specsync.models.Change` names the rule that classified it.
Most rules have a fixed severity (:data:`FIXED_RULES`).  Rules about fields
of a schema depend on how the schema is used (:data:`ROLE_RULES`): adding a
required field breaks clients that *send* the schema but only strict
deserializers of clients that *receive* it.

Roles come from :meth:`specsync.graph.SchemaGraph.schema_roles`.  A schema no
endpoint reaches is judged as a response (consumer-facing) schema.  When a
schema is used in both roles and the roles disagree, the change carries both
interpretations and takes the more severe one.
"""

from __future__ import annotations

from typing import Iterable

from specsync.models import Severity

BREAKING = Severity.BREAKING
NON_BREAKING = Severity.NON_BREAKING

REQUEST = "request"
RESPONSE = "response"

STRICT_DESERIALIZER = "strict-deserializer"

FIXED_RULES: dict[str, Severity] = {
    "endpoint-removed": BREAKING,
    "endpoint-added": NON_BREAKING,
    "endpoint-deprecated": NON_BREAKING,
    "parameter-removed": BREAKING,
    "parameter-added-required": BREAKING,
    "parameter-added-optional": NON_BREAKING,
    "parameter-became-required": BREAKING,
    "parameter-became-optional": NON_BREAKING,
    "request-body-removed": BREAKING,
    "request-body-added-required": BREAKING,
    "request-body-added-optional": NON_BREAKING,
    "request-body-became-required": BREAKING,
    "request-body-became-optional": NON_BREAKING,
    "response-removed": BREAKING,
    "response-added": NON_BREAKING,
    "response-schema-removed": BREAKING,
    "response-schema-added": NON_BREAKING,
    "schema-removed": BREAKING,
    "schema-added": NON_BREAKING,
    "optional-field-added": NON_BREAKING,
    "enum-value-removed": BREAKING,
    "enum-value-added": NON_BREAKING,
    "enum-constraint-added": BREAKING,
    "enum-constraint-removed": NON_BREAKING,
    "type-widened": NON_BREAKING,
    "type-changed": BREAKING,
    "format-widened": NON_BREAKING,
    "format-changed": BREAKING,
    "kind-changed": BREAKING,
    "reference-changed": BREAKING,
    "composition-member-removed": BREAKING,
    "all-of-member-added": BREAKING,
    "one-of-member-added": NON_BREAKING,
    "any-of-member-added": NON_BREAKING,
    "additional-properties-removed": BREAKING,
    "additional-properties-added": NON_BREAKING,
}

ROLE_RULES: dict[str, dict[str, Severity]] = {
    "field-removed": {REQUEST: NON_BREAKING, RESPONSE: BREAKING},
    "required-field-added": {REQUEST: BREAKING, RESPONSE: NON_BREAKING},
    "field-became-required": {REQUEST: BREAKING, RESPONSE: NON_BREAKING},
    "field-became-optional": {REQUEST: NON_BREAKING, RESPONSE: BREAKING},
    "nullable-added": {REQUEST: NON_BREAKING, RESPONSE: BREAKING},
    "nullable-removed": {REQUEST: BREAKING, RESPONSE: NON_BREAKING},
}

# (old, new) pairs where every old value is still valid under the new type
_TYPE_WIDENINGS = frozenset({("integer", "number")})
_FORMAT_WIDENINGS = frozenset({("int32", "int64"), ("float", "double")})


def fixed(rule: str) -> Severity:
    """Severity of a rule whose outcome does not depend on schema role."""
    return FIXED_RULES[rule]


def classify_for_roles(
    rule: str, roles: Iterable[str]
) -> tuple[str, Severity, dict[str, Severity], list[str]]:
    """Classify a role-dependent rule for a schema used in *roles*.

    Args:
        rule: Key of :data:`ROLE_RULES`.
        roles: Roles the affected schema plays; empty means unused.

    Returns:
        ``(rule_id, severity, interpretations, flags)``.  ``rule_id`` is
        ``<rule>.request``, ``<rule>.response`` or ``<rule>.mixed``.
        ``interpretations`` is filled only when the roles disagree.

    Example::

        >>> classify_for_roles("required-field-added", {"response"})
        ('required-field-added.response', <Severity.NON_BREAKING: 'non-breaking'>, {}, ['strict-deserializer'])
    """
    effective = sorted(set(roles)) or [RESPONSE]
    per_role = {role: ROLE_RULES[rule][role] for role in effective}

    severity = BREAKING if BREAKING in per_role.values() else NON_BREAKING
    interpretations = per_role if len(set(per_role.values())) > 1 else {}
    suffix = effective[0] if len(effective) == 1 else "mixed"

    flags: list[str] = []
    if rule == "required-field-added" and RESPONSE in per_role:
        flags.append(STRICT_DESERIALIZER)
    return f"{rule}.{suffix}", severity, interpretations, flags


def is_type_widening(old: str | None, new: str | None) -> bool:
    return (old, new) in _TYPE_WIDENINGS


def is_format_widening(old: str | None, new: str | None) -> bool:
    """True when dropping or widening a format keeps every old value valid."""
    if old is not None and new is None:
        return True
    return (old, new) in _FORMAT_WIDENINGS
