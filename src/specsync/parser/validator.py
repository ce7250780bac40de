"""Structural validation for spec documents.

Every check appends :class:`~specsync.models.ValidationIssue` values to a
list instead of raising, so a single pass reports all violations.  The
normalizer decides afterwards whether to fail (strict) or to attach the
issues to the document as warnings (lenient).

Checks:

* :func:`check_required_sections` -- top-level ``info``/``paths`` and the
  ``info.title``/``info.version`` fields.
* :func:`check_refs` -- every ``$ref`` is internal and resolvable.
* :func:`check_path_parameters` -- templated path parameters and declared
  ``in: path`` parameters match one-to-one.
"""

from __future__ import annotations

import re
from typing import Any, Iterable

from specsync.exceptions import SpecParseError
from specsync.models import SpecVersion, ValidationIssue
from specsync.parser.resolver import iter_refs, resolve_pointer

_TEMPLATE_RE = re.compile(r"\{([^{}]+)\}")


def template_parameters(path: str) -> list[str]:
    """Return the parameter names templated into *path*, in order."""
    return _TEMPLATE_RE.findall(path)


def check_required_sections(
    raw: dict[str, Any], version: SpecVersion, issues: list[ValidationIssue]
) -> None:
    """Check the top-level sections every document must declare.

    OpenAPI 3.1 allows a document without ``paths`` as long as it declares
    ``components`` or ``webhooks``.
    """
    info = raw.get("info")
    if not isinstance(info, dict):
        issues.append(ValidationIssue(pointer="/info", message="Missing required section 'info'"))
    else:
        for field in ("title", "version"):
            if field not in info:
                issues.append(
                    ValidationIssue(
                        pointer=f"/info/{field}",
                        message=f"Missing required field 'info.{field}'",
                    )
                )

    paths = raw.get("paths")
    if version == SpecVersion.OPENAPI_31:
        if paths is None and not any(key in raw for key in ("components", "webhooks")):
            issues.append(
                ValidationIssue(
                    pointer="/paths",
                    message="Document must declare at least one of 'paths', 'components' or 'webhooks'",
                )
            )
    elif paths is None:
        issues.append(ValidationIssue(pointer="/paths", message="Missing required section 'paths'"))

    if paths is not None and not isinstance(paths, dict):
        issues.append(ValidationIssue(pointer="/paths", message="'paths' must be an object"))


def check_refs(spec: dict[str, Any], issues: list[ValidationIssue]) -> None:
    """Report every ``$ref`` that is external or does not resolve."""
    for pointer, ref in iter_refs(spec):
        if not ref.startswith("#/"):
            issues.append(
                ValidationIssue(pointer=pointer, message=f"External $ref not supported: {ref}")
            )
            continue
        try:
            resolve_pointer(ref, spec)
        except SpecParseError as exc:
            issues.append(ValidationIssue(pointer=pointer, message=exc.message))


def check_path_parameters(
    path: str,
    declared: Iterable[tuple[str, str]],
    pointer: str,
    issues: list[ValidationIssue],
) -> None:
    """Check that templated and declared path parameters match.

    Args:
        path: The path template, e.g. ``/pets/{petId}``.
        declared: ``(pointer, name)`` of each ``in: path`` parameter after
            path/operation merging, pointing at where the parameter is
            written in the source document.
        pointer: JSON pointer of the operation.
        issues: Accumulator.
    """
    templated = template_parameters(path)
    declared = list(declared)
    declared_names = {name for _, name in declared}

    for name in templated:
        if name not in declared_names:
            issues.append(
                ValidationIssue(
                    pointer=pointer,
                    message=f"Path parameter '{name}' is templated in '{path}' but not declared",
                )
            )
    for param_pointer, name in declared:
        if name not in templated:
            issues.append(
                ValidationIssue(
                    pointer=param_pointer,
                    message=f"Path parameter '{name}' is declared but not templated in '{path}'",
                )
            )
