"""Code generation targets and their capabilities.

Targets are a fixed table, not a class hierarchy: each :class:`Target`
names its language and the capabilities it emits.  A ``types`` target only
declares types; a ``client`` target additionally wraps every endpoint in a
request function.

=====================  ==========  ==================  ==================================
Target                 Language    Capabilities        Files
=====================  ==========  ==================  ==================================
``typescript``         typescript  types               ``types.ts``
``typescript-fetch``   typescript  types, client       ``types.ts``, ``client.ts``
``python``             python      types               ``models.py``
``python-httpx``       python      types, client       ``__init__.py``, ``models.py``,
                                                       ``client.py``
=====================  ==========  ==================  ==================================
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Optional

from specsync.exceptions import ConfigError


class Capability(str, enum.Enum):
    TYPES = "types"
    CLIENT = "client"


@dataclass(frozen=True)
class LanguageProfile:
    """Primitive and format mapping for one output language."""

    name: str
    any_type: str
    null_type: str
    primitives: dict[str, str]
    formats: dict[tuple[str, str], str]
    array: str
    mapping: str
    nullable: str

    def primitive(self, type_name: Optional[str], fmt: Optional[str] = None) -> Optional[str]:
        """Map an IR primitive type (and format) to a type expression, or ``None``."""
        if type_name is None:
            return None
        if fmt:
            mapped = self.formats.get((type_name, fmt))
            if mapped is not None:
                return mapped
        return self.primitives.get(type_name)


TYPESCRIPT = LanguageProfile(
    name="typescript",
    any_type="unknown",
    null_type="null",
    primitives={
        "string": "string",
        "integer": "number",
        "number": "number",
        "boolean": "boolean",
        "null": "null",
        "object": "Record<string, unknown>",
        "array": "Array<unknown>",
    },
    formats={
        ("string", "binary"): "Blob",
        ("integer", "int64"): "number",
    },
    array="Array<{}>",
    mapping="Record<string, {}>",
    nullable="{} | null",
)

PYTHON = LanguageProfile(
    name="python",
    any_type="Any",
    null_type="None",
    primitives={
        "string": "str",
        "integer": "int",
        "number": "float",
        "boolean": "bool",
        "null": "None",
        "object": "dict[str, Any]",
        "array": "list[Any]",
    },
    formats={
        ("string", "date-time"): "datetime",
        ("string", "date"): "date",
        ("string", "uuid"): "UUID",
        ("string", "binary"): "bytes",
        ("string", "byte"): "bytes",
    },
    array="list[{}]",
    mapping="dict[str, {}]",
    nullable="Optional[{}]",
)

LANGUAGES: dict[str, LanguageProfile] = {
    TYPESCRIPT.name: TYPESCRIPT,
    PYTHON.name: PYTHON,
}


@dataclass(frozen=True)
class Target:
    """One entry of the capability table."""

    name: str
    language: str
    capabilities: frozenset[Capability]
    description: str

    @property
    def profile(self) -> LanguageProfile:
        return LANGUAGES[self.language]

    @property
    def emits_client(self) -> bool:
        return Capability.CLIENT in self.capabilities


TARGETS: dict[str, Target] = {
    target.name: target
    for target in (
        Target(
            name="typescript",
            language="typescript",
            capabilities=frozenset({Capability.TYPES}),
            description="TypeScript interfaces and type aliases",
        ),
        Target(
            name="typescript-fetch",
            language="typescript",
            capabilities=frozenset({Capability.TYPES, Capability.CLIENT}),
            description="TypeScript types plus a fetch-based client class",
        ),
        Target(
            name="python",
            language="python",
            capabilities=frozenset({Capability.TYPES}),
            description="Pydantic v2 models",
        ),
        Target(
            name="python-httpx",
            language="python",
            capabilities=frozenset({Capability.TYPES, Capability.CLIENT}),
            description="Pydantic v2 models plus an httpx client class",
        ),
    )
}


def get_target(name: str) -> Target:
    """Look up a target by identifier.

    Raises:
        ConfigError: ``unknown_target`` if *name* is not in :data:`TARGETS`.
    """
    target = TARGETS.get(name)
    if target is None:
        available = ", ".join(sorted(TARGETS))
        raise ConfigError(
            f"Unknown generation target '{name}'. Available targets: {available}",
            condition="unknown_target",
        )
    return target
