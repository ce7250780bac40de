"""Identifier transforms for generated code.

* :func:`split_words` -- break a schema, property or path name into words.
* :func:`pascal_case` / :func:`camel_case` / :func:`snake_case` -- join words
  per the ``type_naming`` style option (:func:`apply_type_naming`).
* :func:`python_identifier` / :func:`typescript_identifier` -- make a name
  usable as an identifier in the target language.
* :class:`NameRegistry` -- hand out unique names with deterministic numeric
  suffixes on collision.
"""

from __future__ import annotations

import keyword
import re

# Matches any character that is not alphanumeric or underscore.
_INVALID_IDENT_RE = re.compile(r"[^a-zA-Z0-9_]")
_WORD_RE = re.compile(r"[A-Z]+(?=[A-Z][a-z])|[A-Z]?[a-z]+|[A-Z]+|[0-9]+")
_TS_IDENT_RE = re.compile(r"^[A-Za-z_$][A-Za-z0-9_$]*$")

TYPESCRIPT_RESERVED = frozenset(
    {
        "break", "case", "catch", "class", "const", "continue", "debugger",
        "default", "delete", "do", "else", "enum", "export", "extends", "false",
        "finally", "for", "function", "if", "import", "in", "instanceof", "new",
        "null", "return", "super", "switch", "this", "throw", "true", "try",
        "typeof", "var", "void", "while", "with", "let", "static", "yield",
        "await", "implements", "interface", "package", "private", "protected",
        "public",
    }
)


def split_words(name: str) -> list[str]:
    """Split *name* on separators and CamelCase boundaries.

    Example::

        >>> split_words("XMLHttpRequest_v2-final")
        ['XML', 'Http', 'Request', 'v', '2', 'final']
    """
    return _WORD_RE.findall(name)


def _capitalize(word: str) -> str:
    return word[:1].upper() + word[1:]


def pascal_case(name: str) -> str:
    """Join words with each one capitalised; acronyms are kept as written."""
    return "".join(_capitalize(word) for word in split_words(name))


def camel_case(name: str) -> str:
    words = split_words(name)
    if not words:
        return ""
    return words[0].lower() + "".join(_capitalize(word) for word in words[1:])


def snake_case(name: str) -> str:
    return "_".join(word.lower() for word in split_words(name))


def apply_type_naming(name: str, style: str) -> str:
    """Apply a ``type_naming`` style to a type name.

    Args:
        name: Source name, e.g. a component schema name.
        style: ``PascalCase``, ``camelCase`` or ``snake_case``.
    """
    if style == "camelCase":
        result = camel_case(name)
    elif style == "snake_case":
        result = snake_case(name)
    else:
        result = pascal_case(name)
    return result or "Model"


def python_identifier(name: str) -> str:
    """Convert a property or parameter name to a valid Python identifier.

    Applies the following transformations in order:

    1. CamelCase boundaries are split with underscores (``petId`` becomes
       ``pet_id``).
    2. The string is lowercased.
    3. Any non-alphanumeric/non-underscore characters become underscores.
    4. Consecutive and leading/trailing underscores are collapsed.
    5. An empty result defaults to ``"field"``.
    6. A leading digit gets an underscore prefix.
    7. Python keywords get a trailing underscore per PEP 8 convention.

    Example::

        >>> python_identifier("X-Request-ID")
        'x_request_id'
        >>> python_identifier("class")
        'class_'
    """
    result = re.sub(r"([a-z0-9])([A-Z])", r"\1_\2", name)
    result = re.sub(r"([A-Z]+)([A-Z][a-z])", r"\1_\2", result)
    result = result.lower()
    result = _INVALID_IDENT_RE.sub("_", result)
    result = re.sub(r"_+", "_", result).strip("_")
    if not result:
        result = "field"
    if result[0].isdigit():
        result = f"_{result}"
    if keyword.iskeyword(result):
        result = f"{result}_"
    return result


def python_type_name(name: str) -> str:
    """Make a styled type name safe to use as a Python class or alias name."""
    result = _INVALID_IDENT_RE.sub("_", name) or "Model"
    if result[0].isdigit():
        result = f"_{result}"
    if keyword.iskeyword(result):
        result = f"{result}_"
    return result


def typescript_identifier(name: str) -> str:
    """Make *name* a valid TypeScript identifier (for variables and methods)."""
    result = camel_case(name) or "value"
    if result[0].isdigit():
        result = f"_{result}"
    if result in TYPESCRIPT_RESERVED:
        result = f"{result}_"
    return result


def typescript_type_name(name: str) -> str:
    result = re.sub(r"[^A-Za-z0-9_$]", "_", name) or "Model"
    if result[0].isdigit():
        result = f"_{result}"
    if result in TYPESCRIPT_RESERVED:
        result = f"{result}_"
    return result


def typescript_property(name: str) -> str:
    """Return *name* as a TypeScript property key, quoted when needed."""
    if _TS_IDENT_RE.match(name):
        return name
    return '"' + name.replace("\\", "\\\\").replace('"', '\\"') + '"'


class NameRegistry:
    """Allocate unique names within one namespace.

    The first request for a name gets it unchanged; later collisions get
    ``2``, ``3``, ... appended.  Given the same sequence of requests the
    result is always the same.
    """

    def __init__(self, reserved: tuple[str, ...] = ()) -> None:
        self._taken: set[str] = set(reserved)

    def claim(self, name: str, separator: str = "") -> str:
        candidate = name
        counter = 2
        while candidate in self._taken:
            candidate = f"{name}{separator}{counter}"
            counter += 1
        self._taken.add(candidate)
        return candidate

    def __contains__(self, name: object) -> bool:
        return name in self._taken
