"""Exception hierarchy for specsync.

All exceptions inherit from :class:`SpecsyncError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`specsync.exit_codes`
and a ``condition`` string naming the specific failure inside its category.
The CLI entry point catches ``SpecsyncError`` and exits with the matching
code; the tool layer maps the category and condition to its own protocol.

Subclass hierarchy::

    SpecsyncError      (exit 1)
    +-- ConfigError     (exit 2)
    +-- FilesystemError (exit 4)
    +-- CacheError      (exit 5)
    +-- NetworkError    (exit 6)
    +-- SpecParseError  (exit 7)
    +-- CodegenError    (exit 8)
"""

from __future__ import annotations

from typing import Any, Optional

from specsync.exit_codes import (
    EXIT_CACHE_ERROR,
    EXIT_CODEGEN_ERROR,
    EXIT_CONFIG_ERROR,
    EXIT_FILESYSTEM_ERROR,
    EXIT_GENERIC_FAILURE,
    EXIT_NETWORK_ERROR,
    EXIT_SPEC_PARSE_ERROR,
)


class SpecsyncError(Exception):
    """Base exception for all specsync errors.

    Every subclass sets a class-level ``category`` and ``exit_code``.  The
    ``condition`` distinguishes failures within one category (for example
    ``timeout`` versus ``connection`` for :class:`NetworkError`).

    Args:
        message: Human-readable error description.
        condition: Optional machine-readable condition within the category.
        exit_code: Optional override for the class-level exit code.
    """

    category: str = "generic"
    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(
        self,
        message: str,
        condition: Optional[str] = None,
        exit_code: int | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.condition = condition
        if exit_code is not None:
            self.exit_code = exit_code

    def to_dict(self) -> dict[str, Any]:
        """Serialise the error for the tool layer."""
        return {
            "category": self.category,
            "condition": self.condition,
            "message": self.message,
        }


class ConfigError(SpecsyncError):
    """Raised for configuration problems (unknown target, bad style option, bad settings file)."""

    category = "configuration"
    exit_code = EXIT_CONFIG_ERROR


class FilesystemError(SpecsyncError):
    """Raised when a local spec or output file cannot be found, read, or written."""

    category = "filesystem"
    exit_code = EXIT_FILESYSTEM_ERROR


class CacheError(SpecsyncError):
    """Raised when the cache directory is unreadable or unwritable.

    The store catches this internally and degrades to an in-memory cache, so
    callers normally only see it recorded on
    :attr:`~specsync.cache.store.CacheStore.degraded_reason`.
    """

    category = "cache"
    exit_code = EXIT_CACHE_ERROR


class NetworkError(SpecsyncError):
    """Raised on network-level failures (timeout, connection refused, non-2xx status).

    Args:
        message: Human-readable error description.
        condition: ``connection``, ``timeout`` or ``http_status``.
        status_code: The HTTP status for ``http_status`` failures.
    """

    category = "network"
    exit_code = EXIT_NETWORK_ERROR

    def __init__(
        self,
        message: str,
        condition: Optional[str] = None,
        status_code: Optional[int] = None,
    ):
        super().__init__(message, condition)
        self.status_code = status_code

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        if self.status_code is not None:
            data["status_code"] = self.status_code
        return data


class SpecParseError(SpecsyncError):
    """Raised when a spec document cannot be decoded or fails structural validation.

    Args:
        message: Human-readable error description.
        condition: ``invalid_encoding``, ``invalid_json``, ``invalid_yaml``,
            ``not_an_object``, ``unsupported_version`` or ``validation``.
        pointer: Structural pointer (JSON pointer or ``line:column``) to the
            first offending location.
        violations: Every violation found, as ``(pointer, message)`` dicts.
    """

    category = "parse"
    exit_code = EXIT_SPEC_PARSE_ERROR

    def __init__(
        self,
        message: str,
        condition: Optional[str] = None,
        pointer: str = "",
        violations: Optional[list[dict[str, str]]] = None,
    ):
        super().__init__(message, condition)
        self.pointer = pointer
        self.violations = violations or []

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["pointer"] = self.pointer
        if self.violations:
            data["violations"] = self.violations
        return data


class CodegenError(SpecsyncError):
    """Raised when a target cannot render output for the document (``template_error``)."""

    category = "code-generation"
    exit_code = EXIT_CODEGEN_ERROR
