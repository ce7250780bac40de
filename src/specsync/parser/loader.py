"""Read raw spec documents from a URL or local file and decode them.

This module handles all I/O for fetching raw documents and converting them
into Python dictionaries.  It supports JSON and YAML with automatic format
detection, HTTP conditional requests (``If-None-Match`` /
``If-Modified-Since``) for cheap revalidation, and detection of the source
document family from its top-level discriminator field.

Public functions:

* :func:`fetch_remote` -- GET a URL, optionally conditional, with a timeout.
* :func:`read_local` -- Read a local file as bytes.
* :func:`decode_content` -- Parse raw bytes as JSON or YAML.
* :func:`detect_version` -- Return the :class:`~specsync.models.SpecVersion`.
* :func:`hint_from_path` / :func:`hint_from_content_type` -- Format hints.

Caching decisions live one layer up in :class:`specsync.loader.SpecLoader`.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

import httpx
import yaml

from specsync.exceptions import FilesystemError, NetworkError, SpecParseError
from specsync.models import SpecVersion

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0


@dataclass
class FetchResult:
    """Outcome of a remote fetch.

    ``content`` is ``None`` when the server answered ``304 Not Modified``.
    """

    status_code: int
    content: Optional[bytes]
    etag: Optional[str] = None
    last_modified: Optional[str] = None
    content_type: str = ""

    @property
    def not_modified(self) -> bool:
        return self.status_code == 304


def is_remote(source: str) -> bool:
    """Return True if *source* is an HTTP(S) URL."""
    return source.startswith(("http://", "https://"))


def fetch_remote(
    url: str,
    etag: Optional[str] = None,
    last_modified: Optional[str] = None,
    timeout: float = DEFAULT_TIMEOUT,
) -> FetchResult:
    """Fetch a spec from a URL, sending validators when given.

    Args:
        url: The HTTP(S) URL to fetch.
        etag: Stored ETag, sent as ``If-None-Match``.
        last_modified: Stored Last-Modified, sent as ``If-Modified-Since``.
        timeout: Per-request timeout in seconds.

    Returns:
        A :class:`FetchResult`.  A ``304`` response has ``content=None``.

    Raises:
        NetworkError: On timeout, connection failure, or any status other
            than 2xx and 304.
    """
    headers: dict[str, str] = {}
    if etag:
        headers["If-None-Match"] = etag
    if last_modified:
        headers["If-Modified-Since"] = last_modified

    try:
        response = httpx.get(url, headers=headers, timeout=timeout, follow_redirects=True)
    except httpx.TimeoutException as exc:
        raise NetworkError(
            f"Timed out fetching spec from {url}: {exc}", condition="timeout"
        ) from exc
    except httpx.RequestError as exc:
        raise NetworkError(
            f"Failed to fetch spec from {url}: {exc}", condition="connection"
        ) from exc

    if response.status_code == 304:
        logger.debug("Remote spec unchanged: %s", url)
        return FetchResult(
            status_code=304,
            content=None,
            etag=response.headers.get("etag", etag),
            last_modified=response.headers.get("last-modified", last_modified),
        )

    if not response.is_success:
        raise NetworkError(
            f"HTTP {response.status_code} fetching spec from {url}",
            condition="http_status",
            status_code=response.status_code,
        )

    return FetchResult(
        status_code=response.status_code,
        content=response.content,
        etag=response.headers.get("etag"),
        last_modified=response.headers.get("last-modified"),
        content_type=response.headers.get("content-type", ""),
    )


def read_local(path: str | Path) -> bytes:
    """Read a local spec file.

    Raises:
        FilesystemError: ``not_found``, ``permission_denied`` or
            ``read_failed``.
    """
    file_path = Path(path)
    try:
        return file_path.read_bytes()
    except FileNotFoundError as exc:
        raise FilesystemError(f"Spec file not found: {path}", condition="not_found") from exc
    except IsADirectoryError as exc:
        raise FilesystemError(f"Spec path is a directory: {path}", condition="not_found") from exc
    except PermissionError as exc:
        raise FilesystemError(
            f"Permission denied reading spec file: {path}", condition="permission_denied"
        ) from exc
    except OSError as exc:
        raise FilesystemError(
            f"Failed to read spec file {path}: {exc}", condition="read_failed"
        ) from exc


def hint_from_path(path: str | Path) -> str:
    """Return ``'json'``, ``'yaml'`` or ``''`` from a file suffix."""
    suffix = Path(path).suffix.lower()
    if suffix == ".json":
        return "json"
    if suffix in (".yaml", ".yml"):
        return "yaml"
    return ""


def hint_from_content_type(content_type: str) -> str:
    """Return ``'json'``, ``'yaml'`` or ``''`` from a Content-Type header."""
    if "json" in content_type:
        return "json"
    if "yaml" in content_type or "yml" in content_type:
        return "yaml"
    return ""


def decode_content(content: bytes | str, hint: str = "") -> dict[str, Any]:
    """Parse raw content as JSON or YAML.

    Tries JSON first (unless hint is ``'yaml'``), then falls back to YAML.
    Valid JSON is also valid YAML, but JSON parsing is stricter and faster.

    Args:
        content: Raw bytes or text.
        hint: Optional format hint (``'json'`` or ``'yaml'``).

    Returns:
        The parsed top-level mapping.

    Raises:
        SpecParseError: If the content cannot be decoded, or the top level is
            not a mapping.  The ``pointer`` is ``line:column`` of the failure.
    """
    if isinstance(content, bytes):
        try:
            text = content.decode("utf-8-sig")
        except UnicodeDecodeError as exc:
            raise SpecParseError(
                f"Spec is not valid UTF-8: {exc}", condition="invalid_encoding", pointer=f"byte {exc.start}"
            ) from exc
    else:
        text = content

    if not text.strip():
        raise SpecParseError("Spec document is empty", condition="not_an_object", pointer="/")

    if hint != "yaml":
        try:
            result = json.loads(text)
        except json.JSONDecodeError as exc:
            # If the hint was explicitly JSON, don't try YAML
            if hint == "json":
                raise SpecParseError(
                    f"Invalid JSON: {exc.msg}",
                    condition="invalid_json",
                    pointer=f"{exc.lineno}:{exc.colno}",
                ) from exc
        else:
            return _require_mapping(result)

    try:
        result = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        mark = getattr(exc, "problem_mark", None)
        pointer = f"{mark.line + 1}:{mark.column + 1}" if mark is not None else ""
        problem = getattr(exc, "problem", None) or str(exc)
        raise SpecParseError(
            f"Failed to parse spec as JSON or YAML: {problem}",
            condition="invalid_yaml",
            pointer=pointer,
        ) from exc
    return _require_mapping(result)


def _require_mapping(result: Any) -> dict[str, Any]:
    if not isinstance(result, dict):
        got = type(result).__name__ if result is not None else "empty document"
        raise SpecParseError(
            f"Spec must be a JSON/YAML object (got {got})",
            condition="not_an_object",
            pointer="/",
        )
    return result


def detect_version(spec: dict[str, Any]) -> tuple[SpecVersion, str]:
    """Detect the document family from the ``swagger`` / ``openapi`` field.

    Returns:
        ``(SpecVersion, raw_version_string)``.

    Raises:
        SpecParseError: If neither field is present or the version is
            unsupported.
    """
    if "swagger" in spec:
        version_str = str(spec["swagger"])
        if version_str.startswith("2."):
            return SpecVersion.SWAGGER_2, version_str
        raise SpecParseError(
            f"Unsupported Swagger version: {version_str}. Only Swagger 2.0 is supported.",
            condition="unsupported_version",
            pointer="/swagger",
        )

    openapi_version = spec.get("openapi")
    if openapi_version is None:
        raise SpecParseError(
            "Missing 'openapi' or 'swagger' field. Is this an OpenAPI document?",
            condition="unsupported_version",
            pointer="/",
        )

    version_str = str(openapi_version)
    if version_str.startswith("3.0"):
        return SpecVersion.OPENAPI_30, version_str
    if version_str.startswith("3.1"):
        return SpecVersion.OPENAPI_31, version_str

    raise SpecParseError(
        f"Unsupported OpenAPI version: {version_str}. "
        "Only Swagger 2.0 and OpenAPI 3.0.x/3.1.x are supported.",
        condition="unsupported_version",
        pointer="/openapi",
    )
