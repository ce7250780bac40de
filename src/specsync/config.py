"""Project settings with precedence resolution, plus atomic file writes.

* **Settings** -- :class:`Settings` holds the tunables shared by the tool
  operations: cache TTL, HTTP timeout, default page size, and the cache
  directory name.
* **Precedence resolution** -- :func:`resolve_settings` merges explicit
  overrides, environment variables, the project-local ``specsync.json``
  file, and defaults.
* **Atomic writes** -- :func:`atomic_write` writes through a temp file and
  rename so generated files are never left half-written.
"""

from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from specsync.cache.store import DEFAULT_CACHE_DIRNAME, DEFAULT_TTL_SECONDS
from specsync.exceptions import ConfigError, FilesystemError
from specsync.parser.loader import DEFAULT_TIMEOUT
from specsync.views import DEFAULT_LIMIT

PROJECT_CONFIG_FILENAME = "specsync.json"

_ENV_VARS = {
    "ttl_seconds": "SPECSYNC_TTL_SECONDS",
    "timeout": "SPECSYNC_TIMEOUT",
    "default_limit": "SPECSYNC_DEFAULT_LIMIT",
}


class Settings(BaseModel):
    """Effective settings for one project directory."""

    model_config = ConfigDict(extra="forbid")

    ttl_seconds: int = Field(default=DEFAULT_TTL_SECONDS, ge=0)
    timeout: float = Field(default=DEFAULT_TIMEOUT, gt=0)
    default_limit: int = Field(default=DEFAULT_LIMIT, ge=0)
    cache_dirname: str = DEFAULT_CACHE_DIRNAME


# --- Atomic file writes ---


def atomic_write(path: Path, data: str) -> None:
    """Write data to file atomically using temp file + rename.

    The temporary file is created in the same directory as *path* so that
    ``os.replace`` is an atomic rename on POSIX systems.  On any failure the
    temp file is removed and the error propagates.
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    fd = None
    tmp_path: Optional[str] = None
    try:
        fd = tempfile.NamedTemporaryFile(
            mode="w",
            dir=path.parent,
            prefix=f".{path.name}.",
            suffix=".tmp",
            delete=False,
            encoding="utf-8",
        )
        tmp_path = fd.name
        fd.write(data)
        fd.flush()
        os.fsync(fd.fileno())
        fd.close()
        fd = None  # prevent double-close below
        os.replace(tmp_path, path)
    except BaseException:
        if fd is not None:
            fd.close()
        if tmp_path is not None and os.path.exists(tmp_path):
            os.unlink(tmp_path)
        raise


def write_files(out_dir: Path, files: dict[str, str]) -> list[Path]:
    """Write generated files under *out_dir*, returning the written paths.

    Raises:
        FilesystemError: ``write_failed`` if any file cannot be written.
    """
    written: list[Path] = []
    for name, text in sorted(files.items()):
        path = out_dir / name
        try:
            atomic_write(path, text)
        except OSError as exc:
            raise FilesystemError(f"Cannot write {path}: {exc}", condition="write_failed") from exc
        written.append(path)
    return written


# --- Project-local config ---


def load_project_config(project_dir: Path) -> Optional[dict[str, Any]]:
    """Load ``<project_dir>/specsync.json``.

    Returns:
        The parsed JSON object, or ``None`` if the file does not exist.

    Raises:
        ConfigError: ``invalid_config`` if the file is not a JSON object.
    """
    path = project_dir / PROJECT_CONFIG_FILENAME
    if not path.is_file():
        return None
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, ValueError) as exc:
        raise ConfigError(f"Invalid project config at {path}: {exc}", condition="invalid_config") from exc
    if not isinstance(data, dict):
        raise ConfigError(
            f"Invalid project config at {path}: expected a JSON object",
            condition="invalid_config",
        )
    return data


# --- Precedence resolution ---


def resolve_settings(project_dir: Optional[Path] = None, **overrides: Any) -> Settings:
    """Resolve settings with the full precedence chain.

    Precedence (high to low):
        1. Explicit keyword overrides (``None`` values are ignored)
        2. Environment variables (``SPECSYNC_TTL_SECONDS``,
           ``SPECSYNC_TIMEOUT``, ``SPECSYNC_DEFAULT_LIMIT``)
        3. Project config (``<project_dir>/specsync.json``)
        4. Defaults

    Raises:
        ConfigError: ``invalid_config`` for an unreadable project file or
            any value that fails validation.
    """
    values: dict[str, Any] = {}
    if project_dir is not None:
        values.update(load_project_config(project_dir) or {})
    for field_name, env_var in _ENV_VARS.items():
        env_value = os.environ.get(env_var)
        if env_value:
            values[field_name] = env_value
    values.update({key: value for key, value in overrides.items() if value is not None})
    try:
        return Settings.model_validate(values)
    except ValidationError as exc:
        problems = "; ".join(
            f"{'.'.join(str(loc) for loc in err['loc'])}: {err['msg']}" for err in exc.errors()
        )
        raise ConfigError(f"Invalid settings: {problems}", condition="invalid_config") from exc
