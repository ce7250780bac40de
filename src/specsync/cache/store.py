"""Persistent, schema-versioned store of parsed spec documents.

Uses :mod:`diskcache` to keep one :class:`~specsync.models.CacheEntry` per
normalized source key inside ``<project_dir>/.specsync-cache/``.  Entries are
stored as JSON and validated on the way back in, so a value written by an
incompatible build is simply a miss.

Lifecycle is explicit: construct, :meth:`CacheStore.open`, then
:meth:`~CacheStore.flush` / :meth:`~CacheStore.close` (or use the store as a
context manager).  :meth:`~CacheStore.put` and :meth:`~CacheStore.touch` only
stage changes in memory; :meth:`~CacheStore.flush` commits every staged
change in a single ``diskcache`` transaction.

If the cache directory cannot be opened or written, the store rebuilds it
once and otherwise degrades to an in-memory store.  The reason is kept on
:attr:`~CacheStore.degraded_reason` and the requested operation carries on.

See Also:
    :class:`specsync.loader.SpecLoader` -- the only writer of entries.
"""

from __future__ import annotations

import logging
import shutil
import sqlite3
import threading
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Optional

import diskcache
import httpx
from pydantic import ValidationError

from specsync.exceptions import CacheError
from specsync.models import CacheEntry
from specsync.parser.loader import is_remote

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1
"""Bump when :class:`~specsync.models.CacheEntry` or the IR changes shape."""

DEFAULT_TTL_SECONDS = 24 * 60 * 60
DEFAULT_CACHE_DIRNAME = ".specsync-cache"

_META_KEY = "__meta__"
_DISK_ERRORS = (sqlite3.Error, OSError)
_DEFAULT_PORTS = {("http", 80), ("https", 443)}


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def normalize_source_key(source: str) -> str:
    """Return the cache key for a spec source.

    Local paths become absolute resolved paths.  URLs are canonicalised:
    scheme and host lower-cased, default ports and fragments dropped, query
    kept verbatim.

    Example::

        >>> normalize_source_key("HTTPS://Api.Example.com:443/spec.json#top")
        'https://api.example.com/spec.json'
    """
    if is_remote(source.lower()):
        url = httpx.URL(source)
        scheme = url.scheme.lower()
        port = url.port
        if (scheme, port) in _DEFAULT_PORTS:
            port = None
        host = url.host.lower()
        netloc = host if port is None else f"{host}:{port}"
        path = url.raw_path.decode("ascii") or "/"
        return f"{scheme}://{netloc}{path}"
    return str(Path(source).expanduser().resolve())


class CacheStore:
    """Disk-backed store of :class:`~specsync.models.CacheEntry` values.

    Args:
        project_dir: Directory the cache belongs to.  The cache lives in
            ``<project_dir>/<cache_dirname>``.
        ttl_seconds: Lifetime given to new and revalidated entries.
        cache_dirname: Name of the cache directory.

    Example::

        with CacheStore("/path/to/project").open() as store:
            entry = store.get(normalize_source_key("openapi.yaml"))
    """

    def __init__(
        self,
        project_dir: str | Path,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        cache_dirname: str = DEFAULT_CACHE_DIRNAME,
    ) -> None:
        self.project_dir = Path(project_dir)
        self.directory = self.project_dir / cache_dirname
        self.ttl_seconds = ttl_seconds
        self.degraded_reason: Optional[CacheError] = None

        self._cache: Optional[diskcache.Cache] = None
        self._opened = False
        # Used instead of the disk when degraded
        self._memory: dict[str, CacheEntry] = {}
        self._staged: dict[str, CacheEntry] = {}
        self._deleted: set[str] = set()
        self._state_lock = threading.RLock()
        self._key_locks: dict[str, threading.Lock] = {}
        self._key_locks_guard = threading.Lock()

    # --- lifecycle ---

    def open(self) -> CacheStore:
        """Open (or create) the cache directory.  Idempotent.

        A schema-version mismatch clears the cache.  An unreadable database is
        removed and rebuilt once; if that also fails the store degrades to
        memory.
        """
        with self._state_lock:
            if self._opened:
                return self
            self._opened = True
            try:
                self._cache = self._open_disk()
            except _DISK_ERRORS as exc:
                logger.info("Cache at %s is unreadable (%s); rebuilding", self.directory, exc)
                try:
                    shutil.rmtree(self.directory, ignore_errors=True)
                    self._cache = self._open_disk()
                except _DISK_ERRORS as retry_exc:
                    self._degrade(
                        CacheError(
                            f"Cache directory {self.directory} is unusable: {retry_exc}",
                            condition="unreadable",
                        )
                    )
        return self

    def flush(self) -> int:
        """Commit staged writes in one transaction.

        Returns:
            The number of keys written or deleted.
        """
        with self._state_lock:
            staged, self._staged = self._staged, {}
            deleted, self._deleted = self._deleted, set()
            if not staged and not deleted:
                return 0

            if self._cache is not None:
                try:
                    with self._cache.transact():
                        for key in deleted:
                            self._cache.delete(key)
                        for key, entry in staged.items():
                            self._cache.set(key, entry.model_dump_json())
                except _DISK_ERRORS as exc:
                    self._degrade(
                        CacheError(
                            f"Failed to write cache at {self.directory}: {exc}",
                            condition="unwritable",
                        )
                    )
                else:
                    logger.debug("Flushed %d cache change(s) to %s", len(staged) + len(deleted), self.directory)
                    return len(staged) + len(deleted)

            for key in deleted:
                self._memory.pop(key, None)
            self._memory.update(staged)
            return len(staged) + len(deleted)

    def close(self) -> None:
        """Flush staged writes and release the underlying :class:`diskcache.Cache`."""
        with self._state_lock:
            if not self._opened:
                return
            self.flush()
            if self._cache is not None:
                self._cache.close()
                self._cache = None
            self._opened = False

    def __enter__(self) -> CacheStore:
        return self.open()

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    @property
    def degraded(self) -> bool:
        """True when the store runs in memory because the disk cache is unusable."""
        return self.degraded_reason is not None

    # --- per-key exclusion ---

    def lock(self, key: str) -> threading.Lock:
        """Return the lock serialising read-modify-write sequences on *key*.

        Unrelated keys never contend with each other.
        """
        with self._key_locks_guard:
            lock = self._key_locks.get(key)
            if lock is None:
                lock = self._key_locks[key] = threading.Lock()
            return lock

    # --- entries ---

    def get(self, key: str) -> Optional[CacheEntry]:
        """Return the entry for *key*, or ``None`` on a miss.

        Staged (unflushed) writes are visible.  An entry that fails
        validation, carries another schema version, or whose hash does not
        match its document is discarded and reported as a miss.
        """
        self._ensure_open()
        with self._state_lock:
            if key in self._staged:
                return self._staged[key]
            if key in self._deleted:
                return None
            if self._cache is None:
                return self._memory.get(key)
            try:
                raw = self._cache.get(key)
            except _DISK_ERRORS as exc:
                logger.warning("Failed to read cache entry %s: %s", key, exc)
                return None
        if raw is None:
            logger.debug("Cache miss for %s", key)
            return None
        return self._load_entry(key, raw)

    def put(self, entry: CacheEntry) -> None:
        """Stage *entry*, replacing any previous entry for its key."""
        self._ensure_open()
        with self._state_lock:
            self._deleted.discard(entry.source_key)
            self._staged[entry.source_key] = entry

    def touch(
        self,
        key: str,
        now: Optional[datetime] = None,
        **updates: Any,
    ) -> Optional[CacheEntry]:
        """Extend the TTL of an existing entry and stage the result.

        The document, hash and validators are kept unless overridden through
        *updates* (e.g. ``mtime=...`` after a local file was touched without
        changing).

        Returns:
            The updated entry, or ``None`` if *key* has no entry.
        """
        entry = self.get(key)
        if entry is None:
            return None
        now = now or utcnow()
        updated = entry.model_copy(
            update={
                **updates,
                "validated_at": now,
                "expires_at": now + timedelta(seconds=entry.ttl_seconds),
            }
        )
        self.put(updated)
        return updated

    def delete(self, key: str) -> None:
        """Stage removal of *key*."""
        self._ensure_open()
        with self._state_lock:
            self._staged.pop(key, None)
            self._deleted.add(key)

    def keys(self) -> list[str]:
        """Return every stored key (flushed or staged), sorted."""
        self._ensure_open()
        with self._state_lock:
            if self._cache is None:
                keys = set(self._memory)
            else:
                try:
                    keys = {key for key in self._cache.iterkeys() if key != _META_KEY}
                except _DISK_ERRORS as exc:
                    logger.warning("Failed to list cache entries: %s", exc)
                    keys = set()
            keys |= set(self._staged)
            keys -= self._deleted
        return sorted(keys)

    def entries(self) -> list[CacheEntry]:
        """Return every valid entry, sorted by key."""
        entries = []
        for key in self.keys():
            entry = self.get(key)
            if entry is not None:
                entries.append(entry)
        return entries

    def clear(self) -> None:
        """Remove every entry immediately, staged ones included."""
        self._ensure_open()
        with self._state_lock:
            self._staged.clear()
            self._deleted.clear()
            self._memory.clear()
            if self._cache is not None:
                try:
                    self._cache.clear()
                    self._cache.set(_META_KEY, {"schema_version": SCHEMA_VERSION})
                except _DISK_ERRORS as exc:
                    self._degrade(
                        CacheError(f"Failed to clear cache: {exc}", condition="unwritable")
                    )

    def stats(self) -> dict[str, Any]:
        """Return a summary of the store for status reporting."""
        return {
            "directory": str(self.directory),
            "schema_version": SCHEMA_VERSION,
            "ttl_seconds": self.ttl_seconds,
            "size": len(self.keys()),
            "degraded": self.degraded,
            "degraded_reason": self.degraded_reason.to_dict() if self.degraded_reason else None,
        }

    # --- internals ---

    def _open_disk(self) -> diskcache.Cache:
        cache = diskcache.Cache(str(self.directory))
        try:
            meta = cache.get(_META_KEY)
            if meta != {"schema_version": SCHEMA_VERSION}:
                if meta is not None:
                    logger.info(
                        "Cache schema version changed (%s -> %s); rebuilding %s",
                        meta.get("schema_version") if isinstance(meta, dict) else meta,
                        SCHEMA_VERSION,
                        self.directory,
                    )
                cache.clear()
                cache.set(_META_KEY, {"schema_version": SCHEMA_VERSION})
        except BaseException:
            cache.close()
            raise
        return cache

    def _load_entry(self, key: str, raw: Any) -> Optional[CacheEntry]:
        try:
            entry = CacheEntry.model_validate_json(raw)
        except (ValidationError, TypeError, ValueError) as exc:
            logger.info("Discarding unreadable cache entry %s: %s", key, exc)
            self.delete(key)
            return None
        if entry.schema_version != SCHEMA_VERSION or entry.content_hash != entry.document.spec_hash:
            logger.info("Discarding stale or corrupted cache entry %s", key)
            self.delete(key)
            return None
        logger.debug("Cache hit for %s", key)
        return entry

    def _ensure_open(self) -> None:
        if not self._opened:
            self.open()

    def _degrade(self, error: CacheError) -> None:
        logger.warning("%s; continuing without a persistent cache", error.message)
        self.degraded_reason = error
        if self._cache is not None:
            try:
                self._cache.close()
            except _DISK_ERRORS as exc:
                logger.debug("Error closing degraded cache: %s", exc)
            self._cache = None
