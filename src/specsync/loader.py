"""Cache-aware loading of spec documents.

:class:`SpecLoader` turns a source (local path or HTTP(S) URL) into a
:class:`~specsync.models.SpecDocument`, consulting a
:class:`~specsync.cache.store.CacheStore` first.  Every load reports how
fresh the returned document is:

* ``cached`` -- served from a non-expired entry with no I/O.
* ``revalidated`` -- a validator (HTTP 304, unchanged mtime or content hash)
  confirmed the entry; its TTL was extended and the IR kept.
* ``refreshed`` -- a conditional fetch returned content; IR, hash and
  validators were replaced.
* ``fetched`` -- no usable entry, so the source was read unconditionally.

Documents are always normalized leniently and cached with their warnings.
A strict caller receives a :class:`~specsync.exceptions.SpecParseError`
built from those warnings, so one cache entry serves both kinds of caller.
"""

from __future__ import annotations

import enum
import hashlib
import logging
import threading
from concurrent.futures import Future
from dataclasses import dataclass
from datetime import datetime, timedelta
from pathlib import Path
from typing import Callable, Optional

from specsync.cache.store import (
    DEFAULT_TTL_SECONDS,
    SCHEMA_VERSION,
    CacheStore,
    normalize_source_key,
    utcnow,
)
from specsync.models import CacheEntry, SpecDocument
from specsync.parser.loader import (
    DEFAULT_TIMEOUT,
    fetch_remote,
    hint_from_content_type,
    hint_from_path,
    is_remote,
    read_local,
)
from specsync.parser.normalizer import normalize, raise_for_issues

logger = logging.getLogger(__name__)


class Freshness(str, enum.Enum):
    """How the document returned by :meth:`SpecLoader.load` was obtained."""

    CACHED = "cached"
    REVALIDATED = "revalidated"
    REFRESHED = "refreshed"
    FETCHED = "fetched"


@dataclass
class LoadResult:
    document: SpecDocument
    freshness: Freshness
    source_key: str
    entry: Optional[CacheEntry] = None


class SpecLoader:
    """Resolve sources to documents through a cache.

    At most one load per source key is in flight at a time.  Concurrent
    callers for the same key wait for the first load and share its result
    or its exception.

    Args:
        store: Cache to consult and update.  ``None`` disables caching.
        timeout: Per-request network timeout in seconds.
        ttl_seconds: Lifetime of new entries.  Defaults to the store's TTL.
        clock: Returns the current time; injectable for tests.
    """

    def __init__(
        self,
        store: Optional[CacheStore] = None,
        timeout: float = DEFAULT_TIMEOUT,
        ttl_seconds: Optional[int] = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._store = store
        self._timeout = timeout
        if ttl_seconds is None:
            ttl_seconds = store.ttl_seconds if store is not None else DEFAULT_TTL_SECONDS
        self._ttl_seconds = ttl_seconds
        self._clock = clock
        self._inflight: dict[str, Future] = {}
        self._inflight_lock = threading.Lock()

    def load(
        self,
        source: str,
        use_cache: bool = True,
        check_remote: bool = False,
        strict: bool = False,
    ) -> LoadResult:
        """Load *source*, reusing or revalidating a cached entry when allowed.

        Args:
            source: Local path or HTTP(S) URL.
            use_cache: When False, ignore any entry and fetch unconditionally
                (the new result is still written to the cache).
            check_remote: Revalidate even a non-expired entry.
            strict: Raise on structural violations instead of returning a
                document with warnings.

        Raises:
            NetworkError: Fetching a remote source failed.
            FilesystemError: Reading a local source failed.
            SpecParseError: The content could not be normalized, or
                ``strict`` is set and the document has violations.
        """
        key = normalize_source_key(source)

        with self._inflight_lock:
            future = self._inflight.get(key)
            leader = future is None
            if leader:
                future = Future()
                self._inflight[key] = future

        if not leader:
            logger.debug("Waiting for in-flight load of %s", key)
            result = future.result()
        else:
            try:
                result = self._load_exclusive(key, use_cache, check_remote)
            except BaseException as exc:
                future.set_exception(exc)
                raise
            else:
                future.set_result(result)
            finally:
                with self._inflight_lock:
                    self._inflight.pop(key, None)

        if strict:
            raise_for_issues(result.document.warnings)
        return result

    # --- internals ---

    def _load_exclusive(self, key: str, use_cache: bool, check_remote: bool) -> LoadResult:
        if self._store is None:
            return self._fetch(key)
        with self._store.lock(key):
            entry = self._store.get(key) if use_cache else None
            if entry is None:
                return self._fetch(key)
            if check_remote or entry.is_expired(self._clock()):
                return self._revalidate(key, entry)
            logger.debug("Serving %s from cache", key)
            return LoadResult(entry.document, Freshness.CACHED, key, entry)

    def _fetch(self, key: str) -> LoadResult:
        logger.debug("Fetching %s", key)
        if is_remote(key):
            fetched = fetch_remote(key, timeout=self._timeout)
            content = fetched.content or b""
            hint = hint_from_content_type(fetched.content_type) or hint_from_path(
                key.split("?", 1)[0]
            )
            document = normalize(content, hint=hint, source=key)
            entry = self._new_entry(
                key,
                document,
                etag=fetched.etag,
                last_modified=fetched.last_modified,
            )
        else:
            path = Path(key)
            content = read_local(path)
            document = normalize(content, hint=hint_from_path(path), source=key)
            entry = self._new_entry(key, document, mtime=_mtime(path))
        self._put(entry)
        return LoadResult(document, Freshness.FETCHED, key, entry)

    def _revalidate(self, key: str, entry: CacheEntry) -> LoadResult:
        if is_remote(key):
            return self._revalidate_remote(key, entry)
        return self._revalidate_local(key, entry)

    def _revalidate_remote(self, key: str, entry: CacheEntry) -> LoadResult:
        fetched = fetch_remote(
            key,
            etag=entry.etag,
            last_modified=entry.last_modified,
            timeout=self._timeout,
        )
        if fetched.not_modified:
            logger.debug("%s not modified; extending TTL", key)
            updated = self._extend(entry)
            return LoadResult(updated.document, Freshness.REVALIDATED, key, updated)

        content = fetched.content or b""
        content_hash = hashlib.sha256(content).hexdigest()
        if content_hash == entry.content_hash:
            document = entry.document
        else:
            hint = hint_from_content_type(fetched.content_type) or hint_from_path(
                key.split("?", 1)[0]
            )
            document = normalize(content, hint=hint, source=key)
        replaced = self._new_entry(
            key,
            document,
            etag=fetched.etag,
            last_modified=fetched.last_modified,
        )
        self._put(replaced)
        return LoadResult(document, Freshness.REFRESHED, key, replaced)

    def _revalidate_local(self, key: str, entry: CacheEntry) -> LoadResult:
        path = Path(key)
        mtime = _mtime(path)
        if mtime is not None and entry.mtime == mtime:
            logger.debug("%s unchanged (mtime); extending TTL", key)
            updated = self._extend(entry)
            return LoadResult(updated.document, Freshness.REVALIDATED, key, updated)

        content = read_local(path)
        if hashlib.sha256(content).hexdigest() == entry.content_hash:
            logger.debug("%s unchanged (content hash); extending TTL", key)
            updated = self._extend(entry, mtime=mtime)
            return LoadResult(updated.document, Freshness.REVALIDATED, key, updated)

        document = normalize(content, hint=hint_from_path(path), source=key)
        replaced = self._new_entry(key, document, mtime=mtime)
        self._put(replaced)
        return LoadResult(document, Freshness.REFRESHED, key, replaced)

    def _new_entry(self, key: str, document: SpecDocument, **validators) -> CacheEntry:
        now = self._clock()
        return CacheEntry(
            source_key=key,
            content_hash=document.spec_hash,
            fetched_at=now,
            validated_at=now,
            expires_at=now + timedelta(seconds=self._ttl_seconds),
            ttl_seconds=self._ttl_seconds,
            schema_version=SCHEMA_VERSION,
            document=document,
            **validators,
        )

    def _extend(self, entry: CacheEntry, **updates) -> CacheEntry:
        # Only reached for entries read from the store
        assert self._store is not None
        updated = self._store.touch(entry.source_key, now=self._clock(), **updates)
        return updated or entry

    def _put(self, entry: CacheEntry) -> None:
        if self._store is not None:
            self._store.put(entry)


def _mtime(path: Path) -> Optional[float]:
    try:
        return path.stat().st_mtime
    except OSError:
        return None
