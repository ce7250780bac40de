"""Persistent cache of parsed spec documents.

This package provides :class:`CacheStore`, a schema-versioned store built on
:mod:`diskcache` that keeps one :class:`~specsync.models.CacheEntry` per
normalized source key, with TTL and HTTP-style revalidation metadata.

The store is consumed by :class:`~specsync.loader.SpecLoader` and is always
constructed explicitly; nothing in specsync opens a cache implicitly.
"""

from specsync.cache.store import CacheStore, normalize_source_key

__all__ = ["CacheStore", "normalize_source_key"]
