"""Parse result caching for oasmodel.

This package provides :class:`ParseCache`, a single-flight memoization layer
around whole-document parses, plus two :class:`CacheStore` implementations:
:class:`MemoryCacheStore` (in-process) and :class:`DiskCacheStore`
(:mod:`diskcache`).

The cache is consumed by :class:`~oasmodel.engine.OpenApiEngine` and is
controlled by the ``cache`` section of the engine configuration
(:class:`~oasmodel.models.CacheConfig`).
"""

from oasmodel.cache.cache import CacheEntry, CacheStore, DiskCacheStore, MemoryCacheStore, ParseCache

__all__ = ["ParseCache", "CacheStore", "CacheEntry", "MemoryCacheStore", "DiskCacheStore"]
