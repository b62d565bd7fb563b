"""Single-flight, TTL-bound memoization of whole-document parses.

:class:`ParseCache` wraps the parse pipeline keyed by source locator. Keys are
``<prefix><sha256(source)>`` so that arbitrary URLs and paths map to safe,
fixed-length identifiers. Concurrent misses for the same source collapse into
one producer call; other callers wait for that call's outcome instead of
fetching and parsing again. Only successful results are stored, so a failed or
interrupted parse never leaves an entry behind.

Storage is delegated to a :class:`CacheStore`:

* :class:`MemoryCacheStore` -- in-process dict of expiring :class:`CacheEntry`
  values.
* :class:`DiskCacheStore` -- a :class:`diskcache.Cache` directory using the
  library's native ``expire`` and ``tag`` support.

See Also:
    :class:`~oasmodel.models.CacheConfig` -- ``enabled``, ``ttl_seconds``,
    ``prefix``, ``tag`` and ``directory`` settings.
"""

from __future__ import annotations

import hashlib
import logging
import threading
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Optional, Protocol

import diskcache

from oasmodel.exceptions import DocumentIOError

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 3600
DEFAULT_PREFIX = "openapi_schema_"
DEFAULT_TAG = "openapi"


class CacheStore(Protocol):
    """Key-value collaborator with TTL and tag-based bulk eviction."""

    def get(self, key: str) -> Any:
        """Return the stored value, or ``None`` on a miss or expiry."""
        ...

    def put(self, key: str, value: Any, ttl_seconds: Optional[int], tag: str) -> None:
        ...

    def forget(self, key: str) -> None:
        ...

    def evict(self, tag: str) -> int:
        """Remove every entry stored under *tag* and return how many were removed."""
        ...


@dataclass
class CacheEntry:
    key: str
    value: Any
    expires_at: Optional[float] = None
    tag: str = DEFAULT_TAG

    def is_expired(self, now: float) -> bool:
        return self.expires_at is not None and now >= self.expires_at


class MemoryCacheStore:
    """Thread-safe in-process :class:`CacheStore`.

    Args:
        clock: Monotonic time source in seconds (injectable for tests).
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Any:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if entry.is_expired(self._clock()):
                del self._entries[key]
                return None
            return entry.value

    def put(self, key: str, value: Any, ttl_seconds: Optional[int], tag: str) -> None:
        expires_at = self._clock() + ttl_seconds if ttl_seconds is not None else None
        with self._lock:
            self._entries[key] = CacheEntry(key=key, value=value, expires_at=expires_at, tag=tag)

    def forget(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def evict(self, tag: str) -> int:
        with self._lock:
            doomed = [key for key, entry in self._entries.items() if entry.tag == tag]
            for key in doomed:
                del self._entries[key]
        return len(doomed)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


class DiskCacheStore:
    """Disk-backed :class:`CacheStore` on top of :class:`diskcache.Cache`.

    Args:
        cache_dir: Root directory for the cache. A ``parses/`` subdirectory is
            created inside it.
    """

    def __init__(self, cache_dir: str | Path) -> None:
        self._directory = Path(cache_dir) / "parses"
        self._cache = diskcache.Cache(str(self._directory))

    @property
    def directory(self) -> Path:
        return self._directory

    def get(self, key: str) -> Any:
        return self._cache.get(key)

    def put(self, key: str, value: Any, ttl_seconds: Optional[int], tag: str) -> None:
        self._cache.set(key, value, expire=ttl_seconds, tag=tag)

    def forget(self, key: str) -> None:
        self._cache.delete(key)

    def evict(self, tag: str) -> int:
        return self._cache.evict(tag)

    def close(self) -> None:
        """Close the underlying :class:`diskcache.Cache` and release resources."""
        self._cache.close()

    def __len__(self) -> int:
        return len(self._cache)


@dataclass
class _Flight:
    done: threading.Event = field(default_factory=threading.Event)
    result: Any = None
    error: Optional[BaseException] = None


class ParseCache:
    """Memoize parse results per source with single-flight miss handling.

    Args:
        store: The :class:`CacheStore` holding results.
        ttl_seconds: Lifetime of a stored result.
        prefix: Key prefix, so parse results can share a store with other data.
        tag: Tag attached to every entry; :meth:`clear` evicts by it.

    Example::

        cache = ParseCache(MemoryCacheStore(), ttl_seconds=600)
        result = cache.get_or_parse("petstore.yaml", lambda: engine.parse("petstore.yaml", use_cache=False))
    """

    def __init__(
        self,
        store: CacheStore,
        *,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        prefix: str = DEFAULT_PREFIX,
        tag: str = DEFAULT_TAG,
    ) -> None:
        self._store = store
        self._ttl_seconds = ttl_seconds
        self._prefix = prefix
        self._tag = tag
        self._lock = threading.Lock()
        self._in_flight: dict[str, _Flight] = {}
        self._hits = 0
        self._misses = 0
        self._waits = 0

    @property
    def store(self) -> CacheStore:
        return self._store

    def key_for(self, source: str) -> str:
        return self._prefix + hashlib.sha256(source.encode("utf-8")).hexdigest()

    def get_or_parse(
        self,
        source: str,
        producer: Callable[[], Any],
        *,
        wait_timeout: Optional[float] = None,
    ) -> Any:
        """Return the cached result for *source*, producing it on a miss.

        Exactly one caller per key runs *producer*; concurrent callers wait
        for it and receive the same result or the same exception.

        Args:
            source: Source locator (path or URL) used to build the key.
            producer: Zero-argument callable performing the parse.
            wait_timeout: Seconds a waiting caller blocks before giving up.
                ``None`` waits for the producer to finish.

        Raises:
            DocumentIOError: When *wait_timeout* expires while waiting.
            BaseException: Whatever *producer* raised, for every caller.
        """
        key = self.key_for(source)
        with self._lock:
            cached = self._store.get(key)
            if cached is not None:
                self._hits += 1
                logger.debug("Parse cache hit for %s", source)
                return cached
            flight = self._in_flight.get(key)
            leader = flight is None
            if flight is None:
                flight = _Flight()
                self._in_flight[key] = flight
                self._misses += 1
            else:
                self._waits += 1

        if not leader:
            logger.debug("Waiting for in-flight parse of %s", source)
            if not flight.done.wait(wait_timeout):
                raise DocumentIOError(
                    f"Timed out after {wait_timeout}s waiting for in-flight parse of {source}",
                    source=source,
                )
            if flight.error is not None:
                raise flight.error
            return flight.result

        try:
            value = producer()
            self._store.put(key, value, self._ttl_seconds, self._tag)
        except BaseException as exc:
            flight.error = exc
            raise
        else:
            flight.result = value
            logger.info("Cached parse result for %s (ttl=%ss)", source, self._ttl_seconds)
            return value
        finally:
            with self._lock:
                self._in_flight.pop(key, None)
            flight.done.set()

    def forget(self, source: str) -> None:
        """Drop the cached result for *source*, if any."""
        self._store.forget(self.key_for(source))

    def clear(self) -> int:
        """Evict every entry carrying this cache's tag."""
        removed = self._store.evict(self._tag)
        logger.info("Evicted %d cached parse results (tag=%s)", removed, self._tag)
        return removed

    def stats(self) -> dict[str, Any]:
        """Return hit/miss counters and settings."""
        with self._lock:
            return {
                "hits": self._hits,
                "misses": self._misses,
                "waits": self._waits,
                "in_flight": len(self._in_flight),
                "ttl_seconds": self._ttl_seconds,
                "prefix": self._prefix,
                "tag": self._tag,
            }
