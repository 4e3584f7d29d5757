# -*- coding: utf-8 -*-

"""

Metadata cache.

Reading the metadata of a simulation output (``read_info``) parses several
files per snapshot; analysis scripts ask for the same snapshot many times.
``MetadataCache`` keeps loaded values keyed by ``"{path}/output_{output:05d}"``.

The cache is an ordinary object: create one, pass it where it is needed, and
drop or ``clear()`` it when done. Usable as a context manager that clears on
exit.

    cache = MetadataCache()
    info = getinfo_cached(cache, 300, "./simulation")

"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Hashable, Iterable, Optional

from .io import read_info
from .types import SimInfo

logger = logging.getLogger("drishti")


@dataclass
class CacheEntry:
    value: object
    cached_at: float
    load_time: float
    access_count: int = 1


def cache_key(path: str, output: int) -> str:
    return f"{path}/output_{output:05d}"


class MetadataCache:
    """
    Thread-safe key -> value map with per-entry access counters.

    Loaders run outside the lock, so two threads missing on the same key at the
    same time may both load it; the last one to finish wins and every load
    counts as an access. A refresh keeps the access count. Loader exceptions
    propagate and leave the cache unchanged.
    """

    def __init__(self) -> None:
        self._entries: Dict[Hashable, CacheEntry] = {}
        self._lock = threading.Lock()

    def get_or_load(self, key: Hashable, loader: Callable[[], object], force_refresh: bool = False):
        """
        Return the cached value for ``key``, calling ``loader()`` on a miss.

        Args:
            key: Cache key (see ``cache_key``).
            loader: Zero-argument callable producing the value.
            force_refresh: Reload even when ``key`` is cached.
        """
        if not force_refresh:
            with self._lock:
                entry = self._entries.get(key)
                if entry is not None:
                    entry.access_count += 1
                    logger.debug("cache hit %s (%d accesses)", key, entry.access_count)
                    return entry.value

        t0 = time.perf_counter()
        value = loader()
        load_time = time.perf_counter() - t0

        with self._lock:
            previous = self._entries.get(key)
            count = previous.access_count + 1 if previous is not None else 1
            self._entries[key] = CacheEntry(
                value=value, cached_at=time.time(), load_time=load_time, access_count=count
            )
        logger.debug("cache %s %s in %.3fs", "refresh" if force_refresh else "miss", key, load_time)
        return value

    def clear(self) -> Dict[str, int]:
        with self._lock:
            removed = len(self._entries)
            total = sum(e.access_count for e in self._entries.values())
            self._entries.clear()
        logger.debug("cache cleared: %d entries, %d accesses", removed, total)
        return {"entries_removed": removed, "total_access": total}

    def warm(self, keys: Iterable[Hashable], loader: Callable[[Hashable], object]) -> Dict[Hashable, Exception]:
        """
        Load every key in ``keys`` with ``loader(key)``.

        A failing key is logged and recorded; the remaining keys are still loaded.

        Returns:
            key -> exception for the keys that failed (empty when all succeeded).
        """
        failures: Dict[Hashable, Exception] = {}
        for key in keys:
            try:
                self.get_or_load(key, lambda k=key: loader(k))
            except Exception as e:
                logger.warning("Could not warm cache for %s: %s", key, e)
                failures[key] = e
        return failures

    def stats(self) -> Dict[str, object]:
        with self._lock:
            entries = dict(self._entries)

        total = sum(e.access_count for e in entries.values())
        # every hit after the first load skipped one load
        saved = sum(e.load_time * (e.access_count - 1) for e in entries.values())
        top = sorted(entries.items(), key=lambda kv: kv[1].access_count, reverse=True)[:5]

        return {
            "entries": len(entries),
            "total_access": total,
            "average_access": total / len(entries) if entries else 0.0,
            "estimated_time_saved": saved,
            "most_accessed": [(key, e.access_count) for key, e in top],
        }

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._entries

    def __enter__(self) -> "MetadataCache":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.clear()


def getinfo_cached(
    cache: MetadataCache,
    output: int,
    path: str = "./",
    loader: Optional[Callable[[int, str], SimInfo]] = None,
    force_refresh: bool = False,
) -> SimInfo:
    """Cached ``read_info(output, path)`` (or ``loader(output, path)``)."""
    load = loader or read_info
    return cache.get_or_load(cache_key(path, output), lambda: load(output, path), force_refresh)
