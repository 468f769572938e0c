"""Weak-reference object cache with optional TTL.

Entries hold only a weak reference to their value. An entry goes away when
it is deleted, when the cache is cleared or closed, when its TTL elapses, or
when the value is garbage collected. The first three are deterministic; the
finalizer only catches values that die while still cached.
"""

import logging
import threading
import weakref
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


class _Entry:
    __slots__ = ("ref", "finalizer", "timer")

    def __init__(self, ref):
        self.ref = ref
        self.finalizer = None
        self.timer = None


class Cache:
    """Key -> object cache that never keeps its values alive."""

    def __init__(self):
        self._entries: Dict[str, _Entry] = {}
        self._lock = threading.RLock()
        self._closed = False

    def add(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        """Cache ``value`` under ``key``, replacing any previous entry.

        Args:
            key: Cache key
            value: Object to cache; must support weak references
            ttl: Optional lifetime in seconds

        Raises:
            TypeError: If ``value`` cannot be weakly referenced
            RuntimeError: If the cache is closed
        """
        if value is None:
            raise TypeError("Cache values must be objects, not None")
        try:
            ref = weakref.ref(value)
        except TypeError:
            raise TypeError(f"Cache values must support weak references, got {type(value).__name__}")

        with self._lock:
            if self._closed:
                raise RuntimeError("Cache is closed")
            self._remove(key)

            # Callbacks are bound to this entry; weakref.ref may be shared across adds
            entry = _Entry(ref)
            entry.finalizer = weakref.finalize(value, self._collected, key, entry)
            entry.finalizer.atexit = False
            if ttl is not None and ttl > 0:
                entry.timer = threading.Timer(ttl, self._expired, args=(key, entry))
                entry.timer.daemon = True
                entry.timer.start()
            self._entries[key] = entry

    def get(self, key: str) -> Optional[Any]:
        """Return the cached object or None."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            value = entry.ref()
            if value is None:
                logger.debug(f"Cached object for '{key}' was collected, evicting")
                self._remove(key)
            return value

    def has(self, key: str) -> bool:
        return self.get(key) is not None

    def delete(self, key: str) -> None:
        with self._lock:
            self._remove(key)

    def clear(self) -> None:
        with self._lock:
            for key in list(self._entries):
                self._remove(key)

    def close(self) -> None:
        """Clear the cache and refuse further additions."""
        with self._lock:
            self.clear()
            self._closed = True

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return self.has(key)

    def __enter__(self) -> "Cache":
        return self

    def __exit__(self, *args) -> None:
        self.close()

    def _remove(self, key: str) -> None:
        entry = self._entries.pop(key, None)
        if entry is None:
            return
        entry.finalizer.detach()
        if entry.timer is not None:
            entry.timer.cancel()

    def _collected(self, key: str, entry: _Entry) -> None:
        with self._lock:
            if self._entries.get(key) is entry:
                logger.debug(f"Evicting collected cache entry '{key}'")
                self._remove(key)

    def _expired(self, key: str, entry: _Entry) -> None:
        with self._lock:
            if self._entries.get(key) is entry:
                logger.debug(f"Cache entry '{key}' expired")
                self._remove(key)
