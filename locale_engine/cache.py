"""In-memory cache with TTL, shared by the persistence manager and the pipeline."""
from dataclasses import dataclass
from typing import Any, Callable, Dict, Generic, Hashable, List, Optional, TypeVar
import threading
import time

T = TypeVar("T")

_MISSING = object()


@dataclass
class CacheEntry(Generic[T]):
    key: Hashable
    value: T
    written_at: float
    ttl: Optional[float] = None  # seconds; None never expires


def is_expired(entry: CacheEntry, now: float) -> bool:
    """An entry is valid iff now - written_at < ttl."""
    if entry.ttl is None:
        return False
    return now - entry.written_at >= entry.ttl


class TTLCache(Generic[T]):
    """Thread-safe in-memory cache with per-entry TTL.

    Expired entries are treated as absent and removed lazily on access, or in
    bulk by `cleanup_expired`. When `max_size` is reached the oldest insertion
    is evicted.
    """

    def __init__(
        self,
        default_ttl: Optional[float] = 300,
        max_size: Optional[int] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.default_ttl = default_ttl
        self.max_size = max_size
        self._clock = clock
        self._entries: Dict[Hashable, CacheEntry[T]] = {}
        self._lock = threading.Lock()

    def set(self, key: Hashable, value: T, ttl: Any = _MISSING) -> None:
        """Store value; `ttl=None` stores it without expiry."""
        entry_ttl = self.default_ttl if ttl is _MISSING else ttl
        with self._lock:
            if key not in self._entries and self.max_size and len(self._entries) >= self.max_size:
                oldest = next(iter(self._entries))
                del self._entries[oldest]
            self._entries[key] = CacheEntry(key=key, value=value, written_at=self._clock(), ttl=entry_ttl)

    def get(self, key: Hashable) -> Optional[T]:
        """Retrieve value if not expired."""
        entry = self.get_entry(key)
        return entry.value if entry is not None else None

    def get_entry(self, key: Hashable) -> Optional[CacheEntry[T]]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if is_expired(entry, self._clock()):
                del self._entries[key]
                return None
            return entry

    def update(self, key: Hashable, fn: Callable[[Optional[T]], T], ttl: Any = _MISSING) -> T:
        """Atomically replace the value for `key` with fn(current_value)."""
        entry_ttl = self.default_ttl if ttl is _MISSING else ttl
        with self._lock:
            now = self._clock()
            entry = self._entries.get(key)
            current = entry.value if entry is not None and not is_expired(entry, now) else None
            new_value = fn(current)
            self._entries[key] = CacheEntry(key=key, value=new_value, written_at=now, ttl=entry_ttl)
            return new_value

    def delete(self, key: Hashable) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def keys(self) -> List[Hashable]:
        """Snapshot of the currently stored keys, expired ones included."""
        with self._lock:
            return list(self._entries)

    def cleanup_expired(self) -> int:
        """Remove expired entries. Returns count removed."""
        now = self._clock()
        removed = 0
        for key in self.keys():
            with self._lock:
                entry = self._entries.get(key)
                if entry is not None and is_expired(entry, now):
                    del self._entries[key]
                    removed += 1
        return removed

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: Hashable) -> bool:
        return self.get_entry(key) is not None
