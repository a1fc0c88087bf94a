"""
Key/value store abstraction behind every cache in the proxy.

Call sites only see ``get/set/invalidate``, so the in-process dict can be
replaced by a shared external store without touching them. The in-process
store makes each running instance independently consistent and nothing more.
"""
import threading
from typing import Any, Dict, List, Optional, Protocol


class CacheStore(Protocol):
    """
    Interface for cache backends.

    Implementations:
    - InMemoryCacheStore: per-process dict (default)
    """

    def get(self, key: str) -> Optional[Any]:
        ...

    def set(self, key: str, value: Any) -> None:
        ...

    def invalidate(self, key: str) -> bool:
        """Remove ``key``. Returns True if it was present."""
        ...

    def keys(self) -> List[str]:
        ...

    def clear(self) -> int:
        """Remove everything. Returns number of entries removed."""
        ...


class InMemoryCacheStore:
    """
    Thread-safe dict-backed store.

    Individual operations are atomic; a get-then-set sequence across two
    calls is not, and callers accept a redundant refetch when two requests
    race on the same expired key.
    """

    def __init__(self):
        self._data: Dict[str, Any] = {}
        self._lock = threading.RLock()

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            return self._data.get(key)

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            self._data[key] = value

    def invalidate(self, key: str) -> bool:
        with self._lock:
            if key in self._data:
                del self._data[key]
                return True
            return False

    def keys(self) -> List[str]:
        with self._lock:
            return list(self._data.keys())

    def clear(self) -> int:
        with self._lock:
            count = len(self._data)
            self._data.clear()
            return count

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)
