from __future__ import annotations

import threading
from typing import Dict, List, Optional


class MemoryStore:
    """Process-wide key/value store shared by every session.

    Last writer wins. A single lock guards the mapping so concurrent sessions
    (and FastAPI threadpool routes) never observe a torn update.
    """

    def __init__(self) -> None:
        self._data: Dict[str, str] = {}
        self._lock = threading.Lock()

    def save(self, key: str, value: str) -> None:
        with self._lock:
            self._data[key] = value

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._data.get(key)

    def delete(self, key: str) -> bool:
        """Remove ``key`` and report whether a value existed beforehand."""
        with self._lock:
            return self._data.pop(key, None) is not None

    def keys(self) -> List[str]:
        with self._lock:
            return list(self._data.keys())

    def clear(self) -> None:
        with self._lock:
            self._data.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)
