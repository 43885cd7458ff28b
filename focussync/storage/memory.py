"""In-memory local store.

Used by tests and by hosts that keep device state elsewhere and only need
the engine for a single run.
"""

from typing import Callable, Dict, List, Optional

from focussync.types import now_ms

from .base import KeyValueLocalStore


class MemoryLocalStore(KeyValueLocalStore):
    """Dict-backed LocalStore.

    ``writes`` lists every key written or removed, in order, so callers can
    assert that an operation left the device untouched.
    """

    def __init__(self, clock: Callable[[], int] = now_ms):
        super().__init__(clock=clock)
        self._data: Dict[str, str] = {}
        self.writes: List[str] = []

    def _read(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def _write(self, key: str, value: str) -> None:
        self._data[key] = value
        self.writes.append(key)

    def _remove(self, key: str) -> None:
        self._data.pop(key, None)
        self.writes.append(key)
