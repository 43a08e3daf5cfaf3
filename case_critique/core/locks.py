"""
Per-key locking with a bounded registry.

A key's lock exists only while some caller holds or waits on it, so the
registry never grows with the number of keys ever seen.
"""

import threading
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterator, List, MutableMapping


class KeyedLocks:
    """One lock per key; different keys never contend."""

    def __init__(self):
        self._guard = threading.Lock()
        # key -> [lock, number of callers holding or waiting]
        self._slots: Dict[str, List[Any]] = {}

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        with self._guard:
            slot = self._slots.get(key)
            if slot is None:
                slot = self._slots[key] = [threading.Lock(), 0]
            slot[1] += 1
        try:
            with slot[0]:
                yield
        finally:
            with self._guard:
                slot[1] -= 1
                if slot[1] == 0:
                    del self._slots[key]

    def __len__(self) -> int:
        with self._guard:
            return len(self._slots)

    def discard_idle(
        self,
        mapping: MutableMapping[str, Any],
        is_stale: Callable[[Any], bool],
    ) -> int:
        """Remove stale values from mapping for keys nobody currently holds.

        Runs under the registry guard, so no caller can enter a key while
        its value is being inspected or removed. Returns the number removed.
        """
        with self._guard:
            stale = [
                key for key, value in list(mapping.items())
                if key not in self._slots and is_stale(value)
            ]
            for key in stale:
                del mapping[key]
            return len(stale)
