"""In-process keyed locks.

Identity registration is serialized per ``(provider, external_id)`` and writes to
a person's canonical record or overrides per person id. The database enforces
the same uniqueness with partial indexes; these locks keep concurrent writers in
one process from racing into those constraints.
"""

from __future__ import annotations

import threading
from collections.abc import Hashable, Iterator
from contextlib import contextmanager


class KeyedLocks:
    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[Hashable, threading.Lock] = {}
        self._holders: dict[Hashable, int] = {}

    @contextmanager
    def hold(self, key: Hashable) -> Iterator[None]:
        with self._guard:
            lock = self._locks.setdefault(key, threading.Lock())
            self._holders[key] = self._holders.get(key, 0) + 1
        try:
            with lock:
                yield
        finally:
            with self._guard:
                remaining = self._holders[key] - 1
                if remaining:
                    self._holders[key] = remaining
                else:
                    del self._holders[key]
                    del self._locks[key]

    def __len__(self) -> int:
        return len(self._locks)


identity_locks = KeyedLocks()
person_locks = KeyedLocks()
