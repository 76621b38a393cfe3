"""Admission gate for identifiers currently executing in this process."""

from __future__ import annotations

import threading
from collections.abc import Iterator
from contextlib import contextmanager


class PendingTracker:
    """Set of in-flight identifiers; at most one job per identifier at a time."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._pending: set[str] = set()

    def acquire(self, identifier: str) -> bool:
        """Insert ``identifier`` if absent; False means a duplicate is in flight."""

        with self._lock:
            if identifier in self._pending:
                return False
            self._pending.add(identifier)
            return True

    def release(self, identifier: str) -> None:
        with self._lock:
            self._pending.discard(identifier)

    @contextmanager
    def admit(self, identifier: str) -> Iterator[bool]:
        """Yield the admission decision and release on every exit path if admitted."""

        admitted = self.acquire(identifier)
        try:
            yield admitted
        finally:
            if admitted:
                self.release(identifier)

    def __contains__(self, identifier: object) -> bool:
        with self._lock:
            return identifier in self._pending

    def __len__(self) -> int:
        with self._lock:
            return len(self._pending)
