"""Persistent record of identifiers that completed successfully in any run."""

from __future__ import annotations

import logging
import threading
from pathlib import Path

from ytmp3.config import ConfigurationError

logger = logging.getLogger(__name__)


class LedgerWriteError(OSError):
    """Durable append failed; the identifier is not recorded."""


class Ledger:
    """Append-only, line-oriented ledger file mirrored by an in-memory set.

    The file is the source of truth. One lock covers both the in-memory set
    and every physical write, so a ``contains`` check observes all appends
    whose critical section finished before it started.
    """

    def __init__(self, path: Path) -> None:
        self.path = path
        self._lock = threading.Lock()
        self._entries: set[str] = set()

    def load(self) -> set[str]:
        """Read every identifier from the backing file, creating it if absent."""

        try:
            if not self.path.exists():
                self.path.parent.mkdir(parents=True, exist_ok=True)
                self.path.touch()
            with self.path.open("r", encoding="utf-8") as handle:
                entries = {line.strip() for line in handle if line.strip()}
        except (OSError, UnicodeDecodeError) as error:
            raise ConfigurationError(
                f"Failed to open or read ledger file {self.path}: {error}",
            ) from error

        with self._lock:
            self._entries = entries
            logger.debug("Loaded %d ledger entries from %s", len(entries), self.path)
            return set(entries)

    def contains(self, identifier: str) -> bool:
        with self._lock:
            return identifier in self._entries

    def append(self, identifier: str) -> None:
        """Durably record ``identifier``; appending a present identifier is a no-op.

        Raises:
            LedgerWriteError: the file could not be opened or written, or the
                identifier contains a line break. The identifier is then left
                out of the in-memory set as well.
        """

        if "\n" in identifier or "\r" in identifier:
            raise LedgerWriteError(
                f"Ledger write failed ({self.path}): identifier contains a line break",
            )

        with self._lock:
            if identifier in self._entries:
                logger.debug("[%s] Already present in ledger, nothing to append", identifier)
                return
            try:
                with self.path.open("a", encoding="utf-8") as handle:
                    handle.write(f"{identifier}\n")
            except OSError as error:
                raise LedgerWriteError(
                    f"Ledger write failed ({self.path}): {error}",
                ) from error
            self._entries.add(identifier)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
