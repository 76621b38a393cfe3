"""Logging configuration for the command-line entry point."""

from __future__ import annotations

import logging
import sys
import threading
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import TextIO

LOG_TIMESTAMP_FORMAT = "%Y-%m-%d_%H-%M-%S"
_CONSOLE_FORMAT = "%(asctime)s %(levelname)s %(message)s"
_FILE_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class LoggingHandle:
    """Installed handlers plus the optional raw log file used for downloader output."""

    handlers: list[logging.Handler] = field(default_factory=list)
    log_path: Path | None = None
    stream: TextIO | None = None
    lock: threading.RLock = field(default_factory=threading.RLock)

    def tee(self, text: str) -> None:
        """Append raw downloader output to the log file, if one is open."""

        if self.stream is None:
            return
        with self.lock:
            self.stream.write(text)
            self.stream.flush()

    def close(self) -> None:
        root = logging.getLogger("ytmp3")
        for handler in self.handlers:
            root.removeHandler(handler)
            handler.close()
        self.handlers.clear()
        self.stream = None


def configure_logging(*, verbose: bool = False, log_file: Path | None = None) -> LoggingHandle:
    """Attach console (and optional dated file) handlers to the ``ytmp3`` logger."""

    root = logging.getLogger("ytmp3")
    root.setLevel(logging.DEBUG if verbose else logging.INFO)

    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(logging.Formatter(_CONSOLE_FORMAT, datefmt="%H:%M:%S"))
    root.addHandler(console)
    handle = LoggingHandle(handlers=[console])

    if log_file is None:
        return handle

    dated_path = dated_log_path(log_file)
    try:
        dated_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(dated_path, encoding="utf-8")
    except OSError as error:
        logger.error("Failed to open log file %s: %s. Logging to stderr only.", dated_path, error)
        return handle

    file_handler.setFormatter(logging.Formatter(_FILE_FORMAT))
    root.addHandler(file_handler)
    handle.handlers.append(file_handler)
    handle.log_path = dated_path
    handle.stream = file_handler.stream
    handle.lock = file_handler.lock or threading.RLock()
    logger.info("Logging to stderr and file: %s", dated_path)
    return handle


def dated_log_path(log_file: Path, *, now: datetime | None = None) -> Path:
    """``logs/run.log`` -> ``logs/run_2026-01-31_08-15-00.log``."""

    timestamp = (now or datetime.now()).strftime(LOG_TIMESTAMP_FORMAT)
    return log_file.with_name(f"{log_file.stem}_{timestamp}{log_file.suffix}")
