"""Backend interface for running one identifier through the external downloader."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from ytmp3.config import DownloadSettings
from ytmp3.orchestrator.cancellation import CancellationToken


@dataclass(slots=True)
class TaskRunRequest:
    """Inputs required to execute one external task."""

    identifier: str
    download: DownloadSettings
    token: CancellationToken
    graceful_shutdown_seconds: float = 10.0
    output_tee: Callable[[str], None] | None = None


@dataclass(slots=True)
class TaskRunResult:
    """Execution outcome reported by a backend."""

    exit_code: int | None
    cancelled: bool
    output_dir: Path | None = None
    title: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.exit_code == 0


class TaskBackend(Protocol):
    """Protocol implemented by backend runners."""

    def run(self, request: TaskRunRequest) -> TaskRunResult:
        """Run the external task and return its exit status."""
