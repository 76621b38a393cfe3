"""External downloader backends."""

from ytmp3.orchestrator.backend.base import TaskBackend, TaskRunRequest, TaskRunResult
from ytmp3.orchestrator.backend.cli_backend import TaskExecutionError, YtDlpBackend

__all__ = [
    "TaskBackend",
    "TaskExecutionError",
    "TaskRunRequest",
    "TaskRunResult",
    "YtDlpBackend",
]
