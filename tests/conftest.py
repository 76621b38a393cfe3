"""Shared test fixtures."""

from __future__ import annotations

import shlex
import sys
from pathlib import Path

import pytest

from ytmp3.config import DownloadSettings
from ytmp3.orchestrator.backend import YtDlpBackend

SCRIPTED_TASK_COMMAND = (sys.executable, "-m", "ytmp3.orchestrator.backend.scripted_task")


@pytest.fixture()
def scripted_backend():
    """Factory for a backend that runs the scripted stand-in instead of yt-dlp."""

    def _factory(*options: str) -> YtDlpBackend:
        return YtDlpBackend(command=(*SCRIPTED_TASK_COMMAND, *options))

    return _factory


@pytest.fixture()
def scripted_env(monkeypatch):
    """Point the CLI at the scripted stand-in via YTMP3_* environment variables."""

    def _apply(*options: str) -> None:
        monkeypatch.setenv(
            "YTMP3_YTDLP_COMMAND",
            shlex.join([*SCRIPTED_TASK_COMMAND, *options]),
        )
        monkeypatch.setenv("YTMP3_FFMPEG_COMMAND", shlex.quote(sys.executable))
        monkeypatch.setenv("YTMP3_THUMBNAILS", "none")

    return _apply


@pytest.fixture()
def download_settings(tmp_path: Path) -> DownloadSettings:
    return DownloadSettings(output_dir=tmp_path / "out", thumbnail_mode="none")


@pytest.fixture()
def record_path(tmp_path: Path) -> Path:
    """File the scripted task appends every spawned identifier to."""

    return tmp_path / "spawned.txt"
