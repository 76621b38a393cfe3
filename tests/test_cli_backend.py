from __future__ import annotations

import signal
import sys
import threading
import time
from dataclasses import replace
from pathlib import Path

import allure
import pytest

from ytmp3.config import DownloadSettings
from ytmp3.orchestrator.backend import TaskExecutionError, TaskRunRequest, YtDlpBackend
from ytmp3.orchestrator.backend.cli_backend import (
    THUMBNAIL_STEM,
    build_ytdlp_args,
    sanitize_filename,
)
from ytmp3.orchestrator.cancellation import CancellationToken

pytestmark = [
    allure.epic("Batch Runtime"),
    allure.feature("Downloader Execution"),
]


def _request(download: DownloadSettings, identifier: str, **kwargs) -> TaskRunRequest:
    return TaskRunRequest(
        identifier=identifier,
        download=download,
        token=kwargs.pop("token", CancellationToken()),
        graceful_shutdown_seconds=kwargs.pop("graceful_shutdown_seconds", 2.0),
        **kwargs,
    )


def test_build_args_defaults_embed_thumbnail_and_split_chapters() -> None:
    args = build_ytdlp_args(download=DownloadSettings(), identifier="dQw4w9WgXcQ")

    assert args[-1] == "dQw4w9WgXcQ"
    assert args[args.index("-f") + 1] == "bv*+ba/b"
    assert args[args.index("--audio-format") + 1] == "mp3"
    assert args[args.index("--audio-quality") + 1] == "0"
    assert "--extract-audio" in args
    assert "--split-chapters" in args
    assert "--embed-thumbnail" in args
    assert "--keep-video" not in args
    assert "--ignore-errors" not in args
    assert "chapter:./%(title)s/%(section_title)s - %(title)s.%(ext)s" in args


def test_build_args_honours_optional_flags() -> None:
    download = DownloadSettings(
        output_dir=Path("music"),
        audio_format="flac",
        keep_files=True,
        ignore_errors=True,
        split_chapters=False,
        thumbnail_mode="none",
    )

    args = build_ytdlp_args(download=download, identifier="abc")

    assert args[args.index("--audio-format") + 1] == "flac"
    assert "--keep-video" in args
    assert "--ignore-errors" in args
    assert "--split-chapters" not in args
    assert "--embed-thumbnail" not in args
    assert not any(arg.startswith("chapter:") for arg in args)
    assert "music/%(title)s/%(title)s.%(ext)s" in args


def test_build_args_ffmpeg_mode_targets_title_directory() -> None:
    download = DownloadSettings(thumbnail_mode="ffmpeg")

    args = build_ytdlp_args(download=download, identifier="abc", title_dir=Path("out/Song"))

    assert "--write-thumbnail" in args
    assert "--embed-thumbnail" not in args
    assert f"thumbnail:out/Song/{THUMBNAIL_STEM}.%(ext)s" in args
    assert "chapter:out/Song/%(section_number)s - %(section_title)s.%(ext)s" in args
    assert args[-1] == "abc"


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ('AC/DC: "Live" <1991>?', "AC_DC_ 'Live' _1991__"),
        ("  .hidden.  ", "hidden"),
        ("...", "untitled"),
    ],
)
def test_sanitize_filename(raw: str, expected: str) -> None:
    assert sanitize_filename(raw) == expected


def test_run_streams_output_and_reports_success(
    scripted_backend,
    download_settings: DownloadSettings,
    capsys,
) -> None:
    teed: list[str] = []
    backend = scripted_backend()

    result = backend.run(_request(download_settings, "abc", output_tee=teed.append))

    assert result.succeeded
    assert result.exit_code == 0
    assert not result.cancelled
    captured = capsys.readouterr()
    assert "[scripted] Extracting abc" in captured.out
    assert "[download] 100% of abc" in captured.out
    assert "[scripted] stderr for abc" in captured.err
    assert "[download] 100% of abc\n" in teed


def test_run_reports_failed_exit_code(scripted_backend, download_settings) -> None:
    backend = scripted_backend("--fail-on", "bad")

    result = backend.run(_request(download_settings, "bad"))

    assert not result.succeeded
    assert result.exit_code == 1
    assert not result.cancelled


def test_run_does_not_spawn_when_already_cancelled(
    scripted_backend,
    download_settings,
    record_path: Path,
) -> None:
    token = CancellationToken()
    token.cancel()
    backend = scripted_backend("--record", str(record_path))

    result = backend.run(_request(download_settings, "abc", token=token))

    assert result.cancelled
    assert result.exit_code is None
    assert not record_path.exists()


def test_cancellation_terminates_running_process(scripted_backend, download_settings) -> None:
    token = CancellationToken()
    backend = scripted_backend("--sleep-on", "slow", "--sleep-seconds", "60")
    timer = threading.Timer(1.0, token.cancel)
    timer.start()
    started = time.monotonic()
    try:
        result = backend.run(_request(download_settings, "slow", token=token))
    finally:
        timer.cancel()

    assert result.cancelled
    assert not result.succeeded
    assert time.monotonic() - started < 30


@pytest.mark.skipif(sys.platform == "win32", reason="POSIX signal exit codes")
def test_downloader_killed_by_interrupt_signal_counts_as_cancelled(
    scripted_backend,
    download_settings,
) -> None:
    token = CancellationToken()
    backend = scripted_backend("--interrupt-on", "abc")

    result = backend.run(_request(download_settings, "abc", token=token))

    assert result.exit_code == -signal.SIGTERM
    assert result.cancelled
    assert not token.cancelled


def test_missing_command_raises_task_execution_error(download_settings) -> None:
    backend = YtDlpBackend(command=("definitely-not-a-real-downloader-binary",))

    with pytest.raises(TaskExecutionError, match="not found"):
        backend.run(_request(download_settings, "abc"))


def test_resolve_title_uses_first_printed_line(scripted_backend) -> None:
    backend = scripted_backend("--title-prefix", "Song")

    assert backend.resolve_title("abc") == "Song abc"


def test_ffmpeg_mode_creates_title_directory(scripted_backend, download_settings) -> None:
    download = replace(download_settings, thumbnail_mode="ffmpeg")
    backend = scripted_backend("--title-prefix", "Live/Set")

    result = backend.run(_request(download, "abc"))

    assert result.succeeded
    assert result.title == "Live/Set abc"
    assert result.output_dir == download.output_dir / "Live_Set abc"
    assert result.output_dir.is_dir()
