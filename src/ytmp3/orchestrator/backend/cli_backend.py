"""Subprocess-based backend that runs yt-dlp for one identifier."""

from __future__ import annotations

import logging
import shlex
import signal
import subprocess
import sys
import threading
from collections.abc import Callable
from pathlib import Path
from typing import TextIO

from ytmp3.config import DownloadSettings
from ytmp3.orchestrator.backend.base import TaskRunRequest, TaskRunResult

logger = logging.getLogger(__name__)

PROGRESS_TEMPLATE = (
    "[download] %(progress._percent_str)s of %(progress._total_bytes_str)s "
    "at %(progress._speed_str)s ETA %(progress._eta_str)s"
)
THUMBNAIL_STEM = "cover"
_PUMP_JOIN_SECONDS = 5.0
_UNSAFE_FILENAME_CHARS = str.maketrans(
    {
        "/": "_",
        "\\": "_",
        ":": "_",
        "*": "_",
        "?": "_",
        '"': "'",
        "<": "_",
        ">": "_",
        "|": "_",
    },
)
OUTPUT_LOCK = threading.Lock()
# Negative return codes mean the child died from that signal, e.g. a terminal Ctrl+C
# reaching the whole process group before our own handler fires.
_INTERRUPT_EXIT_CODES = frozenset((-signal.SIGINT, -signal.SIGTERM))


class TaskExecutionError(RuntimeError):
    """The external task could not be started or prepared."""


class YtDlpBackend:
    """Run yt-dlp as a child process, streaming its output as it arrives."""

    def __init__(self, command: tuple[str, ...] = ("yt-dlp",)) -> None:
        self.command = command

    def run(self, request: TaskRunRequest) -> TaskRunResult:
        if request.token.cancelled:
            return TaskRunResult(exit_code=None, cancelled=True)

        title: str | None = None
        title_dir: Path | None = None
        if request.download.thumbnail_mode == "ffmpeg":
            title = self.resolve_title(request.identifier)
            title_dir = request.download.output_dir / sanitize_filename(title)
            try:
                title_dir.mkdir(parents=True, exist_ok=True)
            except OSError as error:
                raise TaskExecutionError(
                    f"Failed to create output directory {title_dir}: {error}",
                ) from error
            logger.info("[%s] Title: %r. Output dir: %s", request.identifier, title, title_dir)

        run_args = [
            *self.command,
            *build_ytdlp_args(
                download=request.download,
                identifier=request.identifier,
                title_dir=title_dir,
            ),
        ]
        logger.debug("[%s] Running command: %s", request.identifier, shlex.join(run_args))

        try:
            process = subprocess.Popen(  # noqa: S603
                run_args,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                encoding="utf-8",
                errors="replace",
                bufsize=1,
            )
        except FileNotFoundError as error:
            raise TaskExecutionError(f"Downloader command not found: {self.command[0]}") from error
        except OSError as error:
            raise TaskExecutionError(f"Downloader failed to start: {error}") from error

        exit_code = _wait_with_cancellation(
            process,
            request=request,
            stdout=sys.stdout,
            stderr=sys.stderr,
        )
        if exit_code == 0:
            return TaskRunResult(exit_code=0, cancelled=False, output_dir=title_dir, title=title)
        return TaskRunResult(
            exit_code=exit_code,
            cancelled=request.token.cancelled or exit_code in _INTERRUPT_EXIT_CODES,
            output_dir=title_dir,
            title=title,
        )

    def resolve_title(self, identifier: str) -> str:
        """Ask yt-dlp for the title without downloading anything."""

        run_args = [
            *self.command,
            "--print",
            "%(title)s",
            "--skip-download",
            "--no-warnings",
            "--default-search",
            "ytsearch",
            identifier,
        ]
        try:
            completed = subprocess.run(  # noqa: S603
                run_args,
                capture_output=True,
                text=True,
                encoding="utf-8",
                errors="replace",
                check=False,
            )
        except OSError as error:
            raise TaskExecutionError(f"Failed to get title for {identifier}: {error}") from error

        lines = [line.strip() for line in completed.stdout.splitlines() if line.strip()]
        title = lines[0] if lines else ""
        if completed.returncode != 0:
            if title:
                logger.warning(
                    "[%s] Title lookup exited with %d but printed a title; using %r",
                    identifier,
                    completed.returncode,
                    title,
                )
                return title
            raise TaskExecutionError(
                f"Failed to get title (exit code {completed.returncode}): "
                f"{completed.stderr.strip()}",
            )
        if not title:
            raise TaskExecutionError("Failed to get title: downloader returned an empty title")
        return title


def build_ytdlp_args(
    *,
    download: DownloadSettings,
    identifier: str,
    title_dir: Path | None = None,
) -> list[str]:
    """Build yt-dlp arguments for one identifier; the identifier is always last."""

    args = [
        "--color",
        "always",
        "--progress",
        "--newline",
        "--progress-template",
        PROGRESS_TEMPLATE,
        "--console-title",
        "-f",
        download.download_format,
        "--extract-audio",
        "--audio-format",
        download.audio_format,
        "--audio-quality",
        download.audio_quality,
    ]
    if download.split_chapters:
        args.append("--split-chapters")
    if download.ignore_errors:
        args.append("--ignore-errors")
    if download.keep_files:
        args.append("--keep-video")

    if title_dir is None:
        base = download.output_dir
        if download.thumbnail_mode == "embed":
            args.append("--embed-thumbnail")
        args.extend(["-o", f"{base}/%(title)s/%(title)s.%(ext)s"])
        if download.split_chapters:
            args.extend(["-o", f"chapter:{base}/%(title)s/%(section_title)s - %(title)s.%(ext)s"])
    else:
        args.extend(
            [
                "--write-thumbnail",
                "-o",
                f"{title_dir}/%(title)s.%(ext)s",
                "-o",
                f"thumbnail:{title_dir}/{THUMBNAIL_STEM}.%(ext)s",
            ],
        )
        if download.split_chapters:
            args.extend(
                ["-o", f"chapter:{title_dir}/%(section_number)s - %(section_title)s.%(ext)s"],
            )

    args.append(identifier)
    return args


def sanitize_filename(name: str) -> str:
    """Make ``name`` safe to use as one path component."""

    sanitized = name.translate(_UNSAFE_FILENAME_CHARS).strip(". ")
    return sanitized or "untitled"


def _wait_with_cancellation(
    process: subprocess.Popen[str],
    *,
    request: TaskRunRequest,
    stdout: TextIO,
    stderr: TextIO,
) -> int:
    pumps = [
        _start_pump(process.stdout, stdout, request.output_tee),
        _start_pump(process.stderr, stderr, request.output_tee),
    ]
    kill_timers: list[threading.Timer] = []

    def _on_cancel() -> None:
        logger.info("[%s] Cancellation requested, terminating downloader", request.identifier)
        _request_terminate(process)
        timer = threading.Timer(
            request.graceful_shutdown_seconds,
            _kill_if_running,
            args=(process,),
        )
        timer.daemon = True
        timer.start()
        kill_timers.append(timer)

    unregister = request.token.on_cancel(_on_cancel)
    try:
        returncode = process.wait()
    finally:
        unregister()
        for timer in kill_timers:
            timer.cancel()
        for pump in pumps:
            pump.join(timeout=_PUMP_JOIN_SECONDS)
    return returncode


def _start_pump(
    stream: TextIO | None,
    destination: TextIO,
    tee: Callable[[str], None] | None,
) -> threading.Thread:
    def _pump() -> None:
        if stream is None:
            return
        try:
            for line in iter(stream.readline, ""):
                with OUTPUT_LOCK:
                    destination.write(line)
                    destination.flush()
                if tee is not None:
                    tee(line)
        finally:
            stream.close()

    thread = threading.Thread(target=_pump, name="ytdlp-output-pump", daemon=True)
    thread.start()
    return thread


def _request_terminate(process: subprocess.Popen[str]) -> None:
    if process.poll() is not None:
        return
    try:
        process.terminate()
    except OSError:
        return


def _kill_if_running(process: subprocess.Popen[str]) -> None:
    if process.poll() is not None:
        return
    try:
        process.kill()
    except OSError:
        return
