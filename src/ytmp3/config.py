"""Runtime configuration for batch downloads."""

from __future__ import annotations

import os
import shlex
import shutil
from dataclasses import dataclass, field
from pathlib import Path

DEFAULT_LEDGER_FILENAME = "ytmp3_processed_archive.txt"
THUMBNAIL_MODES: tuple[str, ...] = ("embed", "ffmpeg", "none")


class ConfigurationError(RuntimeError):
    """Fatal setup error; the run cannot start."""


@dataclass(slots=True)
class DownloadSettings:
    """Options passed through to yt-dlp for every identifier."""

    output_dir: Path = Path(".")
    download_format: str = "bv*+ba/b"
    audio_format: str = "mp3"
    audio_quality: str = "0"
    keep_files: bool = False
    split_chapters: bool = True
    ignore_errors: bool = False
    thumbnail_mode: str = "embed"


@dataclass(slots=True)
class RuntimeSettings:
    """External executables and process lifecycle settings."""

    ytdlp_command: tuple[str, ...] = ("yt-dlp",)
    ffmpeg_command: tuple[str, ...] = ("ffmpeg",)
    graceful_shutdown_seconds: float = 10.0
    check_dependencies: bool = True


@dataclass(slots=True)
class Settings:
    """Application settings grouped by concern."""

    ledger_path: Path = Path(DEFAULT_LEDGER_FILENAME)
    skip_ledger: bool = False
    log_file: Path | None = None
    download: DownloadSettings = field(default_factory=DownloadSettings)
    runtime: RuntimeSettings = field(default_factory=RuntimeSettings)

    @classmethod
    def from_env(cls, ledger_path: Path | None = None) -> Settings:
        """Load settings from environment with sane defaults for local use."""

        log_file = os.getenv("YTMP3_LOG_FILE", "").strip()
        return cls(
            ledger_path=ledger_path
            or Path(os.getenv("YTMP3_LEDGER_PATH", DEFAULT_LEDGER_FILENAME)),
            skip_ledger=_env_bool("YTMP3_SKIP_LEDGER", default=False),
            log_file=Path(log_file) if log_file else None,
            download=DownloadSettings(
                output_dir=Path(os.getenv("YTMP3_OUTPUT_DIR", ".")),
                download_format=os.getenv("YTMP3_DOWNLOAD_FORMAT", "bv*+ba/b"),
                audio_format=os.getenv("YTMP3_AUDIO_FORMAT", "mp3"),
                audio_quality=os.getenv("YTMP3_AUDIO_QUALITY", "0"),
                keep_files=_env_bool("YTMP3_KEEP_FILES", default=False),
                split_chapters=_env_bool("YTMP3_SPLIT_CHAPTERS", default=True),
                ignore_errors=_env_bool("YTMP3_IGNORE_ERRORS", default=False),
                thumbnail_mode=os.getenv("YTMP3_THUMBNAILS", "embed").strip().lower(),
            ),
            runtime=RuntimeSettings(
                ytdlp_command=_env_command("YTMP3_YTDLP_COMMAND", default="yt-dlp"),
                ffmpeg_command=_env_command("YTMP3_FFMPEG_COMMAND", default="ffmpeg"),
                graceful_shutdown_seconds=_env_float(
                    "YTMP3_GRACEFUL_SHUTDOWN_SECONDS",
                    default=10.0,
                ),
                check_dependencies=_env_bool("YTMP3_CHECK_DEPENDENCIES", default=True),
            ),
        )

    def validate(self) -> None:
        """Raise ValueError if any setting is unusable."""

        if self.download.thumbnail_mode not in THUMBNAIL_MODES:
            raise ValueError(
                "YTMP3_THUMBNAILS must be one of "
                f"{', '.join(THUMBNAIL_MODES)}: {self.download.thumbnail_mode!r}",
            )
        if not self.runtime.ytdlp_command:
            raise ValueError("YTMP3_YTDLP_COMMAND must not be empty.")
        if not self.runtime.ffmpeg_command:
            raise ValueError("YTMP3_FFMPEG_COMMAND must not be empty.")
        if not self.runtime.graceful_shutdown_seconds >= 0:
            raise ValueError("YTMP3_GRACEFUL_SHUTDOWN_SECONDS must be >= 0.")
        if not self.download.audio_format.strip():
            raise ValueError("YTMP3_AUDIO_FORMAT must not be empty.")
        if not self.skip_ledger and not str(self.ledger_path).strip():
            raise ValueError("YTMP3_LEDGER_PATH must not be empty.")

    def required_commands(self) -> tuple[str, ...]:
        """Executables that must be on PATH; audio extraction always needs ffmpeg."""

        return (self.runtime.ytdlp_command[0], self.runtime.ffmpeg_command[0])


def check_dependencies(commands: tuple[str, ...]) -> None:
    """Raise ConfigurationError listing every command not found on PATH."""

    missing = [command for command in commands if shutil.which(command) is None]
    if missing:
        raise ConfigurationError(
            f"Required command(s) not found in PATH: {', '.join(missing)}",
        )


def _env_command(name: str, *, default: str) -> tuple[str, ...]:
    raw = os.getenv(name, "").strip() or default
    return tuple(shlex.split(raw))


def _env_float(name: str, *, default: float) -> float:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return float(value)
    except ValueError as error:
        raise ValueError(f"Invalid number for {name}: {value!r}") from error


def _env_bool(name: str, *, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    raise ValueError(f"Invalid boolean value for {name}: {value!r}")
