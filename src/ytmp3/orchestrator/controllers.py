"""Controller for the batch download CLI command."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

from ytmp3.config import Settings, check_dependencies
from ytmp3.logging_setup import configure_logging
from ytmp3.orchestrator.backend import YtDlpBackend
from ytmp3.orchestrator.cancellation import CancellationController, CancellationToken
from ytmp3.orchestrator.ledger import Ledger
from ytmp3.orchestrator.metrics import render_summary_lines
from ytmp3.orchestrator.models import RunSummary
from ytmp3.orchestrator.worker import BatchOrchestrator
from ytmp3.postprocess.thumbnails import ThumbnailEmbedder

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class BatchRunCommand:
    """CLI input for one batch run."""

    identifiers: tuple[str, ...]
    ledger_path: Path | None = None
    skip_ledger: bool = False
    output_dir: Path | None = None
    download_format: str | None = None
    audio_format: str | None = None
    audio_quality: str | None = None
    keep_files: bool = False
    split_chapters: bool | None = None
    ignore_errors: bool = False
    thumbnail_mode: str | None = None
    log_file: Path | None = None
    verbose: bool = False


class BatchCliController:
    """Wires settings, ledger, cancellation and the orchestrator for one run."""

    def resolve_settings(self, command: BatchRunCommand) -> Settings:
        """Environment settings with CLI overrides applied; raises ValueError if invalid."""

        settings = Settings.from_env(ledger_path=command.ledger_path)
        settings.skip_ledger = settings.skip_ledger or command.skip_ledger
        if command.log_file is not None:
            settings.log_file = command.log_file

        download = settings.download
        if command.output_dir is not None:
            download.output_dir = command.output_dir
        if command.download_format is not None:
            download.download_format = command.download_format
        if command.audio_format is not None:
            download.audio_format = command.audio_format
        if command.audio_quality is not None:
            download.audio_quality = command.audio_quality
        if command.split_chapters is not None:
            download.split_chapters = command.split_chapters
        if command.thumbnail_mode is not None:
            download.thumbnail_mode = command.thumbnail_mode.strip().lower()
        download.keep_files = download.keep_files or command.keep_files
        download.ignore_errors = download.ignore_errors or command.ignore_errors

        settings.validate()
        return settings

    def run_batch(
        self,
        command: BatchRunCommand,
        *,
        settings: Settings,
        emit: Callable[[str], None],
    ) -> RunSummary:
        """Run the batch and emit status lines; raises ConfigurationError on fatal setup."""

        logging_handle = configure_logging(verbose=command.verbose, log_file=settings.log_file)
        try:
            if settings.runtime.check_dependencies:
                check_dependencies(settings.required_commands())
                logger.debug("Dependencies checked: %s", ", ".join(settings.required_commands()))

            ledger: Ledger | None = None
            if settings.skip_ledger:
                logger.info("Skipping ledger check.")
            else:
                ledger = Ledger(settings.ledger_path)
                entries = ledger.load()
                logger.info(
                    "Using ledger file: %s (%d entries loaded)",
                    settings.ledger_path,
                    len(entries),
                )

            post_processor = None
            if settings.download.thumbnail_mode == "ffmpeg":
                post_processor = ThumbnailEmbedder(
                    settings.runtime.ffmpeg_command,
                    audio_extension=settings.download.audio_format,
                )

            token = CancellationToken()
            cancellation = CancellationController(token)
            orchestrator = BatchOrchestrator(
                backend=YtDlpBackend(settings.runtime.ytdlp_command),
                ledger=ledger,
                download=settings.download,
                token=token,
                post_processor=post_processor,
                graceful_shutdown_seconds=settings.runtime.graceful_shutdown_seconds,
                output_tee=logging_handle.tee if logging_handle.log_path is not None else None,
                on_progress=emit,
            )
            with cancellation.signal_handlers():
                summary = orchestrator.run(command.identifiers)

            for line in render_summary_lines(
                summary,
                ledger_path=ledger.path if ledger is not None else None,
            ):
                emit(line)
            return summary
        finally:
            logging_handle.close()
