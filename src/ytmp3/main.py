"""CLI entrypoint for ytmp3."""

from pathlib import Path

import rich_click as click

from ytmp3 import __version__
from ytmp3.config import DEFAULT_LEDGER_FILENAME, THUMBNAIL_MODES, ConfigurationError
from ytmp3.orchestrator.controllers import BatchCliController, BatchRunCommand

click.rich_click.USE_MARKDOWN = True
BATCH_CONTROLLER = BatchCliController()


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(version=__version__, prog_name="ytmp3")
@click.argument("identifiers", nargs=-1, required=True, metavar="URL/ID...")
@click.option(
    "--ledger-path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help=f"Ledger of finished identifiers. Defaults to `{DEFAULT_LEDGER_FILENAME}`.",
)
@click.option("-s", "--skip-ledger", is_flag=True, help="Do not read or update the ledger.")
@click.option(
    "-o",
    "--output-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Base directory for downloaded audio.",
)
@click.option("-d", "--download-format", default=None, help="yt-dlp format selector.")
@click.option("-c", "--conversion", "audio_format", default=None, help="Target audio format.")
@click.option("--audio-quality", default=None, help="yt-dlp `--audio-quality` value.")
@click.option("-k", "--keep", "keep_files", is_flag=True, help="Keep the original download.")
@click.option(
    "--split-chapters/--no-split-chapters",
    default=None,
    help="Split the audio into one file per chapter.",
)
@click.option("--ignore-errors", is_flag=True, help="Pass `--ignore-errors` to yt-dlp.")
@click.option(
    "--thumbnails",
    "thumbnail_mode",
    type=click.Choice(THUMBNAIL_MODES, case_sensitive=False),
    default=None,
    help="`embed` via yt-dlp, `ffmpeg` post-processing, or `none`.",
)
@click.option(
    "-l",
    "--logs",
    "log_file",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Also write logs and yt-dlp output to this file (timestamp appended).",
)
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging.")
def ytmp3(  # noqa: PLR0913
    identifiers: tuple[str, ...],
    ledger_path: Path | None,
    skip_ledger: bool,
    output_dir: Path | None,
    download_format: str | None,
    audio_format: str | None,
    audio_quality: str | None,
    keep_files: bool,
    split_chapters: bool | None,
    ignore_errors: bool,
    thumbnail_mode: str | None,
    log_file: Path | None,
    verbose: bool,
) -> None:
    """Download YouTube videos, playlists or search results as chaptered audio.

    Each URL/ID runs as its own concurrent **yt-dlp** process. Identifiers that
    finished successfully are recorded in the ledger and skipped on later runs.
    Press Ctrl+C once to cancel outstanding downloads and print a summary.
    """

    if not any(identifier.strip() for identifier in identifiers):
        raise click.UsageError("No URLs or IDs provided.")
    for identifier in identifiers:
        if "\n" in identifier or "\r" in identifier:
            raise click.UsageError(f"URL/ID must not contain line breaks: {identifier!r}")

    command = BatchRunCommand(
        identifiers=identifiers,
        ledger_path=ledger_path,
        skip_ledger=skip_ledger,
        output_dir=output_dir,
        download_format=download_format,
        audio_format=audio_format,
        audio_quality=audio_quality,
        keep_files=keep_files,
        split_chapters=split_chapters,
        ignore_errors=ignore_errors,
        thumbnail_mode=thumbnail_mode,
        log_file=log_file,
        verbose=verbose,
    )
    try:
        settings = BATCH_CONTROLLER.resolve_settings(command)
    except ValueError as error:
        raise click.UsageError(str(error)) from error

    try:
        summary = BATCH_CONTROLLER.run_batch(command, settings=settings, emit=click.echo)
    except ConfigurationError as error:
        raise click.ClickException(f"FATAL: {error}") from error

    if summary.exit_code:
        raise SystemExit(summary.exit_code)


if __name__ == "__main__":  # pragma: no cover
    ytmp3()
