"""Embed a downloaded thumbnail into every audio file of a job's output directory."""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path

from ytmp3.orchestrator.models import PostProcessReport

logger = logging.getLogger(__name__)

THUMBNAIL_EXTENSIONS: tuple[str, ...] = (".jpg", ".jpeg", ".png", ".webp")
_TEMP_SUFFIX = ".tmp_thumb"


class ThumbnailEmbedder:
    """Attach ``<stem>.<image>`` as cover art to each audio file next to it via ffmpeg."""

    def __init__(
        self,
        command: tuple[str, ...] = ("ffmpeg",),
        *,
        audio_extension: str = "mp3",
    ) -> None:
        self.command = command
        self.audio_extension = audio_extension.lstrip(".")

    def process(
        self,
        output_dir: Path,
        *,
        thumbnail_stem: str,
        label: str = "",
    ) -> PostProcessReport:
        prefix = f"[{label}] " if label else ""
        if not output_dir.is_dir():
            logger.error(
                "%sOutput directory %s is missing; cannot embed thumbnails",
                prefix,
                output_dir,
            )
            return PostProcessReport(attempted=False, errors=1)

        thumbnail = find_thumbnail(output_dir, thumbnail_stem)
        if thumbnail is None:
            logger.warning(
                "%sNo thumbnail named %r in %s; skipping embedding",
                prefix,
                thumbnail_stem,
                output_dir,
            )
            return PostProcessReport(attempted=False)

        audio_files = sorted(
            path
            for path in output_dir.glob(f"*.{self.audio_extension}")
            if not path.stem.endswith(_TEMP_SUFFIX)
        )
        if not audio_files:
            logger.warning(
                "%sNo .%s files in %s; skipping embedding",
                prefix,
                self.audio_extension,
                output_dir,
            )
            _remove_quietly(thumbnail)
            return PostProcessReport(attempted=True)

        report = PostProcessReport(attempted=True)
        for audio_file in audio_files:
            if self._embed_one(audio_file, thumbnail, prefix=prefix):
                report.processed += 1
            else:
                report.errors += 1

        if report.errors:
            logger.warning(
                "%sThumbnail embedding finished with %d errors for %d files",
                prefix,
                report.errors,
                len(audio_files),
            )
        else:
            logger.info("%sEmbedded thumbnail into %d files", prefix, report.processed)
        _remove_quietly(thumbnail)
        return report

    def _embed_one(self, audio_file: Path, thumbnail: Path, *, prefix: str) -> bool:
        temp_file = audio_file.with_name(f"{audio_file.stem}{_TEMP_SUFFIX}{audio_file.suffix}")
        _remove_quietly(temp_file)
        run_args = [
            *self.command,
            "-i",
            str(audio_file),
            "-i",
            str(thumbnail),
            "-map",
            "0:a",
            "-map",
            "1:v",
            "-c:a",
            "copy",
            "-c:v",
            "copy",
            "-disposition:v",
            "attached_pic",
            "-id3v2_version",
            "3",
            "-metadata:s:v",
            "title=Album cover",
            "-metadata:s:v",
            "comment=Cover (front)",
            "-y",
            str(temp_file),
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
            logger.error("%sffmpeg failed to start for %s: %s", prefix, audio_file.name, error)
            return False
        if completed.returncode != 0:
            logger.error(
                "%sffmpeg failed for %s (exit code %d): %s",
                prefix,
                audio_file.name,
                completed.returncode,
                completed.stderr.strip()[-500:],
            )
            _remove_quietly(temp_file)
            return False

        try:
            temp_file.replace(audio_file)
        except OSError as error:
            logger.error("%sFailed to replace %s: %s", prefix, audio_file.name, error)
            _remove_quietly(temp_file)
            return False
        return True


def find_thumbnail(directory: Path, stem: str) -> Path | None:
    for extension in THUMBNAIL_EXTENSIONS:
        candidates = (directory / f"{stem}{extension}", directory / f"{stem}{extension.upper()}")
        for candidate in candidates:
            if candidate.is_file():
                return candidate
    return None


def _remove_quietly(path: Path) -> None:
    try:
        path.unlink(missing_ok=True)
    except OSError as error:
        logger.warning("Could not remove %s: %s", path, error)
