from __future__ import annotations

import sys
from pathlib import Path

import allure
import pytest

from ytmp3.postprocess.thumbnails import ThumbnailEmbedder, find_thumbnail

pytestmark = [
    allure.epic("Batch Runtime"),
    allure.feature("Thumbnail Post-processing"),
]

FAKE_FFMPEG = """\
import sys
from pathlib import Path

audio = Path(sys.argv[sys.argv.index("-i") + 1])
target = Path(sys.argv[-1])
if "broken" in audio.name:
    sys.stderr.write("Invalid data found when processing input\\n")
    sys.exit(1)
target.write_text("cover+" + audio.read_text("utf-8"), "utf-8")
"""


@pytest.fixture()
def embedder(tmp_path: Path) -> ThumbnailEmbedder:
    script = tmp_path / "fake_ffmpeg.py"
    script.write_text(FAKE_FFMPEG, "utf-8")
    return ThumbnailEmbedder((sys.executable, str(script)))


def _title_dir(tmp_path: Path, *audio_names: str, thumbnail: str | None = "cover.jpg") -> Path:
    directory = tmp_path / "Live Set"
    directory.mkdir()
    for name in audio_names:
        (directory / name).write_text(name, "utf-8")
    if thumbnail is not None:
        (directory / thumbnail).write_bytes(b"\xff\xd8")
    return directory


def test_embeds_cover_into_every_chapter_and_removes_thumbnail(
    tmp_path: Path,
    embedder: ThumbnailEmbedder,
) -> None:
    directory = _title_dir(tmp_path, "001 - Intro.mp3", "002 - Outro.mp3", "notes.txt")

    report = embedder.process(directory, thumbnail_stem="cover", label="abc")

    assert report.attempted
    assert report.processed == 2
    assert report.errors == 0
    assert report.ok
    assert (directory / "001 - Intro.mp3").read_text("utf-8") == "cover+001 - Intro.mp3"
    assert (directory / "notes.txt").read_text("utf-8") == "notes.txt"
    assert not (directory / "cover.jpg").exists()
    assert not list(directory.glob("*.tmp_thumb.*"))


def test_failed_file_is_counted_and_left_untouched(
    tmp_path: Path,
    embedder: ThumbnailEmbedder,
) -> None:
    directory = _title_dir(tmp_path, "good.mp3", "broken.mp3")

    report = embedder.process(directory, thumbnail_stem="cover")

    assert report.processed == 1
    assert report.errors == 1
    assert not report.ok
    assert (directory / "broken.mp3").read_text("utf-8") == "broken.mp3"
    assert (directory / "good.mp3").read_text("utf-8") == "cover+good.mp3"


def test_missing_thumbnail_skips_embedding(tmp_path: Path, embedder: ThumbnailEmbedder) -> None:
    directory = _title_dir(tmp_path, "track.mp3", thumbnail=None)

    report = embedder.process(directory, thumbnail_stem="cover")

    assert not report.attempted
    assert report.ok
    assert (directory / "track.mp3").read_text("utf-8") == "track.mp3"


def test_no_audio_files_still_cleans_up_thumbnail(
    tmp_path: Path,
    embedder: ThumbnailEmbedder,
) -> None:
    directory = _title_dir(tmp_path, thumbnail="cover.webp")

    report = embedder.process(directory, thumbnail_stem="cover")

    assert report.attempted
    assert report.processed == 0
    assert not (directory / "cover.webp").exists()


def test_missing_output_directory_is_an_error(tmp_path: Path, embedder: ThumbnailEmbedder) -> None:
    report = embedder.process(tmp_path / "missing", thumbnail_stem="cover")

    assert not report.attempted
    assert report.errors == 1


def test_missing_ffmpeg_counts_each_file_as_error(tmp_path: Path) -> None:
    directory = _title_dir(tmp_path, "a.mp3", "b.mp3")
    embedder = ThumbnailEmbedder((str(tmp_path / "no-such-ffmpeg"),))

    report = embedder.process(directory, thumbnail_stem="cover")

    assert report.processed == 0
    assert report.errors == 2


def test_find_thumbnail_prefers_jpg(tmp_path: Path) -> None:
    (tmp_path / "cover.png").write_bytes(b"png")
    (tmp_path / "cover.jpg").write_bytes(b"jpg")

    assert find_thumbnail(tmp_path, "cover") == tmp_path / "cover.jpg"
    assert find_thumbnail(tmp_path, "missing") is None
