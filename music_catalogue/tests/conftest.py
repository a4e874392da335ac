"""
Shared fixtures for catalogue tests.
"""

import pytest

from music_catalogue.tests.fakes import FakeExtractor
from music_catalogue.utils.models import PrimaryCategory


@pytest.fixture
def extractor():
    return FakeExtractor()


@pytest.fixture
def music_root(tmp_path):
    """Music root with two albums by one artist plus an unclaimed file."""
    root = tmp_path / "library"
    albums = root / "Music" / "Artist"
    (albums / "First").mkdir(parents=True)
    (albums / "Second").mkdir(parents=True)
    (root / "Other").mkdir()

    for rel in [
        "Music/Artist/First/Artist - First - 1 - Intro.mp3",
        "Music/Artist/First/Artist - First - 2 - Song.mp3",
        "Music/Artist/Second/Artist - Second - 1 - Opener.flac",
        "Other/Someone - Demo - 1 - Sketch.ogg",
    ]:
        (root / rel).write_bytes(b"audio")

    (albums / "cover.jpg").write_bytes(b"image")
    return root


@pytest.fixture
def categories():
    return [
        PrimaryCategory(
            code="music",
            name="Music",
            basedir="Music",
            taxonomy=[["albumartist", "artists"], ["album"]],
        )
    ]
