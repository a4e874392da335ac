"""
Tests for catalogue_utils module.
"""

import pytest
from loguru import logger

from music_catalogue.tests.fakes import no_hacks
from music_catalogue.utils.cache_utils import load_catalogue, load_record_cache
from music_catalogue.utils.catalogue_utils import (
    IndexContext,
    catalogue_media_library,
    derive_secondary_category,
    run_index,
    run_scan,
)
from music_catalogue.utils.config import Config
from music_catalogue.utils.errors import IndexLockedError, MissingInheritanceTargetError
from music_catalogue.utils.models import PrimaryCategory, Record, SecondaryCategory
from music_catalogue.utils.playlist_utils import PlaylistProfile
from music_catalogue.utils.profile_utils import Profile

FIRST_INTRO = "Music/Artist/First/Artist - First - 1 - Intro.mp3"
FIRST_SONG = "Music/Artist/First/Artist - First - 2 - Song.mp3"
SECOND_OPENER = "Music/Artist/Second/Artist - Second - 1 - Opener.flac"

PLAYLISTS_XML = (
    '<?xml version="1.0" encoding="UTF-16"?>\n'
    '<playlists playlists="1">\n'
    '<playlist filename="plf1.m3u8" title="Openers" id="{A}" songs="3" />\n'
    "</playlists>\n"
)


def openers(record: Record) -> bool:
    return record.attributes["track"]["no"] == 1


@pytest.fixture
def warnings():
    messages = []
    handler_id = logger.add(messages.append, level="WARNING", format="{message}")
    yield messages
    logger.remove(handler_id)


@pytest.fixture
def winamp_store(tmp_path):
    store = tmp_path / "Winamp"
    playlists_dir = store / "Plugins" / "ml" / "playlists"
    playlists_dir.mkdir(parents=True)
    (playlists_dir / "playlists.xml").write_bytes(("\ufeff" + PLAYLISTS_XML).encode("utf-16-le"))
    (playlists_dir / "plf1.m3u8").write_text(
        "#EXTM3U\n"
        "D:\\Library\\Music\\Artist\\Second\\Artist - Second - 1 - Opener.flac\n"
        "D:\\Library\\Music\\Artist\\Gone\\Missing.mp3\n"
        "D:\\Library\\Music\\Artist\\First\\Artist - First - 1 - Intro.mp3\n",
        encoding="utf-8",
    )
    return store


@pytest.fixture
def profile(categories, winamp_store):
    return Profile(
        categories=[
            *categories,
            SecondaryCategory(code="openers", name="Openers", inherits="music", predicate=openers),
        ],
        playlists=PlaylistProfile(store=winamp_store, win32_base_dir="D:\\Library"),
    )


@pytest.fixture
def config(music_root, tmp_path):
    return Config(base_path=str(music_root), cache_dir=str(tmp_path / "cache"))


def make_context(config, profile, extractor, **kwargs):
    return IndexContext(
        config=config, profile=profile, extractor=extractor, enricher=no_hacks, **kwargs
    )


class TestCatalogueMediaLibrary:
    """Test catalogue_media_library function."""

    def setup_method(self):
        self.records = {
            "Music/a.mp3": Record(
                path="Music/a.mp3",
                attributes={"album": "A", "track": {"no": 1, "of": None}},
                category_code="music",
            ),
            "Music/b.mp3": Record(
                path="Music/b.mp3",
                attributes={"album": "A", "track": {"no": 2, "of": None}},
                category_code="music",
            ),
            "Music/bad.mp3": Record(path="Music/bad.mp3", error="unreadable"),
            "Other/c.mp3": Record(path="Other/c.mp3", attributes={"album": "C"}),
        }
        self.music = PrimaryCategory(code="music", name="Music", basedir="Music", taxonomy=[["album"]])

    def test_primary_claims_own_records(self):
        """Test that a primary tree holds only its own non-error records."""
        trees = catalogue_media_library([self.music], self.records)

        assert len(trees) == 1
        assert trees[0].type == "primary"
        assert list(trees[0].items) == ["A"]
        assert list(trees[0].items["A"].members) == ["Music/a.mp3", "Music/b.mp3"]

    def test_primary_without_taxonomy_skipped(self):
        """Test that a primary category without key specs is not built."""
        bare = PrimaryCategory(code="bare", name="Bare", basedir="Other")

        trees = catalogue_media_library([bare], self.records)

        assert trees == []

    def test_secondary_after_primaries(self):
        """Test that secondaries follow primaries regardless of declaration order."""
        secondary = SecondaryCategory(code="s", name="S", inherits="music", predicate=openers)

        trees = catalogue_media_library([secondary, self.music], self.records)

        assert [tree.code for tree in trees] == ["music", "s"]
        assert trees[1].type == "secondary"
        assert trees[1].inherits == "music"
        assert trees[1].taxonomy == [["album"]]
        assert list(trees[1].items["A"].members) == ["Music/a.mp3"]

    def test_secondary_rejecting_all_is_empty(self):
        """Test that a secondary category with no matches is kept with an empty tree."""
        secondary = SecondaryCategory(code="s", name="S", inherits="music", predicate=lambda r: False)

        trees = catalogue_media_library([self.music, secondary], self.records)

        assert trees[1].code == "s"
        assert trees[1].items == {}

    def test_missing_inheritance_target(self, warnings):
        """Test that a secondary category with an unknown base is left out with a warning."""
        orphan = SecondaryCategory(code="orphan", name="Orphan", inherits="nope", predicate=openers)

        trees = catalogue_media_library([self.music, orphan], self.records)

        assert [tree.code for tree in trees] == ["music"]
        assert any("orphan" in message and "nope" in message for message in warnings)

    def test_derive_raises_for_missing_target(self):
        """Test that deriving from an unbuilt category raises."""
        orphan = SecondaryCategory(code="orphan", name="Orphan", inherits="nope", predicate=openers)

        with pytest.raises(MissingInheritanceTargetError):
            derive_secondary_category(orphan, [])

    def test_base_tree_not_modified(self):
        """Test that deriving a secondary leaves the primary tree intact."""
        secondary = SecondaryCategory(code="s", name="S", inherits="music", predicate=lambda r: False)

        trees = catalogue_media_library([self.music, secondary], self.records)

        assert len(trees[0].items["A"].members) == 2


class TestRunIndex:
    """Test run_index function."""

    def test_full_run(self, config, profile, extractor):
        """Test that a run writes records and a complete catalogue."""
        result = run_index(make_context(config, profile, extractor))

        assert result.stats["extracted"] == 4
        assert len(load_record_cache(config.record_cache_path)) == 4

        catalogue = load_catalogue(config.catalogue_path)
        assert catalogue == result.catalogue
        assert [tree.code for tree in catalogue.categories] == ["music", "openers"]

        music = catalogue.categories[0].items["Artist"]
        assert list(music.children) == ["First", "Second"]
        assert list(music.children["First"].members) == [FIRST_INTRO, FIRST_SONG]

        openers_tree = catalogue.categories[1].items["Artist"]
        assert list(openers_tree.children["First"].members) == [FIRST_INTRO]

        playlist = catalogue.playlists[0]
        assert playlist.title == "Openers"
        assert [track.path for track in playlist.tracks] == [
            SECOND_OPENER,
            "Music/Artist/Gone/Missing.mp3",
            FIRST_INTRO,
        ]
        assert playlist.unresolved_count == 1
        assert playlist.tracks[0].record.attributes["title"] == "Opener"

        assert not config.lock_path.exists()

    def test_dangling_playlist_entry(self, config, profile, extractor, winamp_store, warnings):
        """Test that a playlist whose file is gone is skipped and the run completes."""
        index_xml = PLAYLISTS_XML.replace(
            "</playlists>",
            '<playlist filename="plfGONE.m3u8" title="Gone" id="{B}" songs="1" />\n</playlists>',
        )
        playlists_dir = winamp_store / "Plugins" / "ml" / "playlists"
        (playlists_dir / "playlists.xml").write_bytes(("\ufeff" + index_xml).encode("utf-16-le"))

        result = run_index(make_context(config, profile, extractor))

        catalogue = load_catalogue(config.catalogue_path)
        assert [tree.code for tree in catalogue.categories] == ["music", "openers"]
        assert [playlist.title for playlist in result.catalogue.playlists] == ["Openers"]
        assert any("Gone" in message for message in warnings)
        assert not config.lock_path.exists()

    def test_second_run_reads_nothing(self, config, profile, extractor):
        """Test that an unchanged library is served from the record cache."""
        run_index(make_context(config, profile, extractor))
        first_bytes = config.record_cache_path.read_bytes()
        extractor.calls.clear()

        result = run_index(make_context(config, profile, extractor))

        assert extractor.calls == []
        assert result.stats["fresh"] == 4
        assert config.record_cache_path.read_bytes() == first_bytes

    def test_deleted_file_leaves_every_tree(self, config, profile, extractor, music_root):
        """Test that a deleted file disappears from records, trees and playlists."""
        run_index(make_context(config, profile, extractor))
        (music_root / FIRST_INTRO).unlink()

        result = run_index(make_context(config, profile, extractor))

        assert FIRST_INTRO not in result.records
        music, openers_tree = result.catalogue.categories
        assert list(music.items["Artist"].children["First"].members) == [FIRST_SONG]
        assert "First" not in openers_tree.items["Artist"].children
        assert result.catalogue.playlists[0].unresolved_count == 2

    def test_skip_scan(self, config, profile, extractor, music_root):
        """Test that skip_scan rebuilds from cache without touching files."""
        run_index(make_context(config, profile, extractor))
        cache_bytes = config.record_cache_path.read_bytes()
        (music_root / FIRST_INTRO).unlink()
        extractor.calls.clear()

        result = run_index(make_context(config, profile, extractor, skip_scan=True))

        assert extractor.calls == []
        assert FIRST_INTRO in result.records
        assert config.record_cache_path.read_bytes() == cache_bytes

    def test_without_playlists(self, config, profile, extractor):
        """Test that playlists can be left out."""
        result = run_index(make_context(config, profile, extractor, add_playlists=False))

        assert result.catalogue.playlists == []

    def test_locked(self, config, profile, extractor):
        """Test that a held lock stops the run before anything is written."""
        config.lock_path.parent.mkdir(parents=True)
        config.lock_path.write_text("12345")

        with pytest.raises(IndexLockedError):
            run_index(make_context(config, profile, extractor))

        assert extractor.calls == []
        assert not config.catalogue_path.exists()
        assert config.lock_path.exists()

    def test_failed_run_keeps_previous_snapshot(self, config, profile, extractor):
        """Test that a run failing mid-way leaves the last catalogue in place."""
        run_index(make_context(config, profile, extractor))
        snapshot = config.catalogue_path.read_bytes()

        def explode(record):
            raise RuntimeError("bad predicate")

        broken = Profile(
            categories=[
                *profile.primary_categories,
                SecondaryCategory(code="boom", name="Boom", inherits="music", predicate=explode),
            ]
        )

        with pytest.raises(RuntimeError):
            run_index(make_context(config, broken, extractor))

        assert config.catalogue_path.read_bytes() == snapshot
        assert not config.lock_path.exists()


class TestRunScan:
    """Test run_scan function."""

    def test_updates_cache_only(self, config, profile, extractor):
        """Test that a scan writes records but no catalogue."""
        result = run_scan(make_context(config, profile, extractor))

        assert result.catalogue is None
        assert len(load_record_cache(config.record_cache_path)) == 4
        assert not config.catalogue_path.exists()
