"""
Tests for profile_utils module.
"""

from pathlib import Path

import pytest

from music_catalogue.utils.errors import ProfileError
from music_catalogue.utils.models import PrimaryCategory, Record, SecondaryCategory
from music_catalogue.utils.profile_utils import (
    build_condition,
    build_filter,
    load_profile,
    parse_category,
    parse_key_specs,
    parse_profile,
)

PROFILE_YAML = """
categories:
  - code: music
    name: Music
    basedir: Music
    taxonomy:
      - [albumartist, artists]
      - album
    sort: year
    category_tags:
      composer: [composer]
  - code: favourites
    name: Favourites
    inherits: music
    filter:
      - {attribute: rating, min: 80}
playlists:
  store: /opt/winamp
  win32_base_dir: 'D:\\Music'
  title_pattern: '^Mix'
  title_prefix: 'Mix - '
"""


def record(**attributes):
    return Record(path="a.mp3", attributes=attributes)


class TestBuildCondition:
    """Test build_condition function."""

    def test_equals(self):
        """Test exact value match."""
        match = build_condition({"attribute": "genre", "equals": "Rock"})

        assert match(record(genre=["Rock", "Pop"]))
        assert not match(record(genre=["Pop"]))

    def test_in(self):
        """Test membership in a list."""
        match = build_condition({"attribute": "album", "in": ["A", "B"]})

        assert match(record(album="B"))
        assert not match(record(album="C"))

    def test_min_and_max(self):
        """Test numeric bounds on string ratings."""
        at_least = build_condition({"attribute": "rating", "min": 80})
        at_most = build_condition({"attribute": "rating", "max": 40})

        assert at_least(record(rating=["80"]))
        assert not at_least(record(rating=["60"]))
        assert at_most(record(rating=["20"]))
        assert not at_least(record())

    def test_present(self):
        """Test attribute presence."""
        has_year = build_condition({"attribute": "year", "present": True})
        no_year = build_condition({"attribute": "year", "present": False})

        assert has_year(record(year=1999))
        assert no_year(record())

    def test_category_attributes_visible(self):
        """Test that conditions see category attributes."""
        match = build_condition({"attribute": "composer", "equals": "Bach"})

        assert match(Record(path="a.mp3", category_attributes={"composer": "Bach"}))

    @pytest.mark.parametrize(
        "condition",
        [
            {"equals": 1},
            {"attribute": "x"},
            {"attribute": "x", "equals": 1, "min": 2},
            {"attribute": "x", "in": "abc"},
            {"attribute": "x", "min": "high"},
            "rating > 3",
        ],
    )
    def test_malformed(self, condition):
        """Test that malformed conditions are rejected."""
        with pytest.raises(ProfileError):
            build_condition(condition)


class TestBuildFilter:
    """Test build_filter function."""

    def test_all_conditions_must_hold(self):
        """Test that a list of conditions is a conjunction."""
        match = build_filter(
            [{"attribute": "rating", "min": 60}, {"attribute": "genre", "equals": "Rock"}]
        )

        assert match(record(rating=["80"], genre=["Rock"]))
        assert not match(record(rating=["80"], genre=["Pop"]))

    def test_single_condition(self):
        """Test a filter given as one mapping."""
        match = build_filter({"attribute": "album", "equals": "A"})

        assert match(record(album="A"))


class TestParseKeySpecs:
    """Test parse_key_specs function."""

    def test_mixed_forms(self):
        """Test bare strings and ranked lists."""
        assert parse_key_specs(["album", ["albumartist", "artists"]], "m") == [
            ["album"],
            ["albumartist", "artists"],
        ]

    def test_missing(self):
        """Test that no taxonomy gives no key specs."""
        assert parse_key_specs(None, "m") == []

    def test_invalid(self):
        """Test that empty or non-string specs are rejected."""
        with pytest.raises(ProfileError):
            parse_key_specs([[]], "m")
        with pytest.raises(ProfileError):
            parse_key_specs("album", "m")


class TestParseCategory:
    """Test parse_category function."""

    def test_primary(self):
        """Test a primary category declaration."""
        category = parse_category(
            {"code": "music", "basedir": "Music", "taxonomy": ["album"], "category_tags": {"c": "composer"}}
        )

        assert isinstance(category, PrimaryCategory)
        assert category.name == "music"
        assert category.category_tags == {"c": ["composer"]}

    def test_secondary(self):
        """Test a secondary category declaration."""
        category = parse_category(
            {"code": "fav", "inherits": "music", "filter": {"attribute": "rating", "min": 80}}
        )

        assert isinstance(category, SecondaryCategory)
        assert category.inherits == "music"
        assert category.predicate(record(rating=["100"]))

    def test_needs_code(self):
        """Test that a category without a code is rejected."""
        with pytest.raises(ProfileError):
            parse_category({"basedir": "Music"})

    def test_needs_exactly_one_source(self):
        """Test that basedir and inherits are mutually exclusive and required."""
        with pytest.raises(ProfileError):
            parse_category({"code": "x"})
        with pytest.raises(ProfileError):
            parse_category({"code": "x", "basedir": "M", "inherits": "y", "filter": []})

    def test_secondary_needs_filter(self):
        """Test that a secondary category must declare a filter."""
        with pytest.raises(ProfileError):
            parse_category({"code": "x", "inherits": "music"})


class TestParseProfile:
    """Test parse_profile function."""

    def test_duplicate_codes(self):
        """Test that category codes must be unique."""
        with pytest.raises(ProfileError, match="music"):
            parse_profile(
                {
                    "categories": [
                        {"code": "music", "basedir": "A"},
                        {"code": "music", "basedir": "B"},
                    ]
                }
            )

    def test_empty(self):
        """Test an empty profile document."""
        profile = parse_profile({})

        assert profile.categories == []
        assert profile.playlists is None


class TestLoadProfile:
    """Test load_profile function."""

    def test_full_profile(self, tmp_path):
        """Test loading a profile with categories and playlists."""
        path = tmp_path / "profile.yaml"
        path.write_text(PROFILE_YAML)

        profile = load_profile(path)

        assert [c.code for c in profile.primary_categories] == ["music"]
        assert [c.code for c in profile.secondary_categories] == ["favourites"]
        assert profile.primary_categories[0].taxonomy == [["albumartist", "artists"], ["album"]]
        assert profile.primary_categories[0].sort == "year"
        assert profile.playlists.store == Path("/opt/winamp")
        assert profile.playlists.win32_base_dir == "D:\\Music"
        assert profile.playlists.filter({"title": "Mix - A"})
        assert profile.playlists.map({"title": "Mix - A"})["title"] == "A"

    def test_store_override(self, tmp_path):
        """Test that a configured playlist store replaces the profile's."""
        path = tmp_path / "profile.yaml"
        path.write_text(PROFILE_YAML)

        profile = load_profile(path, playlist_store=tmp_path / "Winamp")

        assert profile.playlists.store == tmp_path / "Winamp"
        assert profile.playlists.win32_base_dir == "D:\\Music"

    def test_store_override_without_section(self, tmp_path):
        """Test that a configured store enables playlists on its own."""
        profile = load_profile(None, playlist_store=tmp_path)

        assert profile.playlists.store == tmp_path

    def test_no_profile(self):
        """Test that no profile file gives an empty profile."""
        assert load_profile(None).categories == []

    def test_missing_file(self, tmp_path):
        """Test that a missing profile file is an error."""
        with pytest.raises(ProfileError):
            load_profile(tmp_path / "missing.yaml")

    def test_invalid_yaml(self, tmp_path):
        """Test that unparseable YAML is an error."""
        path = tmp_path / "profile.yaml"
        path.write_text("categories: [unclosed")

        with pytest.raises(ProfileError):
            load_profile(path)

    def test_not_a_mapping(self, tmp_path):
        """Test that a YAML list is rejected."""
        path = tmp_path / "profile.yaml"
        path.write_text("- a\n- b\n")

        with pytest.raises(ProfileError):
            load_profile(path)
