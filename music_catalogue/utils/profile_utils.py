"""Profile loading.

A profile declares the categories to build and which playlists to import.

Example profile (profile.yaml):

    categories:
      - code: music
        name: Music
        basedir: Music
        taxonomy:
          - [albumartist, artists]
          - album
        category_tags:
          composer: [composer]
      - code: favourites
        name: Favourites
        inherits: music
        filter:
          - {attribute: rating, min: 80}
    playlists:
      store: C:/Program Files/Winamp
      win32_base_dir: 'D:\\Music'
      title_pattern: '^Mix'
      title_prefix: 'Mix - '

Filter conditions test one attribute (a sequence value counts by its first
element) with one of: equals, in, min, max, present. A list of conditions
must all hold.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from .errors import ProfileError
from .models import Category, PrimaryCategory, Record, RecordPredicate, SecondaryCategory
from .playlist_utils import PlaylistProfile, strip_title_prefix, title_filter

CONDITION_OPERATORS = ("equals", "in", "min", "max", "present")


@dataclass
class Profile:
    """Categories and playlist selection for one library."""

    categories: list[Category]
    playlists: PlaylistProfile | None = None

    @property
    def primary_categories(self) -> list[PrimaryCategory]:
        return [cat for cat in self.categories if isinstance(cat, PrimaryCategory)]

    @property
    def secondary_categories(self) -> list[SecondaryCategory]:
        return [cat for cat in self.categories if isinstance(cat, SecondaryCategory)]


# ============================================================================
# Filter predicates
# ============================================================================


def _attribute_value(record: Record, attribute: str) -> Any:
    value = record.grouping_attributes().get(attribute)
    if isinstance(value, (list, tuple)):
        return value[0] if value else None
    return value


def _as_number(value: Any) -> float | None:
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def build_condition(condition: dict[str, Any]) -> RecordPredicate:
    """Build a predicate from one filter condition.

    Args:
        condition: e.g. {"attribute": "rating", "min": 80}

    Returns:
        Predicate over records

    Raises:
        ProfileError: If the condition is malformed
    """
    if not isinstance(condition, dict) or "attribute" not in condition:
        raise ProfileError(f"Filter condition needs an 'attribute': {condition!r}")

    attribute = str(condition["attribute"])
    operators = [op for op in CONDITION_OPERATORS if op in condition]
    if len(operators) != 1:
        raise ProfileError(
            f"Filter condition on '{attribute}' needs exactly one of {', '.join(CONDITION_OPERATORS)}"
        )

    op = operators[0]
    expected = condition[op]

    if op == "equals":
        return lambda record: _attribute_value(record, attribute) == expected

    if op == "in":
        if not isinstance(expected, list):
            raise ProfileError(f"'in' on '{attribute}' needs a list")
        allowed = list(expected)
        return lambda record: _attribute_value(record, attribute) in allowed

    if op == "present":
        want = bool(expected)
        return lambda record: (_attribute_value(record, attribute) not in (None, "")) == want

    bound = _as_number(expected)
    if bound is None:
        raise ProfileError(f"'{op}' on '{attribute}' needs a number")

    def compare(record: Record) -> bool:
        value = _as_number(_attribute_value(record, attribute))
        if value is None:
            return False
        return value >= bound if op == "min" else value <= bound

    return compare


def build_filter(spec: dict[str, Any] | list[dict[str, Any]]) -> RecordPredicate:
    """Build a predicate from one condition or a list of conditions (all must hold)."""
    conditions = spec if isinstance(spec, list) else [spec]
    predicates = [build_condition(condition) for condition in conditions]
    return lambda record: all(predicate(record) for predicate in predicates)


# ============================================================================
# Profile parsing
# ============================================================================


def parse_key_specs(taxonomy: Any, code: str) -> list[list[str]]:
    """Normalize a taxonomy declaration to a list of key specs.

    A bare string is a key spec with a single attribute.
    """
    if taxonomy is None:
        return []
    if not isinstance(taxonomy, list):
        raise ProfileError(f"Category '{code}': taxonomy must be a list")

    key_specs = []
    for spec in taxonomy:
        if isinstance(spec, str):
            key_specs.append([spec])
        elif isinstance(spec, list) and spec and all(isinstance(name, str) for name in spec):
            key_specs.append(list(spec))
        else:
            raise ProfileError(f"Category '{code}': invalid key spec {spec!r}")
    return key_specs


def parse_category(data: dict[str, Any]) -> Category:
    """Parse one category declaration."""
    code = data.get("code")
    if not code:
        raise ProfileError(f"Category without a code: {data!r}")

    name = str(data.get("name", code))
    basedir = data.get("basedir")
    inherits = data.get("inherits")

    if bool(basedir) == bool(inherits):
        raise ProfileError(f"Category '{code}' needs exactly one of 'basedir' or 'inherits'")

    if basedir:
        category_tags = {
            attribute: [keys] if isinstance(keys, str) else list(keys)
            for attribute, keys in (data.get("category_tags") or {}).items()
        }
        return PrimaryCategory(
            code=str(code),
            name=name,
            basedir=str(basedir),
            taxonomy=parse_key_specs(data.get("taxonomy"), str(code)),
            sort=data.get("sort"),
            category_tags=category_tags,
        )

    if "filter" not in data:
        raise ProfileError(f"Category '{code}' inherits from '{inherits}' but has no filter")

    return SecondaryCategory(
        code=str(code),
        name=name,
        inherits=str(inherits),
        predicate=build_filter(data["filter"]),
        sort=data.get("sort"),
    )


def parse_playlist_profile(data: dict[str, Any] | None) -> PlaylistProfile | None:
    """Parse the playlists section of a profile."""
    if not data or not data.get("store"):
        return None

    profile = PlaylistProfile(
        store=Path(str(data["store"])),
        win32_base_dir=str(data.get("win32_base_dir", "")),
    )
    if data.get("title_pattern"):
        profile.filter = title_filter(str(data["title_pattern"]))
    if data.get("title_prefix"):
        profile.map = strip_title_prefix(str(data["title_prefix"]))
    return profile


def parse_profile(data: dict[str, Any]) -> Profile:
    """Parse a profile document.

    Raises:
        ProfileError: On invalid categories, duplicate codes or filters
    """
    categories = [parse_category(entry) for entry in data.get("categories") or []]

    codes = [category.code for category in categories]
    duplicates = sorted({code for code in codes if codes.count(code) > 1})
    if duplicates:
        raise ProfileError(f"Duplicate category codes: {', '.join(duplicates)}")

    return Profile(
        categories=categories,
        playlists=parse_playlist_profile(data.get("playlists")),
    )


def load_profile(profile_path: Path | None, playlist_store: Path | None = None) -> Profile:
    """Load a profile from YAML.

    Args:
        profile_path: Profile file (None gives an empty profile)
        playlist_store: Overrides the playlist store declared in the profile

    Returns:
        Profile instance

    Raises:
        ProfileError: If the file is missing or invalid
    """
    data: dict[str, Any] = {}
    if profile_path is not None:
        try:
            with profile_path.open(encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except FileNotFoundError as e:
            raise ProfileError(f"Profile '{profile_path}' not found") from e
        except yaml.YAMLError as e:
            raise ProfileError(f"Error parsing profile '{profile_path}': {e}") from e

    if not isinstance(data, dict):
        raise ProfileError(f"Profile '{profile_path}' must be a mapping")

    profile = parse_profile(data)

    if playlist_store is not None:
        if profile.playlists is None:
            profile.playlists = PlaylistProfile(store=playlist_store)
        else:
            profile.playlists.store = playlist_store

    return profile
