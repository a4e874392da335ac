"""Tag extraction utilities for audio files.

Reads tags and stream information with mutagen and reshapes them into the
attribute names the taxonomy builder groups on.

Attribute schema:
- title, album, albumartist: str
- artists, genre, rating: list
- year: int
- track, disk: {"no": int | None, "of": int | None}
- replaygain_{album,track}_{gain,peak}: str

Functions:
- extract_tags(): Read attributes, category attributes and format info
- clean_tags(): Normalize rating values after enrichment is merged in
- parse_position(): Parse "3/12" style track and disc numbers
- format_duration(), human_filesize(): Reporting helpers
"""

import math
import re
from pathlib import Path
from typing import Any

import mutagen
from mutagen import MutagenError
from mutagen.id3 import ID3, ID3NoHeaderError

from .errors import ExtractionError
from .models import PrimaryCategory

REPLAYGAIN_TAGS = (
    "replaygain_album_gain",
    "replaygain_album_peak",
    "replaygain_track_gain",
    "replaygain_track_peak",
)

LOSSLESS_EXTS = {"aiff", "alac", "ape", "flac", "wav"}

WINAMP_RATING_SOURCE = "rating@winamp.com"


# ============================================================================
# Normalization Utilities
# ============================================================================


def parse_position(value: str | None) -> dict[str, int | None]:
    """Parse a track or disc position.

    Args:
        value: Position string (e.g., "3", "3/12")

    Returns:
        Dict with "no" and "of" (None where missing or invalid)

    Examples:
        >>> parse_position("3/12")
        {'no': 3, 'of': 12}
        >>> parse_position(None)
        {'no': None, 'of': None}
    """
    if not value:
        return {"no": None, "of": None}

    no, _, of = str(value).partition("/")

    def to_int(part: str) -> int | None:
        try:
            return int(part.strip())
        except ValueError:
            return None

    return {"no": to_int(no), "of": to_int(of) if of else None}


def parse_year(value: str | None) -> int | None:
    """Extract a four-digit year from a date tag (e.g., "2004-05-01")."""
    if not value:
        return None
    match = re.match(r"\s*(\d{4})", str(value))
    return int(match.group(1)) if match else None


def winamp_mp3_rating(value: float) -> str:
    """Convert a normalized (0-1) Winamp POPM rating to a 0-100 string.

    Examples:
        >>> winamp_mp3_rating(1.0)
        '100'
        >>> winamp_mp3_rating(0.5)
        '60'
    """
    # Half-up rounding
    stars = math.floor(value / 0.25 + 0.5) + 1
    return str(stars * 20)


def clean_tags(tags: dict[str, Any]) -> dict[str, Any]:
    """Perform cleaning tasks on merged tags.

    - A single rating value becomes a one-element list
    - A Winamp POPM rating entry becomes a 0-100 string

    Args:
        tags: Attributes merged from extraction and enrichment

    Returns:
        New attributes dict
    """
    cleaned = dict(tags)
    rating = cleaned.get("rating")
    if rating is None:
        return cleaned

    if not isinstance(rating, list):
        rating = [rating]
    if rating and isinstance(rating[0], dict) and rating[0].get("source"):
        if rating[0]["source"] == WINAMP_RATING_SOURCE:
            rating = [winamp_mp3_rating(float(rating[0].get("rating") or 0))]

    cleaned["rating"] = rating
    return cleaned


def format_duration(seconds: float) -> str:
    """Format duration in seconds to human-readable format.

    Examples:
        >>> format_duration(145.5)
        '2 min 25'
        >>> format_duration(59)
        '0 min 59'
    """
    mins = int(seconds // 60)
    secs = int(seconds % 60)
    return f"{mins} min {secs:02d}"


def human_filesize(num_bytes: int) -> str:
    """Convert bytes to human-readable file size in MiB.

    Examples:
        >>> human_filesize(6123520)
        '5.84 MiB'
    """
    mib = num_bytes / (1024 * 1024)
    return f"{mib:.2f} MiB"


# ============================================================================
# Tag picking
# ============================================================================


def _first(values: list[str] | None) -> str | None:
    if not values:
        return None
    return values[0] or None


def read_raw_tags(audio: Any) -> dict[str, list[str]]:
    """Flatten a mutagen tag container into lowercase key -> list of strings."""
    tags = getattr(audio, "tags", None)
    if tags is None:
        return {}

    raw: dict[str, list[str]] = {}
    for key in tags.keys():
        values = tags[key]
        if not isinstance(values, list):
            values = [values]
        raw[str(key).lower()] = [str(value) for value in values]
    return raw


def pick_common_tags(raw: dict[str, list[str]]) -> dict[str, Any]:
    """Return only the common tags that we group and sort on.

    Args:
        raw: Flattened tags from read_raw_tags()

    Returns:
        Attributes dict following the module's attribute schema
    """
    artists = [artist for artist in raw.get("artist", []) if artist]
    attributes: dict[str, Any] = {
        "title": _first(raw.get("title")),
        "album": _first(raw.get("album")),
        "artists": artists,
        "albumartist": _first(raw.get("albumartist")) or (artists[0] if artists else None),
        "genre": [genre for genre in raw.get("genre", []) if genre],
        "year": parse_year(_first(raw.get("date")) or _first(raw.get("year"))),
        "track": parse_position(_first(raw.get("tracknumber"))),
        "disk": parse_position(_first(raw.get("discnumber"))),
    }

    if raw.get("rating"):
        attributes["rating"] = raw["rating"]

    for tag in REPLAYGAIN_TAGS:
        value = _first(raw.get(tag))
        if value:
            attributes[tag] = value

    # Drop empty values, but keep the position dicts for sorting
    return {
        key: value
        for key, value in attributes.items()
        if key in ("track", "disk") or value not in (None, [], "")
    }


def pick_category_tags(
    raw: dict[str, list[str]],
    category: PrimaryCategory | None,
) -> dict[str, Any]:
    """Return additional attributes requested by a category.

    Each category attribute lists raw tag keys in order of preference; the
    first one present wins.
    """
    if category is None or not category.category_tags:
        return {}

    picked: dict[str, Any] = {}
    for attribute, keys in category.category_tags.items():
        for key in keys:
            value = _first(raw.get(key.lower()))
            if value:
                picked[attribute] = value
                break
    return picked


def pick_format_info(audio: Any, ext: str) -> dict[str, Any]:
    """Return the stream information we keep for display."""
    # Cast to Any to access mutagen's per-format info attributes
    info: Any = getattr(audio, "info", None)
    if info is None:
        return {}

    fmt: dict[str, Any] = {
        "container": type(audio).__name__,
        "codec": getattr(info, "codec", None) or ext,
        "duration": getattr(info, "length", None),
        "sample_rate": getattr(info, "sample_rate", None),
        "bits_per_sample": getattr(info, "bits_per_sample", None),
        "channels": getattr(info, "channels", None),
        "bitrate": getattr(info, "bitrate", None),
        "lossless": ext in LOSSLESS_EXTS,
    }
    return {key: value for key, value in fmt.items() if value is not None}


def read_popm_ratings(file_path: Path) -> list[dict[str, Any]]:
    """Read ID3 POPM (popularimeter) frames as normalized rating entries."""
    try:
        tags = ID3(file_path)
    except ID3NoHeaderError:
        return []

    return [
        {"source": frame.email, "rating": frame.rating / 255}
        for frame in tags.getall("POPM")
    ]


# ============================================================================
# Extraction
# ============================================================================


def extract_tags(
    file_path: Path,
    ext: str,
    category: PrimaryCategory | None = None,
) -> dict[str, Any]:
    """Extract tags and stream information from an audio file.

    Args:
        file_path: Absolute path to the file
        ext: Lowercase extension without the dot
        category: Primary category that claims the file, if any

    Returns:
        Dict with "attributes", "category_attributes" and "format_info"

    Raises:
        ExtractionError: If the file cannot be read or is not a known audio format
    """
    try:
        audio = mutagen.File(file_path, easy=True)
        if audio is None:
            raise ExtractionError(str(file_path), "unrecognized audio format")

        raw = read_raw_tags(audio)
        attributes = pick_common_tags(raw)

        if ext == "mp3" and "rating" not in attributes:
            ratings = read_popm_ratings(file_path)
            if ratings:
                attributes["rating"] = ratings

        return {
            "attributes": attributes,
            "category_attributes": pick_category_tags(raw, category),
            "format_info": pick_format_info(audio, ext),
        }
    except (MutagenError, OSError) as e:
        raise ExtractionError(str(file_path), str(e)) from e
