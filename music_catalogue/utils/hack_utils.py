r"""Byte-level metadata enrichment for formats mutagen reads incompletely.

Winamp stores its rating for M4A files in a way that does not follow the
MP4 tag layout, so the rating is recovered by scanning the raw bytes:

- Signature: "ftypM4A" at offset 4 (file must be at least 11 bytes)
- Marker: the first "rate\x00\x00\x00" sequence in the file
- The byte right after the marker is an offset; the rating is the 3 bytes
  starting at marker + offset + 1, with control characters removed

Every function here returns an empty result instead of raising, so an
enrichment miss never turns a readable file into an error record.
"""

import re
from pathlib import Path
from typing import Any

from loguru import logger

M4A_MAGIC_OFFSET = 4
M4A_MAGIC_BYTES = b"ftypM4A"

WINAMP_RATE_MARKER = b"rate\x00\x00\x00"

HACKABLE_EXTS = {"m4a"}

_CONTROL_CHARS = re.compile(r"[\x00-\x1f]+")


def clean_string(value: str) -> str:
    """Remove all characters below 0x20 from a string."""
    return _CONTROL_CHARS.sub("", value)


def is_m4a_data(data: bytes) -> bool:
    """Check for the M4A file type signature.

    Args:
        data: Raw file content

    Returns:
        True if "ftypM4A" is found at offset 4
    """
    end = M4A_MAGIC_OFFSET + len(M4A_MAGIC_BYTES)
    if len(data) < end:
        return False
    return data[M4A_MAGIC_OFFSET:end] == M4A_MAGIC_BYTES


def find_m4a_winamp_rating_data(data: bytes) -> dict[str, Any] | None:
    """Find the raw Winamp rating in M4A content.

    Args:
        data: Raw file content

    Returns:
        Dict with "offset" and "value", or None if not an M4A file or no rating found
    """
    if not is_m4a_data(data):
        return None

    marker_len = len(WINAMP_RATE_MARKER)
    pos = data.find(WINAMP_RATE_MARKER)
    while pos != -1 and pos < len(data) - marker_len:
        offset = data[pos + marker_len]

        # Skip markers whose rating would run past the end of the file
        if pos + offset + 4 <= len(data):
            value = data[pos + offset + 1 : pos + offset + 4]
            return {
                "offset": offset,
                "value": clean_string(value.decode("ascii", errors="ignore")),
            }

        pos = data.find(WINAMP_RATE_MARKER, pos + 1)

    return None


def find_m4a_winamp_rating(data: bytes) -> dict[str, Any]:
    """Return the Winamp rating of M4A content as a rating attribute.

    Examples:
        >>> find_m4a_winamp_rating(b"not an m4a file")
        {}
    """
    rating = find_m4a_winamp_rating_data(data)
    if rating is None:
        return {}
    return {"rating": [str(rating["value"]).strip()]}


def get_metadata_hacks(file_path: Path, ext: str) -> dict[str, Any]:
    """Extract supplementary attributes using format-specific byte scans.

    Args:
        file_path: Absolute path to the file
        ext: Lowercase extension without the dot

    Returns:
        Supplementary attributes (empty when nothing applies)
    """
    if ext not in HACKABLE_EXTS:
        return {}

    try:
        data = file_path.read_bytes()
    except OSError as e:
        logger.debug(f"Skipping byte scan for {file_path}: {e}")
        return {}

    return find_m4a_winamp_rating(data)
