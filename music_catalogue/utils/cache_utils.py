"""Persistence for the record cache and the catalogue snapshot.

Both artifacts are JSON documents compressed with gzip. A missing or
malformed artifact loads as empty; the next run rewrites it from scratch.

Record cache structure (records.json.gz):
{
  "Music/Artist/01.Song.mp3": {
    "path": "Music/Artist/01.Song.mp3",
    "attributes": { ... },          # Extracted tags
    "category_attributes": { ... },
    "format_info": { ... },
    "category_code": "music",
    "mtime": 1700000000.123,        # Freshness key, compared exactly
    "scanned_at": 1700000100.0,
    "ext": "mp3",
    "error": null
  }
}

Catalogue structure (catalogue.json.gz):
{
  "categories": [{"type": "primary", "code": ..., "items": {...}}, ...],
  "playlists": [{"id": ..., "title": ..., "tracks": [...]}, ...]
}

Functions:
- load_record_cache() / save_record_cache(): Record cache round-trip
- load_catalogue() / save_catalogue(): Catalogue snapshot round-trip
- is_fresh(): Check if a file needs re-extraction
- get_cache_stats(): Summarize cache contents
- clear_record_cache(): Drop the record cache
"""

import gzip
import json
import os
import zlib
from collections import Counter
from pathlib import Path
from typing import Any

from loguru import logger
from pydantic import TypeAdapter, ValidationError

from .errors import CacheCorruptionError
from .models import Catalogue, Record

# Fastest level; the blobs are rewritten on every run
COMPRESS_LEVEL = 1

_RECORDS: TypeAdapter[dict[str, Record]] = TypeAdapter(dict[str, Record])


def read_blob(file_path: Path) -> Any | None:
    """Read and decode a compressed JSON blob.

    Args:
        file_path: Path to the blob

    Returns:
        Decoded JSON value, or None if the file does not exist

    Raises:
        CacheCorruptionError: If the blob is not valid gzip-compressed JSON
    """
    try:
        raw = file_path.read_bytes()
    except FileNotFoundError:
        return None

    try:
        return json.loads(gzip.decompress(raw))
    except (gzip.BadGzipFile, EOFError, zlib.error, UnicodeDecodeError, ValueError) as e:
        raise CacheCorruptionError(f"{file_path}: {e}") from e


def write_blob(file_path: Path, data: Any) -> None:
    """Encode and write a compressed JSON blob.

    The blob is written next to its target and moved into place, so readers
    see either the old or the new content. The gzip header timestamp is fixed
    so identical data always produces identical bytes.

    Args:
        file_path: Destination path
        data: JSON-serializable value
    """
    payload = json.dumps(data, indent=2, ensure_ascii=False).encode("utf-8")
    blob = gzip.compress(payload, compresslevel=COMPRESS_LEVEL, mtime=0)

    file_path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = file_path.with_name(f"{file_path.name}.tmp")
    tmp_path.write_bytes(blob)
    os.replace(tmp_path, file_path)


def load_record_cache(cache_path: Path) -> dict[str, Record]:
    """Load the record cache.

    Args:
        cache_path: Path to records.json.gz

    Returns:
        Mapping of relative path to Record (empty if missing or corrupt)
    """
    try:
        data = read_blob(cache_path)
        if data is None:
            return {}
        try:
            return _RECORDS.validate_python(data)
        except ValidationError as e:
            raise CacheCorruptionError(f"{cache_path}: {e}") from e
    except CacheCorruptionError as e:
        logger.warning(f"Record cache is corrupt, starting empty: {e}")
        return {}


def save_record_cache(cache_path: Path, records: dict[str, Record]) -> None:
    """Persist the full record set, replacing prior content.

    Args:
        cache_path: Path to records.json.gz
        records: Mapping of relative path to Record
    """
    ordered = {key: records[key] for key in sorted(records)}
    write_blob(cache_path, _RECORDS.dump_python(ordered, mode="json"))
    logger.debug(f"Record cache written: {cache_path} ({len(ordered)} records)")


def load_catalogue(catalogue_path: Path) -> Catalogue:
    """Load the catalogue snapshot.

    Args:
        catalogue_path: Path to catalogue.json.gz

    Returns:
        Catalogue (empty if missing or corrupt)
    """
    try:
        data = read_blob(catalogue_path)
        if data is None:
            return Catalogue()
        try:
            return Catalogue.model_validate(data)
        except ValidationError as e:
            raise CacheCorruptionError(f"{catalogue_path}: {e}") from e
    except CacheCorruptionError as e:
        logger.warning(f"Catalogue snapshot is corrupt, starting empty: {e}")
        return Catalogue()


def save_catalogue(catalogue_path: Path, catalogue: Catalogue) -> None:
    """Persist the catalogue snapshot, replacing prior content."""
    write_blob(catalogue_path, catalogue.model_dump(mode="json"))
    logger.debug(f"Catalogue written: {catalogue_path}")


def is_fresh(record: Record | None, mtime: float) -> bool:
    """Check if a cached record is current for a file.

    Validation criteria: the stored modification time equals the file's
    current modification time exactly. Error records never carry one, so
    they are always retried.

    Args:
        record: Cached record for the file, if any
        mtime: Current modification time of the file

    Returns:
        True if the file can be skipped
    """
    return record is not None and record.mtime is not None and record.mtime == mtime


def get_cache_stats(records: dict[str, Record]) -> dict[str, Any]:
    """Get record cache statistics.

    Returns:
        Dict with cache statistics:
        {
            "total_entries": int,
            "error_entries": int,
            "by_extension": {"mp3": int, ...},
            "by_category": {"music": int, ...}
        }
    """
    by_extension: Counter[str] = Counter()
    by_category: Counter[str] = Counter()
    errors = 0

    for record in records.values():
        if record.is_error:
            errors += 1
            continue
        by_extension[record.ext or "?"] += 1
        by_category[record.category_code or "(none)"] += 1

    return {
        "total_entries": len(records),
        "error_entries": errors,
        "by_extension": dict(sorted(by_extension.items())),
        "by_category": dict(sorted(by_category.items())),
    }


def clear_record_cache(cache_path: Path) -> int:
    """Delete the record cache.

    Returns:
        Number of entries cleared
    """
    count = len(load_record_cache(cache_path))
    cache_path.unlink(missing_ok=True)
    return count
