"""Incremental library scan.

Walks the music root, re-extracts tags only for files whose modification
time changed since the last run, and prunes records for deleted files.

Each file is processed independently and yields a FileOutcome; failures
become error records instead of aborting the batch. Outcomes are folded into
the record mapping on the calling thread, in path order, so parallel
extraction never writes to the mapping concurrently.
"""

import time
from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from loguru import logger

from .cache_utils import is_fresh
from .config import Config
from .errors import ExtractionError
from .file_utils import file_exists, find_audio_files, get_base_dir, get_extension
from .hack_utils import get_metadata_hacks
from .metadata_utils import clean_tags, extract_tags
from .models import Category, PrimaryCategory, Record

Extractor = Callable[[Path, str, PrimaryCategory | None], dict[str, Any]]
Enricher = Callable[[Path, str], dict[str, Any]]


@dataclass(frozen=True)
class FileOutcome:
    """Result of processing one file.

    status is "fresh" (cached record kept), "extracted" (new record) or
    "failed" (error record).
    """

    path: str
    status: str
    record: Record


def get_category(rel_path: str, categories: Sequence[Category]) -> PrimaryCategory | None:
    """Return the primary category whose base directory contains this file."""
    basedir = get_base_dir(rel_path)
    for category in categories:
        if isinstance(category, PrimaryCategory) and category.basedir == basedir:
            return category
    return None


def process_file(
    root: Path,
    rel_path: str,
    cached: Record | None,
    categories: Sequence[Category],
    force_refresh: bool = False,
    extractor: Extractor = extract_tags,
    enricher: Enricher = get_metadata_hacks,
) -> FileOutcome:
    """Read tags for a single file unless its cached record is still fresh.

    Args:
        root: Music root directory
        rel_path: Path relative to root
        cached: Record from the previous run, if any
        categories: Profile categories (used to find the owning primary category)
        force_refresh: If True, ignore freshness and always extract
        extractor: Tag extractor
        enricher: Supplementary byte-level extractor

    Returns:
        FileOutcome for this file
    """
    file_path = root / rel_path
    try:
        mtime = file_path.stat().st_mtime
        if cached is not None and not force_refresh and is_fresh(cached, mtime):
            logger.debug(f"  (fresh) {rel_path}")
            return FileOutcome(rel_path, "fresh", cached)

        ext = get_extension(rel_path)
        category = get_category(rel_path, categories)
        extracted = extractor(file_path, ext, category)
        hacks = enricher(file_path, ext)

        record = Record(
            path=rel_path,
            attributes=clean_tags({**extracted.get("attributes", {}), **hacks}),
            category_attributes=extracted.get("category_attributes", {}),
            format_info=extracted.get("format_info", {}),
            category_code=category.code if category else None,
            mtime=mtime,
            scanned_at=time.time(),
            ext=ext,
        )
        logger.debug(f"  (extracted) {rel_path}")
        return FileOutcome(rel_path, "extracted", record)

    # Any failure is confined to this file's record
    except Exception as e:
        reason = e.reason if isinstance(e, ExtractionError) else f"{type(e).__name__}: {e}"
        logger.warning(f"Failed to read tags for {rel_path}: {reason}")
        return FileOutcome(rel_path, "failed", Record(path=rel_path, error=reason))


def prune_missing_files(root: Path, records: dict[str, Record]) -> int:
    """Remove records whose files no longer exist.

    Existence is checked against the file system for every record, not
    inferred from what the scan saw.

    Args:
        root: Music root directory
        records: Record mapping, modified in place

    Returns:
        Number of records removed
    """
    missing = [key for key, record in records.items() if not file_exists(root / record.path)]
    for key in missing:
        logger.debug(f"  (removed) {key}")
        del records[key]
    return len(missing)


def scan_library(
    root: Path,
    categories: Sequence[Category],
    records: dict[str, Record],
    force_refresh: bool = False,
    skip_scan: bool = False,
    workers: int = 1,
    extensions: set[str] | None = None,
    extractor: Extractor = extract_tags,
    enricher: Enricher = get_metadata_hacks,
) -> tuple[dict[str, Record], dict[str, int]]:
    """Bring the record set up to date with the music directory.

    Args:
        root: Music root directory
        categories: Profile categories
        records: Records loaded from the cache (not modified)
        force_refresh: Re-extract every file regardless of freshness
        skip_scan: Return the cached records unchanged
        workers: Maximum number of files extracted concurrently
        extensions: Recognized extensions (default: Config.AUDIO_EXTS)
        extractor: Tag extractor
        enricher: Supplementary byte-level extractor

    Returns:
        Tuple of (updated records, stats) where stats holds
        found/extracted/fresh/failed/pruned counts
    """
    stats = {"found": 0, "extracted": 0, "fresh": 0, "failed": 0, "pruned": 0}
    updated = dict(records)

    if skip_scan:
        return updated, stats

    files = find_audio_files(root, extensions or Config.AUDIO_EXTS)
    stats["found"] = len(files)
    logger.info(f"Found {len(files)} audio files under {root}")

    def work(rel_path: str) -> FileOutcome:
        return process_file(
            root,
            rel_path,
            records.get(rel_path),
            categories,
            force_refresh=force_refresh,
            extractor=extractor,
            enricher=enricher,
        )

    if workers > 1 and len(files) > 1:
        with ThreadPoolExecutor(max_workers=workers) as executor:
            outcomes = list(executor.map(work, files))
    else:
        outcomes = [work(rel_path) for rel_path in files]

    for outcome in outcomes:
        stats[outcome.status] += 1
        updated[outcome.path] = outcome.record

    stats["pruned"] = prune_missing_files(root, updated)

    logger.info(
        f"Scan complete: {stats['extracted']} extracted, {stats['fresh']} fresh, "
        f"{stats['failed']} failed, {stats['pruned']} pruned"
    )
    return updated, stats
