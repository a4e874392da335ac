"""Catalogue assembly and indexing runs.

An indexing run:
1. Takes the run lock on the cache directory
2. Loads the record cache
3. Scans the music root, prunes deleted files and saves the record cache
   (skipped with skip_scan)
4. Builds every primary category tree, then derives secondary categories
5. Imports and resolves playlists
6. Writes the catalogue snapshot

The snapshot is written last, so a run that fails leaves the previous
snapshot in place.

Functions:
- catalogue_media_library(): Build category trees from records
- import_playlists(): Read and resolve playlists
- run_scan(): Steps 1-3 only
- run_index(): Full run
"""

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field

from loguru import logger

from .cache_utils import load_record_cache, save_catalogue, save_record_cache
from .config import Config
from .errors import MissingInheritanceTargetError
from .file_utils import index_lock
from .hack_utils import get_metadata_hacks
from .metadata_utils import extract_tags
from .models import (
    Catalogue,
    Category,
    CategoryTree,
    Playlist,
    PrimaryCategory,
    Record,
    SecondaryCategory,
)
from .playlist_utils import PlaylistProfile, find_playlists, resolve_playlists
from .profile_utils import Profile
from .scan_utils import Enricher, Extractor, scan_library
from .taxonomy_utils import build_taxonomy, count_members, derive_taxonomy


@dataclass
class IndexContext:
    """Working state of one indexing run; build one per run."""

    config: Config
    profile: Profile
    force_refresh: bool = False
    skip_scan: bool = False
    add_playlists: bool = True
    extractor: Extractor = extract_tags
    enricher: Enricher = get_metadata_hacks
    records: dict[str, Record] = field(default_factory=dict)


@dataclass
class IndexResult:
    """Outcome of an indexing run."""

    records: dict[str, Record]
    stats: dict[str, int]
    catalogue: Catalogue | None = None


# ============================================================================
# Categories
# ============================================================================


def get_category_records(
    category: PrimaryCategory,
    records: Mapping[str, Record],
) -> dict[str, Record]:
    """Return the records a primary category claims (error records excluded)."""
    return {
        path: record
        for path, record in records.items()
        if not record.is_error and record.category_code == category.code
    }


def build_primary_category(
    category: PrimaryCategory,
    records: Mapping[str, Record],
) -> CategoryTree | None:
    """Build a primary category tree, or None if it declares no taxonomy."""
    if not category.taxonomy:
        logger.debug(f"Category '{category.code}' has no taxonomy, skipping")
        return None

    items = build_taxonomy(get_category_records(category, records), category.taxonomy)
    return CategoryTree(
        type="primary",
        code=category.code,
        name=category.name,
        taxonomy=category.taxonomy,
        sort=category.sort,
        items=items,
    )


def find_base_category(
    category: SecondaryCategory,
    primaries: Sequence[CategoryTree],
) -> CategoryTree:
    """Return the primary tree a secondary category inherits from.

    Raises:
        MissingInheritanceTargetError: If no primary tree has that code
    """
    for tree in primaries:
        if tree.code == category.inherits:
            return tree
    raise MissingInheritanceTargetError(category.code, category.inherits)


def derive_secondary_category(
    category: SecondaryCategory,
    primaries: Sequence[CategoryTree],
) -> CategoryTree:
    """Derive a secondary category from its base tree.

    Raises:
        MissingInheritanceTargetError: If the base category was not built
    """
    base = find_base_category(category, primaries)
    return CategoryTree(
        type="secondary",
        code=category.code,
        name=category.name,
        inherits=category.inherits,
        taxonomy=[list(spec) for spec in base.taxonomy],
        sort=category.sort or base.sort,
        items=derive_taxonomy(base.items, category.predicate),
    )


def catalogue_media_library(
    categories: Sequence[Category],
    records: Mapping[str, Record],
) -> list[CategoryTree]:
    """Group records into every category of the profile.

    Secondary categories whose base category was not built are left out
    with a warning.

    Args:
        categories: Profile categories
        records: Mapping of path to Record

    Returns:
        Primary category trees followed by secondary ones, in profile order
    """
    primaries: list[CategoryTree] = []
    for category in categories:
        if isinstance(category, PrimaryCategory):
            tree = build_primary_category(category, records)
            if tree is not None:
                logger.info(f"Category '{tree.code}': {count_members(tree.items)} files")
                primaries.append(tree)

    secondaries: list[CategoryTree] = []
    for category in categories:
        if isinstance(category, SecondaryCategory):
            try:
                tree = derive_secondary_category(category, primaries)
            except MissingInheritanceTargetError as e:
                logger.warning(f"{e}; category left out of the catalogue")
                continue
            logger.info(f"Category '{tree.code}': {count_members(tree.items)} files")
            secondaries.append(tree)

    return primaries + secondaries


# ============================================================================
# Playlists
# ============================================================================


def import_playlists(
    profile: PlaylistProfile | None,
    records: Mapping[str, Record],
) -> list[Playlist]:
    """Read the profile's playlists and resolve their tracks."""
    if profile is None:
        return []
    return resolve_playlists(find_playlists(profile), records)


# ============================================================================
# Runs
# ============================================================================


def _refresh_records(ctx: IndexContext) -> dict[str, int]:
    ctx.records = load_record_cache(ctx.config.record_cache_path)
    logger.info(f"Loaded {len(ctx.records)} cached records")

    ctx.records, stats = scan_library(
        ctx.config.base_path,
        ctx.profile.categories,
        ctx.records,
        force_refresh=ctx.force_refresh,
        skip_scan=ctx.skip_scan,
        workers=ctx.config.workers,
        extensions=ctx.config.extensions,
        extractor=ctx.extractor,
        enricher=ctx.enricher,
    )

    if not ctx.skip_scan:
        save_record_cache(ctx.config.record_cache_path, ctx.records)
    return stats


def run_scan(ctx: IndexContext) -> IndexResult:
    """Scan the library and update the record cache without building the catalogue."""
    with index_lock(ctx.config.lock_path):
        stats = _refresh_records(ctx)
    return IndexResult(records=ctx.records, stats=stats)


def run_index(ctx: IndexContext) -> IndexResult:
    """Run a full indexing pass and write the catalogue snapshot.

    Args:
        ctx: Run context

    Returns:
        IndexResult with the final records, scan stats and catalogue

    Raises:
        IndexLockedError: If another run holds the lock
    """
    with index_lock(ctx.config.lock_path):
        stats = _refresh_records(ctx)

        categories = catalogue_media_library(ctx.profile.categories, ctx.records)
        playlists = import_playlists(ctx.profile.playlists, ctx.records) if ctx.add_playlists else []
        catalogue = Catalogue(categories=categories, playlists=playlists)

        save_catalogue(ctx.config.catalogue_path, catalogue)

    return IndexResult(records=ctx.records, stats=stats, catalogue=catalogue)
