#!/usr/bin/env python3
"""Music Catalogue Tool.

Usage:
  music-catalogue index [--force-refresh] [--skip-scan] [--no-playlists] [--workers=<n>]
                        [--path=<dir>] [--profile=<file>] [--config=<file>] [--verbose]
  music-catalogue scan [--force-refresh] [--workers=<n>] [--path=<dir>] [--profile=<file>]
                       [--config=<file>] [--verbose]
  music-catalogue show [--category=<code>] [--depth=<n>] [--path=<dir>] [--config=<file>]
  music-catalogue cache stats [--path=<dir>] [--config=<file>]
  music-catalogue cache clear [--path=<dir>] [--config=<file>]
  music-catalogue validate [--path=<dir>] [--profile=<file>] [--config=<file>]
  music-catalogue (-h | --help)
  music-catalogue --version

Commands:
  index          Scan the library, rebuild categories and playlists, write the catalogue
  scan           Scan the library and update the record cache only
  show           Print the category trees and playlists of the last catalogue
  cache stats    Show record cache statistics
  cache clear    Delete the record cache (next scan re-reads every file)
  validate       Check the profile and directory layout

Options:
  --force-refresh     Re-read tags of every file, ignoring modification times
  --skip-scan         Build the catalogue from cached records without scanning
  --no-playlists      Do not import playlists
  --workers=<n>       Number of files read concurrently
  --path=<dir>        Music root directory (default: ./Music)
  --profile=<file>    Profile YAML declaring categories and playlists
  --config=<file>     Config YAML file
  --category=<code>   Only show this category
  --depth=<n>         Tree levels to show [default: 2]
  --verbose           Log every file
  -h --help           Show this screen
  --version           Show version

Examples:
  # First run reads every file; later runs only read changed files
  music-catalogue index --profile=profile.yaml

  # Rebuild categories after editing the profile, without touching files
  music-catalogue index --skip-scan --profile=profile.yaml

  # Inspect the result
  music-catalogue show --category=music --depth=3
"""

import sys
import traceback
from collections.abc import Mapping

from docopt import docopt
from loguru import logger

from . import __version__
from .utils.cache_utils import (
    clear_record_cache,
    get_cache_stats,
    load_catalogue,
    load_record_cache,
)
from .utils.catalogue_utils import IndexContext, run_index, run_scan
from .utils.config import Config, load_config
from .utils.errors import CatalogueError
from .utils.file_utils import index_lock
from .utils.metadata_utils import format_duration, human_filesize
from .utils.models import TaxonomyLeaf, TaxonomyNode
from .utils.profile_utils import Profile, load_profile
from .utils.taxonomy_utils import count_members


def configure_logging(verbose: bool = False) -> None:
    """Send library logs to stderr; DEBUG with --verbose, INFO otherwise."""
    logger.remove()
    logger.add(sys.stderr, level="DEBUG" if verbose else "INFO")


def print_scan_stats(stats: dict[str, int]) -> None:
    print(f"  Found: {stats['found']}")
    print(f"  Extracted: {stats['extracted']}")
    print(f"  Fresh: {stats['fresh']}")
    print(f"  Failed: {stats['failed']}")
    print(f"  Removed: {stats['pruned']}")


def cmd_index(
    config: Config,
    profile: Profile,
    force_refresh: bool = False,
    skip_scan: bool = False,
    add_playlists: bool = True,
) -> None:
    """Run a full indexing pass."""
    print("=" * 60)
    print("INDEXING MUSIC LIBRARY")
    print("=" * 60)
    print(f"Base path: {config.base_path}")
    print(f"Cache: {config.cache_dir}")
    print(f"Mode: {'SKIP-SCAN' if skip_scan else 'FORCE-REFRESH' if force_refresh else 'INCREMENTAL'}")
    print(f"Workers: {config.workers}")
    print()

    ctx = IndexContext(
        config=config,
        profile=profile,
        force_refresh=force_refresh,
        skip_scan=skip_scan,
        add_playlists=add_playlists,
    )
    result = run_index(ctx)
    assert result.catalogue is not None

    print("\n" + "=" * 60)
    print("INDEXING COMPLETE")
    print("=" * 60)
    if not skip_scan:
        print_scan_stats(result.stats)
    print(f"  Records: {len(result.records)}")
    print(f"  Categories: {len(result.catalogue.categories)}")
    print(f"  Playlists: {len(result.catalogue.playlists)}")


def cmd_scan(config: Config, profile: Profile, force_refresh: bool = False) -> None:
    """Scan the library and update the record cache."""
    print("=" * 60)
    print("SCANNING MUSIC LIBRARY")
    print("=" * 60)
    print(f"Base path: {config.base_path}")
    print(f"Mode: {'FORCE-REFRESH' if force_refresh else 'INCREMENTAL'}")
    print()

    result = run_scan(IndexContext(config=config, profile=profile, force_refresh=force_refresh))

    print("\n" + "=" * 60)
    print("SCAN COMPLETE")
    print("=" * 60)
    print_scan_stats(result.stats)
    print(f"  Records: {len(result.records)}")


def print_tree(items: Mapping[str, TaxonomyNode], max_depth: int, depth: int = 0) -> None:
    """Print a taxonomy tree down to max_depth levels."""
    indent = "  " * (depth + 1)
    for key, node in items.items():
        if isinstance(node, TaxonomyLeaf):
            print(f"{indent}{key} ({len(node.members)} files)")
        else:
            print(f"{indent}{key}/ ({count_members(node.children)} files)")
            if depth + 1 < max_depth:
                print_tree(node.children, max_depth, depth + 1)


def cmd_show(config: Config, category_code: str | None = None, depth: int = 2) -> None:
    """Print the catalogue snapshot."""
    catalogue = load_catalogue(config.catalogue_path)

    categories = [
        category
        for category in catalogue.categories
        if category_code is None or category.code == category_code
    ]
    if category_code and not categories:
        print(f"Error: No category '{category_code}' in {config.catalogue_path}")
        sys.exit(1)

    for category in categories:
        origin = f" (from {category.inherits})" if category.inherits else ""
        print("=" * 60)
        print(f"{category.name} [{category.code}]{origin}: {count_members(category.items)} files")
        print("=" * 60)
        print_tree(category.items, depth)
        print()

    if category_code is None and catalogue.playlists:
        print("=" * 60)
        print("PLAYLISTS")
        print("=" * 60)
        for playlist in catalogue.playlists:
            missing = f", {playlist.unresolved_count} missing" if playlist.unresolved_count else ""
            print(f"  {playlist.title} ({len(playlist.tracks)} tracks{missing})")


def cmd_cache_stats(config: Config) -> None:
    """Show record cache statistics."""
    records = load_record_cache(config.record_cache_path)
    stats = get_cache_stats(records)
    total_seconds = sum(
        float(record.format_info.get("duration") or 0) for record in records.values()
    )

    print("=" * 60)
    print("RECORD CACHE")
    print("=" * 60)
    print(f"  File: {config.record_cache_path}")
    if config.record_cache_path.exists():
        print(f"  Size: {human_filesize(config.record_cache_path.stat().st_size)}")
    print(f"  Entries: {stats['total_entries']}")
    print(f"  Errors: {stats['error_entries']}")
    print(f"  Total duration: {format_duration(total_seconds)}")

    print("\nBy extension:")
    for ext, count in stats["by_extension"].items():
        print(f"  {ext}: {count}")

    print("\nBy category:")
    for code, count in stats["by_category"].items():
        print(f"  {code}: {count}")


def cmd_cache_clear(config: Config) -> None:
    """Delete the record cache."""
    with index_lock(config.lock_path):
        count = clear_record_cache(config.record_cache_path)
    print(f"Cleared {count} cached records from {config.record_cache_path}")


def cmd_validate(config: Config) -> None:
    """Validate the profile and directory layout."""
    print("=" * 60)
    print("VALIDATING CONFIGURATION")
    print("=" * 60)
    print(f"Base path: {config.base_path}")
    print(f"Profile: {config.profile_file or '(none)'}")
    print()

    issues: list[str] = []

    if not config.base_path.is_dir():
        issues.append(f"Missing music directory: {config.base_path}")

    try:
        profile = load_profile(config.profile_file, config.playlist_store)
    except CatalogueError as e:
        issues.append(str(e))
        profile = Profile(categories=[])

    print("Checking categories...")
    primary_codes = set()
    for category in profile.primary_categories:
        category_dir = config.base_path / category.basedir
        if not category_dir.is_dir():
            issues.append(f"Category '{category.code}': missing directory {category_dir}")
            print(f"  ❌ {category.code}: {category_dir}")
        elif not category.taxonomy:
            print(f"  ⚠️  {category.code}: no taxonomy, category will be skipped")
        else:
            primary_codes.add(category.code)
            print(f"  ✓ {category.code}: {category_dir}")

    for secondary in profile.secondary_categories:
        if secondary.inherits not in primary_codes:
            issues.append(
                f"Category '{secondary.code}' inherits from unknown category '{secondary.inherits}'"
            )
            print(f"  ❌ {secondary.code} -> {secondary.inherits}")
        else:
            print(f"  ✓ {secondary.code} -> {secondary.inherits}")

    if profile.playlists is not None:
        print("\nChecking playlists...")
        index_file = profile.playlists.playlists_dir / "playlists.xml"
        if not index_file.exists():
            issues.append(f"Missing playlist index: {index_file}")
            print(f"  ❌ {index_file}")
        else:
            print(f"  ✓ {index_file}")

    print("\n" + "=" * 60)
    print("VALIDATION SUMMARY")
    print("=" * 60)
    print(f"  Categories: {len(profile.categories)}")
    print(f"  Issues: {len(issues)}")

    if issues:
        print("\nIssues found:")
        for issue in issues:
            print(f"  - {issue}")
        sys.exit(1)
    else:
        print("\n✓ All checks passed!")


def main() -> None:
    """Main CLI entry point."""
    args = docopt(__doc__, version=f"Music Catalogue Tool v{__version__}")

    configure_logging(verbose=bool(args.get("--verbose")))

    config = load_config(
        base_path=args.get("--path"),
        config_file=args.get("--config"),
        workers=args.get("--workers"),
        profile_file=args.get("--profile"),
    )

    force_refresh: bool = bool(args.get("--force-refresh", False))

    try:
        if args.get("index"):
            profile = load_profile(config.profile_file, config.playlist_store)
            cmd_index(
                config,
                profile,
                force_refresh=force_refresh,
                skip_scan=bool(args.get("--skip-scan")),
                add_playlists=not args.get("--no-playlists"),
            )

        elif args.get("scan"):
            profile = load_profile(config.profile_file, config.playlist_store)
            cmd_scan(config, profile, force_refresh=force_refresh)

        elif args.get("show"):
            cmd_show(config, category_code=args.get("--category"), depth=int(args["--depth"]))

        elif args.get("cache"):
            if args.get("stats"):
                cmd_cache_stats(config)
            elif args.get("clear"):
                cmd_cache_clear(config)

        elif args.get("validate"):
            cmd_validate(config)

    except KeyboardInterrupt:
        print("\n\nOperation cancelled by user.")
        sys.exit(1)
    except CatalogueError as e:
        print(f"\nError: {e}")
        sys.exit(1)
    except Exception as e:
        print(f"\nError: {e}")
        traceback.print_exc()
        sys.exit(1)


if __name__ == "__main__":
    main()
