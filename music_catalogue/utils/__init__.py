"""Utility modules for catalogue indexing."""

from .cache_utils import (
    get_cache_stats,
    is_fresh,
    load_catalogue,
    load_record_cache,
    save_catalogue,
    save_record_cache,
)
from .catalogue_utils import (
    IndexContext,
    IndexResult,
    catalogue_media_library,
    run_index,
    run_scan,
)
from .config import Config, load_config
from .errors import (
    CacheCorruptionError,
    CatalogueError,
    ExtractionError,
    IndexLockedError,
    MissingInheritanceTargetError,
    ProfileError,
)
from .models import (
    UNGROUPED,
    Catalogue,
    CategoryTree,
    Playlist,
    PrimaryCategory,
    Record,
    SecondaryCategory,
    TaxonomyBranch,
    TaxonomyLeaf,
)
from .playlist_utils import PlaylistProfile, find_playlists, resolve_playlists
from .profile_utils import Profile, load_profile
from .scan_utils import scan_library
from .taxonomy_utils import build_taxonomy, derive_taxonomy, get_taxonomy_value

__all__ = [
    "UNGROUPED",
    "CacheCorruptionError",
    "Catalogue",
    "CatalogueError",
    "CategoryTree",
    "Config",
    "ExtractionError",
    "IndexContext",
    "IndexLockedError",
    "IndexResult",
    "MissingInheritanceTargetError",
    "Playlist",
    "PlaylistProfile",
    "PrimaryCategory",
    "Profile",
    "ProfileError",
    "Record",
    "SecondaryCategory",
    "TaxonomyBranch",
    "TaxonomyLeaf",
    "build_taxonomy",
    "catalogue_media_library",
    "derive_taxonomy",
    "find_playlists",
    "get_cache_stats",
    "get_taxonomy_value",
    "is_fresh",
    "load_catalogue",
    "load_config",
    "load_profile",
    "load_record_cache",
    "resolve_playlists",
    "run_index",
    "run_scan",
    "save_catalogue",
    "save_record_cache",
    "scan_library",
]
