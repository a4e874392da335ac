"""Incremental music catalogue: scan, group into taxonomies, resolve playlists."""

__version__ = "1.0.0"
