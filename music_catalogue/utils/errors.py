"""Exception types raised by the catalogue engine."""


class CatalogueError(Exception):
    """Base class for all catalogue errors."""


class CacheCorruptionError(CatalogueError):
    """A persisted blob could not be decoded."""


class ExtractionError(CatalogueError):
    """Tags could not be read from a single file."""

    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f"{path}: {reason}")
        self.path = path
        self.reason = reason


class MissingInheritanceTargetError(CatalogueError):
    """A secondary category inherits from a primary category that was not built."""

    def __init__(self, code: str, inherits: str) -> None:
        super().__init__(f"Category '{code}' inherits from unknown category '{inherits}'")
        self.code = code
        self.inherits = inherits


class IndexLockedError(CatalogueError):
    """Another indexing run holds the lock on the cache directory."""


class ProfileError(CatalogueError):
    """The profile definition is invalid."""
