"""Data models for the music catalogue.

Records and taxonomy nodes are frozen. A scan replaces a record instead of
mutating it, and derived trees are rebuilt from copies, so a tree handed out
by the taxonomy builder never changes underneath its reader.

Taxonomy nodes are a tagged variant: ``TaxonomyBranch`` holds child groups,
``TaxonomyLeaf`` holds member records. The ``kind`` field is the tag and is
what lets a persisted catalogue load back into the same node types.
"""

from collections.abc import Callable
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field

# Group value for records where no alternative of a key spec has a value
UNGROUPED = "__NONE__"

# Per-item attributes dropped from a leaf's representative attributes
ITEM_FIELDS = ("title", "track", "disk")


# ============================================================================
# Records
# ============================================================================


class Record(BaseModel):
    """One indexed audio file."""

    model_config = ConfigDict(frozen=True)

    path: str = Field(..., description="Path relative to the music root, '/'-separated")
    attributes: dict[str, Any] = Field(default_factory=dict, description="Extracted tags")
    category_attributes: dict[str, Any] = Field(
        default_factory=dict, description="Extra attributes requested by the owning category"
    )
    format_info: dict[str, Any] = Field(default_factory=dict, description="Codec/stream info")
    category_code: str | None = Field(None, description="Primary category that claims this file")
    mtime: float | None = Field(None, description="File modification time at last extraction")
    scanned_at: float | None = Field(None, description="Unix time of last extraction")
    ext: str | None = Field(None, description="Lowercase extension without the dot")
    error: str | None = Field(None, description="Extraction failure; set only on error records")

    @property
    def is_error(self) -> bool:
        return self.error is not None

    def grouping_attributes(self) -> dict[str, Any]:
        """Tags merged with category attributes, as seen by the taxonomy builder."""
        return {**self.attributes, **self.category_attributes}


RecordPredicate = Callable[[Record], bool]


# ============================================================================
# Categories
# ============================================================================


class PrimaryCategory(BaseModel):
    """A category that claims every file under one top-level directory."""

    code: str
    name: str
    basedir: str
    taxonomy: list[list[str]] = Field(default_factory=list)
    sort: str | None = None
    category_tags: dict[str, list[str]] = Field(default_factory=dict)


class SecondaryCategory(BaseModel):
    """A filtered view of a primary category's tree."""

    code: str
    name: str
    inherits: str
    predicate: RecordPredicate
    sort: str | None = None


Category = PrimaryCategory | SecondaryCategory


# ============================================================================
# Taxonomy trees
# ============================================================================


class TaxonomyLeaf(BaseModel):
    """Last grouping level; holds the member records in display order."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["leaf"] = "leaf"
    key_spec: list[str]
    group_value: Any
    is_ungrouped: bool = False
    members: dict[str, Record]
    representative_attributes: dict[str, Any] = Field(default_factory=dict)

    @property
    def is_leaf(self) -> bool:
        return True


class TaxonomyBranch(BaseModel):
    """Intermediate grouping level."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["branch"] = "branch"
    key_spec: list[str]
    group_value: Any
    is_ungrouped: bool = False
    children: dict[str, "TaxonomyNode"]

    @property
    def is_leaf(self) -> bool:
        return False


TaxonomyNode = Annotated[TaxonomyBranch | TaxonomyLeaf, Field(discriminator="kind")]

TaxonomyBranch.model_rebuild()


class CategoryTree(BaseModel):
    """A category definition together with its built tree."""

    type: Literal["primary", "secondary"]
    code: str
    name: str
    inherits: str | None = None
    taxonomy: list[list[str]] = Field(default_factory=list)
    sort: str | None = None
    items: dict[str, TaxonomyNode] = Field(default_factory=dict)


# ============================================================================
# Playlists
# ============================================================================


class PlaylistDefinition(BaseModel):
    """A playlist as read from the playlist store, before resolution."""

    id: str
    title: str
    file: str
    tracks: list[str] = Field(default_factory=list, description="Normalized record paths")


class PlaylistTrack(BaseModel):
    """One playlist entry; ``record`` is None when the path is not catalogued."""

    path: str
    record: Record | None = None

    @property
    def resolved(self) -> bool:
        return self.record is not None


class Playlist(BaseModel):
    id: str
    title: str
    file: str
    tracks: list[PlaylistTrack] = Field(default_factory=list)

    @property
    def unresolved_count(self) -> int:
        return sum(1 for track in self.tracks if not track.resolved)


class Catalogue(BaseModel):
    """The persisted snapshot: every category tree plus resolved playlists."""

    categories: list[CategoryTree] = Field(default_factory=list)
    playlists: list[Playlist] = Field(default_factory=list)
