"""Taxonomy tree construction and filtering.

A taxonomy groups records by an ordered list of key specs, one per level.
Each key spec is a ranked list of attribute names: the first attribute with a
value decides the record's group at that level, and records with none of them
land in the UNGROUPED group.

    build_taxonomy(records, [["albumartist", "artists"], ["album"]])

    {
      "Artist": TaxonomyBranch(children={
        "Album": TaxonomyLeaf(members={...}, representative_attributes={...}),
      }),
      "__NONE__": TaxonomyBranch(...),
    }

Sibling groups are ordered by group key. Leaf members are ordered by disc
number, track number, path and title. A leaf's representative attributes are
those of its first member with per-item fields removed.

Functions:
- get_taxonomy_value(): Group value of one record for one key spec
- build_taxonomy(): Build a tree from records
- derive_taxonomy(): Filtered, independent copy of a tree
"""

from collections.abc import Mapping, Sequence
from typing import Any

from .models import (
    ITEM_FIELDS,
    UNGROUPED,
    Record,
    RecordPredicate,
    TaxonomyBranch,
    TaxonomyLeaf,
    TaxonomyNode,
)


def get_taxonomy_value(attributes: Mapping[str, Any], key_spec: Sequence[str]) -> Any:
    """Return the group value for a key spec.

    Sequence values count by their first element.

    Args:
        attributes: Record attributes (tags merged with category attributes)
        key_spec: Attribute names in order of preference

    Returns:
        First non-empty value, or UNGROUPED

    Examples:
        >>> get_taxonomy_value({"artists": ["X", "Y"]}, ["albumartist", "artists"])
        'X'
        >>> get_taxonomy_value({"album": ""}, ["album"])
        '__NONE__'
    """
    for name in key_spec:
        value = attributes.get(name)
        if isinstance(value, (list, tuple)):
            if value and value[0]:
                return value[0]
        elif value:
            return value
    return UNGROUPED


def _position(attributes: Mapping[str, Any], name: str) -> Any:
    position = attributes.get(name)
    if isinstance(position, Mapping):
        return position.get("no")
    if isinstance(position, (int, float)) and not isinstance(position, bool):
        return position
    return None


def _ascending(value: Any) -> tuple[bool, Any]:
    # Missing values sort after present ones
    return (value is None, value if value is not None else 0)


def leaf_sort_key(item: tuple[str, Record]) -> tuple[Any, ...]:
    """Sort key for leaf members: disc no, track no, path, title."""
    path, record = item
    attributes = record.attributes
    title = attributes.get("title")
    return (
        _ascending(_position(attributes, "disk")),
        _ascending(_position(attributes, "track")),
        path,
        (title is None, str(title) if title is not None else ""),
    )


def sort_leaf_members(members: Mapping[str, Record]) -> dict[str, Record]:
    """Order the files in a leaf group."""
    return dict(sorted(members.items(), key=leaf_sort_key))


def sort_taxonomy_items(items: Mapping[str, TaxonomyNode]) -> dict[str, TaxonomyNode]:
    """Order sibling groups by their group key."""
    return dict(sorted(items.items(), key=lambda item: item[0]))


def representative_attributes(record: Record) -> dict[str, Any]:
    """Group-level attributes taken from a leaf's first member."""
    return {
        key: value
        for key, value in record.grouping_attributes().items()
        if key not in ITEM_FIELDS
    }


def build_taxonomy(
    records: Mapping[str, Record],
    key_specs: Sequence[Sequence[str]],
) -> dict[str, TaxonomyNode]:
    """Group records into a taxonomy tree.

    Recurses once per remaining key spec. The inputs are not modified; leaves
    hold references to the (frozen) records.

    Args:
        records: Mapping of path to Record
        key_specs: One key spec per level, outermost first

    Returns:
        Mapping of group key to node, ordered by group key

    Raises:
        ValueError: If key_specs is empty
    """
    if not key_specs:
        raise ValueError("At least one key spec is required to build a taxonomy")

    key_spec = list(key_specs[0])
    remaining = key_specs[1:]

    groups: dict[str, tuple[Any, dict[str, Record]]] = {}
    for path, record in records.items():
        value = get_taxonomy_value(record.grouping_attributes(), key_spec)
        groups.setdefault(str(value), (value, {}))[1][path] = record

    items: dict[str, TaxonomyNode] = {}
    for group_key, (value, members) in groups.items():
        if remaining:
            items[group_key] = TaxonomyBranch(
                key_spec=key_spec,
                group_value=value,
                is_ungrouped=value == UNGROUPED,
                children=build_taxonomy(members, remaining),
            )
        else:
            ordered = sort_leaf_members(members)
            first = next(iter(ordered.values()))
            items[group_key] = TaxonomyLeaf(
                key_spec=key_spec,
                group_value=value,
                is_ungrouped=value == UNGROUPED,
                members=ordered,
                representative_attributes=representative_attributes(first),
            )

    return sort_taxonomy_items(items)


def copy_taxonomy(items: Mapping[str, TaxonomyNode]) -> dict[str, TaxonomyNode]:
    """Return a deep copy of a tree that shares nothing with the original."""
    return {key: node.model_copy(deep=True) for key, node in items.items()}


def filter_taxonomy(
    items: Mapping[str, TaxonomyNode],
    predicate: RecordPredicate,
) -> dict[str, TaxonomyNode]:
    """Filter the records in a tree.

    Recurses into branches until it reaches leaves, keeps the members that
    satisfy the predicate, and drops any leaf or branch left empty.

    Args:
        items: Tree to filter (not modified)
        predicate: Returns True for records to keep

    Returns:
        New tree without empty nodes
    """
    filtered: dict[str, TaxonomyNode] = {}

    for key, node in items.items():
        if isinstance(node, TaxonomyLeaf):
            members = {path: record for path, record in node.members.items() if predicate(record)}
            if members:
                filtered[key] = node.model_copy(update={"members": members})
        else:
            children = filter_taxonomy(node.children, predicate)
            if children:
                filtered[key] = node.model_copy(update={"children": children})

    return filtered


def derive_taxonomy(
    items: Mapping[str, TaxonomyNode],
    predicate: RecordPredicate,
) -> dict[str, TaxonomyNode]:
    """Derive a secondary tree from a primary one.

    Args:
        items: Primary tree (not modified, shares nothing with the result)
        predicate: Returns True for records to keep

    Returns:
        Filtered copy; empty if the predicate rejects every record
    """
    return filter_taxonomy(copy_taxonomy(items), predicate)


def count_members(items: Mapping[str, TaxonomyNode]) -> int:
    """Count the records in a tree."""
    total = 0
    for node in items.values():
        if isinstance(node, TaxonomyLeaf):
            total += len(node.members)
        else:
            total += count_members(node.children)
    return total
