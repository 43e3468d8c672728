"""Glob-based inclusion policy for properties and child nodes of a content tree."""

from fnmatch import fnmatchcase
from typing import Iterable, List, Sequence, Tuple

from models import (
    AVAILABILITY_PROPERTY,
    HOLDER_PROPERTY,
    STATE_PROPERTY,
    UUID_PROPERTY,
)


EXPORT_DOCUMENT_PROPERTY_EXCLUDES = (
    UUID_PROPERTY,
    'wf:*',
    'sys:paths',
    'sys:related',
    HOLDER_PROPERTY,
    STATE_PROPERTY,
    'sys:stateSummary',
)

EXPORT_BINARY_PROPERTY_EXCLUDES = (
    UUID_PROPERTY,
    'wf:*',
    AVAILABILITY_PROPERTY,
    'sys:paths',
    'sys:text',
    HOLDER_PROPERTY,
    STATE_PROPERTY,
)

IMPORT_EXTRA_PROPERTY_EXCLUDES = (
    AVAILABILITY_PROPERTY,
    'meta:*',
)


class ItemFilter:
    """
    Decides whether a property or child node survives mapping or binding.

    Paths are relative to the item root, e.g. 'sys:uuid' or 'body/sys:uuid'.
    A pattern excludes a path when it glob-matches the whole path or its last
    segment; anything not excluded is included.
    """

    def __init__(
        self,
        property_excludes: Iterable[str] = (),
        node_excludes: Iterable[str] = ()
    ):
        self.property_excludes: Tuple[str, ...] = tuple(property_excludes)
        self.node_excludes: Tuple[str, ...] = tuple(node_excludes)

    @staticmethod
    def _excluded(path: str, patterns: Sequence[str]) -> bool:
        name = path.rsplit('/', 1)[-1]
        for pattern in patterns:
            if fnmatchcase(path, pattern) or fnmatchcase(name, pattern):
                return True
        return False

    def accept_property(self, path: str) -> bool:
        return not self._excluded(path, self.property_excludes)

    def accept_node(self, path: str) -> bool:
        return not self._excluded(path, self.node_excludes)

    def excluding(self, property_patterns: Iterable[str] = (), node_patterns: Iterable[str] = ()) -> 'ItemFilter':
        """Derive a filter with additional exclude patterns."""
        return ItemFilter(
            _merge(self.property_excludes, property_patterns),
            _merge(self.node_excludes, node_patterns)
        )

    def __repr__(self) -> str:
        return (
            f"ItemFilter(property_excludes={list(self.property_excludes)}, "
            f"node_excludes={list(self.node_excludes)})"
        )


def _merge(existing: Sequence[str], extra: Iterable[str]) -> List[str]:
    merged = list(existing)
    for pattern in extra:
        if pattern not in merged:
            merged.append(pattern)
    return merged


def export_document_filter() -> ItemFilter:
    """Filter stripping store-managed and workflow metadata from documents."""
    return ItemFilter(EXPORT_DOCUMENT_PROPERTY_EXCLUDES)


def export_binary_filter() -> ItemFilter:
    """Filter stripping store-managed metadata and extracted text from binaries."""
    return ItemFilter(EXPORT_BINARY_PROPERTY_EXCLUDES)


def import_filter() -> ItemFilter:
    """Filter keeping store-managed and traceability metadata out of the store."""
    return ItemFilter(
        _merge(_merge(EXPORT_DOCUMENT_PROPERTY_EXCLUDES, EXPORT_BINARY_PROPERTY_EXCLUDES),
               IMPORT_EXTRA_PROPERTY_EXCLUDES)
    )


__all__ = [
    'ItemFilter',
    'export_document_filter',
    'export_binary_filter',
    'import_filter'
]
