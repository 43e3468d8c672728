"""Collects the item paths an export run will process, per category."""

import logging
from typing import List, Optional

from models import (
    BINARY_ROOTS,
    CATEGORY_BINARIES,
    DOCUMENTS_ROOT,
    HANDLE_TYPE,
    ItemSelector,
    category_of_path,
)
from store.base_store import ContentStore, ItemNotFoundError

logger = logging.getLogger('content_exim.exporters.item_collector')


class ItemCollector:
    """Resolves an ItemSelector into an ordered, duplicate-free list of item paths."""

    def __init__(self, store: ContentStore, logger: Optional[logging.Logger] = None):
        self.store = store
        self.logger = logger or logging.getLogger('content_exim.exporters.item_collector')

    def collect(self, selector: ItemSelector, category: str) -> List[str]:
        """
        Collect item paths for one category.

        Explicit paths come first (a folder path contributes every item below
        it), then query results. A selector with only include patterns scans
        the category roots. Include/exclude patterns and the category roots
        filter the combined list.

        Args:
            selector: Selection for the category
            category: 'documents' or 'binaries'

        Returns:
            Item (handle) paths in selection order
        """
        candidates: List[str] = []

        for path in selector.paths:
            candidates.extend(self._items_at(path))

        for statement in selector.queries:
            try:
                candidates.extend(self.store.query(statement))
            except ValueError as e:
                self.logger.warning(f"Skipping invalid query '{statement}': {e}")

        if not selector.paths and not selector.queries and selector.includes:
            roots = BINARY_ROOTS if category == CATEGORY_BINARIES else (DOCUMENTS_ROOT,)
            for root in roots:
                candidates.extend(self._items_at(root, warn_missing=False))

        collected = []
        seen = set()
        for path in candidates:
            if path in seen:
                continue
            seen.add(path)
            if category_of_path(path) != category:
                self.logger.debug(f"Skipping {path}: not a {category} path")
                continue
            if not selector.accepts(path):
                continue
            collected.append(path)

        self.logger.info(f"Collected {len(collected)} {category}")
        return collected

    def _items_at(self, path: str, warn_missing: bool = True) -> List[str]:
        try:
            return [
                item_path for item_path, node in self.store.walk(path)
                if node.primary_type == HANDLE_TYPE
            ]
        except ItemNotFoundError:
            if warn_missing:
                self.logger.warning(f"Nothing found at {path}")
            return []
