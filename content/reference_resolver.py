"""
Rewrites identity-based references inside ContentNode trees.

Export direction turns store identities into locations so snapshots stay
portable between stores. Import direction turns locations back into the
identities of the target store.
"""

import logging
from dataclasses import dataclass, field
from typing import Iterable, List, Optional

from models import DOCBASE_PROPERTY, ROOT_NODE_UUID, ContentNode, ContentProperty
from store.base_store import ContentStore, ItemNotFoundError

logger = logging.getLogger('content_exim.content.reference_resolver')


@dataclass
class ResolutionReport:
    """What one resolution pass over a tree did."""

    resolved: int = 0
    dangling: List[str] = field(default_factory=list)
    referred_paths: List[str] = field(default_factory=list)

    def merge(self, other: 'ResolutionReport') -> None:
        self.resolved += other.resolved
        self.dangling.extend(other.dangling)
        for path in other.referred_paths:
            if path not in self.referred_paths:
                self.referred_paths.append(path)


class ReferenceResolver:
    """
    Resolves reference properties between identities and locations.

    The conventional 'sys:docbase' property is always covered; additional
    domain-specific property names are matched independently.
    """

    def __init__(self, store: ContentStore, extra_property_names: Optional[Iterable[str]] = None):
        """
        Initialize the resolver.

        Args:
            store: Store session used to look up identities and paths
            extra_property_names: Additional reference property names
        """
        self.store = store
        self.property_names: List[str] = [DOCBASE_PROPERTY]
        for name in extra_property_names or []:
            if name and name not in self.property_names:
                self.property_names.append(name)

    def _reference_properties(self, node: ContentNode) -> List[ContentProperty]:
        found = []
        seen = set()
        for name in self.property_names:
            for prop in node.query_properties(f"//@{name}"):
                if id(prop) not in seen:
                    seen.add(id(prop))
                    found.append(prop)
        return found

    def resolve_identities_to_paths(self, node: ContentNode) -> ResolutionReport:
        """
        Replace identity values of reference properties with current store paths.

        Dangling identities and the root identity are left unchanged.

        Args:
            node: Tree to rewrite in place

        Returns:
            Report with the resolved count, dangling identities and referred paths
        """
        report = ResolutionReport()

        for prop in self._reference_properties(node):
            for index, value in enumerate(prop.values):
                if not isinstance(value, str):
                    continue
                identifier = value.strip()
                if not identifier or identifier == ROOT_NODE_UUID or identifier.startswith('/'):
                    continue

                try:
                    path = self.store.get_path_by_identifier(identifier)
                except ItemNotFoundError:
                    logger.debug(f"Dangling reference in {prop.name}: {identifier}")
                    report.dangling.append(identifier)
                    continue

                prop.values[index] = path
                report.resolved += 1
                if path not in report.referred_paths:
                    report.referred_paths.append(path)

        return report

    def resolve_paths_to_identities(self, node: ContentNode) -> ResolutionReport:
        """
        Replace location values of reference properties with store identities.

        Values naming a location with no store item are left unchanged and
        reported as dangling, so a later pass can retry them.

        Args:
            node: Tree to rewrite in place

        Returns:
            Report with the resolved count and still unresolved locations
        """
        report = ResolutionReport()

        for prop in self._reference_properties(node):
            for index, value in enumerate(prop.values):
                if not isinstance(value, str) or not value.startswith('/'):
                    continue

                try:
                    target = self.store.get_node(value)
                except ItemNotFoundError:
                    report.dangling.append(value)
                    continue

                identifier = self.store.identifier_of(target)
                if not identifier:
                    report.dangling.append(value)
                    continue

                prop.values[index] = identifier
                report.resolved += 1
                report.referred_paths.append(value)

        return report


__all__ = ['ReferenceResolver', 'ResolutionReport']
