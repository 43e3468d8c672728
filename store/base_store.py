"""Abstract content store session and store errors."""

from abc import ABC, abstractmethod
from typing import Iterator, List, Optional, Tuple

from models import ContentNode, UUID_PROPERTY


class StoreError(Exception):
    """Base exception for content store failures."""
    pass


class ItemNotFoundError(StoreError):
    """Raised when no node exists at a path or for an identifier."""
    pass


class ContentStore(ABC):
    """
    One session on a hierarchical content store.

    A session is owned by a single run. Changes accumulate until save() and
    are discarded by refresh(keep_changes=False).
    """

    @abstractmethod
    def get_node(self, path: str) -> ContentNode:
        """
        Get the node at an absolute path.

        Raises:
            ItemNotFoundError: If no node exists at the path
        """
        pass

    def node_exists(self, path: str) -> bool:
        try:
            self.get_node(path)
            return True
        except ItemNotFoundError:
            return False

    @abstractmethod
    def get_path_by_identifier(self, identifier: str) -> str:
        """
        Resolve a node identity to its current path.

        Raises:
            ItemNotFoundError: If no node carries the identity
        """
        pass

    def get_node_by_identifier(self, identifier: str) -> ContentNode:
        return self.get_node(self.get_path_by_identifier(identifier))

    def identifier_of(self, node: ContentNode) -> Optional[str]:
        """Identity of a node, None for nodes without one."""
        return node.get_property_value(UUID_PROPERTY)

    @abstractmethod
    def add_node(self, parent_path: str, name: str, primary_type: str) -> ContentNode:
        """Create a child node with a fresh identity under an existing parent."""
        pass

    @abstractmethod
    def remove_node(self, path: str) -> None:
        """Remove the node at a path with its subtree."""
        pass

    @abstractmethod
    def copy_node(self, source_path: str, target_parent_path: str, name: str) -> ContentNode:
        """Deep-copy a subtree under a new parent, assigning fresh identities."""
        pass

    @abstractmethod
    def walk(self, path: str = '/') -> Iterator[Tuple[str, ContentNode]]:
        """Yield (absolute path, node) pairs below and including a path."""
        pass

    @abstractmethod
    def query(self, statement: str) -> List[str]:
        """Run a store query and return matching item paths."""
        pass

    @abstractmethod
    def save(self) -> None:
        """Commit all pending changes."""
        pass

    @abstractmethod
    def refresh(self, keep_changes: bool = False) -> None:
        """Reload session state, discarding pending changes unless kept."""
        pass

    @abstractmethod
    def has_pending_changes(self) -> bool:
        pass


__all__ = ['StoreError', 'ItemNotFoundError', 'ContentStore']
