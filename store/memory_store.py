"""
In-memory content store session.

Holds the whole repository as one ContentNode tree. Every node created by the
store carries its identity in the 'sys:uuid' property. The tree can be dumped
to and loaded from a JSON file, which is how the command line keeps a
repository between runs.
"""

import copy
import logging
import uuid
from fnmatch import fnmatchcase
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Tuple, Union

from content.serializers import JsonContentSerializer
from models import (
    HANDLE_TYPE,
    ROOT_NODE_UUID,
    ROOT_TYPE,
    UUID_PROPERTY,
    ContentNode,
    PropertyType,
    split_path,
)
from store.base_store import ContentStore, ItemNotFoundError, StoreError

logger = logging.getLogger('content_exim.store.memory_store')


def _new_root() -> ContentNode:
    root = ContentNode(name='', primary_type=ROOT_TYPE)
    root.set_property(UUID_PROPERTY, PropertyType.STRING, ROOT_NODE_UUID)
    return root


def _join(base: str, relative: str) -> str:
    if not relative:
        return base
    return f"{base.rstrip('/')}/{relative}"


class InMemoryContentStore(ContentStore):
    """Content store session backed by an in-memory tree."""

    def __init__(self, root: Optional[ContentNode] = None, persist_path: Optional[Union[str, Path]] = None):
        """
        Initialize the store.

        Args:
            root: Existing repository tree (a fresh root is created when omitted)
            persist_path: Optional JSON file written on every save()
        """
        self.root = root if root is not None else _new_root()
        self.persist_path = Path(persist_path) if persist_path else None
        self.save_count = 0
        self._saved_root = copy.deepcopy(self.root)
        self._paths_by_id: Dict[str, str] = {}

    @classmethod
    def load(cls, file_path: Union[str, Path], persist: bool = False) -> 'InMemoryContentStore':
        """
        Load a repository dumped with dump().

        Args:
            file_path: JSON repository file
            persist: Write the file back on every save()
        """
        root = JsonContentSerializer().read(file_path)
        logger.info(f"Loaded repository from {file_path}")
        return cls(root=root, persist_path=file_path if persist else None)

    def dump(self, file_path: Union[str, Path]) -> Path:
        """Write the committed repository tree to a JSON file."""
        return JsonContentSerializer().write(self._saved_root, file_path)

    def get_node(self, path: str) -> ContentNode:
        if not path.startswith('/'):
            raise ItemNotFoundError(f"Not an absolute path: {path}")

        node = self.root
        for segment in [s for s in path.split('/') if s]:
            child = node.get_node(segment)
            if child is None:
                raise ItemNotFoundError(f"No node at path: {path}")
            node = child
        return node

    def get_path_by_identifier(self, identifier: str) -> str:
        cached = self._paths_by_id.get(identifier)
        if cached is not None:
            try:
                if self.identifier_of(self.get_node(cached)) == identifier:
                    return cached
            except ItemNotFoundError:
                pass
            del self._paths_by_id[identifier]

        for path, node in self.walk('/'):
            if self.identifier_of(node) == identifier:
                self._paths_by_id[identifier] = path
                return path

        raise ItemNotFoundError(f"No node with identifier: {identifier}")

    def add_node(self, parent_path: str, name: str, primary_type: str) -> ContentNode:
        if not name or '/' in name:
            raise StoreError(f"Invalid node name: {name!r}")

        parent = self.get_node(parent_path)
        node = ContentNode(name=name, primary_type=primary_type)
        identifier = str(uuid.uuid4())
        node.set_property(UUID_PROPERTY, PropertyType.STRING, identifier)
        parent.add_node(node)

        siblings = len(parent.get_nodes(name))
        path = _join(parent_path, name if siblings == 1 else f"{name}[{siblings}]")
        self._paths_by_id[identifier] = path
        return node

    def remove_node(self, path: str) -> None:
        parent_path, name = split_path(path)
        if not name:
            raise StoreError("The root node cannot be removed")
        parent = self.get_node(parent_path)
        node = parent.get_node(name)
        if node is None:
            raise ItemNotFoundError(f"No node at path: {path}")
        parent.remove_node(node)

    def copy_node(self, source_path: str, target_parent_path: str, name: str) -> ContentNode:
        source = self.get_node(source_path)
        target_parent = self.get_node(target_parent_path)

        duplicate = source.deep_copy()
        duplicate.name = name
        for _, node in duplicate.walk():
            if node.has_property(UUID_PROPERTY):
                node.set_property(UUID_PROPERTY, PropertyType.STRING, str(uuid.uuid4()))

        target_parent.add_node(duplicate)
        return duplicate

    def walk(self, path: str = '/') -> Iterator[Tuple[str, ContentNode]]:
        start = self.get_node(path)
        base = '/' if path == '/' else path.rstrip('/')
        for relative, node in start.walk():
            yield _join(base, relative) if relative else base, node

    def query(self, statement: str) -> List[str]:
        """
        Return item (handle) paths matching a path glob, e.g. '/content/documents/news/*'.
        """
        return [
            path for path, node in self.walk('/')
            if node.primary_type == HANDLE_TYPE and fnmatchcase(path, statement)
        ]

    def save(self) -> None:
        self._saved_root = copy.deepcopy(self.root)
        self.save_count += 1
        if self.persist_path:
            self.dump(self.persist_path)
        logger.debug(f"Session saved (#{self.save_count})")

    def refresh(self, keep_changes: bool = False) -> None:
        if not keep_changes:
            self.root = copy.deepcopy(self._saved_root)
            self._paths_by_id.clear()

    def has_pending_changes(self) -> bool:
        return self.root != self._saved_root


__all__ = ['InMemoryContentStore']
