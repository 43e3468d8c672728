"""Workflow collaborator interface used by the import and export pipelines."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Iterable, Optional, Tuple

from models import ContentNode, FolderTypeHints
from store.base_store import ContentStore, StoreError


class DocumentManagerError(StoreError):
    """Raised when a workflow operation cannot be performed."""
    pass


@dataclass(frozen=True)
class ItemRef:
    """Location and identity of a content item or folder."""

    path: str
    identifier: Optional[str] = None


@dataclass
class EditableRef:
    """A checked-out, mutable variant of an item; must be committed or disposed."""

    item: ItemRef
    node: ContentNode


class DocumentManager(ABC):
    """
    Performs lifecycle operations on items of a content store.

    Every operation may raise DocumentManagerError (a StoreError).
    """

    def __init__(self, store: ContentStore):
        self.store = store

    @abstractmethod
    def locate(self, path: str) -> Optional[ItemRef]:
        """Locate an item or folder, None when nothing exists at the path."""
        pass

    @abstractmethod
    def find_variant(self, item: ItemRef, states: Iterable[str]) -> Optional[Tuple[str, ContentNode]]:
        """Return (state, variant node) for the first state present, in the given order."""
        pass

    def get_variant(self, item: ItemRef, state: str) -> Optional[ContentNode]:
        found = self.find_variant(item, (state,))
        return found[1] if found else None

    @abstractmethod
    def create_folder(self, path: str, type_hints: Optional[FolderTypeHints] = None) -> ItemRef:
        """Create a folder and any missing ancestors; existing folders are kept."""
        pass

    @abstractmethod
    def create_item(
        self,
        folder_path: str,
        primary_type: str,
        name: str,
        locale: Optional[str] = None,
        display_name: Optional[str] = None
    ) -> ItemRef:
        """Create a new item with one unpublished variant inside an existing folder."""
        pass

    @abstractmethod
    def obtain_editable(self, item: ItemRef) -> EditableRef:
        """Check out an editable draft of an item."""
        pass

    @abstractmethod
    def commit(self, editable: EditableRef) -> ItemRef:
        """Write the draft back as the unpublished variant and release it."""
        pass

    @abstractmethod
    def dispose(self, editable: EditableRef) -> None:
        """Release the draft without keeping its changes."""
        pass

    @abstractmethod
    def publish(self, item: ItemRef) -> None:
        pass

    @abstractmethod
    def depublish(self, item: ItemRef) -> None:
        pass

    @abstractmethod
    def copy(self, source_path: str, target_folder_path: str, target_name: str) -> ItemRef:
        pass

    @abstractmethod
    def translate(
        self,
        source_path: str,
        locale: str,
        target_folder_path: str,
        target_name: Optional[str] = None
    ) -> ItemRef:
        """Copy an item into a folder as its translation for a locale."""
        pass


__all__ = ['DocumentManagerError', 'ItemRef', 'EditableRef', 'DocumentManager']
