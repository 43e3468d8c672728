"""
Workflow document manager over a ContentStore.

Items are handle nodes ('sys:handle') whose children are the variants of the
item, all named like the handle and told apart by 'sys:state':

- 'unpublished': the current content, with availability ['preview']
- 'published': the live copy, with availability ['live']
- 'draft': a checked-out editing copy held by one user
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Iterable, Optional, Tuple

from models import (
    AVAILABILITY_PROPERTY,
    DISPLAY_NAME_PROPERTY,
    DRAFT,
    FOLDER_TYPE,
    FOLDER_TYPES_PROPERTY,
    GALLERY_TYPES_PROPERTY,
    HANDLE_TYPE,
    HOLDER_PROPERTY,
    LOCALE_PROPERTY,
    PUBLISHED,
    STATE_PROPERTY,
    UNPUBLISHED,
    UUID_PROPERTY,
    ContentNode,
    FolderTypeHints,
    PropertyType,
    split_path,
)
from store.base_store import ContentStore, ItemNotFoundError
from store.document_manager import DocumentManager, DocumentManagerError, EditableRef, ItemRef

logger = logging.getLogger('content_exim.store.workflow_document_manager')

_VARIANT_BOOKKEEPING = (UUID_PROPERTY, STATE_PROPERTY, HOLDER_PROPERTY, AVAILABILITY_PROPERTY)


class WorkflowDocumentManager(DocumentManager):
    """Document manager implementing the draft/unpublished/published workflow."""

    def __init__(self, store: ContentStore, username: str = 'exim'):
        super().__init__(store)
        self.username = username

    def locate(self, path: str) -> Optional[ItemRef]:
        try:
            node = self.store.get_node(path)
        except ItemNotFoundError:
            return None
        return ItemRef(path=path, identifier=self.store.identifier_of(node))

    def _get_handle(self, item: ItemRef) -> ContentNode:
        try:
            handle = self.store.get_node(item.path)
        except ItemNotFoundError as e:
            raise DocumentManagerError(f"Item not found: {item.path}") from e
        if handle.primary_type != HANDLE_TYPE:
            raise DocumentManagerError(f"Not a content item: {item.path}")
        return handle

    @staticmethod
    def _variants(handle: ContentNode):
        for child in handle.nodes:
            if child.name == handle.name and child.has_property(STATE_PROPERTY):
                yield child.get_property_value(STATE_PROPERTY), child

    def find_variant(self, item: ItemRef, states: Iterable[str]) -> Optional[Tuple[str, ContentNode]]:
        handle = self._get_handle(item)
        by_state = {}
        for state, variant in self._variants(handle):
            by_state.setdefault(state, variant)
        for state in states:
            if state in by_state:
                return state, by_state[state]
        return None

    def create_folder(self, path: str, type_hints: Optional[FolderTypeHints] = None) -> ItemRef:
        hints = type_hints or FolderTypeHints()
        current = ''

        for segment in [s for s in path.split('/') if s]:
            parent_path = current or '/'
            current = f"{current}/{segment}"
            try:
                node = self.store.get_node(current)
            except ItemNotFoundError:
                node = self.store.add_node(parent_path, segment, hints.primary_type or FOLDER_TYPE)
                if hints.folder_types:
                    node.set_property(FOLDER_TYPES_PROPERTY, PropertyType.STRING, list(hints.folder_types))
                if hints.gallery_types:
                    node.set_property(GALLERY_TYPES_PROPERTY, PropertyType.STRING, list(hints.gallery_types))
                logger.debug(f"Created folder {current} ({node.primary_type})")
                continue

            if node.primary_type == HANDLE_TYPE:
                raise DocumentManagerError(f"Cannot create folder below content item: {current}")

        return self.locate(current or '/')

    def create_item(
        self,
        folder_path: str,
        primary_type: str,
        name: str,
        locale: Optional[str] = None,
        display_name: Optional[str] = None
    ) -> ItemRef:
        try:
            folder = self.store.get_node(folder_path)
        except ItemNotFoundError as e:
            raise DocumentManagerError(f"Folder not found: {folder_path}") from e
        if folder.primary_type == HANDLE_TYPE:
            raise DocumentManagerError(f"Not a folder: {folder_path}")

        item_path = f"{folder_path.rstrip('/')}/{name}"
        if self.store.node_exists(item_path):
            raise DocumentManagerError(f"Item already exists: {item_path}")

        handle = self.store.add_node(folder_path, name, HANDLE_TYPE)
        if display_name:
            handle.set_property(DISPLAY_NAME_PROPERTY, PropertyType.STRING, display_name)

        variant = self.store.add_node(item_path, name, primary_type)
        variant.set_property(STATE_PROPERTY, PropertyType.STRING, UNPUBLISHED)
        variant.set_property(AVAILABILITY_PROPERTY, PropertyType.STRING, ['preview'])
        if locale:
            variant.set_property(LOCALE_PROPERTY, PropertyType.STRING, locale)

        logger.debug(f"Created item {item_path} ({primary_type})")
        return ItemRef(path=item_path, identifier=self.store.identifier_of(handle))

    def obtain_editable(self, item: ItemRef) -> EditableRef:
        handle = self._get_handle(item)
        existing = self.find_variant(item, (DRAFT,))
        if existing is not None:
            holder = existing[1].get_property_value(HOLDER_PROPERTY)
            raise DocumentManagerError(f"Item {item.path} is already being edited by {holder}")

        source = self.find_variant(item, (UNPUBLISHED, PUBLISHED))
        if source is None:
            raise DocumentManagerError(f"Item {item.path} has no variant to edit")

        draft = self._clone_variant(source[1])
        draft.set_property(STATE_PROPERTY, PropertyType.STRING, DRAFT)
        draft.set_property(HOLDER_PROPERTY, PropertyType.STRING, self.username)
        draft.remove_property(AVAILABILITY_PROPERTY)
        handle.add_node(draft)

        return EditableRef(item=item, node=draft)

    def commit(self, editable: EditableRef) -> ItemRef:
        handle = self._get_handle(editable.item)
        draft = editable.node
        if not any(child is draft for child in handle.nodes):
            raise DocumentManagerError(f"Editable instance of {editable.item.path} is no longer checked out")

        unpublished = self.get_variant(editable.item, UNPUBLISHED)
        if unpublished is None:
            unpublished = ContentNode(name=handle.name)
            unpublished.set_property(UUID_PROPERTY, PropertyType.STRING, str(uuid.uuid4()))
            handle.add_node(unpublished)

        identity = unpublished.get_property(UUID_PROPERTY)
        unpublished.primary_type = draft.primary_type
        unpublished.mixin_types = list(draft.mixin_types)
        unpublished.properties = [identity] + [
            prop for prop in draft.properties if prop.name not in _VARIANT_BOOKKEEPING
        ]
        unpublished.nodes = draft.nodes
        unpublished.set_property(STATE_PROPERTY, PropertyType.STRING, UNPUBLISHED)
        unpublished.set_property(AVAILABILITY_PROPERTY, PropertyType.STRING, ['preview'])
        unpublished.set_property('wf:lastModifiedBy', PropertyType.STRING, self.username)
        unpublished.set_property(
            'wf:lastModificationDate', PropertyType.DATE, datetime.now(timezone.utc)
        )

        handle.remove_node(draft)
        return editable.item

    def dispose(self, editable: EditableRef) -> None:
        try:
            handle = self._get_handle(editable.item)
        except DocumentManagerError:
            return
        if any(child is editable.node for child in handle.nodes):
            handle.remove_node(editable.node)
            logger.debug(f"Disposed editable instance of {editable.item.path}")

    def publish(self, item: ItemRef) -> None:
        handle = self._get_handle(item)
        unpublished = self.get_variant(item, UNPUBLISHED)
        if unpublished is None:
            raise DocumentManagerError(f"Item {item.path} has no unpublished variant to publish")

        published = self.get_variant(item, PUBLISHED)
        if published is not None:
            handle.remove_node(published)

        live = self._clone_variant(unpublished)
        live.set_property(STATE_PROPERTY, PropertyType.STRING, PUBLISHED)
        live.set_property(AVAILABILITY_PROPERTY, PropertyType.STRING, ['live'])
        handle.add_node(live)
        logger.debug(f"Published {item.path}")

    def depublish(self, item: ItemRef) -> None:
        handle = self._get_handle(item)
        published = self.get_variant(item, PUBLISHED)
        if published is not None:
            handle.remove_node(published)
            logger.debug(f"Depublished {item.path}")

    def copy(self, source_path: str, target_folder_path: str, target_name: str) -> ItemRef:
        source = self._get_handle(ItemRef(source_path))
        if not self.store.node_exists(target_folder_path):
            raise DocumentManagerError(f"Folder not found: {target_folder_path}")
        target_path = f"{target_folder_path.rstrip('/')}/{target_name}"
        if self.store.node_exists(target_path):
            raise DocumentManagerError(f"Item already exists: {target_path}")

        duplicate = self.store.copy_node(source_path, target_folder_path, target_name)
        for child in duplicate.nodes:
            if child.name == source.name:
                child.name = target_name
        # A copy never carries over a checkout or a live version
        duplicate.nodes = [
            child for child in duplicate.nodes
            if child.get_property_value(STATE_PROPERTY) not in (DRAFT, PUBLISHED)
        ]
        return ItemRef(path=target_path, identifier=self.store.identifier_of(duplicate))

    def translate(
        self,
        source_path: str,
        locale: str,
        target_folder_path: str,
        target_name: Optional[str] = None
    ) -> ItemRef:
        _, source_name = split_path(source_path)
        translated = self.copy(source_path, target_folder_path, target_name or source_name)
        handle = self._get_handle(translated)
        for _, variant in self._variants(handle):
            variant.set_property(LOCALE_PROPERTY, PropertyType.STRING, locale)
        return translated

    @staticmethod
    def _clone_variant(variant: ContentNode) -> ContentNode:
        clone = variant.deep_copy()
        for _, node in clone.walk():
            if node.has_property(UUID_PROPERTY):
                node.set_property(UUID_PROPERTY, PropertyType.STRING, str(uuid.uuid4()))
        return clone


__all__ = ['WorkflowDocumentManager']
