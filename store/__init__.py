"""Content store collaborators for the export/import pipeline.

Package Structure:
- base_store: ContentStore session interface and store errors
- memory_store: In-memory ContentStore with JSON dump/load
- document_manager: Workflow collaborator interface (DocumentManager)
- workflow_document_manager: Draft/unpublished/published workflow over a ContentStore
- content_mapper: Store node -> snapshot mapping and snapshot -> store binding
"""

from .base_store import ContentStore, ItemNotFoundError, StoreError
from .document_manager import DocumentManager, DocumentManagerError, EditableRef, ItemRef
from .memory_store import InMemoryContentStore
from .workflow_document_manager import WorkflowDocumentManager
from .content_mapper import bind_node, map_node

__all__ = [
    'ContentStore',
    'ItemNotFoundError',
    'StoreError',
    'DocumentManager',
    'DocumentManagerError',
    'EditableRef',
    'ItemRef',
    'InMemoryContentStore',
    'WorkflowDocumentManager',
    'bind_node',
    'map_node'
]
