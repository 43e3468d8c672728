"""Data models for the content export/import pipeline."""

import base64
import copy
import logging
import mimetypes
import re
from fnmatch import fnmatchcase
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Tuple, Union
from urllib.parse import unquote_to_bytes

from dateutil.parser import isoparse

logger = logging.getLogger('content_exim')


# Store conventions shared by the pipelines, the filters and the reference store
ROOT_NODE_UUID = 'cafebabe-cafe-babe-cafe-babecafebabe'
UUID_PROPERTY = 'sys:uuid'
DOCBASE_PROPERTY = 'sys:docbase'
AVAILABILITY_PROPERTY = 'sys:availability'
STATE_PROPERTY = 'sys:state'
HOLDER_PROPERTY = 'sys:holder'
DISPLAY_NAME_PROPERTY = 'sys:displayName'
MIME_TYPE_PROPERTY = 'sys:mimeType'
FOLDER_TYPES_PROPERTY = 'sys:foldertype'
GALLERY_TYPES_PROPERTY = 'sys:gallerytype'
LOCALE_PROPERTY = 'translation:locale'
META_PATH_PROPERTY = 'meta:path'
META_LOCALIZED_NAME_PROPERTY = 'meta:localizedName'

ROOT_TYPE = 'sys:root'
HANDLE_TYPE = 'sys:handle'
FOLDER_TYPE = 'sys:folder'
UNSTRUCTURED_TYPE = 'sys:unstructured'

DRAFT = 'draft'
UNPUBLISHED = 'unpublished'
PUBLISHED = 'published'
EXPORT_VARIANT_PREFERENCE = (PUBLISHED, UNPUBLISHED, DRAFT)

DOCUMENTS_ROOT = '/content/documents'
GALLERY_ROOT = '/content/gallery'
ASSETS_ROOT = '/content/assets'
BINARY_ROOTS = (GALLERY_ROOT, ASSETS_ROOT)

CATEGORY_DOCUMENTS = 'documents'
CATEGORY_BINARIES = 'binaries'

# Bundle layout
EXIM_INF = 'EXIM-INF'
BINARY_ATTACHMENT_REL_PATH = 'EXIM-INF/data/attachments'
STOP_REQUEST_FILE_REL_PATH = 'EXIM-INF/_stop_'
EXECUTION_LOG_REL_PATH = 'EXIM-INF/execution.log'
SUMMARY_BINARIES_LOG_REL_PATH = 'EXIM-INF/summary-binaries.log'
SUMMARY_DOCUMENTS_LOG_REL_PATH = 'EXIM-INF/summary-documents.log'

DEFAULT_MEDIA_TYPE = 'application/octet-stream'

_INDEX_NOTATION = re.compile(r'\[\d+\]')


class MigrationError(Exception):
    """Run-scoped failure that aborts an export or import run."""
    pass


def is_under(path: str, root: str) -> bool:
    """Check whether a path equals or lies below a root path."""
    root = root.rstrip('/')
    return path == root or path.startswith(root + '/')


def category_of_path(path: str) -> Optional[str]:
    """Return the item category a store path belongs to, if any."""
    if any(is_under(path, root) for root in BINARY_ROOTS):
        return CATEGORY_BINARIES
    if is_under(path, DOCUMENTS_ROOT):
        return CATEGORY_DOCUMENTS
    return None


def strip_index_notation(path: str) -> str:
    """Remove same-name-sibling index notation, e.g. 'a/b[2]' -> 'a/b'."""
    return _INDEX_NOTATION.sub('', path)


def split_path(path: str) -> Tuple[str, str]:
    """Split an absolute path into (parent path, node name)."""
    path = path.rstrip('/')
    parent, _, name = path.rpartition('/')
    return parent or '/', name


class PropertyType(Enum):
    """Value types a content property can declare."""
    STRING = "STRING"
    BINARY = "BINARY"
    LONG = "LONG"
    DOUBLE = "DOUBLE"
    DECIMAL = "DECIMAL"
    DATE = "DATE"
    BOOLEAN = "BOOLEAN"
    NAME = "NAME"
    PATH = "PATH"
    REFERENCE = "REFERENCE"
    WEAKREFERENCE = "WEAKREFERENCE"
    URI = "URI"

    def encode(self, value: Any) -> Any:
        """Convert a value of this type into a JSON-compatible scalar."""
        if self is PropertyType.BINARY:
            return value.to_url()
        if self is PropertyType.DATE:
            return value.isoformat()
        if self is PropertyType.DECIMAL:
            return str(value)
        if self is PropertyType.LONG:
            return int(value)
        if self is PropertyType.DOUBLE:
            return float(value)
        if self is PropertyType.BOOLEAN:
            return bool(value)
        return str(value)

    def decode(self, raw: Any) -> Any:
        """Convert a serialized scalar back into a value of this type."""
        if self is PropertyType.BINARY:
            return raw if isinstance(raw, BinaryValue) else BinaryValue.from_url(raw)
        if self is PropertyType.DATE:
            return raw if isinstance(raw, datetime) else isoparse(raw)
        if self is PropertyType.DECIMAL:
            return Decimal(str(raw))
        if self is PropertyType.LONG:
            return int(raw)
        if self is PropertyType.DOUBLE:
            return float(raw)
        if self is PropertyType.BOOLEAN:
            if isinstance(raw, bool):
                return raw
            text = str(raw).strip().lower()
            if text not in ('true', 'false'):
                raise ValueError(f"Invalid BOOLEAN value: {raw!r}")
            return text == 'true'
        return str(raw)


_DATA_URL_PATTERN = re.compile(
    r'^data:(?P<media>[^;,]*)(?P<params>(?:;[^;,]+?)*?)(?P<base64>;base64)?,(?P<data>.*)$',
    re.DOTALL
)


@dataclass
class BinaryValue:
    """
    Binary payload of a BINARY property.

    A value is either inline (holds the bytes, serialized as a data URL) or
    external (holds a locator of a file inside the bundle, or a file: URL).
    """

    data: Optional[bytes] = None
    locator: Optional[str] = None
    media_type: str = field(default=DEFAULT_MEDIA_TYPE, compare=False)

    def __post_init__(self) -> None:
        if (self.data is None) == (self.locator is None):
            raise ValueError("BinaryValue requires exactly one of data or locator")

    @property
    def is_inline(self) -> bool:
        return self.data is not None

    @property
    def is_external(self) -> bool:
        return self.locator is not None

    @property
    def size(self) -> Optional[int]:
        """Byte length of an inline payload, None for external values."""
        return len(self.data) if self.data is not None else None

    def to_url(self) -> str:
        """Serialize as a data URL (inline) or as the locator (external)."""
        if self.data is not None:
            encoded = base64.b64encode(self.data).decode('ascii')
            return f"data:{self.media_type};base64,{encoded}"
        return self.locator

    @classmethod
    def from_url(cls, url: str) -> 'BinaryValue':
        """
        Parse a serialized binary value.

        Args:
            url: Data URL, bundle-relative locator or file: URL

        Returns:
            Inline value for data URLs, external value otherwise

        Raises:
            ValueError: If a data URL is malformed
        """
        if url.startswith('data:'):
            match = _DATA_URL_PATTERN.match(url)
            if not match:
                raise ValueError(f"Malformed data URL: {url[:64]}")
            payload = match.group('data')
            if match.group('base64'):
                data = base64.b64decode(payload)
            else:
                data = unquote_to_bytes(payload)
            return cls(data=data, media_type=match.group('media') or 'text/plain')

        media_type = mimetypes.guess_type(url)[0] or DEFAULT_MEDIA_TYPE
        return cls(locator=url, media_type=media_type)


@dataclass
class ContentProperty:
    """A named, typed property holding an ordered sequence of values."""

    name: str
    type: PropertyType = PropertyType.STRING
    multiple: bool = False
    values: List[Any] = field(default_factory=list)

    def __post_init__(self) -> None:
        if isinstance(self.type, str):
            self.type = PropertyType(self.type)
        if not self.multiple and len(self.values) > 1:
            raise ValueError(
                f"Single-valued property '{self.name}' cannot hold {len(self.values)} values"
            )

    @property
    def value(self) -> Any:
        """First value, or None for an empty property."""
        return self.values[0] if self.values else None

    def to_dict(self) -> Dict[str, Any]:
        """Serialize property to dictionary."""
        return {
            'name': self.name,
            'type': self.type.value,
            'multiple': self.multiple,
            'values': [self.type.encode(value) for value in self.values]
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ContentProperty':
        """Deserialize property from dictionary."""
        prop_type = PropertyType(data.get('type', PropertyType.STRING.value))
        return cls(
            name=data['name'],
            type=prop_type,
            multiple=bool(data.get('multiple', False)),
            values=[prop_type.decode(raw) for raw in data.get('values', [])]
        )


@dataclass
class ContentNode:
    """
    Generic, store-independent representation of one content item subtree.

    Nodes own their properties and children exclusively and keep no
    reference to their parent.
    """

    name: str
    primary_type: str = UNSTRUCTURED_TYPE
    mixin_types: List[str] = field(default_factory=list)
    properties: List[ContentProperty] = field(default_factory=list)
    nodes: List['ContentNode'] = field(default_factory=list)

    def get_property(self, name: str) -> Optional[ContentProperty]:
        """Get a property by name."""
        for prop in self.properties:
            if prop.name == name:
                return prop
        return None

    def has_property(self, name: str) -> bool:
        return self.get_property(name) is not None

    def get_property_value(self, name: str, default: Any = None) -> Any:
        """Get the first value of a property, or default."""
        prop = self.get_property(name)
        if prop is None or not prop.values:
            return default
        return prop.value

    def set_property(
        self,
        name: str,
        prop_type: PropertyType,
        values: Any,
        multiple: Optional[bool] = None
    ) -> ContentProperty:
        """
        Create or replace a property, keeping its position when it exists.

        Args:
            name: Property name
            prop_type: Declared property type
            values: A single value or a list of values
            multiple: Multi-valued flag (defaults to whether values is a list)

        Returns:
            The stored property
        """
        if isinstance(values, (list, tuple)):
            value_list = list(values)
            if multiple is None:
                multiple = True
        else:
            value_list = [values]
            if multiple is None:
                multiple = False

        prop = ContentProperty(name=name, type=prop_type, multiple=multiple, values=value_list)

        for index, existing in enumerate(self.properties):
            if existing.name == name:
                self.properties[index] = prop
                return prop

        self.properties.append(prop)
        return prop

    def remove_property(self, name: str) -> Optional[ContentProperty]:
        """Remove a property by name and return it."""
        for index, prop in enumerate(self.properties):
            if prop.name == name:
                return self.properties.pop(index)
        return None

    def get_nodes(self, name: str) -> List['ContentNode']:
        """Get all child nodes with the given name."""
        return [child for child in self.nodes if child.name == name]

    def get_node(self, name: str) -> Optional['ContentNode']:
        """
        Get a child node by name, supporting 'name[n]' index notation (1-based).
        """
        index = 1
        match = re.match(r'^(.*)\[(\d+)\]$', name)
        if match:
            name, index = match.group(1), int(match.group(2))

        siblings = self.get_nodes(name)
        if 0 < index <= len(siblings):
            return siblings[index - 1]
        return None

    def add_node(self, node: 'ContentNode') -> 'ContentNode':
        """Append a child node."""
        self.nodes.append(node)
        return node

    def remove_node(self, node: 'ContentNode') -> None:
        """Remove a child node by identity."""
        for index, child in enumerate(self.nodes):
            if child is node:
                del self.nodes[index]
                return
        raise ValueError(f"Node '{node.name}' is not a child of '{self.name}'")

    def add_mixin(self, mixin_type: str) -> None:
        if mixin_type not in self.mixin_types:
            self.mixin_types.append(mixin_type)

    def walk(self, path: str = '') -> Iterator[Tuple[str, 'ContentNode']]:
        """Yield (relative path, node) pairs in document order, self first."""
        yield path, self
        counters: Dict[str, int] = {}
        for child in self.nodes:
            counters[child.name] = counters.get(child.name, 0) + 1
            step = child.name
            if counters[child.name] > 1:
                step = f"{child.name}[{counters[child.name]}]"
            yield from child.walk(f"{path}/{step}" if path else step)

    def query_nodes(self, pattern: str) -> List['ContentNode']:
        """Return descendant nodes matching a path pattern."""
        from content.node_query import query_nodes
        return query_nodes(self, pattern)

    def query_properties(self, pattern: str) -> List[ContentProperty]:
        """Return properties matching a path pattern ending in '@name'."""
        from content.node_query import query_properties
        return query_properties(self, pattern)

    def deep_copy(self) -> 'ContentNode':
        return copy.deepcopy(self)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize node tree to dictionary."""
        return {
            'name': self.name,
            'primaryType': self.primary_type,
            'mixinTypes': list(self.mixin_types),
            'properties': [prop.to_dict() for prop in self.properties],
            'nodes': [child.to_dict() for child in self.nodes]
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ContentNode':
        """Deserialize node tree from dictionary."""
        return cls(
            name=data.get('name', ''),
            primary_type=data.get('primaryType', UNSTRUCTURED_TYPE),
            mixin_types=list(data.get('mixinTypes', [])),
            properties=[ContentProperty.from_dict(p) for p in data.get('properties', [])],
            nodes=[cls.from_dict(child) for child in data.get('nodes', [])]
        )

    def dump(self, indent: int = 0) -> str:
        """Render the tree as indented text."""
        pad = '  ' * indent
        lines = [f"{pad}{self.name or '/'} [{self.primary_type}]"]
        for prop in self.properties:
            rendered = [
                value.to_url()[:48] if isinstance(value, BinaryValue) else repr(value)
                for value in prop.values
            ]
            shown = f"[{', '.join(rendered)}]" if prop.multiple else (rendered[0] if rendered else '')
            lines.append(f"{pad}  - {prop.name} ({prop.type.value}) = {shown}")
        for child in self.nodes:
            lines.append(child.dump(indent + 1))
        return '\n'.join(lines)


@dataclass
class MigrationRecord:
    """Outcome bookkeeping for one processed content item."""

    content_id: str = ''
    content_path: str = ''
    content_type: str = ''
    processed: bool = False
    succeeded: bool = False
    attributes: Dict[str, Any] = field(default_factory=dict)
    error_message: Optional[str] = None

    def set_attribute(self, name: str, value: Any) -> None:
        self.attributes[name] = value

    def get_attribute(self, name: str, default: Any = None) -> Any:
        return self.attributes.get(name, default)

    def mark_failed(self, error: Union[Exception, str]) -> None:
        """Mark the record failed with the error message."""
        self.succeeded = False
        self.error_message = str(error) or error.__class__.__name__

    def to_dict(self) -> Dict[str, Any]:
        """Serialize record to dictionary."""
        return {
            'content_id': self.content_id,
            'content_path': self.content_path,
            'content_type': self.content_type,
            'processed': self.processed,
            'succeeded': self.succeeded,
            'attributes': dict(self.attributes),
            'error_message': self.error_message
        }


@dataclass
class ResultItem:
    """One per-item entry of a run result."""

    category: str
    path: str
    primary_type: str = ''
    content_id: str = ''
    succeeded: bool = False
    error_message: Optional[str] = None

    @classmethod
    def from_record(cls, category: str, record: MigrationRecord) -> 'ResultItem':
        return cls(
            category=category,
            path=record.content_path,
            primary_type=record.content_type,
            content_id=record.content_id,
            succeeded=record.succeeded,
            error_message=record.error_message
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'category': self.category,
            'path': self.path,
            'primary_type': self.primary_type,
            'content_id': self.content_id,
            'succeeded': self.succeeded,
            'error_message': self.error_message
        }


@dataclass
class Result:
    """Run-level aggregate built incrementally and frozen when the run ends."""

    items: List[ResultItem] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    counts: Dict[str, Dict[str, int]] = field(default_factory=dict)
    started_at: datetime = field(default_factory=datetime.now)
    stopped_at: Optional[datetime] = None
    closed: bool = field(default=False, compare=False)

    def _check_open(self) -> None:
        if self.closed:
            raise RuntimeError("Result is closed and can no longer be modified")

    def add_record(self, category: str, record: MigrationRecord) -> ResultItem:
        """Append a finished record under a category and update counters."""
        self._check_open()
        item = ResultItem.from_record(category, record)
        self.items.append(item)

        counts = self.counts.setdefault(category, {'total': 0, 'succeeded': 0, 'failed': 0})
        counts['total'] += 1
        if record.succeeded:
            counts['succeeded'] += 1
        else:
            counts['failed'] += 1
        return item

    def add_error(self, message: str) -> None:
        """Record a global, non-item-scoped error."""
        self._check_open()
        self.errors.append(message)

    def close(self) -> None:
        if not self.closed:
            self.stopped_at = datetime.now()
            self.closed = True

    def category_counts(self, category: str) -> Dict[str, int]:
        return dict(self.counts.get(category, {'total': 0, 'succeeded': 0, 'failed': 0}))

    def items_in(self, category: str) -> List[ResultItem]:
        return [item for item in self.items if item.category == category]

    @property
    def total_count(self) -> int:
        return sum(c['total'] for c in self.counts.values())

    @property
    def succeeded_count(self) -> int:
        return sum(c['succeeded'] for c in self.counts.values())

    @property
    def failed_count(self) -> int:
        return sum(c['failed'] for c in self.counts.values())

    def to_dict(self) -> Dict[str, Any]:
        """Serialize result to dictionary."""
        return {
            'total': self.total_count,
            'succeeded': self.succeeded_count,
            'failed': self.failed_count,
            'counts': {key: dict(value) for key, value in self.counts.items()},
            'items': [item.to_dict() for item in self.items],
            'errors': list(self.errors),
            'started_at': self.started_at.isoformat(),
            'stopped_at': self.stopped_at.isoformat() if self.stopped_at else None
        }


class PublishMode(Enum):
    """Publish behaviour applied to documents after import."""
    NONE = "none"
    ALL = "all"
    LIVE = "live"

    @classmethod
    def parse(cls, value: Any) -> 'PublishMode':
        """Parse a mode name, accepting the legacy boolean flag."""
        if isinstance(value, PublishMode):
            return value
        if value is None or value is False:
            return cls.NONE
        if value is True:
            return cls.ALL
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValueError(
                f"publish_on_import must be one of: {[m.value for m in cls]}"
            )


def _as_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    return [str(v) for v in value]


@dataclass
class ItemSelector:
    """Query/path selection with include and exclude patterns for one category."""

    queries: List[str] = field(default_factory=list)
    paths: List[str] = field(default_factory=list)
    includes: List[str] = field(default_factory=list)
    excludes: List[str] = field(default_factory=list)

    def is_empty(self) -> bool:
        return not (self.queries or self.paths or self.includes)

    @staticmethod
    def _matches(path: str, pattern: str) -> bool:
        return is_under(path, pattern) or fnmatchcase(path, pattern)

    def accepts(self, path: str) -> bool:
        """Apply include then exclude patterns to a path."""
        if self.includes and not any(self._matches(path, p) for p in self.includes):
            return False
        return not any(self._matches(path, p) for p in self.excludes)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'queries': list(self.queries),
            'paths': list(self.paths),
            'includes': list(self.includes),
            'excludes': list(self.excludes)
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'ItemSelector':
        data = data or {}
        return cls(
            queries=_as_list(data.get('queries')),
            paths=_as_list(data.get('paths')),
            includes=_as_list(data.get('includes')),
            excludes=_as_list(data.get('excludes'))
        )


@dataclass
class FolderTypeHints:
    """Primary type and allowed child types for folders created on import."""

    primary_type: str = FOLDER_TYPE
    folder_types: List[str] = field(default_factory=list)
    gallery_types: List[str] = field(default_factory=list)


DEFAULT_BATCH_SIZE = 200
DEFAULT_THROTTLE = 10
DEFAULT_DATA_URL_SIZE_THRESHOLD = 256 * 1024
DEFAULT_GALLERY_FOLDER_PRIMARY_TYPE = 'gallery:stdImageGallery'
DEFAULT_GALLERY_FOLDER_FOLDER_TYPES = ('new-image-folder',)
DEFAULT_GALLERY_FOLDER_GALLERY_TYPES = ('gallery:imageset',)
DEFAULT_ASSET_FOLDER_PRIMARY_TYPE = 'gallery:stdAssetGallery'
DEFAULT_ASSET_FOLDER_FOLDER_TYPES = ('new-file-folder',)
DEFAULT_ASSET_FOLDER_GALLERY_TYPES = ('gallery:exampleAssetSet',)
FILE_FORMATS = ('json', 'xml')


@dataclass
class ExecutionParams:
    """Read-only configuration snapshot for one export or import run."""

    batch_size: int = DEFAULT_BATCH_SIZE
    throttle: int = DEFAULT_THROTTLE
    publish_on_import: PublishMode = PublishMode.NONE
    data_url_size_threshold: int = DEFAULT_DATA_URL_SIZE_THRESHOLD
    docbase_prop_names: List[str] = field(default_factory=list)
    documents: ItemSelector = field(default_factory=ItemSelector)
    binaries: ItemSelector = field(default_factory=ItemSelector)
    document_tags: List[str] = field(default_factory=list)
    binary_tags: List[str] = field(default_factory=list)
    file_format: str = 'json'
    gallery_folder_primary_type: str = DEFAULT_GALLERY_FOLDER_PRIMARY_TYPE
    gallery_folder_folder_types: List[str] = field(
        default_factory=lambda: list(DEFAULT_GALLERY_FOLDER_FOLDER_TYPES))
    gallery_folder_gallery_types: List[str] = field(
        default_factory=lambda: list(DEFAULT_GALLERY_FOLDER_GALLERY_TYPES))
    asset_folder_primary_type: str = DEFAULT_ASSET_FOLDER_PRIMARY_TYPE
    asset_folder_folder_types: List[str] = field(
        default_factory=lambda: list(DEFAULT_ASSET_FOLDER_FOLDER_TYPES))
    asset_folder_gallery_types: List[str] = field(
        default_factory=lambda: list(DEFAULT_ASSET_FOLDER_GALLERY_TYPES))

    def __post_init__(self) -> None:
        self.publish_on_import = PublishMode.parse(self.publish_on_import)
        if not isinstance(self.batch_size, int) or self.batch_size < 1:
            raise ValueError("batch_size must be a positive integer")
        if not isinstance(self.throttle, int) or self.throttle < 0:
            raise ValueError("throttle must be a non-negative integer (milliseconds)")
        if not isinstance(self.data_url_size_threshold, int) or self.data_url_size_threshold < 0:
            raise ValueError("data_url_size_threshold must be a non-negative integer")
        if self.file_format not in FILE_FORMATS:
            raise ValueError(f"file_format must be one of: {list(FILE_FORMATS)}")

    def selector_for(self, category: str) -> ItemSelector:
        return self.binaries if category == CATEGORY_BINARIES else self.documents

    def tags_for(self, category: str) -> List[str]:
        return self.binary_tags if category == CATEGORY_BINARIES else self.document_tags

    def folder_hints_for(self, path: str) -> FolderTypeHints:
        """Folder type hints for a folder path, by the root it lies under."""
        if is_under(path, GALLERY_ROOT):
            return FolderTypeHints(
                self.gallery_folder_primary_type,
                list(self.gallery_folder_folder_types),
                list(self.gallery_folder_gallery_types)
            )
        if is_under(path, ASSETS_ROOT):
            return FolderTypeHints(
                self.asset_folder_primary_type,
                list(self.asset_folder_folder_types),
                list(self.asset_folder_gallery_types)
            )
        return FolderTypeHints()

    def to_dict(self) -> Dict[str, Any]:
        """Serialize parameters to dictionary."""
        return {
            'batch_size': self.batch_size,
            'throttle': self.throttle,
            'publish_on_import': self.publish_on_import.value,
            'data_url_size_threshold': self.data_url_size_threshold,
            'docbase_prop_names': list(self.docbase_prop_names),
            'documents': self.documents.to_dict(),
            'binaries': self.binaries.to_dict(),
            'document_tags': list(self.document_tags),
            'binary_tags': list(self.binary_tags),
            'file_format': self.file_format,
            'gallery_folder_primary_type': self.gallery_folder_primary_type,
            'gallery_folder_folder_types': list(self.gallery_folder_folder_types),
            'gallery_folder_gallery_types': list(self.gallery_folder_gallery_types),
            'asset_folder_primary_type': self.asset_folder_primary_type,
            'asset_folder_folder_types': list(self.asset_folder_folder_types),
            'asset_folder_gallery_types': list(self.asset_folder_gallery_types)
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ExecutionParams':
        """Build parameters from a flat dictionary, keeping defaults for absent keys."""
        kwargs: Dict[str, Any] = {}
        for key in ('batch_size', 'throttle', 'data_url_size_threshold', 'file_format',
                    'gallery_folder_primary_type', 'asset_folder_primary_type'):
            if data.get(key) is not None:
                kwargs[key] = data[key]
        for key in ('docbase_prop_names', 'document_tags', 'binary_tags',
                    'gallery_folder_folder_types', 'gallery_folder_gallery_types',
                    'asset_folder_folder_types', 'asset_folder_gallery_types'):
            if data.get(key) is not None:
                kwargs[key] = _as_list(data[key])
        if 'publish_on_import' in data:
            kwargs['publish_on_import'] = PublishMode.parse(data['publish_on_import'])
        if data.get('documents') is not None:
            kwargs['documents'] = ItemSelector.from_dict(data['documents'])
        if data.get('binaries') is not None:
            kwargs['binaries'] = ItemSelector.from_dict(data['binaries'])
        return cls(**kwargs)


class JobState(Enum):
    """Lifecycle states of an asynchronous job."""
    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"


@dataclass
class ProcessStatus:
    """Status record of one asynchronous export or import job."""

    id: int
    started_at: datetime = field(default_factory=datetime.now)
    state: JobState = JobState.RUNNING
    progress: float = 0.0
    completed_at: Optional[datetime] = None
    error_message: Optional[str] = None
    cancel_requested: bool = False
    command_info: Optional[str] = None
    username: Optional[str] = None
    export_file_path: Optional[str] = None
    import_file_path: Optional[str] = None
    report_file_path: Optional[str] = None

    @property
    def is_finished(self) -> bool:
        return self.state is not JobState.RUNNING

    def update_progress(self, processed: int, total: int) -> None:
        """Set progress as the fraction of processed items, clamped to [0, 1]."""
        if total <= 0:
            self.progress = 0.0
        else:
            self.progress = max(0.0, min(1.0, processed / total))

    def to_dict(self) -> Dict[str, Any]:
        """Serialize status to dictionary."""
        return {
            'id': self.id,
            'state': self.state.value,
            'progress': self.progress,
            'started_at': self.started_at.isoformat(),
            'completed_at': self.completed_at.isoformat() if self.completed_at else None,
            'error_message': self.error_message,
            'cancel_requested': self.cancel_requested,
            'command_info': self.command_info,
            'username': self.username,
            'export_file_path': self.export_file_path,
            'import_file_path': self.import_file_path,
            'report_file_path': self.report_file_path
        }
