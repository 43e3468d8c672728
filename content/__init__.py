"""Content tree package for the content export/import pipeline.

This package holds everything that operates on ContentNode trees without a
store connection, except for identity lookups in the reference resolver.

Package Structure:
- node_query: Path-pattern queries over nodes and properties
- serializers: JSON (json) and XML (lxml) snapshot encodings
- item_filter: Glob exclusion policy for export and import
- tags: 'name=v1,v2' tag-injection directives
- reference_resolver: Identity <-> location rewriting of reference properties
- binary_codec: Inline data URL or bundle attachment storage of binaries
"""

from .binary_codec import BinaryCodec, BinaryCodecError
from .item_filter import ItemFilter, export_binary_filter, export_document_filter, import_filter
from .node_query import query_nodes, query_properties
from .reference_resolver import ReferenceResolver, ResolutionReport
from .serializers import (
    ContentSerializationError,
    ContentSerializer,
    JsonContentSerializer,
    XmlContentSerializer,
    get_serializer,
    serializer_for_file,
)
from .tags import apply_tags, parse_tag_directive, split_tag_directives

__all__ = [
    'BinaryCodec',
    'BinaryCodecError',
    'ItemFilter',
    'export_binary_filter',
    'export_document_filter',
    'import_filter',
    'query_nodes',
    'query_properties',
    'ReferenceResolver',
    'ResolutionReport',
    'ContentSerializationError',
    'ContentSerializer',
    'JsonContentSerializer',
    'XmlContentSerializer',
    'get_serializer',
    'serializer_for_file',
    'apply_tags',
    'parse_tag_directive',
    'split_tag_directives'
]
