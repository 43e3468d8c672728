"""Export package: store items to bundle snapshot files.

Package Structure:
- item_collector: Resolves query/path selections into item paths per category
- content_exporter: Generic export loop parameterized by an ExportPlan
"""

from .item_collector import ItemCollector
from .content_exporter import ContentExporter, ExportPlan

__all__ = [
    'ItemCollector',
    'ContentExporter',
    'ExportPlan'
]
