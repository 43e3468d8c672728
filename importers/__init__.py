"""Import package: bundle snapshot files to store items.

Package Structure:
- bundle_reader: Opens zip/directory bundles and discovers snapshot files
- content_importer: Generic import loop parameterized by an ImportPlan,
  followed by the reference cleanup pass
"""

from .bundle_reader import BundleError, BundleReader
from .content_importer import ContentImporter, ImportPlan

__all__ = [
    'BundleError',
    'BundleReader',
    'ContentImporter',
    'ImportPlan'
]
