"""Opens export bundles and discovers the snapshot files inside them."""

import logging
import shutil
import tempfile
import zipfile
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

from content.serializers import ContentSerializer, serializer_for_file
from models import (
    EXIM_INF,
    META_PATH_PROPERTY,
    ContentNode,
    MigrationError,
    category_of_path,
)

logger = logging.getLogger('content_exim.importers.bundle_reader')

SNAPSHOT_SUFFIXES = ('.json', '.xml')
MIN_DEPTH = 1
MAX_DEPTH = 20


class BundleError(MigrationError):
    """Raised when a bundle cannot be opened or contains unsafe entries."""
    pass


class BundleReader:
    """
    Gives access to the snapshot files of a bundle directory or zip archive.

    Zip archives are extracted into a temporary directory that is removed by
    close() (or when used as a context manager).
    """

    def __init__(self, bundle_path: Union[str, Path]):
        """
        Open a bundle.

        Args:
            bundle_path: Bundle directory or zip file

        Raises:
            BundleError: If the bundle is missing, unreadable or unsafe
        """
        self.bundle_path = Path(bundle_path)
        self._temp_dir: Optional[Path] = None

        if self.bundle_path.is_dir():
            self.base_dir = self.bundle_path
        elif self.bundle_path.is_file():
            self.base_dir = self._extract(self.bundle_path)
        else:
            raise BundleError(f"Bundle not found: {self.bundle_path}")

    def __enter__(self) -> 'BundleReader':
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def close(self) -> None:
        if self._temp_dir is not None:
            shutil.rmtree(self._temp_dir, ignore_errors=True)
            self._temp_dir = None

    def _extract(self, zip_path: Path) -> Path:
        try:
            archive = zipfile.ZipFile(zip_path)
        except (zipfile.BadZipFile, OSError) as e:
            raise BundleError(f"Cannot open bundle {zip_path}: {e}") from e

        self._temp_dir = Path(tempfile.mkdtemp(prefix='exim-import-'))
        base = self._temp_dir.resolve()

        with archive:
            for member in archive.namelist():
                target = (base / member).resolve()
                if target != base and base not in target.parents:
                    self.close()
                    raise BundleError(f"Unsafe entry in bundle {zip_path}: {member}")
            try:
                archive.extractall(base)
            except (zipfile.BadZipFile, OSError) as e:
                self.close()
                raise BundleError(f"Cannot extract bundle {zip_path}: {e}") from e

        logger.info(f"Extracted bundle {zip_path} into {base}")
        return base

    def discover(self) -> List[Path]:
        """
        List snapshot files at depth 1..20 below the bundle root, sorted,
        skipping the EXIM-INF directory.
        """
        files = []
        for path in self.base_dir.rglob('*'):
            if not path.is_file() or path.suffix.lower() not in SNAPSHOT_SUFFIXES:
                continue
            relative = path.relative_to(self.base_dir)
            if relative.parts[0] == EXIM_INF:
                continue
            if MIN_DEPTH <= len(relative.parts) <= MAX_DEPTH:
                files.append(path)
        return sorted(files, key=lambda p: p.relative_to(self.base_dir).as_posix())

    def relative_path(self, file_path: Path) -> str:
        return file_path.relative_to(self.base_dir).as_posix()

    def read(self, file_path: Path, serializer: Optional[ContentSerializer] = None) -> ContentNode:
        """Deserialize one snapshot file."""
        return (serializer or serializer_for_file(file_path)).read(file_path)

    def categorize(self, serializer: Optional[ContentSerializer] = None) -> Dict[str, List[Tuple[Path, str]]]:
        """
        Group snapshot files by the category of their 'meta:path'.

        Only (file, item path) pairs are kept; trees are read again one at a
        time when imported.

        Unreadable files and files outside any category are logged and left
        out; they are reported by the caller through the skipped list.
        """
        grouped: Dict[str, List[Tuple[Path, str]]] = {}
        self.skipped: List[Tuple[str, str]] = []

        for file_path in self.discover():
            rel_path = self.relative_path(file_path)
            try:
                item_path = self.read(file_path, serializer).get_property_value(META_PATH_PROPERTY)
            except ValueError as e:
                logger.error(f"Cannot read snapshot {rel_path}: {e}")
                self.skipped.append((rel_path, str(e)))
                continue

            category = category_of_path(item_path) if item_path else None
            if category is None:
                logger.warning(f"Skipping {rel_path}: no importable '{META_PATH_PROPERTY}' ({item_path})")
                self.skipped.append((rel_path, f"not importable: {item_path}"))
                continue

            grouped.setdefault(category, []).append((file_path, item_path))

        return grouped


__all__ = ['BundleError', 'BundleReader', 'SNAPSHOT_SUFFIXES']
