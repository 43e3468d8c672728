"""Storage of asynchronous job artifacts (export bundles, uploaded import bundles)."""

import logging
import os
import shutil
import tempfile
import time
import uuid
from pathlib import Path
from typing import Optional, Union

logger = logging.getLogger('content_exim.orchestrator.process_file_manager')

STORAGE_DIR_ENV_VAR = 'EXIM_STORAGE_DIR'
EXPORTS_SUBDIR = 'exim-exports'
IMPORTS_SUBDIR = 'exim-imports'
DEFAULT_FILE_TTL_SECONDS = 24 * 60 * 60


class ProcessFileManager:
    """
    Creates, validates and expires job artifact files.

    The storage directory is taken from the EXIM_STORAGE_DIR environment
    variable, then the configured directory, then '<tmp>/exim-async'.
    """

    def __init__(self, storage_dir: Optional[Union[str, Path]] = None, file_ttl: Optional[float] = None):
        """
        Initialize the file manager and create its directories.

        Args:
            storage_dir: Configured storage directory
            file_ttl: Artifact time-to-live in seconds (24 hours by default)
        """
        self.file_ttl = file_ttl if file_ttl is not None else DEFAULT_FILE_TTL_SECONDS
        self.storage_path = self._resolve_storage_path(storage_dir)
        self.exports_path = self.storage_path / EXPORTS_SUBDIR
        self.imports_path = self.storage_path / IMPORTS_SUBDIR

        self.exports_path.mkdir(parents=True, exist_ok=True)
        self.imports_path.mkdir(parents=True, exist_ok=True)
        logger.info(f"ProcessFileManager initialized with base path: {self.storage_path}")

    @staticmethod
    def _resolve_storage_path(storage_dir: Optional[Union[str, Path]]) -> Path:
        env_path = os.environ.get(STORAGE_DIR_ENV_VAR, '').strip()
        if env_path:
            logger.debug(f"Using storage path from environment variable: {env_path}")
            return Path(env_path)
        if storage_dir and str(storage_dir).strip():
            logger.debug(f"Using configured storage path: {storage_dir}")
            return Path(storage_dir)
        return Path(tempfile.gettempdir()) / 'exim-async'

    def create_export_file(self, process_id: int) -> Path:
        path = self.exports_path / f"exim-export-{process_id}-{uuid.uuid4()}.zip"
        path.touch()
        return path

    def create_import_file(self, process_id: int) -> Path:
        path = self.imports_path / f"exim-import-{process_id}-{uuid.uuid4()}.zip"
        path.touch()
        return path

    def create_report_file(self, process_id: int) -> Path:
        path = self.imports_path / f"exim-import-report-{process_id}-{uuid.uuid4()}.json"
        path.touch()
        return path

    def get_export_file(self, file_path: Union[str, Path]) -> Path:
        return self._get_file(file_path, self.exports_path)

    def get_import_file(self, file_path: Union[str, Path]) -> Path:
        return self._get_file(file_path, self.imports_path)

    def get_report_file(self, file_path: Union[str, Path]) -> Path:
        return self._get_file(file_path, self.imports_path)

    def delete_export_file(self, file_path: Union[str, Path]) -> None:
        self._delete_file(file_path, self.exports_path)

    def delete_import_file(self, file_path: Union[str, Path]) -> None:
        self._delete_file(file_path, self.imports_path)

    @staticmethod
    def _validate(file_path: Union[str, Path], base_path: Path) -> Path:
        if not str(file_path).strip():
            raise ValueError("File path cannot be empty")
        requested = Path(file_path).resolve()
        base = base_path.resolve()
        if base not in requested.parents:
            raise ValueError(f"Invalid file path: {file_path}")
        return requested

    def _get_file(self, file_path: Union[str, Path], base_path: Path) -> Path:
        """
        Return an existing, unexpired artifact.

        Raises:
            ValueError: If the path lies outside the storage directory
            FileNotFoundError: If the file is missing or has expired
        """
        path = self._validate(file_path, base_path)
        if not path.exists():
            raise FileNotFoundError(f"File not found: {file_path}")
        if self.is_expired(path):
            self._remove(path)
            raise FileNotFoundError(f"File has expired: {file_path}")
        return path

    def _delete_file(self, file_path: Union[str, Path], base_path: Path) -> None:
        path = self._validate(file_path, base_path)
        if path.exists():
            path.unlink()

    def is_expired(self, path: Path) -> bool:
        if not path.exists():
            return True
        return time.time() - path.stat().st_mtime > self.file_ttl

    def cleanup_expired_files(self) -> int:
        """
        Delete expired artifacts from both directories.

        Returns:
            Number of files deleted
        """
        deleted = 0
        for directory in (self.exports_path, self.imports_path):
            if not directory.is_dir():
                continue
            for path in directory.iterdir():
                if path.is_file() and self.is_expired(path) and self._remove(path):
                    deleted += 1
        if deleted:
            logger.info(f"Deleted {deleted} expired job files")
        return deleted

    @staticmethod
    def _remove(path: Path) -> bool:
        try:
            path.unlink()
            logger.debug(f"Deleted expired file: {path}")
            return True
        except OSError as e:
            logger.warning(f"Failed to delete expired file {path}: {e}")
            return False

    def shutdown(self) -> None:
        """Remove the storage directory and everything in it."""
        shutil.rmtree(self.storage_path, ignore_errors=True)
        logger.info("ProcessFileManager shutdown completed")


__all__ = ['ProcessFileManager', 'STORAGE_DIR_ENV_VAR', 'DEFAULT_FILE_TTL_SECONDS']
