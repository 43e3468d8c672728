import os
import shutil
import tempfile
import time
import unittest
from pathlib import Path
from unittest import mock

from orchestrator.process_file_manager import STORAGE_DIR_ENV_VAR, ProcessFileManager


class TestProcessFileManager(unittest.TestCase):
    def setUp(self):
        self.temp_dir = Path(tempfile.mkdtemp())
        self.env = mock.patch.dict(os.environ)
        self.env.start()
        os.environ.pop(STORAGE_DIR_ENV_VAR, None)
        self.manager = ProcessFileManager(self.temp_dir / 'storage')

    def tearDown(self):
        self.env.stop()
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def age(self, path: Path, seconds: float) -> None:
        past = time.time() - seconds
        os.utime(path, (past, past))

    def test_storage_directory_resolution(self):
        self.assertEqual(self.manager.storage_path, self.temp_dir / 'storage')
        self.assertTrue(self.manager.exports_path.is_dir())
        self.assertTrue(self.manager.imports_path.is_dir())

        os.environ[STORAGE_DIR_ENV_VAR] = str(self.temp_dir / 'from-env')
        manager = ProcessFileManager(self.temp_dir / 'configured')
        self.assertEqual(manager.storage_path, self.temp_dir / 'from-env')

    def test_create_get_delete(self):
        export_file = self.manager.create_export_file(7)
        import_file = self.manager.create_import_file(8)

        self.assertTrue(export_file.name.startswith('exim-export-7-'))
        self.assertEqual(export_file.suffix, '.zip')
        self.assertEqual(self.manager.get_export_file(export_file), export_file.resolve())
        self.assertEqual(self.manager.get_import_file(str(import_file)), import_file.resolve())

        self.manager.delete_export_file(export_file)
        self.assertFalse(export_file.exists())
        self.manager.delete_export_file(export_file)
        with self.assertRaises(FileNotFoundError):
            self.manager.get_export_file(export_file)

    def test_paths_outside_the_storage_directory_are_rejected(self):
        import_file = self.manager.create_import_file(1)
        outside = self.temp_dir / 'outside.zip'
        outside.touch()

        for path in (outside, import_file, self.manager.exports_path / '..' / '..' / 'outside.zip', ' '):
            with self.subTest(path=path):
                with self.assertRaises(ValueError):
                    self.manager.get_export_file(path)

    def test_expired_files_are_removed_on_access(self):
        export_file = self.manager.create_export_file(1)
        self.age(export_file, self.manager.file_ttl + 60)

        with self.assertRaises(FileNotFoundError):
            self.manager.get_export_file(export_file)
        self.assertFalse(export_file.exists())

    def test_cleanup_expired_files(self):
        expired = [
            self.manager.create_export_file(1),
            self.manager.create_import_file(2),
            self.manager.create_report_file(2),
        ]
        fresh = self.manager.create_export_file(3)
        for path in expired:
            self.age(path, self.manager.file_ttl + 60)

        self.assertEqual(self.manager.cleanup_expired_files(), 3)
        self.assertTrue(fresh.exists())
        self.assertEqual(self.manager.cleanup_expired_files(), 0)

    def test_shutdown_removes_storage(self):
        self.manager.create_export_file(1)
        self.manager.shutdown()
        self.assertFalse(self.manager.storage_path.exists())


if __name__ == '__main__':
    unittest.main()
