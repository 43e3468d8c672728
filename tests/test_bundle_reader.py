import shutil
import tempfile
import unittest
import zipfile
from pathlib import Path

from content.serializers import JsonContentSerializer, XmlContentSerializer
from importers.bundle_reader import BundleError, BundleReader
from models import ContentNode, PropertyType


def snapshot(item_path: str) -> ContentNode:
    node = ContentNode(name=item_path.rsplit('/', 1)[-1], primary_type='demo:document')
    node.set_property('meta:path', PropertyType.STRING, item_path)
    return node


class TestBundleReader(unittest.TestCase):
    def setUp(self):
        self.temp_dir = Path(tempfile.mkdtemp())
        self.bundle_dir = self.temp_dir / 'bundle'
        json_serializer = JsonContentSerializer()
        json_serializer.write(snapshot('/content/documents/b'), self.bundle_dir / 'content/documents/b.json')
        XmlContentSerializer().write(snapshot('/content/documents/a'), self.bundle_dir / 'content/documents/a.xml')
        json_serializer.write(snapshot('/content/gallery/c.png'), self.bundle_dir / 'content/gallery/c.png.json')
        json_serializer.write(snapshot('/content/documents/x'), self.bundle_dir / 'EXIM-INF/ignored.json')
        (self.bundle_dir / 'content/documents/notes.txt').write_text('not a snapshot', encoding='utf-8')

    def tearDown(self):
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def test_discover_sorted_without_exim_inf(self):
        with BundleReader(self.bundle_dir) as bundle:
            files = [bundle.relative_path(path) for path in bundle.discover()]
        self.assertEqual(files, ['content/documents/a.xml', 'content/documents/b.json', 'content/gallery/c.png.json'])

    def test_categorize(self):
        with BundleReader(self.bundle_dir) as bundle:
            grouped = bundle.categorize()
            self.assertEqual(bundle.skipped, [])

        self.assertEqual(
            [(path.name, item_path) for path, item_path in grouped['documents']],
            [('a.xml', '/content/documents/a'), ('b.json', '/content/documents/b')]
        )
        self.assertEqual(grouped['binaries'], [(self.bundle_dir / 'content/gallery/c.png.json', '/content/gallery/c.png')])

    def test_categorize_reports_skipped_files(self):
        (self.bundle_dir / 'content/documents/z.json').write_text('{', encoding='utf-8')
        JsonContentSerializer().write(ContentNode(name='nometa'), self.bundle_dir / 'content/documents/y.json')

        with BundleReader(self.bundle_dir) as bundle:
            grouped = bundle.categorize()
            skipped = dict(bundle.skipped)

        self.assertEqual(len(grouped['documents']), 2)
        self.assertTrue(skipped['content/documents/y.json'].startswith('not importable'))
        self.assertIn('Invalid JSON', skipped['content/documents/z.json'])

    def test_zip_bundle_is_extracted_and_cleaned_up(self):
        zip_path = self.temp_dir / 'bundle.zip'
        with zipfile.ZipFile(zip_path, 'w') as archive:
            for path in self.bundle_dir.rglob('*'):
                if path.is_file():
                    archive.write(path, path.relative_to(self.bundle_dir).as_posix())

        bundle = BundleReader(zip_path)
        extracted = bundle.base_dir
        self.assertEqual(len(bundle.discover()), 3)
        bundle.close()
        self.assertFalse(extracted.exists())

    def test_unsafe_zip_entries_are_rejected(self):
        zip_path = self.temp_dir / 'evil.zip'
        with zipfile.ZipFile(zip_path, 'w') as archive:
            archive.writestr('../outside.json', '{}')

        with self.assertRaises(BundleError):
            BundleReader(zip_path)

    def test_missing_and_corrupt_bundles(self):
        with self.assertRaises(BundleError):
            BundleReader(self.temp_dir / 'missing.zip')

        corrupt = self.temp_dir / 'corrupt.zip'
        corrupt.write_bytes(b'not a zip')
        with self.assertRaises(BundleError):
            BundleReader(corrupt)


if __name__ == '__main__':
    unittest.main()
