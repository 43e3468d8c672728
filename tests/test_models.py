import unittest
from datetime import datetime, timezone
from decimal import Decimal

from models import (
    BinaryValue,
    ContentNode,
    ContentProperty,
    ExecutionParams,
    ItemSelector,
    JobState,
    MigrationRecord,
    ProcessStatus,
    PropertyType,
    PublishMode,
    Result,
    category_of_path,
    split_path,
    strip_index_notation,
)


class TestContentNode(unittest.TestCase):
    def setUp(self):
        self.node = ContentNode(name='doc', primary_type='demo:document')
        self.node.set_property('demo:title', PropertyType.STRING, 'Hello')
        self.node.set_property('demo:tags', PropertyType.STRING, ['a', 'b'])
        self.node.add_node(ContentNode(name='para', primary_type='demo:para'))
        self.node.add_node(ContentNode(name='para', primary_type='demo:para'))

    def test_set_property_infers_multiple_flag(self):
        self.assertFalse(self.node.get_property('demo:title').multiple)
        self.assertTrue(self.node.get_property('demo:tags').multiple)
        self.assertEqual(self.node.get_property_value('demo:tags'), 'a')

    def test_set_property_replaces_in_place(self):
        self.node.set_property('demo:title', PropertyType.STRING, 'Changed')
        self.assertEqual(self.node.properties[0].name, 'demo:title')
        self.assertEqual(self.node.get_property_value('demo:title'), 'Changed')

    def test_single_valued_property_rejects_many_values(self):
        with self.assertRaises(ValueError):
            ContentProperty('demo:x', PropertyType.STRING, multiple=False, values=['a', 'b'])

    def test_get_node_index_notation(self):
        second = self.node.get_node('para[2]')
        self.assertIs(second, self.node.nodes[1])
        self.assertIsNone(self.node.get_node('para[3]'))

    def test_walk_uses_index_notation_for_siblings(self):
        paths = [path for path, _ in self.node.walk()]
        self.assertEqual(paths, ['', 'para', 'para[2]'])

    def test_deep_copy_is_detached(self):
        copy = self.node.deep_copy()
        copy.nodes[0].name = 'other'
        copy.get_property('demo:tags').values.append('c')
        self.assertEqual(self.node.nodes[0].name, 'para')
        self.assertEqual(self.node.get_property('demo:tags').values, ['a', 'b'])

    def test_dict_round_trip_keeps_types(self):
        node = ContentNode(name='n')
        node.set_property('d', PropertyType.DATE, datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc))
        node.set_property('m', PropertyType.DECIMAL, Decimal('1.10'))
        node.properties.append(ContentProperty('e', PropertyType.LONG, multiple=True, values=[]))

        restored = ContentNode.from_dict(node.to_dict())

        self.assertEqual(restored, node)
        self.assertIs(restored.get_property('e').type, PropertyType.LONG)
        self.assertTrue(restored.get_property('e').multiple)


class TestBinaryValue(unittest.TestCase):
    def test_requires_exactly_one_of_data_or_locator(self):
        with self.assertRaises(ValueError):
            BinaryValue()
        with self.assertRaises(ValueError):
            BinaryValue(data=b'x', locator='a/b')

    def test_data_url(self):
        value = BinaryValue(data=b'hello', media_type='text/plain')
        self.assertEqual(value.to_url(), 'data:text/plain;base64,aGVsbG8=')
        parsed = BinaryValue.from_url(value.to_url())
        self.assertEqual(parsed.data, b'hello')
        self.assertEqual(parsed.media_type, 'text/plain')

    def test_percent_encoded_data_url(self):
        parsed = BinaryValue.from_url('data:,hello%20world')
        self.assertEqual(parsed.data, b'hello world')

    def test_locator_is_external(self):
        parsed = BinaryValue.from_url('EXIM-INF/data/attachments/a.png')
        self.assertTrue(parsed.is_external)
        self.assertEqual(parsed.media_type, 'image/png')
        self.assertIsNone(parsed.size)

    def test_malformed_data_url(self):
        with self.assertRaises(ValueError):
            BinaryValue.from_url('data:text/plain;base64')


class TestPropertyType(unittest.TestCase):
    def test_boolean_decode(self):
        self.assertTrue(PropertyType.BOOLEAN.decode('TRUE'))
        self.assertFalse(PropertyType.BOOLEAN.decode(False))
        with self.assertRaises(ValueError):
            PropertyType.BOOLEAN.decode('yes')

    def test_date_encode_decode(self):
        value = datetime(2023, 12, 31, 23, 59, 59, tzinfo=timezone.utc)
        self.assertEqual(PropertyType.DATE.decode(PropertyType.DATE.encode(value)), value)


class TestPaths(unittest.TestCase):
    def test_category_of_path(self):
        self.assertEqual(category_of_path('/content/documents/site/a'), 'documents')
        self.assertEqual(category_of_path('/content/gallery/site/a.png'), 'binaries')
        self.assertEqual(category_of_path('/content/assets/site/a.pdf'), 'binaries')
        self.assertIsNone(category_of_path('/content/documentsx/a'))
        self.assertIsNone(category_of_path('/etc/a'))

    def test_strip_index_notation(self):
        self.assertEqual(strip_index_notation('/content/documents/a[2]/b[3]'), '/content/documents/a/b')

    def test_split_path(self):
        self.assertEqual(split_path('/content/documents/a'), ('/content/documents', 'a'))
        self.assertEqual(split_path('/a'), ('/', 'a'))


class TestRecordsAndResult(unittest.TestCase):
    def test_mark_failed_keeps_processed(self):
        record = MigrationRecord(content_path='/content/documents/a', processed=True, succeeded=True)
        record.mark_failed(RuntimeError('boom'))
        self.assertTrue(record.processed)
        self.assertFalse(record.succeeded)
        self.assertEqual(record.error_message, 'boom')

    def test_mark_failed_uses_class_name_for_empty_message(self):
        record = MigrationRecord()
        record.mark_failed(KeyError())
        self.assertEqual(record.error_message, 'KeyError')

    def test_result_counts_and_close(self):
        result = Result()
        result.add_record('documents', MigrationRecord(content_path='/a', processed=True, succeeded=True))
        result.add_record('documents', MigrationRecord(content_path='/b', processed=True))
        result.add_record('binaries', MigrationRecord(content_path='/c', processed=True, succeeded=True))

        self.assertEqual(result.total_count, 3)
        self.assertEqual(result.succeeded_count, 2)
        self.assertEqual(result.failed_count, 1)
        self.assertEqual(result.category_counts('documents'), {'total': 2, 'succeeded': 1, 'failed': 1})

        result.close()
        self.assertIsNotNone(result.stopped_at)
        with self.assertRaises(RuntimeError):
            result.add_error('late')


class TestExecutionParams(unittest.TestCase):
    def test_defaults(self):
        params = ExecutionParams()
        self.assertEqual(params.batch_size, 200)
        self.assertEqual(params.throttle, 10)
        self.assertIs(params.publish_on_import, PublishMode.NONE)
        self.assertEqual(params.data_url_size_threshold, 256 * 1024)

    def test_invalid_values(self):
        with self.assertRaises(ValueError):
            ExecutionParams(batch_size=0)
        with self.assertRaises(ValueError):
            ExecutionParams(throttle=-1)
        with self.assertRaises(ValueError):
            ExecutionParams(file_format='yaml')

    def test_publish_mode_accepts_legacy_flag(self):
        self.assertIs(PublishMode.parse(True), PublishMode.ALL)
        self.assertIs(PublishMode.parse('LIVE'), PublishMode.LIVE)
        with self.assertRaises(ValueError):
            PublishMode.parse('sometimes')

    def test_from_dict(self):
        params = ExecutionParams.from_dict({
            'batch_size': 5,
            'publish_on_import': 'live',
            'documents': {'paths': '/content/documents/site'},
            'document_tags': 'demo:tags=a,b',
        })
        self.assertEqual(params.batch_size, 5)
        self.assertIs(params.publish_on_import, PublishMode.LIVE)
        self.assertEqual(params.documents.paths, ['/content/documents/site'])
        self.assertEqual(params.document_tags, ['demo:tags=a,b'])

    def test_folder_hints_by_root(self):
        params = ExecutionParams()
        self.assertEqual(params.folder_hints_for('/content/gallery/site').primary_type, 'gallery:stdImageGallery')
        self.assertEqual(params.folder_hints_for('/content/assets/site').primary_type, 'gallery:stdAssetGallery')
        self.assertEqual(params.folder_hints_for('/content/documents/site').primary_type, 'sys:folder')


class TestItemSelector(unittest.TestCase):
    def test_include_then_exclude(self):
        selector = ItemSelector(
            includes=['/content/documents/site'],
            excludes=['/content/documents/site/private', '*/draft-*']
        )
        self.assertTrue(selector.accepts('/content/documents/site/news/a'))
        self.assertFalse(selector.accepts('/content/documents/other/a'))
        self.assertFalse(selector.accepts('/content/documents/site/private/a'))
        self.assertFalse(selector.accepts('/content/documents/site/news/draft-1'))

    def test_empty_selector_accepts_everything(self):
        selector = ItemSelector()
        self.assertTrue(selector.is_empty())
        self.assertTrue(selector.accepts('/content/documents/a'))


class TestProcessStatus(unittest.TestCase):
    def test_progress_is_clamped(self):
        status = ProcessStatus(id=1)
        status.update_progress(3, 4)
        self.assertEqual(status.progress, 0.75)
        status.update_progress(5, 4)
        self.assertEqual(status.progress, 1.0)
        status.update_progress(1, 0)
        self.assertEqual(status.progress, 0.0)
        self.assertIs(status.state, JobState.RUNNING)
        self.assertFalse(status.is_finished)


if __name__ == '__main__':
    unittest.main()
