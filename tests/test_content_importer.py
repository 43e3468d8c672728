import shutil
import tempfile
import unittest
from pathlib import Path
from unittest import mock

from content.serializers import JsonContentSerializer
from importers.bundle_reader import BundleReader
from importers.content_importer import ContentImporter, snapshot_was_live
from models import (
    DISPLAY_NAME_PROPERTY,
    PUBLISHED,
    STATE_PROPERTY,
    UNPUBLISHED,
    ContentNode,
    ExecutionParams,
    PropertyType,
    Result,
)
from orchestrator.batch_controller import BatchController, StopSignal
from store.memory_store import InMemoryContentStore
from store.workflow_document_manager import WorkflowDocumentManager
from sample_content import (
    DANGLING_ID,
    IMAGES_FOLDER,
    LOGO_BYTES,
    NEWS_FOLDER,
    build_news_store,
    build_sample_store,
    document_params,
    export_to_directory,
)


class ImporterTestCase(unittest.TestCase):
    def setUp(self):
        self.bundle_dir = Path(tempfile.mkdtemp())
        self.target = InMemoryContentStore()
        self.manager = WorkflowDocumentManager(self.target)

    def tearDown(self):
        shutil.rmtree(self.bundle_dir, ignore_errors=True)

    def run_import(self, params: ExecutionParams, stop_signal=None, progress_callback=None):
        batch = BatchController(self.target, params.batch_size, params.throttle, commit=True)
        result = Result()
        with BundleReader(self.bundle_dir) as bundle:
            importer = ContentImporter(
                self.manager,
                params,
                bundle,
                batch,
                stop_signal=stop_signal,
                progress_callback=progress_callback
            )
            records = importer.run(result)
        result.close()
        return records, result

    def variant(self, path: str, state: str = UNPUBLISHED) -> ContentNode:
        return self.manager.get_variant(self.manager.locate(path), state)

    def handle_id(self, path: str) -> str:
        return self.target.identifier_of(self.target.get_node(path))


class TestContentImporter(ImporterTestCase):
    def setUp(self):
        super().setUp()
        export_to_directory(build_sample_store(), document_params(), self.bundle_dir)

    def test_imports_binaries_before_documents(self):
        records, result = self.run_import(document_params())

        self.assertEqual([r.content_path for r in records['binaries']], [f"{IMAGES_FOLDER}/logo.png"])
        self.assertEqual(
            [r.content_path for r in records['documents']],
            [f"{NEWS_FOLDER}/first", f"{NEWS_FOLDER}/second", f"{NEWS_FOLDER}/third"]
        )
        self.assertEqual([item.category for item in result.items],
                         ['binaries', 'documents', 'documents', 'documents'])
        self.assertEqual(result.failed_count, 0)
        self.assertEqual(result.errors, [])

    def test_records(self):
        records, _ = self.run_import(document_params())

        first = records['documents'][0]
        self.assertTrue(first.processed)
        self.assertTrue(first.succeeded)
        self.assertEqual(first.content_type, 'demo:newsdocument')
        self.assertEqual(first.content_id, self.handle_id(f"{NEWS_FOLDER}/first"))
        self.assertEqual(first.get_attribute('file'), 'content/documents/site/news/first.json')

    def test_items_and_folders_are_created(self):
        self.run_import(document_params())

        self.assertEqual(self.target.get_node('/content/gallery/site/images').primary_type, 'gallery:stdImageGallery')
        self.assertEqual(self.target.get_node(NEWS_FOLDER).primary_type, 'sys:folder')
        self.assertEqual(self.target.get_node('/content').primary_type, 'sys:folder')
        self.assertEqual(
            self.target.get_node(f"{NEWS_FOLDER}/first").get_property_value(DISPLAY_NAME_PROPERTY),
            'First News'
        )

        first = self.variant(f"{NEWS_FOLDER}/first")
        self.assertEqual(first.get_property_value('demo:title'), 'First news')
        self.assertEqual(first.get_property('sys:availability').values, ['preview'])
        self.assertFalse(first.has_property('meta:path'))
        self.assertFalse(first.has_property('meta:localizedName'))

        logo = self.variant(f"{IMAGES_FOLDER}/logo.png")
        data = logo.get_node('gallery:original').get_property_value('sys:data')
        self.assertEqual(data.data, LOGO_BYTES)

    def test_references_resolve_to_target_identities(self):
        self.run_import(document_params())

        first = self.variant(f"{NEWS_FOLDER}/first")
        self.assertEqual(
            first.get_node('demo:related').get_property_value('sys:docbase'),
            self.handle_id(f"{IMAGES_FOLDER}/logo.png")
        )

    def test_forward_references_are_resolved_by_cleanup(self):
        records, _ = self.run_import(document_params())

        second_record = records['documents'][1]
        self.assertEqual(second_record.get_attribute('unresolvedReferences'), [f"{NEWS_FOLDER}/third"])

        second = self.variant(f"{NEWS_FOLDER}/second")
        self.assertEqual(
            second.get_node('demo:related').get_property_value('sys:docbase'),
            self.handle_id(f"{NEWS_FOLDER}/third")
        )

    def test_dangling_identity_is_kept(self):
        self.run_import(document_params())
        third = self.variant(f"{NEWS_FOLDER}/third")
        self.assertEqual(third.get_node('demo:related').get_property_value('sys:docbase'), DANGLING_ID)

    def test_publish_none(self):
        records, _ = self.run_import(document_params(publish_on_import='none'))
        self.assertIsNone(self.variant(f"{NEWS_FOLDER}/first", PUBLISHED))
        self.assertIsNone(records['documents'][0].get_attribute('published'))

    def test_publish_all_skips_binaries(self):
        records, _ = self.run_import(document_params(publish_on_import='all'))

        for name in ('first', 'second', 'third'):
            with self.subTest(name=name):
                published = self.variant(f"{NEWS_FOLDER}/{name}", PUBLISHED)
                self.assertIsNotNone(published)
                self.assertEqual(published.get_property('sys:availability').values, ['live'])
        self.assertTrue(all(r.get_attribute('published') for r in records['documents']))
        self.assertIsNone(self.variant(f"{IMAGES_FOLDER}/logo.png", PUBLISHED))

    def test_published_variant_has_resolved_forward_reference(self):
        self.run_import(document_params(publish_on_import='all'))
        second = self.variant(f"{NEWS_FOLDER}/second", PUBLISHED)
        self.assertEqual(
            second.get_node('demo:related').get_property_value('sys:docbase'),
            self.handle_id(f"{NEWS_FOLDER}/third")
        )

    def test_reimport_updates_existing_items(self):
        self.run_import(document_params())
        identity = self.handle_id(f"{NEWS_FOLDER}/first")

        records, result = self.run_import(document_params())

        self.assertEqual(result.failed_count, 0)
        self.assertEqual(records['documents'][0].content_id, identity)
        handle = self.target.get_node(f"{NEWS_FOLDER}/first")
        self.assertEqual([c.get_property_value(STATE_PROPERTY) for c in handle.nodes], [UNPUBLISHED])

    def test_selection_excludes(self):
        params = document_params(documents={'excludes': ['*/second']})
        records, _ = self.run_import(params)

        self.assertEqual([r.content_path for r in records['documents']], [f"{NEWS_FOLDER}/first", f"{NEWS_FOLDER}/third"])
        self.assertFalse(self.target.node_exists(f"{NEWS_FOLDER}/second"))

    def test_tags_on_import(self):
        self.run_import(document_params(document_tags=['demo:source=import']))
        first = self.variant(f"{NEWS_FOLDER}/first")
        self.assertEqual(first.get_property('demo:source').values, ['import'])

    def test_unreadable_and_foreign_files(self):
        (self.bundle_dir / 'content/documents/site/news/broken.json').write_text('garbage', encoding='utf-8')
        foreign = ContentNode(name='x')
        foreign.set_property('meta:path', PropertyType.STRING, '/etc/x')
        JsonContentSerializer().write(foreign, self.bundle_dir / 'etc/x.json')

        records, result = self.run_import(document_params())

        self.assertEqual(len(result.errors), 1)
        self.assertIn('broken.json', result.errors[0])
        self.assertEqual(result.total_count, 4)

    def test_item_failure_does_not_stop_the_run(self):
        child = ContentNode(name='child', primary_type='demo:newsdocument')
        child.set_property('meta:path', PropertyType.STRING, f"{NEWS_FOLDER}/first/child")
        JsonContentSerializer().write(child, self.bundle_dir / 'content/documents/site/news/first/child.json')

        records, result = self.run_import(document_params())

        failed = [r for r in records['documents'] if not r.succeeded]
        self.assertEqual(len(failed), 1)
        self.assertEqual(failed[0].content_path, f"{NEWS_FOLDER}/first/child")
        self.assertTrue(failed[0].processed)
        self.assertIn('Not a folder', failed[0].error_message)
        self.assertEqual(result.succeeded_count, 4)
        self.assertTrue(self.target.node_exists(f"{NEWS_FOLDER}/third"))


    def test_snapshots_are_read_when_imported(self):
        second = self.bundle_dir / 'content/documents/site/news/second.json'
        categorize = BundleReader.categorize

        def categorize_then_remove(bundle, serializer=None):
            grouped = categorize(bundle, serializer)
            second.unlink()
            return grouped

        with mock.patch.object(BundleReader, 'categorize', categorize_then_remove):
            records, result = self.run_import(document_params())

        failed = [r for r in records['documents'] if not r.succeeded]
        self.assertEqual([r.content_path for r in failed], [f"{NEWS_FOLDER}/second"])
        self.assertTrue(failed[0].processed)
        self.assertEqual(failed[0].get_attribute('file'), 'content/documents/site/news/second.json')
        self.assertTrue(self.target.node_exists(f"{NEWS_FOLDER}/third"))


class TestImportAttachments(ImporterTestCase):
    def test_externalized_binaries_are_rehydrated(self):
        result = export_to_directory(build_sample_store(), document_params(data_url_size_threshold=8), self.bundle_dir)
        self.assertEqual(result.failed_count, 0)

        self.run_import(document_params())

        logo = self.variant(f"{IMAGES_FOLDER}/logo.png")
        value = logo.get_node('gallery:original').get_property_value('sys:data')
        self.assertTrue(value.is_inline)
        self.assertEqual(value.data, LOGO_BYTES)

    def test_missing_attachment_fails_the_item(self):
        export_to_directory(build_sample_store(), document_params(data_url_size_threshold=8), self.bundle_dir)
        shutil.rmtree(self.bundle_dir / 'EXIM-INF')

        records, _ = self.run_import(document_params())

        logo = records['binaries'][0]
        self.assertTrue(logo.processed)
        self.assertFalse(logo.succeeded)
        self.assertFalse(self.target.node_exists(f"{IMAGES_FOLDER}/logo.png"))


class TestImportBatching(ImporterTestCase):
    def setUp(self):
        super().setUp()
        export_to_directory(build_news_store(5), document_params(), self.bundle_dir)

    def test_one_commit_per_batch(self):
        self.run_import(document_params(batch_size=2))
        self.assertEqual(self.target.save_count, 3)
        self.assertFalse(self.target.has_pending_changes())

    def test_single_batch(self):
        self.run_import(document_params())
        self.assertEqual(self.target.save_count, 1)

    def test_publish_live_follows_snapshot_availability(self):
        records, _ = self.run_import(document_params(publish_on_import='live'))
        self.assertTrue(all(r.get_attribute('published') for r in records['documents']))

    def test_stop_after_k_items(self):
        stop = StopSignal()

        def on_progress(processed, total):
            if processed == 3:
                stop.request()

        records, result = self.run_import(document_params(batch_size=2), stop_signal=stop,
                                          progress_callback=on_progress)

        self.assertEqual(len(records['documents']), 3)
        self.assertEqual(result.total_count, 3)
        self.assertEqual(len(self.target.query(f"{NEWS_FOLDER}/*")), 3)
        self.assertFalse(self.target.has_pending_changes())


class TestPublishLive(ImporterTestCase):
    def test_unpublished_source_items_stay_unpublished(self):
        export_to_directory(build_sample_store(publish=False), document_params(), self.bundle_dir)
        records, _ = self.run_import(document_params(publish_on_import='live'))

        self.assertIsNone(self.variant(f"{NEWS_FOLDER}/first", PUBLISHED))
        self.assertFalse(any(r.get_attribute('published') for r in records['documents']))


class TestSnapshotWasLive(unittest.TestCase):
    def test_availability(self):
        node = ContentNode(name='doc')
        self.assertFalse(snapshot_was_live(node))
        node.set_property('sys:availability', PropertyType.STRING, ['preview'])
        self.assertFalse(snapshot_was_live(node))
        node.set_property('sys:availability', PropertyType.STRING, ['live', 'preview'])
        self.assertTrue(snapshot_was_live(node))


if __name__ == '__main__':
    unittest.main()
