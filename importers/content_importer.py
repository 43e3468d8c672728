"""
Import pipeline: bundle snapshot files -> store items.

One loop serves both categories; an ImportPlan carries the selector, filter,
tags, folder type hints and publish behaviour of a category. Binaries are
imported before documents so that document references to binaries resolve
during binding; remaining forward references are fixed by a cleanup pass.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple

from content.binary_codec import BinaryCodec
from content.item_filter import ItemFilter, import_filter
from content.reference_resolver import ReferenceResolver, ResolutionReport
from content.tags import apply_tags
from importers.bundle_reader import BundleReader
from logger import ProgressTracker
from models import (
    AVAILABILITY_PROPERTY,
    CATEGORY_BINARIES,
    CATEGORY_DOCUMENTS,
    LOCALE_PROPERTY,
    META_LOCALIZED_NAME_PROPERTY,
    STATE_PROPERTY,
    ContentNode,
    ExecutionParams,
    FolderTypeHints,
    ItemSelector,
    MigrationRecord,
    PublishMode,
    Result,
    split_path,
    strip_index_notation,
)
from orchestrator.batch_controller import BatchController, StopSignal
from store.content_mapper import bind_node
from store.document_manager import DocumentManager, ItemRef

logger = logging.getLogger('content_exim.importers.content_importer')

ProgressCallback = Callable[[int, int], None]

# Categories in import order
IMPORT_ORDER = (CATEGORY_BINARIES, CATEGORY_DOCUMENTS)


@dataclass
class ImportPlan:
    """Per-category parameters of the import loop."""

    category: str
    selector: ItemSelector
    item_filter: ItemFilter
    tags: List[str] = field(default_factory=list)
    folder_type_hints: Callable[[str], FolderTypeHints] = FolderTypeHints
    publish_mode: PublishMode = PublishMode.NONE


def snapshot_was_live(node: ContentNode) -> bool:
    """
    Tell whether a snapshot was taken from a live (published) variant.

    Best-effort: reads the availability recorded at export time, which may no
    longer match the source store.
    """
    prop = node.get_property(AVAILABILITY_PROPERTY)
    return prop is not None and 'live' in prop.values


class ContentImporter:
    """Imports the snapshot files of a bundle into a store."""

    def __init__(
        self,
        document_manager: DocumentManager,
        params: ExecutionParams,
        bundle: BundleReader,
        batch: BatchController,
        stop_signal: Optional[StopSignal] = None,
        progress_callback: Optional[ProgressCallback] = None,
        show_progress: bool = False,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize the importer.

        Args:
            document_manager: Workflow collaborator bound to the run's store session
            params: Execution parameters of the run
            bundle: Opened bundle to import from
            batch: Batch controller of the run (committing)
            stop_signal: Cooperative stop signal checked before each file
            progress_callback: Called with (processed, total) after each file
            show_progress: Display progress bars
            logger: Optional logger instance
        """
        self.document_manager = document_manager
        self.store = document_manager.store
        self.params = params
        self.bundle = bundle
        self.batch = batch
        self.stop_signal = stop_signal or StopSignal()
        self.progress_callback = progress_callback
        self.show_progress = show_progress
        self.logger = logger or logging.getLogger('content_exim.importers.content_importer')

        self.resolver = ReferenceResolver(self.store, params.docbase_prop_names)
        self.codec = BinaryCodec(params.data_url_size_threshold)

        self._processed = 0
        self._total = 0

    def plan_for(self, category: str) -> ImportPlan:
        publish_mode = PublishMode.NONE
        if category == CATEGORY_DOCUMENTS:
            publish_mode = self.params.publish_on_import
        return ImportPlan(
            category=category,
            selector=self.params.selector_for(category),
            item_filter=import_filter(),
            tags=list(self.params.tags_for(category)),
            folder_type_hints=self.params.folder_hints_for,
            publish_mode=publish_mode
        )

    def run(self, result: Result) -> Dict[str, List[MigrationRecord]]:
        """
        Import every snapshot of the bundle.

        Args:
            result: Run result receiving one entry per record

        Returns:
            Records per category, in processing order
        """
        grouped = self.bundle.categorize()
        for rel_path, reason in self.bundle.skipped:
            if not reason.startswith('not importable'):
                result.add_error(f"Cannot read {rel_path}: {reason}")

        records: Dict[str, List[MigrationRecord]] = {category: [] for category in IMPORT_ORDER}
        self._processed = 0
        self._total = sum(len(grouped.get(category, [])) for category in IMPORT_ORDER)

        for category in IMPORT_ORDER:
            self.import_items(self.plan_for(category), grouped.get(category, []), result, records[category])

        self.cleanup_references(records[CATEGORY_BINARIES] + records[CATEGORY_DOCUMENTS])
        self.batch.finish()
        return records

    def import_items(
        self,
        plan: ImportPlan,
        snapshots: List[Tuple[Path, str]],
        result: Result,
        records: List[MigrationRecord]
    ) -> None:
        """
        Run the import loop over one category.

        Args:
            plan: Category plan
            snapshots: (file, item path) pairs in discovery order
            result: Run result
            records: List receiving finished records
        """
        with ProgressTracker(len(snapshots), plan.category, self.show_progress) as tracker:
            for file_path, snapshot_path in snapshots:
                if self.stop_signal.is_requested():
                    self.logger.info(
                        f"Stop requested; {plan.category} import ends after {len(records)} items"
                    )
                    break

                record = self._import_item(plan, file_path, snapshot_path)
                self._processed += 1

                if record is not None:
                    records.append(record)
                    result.add_record(plan.category, record)
                    tracker.increment(record.succeeded)
                    self.batch.tick()

                if self.progress_callback:
                    self.progress_callback(self._processed, self._total)

    def _import_item(self, plan: ImportPlan, file_path: Path, snapshot_path: str) -> Optional[MigrationRecord]:
        item_path = strip_index_notation(snapshot_path)
        if not plan.selector.accepts(item_path):
            self.logger.debug(f"Skipping {item_path}: excluded by {plan.category} selection")
            return None

        record = MigrationRecord(content_path=item_path, processed=True)
        record.set_attribute('file', self.bundle.relative_path(file_path))

        try:
            node = self.bundle.read(file_path)
            record.content_type = node.primary_type
            self.codec.rehydrate(node, self.bundle.base_dir)
            apply_tags(node, plan.tags)

            # Read before the import filter drops availability
            was_live = snapshot_was_live(node)

            report = self.resolver.resolve_paths_to_identities(node)
            if report.dangling:
                record.set_attribute('unresolvedReferences', list(report.dangling))

            item = self._locate_or_create(plan, item_path, node)
            record.content_id = item.identifier or ''

            self._bind(plan, item, node)

            if plan.publish_mode is PublishMode.ALL or (plan.publish_mode is PublishMode.LIVE and was_live):
                self.document_manager.depublish(item)
                self.document_manager.publish(item)
                record.set_attribute('published', True)

            record.succeeded = True
            self.logger.debug(f"Imported {record.get_attribute('file')} to {item_path}")

        except Exception as e:
            record.mark_failed(e)
            self.logger.error(
                f"Failed to import {item_path}: {e}",
                exc_info=self.logger.isEnabledFor(logging.DEBUG)
            )

        return record

    def _locate_or_create(self, plan: ImportPlan, item_path: str, node: ContentNode) -> ItemRef:
        item = self.document_manager.locate(item_path)
        if item is not None:
            return item

        folder_path, name = split_path(item_path)
        self._ensure_folder(plan, folder_path)

        return self.document_manager.create_item(
            folder_path,
            node.primary_type,
            name,
            locale=node.get_property_value(LOCALE_PROPERTY),
            display_name=node.get_property_value(META_LOCALIZED_NAME_PROPERTY)
        )

    def _ensure_folder(self, plan: ImportPlan, folder_path: str) -> None:
        """Create missing folders top-down, each with the type hints of its own path."""
        missing = []
        current = folder_path
        while current != '/' and self.document_manager.locate(current) is None:
            missing.append(current)
            current, _ = split_path(current)

        for path in reversed(missing):
            self.document_manager.create_folder(path, plan.folder_type_hints(path))

    def _bind(self, plan: ImportPlan, item: ItemRef, node: ContentNode) -> None:
        editable = self.document_manager.obtain_editable(item)
        try:
            bind_node(editable.node, node, plan.item_filter)
            editable.node.primary_type = node.primary_type
            self.document_manager.commit(editable)
        except Exception:
            self.document_manager.dispose(editable)
            raise

    def cleanup_references(self, records: List[MigrationRecord]) -> ResolutionReport:
        """
        Resolve location references left in imported items to identities.

        References to items imported later in the run cannot resolve while the
        referring item is bound; this pass runs once every item exists.

        Args:
            records: Records of the run

        Returns:
            Combined report of the pass
        """
        total = ResolutionReport()

        for record in records:
            if not record.succeeded:
                continue
            item = self.document_manager.locate(record.content_path)
            if item is None:
                continue
            handle = self.store.get_node(item.path)
            for variant in handle.nodes:
                if not variant.has_property(STATE_PROPERTY):
                    continue
                report = self.resolver.resolve_paths_to_identities(variant)
                if report.dangling:
                    self.logger.warning(
                        f"{record.content_path}: unresolved references after import: {report.dangling}"
                    )
                total.merge(report)

        if total.resolved:
            self.logger.info(f"Cleanup resolved {total.resolved} forward references")
        return total


__all__ = ['ImportPlan', 'ContentImporter', 'snapshot_was_live', 'IMPORT_ORDER']
