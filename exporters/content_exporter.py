"""
Export pipeline: store items -> one snapshot file per item.

A single loop serves documents and binaries; an ExportPlan carries what
differs between the categories (filter, tags, variant preference).
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple, Union

from content.binary_codec import BinaryCodec
from content.item_filter import ItemFilter, export_binary_filter, export_document_filter
from content.reference_resolver import ReferenceResolver
from content.serializers import ContentSerializer, get_serializer
from content.tags import apply_tags
from logger import ProgressTracker
from models import (
    CATEGORY_BINARIES,
    CATEGORY_DOCUMENTS,
    DISPLAY_NAME_PROPERTY,
    EXPORT_VARIANT_PREFERENCE,
    META_LOCALIZED_NAME_PROPERTY,
    META_PATH_PROPERTY,
    ContentNode,
    ExecutionParams,
    MigrationRecord,
    PropertyType,
    Result,
    category_of_path,
    strip_index_notation,
)
from orchestrator.batch_controller import BatchController, StopSignal
from store.base_store import StoreError
from store.content_mapper import map_node
from store.document_manager import DocumentManager

logger = logging.getLogger('content_exim.exporters.content_exporter')

ProgressCallback = Callable[[int, int], None]


@dataclass
class ExportPlan:
    """Per-category parameters of the export loop."""

    category: str
    item_filter: ItemFilter
    tags: List[str] = field(default_factory=list)
    variant_states: Tuple[str, ...] = EXPORT_VARIANT_PREFERENCE


class ContentExporter:
    """Exports selected items of a store into a bundle directory."""

    def __init__(
        self,
        document_manager: DocumentManager,
        params: ExecutionParams,
        bundle_dir: Union[str, Path],
        batch: BatchController,
        stop_signal: Optional[StopSignal] = None,
        serializer: Optional[ContentSerializer] = None,
        progress_callback: Optional[ProgressCallback] = None,
        show_progress: bool = False,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize the exporter.

        Args:
            document_manager: Workflow collaborator bound to the run's store session
            params: Execution parameters of the run
            bundle_dir: Directory receiving snapshot files and attachments
            batch: Batch controller of the run
            stop_signal: Cooperative stop signal checked before each item
            serializer: Snapshot serializer (defaults to params.file_format)
            progress_callback: Called with (processed, total) after each item
            show_progress: Display progress bars
            logger: Optional logger instance
        """
        self.document_manager = document_manager
        self.store = document_manager.store
        self.params = params
        self.bundle_dir = Path(bundle_dir)
        self.batch = batch
        self.stop_signal = stop_signal or StopSignal()
        self.serializer = serializer or get_serializer(params.file_format)
        self.progress_callback = progress_callback
        self.show_progress = show_progress
        self.logger = logger or logging.getLogger('content_exim.exporters.content_exporter')

        self.resolver = ReferenceResolver(self.store, params.docbase_prop_names)
        self.codec = BinaryCodec(params.data_url_size_threshold)

        self._processed = 0
        self._total = 0

    def plan_for(self, category: str) -> ExportPlan:
        if category == CATEGORY_BINARIES:
            return ExportPlan(CATEGORY_BINARIES, export_binary_filter(), list(self.params.binary_tags))
        return ExportPlan(CATEGORY_DOCUMENTS, export_document_filter(), list(self.params.document_tags))

    def export(self, document_paths: List[str], binary_paths: List[str], result: Result) -> Dict[str, List[MigrationRecord]]:
        """
        Export documents, then binaries including those referenced by documents.

        Args:
            document_paths: Selected document item paths
            binary_paths: Selected binary item paths
            result: Run result receiving one entry per record

        Returns:
            Records per category, in processing order
        """
        records: Dict[str, List[MigrationRecord]] = {CATEGORY_DOCUMENTS: [], CATEGORY_BINARIES: []}
        referred_paths: List[str] = []
        self._processed = 0
        self._total = len(document_paths) + len(binary_paths)

        self.export_items(
            self.plan_for(CATEGORY_DOCUMENTS), document_paths, result,
            records[CATEGORY_DOCUMENTS], referred_paths
        )

        selected = set(binary_paths)
        referred_binaries = [
            path for path in referred_paths
            if category_of_path(path) == CATEGORY_BINARIES and path not in selected
        ]
        if referred_binaries:
            self.logger.info(
                f"Adding {len(referred_binaries)} binaries referenced by exported documents"
            )
            self._total += len(referred_binaries)

        self.export_items(
            self.plan_for(CATEGORY_BINARIES), list(binary_paths) + referred_binaries, result,
            records[CATEGORY_BINARIES], []
        )

        return records

    def export_items(
        self,
        plan: ExportPlan,
        paths: List[str],
        result: Result,
        records: List[MigrationRecord],
        referred_paths: List[str]
    ) -> None:
        """
        Run the export loop over one category.

        Args:
            plan: Category plan
            paths: Item paths in selection order
            result: Run result
            records: List receiving finished records
            referred_paths: List receiving paths referenced by exported items
        """
        with ProgressTracker(len(paths), plan.category, self.show_progress) as tracker:
            for path in paths:
                if self.stop_signal.is_requested():
                    self.logger.info(
                        f"Stop requested; {plan.category} export ends after {len(records)} items"
                    )
                    break

                record = self._export_item(plan, path, referred_paths)
                self._processed += 1

                if record is not None:
                    records.append(record)
                    result.add_record(plan.category, record)
                    tracker.increment(record.succeeded)
                    self.batch.tick()

                if self.progress_callback:
                    self.progress_callback(self._processed, self._total)

    def _export_item(self, plan: ExportPlan, path: str, referred_paths: List[str]) -> Optional[MigrationRecord]:
        try:
            item = self.document_manager.locate(path)
            found = self.document_manager.find_variant(item, plan.variant_states) if item else None
        except StoreError as e:
            self.logger.error(f"Cannot read item at {path}: {e}")
            record = MigrationRecord(content_path=path, processed=True)
            record.mark_failed(e)
            return record

        if found is None:
            self.logger.info(f"Skipping {path}: no exportable variant")
            return None

        state, variant = found
        record = MigrationRecord(
            content_id=self.store.identifier_of(variant) or '',
            content_path=path,
            content_type=variant.primary_type,
            processed=True
        )

        try:
            node = map_node(variant, plan.item_filter)

            self._attach_metadata(node, path)
            self._resolve_references(node, record, referred_paths)

            rel_path = strip_index_notation(path.lstrip('/'))
            externalized = self.codec.externalize(node, self.bundle_dir, rel_path)
            if externalized:
                record.set_attribute('attachments', externalized)

            apply_tags(node, plan.tags)

            file_rel_path = rel_path + self.serializer.file_extension
            self.serializer.write(node, self.bundle_dir / file_rel_path)
            record.set_attribute('file', file_rel_path)
            record.set_attribute('variant', state)
            record.succeeded = True
            self.logger.debug(f"Exported {path} to {file_rel_path}")

        except Exception as e:
            record.mark_failed(e)
            self.logger.error(
                f"Failed to export {path}: {e}",
                exc_info=self.logger.isEnabledFor(logging.DEBUG)
            )

        return record

    def _attach_metadata(self, node: ContentNode, path: str) -> None:
        handle = self.store.get_node(path)
        display_name = handle.get_property_value(DISPLAY_NAME_PROPERTY) or handle.name
        node.set_property(META_PATH_PROPERTY, PropertyType.STRING, path)
        node.set_property(META_LOCALIZED_NAME_PROPERTY, PropertyType.STRING, display_name)

    def _resolve_references(self, node: ContentNode, record: MigrationRecord, referred_paths: List[str]) -> None:
        report = self.resolver.resolve_identities_to_paths(node)
        if report.dangling:
            # Soft condition: the identity stays in the snapshot as is
            record.set_attribute('danglingReferences', list(report.dangling))
            self.logger.warning(
                f"{record.content_path}: {len(report.dangling)} unresolvable reference(s) left unchanged"
            )
        for referred in report.referred_paths:
            if referred not in referred_paths:
                referred_paths.append(referred)


__all__ = ['ExportPlan', 'ContentExporter']
