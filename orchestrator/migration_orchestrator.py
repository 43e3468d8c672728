"""
Migration orchestrator running complete export and import runs.

An export run collects the selected items, exports them into a working
directory, writes the execution log and per-category summaries under
EXIM-INF/ and zips the directory into the bundle. An import run opens a
bundle (zip or directory), imports binaries then documents and reports the
outcome.
"""

import contextlib
import logging
import shutil
import tempfile
import time
import zipfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union

from exporters.content_exporter import ContentExporter
from exporters.item_collector import ItemCollector
from importers.bundle_reader import BundleReader
from importers.content_importer import ContentImporter
from logger import execution_log, log_params, log_section
from models import (
    CATEGORY_BINARIES,
    CATEGORY_DOCUMENTS,
    EXECUTION_LOG_REL_PATH,
    STOP_REQUEST_FILE_REL_PATH,
    SUMMARY_BINARIES_LOG_REL_PATH,
    SUMMARY_DOCUMENTS_LOG_REL_PATH,
    ExecutionParams,
    MigrationRecord,
    Result,
)
from orchestrator.batch_controller import BatchController, StopSignal
from orchestrator.migration_report import MigrationReport
from store.base_store import ContentStore
from store.document_manager import DocumentManager

logger = logging.getLogger('content_exim.orchestrator.migration_orchestrator')

ProgressCallback = Callable[[int, int], None]

SUMMARY_REL_PATHS = {
    CATEGORY_DOCUMENTS: SUMMARY_DOCUMENTS_LOG_REL_PATH,
    CATEGORY_BINARIES: SUMMARY_BINARIES_LOG_REL_PATH,
}


@dataclass
class RunOutcome:
    """Everything a finished export or import run produced."""

    workflow: str
    result: Result
    records: Dict[str, List[MigrationRecord]]
    summaries: Dict[str, str] = field(default_factory=dict)
    report: Dict[str, Any] = field(default_factory=dict)
    bundle_path: Optional[str] = None
    cancelled: bool = False

    @property
    def has_failures(self) -> bool:
        return self.result.failed_count > 0 or bool(self.result.errors)


def zip_directory(source_dir: Union[str, Path], zip_path: Union[str, Path]) -> Path:
    """
    Compress a directory into a zip archive with paths relative to it.

    Args:
        source_dir: Directory to compress
        zip_path: Archive to write

    Returns:
        Path of the archive
    """
    source = Path(source_dir)
    target = Path(zip_path)
    target.parent.mkdir(parents=True, exist_ok=True)

    with zipfile.ZipFile(target, 'w', compression=zipfile.ZIP_DEFLATED) as archive:
        for file_path in sorted(source.rglob('*')):
            if file_path.is_file():
                archive.write(file_path, file_path.relative_to(source).as_posix())

    return target


class MigrationOrchestrator:
    """Runs export and import pipelines against one store session."""

    def __init__(
        self,
        store: ContentStore,
        document_manager: DocumentManager,
        params: ExecutionParams,
        show_progress: bool = False,
        report_generator: Optional[MigrationReport] = None,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize migration orchestrator.

        Args:
            store: Store session owned by the run
            document_manager: Workflow collaborator bound to the same session
            params: Execution parameters
            show_progress: Display progress bars
            report_generator: Report builder (a default one when omitted)
            logger: Optional logger instance
        """
        self.store = store
        self.document_manager = document_manager
        self.params = params
        self.show_progress = show_progress
        self.report_generator = report_generator or MigrationReport()
        self.logger = logger or logging.getLogger('content_exim.orchestrator.migration_orchestrator')

    def run_export(
        self,
        bundle_path: Union[str, Path],
        stop_signal: Optional[StopSignal] = None,
        progress_callback: Optional[ProgressCallback] = None
    ) -> RunOutcome:
        """
        Export the selected items into a zip bundle.

        Args:
            bundle_path: Zip file to write
            stop_signal: Cooperative stop signal
            progress_callback: Called with (processed, total) after each item

        Returns:
            Outcome of the run

        Raises:
            MigrationError, StoreError: If the run aborts
        """
        log_section("Content Export")
        log_params(self.params)

        work_dir = Path(tempfile.mkdtemp(prefix='exim-export-'))
        stop = (stop_signal or StopSignal()).with_stop_file(work_dir / STOP_REQUEST_FILE_REL_PATH)
        result = Result()
        started = time.time()

        try:
            with execution_log(work_dir / EXECUTION_LOG_REL_PATH):
                try:
                    collector = ItemCollector(self.store)
                    document_paths = collector.collect(self.params.documents, CATEGORY_DOCUMENTS)
                    binary_paths = collector.collect(self.params.binaries, CATEGORY_BINARIES)
                    if not document_paths and not binary_paths:
                        self.logger.warning("Nothing selected for export")

                    batch = BatchController(
                        self.store, self.params.batch_size, self.params.throttle, commit=False
                    )
                    exporter = ContentExporter(
                        self.document_manager,
                        self.params,
                        work_dir,
                        batch,
                        stop_signal=stop,
                        progress_callback=progress_callback,
                        show_progress=self.show_progress
                    )
                    records = exporter.export(document_paths, binary_paths, result)
                    batch.finish()
                finally:
                    result.close()

                summaries = self._write_summaries(records, started, work_dir)

            # Bookkeeping file, not part of the bundle
            (work_dir / STOP_REQUEST_FILE_REL_PATH).unlink(missing_ok=True)
            zip_directory(work_dir, bundle_path)
            self.logger.info(f"Bundle written to {bundle_path}")
        finally:
            shutil.rmtree(work_dir, ignore_errors=True)

        report = self.report_generator.generate_report('export', result, records, str(bundle_path))
        return RunOutcome(
            workflow='export',
            result=result,
            records=records,
            summaries=summaries,
            report=report,
            bundle_path=str(bundle_path),
            cancelled=stop.is_requested()
        )

    def run_import(
        self,
        bundle_path: Union[str, Path],
        stop_signal: Optional[StopSignal] = None,
        progress_callback: Optional[ProgressCallback] = None,
        report_dir: Optional[Union[str, Path]] = None
    ) -> RunOutcome:
        """
        Import a bundle into the store.

        Args:
            bundle_path: Zip file or bundle directory
            stop_signal: Cooperative stop signal
            progress_callback: Called with (processed, total) after each item
            report_dir: Directory receiving the execution log and summaries

        Returns:
            Outcome of the run

        Raises:
            MigrationError, StoreError: If the run aborts
        """
        log_section("Content Import")
        log_params(self.params)

        result = Result()
        started = time.time()

        with contextlib.ExitStack() as stack:
            if report_dir is not None:
                stack.enter_context(execution_log(Path(report_dir) / EXECUTION_LOG_REL_PATH))

            bundle = stack.enter_context(BundleReader(bundle_path))
            stop = (stop_signal or StopSignal()).with_stop_file(
                bundle.base_dir / STOP_REQUEST_FILE_REL_PATH
            )

            try:
                batch = BatchController(
                    self.store, self.params.batch_size, self.params.throttle, commit=True
                )
                importer = ContentImporter(
                    self.document_manager,
                    self.params,
                    bundle,
                    batch,
                    stop_signal=stop,
                    progress_callback=progress_callback,
                    show_progress=self.show_progress
                )
                records = importer.run(result)
            finally:
                result.close()

            summaries = self._write_summaries(records, started, report_dir)

        report = self.report_generator.generate_report('import', result, records, str(bundle_path))
        return RunOutcome(
            workflow='import',
            result=result,
            records=records,
            summaries=summaries,
            report=report,
            bundle_path=str(bundle_path),
            cancelled=stop.is_requested()
        )

    def _write_summaries(
        self,
        records: Dict[str, List[MigrationRecord]],
        started: float,
        target_dir: Optional[Union[str, Path]]
    ) -> Dict[str, str]:
        duration_ms = int((time.time() - started) * 1000)
        summaries = {}

        for category in (CATEGORY_BINARIES, CATEGORY_DOCUMENTS):
            category_records = records.get(category, [])
            if target_dir is None:
                summary = self.report_generator.format_summary(category_records, duration_ms)
                self.logger.info(f"\n\n{summary}")
            else:
                summary_path = Path(target_dir) / SUMMARY_REL_PATHS[category]
                summary_path.parent.mkdir(parents=True, exist_ok=True)
                summary = self.report_generator.write_summary(
                    category_records, duration_ms, str(summary_path)
                )
            summaries[category] = summary

        return summaries


__all__ = ['MigrationOrchestrator', 'RunOutcome', 'zip_directory']
