"""
Asynchronous job control surface.

Runs export and import jobs on a worker pool, each with its own store session
obtained from a session factory, and exposes status, cancellation and
artifact download by job id.
"""

import json
import logging
import shutil
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Tuple, Union

from config_loader import get_nested
from models import ExecutionParams, JobState, ProcessStatus
from orchestrator.batch_controller import StopSignal
from orchestrator.migration_orchestrator import MigrationOrchestrator, zip_directory
from orchestrator.process_file_manager import ProcessFileManager
from orchestrator.process_monitor import DEFAULT_HISTORY_SIZE, ProcessMonitor
from store.base_store import ContentStore
from store.document_manager import DocumentManager

logger = logging.getLogger('content_exim.orchestrator.job_control')

SessionFactory = Callable[[], Tuple[ContentStore, DocumentManager]]

DEFAULT_MAX_WORKERS = 2
DEFAULT_CLEANUP_INTERVAL = 60 * 60


class JobControlError(Exception):
    """Base class for job control failures."""
    pass


class JobNotFoundError(JobControlError):
    pass


class JobStillRunningError(JobControlError):
    pass


class JobFailedError(JobControlError):
    pass


class JobGoneError(JobControlError):
    """The job was cancelled or its artifact has expired."""
    pass


class CancelOutcome(Enum):
    """Result of a cancellation request."""
    ACCEPTED = "ACCEPTED"
    CONFLICT = "CONFLICT"
    NOT_FOUND = "NOT_FOUND"


class JobController:
    """Submits, tracks, cancels and serves asynchronous export/import jobs."""

    def __init__(
        self,
        session_factory: SessionFactory,
        file_manager: Optional[ProcessFileManager] = None,
        monitor: Optional[ProcessMonitor] = None,
        max_workers: int = DEFAULT_MAX_WORKERS,
        cleanup_interval: float = DEFAULT_CLEANUP_INTERVAL
    ):
        """
        Initialize the controller and start the artifact cleanup timer.

        Args:
            session_factory: Returns a fresh (store, document manager) pair per job
            file_manager: Artifact storage
            monitor: Job registry
            max_workers: Worker pool size
            cleanup_interval: Seconds between expired-artifact sweeps (0 disables)
        """
        self.session_factory = session_factory
        self.file_manager = file_manager or ProcessFileManager()
        self.monitor = monitor or ProcessMonitor()
        self.cleanup_interval = cleanup_interval

        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix='exim-job')
        self._lock = threading.Lock()
        self._stop_events: Dict[int, threading.Event] = {}
        self._futures: Dict[int, Future] = {}
        self._timer: Optional[threading.Timer] = None
        self._closed = False

        if cleanup_interval > 0:
            self._schedule_cleanup()

    @classmethod
    def from_config(cls, config: Dict[str, Any], session_factory: SessionFactory) -> 'JobController':
        """
        Build a controller from the 'async' configuration section.

        Args:
            config: Configuration dictionary
            session_factory: Returns a fresh (store, document manager) pair per job
        """
        file_manager = ProcessFileManager(
            storage_dir=get_nested(config, 'async.storage_dir'),
            file_ttl=get_nested(config, 'async.file_ttl_hours', 24) * 60 * 60
        )
        monitor = ProcessMonitor(history_size=get_nested(config, 'async.history_size', DEFAULT_HISTORY_SIZE))
        return cls(
            session_factory,
            file_manager=file_manager,
            monitor=monitor,
            max_workers=get_nested(config, 'async.max_workers', DEFAULT_MAX_WORKERS),
            cleanup_interval=get_nested(config, 'async.cleanup_interval_seconds', DEFAULT_CLEANUP_INTERVAL)
        )

    def submit_export(self, params: ExecutionParams, username: Optional[str] = None) -> int:
        """
        Start an export job.

        Returns:
            Job id
        """
        status = self.monitor.start_process(command_info='export', username=username)
        export_file = self.file_manager.create_export_file(status.id)
        status.export_file_path = str(export_file)
        self._submit(status, 'export', params, export_file)
        logger.info(f"Submitted export job {status.id}")
        return status.id

    def submit_import(
        self,
        params: ExecutionParams,
        bundle_path: Union[str, Path],
        username: Optional[str] = None
    ) -> int:
        """
        Start an import job. The bundle is copied into job storage first.

        Args:
            params: Execution parameters
            bundle_path: Zip file or bundle directory

        Returns:
            Job id
        """
        source = Path(bundle_path)
        status = self.monitor.start_process(command_info='import', username=username)
        import_file = self.file_manager.create_import_file(status.id)
        if source.is_dir():
            zip_directory(source, import_file)
        else:
            shutil.copyfile(source, import_file)
        status.import_file_path = str(import_file)
        self._submit(status, 'import', params, import_file)
        logger.info(f"Submitted import job {status.id} for {source}")
        return status.id

    def _submit(self, status: ProcessStatus, workflow: str, params: ExecutionParams, bundle_file: Path) -> None:
        if self._closed:
            raise JobControlError("Job controller has been shut down")
        stop_event = threading.Event()
        with self._lock:
            self._stop_events[status.id] = stop_event
            self._futures[status.id] = self._executor.submit(
                self._run_job, status, workflow, params, bundle_file, stop_event
            )

    def _run_job(
        self,
        status: ProcessStatus,
        workflow: str,
        params: ExecutionParams,
        bundle_file: Path,
        stop_event: threading.Event
    ) -> None:
        logger.info(f"Job {status.id} ({workflow}) started")
        try:
            self._execute(status, workflow, params, bundle_file, StopSignal(event=stop_event))
        finally:
            with self._lock:
                self._stop_events.pop(status.id, None)
                self._futures.pop(status.id, None)

    def _execute(
        self,
        status: ProcessStatus,
        workflow: str,
        params: ExecutionParams,
        bundle_file: Path,
        stop_signal: StopSignal
    ) -> None:
        try:
            store, document_manager = self.session_factory()
            orchestrator = MigrationOrchestrator(store, document_manager, params)
            if workflow == 'export':
                outcome = orchestrator.run_export(bundle_file, stop_signal, status.update_progress)
            else:
                outcome = orchestrator.run_import(bundle_file, stop_signal, status.update_progress)
                self._write_report(status, outcome.report)
        except Exception as e:
            # Run-scoped failure: the job ends FAILED with the message
            logger.error(f"Job {status.id} ({workflow}) failed: {e}", exc_info=True)
            self._discard_artifact(status)
            self.monitor.finish_process(status.id, JobState.FAILED, str(e))
            return

        if outcome.cancelled:
            self._discard_artifact(status)
            self.monitor.finish_process(status.id, JobState.CANCELLED)
            logger.info(f"Job {status.id} ({workflow}) cancelled")
        else:
            self.monitor.finish_process(status.id, JobState.COMPLETED)
            logger.info(f"Job {status.id} ({workflow}) completed")

    def _write_report(self, status: ProcessStatus, report: Dict[str, Any]) -> None:
        report_file = self.file_manager.create_report_file(status.id)
        report_file.write_text(
            json.dumps(report, indent=2, ensure_ascii=False, default=str), encoding='utf-8'
        )
        status.report_file_path = str(report_file)

    def _discard_artifact(self, status: ProcessStatus) -> None:
        if not status.export_file_path:
            return
        try:
            self.file_manager.delete_export_file(status.export_file_path)
        except (OSError, ValueError) as e:
            logger.warning(f"Failed to clean up export file of job {status.id}: {e}")

    def get_status(self, job_id: int) -> ProcessStatus:
        """
        Return the status of a job.

        Raises:
            JobNotFoundError: If the job is unknown or was evicted
        """
        status = self.monitor.get_process(job_id)
        if status is None:
            raise JobNotFoundError(f"Job not found: {job_id}")
        return status

    def cancel(self, job_id: int) -> CancelOutcome:
        """Request cooperative cancellation of a running job."""
        status = self.monitor.get_process(job_id)
        if status is None:
            return CancelOutcome.NOT_FOUND
        if status.state is not JobState.RUNNING:
            logger.info(f"Job {job_id} is {status.state.value}, cannot cancel")
            return CancelOutcome.CONFLICT

        status.cancel_requested = True
        with self._lock:
            stop_event = self._stop_events.get(job_id)
        if stop_event is not None:
            stop_event.set()
        logger.info(f"Cancellation requested for job {job_id}")
        return CancelOutcome.ACCEPTED

    def download(self, job_id: int) -> bytes:
        """
        Return a finished job's artifact: the bundle of an export job, the
        JSON report of an import job.

        Raises:
            JobNotFoundError: Unknown job
            JobStillRunningError: Job has not finished
            JobFailedError: Job failed
            JobGoneError: Job was cancelled or its artifact expired
        """
        status = self.get_status(job_id)
        if status.state is JobState.RUNNING:
            raise JobStillRunningError(f"Job {job_id} is still running")
        if status.state is JobState.FAILED:
            raise JobFailedError(f"Job {job_id} failed: {status.error_message}")
        if status.state is JobState.CANCELLED:
            raise JobGoneError(f"Job {job_id} was cancelled")

        if status.export_file_path:
            try:
                return self.file_manager.get_export_file(status.export_file_path).read_bytes()
            except FileNotFoundError as e:
                raise JobGoneError(f"Export of job {job_id} is no longer available: {e}") from e

        if not status.report_file_path:
            raise JobGoneError(f"Results of job {job_id} are no longer available")
        try:
            return self.file_manager.get_report_file(status.report_file_path).read_bytes()
        except FileNotFoundError as e:
            raise JobGoneError(f"Results of job {job_id} are no longer available: {e}") from e

    def wait(self, job_id: int, timeout: Optional[float] = None) -> ProcessStatus:
        """Block until a job has finished and return its status."""
        with self._lock:
            future = self._futures.get(job_id)
        # Finished jobs no longer have a future
        if future is not None:
            future.result(timeout=timeout)
        return self.get_status(job_id)

    def _schedule_cleanup(self) -> None:
        self._timer = threading.Timer(self.cleanup_interval, self._cleanup_tick)
        self._timer.daemon = True
        self._timer.start()

    def _cleanup_tick(self) -> None:
        try:
            self.file_manager.cleanup_expired_files()
        except OSError as e:
            logger.warning(f"Expired file cleanup failed: {e}")
        if not self._closed:
            self._schedule_cleanup()

    def shutdown(self, wait: bool = True, remove_files: bool = True) -> None:
        """
        Stop the cleanup timer and the worker pool.

        Args:
            wait: Wait for running jobs to finish
            remove_files: Delete the artifact storage directory afterwards
        """
        self._closed = True
        if self._timer is not None:
            self._timer.cancel()
        self._executor.shutdown(wait=wait)
        if remove_files:
            self.file_manager.shutdown()
            self.monitor.clear()
        logger.info("Job controller shut down")


__all__ = [
    'JobController',
    'CancelOutcome',
    'JobControlError',
    'JobNotFoundError',
    'JobStillRunningError',
    'JobFailedError',
    'JobGoneError',
]
