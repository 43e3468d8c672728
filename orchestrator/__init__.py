"""
Orchestration package for export and import runs.

Package Structure:
- batch_controller: Batch commit pacing and cooperative stop signal
- migration_report: Execution summaries and run reports
- migration_orchestrator: Synchronous export/import run driver
- process_monitor: Registry of asynchronous jobs
- process_file_manager: Artifact storage of asynchronous jobs
- job_control: Worker pool, cancellation and download of asynchronous jobs

The run driver and the job control surface depend on the exporters and
importers packages and are imported from their modules directly.
"""

from .batch_controller import BatchController, StopSignal
from .migration_report import MigrationReport
from .process_file_manager import ProcessFileManager
from .process_monitor import ProcessMonitor

__all__ = [
    'BatchController',
    'StopSignal',
    'MigrationReport',
    'ProcessFileManager',
    'ProcessMonitor'
]
