"""Registry of running and recently finished asynchronous jobs."""

import logging
import threading
from collections import OrderedDict
from datetime import datetime
from typing import List, Optional

from models import JobState, ProcessStatus

logger = logging.getLogger('content_exim.orchestrator.process_monitor')

DEFAULT_HISTORY_SIZE = 100


class ProcessMonitor:
    """
    Thread-safe registry of job statuses with counter-based ids.

    Finished jobs stay queryable until the bounded history is full; the
    oldest finished job is evicted first. Running jobs are never evicted.
    """

    def __init__(self, history_size: int = DEFAULT_HISTORY_SIZE):
        if history_size < 0:
            raise ValueError("history_size must be non-negative")
        self.history_size = history_size
        self._lock = threading.Lock()
        self._counter = 0
        self._processes: 'OrderedDict[int, ProcessStatus]' = OrderedDict()
        self._finished: List[int] = []

    def start_process(self, command_info: Optional[str] = None, username: Optional[str] = None) -> ProcessStatus:
        """Register a new RUNNING job and return its status."""
        with self._lock:
            self._counter += 1
            status = ProcessStatus(id=self._counter, command_info=command_info, username=username)
            self._processes[status.id] = status
        logger.debug(f"Started process {status.id}: {command_info}")
        return status

    def get_process(self, process_id: int) -> Optional[ProcessStatus]:
        with self._lock:
            return self._processes.get(process_id)

    def get_processes(self) -> List[ProcessStatus]:
        """Snapshot of all known jobs, oldest first."""
        with self._lock:
            return list(self._processes.values())

    def finish_process(
        self,
        process_id: int,
        state: JobState,
        error_message: Optional[str] = None
    ) -> Optional[ProcessStatus]:
        """
        Move a job into a terminal state and into the finished history.

        Args:
            process_id: Job id
            state: COMPLETED, FAILED or CANCELLED
            error_message: Failure message for FAILED jobs

        Returns:
            The updated status, None for an unknown id
        """
        if state is JobState.RUNNING:
            raise ValueError("finish_process requires a terminal state")

        with self._lock:
            status = self._processes.get(process_id)
            if status is None:
                return None
            status.state = state
            status.error_message = error_message
            status.completed_at = datetime.now()
            if state is JobState.COMPLETED:
                status.progress = 1.0
            if process_id not in self._finished:
                self._finished.append(process_id)
            self._evict()
        logger.debug(f"Process {process_id} finished as {state.value}")
        return status

    def stop_process(self, process_id: int) -> Optional[ProcessStatus]:
        """Remove a job from the registry."""
        with self._lock:
            status = self._processes.pop(process_id, None)
            if process_id in self._finished:
                self._finished.remove(process_id)
            return status

    def clear(self) -> None:
        """Forget every job and reset the id counter."""
        with self._lock:
            self._processes.clear()
            self._finished.clear()
            self._counter = 0

    def _evict(self) -> None:
        while len(self._finished) > self.history_size:
            oldest = self._finished.pop(0)
            self._processes.pop(oldest, None)
            logger.debug(f"Evicted process {oldest} from history")


__all__ = ['ProcessMonitor', 'DEFAULT_HISTORY_SIZE']
