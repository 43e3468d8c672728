"""Batch commit pacing and cooperative stop signalling for pipeline runs."""

import logging
import threading
import time
from pathlib import Path
from typing import Callable, Optional, Union

from store.base_store import ContentStore

logger = logging.getLogger('content_exim.orchestrator.batch_controller')


class StopSignal:
    """
    Cooperative stop request observed between items.

    Set either through an in-process event or by creating the stop file
    inside the bundle directory.
    """

    def __init__(self, event: Optional[threading.Event] = None, stop_file: Optional[Union[str, Path]] = None):
        self.event = event or threading.Event()
        self.stop_file = Path(stop_file) if stop_file else None

    def request(self) -> None:
        self.event.set()

    def is_requested(self) -> bool:
        if self.event.is_set():
            return True
        if self.stop_file is not None and self.stop_file.exists():
            logger.info(f"Stop requested by file at {self.stop_file}")
            self.event.set()
            return True
        return False

    def with_stop_file(self, stop_file: Union[str, Path]) -> 'StopSignal':
        """Same signal, additionally watching a stop file."""
        return StopSignal(event=self.event, stop_file=stop_file)


class BatchController:
    """
    Counts processed items and flushes the store every batch_size items.

    Import runs commit (save) at batch boundaries; export runs only refresh
    the session to release state. Either way the run pauses for the throttle
    after each batch.
    """

    def __init__(
        self,
        store: ContentStore,
        batch_size: int,
        throttle: int = 0,
        commit: bool = True,
        sleep: Callable[[float], None] = time.sleep
    ):
        """
        Initialize the controller.

        Args:
            store: Store session owned by the run
            batch_size: Items per batch
            throttle: Pause after each batch in milliseconds
            commit: Save at batch boundaries (import) instead of only refreshing (export)
            sleep: Sleep function, replaceable in tests
        """
        if batch_size < 1:
            raise ValueError("batch_size must be a positive integer")
        self.store = store
        self.batch_size = batch_size
        self.throttle = throttle
        self.commit = commit
        self.sleep = sleep
        self.item_count = 0
        self.batch_count = 0
        self._since_flush = 0

    def tick(self) -> bool:
        """
        Count one processed item, flushing when a batch is full.

        Store errors raised by the flush propagate; a failed batch commit
        aborts the run.

        Returns:
            True if a batch boundary was reached
        """
        self.item_count += 1
        self._since_flush += 1

        if self.item_count % self.batch_size != 0:
            return False

        self._flush()
        if self.throttle > 0:
            self.sleep(self.throttle / 1000.0)
        return True

    def finish(self) -> None:
        """Flush what remains after the last full batch."""
        if self.commit:
            if self._since_flush > 0 or self.store.has_pending_changes():
                self._flush()
        else:
            self.store.refresh(False)

    def _flush(self) -> None:
        if self.commit:
            self.store.save()
        self.store.refresh(False)
        self.batch_count += 1
        self._since_flush = 0
        logger.debug(f"Flushed batch #{self.batch_count} after {self.item_count} items")


__all__ = ['StopSignal', 'BatchController']
