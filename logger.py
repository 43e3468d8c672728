"""Structured logging infrastructure with verbosity levels and progress tracking."""

import logging
import logging.handlers
import threading
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional, Union

import colorlog
from tqdm import tqdm

LOGGER_NAME = 'content_exim'
EXECUTION_LOG_LEVEL = logging.INFO


def setup_logging(
    verbosity: int = 0,
    log_file: Optional[str] = None,
    log_format: Optional[str] = None,
    date_format: Optional[str] = None,
    level: Optional[str] = None
) -> logging.Logger:
    """
    Set up structured logging with configurable verbosity levels.

    Args:
        verbosity: Verbosity level (0=WARNING, 1=INFO, 2+=DEBUG)
        log_file: Optional path to log file
        log_format: Optional custom log format string
        date_format: Optional custom date format string
        level: Optional explicit log level string

    Returns:
        Configured logger instance
    """
    if level:
        allowed_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        level_upper = level.upper()
        if level_upper not in allowed_levels:
            raise ValueError(
                f"Invalid log level '{level}'. Must be one of: {sorted(allowed_levels)}"
            )
        log_level = getattr(logging, level_upper)
    else:
        if verbosity >= 2:
            log_level = logging.DEBUG
        elif verbosity >= 1:
            log_level = logging.INFO
        else:
            log_level = logging.WARNING

    if log_format is None:
        log_format = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

    if date_format is None:
        date_format = '%Y-%m-%d %H:%M:%S'

    # Root stays at WARNING to keep dependency noise down
    logging.basicConfig(
        level=logging.WARNING,
        format=log_format,
        datefmt=date_format
    )

    logger = logging.getLogger(LOGGER_NAME)
    # Handlers filter by log_level; execution logs still need INFO records
    logger.setLevel(min(log_level, EXECUTION_LOG_LEVEL))
    logger.propagate = False
    logger.handlers.clear()

    console_handler = logging.StreamHandler()
    console_handler.setLevel(log_level)
    console_handler.setFormatter(colorlog.ColoredFormatter(
        fmt='%(log_color)s' + log_format,
        datefmt=date_format,
        log_colors={
            'DEBUG': 'cyan',
            'INFO': 'green',
            'WARNING': 'yellow',
            'ERROR': 'red',
            'CRITICAL': 'red,bg_white',
        }
    ))
    logger.addHandler(console_handler)

    if log_file:
        try:
            file_handler = logging.handlers.RotatingFileHandler(
                log_file,
                maxBytes=10 * 1024 * 1024,  # 10MB
                backupCount=5,
                encoding='utf-8'
            )
            file_handler.setLevel(log_level)
            file_handler.setFormatter(logging.Formatter(fmt=log_format, datefmt=date_format))
            logger.addHandler(file_handler)

            logger.info(f"Logging to file: {log_file}")
            logger.info(f"Log level: {logging.getLevelName(log_level)}")
        except OSError as e:
            logger.warning(f"Failed to set up file logging: {str(e)}")
    else:
        logger.info(f"Console logging only. Level: {logging.getLevelName(log_level)}")

    return logger


class _ThreadFilter(logging.Filter):
    """Accepts only records logged by one thread."""

    def __init__(self, thread_id: int):
        super().__init__()
        self.thread_id = thread_id

    def filter(self, record: logging.LogRecord) -> bool:
        return record.thread == self.thread_id


@contextmanager
def execution_log(log_path: Union[str, Path], level: int = EXECUTION_LOG_LEVEL) -> Iterator[logging.Handler]:
    """
    Tee the project logger into a run's execution log file.

    Only records of the calling thread are written, so concurrent runs on a
    worker pool each get their own log.

    Args:
        log_path: File to write (parent directories are created)
        level: Minimum level written to the file

    Yields:
        The attached file handler
    """
    path = Path(log_path)
    path.parent.mkdir(parents=True, exist_ok=True)

    logger = logging.getLogger(LOGGER_NAME)
    handler = logging.FileHandler(path, encoding='utf-8')
    handler.setLevel(level)
    handler.addFilter(_ThreadFilter(threading.get_ident()))
    handler.setFormatter(logging.Formatter('%(asctime)s - %(levelname)s - %(message)s'))

    # Without setup_logging the logger inherits WARNING from the root
    if logger.getEffectiveLevel() > level:
        logger.setLevel(level)
    logger.addHandler(handler)
    try:
        yield handler
    finally:
        logger.removeHandler(handler)
        handler.close()


class ProgressTracker:
    """Context manager for tracking progress across operations."""

    def __init__(self, total_items: int, item_type: str = "items", show_progress: bool = False):
        """
        Initialize progress tracker.

        Args:
            total_items: Total number of items to process
            item_type: Description of item type (e.g., "documents", "binaries")
            show_progress: Display a tqdm progress bar on the console
        """
        self.total_items = total_items
        self.item_type = item_type
        self.show_progress = show_progress
        self.processed_items = 0
        self.successful_items = 0
        self.failed_items = 0
        self.start_time: Optional[float] = None
        self.logger = logging.getLogger(LOGGER_NAME)
        self._bar: Optional[tqdm] = None

    def __enter__(self) -> 'ProgressTracker':
        """Enter progress tracking context."""
        self.start_time = time.time()
        self.logger.info(
            f"Starting processing of {self.total_items} {self.item_type}"
        )
        if self.show_progress:
            self._bar = tqdm(total=self.total_items, desc=self.item_type.capitalize(), unit='item')
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Exit progress tracking context and log summary."""
        if self._bar is not None:
            self._bar.close()
            self._bar = None

        if self.start_time is None:
            return

        elapsed = time.time() - self.start_time
        success_rate = (self.successful_items / self.total_items * 100) if self.total_items > 0 else 0

        if self.failed_items > 0 and self.failed_items == self.processed_items:
            log_method = self.logger.error
        elif self.failed_items > 0:
            log_method = self.logger.warning
        else:
            log_method = self.logger.info

        log_method(f"=== Progress Summary: {self.item_type.upper()} ===")
        log_method(f"Total: {self.total_items}")
        log_method(f"Processed: {self.processed_items}")
        log_method(f"Successful: {self.successful_items}")
        log_method(f"Failed: {self.failed_items}")
        log_method(f"Success Rate: {success_rate:.1f}%")
        log_method(f"Elapsed Time: {self._format_elapsed(elapsed)}")

    def increment(self, success: bool = True) -> None:
        """
        Increment progress counter.

        Args:
            success: Whether the item was processed successfully
        """
        self.processed_items += 1

        if success:
            self.successful_items += 1
        else:
            self.failed_items += 1

        if self._bar is not None:
            self._bar.update(1)
            self._bar.set_postfix(failed=self.failed_items)

        # Log progress every 10 items or on failure
        if self.processed_items % 10 == 0 or not success:
            remaining = self.total_items - self.processed_items
            status = "Success" if success else "Failed"
            self.logger.info(
                f"Processed {self.processed_items}/{self.total_items} {self.item_type} "
                f"({remaining} remaining) - Last: {status}"
            )

    @staticmethod
    def _format_elapsed(seconds: float) -> str:
        """Format elapsed time in human-readable format."""
        if seconds < 60:
            return f"{seconds:.1f}s"

        minutes = int(seconds // 60)
        seconds = int(seconds % 60)

        if minutes < 60:
            return f"{minutes}m {seconds}s"

        hours = minutes // 60
        minutes = minutes % 60

        return f"{hours}h {minutes}m {seconds}s"


def log_section(title: str) -> None:
    """
    Log a decorative section header.

    Args:
        title: Section title to display
    """
    logger = logging.getLogger(LOGGER_NAME)

    separator = "=" * 60
    logger.info("")
    logger.info(separator)
    logger.info(f"  {title.upper()}")
    logger.info(separator)
    logger.info("")


def log_params(params) -> None:
    """
    Log the execution parameters of a run.

    Args:
        params: ExecutionParams of the run
    """
    logger = logging.getLogger(LOGGER_NAME)

    log_section("Execution Parameters")

    logger.info(f"Batch Size: {params.batch_size}")
    logger.info(f"Throttle: {params.throttle}ms")
    logger.info(f"Publish On Import: {params.publish_on_import.value}")
    logger.info(f"Data URL Size Threshold: {params.data_url_size_threshold} bytes")
    logger.info(f"File Format: {params.file_format}")
    logger.info(f"Extra Docbase Properties: {params.docbase_prop_names or 'None'}")

    for category, selector in (('Documents', params.documents), ('Binaries', params.binaries)):
        logger.info("")
        logger.info(f"{category} Queries: {selector.queries or 'None'}")
        logger.info(f"{category} Paths: {selector.paths or 'None'}")
        logger.info(f"{category} Includes: {selector.includes or 'None'}")
        logger.info(f"{category} Excludes: {selector.excludes or 'None'}")

    if params.document_tags or params.binary_tags:
        logger.info("")
        logger.info(f"Document Tags: {params.document_tags or 'None'}")
        logger.info(f"Binary Tags: {params.binary_tags or 'None'}")


__all__ = [
    'LOGGER_NAME',
    'setup_logging',
    'execution_log',
    'ProgressTracker',
    'log_section',
    'log_params'
]
