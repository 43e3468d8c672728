import logging
import shutil
import tempfile
import threading
import unittest
from pathlib import Path

from logger import LOGGER_NAME, ProgressTracker, execution_log, setup_logging


class TestExecutionLog(unittest.TestCase):
    def setUp(self):
        self.temp_dir = Path(tempfile.mkdtemp())
        self.logger = logging.getLogger(f"{LOGGER_NAME}.tests")

    def tearDown(self):
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def test_writes_records_of_the_calling_thread(self):
        path = self.temp_dir / 'EXIM-INF' / 'execution.log'
        with execution_log(path):
            self.logger.info("own run")
            self.logger.debug("too detailed")
        self.logger.info("after the run")

        text = path.read_text(encoding='utf-8')
        self.assertIn('INFO - own run', text)
        self.assertNotIn('too detailed', text)
        self.assertNotIn('after the run', text)

    def test_concurrent_runs_get_separate_logs(self):
        paths = [self.temp_dir / f"run-{i}.log" for i in range(2)]
        both_open = threading.Barrier(2)

        def run(index):
            with execution_log(paths[index]):
                both_open.wait(10)
                self.logger.info(f"Collected {index} documents")
                both_open.wait(10)

        threads = [threading.Thread(target=run, args=(i,)) for i in range(2)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(10)

        first = paths[0].read_text(encoding='utf-8')
        second = paths[1].read_text(encoding='utf-8')
        self.assertIn('Collected 0 documents', first)
        self.assertNotIn('Collected 1 documents', first)
        self.assertIn('Collected 1 documents', second)
        self.assertNotIn('Collected 0 documents', second)

    def test_nested_runs_leave_the_level_alone(self):
        project_logger = logging.getLogger(LOGGER_NAME)
        with execution_log(self.temp_dir / 'a.log'):
            with execution_log(self.temp_dir / 'b.log'):
                pass
            self.assertTrue(project_logger.isEnabledFor(logging.INFO))
        self.assertTrue(project_logger.isEnabledFor(logging.INFO))
        self.assertFalse(any(isinstance(h, logging.FileHandler) for h in project_logger.handlers))


class TestSetupLogging(unittest.TestCase):
    def tearDown(self):
        project_logger = logging.getLogger(LOGGER_NAME)
        project_logger.handlers.clear()
        project_logger.propagate = True
        project_logger.setLevel(logging.NOTSET)

    def test_console_level_follows_verbosity(self):
        project_logger = setup_logging(verbosity=0)
        self.assertEqual(project_logger.handlers[0].level, logging.WARNING)
        # INFO still reaches execution logs
        self.assertEqual(project_logger.level, logging.INFO)

        project_logger = setup_logging(verbosity=2)
        self.assertEqual(project_logger.level, logging.DEBUG)
        self.assertEqual(project_logger.handlers[0].level, logging.DEBUG)

    def test_invalid_level(self):
        with self.assertRaises(ValueError):
            setup_logging(level='LOUD')


class TestProgressTracker(unittest.TestCase):
    def test_counters(self):
        with self.assertLogs(LOGGER_NAME, level='INFO') as logs:
            with ProgressTracker(3, 'documents') as tracker:
                tracker.increment()
                tracker.increment(success=False)

        self.assertEqual((tracker.processed_items, tracker.successful_items, tracker.failed_items), (2, 1, 1))
        self.assertIn('Starting processing of 3 documents', logs.output[0])
        self.assertTrue(any('Failed: 1' in line for line in logs.output))

    def test_format_elapsed(self):
        self.assertEqual(ProgressTracker._format_elapsed(3725), '1h 2m 5s')


if __name__ == '__main__':
    unittest.main()
