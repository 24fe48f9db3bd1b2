#!/usr/bin/env python3
"""
Tests for file and logging utilities.
"""

import hashlib
import logging
import shutil
import tempfile
import unittest
from pathlib import Path

from rita_ci.utils.file_utils import calculate_file_hash, ensure_directory, get_file_size, remove_file
from rita_ci.utils.log_utils import LOGGER_NAME, get_log_file, setup_logging


class TestFileUtils(unittest.TestCase):

    def setUp(self):
        self.temp_dir = Path(tempfile.mkdtemp())

    def tearDown(self):
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def test_ensure_directory(self):
        path = ensure_directory(self.temp_dir / "a" / "b")
        self.assertTrue(path.is_dir())
        # Existing directories are fine
        ensure_directory(path)

    def test_remove_file(self):
        target = self.temp_dir / "rita.tar.gz"
        target.write_bytes(b"data")
        self.assertTrue(remove_file(target))
        self.assertFalse(target.exists())
        self.assertFalse(remove_file(target))

    def test_remove_file_ignores_directories(self):
        self.assertFalse(remove_file(self.temp_dir))
        self.assertTrue(self.temp_dir.exists())

    def test_hash_and_size(self):
        target = self.temp_dir / "file"
        target.write_bytes(b"althea")
        self.assertEqual(calculate_file_hash(target), hashlib.sha256(b"althea").hexdigest())
        self.assertEqual(get_file_size(target), 6)
        self.assertEqual(get_file_size(self.temp_dir / "missing"), 0)


class TestLogUtils(unittest.TestCase):

    def setUp(self):
        self.temp_dir = Path(tempfile.mkdtemp())
        self.logger = logging.getLogger(LOGGER_NAME)
        self.saved_handlers = list(self.logger.handlers)
        self.saved_level = self.logger.level
        self.logger.handlers = [h for h in self.saved_handlers
                                if not isinstance(h, logging.FileHandler)]

    def tearDown(self):
        for handler in self.logger.handlers:
            if handler not in self.saved_handlers:
                handler.close()
        self.logger.handlers = self.saved_handlers
        self.logger.setLevel(self.saved_level)
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def test_file_handler_added_once(self):
        logger = setup_logging(logging.DEBUG, self.temp_dir / "logs")
        log_file = get_log_file(logger)

        self.assertTrue(log_file)
        self.assertTrue(Path(log_file).name.startswith("ci_"))
        self.assertEqual(logger.level, logging.DEBUG)

        setup_logging(log_dir=self.temp_dir / "other")
        self.assertEqual(get_log_file(logger), log_file)
        self.assertEqual(logger.level, logging.DEBUG)

    def test_child_loggers_reach_file(self):
        logger = setup_logging(logging.INFO, self.temp_dir / "logs")
        logging.getLogger("rita_ci.runtime.kernel_module").info("module check")

        for handler in logger.handlers:
            handler.flush()
        self.assertIn("module check", Path(get_log_file(logger)).read_text())


if __name__ == '__main__':
    unittest.main()
