from __future__ import annotations

import logging
import os
import tempfile
import unittest
from pathlib import Path
from unittest import mock

from treedeck.log import LOGGER_NAME, configure_logging, reset_logging


class ConfigureLoggingTests(unittest.TestCase):
    def setUp(self) -> None:
        reset_logging()
        self.addCleanup(reset_logging)

    def test_defaults_to_warning_on_stderr(self) -> None:
        with mock.patch.dict(os.environ, {}, clear=True):
            runtime = configure_logging()

        logger = logging.getLogger(LOGGER_NAME)
        self.assertEqual(runtime.level, logging.WARNING)
        self.assertIsNone(runtime.file_path)
        self.assertEqual(len(logger.handlers), 1)
        self.assertFalse(logger.propagate)

    def test_environment_selects_level_and_rotating_file(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            log_path = Path(tmp) / "logs" / "treedeck.log"
            env = {"TREEDECK_LOG_LEVEL": "debug", "TREEDECK_LOG_FILE": str(log_path)}
            with mock.patch.dict(os.environ, env, clear=True):
                runtime = configure_logging()

            logging.getLogger("treedeck.watcher").debug("hello from watcher")
            reset_logging()

            self.assertEqual(runtime.level_name, "DEBUG")
            self.assertIn("hello from watcher", log_path.read_text(encoding="utf-8"))

    def test_second_call_keeps_first_configuration(self) -> None:
        first = configure_logging("INFO")
        second = configure_logging("DEBUG")
        self.assertIs(first, second)
        self.assertEqual(logging.getLogger(LOGGER_NAME).level, logging.INFO)

    def test_unknown_level_falls_back_to_warning(self) -> None:
        self.assertEqual(configure_logging("chatty").level, logging.WARNING)


if __name__ == "__main__":
    unittest.main()
