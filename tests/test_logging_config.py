import logging
import unittest
from logging.handlers import RotatingFileHandler

from meeting_agent.config.logging_config import configure_logging


class TestLoggingConfig(unittest.TestCase):
    def test_configure_logging(self):
        # Test that the function returns a logger
        logger = configure_logging()
        self.assertIsInstance(logger, logging.Logger)

        # Test that the logger has the correct name
        self.assertEqual(logger.name, "meeting_agent")

        # Test that the logger has the correct level
        self.assertEqual(logger.level, logging.INFO)

        # Test that the logger has the correct handlers and format
        self.assertGreaterEqual(len(logger.handlers), 1)  # At least one handler (console)
        handler = logger.handlers[0]  # Check first handler (should be console handler)
        self.assertIsInstance(handler, logging.StreamHandler)
        formatter = handler.formatter
        self.assertEqual(formatter._fmt, "%(asctime)s - %(name)s - %(levelname)s - %(message)s")
        self.assertFalse(logger.propagate)

    def test_level_override(self):
        logger = configure_logging("debug")
        self.assertEqual(logger.level, logging.DEBUG)
        configure_logging()

    def test_reconfigure_does_not_duplicate_handlers(self):
        first = configure_logging()
        count = len(first.handlers)
        second = configure_logging()
        self.assertIs(first, second)
        self.assertEqual(len(second.handlers), count)
        rotating = [h for h in second.handlers if isinstance(h, RotatingFileHandler)]
        self.assertLessEqual(len(rotating), 1)


if __name__ == "__main__":
    unittest.main()
