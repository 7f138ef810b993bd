"""Tests for :mod:`onboarding.logging`."""

import io
import json
import warnings
from unittest import TestCase

from onboarding import logging


class TestGetLogger(TestCase):
    """Loggers emit one JSON document per entry."""

    def test_json_entry(self) -> None:
        """Entries carry the level, logger name and message."""
        stream = io.StringIO()
        logger = logging.getLogger('onboarding.tests.json_entry', stream)
        logger.warning('Vault %s is missing', 'v1')

        entry = json.loads(stream.getvalue().strip())
        self.assertEqual(entry['level'], 'WARNING')
        self.assertEqual(entry['name'], 'onboarding.tests.json_entry')
        self.assertEqual(entry['message'], 'Vault v1 is missing')
        self.assertIn('timestamp', entry)

    def test_no_deprecated_formatter(self) -> None:
        """Building a formatter raises no deprecation warnings."""
        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter('always')
            logging._formatter()
        self.assertEqual(
            [w for w in caught if issubclass(w.category, DeprecationWarning)],
            []
        )
