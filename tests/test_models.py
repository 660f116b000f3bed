"""Tests for speedengine.models and speedengine.logging_setup."""

import logging
import os
import tempfile
import unittest
from logging.handlers import RotatingFileHandler

from speedengine.logging_setup import configure_logging
from speedengine.models import RESULT_FIELDS, Phase, SessionProgress, SpeedTestResult


class TestPhase(unittest.TestCase):
    def test_order(self):
        ordered = sorted(Phase, key=lambda p: p.order)
        self.assertEqual(
            ordered,
            [Phase.IDLE, Phase.PING, Phase.DOWNLOAD, Phase.UPLOAD, Phase.COMPLETE],
        )

    def test_string_values(self):
        self.assertEqual(Phase.DOWNLOAD, "download")


class TestSpeedTestResult(unittest.TestCase):
    def test_defaults_are_zero(self):
        self.assertEqual(set(SpeedTestResult().to_dict().values()), {0.0})

    def test_from_partial_ignores_other_keys(self):
        result = SpeedTestResult.from_partial({"ping_ms": 12, "live": 3.0})
        self.assertEqual(result.ping_ms, 12.0)
        self.assertEqual(result.download_speed_mbps, 0.0)

    def test_fields(self):
        self.assertEqual(
            RESULT_FIELDS,
            ("download_speed_mbps", "upload_speed_mbps", "ping_ms", "jitter_ms",
             "packet_loss_percent"),
        )

    def test_immutable(self):
        with self.assertRaises(AttributeError):
            SpeedTestResult().ping_ms = 1.0


class TestSessionProgress(unittest.TestCase):
    def test_to_dict(self):
        event = SessionProgress(Phase.PING, 12.3456, {"ping_ms": 10.0}, live_reading=11.0)
        self.assertEqual(
            event.to_dict(),
            {
                "phase": "ping",
                "overall_progress": 12.35,
                "partial": {"ping_ms": 10.0},
                "live_reading": 11.0,
                "live_jitter": None,
            },
        )


class TestConfigureLogging(unittest.TestCase):
    def setUp(self):
        root = logging.getLogger()
        saved = (list(root.handlers), root.level)

        def restore():
            for handler in list(root.handlers):
                handler.close()
                root.removeHandler(handler)
            for handler in saved[0]:
                root.addHandler(handler)
            root.setLevel(saved[1])

        self.addCleanup(restore)

    def test_console_only(self):
        configure_logging("WARNING")
        root = logging.getLogger()
        self.assertEqual(root.level, logging.WARNING)
        self.assertEqual(len(root.handlers), 1)
        self.assertGreaterEqual(logging.getLogger("aiohttp").level, logging.INFO)

    def test_log_file(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, "speedtest.log")
            configure_logging("debug", path)
            root = logging.getLogger()
            self.assertEqual(root.level, logging.DEBUG)
            self.assertTrue(any(isinstance(h, RotatingFileHandler) for h in root.handlers))

            logging.getLogger("speedengine.test").info("hello")
            for handler in root.handlers:
                handler.flush()
            with open(path) as f:
                self.assertIn("hello", f.read())
            for handler in list(root.handlers):
                handler.close()
                root.removeHandler(handler)
