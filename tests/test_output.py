"""Unit tests for ui.output and the dashboard helpers."""

import io
import json
import os
import tempfile
import unittest
from unittest import mock

from rich.console import Console

from speedengine.latency import LatencyResult
from speedengine.models import Phase, SessionProgress, SpeedTestResult
from speedengine.stats import Sample, ThroughputResult
from ui import dashboard
from ui.dashboard import ProgressDisplay, create_histogram, describe_live_reading
from ui.output import create_result_json, format_text_result, save_json

RESULT = SpeedTestResult(
    download_speed_mbps=95.12345,
    upload_speed_mbps=40.5,
    ping_ms=12.3456,
    jitter_ms=1.2,
    packet_loss_percent=0.0,
)


class TestCreateResultJson(unittest.TestCase):
    def test_basic_structure(self):
        r = create_result_json(RESULT, profile="fast")
        self.assertIn("timestamp", r)
        self.assertEqual(r["profile"], "fast")
        self.assertEqual(r["result"]["download_speed_mbps"], 95.123)
        self.assertEqual(r["result"]["ping_ms"], 12.346)
        self.assertNotIn("details", r)

    def test_phase_details(self):
        latency = LatencyResult(samples=[Sample(10.0), Sample(14.0)])
        latency.calculate()
        download = ThroughputResult(speed_mbps=95.0, samples=[Sample(95.0)])
        r = create_result_json(RESULT, latency=latency, download=download)

        self.assertEqual(r["details"]["latency"]["pings"], [10.0, 14.0])
        self.assertEqual(r["details"]["download"]["samples"], [95.0])
        self.assertNotIn("upload", r["details"])

    def test_serialisable(self):
        latency = LatencyResult()
        latency.calculate()
        r = create_result_json(RESULT, latency=latency, upload=ThroughputResult())
        json.loads(json.dumps(r))


class TestSaveJson(unittest.TestCase):
    def test_roundtrip(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, "result.json")
            save_json({"a": 1}, path)
            with open(path) as f:
                self.assertEqual(json.load(f), {"a": 1})
            self.assertEqual(os.listdir(tmpdir), ["result.json"])

    def test_missing_directory_raises(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, "missing", "result.json")
            with self.assertRaises(IOError):
                save_json({"a": 1}, path)


class TestFormatTextResult(unittest.TestCase):
    def test_contains_all_metrics(self):
        text = format_text_result(RESULT)
        self.assertIn("Ping: 12.3 ms (jitter: 1.20 ms)", text)
        self.assertIn("Packet Loss: 0.0%", text)
        self.assertIn("Download: 95.12 Mbps", text)
        self.assertIn("Upload: 40.50 Mbps", text)


class TestHistogram(unittest.TestCase):
    def test_empty(self):
        self.assertEqual(create_histogram([]), "No data")

    def test_one_bar_per_value(self):
        bars = create_histogram([1.0, 5.0, 9.0])
        self.assertEqual(len(bars), 3)
        self.assertEqual(bars[0], "▁")
        self.assertEqual(bars[-1], "█")

    def test_flat(self):
        self.assertEqual(create_histogram([3.0, 3.0]), "▁▁")


class TestDescribeLiveReading(unittest.TestCase):
    def test_no_reading_yet(self):
        self.assertEqual(describe_live_reading(SessionProgress(Phase.PING, 0.0)), "...")

    def test_ping_with_jitter(self):
        event = SessionProgress(Phase.PING, 10.0, live_reading=18.24, live_jitter=2.0)
        self.assertEqual(describe_live_reading(event), "18.2 ms (±2.0)")

    def test_ping_without_jitter(self):
        event = SessionProgress(Phase.PING, 10.0, live_reading=18.0)
        self.assertEqual(describe_live_reading(event), "18.0 ms")

    def test_throughput(self):
        event = SessionProgress(Phase.UPLOAD, 80.0, live_reading=1500.0)
        self.assertEqual(describe_live_reading(event), "1.50 Gbps")


class TestConsoleOutput(unittest.TestCase):
    def setUp(self):
        self.buffer = io.StringIO()
        patcher = mock.patch.object(
            dashboard, "console", Console(file=self.buffer, width=100, color_system=None)
        )
        patcher.start()
        self.addCleanup(patcher.stop)

    def test_latency_details_without_pings(self):
        result = LatencyResult(samples=[Sample(0.0, succeeded=False)])
        result.calculate()
        dashboard.print_latency_details(result)
        out = self.buffer.getvalue()
        self.assertIn("100.0%", out)
        self.assertNotIn("Ping Histogram", out)

    def test_latency_details_with_pings(self):
        result = LatencyResult(samples=[Sample(10.0), Sample(20.0), Sample(15.0)])
        result.calculate()
        dashboard.print_latency_details(result)
        self.assertIn("Ping Histogram", self.buffer.getvalue())

    def test_final_results(self):
        dashboard.print_final_results(RESULT)
        out = self.buffer.getvalue()
        self.assertIn("95.12 Mbps", out)
        self.assertIn("40.50 Mbps", out)

    def test_progress_display_tracks_last_event(self):
        display = ProgressDisplay()
        display.start()
        event = SessionProgress(Phase.DOWNLOAD, 40.0, live_reading=50.0)
        display.update(event)
        display.stop()
        self.assertIs(display.last, event)


if __name__ == "__main__":
    unittest.main()
