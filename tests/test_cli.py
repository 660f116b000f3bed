"""Tests for the speedtest.py command line: settings, runner and main()."""

import io
import json
import os
import tempfile
import unittest
from contextlib import redirect_stderr, redirect_stdout
from unittest import mock

from fakes import HANG, FakeTransport
from speedengine.config import DEFAULTS, EngineConfig
from speedengine.engine import HttpSpeedTestEngine
from speedengine.errors import Cancelled
from speedtest import build_parser, build_settings, main, run_speedtest


def _config():
    return EngineConfig(
        profile="fast",
        latency_endpoints=["https://a.test/", "https://b.test/", "https://c.test/"],
        ping_count=3,
        ping_delay=0.0,
        download_url="https://dl.test/bytes/{size}",
        download_sizes=[1000],
        upload_url="https://ul.test/upload",
        upload_sizes=[1000],
        upload_repeats=1,
        throughput_delay=0.0,
        progress_interval=0.0,
    )


def _engine(config, **transport_kwargs):
    transport_kwargs.setdefault("default", 0.001)
    transport_kwargs.setdefault("chunks", 1)
    return HttpSpeedTestEngine(
        config, transport_factory=lambda: FakeTransport(**transport_kwargs)
    )


class TestBuildSettings(unittest.TestCase):
    def test_no_flags_keeps_stored(self):
        args = build_parser().parse_args([])
        stored = dict(DEFAULTS, ping_count=7)
        self.assertEqual(build_settings(args, stored), stored)

    def test_flags_override(self):
        args = build_parser().parse_args([
            "--profile", "fast",
            "--ping-count", "4",
            "--endpoint", "https://a.test/",
            "--endpoint", "https://b.test/",
            "--upload-repeats", "2",
        ])
        settings = build_settings(args, dict(DEFAULTS))
        self.assertEqual(settings["profile"], "fast")
        self.assertEqual(settings["ping_count"], 4)
        self.assertEqual(settings["latency_endpoints"], ["https://a.test/", "https://b.test/"])
        self.assertEqual(settings["upload_repeats"], 2)
        self.assertEqual(settings["log_level"], "INFO")

    def test_unknown_profile_rejected(self):
        with redirect_stderr(io.StringIO()):
            with self.assertRaises(SystemExit):
                build_parser().parse_args(["--profile", "turbo"])


class TestRunSpeedtest(unittest.IsolatedAsyncioTestCase):
    async def test_json_output(self):
        config = _config()
        out = io.StringIO()
        with redirect_stdout(out):
            result_json = await run_speedtest(config, json_output=True, engine=_engine(config))

        printed = json.loads(out.getvalue())
        self.assertEqual(printed, result_json)
        self.assertEqual(printed["profile"], "fast")
        self.assertEqual(printed["result"]["packet_loss_percent"], 0.0)
        self.assertEqual(set(printed["details"]), {"latency", "download", "upload"})

    async def test_simple_output(self):
        config = _config()
        out, err = io.StringIO(), io.StringIO()
        with redirect_stdout(out), redirect_stderr(err):
            await run_speedtest(config, simple=True, engine=_engine(config))

        self.assertIn("Speedtest Results", out.getvalue())
        self.assertIn("Testing latency...", err.getvalue())
        self.assertIn("Testing upload speed...", err.getvalue())

    async def test_output_file(self):
        config = _config()
        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, "result.json")
            with redirect_stdout(io.StringIO()):
                await run_speedtest(
                    config, json_output=True, output_file=path, engine=_engine(config)
                )
            with open(path) as f:
                self.assertIn("result", json.load(f))

    async def test_time_limit_cancels(self):
        config = _config()
        engine = _engine(config, downloads=[HANG])
        with redirect_stdout(io.StringIO()):
            with self.assertRaises(Cancelled):
                await run_speedtest(config, json_output=True, time_limit=0.2, engine=engine)


class TestMain(unittest.TestCase):
    def setUp(self):
        self.tmpdir = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmpdir.cleanup)
        self.path = os.path.join(self.tmpdir.name, "config.json")
        for target, kwargs in (
            ("speedengine.config._config_path", {"return_value": self.path}),
            ("speedtest.configure_logging", {}),
        ):
            patcher = mock.patch(target, **kwargs)
            patcher.start()
            self.addCleanup(patcher.stop)

    def _main(self, *argv):
        out = io.StringIO()
        with redirect_stdout(out):
            main(list(argv))
        return out.getvalue()

    def test_show_config(self):
        out = self._main("--show-config", "--profile", "fast")
        shown = json.loads(out[out.index("{"):])
        self.assertEqual(shown["profile"], "fast")
        self.assertEqual(shown["ping_count"], 5)
        self.assertFalse(os.path.exists(self.path))

    def test_save_config(self):
        self._main("--save-config", "--show-config", "--ping-count", "7")
        with open(self.path) as f:
            saved = json.load(f)
        self.assertEqual(saved["ping_count"], 7)

        out = self._main("--show-config")
        self.assertEqual(json.loads(out[out.index("{"):])["ping_count"], 7)

    def test_invalid_config_exits(self):
        with self.assertRaises(SystemExit) as ctx:
            self._main("--ping-count", "0")
        self.assertEqual(ctx.exception.code, 1)

    def test_cancelled_run_exits(self):
        with mock.patch("speedtest.run_speedtest", side_effect=Cancelled()):
            with self.assertRaises(SystemExit) as ctx:
                self._main("--json")
        self.assertEqual(ctx.exception.code, 1)


if __name__ == "__main__":
    unittest.main()
