"""Tests for HttpSpeedTestEngine wiring, using a scripted transport."""

import asyncio
import unittest

from fakes import HANG, FakeTransport
from speedengine.config import EngineConfig
from speedengine.engine import HttpSpeedTestEngine, SpeedTestEngine
from speedengine.errors import Cancelled, ConfigError
from speedengine.models import Phase, SpeedTestResult


def _config(**overrides):
    values = dict(
        profile="fast",
        latency_endpoints=["https://a.test/", "https://b.test/", "https://c.test/"],
        ping_count=3,
        ping_delay=0.0,
        download_url="https://dl.test/bytes/{size}",
        download_sizes=[1000, 2000],
        upload_url="https://ul.test/upload",
        upload_sizes=[1000],
        upload_repeats=1,
        throughput_delay=0.0,
        progress_interval=0.0,
    )
    values.update(overrides)
    return EngineConfig(**values)


class _SlowOpeningTransport(FakeTransport):
    async def __aenter__(self):
        await asyncio.sleep(0.05)
        return await super().__aenter__()


class TestHttpSpeedTestEngine(unittest.IsolatedAsyncioTestCase):
    async def test_is_a_speed_test_engine(self):
        self.assertIsInstance(HttpSpeedTestEngine(), SpeedTestEngine)

    async def test_run_completes(self):
        transport = FakeTransport(default=0.01, chunks=2)
        engine = HttpSpeedTestEngine(_config(), transport_factory=lambda: transport)
        events = []
        result = await engine.run(events.append)

        self.assertIsInstance(result, SpeedTestResult)
        self.assertGreater(result.ping_ms, 0.0)
        self.assertGreater(result.download_speed_mbps, 0.0)
        self.assertGreater(result.upload_speed_mbps, 0.0)
        self.assertEqual(result.packet_loss_percent, 0.0)
        self.assertIs(events[-1].phase, Phase.COMPLETE)
        self.assertEqual((transport.entered, transport.exited), (1, 1))

        methods = [call[0] for call in transport.calls]
        self.assertEqual(methods, ["HEAD"] * 3 + ["GET"] * 2 + ["POST"])

    async def test_each_run_gets_a_new_session(self):
        engine = HttpSpeedTestEngine(
            _config(), transport_factory=lambda: FakeTransport(default=0.001, chunks=1)
        )
        await engine.run(lambda _e: None)
        first = engine.session
        await engine.run(lambda _e: None)

        self.assertIsNot(engine.session, first)
        self.assertIs(engine.session.phase, Phase.COMPLETE)

    async def test_invalid_config_fails_before_network(self):
        transport = FakeTransport()
        engine = HttpSpeedTestEngine(
            _config(latency_endpoints=["https://a.test/"]),
            transport_factory=lambda: transport,
        )
        with self.assertRaises(ConfigError):
            await engine.run(lambda _e: None)
        self.assertEqual(transport.entered, 0)

    async def test_cancel_during_run(self):
        transport = FakeTransport(default=0.01, downloads=[HANG])
        engine = HttpSpeedTestEngine(_config(), transport_factory=lambda: transport)
        events = []
        asyncio.get_running_loop().call_later(0.3, engine.cancel)

        with self.assertRaises(Cancelled):
            await engine.run(events.append)

        self.assertIs(engine.session.phase, Phase.DOWNLOAD)
        self.assertEqual(transport.exited, 1)
        self.assertNotIn(Phase.UPLOAD, {e.phase for e in events})

    async def test_cancel_while_transport_opens(self):
        transport = _SlowOpeningTransport()
        engine = HttpSpeedTestEngine(_config(), transport_factory=lambda: transport)
        events = []
        task = asyncio.ensure_future(engine.run(events.append))
        await asyncio.sleep(0.01)
        engine.cancel()

        with self.assertRaises(Cancelled):
            await task
        self.assertEqual(events, [])
        self.assertEqual(transport.calls, [])

    async def test_cancel_without_run_is_harmless(self):
        engine = HttpSpeedTestEngine(_config())
        engine.cancel()
        self.assertIsNone(engine.session)


if __name__ == "__main__":
    unittest.main()
