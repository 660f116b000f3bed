"""
Public engine API.

``SpeedTestEngine`` is the whole contract the presentation layer depends on:
``await engine.run(on_progress)`` and ``engine.cancel()``.
``HttpSpeedTestEngine`` is the canonical implementation; each ``run`` opens a
fresh transport and builds a fresh :class:`SpeedTestSession`.
"""
from __future__ import annotations

import abc
import logging
from typing import Callable, Optional

from .config import EngineConfig
from .download import DownloadTester
from .latency import LatencyTester
from .models import SpeedTestResult
from .progress import ProgressCallback
from .session import SpeedTestSession
from .transport import HttpTransport
from .upload import UploadTester

logger = logging.getLogger(__name__)


class SpeedTestEngine(abc.ABC):
    """A cancellable, progress-reporting speed test."""

    @abc.abstractmethod
    async def run(self, on_progress: ProgressCallback) -> SpeedTestResult:
        """Run one full test; raises ``Cancelled`` if :meth:`cancel` is called."""

    @abc.abstractmethod
    def cancel(self) -> None:
        """Abort the running test, if any."""


class HttpSpeedTestEngine(SpeedTestEngine):
    """Measures latency, download and upload with plain HTTP requests."""

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        transport_factory: Callable[[], HttpTransport] = HttpTransport,
    ) -> None:
        self.config = config or EngineConfig()
        self._transport_factory = transport_factory
        self.session: Optional[SpeedTestSession] = None
        self._cancel_requested = False

    async def run(self, on_progress: ProgressCallback) -> SpeedTestResult:
        self.config.validate()
        logger.info("Starting %s speed test", self.config.profile)
        self.session = None
        self._cancel_requested = False

        async with self._transport_factory() as transport:
            self.session = self.build_session(transport)
            # cancel() may have arrived while the transport was opening
            if self._cancel_requested:
                self.session.cancel()
            return await self.session.run(on_progress)

    def cancel(self) -> None:
        if self.session is not None:
            self.session.cancel()
        else:
            self._cancel_requested = True

    def build_session(self, transport) -> SpeedTestSession:  # noqa: ANN001
        """Wire the three samplers to *transport* using the current config."""
        cfg = self.config
        latency = LatencyTester(
            transport,
            endpoints=cfg.latency_endpoints,
            ping_count=cfg.ping_count,
            timeout=cfg.ping_timeout,
            delay=cfg.ping_delay,
        )
        download = DownloadTester(
            transport,
            url_template=cfg.download_url,
            sizes=cfg.download_sizes,
            timeout=cfg.request_timeout,
            delay=cfg.throughput_delay,
        )
        upload = UploadTester(
            transport,
            url=cfg.upload_url,
            sizes=cfg.upload_sizes,
            repeats=cfg.upload_repeats,
            timeout=cfg.request_timeout,
            delay=cfg.throughput_delay,
        )
        return SpeedTestSession(
            latency, download, upload, progress_interval=cfg.progress_interval
        )

