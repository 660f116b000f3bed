"""
Session controller.

A :class:`SpeedTestSession` owns one test run: it sequences the latency,
download and upload samplers, maps their progress into fixed slices of the
overall 0-100 % range, merges their results, and can be cancelled at any
point.  Sessions are single-use; the engine creates a new one per run.
"""
from __future__ import annotations

import asyncio
import logging
import time
from typing import Callable, Dict, Optional, Tuple

from .constants import DOWNLOAD_RANGE, PING_RANGE, PROGRESS_INTERVAL, UPLOAD_RANGE
from .errors import Cancelled
from .latency import LatencyResult
from .models import Phase, SessionProgress, SpeedTestResult
from .progress import ProgressCallback, ProgressReporter
from .stats import ThroughputResult

logger = logging.getLogger(__name__)

PHASE_RANGES: Dict[Phase, Tuple[float, float]] = {
    Phase.PING: PING_RANGE,
    Phase.DOWNLOAD: DOWNLOAD_RANGE,
    Phase.UPLOAD: UPLOAD_RANGE,
}


class SpeedTestSession:
    """
    One measurement run: ``idle -> ping -> download -> upload -> complete``.

    The three samplers only need an ``on_progress`` attribute and an
    ``async test(stop)`` method; ``stop`` is the session's cancellation
    event.
    """

    def __init__(
        self,
        latency,  # noqa: ANN001 (LatencyTester or compatible)
        download,  # noqa: ANN001 (DownloadTester or compatible)
        upload,  # noqa: ANN001 (UploadTester or compatible)
        progress_interval: float = PROGRESS_INTERVAL,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.latency = latency
        self.download = download
        self.upload = upload
        self.progress_interval = progress_interval
        self._clock = clock

        self.phase = Phase.IDLE
        self.result: Optional[SpeedTestResult] = None
        self.latency_result: Optional[LatencyResult] = None
        self.download_result: Optional[ThroughputResult] = None
        self.upload_result: Optional[ThroughputResult] = None
        self.partial: Dict[str, float] = {}
        # Most recent live value per phase; only the running sampler writes.
        self.live_readings: Dict[Phase, float] = {}

        self._stop = asyncio.Event()
        self._task: Optional[asyncio.Future] = None
        self._reporter: Optional[ProgressReporter] = None
        self._started = False

    @property
    def cancelled(self) -> bool:
        return self._stop.is_set()

    # -- Public API ---------------------------------------------------------

    async def run(self, on_progress: ProgressCallback) -> SpeedTestResult:
        """Run every phase and return the merged result.

        Raises :class:`Cancelled` if :meth:`cancel` is called before the
        session completes.
        """
        if self._started:
            raise RuntimeError("a SpeedTestSession can only be run once")
        self._started = True
        self._reporter = ProgressReporter(on_progress, self.progress_interval, self._clock)

        if self.cancelled:
            raise Cancelled()

        self._task = asyncio.ensure_future(self._run_phases())
        try:
            return await self._task
        except asyncio.CancelledError:
            if self.cancelled:
                raise Cancelled() from None
            raise

    def cancel(self) -> None:
        """Abort in-flight requests and stop emitting progress."""
        if self.cancelled or self.phase is Phase.COMPLETE:
            return
        logger.info("Cancelling speed test during %s phase", self.phase.value)
        self._stop.set()
        if self._reporter is not None:
            self._reporter.close()
        if self._task is not None and not self._task.done():
            self._task.cancel()

    # -- Phases -------------------------------------------------------------

    async def _run_phases(self) -> SpeedTestResult:
        # Ping
        self._enter(Phase.PING)
        self.latency.on_progress = self._on_latency_progress
        latency = self.latency_result = await self.latency.test(self._stop)
        self.partial.update(
            ping_ms=latency.ping_ms,
            jitter_ms=latency.jitter_ms,
            packet_loss_percent=latency.packet_loss_percent,
        )
        self._report(Phase.PING, 1.0, force=True)

        # Download
        self._enter(Phase.DOWNLOAD)
        self.download.on_progress = self._throughput_progress(
            Phase.DOWNLOAD, "download_speed_mbps"
        )
        download = self.download_result = await self.download.test(self._stop)
        self.partial["download_speed_mbps"] = download.speed_mbps
        self._report(Phase.DOWNLOAD, 1.0, force=True)

        # Upload
        self._enter(Phase.UPLOAD)
        self.upload.on_progress = self._throughput_progress(Phase.UPLOAD, "upload_speed_mbps")
        upload = self.upload_result = await self.upload.test(self._stop)
        self.partial["upload_speed_mbps"] = upload.speed_mbps
        self._report(Phase.UPLOAD, 1.0, force=True)

        # Complete
        result = SpeedTestResult.from_partial(self.partial)
        self.result = result
        self._advance(Phase.COMPLETE)
        self._reporter.report(
            SessionProgress(
                phase=Phase.COMPLETE,
                overall_progress=100.0,
                partial=result.to_dict(),
            ),
            force=True,
        )
        logger.info(
            "Speed test complete: down %.2f Mbps, up %.2f Mbps, ping %.1f ms",
            result.download_speed_mbps,
            result.upload_speed_mbps,
            result.ping_ms,
        )
        return result

    # -- Internals ----------------------------------------------------------

    def _advance(self, phase: Phase) -> None:
        if phase.order <= self.phase.order:
            raise RuntimeError(
                f"invalid phase transition {self.phase.value} -> {phase.value}"
            )
        logger.debug("Phase %s -> %s", self.phase.value, phase.value)
        self.phase = phase

    def _enter(self, phase: Phase) -> None:
        self._advance(phase)
        self._report(phase, 0.0, force=True)

    def _report(
        self,
        phase: Phase,
        fraction: float,
        live_jitter: Optional[float] = None,
        force: bool = False,
    ) -> None:
        lo, hi = PHASE_RANGES[phase]
        fraction = min(max(fraction, 0.0), 1.0)
        self._reporter.report(
            SessionProgress(
                phase=phase,
                overall_progress=lo + (hi - lo) * fraction,
                partial=dict(self.partial),
                live_reading=self.live_readings.get(phase),
                live_jitter=live_jitter,
            ),
            force=force,
        )

    def _on_latency_progress(self, fraction: float, ping_ms: float, jitter_ms: float) -> None:
        self.live_readings[Phase.PING] = ping_ms
        self._report(Phase.PING, fraction, live_jitter=jitter_ms)

    def _throughput_progress(self, phase: Phase, key: str):  # noqa: ANN202
        def _on_progress(fraction: float, live_mbps: float, average: Optional[float]) -> None:
            self.live_readings[phase] = live_mbps
            if average is not None:
                self.partial[key] = average
            self._report(phase, fraction)

        return _on_progress
