"""
Download speed test module.

Fetches payloads of increasing size from a byte-generating endpoint and
reads each body incrementally.  Design mirrors the upload module: EMA-smoothed
live readout while bytes arrive, one per-size speed sample once the body is
complete, sanity-band filtering, and a running mean as the phase result.
"""
from __future__ import annotations

import asyncio
import logging
import time
from typing import Awaitable, Callable, Optional, Sequence, Tuple

import aiohttp

from .constants import (
    DOWNLOAD_EARLY_EXIT_BYTES,
    DOWNLOAD_EARLY_EXIT_MBPS,
    DOWNLOAD_SIZES,
    DOWNLOAD_URL,
    EMA_ALPHA,
    MAX_REASONABLE_SPEED,
    REQUEST_TIMEOUT,
    THROUGHPUT_DELAY,
    TICK_INTERVAL,
)
from .errors import Cancelled, SampleFailure
from .stats import (
    RunningMean,
    Sample,
    SpeedMeter,
    ThroughputResult,
    in_sanity_band,
    to_mbps,
)

logger = logging.getLogger(__name__)

_REQUEST_ERRORS = (
    SampleFailure,
    aiohttp.ClientError,
    aiohttp.ClientPayloadError,
    asyncio.TimeoutError,
    OSError,
)

ThroughputCallback = Callable[[float, float, Optional[float]], None]


class DownloadTester:
    """
    Sequential download speed tester.

    ``on_progress`` receives ``(fraction_done, live_mbps, average_mbps)``;
    ``average_mbps`` is the running mean of accepted sizes, or ``None`` until
    the first size has been accepted.
    """

    def __init__(
        self,
        transport,  # noqa: ANN001 (HttpTransport or compatible)
        url_template: str = DOWNLOAD_URL,
        sizes: Sequence[int] = DOWNLOAD_SIZES,
        timeout: float = REQUEST_TIMEOUT,
        delay: float = THROUGHPUT_DELAY,
        tick_interval: float = TICK_INTERVAL,
        alpha: float = EMA_ALPHA,
        max_speed: float = MAX_REASONABLE_SPEED,
        clock: Callable[[], float] = time.perf_counter,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.transport = transport
        self.url_template = url_template
        self.sizes = list(sizes)
        self.timeout = timeout
        self.delay = delay
        self.tick_interval = tick_interval
        self.alpha = alpha
        self.max_speed = max_speed
        self._clock = clock
        self._sleep = sleep
        self.on_progress: Optional[ThroughputCallback] = None

    async def test(self, stop: Optional[asyncio.Event] = None) -> ThroughputResult:
        result = ThroughputResult()
        meter = SpeedMeter(self.alpha)
        average = RunningMean()
        phase_start = self._clock()

        for i, size in enumerate(self.sizes):
            if stop is not None and stop.is_set():
                raise Cancelled()

            url = self.url_template.format(size=size)
            started = self._clock()
            try:
                received, elapsed = await asyncio.wait_for(
                    self._fetch(url, i, size, meter, average, stop),
                    timeout=self.timeout,
                )
            except _REQUEST_ERRORS as exc:
                result.failures += 1
                result.samples.append(Sample(0.0, False, started * 1000))
                logger.warning(
                    "Download of %d bytes failed: %s", size, str(exc) or type(exc).__name__
                )
            else:
                result.bytes_total += received
                speed = to_mbps(received, elapsed)
                logger.debug("Download %d bytes in %.3f s: %.2f Mbps", received, elapsed, speed)

                if in_sanity_band(speed, self.max_speed):
                    result.samples.append(Sample(speed, True, started * 1000))
                    average.add(speed)
                    meter.reset(average.value)
                    self._emit((i + 1) / len(self.sizes), meter.value, average.value)

                    if speed < DOWNLOAD_EARLY_EXIT_MBPS and size > DOWNLOAD_EARLY_EXIT_BYTES:
                        logger.info(
                            "Download at %.2f Mbps on a %d byte payload, skipping larger sizes",
                            speed,
                            size,
                        )
                        result.stopped_early = True
                        break
                else:
                    result.rejected.append(speed)
                    logger.warning("Discarding implausible download sample of %.2f Mbps", speed)

            if i < len(self.sizes) - 1 and self.delay > 0:
                await self._sleep(self.delay)

        result.duration_ms = (self._clock() - phase_start) * 1000
        result.calculate()
        logger.info(
            "Download: %.2f Mbps from %d accepted sizes", result.speed_mbps, len(result.speeds)
        )
        return result

    # -- Internals ----------------------------------------------------------

    async def _fetch(
        self,
        url: str,
        index: int,
        size: int,
        meter: SpeedMeter,
        average: RunningMean,
        stop: Optional[asyncio.Event],
    ) -> Tuple[int, float]:
        """Read one body incrementally.  Returns ``(bytes_received, seconds)``."""
        start = self._clock()
        last_tick = start
        last_bytes = 0
        received = 0

        body = self.transport.stream(url)
        try:
            async for chunk in body:
                if stop is not None and stop.is_set():
                    raise Cancelled()

                received += len(chunk)
                now = self._clock()
                if now - last_tick >= self.tick_interval:
                    instant = to_mbps(received - last_bytes, now - last_tick)
                    if instant > 0:
                        meter.update(instant)
                        done = min(received / size, 1.0) if size else 1.0
                        self._emit(
                            (index + done) / len(self.sizes),
                            meter.value,
                            average.value if average.count else None,
                        )
                    last_tick = now
                    last_bytes = received
        finally:
            await body.aclose()

        return received, self._clock() - start

    def _emit(self, fraction: float, live: float, avg: Optional[float]) -> None:
        if self.on_progress:
            self.on_progress(min(fraction, 1.0), live, avg)
