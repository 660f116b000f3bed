"""
Upload speed test module.

POSTs random payloads of increasing size, each size repeated a few times to
smooth one-shot timing noise.  Live speed comes from the transport's
bytes-sent callbacks, smoothed with the same EMA as downloads.
"""
from __future__ import annotations

import asyncio
import logging
import os
import time
from typing import Awaitable, Callable, Optional, Sequence

import aiohttp

from .constants import (
    DEFAULT_UPLOAD_REPEATS,
    EMA_ALPHA,
    MAX_REASONABLE_SPEED,
    REQUEST_TIMEOUT,
    THROUGHPUT_DELAY,
    TICK_INTERVAL,
    UPLOAD_EARLY_EXIT_BYTES,
    UPLOAD_EARLY_EXIT_MBPS,
    UPLOAD_SIZES,
    UPLOAD_URL,
)
from .download import ThroughputCallback
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

_REQUEST_ERRORS = (SampleFailure, aiohttp.ClientError, asyncio.TimeoutError, OSError)


class UploadTester:
    """
    Sequential upload speed tester.

    Shares the ``on_progress`` signature of :class:`DownloadTester`.
    """

    def __init__(
        self,
        transport,  # noqa: ANN001 (HttpTransport or compatible)
        url: str = UPLOAD_URL,
        sizes: Sequence[int] = UPLOAD_SIZES,
        repeats: int = DEFAULT_UPLOAD_REPEATS,
        timeout: float = REQUEST_TIMEOUT,
        delay: float = THROUGHPUT_DELAY,
        tick_interval: float = TICK_INTERVAL,
        alpha: float = EMA_ALPHA,
        max_speed: float = MAX_REASONABLE_SPEED,
        clock: Callable[[], float] = time.perf_counter,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        payload_factory: Callable[[int], bytes] = os.urandom,
    ) -> None:
        self.transport = transport
        self.url = url
        self.sizes = list(sizes)
        self.repeats = max(1, repeats)
        self.timeout = timeout
        self.delay = delay
        self.tick_interval = tick_interval
        self.alpha = alpha
        self.max_speed = max_speed
        self._clock = clock
        self._sleep = sleep
        self._payload_factory = payload_factory
        self.on_progress: Optional[ThroughputCallback] = None

    async def test(self, stop: Optional[asyncio.Event] = None) -> ThroughputResult:
        result = ThroughputResult()
        meter = SpeedMeter(self.alpha)
        average = RunningMean()
        phase_start = self._clock()
        total_steps = len(self.sizes) * self.repeats

        for i, size in enumerate(self.sizes):
            for rep in range(self.repeats):
                if stop is not None and stop.is_set():
                    raise Cancelled()

                step = i * self.repeats + rep
                payload = self._payload_factory(size)
                started = self._clock()
                try:
                    elapsed = await asyncio.wait_for(
                        self._post(payload, step, total_steps, meter, average),
                        timeout=self.timeout,
                    )
                except _REQUEST_ERRORS as exc:
                    result.failures += 1
                    result.samples.append(Sample(0.0, False, started * 1000))
                    logger.warning(
                        "Upload of %d bytes failed: %s", size, str(exc) or type(exc).__name__
                    )
                    continue

                result.bytes_total += size
                speed = to_mbps(size, elapsed)
                logger.debug("Upload %d bytes in %.3f s: %.2f Mbps", size, elapsed, speed)

                if in_sanity_band(speed, self.max_speed):
                    result.samples.append(Sample(speed, True, started * 1000))
                    average.add(speed)
                    meter.reset(average.value)
                    self._emit((step + 1) / total_steps, meter.value, average.value)
                else:
                    result.rejected.append(speed)
                    logger.warning("Discarding implausible upload sample of %.2f Mbps", speed)

            if (
                average.count
                and average.value < UPLOAD_EARLY_EXIT_MBPS
                and size > UPLOAD_EARLY_EXIT_BYTES
            ):
                logger.info(
                    "Upload averaging %.2f Mbps after %d byte payloads, skipping larger sizes",
                    average.value,
                    size,
                )
                result.stopped_early = True
                break

            if i < len(self.sizes) - 1 and self.delay > 0:
                await self._sleep(self.delay)

        result.duration_ms = (self._clock() - phase_start) * 1000
        result.calculate()
        logger.info(
            "Upload: %.2f Mbps from %d accepted requests", result.speed_mbps, len(result.speeds)
        )
        return result

    # -- Internals ----------------------------------------------------------

    async def _post(
        self,
        payload: bytes,
        step: int,
        total_steps: int,
        meter: SpeedMeter,
        average: RunningMean,
    ) -> float:
        """Send one payload.  Returns elapsed seconds until the response."""
        size = len(payload)
        start = self._clock()
        last = {"time": start, "bytes": 0}

        def _on_sent(sent: int) -> None:
            now = self._clock()
            dt = now - last["time"]
            if dt < self.tick_interval:
                return
            instant = to_mbps(sent - last["bytes"], dt)
            if instant > 0:
                meter.update(instant)
                done = min(sent / size, 1.0) if size else 1.0
                self._emit(
                    (step + done) / total_steps,
                    meter.value,
                    average.value if average.count else None,
                )
            last["time"] = now
            last["bytes"] = sent

        await self.transport.send(self.url, payload, on_sent=_on_sent)
        return self._clock() - start

    def _emit(self, fraction: float, live: float, avg: Optional[float]) -> None:
        if self.on_progress:
            self.on_progress(min(fraction, 1.0), live, avg)
