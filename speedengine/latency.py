"""
HTTP round-trip latency measurement.

Probe flow::

    1. Pick endpoint ``i mod len(endpoints)`` from a rotating host list.
    2. Send a HEAD request, bounded by a timeout and the session stop event.
    3. Record the elapsed wall-clock time, or a failed sample.
    4. Pause briefly, repeat until ``ping_count`` probes have been sent.
    5. Trim the fastest and slowest 10 %, then take mean and stddev.

Failed probes never enter the latency statistics; they only count towards
packet loss.
"""
from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Awaitable, Callable, List, Optional, Sequence

import aiohttp

from .constants import (
    DEFAULT_PING_COUNT,
    LATENCY_ENDPOINTS,
    PING_DELAY,
    PING_TIMEOUT,
    TRIM_FRACTION,
)
from .errors import Cancelled, SampleFailure
from .stats import (
    Sample,
    median_or_zero,
    pairwise_jitter,
    trimmed_jitter,
    trimmed_mean,
)

logger = logging.getLogger(__name__)

_PROBE_ERRORS = (SampleFailure, aiohttp.ClientError, asyncio.TimeoutError, OSError)


# ---------------------------------------------------------------------------
# Result
# ---------------------------------------------------------------------------

@dataclass
class LatencyResult:
    """Aggregated latency data for one ping phase."""

    ping_ms: float = 0.0
    jitter_ms: float = 0.0
    packet_loss_percent: float = 0.0
    attempts: int = 0
    failures: int = 0
    min_ms: float = 0.0
    max_ms: float = 0.0
    median_ms: float = 0.0
    samples: List[Sample] = field(default_factory=list)

    @property
    def pings(self) -> List[float]:
        return [s.value for s in self.samples if s.succeeded]

    def calculate(self, trim_fraction: float = TRIM_FRACTION) -> None:
        """Derive trimmed ping, jitter and loss from the collected samples."""
        self.attempts = len(self.samples)
        self.failures = sum(1 for s in self.samples if not s.succeeded)
        self.packet_loss_percent = (
            self.failures / self.attempts * 100 if self.attempts else 0.0
        )

        pings = self.pings
        if not pings:
            self.ping_ms = self.jitter_ms = 0.0
            self.min_ms = self.max_ms = self.median_ms = 0.0
            if self.attempts:
                self.packet_loss_percent = 100.0
            return

        self.ping_ms = trimmed_mean(pings, trim_fraction)
        self.jitter_ms = trimmed_jitter(pings, trim_fraction)
        self.min_ms = min(pings)
        self.max_ms = max(pings)
        self.median_ms = median_or_zero(pings)

    def to_dict(self) -> dict:
        return {
            "ping_ms": round(self.ping_ms, 3),
            "jitter_ms": round(self.jitter_ms, 3),
            "packet_loss_percent": round(self.packet_loss_percent, 2),
            "attempts": self.attempts,
            "failures": self.failures,
            "min_ms": round(self.min_ms, 3),
            "max_ms": round(self.max_ms, 3),
            "median_ms": round(self.median_ms, 3),
            "pings": [round(p, 1) for p in self.pings],
        }


# ---------------------------------------------------------------------------
# Tester
# ---------------------------------------------------------------------------

class LatencyTester:
    """
    Sequential HEAD-probe latency tester.

    ``on_progress`` is called after every probe with
    ``(fraction_done, last_ping_ms, pairwise_jitter_ms)``.
    """

    def __init__(
        self,
        transport,  # noqa: ANN001 (HttpTransport or compatible)
        endpoints: Sequence[str] = LATENCY_ENDPOINTS,
        ping_count: int = DEFAULT_PING_COUNT,
        timeout: float = PING_TIMEOUT,
        delay: float = PING_DELAY,
        trim_fraction: float = TRIM_FRACTION,
        clock: Callable[[], float] = time.perf_counter,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.transport = transport
        self.endpoints = list(endpoints)
        self.ping_count = ping_count
        self.timeout = timeout
        self.delay = delay
        self.trim_fraction = trim_fraction
        self._clock = clock
        self._sleep = sleep
        self.on_progress: Optional[Callable[[float, float, float], None]] = None

    async def test(self, stop: Optional[asyncio.Event] = None) -> LatencyResult:
        result = LatencyResult()
        pings: List[float] = []

        for i in range(self.ping_count):
            if stop is not None and stop.is_set():
                raise Cancelled()

            url = self.endpoints[i % len(self.endpoints)]
            sample = await self._probe_once(url)
            result.samples.append(sample)

            if sample.succeeded:
                pings.append(sample.value)

            if self.on_progress:
                last = pings[-1] if pings else 0.0
                self.on_progress((i + 1) / self.ping_count, last, pairwise_jitter(pings))

            if i < self.ping_count - 1 and self.delay > 0:
                await self._sleep(self.delay)

        result.calculate(self.trim_fraction)
        logger.info(
            "Latency: %.1f ms, jitter %.2f ms, loss %.0f%% (%d probes)",
            result.ping_ms,
            result.jitter_ms,
            result.packet_loss_percent,
            result.attempts,
        )
        return result

    # -- Internals ----------------------------------------------------------

    async def _probe_once(self, url: str) -> Sample:
        """Send one probe and time it in milliseconds."""
        start = self._clock()
        try:
            await asyncio.wait_for(self.transport.probe(url), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.debug("Probe to %s timed out after %.1f s", url, self.timeout)
            return Sample(value=0.0, succeeded=False, timestamp_ms=start * 1000)
        except _PROBE_ERRORS as exc:
            logger.debug("Probe to %s failed: %s", url, exc)
            return Sample(value=0.0, succeeded=False, timestamp_ms=start * 1000)

        elapsed_ms = (self._clock() - start) * 1000
        logger.debug("Probe to %s: %.1f ms", url, elapsed_ms)
        return Sample(value=elapsed_ms, succeeded=True, timestamp_ms=start * 1000)
