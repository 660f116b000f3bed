"""
Network measurement statistics.

Pure functions and lightweight dataclasses -- no I/O, no side effects.
Everything here is deterministic and easy to unit-test.
"""
from __future__ import annotations

import math
import statistics
from dataclasses import dataclass, field
from typing import List, Sequence

from .constants import EMA_ALPHA, MAX_REASONABLE_SPEED, TRIM_FRACTION


# ---------------------------------------------------------------------------
# Dataclasses
# ---------------------------------------------------------------------------

@dataclass
class Sample:
    """One observation taken during a phase."""

    value: float = 0.0
    succeeded: bool = True
    timestamp_ms: float = 0.0

    def to_dict(self) -> dict:
        return {
            "value": round(self.value, 3),
            "succeeded": self.succeeded,
            "timestamp_ms": round(self.timestamp_ms, 3),
        }


@dataclass
class ThroughputResult:
    """Download or upload phase result."""

    speed_mbps: float = 0.0
    bytes_total: int = 0
    duration_ms: float = 0.0
    failures: int = 0
    stopped_early: bool = False
    samples: List[Sample] = field(default_factory=list)
    rejected: List[float] = field(default_factory=list)

    @property
    def speeds(self) -> List[float]:
        return [s.value for s in self.samples if s.succeeded]

    def calculate(self) -> None:
        """Mean of the accepted per-request speeds, 0 when there are none."""
        self.speed_mbps = mean_or_zero(self.speeds)

    def to_dict(self) -> dict:
        return {
            "speed_mbps": round(self.speed_mbps, 2),
            "bytes_total": self.bytes_total,
            "duration_ms": round(self.duration_ms, 2),
            "failures": self.failures,
            "stopped_early": self.stopped_early,
            "samples": [round(s, 2) for s in self.speeds],
            "rejected": [round(s, 2) for s in self.rejected],
        }


class RunningMean:
    """Arithmetic mean of the values added so far."""

    def __init__(self) -> None:
        self.count = 0
        self.total = 0.0

    def add(self, value: float) -> float:
        self.count += 1
        self.total += value
        return self.value

    @property
    def value(self) -> float:
        return self.total / self.count if self.count else 0.0


class SpeedMeter:
    """EMA-smoothed live throughput readout.

    The first reading seeds the average directly; later readings are blended
    with weight ``alpha``.
    """

    def __init__(self, alpha: float = EMA_ALPHA) -> None:
        self.alpha = alpha
        self.value = 0.0

    def update(self, sample_mbps: float) -> float:
        self.value = ema(self.value, sample_mbps, self.alpha)
        return self.value

    def reset(self, value: float) -> None:
        self.value = value


# ---------------------------------------------------------------------------
# Pure helper functions
# ---------------------------------------------------------------------------

def trim_count(n: int, fraction: float = TRIM_FRACTION) -> int:
    """Number of samples dropped from *each* end of an ordered set of *n*.

    ``ceil(n * fraction)`` once there are at least three samples, clamped so
    that one sample always survives.
    """
    if n < 3 or fraction <= 0:
        return 0
    return min(math.ceil(round(n * fraction, 9)), (n - 1) // 2)


def trimmed_samples(samples: Sequence[float], fraction: float = TRIM_FRACTION) -> List[float]:
    """Sorted *samples* with the lowest and highest ``trim_count`` removed."""
    ordered = sorted(samples)
    k = trim_count(len(ordered), fraction)
    return ordered[k:len(ordered) - k]


def trimmed_mean(samples: Sequence[float], fraction: float = TRIM_FRACTION) -> float:
    trimmed = trimmed_samples(samples, fraction)
    return statistics.mean(trimmed) if trimmed else 0.0


def trimmed_jitter(samples: Sequence[float], fraction: float = TRIM_FRACTION) -> float:
    """Population standard deviation of the trimmed set against its own mean."""
    trimmed = trimmed_samples(samples, fraction)
    return statistics.pstdev(trimmed) if trimmed else 0.0


def pairwise_jitter(samples: Sequence[float]) -> float:
    """Absolute difference between the last two samples (live readout)."""
    if len(samples) < 2:
        return 0.0
    return abs(samples[-1] - samples[-2])


def ema(previous: float, sample: float, alpha: float = EMA_ALPHA) -> float:
    """``alpha * sample + (1 - alpha) * previous``; *previous* of 0 means unseeded."""
    if previous == 0.0:
        return sample
    return alpha * sample + (1.0 - alpha) * previous


def to_mbps(num_bytes: float, seconds: float) -> float:
    """Bytes over seconds as megabits per second (0 for a non-positive interval)."""
    if seconds <= 0:
        return 0.0
    return num_bytes * 8 / seconds / 1_000_000


def in_sanity_band(speed_mbps: float, limit: float = MAX_REASONABLE_SPEED) -> bool:
    """True for speeds that can plausibly be real measurements."""
    return 0.0 < speed_mbps < limit


def mean_or_zero(values: Sequence[float]) -> float:
    return statistics.mean(values) if values else 0.0


def median_or_zero(values: Sequence[float]) -> float:
    return statistics.median(values) if values else 0.0


# ---------------------------------------------------------------------------
# Formatting helpers
# ---------------------------------------------------------------------------

def format_speed(speed_mbps: float) -> str:
    """Human-readable speed string."""
    if speed_mbps >= 1000:
        return f"{speed_mbps / 1000:.2f} Gbps"
    return f"{speed_mbps:.2f} Mbps"


def format_latency(latency_ms: float) -> str:
    """Human-readable latency string."""
    if latency_ms >= 1000:
        return f"{latency_ms / 1000:.2f} s"
    return f"{latency_ms:.1f} ms"

