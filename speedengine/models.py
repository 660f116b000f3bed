"""
Data models exchanged between the engine and its callers.
"""
from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, Optional


class Phase(str, Enum):
    """Session lifecycle states, in the only order they may occur."""

    IDLE = "idle"
    PING = "ping"
    DOWNLOAD = "download"
    UPLOAD = "upload"
    COMPLETE = "complete"

    @property
    def order(self) -> int:
        return _PHASE_ORDER.index(self)


_PHASE_ORDER = [Phase.IDLE, Phase.PING, Phase.DOWNLOAD, Phase.UPLOAD, Phase.COMPLETE]


@dataclass(frozen=True)
class SpeedTestResult:
    """Final outcome of one session.  Fields are 0 for a phase with no samples."""

    download_speed_mbps: float = 0.0
    upload_speed_mbps: float = 0.0
    ping_ms: float = 0.0
    jitter_ms: float = 0.0
    packet_loss_percent: float = 0.0

    @classmethod
    def from_partial(cls, partial: Dict[str, float]) -> SpeedTestResult:
        return cls(**{k: float(v) for k, v in partial.items() if k in RESULT_FIELDS})

    def to_dict(self) -> Dict[str, float]:
        return asdict(self)


RESULT_FIELDS = tuple(SpeedTestResult.__dataclass_fields__)


@dataclass
class SessionProgress:
    """One progress event delivered to the caller's ``on_progress``."""

    phase: Phase
    overall_progress: float
    partial: Dict[str, float] = field(default_factory=dict)
    live_reading: Optional[float] = None
    live_jitter: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "phase": self.phase.value,
            "overall_progress": round(self.overall_progress, 2),
            "partial": dict(self.partial),
            "live_reading": self.live_reading,
            "live_jitter": self.live_jitter,
        }
