"""Speed-measurement engine -- latency, download and upload over HTTP."""

from .config import EngineConfig, load_config, save_config
from .download import DownloadTester
from .engine import HttpSpeedTestEngine, SpeedTestEngine
from .errors import Cancelled, ConfigError, SampleFailure, SpeedTestError
from .latency import LatencyResult, LatencyTester
from .models import Phase, SessionProgress, SpeedTestResult
from .progress import ProgressReporter
from .session import SpeedTestSession
from .stats import (
    Sample,
    ThroughputResult,
    format_latency,
    format_speed,
    trimmed_jitter,
    trimmed_mean,
)
from .transport import HttpTransport
from .upload import UploadTester

__all__ = [
    "Cancelled",
    "ConfigError",
    "DownloadTester",
    "EngineConfig",
    "HttpSpeedTestEngine",
    "HttpTransport",
    "LatencyResult",
    "LatencyTester",
    "Phase",
    "ProgressReporter",
    "Sample",
    "SampleFailure",
    "SessionProgress",
    "SpeedTestEngine",
    "SpeedTestError",
    "SpeedTestResult",
    "SpeedTestSession",
    "ThroughputResult",
    "UploadTester",
    "format_latency",
    "format_speed",
    "load_config",
    "save_config",
    "trimmed_jitter",
    "trimmed_mean",
]
