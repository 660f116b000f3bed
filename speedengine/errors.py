"""Exception hierarchy for the measurement engine."""


class SpeedTestError(Exception):
    """Base class for every error raised by the engine."""


class Cancelled(SpeedTestError):
    """The session was aborted by its caller."""

    def __init__(self, message: str = "speed test was cancelled") -> None:
        super().__init__(message)


class SampleFailure(SpeedTestError):
    """A single probe, download or upload request did not produce a sample.

    Never leaves a sampler: it is recorded as a failed sample and the phase
    moves on to the next endpoint or payload size.
    """


class ConfigError(SpeedTestError, ValueError):
    """The engine was configured with values it cannot run with."""
