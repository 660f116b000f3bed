"""
Engine configuration.

User settings live in ``~/.speedengine/config.json`` and are merged over
``DEFAULTS``; a missing or corrupt file simply yields the defaults.

Supported keys::

    profile = "accurate"      # "accurate" or "fast"
    latency_endpoints = [...] # >= 3 URLs, ideally on distinct hosts
    ping_count = 15
    download_url = "https://speed.cloudflare.com/__down?bytes={size}"
    upload_url = "https://speed.cloudflare.com/__up"
    upload_repeats = 3
    log_level = "INFO"

Any key left as ``null`` falls back to the selected profile.
:class:`EngineConfig` turns the merged dict into validated engine settings.
"""
from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Optional
from urllib.parse import urlsplit

from .constants import (
    DEFAULT_PING_COUNT,
    DEFAULT_UPLOAD_REPEATS,
    DOWNLOAD_SIZES,
    DOWNLOAD_URL,
    FAST_DOWNLOAD_SIZES,
    FAST_PING_COUNT,
    FAST_UPLOAD_REPEATS,
    FAST_UPLOAD_SIZES,
    LATENCY_ENDPOINTS,
    MAX_PING_COUNT,
    MAX_UPLOAD_REPEATS,
    MIN_LATENCY_ENDPOINTS,
    MIN_PING_COUNT,
    PING_DELAY,
    PING_TIMEOUT,
    PROGRESS_INTERVAL,
    REQUEST_TIMEOUT,
    THROUGHPUT_DELAY,
    UPLOAD_SIZES,
    UPLOAD_URL,
)
from .errors import ConfigError

logger = logging.getLogger(__name__)

_CONFIG_DIR = os.path.join(Path.home(), ".speedengine")
_CONFIG_FILE = "config.json"


def _config_path() -> str:
    return os.path.join(_CONFIG_DIR, _CONFIG_FILE)


# ---------------------------------------------------------------------------
# Defaults
# ---------------------------------------------------------------------------

DEFAULTS: Dict[str, Any] = {
    "profile": "accurate",
    "latency_endpoints": None,
    "ping_count": None,
    "download_url": None,
    "upload_url": None,
    "upload_repeats": None,
    "log_level": "INFO",
}

PROFILES: Dict[str, Dict[str, Any]] = {
    "accurate": {
        "ping_count": DEFAULT_PING_COUNT,
        "download_sizes": list(DOWNLOAD_SIZES),
        "upload_sizes": list(UPLOAD_SIZES),
        "upload_repeats": DEFAULT_UPLOAD_REPEATS,
    },
    "fast": {
        "ping_count": FAST_PING_COUNT,
        "download_sizes": list(FAST_DOWNLOAD_SIZES),
        "upload_sizes": list(FAST_UPLOAD_SIZES),
        "upload_repeats": FAST_UPLOAD_REPEATS,
    },
}


# ---------------------------------------------------------------------------
# Read / Write
# ---------------------------------------------------------------------------

def load_config() -> Dict[str, Any]:
    """Load config from disk, returning defaults for missing keys."""
    path = _config_path()
    config = dict(DEFAULTS)

    if not os.path.isfile(path):
        return config

    try:
        with open(path, encoding="utf-8") as fh:
            user = json.load(fh)
        if isinstance(user, dict):
            config.update(user)
    except (json.JSONDecodeError, IOError) as exc:
        logger.warning("Ignoring unreadable config file %s: %s", path, exc)

    return config


def save_config(config: Dict[str, Any]) -> str:
    """Write *config* to disk.  Returns the file path."""
    path = _config_path()
    os.makedirs(os.path.dirname(path), exist_ok=True)

    with open(path, "w", encoding="utf-8") as fh:
        json.dump(config, fh, indent=2, ensure_ascii=False)

    return path


def config_path() -> str:
    """Return the config file path (for display purposes)."""
    return _config_path()


# ---------------------------------------------------------------------------
# Engine settings
# ---------------------------------------------------------------------------

@dataclass
class EngineConfig:
    """Validated settings for one :class:`HttpSpeedTestEngine`."""

    profile: str = "accurate"
    latency_endpoints: List[str] = field(default_factory=lambda: list(LATENCY_ENDPOINTS))
    ping_count: int = DEFAULT_PING_COUNT
    ping_timeout: float = PING_TIMEOUT
    ping_delay: float = PING_DELAY
    download_url: str = DOWNLOAD_URL
    download_sizes: List[int] = field(default_factory=lambda: list(DOWNLOAD_SIZES))
    upload_url: str = UPLOAD_URL
    upload_sizes: List[int] = field(default_factory=lambda: list(UPLOAD_SIZES))
    upload_repeats: int = DEFAULT_UPLOAD_REPEATS
    request_timeout: float = REQUEST_TIMEOUT
    throughput_delay: float = THROUGHPUT_DELAY
    progress_interval: float = PROGRESS_INTERVAL

    # -- Constructors -------------------------------------------------------

    @classmethod
    def for_profile(cls, name: str) -> EngineConfig:
        if name not in PROFILES:
            raise ConfigError(
                f"Unknown profile {name!r}; expected one of {', '.join(sorted(PROFILES))}"
            )
        return cls(profile=name, **PROFILES[name])

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> EngineConfig:
        """Profile defaults overridden by every non-``None`` known key of *data*."""
        config = cls.for_profile(data.get("profile") or "accurate")
        known = {f.name for f in fields(cls)}

        for key, value in data.items():
            if value is None or key == "profile":
                continue
            if key not in known:
                if key not in DEFAULTS:
                    logger.warning("Ignoring unknown config key %r", key)
                continue
            setattr(config, key, value)

        return config

    # -- Validation ---------------------------------------------------------

    def validate(self) -> None:
        """Raise :class:`ConfigError` if the engine cannot run with these values."""
        if len(self.latency_endpoints) < MIN_LATENCY_ENDPOINTS:
            raise ConfigError(
                f"At least {MIN_LATENCY_ENDPOINTS} latency endpoints are required, "
                f"got {len(self.latency_endpoints)}"
            )
        for url in [*self.latency_endpoints, self.download_url, self.upload_url]:
            _check_url(url)
        if "{size}" not in self.download_url:
            raise ConfigError("download_url must contain a '{size}' placeholder")

        hosts = {urlsplit(url).hostname for url in self.latency_endpoints}
        if len(hosts) < MIN_LATENCY_ENDPOINTS:
            logger.warning(
                "Latency endpoints span only %d distinct host(s); results may be biased",
                len(hosts),
            )

        if not MIN_PING_COUNT <= self.ping_count <= MAX_PING_COUNT:
            raise ConfigError(
                f"Ping count must be between {MIN_PING_COUNT} and {MAX_PING_COUNT}"
            )
        if not 1 <= self.upload_repeats <= MAX_UPLOAD_REPEATS:
            raise ConfigError(f"Upload repeats must be between 1 and {MAX_UPLOAD_REPEATS}")
        for name in ("download_sizes", "upload_sizes"):
            sizes = getattr(self, name)
            if not sizes or any(not isinstance(s, int) or s <= 0 for s in sizes):
                raise ConfigError(f"{name} must be a non-empty list of positive integers")
        for name in ("ping_timeout", "request_timeout"):
            if getattr(self, name) <= 0:
                raise ConfigError(f"{name} must be positive")
        for name in ("ping_delay", "throughput_delay", "progress_interval"):
            if getattr(self, name) < 0:
                raise ConfigError(f"{name} must not be negative")

    def to_dict(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


def _check_url(url: Optional[str]) -> None:
    parts = urlsplit(url or "")
    if parts.scheme not in ("http", "https") or not parts.netloc:
        raise ConfigError(f"Not an http(s) URL: {url!r}")
