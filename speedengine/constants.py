"""
Shared constants used across all engine modules.

Centralises magic numbers, default headers, endpoints and tunables so they
live in exactly one place.
"""

# ---------------------------------------------------------------------------
# HTTP headers
# ---------------------------------------------------------------------------

USER_AGENT = (
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/144.0.0.0 Safari/537.36"
)

COMMON_HEADERS = {
    "User-Agent": USER_AGENT,
    "Accept": "*/*",
    "Accept-Language": "en-US,en;q=0.9",
    # Byte counts must reflect what actually crossed the wire.
    "Accept-Encoding": "identity",
    "Cache-Control": "no-cache",
}

# ---------------------------------------------------------------------------
# Default endpoints
# ---------------------------------------------------------------------------

LATENCY_ENDPOINTS = [
    "https://www.google.com/favicon.ico",
    "https://www.cloudflare.com/favicon.ico",
    "https://httpbin.org/get",
    "https://www.github.com/favicon.ico",
    "https://www.microsoft.com/favicon.ico",
]

DOWNLOAD_URL = "https://speed.cloudflare.com/__down?bytes={size}"
UPLOAD_URL = "https://speed.cloudflare.com/__up"

MIN_LATENCY_ENDPOINTS = 3

# ---------------------------------------------------------------------------
# Phase progress sub-ranges (percent of the whole session)
# ---------------------------------------------------------------------------

PING_RANGE = (0.0, 25.0)
DOWNLOAD_RANGE = (25.0, 65.0)
UPLOAD_RANGE = (65.0, 100.0)

# ---------------------------------------------------------------------------
# Latency
# ---------------------------------------------------------------------------

DEFAULT_PING_COUNT = 15
FAST_PING_COUNT = 5
MIN_PING_COUNT = 1
MAX_PING_COUNT = 100

PING_TIMEOUT = 3.0        # seconds per probe
PING_DELAY = 0.1          # pause between probes
TRIM_FRACTION = 0.10      # dropped from each end before averaging

# ---------------------------------------------------------------------------
# Throughput
# ---------------------------------------------------------------------------

DOWNLOAD_SIZES = [100_000, 500_000, 1_000_000, 2_000_000, 5_000_000, 10_000_000]
FAST_DOWNLOAD_SIZES = [100_000, 1_000_000, 5_000_000]

UPLOAD_SIZES = [50_000, 100_000, 250_000, 500_000, 1_000_000, 2_000_000]
FAST_UPLOAD_SIZES = [100_000, 500_000, 1_000_000]

DEFAULT_UPLOAD_REPEATS = 3
FAST_UPLOAD_REPEATS = 1
MAX_UPLOAD_REPEATS = 10

THROUGHPUT_DELAY = 0.2    # pause between requests
REQUEST_TIMEOUT = 30.0    # seconds per download / upload request
CONNECT_TIMEOUT = 5.0

CHUNK_SIZE = 64 * 1024          # read / write granularity
TICK_INTERVAL = 0.1             # minimum spacing of live speed samples

# ---------------------------------------------------------------------------
# Speed filtering / smoothing
# ---------------------------------------------------------------------------

MAX_REASONABLE_SPEED = 10_000.0  # Mbps; anything at or above is an artifact
EMA_ALPHA = 0.3                  # weight of the newest sample

DOWNLOAD_EARLY_EXIT_MBPS = 1.0
DOWNLOAD_EARLY_EXIT_BYTES = 1_000_000
UPLOAD_EARLY_EXIT_MBPS = 0.5
UPLOAD_EARLY_EXIT_BYTES = 500_000

# ---------------------------------------------------------------------------
# Progress reporting
# ---------------------------------------------------------------------------

PROGRESS_INTERVAL = 0.15   # seconds between delivered progress events
