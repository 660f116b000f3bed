"""
Output formatting -- JSON export and plain text.
"""
from __future__ import annotations

import json
import os
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from speedengine.latency import LatencyResult
from speedengine.models import SpeedTestResult
from speedengine.stats import ThroughputResult


def create_result_json(
    result: SpeedTestResult,
    profile: str = "",
    latency: Optional[LatencyResult] = None,
    download: Optional[ThroughputResult] = None,
    upload: Optional[ThroughputResult] = None,
) -> Dict[str, Any]:
    """Build a JSON-serialisable dict of the final result plus phase details."""
    output: Dict[str, Any] = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "profile": profile,
        "result": {key: round(value, 3) for key, value in result.to_dict().items()},
    }

    details: Dict[str, Any] = {}
    if latency is not None:
        details["latency"] = latency.to_dict()
    if download is not None:
        details["download"] = download.to_dict()
    if upload is not None:
        details["upload"] = upload.to_dict()
    if details:
        output["details"] = details

    return output


def save_json(result: Dict[str, Any], filepath: str) -> None:
    """Write *result* to *filepath* atomically (write-tmp then rename)."""
    dir_path = os.path.dirname(filepath) or "."
    tmp = os.path.join(dir_path, f".tmp_{os.path.basename(filepath)}")

    try:
        with open(tmp, "w", encoding="utf-8") as fh:
            json.dump(result, fh, indent=2, ensure_ascii=False)
        os.replace(tmp, filepath)
    except (IOError, OSError) as exc:
        try:
            os.unlink(tmp)
        except OSError:
            pass
        raise IOError(f"Failed to save JSON to {filepath}: {exc}") from exc


def format_text_result(result: SpeedTestResult) -> str:
    sep = "=" * 50
    return (
        f"{sep}\n"
        f"Speedtest Results\n"
        f"{sep}\n"
        f"Ping: {result.ping_ms:.1f} ms (jitter: {result.jitter_ms:.2f} ms)\n"
        f"Packet Loss: {result.packet_loss_percent:.1f}%\n"
        f"Download: {result.download_speed_mbps:.2f} Mbps\n"
        f"Upload: {result.upload_speed_mbps:.2f} Mbps\n"
        f"{sep}"
    )
