#!/usr/bin/env python3
"""
Speedtest CLI -- HTTP latency, download and upload measurement.

Usage::

    python speedtest.py                        # rich dashboard
    python speedtest.py --simple               # plain text
    python speedtest.py --json                 # JSON to stdout
    python speedtest.py -o result.json         # save to file
    python speedtest.py --profile fast         # fewer probes and payloads
    python speedtest.py --time-limit 30        # cancel after 30 seconds
    python speedtest.py --endpoint URL ...     # custom latency endpoints
    python speedtest.py --show-config          # print effective settings
"""
from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from typing import Any, Callable, Dict, Optional

from speedengine.config import (
    PROFILES,
    EngineConfig,
    config_path,
    load_config,
    save_config,
)
from speedengine.engine import HttpSpeedTestEngine
from speedengine.errors import Cancelled, ConfigError
from speedengine.logging_setup import configure_logging
from speedengine.models import Phase, SessionProgress
from ui.dashboard import (
    ProgressDisplay,
    console,
    print_final_results,
    print_header,
    print_latency_details,
)
from ui.output import create_result_json, format_text_result, save_json

logger = logging.getLogger("speedtest")


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------

def build_settings(args: argparse.Namespace, stored: Dict[str, Any]) -> Dict[str, Any]:
    """Stored config with command-line overrides applied (``None`` = not given)."""
    settings = dict(stored)
    overrides = {
        "profile": args.profile,
        "ping_count": args.ping_count,
        "download_url": args.download_url,
        "upload_url": args.upload_url,
        "upload_repeats": args.upload_repeats,
        "latency_endpoints": args.endpoint,
        "log_level": args.log_level,
    }
    for key, value in overrides.items():
        if value is not None:
            settings[key] = value
    return settings


# ---------------------------------------------------------------------------
# Core test runner
# ---------------------------------------------------------------------------

def _phase_printer() -> Callable[[SessionProgress], None]:
    """Plain-text progress: one line whenever the phase changes."""
    seen = {"phase": Phase.IDLE}
    labels = {
        Phase.PING: "Testing latency...",
        Phase.DOWNLOAD: "Testing download speed...",
        Phase.UPLOAD: "Testing upload speed...",
    }

    def _on_progress(event: SessionProgress) -> None:
        if event.phase is not seen["phase"]:
            seen["phase"] = event.phase
            if event.phase in labels:
                print(labels[event.phase], file=sys.stderr)

    return _on_progress


async def run_speedtest(
    config: EngineConfig,
    *,
    json_output: bool = False,
    output_file: Optional[str] = None,
    simple: bool = False,
    time_limit: float = 0.0,
    engine: Optional[HttpSpeedTestEngine] = None,
) -> Dict[str, Any]:
    """Execute one session and return a JSON-serialisable dict."""
    show_ui = not json_output and not simple
    engine = engine or HttpSpeedTestEngine(config)

    if show_ui:
        print_header(config.profile)

    display: Optional[ProgressDisplay] = None
    if show_ui:
        display = ProgressDisplay()
        display.start()
        on_progress = display.update
    elif simple:
        on_progress = _phase_printer()
    else:
        on_progress = lambda event: None  # noqa: E731

    timer = None
    if time_limit > 0:
        timer = asyncio.get_running_loop().call_later(time_limit, engine.cancel)

    try:
        result = await engine.run(on_progress)
    finally:
        if timer is not None:
            timer.cancel()
        if display is not None:
            display.stop()

    session = engine.session
    result_json = create_result_json(
        result,
        profile=config.profile,
        latency=session.latency_result if session else None,
        download=session.download_result if session else None,
        upload=session.upload_result if session else None,
    )

    if show_ui:
        if session and session.latency_result:
            print_latency_details(session.latency_result)
        print_final_results(result)
    elif simple:
        print(format_text_result(result))

    if json_output:
        print(json.dumps(result_json, indent=2))

    if output_file:
        save_json(result_json, output_file)
        if not json_output:
            console.print(f"\n[green]Results saved to:[/green] {output_file}")

    return result_json


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Speedtest -- HTTP latency, download and upload measurement",
    )
    # Output modes
    parser.add_argument("--json", "-j", action="store_true", help="Output results as JSON")
    parser.add_argument("--output", "-o", type=str, metavar="FILE", help="Save results to JSON file")
    parser.add_argument("--simple", "-s", action="store_true", help="Simple output mode (no dashboard)")

    # Test parameters
    parser.add_argument("--profile", choices=sorted(PROFILES), help="Measurement profile (default: accurate)")
    parser.add_argument("--ping-count", type=int, metavar="N", help="Number of latency probes")
    parser.add_argument("--endpoint", action="append", metavar="URL", help="Latency endpoint (repeat for each, at least 3)")
    parser.add_argument("--download-url", metavar="URL", help="Download URL template containing {size}")
    parser.add_argument("--upload-url", metavar="URL", help="Upload URL accepting octet-stream POSTs")
    parser.add_argument("--upload-repeats", type=int, metavar="N", help="Uploads per payload size")
    parser.add_argument("--time-limit", type=float, default=0.0, metavar="SECS", help="Cancel the test after SECS seconds")

    # Logging
    parser.add_argument("--log-level", choices=["DEBUG", "INFO", "WARNING", "ERROR"], help="Log level (default: INFO)")
    parser.add_argument("--log-file", metavar="FILE", help="Also write logs to FILE")

    # Config file
    parser.add_argument("--save-config", action="store_true", help="Persist the given options as defaults")
    parser.add_argument("--show-config", action="store_true", help="Print the effective settings and exit")
    return parser


def main(argv: Optional[list] = None) -> None:
    args = build_parser().parse_args(argv)

    settings = build_settings(args, load_config())
    configure_logging(settings.get("log_level") or "INFO", args.log_file)

    try:
        config = EngineConfig.from_dict(settings)
        config.validate()
    except ConfigError as exc:
        console.print(f"[red]Error: {exc}[/red]")
        sys.exit(1)

    if args.save_config:
        path = save_config(settings)
        console.print(f"[green]Config saved to:[/green] {path}")

    if args.show_config:
        console.print(f"[dim]Config file:[/dim] {config_path()}")
        print(json.dumps(config.to_dict(), indent=2))
        return

    try:
        asyncio.run(
            run_speedtest(
                config,
                json_output=args.json,
                output_file=args.output,
                simple=args.simple,
                time_limit=args.time_limit,
            )
        )
    except (KeyboardInterrupt, Cancelled):
        console.print("\n[yellow]Test cancelled[/yellow]")
        sys.exit(1)
    except Exception as exc:
        logger.exception("Speed test failed")
        console.print(f"\n[red]Error: {exc}[/red]")
        sys.exit(1)


if __name__ == "__main__":
    main()
