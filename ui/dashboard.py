"""
Rich-based terminal dashboard for speed test sessions.

All formatting helpers live in ``speedengine.stats`` -- this module only does
presentation via the ``rich`` library, driven by ``SessionProgress`` events.
"""
from __future__ import annotations

from typing import List, Optional

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TextColumn,
    TimeElapsedColumn,
)
from rich.table import Table

from speedengine.models import Phase, SessionProgress, SpeedTestResult
from speedengine.stats import format_latency, format_speed

console = Console()

_PHASE_LABELS = {
    Phase.IDLE: "Waiting",
    Phase.PING: "Latency",
    Phase.DOWNLOAD: "Download",
    Phase.UPLOAD: "Upload",
    Phase.COMPLETE: "Done",
}


# ---------------------------------------------------------------------------
# Histogram helper
# ---------------------------------------------------------------------------

_BARS = "▁▂▃▄▅▆▇█"


def create_histogram(values: List[float]) -> str:
    """Return a single-line Unicode bar-chart."""
    if not values:
        return "No data"

    lo, hi = min(values), max(values)
    span = hi - lo if hi > lo else 1.0
    top = len(_BARS) - 1
    return "".join(_BARS[int((v - lo) / span * top)] for v in values)


# ---------------------------------------------------------------------------
# Print helpers
# ---------------------------------------------------------------------------

def print_header(profile: str) -> None:
    console.print()
    console.print(
        Panel.fit(
            "[bold cyan]Speedtest[/bold cyan]\n"
            f"[dim]HTTP latency, download and upload ({profile} profile)[/dim]",
            border_style="cyan",
        )
    )
    console.print()


def print_latency_details(result) -> None:  # noqa: ANN001 (LatencyResult)
    """Print latency statistics and a histogram of the successful probes."""
    table = Table(title="Latency Details", box=box.ROUNDED)
    table.add_column("Metric", style="bold")
    table.add_column("Value", justify="right")

    pings = result.pings
    table.add_row("Trimmed mean", format_latency(result.ping_ms))
    table.add_row("Jitter", f"{result.jitter_ms:.2f} ms")
    table.add_row("Packet loss", f"{result.packet_loss_percent:.1f}%")
    table.add_row("Probes", f"{result.attempts - result.failures}/{result.attempts}")
    if pings:
        table.add_row("Min", format_latency(result.min_ms))
        table.add_row("Median", format_latency(result.median_ms))
        table.add_row("Max", format_latency(result.max_ms))
    console.print(table)

    if pings:
        console.print(
            Panel(
                f"[cyan]{create_histogram(pings)}[/cyan]\n"
                f"[dim]Min: {result.min_ms:.1f} ms  Max: {result.max_ms:.1f} ms[/dim]",
                title="Ping Histogram",
            )
        )


def print_final_results(result: SpeedTestResult) -> None:
    console.print()
    console.print(
        Panel.fit(
            f"[bold white]   Ping:[/bold white]  [bold yellow]{result.ping_ms:.1f} ms[/bold yellow]  "
            f"[dim](jitter: {result.jitter_ms:.2f} ms)[/dim]\n"
            f"[bold white]   Download:[/bold white]  "
            f"[bold green]{format_speed(result.download_speed_mbps)}[/bold green]\n"
            f"[bold white]   Upload:[/bold white]  "
            f"[bold blue]{format_speed(result.upload_speed_mbps)}[/bold blue]\n"
            f"[bold white]   Packet loss:[/bold white]  {result.packet_loss_percent:.1f}%",
            title="[bold]Results[/bold]",
            border_style="cyan",
        )
    )
    console.print()


# ---------------------------------------------------------------------------
# Progress display
# ---------------------------------------------------------------------------

def describe_live_reading(progress: SessionProgress) -> str:
    """Text for the live column of the progress bar."""
    if progress.live_reading is None:
        return "..."
    if progress.phase is Phase.PING:
        text = format_latency(progress.live_reading)
        if progress.live_jitter is not None:
            text += f" (±{progress.live_jitter:.1f})"
        return text
    return format_speed(progress.live_reading)


class ProgressDisplay:
    """Manages one ``rich`` progress bar across a whole session."""

    def __init__(self) -> None:
        self.progress = Progress(
            SpinnerColumn(),
            TextColumn("[bold]{task.description:<9}"),
            BarColumn(bar_width=40),
            TextColumn("[progress.percentage]{task.percentage:>3.0f}%"),
            TextColumn("[bold cyan]{task.fields[reading]}[/bold cyan]"),
            TimeElapsedColumn(),
            console=console,
        )
        self._task_id = None
        self.last: Optional[SessionProgress] = None

    def start(self) -> None:
        self.progress.start()
        self._task_id = self.progress.add_task(
            _PHASE_LABELS[Phase.IDLE], total=100, reading=""
        )

    def update(self, event: SessionProgress) -> None:
        """``on_progress`` callback for the engine."""
        self.last = event
        if self._task_id is None:
            return
        self.progress.update(
            self._task_id,
            completed=event.overall_progress,
            description=_PHASE_LABELS[event.phase],
            reading=describe_live_reading(event),
        )

    def stop(self) -> None:
        self.progress.stop()
