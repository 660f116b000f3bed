"""UI layer -- Rich dashboard and output formatters."""

from .dashboard import (
    ProgressDisplay,
    console,
    create_histogram,
    describe_live_reading,
    print_final_results,
    print_header,
    print_latency_details,
)
from .output import create_result_json, format_text_result, save_json

__all__ = [
    "ProgressDisplay",
    "console",
    "create_histogram",
    "create_result_json",
    "describe_live_reading",
    "format_text_result",
    "print_final_results",
    "print_header",
    "print_latency_details",
    "save_json",
]
