"""
Profiling utilities for recordplan.

Measures store round trips and aggregation passes:
- Wall-clock time (perf_counter)
- CPU usage and resident memory (psutil, start/end snapshots)

Usage example:
    from recordplan.utils.profiler import profile_block

    with profile_block("quotes-summary") as stats:
        records = await store.execute(plan)

    print(stats.duration_seconds, stats.peak_rss_bytes)
"""

from __future__ import annotations

import contextlib
import time
from dataclasses import dataclass, field
from typing import Any, Generator, Optional

import psutil


@dataclass
class ProfileStats:
    """
    Container for profiling measurements.
    """

    label: str
    start_ts: float = field(default=0.0)
    end_ts: float = field(default=0.0)
    duration_seconds: float = field(default=0.0)
    peak_rss_bytes: Optional[int] = field(default=None)
    cpu_percent: Optional[float] = field(default=None)
    extra: dict[str, Any] = field(default_factory=dict)

    def as_log_extra(self) -> dict[str, Any]:
        """Flatten the measurements into a logging `extra` payload."""
        return {
            "label": self.label,
            "duration_seconds": round(self.duration_seconds, 4),
            "peak_rss_bytes": self.peak_rss_bytes,
            "cpu_percent": self.cpu_percent,
            **self.extra,
        }


@contextlib.contextmanager
def profile_block(label: str) -> Generator[ProfileStats, None, None]:
    """
    Context manager to profile a block of code.

    Works inside coroutines too: the block is timed across any awaits it
    contains. RSS is sampled at entry and exit only, so short-lived spikes
    between the two are not captured.

    Parameters
    ----------
    label : str
        Human-friendly label for the profiled block.
    """
    stats = ProfileStats(label=label)
    process = psutil.Process()
    # CPU percent needs a priming call
    process.cpu_percent(interval=None)
    rss_start = process.memory_info().rss

    stats.start_ts = time.perf_counter()
    try:
        yield stats
    finally:
        stats.end_ts = time.perf_counter()
        stats.duration_seconds = stats.end_ts - stats.start_ts
        stats.peak_rss_bytes = max(rss_start, process.memory_info().rss)
        stats.cpu_percent = process.cpu_percent(interval=None)


__all__ = ["ProfileStats", "profile_block"]
