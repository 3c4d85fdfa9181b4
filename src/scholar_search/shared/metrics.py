"""
Lightweight per-stage latency tracking.

Features:
- Per-stage execution time (avg, min, max, p95) over a rolling window
- ``StageTimer`` context manager for timing a block of code
- Instance-scoped registry: each optimizer owns its own ``StageMetrics``

Usage:
    metrics = StageMetrics()
    with metrics.time("search"):
        ...
    metrics.average_ms("search")
"""

from __future__ import annotations

import logging
import time
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger(__name__)

MAX_HISTORY_PER_STAGE = 200  # Rolling window size


# ── Data structures ─────────────────────────────────────────────────────────


@dataclass
class CallRecord:
    """Single timed call."""

    timestamp: float
    elapsed_ms: float


@dataclass
class StageStats:
    """Aggregated stats for a single pipeline stage."""

    calls: list[CallRecord] = field(default_factory=list)

    def record(self, elapsed_ms: float) -> None:
        self.calls.append(CallRecord(timestamp=time.time(), elapsed_ms=elapsed_ms))
        if len(self.calls) > MAX_HISTORY_PER_STAGE:
            self.calls = self.calls[-MAX_HISTORY_PER_STAGE:]

    @property
    def count(self) -> int:
        return len(self.calls)

    @property
    def avg(self) -> float:
        return sum(c.elapsed_ms for c in self.calls) / len(self.calls) if self.calls else 0.0

    @property
    def min(self) -> float:
        return min(c.elapsed_ms for c in self.calls) if self.calls else 0.0

    @property
    def max(self) -> float:
        return max(c.elapsed_ms for c in self.calls) if self.calls else 0.0

    @property
    def p95(self) -> float:
        if not self.calls:
            return 0.0
        sorted_vals = sorted(c.elapsed_ms for c in self.calls)
        idx = int(len(sorted_vals) * 0.95)
        return sorted_vals[min(idx, len(sorted_vals) - 1)]

    def summary_dict(self) -> dict[str, Any]:
        return {
            "calls": self.count,
            "avg_ms": round(self.avg, 1),
            "min_ms": round(self.min, 1),
            "max_ms": round(self.max, 1),
            "p95_ms": round(self.p95, 1),
        }


class StageTimer:
    """Context manager that records elapsed milliseconds on exit."""

    def __init__(self, metrics: StageMetrics, stage: str) -> None:
        self._metrics = metrics
        self._stage = stage
        self._start = 0.0
        self.elapsed_ms = 0.0

    def __enter__(self) -> StageTimer:
        self._start = time.perf_counter()
        return self

    def __exit__(self, *exc: object) -> None:
        self.elapsed_ms = (time.perf_counter() - self._start) * 1000
        self._metrics.record(self._stage, self.elapsed_ms)
        logger.debug(f"[PERF] {self._stage}: {self.elapsed_ms:.1f}ms")


class StageMetrics:
    """Rolling latency statistics keyed by stage name."""

    def __init__(self) -> None:
        self._stages: dict[str, StageStats] = defaultdict(StageStats)

    def record(self, stage: str, elapsed_ms: float) -> None:
        self._stages[stage].record(elapsed_ms)

    def time(self, stage: str) -> StageTimer:
        return StageTimer(self, stage)

    def average_ms(self, stage: str) -> float:
        stats = self._stages.get(stage)
        return stats.avg if stats else 0.0

    def get(self, stage: str) -> StageStats | None:
        return self._stages.get(stage)

    def snapshot(self) -> dict[str, dict[str, Any]]:
        return {name: stats.summary_dict() for name, stats in self._stages.items()}

    def reset(self) -> None:
        self._stages.clear()
