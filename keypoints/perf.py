"""Small timing helpers for latency reporting."""

from __future__ import annotations

import time


def now_ms() -> float:
    """Monotonic clock in milliseconds."""
    return time.perf_counter() * 1000.0


def elapsed_ms(start_ms: float) -> float:
    """Milliseconds since *start_ms*, rounded to two decimals."""
    return round(now_ms() - start_ms, 2)


def exceeds_budget(latency_ms: float, budget_ms: float) -> bool:
    return latency_ms > budget_ms
