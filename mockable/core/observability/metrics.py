from __future__ import annotations

from collections import Counter
from typing import Dict, Optional

from prometheus_client import Counter as PromCounter

# Requests counters (HTTP-level)
_REQUESTS = Counter()

# Named counters (custom)
_NAMED = Counter()

_PROM_REQUESTS = PromCounter(
    "mockable_http_requests_total",
    "Total HTTP requests",
    ["method", "path", "status"],
)

_PROM_GENERATIONS = PromCounter(
    "mockable_generations_total",
    "Mock generation attempts",
    ["shape", "outcome"],
)


def reset_metrics() -> None:
    """
    Test helper: clears all counters to avoid cross-test leakage.
    Safe to call multiple times.
    """
    _REQUESTS.clear()
    _NAMED.clear()


def inc_http(method: str, path: str, status: Optional[int] = None) -> None:
    m = (method or "UNKNOWN").upper()
    p = path or "/"
    s = status if status is not None else "unknown"

    _REQUESTS["requests_total"] += 1
    _REQUESTS[f"requests_{m}"] += 1
    _REQUESTS[f"path_{p}|{s}"] += 1
    _PROM_REQUESTS.labels(method=m, path=p, status=str(s)).inc()


def inc_named(name: str, value: int = 1) -> None:
    """
    Increment a named counter (used by health endpoints, etc.).
    """
    if not name:
        return
    _NAMED[name] += int(value)


def inc_generation(shape: str, outcome: str) -> None:
    """One generator invocation; ``outcome`` is ``generated`` or ``diagnostic``."""
    inc_named(f"mocks_{outcome}")
    _PROM_GENERATIONS.labels(shape=shape, outcome=outcome).inc()


def snapshot_requests() -> Dict[str, int]:
    return dict(_REQUESTS)


def snapshot_named() -> Dict[str, int]:
    return dict(_NAMED)
