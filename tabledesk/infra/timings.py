# tabledesk/infra/timings.py
from __future__ import annotations
import logging
import math
import time
from typing import Dict, List

logger = logging.getLogger(__name__)


class _Aggregate:
    # running totals only; memory stays constant per kind
    __slots__ = ("n", "total", "total_sq", "max")

    def __init__(self) -> None:
        self.n = 0
        self.total = 0.0
        self.total_sq = 0.0
        self.max = 0.0

    def add(self, value: float) -> None:
        self.n += 1
        self.total += value
        self.total_sq += value * value
        if value > self.max:
            self.max = value

    def mean_std(self) -> tuple[float, float]:
        if self.n == 0:
            return 0.0, 0.0
        mean = self.total / self.n
        if self.n == 1:
            return mean, 0.0
        var = (self.total_sq - self.n * mean * mean) / (self.n - 1)
        return mean, math.sqrt(max(var, 0.0))


# ------------ hot path: one aggregate per kind ------------
# no locks, single-threaded event loop
_TIMINGS: Dict[str, _Aggregate] = {}


def now_ts() -> float:
    # monotonic for durations
    return time.perf_counter()


def record_timing(kind: str, value: float) -> None:
    agg = _TIMINGS.get(kind)
    if agg is None:
        agg = _Aggregate()
        _TIMINGS[kind] = agg
    agg.add(float(value))


class timeit:
    """async usage:
        async with timeit("tables.list"):
            await fn()
    """
    __slots__ = ("_kind", "_t0")

    def __init__(self, kind: str):
        self._kind = kind
        self._t0 = 0.0

    async def __aenter__(self):
        self._t0 = now_ts()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        elapsed = now_ts() - self._t0
        record_timing(self._kind, elapsed)
        logger.debug("%s took %.2f ms%s", self._kind, elapsed * 1000,
                     " (failed)" if exc_type else "")


# ------------ stats only on demand ------------

def snapshot() -> List[dict]:
    # one record per kind: {"kind","n","mean","std","max"}, seconds
    out = []
    for kind, agg in sorted(_TIMINGS.items()):
        mean, std = agg.mean_std()
        out.append({"kind": kind, "n": agg.n, "mean": mean, "std": std,
                    "max": agg.max})
    return out


def reset() -> None:
    _TIMINGS.clear()
