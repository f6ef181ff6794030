"""
Custom metric accumulators for load scenarios.

Locust already tracks per-request statistics, but the catalog scenarios
also need metrics of their own:

- :class:`Counter`: cumulative total (``successful_requests``)
- :class:`Rate`: fraction of non-zero samples (``errors``)
- :class:`Trend`: latency distribution with percentile queries
  (``product_response_time``, ``popular_product_response_time``)

All accumulators live in a :class:`MetricsSink` which is created once
per run and handed to every request driver.  Writes are additive and
guarded by a lock so that concurrent virtual users never lose samples;
reads happen at report time.

Key Concepts Demonstrated:
- Get-or-create registry keyed by metric name
- Linear-interpolation percentiles over raw samples
- k6-style summary statistic names (``avg``, ``med``, ``p(95)`` ...)
"""

from __future__ import annotations

import math
import re
import threading
from pathlib import Path
from typing import Any, Iterable

import yaml

DEFAULT_SUMMARY_STATS = ("avg", "min", "med", "max", "p(90)", "p(95)", "p(99)")

_PERCENTILE_PATTERN = re.compile(r"^p\((\d+(?:\.\d+)?)\)$")


def percentile(values: list[float], pct: float) -> float | None:
    """
    Return the *pct* percentile of *values* using linear interpolation.

    Args:
        values: Raw samples in any order.
        pct: Percentile in the range 0-100.

    Returns:
        The interpolated value, or ``None`` if there are no samples.
    """
    if not values:
        return None
    if pct <= 0:
        return float(min(values))
    if pct >= 100:
        return float(max(values))
    ordered = sorted(values)
    index = (len(ordered) - 1) * (pct / 100.0)
    low = math.floor(index)
    high = math.ceil(index)
    if low == high:
        return float(ordered[low])
    fraction = index - low
    return float((ordered[low] * (1.0 - fraction)) + (ordered[high] * fraction))


class Metric:
    """Base class for named accumulators."""

    kind = "metric"

    def __init__(self, name: str, lock: threading.Lock | None = None):
        self.name = name
        self._lock = lock or threading.Lock()

    def aggregate(self, stat: str) -> float | None:
        """Return the aggregate named *stat*, as used by threshold expressions."""
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name!r}>"


class Counter(Metric):
    """Cumulative total of added values."""

    kind = "counter"

    def __init__(self, name: str, lock: threading.Lock | None = None):
        super().__init__(name, lock)
        self._value = 0.0
        self._count = 0

    def add(self, value: float = 1) -> None:
        with self._lock:
            self._value += value
            self._count += 1

    @property
    def value(self) -> float:
        return self._value

    @property
    def count(self) -> int:
        return self._count

    def aggregate(self, stat: str) -> float | None:
        if stat == "count":
            return self._value
        raise ValueError(f"Counter does not support '{stat}'")


class Rate(Metric):
    """
    Fraction of submitted samples that are non-zero.

    A sample of ``1``/``True`` counts towards the rate, ``0``/``False``
    only towards the denominator.
    """

    kind = "rate"

    def __init__(self, name: str, lock: threading.Lock | None = None):
        super().__init__(name, lock)
        self._passes = 0
        self._count = 0

    def add(self, sample: bool | int | float) -> None:
        with self._lock:
            self._count += 1
            if sample:
                self._passes += 1

    @property
    def count(self) -> int:
        return self._count

    @property
    def passes(self) -> int:
        return self._passes

    @property
    def rate(self) -> float:
        if self._count == 0:
            return 0.0
        return self._passes / self._count

    def aggregate(self, stat: str) -> float | None:
        if stat == "rate":
            return self.rate if self._count else None
        if stat == "count":
            return float(self._count)
        raise ValueError(f"Rate does not support '{stat}'")


class Trend(Metric):
    """Distribution of numeric samples (usually milliseconds)."""

    kind = "trend"

    def __init__(self, name: str, lock: threading.Lock | None = None):
        super().__init__(name, lock)
        self._values: list[float] = []

    def add(self, value: float) -> None:
        with self._lock:
            self._values.append(float(value))

    @property
    def count(self) -> int:
        return len(self._values)

    @property
    def min(self) -> float | None:
        return min(self._values) if self._values else None

    @property
    def max(self) -> float | None:
        return max(self._values) if self._values else None

    @property
    def avg(self) -> float | None:
        if not self._values:
            return None
        return sum(self._values) / len(self._values)

    @property
    def med(self) -> float | None:
        return self.percentile(50)

    def percentile(self, pct: float) -> float | None:
        with self._lock:
            values = list(self._values)
        return percentile(values, pct)

    def aggregate(self, stat: str) -> float | None:
        if stat in ("avg", "min", "max", "med"):
            return getattr(self, stat)
        if stat == "count":
            return float(self.count)
        match = _PERCENTILE_PATTERN.match(stat)
        if match:
            return self.percentile(float(match.group(1)))
        raise ValueError(f"Trend does not support '{stat}'")

    def summary(self, stats: Iterable[str] = DEFAULT_SUMMARY_STATS) -> dict[str, float | None]:
        """Return the requested summary statistics keyed by their k6-style names."""
        return {stat: self.aggregate(stat) for stat in stats}


class MetricsSink:
    """
    Registry of the accumulators for one run.

    Accumulators are created lazily by name.  Asking for an existing name
    with a different kind is a programming error and raises ``TypeError``.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._metrics: dict[str, Metric] = {}

    def _get_or_create(self, name: str, metric_cls: type[Metric]) -> Any:
        with self._lock:
            metric = self._metrics.get(name)
            if metric is None:
                metric = metric_cls(name)
                self._metrics[name] = metric
            elif not isinstance(metric, metric_cls):
                raise TypeError(
                    f"Metric '{name}' is a {metric.kind}, not a {metric_cls.kind}"
                )
            return metric

    def counter(self, name: str) -> Counter:
        return self._get_or_create(name, Counter)

    def rate(self, name: str) -> Rate:
        return self._get_or_create(name, Rate)

    def trend(self, name: str) -> Trend:
        return self._get_or_create(name, Trend)

    def get(self, name: str) -> Metric | None:
        return self._metrics.get(name)

    def __contains__(self, name: str) -> bool:
        return name in self._metrics

    def names(self) -> list[str]:
        return sorted(self._metrics)

    def snapshot(self, summary_stats: Iterable[str] = DEFAULT_SUMMARY_STATS) -> dict[str, dict[str, Any]]:
        """
        Return a plain-dict view of every metric for reports.

        Returns:
            ``{name: {"type": kind, ...values}}`` where counters expose
            ``count``, rates expose ``rate``/``passes``/``count`` and
            trends expose the requested summary statistics.
        """
        stats = tuple(summary_stats)
        result: dict[str, dict[str, Any]] = {}
        for name in self.names():
            metric = self._metrics[name]
            if isinstance(metric, Counter):
                result[name] = {"type": metric.kind, "count": metric.value}
            elif isinstance(metric, Rate):
                result[name] = {
                    "type": metric.kind,
                    "rate": metric.rate,
                    "passes": metric.passes,
                    "count": metric.count,
                }
            elif isinstance(metric, Trend):
                result[name] = {"type": metric.kind, "count": metric.count, **metric.summary(stats)}
        return result

    def dump(self, path: str | Path, summary_stats: Iterable[str] = DEFAULT_SUMMARY_STATS) -> Path:
        """Write :meth:`snapshot` to *path* as YAML and return the path."""
        path = Path(path)
        with path.open("w", encoding="utf-8") as handle:
            yaml.safe_dump(self.snapshot(summary_stats), handle, sort_keys=True)
        return path
