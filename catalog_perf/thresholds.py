"""
Pass/fail thresholds evaluated against aggregate run metrics.

Thresholds are written as ``<aggregate><operator><number>`` expressions
attached to a metric name, for example::

    {
        "http_req_duration": ["p(95)<1000"],
        "http_req_failed": ["rate<0.01"],
        "errors": ["rate<0.01"],
    }

Metrics are looked up by name in a mapping of *sources*.  A source is
anything with an ``aggregate(stat)`` method: the accumulators from
:mod:`catalog_perf.metrics`, or the adapters below that expose Locust's
own aggregated request statistics under the built-in names
``http_req_duration`` and ``http_req_failed``.

Thresholds are only evaluated once the run is over.  A breach marks the
run as failed; it never interrupts in-flight requests.
"""

from __future__ import annotations

import logging
import operator
import re
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Mapping, Protocol

from catalog_perf.metrics import MetricsSink

logger = logging.getLogger(__name__)

_EXPRESSION = re.compile(
    r"^\s*(?P<stat>avg|min|max|med|count|rate|p\(\d+(?:\.\d+)?\))\s*"
    r"(?P<op><=|>=|==|!=|<|>)\s*"
    r"(?P<value>-?\d+(?:\.\d+)?)\s*$"
)

_OPERATORS: dict[str, Callable[[float, float], bool]] = {
    "<": operator.lt,
    "<=": operator.le,
    ">": operator.gt,
    ">=": operator.ge,
    "==": operator.eq,
    "!=": operator.ne,
}


class ThresholdError(ValueError):
    """Raised for threshold expressions that cannot be parsed."""


class MetricSource(Protocol):
    def aggregate(self, stat: str) -> float | None: ...


@dataclass(frozen=True)
class Threshold:
    metric: str
    stat: str
    op: str
    limit: float

    @property
    def expression(self) -> str:
        return f"{self.stat}{self.op}{self.limit:g}"

    def holds(self, value: float) -> bool:
        return _OPERATORS[self.op](value, self.limit)


@dataclass(frozen=True)
class ThresholdResult:
    """
    Outcome of one threshold.

    ``value`` is ``None`` when the metric had no data, in which case the
    threshold counts as passed and ``evaluated`` is ``False``.
    """

    threshold: Threshold
    value: float | None
    passed: bool
    evaluated: bool = True


def parse_threshold(metric: str, expression: str) -> Threshold:
    """
    Parse one expression for *metric*.

    Raises:
        ThresholdError: If the expression is not of the form
            ``<stat><op><number>``.
    """
    match = _EXPRESSION.match(expression)
    if not match:
        raise ThresholdError(f"Invalid threshold for {metric}: {expression!r}")
    return Threshold(
        metric=metric,
        stat=match.group("stat"),
        op=match.group("op"),
        limit=float(match.group("value")),
    )


def parse_thresholds(definitions: Mapping[str, Iterable[str]]) -> list[Threshold]:
    """Parse a ``{metric: [expression, ...]}`` mapping."""
    thresholds = []
    for metric, expressions in definitions.items():
        if isinstance(expressions, str):
            expressions = [expressions]
        for expression in expressions:
            thresholds.append(parse_threshold(metric, expression))
    return thresholds


def evaluate_thresholds(
    thresholds: Iterable[Threshold],
    sources: Mapping[str, MetricSource],
) -> list[ThresholdResult]:
    """Evaluate every threshold against the named metric sources."""
    results = []
    for threshold in thresholds:
        source = sources.get(threshold.metric)
        if source is None:
            logger.warning("No metric named %r; skipping threshold %s",
                           threshold.metric, threshold.expression)
            results.append(ThresholdResult(threshold, None, True, evaluated=False))
            continue

        try:
            value = source.aggregate(threshold.stat)
        except ValueError as exc:
            raise ThresholdError(
                f"{threshold.metric}: {threshold.expression} is not supported ({exc})"
            ) from exc

        if value is None:
            logger.warning("Metric %r has no data; skipping threshold %s",
                           threshold.metric, threshold.expression)
            results.append(ThresholdResult(threshold, None, True, evaluated=False))
            continue

        results.append(ThresholdResult(threshold, value, threshold.holds(value)))
    return results


def all_passed(results: Iterable[ThresholdResult]) -> bool:
    return all(result.passed for result in results)


def format_results(results: Iterable[ThresholdResult]) -> list[str]:
    """Render results as a table suitable for logs."""
    lines = [f"{'Metric':<32}{'Threshold':<16}{'Actual':>12}{'Status':>10}", "-" * 70]
    for result in results:
        actual = "n/a" if result.value is None else f"{result.value:.4g}"
        if not result.evaluated:
            status = "SKIP"
        else:
            status = "PASS" if result.passed else "FAIL"
        lines.append(
            f"{result.threshold.metric:<32}{result.threshold.expression:<16}{actual:>12}{status:>10}"
        )
    return lines


# -----------------------------------------------------------------------------
# Locust adapters
# -----------------------------------------------------------------------------

class LocustDurationSource:
    """Expose Locust's aggregated response times as ``http_req_duration``."""

    def __init__(self, stats_entry: Any):
        self._entry = stats_entry

    def aggregate(self, stat: str) -> float | None:
        entry = self._entry
        if not entry.num_requests:
            return None
        if stat == "avg":
            return float(entry.avg_response_time)
        if stat == "min":
            return float(entry.min_response_time or 0)
        if stat == "max":
            return float(entry.max_response_time)
        if stat == "med":
            return float(entry.median_response_time)
        if stat == "count":
            return float(entry.num_requests)
        match = re.match(r"^p\((\d+(?:\.\d+)?)\)$", stat)
        if match:
            return float(entry.get_response_time_percentile(float(match.group(1)) / 100.0))
        raise ValueError(f"http_req_duration does not support '{stat}'")


class LocustFailureSource:
    """Expose Locust's failure ratio as ``http_req_failed``."""

    def __init__(self, stats_entry: Any):
        self._entry = stats_entry

    def aggregate(self, stat: str) -> float | None:
        entry = self._entry
        if not entry.num_requests:
            return None
        if stat == "rate":
            return float(entry.fail_ratio)
        if stat == "count":
            return float(entry.num_failures)
        raise ValueError(f"http_req_failed does not support '{stat}'")


def collect_sources(stats_total: Any | None, metrics: MetricsSink | None) -> dict[str, MetricSource]:
    """
    Build the metric-name -> source mapping for a finished run.

    Args:
        stats_total: Locust's ``environment.stats.total`` entry, if any.
        metrics: The run's metrics sink, if any.
    """
    sources: dict[str, MetricSource] = {}
    if metrics is not None:
        for name in metrics.names():
            sources[name] = metrics.get(name)
    if stats_total is not None:
        sources["http_req_duration"] = LocustDurationSource(stats_total)
        sources["http_req_failed"] = LocustFailureSource(stats_total)
    return sources


class SnapshotSource:
    """
    Serve aggregates from one entry of :meth:`MetricsSink.snapshot`.

    Used when a run is re-checked from its metrics dump instead of from
    the live sink.
    """

    def __init__(self, values: Mapping[str, Any]):
        self._values = dict(values)

    def aggregate(self, stat: str) -> float | None:
        kind = self._values.get("type")
        if kind != "counter" and not self._values.get("count"):
            return None
        if stat == "type" or stat not in self._values:
            raise ValueError(f"{kind} snapshot has no '{stat}'")
        value = self._values[stat]
        return None if value is None else float(value)
