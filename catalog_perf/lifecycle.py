"""
Setup/teardown hooks and the end-of-run verdict.

:func:`setup` and :func:`teardown` print the human-readable banners
shown around a run: what is being tested and with which ramp, then where
to look at the results and which follow-up runs are worth doing.  They
have no effect on the load itself.

:func:`register` binds the hooks to Locust's ``test_start``,
``test_stop`` and ``quitting`` events.  When a metrics file is
configured, ``test_stop`` also dumps the custom metrics there for the CI
gate in :mod:`catalog_perf.check_thresholds`.  On ``quitting`` the configured
thresholds are evaluated and decide the process exit code: 1 on a
breach, 0 otherwise.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Sequence

from catalog_perf.metrics import DEFAULT_SUMMARY_STATS, MetricsSink
from catalog_perf.run_config import RunConfig
from catalog_perf.stages import describe_stages, format_duration
from catalog_perf.thresholds import (
    ThresholdResult,
    all_passed,
    collect_sources,
    evaluate_thresholds,
    format_results,
    parse_thresholds,
)

logger = logging.getLogger(__name__)

RULE = "=" * 40

BUILTIN_METRICS = (
    ("http_req_duration", "response time"),
    ("http_req_failed", "failed request rate"),
    ("http_reqs", "requests per second"),
    ("successful_requests", "successful request count"),
)


def _emit(lines: Iterable[str]) -> None:
    for line in lines:
        logger.info(line)


def setup_banner(run_config: RunConfig, scenarios: Sequence[Any]) -> list[str]:
    """Build the pre-run banner for *scenarios*."""
    lines = [RULE]
    for scenario in scenarios:
        lines.append(f"=== {scenario.title} ===")
        lines.append(f"Target: {scenario.url(run_config.base_url)}")
        lines.append("")

    lines.append("Load plan:")
    lines.extend(f"  - {line}" for line in describe_stages(run_config.stages))
    lines.append("")
    lines.append(f"Total duration: {format_duration(run_config.total_duration)}")
    lines.append("")

    lines.append("Tracked metrics:")
    lines.extend(f"  - {name} ({label})" for name, label in BUILTIN_METRICS)
    for scenario in scenarios:
        lines.append(f"  - {scenario.trend_metric} ({scenario.title} response time)")

    notes = [note for scenario in scenarios for note in scenario.notes]
    if notes:
        lines.append("")
        lines.extend(notes)
    lines.append(RULE)
    return lines


def teardown_banner(
    run_config: RunConfig,
    scenarios: Sequence[Any],
    metrics: MetricsSink | None = None,
) -> list[str]:
    """Build the post-run banner, including trend summaries if available."""
    lines = [RULE, "=== Run complete ===", ""]
    lines.append("Results:")
    lines.append(f"  1. Dashboard: {run_config.dashboard_url}")
    lines.append("  2. Locust summary (stats table / --csv output)")

    for scenario in scenarios:
        if scenario.analysis_points:
            lines.append("")
            lines.append(f"Analysis points ({scenario.name}):")
            lines.extend(f"  - {point}" for point in scenario.analysis_points)
        if scenario.comparison_runs:
            lines.append("")
            lines.append("Run twice to compare:")
            lines.extend(
                f"  {number}. {run}" for number, run in enumerate(scenario.comparison_runs, start=1)
            )

    if metrics is not None:
        lines.extend(_metrics_summary(metrics, run_config.summary_trend_stats))
    lines.append(RULE)
    return lines


def _metrics_summary(metrics: MetricsSink, stats: Sequence[str]) -> list[str]:
    snapshot = metrics.snapshot(stats) if stats else metrics.snapshot()
    if not snapshot:
        return []
    lines = ["", "Custom metrics:"]
    for name, values in snapshot.items():
        kind = values["type"]
        if kind == "counter":
            lines.append(f"  {name}: {values['count']:g}")
        elif kind == "rate":
            lines.append(
                f"  {name}: {values['rate']:.2%} ({values['passes']} of {values['count']})"
            )
        else:
            parts = [
                f"{stat}={'n/a' if value is None else f'{value:.2f}'}"
                for stat, value in values.items()
                if stat not in ("type", "count")
            ]
            lines.append(f"  {name}: " + " ".join(parts))
    return lines


def setup(run_config: RunConfig, scenarios: Sequence[Any]) -> None:
    """Print the run configuration.  Runs once, before any iteration."""
    _emit(setup_banner(run_config, scenarios))


def teardown(
    data: Any,
    run_config: RunConfig,
    scenarios: Sequence[Any],
    metrics: MetricsSink | None = None,
) -> None:
    """Print post-run guidance.  *data* is whatever :func:`setup` returned."""
    _emit(teardown_banner(run_config, scenarios, metrics))


def check_thresholds(
    run_config: RunConfig,
    stats_total: Any | None,
    metrics: MetricsSink | None,
) -> list[ThresholdResult]:
    """Evaluate the configured thresholds and log the results table."""
    thresholds = parse_thresholds(run_config.thresholds)
    results = evaluate_thresholds(thresholds, collect_sources(stats_total, metrics))
    _emit(format_results(results))
    if all_passed(results):
        logger.info("All thresholds passed")
    else:
        breached = [r.threshold for r in results if not r.passed]
        logger.error(
            "Thresholds breached: %s",
            ", ".join(f"{t.metric} {t.expression}" for t in breached),
        )
    return results


def register(
    environment: Any,
    run_config: RunConfig,
    scenarios: Sequence[Any],
    metrics: MetricsSink,
) -> None:
    """
    Bind the lifecycle hooks to *environment*'s events.

    Args:
        environment: The Locust ``Environment``.
        run_config: Frozen run configuration.
        scenarios: Scenarios of the user classes that will run.
        metrics: The run's metrics sink.
    """
    state: dict[str, Any] = {}

    @environment.events.test_start.add_listener
    def _on_test_start(**_kwargs):
        state["data"] = setup(run_config, scenarios)

    @environment.events.test_stop.add_listener
    def _on_test_stop(**_kwargs):
        teardown(state.get("data"), run_config, scenarios, metrics)
        if run_config.metrics_file is not None:
            path = metrics.dump(
                run_config.metrics_file,
                run_config.summary_trend_stats or DEFAULT_SUMMARY_STATS,
            )
            logger.info("Custom metrics written to %s", path)

    @environment.events.quitting.add_listener
    def _on_quitting(environment, **_kwargs):
        stats = getattr(environment, "stats", None)
        results = check_thresholds(run_config, getattr(stats, "total", None), metrics)
        # Left unset, Locust exits 1 whenever any request failed.
        environment.process_exit_code = 0 if all_passed(results) else 1
