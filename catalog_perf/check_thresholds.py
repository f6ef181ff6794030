"""
Re-check a finished run's thresholds from its output files.

A headless run started with ``--csv <prefix>`` and ``METRICS_FILE`` set
leaves two files behind: Locust's ``<prefix>_stats.csv`` and a YAML dump
of the custom metrics written at ``test_stop``.  CI runs this script on
them so the verdict can be reproduced outside the Locust process.

Both files are turned into metric sources and evaluated with the same
threshold expressions as the in-run verdict:

- ``http_req_duration`` and ``http_req_failed`` come from one row of the
  stats CSV (``Aggregated`` unless ``--name`` picks a request name)
- ``errors``, ``successful_requests`` and the trends come from the dump

Exit codes:

- ``0``: all thresholds passed
- ``1``: at least one threshold was breached
- ``2``: no verdict possible (unreadable input, bad expression, or a
  threshold whose metric has no data)
"""

from __future__ import annotations

import argparse
import csv
import re
import sys
from pathlib import Path
from typing import Any, Mapping, Sequence

import yaml

from catalog_perf.run_config import load_run_config
from catalog_perf.thresholds import (
    MetricSource,
    SnapshotSource,
    all_passed,
    evaluate_thresholds,
    format_results,
    parse_thresholds,
)

EXIT_PASS = 0
EXIT_THRESHOLD_BREACH = 1
EXIT_SCRIPT_ERROR = 2

_PERCENTILE = re.compile(r"^p\((\d+(?:\.\d+)?)\)$")


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    run_config = load_run_config()
    parser = argparse.ArgumentParser(
        description="Evaluate catalog load thresholds against a finished run."
    )
    parser.add_argument("--stats", required=True, type=Path,
                        help="Locust *_stats.csv file")
    parser.add_argument("--metrics", type=Path, default=run_config.metrics_file,
                        help="Custom metrics dump (defaults to $METRICS_FILE)")
    parser.add_argument("--thresholds", type=Path,
                        help="YAML mapping of metric name to expressions "
                             "(defaults to the configured thresholds)")
    parser.add_argument("--name", default="Aggregated",
                        help="Stats row for the built-in metrics")
    return parser.parse_args(argv)


def read_stats_row(path: Path, name: str = "Aggregated") -> dict[str, str]:
    """
    Return the stats row called *name*.

    Locust labels its aggregate row in the ``Name`` column in current
    releases and in the ``Type`` column in older ones.
    """
    with path.open("r", encoding="utf-8", newline="") as handle:
        for row in csv.DictReader(handle):
            if row.get("Name") == name or (name == "Aggregated" and row.get("Type") == name):
                return row
    raise ValueError(f"No '{name}' row in {path}")


def _cell(row: Mapping[str, str], column: str) -> float | None:
    value = row.get(column)
    if value is None or value.strip() in ("", "N/A"):
        return None
    try:
        return float(value.strip().rstrip("%"))
    except ValueError as exc:
        raise ValueError(f"Column '{column}' is not numeric: {value!r}") from exc


class CsvDurationSource:
    """``http_req_duration`` served from a stats CSV row."""

    COLUMNS = {
        "avg": "Average Response Time",
        "min": "Min Response Time",
        "max": "Max Response Time",
        "med": "Median Response Time",
        "count": "Request Count",
    }

    def __init__(self, row: Mapping[str, str]):
        self._row = row

    def aggregate(self, stat: str) -> float | None:
        if not _cell(self._row, "Request Count"):
            return None
        column = self.COLUMNS.get(stat)
        if column is None:
            match = _PERCENTILE.match(stat)
            if not match:
                raise ValueError(f"http_req_duration does not support '{stat}'")
            column = f"{float(match.group(1)):g}%"
        value = _cell(self._row, column)
        if value is None:
            raise ValueError(f"Stats row has no '{column}' value")
        return value


class CsvFailureSource:
    """``http_req_failed`` served from a stats CSV row."""

    def __init__(self, row: Mapping[str, str]):
        self._row = row

    def aggregate(self, stat: str) -> float | None:
        requests = _cell(self._row, "Request Count")
        if not requests:
            return None
        failures = _cell(self._row, "Failure Count") or 0.0
        if stat == "rate":
            return failures / requests
        if stat == "count":
            return failures
        raise ValueError(f"http_req_failed does not support '{stat}'")


def _load_yaml_mapping(path: Path) -> dict[str, Any]:
    with path.open("r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path} must contain a mapping")
    return data


def load_metrics(path: Path) -> dict[str, MetricSource]:
    """Turn a metrics dump into sources keyed by metric name."""
    sources: dict[str, MetricSource] = {}
    for name, values in _load_yaml_mapping(path).items():
        if not isinstance(values, dict):
            raise ValueError(f"Metric '{name}' in {path} is not a mapping")
        sources[name] = SnapshotSource(values)
    return sources


def build_sources(row: Mapping[str, str], metrics_path: Path | None) -> dict[str, MetricSource]:
    sources: dict[str, MetricSource] = {}
    if metrics_path is not None:
        sources.update(load_metrics(metrics_path))
    sources["http_req_duration"] = CsvDurationSource(row)
    sources["http_req_failed"] = CsvFailureSource(row)
    return sources


def main(argv: Sequence[str] | None = None) -> int:
    """Print the threshold table and return the exit code."""
    args = parse_args(argv)

    try:
        if args.thresholds is not None:
            definitions = _load_yaml_mapping(args.thresholds)
        else:
            definitions = load_run_config().thresholds
        thresholds = parse_thresholds(definitions)
        row = read_stats_row(args.stats, args.name)
        results = evaluate_thresholds(thresholds, build_sources(row, args.metrics))
    except (OSError, ValueError, yaml.YAMLError) as exc:
        print(f"Threshold check failed: {exc}", file=sys.stderr)
        return EXIT_SCRIPT_ERROR

    for line in format_results(results):
        print(line)

    missing = [result.threshold.metric for result in results if not result.evaluated]
    if missing:
        print(f"No data for: {', '.join(missing)}", file=sys.stderr)
        return EXIT_SCRIPT_ERROR

    passed = all_passed(results)
    print(f"Overall: {'PASS' if passed else 'FAIL'}")
    return EXIT_PASS if passed else EXIT_THRESHOLD_BREACH


if __name__ == "__main__":
    raise SystemExit(main())
