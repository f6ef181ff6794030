"""Immutable run configuration built from the classes in :mod:`config`."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Mapping

from catalog_perf.stages import Stage, build_stages, total_duration
from config import Config, get_config


@dataclass(frozen=True)
class RunConfig:
    """
    Everything a load run needs, frozen at process start.

    Attributes:
        base_url: Root URL of the catalog service (no trailing slash).
        stages: Ramp plan consumed by the load shape.
        thresholds: Metric name -> threshold expressions.
        think_time: ``(min, max)`` seconds between iterations.
        latency_budget_ms: Per-request latency limit used by the checks.
        snippet_length: How much of a failed body to log.
        summary_trend_stats: Statistics reported for trend metrics.
        dashboard_url: Where results can be inspected after a run.
        metrics_file: Where the custom metrics are dumped at test stop.
    """

    base_url: str
    stages: tuple[Stage, ...]
    thresholds: Mapping[str, tuple[str, ...]] = field(default_factory=dict)
    think_time: tuple[float, float] = (1.0, 3.0)
    latency_budget_ms: float = 1000.0
    snippet_length: int = 100
    summary_trend_stats: tuple[str, ...] = ()
    dashboard_url: str = "http://localhost:3000"
    metrics_file: Path | None = None

    def __post_init__(self) -> None:
        low, high = self.think_time
        if low < 0 or high < low:
            raise ValueError(f"Invalid think time range: {self.think_time}")
        # Freeze nested containers too.
        object.__setattr__(self, "base_url", self.base_url.rstrip("/"))
        object.__setattr__(
            self,
            "thresholds",
            MappingProxyType({name: tuple(exprs) for name, exprs in self.thresholds.items()}),
        )

    @property
    def total_duration(self) -> float:
        return total_duration(self.stages)

    @classmethod
    def from_config(cls, config_class: type[Config], base_url: str | None = None) -> "RunConfig":
        """Freeze a configuration class into a :class:`RunConfig`."""
        return cls(
            base_url=base_url or config_class.BASE_URL,
            stages=build_stages(config_class.STAGES),
            thresholds=dict(config_class.THRESHOLDS),
            think_time=(config_class.THINK_TIME_MIN, config_class.THINK_TIME_MAX),
            latency_budget_ms=config_class.LATENCY_BUDGET_MS,
            snippet_length=config_class.BODY_SNIPPET_LENGTH,
            summary_trend_stats=tuple(config_class.SUMMARY_TREND_STATS),
            dashboard_url=config_class.DASHBOARD_URL,
            metrics_file=Path(config_class.METRICS_FILE) if config_class.METRICS_FILE else None,
        )


def load_run_config(env: str | None = None) -> RunConfig:
    """
    Build the run configuration for *env*.

    ``BASE_URL`` is read again here so that a value exported after
    :mod:`config` was imported still wins.
    """
    config_class = get_config(env)
    return RunConfig.from_config(config_class, base_url=os.environ.get("BASE_URL"))
