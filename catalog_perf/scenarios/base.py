"""
Shared scenario definition and abstract Locust user for catalog scenarios.

Provides two pieces that concrete scenarios build on:

1. :class:`ProductScenario`: an immutable description of one endpoint
   under test: path, query parameters, request name, trend metric,
   scenario-specific checks and the text printed around the run.
2. :class:`CatalogUser`: an abstract ``HttpUser`` that gives each
   virtual user a stable id and an iteration counter, and delegates
   every iteration to a :class:`~catalog_perf.driver.RequestDriver`.

Concrete user classes set ``scenario`` and declare a Locust ``@task``
that delegates to ``_run_iteration``.

Key Concepts Demonstrated:
- One parameterised scenario type instead of copy-pasted scripts
- Metrics sink injected into the user class, not referenced as a global
- ``abstract = True`` so Locust only spawns concrete subclasses
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping
from urllib.parse import urlencode

from locust import HttpUser, between

from catalog_perf.checks import Check, ResponseValidator, default_checks
from catalog_perf.driver import RequestDriver
from catalog_perf.helpers import next_vu_id
from catalog_perf.metrics import MetricsSink
from catalog_perf.run_config import load_run_config

logger = logging.getLogger(__name__)

RUN_CONFIG = load_run_config()


@dataclass(frozen=True)
class ProductScenario:
    """
    Description of one catalog endpoint under load.

    Attributes:
        name: Short identifier, also used as the Locust tag.
        title: Banner heading.
        path: Endpoint path relative to the base URL.
        params: Query parameters sent with every request.
        request_name: Name under which Locust groups the requests.
        trend_metric: Trend receiving every request's latency.
        extra_checks: Checks appended after the shared ones.
        notes: Extra lines for the setup banner.
        analysis_points: What to look at once the run is over.
        comparison_runs: Suggested follow-up runs for comparison.
    """

    name: str
    title: str
    path: str
    request_name: str
    trend_metric: str
    params: Mapping[str, str] = field(default_factory=dict)
    extra_checks: tuple[Check, ...] = ()
    notes: tuple[str, ...] = ()
    analysis_points: tuple[str, ...] = ()
    comparison_runs: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "params", MappingProxyType(dict(self.params)))
        object.__setattr__(self, "extra_checks", tuple(self.extra_checks))

    def target(self) -> str:
        """Path plus query string, as requested on the wire."""
        if not self.params:
            return self.path
        return f"{self.path}?{urlencode(dict(self.params))}"

    def url(self, base_url: str) -> str:
        return f"{base_url.rstrip('/')}{self.target()}"

    def validator(self, latency_budget_ms: float = 1000.0) -> ResponseValidator:
        return ResponseValidator([*default_checks(latency_budget_ms), *self.extra_checks])


class CatalogUser(HttpUser):
    """
    Base user that runs one :class:`ProductScenario` per iteration.

    Each virtual user gets an id when it starts and counts its own
    iterations from zero.  ``metrics_sink`` is assigned by the
    locustfile before users spawn; all users of a run share it.

    Attributes:
        scenario: The scenario this user class drives.
        metrics_sink: Sink shared by every user of the run.
        vu_id: Stable id for this virtual user.
        iteration: Number of iterations completed so far.
    """

    abstract = True

    host = RUN_CONFIG.base_url
    wait_time = between(*RUN_CONFIG.think_time)

    scenario: ProductScenario
    metrics_sink: MetricsSink | None = None

    vu_id: int
    iteration: int
    driver: RequestDriver

    def on_start(self) -> None:
        """Assign the virtual-user id and build the request driver."""
        self.vu_id = next_vu_id()
        self.iteration = 0
        if self.metrics_sink is None:
            logger.warning(
                "%s has no injected metrics sink; its metrics will not reach "
                "thresholds or the run summary",
                type(self).__name__,
            )
            type(self).metrics_sink = MetricsSink()
        self.driver = RequestDriver(
            self.client,
            self.scenario,
            self.metrics_sink,
            latency_budget_ms=RUN_CONFIG.latency_budget_ms,
            snippet_length=RUN_CONFIG.snippet_length,
        )

    def _run_iteration(self) -> None:
        """One iteration: request, check, record."""
        iteration = self.iteration
        self.iteration += 1
        self.driver.run_iteration(self.vu_id, iteration)
