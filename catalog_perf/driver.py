"""
Per-iteration request logic shared by every catalog scenario.

:class:`RequestDriver` performs one iteration of a scenario:

1. Send a single tagged ``GET`` to the scenario's endpoint.
2. Record the elapsed time in the scenario's trend metric.
3. Run the scenario's checks against the response.
4. Count the outcome: ``successful_requests`` on a pass, an ``errors``
   sample on a failure (plus a diagnostic log line).

The driver never retries and never raises for a bad response; a
transport error is just another failed check.  Think-time between
iterations is left to the Locust user's ``wait_time``.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable

from catalog_perf.checks import ResponseRecord, ResponseValidator
from catalog_perf.helpers import iteration_context, vu_headers
from catalog_perf.metrics import MetricsSink

logger = logging.getLogger(__name__)

SUCCESS_COUNTER = "successful_requests"
ERROR_RATE = "errors"


class RequestDriver:
    """
    Issue and account for one request per iteration.

    Args:
        client: A Locust ``HttpSession`` (or any object with a compatible
            ``get`` method that supports ``catch_response``).
        scenario: The :class:`~catalog_perf.scenarios.base.ProductScenario`
            being run.
        metrics: Sink receiving the counter, rate and trend samples.
        latency_budget_ms: Latency limit used by the response-time check.
        snippet_length: Number of body characters included in failure logs.
        clock: Monotonic clock in seconds used to time the request.
    """

    def __init__(
        self,
        client: Any,
        scenario: Any,
        metrics: MetricsSink,
        *,
        latency_budget_ms: float = 1000.0,
        snippet_length: int = 100,
        clock: Callable[[], float] = time.perf_counter,
    ):
        self.client = client
        self.scenario = scenario
        self.metrics = metrics
        self.snippet_length = snippet_length
        self.clock = clock
        self.validator: ResponseValidator = scenario.validator(latency_budget_ms)

        self._success = metrics.counter(SUCCESS_COUNTER)
        self._errors = metrics.rate(ERROR_RATE)
        self._trend = metrics.trend(scenario.trend_metric)

    def run_iteration(self, vu_id: int, iteration: int) -> ResponseRecord:
        """
        Run one iteration for virtual user *vu_id*.

        Returns:
            The :class:`ResponseRecord` the checks were evaluated against.
        """
        started = self.clock()
        with self.client.get(
            self.scenario.path,
            params=dict(self.scenario.params) or None,
            headers=vu_headers(vu_id, iteration),
            name=self.scenario.request_name,
            context=iteration_context(vu_id, iteration),
            catch_response=True,
        ) as response:
            duration_ms = (self.clock() - started) * 1000.0
            record = ResponseRecord.from_response(response, duration_ms)
            self._mark_transport_outcome(response, record)

        self._trend.add(record.duration_ms)

        result = self.validator.validate(record)
        if result.passed:
            self._success.add(1)
            self._errors.add(0)
        else:
            self._errors.add(1)
            logger.warning(
                "Request failed: %s - %s",
                record.status,
                record.snippet(self.snippet_length),
            )
            logger.debug("Failed checks for %s: %s", self.scenario.request_name, result.failed_checks)
        return record

    @staticmethod
    def _mark_transport_outcome(response: Any, record: ResponseRecord) -> None:
        # Locust's failure ratio counts transport errors and HTTP error
        # statuses only; check failures are tracked in the errors rate.
        if record.status == 0:
            response.failure(f"Request did not complete: {getattr(response, 'error', None)}")
        elif record.status >= 400:
            response.failure(f"HTTP {record.status}")
        else:
            response.success()
