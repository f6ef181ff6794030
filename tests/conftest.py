"""
Shared pytest fixtures for the catalog load scenario test suite.

The scenarios are normally driven by Locust against a live catalog
service.  These fixtures replace both with small in-memory fakes so
that the request driver, checks, metrics and hooks can be exercised
without a network or a running Locust runner.

Key Concepts Demonstrated:
- Fake Locust client/response pair honouring ``catch_response``
- Factory fixtures for responses and product payloads
- Environment set before importing modules that read configuration
"""

# Locust applies gevent's monkey patches on import; they must land before
# requests and faker pull in ssl.
import locust  # noqa: F401

import json
import os
from typing import Any

import pytest
from faker import Faker
from requests.structures import CaseInsensitiveDict

# Set testing environment before importing the package
os.environ["LOAD_ENV"] = "testing"

from catalog_perf.checks import ResponseRecord
from catalog_perf.metrics import MetricsSink


# Initialize Faker for generating product data
fake = Faker()

JSON_HEADERS = {"Content-Type": "application/json"}


# -----------------------------------------------------------------------------
# Fake Locust client
# -----------------------------------------------------------------------------

class FakeResponse:
    """
    Stand-in for Locust's ``ResponseContextManager``.

    Records whether the driver marked it as a success or a failure.
    """

    def __init__(self, status_code: int = 200, body: str = "[]", headers: dict | None = None):
        self.status_code = status_code
        self.text = body
        self.headers = CaseInsensitiveDict(headers if headers is not None else JSON_HEADERS)
        self.error = None if status_code else ConnectionError("connection refused")
        self.outcome: str | None = None
        self.failure_message: str | None = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        return False

    def success(self) -> None:
        self.outcome = "success"

    def failure(self, message: str) -> None:
        self.outcome = "failure"
        self.failure_message = message


class FakeClient:
    """Records every ``get`` call and replies with queued responses."""

    def __init__(self, *responses: FakeResponse):
        self._responses = list(responses)
        self.calls: list[dict[str, Any]] = []

    def queue(self, response: FakeResponse) -> None:
        self._responses.append(response)

    def get(self, url: str, **kwargs: Any) -> FakeResponse:
        self.calls.append({"url": url, **kwargs})
        return self._responses.pop(0)


class StepClock:
    """Clock returning pre-set timestamps, so request durations are exact."""

    def __init__(self, *durations_ms: float):
        self._ticks: list[float] = []
        now = 0.0
        for duration in durations_ms:
            self._ticks.extend([now, now + duration / 1000.0])
            now += duration / 1000.0 + 1.0

    def __call__(self) -> float:
        return self._ticks.pop(0)


# -----------------------------------------------------------------------------
# Fixtures
# -----------------------------------------------------------------------------

@pytest.fixture
def metrics() -> MetricsSink:
    """A fresh metrics sink for each test."""
    return MetricsSink()


@pytest.fixture
def product_factory():
    """
    Factory fixture for product payloads as the catalog returns them.

    Example:
        def test_something(product_factory):
            body = json.dumps(product_factory(count=3))
    """

    def _create_products(count: int = 5) -> list[dict[str, Any]]:
        return [
            {
                "id": index + 1,
                "name": fake.catch_phrase(),
                "price": fake.random_int(min=1000, max=100000),
                "stock": fake.random_int(min=0, max=500),
                "viewCount": fake.random_int(min=0, max=10000),
            }
            for index in range(count)
        ]

    return _create_products


@pytest.fixture
def record_factory(product_factory):
    """Factory fixture for :class:`ResponseRecord` instances."""

    def _create_record(
        status: int = 200,
        body: str | None = None,
        headers: dict | None = None,
        duration_ms: float = 200.0,
        products: int = 5,
    ) -> ResponseRecord:
        if body is None:
            body = json.dumps(product_factory(count=products))
        return ResponseRecord(
            status=status,
            headers=CaseInsensitiveDict(headers if headers is not None else JSON_HEADERS),
            body=body,
            duration_ms=duration_ms,
        )

    return _create_record


@pytest.fixture
def response_factory(product_factory):
    """Factory fixture for :class:`FakeResponse` instances."""

    def _create_response(
        status_code: int = 200,
        body: str | None = None,
        headers: dict | None = None,
        products: int = 5,
    ) -> FakeResponse:
        if body is None:
            body = json.dumps(product_factory(count=products))
        return FakeResponse(status_code=status_code, body=body, headers=headers)

    return _create_response
