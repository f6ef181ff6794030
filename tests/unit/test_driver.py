"""
Unit tests for the per-iteration request driver.
"""

import logging

import pytest

from catalog_perf.driver import ERROR_RATE, SUCCESS_COUNTER, RequestDriver
from catalog_perf.scenarios.products import PRODUCT_LIST
from catalog_perf.scenarios.top_products import TOP_PRODUCTS
from tests.conftest import FakeClient, FakeResponse, StepClock


pytestmark = pytest.mark.unit


def _driver(scenario, metrics, *responses, durations=None):
    client = FakeClient(*responses)
    clock = StepClock(*(durations or [200] * len(responses)))
    return RequestDriver(client, scenario, metrics, clock=clock), client


def test_request_carries_path_params_headers_and_tags(metrics, response_factory):
    driver, client = _driver(TOP_PRODUCTS, metrics, response_factory(products=3))

    driver.run_iteration(vu_id=7, iteration=2)

    call = client.calls[0]
    assert call["url"] == "/products/top"
    assert call["params"] == {"sortType": "VIEW_COUNT"}
    assert call["headers"] == {"X-VU-ID": "7", "X-Iteration": "2", "X-User-ID": "user-7"}
    assert call["name"] == "fetch_top_products_view_count"
    assert call["context"] == {"vu_id": "7", "iteration": "2"}
    assert call["catch_response"] is True


def test_product_list_request_has_no_query(metrics, response_factory):
    driver, client = _driver(PRODUCT_LIST, metrics, response_factory())

    driver.run_iteration(1, 0)

    assert client.calls[0]["url"] == "/products"
    assert client.calls[0]["params"] is None
    assert client.calls[0]["name"] == "fetch_products"


def test_passing_iteration_counts_success(metrics, response_factory):
    driver, _ = _driver(PRODUCT_LIST, metrics, response_factory())

    record = driver.run_iteration(1, 0)

    assert record.duration_ms == pytest.approx(200)
    assert metrics.counter(SUCCESS_COUNTER).value == 1
    assert metrics.rate(ERROR_RATE).passes == 0
    assert metrics.rate(ERROR_RATE).count == 1
    assert metrics.trend("product_response_time").count == 1


def test_server_error_is_logged_and_counted(metrics, caplog):
    response = FakeResponse(status_code=500, body="Internal Server Error: " + "x" * 200)
    driver, _ = _driver(PRODUCT_LIST, metrics, response)

    with caplog.at_level(logging.WARNING, logger="catalog_perf.driver"):
        driver.run_iteration(1, 0)

    assert metrics.counter(SUCCESS_COUNTER).value == 0
    assert metrics.rate(ERROR_RATE).passes == 1
    assert metrics.trend("product_response_time").count == 1
    assert response.outcome == "failure"

    messages = [r.getMessage() for r in caplog.records]
    assert len(messages) == 1
    assert "500" in messages[0]
    snippet = messages[0].split(" - ", 1)[1]
    assert len(snippet) == 100


def test_slow_response_is_an_error_but_not_a_transport_failure(metrics, response_factory):
    response = response_factory()
    driver, _ = _driver(PRODUCT_LIST, metrics, response, durations=[1500])

    driver.run_iteration(1, 0)

    assert metrics.rate(ERROR_RATE).passes == 1
    assert metrics.trend("product_response_time").aggregate("max") == pytest.approx(1500)
    assert response.outcome == "success"


def test_too_many_top_products_is_an_error(metrics, response_factory):
    driver, _ = _driver(TOP_PRODUCTS, metrics, response_factory(products=11))

    driver.run_iteration(1, 0)

    assert metrics.rate(ERROR_RATE).passes == 1
    assert metrics.trend("popular_product_response_time").count == 1


def test_transport_failure_is_classified_not_raised(metrics):
    response = FakeResponse(status_code=0, body="", headers={})
    driver, _ = _driver(TOP_PRODUCTS, metrics, response)

    record = driver.run_iteration(3, 9)

    assert record.status == 0
    assert response.outcome == "failure"
    assert metrics.rate(ERROR_RATE).passes == 1


def test_every_iteration_is_classified_exactly_once(metrics, response_factory):
    responses = [
        response_factory(),
        FakeResponse(status_code=500, body="boom"),
        response_factory(body="not json"),
        response_factory(),
        response_factory(),
    ]
    driver, _ = _driver(PRODUCT_LIST, metrics, *responses, durations=[100, 100, 100, 1500, 100])

    for iteration in range(len(responses)):
        driver.run_iteration(1, iteration)

    successes = metrics.counter(SUCCESS_COUNTER).value
    failures = metrics.rate(ERROR_RATE).passes
    assert successes == 2
    assert failures == 3
    assert successes + failures == len(responses)
    assert metrics.rate(ERROR_RATE).count == len(responses)
    assert metrics.trend("product_response_time").count == len(responses)
