"""
Unit tests for the response checks.
"""

import logging

import pytest

from catalog_perf.checks import (
    Check,
    ResponseRecord,
    ResponseValidator,
    at_most_items,
    body_is_json_array,
    content_type_is_json,
    response_time_below,
    status_is,
)
from catalog_perf.scenarios.products import PRODUCT_LIST
from catalog_perf.scenarios.top_products import TOP_PRODUCTS


pytestmark = pytest.mark.unit

STATUS = "status is 200"
LATENCY = "response time < 1000ms"
CONTENT_TYPE = "content-type is JSON"
ARRAY = "body is a JSON array"
AT_MOST_10 = "at most 10 products"


@pytest.mark.parametrize("scenario", [PRODUCT_LIST, TOP_PRODUCTS], ids=lambda s: s.name)
def test_healthy_response_passes_every_check(scenario, record_factory):
    record = record_factory(status=200, duration_ms=200)

    result = scenario.validator().validate(record)

    assert result.passed
    assert result.failed_checks == []


def test_product_list_runs_four_checks_and_top_products_five():
    assert [c.name for c in PRODUCT_LIST.validator().checks] == [STATUS, LATENCY, CONTENT_TYPE, ARRAY]
    assert [c.name for c in TOP_PRODUCTS.validator().checks] == [
        STATUS, LATENCY, CONTENT_TYPE, ARRAY, AT_MOST_10,
    ]


def test_server_error_fails_status_check(record_factory):
    record = record_factory(status=500, body='{"error": "boom"}')

    result = PRODUCT_LIST.validator().validate(record)

    assert not result.passed
    assert result.results[STATUS] is False


def test_slow_response_fails_only_latency_check(record_factory):
    record = record_factory(duration_ms=1500)

    result = PRODUCT_LIST.validator().validate(record)

    assert not result.passed
    assert result.failed_checks == [LATENCY]


def test_latency_budget_is_strict(record_factory):
    check = response_time_below(1000)

    assert check(record_factory(duration_ms=999.9)) is True
    assert check(record_factory(duration_ms=1000)) is False


def test_eleven_top_products_fail_only_the_size_check(record_factory):
    record = record_factory(products=11)

    result = TOP_PRODUCTS.validator().validate(record)

    assert result.failed_checks == [AT_MOST_10]


def test_ten_top_products_pass(record_factory):
    assert TOP_PRODUCTS.validator().validate(record_factory(products=10)).passed


@pytest.mark.parametrize("scenario", [PRODUCT_LIST, TOP_PRODUCTS], ids=lambda s: s.name)
def test_malformed_json_fails_body_checks_without_raising(scenario, record_factory):
    record = record_factory(body="not json")

    result = scenario.validator().validate(record)

    assert result.results[ARRAY] is False
    if scenario is TOP_PRODUCTS:
        assert result.results[AT_MOST_10] is False
    # The independent checks are still evaluated normally.
    assert result.results[STATUS] is True
    assert result.results[LATENCY] is True
    assert result.results[CONTENT_TYPE] is True


def test_json_object_is_not_an_array(record_factory):
    record = record_factory(body='{"content": []}')

    assert body_is_json_array()(record) is False
    assert at_most_items(10)(record) is False


def test_missing_content_type_is_false_not_an_error(record_factory):
    record = record_factory(headers={})

    assert content_type_is_json()(record) is False


def test_content_type_with_charset_is_json(record_factory):
    record = record_factory(headers={"content-type": "application/json;charset=UTF-8"})

    assert content_type_is_json()(record) is True


def test_transport_failure_record_fails_status_and_body_checks():
    record = ResponseRecord(status=0, headers={}, body="", duration_ms=30000)

    result = TOP_PRODUCTS.validator().validate(record)

    assert result.results == {
        STATUS: False,
        LATENCY: False,
        CONTENT_TYPE: False,
        ARRAY: False,
        AT_MOST_10: False,
    }


def test_checks_are_not_short_circuited(record_factory):
    calls = []

    def _tracking(name, outcome):
        def _predicate(_record):
            calls.append(name)
            return outcome
        return Check(name, _predicate)

    validator = ResponseValidator([_tracking("first", False), _tracking("second", True)])

    result = validator.validate(record_factory())

    assert calls == ["first", "second"]
    assert result.results == {"first": False, "second": True}


def test_raising_predicate_counts_as_failed(record_factory, caplog):
    def _explode(_record):
        raise RuntimeError("boom")

    validator = ResponseValidator([status_is(200), Check("explodes", _explode)])

    with caplog.at_level(logging.DEBUG, logger="catalog_perf.checks"):
        result = validator.validate(record_factory())

    assert result.results == {STATUS: True, "explodes": False}
    assert "Check 'explodes' raised" in caplog.text


def test_duplicate_check_names_are_rejected():
    with pytest.raises(ValueError):
        ResponseValidator([status_is(200), status_is(200)])


def test_record_from_response_reads_status_headers_and_body(response_factory):
    response = response_factory(status_code=201, body="[1, 2]")

    record = ResponseRecord.from_response(response, duration_ms=12.5)

    assert record.status == 201
    assert record.header("content-type") == "application/json"
    assert record.body == "[1, 2]"
    assert record.duration_ms == 12.5


def test_snippet_truncates_body():
    record = ResponseRecord(status=500, body="x" * 250)

    assert record.snippet(100) == "x" * 100


def test_plain_dict_headers_are_case_insensitive():
    record = ResponseRecord(status=200, headers={"content-type": "application/json"}, body="[]")

    assert record.header("Content-Type") == "application/json"
    assert content_type_is_json()(record) is True
