"""
Response checks for catalog load scenarios.

A :class:`ResponseValidator` holds an ordered set of named
:class:`Check` predicates.  Every check is evaluated for every response
(no short-circuiting) so that per-check outcomes are always available,
and the response passes only if all of them hold.

Checks never raise: a body that is not valid JSON, a missing header or
a transport error simply makes the relevant predicates evaluate to
``False``.

Key Concepts Demonstrated:
- Transport-agnostic :class:`ResponseRecord` built from a requests or
  Locust response plus a measured duration
- Independent predicates with AND semantics
- Check factories parameterised by scenario (latency budget, list size)
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Mapping

from requests.structures import CaseInsensitiveDict

logger = logging.getLogger(__name__)

# Marker for bodies that could not be parsed as JSON.
_INVALID_JSON = object()


@dataclass(frozen=True)
class ResponseRecord:
    """
    The parts of an HTTP response the checks look at.

    Attributes:
        status: HTTP status code, ``0`` when the request never completed.
        headers: Response headers with case-insensitive lookup.
        body: Response body decoded as text (empty when absent).
        duration_ms: Wall-clock time of the request in milliseconds.
    """

    status: int
    headers: Mapping[str, str] = field(default_factory=CaseInsensitiveDict)
    body: str = ""
    duration_ms: float = 0.0

    def __post_init__(self) -> None:
        if not isinstance(self.headers, CaseInsensitiveDict):
            object.__setattr__(self, "headers", CaseInsensitiveDict(self.headers or {}))

    @classmethod
    def from_response(cls, response: Any, duration_ms: float) -> "ResponseRecord":
        """Build a record from a requests/Locust ``Response`` object."""
        status = getattr(response, "status_code", None) or 0
        headers = CaseInsensitiveDict(getattr(response, "headers", None) or {})
        try:
            body = response.text or ""
        except (AttributeError, RuntimeError, ValueError):
            body = ""
        return cls(status=int(status), headers=headers, body=body, duration_ms=duration_ms)

    def header(self, name: str) -> str | None:
        """Return header *name* regardless of case, or ``None`` if absent."""
        return self.headers.get(name)

    def json(self) -> Any:
        """Return the parsed body, or the invalid-JSON marker on failure."""
        try:
            return json.loads(self.body)
        except (TypeError, ValueError):
            return _INVALID_JSON

    def snippet(self, length: int = 100) -> str:
        return self.body[:length]


@dataclass(frozen=True)
class Check:
    """A named boolean predicate over a :class:`ResponseRecord`."""

    name: str
    predicate: Callable[[ResponseRecord], bool]

    def __call__(self, record: ResponseRecord) -> bool:
        try:
            return bool(self.predicate(record))
        except Exception:  # noqa: BLE001
            logger.debug("Check %r raised; counting it as failed", self.name, exc_info=True)
            return False


@dataclass(frozen=True)
class ValidationResult:
    """Per-check outcomes for one response."""

    results: dict[str, bool]

    @property
    def passed(self) -> bool:
        return all(self.results.values())

    @property
    def failed_checks(self) -> list[str]:
        return [name for name, ok in self.results.items() if not ok]

    def __bool__(self) -> bool:
        return self.passed


class ResponseValidator:
    """
    Ordered collection of checks evaluated together.

    Args:
        checks: The checks to run, in reporting order.  Names must be
            unique.
    """

    def __init__(self, checks: Iterable[Check]):
        self.checks = tuple(checks)
        names = [check.name for check in self.checks]
        if len(names) != len(set(names)):
            raise ValueError(f"Duplicate check names: {names}")

    def validate(self, record: ResponseRecord) -> ValidationResult:
        # Evaluate every check, even after a failure.
        return ValidationResult({check.name: check(record) for check in self.checks})

    def __len__(self) -> int:
        return len(self.checks)


# -----------------------------------------------------------------------------
# Check factories
# -----------------------------------------------------------------------------

def status_is(expected: int = 200) -> Check:
    return Check(f"status is {expected}", lambda r: r.status == expected)


def response_time_below(budget_ms: float = 1000) -> Check:
    """Latency must be strictly below *budget_ms*."""
    return Check(
        f"response time < {budget_ms:g}ms",
        lambda r: r.duration_ms < budget_ms,
    )


def content_type_is_json() -> Check:
    def _predicate(record: ResponseRecord) -> bool:
        content_type = record.header("Content-Type")
        return content_type is not None and "application/json" in content_type

    return Check("content-type is JSON", _predicate)


def body_is_json_array() -> Check:
    return Check("body is a JSON array", lambda r: isinstance(r.json(), list))


def at_most_items(limit: int) -> Check:
    """The body must be a JSON array of no more than *limit* elements."""

    def _predicate(record: ResponseRecord) -> bool:
        body = record.json()
        return isinstance(body, list) and len(body) <= limit

    return Check(f"at most {limit} products", _predicate)


def default_checks(latency_budget_ms: float = 1000) -> list[Check]:
    """The checks shared by every catalog listing endpoint."""
    return [
        status_is(200),
        response_time_below(latency_budget_ms),
        content_type_is_json(),
        body_is_json_array(),
    ]
