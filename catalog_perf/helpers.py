"""
Helper utilities for catalog load scenarios.

Provides the small building blocks every scenario relies on:
virtual-user identity, the identifying request headers and the tags
attached to each request event.  Keeping these in a shared module means
both scenarios label their traffic identically, so requests can be
sliced by virtual user or iteration in whatever backend collects
Locust's request events.

Key Concepts Demonstrated:
- Process-wide, thread-safe virtual-user numbering
- Debug headers that identify the simulated user to the server logs
- Request ``context`` tags for per-request telemetry
"""

from __future__ import annotations

import itertools
import threading

_vu_counter = itertools.count(1)
_vu_lock = threading.Lock()


def next_vu_id() -> int:
    """
    Return the next virtual-user id for this process.

    Ids start at 1 and are never reused during a run.
    """
    with _vu_lock:
        return next(_vu_counter)


def synthetic_user_id(vu_id: int) -> str:
    """Build the fake user id sent in ``X-User-ID``."""
    return f"user-{vu_id}"


def vu_headers(vu_id: int, iteration: int) -> dict[str, str]:
    """
    Build the identifying headers for one request.

    These only help correlate server-side logs with the load run; the
    catalog service does not treat them as credentials.

    Args:
        vu_id: Virtual-user id.
        iteration: Zero-based iteration number for that user.

    Returns:
        A dictionary suitable for passing as ``headers`` to Locust
        request methods.
    """
    return {
        "X-VU-ID": str(vu_id),
        "X-Iteration": str(iteration),
        "X-User-ID": synthetic_user_id(vu_id),
    }


def iteration_context(vu_id: int, iteration: int) -> dict[str, str]:
    """Tags attached to the Locust request event (values are strings)."""
    return {
        "vu_id": str(vu_id),
        "iteration": str(iteration),
    }
