# ruff: noqa: E402
"""
Locust entrypoint for the catalog load scenarios.

This is the file that the ``locust`` CLI discovers and loads.  It
imports both scenario user classes and the staged ramp shape, and wires
up an ``init`` listener that:

- maps ``--tags`` values to user classes, so only the requested
  scenarios spawn;
- creates the run's :class:`~catalog_perf.metrics.MetricsSink` and
  hands it to those classes;
- registers the setup/teardown banners and the threshold verdict.

Usage examples::

    # Both scenarios with the default ramp (0 -> 100 -> 200 -> 0 over 1m):
    locust -f catalog_perf/locustfile.py --headless

    # Only the product listing, against another host:
    BASE_URL=http://catalog:8080 locust -f catalog_perf/locustfile.py \\
        --headless --tags products

    # Only top products, with CSV output for the CI gate:
    locust -f catalog_perf/locustfile.py --headless --tags top_products \\
        --csv reports/top_products
"""

from __future__ import annotations

import sys
from pathlib import Path

from locust import events

# Locust may be invoked from any directory.  Inserting the project root
# onto ``sys.path`` guarantees that ``catalog_perf`` and ``config``
# always resolve, installed or not.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from catalog_perf import lifecycle
from catalog_perf import stages as ramp
from catalog_perf.metrics import MetricsSink
from catalog_perf.scenarios.base import RUN_CONFIG
from catalog_perf.scenarios.products import ProductListUser
from catalog_perf.scenarios.top_products import TopProductsUser

__all__ = ["ProductListUser", "TopProductsUser", "CatalogRampShape"]

# Maps CLI ``--tags`` values to concrete user classes.  When no tags
# are provided Locust spawns every class in ``__all__``.
TAG_TO_USER_CLASS = {
    "products": ProductListUser,
    "top_products": TopProductsUser,
}


class CatalogRampShape(ramp.StagedRampShape):
    """Ramp 0 -> 100 users, spike to 200, drain to 0."""

    stages = RUN_CONFIG.stages


def select_user_classes(selected_tags, available):
    """Return the user classes matching *selected_tags* (all when none match)."""
    selected_tags = set(selected_tags or [])
    if not selected_tags:
        return list(available)
    selected = [
        user_class
        for tag, user_class in TAG_TO_USER_CLASS.items()
        if tag in selected_tags
    ]
    return selected or list(available)


@events.init.add_listener
def _configure_run(environment, **_kwargs):
    """
    Select user classes, inject the metrics sink and register the hooks.

    Locust's built-in tag filtering hides individual ``@task`` methods
    but still instantiates every user class, so the user class list is
    replaced outright when tags are given.
    """
    parsed_options = getattr(environment, "parsed_options", None)
    tags = getattr(parsed_options, "tags", None)
    user_classes = select_user_classes(tags, environment.user_classes)
    environment.user_classes = user_classes

    metrics = MetricsSink()
    for user_class in user_classes:
        user_class.metrics_sink = metrics

    lifecycle.register(
        environment,
        RUN_CONFIG,
        [user_class.scenario for user_class in user_classes],
        metrics,
    )
