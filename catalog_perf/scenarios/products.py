"""
Product listing scenario.

Defines :data:`PRODUCT_LIST` and :class:`ProductListUser`, which load
the unfiltered ``GET /products`` endpoint.  The point of the run is to
watch how latency changes as the user count ramps to 100 and then
spikes to 200.
"""

from __future__ import annotations

from locust import tag, task

from catalog_perf.scenarios.base import CatalogUser, ProductScenario

PRODUCT_LIST = ProductScenario(
    name="products",
    title="Product listing load test",
    path="/products",
    request_name="fetch_products",
    trend_metric="product_response_time",
    analysis_points=(
        "Response time as the load increases",
        "System stability during the 200-user spike",
        "p95 and p99 response times",
        "Throughput (requests per second)",
    ),
)


@tag("products")
class ProductListUser(CatalogUser):
    """Browse the full product list."""

    scenario = PRODUCT_LIST

    @task
    def fetch_products(self) -> None:
        self._run_iteration()
