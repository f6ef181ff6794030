"""
Top products by view count scenario.

Defines :data:`TOP_PRODUCTS` and :class:`TopProductsUser`, which load
``GET /products/top?sortType=VIEW_COUNT``.  On top of the shared checks
the response must hold at most 10 products.

The run is meant to measure the effect of an index on the view count
column, so it is best executed twice: once without the index and once
with it.
"""

from __future__ import annotations

from locust import tag, task

from catalog_perf.checks import at_most_items
from catalog_perf.scenarios.base import CatalogUser, ProductScenario

TOP_PRODUCTS_LIMIT = 10

TOP_PRODUCTS = ProductScenario(
    name="top_products",
    title="Top products (view count) load test",
    path="/products/top",
    params={"sortType": "VIEW_COUNT"},
    request_name="fetch_top_products_view_count",
    trend_metric="popular_product_response_time",
    extra_checks=(at_most_items(TOP_PRODUCTS_LIMIT),),
    notes=("This run measures the effect of a view count index.",),
    analysis_points=(
        "ORDER BY viewCount DESC query performance",
        "Response time with and without the view count index",
        "p95 and p99 response times",
        "Throughput (requests per second)",
    ),
    comparison_runs=(
        "Current: no index",
        'With index: @Index(name = "idx_view_count", columnList = "viewCount")',
    ),
)


@tag("top_products")
class TopProductsUser(CatalogUser):
    """Fetch the most viewed products."""

    scenario = TOP_PRODUCTS

    @task
    def fetch_top_products(self) -> None:
        self._run_iteration()
