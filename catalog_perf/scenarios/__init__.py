"""
Locust scenario user classes.

Each module in this package defines one catalog scenario and the Locust
``HttpUser`` subclass that runs it:

- :mod:`.products`: unfiltered product listing (``GET /products``)
- :mod:`.top_products`: top products by view count
  (``GET /products/top?sortType=VIEW_COUNT``)

Both scenarios are instances of
:class:`~catalog_perf.scenarios.base.ProductScenario` and their users
inherit from :class:`~catalog_perf.scenarios.base.CatalogUser`, which
owns the virtual-user identity, iteration counter and request driver.
"""
