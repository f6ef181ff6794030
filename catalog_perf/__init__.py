"""
Performance testing package for the product catalog (Locust-based).

Contains Locust user classes, a staged ramp shape, response checks, a
metrics sink and a CI threshold checker that together load-test the
catalog's read endpoints:

- ``GET /products`` (unfiltered product listing)
- ``GET /products/top?sortType=VIEW_COUNT`` (top products by view count)

Key Concepts Demonstrated:
- Staged ramp-up / spike / drain load via a custom ``LoadTestShape``
- Named response checks evaluated together with AND semantics
- Counter / rate / trend accumulators injected into the request driver
- Threshold expressions (``p(95)<1000``, ``rate<0.01``) gating the run
"""

import logging

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
