"""
Load scenario configuration module.

This module defines configuration classes for the environments the load
scenarios run in (default, testing). Values are loaded from environment
variables with sensible defaults and frozen into a
:class:`~catalog_perf.run_config.RunConfig` at process start.
"""

import os


class Config:
    """Base configuration with default settings."""

    BASE_URL: str = os.environ.get("BASE_URL", "http://localhost:8080")

    # Ramp 0 -> 100 users, spike to 200, drain to 0 (one minute in total)
    STAGES: tuple = (
        ("20s", 100),
        ("20s", 200),
        ("20s", 0),
    )

    THRESHOLDS: dict = {
        "http_req_duration": ("p(95)<1000",),
        "http_req_failed": ("rate<0.01",),
        "errors": ("rate<0.01",),
    }

    THINK_TIME_MIN: float = 1.0
    THINK_TIME_MAX: float = 3.0

    LATENCY_BUDGET_MS: float = 1000.0
    BODY_SNIPPET_LENGTH: int = 100

    SUMMARY_TREND_STATS: tuple = ("avg", "min", "med", "max", "p(90)", "p(95)", "p(99)")

    DASHBOARD_URL: str = os.environ.get("DASHBOARD_URL", "http://localhost:3000")

    # YAML dump of the custom metrics written at test stop, read by the CI gate
    METRICS_FILE: str | None = os.environ.get("METRICS_FILE")


class DefaultConfig(Config):
    """Configuration used for real load runs."""


class TestingConfig(Config):
    """Testing environment configuration."""

    BASE_URL: str = os.environ.get("TEST_BASE_URL", "http://localhost:8080")

    # No think-time so unit tests never sleep
    THINK_TIME_MIN: float = 0.0
    THINK_TIME_MAX: float = 0.0


# Configuration mapping for easy access
config = {
    "default": DefaultConfig,
    "testing": TestingConfig,
}


def get_config(env: str | None = None) -> type[Config]:
    """
    Get the configuration class for the specified environment.

    Args:
        env: Environment name (default, testing).
             If None, uses LOAD_ENV environment variable.

    Returns:
        Configuration class for the specified environment.
    """
    if env is None:
        env = os.environ.get("LOAD_ENV", "default")
    return config.get(env, config["default"])
