"""
Test suite for the catalog load scenarios.

This package contains:
- unit/: fast tests for checks, metrics, ramp plan, thresholds,
  lifecycle hooks and Locust wiring (no network, no running Locust)
"""
