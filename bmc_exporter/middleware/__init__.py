"""
Middleware package for the exporter.

Contains:
- MetricsMiddleware: trace ids, request tracking and Prometheus metrics
"""

from bmc_exporter.middleware.metrics import (
    MetricsMiddleware,
    get_metrics_text,
    get_metrics_content_type,
    record_scrape,
)

__all__ = [
    "MetricsMiddleware",
    "get_metrics_text",
    "get_metrics_content_type",
    "record_scrape",
]
