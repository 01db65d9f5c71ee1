"""
Request metrics and trace id middleware.

Every request gets a trace id, taken from an incoming X-Trace-Id header or
generated, which is attached to log records and echoed in the response.
Request counts and durations go to a registry separate from the per-scrape
device registries.
"""

import time
import uuid
from typing import Callable, Union

from fastapi import Request, Response
from prometheus_client import CONTENT_TYPE_LATEST, CollectorRegistry, Counter, Histogram, generate_latest
from starlette.middleware.base import BaseHTTPMiddleware

from bmc_exporter.log_config import trace_id_var

TRACE_HEADER = "X-Trace-Id"

# ============================================================================
# Prometheus Metrics Registry
# ============================================================================

metrics_registry = CollectorRegistry()

requests_total = Counter(
    'bmc_exporter_requests_total',
    'Total number of exporter requests',
    ['method', 'endpoint', 'status_code'],
    registry=metrics_registry
)

request_duration_seconds = Histogram(
    'bmc_exporter_request_duration_seconds',
    'Exporter request duration in seconds',
    ['method', 'endpoint'],
    buckets=(0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 15.0, 30.0, 60.0),
    registry=metrics_registry
)

errors_total = Counter(
    'bmc_exporter_errors_total',
    'Total number of exporter errors',
    ['method', 'endpoint', 'error_type'],
    registry=metrics_registry
)

scrapes_total = Counter(
    'bmc_exporter_scrapes_total',
    'Device scrapes by resulting up value, failed when discovery failed',
    ['status'],
    registry=metrics_registry
)


# ============================================================================
# Metrics Middleware
# ============================================================================

class MetricsMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        trace_id = request.headers.get(TRACE_HEADER) or uuid.uuid4().hex
        token = trace_id_var.set(trace_id)

        endpoint = request.url.path
        method = request.method
        start_time = time.time()
        try:
            response = await call_next(request)
        except Exception as exc:
            errors_total.labels(method=method, endpoint=endpoint, error_type=exc.__class__.__name__).inc()
            request_duration_seconds.labels(method=method, endpoint=endpoint).observe(time.time() - start_time)
            raise
        finally:
            trace_id_var.reset(token)

        status_code = response.status_code
        requests_total.labels(method=method, endpoint=endpoint, status_code=status_code).inc()
        request_duration_seconds.labels(method=method, endpoint=endpoint).observe(time.time() - start_time)
        if status_code >= 400:
            error_type = "client_error" if status_code < 500 else "server_error"
            errors_total.labels(method=method, endpoint=endpoint, error_type=error_type).inc()

        response.headers[TRACE_HEADER] = trace_id
        return response


def record_scrape(status: Union[int, str]):
    """Count a finished scrape by its up value, or "failed" when discovery failed."""
    scrapes_total.labels(status=str(status)).inc()


def get_metrics_text() -> bytes:
    return generate_latest(metrics_registry)


def get_metrics_content_type() -> str:
    return CONTENT_TYPE_LATEST
