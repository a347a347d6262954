"""Prometheus metrics for ItemGate."""

import os
import time

from prometheus_client import (
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
    multiprocess,
)
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp

# === Counters ===

AUTH_DECISIONS_TOTAL = Counter(
    "itemgate_auth_decisions_total",
    "Total auth gate decisions",
    ["gate", "outcome", "reason"],  # outcome: admitted, denied
)

HTTP_REQUESTS_TOTAL = Counter(
    "itemgate_http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status"],
)

ITEM_OPERATIONS_TOTAL = Counter(
    "itemgate_item_operations_total",
    "Item store operations",
    ["operation", "outcome"],  # outcome: ok, not_found, invalid
)

# === Histograms ===

HTTP_REQUEST_LATENCY = Histogram(
    "itemgate_http_request_latency_seconds",
    "HTTP request latency in seconds",
    ["method", "endpoint"],
    buckets=[0.005, 0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5],
)

# === Gauges ===

ACTIVE_REQUESTS = Gauge(
    "itemgate_active_requests",
    "Number of currently active requests",
)


# === Helper Functions ===


def record_auth_decision(gate: str, outcome: str, reason: str) -> None:
    """Record an auth gate decision."""
    AUTH_DECISIONS_TOTAL.labels(gate=gate, outcome=outcome, reason=reason).inc()


def record_item_operation(operation: str, outcome: str) -> None:
    """Record an item store operation."""
    ITEM_OPERATIONS_TOTAL.labels(operation=operation, outcome=outcome).inc()


def record_http_request(
    method: str,
    endpoint: str,
    status: int,
    latency: float,
) -> None:
    """Record an HTTP request."""
    HTTP_REQUESTS_TOTAL.labels(
        method=method,
        endpoint=endpoint,
        status=str(status),
    ).inc()
    HTTP_REQUEST_LATENCY.labels(
        method=method,
        endpoint=endpoint,
    ).observe(latency)


def _endpoint_label(request: Request) -> str:
    # Route templates keep label cardinality bounded.
    route = request.scope.get("route")
    return getattr(route, "path", None) or request.url.path


# === HTTP Endpoint ===


class MetricsMiddleware(BaseHTTPMiddleware):
    """HTTP request metrics middleware."""

    def __init__(self, app: ASGIApp, exclude_paths: list[str] | None = None) -> None:
        super().__init__(app)
        self._exclude_paths = set(exclude_paths or [])

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if request.url.path in self._exclude_paths:
            return await call_next(request)

        ACTIVE_REQUESTS.inc()
        start = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            record_http_request(
                method=request.method,
                endpoint=_endpoint_label(request),
                status=500,
                latency=time.perf_counter() - start,
            )
            raise
        finally:
            ACTIVE_REQUESTS.dec()

        record_http_request(
            method=request.method,
            endpoint=_endpoint_label(request),
            status=response.status_code,
            latency=time.perf_counter() - start,
        )
        return response


async def metrics_endpoint(_request: Request) -> Response:
    """
    Prometheus metrics endpoint.

    Returns metrics in Prometheus text format.
    """
    multiproc_dir = os.environ.get("PROMETHEUS_MULTIPROC_DIR")
    if multiproc_dir:
        registry = CollectorRegistry()
        multiprocess.MultiProcessCollector(registry)  # type: ignore[no-untyped-call]
        return Response(
            generate_latest(registry),
            media_type="text/plain; version=0.0.4; charset=utf-8",
        )

    return Response(
        generate_latest(),
        media_type="text/plain; version=0.0.4; charset=utf-8",
    )
