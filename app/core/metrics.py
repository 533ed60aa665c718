"""Prometheus metrics for HTTP traffic and booking ledger transactions."""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Iterator
from contextlib import contextmanager
from time import perf_counter

from fastapi import Request, Response
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest

LATENCY_BUCKETS = (0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0)
UNMATCHED_ROUTE_LABEL = "<unmatched>"

HTTP_REQUESTS_TOTAL = Counter(
    "session_booking_http_requests_total",
    "HTTP requests served, by method, route template and status.",
    ["method", "path", "status_code"],
)
HTTP_REQUEST_DURATION_SECONDS = Histogram(
    "session_booking_http_request_duration_seconds",
    "HTTP request latency in seconds.",
    ["method", "path"],
    buckets=LATENCY_BUCKETS,
)

BOOKING_TRANSACTIONS_TOTAL = Counter(
    "session_booking_transactions_total",
    "Booking ledger transactions by operation and outcome code.",
    ["operation", "outcome"],
)
BOOKING_TRANSACTION_DURATION_SECONDS = Histogram(
    "session_booking_transaction_duration_seconds",
    "Time spent inside a booking ledger transaction, lock waits included.",
    ["operation"],
    buckets=LATENCY_BUCKETS,
)


def _route_label(request: Request) -> str:
    """Route template (``/bookings/{booking_id}``) so IDs do not explode label cardinality."""
    route = request.scope.get("route")
    route_path = getattr(route, "path", None)
    if route_path:
        return str(route_path)
    # Probes and static paths are fixed strings; anything else is collapsed.
    if request.url.path in {"/", "/health", "/ready", "/metrics"}:
        return request.url.path
    return UNMATCHED_ROUTE_LABEL


async def instrument_http_request(
    request: Request,
    call_next: Callable[[Request], Awaitable[Response]],
) -> Response:
    """Count requests and observe latency per route."""
    started_at = perf_counter()
    status_code = 500
    try:
        response = await call_next(request)
        status_code = response.status_code
        return response
    finally:
        method = request.method.upper()
        path = _route_label(request)
        HTTP_REQUESTS_TOTAL.labels(method=method, path=path, status_code=str(status_code)).inc()
        HTTP_REQUEST_DURATION_SECONDS.labels(method=method, path=path).observe(
            perf_counter() - started_at,
        )


def record_booking_outcome(operation: str, outcome: str) -> None:
    """Count one create/cancel/reset attempt by its outcome code."""
    BOOKING_TRANSACTIONS_TOTAL.labels(operation=operation, outcome=outcome).inc()


@contextmanager
def observe_booking_transaction(operation: str) -> Iterator[None]:
    """Time a ledger transaction, whether it commits or fails."""
    started_at = perf_counter()
    try:
        yield
    finally:
        BOOKING_TRANSACTION_DURATION_SECONDS.labels(operation=operation).observe(
            perf_counter() - started_at,
        )


def build_metrics_response() -> Response:
    """Return metrics payload in Prometheus text format."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
