"""Prometheus metrics for CodeDuel Arena.

Covers HTTP traffic, room lifecycle, judge calls and realtime connections.
"""

import re
import time
from typing import Callable

from fastapi import Request, Response
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    REGISTRY,
    Counter,
    Gauge,
    Histogram,
    Info,
    generate_latest,
)
from starlette.middleware.base import BaseHTTPMiddleware

from codeduel import __version__
from codeduel.config import settings


# Application info
APP_INFO = Info("codeduel", "CodeDuel Arena application information")
APP_INFO.info({
    "version": __version__,
    "environment": settings.environment,
})


# HTTP Request Metrics
HTTP_REQUESTS_TOTAL = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status"],
)

HTTP_REQUEST_DURATION = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)

HTTP_REQUESTS_IN_PROGRESS = Gauge(
    "http_requests_in_progress",
    "HTTP requests currently being processed",
    ["method", "endpoint"],
)


# Realtime Metrics
REALTIME_CONNECTIONS = Gauge(
    "realtime_connections_active",
    "Active realtime websocket connections",
)

REALTIME_EVENTS_TOTAL = Counter(
    "realtime_events_total",
    "Row change events published",
    ["table", "event_type"],
)


# Room Metrics
ROOMS_CREATED_TOTAL = Counter(
    "rooms_created_total",
    "Total rooms created",
    ["mode"],  # "multiplayer", "practice"
)

ROOM_JOINS_TOTAL = Counter(
    "room_joins_total",
    "Room join attempts",
    ["result"],  # "joined", "already_in_room", "room_full", "not_found", "invalid"
)

BATTLES_STARTED_TOTAL = Counter(
    "battles_started_total",
    "Total battles started",
)

BATTLES_COMPLETED_TOTAL = Counter(
    "battles_completed_total",
    "Total battles completed with a winner",
)


# Judge Metrics
JUDGE_REQUESTS_TOTAL = Counter(
    "judge_requests_total",
    "Requests sent to the remote execution API",
    ["outcome"],  # "ok", "error"
)

JUDGE_REQUEST_DURATION = Histogram(
    "judge_request_duration_seconds",
    "Remote execution API round-trip time",
    [],
    buckets=(0.1, 0.25, 0.5, 1.0, 2.0, 5.0, 10.0, 20.0),
)

SUBMISSIONS_TOTAL = Counter(
    "submissions_total",
    "Judged submissions",
    ["result"],  # "passed", "failed", "rejected"
)


def normalize_endpoint(path: str) -> str:
    """Normalize endpoint path to reduce metric cardinality.

    Replaces UUIDs and room codes with placeholders.
    """
    path = re.sub(
        r"[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}",
        "{id}",
        path,
        flags=re.IGNORECASE,
    )
    path = re.sub(r"/code/[A-Za-z0-9]+", "/code/{room_code}", path)
    return path


def record_room_created(use_demo_bot: bool) -> None:
    ROOMS_CREATED_TOTAL.labels(mode="practice" if use_demo_bot else "multiplayer").inc()


def record_room_join(result: str) -> None:
    ROOM_JOINS_TOTAL.labels(result=result).inc()


def record_battle_started() -> None:
    BATTLES_STARTED_TOTAL.inc()


def record_battle_completed() -> None:
    BATTLES_COMPLETED_TOTAL.inc()


def record_judge_request(ok: bool, duration: float) -> None:
    JUDGE_REQUESTS_TOTAL.labels(outcome="ok" if ok else "error").inc()
    JUDGE_REQUEST_DURATION.observe(duration)


def record_submission(result: str) -> None:
    SUBMISSIONS_TOTAL.labels(result=result).inc()


def record_realtime_event(table: str, event_type: str) -> None:
    REALTIME_EVENTS_TOTAL.labels(table=table, event_type=event_type).inc()


class MetricsMiddleware(BaseHTTPMiddleware):
    """Middleware to automatically track HTTP metrics."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        # Skip metrics endpoint itself
        if request.url.path == "/metrics":
            return await call_next(request)

        method = request.method
        normalized = normalize_endpoint(request.url.path)

        HTTP_REQUESTS_IN_PROGRESS.labels(method=method, endpoint=normalized).inc()
        start_time = time.perf_counter()
        status = 500

        try:
            response = await call_next(request)
            status = response.status_code
        finally:
            duration = time.perf_counter() - start_time
            HTTP_REQUESTS_IN_PROGRESS.labels(method=method, endpoint=normalized).dec()
            HTTP_REQUESTS_TOTAL.labels(
                method=method,
                endpoint=normalized,
                status=status,
            ).inc()
            HTTP_REQUEST_DURATION.labels(
                method=method,
                endpoint=normalized,
            ).observe(duration)

        return response


async def get_metrics() -> tuple[bytes, str]:
    """Generate Prometheus metrics output."""
    return generate_latest(REGISTRY), CONTENT_TYPE_LATEST
