"""Request telemetry stage.

Tags every request with an id, records its outcome and duration as
Prometheus metrics and logs it through the ``anitrack.telemetry`` logger.
Metrics are scraped from /metrics.
"""

from __future__ import annotations

import logging
import time
import uuid

from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest
from starlette.datastructures import MutableHeaders
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp, Message, Receive, Scope, Send

logger = logging.getLogger("anitrack.telemetry")

REQUEST_ID_HEADER = "X-Request-Id"
METRICS_PATH = "/metrics"

# ============================================================================
# Prometheus Metrics
# ============================================================================

http_requests_total = Counter(
    "anitrack_http_requests_total",
    "Total number of HTTP requests handled",
    ["method", "mount", "status"],  # mount: api, page, metrics
)

http_request_duration = Histogram(
    "anitrack_http_request_duration_seconds",
    "Time taken to handle an HTTP request",
    ["method", "mount"],
)


def mount_label(path: str) -> str:
    """Map a request path to its mount point label."""
    if path == "/api" or path.startswith("/api/"):
        return "api"
    if path == METRICS_PATH:
        return "metrics"
    return "page"


async def metrics_endpoint(request: Request) -> Response:
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)


class RequestTelemetryMiddleware:
    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        request_id = uuid.uuid4().hex
        scope.setdefault("state", {})["request_id"] = request_id
        method = scope.get("method", "")
        path = scope.get("path", "")
        started = time.perf_counter()
        status_code = 500

        async def send_wrapper(message: Message) -> None:
            nonlocal status_code
            if message["type"] == "http.response.start":
                status_code = message["status"]
                MutableHeaders(scope=message).append(REQUEST_ID_HEADER, request_id)
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        finally:
            elapsed = time.perf_counter() - started
            mount = mount_label(path)

            http_requests_total.labels(
                method=method, mount=mount, status=str(status_code)
            ).inc()
            http_request_duration.labels(method=method, mount=mount).observe(elapsed)

            logger.info(
                f"{method} {path} {status_code} "
                f"{elapsed * 1000:.1f}ms request_id={request_id}"
            )
