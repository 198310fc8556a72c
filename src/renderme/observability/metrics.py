"""Prometheus instruments for the RenderMe chat API.

``REQUEST_LATENCY`` is fed by the HTTP middleware; the counters are
incremented by the intent classifier and the generators.
"""

from __future__ import annotations

import time
from typing import Awaitable, Callable

from prometheus_client import Counter, Histogram
from starlette.requests import Request
from starlette.responses import Response

Middleware = Callable[[Request, Callable[[Request], Awaitable[Response]]], Awaitable[Response]]

# SSE turns can stay open for tens of seconds
REQUEST_LATENCY = Histogram(
    "renderme_request_latency_seconds",
    "HTTP request latency in seconds",
    labelnames=("method", "path", "status"),
    buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0),
)

INTENT_TOTAL = Counter(
    "renderme_intent_total",
    "Classified user intents",
    labelnames=("intent",),
)

GENERATOR_RUNS = Counter(
    "renderme_generator_runs_total",
    "Generator invocations by outcome",
    labelnames=("generator", "outcome"),
)

_UNOBSERVED = ("/metrics", "/api/metrics")


def sanitize_path(path: str) -> str:
    """Collapse a request path to its route family, e.g. ``/chat/abc`` -> ``/chat``.

    Paths under ``/api`` keep one more segment.
    """
    segments = [s for s in (path or "").split("?", 1)[0].split("/") if s]
    if not segments:
        return "/"
    keep = 2 if segments[0] == "api" else 1
    return "/" + "/".join(segments[:keep])


def metrics_middleware_factory() -> Middleware:
    async def middleware(request: Request, call_next: Callable[[Request], Awaitable[Response]]) -> Response:
        if request.url.path in _UNOBSERVED:
            return await call_next(request)
        started = time.perf_counter()
        response = await call_next(request)
        REQUEST_LATENCY.labels(
            method=request.method,
            path=sanitize_path(request.url.path),
            status=str(response.status_code),
        ).observe(time.perf_counter() - started)
        return response

    return middleware
