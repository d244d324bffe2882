import logging
import time

from fastapi import Request, Response
from prometheus_client import Counter, Histogram
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger(__name__)

REQUEST_COUNT = Counter(
    "http_requests_total",
    "HTTP requests handled",
    ["method", "path", "status"],
)
REQUEST_LATENCY = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "path"],
)

UPLOADS = Counter(
    "knowledge_uploads_total",
    "Document uploads by outcome",
    ["outcome"],
)
REVIEWS = Counter(
    "knowledge_reviews_total",
    "Document reviews by target status",
    ["status"],
)
BADGES_AWARDED = Counter(
    "knowledge_badges_awarded_total",
    "Badges awarded",
    ["badge"],
)


def _route_path(request: Request) -> str:
    # Templated path keeps label cardinality bounded
    route = request.scope.get("route")
    return getattr(route, "path", None) or request.url.path


class ObservabilityMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next) -> Response:
        start = time.perf_counter()
        status = 500
        try:
            response = await call_next(request)
            status = response.status_code
            return response
        finally:
            elapsed = time.perf_counter() - start
            path = _route_path(request)
            REQUEST_COUNT.labels(request.method, path, str(status)).inc()
            REQUEST_LATENCY.labels(request.method, path).observe(elapsed)
            logger.debug(
                "%s %s -> %s in %.1fms", request.method, path, status, elapsed * 1000
            )
