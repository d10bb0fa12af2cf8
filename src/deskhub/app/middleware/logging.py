"""Request logging middleware.

One canonical log line and one metric sample per API request. Metric
labels use the matched route template (``/api/v1/workspaces/{workspace_id}``)
so workspace ids never become label values.
"""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from starlette.routing import Match

from deskhub.app.config import get_settings
from deskhub.app.logging import clear_trace_context, set_trace_id
from deskhub.app.metrics.collector import HTTP_REQUEST_DURATION, HTTP_REQUESTS_TOTAL
from deskhub.core.logging_schema import LogEvent

logger = logging.getLogger(__name__)

TRACE_HEADER = "X-Trace-ID"
_SKIP_PATHS = frozenset({"/health", "/metrics"})


def _route_template(request: Request) -> str:
    """Path template of the route serving this request, or "other"."""
    for route in request.app.router.routes:
        match, _ = route.matches(request.scope)
        if match == Match.FULL:
            return getattr(route, "path", "other")
    return "other"


class LoggingMiddleware(BaseHTTPMiddleware):
    """Trace id propagation plus request log line and HTTP metrics."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if request.url.path in _SKIP_PATHS:
            return await call_next(request)

        trace_id = set_trace_id(request.headers.get(TRACE_HEADER))
        endpoint = _route_template(request)
        fields = {
            "method": request.method,
            "path": request.url.path,
            "user_id": request.headers.get("x-user-id"),
        }
        start = time.monotonic()
        try:
            response = await call_next(request)
        except Exception:
            logger.exception(
                "Request failed",
                extra={
                    "event": LogEvent.REQUEST_FAILED,
                    **fields,
                    "duration_ms": round((time.monotonic() - start) * 1000, 2),
                },
            )
            HTTP_REQUESTS_TOTAL.labels(
                method=request.method, endpoint=endpoint, status="500"
            ).inc()
            raise
        finally:
            clear_trace_context()

        elapsed = time.monotonic() - start
        duration_ms = round(elapsed * 1000, 2)
        HTTP_REQUESTS_TOTAL.labels(
            method=request.method, endpoint=endpoint, status=str(response.status_code)
        ).inc()
        HTTP_REQUEST_DURATION.labels(method=request.method, endpoint=endpoint).observe(elapsed)

        slow_ms = get_settings().logging.slow_threshold_ms
        is_slow = duration_ms > slow_ms
        logger.log(
            logging.WARNING if is_slow else logging.INFO,
            "%s %s %d (%.1fms)",
            request.method,
            request.url.path,
            response.status_code,
            duration_ms,
            extra={
                "event": LogEvent.REQUEST_SLOW if is_slow else LogEvent.REQUEST_COMPLETE,
                **fields,
                "status": response.status_code,
                "duration_ms": duration_ms,
                "trace_id": trace_id,
            },
        )

        response.headers[TRACE_HEADER] = trace_id
        return response
