import time
import logging
import uuid
from typing import Callable
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from gymapp.core.logging_utils import error_tracker

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"

# Health checks and docs are served without access logs
QUIET_PATHS = frozenset({"/health", "/docs", "/openapi.json", "/redoc", "/favicon.ico"})


class RequestContextMiddleware(BaseHTTPMiddleware):
    """
    Tags each request with an id and logs its outcome and duration.

    An incoming X-Request-ID (set by a proxy or the payment gateway) is kept,
    so gateway callbacks can be matched with upstream logs.
    """

    def __init__(self, app: ASGIApp, slow_request_threshold: float):
        super().__init__(app)
        self.slow_request_threshold = slow_request_threshold

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex[:8]
        request.state.request_id = request_id

        if request.url.path in QUIET_PATHS:
            return await call_next(request)

        started = time.perf_counter()
        context = {
            "request_id": request_id,
            "method": request.method,
            "path": request.url.path,
            "client_ip": client_ip(request),
        }

        try:
            response = await call_next(request)
        except Exception as e:
            context["duration_ms"] = round((time.perf_counter() - started) * 1000, 2)
            logger.error(
                f"{request.method} {request.url.path} raised {type(e).__name__}",
                extra=context,
            )
            raise

        duration = time.perf_counter() - started
        context.update(
            status_code=response.status_code, duration_ms=round(duration * 1000, 2)
        )

        if duration > self.slow_request_threshold:
            logger.warning(
                f"Slow request: {request.method} {request.url.path}",
                extra={**context, "category": "performance"},
            )
        else:
            logger.info(
                f"{request.method} {request.url.path} -> {response.status_code}",
                extra=context,
            )

        response.headers[REQUEST_ID_HEADER] = request_id
        return response


class ErrorTrackingMiddleware(BaseHTTPMiddleware):
    """Feeds 5xx responses and unhandled exceptions into the error tracker"""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        try:
            response = await call_next(request)
        except Exception as e:
            error_tracker.track_error(
                f"UNHANDLED_{type(e).__name__}",
                str(e),
                {"method": request.method, "path": request.url.path},
            )
            raise

        if response.status_code >= 500:
            error_tracker.track_error(
                f"HTTP_{response.status_code}",
                f"{request.method} {request.url.path} answered {response.status_code}",
                {"request_id": getattr(request.state, "request_id", None)},
            )

        return response


def client_ip(request: Request) -> str:
    forwarded_for = request.headers.get("x-forwarded-for")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


def setup_middleware(app, slow_request_threshold: float):
    # Added last runs first: the request id exists before errors are tracked
    app.add_middleware(ErrorTrackingMiddleware)
    app.add_middleware(
        RequestContextMiddleware, slow_request_threshold=slow_request_threshold
    )

    logger.info("Request middleware configured")
