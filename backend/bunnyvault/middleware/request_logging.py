"""Request logging middleware with request and tenant context."""

import time
import uuid
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from bunnyvault.core.logging import bind_context, clear_context, get_logger

logger = get_logger(__name__)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Logs each request with timing.

    Every log line emitted while the request runs carries ``request_id`` and,
    on tenant routes, ``tenant_id``. An incoming ``X-Request-ID`` is reused so
    the gateway's id follows the request through placement logs.
    """

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Response]
    ) -> Response:
        request_id = request.headers.get("x-request-id") or str(uuid.uuid4())

        bind_context(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
        )
        tenant_id = request.headers.get("x-tenant-id")
        if tenant_id:
            bind_context(tenant_id=tenant_id)

        start_time = time.perf_counter()
        logger.info("request_started")

        try:
            response = await call_next(request)

            process_time = time.perf_counter() - start_time
            logger.info(
                "request_completed",
                status_code=response.status_code,
                process_time_ms=round(process_time * 1000, 2),
            )

            response.headers["X-Request-ID"] = request_id
            response.headers["X-Process-Time"] = f"{process_time:.4f}"
            return response

        except Exception as exc:
            process_time = time.perf_counter() - start_time
            logger.exception(
                "request_failed",
                error=str(exc),
                process_time_ms=round(process_time * 1000, 2),
            )
            raise

        finally:
            clear_context()
