"""
Audit Middleware - binds request metadata for audit entries and logs.

Every request gets a request id; the id, client IP and user agent are bound
to the execution context so AuditService and JSONFormatter can pick them up
without threading them through every call.
"""
import logging
import time
import uuid
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from contract_analysis.utils.security import (
    get_client_ip,
    reset_request_context,
    set_request_context,
)

logger = logging.getLogger(__name__)

# Paths excluded from request logging
EXCLUDED_PATHS = {
    "/health",
    "/docs",
    "/openapi.json",
    "/redoc",
    "/favicon.ico",
}


class AuditMiddleware(BaseHTTPMiddleware):
    """Middleware binding request context and logging each API request."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
        token = set_request_context(
            request_id=request_id,
            ip_address=get_client_ip(request),
            user_agent=request.headers.get("user-agent", "")[:500],
        )

        start_time = time.time()
        response = None
        try:
            response = await call_next(request)
            response.headers["X-Request-ID"] = request_id
            return response
        finally:
            if request.url.path not in EXCLUDED_PATHS:
                duration_ms = int((time.time() - start_time) * 1000)
                status_code = response.status_code if response is not None else 500
                logger.info(f"{request.method} {request.url.path} {status_code} {duration_ms}ms")
            reset_request_context(token)
