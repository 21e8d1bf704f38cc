"""Request logging middleware for FastAPI.

Logs every API request with:
- Caller identity (X-User-Id header)
- HTTP method and path
- Resource type and ID (from path)
- Response status and duration
- Client IP address
"""

import logging
import time
import uuid
from typing import Callable, Optional

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from assethub.core.logger import bind_request_context, reset_request_context

logger = logging.getLogger(__name__)

# Paths that should not be logged (health checks, docs)
EXCLUDED_PATHS = {
    "/health",
    "/health/ready",
    "/docs",
    "/redoc",
    "/openapi.json",
    "/favicon.ico",
}

# Known id prefixes of path segments, e.g. /api/approvals/APR-1A2B3C4D
ID_PREFIXES = ("APR-", "AST-", "CON-", "OP-", "COP-", "BOR-", "ROLE-")


def get_client_ip(request: Request) -> str:
    """Extract client IP from request, handling proxies."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()

    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip

    if request.client:
        return request.client.host

    return "unknown"


def extract_resource_info(path: str) -> tuple[str, Optional[str]]:
    """
    Extract resource type and ID from request path.

    Returns:
        Tuple of (resource_type, resource_id)
    """
    parts = [p for p in path.strip("/").split("/") if p]
    if parts and parts[0] == "api":
        parts = parts[1:]
    if not parts:
        return "api", None

    resource_id = next((p for p in parts[1:] if p.startswith(ID_PREFIXES)), None)
    return parts[0], resource_id


class RequestLogMiddleware(BaseHTTPMiddleware):
    """Logs one line per request; 4xx at warning level, 5xx at error level."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if request.url.path in EXCLUDED_PATHS:
            return await call_next(request)

        request_id = str(uuid.uuid4())[:8]
        start_time = time.time()
        resource_type, resource_id = extract_resource_info(request.url.path)

        tokens = bind_request_context(request_id, request.headers.get("x-user-id"))
        try:
            response = await call_next(request)

            duration_ms = int((time.time() - start_time) * 1000)
            message = (
                f"{request.method} {request.url.path} -> {response.status_code} ({duration_ms}ms) "
                f"resource={resource_type}/{resource_id or '-'} ip={get_client_ip(request)}"
            )
            if response.status_code >= 500:
                logger.error(message)
            elif response.status_code >= 400:
                logger.warning(message)
            else:
                logger.info(message)
        finally:
            reset_request_context(tokens)

        response.headers["X-Request-ID"] = request_id
        return response
