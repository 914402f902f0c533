"""
Request logging middleware — one line per request with status and latency.
"""

import time

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from schoolhub.core.logging import get_logger

logger = get_logger("http")

# Paths too noisy to log
EXEMPT_PATHS = {"/docs", "/redoc", "/openapi.json", "/api/health"}


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        path = request.url.path

        if path in EXEMPT_PATHS or request.method == "OPTIONS":
            return await call_next(request)

        started = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - started) * 1000

        logger.info("%s %s -> %s (%.1f ms)", request.method, path, response.status_code, elapsed_ms)
        return response
