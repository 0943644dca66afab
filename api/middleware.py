"""
Request logging middleware.

One line per request: method, path, status, duration. Warns on 4xx and slow
requests (>3s), errors on 5xx.
"""
import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

logger = logging.getLogger("lmia_api")

SLOW_REQUEST_MS = 3000


class LoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        start = time.time()
        response = await call_next(request)
        duration_ms = round((time.time() - start) * 1000, 1)

        msg = (
            f"{request.method} {request.url.path} "
            f"status={response.status_code} "
            f"duration={duration_ms}ms"
        )

        if response.status_code >= 500:
            logger.error(msg)
        elif response.status_code >= 400 or duration_ms > SLOW_REQUEST_MS:
            logger.warning(msg)
        else:
            logger.info(msg)

        return response
