import time
import logging
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger("access")


class LoggingMiddleware(BaseHTTPMiddleware):
    """Access log line per request, tagged with the authenticated user when known"""

    async def dispatch(self, request: Request, call_next):
        started = time.perf_counter()
        client_host = request.client.host if request.client else "unknown"

        response = await call_next(request)

        elapsed = time.perf_counter() - started
        user_id = getattr(request.state, "user_id", None)
        user_tag = f"user={user_id}" if user_id is not None else "anonymous"

        logger.info(
            f"{request.method} {request.url.path} {response.status_code} "
            f"{client_host} {user_tag} {elapsed * 1000:.1f}ms"
        )
        response.headers["X-Process-Time"] = f"{elapsed:.4f}"
        return response
