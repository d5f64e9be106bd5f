"""
Rate limiting middleware against brute force on login and runaway clients.

In-memory sliding window per process. With several workers each one keeps its
own window, so the effective limit is RATE_LIMIT_REQUESTS x workers.
"""
import threading
import time
import logging
from collections import defaultdict, deque
from typing import Deque, Dict, Tuple

from fastapi import Request, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from pharmacy.core.config import settings
from pharmacy.core.security import decode_access_token

logger = logging.getLogger(__name__)

EXEMPT_PATHS = {"/health", "/docs", "/redoc", "/openapi.json"}


class RateLimiter:
    """Sliding window over request timestamps, keyed by client."""

    def __init__(self, requests: int = 100, window: int = 60):
        self.requests = requests
        self.window = window
        self.clients: Dict[str, Deque[float]] = defaultdict(deque)
        self.last_cleanup = time.monotonic()
        self._lock = threading.Lock()

    def is_allowed(self, client_id: str) -> Tuple[bool, int]:
        """
        Record a request for ``client_id`` if it fits in the window.

        Returns:
            (allowed, remaining)
        """
        now = time.monotonic()
        cutoff = now - self.window
        with self._lock:
            if now - self.last_cleanup > 300:
                self._cleanup(cutoff)
                self.last_cleanup = now

            timestamps = self.clients[client_id]
            while timestamps and timestamps[0] <= cutoff:
                timestamps.popleft()

            if len(timestamps) >= self.requests:
                return False, 0
            timestamps.append(now)
            return True, self.requests - len(timestamps)

    def _cleanup(self, cutoff: float) -> None:
        for client_id in list(self.clients):
            timestamps = self.clients[client_id]
            while timestamps and timestamps[0] <= cutoff:
                timestamps.popleft()
            if not timestamps:
                del self.clients[client_id]
        logger.info(f"Rate limiter cleanup: {len(self.clients)} active clients")


def client_key(request: Request) -> str:
    """Authenticated users are limited per user id, everyone else per IP."""
    auth_header = request.headers.get("authorization", "")
    if auth_header.lower().startswith("bearer "):
        sub = decode_access_token(auth_header[7:].strip())
        if sub:
            return f"user:{sub}"
    client_ip = request.client.host if request.client else "unknown"
    return f"ip:{client_ip}"


rate_limiter = RateLimiter(
    requests=settings.RATE_LIMIT_REQUESTS,
    window=settings.RATE_LIMIT_WINDOW_SECONDS,
)


class RateLimitMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, limiter: RateLimiter = None):
        super().__init__(app)
        self.limiter = limiter or rate_limiter

    async def dispatch(self, request: Request, call_next):
        if request.url.path in EXEMPT_PATHS:
            return await call_next(request)

        client_id = client_key(request)
        allowed, remaining = self.limiter.is_allowed(client_id)
        limit_headers = {
            "X-RateLimit-Limit": str(self.limiter.requests),
            "X-RateLimit-Window": str(self.limiter.window),
        }

        if not allowed:
            logger.warning(f"Rate limit exceeded for {client_id} on {request.method} {request.url.path}")
            return JSONResponse(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                content={"detail": f"Rate limit exceeded. Try again in {self.limiter.window} seconds."},
                headers={**limit_headers, "Retry-After": str(self.limiter.window), "X-RateLimit-Remaining": "0"},
            )

        response = await call_next(request)
        response.headers.update({**limit_headers, "X-RateLimit-Remaining": str(remaining)})
        return response
