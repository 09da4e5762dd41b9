import time
import logging
import hashlib
from typing import Deque, Dict, NamedTuple, Optional
from collections import defaultdict, deque
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse
from sports_arena.monitoring import PerformanceMonitor

logger = logging.getLogger(__name__)


class LoggingMiddleware(BaseHTTPMiddleware):
    """Log every request and feed its duration to the performance monitor."""

    def __init__(self, app, monitor: Optional[PerformanceMonitor] = None):
        super().__init__(app)
        self.monitor = monitor

    async def dispatch(self, request: Request, call_next):
        start_time = time.perf_counter()
        response = await call_next(request)
        elapsed = time.perf_counter() - start_time

        logger.info(f"{request.method} {request.url.path} -> {response.status_code} in {elapsed:.3f}s")

        if self.monitor is not None:
            # Route templates keep the number of operation keys bounded
            route = request.scope.get("route")
            path = getattr(route, "path", None) or "unmatched"
            self.monitor.record(f"{request.method} {path}", elapsed * 1000)

        response.headers["X-Process-Time"] = f"{elapsed:.6f}"
        return response


SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "Content-Security-Policy": "default-src 'self'; img-src 'self' data: https:; frame-ancestors 'none';",
    "Server": "SportsArena",
}


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to all responses."""

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        response.headers.update(SECURITY_HEADERS)
        return response


class RateLimit(NamedTuple):
    calls: int
    period: int


# Matched by path prefix, first match wins
ENDPOINT_LIMITS = {
    "/api/v1/auth/login": RateLimit(5, 300),
    "/api/v1/auth/signup": RateLimit(3, 300),
    # Answers reveal which numbers are registered
    "/api/v1/auth/validate-phone": RateLimit(20, 300),
    # Sweeps touch every live competition
    "/api/v1/competitions/update-statuses": RateLimit(10, 60),
}


class AdvancedRateLimitMiddleware(BaseHTTPMiddleware):
    """
    Sliding-window rate limiting per client and endpoint.

    Clients are told apart by IP and User-Agent. Limited endpoints get their
    own window; every other path shares the default one. Windows of clients
    idle for longer than the longest period are dropped every
    `cleanup_interval` seconds.
    """

    def __init__(self, app, default_calls: int = 100, default_period: int = 60,
                 limits: Optional[Dict[str, RateLimit]] = None, cleanup_interval: int = 60):
        super().__init__(app)
        self.default_limit = RateLimit(default_calls, default_period)
        self.limits = dict(ENDPOINT_LIMITS if limits is None else limits)
        self.windows: Dict[str, Deque[float]] = defaultdict(deque)
        self.cleanup_interval = cleanup_interval
        self.last_cleanup = time.time()
        self.horizon = max([self.default_limit.period] + [limit.period for limit in self.limits.values()])

    def _match(self, path: str):
        for prefix, limit in self.limits.items():
            if path.startswith(prefix):
                return prefix, limit
        return "default", self.default_limit

    def _client_key(self, request: Request, bucket: str) -> str:
        ip = request.client.host if request.client else "unknown"
        user_agent = request.headers.get("user-agent", "")
        return hashlib.sha256(f"{ip}:{user_agent}:{bucket}".encode()).hexdigest()[:16]

    def prune(self, now: float):
        stale = [key for key, window in self.windows.items() if not window or now - window[-1] > self.horizon]
        for key in stale:
            del self.windows[key]
        self.last_cleanup = now

    async def dispatch(self, request: Request, call_next):
        path = request.url.path
        if path == "/health":
            return await call_next(request)

        now = time.time()
        if now - self.last_cleanup >= self.cleanup_interval:
            self.prune(now)

        bucket, limit = self._match(path)
        client_key = self._client_key(request, bucket)
        window = self.windows[client_key]

        while window and now - window[0] > limit.period:
            window.popleft()

        if len(window) >= limit.calls:
            retry_after = int(limit.period - (now - window[0])) + 1
            logger.warning(f"Rate limit exceeded for {client_key} on {path}")
            return JSONResponse(
                status_code=429,
                content={"error": "Rate limit exceeded", "limit": limit.calls, "period": limit.period},
                headers={"Retry-After": str(retry_after)},
            )

        window.append(now)

        response = await call_next(request)
        response.headers["X-RateLimit-Limit"] = str(limit.calls)
        response.headers["X-RateLimit-Remaining"] = str(max(0, limit.calls - len(window)))
        response.headers["X-RateLimit-Reset"] = str(int((window[0] if window else now) + limit.period))
        return response
