"""
Request middleware: per-IP rate limiting and security response headers.
"""
import logging
import threading
import time
from typing import Dict, Optional, Tuple

from fastapi import Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "SAMEORIGIN",
    "Referrer-Policy": "no-referrer",
    "X-DNS-Prefetch-Control": "off",
    "X-Download-Options": "noopen",
    "Strict-Transport-Security": "max-age=15552000; includeSubDomains",
}


class RateLimiter:
    """Fixed-window request counter keyed by client address."""

    def __init__(self, max_requests: int, window_seconds: int, message: str):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.message = message
        self._hits: Dict[str, Tuple[float, int]] = {}
        self._next_sweep = 0.0
        self._lock = threading.Lock()

    def __len__(self):
        return len(self._hits)

    def _sweep(self, now: float):
        # at most once per window; drops clients whose window has closed
        if now < self._next_sweep:
            return
        expired = [k for k, (started, _) in self._hits.items() if now - started >= self.window_seconds]
        for key in expired:
            del self._hits[key]
        self._next_sweep = now + self.window_seconds

    def hit(self, key: str) -> Tuple[bool, int, int]:
        """Count a request. Returns (allowed, remaining, seconds until reset)."""
        now = time.monotonic()
        with self._lock:
            self._sweep(now)
            started, count = self._hits.get(key, (now, 0))
            if now - started >= self.window_seconds:
                started, count = now, 0
            count += 1
            self._hits[key] = (started, count)

        reset = max(int(started + self.window_seconds - now), 0)
        remaining = max(self.max_requests - count, 0)
        return count <= self.max_requests, remaining, reset

    def reset(self):
        with self._lock:
            self._hits.clear()
            self._next_sweep = 0.0


def client_key(request: Request) -> str:
    # One proxy hop is trusted, as when deployed behind a platform load balancer
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


def check_limits(request: Request, limiters) -> Tuple[Optional[JSONResponse], dict]:
    """Apply each limiter in turn.

    Returns a 429 response (or None) and the RateLimit headers of the most
    restrictive limiter that was consulted.
    """
    key = client_key(request)
    headers = {}
    tightest = None
    for limiter in limiters:
        allowed, remaining, reset = limiter.hit(key)
        if tightest is None or remaining < tightest:
            tightest = remaining
            headers = {
                "RateLimit-Limit": str(limiter.max_requests),
                "RateLimit-Remaining": str(remaining),
                "RateLimit-Reset": str(reset),
            }
        if not allowed:
            logger.warning("Rate limit exceeded for %s on %s", key, request.url.path)
            headers["Retry-After"] = str(reset)
            response = JSONResponse(
                status_code=429,
                content={"success": False, "message": limiter.message},
                headers=headers,
            )
            return response, headers
    return None, headers
