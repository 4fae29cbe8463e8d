# studio/middleware/rate_limiter.py
# Rate limiting middleware; session creation gets its own, much stricter
# budget because every new session provisions and seeds a database schema.
# Uses in-memory sliding window counters (per API process).

import time
import logging
from collections import defaultdict
from typing import Dict, Tuple
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse

logger = logging.getLogger(__name__)

SESSION_CREATE_PATH = "/api/preview/sessions"


class SlidingWindowCounter:
    """
    Sliding window rate limiter implementation.
    More accurate than fixed window, less memory than sliding log.
    """

    def __init__(self, window_size: int = 60, max_requests: int = 100):
        self.window_size = window_size  # seconds
        self.max_requests = max_requests
        # key -> (prev_count, curr_count, window_start)
        self._counters: Dict[str, Tuple[int, int, float]] = defaultdict(lambda: (0, 0, 0.0))

    def is_allowed(self, key: str) -> Tuple[bool, int]:
        """
        Check if request is allowed for given key.
        Returns (is_allowed, remaining_requests).
        """
        now = time.time()
        prev_count, curr_count, window_start = self._counters[key]

        current_window = now // self.window_size

        if window_start < current_window - 1:
            # More than one window has passed, reset
            prev_count = 0
            curr_count = 1
            window_start = current_window
        elif window_start < current_window:
            # Previous window, slide
            prev_count = curr_count
            curr_count = 1
            window_start = current_window
        else:
            curr_count += 1

        # Weighted count (sliding window approximation)
        elapsed_in_window = now % self.window_size
        weight = elapsed_in_window / self.window_size
        weighted_count = prev_count * (1 - weight) + curr_count

        self._counters[key] = (prev_count, curr_count, window_start)

        remaining = max(0, int(self.max_requests - weighted_count))
        is_allowed = weighted_count <= self.max_requests

        return is_allowed, remaining

    def cleanup_old_entries(self, max_age: int = 300):
        """Remove entries older than max_age seconds."""
        now = time.time()
        current_window = now // self.window_size
        keys_to_remove = [
            key for key, (_, _, window_start) in self._counters.items()
            if current_window - window_start > max_age // self.window_size
        ]
        for key in keys_to_remove:
            del self._counters[key]


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    FastAPI middleware for rate limiting.
    Separate budgets for session creation, other API calls, and everything else.
    """

    def __init__(self, app, api_limit: int = 60, general_limit: int = 100, create_limit: int = 5):
        super().__init__(app)
        self.create_limiter = SlidingWindowCounter(window_size=60, max_requests=create_limit)
        self.api_limiter = SlidingWindowCounter(window_size=60, max_requests=api_limit)
        self.general_limiter = SlidingWindowCounter(window_size=60, max_requests=general_limit)
        self._last_cleanup = time.time()

    def _get_client_key(self, request: Request) -> str:
        """Extract client identifier from request."""
        forwarded = request.headers.get("X-Forwarded-For")
        if forwarded:
            # Take first IP (original client)
            return forwarded.split(",")[0].strip()

        real_ip = request.headers.get("X-Real-IP")
        if real_ip:
            return real_ip

        if request.client:
            return request.client.host

        return "unknown"

    def _choose_limiter(self, request: Request) -> SlidingWindowCounter:
        path = request.url.path.rstrip("/")
        if request.method == "POST" and path == SESSION_CREATE_PATH:
            return self.create_limiter
        if path.startswith("/api/"):
            return self.api_limiter
        return self.general_limiter

    async def dispatch(self, request: Request, call_next):
        # Skip rate limiting for probes and scraping
        if request.url.path.startswith("/health") or request.url.path == "/metrics":
            return await call_next(request)

        # Periodic cleanup (every 5 minutes)
        now = time.time()
        if now - self._last_cleanup > 300:
            for limiter in (self.create_limiter, self.api_limiter, self.general_limiter):
                limiter.cleanup_old_entries()
            self._last_cleanup = now

        client_key = self._get_client_key(request)
        limiter = self._choose_limiter(request)
        is_allowed, remaining = limiter.is_allowed(client_key)

        if not is_allowed:
            logger.warning(f"Rate limit exceeded for {client_key} on {request.method} {request.url.path}")
            return JSONResponse(
                status_code=429,
                content={
                    "error": {
                        "code": "RATE_LIMIT_EXCEEDED",
                        "message": "Too many requests. Please slow down.",
                        "details": {"retry_after": limiter.window_size},
                    }
                },
                headers={"Retry-After": str(limiter.window_size), "X-RateLimit-Remaining": "0"}
            )

        response = await call_next(request)
        response.headers["X-RateLimit-Remaining"] = str(remaining)
        response.headers["X-RateLimit-Limit"] = str(limiter.max_requests)

        return response
