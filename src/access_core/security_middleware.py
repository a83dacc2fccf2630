"""
Rate limiting for the unauthenticated auth endpoints.
"""

import os
import time
from collections import defaultdict
from collections.abc import Callable
from functools import wraps
from http import HTTPStatus

from flask import current_app, jsonify, request

from access_core.serializers import error_response

SWEEP_INTERVAL_SECONDS = 300


def get_client_ip() -> str:
    """
    Get the client IP. Proxy headers are honoured only behind a trusted proxy.

    Returns:
        Client IP address string
    """
    if not current_app.config.get("TRUST_PROXY_HEADERS"):
        return request.remote_addr or "unknown"

    forwarded_for = request.headers.get("X-Forwarded-For", "")
    if forwarded_for:
        # X-Forwarded-For: client, proxy1, proxy2
        return forwarded_for.split(",")[0].strip()

    real_ip = request.headers.get("X-Real-IP", "")
    if real_ip:
        return real_ip.strip()

    return request.remote_addr or "unknown"


class RateLimiter:
    """Simple in-memory sliding-window rate limiter."""

    def __init__(self, sweep_interval_seconds: int = SWEEP_INTERVAL_SECONDS):
        self.requests: dict[str, list] = defaultdict(list)
        self.sweep_interval_seconds = sweep_interval_seconds
        self._last_sweep = time.time()

    def is_allowed(self, key: str, max_requests: int, window_seconds: int) -> tuple[bool, int]:
        """
        Check if request is allowed based on rate limit.

        Returns:
            Tuple of (is_allowed, remaining_requests)
        """
        now = time.time()
        if now - self._last_sweep >= self.sweep_interval_seconds:
            self.clean_old_entries()
            self._last_sweep = now

        cutoff = now - window_seconds

        self.requests[key] = [t for t in self.requests[key] if t > cutoff]

        if len(self.requests[key]) >= max_requests:
            return False, 0

        self.requests[key].append(now)
        return True, max_requests - len(self.requests[key])

    def clean_old_entries(self, max_age_seconds: int = 3600) -> None:
        """Remove entries older than max_age to prevent memory leak."""
        cutoff = time.time() - max_age_seconds

        for key in list(self.requests.keys()):
            self.requests[key] = [t for t in self.requests[key] if t > cutoff]
            if not self.requests[key]:
                del self.requests[key]

    def reset(self) -> None:
        self.requests.clear()


_rate_limiter = RateLimiter()


def _testing_mode() -> bool:
    if current_app and current_app.config.get("TESTING"):
        return True
    return os.getenv("TESTING", "").lower() in {"1", "true", "yes", "on"}


def rate_limit(max_requests: int = 5, window_seconds: int = 60, key_prefix: str = ""):
    """
    Decorator to rate limit endpoints per client IP and path.

    Bypassed in testing mode.
    """

    def decorator(f: Callable) -> Callable:
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if _testing_mode():
                return f(*args, **kwargs)

            key = f"{get_client_ip()}:{key_prefix}{request.path}"
            is_allowed, remaining = _rate_limiter.is_allowed(key, max_requests, window_seconds)

            if not is_allowed:
                response = jsonify(error_response("Too many requests. Please try again later."))
                response.status_code = HTTPStatus.TOO_MANY_REQUESTS
                response.headers["Retry-After"] = str(window_seconds)
                response.headers["X-RateLimit-Limit"] = str(max_requests)
                response.headers["X-RateLimit-Remaining"] = "0"
                return response

            return f(*args, **kwargs)

        return decorated_function

    return decorator
