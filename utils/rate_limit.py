"""
Per-IP sliding-window rate limiting.

Limiters are created by the app factory and stored in
app.extensions["rate_limiters"] under a scope name ("auth", "api").
"""
from __future__ import annotations

import threading
import time
from collections import defaultdict, deque
from functools import wraps

from flask import Request, current_app, request

from utils.errors import TooManyRequests


class SlidingWindowRateLimiter:
    def __init__(self, limit: int, window_seconds: float, clock=time.monotonic) -> None:
        self.limit = max(1, int(limit))
        self.window = max(0.1, float(window_seconds))
        self._clock = clock
        self._hits: dict[str, deque[float]] = defaultdict(deque)
        self._lock = threading.Lock()

    def allow(self, key: str) -> bool:
        now = self._clock()
        with self._lock:
            hits = self._hits[key]
            # Drop hits that left the window
            while hits and (now - hits[0]) >= self.window:
                hits.popleft()
            if len(hits) >= self.limit:
                return False
            hits.append(now)
            return True

    def reset(self) -> None:
        with self._lock:
            self._hits.clear()


def client_ip(req: Request) -> str:
    # Forwarded headers are applied by ProxyFix only when TRUSTED_PROXY_COUNT is set
    return req.remote_addr or "unknown"


def check_rate_limit(scope: str, key: str) -> None:
    """Raise TooManyRequests when the scope's limiter rejects the key."""
    if not current_app.config.get("RATE_LIMIT_ENABLED", True):
        return
    limiter = current_app.extensions["rate_limiters"][scope]
    if not limiter.allow(key):
        raise TooManyRequests()


def rate_limited(scope: str = "auth"):
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            check_rate_limit(scope, f"{request.endpoint}:{client_ip(request)}")
            return fn(*args, **kwargs)

        return wrapper

    return decorator
