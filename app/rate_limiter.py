"""
In-memory fixed-window rate limiting for /api/ routes, keyed by client IP.
"""

import time
from threading import Lock

from flask import abort, request

# {ip: {"count": int, "reset_time": float}}
memory_cache: dict = {}
cache_lock = Lock()


def _client_ip():
    # Behind a proxy, ProxyFix has already rewritten remote_addr from the
    # hops it trusts; client-supplied X-Forwarded-For is never read here
    return request.remote_addr or "unknown"


def check_rate_limit(key, max_requests, window_seconds, now=None):
    """Count one hit for key; False once the window's quota is used up."""
    now = time.time() if now is None else now
    with cache_lock:
        entry = memory_cache.get(key)
        if entry is None or now >= entry["reset_time"]:
            entry = {"count": 0, "reset_time": now + window_seconds}
            memory_cache[key] = entry
        entry["count"] += 1
        return entry["count"] <= max_requests


def cleanup_expired_cache(now=None):
    now = time.time() if now is None else now
    with cache_lock:
        expired = [k for k, v in memory_cache.items() if now >= v["reset_time"]]
        for key in expired:
            del memory_cache[key]
    return len(expired)


def init_rate_limiter(app):
    @app.before_request
    def limit_api_requests():
        if not app.config.get("RATE_LIMIT_ENABLED"):
            return None
        if not request.path.startswith("/api/"):
            return None

        allowed = check_rate_limit(
            _client_ip(),
            app.config.get("RATE_LIMIT_MAX_REQUESTS", 100),
            app.config.get("RATE_LIMIT_WINDOW_SECONDS", 900),
        )
        if not allowed:
            abort(429)
        return None
