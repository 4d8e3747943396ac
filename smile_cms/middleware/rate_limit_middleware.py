# Rate limiting middleware: sliding window per client IP and route class
import logging
import math
import re
import time
from collections import deque
from typing import Deque, Dict, Optional, Tuple

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from ..core.config import AppConfig
from ..core.errors import RateLimitError, application_error_response
from ..services.auth.authentication_service import extract_ip_address

logger = logging.getLogger(__name__)

UPLOAD_PATH = re.compile(r"^/api/units/[^/]+/images/?$")


class RateLimitStore:
    """
    Process-wide request timestamps keyed by ``{ip}:{upload|api}``.

    Lives in memory and resets on restart; several instances need a shared
    counter store instead.
    """

    def __init__(self, sweep_interval: int = 60):
        self._hits: Dict[str, Deque[float]] = {}
        self._windows: Dict[str, int] = {}
        self.sweep_interval = sweep_interval
        self._last_sweep = time.time()

    def __len__(self) -> int:
        return len(self._hits)

    def sweep(self, now: Optional[float] = None) -> int:
        """Forget every key whose hits have all left their window. Returns how many were dropped."""
        now = time.time() if now is None else now
        idle = [key for key, hits in self._hits.items() if not hits or hits[-1] <= now - self._windows[key]]
        for key in idle:
            del self._hits[key]
            del self._windows[key]
        self._last_sweep = now
        return len(idle)

    def hit(self, key: str, limit: int, window_seconds: int, now: Optional[float] = None) -> Tuple[bool, int]:
        """
        Record a request. Returns ``(allowed, retry_after_seconds)``.

        A rejected request is not recorded.
        """
        now = time.time() if now is None else now
        if now - self._last_sweep >= self.sweep_interval:
            self.sweep(now)

        window_start = now - window_seconds
        hits = self._hits.setdefault(key, deque())
        self._windows[key] = window_seconds

        # Clean old entries
        while hits and hits[0] <= window_start:
            hits.popleft()

        if len(hits) >= limit:
            retry_after = max(1, math.ceil(hits[0] + window_seconds - now))
            return False, retry_after

        hits.append(now)
        return True, 0


def classify_request(request: Request) -> str:
    if request.method == "POST" and UPLOAD_PATH.match(request.url.path):
        return "upload"
    return "api"


class RateLimitMiddleware(BaseHTTPMiddleware):
    """20 image uploads per hour and 60 other requests per minute, per client IP."""

    def __init__(self, app, config: AppConfig, store: Optional[RateLimitStore] = None):
        super().__init__(app)
        self.enabled = config.rate_limit_enabled and not config.is_development
        self.limits = {
            "upload": (config.rate_limit_uploads, config.rate_limit_uploads_window_seconds),
            "api": (config.rate_limit_default, config.rate_limit_default_window_seconds),
        }
        self.store = store or RateLimitStore()
        if not self.enabled:
            logger.info("Rate limiting disabled")

    async def dispatch(self, request: Request, call_next):
        if not self.enabled or request.method == "OPTIONS":
            return await call_next(request)

        client_ip = extract_ip_address(request)
        bucket = classify_request(request)
        limit, window = self.limits[bucket]
        key = f"{client_ip}:{bucket}"

        allowed, retry_after = self.store.hit(key, limit, window)
        if not allowed:
            logger.warning(f"Rate limit exceeded for {key}")
            return application_error_response(
                RateLimitError(retry_after, details={"bucket": bucket}),
                headers={"Retry-After": str(retry_after)},
            )

        return await call_next(request)
