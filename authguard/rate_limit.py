"""
rate_limit.py — Request rate limiting for authentication endpoints
==================================================================
Two per-IP limiters:

* ``limiter`` is slowapi, decorator-driven. Every request to a decorated
  endpoint counts (registration).
* ``login_limiter`` runs a moving window on ``limits``, the engine under
  slowapi, and is driven by the login route by hand: the gate is tested
  before each attempt and quota is consumed only when the attempt fails.

Window state lives in whatever ``rate_limit_storage_uri`` names. The
default ``memory://`` is per-process: it is lost on restart and is not
shared between server instances. Use a redis:// or memcached:// URI for
a multi-instance deployment.
"""
from __future__ import annotations

import logging
import math
import time
from typing import Dict, Optional

from limits import RateLimitItemPerMinute
from limits.storage import Storage, storage_from_string
from limits.strategies import MovingWindowRateLimiter
from slowapi import Limiter
from slowapi.util import get_remote_address

from .config import settings
from .errors import TooManyAttempts

logger = logging.getLogger("authguard.rate_limit")

limiter = Limiter(key_func=get_remote_address)

_NAMESPACE = "login"


class LoginRateLimiter:
    """Moving-window cap on failed login attempts per client IP."""

    def __init__(
        self,
        attempts: Optional[int] = None,
        window_minutes: Optional[int] = None,
        storage: Optional[Storage] = None,
    ) -> None:
        if attempts is None:
            attempts = settings.login_rate_limit_attempts
        if window_minutes is None:
            window_minutes = settings.login_rate_limit_window_minutes
        if attempts < 1 or window_minutes < 1:
            raise ValueError("login rate limit attempts and window must be positive integers")
        self.attempts = attempts
        self.window_minutes = window_minutes
        self.item = RateLimitItemPerMinute(self.attempts, self.window_minutes)
        if storage is None:
            storage = storage_from_string(settings.rate_limit_storage_uri)
        self.storage = storage
        self.strategy = MovingWindowRateLimiter(self.storage)
        self.message = (
            "Too many login attempts from this IP, please try again after "
            f"{self.window_minutes} minutes."
        )

    def check(self, key: str) -> None:
        """Raise TooManyAttempts when ``key`` has used up its window."""
        if self.strategy.test(self.item, _NAMESPACE, key):
            return
        logger.warning("Login rate limit exceeded for %s", key)
        headers = self.headers(key)
        headers["Retry-After"] = headers["RateLimit-Reset"]
        raise TooManyAttempts(self.message, headers=headers)

    def consume(self, key: str) -> None:
        """Count one failed attempt against ``key``."""
        self.strategy.hit(self.item, _NAMESPACE, key)

    def headers(self, key: str) -> Dict[str, str]:
        """Standard RateLimit-* response headers for ``key``."""
        reset_time, remaining = self.strategy.get_window_stats(self.item, _NAMESPACE, key)
        window_seconds = self.item.get_expiry()
        reset_in = max(0, math.ceil(reset_time - time.time()))
        return {
            "RateLimit-Policy": f"{self.attempts};w={window_seconds}",
            "RateLimit-Limit": str(self.attempts),
            "RateLimit-Remaining": str(max(0, remaining)),
            "RateLimit-Reset": str(reset_in),
        }

    def reset(self) -> None:
        self.storage.reset()


login_limiter = LoginRateLimiter()
