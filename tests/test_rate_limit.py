"""
tests/test_rate_limit.py — Per-IP login limiter
================================================
"""
import pytest
from limits.storage import MemoryStorage

from authguard.errors import TooManyAttempts
from authguard.rate_limit import LoginRateLimiter

IP_MESSAGE = "Too many login attempts from this IP, please try again after 15 minutes."


@pytest.fixture
def ip_limiter() -> LoginRateLimiter:
    return LoginRateLimiter(attempts=5, window_minutes=15, storage=MemoryStorage())


def test_sixth_attempt_rejected(ip_limiter):
    for _ in range(5):
        ip_limiter.check("10.0.0.1")
        ip_limiter.consume("10.0.0.1")

    with pytest.raises(TooManyAttempts) as exc_info:
        ip_limiter.check("10.0.0.1")
    exc = exc_info.value
    assert exc.status_code == 429
    assert exc.message == IP_MESSAGE
    assert int(exc.headers["Retry-After"]) > 0
    assert exc.headers["RateLimit-Remaining"] == "0"


def test_check_alone_never_consumes(ip_limiter):
    for _ in range(20):
        ip_limiter.check("10.0.0.1")


def test_addresses_are_independent(ip_limiter):
    for _ in range(5):
        ip_limiter.consume("10.0.0.1")
    ip_limiter.check("10.0.0.2")
    with pytest.raises(TooManyAttempts):
        ip_limiter.check("10.0.0.1")


def test_standard_headers_only(ip_limiter):
    ip_limiter.consume("10.0.0.1")
    ip_limiter.consume("10.0.0.1")
    headers = ip_limiter.headers("10.0.0.1")
    assert headers["RateLimit-Limit"] == "5"
    assert headers["RateLimit-Remaining"] == "3"
    assert headers["RateLimit-Policy"] == "5;w=900"
    assert 0 < int(headers["RateLimit-Reset"]) <= 900
    assert not any(name.lower().startswith("x-ratelimit") for name in headers)


def test_message_follows_window():
    short = LoginRateLimiter(attempts=1, window_minutes=2, storage=MemoryStorage())
    short.consume("10.0.0.9")
    with pytest.raises(TooManyAttempts, match="after 2 minutes"):
        short.check("10.0.0.9")


@pytest.mark.parametrize("kwargs", [{"attempts": 0}, {"window_minutes": 0}])
def test_non_positive_limits_refused(kwargs):
    with pytest.raises(ValueError):
        LoginRateLimiter(storage=MemoryStorage(), **kwargs)


def test_reset_clears_windows(ip_limiter):
    for _ in range(5):
        ip_limiter.consume("10.0.0.1")
    ip_limiter.reset()
    ip_limiter.check("10.0.0.1")
