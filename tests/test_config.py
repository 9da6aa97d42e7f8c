import pytest
from pydantic import ValidationError

from authguard.config import Settings


def test_defaults_match_lockout_policy():
    s = Settings()
    assert s.lockout_threshold == 5
    assert s.lockout_duration_minutes == 30
    assert s.login_rate_limit_attempts == 5
    assert s.login_rate_limit_window_minutes == 15
    assert s.rate_limit_storage_uri == "memory://"


def test_env_overrides(monkeypatch):
    monkeypatch.setenv("AUTHGUARD_LOCKOUT_THRESHOLD", "3")
    monkeypatch.setenv("AUTHGUARD_LOCKOUT_DURATION_MINUTES", "10")
    s = Settings()
    assert s.lockout_threshold == 3
    assert s.lockout_duration_minutes == 10


def test_default_jwt_secret_refused_outside_development():
    with pytest.raises(ValidationError):
        Settings(environment="production")


def test_non_positive_thresholds_refused():
    with pytest.raises(ValidationError):
        Settings(lockout_threshold=0)
