from __future__ import annotations

import sys
from functools import lru_cache
from typing import List

from pydantic import field_validator
from pydantic_settings import BaseSettings


_DEFAULT_JWT_SECRET = "change-me-in-production-use-long-random-string"


class Settings(BaseSettings):
    # Database
    database_url: str = "sqlite:///./authguard.db"
    log_sql: bool = False

    # Server
    environment: str = "development"
    log_level: str = "info"
    log_format: str = "json"  # json | text
    allow_cors_origins: List[str] = ["*"]

    # Session tokens
    jwt_secret: str = _DEFAULT_JWT_SECRET
    jwt_expire_minutes: int = 480  # 8 hours
    bcrypt_rounds: int = 12

    # Account lockout
    lockout_threshold: int = 5
    lockout_duration_minutes: int = 30

    # Per-IP login throttling
    login_rate_limit_attempts: int = 5
    login_rate_limit_window_minutes: int = 15
    rate_limit_storage_uri: str = "memory://"

    # Other endpoints (slowapi)
    registration_rate_limit: str = "3/minute"

    @field_validator("jwt_secret")
    @classmethod
    def validate_jwt_secret(cls, v: str, info) -> str:
        """Refuse to start outside development with the default JWT secret."""
        env = info.data.get("environment", "development")
        if env != "development" and v == _DEFAULT_JWT_SECRET:
            print(
                "\nFATAL: AUTHGUARD_JWT_SECRET is set to the default value.\n"
                "   Set AUTHGUARD_JWT_SECRET to a strong random string before "
                "running in production.\n",
                file=sys.stderr,
            )
            raise ValueError(
                "JWT secret must be changed from default in non-development environments. "
                "Set AUTHGUARD_JWT_SECRET env var."
            )
        return v

    @field_validator("lockout_threshold", "lockout_duration_minutes",
                     "login_rate_limit_attempts", "login_rate_limit_window_minutes")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("must be a positive integer")
        return v

    class Config:
        env_prefix = "AUTHGUARD_"


@lru_cache
def get_settings() -> Settings:
    return Settings()


# Module-level singleton for convenience
settings = get_settings()
