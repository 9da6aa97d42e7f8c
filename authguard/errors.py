"""
errors.py — Exception types for the login path
================================================
``StoreError`` is a fault: the backing database could not complete an
operation. Everything under ``AuthError`` is ordinary control flow — a
request rejected for a reason the client is allowed to see. The API layer
renders both as ``{"error": <message>}``.
"""
from __future__ import annotations

from typing import Dict, Optional


class StoreError(Exception):
    """A user store operation failed (connection, constraint, ...)."""


class AuthError(Exception):
    """User-visible rejection of an authentication request."""

    status_code: int = 400

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.headers = headers or {}


ACCOUNT_LOCKED_TEMPLATE = (
    "Account is locked due to too many failed login attempts. "
    "Please try again in {minutes} minutes."
)
LOCKOUT_TRIGGERED_MESSAGE = "Account has been locked due to too many failed login attempts."


class AccountLocked(AuthError):
    status_code = 429

    def __init__(self, remaining_minutes: int) -> None:
        super().__init__(ACCOUNT_LOCKED_TEMPLATE.format(minutes=remaining_minutes))
        self.remaining_minutes = remaining_minutes


class TooManyAttempts(AuthError):
    status_code = 429


class InvalidCredentials(AuthError):
    status_code = 401

    def __init__(self, message: str = "Invalid username or password") -> None:
        super().__init__(message)


class MissingCredentials(AuthError):
    status_code = 400

    def __init__(self, message: str = "Username and password are required") -> None:
        super().__init__(message)


class RegistrationClosed(AuthError):
    status_code = 403

    def __init__(self) -> None:
        super().__init__("User already exists. This is a single-user system.")
