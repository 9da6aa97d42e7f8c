"""
lockout.py — Account lockout guard and failure tracker
=======================================================
Per-account brute-force protection, consulted around the credential check:

    guard:    check(username)          before the password is verified
    tracker:  record_failure(username) after a bad password
              record_success(user_id)  after a good one

Lock expiry is evaluated lazily at request time. There is no sweeper:
``check`` notices an expired lock and performs the unlock itself through
``unlock_if_expired``, which is safe to run any number of times.

``check`` propagates StoreError and leaves the open/closed decision to its
caller. The tracker entry points log and swallow StoreError, because
failing to record a failure must never make login itself unavailable.

Races between a success reset and a concurrent failure increment resolve
last-write-wins. Lockout is a defence-in-depth heuristic, not a hard
security boundary.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from . import store
from .config import settings
from .errors import LOCKOUT_TRIGGERED_MESSAGE, StoreError
from .store import LockInfo

logger = logging.getLogger("authguard.lockout")

_MINUTE = timedelta(minutes=1)


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class LockDecision:
    """Outcome of the pre-authentication guard."""
    allowed: bool
    remaining_minutes: Optional[int] = None
    unlocked: bool = False


ALLOW = LockDecision(allowed=True)


@dataclass(frozen=True)
class FailureResult:
    locked: bool
    attempts: int
    remaining: Optional[int] = None
    message: Optional[str] = None


# ---------------------------------------------------------------------------
# Pure helpers
# ---------------------------------------------------------------------------

def is_expired(locked_until: Optional[datetime], now: datetime) -> bool:
    """A lock with no expiry on record is treated as already expired."""
    return locked_until is None or locked_until <= now


def minutes_remaining(locked_until: datetime, now: datetime) -> int:
    """Whole minutes until expiry, rounded up (9m01s -> 10)."""
    remaining = locked_until - now
    whole, rest = divmod(remaining, _MINUTE)
    return whole + 1 if rest else whole


def _rejected(locked_until: datetime, now: datetime) -> LockDecision:
    return LockDecision(allowed=False, remaining_minutes=minutes_remaining(locked_until, now))


# ---------------------------------------------------------------------------
# Guard + tracker
# ---------------------------------------------------------------------------

class AccountLockout:
    """Lockout policy. Threshold and duration default to the settings."""

    def __init__(
        self,
        threshold: Optional[int] = None,
        duration_minutes: Optional[int] = None,
    ) -> None:
        if threshold is None:
            threshold = settings.lockout_threshold
        if duration_minutes is None:
            duration_minutes = settings.lockout_duration_minutes
        if threshold < 1 or duration_minutes < 1:
            raise ValueError("lockout threshold and duration must be positive integers")
        self.threshold = threshold
        self.duration_minutes = duration_minutes

    # -- guard --------------------------------------------------------------

    def check(self, username: Optional[str], now: Optional[datetime] = None) -> LockDecision:
        """
        Decide whether a login attempt for ``username`` may proceed.

        Blank usernames and unknown users are allowed through, so the
        response never reveals whether an account exists. Raises StoreError.
        """
        if not username or not username.strip():
            return ALLOW

        user = store.find_active_by_username(username)
        if user is None:
            return ALLOW

        now = now or store.utcnow()
        info = store.get_lock_info(user.id)
        if not info.is_locked:
            return ALLOW
        return self.unlock_if_expired(user.id, info, now)

    def unlock_if_expired(self, user_id: int, info: LockInfo, now: datetime) -> LockDecision:
        """
        Lift an expired lock. Safe to call repeatedly or concurrently.

        When the conditional unlock matches nothing, the row changed after
        ``info`` was read: it is re-read so a lock set in the meantime is
        still enforced.
        """
        if info.is_locked and not is_expired(info.locked_until, now):
            return _rejected(info.locked_until, now)
        if store.unlock_if_expired(user_id, now):
            logger.info("Lock on user %s expired; account unlocked", user_id)
            return LockDecision(allowed=True, unlocked=True)

        current = store.get_lock_info(user_id)
        if current.is_locked and not is_expired(current.locked_until, now):
            return _rejected(current.locked_until, now)
        return LockDecision(allowed=True, unlocked=True)

    # -- tracker ------------------------------------------------------------

    def record_failure(
        self,
        username: Optional[str],
        now: Optional[datetime] = None,
    ) -> Optional[FailureResult]:
        """
        Count a failed password check. Locks the account once the count
        reaches the threshold. Returns None for unknown users or when the
        store is unavailable.
        """
        if not username:
            return None
        try:
            user = store.find_active_by_username(username)
            if user is None:
                return None

            attempts = store.increment_failed_attempts(user.id, now)
            if attempts >= self.threshold:
                store.lock(user.id, self.duration_minutes, now)
                logger.warning(
                    "Locked user %r for %d minutes after %d failed attempts",
                    username, self.duration_minutes, attempts,
                )
                return FailureResult(locked=True, attempts=attempts, message=LOCKOUT_TRIGGERED_MESSAGE)

            return FailureResult(locked=False, attempts=attempts, remaining=self.threshold - attempts)
        except StoreError:
            logger.warning("Failed login tracking error for %r", username, exc_info=True)
            return None

    def record_success(self, user_id: int, now: Optional[datetime] = None) -> None:
        """Reset the failure counter and stamp the login time."""
        try:
            store.clear_failed_attempts(user_id)
        except StoreError:
            logger.warning("Clear failed attempts error for user %s", user_id, exc_info=True)
        try:
            store.update_last_login(user_id, now)
        except StoreError:
            logger.warning("Last login update error for user %s", user_id, exc_info=True)


lockout = AccountLockout()
