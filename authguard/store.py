"""
store.py — User store
=====================
Data access for user rows and their lockout counters.

Every mutation is a single UPDATE whose arithmetic runs inside the
database, so concurrent requests never race through an application-level
read-modify-write. Any SQLAlchemy failure is re-raised as StoreError and
the surrounding transaction is rolled back, so no operation partially
applies.

Only active users are visible to the username/id lookups.
"""
from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Iterator, Optional

from sqlalchemy import or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .database import db_session
from .errors import StoreError
from .models import User


@dataclass(frozen=True)
class LockInfo:
    is_locked: bool = False
    locked_until: Optional[datetime] = None
    failed_login_attempts: int = 0


@dataclass(frozen=True)
class PublicUser:
    """A user row without its credential material."""
    id: int
    username: str
    created_at: Optional[datetime] = None
    last_login: Optional[datetime] = None


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _to_db(dt: datetime) -> datetime:
    # SQLite stores naive UTC datetimes; strip tzinfo before binding
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


def _from_db(dt: Optional[datetime]) -> Optional[datetime]:
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


@contextmanager
def _store_session(operation: str) -> Iterator[Session]:
    try:
        with db_session() as session:
            yield session
    except SQLAlchemyError as exc:
        raise StoreError(f"User store operation '{operation}' failed: {exc}") from exc


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------

def has_any_user() -> bool:
    """True when at least one user row exists, active or not."""
    with _store_session("has_any_user") as session:
        return session.execute(select(User.id).limit(1)).first() is not None


def find_active_by_username(username: str) -> Optional[User]:
    with _store_session("find_active_by_username") as session:
        return session.execute(
            select(User).where(User.username == username, User.is_active.is_(True))
        ).scalar_one_or_none()


def find_active_by_id(user_id: int) -> Optional[PublicUser]:
    with _store_session("find_active_by_id") as session:
        row = session.execute(
            select(User.id, User.username, User.created_at, User.last_login)
            .where(User.id == user_id, User.is_active.is_(True))
        ).first()
    if row is None:
        return None
    return PublicUser(
        id=row.id,
        username=row.username,
        created_at=_from_db(row.created_at),
        last_login=_from_db(row.last_login),
    )


def get_lock_info(user_id: int) -> LockInfo:
    """
    Return the lockout fields for a user.

    An unknown id yields an unlocked, zeroed LockInfo rather than an error,
    so callers can tell "no such user" apart from a storage failure.
    """
    with _store_session("get_lock_info") as session:
        row = session.execute(
            select(User.is_locked, User.locked_until, User.failed_login_attempts)
            .where(User.id == user_id)
        ).first()
    if row is None:
        return LockInfo()
    return LockInfo(
        is_locked=bool(row.is_locked),
        locked_until=_from_db(row.locked_until),
        failed_login_attempts=row.failed_login_attempts or 0,
    )


# ---------------------------------------------------------------------------
# Mutations
# ---------------------------------------------------------------------------

def create_user(username: str, password_hash: str) -> PublicUser:
    with _store_session("create_user") as session:
        user = User(username=username, password_hash=password_hash, is_active=True)
        session.add(user)
        session.flush()
        return PublicUser(id=user.id, username=user.username, created_at=_from_db(user.created_at))


def update_last_login(user_id: int, now: Optional[datetime] = None) -> None:
    with _store_session("update_last_login") as session:
        session.execute(
            update(User)
            .where(User.id == user_id)
            .values(last_login=_to_db(now or utcnow()))
            .execution_options(synchronize_session=False)
        )


def increment_failed_attempts(user_id: int, now: Optional[datetime] = None) -> int:
    """
    Add one to the failure counter, stamp last_failed_attempt, and return
    the new count (0 if the id does not exist).
    """
    stmt = (
        update(User)
        .where(User.id == user_id)
        .values(
            failed_login_attempts=User.failed_login_attempts + 1,
            last_failed_attempt=_to_db(now or utcnow()),
        )
        .execution_options(synchronize_session=False)
    )
    with _store_session("increment_failed_attempts") as session:
        if session.get_bind().dialect.update_returning:
            count = session.execute(stmt.returning(User.failed_login_attempts)).scalar_one_or_none()
        else:
            # Same transaction, so the re-read sees this statement's write
            session.execute(stmt)
            count = session.execute(
                select(User.failed_login_attempts).where(User.id == user_id)
            ).scalar_one_or_none()
    return count or 0


def clear_failed_attempts(user_id: int) -> None:
    with _store_session("clear_failed_attempts") as session:
        session.execute(
            update(User)
            .where(User.id == user_id)
            .values(failed_login_attempts=0, last_failed_attempt=None)
            .execution_options(synchronize_session=False)
        )


def lock(user_id: int, duration_minutes: int, now: Optional[datetime] = None) -> datetime:
    """Lock the account for ``duration_minutes``; returns the expiry."""
    locked_until = (now or utcnow()) + timedelta(minutes=duration_minutes)
    with _store_session("lock") as session:
        session.execute(
            update(User)
            .where(User.id == user_id)
            .values(is_locked=True, locked_until=_to_db(locked_until))
            .execution_options(synchronize_session=False)
        )
    return _from_db(_to_db(locked_until))


def unlock(user_id: int) -> None:
    """Clear the lock and the failure counter unconditionally."""
    with _store_session("unlock") as session:
        session.execute(
            update(User)
            .where(User.id == user_id)
            .values(is_locked=False, locked_until=None, failed_login_attempts=0, last_failed_attempt=None)
            .execution_options(synchronize_session=False)
        )


def unlock_if_expired(user_id: int, now: Optional[datetime] = None) -> bool:
    """
    Unlock only if the row is still locked and its expiry has passed.

    Returns True when this call performed the unlock. Repeated or concurrent
    calls are harmless: the first one wins and the rest match no row. A lock
    set again after expiry is never cleared by a stale caller.
    """
    cutoff = _to_db(now or utcnow())
    with _store_session("unlock_if_expired") as session:
        result = session.execute(
            update(User)
            .where(
                User.id == user_id,
                User.is_locked.is_(True),
                or_(User.locked_until.is_(None), User.locked_until <= cutoff),
            )
            .values(is_locked=False, locked_until=None, failed_login_attempts=0, last_failed_attempt=None)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount > 0
