from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Boolean, DateTime, Integer, String, false
from sqlalchemy.orm import Mapped, mapped_column

from .database import Base


class User(Base):
    """
    Login principal plus its lockout bookkeeping.

    Rows are soft-deleted (``is_active = False``) and never removed; every
    lookup on the login path filters on ``is_active``.
    """

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    username: Mapped[str] = mapped_column(String(256), unique=True, index=True)
    password_hash: Mapped[str] = mapped_column(String(256))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=lambda: datetime.now(timezone.utc))
    last_login: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    # Lockout state
    failed_login_attempts: Mapped[int] = mapped_column(Integer, default=0, server_default="0")
    last_failed_attempt: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    is_locked: Mapped[bool] = mapped_column(Boolean, default=False, server_default=false())
    locked_until: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
