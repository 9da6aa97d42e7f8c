from __future__ import annotations

import logging
from contextlib import contextmanager

from sqlalchemy import create_engine, inspect as sa_inspect, text
from sqlalchemy.orm import sessionmaker, DeclarativeBase, Session

from .config import settings

log = logging.getLogger("authguard.migrations")


class Base(DeclarativeBase):
    pass


engine = create_engine(
    settings.database_url,
    echo=settings.log_sql,
    future=True,
    connect_args={"check_same_thread": False} if "sqlite" in settings.database_url else {},
)

SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)


@contextmanager
def db_session():
    """Context-manager style session with automatic commit/rollback."""
    session: Session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


# ---------------------------------------------------------------------------
# Schema bootstrap
# ---------------------------------------------------------------------------

# Columns added after the first release of the users table. create_all()
# never alters an existing table, so older databases get them here.
_ADDITIONS = {
    "users": [
        ("failed_login_attempts", "INTEGER NOT NULL DEFAULT 0"),
        ("last_failed_attempt", "TIMESTAMP"),
        ("is_locked", "BOOLEAN NOT NULL DEFAULT FALSE"),
        ("locked_until", "TIMESTAMP"),
        ("last_login", "TIMESTAMP"),
    ],
}


def _run_migrations() -> None:
    """Add any columns introduced after the initial schema."""
    inspector = sa_inspect(engine)

    with engine.connect() as conn:
        for table, columns in _ADDITIONS.items():
            if not inspector.has_table(table):
                continue
            existing = {c["name"] for c in inspector.get_columns(table)}
            for col_name, col_type in columns:
                if col_name in existing:
                    continue
                stmt = f"ALTER TABLE {table} ADD COLUMN {col_name} {col_type}"
                try:
                    conn.execute(text(stmt))
                    conn.commit()
                    log.info("Migration: added %s.%s (%s)", table, col_name, col_type)
                except Exception as exc:
                    conn.rollback()
                    log.debug("Migration skip %s.%s: %s", table, col_name, exc)


def init_db() -> None:
    """Create missing tables, then bring existing ones up to date."""
    from . import models  # noqa: F401 – registers ORM mappings with Base.metadata

    Base.metadata.create_all(bind=engine)
    try:
        _run_migrations()
    except Exception as exc:
        log.warning("Migration pass failed: %s", exc)
