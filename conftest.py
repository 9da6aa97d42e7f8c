"""
pytest configuration – point the service at a throwaway SQLite database,
create tables once, and reset user rows and rate-limit windows between tests.
"""
import os
import tempfile

_DB_DIR = tempfile.mkdtemp(prefix="authguard-tests-")
os.environ.setdefault("AUTHGUARD_DATABASE_URL", f"sqlite:///{os.path.join(_DB_DIR, 'test.db')}")
os.environ.setdefault("AUTHGUARD_BCRYPT_ROUNDS", "4")
os.environ.setdefault("AUTHGUARD_LOG_FORMAT", "text")

import pytest  # noqa: E402

from authguard.database import Base, db_session, engine  # noqa: E402
from authguard import models  # noqa: E402,F401 – registers ORM mappings with Base.metadata
from authguard.main import app  # noqa: E402,F401
from authguard.rate_limit import limiter, login_limiter  # noqa: E402


@pytest.fixture(autouse=True, scope="session")
def create_tables():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def clean_state():
    with db_session() as session:
        session.query(models.User).delete()
    login_limiter.reset()
    limiter.reset()
    yield
