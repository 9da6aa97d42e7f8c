import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request, Response
from pydantic import BaseModel
from slowapi.util import get_remote_address

from .core import authenticate, create_access_token, hash_password
from .dependencies import get_current_user
from .. import store
from ..config import settings
from ..errors import (
    AccountLocked,
    AuthError,
    InvalidCredentials,
    MissingCredentials,
    RegistrationClosed,
    StoreError,
)
from ..lockout import ALLOW, lockout
from ..models import User
from ..rate_limit import limiter, login_limiter
from ..store import PublicUser

logger = logging.getLogger("authguard.auth")

router = APIRouter(prefix="/api/auth", tags=["auth"])


# ---------------------------------------------------------------------------
# Schemas
# ---------------------------------------------------------------------------

class Credentials(BaseModel):
    username: Optional[str] = None
    password: Optional[str] = None


class UserRead(BaseModel):
    id: int
    username: str


class AuthResponse(BaseModel):
    success: bool = True
    user: UserRead
    token: str


class StatusResponse(BaseModel):
    needs_setup: bool
    is_authenticated: bool = False


class LogoutResponse(BaseModel):
    success: bool = True
    message: str = "Logged out successfully"


def _auth_response(user_id: int, username: str) -> AuthResponse:
    return AuthResponse(
        user=UserRead(id=user_id, username=username),
        token=create_access_token(user_id, username),
    )


# ---------------------------------------------------------------------------
# Setup status / first-run registration
# ---------------------------------------------------------------------------

@router.get("/status", response_model=StatusResponse)
def auth_status() -> StatusResponse:
    return StatusResponse(needs_setup=not store.has_any_user())


@router.post("/register", response_model=AuthResponse)
@limiter.limit(settings.registration_rate_limit)
def register(request: Request, body: Credentials) -> AuthResponse:
    """Create the first (and only) account. Closed once any user exists."""
    if not body.username or not body.password:
        raise MissingCredentials()
    if len(body.username) < 3 or len(body.password) < 6:
        raise AuthError("Username must be at least 3 characters, password at least 6 characters")
    if store.has_any_user():
        raise RegistrationClosed()

    user = store.create_user(body.username, hash_password(body.password))
    logger.info("Registered initial user %r", user.username)
    return _auth_response(user.id, user.username)


# ---------------------------------------------------------------------------
# Login
# ---------------------------------------------------------------------------

def _attempt_login(body: Credentials) -> User:
    try:
        decision = lockout.check(body.username)
    except StoreError:
        # Fail open: a storage fault while reading lock state must not lock
        # every account out. The IP limiter has already been applied and the
        # credential lookup below still fails closed.
        logger.warning("Account lockout check failed for %r; allowing attempt",
                       body.username, exc_info=True)
        decision = ALLOW

    if not decision.allowed:
        raise AccountLocked(decision.remaining_minutes)

    if not body.username or not body.password:
        raise MissingCredentials()

    user = authenticate(body.username, body.password)
    if user is None:
        result = lockout.record_failure(body.username)
        if result is not None and result.locked:
            raise AuthError(result.message, status_code=429)
        raise InvalidCredentials()

    lockout.record_success(user.id)
    return user


@router.post("/login", response_model=AuthResponse)
def login(request: Request, response: Response, body: Credentials) -> AuthResponse:
    client_ip = get_remote_address(request)
    login_limiter.check(client_ip)

    # Only unsuccessful attempts consume IP quota
    try:
        user = _attempt_login(body)
    except AuthError as exc:
        login_limiter.consume(client_ip)
        exc.headers.update(login_limiter.headers(client_ip))
        raise
    except Exception:
        login_limiter.consume(client_ip)
        raise

    response.headers.update(login_limiter.headers(client_ip))
    return _auth_response(user.id, user.username)


# ---------------------------------------------------------------------------
# Session
# ---------------------------------------------------------------------------

@router.get("/user", response_model=UserRead)
def current_user(user: PublicUser = Depends(get_current_user)) -> UserRead:
    return UserRead(id=user.id, username=user.username)


@router.post("/logout", response_model=LogoutResponse)
def logout(_user: PublicUser = Depends(get_current_user)) -> LogoutResponse:
    # Tokens are stateless; the client discards its copy
    return LogoutResponse()
