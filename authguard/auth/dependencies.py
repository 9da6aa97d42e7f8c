from __future__ import annotations

from fastapi import HTTPException, Security, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError

from .core import decode_token
from .. import store
from ..store import PublicUser

bearer_scheme = HTTPBearer(auto_error=False)


def get_current_user(
    bearer: HTTPAuthorizationCredentials | None = Security(bearer_scheme),
) -> PublicUser:
    """Resolve ``Authorization: Bearer <jwt>`` to an active user or raise 401."""
    if not bearer or not bearer.credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="No credentials provided.",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        payload = decode_token(bearer.credentials)
        user_id = int(payload.get("sub", ""))
    except (JWTError, ValueError):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED,
                            detail="Invalid or expired token.")

    user = store.find_active_by_id(user_id)
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED,
                            detail="User not found or inactive.")
    return user
