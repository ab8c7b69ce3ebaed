"""
Dependencies for FastAPI dependency injection.

The authenticated user is supplied by the host application's authentication
layer, which stores it on ``request.state.user``. The permission engine only
reads it from there.
"""

from typing import Optional

from fastapi import HTTPException, Request, status

from hms_rbac.models.user import User


def get_current_user(request: Request) -> Optional[User]:
    """
    Get the current authenticated user from request state.

    Returns None if not authenticated.
    """
    return getattr(request.state, "user", None)


def get_current_user_or_401(request: Request) -> User:
    """
    Get current authenticated user or raise 401 error.
    """
    user = get_current_user(request)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"}
        )
    return user
