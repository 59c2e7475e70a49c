"""
Authentication dependencies for FastAPI.
"""
import logging

from fastapi import Request, HTTPException, status

from .models import Principal

logger = logging.getLogger(__name__)


async def get_current_principal(request: Request) -> Principal:
    """
    Get the caller from request state.
    Raises 401 if no user_id in request.
    """
    user_id = getattr(request.state, "user_id", None)

    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={
                "error": "Authentication required",
                "code": "AUTH_REQUIRED",
                "message": "Missing X-User-Id header",
            },
        )

    account_id = getattr(request.state, "account_id", None) or user_id
    return Principal(user_id=user_id, account_id=account_id)


async def require_auth(request: Request) -> Principal:
    """
    Dependency that requires an authenticated caller.
    Alias for get_current_principal.
    """
    return await get_current_principal(request)
