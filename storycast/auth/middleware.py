"""
Authentication Middleware.
Single source of truth for auth.
Extracts user_id and account_id from headers.
"""
import logging
from typing import Callable, Set, Optional

from fastapi import status
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response, JSONResponse

logger = logging.getLogger(__name__)

USER_ID_HEADER = "X-User-Id"
ACCOUNT_ID_HEADER = "X-Account-Id"


class AuthMiddleware(BaseHTTPMiddleware):
    """
    Authentication middleware.

    - X-User-Id is required outside the excluded paths
    - X-Account-Id defaults to the user id (single-user accounts)
    """

    EXCLUDED_PATHS: Set[str] = {
        "/",
        "/health",
        "/health/live",
        "/health/ready",
        "/health/config",
        "/docs",
        "/redoc",
        "/openapi.json",
        "/favicon.ico",
    }

    EXCLUDED_PREFIXES: tuple = (
        "/media",
    )

    def __init__(
        self,
        app,
        excluded_paths: Optional[Set[str]] = None,
        require_auth: bool = True,
    ):
        super().__init__(app)
        self.excluded_paths = excluded_paths or self.EXCLUDED_PATHS
        self.require_auth = require_auth

        logger.info(f"AuthMiddleware initialized: require_auth={require_auth}")

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """Process request and extract user_id/account_id."""
        path = request.url.path

        if self._is_excluded_path(path):
            request.state.user_id = None
            request.state.account_id = None
            return await call_next(request)

        user_id = (request.headers.get(USER_ID_HEADER) or "").strip() or None
        account_id = (request.headers.get(ACCOUNT_ID_HEADER) or "").strip() or user_id

        request.state.user_id = user_id
        request.state.account_id = account_id

        if not user_id and self.require_auth:
            logger.warning(f"Missing auth: {request.method} {path}")
            return JSONResponse(
                status_code=status.HTTP_401_UNAUTHORIZED,
                content={
                    "error": "Authentication required",
                    "detail": f"Missing {USER_ID_HEADER} header",
                    "code": "AUTH_REQUIRED",
                    "status_code": status.HTTP_401_UNAUTHORIZED,
                    "retryable": False,
                },
            )

        return await call_next(request)

    def _is_excluded_path(self, path: str) -> bool:
        """Check if path is excluded from auth."""
        if path in self.excluded_paths:
            return True
        return any(path.startswith(prefix) for prefix in self.EXCLUDED_PREFIXES)


__all__ = ["AuthMiddleware", "USER_ID_HEADER", "ACCOUNT_ID_HEADER"]
