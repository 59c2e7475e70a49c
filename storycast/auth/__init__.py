"""
Authentication Module.
Header auth via X-User-Id / X-Account-Id.
"""
from .models import Principal
from .middleware import AuthMiddleware
from .dependencies import get_current_principal, require_auth

__all__ = [
    "Principal",
    "AuthMiddleware",
    "get_current_principal",
    "require_auth",
]
