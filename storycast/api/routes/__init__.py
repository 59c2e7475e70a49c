"""
API Routes.
"""
from .health import router as health_router
from .episodes import router as episodes_router

__all__ = [
    "health_router",
    "episodes_router",
]
