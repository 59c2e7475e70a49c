"""
Shared dependencies for API routes.
"""
import logging

from storycast.persistence import get_connection
from storycast.services.agents.orchestrator import EpisodeOrchestrator, get_orchestrator

logger = logging.getLogger(__name__)


def get_episode_orchestrator() -> EpisodeOrchestrator:
    """Get the shared EpisodeOrchestrator instance."""
    return get_orchestrator()


def check_database_connection() -> bool:
    """Check if the SQLite database is accessible."""
    try:
        get_connection().execute("SELECT 1").fetchone()
        return True
    except Exception as e:
        logger.warning(f"Database connection check failed: {e}")
        return False
