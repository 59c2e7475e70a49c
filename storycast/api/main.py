"""
FastAPI Application - Interactive Episode API.
"""
import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from storycast import __version__
from storycast.auth import AuthMiddleware
from storycast.providers.exceptions import ProviderError
from storycast.services.agents.exceptions import EpisodeError

from .routes import health_router, episodes_router
from .exceptions import (
    APIError,
    api_error_handler,
    episode_error_handler,
    provider_error_handler,
    generic_exception_handler,
)

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """Application lifespan handler."""
    logger.info("=" * 60)
    logger.info("Starting Storycast API...")
    logger.info("=" * 60)

    from storycast.config import config
    config.log_status()

    from storycast.persistence import get_connection, close_connection
    get_connection()

    logger.info("=" * 60)
    logger.info("Server ready! Start an episode with POST /api/episodes")
    logger.info("=" * 60)

    yield

    logger.info("Shutting down Storycast API...")
    from storycast.services.agents.orchestrator import shutdown_orchestrator
    await shutdown_orchestrator()
    close_connection()


def create_app(
    debug: bool = False,
    require_auth: bool = True,
) -> FastAPI:
    """Create and configure FastAPI application."""
    from storycast.config import config

    app = FastAPI(
        title="Storycast API",
        description="Interactive choose-your-own-adventure audio episodes",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
        debug=debug or config.debug,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_middleware(AuthMiddleware, require_auth=require_auth)

    app.add_exception_handler(APIError, api_error_handler)
    app.add_exception_handler(EpisodeError, episode_error_handler)
    app.add_exception_handler(ProviderError, provider_error_handler)
    app.add_exception_handler(Exception, generic_exception_handler)

    app.include_router(health_router)
    app.include_router(episodes_router)

    # Generated music and SFX, served from the local blob store root
    audio_dir = config.paths.audio_dir
    audio_dir.mkdir(parents=True, exist_ok=True)
    app.mount("/media", StaticFiles(directory=str(audio_dir)), name="media")
    logger.info(f"Static files mounted: /media -> {audio_dir}")

    return app


app = create_app()
