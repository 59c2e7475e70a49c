"""
Application Configuration - Environment Variable Management.
Loads and validates configuration from .env file.
"""
import os
import logging
from pathlib import Path
from dataclasses import dataclass, field
from typing import Optional

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

# Load .env from project root
PROJECT_ROOT = Path(__file__).parent.parent
ENV_FILE = PROJECT_ROOT / ".env"

if ENV_FILE.exists():
    load_dotenv(ENV_FILE)
    logger.info(f"Loaded environment from {ENV_FILE}")
else:
    logger.warning(f".env file not found at {ENV_FILE}")


def _is_real_key(key: Optional[str]) -> bool:
    return bool(key and not key.startswith("PASTE_"))


@dataclass
class AIConfig:
    """Generation provider configuration."""
    openai_api_key: Optional[str] = None
    elevenlabs_api_key: Optional[str] = None
    openai_model: str = "gpt-4o"
    openai_fast_model: str = "gpt-4o-mini"  # Audio directors

    @property
    def has_openai(self) -> bool:
        return _is_real_key(self.openai_api_key)

    @property
    def has_elevenlabs(self) -> bool:
        return _is_real_key(self.elevenlabs_api_key)


@dataclass
class PathsConfig:
    """File system paths configuration."""
    data_dir: Path
    audio_dir: Path

    @classmethod
    def detect(cls) -> "PathsConfig":
        """Resolve paths from environment, creating directories as needed."""
        data_dir = Path(os.getenv("DATA_DIR", str(PROJECT_ROOT / "data")))
        data_dir.mkdir(parents=True, exist_ok=True)

        audio_dir = Path(os.getenv("AUDIO_DIR", str(data_dir / "episode-audio")))
        audio_dir.mkdir(parents=True, exist_ok=True)

        return cls(data_dir=data_dir, audio_dir=audio_dir)


@dataclass
class EpisodeConfig:
    """Episode workflow tuning."""
    generation_timeout_seconds: float = 90.0
    generation_max_attempts: int = 3
    anchor_max_age_scenes: int = 8
    key_facts_cap: int = 10
    audio_max_concurrent: int = 4
    audio_provider: str = "auto"
    scene_duration_estimate_seconds: int = 180


@dataclass
class AppConfig:
    """Main Application Configuration."""
    ai: AIConfig
    paths: PathsConfig
    episodes: EpisodeConfig = field(default_factory=EpisodeConfig)
    database_path: str = "data/app.db"
    debug: bool = False

    def __post_init__(self):
        if self.episodes.key_facts_cap < 1:
            logger.warning("KEY_FACTS_CAP must be positive - falling back to 10")
            self.episodes.key_facts_cap = 10
        if self.episodes.generation_max_attempts < 1:
            logger.warning("GENERATION_MAX_ATTEMPTS must be positive - falling back to 1")
            self.episodes.generation_max_attempts = 1

    def validate(self) -> dict:
        """Validate configuration and return status."""
        return {
            "ai": {
                "openai_configured": self.ai.has_openai,
                "elevenlabs_configured": self.ai.has_elevenlabs,
                "model": self.ai.openai_model,
            },
            "database": {
                "path": self.database_path,
            },
            "episodes": {
                "generation_timeout_seconds": self.episodes.generation_timeout_seconds,
                "anchor_max_age_scenes": self.episodes.anchor_max_age_scenes,
                "key_facts_cap": self.episodes.key_facts_cap,
                "audio_provider": self.episodes.audio_provider,
            },
            "ready_for_episodes": self.ai.has_openai,
        }

    def log_status(self):
        """Log configuration status (without exposing keys)."""
        status = self.validate()

        logger.info("=" * 50)
        logger.info("Configuration Status:")
        logger.info(f"  OpenAI API: {'OK' if status['ai']['openai_configured'] else 'NOT CONFIGURED'}")
        logger.info(f"  ElevenLabs API: {'OK' if status['ai']['elevenlabs_configured'] else 'NOT CONFIGURED'}")
        logger.info(f"  Model: {self.ai.openai_model}")
        logger.info(f"  Database: {self.database_path}")
        logger.info(f"  Audio Dir: {self.paths.audio_dir}")
        logger.info(f"  Audio Provider: {self.episodes.audio_provider}")
        logger.info("=" * 50)

        if not status["ready_for_episodes"]:
            logger.warning("OPENAI_API_KEY not set - episode generation will fail")
        if not status["ai"]["elevenlabs_configured"]:
            logger.warning("ELEVENLABS_API_KEY not set - audio falls back to local silent tracks")


def load_config() -> AppConfig:
    """Load configuration from environment variables."""
    ai_config = AIConfig(
        openai_api_key=os.getenv("OPENAI_API_KEY"),
        elevenlabs_api_key=os.getenv("ELEVENLABS_API_KEY"),
        openai_model=os.getenv("OPENAI_MODEL", "gpt-4o"),
        openai_fast_model=os.getenv("OPENAI_FAST_MODEL", "gpt-4o-mini"),
    )

    episode_config = EpisodeConfig(
        generation_timeout_seconds=float(os.getenv("GENERATION_TIMEOUT_SECONDS", "90")),
        generation_max_attempts=int(os.getenv("GENERATION_MAX_ATTEMPTS", "3")),
        anchor_max_age_scenes=int(os.getenv("ANCHOR_MAX_AGE_SCENES", "8")),
        key_facts_cap=int(os.getenv("KEY_FACTS_CAP", "10")),
        audio_max_concurrent=int(os.getenv("AUDIO_MAX_CONCURRENT", "4")),
        audio_provider=os.getenv("AUDIO_PROVIDER", "auto").lower(),
        scene_duration_estimate_seconds=int(os.getenv("SCENE_DURATION_ESTIMATE_SECONDS", "180")),
    )

    return AppConfig(
        ai=ai_config,
        paths=PathsConfig.detect(),
        episodes=episode_config,
        database_path=os.getenv("DATABASE_PATH", "data/app.db"),
        debug=os.getenv("DEBUG", "false").lower() == "true",
    )


# Global config instance
config = load_config()
