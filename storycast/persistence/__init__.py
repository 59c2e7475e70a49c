"""
Persistence layer: SQLite connection, schema and repositories.
"""
from .database import get_connection, transaction, close_connection, init_schema
from .episodes_repo import EpisodeRepository, get_episode_repository
from .bibles_repo import WorldBibleRepository, get_bible_repository
from .scenes_repo import SceneRepository, get_scene_repository
from .audio_repo import EpisodeAudioRepository, get_audio_repository

__all__ = [
    "get_connection",
    "transaction",
    "close_connection",
    "init_schema",
    "EpisodeRepository",
    "get_episode_repository",
    "WorldBibleRepository",
    "get_bible_repository",
    "SceneRepository",
    "get_scene_repository",
    "EpisodeAudioRepository",
    "get_audio_repository",
]
