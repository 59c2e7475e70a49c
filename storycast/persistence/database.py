"""
SQLite Database Connection and Schema Management.
"""
import os
import sqlite3
import logging
from pathlib import Path
from threading import Lock
from typing import Optional
from contextlib import contextmanager

logger = logging.getLogger(__name__)

DEFAULT_DATABASE_PATH = "data/app.db"

_connection_lock = Lock()
_connection: Optional[sqlite3.Connection] = None


def get_database_path() -> str:
    """Get database path from environment or default."""
    return os.environ.get("DATABASE_PATH", DEFAULT_DATABASE_PATH)


def get_connection() -> sqlite3.Connection:
    """
    Get or create SQLite connection.
    Thread-safe singleton pattern.
    """
    global _connection

    with _connection_lock:
        if _connection is None:
            db_path = get_database_path()

            parent_dir = Path(db_path).parent
            parent_dir.mkdir(parents=True, exist_ok=True)

            _connection = sqlite3.connect(
                db_path,
                check_same_thread=False,
                isolation_level=None,
            )
            _connection.row_factory = sqlite3.Row

            _connection.execute("PRAGMA journal_mode=WAL")
            _connection.execute("PRAGMA foreign_keys=ON")
            _connection.execute("PRAGMA busy_timeout=5000")

            logger.info(f"SQLite connection established: {db_path}")

            init_schema(_connection)

        return _connection


@contextmanager
def transaction():
    """
    Context manager for database transactions.
    Auto-commits on success, rolls back on exception.
    """
    conn = get_connection()

    conn.execute("BEGIN IMMEDIATE")
    try:
        yield conn
        conn.execute("COMMIT")
    except Exception:
        conn.execute("ROLLBACK")
        raise


def init_schema(conn: sqlite3.Connection) -> None:
    """
    Initialize database schema.
    Creates tables if they don't exist.
    """
    conn.executescript("""
        -- Episodes table
        CREATE TABLE IF NOT EXISTS episodes (
            id TEXT PRIMARY KEY,
            account_id TEXT NOT NULL,
            created_by TEXT NOT NULL,
            title TEXT NOT NULL,
            premise TEXT NOT NULL,
            state_card TEXT NOT NULL DEFAULT '{"story_so_far": "", "key_facts": [], "anchors": []}',
            status TEXT NOT NULL DEFAULT 'active'
                CHECK (status IN ('active', 'completed', 'abandoned')),
            total_scenes INTEGER NOT NULL DEFAULT 0,
            total_choices INTEGER NOT NULL DEFAULT 0,
            created_at TEXT NOT NULL DEFAULT (datetime('now')),
            updated_at TEXT NOT NULL DEFAULT (datetime('now')),
            completed_at TEXT
        );

        -- World bibles: exactly one per episode
        CREATE TABLE IF NOT EXISTS episode_bibles (
            id TEXT PRIMARY KEY,
            episode_id TEXT NOT NULL UNIQUE,
            world_rules TEXT NOT NULL,
            storytelling_guidelines TEXT NOT NULL,
            character_framework TEXT NOT NULL,
            conflict_patterns TEXT NOT NULL,
            audio_direction TEXT NOT NULL,
            story_arc_guidance TEXT NOT NULL,
            consistency_rules TEXT NOT NULL DEFAULT '[]',
            reasoning TEXT NOT NULL,
            created_at TEXT NOT NULL DEFAULT (datetime('now')),
            FOREIGN KEY (episode_id) REFERENCES episodes(id) ON DELETE CASCADE
        );

        -- Realized scenes
        CREATE TABLE IF NOT EXISTS episode_scenes (
            id TEXT PRIMARY KEY,
            episode_id TEXT NOT NULL,
            scene_number INTEGER NOT NULL,
            narration TEXT NOT NULL,
            choice_a TEXT NOT NULL DEFAULT '',
            choice_b TEXT NOT NULL DEFAULT '',
            chosen_option TEXT CHECK (chosen_option IN ('A', 'B')),
            state_update TEXT NOT NULL DEFAULT '[]',
            audio_cues TEXT NOT NULL DEFAULT '[]',
            callback_anchor_id TEXT,
            resolution TEXT,
            created_at TEXT NOT NULL DEFAULT (datetime('now')),
            UNIQUE(episode_id, scene_number),
            FOREIGN KEY (episode_id) REFERENCES episodes(id) ON DELETE CASCADE
        );

        -- Generated audio assets
        CREATE TABLE IF NOT EXISTS episode_audio (
            id TEXT PRIMARY KEY,
            episode_id TEXT NOT NULL,
            scene_id TEXT,
            audio_type TEXT NOT NULL CHECK (audio_type IN ('music', 'sfx')),
            trigger_text TEXT,
            description TEXT,
            audio_url TEXT,
            storage_path TEXT,
            file_size INTEGER,
            mime_type TEXT,
            duration_seconds REAL,
            provider TEXT,
            status TEXT NOT NULL DEFAULT 'pending'
                CHECK (status IN ('pending', 'generating', 'ready', 'failed')),
            error TEXT,
            created_at TEXT NOT NULL DEFAULT (datetime('now')),
            updated_at TEXT NOT NULL DEFAULT (datetime('now')),
            FOREIGN KEY (episode_id) REFERENCES episodes(id) ON DELETE CASCADE
        );

        -- Indexes for performance
        CREATE INDEX IF NOT EXISTS idx_episodes_account_id
            ON episodes(account_id);
        CREATE INDEX IF NOT EXISTS idx_episodes_created_by
            ON episodes(created_by);
        CREATE INDEX IF NOT EXISTS idx_episodes_status
            ON episodes(status);
        CREATE INDEX IF NOT EXISTS idx_episode_scenes_episode_number
            ON episode_scenes(episode_id, scene_number);
        CREATE INDEX IF NOT EXISTS idx_episode_audio_episode_id
            ON episode_audio(episode_id);
        CREATE INDEX IF NOT EXISTS idx_episode_audio_scene_id
            ON episode_audio(scene_id);
        CREATE INDEX IF NOT EXISTS idx_episode_audio_status
            ON episode_audio(status);
    """)

    logger.info("Database schema initialized")


def close_connection() -> None:
    """Close database connection."""
    global _connection

    with _connection_lock:
        if _connection is not None:
            _connection.close()
            _connection = None
            logger.info("SQLite connection closed")
