"""
SQLite World Bible Repository.

At most one bible per episode, enforced by a UNIQUE episode_id column.
"""
import json
import logging
import uuid
from datetime import datetime
from typing import Optional

from .database import get_connection
from storycast.domain.schemas import WorldBible

logger = logging.getLogger(__name__)

_SECTIONS = (
    "world_rules",
    "storytelling_guidelines",
    "character_framework",
    "conflict_patterns",
    "audio_direction",
    "story_arc_guidance",
    "consistency_rules",
)


class WorldBibleRepository:
    """Stores each episode's World Bible."""

    def get(self, episode_id: str) -> Optional[WorldBible]:
        conn = get_connection()
        row = conn.execute(
            "SELECT * FROM episode_bibles WHERE episode_id = ?",
            (episode_id,)
        ).fetchone()
        return self._row_to_record(row) if row else None

    def insert_if_absent(self, episode_id: str, bible: WorldBible) -> WorldBible:
        """
        Store ``bible`` unless the episode already has one.

        Returns:
            The bible that is stored for the episode afterwards
        """
        conn = get_connection()
        data = bible.model_dump(mode="json")
        cursor = conn.execute(
            f"""
            INSERT INTO episode_bibles (id, episode_id, {", ".join(_SECTIONS)}, reasoning, created_at)
            VALUES (?, ?, {", ".join("?" for _ in _SECTIONS)}, ?, ?)
            ON CONFLICT(episode_id) DO NOTHING
            """,
            (
                str(uuid.uuid4()),
                episode_id,
                *(json.dumps(data[section]) for section in _SECTIONS),
                bible.reasoning,
                datetime.utcnow().isoformat(),
            )
        )

        if cursor.rowcount == 0:
            logger.info(f"World Bible already stored for episode {episode_id} - keeping existing")
            return self.get(episode_id)

        logger.debug(f"Stored World Bible for episode {episode_id}")
        return bible

    def count(self, episode_id: str) -> int:
        conn = get_connection()
        row = conn.execute(
            "SELECT COUNT(*) as cnt FROM episode_bibles WHERE episode_id = ?",
            (episode_id,)
        ).fetchone()
        return row["cnt"] if row else 0

    def _row_to_record(self, row) -> WorldBible:
        data = {section: json.loads(row[section]) for section in _SECTIONS}
        data["reasoning"] = row["reasoning"]
        return WorldBible.model_validate(data)


_repository: Optional[WorldBibleRepository] = None


def get_bible_repository() -> WorldBibleRepository:
    global _repository
    if _repository is None:
        _repository = WorldBibleRepository()
    return _repository
