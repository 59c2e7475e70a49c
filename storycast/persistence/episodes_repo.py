"""
SQLite Episode Repository.
"""
import json
import logging
from datetime import datetime
from typing import Optional, List

from .database import get_connection
from storycast.domain.models import Episode, EpisodeStatus, StateCard

logger = logging.getLogger(__name__)


class EpisodeRepository:
    """Episode records and their canonical state card."""

    def create(self, episode: Episode) -> Episode:
        conn = get_connection()
        conn.execute(
            """
            INSERT INTO episodes (
                id, account_id, created_by, title, premise, state_card, status,
                total_scenes, total_choices, created_at, updated_at, completed_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                episode.id,
                episode.account_id,
                episode.created_by,
                episode.title,
                episode.premise,
                json.dumps(episode.state_card.to_dict()),
                episode.status.value,
                episode.total_scenes,
                episode.total_choices,
                episode.created_at.isoformat(),
                episode.updated_at.isoformat(),
                episode.completed_at.isoformat() if episode.completed_at else None,
            )
        )
        logger.debug(f"Created episode {episode.id} for account {episode.account_id}")
        return episode

    def get(self, episode_id: str) -> Optional[Episode]:
        conn = get_connection()
        row = conn.execute("SELECT * FROM episodes WHERE id = ?", (episode_id,)).fetchone()
        return self._row_to_record(row) if row else None

    def list_for_account(self, account_id: str, limit: int = 50) -> List[Episode]:
        conn = get_connection()
        rows = conn.execute(
            """
            SELECT * FROM episodes
            WHERE account_id = ?
            ORDER BY created_at DESC
            LIMIT ?
            """,
            (account_id, limit)
        ).fetchall()
        return [self._row_to_record(row) for row in rows]

    def update_progress(
        self,
        episode_id: str,
        state_card: StateCard,
        total_scenes: int,
        total_choices: int,
    ) -> None:
        """Replace the state card and counters."""
        conn = get_connection()
        conn.execute(
            """
            UPDATE episodes
            SET state_card = ?, total_scenes = ?, total_choices = ?, updated_at = ?
            WHERE id = ?
            """,
            (
                json.dumps(state_card.to_dict()),
                total_scenes,
                total_choices,
                datetime.utcnow().isoformat(),
                episode_id,
            )
        )

    def set_status(
        self,
        episode_id: str,
        status: EpisodeStatus,
        completed_at: Optional[datetime] = None,
    ) -> None:
        conn = get_connection()
        conn.execute(
            """
            UPDATE episodes
            SET status = ?, completed_at = ?, updated_at = ?
            WHERE id = ?
            """,
            (
                status.value,
                completed_at.isoformat() if completed_at else None,
                datetime.utcnow().isoformat(),
                episode_id,
            )
        )
        logger.info(f"Episode {episode_id} status -> {status.value}")

    def _row_to_record(self, row) -> Episode:
        return Episode(
            id=row["id"],
            account_id=row["account_id"],
            created_by=row["created_by"],
            title=row["title"],
            premise=row["premise"],
            state_card=StateCard.from_dict(json.loads(row["state_card"])),
            status=EpisodeStatus(row["status"]),
            total_scenes=row["total_scenes"],
            total_choices=row["total_choices"],
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
            completed_at=datetime.fromisoformat(row["completed_at"]) if row["completed_at"] else None,
        )


_repository: Optional[EpisodeRepository] = None


def get_episode_repository() -> EpisodeRepository:
    global _repository
    if _repository is None:
        _repository = EpisodeRepository()
    return _repository
