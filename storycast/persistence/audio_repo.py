"""
SQLite Episode Audio Repository.

Rows move pending -> generating -> ready | failed.
"""
import logging
import uuid
from datetime import datetime
from typing import Optional, List

from .database import get_connection
from storycast.domain.models import AudioStatus, AudioType, EpisodeAudio

logger = logging.getLogger(__name__)


class EpisodeAudioRepository:
    """Generated audio asset records."""

    def create_pending(
        self,
        episode_id: str,
        audio_type: AudioType,
        scene_id: Optional[str] = None,
        trigger_text: Optional[str] = None,
        description: Optional[str] = None,
    ) -> EpisodeAudio:
        conn = get_connection()
        now = datetime.utcnow()
        record = EpisodeAudio(
            id=str(uuid.uuid4()),
            episode_id=episode_id,
            scene_id=scene_id,
            audio_type=audio_type,
            trigger_text=trigger_text,
            description=description,
            status=AudioStatus.PENDING,
            created_at=now,
            updated_at=now,
        )
        conn.execute(
            """
            INSERT INTO episode_audio (
                id, episode_id, scene_id, audio_type, trigger_text, description,
                status, created_at, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                record.id,
                episode_id,
                scene_id,
                audio_type.value,
                trigger_text,
                description,
                AudioStatus.PENDING.value,
                now.isoformat(),
                now.isoformat(),
            )
        )
        return record

    def mark_generating(self, audio_id: str) -> None:
        self._set_status(audio_id, AudioStatus.GENERATING)

    def mark_ready(
        self,
        audio_id: str,
        audio_url: str,
        storage_path: str,
        file_size: int,
        mime_type: str,
        duration_seconds: Optional[float],
        provider: str,
    ) -> None:
        conn = get_connection()
        conn.execute(
            """
            UPDATE episode_audio
            SET status = ?, audio_url = ?, storage_path = ?, file_size = ?,
                mime_type = ?, duration_seconds = ?, provider = ?, error = NULL,
                updated_at = ?
            WHERE id = ?
            """,
            (
                AudioStatus.READY.value,
                audio_url,
                storage_path,
                file_size,
                mime_type,
                duration_seconds,
                provider,
                datetime.utcnow().isoformat(),
                audio_id,
            )
        )

    def mark_failed(self, audio_id: str, error: str, provider: Optional[str] = None) -> None:
        conn = get_connection()
        conn.execute(
            """
            UPDATE episode_audio
            SET status = ?, error = ?, provider = COALESCE(?, provider), updated_at = ?
            WHERE id = ?
            """,
            (
                AudioStatus.FAILED.value,
                error[:1000],
                provider,
                datetime.utcnow().isoformat(),
                audio_id,
            )
        )
        logger.warning(f"Audio {audio_id} failed: {error[:200]}")

    def get(self, audio_id: str) -> Optional[EpisodeAudio]:
        conn = get_connection()
        row = conn.execute("SELECT * FROM episode_audio WHERE id = ?", (audio_id,)).fetchone()
        return self._row_to_record(row) if row else None

    def list_for_episode(self, episode_id: str, scene_id: Optional[str] = None) -> List[EpisodeAudio]:
        conn = get_connection()
        if scene_id is None:
            rows = conn.execute(
                "SELECT * FROM episode_audio WHERE episode_id = ? ORDER BY created_at ASC",
                (episode_id,)
            ).fetchall()
        else:
            rows = conn.execute(
                """
                SELECT * FROM episode_audio
                WHERE episode_id = ? AND scene_id = ?
                ORDER BY created_at ASC
                """,
                (episode_id, scene_id)
            ).fetchall()
        return [self._row_to_record(row) for row in rows]

    def _set_status(self, audio_id: str, status: AudioStatus) -> None:
        conn = get_connection()
        conn.execute(
            "UPDATE episode_audio SET status = ?, updated_at = ? WHERE id = ?",
            (status.value, datetime.utcnow().isoformat(), audio_id)
        )

    def _row_to_record(self, row) -> EpisodeAudio:
        return EpisodeAudio(
            id=row["id"],
            episode_id=row["episode_id"],
            scene_id=row["scene_id"],
            audio_type=AudioType(row["audio_type"]),
            status=AudioStatus(row["status"]),
            trigger_text=row["trigger_text"],
            description=row["description"],
            audio_url=row["audio_url"],
            storage_path=row["storage_path"],
            file_size=row["file_size"],
            mime_type=row["mime_type"],
            duration_seconds=row["duration_seconds"],
            provider=row["provider"],
            error=row["error"],
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )


_repository: Optional[EpisodeAudioRepository] = None


def get_audio_repository() -> EpisodeAudioRepository:
    global _repository
    if _repository is None:
        _repository = EpisodeAudioRepository()
    return _repository
