"""
SQLite Scene Repository.

Only realized scenes are stored: the opening scene, every scene a listener
chose, and the finale. Speculative children live in memory until chosen.
"""
import json
import logging
from datetime import datetime
from typing import Optional, List

from .database import get_connection
from storycast.domain.models import ChoiceOption, Scene

logger = logging.getLogger(__name__)


class SceneRepository:
    """Realized scenes ordered by scene_number."""

    def insert(self, scene: Scene) -> Scene:
        conn = get_connection()
        data = scene.to_dict()
        conn.execute(
            """
            INSERT INTO episode_scenes (
                id, episode_id, scene_number, narration, choice_a, choice_b,
                chosen_option, state_update, audio_cues, callback_anchor_id,
                resolution, created_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                scene.id,
                scene.episode_id,
                scene.scene_number,
                scene.narration,
                scene.choice_a,
                scene.choice_b,
                data["chosen_option"],
                json.dumps(data["state_update"]),
                json.dumps(data["audio_cues"]),
                scene.callback_anchor_id,
                scene.resolution,
                data["created_at"],
            )
        )
        logger.debug(f"Stored scene {scene.scene_number} of episode {scene.episode_id}")
        return scene

    def get(self, scene_id: str) -> Optional[Scene]:
        conn = get_connection()
        row = conn.execute("SELECT * FROM episode_scenes WHERE id = ?", (scene_id,)).fetchone()
        return self._row_to_record(row) if row else None

    def get_by_number(self, episode_id: str, scene_number: int) -> Optional[Scene]:
        conn = get_connection()
        row = conn.execute(
            "SELECT * FROM episode_scenes WHERE episode_id = ? AND scene_number = ?",
            (episode_id, scene_number)
        ).fetchone()
        return self._row_to_record(row) if row else None

    def list_for_episode(self, episode_id: str) -> List[Scene]:
        conn = get_connection()
        rows = conn.execute(
            """
            SELECT * FROM episode_scenes
            WHERE episode_id = ?
            ORDER BY scene_number ASC
            """,
            (episode_id,)
        ).fetchall()
        return [self._row_to_record(row) for row in rows]

    def latest(self, episode_id: str) -> Optional[Scene]:
        conn = get_connection()
        row = conn.execute(
            """
            SELECT * FROM episode_scenes
            WHERE episode_id = ?
            ORDER BY scene_number DESC
            LIMIT 1
            """,
            (episode_id,)
        ).fetchone()
        return self._row_to_record(row) if row else None

    def set_chosen_option(self, scene_id: str, option: ChoiceOption) -> bool:
        """Record the listener's choice. A scene's choice is written once."""
        conn = get_connection()
        cursor = conn.execute(
            "UPDATE episode_scenes SET chosen_option = ? WHERE id = ? AND chosen_option IS NULL",
            (option.value, scene_id)
        )
        return cursor.rowcount > 0

    def _row_to_record(self, row) -> Scene:
        return Scene.from_dict({
            "id": row["id"],
            "episode_id": row["episode_id"],
            "scene_number": row["scene_number"],
            "narration": row["narration"],
            "choice_a": row["choice_a"],
            "choice_b": row["choice_b"],
            "chosen_option": row["chosen_option"],
            "state_update": json.loads(row["state_update"]),
            "audio_cues": json.loads(row["audio_cues"]),
            "callback_anchor_id": row["callback_anchor_id"],
            "resolution": row["resolution"],
            "created_at": row["created_at"] or datetime.utcnow().isoformat(),
        })


_repository: Optional[SceneRepository] = None


def get_scene_repository() -> SceneRepository:
    global _repository
    if _repository is None:
        _repository = SceneRepository()
    return _repository
