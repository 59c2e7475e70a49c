"""
Episode sessions - per-episode in-memory workflow state.

A session exists from a successful start (or resume) until the episode is
completed or abandoned. It holds the World Bible, the canonical State Card,
the rolling window and the background tasks working on its behalf.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional, Set

from storycast.domain.models import RollingWindow, StateCard
from storycast.domain.schemas import WorldBible
from .exceptions import ConcurrentModificationError, MissingWorldBibleError

logger = logging.getLogger(__name__)


class EpisodePhase(str, Enum):
    NO_BIBLE = "no_bible"
    BIBLE_READY = "bible_ready"
    STATE_INITIALIZED = "state_initialized"
    SCENE_READY = "scene_ready"
    AWAITING_CHOICE = "awaiting_choice"
    FINALE = "finale"
    COMPLETED = "completed"
    ABANDONED = "abandoned"


TERMINAL_PHASES = {EpisodePhase.COMPLETED, EpisodePhase.ABANDONED}


@dataclass
class EpisodeSession:
    episode_id: str
    premise: str
    world_bible: Optional[WorldBible] = None
    state_card: StateCard = field(default_factory=StateCard)
    window: RollingWindow = field(default_factory=RollingWindow)
    phase: EpisodePhase = EpisodePhase.NO_BIBLE
    pregeneration_task: Optional[asyncio.Task] = None

    @property
    def is_active(self) -> bool:
        return self.phase not in TERMINAL_PHASES

    def require_bible(self) -> WorldBible:
        if self.world_bible is None:
            raise MissingWorldBibleError(self.episode_id)
        return self.world_bible

    def advance(self, phase: EpisodePhase) -> None:
        if not self.is_active:
            logger.warning(f"[SESSION] {self.episode_id} is {self.phase.value} - ignoring move to {phase.value}")
            return
        scene = self.window.current.scene_number if self.window.current else 0
        logger.debug(f"[SESSION] {self.episode_id}: {self.phase.value} -> {phase.value} (scene {scene})")
        self.phase = phase

    def cancel_pregeneration(self) -> None:
        task = self.pregeneration_task
        if task is not None and not task.done():
            task.cancel()
        self.pregeneration_task = None


class SessionStore:
    """
    Sessions and per-episode locks, keyed by episode id.
    """

    def __init__(self):
        self._sessions: Dict[str, EpisodeSession] = {}
        self._locks: Dict[str, asyncio.Lock] = {}
        self._audio_tasks: Dict[str, Set[asyncio.Task]] = {}

    def get(self, episode_id: str) -> Optional[EpisodeSession]:
        return self._sessions.get(episode_id)

    def put(self, session: EpisodeSession) -> None:
        self._sessions[session.episode_id] = session

    def discard(self, episode_id: str) -> Optional[EpisodeSession]:
        session = self._sessions.pop(episode_id, None)
        if session is not None:
            session.cancel_pregeneration()
        self._release_lock(episode_id)
        return session

    def _release_lock(self, episode_id: str) -> None:
        """Drop an idle lock once the episode has no live session."""
        lock = self._locks.get(episode_id)
        if lock is not None and not lock.locked() and episode_id not in self._sessions:
            del self._locks[episode_id]

    def __len__(self) -> int:
        return len(self._sessions)

    @asynccontextmanager
    async def exclusive(self, episode_id: str, operation: str):
        """
        Hold the episode lock for ``operation``.

        Fails immediately with ConcurrentModificationError when another
        operation already holds it; callers retry rather than queue.
        """
        lock = self._locks.setdefault(episode_id, asyncio.Lock())
        if lock.locked():
            logger.warning(f"[SESSION] {operation} rejected - episode {episode_id} is busy")
            raise ConcurrentModificationError(episode_id, operation)
        try:
            async with lock:
                yield
        finally:
            if self._locks.get(episode_id) is lock:
                self._release_lock(episode_id)

    # ═══════════════════════════════════════════════════════════════════════
    # AUDIO TASKS (outlive the session: finale audio keeps running after completion)
    # ═══════════════════════════════════════════════════════════════════════

    def track_audio(self, episode_id: str, task: asyncio.Task) -> None:
        tasks = self._audio_tasks.setdefault(episode_id, set())
        tasks.add(task)

        def _forget(done: asyncio.Task) -> None:
            tasks.discard(done)
            if not tasks and self._audio_tasks.get(episode_id) is tasks:
                del self._audio_tasks[episode_id]

        task.add_done_callback(_forget)

    def audio_tasks(self, episode_id: str) -> Set[asyncio.Task]:
        return set(self._audio_tasks.get(episode_id, ()))

    def cancel_audio(self, episode_id: str) -> int:
        cancelled = 0
        for task in self._audio_tasks.pop(episode_id, set()):
            if not task.done():
                task.cancel()
                cancelled += 1
        return cancelled

    def all_tasks(self) -> Set[asyncio.Task]:
        tasks: Set[asyncio.Task] = set()
        for session in self._sessions.values():
            if session.pregeneration_task is not None:
                tasks.add(session.pregeneration_task)
        for audio in self._audio_tasks.values():
            tasks.update(audio)
        return {t for t in tasks if not t.done()}
