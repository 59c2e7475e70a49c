"""
Episode Orchestrator - Coordinates the agents through an episode's lifecycle.

Flow:
1. World Bible Builder creates the bible (once per episode)
2. State Tracker initializes the State Card
3. Scene Generator writes scene 1
4. Episode, bible and scene 1 are persisted together
5. In the background: both children of the current scene are pre-generated,
   and the Music/SFX Directors plus Audio Tools produce the scene's audio

On a choice the matching pre-generated child becomes the current scene, the
State Tracker folds it into the canonical card, and the cycle repeats.

Per-episode operations are exclusive: a second operation on a busy episode
fails immediately with ConcurrentModificationError.
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any, Awaitable, Dict, List, Optional, TypeVar

from storycast.domain.models import (
    AudioCue,
    AudioType,
    ChoiceOption,
    Episode,
    EpisodeAudio,
    EpisodeStatus,
    RollingWindow,
    Scene,
    StateCard,
)
from storycast.domain.schemas import LocationChange, WorldBible
from storycast.persistence import (
    transaction,
    get_bible_repository,
    get_episode_repository,
    get_scene_repository,
)
from storycast.providers.exceptions import ProviderError
from storycast.providers.generation import BaseGenerationProvider, get_generation_provider
from storycast.services.audio_tools import AudioTools, scene_with_cues
from .continuity_analyzer import CallbackSuggestion, ContinuityAnalyzer
from .exceptions import (
    EpisodeError,
    EpisodeNotFoundError,
    GenerationTimeoutError,
    InvalidChoiceError,
    InvalidStateError,
    MissingWorldBibleError,
    NoPregeneratedSceneError,
    SessionNotFoundError,
)
from .music_director import MusicDirector
from .scene_generator import SceneGenerator
from .session import EpisodePhase, EpisodeSession, SessionStore
from .sfx_director import SFXDirector
from .state_tracker import StateTracker, project_state
from .world_bible_builder import WorldBibleBuilder, validate_premise

logger = logging.getLogger(__name__)

T = TypeVar("T")


def parse_choice(choice: Any) -> ChoiceOption:
    """Accept 'A'/'B' in any case, or a ChoiceOption."""
    if isinstance(choice, ChoiceOption):
        return choice
    value = str(choice or "").strip().upper()
    if value not in ("A", "B"):
        raise InvalidChoiceError(str(choice))
    return ChoiceOption(value)


@dataclass
class StartResult:
    episode: Episode
    first_scene: Scene
    state_card: StateCard

    def to_dict(self) -> Dict[str, Any]:
        return {
            "episode": self.episode.to_dict(),
            "first_scene": scene_with_cues(self.first_scene),
            "state_card": self.state_card.to_dict(),
        }


@dataclass
class ChoiceResult:
    next_scene: Scene
    state_card: StateCard
    audio_generated: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "next_scene": scene_with_cues(self.next_scene),
            "state_card": self.state_card.to_dict(),
            "audio_generated": self.audio_generated,
        }


@dataclass
class FinaleResult:
    episode: Episode
    finale_scene: Scene
    state_card: StateCard
    audio_generated: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "episode": self.episode.to_dict(),
            "finale_scene": scene_with_cues(self.finale_scene),
            "state_card": self.state_card.to_dict(),
            "audio_generated": self.audio_generated,
        }


@dataclass
class WindowSnapshot:
    episode_id: str
    phase: EpisodePhase
    window: RollingWindow
    pending: bool

    def to_dict(self) -> Dict[str, Any]:
        window = self.window
        return {
            "episode_id": self.episode_id,
            "phase": self.phase.value,
            "pending": self.pending,
            "ready": window.is_ready,
            "current": scene_with_cues(window.current) if window.current else None,
            "option_a": scene_with_cues(window.option_a) if window.option_a else None,
            "option_b": scene_with_cues(window.option_b) if window.option_b else None,
        }


class EpisodeOrchestrator:
    """
    Episode Orchestrator - manages the multi-agent episode workflow.

    Responsibilities:
    1. Build the World Bible exactly once per episode
    2. Keep the canonical State Card (only the State Tracker changes it)
    3. Maintain the rolling window of current scene + two pre-generated children
    4. Persist realized scenes atomically
    5. Kick off audio generation without blocking the narrative path
    """

    def __init__(
        self,
        generator: Optional[BaseGenerationProvider] = None,
        audio_tools: Optional[AudioTools] = None,
        sessions: Optional[SessionStore] = None,
        settings=None,
    ):
        from storycast.config import config
        self.settings = settings or config.episodes
        self.generator = generator or get_generation_provider()

        self.world_bible_builder = WorldBibleBuilder(self.generator)
        self.state_tracker = StateTracker(self.generator)
        self.continuity_analyzer = ContinuityAnalyzer(self.generator)
        self.scene_generator = SceneGenerator(self.generator)
        self.music_director = MusicDirector(self.generator)
        self.sfx_director = SFXDirector(self.generator)
        self.audio_tools = audio_tools if audio_tools is not None else AudioTools()
        self.sessions = sessions if sessions is not None else SessionStore()

        self.episodes = get_episode_repository()
        self.bibles = get_bible_repository()
        self.scenes = get_scene_repository()

        logger.info("[ORCHESTRATOR] Episode Orchestrator initialized")
        logger.info(f"[ORCHESTRATOR] Generation timeout: {self.settings.generation_timeout_seconds}s")

    # ═══════════════════════════════════════════════════════════════════════
    # START
    # ═══════════════════════════════════════════════════════════════════════

    async def start_episode(
        self,
        account_id: str,
        user_id: str,
        title: str,
        premise: str,
        episode_id: Optional[str] = None,
    ) -> StartResult:
        """
        Start an episode: World Bible, State Card and scene 1.

        Starting an episode that already has scene 1 returns the stored
        episode, scene 1 and state card without generating anything.
        """
        premise = validate_premise(premise)
        episode_id = episode_id or str(uuid.uuid4())

        async with self.sessions.exclusive(episode_id, "start_episode"):
            existing = self.episodes.get(episode_id)
            if existing is not None:
                if existing.account_id != account_id:
                    raise EpisodeNotFoundError(episode_id)
                first_scene = self.scenes.get_by_number(episode_id, 1)
                if first_scene is not None:
                    logger.info(f"[ORCHESTRATOR] Episode {episode_id} already started - returning stored state")
                    if existing.is_active and self.sessions.get(episode_id) is None:
                        self._rehydrate(existing)
                    return StartResult(existing, first_scene, existing.state_card)
                if not existing.is_active:
                    raise InvalidStateError(episode_id, existing.status.value, "start episode")
                premise = existing.premise

            logger.info("=" * 70)
            logger.info("[ORCHESTRATOR] STARTING EPISODE")
            logger.info("=" * 70)
            logger.info(f"  Episode: {episode_id}")
            logger.info(f"  Title: {title}")
            logger.info(f"  Premise: {premise[:80]}")
            logger.info(f"  User: {user_id}")
            logger.info("=" * 70)

            session = EpisodeSession(episode_id=episode_id, premise=premise)

            # ═══ PHASE 1: WORLD BIBLE ═══
            bible = self.bibles.get(episode_id)
            if bible is None:
                logger.info("[ORCHESTRATOR] PHASE 1: Building World Bible...")
                bible = await self._call(self.world_bible_builder.create_world_bible(premise), "World Bible creation")
            else:
                logger.info("[ORCHESTRATOR] PHASE 1: Reusing stored World Bible")
            session.world_bible = bible
            session.advance(EpisodePhase.BIBLE_READY)

            # ═══ PHASE 2: STATE CARD ═══
            logger.info("[ORCHESTRATOR] PHASE 2: Initializing State Card...")
            state_card = await self._call(self.state_tracker.initialize(premise), "State initialization")
            session.state_card = state_card
            session.advance(EpisodePhase.STATE_INITIALIZED)

            # ═══ PHASE 3: SCENE 1 ═══
            logger.info("[ORCHESTRATOR] PHASE 3: Generating scene 1...")
            generated = await self._call(
                self.scene_generator.generate_scene(premise, session.require_bible(), state_card, 1),
                "Scene 1 generation",
            )
            scene = generated.to_scene(episode_id, 1)

            # ═══ PHASE 4: PERSIST ═══
            logger.info("[ORCHESTRATOR] PHASE 4: Persisting episode...")
            episode = existing or Episode(
                id=episode_id,
                account_id=account_id,
                created_by=user_id,
                title=title,
                premise=premise,
            )
            episode.state_card = state_card

            with transaction():
                if existing is None:
                    self.episodes.create(episode)
                else:
                    self.episodes.update_progress(
                        episode_id, state_card, existing.total_scenes, existing.total_choices
                    )
                session.world_bible = self.bibles.insert_if_absent(episode_id, bible)
                self.scenes.insert(scene)

            session.window = RollingWindow(current=scene)
            session.advance(EpisodePhase.SCENE_READY)
            self.sessions.put(session)

            # ═══ PHASE 5: BACKGROUND WORK ═══
            self._schedule_pregeneration(session)
            self._schedule_audio(session, scene, title=title, include_theme=True)

            logger.info("=" * 70)
            logger.info(f"[ORCHESTRATOR] EPISODE STARTED: {episode_id}")
            logger.info("=" * 70)

            return StartResult(episode=episode, first_scene=scene.copy(), state_card=state_card.copy())

    # ═══════════════════════════════════════════════════════════════════════
    # CHOICE
    # ═══════════════════════════════════════════════════════════════════════

    async def process_choice(self, episode_id: str, choice: Any, user_id: str) -> ChoiceResult:
        """
        Promote the pre-generated child for ``choice`` to the current scene.

        Raises:
            NoPregeneratedSceneError: the chosen child is not ready (retry later)
            InvalidStateError: the episode is not active
        """
        option = parse_choice(choice)

        async with self.sessions.exclusive(episode_id, "process_choice"):
            episode = self._require_episode(episode_id)
            if not episode.is_active:
                raise InvalidStateError(episode_id, episode.status.value, "process a choice")

            session = self.sessions.get(episode_id)
            if session is None or session.window.current is None:
                raise NoPregeneratedSceneError(episode_id, option.value)
            candidate = session.window.option(option)
            if candidate is None:
                raise NoPregeneratedSceneError(episode_id, option.value)
            parent = session.window.current

            logger.info("=" * 70)
            logger.info(f"[ORCHESTRATOR] CHOICE {option.value} ON SCENE {parent.scene_number}")
            logger.info("=" * 70)
            logger.info(f"  Episode: {episode_id}")
            logger.info(f"  User: {user_id}")
            logger.info(f"  Choice: {parent.choice_text(option)[:80]}")

            # ═══ PHASE 1: STATE UPDATE ═══
            prior_scenes = self._prior_scenes(episode_id, parent, option)
            updated = await self._call(
                self.state_tracker.update(session.state_card, candidate, option, prior_scenes),
                "State update",
            )
            updated = self.state_tracker.cleanup(
                updated,
                candidate.scene_number,
                self.settings.anchor_max_age_scenes,
                self.settings.key_facts_cap,
            )

            # ═══ PHASE 2: PERSIST ═══
            with transaction():
                self.scenes.set_chosen_option(parent.id, option)
                self.scenes.insert(candidate)
                self.episodes.update_progress(
                    episode_id,
                    updated,
                    total_scenes=episode.total_scenes + 1,
                    total_choices=episode.total_choices + 1,
                )

            # ═══ PHASE 3: ADVANCE WINDOW ═══
            parent.chosen_option = option
            session.cancel_pregeneration()
            session.window.promote(option)
            session.state_card = updated
            session.advance(EpisodePhase.SCENE_READY)

            audio_generated = self._schedule_audio(session, candidate)
            self._schedule_pregeneration(session)

            logger.info(f"[ORCHESTRATOR] Scene {candidate.scene_number} is now current")
            logger.info("=" * 70)

            return ChoiceResult(
                next_scene=candidate.copy(),
                state_card=updated.copy(),
                audio_generated=audio_generated,
            )

    # ═══════════════════════════════════════════════════════════════════════
    # FINALE / ABANDON / RESUME
    # ═══════════════════════════════════════════════════════════════════════

    async def finish_episode(self, episode_id: str, user_id: str, choice: Any = None) -> FinaleResult:
        """Conclude the episode, optionally folding in a last choice on the current scene."""
        option = parse_choice(choice) if choice else None

        async with self.sessions.exclusive(episode_id, "finish_episode"):
            episode = self._require_episode(episode_id)
            if not episode.is_active:
                raise InvalidStateError(episode_id, episode.status.value, "finish")

            session = self.sessions.get(episode_id) or self._rehydrate(episode, pregenerate=False)
            parent = session.window.current
            if parent is None:
                raise InvalidStateError(episode_id, "not started", "finish")

            logger.info("=" * 70)
            logger.info(f"[ORCHESTRATOR] FINALE AFTER SCENE {parent.scene_number}")
            logger.info("=" * 70)

            finale_number = parent.scene_number + 1
            finale_card = (
                project_state(session.state_card, parent.choice_text(option))
                if option else session.state_card.copy()
            )
            generated = await self._call(
                self.scene_generator.generate_finale_scene(
                    session.premise, session.require_bible(), finale_card, finale_number, previous_scene=parent
                ),
                "Finale generation",
            )
            finale = generated.to_scene(episode_id, finale_number)

            prior_scenes = self._prior_scenes(episode_id, parent, option)
            final_card = await self._call(
                self.state_tracker.update(session.state_card, finale, option, prior_scenes),
                "Final state update",
            )
            final_card = self.state_tracker.cleanup(
                final_card,
                finale_number,
                self.settings.anchor_max_age_scenes,
                self.settings.key_facts_cap,
            )

            with transaction():
                if option is not None:
                    self.scenes.set_chosen_option(parent.id, option)
                self.scenes.insert(finale)
                self.episodes.update_progress(
                    episode_id,
                    final_card,
                    total_scenes=episode.total_scenes + 2,  # scene 1 was never counted
                    total_choices=episode.total_choices + (1 if option else 0),
                )
                self.episodes.set_status(episode_id, EpisodeStatus.COMPLETED, datetime.utcnow())

            session.cancel_pregeneration()
            session.state_card = final_card
            session.window = RollingWindow(current=finale)
            session.advance(EpisodePhase.FINALE)
            audio_generated = self._schedule_audio(session, finale)
            session.advance(EpisodePhase.COMPLETED)
            self.sessions.discard(episode_id)

            logger.info(f"[ORCHESTRATOR] EPISODE COMPLETED: {episode_id} ({finale_number} scenes)")
            logger.info("=" * 70)

            return FinaleResult(
                episode=self._require_episode(episode_id),
                finale_scene=finale.copy(),
                state_card=final_card.copy(),
                audio_generated=audio_generated,
            )

    async def abandon_episode(self, episode_id: str, user_id: str) -> Episode:
        """Mark the episode abandoned and cancel its background work."""
        async with self.sessions.exclusive(episode_id, "abandon_episode"):
            episode = self._require_episode(episode_id)
            if not episode.is_active:
                raise InvalidStateError(episode_id, episode.status.value, "abandon")

            self.episodes.set_status(episode_id, EpisodeStatus.ABANDONED)

            session = self.sessions.discard(episode_id)
            if session is not None:
                session.advance(EpisodePhase.ABANDONED)
            cancelled = self.sessions.cancel_audio(episode_id)

            logger.info(f"[ORCHESTRATOR] Episode {episode_id} abandoned by {user_id} ({cancelled} audio task(s) cancelled)")
            return self._require_episode(episode_id)

    async def resume_episode(self, episode_id: str) -> WindowSnapshot:
        """Rebuild the session from storage if needed and restart pre-generation."""
        async with self.sessions.exclusive(episode_id, "resume_episode"):
            episode = self._require_episode(episode_id)
            if not episode.is_active:
                raise InvalidStateError(episode_id, episode.status.value, "resume")

            session = self.sessions.get(episode_id)
            if session is None:
                self._rehydrate(episode)
            elif not session.window.is_ready and (
                session.pregeneration_task is None or session.pregeneration_task.done()
            ):
                logger.info(f"[ORCHESTRATOR] Restarting pre-generation for episode {episode_id}")
                self._schedule_pregeneration(session)

            return self.get_window(episode_id)

    # ═══════════════════════════════════════════════════════════════════════
    # QUERIES
    # ═══════════════════════════════════════════════════════════════════════

    def get_episode(self, episode_id: str) -> Episode:
        return self._require_episode(episode_id)

    def list_episodes(self, account_id: str, limit: int = 50) -> List[Episode]:
        """Newest first."""
        return self.episodes.list_for_account(account_id, limit)

    def list_scenes(self, episode_id: str) -> List[Scene]:
        self._require_episode(episode_id)
        return self.scenes.list_for_episode(episode_id)

    def get_window(self, episode_id: str) -> WindowSnapshot:
        """Deep copy of the rolling window; mutating it never affects the session."""
        session = self.sessions.get(episode_id)
        if session is None:
            raise SessionNotFoundError(episode_id)
        task = session.pregeneration_task
        return WindowSnapshot(
            episode_id=episode_id,
            phase=session.phase,
            window=session.window.snapshot(),
            pending=task is not None and not task.done(),
        )

    def list_episode_audio(self, episode_id: str) -> List[EpisodeAudio]:
        self._require_episode(episode_id)
        return self.audio_tools.repository.list_for_episode(episode_id)

    async def wait_for_pregeneration(self, episode_id: str, timeout: Optional[float] = None) -> WindowSnapshot:
        session = self.sessions.get(episode_id)
        if session is None:
            raise SessionNotFoundError(episode_id)
        task = session.pregeneration_task
        if task is not None and not task.done():
            await asyncio.wait({task}, timeout=timeout)
        return self.get_window(episode_id)

    async def wait_for_audio(self, episode_id: str, timeout: Optional[float] = None) -> List[EpisodeAudio]:
        tasks = self.sessions.audio_tasks(episode_id)
        if tasks:
            await asyncio.wait(tasks, timeout=timeout)
        return self.audio_tools.repository.list_for_episode(episode_id)

    # ═══════════════════════════════════════════════════════════════════════
    # BACKGROUND: CHILD PRE-GENERATION
    # ═══════════════════════════════════════════════════════════════════════

    def _schedule_pregeneration(self, session: EpisodeSession) -> None:
        parent = session.window.current
        if parent is None or parent.is_finale:
            return
        session.cancel_pregeneration()
        task = asyncio.create_task(
            self._pregenerate_children(session, parent),
            name=f"pregenerate-{session.episode_id}-{parent.scene_number}",
        )
        task.add_done_callback(_log_task_failure)
        session.pregeneration_task = task

    async def _pregenerate_children(self, session: EpisodeSession, parent: Scene) -> None:
        bible = session.require_bible()
        card = session.state_card.copy()
        child_number = parent.scene_number + 1
        logger.info(f"[ORCHESTRATOR] Pre-generating both children of scene {parent.scene_number}...")

        suggestion: Optional[CallbackSuggestion] = None
        context = f"Following choice A: {parent.choice_a} or choice B: {parent.choice_b}"
        try:
            suggestion = await self._call(
                self.continuity_analyzer.analyze_callbacks(card, context),
                "Continuity analysis",
            )
        except (EpisodeError, ProviderError) as e:
            logger.warning(f"[ORCHESTRATOR] Continuity analysis failed: {e} - continuing without callback")

        results = await asyncio.gather(
            self._generate_branch(session, bible, card, parent, ChoiceOption.A, suggestion),
            self._generate_branch(session, bible, card, parent, ChoiceOption.B, suggestion),
            return_exceptions=True,
        )

        branches: Dict[ChoiceOption, Scene] = {}
        for option, result in zip((ChoiceOption.A, ChoiceOption.B), results):
            if isinstance(result, BaseException):
                logger.warning(f"[ORCHESTRATOR] Scene {child_number} option {option.value} failed: {result}")
            else:
                branches[option] = result

        current = session.window.current
        if (
            not session.is_active
            or self.sessions.get(session.episode_id) is not session
            or current is None
            or current.id != parent.id
        ):
            logger.info(f"[ORCHESTRATOR] Discarding stale children of scene {parent.scene_number}")
            return

        session.window.option_a = branches.get(ChoiceOption.A)
        session.window.option_b = branches.get(ChoiceOption.B)
        if session.window.is_ready:
            session.advance(EpisodePhase.AWAITING_CHOICE)

        logger.info(
            f"[ORCHESTRATOR] Children of scene {parent.scene_number} ready: "
            f"A={'YES' if ChoiceOption.A in branches else 'NO'}, "
            f"B={'YES' if ChoiceOption.B in branches else 'NO'}"
        )

    async def _generate_branch(
        self,
        session: EpisodeSession,
        bible: WorldBible,
        card: StateCard,
        parent: Scene,
        option: ChoiceOption,
        suggestion: Optional[CallbackSuggestion],
    ) -> Scene:
        projected = project_state(card, parent.choice_text(option))
        child_number = parent.scene_number + 1
        generated = await self._call(
            self.scene_generator.generate_scene(
                session.premise,
                bible,
                projected,
                child_number,
                callback_suggestion=suggestion,
                previous_scene=parent,
            ),
            f"Scene {child_number} option {option.value}",
        )
        return generated.to_scene(session.episode_id, child_number)

    # ═══════════════════════════════════════════════════════════════════════
    # BACKGROUND: AUDIO
    # ═══════════════════════════════════════════════════════════════════════

    def _schedule_audio(
        self,
        session: EpisodeSession,
        scene: Scene,
        title: Optional[str] = None,
        include_theme: bool = False,
    ) -> bool:
        task = asyncio.create_task(
            self._generate_scene_audio(
                session.episode_id,
                session.premise,
                session.require_bible(),
                scene,
                title=title,
                include_theme=include_theme,
            ),
            name=f"audio-{session.episode_id}-{scene.scene_number}",
        )
        task.add_done_callback(_log_task_failure)
        self.sessions.track_audio(session.episode_id, task)
        return True

    async def _generate_scene_audio(
        self,
        episode_id: str,
        premise: str,
        bible: WorldBible,
        scene: Scene,
        title: Optional[str] = None,
        include_theme: bool = False,
    ) -> List[EpisodeAudio]:
        logger.info(f"[ORCHESTRATOR] Directing audio for scene {scene.scene_number}...")

        music_directions = [c.audio_direction for c in scene.audio_cues if c.type == AudioType.MUSIC]
        sfx_directions = [
            f"{c.trigger} {c.description}".strip() for c in scene.audio_cues if c.type == AudioType.SFX
        ]

        jobs = [
            ("scene_music", AudioType.MUSIC, self.music_director.generate_scene_music(
                bible,
                scene.narration,
                scene.scene_number,
                self.settings.scene_duration_estimate_seconds,
                music_directions,
            )),
            ("scene_sfx", AudioType.SFX, self.sfx_director.generate_scene_sfx(
                bible, scene.narration, scene.scene_number, sfx_directions,
            )),
        ]
        for delta in scene.state_update:
            if isinstance(delta, LocationChange):
                jobs.append(("ambient", AudioType.SFX, self.sfx_director.generate_ambient_soundscape(
                    bible, delta.location,
                )))
                break
        if include_theme:
            jobs.append(("episode_theme", AudioType.MUSIC, self.music_director.generate_episode_theme(
                bible, title or "Untitled episode", premise,
            )))

        results = await asyncio.gather(
            *(self._call(coro, f"{label} direction") for label, _, coro in jobs),
            return_exceptions=True,
        )

        scene_cues: List[AudioCue] = []
        episode_cues: List[AudioCue] = []
        for (label, audio_type, _), result in zip(jobs, results):
            if isinstance(result, Exception):
                logger.warning(f"[ORCHESTRATOR] {label} direction failed: {result}")
                self.audio_tools.record_failure(
                    episode_id,
                    audio_type,
                    f"[{audio_type.value.upper()}={label}]",
                    str(result),
                    scene=None if label == "episode_theme" else scene,
                )
            elif isinstance(result, list):
                scene_cues.extend(result)
            elif label == "episode_theme":
                episode_cues.append(result)
            else:
                scene_cues.append(result)

        scene_records, episode_records = await asyncio.gather(
            self.audio_tools.realize_cues(episode_id, scene_cues, scene),
            self.audio_tools.realize_cues(episode_id, episode_cues),
        )
        return scene_records + episode_records

    # ═══════════════════════════════════════════════════════════════════════
    # HELPERS
    # ═══════════════════════════════════════════════════════════════════════

    async def _call(self, coro: Awaitable[T], operation: str) -> T:
        timeout = self.settings.generation_timeout_seconds
        try:
            return await asyncio.wait_for(coro, timeout=timeout)
        except asyncio.TimeoutError:
            logger.error(f"[ORCHESTRATOR] {operation} timed out after {timeout}s")
            raise GenerationTimeoutError(operation, timeout) from None

    def _require_episode(self, episode_id: str) -> Episode:
        episode = self.episodes.get(episode_id)
        if episode is None:
            raise EpisodeNotFoundError(episode_id)
        return episode

    def _prior_scenes(self, episode_id: str, parent: Scene, option: Optional[ChoiceOption]) -> List[Scene]:
        """Realized scenes with the parent's pending choice filled in."""
        scenes = self.scenes.list_for_episode(episode_id)
        if option is None:
            return scenes
        return [replace(s, chosen_option=option) if s.id == parent.id else s for s in scenes]

    def _rehydrate(self, episode: Episode, pregenerate: bool = True) -> EpisodeSession:
        """Rebuild a session from storage."""
        bible = self.bibles.get(episode.id)
        if bible is None:
            raise MissingWorldBibleError(episode.id)
        current = self.scenes.latest(episode.id)
        if current is None:
            raise InvalidStateError(episode.id, "not started", "resume")

        session = EpisodeSession(
            episode_id=episode.id,
            premise=episode.premise,
            world_bible=bible,
            state_card=episode.state_card.copy(),
            window=RollingWindow(current=current),
            phase=EpisodePhase.SCENE_READY,
        )
        self.sessions.put(session)
        logger.info(f"[ORCHESTRATOR] Session rebuilt for episode {episode.id} at scene {current.scene_number}")

        if pregenerate:
            self._schedule_pregeneration(session)
        return session

    async def close(self):
        """Cancel background work and close all agents."""
        tasks = self.sessions.all_tasks()
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        await self.generator.close()
        await self.audio_tools.close()
        logger.info("[ORCHESTRATOR] All agents closed")


def _log_task_failure(task: asyncio.Task) -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.error(f"[ORCHESTRATOR] Background task {task.get_name()} failed: {exc}")


_orchestrator: Optional[EpisodeOrchestrator] = None


def get_orchestrator() -> EpisodeOrchestrator:
    """Get the shared orchestrator."""
    global _orchestrator
    if _orchestrator is None:
        _orchestrator = EpisodeOrchestrator()
    return _orchestrator


def reset_orchestrator() -> None:
    global _orchestrator
    _orchestrator = None


async def shutdown_orchestrator() -> None:
    """Close the shared orchestrator if one was created."""
    global _orchestrator
    if _orchestrator is not None:
        await _orchestrator.close()
        _orchestrator = None
