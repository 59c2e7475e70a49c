"""
Music Director Agent - Turns scene context into instrumental music cues.

Produces provider-ready prompts and durations for:
- Scene underscore (10 s - 5 min)
- Transitions between scenes (2-10 s)
- The episode theme (30-60 s, high priority)
- Choice stingers (up to 3, 2-10 s each)

Everything is background music under a narrator, so every prompt carries
"instrumental only". The director never calls the audio provider.
"""

import logging
from typing import Optional, List, Self

from pydantic import BaseModel, Field, model_validator

from storycast.domain.models import AudioCue, AudioType, CuePriority
from storycast.domain.schemas import WorldBible
from storycast.providers.generation import BaseGenerationProvider, get_generation_provider
from storycast.services.audio_tools import INSTRUMENTAL_MARKER, create_music_prompt

logger = logging.getLogger(__name__)

MIN_SCENE_MUSIC_MS = 10_000
MAX_SCENE_MUSIC_MS = 300_000


class MusicTrackPayload(BaseModel):
    prompt: str = Field(..., min_length=1, description="Full music prompt: genre, instruments, tempo, mood")
    duration_ms: int = Field(..., ge=MIN_SCENE_MUSIC_MS, le=MAX_SCENE_MUSIC_MS, description="Track length in milliseconds")
    is_instrumental: bool = True
    priority: CuePriority = CuePriority.MEDIUM
    description: str = Field("", description="One-line summary of the track")

    @model_validator(mode="after")
    def _force_instrumental(self) -> Self:
        if INSTRUMENTAL_MARKER not in self.prompt.lower():
            self.prompt = f"{self.prompt.rstrip(' .')}, {INSTRUMENTAL_MARKER}"
        self.is_instrumental = True
        return self


class ShortTrackPayload(MusicTrackPayload):
    duration_ms: int = Field(..., ge=2_000, le=10_000, description="Track length in milliseconds (2-10 s)")


class ThemeTrackPayload(MusicTrackPayload):
    duration_ms: int = Field(..., ge=30_000, le=60_000, description="Theme length in milliseconds (30-60 s)")


class StingerSetPayload(BaseModel):
    stingers: List[ShortTrackPayload] = Field(default_factory=list, max_length=3)


MUSIC_DIRECTOR_PROMPT = """You are the MUSIC DIRECTOR for a live choose-your-own-adventure audio episode.

You write prompts for an AI music generator. The music plays UNDER a narrator.

RULES:
1. **Instrumental Only**: every prompt includes "instrumental only" - no vocals competing with narration
2. **Genre and Style**: follow the World Bible's music_style exactly
3. **Instrumentation**: name concrete instruments ("cello ostinato, muted brass")
4. **Tempo and Mood**: give BPM and the emotional arc
5. **Mix**: well-mixed, balanced, leaves room for a voice
6. **Length Control**: duration_ms must be inside the stated range

IMPORTANT: Output ONLY valid JSON matching the schema."""


class MusicDirector:
    """
    Creates music cues from the World Bible and scene context.
    """

    def __init__(self, generator: Optional[BaseGenerationProvider] = None, model: Optional[str] = None):
        from storycast.config import config
        self.generator = generator or get_generation_provider()
        self.model = model or config.ai.openai_fast_model
        logger.info(f"[MUSIC_DIRECTOR] Initialized with {self.model}")

    async def generate_scene_music(
        self,
        world_bible: WorldBible,
        narration: str,
        scene_number: int,
        estimated_duration_seconds: int = 180,
        directions: Optional[List[str]] = None,
    ) -> AudioCue:
        """Underscore for one scene. duration_ms stays within 10 s - 5 min."""
        target_ms = max(MIN_SCENE_MUSIC_MS, min(int(estimated_duration_seconds * 1000), MAX_SCENE_MUSIC_MS))
        style = world_bible.audio_direction.music_style
        reference = create_music_prompt(world_bible.world_rules.genre, style, target_ms // 1000)

        user_prompt = f"""Create the underscore for Scene {scene_number}.

WORLD BIBLE AUDIO DIRECTION:
{world_bible.audio_direction.model_dump_json(indent=2)}

TONE: {world_bible.world_rules.tone}

SCENE NARRATION:
{narration}

SCENE GENERATOR DIRECTIONS:
{chr(10).join(f"- {d}" for d in directions or []) or "- (none)"}

REFERENCE PROMPT TEMPLATE:
{reference}

Target duration: about {target_ms} ms (allowed {MIN_SCENE_MUSIC_MS}-{MAX_SCENE_MUSIC_MS}).

OUTPUT JSON:"""

        track = await self.generator.generate(
            MusicTrackPayload,
            MUSIC_DIRECTOR_PROMPT,
            user_prompt,
            model=self.model,
            temperature=0.7,
        )

        logger.info(f"[MUSIC_DIRECTOR] Scene {scene_number} music: {track.duration_ms} ms")
        return self._to_cue(
            track,
            world_bible,
            trigger=f"[MUSIC=scene_{scene_number}_theme]",
            category="scene_theme",
            default_description=f"Scene {scene_number} underscore",
        )

    async def generate_transition_music(
        self,
        world_bible: WorldBible,
        from_context: str,
        to_context: str,
    ) -> AudioCue:
        """Short bridge between two scenes (2-10 s)."""
        user_prompt = f"""Create a short musical transition.

MUSIC STYLE: {world_bible.audio_direction.music_style}

FROM: {from_context}
TO: {to_context}

Duration: 2000-10000 ms.

OUTPUT JSON:"""

        track = await self.generator.generate(
            ShortTrackPayload,
            MUSIC_DIRECTOR_PROMPT,
            user_prompt,
            model=self.model,
            temperature=0.7,
        )
        return self._to_cue(
            track,
            world_bible,
            trigger="[MUSIC=transition]",
            category="transition",
            default_description="Scene transition",
        )

    async def generate_episode_theme(self, world_bible: WorldBible, title: str, premise: str) -> AudioCue:
        """Signature theme for the whole episode (30-60 s, high priority)."""
        style = world_bible.audio_direction.music_style
        reference = create_music_prompt(world_bible.world_rules.genre, style, 45)

        user_prompt = f"""Create the main theme for this episode.

TITLE: {title}
PREMISE: {premise}

WORLD BIBLE AUDIO DIRECTION:
{world_bible.audio_direction.model_dump_json(indent=2)}

REFERENCE PROMPT TEMPLATE:
{reference}

The theme introduces the episode and should be memorable and recognizable.
Duration: 30000-60000 ms.

OUTPUT JSON:"""

        track = await self.generator.generate(
            ThemeTrackPayload,
            MUSIC_DIRECTOR_PROMPT,
            user_prompt,
            model=self.model,
            temperature=0.7,
        )

        logger.info(f"[MUSIC_DIRECTOR] Episode theme: {track.duration_ms} ms")
        cue = self._to_cue(
            track,
            world_bible,
            trigger="[MUSIC=episode_theme]",
            category="episode_theme",
            default_description=f"Main theme for {title}",
        )
        cue.priority = CuePriority.HIGH
        return cue

    async def generate_choice_stingers(
        self,
        world_bible: WorldBible,
        choice_a: str,
        choice_b: str,
    ) -> List[AudioCue]:
        """Up to three short stingers that punctuate a decision point."""
        user_prompt = f"""Create up to 3 short stingers for a decision point.

MUSIC STYLE: {world_bible.audio_direction.music_style}
INTENSITY: {world_bible.audio_direction.audio_intensity_range.value}

CHOICE A: {choice_a}
CHOICE B: {choice_b}

Each stinger lasts 2000-10000 ms and builds tension around the decision.

OUTPUT JSON:"""

        result = await self.generator.generate(
            StingerSetPayload,
            MUSIC_DIRECTOR_PROMPT,
            user_prompt,
            model=self.model,
            temperature=0.8,
        )

        return [
            self._to_cue(
                stinger,
                world_bible,
                trigger=f"[MUSIC=choice_stinger_{i}]",
                category="stinger",
                default_description=f"Choice stinger {i}",
            )
            for i, stinger in enumerate(result.stingers[:3], start=1)
        ]

    def _to_cue(
        self,
        track: MusicTrackPayload,
        world_bible: WorldBible,
        trigger: str,
        category: str,
        default_description: str,
    ) -> AudioCue:
        return AudioCue(
            type=AudioType.MUSIC,
            trigger=trigger,
            description=track.description or default_description,
            priority=track.priority,
            intensity=world_bible.audio_direction.audio_intensity_range.value,
            audio_direction=world_bible.audio_direction.music_style,
            prompt=track.prompt,
            duration_ms=track.duration_ms,
            is_instrumental=True,
            category=category,
        )
