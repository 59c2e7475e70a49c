"""
SFX Director Agent - Sound effect cues for scenes.

Writes text-to-SFX prompts in the vocabulary sound generators respond to
("whoosh", "impact", "ambience", "one-shot", "loop"), bounded so scenes never
drown the narrator: at most 8 effects, 0.5-30 s each, looping reserved for
ambience.
"""

import logging
from typing import Optional, List, Literal, Self

from pydantic import BaseModel, Field, model_validator

from storycast.domain.models import AudioCue, AudioType, CuePriority
from storycast.domain.schemas import AudioIntensity, WorldBible
from storycast.providers.generation import BaseGenerationProvider, get_generation_provider

logger = logging.getLogger(__name__)

MAX_SCENE_SFX = 8

INTENSITY_PREFIXES = {
    AudioIntensity.SUBTLE: "soft, ambient",
    AudioIntensity.MODERATE: "clear, noticeable",
    AudioIntensity.DRAMATIC: "loud, impactful",
}

SFXCategory = Literal["simple", "complex", "musical", "ambient", "impact", "one-shot"]


class SoundEffectPayload(BaseModel):
    trigger: str = Field(..., min_length=1, description="Inline marker, e.g. [SFX=door_creak]")
    prompt: str = Field(..., min_length=1, description="Sound effect description for the generator")
    description: str = Field("", description="What the listener should hear")
    duration_seconds: Optional[float] = Field(None, ge=0.5, le=30, description="0.5-30 seconds, or null for auto")
    prompt_influence: float = Field(0.3, ge=0, le=1, description="How strictly to follow the prompt")
    loop: bool = False
    timing: Optional[float] = Field(None, ge=0)
    priority: CuePriority = CuePriority.MEDIUM
    category: SFXCategory = "one-shot"

    @model_validator(mode="after")
    def _loop_only_ambient(self) -> Self:
        if self.category != "ambient":
            self.loop = False
        return self


class SFXBatchPayload(BaseModel):
    effects: List[SoundEffectPayload] = Field(default_factory=list, max_length=MAX_SCENE_SFX)


class AmbientPayload(BaseModel):
    prompt: str = Field(..., min_length=1)
    description: str = ""
    duration_seconds: float = Field(..., ge=15, le=30, description="Duration for seamless looping")
    prompt_influence: float = Field(0.2, ge=0, le=1, description="Lower for more natural variation")


class ImpactPayload(BaseModel):
    trigger: str = Field(..., min_length=1)
    prompt: str = Field(..., min_length=1)
    description: str = ""
    duration_seconds: float = Field(..., ge=0.5, le=5, description="Short impact duration")
    prompt_influence: float = Field(..., ge=0.5, le=1, description="High influence for precise impact")
    timing: Optional[float] = Field(None, ge=0)


class ImpactBatchPayload(BaseModel):
    impacts: List[ImpactPayload] = Field(default_factory=list, max_length=MAX_SCENE_SFX)


SFX_DIRECTOR_PROMPT = """You are the SFX DIRECTOR for a live choose-your-own-adventure audio episode.

You write prompts for a text-to-sound-effects generator.

PROMPT TECHNIQUES:
- **Simple**: one clear sound ("glass shattering on concrete")
- **Complex**: a sequence ("footsteps on gravel, then a metal gate creaking open")
- **Musical**: rhythmic elements ("90s drum loop, 90 BPM")
- **Ambient**: background atmosphere, the ONLY category that may loop
- **Impact**: collisions from subtle taps to dramatic crashes
- **One-shot**: a single non-repeating effect

RULES:
1. At most 8 effects per scene - avoid audio clutter under the narrator
2. duration_seconds between 0.5 and 30, or null to let the generator decide
3. prompt_influence between 0 and 1 (0.3 is a good default)
4. Follow the World Bible's common SFX types and intensity

IMPORTANT: Output ONLY valid JSON matching the schema."""


class SFXDirector:
    """
    Creates sound-effect cues from the World Bible and scene context.
    """

    def __init__(self, generator: Optional[BaseGenerationProvider] = None, model: Optional[str] = None):
        from storycast.config import config
        self.generator = generator or get_generation_provider()
        self.model = model or config.ai.openai_fast_model
        logger.info(f"[SFX_DIRECTOR] Initialized with {self.model}")

    async def generate_scene_sfx(
        self,
        world_bible: WorldBible,
        narration: str,
        scene_number: int,
        directions: Optional[List[str]] = None,
    ) -> List[AudioCue]:
        """Up to 8 sound effects for one scene."""
        intensity = world_bible.audio_direction.audio_intensity_range

        user_prompt = f"""Create the sound effects for Scene {scene_number}.

WORLD BIBLE AUDIO DIRECTION:
{world_bible.audio_direction.model_dump_json(indent=2)}

SETTING: {world_bible.world_rules.setting}

SCENE NARRATION:
{narration}

SCENE GENERATOR DIRECTIONS:
{chr(10).join(f"- {d}" for d in directions or []) or "- (none)"}

Intensity for this episode: {intensity.value}

OUTPUT JSON:"""

        batch = await self.generator.generate(
            SFXBatchPayload,
            SFX_DIRECTOR_PROMPT,
            user_prompt,
            model=self.model,
            temperature=0.7,
        )

        cues = [
            AudioCue(
                type=AudioType.SFX,
                trigger=effect.trigger,
                description=effect.description or effect.prompt,
                timing=effect.timing,
                priority=effect.priority,
                intensity=intensity.value,
                audio_direction=", ".join(world_bible.audio_direction.common_sfx_types),
                prompt=apply_intensity(effect.prompt, intensity),
                duration_seconds=effect.duration_seconds,
                loop=effect.loop,
                prompt_influence=effect.prompt_influence,
                category=effect.category,
            )
            for effect in batch.effects[:MAX_SCENE_SFX]
        ]

        logger.info(f"[SFX_DIRECTOR] Scene {scene_number}: {len(cues)} effect(s)")
        return cues

    async def generate_ambient_soundscape(self, world_bible: WorldBible, location: str) -> AudioCue:
        """Looping background atmosphere for a location (15-30 s)."""
        intensity = world_bible.audio_direction.audio_intensity_range

        ambient = await self.generator.generate(
            AmbientPayload,
            SFX_DIRECTOR_PROMPT,
            f"""Create a looping ambient soundscape.

LOCATION: {location}
ATMOSPHERE NOTES: {world_bible.audio_direction.atmosphere_notes}

Subtle background atmosphere that establishes the location without interfering with narration.
Duration 15-30 seconds, optimized for seamless looping.

OUTPUT JSON:""",
            model=self.model,
            temperature=0.6,
        )

        return AudioCue(
            type=AudioType.SFX,
            trigger="[SFX=ambient]",
            description=ambient.description or f"Ambience: {location}",
            priority=CuePriority.LOW,
            intensity=intensity.value,
            audio_direction=world_bible.audio_direction.atmosphere_notes,
            prompt=apply_intensity(ambient.prompt, intensity),
            duration_seconds=ambient.duration_seconds,
            loop=True,
            prompt_influence=ambient.prompt_influence,
            category="ambient",
        )

    async def generate_dramatic_impacts(
        self,
        world_bible: WorldBible,
        narration: str,
        moments: List[str],
    ) -> List[AudioCue]:
        """Short, precise impacts for key moments (0.5-5 s, high prompt influence)."""
        intensity = world_bible.audio_direction.audio_intensity_range

        batch = await self.generator.generate(
            ImpactBatchPayload,
            SFX_DIRECTOR_PROMPT,
            f"""Create dramatic impact sounds for these moments.

NARRATION:
{narration}

KEY MOMENTS:
{chr(10).join(f"- {m}" for m in moments)}

Each impact lasts 0.5-5 seconds with prompt_influence of at least 0.5.

OUTPUT JSON:""",
            model=self.model,
            temperature=0.6,
        )

        return [
            AudioCue(
                type=AudioType.SFX,
                trigger=impact.trigger,
                description=impact.description or impact.prompt,
                timing=impact.timing,
                priority=CuePriority.HIGH,
                intensity=intensity.value,
                prompt=apply_intensity(impact.prompt, intensity),
                duration_seconds=impact.duration_seconds,
                loop=False,
                prompt_influence=impact.prompt_influence,
                category="impact",
            )
            for impact in batch.impacts[:MAX_SCENE_SFX]
        ]


def apply_intensity(prompt: str, intensity: AudioIntensity) -> str:
    """Prefix a prompt with the phrase for the episode's intensity range."""
    prefix = INTENSITY_PREFIXES[intensity]
    if prompt.lower().startswith(prefix):
        return prompt
    return f"{prefix} {prompt}"
