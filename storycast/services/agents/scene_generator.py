"""
Scene Generator Agent - Narration, two choices, state deltas and audio cues.

One generation call produces the whole scene so the narration and its state
changes never drift apart. Scenes follow the World Bible strictly; the bible
is passed in on every call and never rebuilt here.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional, List, Self

from pydantic import BaseModel, Field, field_validator, model_validator

from storycast.domain.models import AudioCue, AudioType, CuePriority, Scene, StateCard
from storycast.domain.schemas import AudioIntensity, StateDelta, WorldBible
from storycast.providers.generation import BaseGenerationProvider, get_generation_provider
from .continuity_analyzer import CallbackSuggestion
from .exceptions import MissingWorldBibleError

logger = logging.getLogger(__name__)

MAX_SCENE_AUDIO_CUES = 6


class AudioCueDirective(BaseModel):
    type: AudioType = Field(..., description="music or sfx")
    trigger: str = Field(..., min_length=1, description="Text marker for the cue, e.g. [SFX=door_creak]")
    description: str = Field(..., min_length=1, description="Detailed description of the audio needed")
    timing: Optional[float] = Field(None, ge=0, description="Seconds from the start of narration")
    priority: CuePriority = CuePriority.MEDIUM
    intensity: AudioIntensity = AudioIntensity.MODERATE
    audio_direction: str = Field("", description="Direction for the audio directors, grounded in the World Bible")

    @field_validator("type", "priority", "intensity", mode="before")
    @classmethod
    def _lowercase(cls, value):
        return value.strip().lower() if isinstance(value, str) else value


def _require_music(cues: List[AudioCueDirective]) -> None:
    if not any(cue.type == AudioType.MUSIC for cue in cues):
        raise ValueError("audio_cues must contain at least one music cue")


class ScenePayload(BaseModel):
    narration: str = Field(..., min_length=1, description="Scene narration leading to the choice point")
    choice_a: str = Field(..., min_length=1, description="First choice - distinct and meaningful")
    choice_b: str = Field(..., min_length=1, description="Second choice - a different approach or consequence")
    state_update: List[StateDelta] = Field(default_factory=list, description="Typed state changes in this scene")
    audio_cues: List[AudioCueDirective] = Field(..., min_length=1, max_length=MAX_SCENE_AUDIO_CUES)
    callback_anchor_id: Optional[str] = Field(None, description="Id of the unused anchor this scene pays off, if any")
    reasoning: str = ""

    @model_validator(mode="after")
    def _check_scene(self) -> Self:
        if self.choice_a.strip().lower() == self.choice_b.strip().lower():
            raise ValueError("choice_a and choice_b must be different")
        _require_music(self.audio_cues)
        return self


class FinalePayload(BaseModel):
    narration: str = Field(..., min_length=1, description="Final narration bringing the story to its conclusion")
    resolution: str = Field(..., min_length=1, description="Brief summary of what was accomplished")
    audio_cues: List[AudioCueDirective] = Field(..., min_length=1, max_length=MAX_SCENE_AUDIO_CUES)
    reasoning: str = ""

    @model_validator(mode="after")
    def _check_finale(self) -> Self:
        _require_music(self.audio_cues)
        return self


class ImprovedChoicesPayload(BaseModel):
    improved_choice_a: str = Field(..., min_length=1, description="Improved version of choice A")
    improved_choice_b: str = Field(..., min_length=1, description="Improved version of choice B")
    reasoning: str = Field("", description="Explanation of the improvements made")

    @model_validator(mode="after")
    def _check_distinct(self) -> Self:
        if self.improved_choice_a.strip().lower() == self.improved_choice_b.strip().lower():
            raise ValueError("improved choices must be different")
        return self


@dataclass
class ImprovedChoices:
    choice_a: str
    choice_b: str
    reasoning: str = ""


@dataclass
class GeneratedScene:
    narration: str
    choice_a: str
    choice_b: str
    state_update: List[StateDelta] = field(default_factory=list)
    audio_cues: List[AudioCue] = field(default_factory=list)
    callback_anchor_id: Optional[str] = None

    def to_scene(self, episode_id: str, scene_number: int) -> Scene:
        return Scene(
            episode_id=episode_id,
            scene_number=scene_number,
            narration=self.narration,
            choice_a=self.choice_a,
            choice_b=self.choice_b,
            state_update=list(self.state_update),
            audio_cues=list(self.audio_cues),
            callback_anchor_id=self.callback_anchor_id,
        )


@dataclass
class GeneratedFinale:
    narration: str
    resolution: str
    audio_cues: List[AudioCue] = field(default_factory=list)

    def to_scene(self, episode_id: str, scene_number: int) -> Scene:
        return Scene(
            episode_id=episode_id,
            scene_number=scene_number,
            narration=self.narration,
            audio_cues=list(self.audio_cues),
            resolution=self.resolution,
        )


SCENE_GENERATOR_PROMPT = """You are the SCENE GENERATOR for a live choose-your-own-adventure audio episode.

You use the World Bible to keep every scene consistent. It contains world rules, storytelling
guidelines, character framework, conflict patterns, audio direction, story arc guidance and
consistency rules.

Create scenes that:
1. STRICTLY follow the World Bible's world rules, tone and narrative voice
2. Continue the story naturally from the current State Card
3. End on two meaningful, DIFFERENT choices that lead to different consequences
4. Record the state changes of the scene in state_update
5. Direct the audio with 1-6 cues, at least one of them music

STATE UPDATE KINDS:
- {"kind": "location_change", "location": "..."}
- {"kind": "item_gained", "item": "..."}
- {"kind": "item_lost", "item": "..."}
- {"kind": "status_change", "subject": "...", "status": "..."}
- {"kind": "character_introduced", "name": "..."}
- {"kind": "note", "text": "..."} for anything else

AUDIO CUES:
- trigger is the inline marker, e.g. [MUSIC=tension_rising] or [SFX=door_creak]
- audio_direction references the World Bible's music style and intensity
- intensity is one of: subtle, moderate, dramatic

Remember: the host reads the narration aloud, then listeners discuss and vote.

IMPORTANT: Output ONLY valid JSON matching the schema."""


FINALE_PROMPT = """You are the SCENE GENERATOR creating the FINALE of a choose-your-own-adventure
audio episode.

Create a satisfying conclusion that:
1. Resolves the main story threads
2. References key moments and anchors from the journey
3. Delivers the kind of ending the World Bible's finale expectation describes
4. Ends on a note that fits the story's tone

The finale has NO choices. Include 1-6 audio cues, at least one of them music.

IMPORTANT: Output ONLY valid JSON matching the schema."""


IMPROVE_CHOICES_PROMPT = """You are the SCENE GENERATOR improving a scene's choice options based on feedback.

Good choices:
- Are meaningfully different from each other
- Are both reasonable options a listener might vote for
- Lead to different consequences and story branches
- Are clear, short and easy to read aloud
- Fit naturally with the narration

IMPORTANT: Output ONLY valid JSON matching the schema."""


class SceneGenerator:
    """
    Generates regular scenes and the finale.
    """

    def __init__(self, generator: Optional[BaseGenerationProvider] = None, model: Optional[str] = None):
        self.generator = generator or get_generation_provider()
        self.model = model
        logger.info("[SCENE_GENERATOR] Initialized")

    async def generate_scene(
        self,
        premise: str,
        world_bible: Optional[WorldBible],
        card: StateCard,
        scene_number: int,
        callback_suggestion: Optional[CallbackSuggestion] = None,
        previous_scene: Optional[Scene] = None,
    ) -> GeneratedScene:
        """
        Generate scene ``scene_number``.

        Args:
            premise: Episode premise
            world_bible: The episode's World Bible (required)
            card: State Card the scene continues from (may be a branch projection)
            scene_number: Number of the scene being generated
            callback_suggestion: Optional advice from the Continuity Analyzer
            previous_scene: Scene this one follows, for local continuity

        Returns:
            GeneratedScene

        Raises:
            MissingWorldBibleError: world_bible is None
        """
        if world_bible is None:
            raise MissingWorldBibleError()

        logger.info(f"[SCENE_GENERATOR] Generating scene {scene_number}...")

        callback_block = ""
        if callback_suggestion and callback_suggestion.should_use_callback and callback_suggestion.suggested_anchor:
            anchor = callback_suggestion.suggested_anchor
            callback_block = f"""
CALLBACK OPPORTUNITY ({callback_suggestion.impact_level.value}):
{callback_suggestion.reason}
Consider paying off anchor [{anchor.id}]: {anchor.description}
{f"Integration hint: {callback_suggestion.integration_hint}" if callback_suggestion.integration_hint else ""}
If you use it, set callback_anchor_id to "{anchor.id}".
"""

        previous_block = ""
        if previous_scene is not None:
            previous_block = f"""
PREVIOUS SCENE (Scene {previous_scene.scene_number}):
{previous_scene.narration}
"""

        user_prompt = f"""Generate Scene {scene_number} for this episode:

PREMISE: {premise}

WORLD BIBLE:
{world_bible.prompt_block()}

CURRENT STATE CARD:
{card.prompt_block()}
{previous_block}{callback_block}
Create an engaging scene that follows the World Bible, continues from the State Card,
and ends on two meaningful choices.

OUTPUT JSON:"""

        payload = await self.generator.generate(
            ScenePayload,
            SCENE_GENERATOR_PROMPT,
            user_prompt,
            model=self.model,
            temperature=0.9,
        )

        callback_anchor_id = payload.callback_anchor_id
        if callback_anchor_id:
            anchor = card.get_anchor(callback_anchor_id)
            if anchor is None or anchor.is_used:
                logger.warning(f"[SCENE_GENERATOR] Ignoring callback to ineligible anchor: {callback_anchor_id}")
                callback_anchor_id = None

        scene = GeneratedScene(
            narration=payload.narration.strip(),
            choice_a=payload.choice_a.strip(),
            choice_b=payload.choice_b.strip(),
            state_update=payload.state_update,
            audio_cues=self._build_cues(payload.audio_cues, world_bible),
            callback_anchor_id=callback_anchor_id,
        )

        logger.info(f"[SCENE_GENERATOR] Scene {scene_number} ready: {len(scene.narration.split())} words")
        logger.info(f"  - A: {scene.choice_a[:60]}")
        logger.info(f"  - B: {scene.choice_b[:60]}")
        logger.info(f"  - Audio cues: {len(scene.audio_cues)}")
        return scene

    async def generate_finale_scene(
        self,
        premise: str,
        world_bible: Optional[WorldBible],
        card: StateCard,
        scene_number: int,
        previous_scene: Optional[Scene] = None,
    ) -> GeneratedFinale:
        """Generate the concluding scene. Raises MissingWorldBibleError without a bible."""
        if world_bible is None:
            raise MissingWorldBibleError()

        logger.info(f"[SCENE_GENERATOR] Generating finale (scene {scene_number})...")

        used_anchors = ", ".join(a.description for a in card.anchors if a.is_used) or "(none)"
        previous_block = ""
        if previous_scene is not None:
            previous_block = f"\nPREVIOUS SCENE (Scene {previous_scene.scene_number}):\n{previous_scene.narration}\n"

        user_prompt = f"""Create the finale for this episode:

PREMISE: {premise}

WORLD BIBLE:
{world_bible.prompt_block()}

FINAL STATE CARD:
{card.prompt_block()}

Anchors paid off along the way: {used_anchors}
{previous_block}
Total scenes so far: {scene_number - 1}

OUTPUT JSON:"""

        payload = await self.generator.generate(
            FinalePayload,
            FINALE_PROMPT,
            user_prompt,
            model=self.model,
            temperature=0.8,
        )

        finale = GeneratedFinale(
            narration=payload.narration.strip(),
            resolution=payload.resolution.strip(),
            audio_cues=self._build_cues(payload.audio_cues, world_bible),
        )
        logger.info(f"[SCENE_GENERATOR] Finale ready: {finale.resolution[:80]}")
        return finale

    async def improve_scene_choices(
        self,
        narration: str,
        choice_a: str,
        choice_b: str,
        feedback: str,
    ) -> ImprovedChoices:
        """Rewrite a scene's two choices to address editorial feedback."""
        logger.info(f"[SCENE_GENERATOR] Improving choices: {feedback[:60]}")
        payload = await self.generator.generate(
            ImprovedChoicesPayload,
            IMPROVE_CHOICES_PROMPT,
            f"""Improve these scene choices based on the feedback provided:

NARRATION:
{narration}

CURRENT CHOICES:
A) {choice_a}
B) {choice_b}

FEEDBACK:
{feedback}

OUTPUT JSON:""",
            model=self.model,
            temperature=0.7,
        )
        return ImprovedChoices(
            choice_a=payload.improved_choice_a.strip(),
            choice_b=payload.improved_choice_b.strip(),
            reasoning=payload.reasoning,
        )

    def _build_cues(self, directives: List[AudioCueDirective], world_bible: WorldBible) -> List[AudioCue]:
        music_style = world_bible.audio_direction.music_style.strip()
        cues = []
        for directive in directives[:MAX_SCENE_AUDIO_CUES]:
            direction = directive.audio_direction.strip() or directive.description.strip()
            if music_style and music_style.lower() not in direction.lower():
                direction = f"{direction} (Style: {music_style})"
            cues.append(AudioCue(
                type=directive.type,
                trigger=directive.trigger.strip(),
                description=directive.description.strip(),
                timing=directive.timing,
                priority=directive.priority,
                intensity=directive.intensity.value,
                audio_direction=direction,
            ))
        return cues
