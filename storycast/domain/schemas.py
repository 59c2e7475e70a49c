"""
Pydantic schemas shared by the episode agents.

The WorldBible is the one-per-episode creative blueprint; every scene and
audio call receives it as a parameter. State deltas are a tagged union on
``kind`` so the State Tracker can read them without guessing their shape.
"""
from enum import Enum
from typing import Annotated, List, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter, field_validator


class Pacing(str, Enum):
    FAST = "fast"
    MODERATE = "moderate"
    SLOW = "slow"


class Complexity(str, Enum):
    SIMPLE = "simple"
    MODERATE = "moderate"
    COMPLEX = "complex"


class AudioIntensity(str, Enum):
    SUBTLE = "subtle"
    MODERATE = "moderate"
    DRAMATIC = "dramatic"


def _lowercase_enum(value):
    # Models regularly answer "Moderate" for a lowercase enum
    if isinstance(value, str):
        return value.strip().lower()
    return value


class WorldRules(BaseModel):
    genre: str = Field(..., min_length=1, description="Primary genre (thriller, fantasy, sci-fi, etc.)")
    style: str = Field(..., min_length=1, description="Free-text creative style, e.g. 'gothic horror'")
    tone: str = Field(..., min_length=1, description="Overall emotional tone and atmosphere")
    setting: str = Field(..., description="Where and when the story takes place")
    timeframe: str = Field(..., description="Historical period, season, time constraints")
    core_conflict: str = Field(..., description="The central tension driving the episode")
    world_logic: List[str] = Field(default_factory=list, description="Rules that govern how this world works")


class StorytellingGuidelines(BaseModel):
    narrative_voice: str = Field(..., description="How all narration should be written and delivered")
    pacing: Pacing
    complexity: Complexity
    atmosphere_keywords: List[str] = Field(default_factory=list)
    choice_philosophy: str = Field(..., description="What makes choices meaningful in this story")
    scene_structure_notes: str = Field(..., description="How scenes are structured for impact")

    _normalize_enums = field_validator("pacing", "complexity", mode="before")(_lowercase_enum)


class CharacterFramework(BaseModel):
    protagonist_types: List[str] = Field(default_factory=list)
    antagonist_types: List[str] = Field(default_factory=list)
    supporting_types: List[str] = Field(default_factory=list)
    character_voice_guidelines: str


class ConflictPatterns(BaseModel):
    typical_conflicts: List[str] = Field(default_factory=list)
    escalation_pattern: str
    resolution_approach: str


class AudioDirection(BaseModel):
    music_style: str = Field(..., min_length=1, description="Musical style and instrumentation approach")
    common_sfx_types: List[str] = Field(default_factory=list)
    audio_intensity_range: AudioIntensity
    atmosphere_notes: str

    _normalize_enums = field_validator("audio_intensity_range", mode="before")(_lowercase_enum)


class StoryArcGuidance(BaseModel):
    expected_progression: str
    key_fact_types: List[str] = Field(default_factory=list)
    likely_anchor_types: List[str] = Field(default_factory=list)
    finale_expectation: str


class WorldBible(BaseModel):
    """Complete creative world and guidelines for one episode."""
    world_rules: WorldRules
    storytelling_guidelines: StorytellingGuidelines
    character_framework: CharacterFramework
    conflict_patterns: ConflictPatterns
    audio_direction: AudioDirection
    story_arc_guidance: StoryArcGuidance
    consistency_rules: List[str] = Field(default_factory=list)
    reasoning: str

    def prompt_block(self) -> str:
        """Render the bible as JSON for inclusion in generation prompts."""
        return self.model_dump_json(indent=2)


# ═══════════════════════════════════════════════════════════════════════════════
# STATE DELTAS
# ═══════════════════════════════════════════════════════════════════════════════

class LocationChange(BaseModel):
    kind: Literal["location_change"] = "location_change"
    location: str = Field(..., min_length=1)

    def describe(self) -> str:
        return f"Moved to {self.location}"


class ItemGained(BaseModel):
    kind: Literal["item_gained"] = "item_gained"
    item: str = Field(..., min_length=1)

    def describe(self) -> str:
        return f"Gained {self.item}"


class ItemLost(BaseModel):
    kind: Literal["item_lost"] = "item_lost"
    item: str = Field(..., min_length=1)

    def describe(self) -> str:
        return f"Lost {self.item}"


class StatusChange(BaseModel):
    kind: Literal["status_change"] = "status_change"
    subject: str = Field(..., min_length=1, description="Who or what changed")
    status: str = Field(..., min_length=1, description="The new status, e.g. 'injured', 'trusts the guide'")

    def describe(self) -> str:
        return f"{self.subject} is now {self.status}"


class CharacterIntroduced(BaseModel):
    kind: Literal["character_introduced"] = "character_introduced"
    name: str = Field(..., min_length=1)

    def describe(self) -> str:
        return f"Met {self.name}"


class NoteDelta(BaseModel):
    """Free-form annotation for changes that fit no other kind."""
    kind: Literal["note"] = "note"
    text: str = Field(..., min_length=1)

    def describe(self) -> str:
        return self.text


StateDelta = Annotated[
    Union[LocationChange, ItemGained, ItemLost, StatusChange, CharacterIntroduced, NoteDelta],
    Field(discriminator="kind"),
]

STATE_DELTAS = TypeAdapter(List[StateDelta])
