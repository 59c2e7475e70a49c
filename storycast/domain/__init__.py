"""
Episode domain types: world bible, state card, scenes, audio cues.
"""
from .schemas import (
    AudioDirection,
    AudioIntensity,
    CharacterFramework,
    CharacterIntroduced,
    Complexity,
    ConflictPatterns,
    ItemGained,
    ItemLost,
    LocationChange,
    NoteDelta,
    Pacing,
    StateDelta,
    STATE_DELTAS,
    StatusChange,
    StoryArcGuidance,
    StorytellingGuidelines,
    WorldBible,
    WorldRules,
)
from .models import (
    Anchor,
    AudioCue,
    AudioStatus,
    AudioType,
    ChoiceOption,
    CuePriority,
    Episode,
    EpisodeAudio,
    EpisodeStatus,
    RollingWindow,
    Scene,
    StateCard,
)

__all__ = [
    "AudioDirection",
    "AudioIntensity",
    "CharacterFramework",
    "CharacterIntroduced",
    "Complexity",
    "ConflictPatterns",
    "ItemGained",
    "ItemLost",
    "LocationChange",
    "NoteDelta",
    "Pacing",
    "StateDelta",
    "STATE_DELTAS",
    "StatusChange",
    "StoryArcGuidance",
    "StorytellingGuidelines",
    "WorldBible",
    "WorldRules",
    "Anchor",
    "AudioCue",
    "AudioStatus",
    "AudioType",
    "ChoiceOption",
    "CuePriority",
    "Episode",
    "EpisodeAudio",
    "EpisodeStatus",
    "RollingWindow",
    "Scene",
    "StateCard",
]
