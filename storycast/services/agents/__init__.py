"""
Multi-Agent System for Interactive Audio Episodes.

Architecture:
- Agent 1: World Bible Builder - Immutable creative constraints, once per episode
- Agent 2: State Tracker - Canonical State Card (story so far, key facts, anchors)
- Agent 3: Continuity Analyzer - Callback suggestions and consistency checks
- Agent 4: Scene Generator - Narration, two choices and audio cues per scene
- Agent 5: Music Director / SFX Director - Provider-ready audio prompts
- Orchestrator - Rolling window, pre-generation, persistence and audio scheduling
"""

from .world_bible_builder import WorldBibleBuilder, validate_premise
from .state_tracker import StateTracker, project_state
from .continuity_analyzer import (
    ContinuityAnalyzer,
    CallbackSuggestion,
    ContinuityReport,
    AnchorEvaluation,
    StoryConnection,
    SceneKind,
)
from .scene_generator import SceneGenerator, GeneratedScene, GeneratedFinale, ImprovedChoices
from .music_director import MusicDirector
from .sfx_director import SFXDirector
from .session import EpisodePhase, EpisodeSession, SessionStore
from .orchestrator import (
    EpisodeOrchestrator,
    StartResult,
    ChoiceResult,
    FinaleResult,
    WindowSnapshot,
    parse_choice,
    get_orchestrator,
    reset_orchestrator,
    shutdown_orchestrator,
)
from .exceptions import (
    EpisodeError,
    InvalidPremiseError,
    InvalidChoiceError,
    EpisodeNotFoundError,
    SessionNotFoundError,
    MissingWorldBibleError,
    NoPregeneratedSceneError,
    InvalidStateError,
    ConcurrentModificationError,
    StaleStateUpdateError,
    GenerationTimeoutError,
)

__all__ = [
    "WorldBibleBuilder",
    "validate_premise",
    "StateTracker",
    "project_state",
    "ContinuityAnalyzer",
    "CallbackSuggestion",
    "ContinuityReport",
    "AnchorEvaluation",
    "StoryConnection",
    "SceneKind",
    "SceneGenerator",
    "GeneratedScene",
    "GeneratedFinale",
    "ImprovedChoices",
    "MusicDirector",
    "SFXDirector",
    "EpisodePhase",
    "EpisodeSession",
    "SessionStore",
    "EpisodeOrchestrator",
    "StartResult",
    "ChoiceResult",
    "FinaleResult",
    "WindowSnapshot",
    "parse_choice",
    "get_orchestrator",
    "reset_orchestrator",
    "shutdown_orchestrator",
    "EpisodeError",
    "InvalidPremiseError",
    "InvalidChoiceError",
    "EpisodeNotFoundError",
    "SessionNotFoundError",
    "MissingWorldBibleError",
    "NoPregeneratedSceneError",
    "InvalidStateError",
    "ConcurrentModificationError",
    "StaleStateUpdateError",
    "GenerationTimeoutError",
]
