"""
Runtime data types for interactive episodes.

Scenes, state cards and audio cues travel between agents, the orchestrator
and the repositories, so each one knows how to render itself as a plain
dict (for JSON columns and API payloads) and how to rebuild itself from one.
"""
import copy
import uuid
from datetime import datetime
from enum import Enum
from dataclasses import dataclass, field
from typing import Optional, List, Dict, Any

from .schemas import StateDelta, STATE_DELTAS


class EpisodeStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    ABANDONED = "abandoned"


class ChoiceOption(str, Enum):
    A = "A"
    B = "B"


class AudioType(str, Enum):
    MUSIC = "music"
    SFX = "sfx"


class AudioStatus(str, Enum):
    PENDING = "pending"
    GENERATING = "generating"
    READY = "ready"
    FAILED = "failed"


class CuePriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


def _parse_datetime(value) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(value)


# ═══════════════════════════════════════════════════════════════════════════════
# STATE CARD
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass
class Anchor:
    """A narrative detail planted for a later callback."""
    id: str
    description: str
    is_used: bool = False
    created_at_scene: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "description": self.description,
            "is_used": self.is_used,
            "created_at_scene": self.created_at_scene,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Anchor":
        return cls(
            id=data["id"],
            description=data.get("description", ""),
            is_used=bool(data.get("is_used", False)),
            created_at_scene=int(data.get("created_at_scene", 0)),
        )


@dataclass
class StateCard:
    """Canonical narrative memory of an episode."""
    story_so_far: str = ""
    key_facts: List[str] = field(default_factory=list)
    anchors: List[Anchor] = field(default_factory=list)

    def copy(self) -> "StateCard":
        return copy.deepcopy(self)

    def get_anchor(self, anchor_id: str) -> Optional[Anchor]:
        for anchor in self.anchors:
            if anchor.id == anchor_id:
                return anchor
        return None

    def unused_anchors(self) -> List[Anchor]:
        return [a for a in self.anchors if not a.is_used]

    def prompt_block(self) -> str:
        """Human-readable rendering used inside generation prompts."""
        facts = "\n".join(f"- {fact}" for fact in self.key_facts) or "- (none yet)"
        anchors = "\n".join(
            f"- [{a.id}] {a.description} (planted scene {a.created_at_scene}, "
            f"{'USED' if a.is_used else 'available'})"
            for a in self.anchors
        ) or "- (none yet)"
        return (
            f"STORY SO FAR:\n{self.story_so_far or '(the story has not started)'}\n\n"
            f"KEY FACTS:\n{facts}\n\n"
            f"ANCHORS:\n{anchors}"
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "story_so_far": self.story_so_far,
            "key_facts": list(self.key_facts),
            "anchors": [a.to_dict() for a in self.anchors],
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "StateCard":
        data = data or {}
        return cls(
            story_so_far=data.get("story_so_far", ""),
            key_facts=list(data.get("key_facts", [])),
            anchors=[Anchor.from_dict(a) for a in data.get("anchors", [])],
        )


# ═══════════════════════════════════════════════════════════════════════════════
# SCENES
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass
class AudioCue:
    """A request for music or a sound effect attached to a scene."""
    type: AudioType
    trigger: str
    description: str
    timing: Optional[float] = None
    priority: CuePriority = CuePriority.MEDIUM
    intensity: str = "moderate"
    audio_direction: str = ""
    # Filled in by the music / SFX directors
    prompt: str = ""
    duration_ms: Optional[int] = None
    duration_seconds: Optional[float] = None
    is_instrumental: bool = False
    loop: bool = False
    prompt_influence: Optional[float] = None
    category: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type.value,
            "trigger": self.trigger,
            "description": self.description,
            "timing": self.timing,
            "priority": self.priority.value,
            "intensity": self.intensity,
            "audio_direction": self.audio_direction,
            "prompt": self.prompt,
            "duration_ms": self.duration_ms,
            "duration_seconds": self.duration_seconds,
            "is_instrumental": self.is_instrumental,
            "loop": self.loop,
            "prompt_influence": self.prompt_influence,
            "category": self.category,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AudioCue":
        return cls(
            type=AudioType(data["type"]),
            trigger=data.get("trigger", ""),
            description=data.get("description", ""),
            timing=data.get("timing"),
            priority=CuePriority(data.get("priority", "medium")),
            intensity=data.get("intensity", "moderate"),
            audio_direction=data.get("audio_direction", ""),
            prompt=data.get("prompt", ""),
            duration_ms=data.get("duration_ms"),
            duration_seconds=data.get("duration_seconds"),
            is_instrumental=bool(data.get("is_instrumental", False)),
            loop=bool(data.get("loop", False)),
            prompt_influence=data.get("prompt_influence"),
            category=data.get("category"),
        )


@dataclass
class Scene:
    """One narrated unit of an episode, ending in a binary choice (or a resolution)."""
    episode_id: str
    scene_number: int
    narration: str
    choice_a: str = ""
    choice_b: str = ""
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    chosen_option: Optional[ChoiceOption] = None
    state_update: List[StateDelta] = field(default_factory=list)
    audio_cues: List[AudioCue] = field(default_factory=list)
    callback_anchor_id: Optional[str] = None
    resolution: Optional[str] = None
    created_at: datetime = field(default_factory=datetime.utcnow)

    @property
    def is_finale(self) -> bool:
        return self.resolution is not None

    def choice_text(self, option: ChoiceOption) -> str:
        return self.choice_a if option == ChoiceOption.A else self.choice_b

    def copy(self) -> "Scene":
        return copy.deepcopy(self)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "episode_id": self.episode_id,
            "scene_number": self.scene_number,
            "narration": self.narration,
            "choice_a": self.choice_a,
            "choice_b": self.choice_b,
            "chosen_option": self.chosen_option.value if self.chosen_option else None,
            "state_update": STATE_DELTAS.dump_python(self.state_update, mode="json"),
            "audio_cues": [cue.to_dict() for cue in self.audio_cues],
            "callback_anchor_id": self.callback_anchor_id,
            "resolution": self.resolution,
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Scene":
        chosen = data.get("chosen_option")
        return cls(
            id=data["id"],
            episode_id=data["episode_id"],
            scene_number=int(data["scene_number"]),
            narration=data["narration"],
            choice_a=data.get("choice_a") or "",
            choice_b=data.get("choice_b") or "",
            chosen_option=ChoiceOption(chosen) if chosen else None,
            state_update=STATE_DELTAS.validate_python(data.get("state_update") or []),
            audio_cues=[AudioCue.from_dict(c) for c in data.get("audio_cues") or []],
            callback_anchor_id=data.get("callback_anchor_id"),
            resolution=data.get("resolution"),
            created_at=_parse_datetime(data.get("created_at")) or datetime.utcnow(),
        )


# ═══════════════════════════════════════════════════════════════════════════════
# EPISODES AND AUDIO
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass
class Episode:
    """
    Persisted episode record.

    ``total_scenes`` counts scenes reached after the opening: scene 1 is not
    counted when the episode starts, each choice adds one, and the finale adds
    two so a completed episode's count equals its stored scenes. While the
    episode is active the count is one less than the stored scenes.
    """
    id: str
    account_id: str
    created_by: str
    title: str
    premise: str
    state_card: StateCard = field(default_factory=StateCard)
    status: EpisodeStatus = EpisodeStatus.ACTIVE
    total_scenes: int = 0
    total_choices: int = 0
    created_at: datetime = field(default_factory=datetime.utcnow)
    updated_at: datetime = field(default_factory=datetime.utcnow)
    completed_at: Optional[datetime] = None

    @property
    def is_active(self) -> bool:
        return self.status == EpisodeStatus.ACTIVE

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "account_id": self.account_id,
            "created_by": self.created_by,
            "title": self.title,
            "premise": self.premise,
            "state_card": self.state_card.to_dict(),
            "status": self.status.value,
            "total_scenes": self.total_scenes,
            "total_choices": self.total_choices,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
        }


@dataclass
class EpisodeAudio:
    """One generated (or failed) audio asset."""
    id: str
    episode_id: str
    audio_type: AudioType
    status: AudioStatus = AudioStatus.PENDING
    scene_id: Optional[str] = None
    trigger_text: Optional[str] = None
    description: Optional[str] = None
    audio_url: Optional[str] = None
    storage_path: Optional[str] = None
    file_size: Optional[int] = None
    mime_type: Optional[str] = None
    duration_seconds: Optional[float] = None
    provider: Optional[str] = None
    error: Optional[str] = None
    created_at: datetime = field(default_factory=datetime.utcnow)
    updated_at: datetime = field(default_factory=datetime.utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "episode_id": self.episode_id,
            "scene_id": self.scene_id,
            "audio_type": self.audio_type.value,
            "status": self.status.value,
            "trigger_text": self.trigger_text,
            "description": self.description,
            "audio_url": self.audio_url,
            "storage_path": self.storage_path,
            "file_size": self.file_size,
            "mime_type": self.mime_type,
            "duration_seconds": self.duration_seconds,
            "provider": self.provider,
            "error": self.error,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }


# ═══════════════════════════════════════════════════════════════════════════════
# ROLLING WINDOW
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass
class RollingWindow:
    """The current scene plus the two pre-generated children of its choice."""
    current: Optional[Scene] = None
    option_a: Optional[Scene] = None
    option_b: Optional[Scene] = None

    @property
    def is_ready(self) -> bool:
        return self.option_a is not None and self.option_b is not None

    def option(self, choice: ChoiceOption) -> Optional[Scene]:
        return self.option_a if choice == ChoiceOption.A else self.option_b

    def promote(self, choice: ChoiceOption) -> Scene:
        """Make the chosen child the current scene and drop both options."""
        chosen = self.option(choice)
        if chosen is None:
            raise ValueError(f"No pre-generated scene for option {choice.value}")
        self.current = chosen
        self.option_a = None
        self.option_b = None
        return chosen

    def snapshot(self) -> "RollingWindow":
        return copy.deepcopy(self)
