"""
Pydantic schemas for API requests and responses.
"""
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field, field_validator

from storycast.services.agents.world_bible_builder import MAX_PREMISE_LENGTH, MIN_PREMISE_LENGTH


class StartEpisodeRequest(BaseModel):
    """POST /api/episodes request body."""
    title: str = Field(default="Untitled episode", min_length=1, max_length=200)
    premise: str = Field(..., min_length=MIN_PREMISE_LENGTH, max_length=MAX_PREMISE_LENGTH)
    episode_id: Optional[str] = Field(default=None, description="Client-chosen id (auto-generated if not provided)")

    @field_validator("premise")
    @classmethod
    def strip_premise(cls, v: str) -> str:
        v = v.strip()
        if len(v) < MIN_PREMISE_LENGTH:
            raise ValueError(f"premise must be at least {MIN_PREMISE_LENGTH} characters")
        return v


class ChoiceRequest(BaseModel):
    """POST /api/episodes/{id}/choices request body."""
    choice: Literal["A", "B"]

    @field_validator("choice", mode="before")
    @classmethod
    def upper_choice(cls, v: Any) -> Any:
        return v.strip().upper() if isinstance(v, str) else v


class FinaleRequest(BaseModel):
    """POST /api/episodes/{id}/finale request body."""
    choice: Optional[Literal["A", "B"]] = None

    @field_validator("choice", mode="before")
    @classmethod
    def upper_choice(cls, v: Any) -> Any:
        if isinstance(v, str):
            v = v.strip().upper()
            return v or None
        return v


class StartEpisodeResponse(BaseModel):
    episode: Dict[str, Any]
    first_scene: Dict[str, Any]
    state_card: Dict[str, Any]


class ChoiceResponse(BaseModel):
    next_scene: Dict[str, Any]
    state_card: Dict[str, Any]
    audio_generated: bool


class FinaleResponse(BaseModel):
    episode: Dict[str, Any]
    finale_scene: Dict[str, Any]
    state_card: Dict[str, Any]
    audio_generated: bool


class WindowResponse(BaseModel):
    episode_id: str
    phase: str
    pending: bool
    ready: bool
    current: Optional[Dict[str, Any]] = None
    option_a: Optional[Dict[str, Any]] = None
    option_b: Optional[Dict[str, Any]] = None


class EpisodeResponse(BaseModel):
    episode: Dict[str, Any]
    scenes: List[Dict[str, Any]] = Field(default_factory=list)


class EpisodeListResponse(BaseModel):
    total: int
    episodes: List[Dict[str, Any]] = Field(default_factory=list)


class AudioListResponse(BaseModel):
    episode_id: str
    total: int
    ready: int
    audio: List[Dict[str, Any]] = Field(default_factory=list)


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    service: str
    version: str
    database_connected: bool
    generation_configured: bool
    timestamp: datetime
