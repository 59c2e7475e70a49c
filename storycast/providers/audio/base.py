"""
Base class for music and sound-effect synthesis providers.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional


@dataclass
class SynthesizedAudio:
    """Raw audio returned by a provider."""
    data: bytes
    mime_type: str
    extension: str
    duration_seconds: Optional[float] = None

    @property
    def size(self) -> int:
        return len(self.data)


class BaseAudioProvider(ABC):
    """Abstract base class for audio synthesis providers."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider name."""
        pass

    @property
    @abstractmethod
    def is_available(self) -> bool:
        """Check if provider is available."""
        pass

    @abstractmethod
    async def compose_music(self, prompt: str, duration_ms: int) -> SynthesizedAudio:
        """
        Compose an instrumental track.

        Args:
            prompt: Full music prompt
            duration_ms: Track length in milliseconds

        Returns:
            SynthesizedAudio with the encoded track
        """
        pass

    @abstractmethod
    async def synthesize_sound_effect(
        self,
        text: str,
        duration_seconds: Optional[float] = None,
        prompt_influence: float = 0.3,
        loop: bool = False,
    ) -> SynthesizedAudio:
        """
        Generate a sound effect from a text description.

        Args:
            text: Effect description
            duration_seconds: Optional length; provider decides when omitted
            prompt_influence: 0..1, how literally to follow the text
            loop: Whether the effect should loop seamlessly

        Returns:
            SynthesizedAudio with the encoded effect
        """
        pass

    async def close(self) -> None:
        return None
