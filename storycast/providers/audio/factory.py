"""
Audio provider factory.
"""
import logging
from typing import Literal

from .base import BaseAudioProvider
from .elevenlabs import ElevenLabsAudioProvider
from .local import LocalAudioProvider

logger = logging.getLogger(__name__)

ProviderType = Literal["auto", "elevenlabs", "local"]


class AudioProviderFactory:
    """Factory for creating audio providers with automatic fallback."""

    _providers = {
        "elevenlabs": ElevenLabsAudioProvider,
        "local": LocalAudioProvider,
    }

    @classmethod
    def create(cls, provider: ProviderType = "auto") -> BaseAudioProvider:
        if provider == "auto":
            return cls._create_auto()
        if provider not in cls._providers:
            logger.warning(f"[AUDIO] Unknown provider '{provider}' - using local")
            return LocalAudioProvider()
        return cls._providers[provider]()

    @classmethod
    def _create_auto(cls) -> BaseAudioProvider:
        p = ElevenLabsAudioProvider()
        if p.is_available:
            return p
        logger.info("[AUDIO] ElevenLabs not configured - using local silent tracks")
        return LocalAudioProvider()


def get_audio_provider(provider: ProviderType = "auto") -> BaseAudioProvider:
    """Get an audio provider; 'auto' prefers ElevenLabs and falls back to local."""
    return AudioProviderFactory.create(provider)
