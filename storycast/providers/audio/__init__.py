"""
Music and sound-effect providers.
"""
from .base import BaseAudioProvider, SynthesizedAudio
from .elevenlabs import ElevenLabsAudioProvider
from .local import LocalAudioProvider
from .factory import AudioProviderFactory, get_audio_provider

__all__ = [
    "BaseAudioProvider",
    "SynthesizedAudio",
    "ElevenLabsAudioProvider",
    "LocalAudioProvider",
    "AudioProviderFactory",
    "get_audio_provider",
]
