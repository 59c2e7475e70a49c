"""
Local audio provider - REQUIRED fallback.
"""
import io
import struct
from typing import Optional

from .base import BaseAudioProvider, SynthesizedAudio


class LocalAudioProvider(BaseAudioProvider):
    """Local audio provider. Generates silent WAV placeholders of the requested length."""

    SAMPLE_RATE = 8000
    CHANNELS = 1
    BITS_PER_SAMPLE = 16
    DEFAULT_SFX_SECONDS = 2.0
    MAX_SECONDS = 300.0

    @property
    def name(self) -> str:
        return "local"

    @property
    def is_available(self) -> bool:
        return True

    async def compose_music(self, prompt: str, duration_ms: int) -> SynthesizedAudio:
        duration = self._clamp(duration_ms / 1000.0)
        return SynthesizedAudio(
            data=self._silent_wav(duration),
            mime_type="audio/wav",
            extension="wav",
            duration_seconds=duration,
        )

    async def synthesize_sound_effect(
        self,
        text: str,
        duration_seconds: Optional[float] = None,
        prompt_influence: float = 0.3,
        loop: bool = False,
    ) -> SynthesizedAudio:
        duration = self._clamp(duration_seconds or self.DEFAULT_SFX_SECONDS)
        return SynthesizedAudio(
            data=self._silent_wav(duration),
            mime_type="audio/wav",
            extension="wav",
            duration_seconds=duration,
        )

    def _clamp(self, seconds: float) -> float:
        return max(0.1, min(seconds, self.MAX_SECONDS))

    def _silent_wav(self, duration: float) -> bytes:
        num_samples = int(self.SAMPLE_RATE * duration)
        bytes_per_sample = self.BITS_PER_SAMPLE // 8
        data_size = num_samples * self.CHANNELS * bytes_per_sample
        byte_rate = self.SAMPLE_RATE * self.CHANNELS * bytes_per_sample

        buffer = io.BytesIO()
        buffer.write(b"RIFF")
        buffer.write(struct.pack("<I", 36 + data_size))
        buffer.write(b"WAVE")

        buffer.write(b"fmt ")
        buffer.write(struct.pack("<IHHIIHH", 16, 1, self.CHANNELS, self.SAMPLE_RATE,
                                 byte_rate, self.CHANNELS * bytes_per_sample, self.BITS_PER_SAMPLE))

        buffer.write(b"data")
        buffer.write(struct.pack("<I", data_size))
        buffer.write(b"\x00" * data_size)
        return buffer.getvalue()
