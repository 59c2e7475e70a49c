"""
ElevenLabs music and sound-effect provider.
"""
import logging
import os
from typing import Optional

import httpx

from .base import BaseAudioProvider, SynthesizedAudio
from ..exceptions import AudioGenerationFailure, ProviderUnavailable

logger = logging.getLogger(__name__)

ELEVENLABS_API_URL = "https://api.elevenlabs.io/v1"
OUTPUT_FORMAT = "mp3_44100_128"


class ElevenLabsAudioProvider(BaseAudioProvider):
    """ElevenLabs Music and Sound Effects API provider."""

    ENV_KEY = "ELEVENLABS_API_KEY"

    def __init__(self, api_key: Optional[str] = None, client: Optional[httpx.AsyncClient] = None):
        self._api_key = api_key or os.environ.get(self.ENV_KEY)
        if self._api_key and self._api_key.startswith("PASTE_"):
            self._api_key = None
        self.client = client or httpx.AsyncClient(timeout=300.0)

    @property
    def name(self) -> str:
        return "elevenlabs"

    @property
    def is_available(self) -> bool:
        return bool(self._api_key)

    @property
    def _headers(self) -> dict:
        return {
            "xi-api-key": self._api_key or "",
            "Content-Type": "application/json",
            "Accept": "audio/mpeg",
        }

    async def compose_music(self, prompt: str, duration_ms: int) -> SynthesizedAudio:
        payload = {
            "prompt": prompt,
            "music_length_ms": duration_ms,
        }
        data = await self._post("/music", payload)
        return SynthesizedAudio(
            data=data,
            mime_type="audio/mpeg",
            extension="mp3",
            duration_seconds=duration_ms / 1000.0,
        )

    async def synthesize_sound_effect(
        self,
        text: str,
        duration_seconds: Optional[float] = None,
        prompt_influence: float = 0.3,
        loop: bool = False,
    ) -> SynthesizedAudio:
        payload = {
            "text": text,
            "prompt_influence": prompt_influence,
            "loop": loop,
        }
        if duration_seconds is not None:
            payload["duration_seconds"] = duration_seconds

        data = await self._post("/sound-generation", payload)
        return SynthesizedAudio(
            data=data,
            mime_type="audio/mpeg",
            extension="mp3",
            duration_seconds=duration_seconds,
        )

    async def _post(self, path: str, payload: dict) -> bytes:
        if not self.is_available:
            raise ProviderUnavailable(self.name, f"Missing {self.ENV_KEY}")

        try:
            response = await self.client.post(
                f"{ELEVENLABS_API_URL}{path}",
                params={"output_format": OUTPUT_FORMAT},
                headers=self._headers,
                json=payload,
            )
        except httpx.TransportError as e:
            raise AudioGenerationFailure(self.name, f"{path} request failed: {e}") from e

        if response.status_code != 200:
            logger.error(f"[ELEVENLABS] {path} failed: {response.status_code} {response.text[:200]}")
            raise AudioGenerationFailure(self.name, f"{path} returned {response.status_code}: {response.text[:200]}")

        if not response.content:
            raise AudioGenerationFailure(self.name, f"{path} returned empty audio")

        return response.content

    async def close(self) -> None:
        await self.client.aclose()
