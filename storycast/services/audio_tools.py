"""
Audio Tools - Realizes music and SFX cues into stored audio assets.

Each cue becomes one EpisodeAudio row that moves
pending -> generating -> ready | failed. A failed cue is recorded on its row
and never raised to the caller, so one broken sound cannot stop a scene.

Cues run in parallel under a semaphore to stay inside provider rate limits.
"""

import asyncio
import logging
import re
from typing import Any, Dict, List, Optional

from storycast.domain.models import AudioCue, AudioType, EpisodeAudio, Scene
from storycast.persistence.audio_repo import EpisodeAudioRepository, get_audio_repository
from storycast.providers.audio import BaseAudioProvider, SynthesizedAudio, get_audio_provider
from storycast.providers.exceptions import ProviderError
from storycast.providers.storage import BaseBlobStore, get_blob_store

logger = logging.getLogger(__name__)

INSTRUMENTAL_MARKER = "instrumental only"
DEFAULT_MUSIC_MS = 30_000
DEFAULT_PROMPT_INFLUENCE = 0.3

GENRE_TEMPLATES = {
    "horror": (
        "Create a haunting, atmospheric {description}. Use dark ambient textures, subtle dissonance, "
        "low-frequency drones, and sparse, eerie instrumentation. Build tension with gradual dynamic "
        "swells and unsettling harmonic progressions."
    ),
    "fantasy": (
        "Create an enchanting, orchestral {description}. Use soaring strings, magical harp arpeggios, "
        "woodwind melodies, and warm brass sections. Include mystical textures with ethereal pads "
        "and Celtic-inspired motifs."
    ),
    "noir": (
        "Create a sophisticated, jazzy {description}. Use smooth saxophone lines, muted trumpet, "
        "upright bass walking lines, and subtle jazz drums. Include smoky piano chords and classic "
        "film noir harmonic progressions."
    ),
    "comedy": (
        "Create a playful, upbeat {description}. Use bright orchestral colors, bouncy rhythms, "
        "whimsical woodwind melodies, and light percussion. Include cheerful harmonic progressions."
    ),
    "adventure": (
        "Create an epic, cinematic {description}. Use full orchestral arrangement with powerful brass "
        "fanfares, driving string ostinatos, heroic melodies, and dynamic percussion. Build excitement "
        "with tempo changes and crescendos."
    ),
    "mystery": (
        "Create a suspenseful, intriguing {description}. Use pizzicato strings, subtle percussion, "
        "mysterious piano figures, and sparse instrumentation. Build tension with chromatic harmonies "
        "and unexpected musical turns."
    ),
}


def create_music_prompt(style: str, description: str, duration: int) -> str:
    """
    Build a music prompt from a genre template.

    Args:
        style: Genre or free-text style ("horror", "gothic horror", "synthwave")
        description: What the music accompanies
        duration: Approximate length in seconds
    """
    style_key = (style or "").strip().lower()
    template = GENRE_TEMPLATES.get(style_key)
    if template is None:
        template = next((t for genre, t in GENRE_TEMPLATES.items() if genre in style_key), None)

    if template is not None:
        base = template.format(description=description)
    else:
        base = (
            f"Create atmospheric {style} music for {description}. "
            f"Use instrumentation and harmonies appropriate for the {style} genre."
        )

    return (
        f"{base} Duration: approximately {duration} seconds. "
        f"Suitable for podcast background music - instrumental only, well-mixed and balanced."
    )


def build_audio_path(
    episode_id: str,
    cue: AudioCue,
    scene_number: Optional[int],
    audio_id: str,
    extension: str = "mp3",
) -> str:
    """Storage path for a realized cue."""
    if cue.type == AudioType.MUSIC:
        if cue.category == "episode_theme":
            return f"{episode_id}/music/episode-theme.{extension}"
        if scene_number is None:
            return f"{episode_id}/music/{audio_id}.{extension}"
        if cue.category in (None, "scene_theme"):
            return f"{episode_id}/music/scene-{scene_number}-theme.{extension}"
        return f"{episode_id}/music/scene-{scene_number}-{cue.category}-{audio_id}.{extension}"

    if cue.category == "ambient" or scene_number is None:
        return f"{episode_id}/sfx/ambient-{audio_id}.{extension}"
    return f"{episode_id}/sfx/scene-{scene_number}-{audio_id}.{extension}"


def embed_audio_cues(narration: str, cues: List[AudioCue]) -> str:
    """
    Insert cue triggers into narration so a host script shows where each cue fires.

    Music triggers open the narration. An SFX trigger goes right after the
    first occurrence of the first word of its description, or at the end
    when that word never appears. Triggers already in the text are left alone.
    """
    text = narration
    openers = []

    for cue in cues:
        if not cue.trigger or cue.trigger in text:
            continue
        if cue.type == AudioType.MUSIC:
            openers.append(cue.trigger)
            continue

        words = cue.description.split()
        keyword = re.sub(r"\W", "", words[0]) if words else ""
        pattern = re.compile(rf"\b{re.escape(keyword)}\b", re.IGNORECASE) if keyword else None
        match = pattern.search(text) if pattern else None
        if match:
            text = f"{text[:match.end()]} {cue.trigger}{text[match.end():]}"
        else:
            text = f"{text.rstrip()} {cue.trigger}"

    if openers:
        text = f"{' '.join(openers)} {text}"
    return text


def scene_with_cues(scene: Scene) -> Dict[str, Any]:
    """Scene dict plus ``narration_with_cues`` for hosts and clients."""
    data = scene.to_dict()
    data["narration_with_cues"] = embed_audio_cues(scene.narration, scene.audio_cues)
    return data


class AudioTools:
    """
    Turns director cues into stored audio and EpisodeAudio rows.
    """

    def __init__(
        self,
        provider: Optional[BaseAudioProvider] = None,
        blob_store: Optional[BaseBlobStore] = None,
        repository: Optional[EpisodeAudioRepository] = None,
        max_concurrent: Optional[int] = None,
    ):
        from storycast.config import config
        self.provider = provider or get_audio_provider(config.episodes.audio_provider)
        self.blob_store = blob_store or get_blob_store()
        self.repository = repository or get_audio_repository()
        self.max_concurrent = max_concurrent or config.episodes.audio_max_concurrent
        self.semaphore = asyncio.Semaphore(self.max_concurrent)
        logger.info(f"[AUDIO_TOOLS] Provider: {self.provider.name}, max concurrent: {self.max_concurrent}")

    async def realize_cue(
        self,
        episode_id: str,
        cue: AudioCue,
        scene: Optional[Scene] = None,
    ) -> EpisodeAudio:
        """
        Synthesize, upload and record one cue.

        Returns:
            The final EpisodeAudio row (ready or failed)
        """
        record = self.repository.create_pending(
            episode_id,
            cue.type,
            scene_id=scene.id if scene else None,
            trigger_text=cue.trigger,
            description=cue.description,
        )

        async with self.semaphore:
            self.repository.mark_generating(record.id)
            try:
                audio = await self._synthesize(cue)
                path = build_audio_path(
                    episode_id,
                    cue,
                    scene.scene_number if scene else None,
                    record.id,
                    audio.extension,
                )
                stored = await self.blob_store.upload(path, audio.data, audio.mime_type)
            except (ProviderError, OSError, ValueError) as e:
                logger.error(f"[AUDIO_TOOLS] {cue.type.value} cue {cue.trigger} failed: {e}")
                self.repository.mark_failed(record.id, str(e), provider=self.provider.name)
                return self.repository.get(record.id)

            self.repository.mark_ready(
                record.id,
                audio_url=stored.url,
                storage_path=stored.path,
                file_size=stored.size,
                mime_type=audio.mime_type,
                duration_seconds=audio.duration_seconds,
                provider=self.provider.name,
            )

        logger.info(f"[AUDIO_TOOLS] Ready: {stored.path} ({stored.size} bytes)")
        return self.repository.get(record.id)

    async def realize_cues(
        self,
        episode_id: str,
        cues: List[AudioCue],
        scene: Optional[Scene] = None,
    ) -> List[EpisodeAudio]:
        """Realize many cues concurrently."""
        if not cues:
            return []

        logger.info(f"[AUDIO_TOOLS] Realizing {len(cues)} cue(s) for episode {episode_id}")
        results = await asyncio.gather(
            *(self.realize_cue(episode_id, cue, scene) for cue in cues),
            return_exceptions=True,
        )

        records = []
        for cue, result in zip(cues, results):
            if isinstance(result, Exception):
                logger.error(f"[AUDIO_TOOLS] Could not record cue {cue.trigger}: {result}")
            else:
                records.append(result)

        ready = sum(1 for r in records if r.status.value == "ready")
        logger.info(f"[AUDIO_TOOLS] {ready}/{len(cues)} cue(s) ready")
        return records

    def record_failure(
        self,
        episode_id: str,
        audio_type: AudioType,
        trigger_text: str,
        error: str,
        scene: Optional[Scene] = None,
        description: Optional[str] = None,
    ) -> EpisodeAudio:
        """Record an asset that could not even be directed (e.g. the director call failed)."""
        record = self.repository.create_pending(
            episode_id,
            audio_type,
            scene_id=scene.id if scene else None,
            trigger_text=trigger_text,
            description=description,
        )
        self.repository.mark_failed(record.id, error)
        return self.repository.get(record.id)

    async def _synthesize(self, cue: AudioCue) -> SynthesizedAudio:
        if cue.type == AudioType.MUSIC:
            prompt = cue.prompt or create_music_prompt(cue.audio_direction, cue.description, DEFAULT_MUSIC_MS // 1000)
            if INSTRUMENTAL_MARKER not in prompt.lower():
                prompt = f"{prompt.rstrip(' .')}, {INSTRUMENTAL_MARKER}"
            return await self.provider.compose_music(prompt, cue.duration_ms or DEFAULT_MUSIC_MS)

        prompt_influence = cue.prompt_influence if cue.prompt_influence is not None else DEFAULT_PROMPT_INFLUENCE
        return await self.provider.synthesize_sound_effect(
            cue.prompt or cue.description,
            duration_seconds=cue.duration_seconds,
            prompt_influence=prompt_influence,
            loop=cue.loop,
        )

    async def close(self) -> None:
        await self.provider.close()
