"""
Pytest configuration and fixtures for Storycast tests.
"""
import copy
import os
import re
import asyncio
import tempfile
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio

# Set test environment before importing storycast modules
_TEST_DATA_DIR = tempfile.mkdtemp(prefix="storycast-tests-")
os.environ["DATA_DIR"] = _TEST_DATA_DIR
os.environ["DATABASE_PATH"] = str(Path(_TEST_DATA_DIR) / "app.db")
os.environ["OPENAI_API_KEY"] = "sk-test-key-for-testing"
os.environ["ELEVENLABS_API_KEY"] = ""
os.environ["AUDIO_PROVIDER"] = "local"
os.environ["DEBUG"] = "true"

from storycast.providers.audio.base import BaseAudioProvider, SynthesizedAudio  # noqa: E402
from storycast.providers.generation.base import BaseGenerationProvider  # noqa: E402
from storycast.providers.storage.base import BaseBlobStore, StoredObject  # noqa: E402


# ═══════════════════════════════════════════════════════════════════════════════
# FAKE PROVIDERS
# ═══════════════════════════════════════════════════════════════════════════════

class FakeGenerationProvider(BaseGenerationProvider):
    """
    Scripted generation provider keyed by schema class.

    Queued values (``script``) are used first, then the schema's handler
    (``on``). Exceptions in either place are raised. Dicts are validated
    against the requested schema exactly like real model output.
    """

    def __init__(self):
        self.queued: Dict[type, List[Any]] = {}
        self.handlers: Dict[type, Callable[[str], Any]] = {}
        self.calls: List[tuple] = []
        self.closed = False

    @property
    def name(self) -> str:
        return "fake"

    @property
    def is_available(self) -> bool:
        return True

    def script(self, schema, *values) -> "FakeGenerationProvider":
        self.queued.setdefault(schema, []).extend(values)
        return self

    def on(self, schema, handler: Callable[[str], Any]) -> "FakeGenerationProvider":
        self.handlers[schema] = handler
        return self

    def calls_for(self, schema) -> List[str]:
        return [prompt for s, prompt in self.calls if s is schema]

    async def generate(self, schema, system_instructions, prompt, model=None, temperature=0.8):
        self.calls.append((schema, prompt))
        await asyncio.sleep(0)

        queue = self.queued.get(schema)
        if queue:
            value = queue.pop(0)
        elif schema in self.handlers:
            value = self.handlers[schema](prompt)
        else:
            raise AssertionError(f"No scripted response for {schema.__name__}")

        if isinstance(value, Exception):
            raise value
        if isinstance(value, dict):
            return schema.model_validate(value)
        return value

    async def close(self) -> None:
        self.closed = True


class InMemoryBlobStore(BaseBlobStore):
    """Blob store that keeps uploads in a dict."""

    def __init__(self):
        self.objects: Dict[str, bytes] = {}

    @property
    def name(self) -> str:
        return "memory"

    async def upload(self, path: str, data: bytes, content_type: str) -> StoredObject:
        self.objects[path] = data
        return StoredObject(path=path, url=self.public_url(path), size=len(data), content_type=content_type)

    async def delete(self, path: str) -> bool:
        return self.objects.pop(path, None) is not None

    def public_url(self, path: str) -> str:
        return f"memory://{path}"


class RecordingAudioProvider(BaseAudioProvider):
    """Audio provider that records requests and returns a few fixed bytes."""

    def __init__(self, fail_on: Optional[str] = None):
        self.music_requests: List[tuple] = []
        self.sfx_requests: List[dict] = []
        self.fail_on = fail_on

    @property
    def name(self) -> str:
        return "recording"

    @property
    def is_available(self) -> bool:
        return True

    async def compose_music(self, prompt: str, duration_ms: int) -> SynthesizedAudio:
        self.music_requests.append((prompt, duration_ms))
        return SynthesizedAudio(b"music-bytes", "audio/mpeg", "mp3", duration_ms / 1000.0)

    async def synthesize_sound_effect(self, text, duration_seconds=None, prompt_influence=0.3, loop=False):
        from storycast.providers.exceptions import AudioGenerationFailure
        self.sfx_requests.append({
            "text": text,
            "duration_seconds": duration_seconds,
            "prompt_influence": prompt_influence,
            "loop": loop,
        })
        if self.fail_on and self.fail_on in text:
            raise AudioGenerationFailure(self.name, f"refused: {text[:40]}")
        return SynthesizedAudio(b"sfx-bytes", "audio/mpeg", "mp3", duration_seconds)


# ═══════════════════════════════════════════════════════════════════════════════
# SAMPLE DATA
# ═══════════════════════════════════════════════════════════════════════════════

PREMISE = "A group of friends explore an abandoned amusement park that comes alive at midnight"

BIBLE_DATA = {
    "world_rules": {
        "genre": "horror",
        "style": "gothic horror",
        "tone": "creeping dread with flashes of dark humor",
        "setting": "Wonderland Park, shuttered since 1987, on the edge of a mill town",
        "timeframe": "One October night, from midnight until dawn",
        "core_conflict": "The park wants new riders and will not let its guests leave",
        "world_logic": ["Rides only move after midnight", "Anyone who accepts a ticket must ride"],
    },
    "storytelling_guidelines": {
        "narrative_voice": "Second person, present tense, close and whispery",
        "pacing": "Moderate",
        "complexity": "moderate",
        "atmosphere_keywords": ["rust", "calliope", "fog"],
        "choice_philosophy": "Both choices cost something",
        "scene_structure_notes": "Open on a sound, close on a threat",
    },
    "character_framework": {
        "protagonist_types": ["curious friends"],
        "antagonist_types": ["the ringmaster"],
        "supporting_types": ["a ghostly ticket taker"],
        "character_voice_guidelines": "Friends bicker; the park speaks in carnival patter",
    },
    "conflict_patterns": {
        "typical_conflicts": ["split up or stay together"],
        "escalation_pattern": "Each ride is more dangerous than the last",
        "resolution_approach": "Outwit the park's rules",
    },
    "audio_direction": {
        "music_style": "horror calliope",
        "common_sfx_types": ["creaking metal", "distant laughter"],
        "audio_intensity_range": "dramatic",
        "atmosphere_notes": "Wind through broken ride canopies",
    },
    "story_arc_guidance": {
        "expected_progression": "Arrival, temptation, entrapment, escape",
        "key_fact_types": ["tickets taken"],
        "likely_anchor_types": ["objects from the ticket booth"],
        "finale_expectation": "Escape at dawn, changed",
    },
    "consistency_rules": ["The carousel never stops once started"],
    "reasoning": "Classic haunted park built around a rule-bound antagonist",
}

LAST_CHOICE = re.compile(r"- Chose: (.+)")
SCENE_NUMBER = re.compile(r"Generate Scene (\d+)")


def scene_payload(scene_number: int, after: Optional[str] = None, callback_anchor_id: Optional[str] = None) -> dict:
    return {
        "narration": (
            f"Scene {scene_number}: after '{after}' the fog thickens." if after
            else f"Scene {scene_number}: the gates of Wonderland Park swing open at midnight."
        ),
        "choice_a": f"Enter the hall of mirrors ({scene_number})",
        "choice_b": f"Follow the carousel music ({scene_number})",
        "state_update": [{"kind": "location_change", "location": f"Midway section {scene_number}"}],
        "audio_cues": [
            {
                "type": "Music",
                "trigger": "[MUSIC=tension]",
                "description": "Detuned calliope under the narration",
                "audio_direction": "slow horror calliope",
            },
            {
                "type": "sfx",
                "trigger": "[SFX=gate_creak]",
                "description": "Rusty gate creaks open",
                "intensity": "Dramatic",
            },
        ],
        "callback_anchor_id": callback_anchor_id,
        "reasoning": "test",
    }


class StoryScript:
    """Default handlers that drive a full episode through the fake provider."""

    def __init__(self):
        self.state_updates = 0

    def scene(self, prompt: str) -> dict:
        match = SCENE_NUMBER.search(prompt)
        number = int(match.group(1)) if match else 1
        choices = LAST_CHOICE.findall(prompt)
        return scene_payload(number, after=choices[-1].strip() if choices else None)

    def state_update(self, prompt: str) -> dict:
        self.state_updates += 1
        return {
            "story_so_far": f"The friends have pressed on through the park (update {self.state_updates}).",
            "new_key_facts": [f"Fact from update {self.state_updates}"],
            "new_anchors": [],
            "used_anchor_ids": [],
            "reasoning": "test",
        }

    def install(self, generator: FakeGenerationProvider) -> FakeGenerationProvider:
        from storycast.domain.schemas import WorldBible
        from storycast.services.agents.continuity_analyzer import CallbackAnalysisPayload
        from storycast.services.agents.music_director import MusicTrackPayload, ThemeTrackPayload
        from storycast.services.agents.scene_generator import FinalePayload, ScenePayload
        from storycast.services.agents.sfx_director import AmbientPayload, SFXBatchPayload
        from storycast.services.agents.state_tracker import InitialStatePayload, StateUpdatePayload

        generator.on(WorldBible, lambda prompt: BIBLE_DATA)
        generator.on(InitialStatePayload, lambda prompt: {
            "story_so_far": "Four friends slip through a gap in the fence of Wonderland Park.",
            "key_facts": ["The park closed in 1987"],
            "anchors": [{"description": "a cracked carousel ticket"}],
        })
        generator.on(CallbackAnalysisPayload, lambda prompt: {
            "should_use_callback": False,
            "callback_type": "none",
            "reason": "Too early for a payoff",
        })
        generator.on(ScenePayload, self.scene)
        generator.on(StateUpdatePayload, self.state_update)
        generator.on(FinalePayload, lambda prompt: {
            "narration": "Dawn breaks and the park falls silent behind you.",
            "resolution": "The friends escaped, each carrying a ticket they never bought.",
            "audio_cues": [{"type": "music", "trigger": "[MUSIC=finale]", "description": "Calliope winding down"}],
        })
        generator.on(MusicTrackPayload, lambda prompt: {
            "prompt": "Detuned calliope waltz, 70 BPM, creeping dread",
            "duration_ms": 120000,
            "description": "Scene underscore",
        })
        generator.on(ThemeTrackPayload, lambda prompt: {
            "prompt": "Haunted carnival overture with music box and low strings",
            "duration_ms": 45000,
            "description": "Episode theme",
        })
        generator.on(SFXBatchPayload, lambda prompt: {
            "effects": [{
                "trigger": "[SFX=gate_creak]",
                "prompt": "rusty iron gate creaking open slowly",
                "duration_seconds": 3,
                "category": "simple",
            }],
        })
        generator.on(AmbientPayload, lambda prompt: {
            "prompt": "night wind through torn canvas, distant calliope",
            "duration_seconds": 20,
        })
        return generator


# ═══════════════════════════════════════════════════════════════════════════════
# FIXTURES
# ═══════════════════════════════════════════════════════════════════════════════

@pytest.fixture
def temp_dir():
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def temp_db(temp_dir, monkeypatch):
    """Point the SQLite singleton at a fresh database file."""
    from storycast.persistence import close_connection, get_connection

    close_connection()
    monkeypatch.setenv("DATABASE_PATH", str(temp_dir / "test.db"))
    conn = get_connection()
    yield conn
    close_connection()


@pytest.fixture
def generator():
    """Fake generation provider with no responses scripted."""
    return FakeGenerationProvider()


@pytest.fixture
def story_script():
    return StoryScript()


@pytest.fixture
def story_generator(generator, story_script):
    """Fake generation provider that can drive a whole episode."""
    return story_script.install(generator)


@pytest.fixture
def premise():
    return PREMISE


@pytest.fixture
def bible_data():
    """Raw World Bible JSON as a model would return it."""
    return copy.deepcopy(BIBLE_DATA)


@pytest.fixture
def make_scene_payload():
    return scene_payload


@pytest.fixture
def world_bible():
    from storycast.domain.schemas import WorldBible
    return WorldBible.model_validate(BIBLE_DATA)


@pytest.fixture
def state_card():
    from storycast.domain.models import Anchor, StateCard
    return StateCard(
        story_so_far="Four friends slip through a gap in the fence of Wonderland Park.",
        key_facts=["The park closed in 1987"],
        anchors=[
            Anchor(id="anchor-ticket", description="a cracked carousel ticket", created_at_scene=0),
            Anchor(id="anchor-mask", description="a clown mask on the gate", is_used=True, created_at_scene=1),
        ],
    )


@pytest.fixture
def sample_scene():
    from storycast.domain.models import Scene
    from storycast.domain.schemas import STATE_DELTAS
    data = scene_payload(1)
    return Scene(
        episode_id="episode-test",
        scene_number=1,
        narration=data["narration"],
        choice_a=data["choice_a"],
        choice_b=data["choice_b"],
        state_update=STATE_DELTAS.validate_python(data["state_update"]),
    )


@pytest.fixture
def blob_store():
    return InMemoryBlobStore()


@pytest.fixture
def audio_provider():
    return RecordingAudioProvider()


@pytest.fixture
def audio_tools(temp_db, audio_provider, blob_store):
    from storycast.services.audio_tools import AudioTools
    return AudioTools(provider=audio_provider, blob_store=blob_store, max_concurrent=2)


@pytest.fixture
def episode_settings():
    from storycast.config import EpisodeConfig
    return EpisodeConfig(generation_timeout_seconds=5.0, anchor_max_age_scenes=8, key_facts_cap=10)


@pytest_asyncio.fixture
async def orchestrator(temp_db, story_generator, audio_tools, episode_settings):
    """Orchestrator wired to the fake generator, recording audio and a temp database."""
    from storycast.services.agents.orchestrator import EpisodeOrchestrator

    orch = EpisodeOrchestrator(
        generator=story_generator,
        audio_tools=audio_tools,
        settings=episode_settings,
    )
    yield orch
    await orch.close()


@pytest.fixture
def mock_httpx_client():
    """Create a mock httpx client for async HTTP tests."""
    client = AsyncMock()
    client.post = AsyncMock()
    client.get = AsyncMock()
    client.aclose = AsyncMock()
    return client


@pytest.fixture
def failing_audio_provider():
    """Recording provider that refuses any effect mentioning a gate."""
    return RecordingAudioProvider(fail_on="gate")
