"""
Tests for the SFX Director agent.
"""
import pytest
from pydantic import ValidationError

from storycast.domain.models import AudioType, CuePriority
from storycast.domain.schemas import AudioIntensity
from storycast.services.agents.sfx_director import (
    AmbientPayload,
    ImpactBatchPayload,
    SFXBatchPayload,
    SFXDirector,
    SoundEffectPayload,
    apply_intensity,
)


class TestApplyIntensity:
    """Tests for the intensity prefix."""

    @pytest.mark.parametrize("intensity,expected", [
        (AudioIntensity.SUBTLE, "soft, ambient door creak"),
        (AudioIntensity.MODERATE, "clear, noticeable door creak"),
        (AudioIntensity.DRAMATIC, "loud, impactful door creak"),
    ])
    def test_prefix(self, intensity, expected):
        assert apply_intensity("door creak", intensity) == expected

    def test_prefix_not_repeated(self):
        assert apply_intensity("loud, impactful crash", AudioIntensity.DRAMATIC) == "loud, impactful crash"


class TestSoundEffectPayload:
    """Tests for SFX payload validation."""

    def test_loop_only_for_ambient(self):
        one_shot = SoundEffectPayload(trigger="[SFX=hit]", prompt="hit", loop=True, category="impact")
        ambient = SoundEffectPayload(trigger="[SFX=wind]", prompt="wind", loop=True, category="ambient")

        assert one_shot.loop is False
        assert ambient.loop is True

    @pytest.mark.parametrize("duration", [0.1, 31])
    def test_duration_bounds(self, duration):
        with pytest.raises(ValidationError):
            SoundEffectPayload(trigger="t", prompt="p", duration_seconds=duration)

    def test_batch_capped_at_eight(self):
        with pytest.raises(ValidationError):
            SFXBatchPayload.model_validate({"effects": [{"trigger": "t", "prompt": "p"}] * 9})


class TestSFXDirector:
    """Tests for SFXDirector cue generation."""

    @pytest.mark.asyncio
    async def test_scene_sfx(self, generator, world_bible):
        generator.script(SFXBatchPayload, {"effects": [
            {"trigger": "[SFX=gate_creak]", "prompt": "rusty gate creaking", "duration_seconds": 3,
             "category": "simple"},
            {"trigger": "[SFX=wind]", "prompt": "wind through canvas", "loop": True, "category": "ambient"},
        ]})

        cues = await SFXDirector(generator, model="fast").generate_scene_sfx(world_bible, "The gate opens.", 2)

        assert len(cues) == 2
        assert all(c.type == AudioType.SFX for c in cues)
        assert cues[0].prompt == "loud, impactful rusty gate creaking"
        assert cues[0].description == "rusty gate creaking"
        assert cues[0].loop is False
        assert cues[1].loop is True
        assert cues[0].audio_direction == "creaking metal, distant laughter"
        assert "Wonderland Park" in generator.calls_for(SFXBatchPayload)[0]

    @pytest.mark.asyncio
    async def test_ambient_soundscape_loops(self, generator, world_bible):
        generator.script(AmbientPayload, {"prompt": "night wind", "duration_seconds": 20})

        cue = await SFXDirector(generator, model="fast").generate_ambient_soundscape(world_bible, "The midway")

        assert cue.loop is True
        assert cue.category == "ambient"
        assert cue.priority == CuePriority.LOW
        assert cue.description == "Ambience: The midway"
        assert cue.prompt_influence == 0.2

    @pytest.mark.asyncio
    async def test_impacts_are_high_priority(self, generator, world_bible):
        generator.script(ImpactBatchPayload, {"impacts": [
            {"trigger": "[SFX=slam]", "prompt": "door slam", "duration_seconds": 1, "prompt_influence": 0.8},
        ]})

        cues = await SFXDirector(generator, model="fast").generate_dramatic_impacts(
            world_bible, "The door slams.", ["door slam"]
        )

        assert cues[0].priority == CuePriority.HIGH
        assert cues[0].category == "impact"
        assert cues[0].loop is False

    def test_ambient_duration_bounds(self):
        with pytest.raises(ValidationError):
            AmbientPayload(prompt="p", duration_seconds=10)
