"""
Tests for the Scene Generator agent.
"""
import pytest
from pydantic import ValidationError

from storycast.domain.models import AudioType, Scene
from storycast.domain.schemas import LocationChange
from storycast.services.agents.continuity_analyzer import CallbackSuggestion, CallbackType
from storycast.services.agents.exceptions import MissingWorldBibleError
from storycast.services.agents.scene_generator import (
    FinalePayload,
    ImprovedChoicesPayload,
    ScenePayload,
    SceneGenerator,
)


class TestScenePayload:
    """Tests for ScenePayload validation."""

    def test_identical_choices_rejected(self, make_scene_payload):
        data = make_scene_payload(1)
        data["choice_b"] = data["choice_a"].upper()

        with pytest.raises(ValidationError):
            ScenePayload.model_validate(data)

    def test_requires_music_cue(self, make_scene_payload):
        data = make_scene_payload(1)
        data["audio_cues"] = [c for c in data["audio_cues"] if c["type"] == "sfx"]

        with pytest.raises(ValidationError):
            ScenePayload.model_validate(data)

    def test_at_most_six_cues(self, make_scene_payload):
        data = make_scene_payload(1)
        data["audio_cues"] = data["audio_cues"] * 4

        with pytest.raises(ValidationError):
            ScenePayload.model_validate(data)

    def test_cue_enums_are_case_insensitive(self, make_scene_payload):
        payload = ScenePayload.model_validate(make_scene_payload(1))

        assert payload.audio_cues[0].type == AudioType.MUSIC
        assert payload.audio_cues[1].intensity.value == "dramatic"


class TestGenerateScene:
    """Tests for SceneGenerator.generate_scene."""

    @pytest.mark.asyncio
    async def test_generates_scene(self, generator, world_bible, state_card, make_scene_payload, premise):
        generator.script(ScenePayload, make_scene_payload(1))

        scene = await SceneGenerator(generator).generate_scene(premise, world_bible, state_card, 1)

        assert scene.narration.startswith("Scene 1")
        assert scene.choice_a != scene.choice_b
        assert isinstance(scene.state_update[0], LocationChange)
        assert 1 <= len(scene.audio_cues) <= 6
        # Music style from the bible is carried into cue direction
        assert "horror calliope" in scene.audio_cues[1].audio_direction
        prompt = generator.calls_for(ScenePayload)[0]
        assert "Generate Scene 1" in prompt
        assert "Wonderland Park" in prompt

    @pytest.mark.asyncio
    async def test_missing_bible_rejected(self, generator, state_card, premise):
        with pytest.raises(MissingWorldBibleError):
            await SceneGenerator(generator).generate_scene(premise, None, state_card, 1)

        assert generator.calls == []

    @pytest.mark.asyncio
    async def test_callback_suggestion_and_previous_scene_in_prompt(
        self, generator, world_bible, state_card, make_scene_payload, premise, sample_scene
    ):
        generator.script(ScenePayload, make_scene_payload(2, callback_anchor_id="anchor-ticket"))
        suggestion = CallbackSuggestion(
            should_use_callback=True,
            callback_type=CallbackType.ITEM,
            reason="The carousel is near",
            suggested_anchor=state_card.get_anchor("anchor-ticket"),
        )

        scene = await SceneGenerator(generator).generate_scene(
            premise, world_bible, state_card, 2, callback_suggestion=suggestion, previous_scene=sample_scene
        )

        assert scene.callback_anchor_id == "anchor-ticket"
        prompt = generator.calls_for(ScenePayload)[0]
        assert 'set callback_anchor_id to "anchor-ticket"' in prompt
        assert "PREVIOUS SCENE (Scene 1)" in prompt

    @pytest.mark.asyncio
    @pytest.mark.parametrize("anchor_id", ["anchor-mask", "anchor-invented"])
    async def test_ineligible_callback_dropped(
        self, generator, world_bible, state_card, make_scene_payload, premise, anchor_id
    ):
        generator.script(ScenePayload, make_scene_payload(2, callback_anchor_id=anchor_id))

        scene = await SceneGenerator(generator).generate_scene(premise, world_bible, state_card, 2)

        assert scene.callback_anchor_id is None

    @pytest.mark.asyncio
    async def test_to_scene(self, generator, world_bible, state_card, make_scene_payload, premise):
        generator.script(ScenePayload, make_scene_payload(3))

        generated = await SceneGenerator(generator).generate_scene(premise, world_bible, state_card, 3)
        scene = generated.to_scene("episode-1", 3)

        assert isinstance(scene, Scene)
        assert scene.episode_id == "episode-1"
        assert scene.scene_number == 3
        assert scene.chosen_option is None


class TestGenerateFinale:
    """Tests for SceneGenerator.generate_finale_scene."""

    @pytest.mark.asyncio
    async def test_finale_has_resolution_and_no_choices(self, generator, world_bible, state_card, premise):
        generator.script(FinalePayload, {
            "narration": "Dawn breaks.",
            "resolution": "They escaped.",
            "audio_cues": [{"type": "music", "trigger": "[MUSIC=finale]", "description": "Winding down"}],
        })

        finale = await SceneGenerator(generator).generate_finale_scene(premise, world_bible, state_card, 5)
        scene = finale.to_scene("episode-1", 5)

        assert scene.is_finale is True
        assert scene.choice_a == "" and scene.choice_b == ""
        prompt = generator.calls_for(FinalePayload)[0]
        assert "a clown mask on the gate" in prompt  # used anchors are recalled
        assert "Total scenes so far: 4" in prompt

    @pytest.mark.asyncio
    async def test_finale_missing_bible(self, generator, state_card, premise):
        with pytest.raises(MissingWorldBibleError):
            await SceneGenerator(generator).generate_finale_scene(premise, None, state_card, 5)


class TestImproveChoices:
    """Tests for SceneGenerator.improve_scene_choices."""

    @pytest.mark.asyncio
    async def test_improves_choices(self, generator):
        generator.script(ImprovedChoicesPayload, {
            "improved_choice_a": "  Climb the frozen Ferris wheel  ",
            "improved_choice_b": "Bargain with the ticket taker",
            "reasoning": "Choices now lead to different risks",
        })

        improved = await SceneGenerator(generator).improve_scene_choices(
            "The park hums to life.", "Go left", "Go right", "Both choices feel the same"
        )

        assert improved.choice_a == "Climb the frozen Ferris wheel"
        assert improved.choice_b == "Bargain with the ticket taker"
        prompt = generator.calls_for(ImprovedChoicesPayload)[0]
        assert "A) Go left" in prompt
        assert "FEEDBACK:\nBoth choices feel the same" in prompt

    def test_identical_improved_choices_rejected(self):
        with pytest.raises(ValidationError):
            ImprovedChoicesPayload.model_validate({
                "improved_choice_a": "Run",
                "improved_choice_b": " run ",
            })
