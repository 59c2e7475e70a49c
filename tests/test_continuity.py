"""
Tests for the Continuity Analyzer agent.
"""
import pytest

from storycast.domain.models import StateCard
from storycast.services.agents.continuity_analyzer import (
    AnchorEvaluationPayload,
    CallbackAnalysisPayload,
    CallbackPotential,
    CallbackType,
    ContinuityAnalyzer,
    ContinuityIssuesPayload,
    SceneKind,
    StoryConnectionsPayload,
)


class TestAnalyzeCallbacks:
    """Tests for ContinuityAnalyzer.analyze_callbacks."""

    @pytest.mark.asyncio
    async def test_no_unused_anchors_skips_model(self, generator):
        card = StateCard(story_so_far="s")

        suggestion = await ContinuityAnalyzer(generator).analyze_callbacks(card, "next")

        assert suggestion.should_use_callback is False
        assert suggestion.callback_type == CallbackType.NONE
        assert generator.calls == []

    @pytest.mark.asyncio
    async def test_suggests_unused_anchor(self, generator, state_card):
        generator.script(CallbackAnalysisPayload, {
            "should_use_callback": True,
            "suggested_anchor_id": "anchor-ticket",
            "callback_type": "item",
            "reason": "The carousel is ahead",
            "natural_integration": "The ticket warms in a pocket",
            "impact_level": "dramatic",
        })

        suggestion = await ContinuityAnalyzer(generator).analyze_callbacks(state_card, "Approaching the carousel")

        assert suggestion.should_use_callback is True
        assert suggestion.suggested_anchor.id == "anchor-ticket"
        assert suggestion.to_dict()["suggested_anchor"]["description"] == "a cracked carousel ticket"
        prompt = generator.calls_for(CallbackAnalysisPayload)[0]
        assert "anchor-ticket: a cracked carousel ticket" in prompt
        assert "Approaching the carousel" in prompt

    @pytest.mark.asyncio
    @pytest.mark.parametrize("anchor_id", ["anchor-mask", "anchor-invented"])
    async def test_ineligible_anchor_dropped(self, generator, state_card, anchor_id):
        generator.script(CallbackAnalysisPayload, {
            "should_use_callback": True,
            "suggested_anchor_id": anchor_id,
            "callback_type": "character",
            "reason": "r",
        })

        suggestion = await ContinuityAnalyzer(generator).analyze_callbacks(state_card, "next")

        assert suggestion.should_use_callback is False
        assert suggestion.suggested_anchor is None

    @pytest.mark.asyncio
    async def test_callback_without_anchor_is_disabled(self, generator, state_card):
        generator.script(CallbackAnalysisPayload, {
            "should_use_callback": True,
            "callback_type": "mystery",
            "reason": "r",
        })

        suggestion = await ContinuityAnalyzer(generator).analyze_callbacks(state_card, "next")

        assert suggestion.should_use_callback is False


class TestContinuityIssues:
    """Tests for ContinuityAnalyzer.check_continuity_issues."""

    @pytest.mark.asyncio
    async def test_reports_major_issues(self, generator, state_card):
        generator.script(ContinuityIssuesPayload, {
            "has_issues": True,
            "issues": [
                {"type": "contradiction", "description": "Park reopened in 1990", "severity": "major",
                 "suggestion": "Keep 1987"},
                {"type": "forgotten_element", "description": "Mask unmentioned", "severity": "minor",
                 "suggestion": "Mention the mask"},
            ],
        })

        report = await ContinuityAnalyzer(generator).check_continuity_issues(state_card, "The park reopened in 1990.")

        assert report.has_issues is True
        assert [i.description for i in report.major_issues] == ["Park reopened in 1990"]

    @pytest.mark.asyncio
    async def test_has_issues_without_list_is_clean(self, generator, state_card):
        generator.script(ContinuityIssuesPayload, {"has_issues": True, "issues": []})

        report = await ContinuityAnalyzer(generator).check_continuity_issues(state_card, "text")

        assert report.has_issues is False


class TestEvaluateAnchor:
    """Tests for ContinuityAnalyzer.evaluate_anchor."""

    @pytest.mark.asyncio
    async def test_evaluates_anchor_age(self, generator, state_card):
        generator.script(AnchorEvaluationPayload, {
            "callback_potential": "HIGH",
            "age_score": 8,
            "relevance_score": 7.5,
            "suggested_usage": "The ticket admits the friends to the carousel",
        })
        anchor = state_card.get_anchor("anchor-ticket")

        evaluation = await ContinuityAnalyzer(generator).evaluate_anchor(anchor, state_card, 4)

        assert evaluation.anchor is anchor
        assert evaluation.scene_age == 4
        assert evaluation.callback_potential == CallbackPotential.HIGH
        assert evaluation.relevance_score == 7.5
        prompt = generator.calls_for(AnchorEvaluationPayload)[0]
        assert "Age: 4 scenes" in prompt
        assert "ANCHOR: a cracked carousel ticket" in prompt

    def test_scores_are_bounded(self):
        with pytest.raises(ValueError):
            AnchorEvaluationPayload.model_validate({
                "callback_potential": "low",
                "age_score": 11,
                "relevance_score": 1,
                "suggested_usage": "x",
            })


class TestStoryConnections:
    """Tests for ContinuityAnalyzer.suggest_story_connections."""

    @pytest.mark.asyncio
    async def test_connections_limited_to_unused_anchors(self, generator, state_card):
        generator.script(StoryConnectionsPayload, {
            "connections": [
                {"type": "Callback", "description": "The ticket glows", "anchor_id": "anchor-ticket", "subtlety": "Obvious"},
                {"type": "callback", "description": "The mask returns", "anchor_id": "anchor-mask"},
                {"type": "reference", "description": "Echo the gate", "anchor_id": "anchor-unknown"},
                {"type": "foreshadowing", "description": "Dawn is far away"},
            ],
            "reasoning": "test",
        })

        connections = await ContinuityAnalyzer(generator).suggest_story_connections(state_card, SceneKind.CLIMAX)

        assert [c.description for c in connections] == ["The ticket glows", "Echo the gate", "Dawn is far away"]
        assert connections[0].subtlety == "obvious"
        assert connections[1].anchor_id is None
        prompt = generator.calls_for(StoryConnectionsPayload)[0]
        assert "upcoming climax scene" in prompt
        assert "anchor-ticket: a cracked carousel ticket" in prompt
        assert "anchor-mask" not in prompt

    @pytest.mark.asyncio
    async def test_unknown_scene_kind(self, generator, state_card):
        with pytest.raises(ValueError):
            await ContinuityAnalyzer(generator).suggest_story_connections(state_card, "montage")

        assert generator.calls == []
