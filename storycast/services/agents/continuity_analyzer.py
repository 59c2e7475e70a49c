"""
Continuity Analyzer Agent - Callback opportunities and consistency checks.

Suggests when an unused anchor should resurface in the upcoming scene. The
suggestion is advisory: the Scene Generator may ignore it.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, List, Dict, Any

from pydantic import BaseModel, Field, field_validator

from storycast.domain.models import Anchor, StateCard
from storycast.providers.generation import BaseGenerationProvider, get_generation_provider

logger = logging.getLogger(__name__)


class CallbackType(str, Enum):
    ITEM = "item"
    CHARACTER = "character"
    PROMISE = "promise"
    MYSTERY = "mystery"
    NONE = "none"


class ImpactLevel(str, Enum):
    SUBTLE = "subtle"
    MODERATE = "moderate"
    DRAMATIC = "dramatic"


class CallbackAnalysisPayload(BaseModel):
    should_use_callback: bool = Field(..., description="Whether a callback would enhance this moment")
    suggested_anchor_id: Optional[str] = Field(None, description="Id of the best unused anchor for the callback")
    callback_type: CallbackType
    reason: str = Field(..., description="Why this callback opportunity exists or doesn't")
    natural_integration: Optional[str] = Field(None, description="How the callback could be woven in")
    impact_level: ImpactLevel = ImpactLevel.SUBTLE


class ContinuityIssue(BaseModel):
    type: str = Field(..., description="contradiction, forgotten_element or inconsistency")
    description: str
    severity: str = Field(..., description="minor or major")
    suggestion: str


class ContinuityIssuesPayload(BaseModel):
    has_issues: bool
    issues: List[ContinuityIssue] = Field(default_factory=list)


class CallbackPotential(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class SceneKind(str, Enum):
    ACTION = "action"
    DIALOGUE = "dialogue"
    TRANSITION = "transition"
    CLIMAX = "climax"


class AnchorEvaluationPayload(BaseModel):
    callback_potential: CallbackPotential
    age_score: float = Field(..., ge=0, le=10, description="Higher when the anchor has aged into callback range")
    relevance_score: float = Field(..., ge=0, le=10, description="Fit with the current story direction")
    suggested_usage: str = Field(..., description="How this anchor could best be used in a callback")
    reasoning: str = ""

    @field_validator("callback_potential", mode="before")
    @classmethod
    def _lowercase(cls, value):
        return value.strip().lower() if isinstance(value, str) else value


class StoryConnection(BaseModel):
    type: str = Field(..., description="reference, callback or foreshadowing")
    description: str
    anchor_id: Optional[str] = Field(None, description="Relevant unused anchor id, if any")
    subtlety: str = Field("subtle", description="subtle or obvious")

    @field_validator("type", "subtlety", mode="before")
    @classmethod
    def _lowercase(cls, value):
        return value.strip().lower() if isinstance(value, str) else value


class StoryConnectionsPayload(BaseModel):
    connections: List[StoryConnection] = Field(default_factory=list)
    reasoning: str = ""


@dataclass
class AnchorEvaluation:
    anchor: Anchor
    scene_age: int
    callback_potential: CallbackPotential
    age_score: float
    relevance_score: float
    suggested_usage: str


@dataclass
class CallbackSuggestion:
    """Advisory callback recommendation for the next scene."""
    should_use_callback: bool
    callback_type: CallbackType
    reason: str
    suggested_anchor: Optional[Anchor] = None
    integration_hint: Optional[str] = None
    impact_level: ImpactLevel = ImpactLevel.SUBTLE

    def to_dict(self) -> Dict[str, Any]:
        return {
            "should_use_callback": self.should_use_callback,
            "callback_type": self.callback_type.value,
            "reason": self.reason,
            "suggested_anchor": self.suggested_anchor.to_dict() if self.suggested_anchor else None,
            "integration_hint": self.integration_hint,
            "impact_level": self.impact_level.value,
        }


@dataclass
class ContinuityReport:
    has_issues: bool
    issues: List[ContinuityIssue] = field(default_factory=list)

    @property
    def major_issues(self) -> List[ContinuityIssue]:
        return [i for i in self.issues if i.severity == "major"]


CALLBACK_ANALYSIS_PROMPT = """You are the CONTINUITY ANALYZER, a specialist in story callbacks and
narrative continuity for a choose-your-own-adventure audio episode.

Decide whether the upcoming content is a good moment to pay off one of the UNUSED anchors.

Good callback opportunities:
- Natural story moments where past elements would logically resurface
- Moments that benefit from added depth or surprise
- Anchors dormant for 2+ scenes
- Climactic or resolution moments

Avoid callbacks when:
- It would feel forced or unnatural
- The story is building to a different climax
- Too many callbacks happened recently

Callback types:
- item: physical objects mentioned or obtained earlier
- character: people or entities that could return
- promise: commitments, deals, agreements
- mystery: unresolved questions or clues
- none: no callback recommended

RULES:
1. suggested_anchor_id MUST be one of the unused anchor ids listed - never a used one
2. When should_use_callback is false, callback_type is "none"

IMPORTANT: Output ONLY valid JSON matching the schema."""


CONTINUITY_CHECK_PROMPT = """You are the CONTINUITY ANALYZER checking a new scene for consistency issues.

Review the new scene against the established story state and flag:
- Contradictions with established facts
- Forgotten important elements that should be acknowledged
- Character or plot inconsistencies
- Timeline issues

Only report issues that would break immersion or confuse listeners.

IMPORTANT: Output ONLY valid JSON matching the schema."""


ANCHOR_EVALUATION_PROMPT = """You are the CONTINUITY ANALYZER evaluating an anchor's potential for a future callback.

Consider:
- How long ago it was introduced (the sweet spot is 2-5 scenes)
- How well it fits the current story direction
- Whether it could add meaningful depth or surprise
- How naturally it could be woven in

IMPORTANT: Output ONLY valid JSON matching the schema."""


STORY_CONNECTIONS_PROMPT = """You are the CONTINUITY ANALYZER suggesting ways to strengthen story connections.

Suggest connections for the upcoming scene through:
- reference: a nod to an earlier event
- callback: paying off one of the UNUSED anchors listed (set anchor_id)
- foreshadowing: a subtle setup for a later payoff

Match the suggestions to the scene type. subtlety is "subtle" or "obvious".

IMPORTANT: Output ONLY valid JSON matching the schema."""


class ContinuityAnalyzer:
    """
    Analyzes callback opportunities over the unused anchors of a State Card.
    """

    def __init__(self, generator: Optional[BaseGenerationProvider] = None, model: Optional[str] = None):
        self.generator = generator or get_generation_provider()
        self.model = model
        logger.info("[CONTINUITY] Analyzer initialized")

    async def analyze_callbacks(self, card: StateCard, upcoming_context: str) -> CallbackSuggestion:
        """
        Suggest whether the upcoming scene should pay off an anchor.

        Args:
            card: Current (or projected) State Card
            upcoming_context: What comes next, e.g. the two open choices

        Returns:
            CallbackSuggestion; suggested_anchor is always an unused anchor of ``card``
        """
        unused = card.unused_anchors()
        if not unused:
            logger.info("[CONTINUITY] No unused anchors - skipping analysis")
            return CallbackSuggestion(
                should_use_callback=False,
                callback_type=CallbackType.NONE,
                reason="No unused anchors available",
            )

        used = [a for a in card.anchors if a.is_used]
        user_prompt = f"""Analyze callback opportunities for the story:

STORY SO FAR:
{card.story_so_far}

KEY FACTS:
{chr(10).join(f"- {f}" for f in card.key_facts) or "- (none)"}

UNUSED ANCHORS:
{chr(10).join(f"{a.id}: {a.description} (introduced scene {a.created_at_scene})" for a in unused)}

USED ANCHORS (reference only - not eligible):
{chr(10).join(f"{a.id}: {a.description}" for a in used) or "(none)"}

UPCOMING CONTEXT:
{upcoming_context}

OUTPUT JSON:"""

        payload = await self.generator.generate(
            CallbackAnalysisPayload,
            CALLBACK_ANALYSIS_PROMPT,
            user_prompt,
            model=self.model,
            temperature=0.5,
        )

        suggestion = CallbackSuggestion(
            should_use_callback=payload.should_use_callback,
            callback_type=payload.callback_type,
            reason=payload.reason,
            integration_hint=payload.natural_integration,
            impact_level=payload.impact_level,
        )

        if payload.suggested_anchor_id:
            anchor = card.get_anchor(payload.suggested_anchor_id)
            if anchor is None or anchor.is_used:
                logger.warning(
                    f"[CONTINUITY] Dropping suggestion for ineligible anchor: {payload.suggested_anchor_id}"
                )
                suggestion.should_use_callback = False
                suggestion.callback_type = CallbackType.NONE
            else:
                suggestion.suggested_anchor = anchor
        elif suggestion.should_use_callback:
            # A callback with no anchor has nothing to pay off
            suggestion.should_use_callback = False

        logger.info(
            f"[CONTINUITY] Callback: {'YES' if suggestion.should_use_callback else 'NO'} "
            f"({suggestion.callback_type.value})"
        )
        return suggestion

    async def check_continuity_issues(self, card: StateCard, scene_content: str) -> ContinuityReport:
        """Flag contradictions between ``scene_content`` and the established state."""
        payload = await self.generator.generate(
            ContinuityIssuesPayload,
            CONTINUITY_CHECK_PROMPT,
            f"""Check for continuity issues:

ESTABLISHED STORY STATE:
{card.prompt_block()}

NEW SCENE CONTENT:
{scene_content}

OUTPUT JSON:""",
            model=self.model,
            temperature=0.2,
        )

        report = ContinuityReport(has_issues=payload.has_issues and bool(payload.issues), issues=payload.issues)
        if report.has_issues:
            logger.warning(f"[CONTINUITY] {len(report.issues)} issue(s), {len(report.major_issues)} major")
        return report

    async def evaluate_anchor(self, anchor: Anchor, card: StateCard, current_scene_number: int) -> AnchorEvaluation:
        """Rate one anchor's callback potential at ``current_scene_number``."""
        scene_age = max(0, current_scene_number - anchor.created_at_scene)
        payload = await self.generator.generate(
            AnchorEvaluationPayload,
            ANCHOR_EVALUATION_PROMPT,
            f"""Evaluate this anchor for callback potential:

ANCHOR: {anchor.description}
- Introduced: Scene {anchor.created_at_scene}
- Current scene: {current_scene_number}
- Age: {scene_age} scenes
- Already paid off: {"yes" if anchor.is_used else "no"}

CURRENT STORY STATE:
{card.story_so_far}

Key facts: {", ".join(card.key_facts) or "(none)"}

OUTPUT JSON:""",
            model=self.model,
            temperature=0.3,
        )

        logger.info(
            f"[CONTINUITY] Anchor {anchor.id}: {payload.callback_potential.value} "
            f"(age {payload.age_score:.1f}, relevance {payload.relevance_score:.1f})"
        )
        return AnchorEvaluation(
            anchor=anchor,
            scene_age=scene_age,
            callback_potential=payload.callback_potential,
            age_score=payload.age_score,
            relevance_score=payload.relevance_score,
            suggested_usage=payload.suggested_usage,
        )

    async def suggest_story_connections(
        self,
        card: StateCard,
        upcoming_scene: SceneKind,
    ) -> List[StoryConnection]:
        """
        Suggest references, callbacks and foreshadowing for the next scene.

        Connections naming an anchor that is used or unknown lose the anchor;
        a callback left without one is dropped.
        """
        upcoming_scene = SceneKind(upcoming_scene)
        unused = card.unused_anchors()
        payload = await self.generator.generate(
            StoryConnectionsPayload,
            STORY_CONNECTIONS_PROMPT,
            f"""Suggest story connections for an upcoming {upcoming_scene.value} scene:

CURRENT STORY STATE:
{card.story_so_far}

Key facts: {", ".join(card.key_facts) or "(none)"}

UNUSED ANCHORS:
{chr(10).join(f"{a.id}: {a.description}" for a in unused) or "(none)"}

OUTPUT JSON:""",
            model=self.model,
            temperature=0.6,
        )

        eligible = {a.id for a in unused}
        connections = []
        for connection in payload.connections:
            if connection.anchor_id and connection.anchor_id not in eligible:
                logger.warning(f"[CONTINUITY] Connection names ineligible anchor: {connection.anchor_id}")
                connection = connection.model_copy(update={"anchor_id": None})
            if connection.type == "callback" and not connection.anchor_id:
                continue
            connections.append(connection)

        logger.info(f"[CONTINUITY] {len(connections)} story connection(s) for {upcoming_scene.value} scene")
        return connections
