"""
State Tracker Agent - Maintains the State Card.

The State Card is the episode's narrative memory:
- story_so_far: a rolling summary
- key_facts: important things that happened (items found, promises made, people met)
- anchors: memorable details planted for a later callback

The model writes the new summary and proposes facts and anchors. Anchor ids,
creation scene numbers and the used flag are managed here, so the anchor
lifecycle stays monotonic whatever the model answers.
"""

import logging
import uuid
from typing import List, Optional

from pydantic import BaseModel, Field

from storycast.domain.models import Anchor, ChoiceOption, Scene, StateCard
from storycast.providers.generation import BaseGenerationProvider, get_generation_provider
from .exceptions import StaleStateUpdateError

logger = logging.getLogger(__name__)


class AnchorProposal(BaseModel):
    description: str = Field(..., min_length=1, description="The memorable element, e.g. 'the brass key from the ticket booth'")


class InitialStatePayload(BaseModel):
    story_so_far: str = Field(..., min_length=1, description="Initial situation before scene 1")
    key_facts: List[str] = Field(default_factory=list, description="Basic setup facts from the premise")
    anchors: List[AnchorProposal] = Field(default_factory=list, description="Premise elements that may pay off later")


class StateUpdatePayload(BaseModel):
    story_so_far: str = Field(..., min_length=1, description="Revised summary including the new scene")
    new_key_facts: List[str] = Field(default_factory=list, description="Only facts that are NEW in this scene")
    new_anchors: List[AnchorProposal] = Field(default_factory=list, description="New elements worth a later callback")
    used_anchor_ids: List[str] = Field(default_factory=list, description="Ids of existing anchors paid off in this scene")
    reasoning: str = Field("", description="Brief explanation of what changed")


STATE_INIT_PROMPT = """You are the STATE TRACKER creating the initial State Card for a new
choose-your-own-adventure audio episode.

Create the initial state from the premise. This is the starting point before any scene.

Guidelines:
- story_so_far sets up the initial situation
- key_facts hold the basic setup information
- anchors are elements of the premise that might pay off later
- Keep it concise but establish the foundation

IMPORTANT: Output ONLY valid JSON matching the schema."""


STATE_UPDATE_PROMPT = """You are the STATE TRACKER for a live choose-your-own-adventure audio episode.

You maintain the State Card - a living document that tracks the story's evolution:
1. story_so_far - a concise rolling summary of key events
2. key facts - important things that happened (items found, promises made, characters met)
3. anchors - memorable elements that can pay off later ("the mysterious key", "the deal with the stranger")

Guidelines:
- REWRITE story_so_far so it includes what happened in the new scene and the choice that led there
- new_key_facts lists ONLY facts introduced by the new scene - never repeat existing facts
- new_anchors are things that feel significant for a future payoff
- used_anchor_ids lists existing anchor ids that the new scene paid off
- Never invent anchor ids; only use ids shown in the current card

IMPORTANT: Output ONLY valid JSON matching the schema."""


def project_state(card: StateCard, choice_text: str) -> StateCard:
    """
    Local projection of the card for a speculative branch.

    The canonical card is not touched.
    """
    projected = card.copy()
    projected.story_so_far = f"{card.story_so_far} {choice_text}".strip()
    projected.key_facts.append(f"Chose: {choice_text}")
    return projected


class StateTracker:
    """
    Creates and updates State Cards.
    """

    def __init__(self, generator: Optional[BaseGenerationProvider] = None, model: Optional[str] = None):
        self.generator = generator or get_generation_provider()
        self.model = model
        logger.info("[STATE_TRACKER] Initialized")

    async def initialize(self, premise: str) -> StateCard:
        """Create the opening State Card. Initial anchors are unused and belong to scene 0."""
        logger.info("[STATE_TRACKER] Initializing State Card...")

        payload = await self.generator.generate(
            InitialStatePayload,
            STATE_INIT_PROMPT,
            f"""Create the initial State Card for this episode premise:

PREMISE: {premise}

Set up the initial state that captures the essence of this premise and prepares for story development.

OUTPUT JSON:""",
            model=self.model,
            temperature=0.5,
        )

        card = StateCard(
            story_so_far=payload.story_so_far.strip(),
            key_facts=[f.strip() for f in payload.key_facts if f.strip()],
            anchors=[
                Anchor(id=self._new_anchor_id(), description=a.description.strip(), created_at_scene=0)
                for a in payload.anchors
            ],
        )

        logger.info(f"[STATE_TRACKER] Initial card: {len(card.key_facts)} facts, {len(card.anchors)} anchors")
        return card

    async def update(
        self,
        card: StateCard,
        resolved_scene: Scene,
        chosen_option: Optional[ChoiceOption],
        prior_scenes: List[Scene],
    ) -> StateCard:
        """
        Fold a newly realized scene into the State Card.

        Args:
            card: Current canonical card (not mutated)
            resolved_scene: The scene that was just realized
            chosen_option: The choice that led to it (None for an unprompted finale)
            prior_scenes: Earlier realized scenes, oldest first, with their chosen options

        Returns:
            Complete updated StateCard

        Raises:
            StaleStateUpdateError: the summary came back unchanged for a scene with narration
        """
        logger.info(f"[STATE_TRACKER] Updating state for scene {resolved_scene.scene_number}...")

        history = "\n".join(
            f"Scene {s.scene_number}: {s.narration[:100]}... "
            f"(Chose: {s.chosen_option.value if s.chosen_option else 'N/A'})"
            for s in prior_scenes
        ) or "(none)"

        choice_line = "N/A"
        if chosen_option is not None and prior_scenes:
            parent = prior_scenes[-1]
            choice_line = f"Option {chosen_option.value} - {parent.choice_text(chosen_option)}"

        deltas = "\n".join(f"- {d.describe()}" for d in resolved_scene.state_update) or "- (none)"

        callback_line = ""
        if resolved_scene.callback_anchor_id:
            callback_line = f"\nThis scene paid off anchor: {resolved_scene.callback_anchor_id}\n"

        user_prompt = f"""Update the State Card for the new scene.

CURRENT STATE CARD:
{card.prompt_block()}

PREVIOUS SCENES:
{history}

LISTENERS CHOSE: {choice_line}

NEW SCENE (Scene {resolved_scene.scene_number}):
{resolved_scene.narration}

Choices now open:
A: {resolved_scene.choice_a or '(none - finale)'}
B: {resolved_scene.choice_b or '(none - finale)'}

STATE CHANGES IN THIS SCENE:
{deltas}
{callback_line}
OUTPUT JSON:"""

        payload = await self.generator.generate(
            StateUpdatePayload,
            STATE_UPDATE_PROMPT,
            user_prompt,
            model=self.model,
            temperature=0.4,
        )

        summary = payload.story_so_far.strip()
        if resolved_scene.narration.strip() and summary == card.story_so_far:
            logger.error(f"[STATE_TRACKER] Summary unchanged after scene {resolved_scene.scene_number}")
            raise StaleStateUpdateError(resolved_scene.scene_number)

        updated = card.copy()
        updated.story_so_far = summary

        for fact in payload.new_key_facts:
            fact = fact.strip()
            if fact and fact not in updated.key_facts:
                updated.key_facts.append(fact)

        used_ids = set(payload.used_anchor_ids)
        if resolved_scene.callback_anchor_id:
            used_ids.add(resolved_scene.callback_anchor_id)
        for anchor_id in used_ids:
            updated = self.mark_anchor_used(updated, anchor_id)

        for proposal in payload.new_anchors:
            updated.anchors.append(Anchor(
                id=self._new_anchor_id(),
                description=proposal.description.strip(),
                created_at_scene=resolved_scene.scene_number,
            ))

        logger.info(
            f"[STATE_TRACKER] Scene {resolved_scene.scene_number} folded: "
            f"+{len(updated.key_facts) - len(card.key_facts)} facts, "
            f"+{len(payload.new_anchors)} anchors"
        )
        if payload.reasoning:
            logger.debug(f"[STATE_TRACKER] Reasoning: {payload.reasoning[:200]}")

        return updated

    @staticmethod
    def mark_anchor_used(card: StateCard, anchor_id: str) -> StateCard:
        """Return a copy with ``anchor_id`` marked used. Unknown ids are ignored."""
        updated = card.copy()
        anchor = updated.get_anchor(anchor_id)
        if anchor is None:
            logger.debug(f"[STATE_TRACKER] Ignoring unknown anchor id: {anchor_id}")
        else:
            anchor.is_used = True
        return updated

    @staticmethod
    def cleanup(
        card: StateCard,
        current_scene_number: int,
        max_age_scenes: int = 8,
        max_key_facts: int = 10,
    ) -> StateCard:
        """
        Garbage-collect the card.

        Drops unused anchors that are ``max_age_scenes`` old or more and keeps
        only the most recent ``max_key_facts`` key facts. Pure and idempotent.
        """
        cleaned = card.copy()
        cleaned.anchors = [
            a for a in cleaned.anchors
            if a.is_used or current_scene_number - a.created_at_scene < max_age_scenes
        ]
        if len(cleaned.key_facts) > max_key_facts:
            cleaned.key_facts = cleaned.key_facts[-max_key_facts:] if max_key_facts > 0 else []
        return cleaned

    def _new_anchor_id(self) -> str:
        return f"anchor-{uuid.uuid4().hex[:8]}"
