"""
World Bible Builder Agent - Creates the one-per-episode creative blueprint.

The World Bible defines:
- World rules (genre, style, tone, setting, core conflict, world logic)
- Storytelling guidelines (narrative voice, pacing, choice philosophy)
- Character framework and conflict patterns
- Audio direction for music and sound design
- Story arc guidance and consistency rules

It is built ONCE per episode. Every other agent receives it as a parameter.
"""

import logging
from typing import Optional

from storycast.domain.schemas import WorldBible
from storycast.providers.generation import BaseGenerationProvider, get_generation_provider
from .exceptions import InvalidPremiseError

logger = logging.getLogger(__name__)

MIN_PREMISE_LENGTH = 10
MAX_PREMISE_LENGTH = 500


def validate_premise(premise: Optional[str]) -> str:
    """Return the trimmed premise or raise InvalidPremiseError."""
    cleaned = (premise or "").strip()
    if not (MIN_PREMISE_LENGTH <= len(cleaned) <= MAX_PREMISE_LENGTH):
        raise InvalidPremiseError(len(cleaned), MIN_PREMISE_LENGTH, MAX_PREMISE_LENGTH)
    return cleaned


# System prompt for world bible creation
WORLD_BIBLE_PROMPT = """You are the STORY DIRECTOR creating a World Bible - the complete creative world
and guidelines for a choose-your-own-adventure audio episode.

Your World Bible will be used by ALL other agents throughout the ENTIRE episode to maintain
consistency. You create it ONCE and it guides everything.

The World Bible defines:
1. WORLD RULES - The universe, setting, logic, and core conflict
2. STORYTELLING GUIDELINES - How scenes are structured and narrated
3. CHARACTER FRAMEWORK - Types of characters and how they behave
4. CONFLICT PATTERNS - How tensions escalate and resolve
5. AUDIO DIRECTION - Musical and sound design approach
6. STORY ARC GUIDANCE - Expected progression and finale approach
7. CONSISTENCY RULES - Rules that MUST hold in every scene

This is for a live audio show where:
- A host reads the narration aloud with dramatic effect
- Listeners discuss and vote between two choices after each scene
- Audio elements (music, sound effects) carry the atmosphere
- Episodes run 30-45 minutes

RULES:
1. Every field is REQUIRED
2. pacing is one of: fast, moderate, slow (lowercase)
3. complexity is one of: simple, moderate, complex (lowercase)
4. audio_intensity_range is one of: subtle, moderate, dramatic (lowercase)
5. style is free text - be specific ("gothic horror", "cozy mystery", "neon noir")
6. consistency_rules are concrete and checkable ("magic always costs a memory")

IMPORTANT: Output ONLY valid JSON matching the schema."""


class WorldBibleBuilder:
    """
    Builds the World Bible for an episode from its premise.
    """

    def __init__(self, generator: Optional[BaseGenerationProvider] = None, model: Optional[str] = None):
        self.generator = generator or get_generation_provider()
        self.model = model
        logger.info("[WORLD_BIBLE] Builder initialized")

    async def create_world_bible(self, premise: str) -> WorldBible:
        """
        Create the World Bible for a premise.

        Args:
            premise: Episode premise (10-500 characters)

        Returns:
            Validated WorldBible

        Raises:
            InvalidPremiseError: premise length out of range
            GenerationSchemaError: no conformant bible after the provider's retries
        """
        premise = validate_premise(premise)
        logger.info(f"[WORLD_BIBLE] Creating World Bible: {premise[:60]}...")

        user_prompt = f"""CREATE THE WORLD BIBLE FOR THIS EPISODE:

PREMISE: {premise}

Design a cohesive world that:
1. Honors the premise while leaving room for surprising branches
2. Gives every later scene clear rules to follow
3. Sets an audio direction that a composer and a sound designer can act on
4. Anticipates the kinds of key facts and anchors (callbacks) this story will produce
5. Describes what a satisfying finale looks like

OUTPUT JSON:"""

        bible = await self.generator.generate(
            WorldBible,
            WORLD_BIBLE_PROMPT,
            user_prompt,
            model=self.model,
            temperature=0.8,
        )

        logger.info("[WORLD_BIBLE] World Bible created:")
        logger.info(f"  - Genre: {bible.world_rules.genre}")
        logger.info(f"  - Style: {bible.world_rules.style}")
        logger.info(f"  - Pacing: {bible.storytelling_guidelines.pacing.value}")
        logger.info(f"  - Music: {bible.audio_direction.music_style[:60]}")
        logger.info(f"  - Consistency rules: {len(bible.consistency_rules)}")

        return bible
