"""
Working example: play an episode from the command line without the API.
Needs OPENAI_API_KEY; audio uses ElevenLabs when configured, silent WAVs otherwise.
"""
import asyncio
import logging
import sys
import textwrap
from pathlib import Path

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
)

sys.path.insert(0, str(Path(__file__).parent))

from storycast.domain.models import Scene
from storycast.services.agents import EpisodeOrchestrator, EpisodeError

PREMISE = "A group of friends explore an abandoned amusement park that comes alive at midnight"
CHOICES = ["A", "B", "A"]


def show_scene(scene: Scene):
    """Print a scene the way a host would read it."""
    print("-" * 60)
    print(f"SCENE {scene.scene_number}")
    print("-" * 60)
    print(textwrap.fill(scene.narration, width=60))
    if scene.is_finale:
        print(f"\nRESOLUTION: {scene.resolution}")
    else:
        print(f"\n  A) {scene.choice_a}")
        print(f"  B) {scene.choice_b}")
    print()


async def play(premise: str, choices):
    orchestrator = EpisodeOrchestrator()
    try:
        started = await orchestrator.start_episode(
            account_id="demo-account",
            user_id="demo-user",
            title="Midnight Park",
            premise=premise,
        )
        episode_id = started.episode.id
        print(f"\nEpisode: {episode_id}\n")
        show_scene(started.first_scene)

        for choice in choices:
            await orchestrator.wait_for_pregeneration(episode_id, timeout=300)
            print(f">>> Listeners chose {choice}\n")
            result = await orchestrator.process_choice(episode_id, choice, "demo-user")
            show_scene(result.next_scene)

        finale = await orchestrator.finish_episode(episode_id, "demo-user")
        show_scene(finale.finale_scene)

        audio = await orchestrator.wait_for_audio(episode_id, timeout=600)
        ready = [a for a in audio if a.status.value == "ready"]
        print(f"Audio: {len(ready)}/{len(audio)} asset(s) ready")
        for asset in ready:
            print(f"  {asset.audio_type.value:5} {asset.trigger_text}: {asset.audio_url}")

        return finale
    finally:
        await orchestrator.close()


def main():
    """Run example episode."""
    print("=" * 60)
    print("STORYCAST - EPISODE DEMO")
    print("=" * 60)

    premise = " ".join(sys.argv[1:]) or PREMISE
    print(f"\nPremise: {premise}")
    print(f"Choices: {', '.join(CHOICES)}")

    try:
        result = asyncio.run(play(premise, CHOICES))
    except EpisodeError as e:
        print(f"\nFAILED: [{e.code}] {e.message}")
        return None

    print("=" * 60)
    print(f"\nSUCCESS! {result.episode.total_scenes} scenes, {result.episode.total_choices} choices")
    return result


if __name__ == "__main__":
    main()
