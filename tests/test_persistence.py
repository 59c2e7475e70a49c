"""
Tests for the SQLite repositories.
"""
from datetime import datetime

import pytest

from storycast.domain.models import (
    AudioStatus,
    AudioType,
    ChoiceOption,
    Episode,
    EpisodeStatus,
    Scene,
    StateCard,
)
from storycast.persistence import (
    transaction,
    get_audio_repository,
    get_bible_repository,
    get_episode_repository,
    get_scene_repository,
)


def _episode(episode_id: str = "ep-1") -> Episode:
    return Episode(
        id=episode_id,
        account_id="acct-1",
        created_by="user-1",
        title="Midnight Park",
        premise="A group of friends explore an abandoned amusement park",
        state_card=StateCard(story_so_far="Start"),
    )


class TestEpisodeRepository:
    """Tests for EpisodeRepository."""

    def test_create_and_get(self, temp_db, state_card):
        repo = get_episode_repository()
        episode = _episode()
        episode.state_card = state_card
        repo.create(episode)

        stored = repo.get("ep-1")
        assert stored.title == "Midnight Park"
        assert stored.state_card == state_card
        assert stored.status == EpisodeStatus.ACTIVE

    def test_get_missing(self, temp_db):
        assert get_episode_repository().get("nope") is None

    def test_update_progress_and_status(self, temp_db):
        repo = get_episode_repository()
        repo.create(_episode())

        repo.update_progress("ep-1", StateCard(story_so_far="Later"), total_scenes=3, total_choices=2)
        repo.set_status("ep-1", EpisodeStatus.COMPLETED, datetime(2026, 1, 1, 12, 0))

        stored = repo.get("ep-1")
        assert stored.state_card.story_so_far == "Later"
        assert (stored.total_scenes, stored.total_choices) == (3, 2)
        assert stored.status == EpisodeStatus.COMPLETED
        assert stored.completed_at == datetime(2026, 1, 1, 12, 0)

    def test_list_for_account(self, temp_db):
        repo = get_episode_repository()
        repo.create(_episode("ep-1"))
        repo.create(_episode("ep-2"))

        assert {e.id for e in repo.list_for_account("acct-1")} == {"ep-1", "ep-2"}
        assert repo.list_for_account("other") == []


class TestWorldBibleRepository:
    """Tests for WorldBibleRepository."""

    def test_insert_if_absent_keeps_first_bible(self, temp_db, world_bible):
        get_episode_repository().create(_episode())
        repo = get_bible_repository()

        first = repo.insert_if_absent("ep-1", world_bible)
        second_bible = world_bible.model_copy(deep=True)
        second_bible.world_rules.genre = "comedy"
        kept = repo.insert_if_absent("ep-1", second_bible)

        assert first == world_bible
        assert kept.world_rules.genre == "horror"
        assert repo.count("ep-1") == 1
        assert repo.get("ep-1") == world_bible


class TestSceneRepository:
    """Tests for SceneRepository."""

    def test_insert_and_order(self, temp_db, sample_scene):
        get_episode_repository().create(_episode())
        repo = get_scene_repository()
        sample_scene.episode_id = "ep-1"
        second = Scene(episode_id="ep-1", scene_number=2, narration="Two", choice_a="x", choice_b="y")
        repo.insert(second)
        repo.insert(sample_scene)

        scenes = repo.list_for_episode("ep-1")
        assert [s.scene_number for s in scenes] == [1, 2]
        assert repo.latest("ep-1").id == second.id
        assert repo.get_by_number("ep-1", 1).state_update == sample_scene.state_update

    def test_chosen_option_written_once(self, temp_db, sample_scene):
        get_episode_repository().create(_episode())
        repo = get_scene_repository()
        sample_scene.episode_id = "ep-1"
        repo.insert(sample_scene)

        assert repo.set_chosen_option(sample_scene.id, ChoiceOption.A) is True
        assert repo.set_chosen_option(sample_scene.id, ChoiceOption.B) is False
        assert repo.get(sample_scene.id).chosen_option == ChoiceOption.A

    def test_duplicate_scene_number_rejected(self, temp_db, sample_scene):
        import sqlite3

        get_episode_repository().create(_episode())
        repo = get_scene_repository()
        sample_scene.episode_id = "ep-1"
        repo.insert(sample_scene)

        with pytest.raises(sqlite3.IntegrityError):
            repo.insert(Scene(episode_id="ep-1", scene_number=1, narration="dup"))

    def test_transaction_rolls_back(self, temp_db, sample_scene):
        get_episode_repository().create(_episode())
        sample_scene.episode_id = "ep-1"

        with pytest.raises(RuntimeError):
            with transaction():
                get_scene_repository().insert(sample_scene)
                raise RuntimeError("boom")

        assert get_scene_repository().list_for_episode("ep-1") == []


class TestEpisodeAudioRepository:
    """Tests for EpisodeAudioRepository lifecycle."""

    def test_pending_to_ready(self, temp_db):
        get_episode_repository().create(_episode())
        repo = get_audio_repository()

        record = repo.create_pending("ep-1", AudioType.MUSIC, trigger_text="[MUSIC=theme]")
        repo.mark_generating(record.id)
        assert repo.get(record.id).status == AudioStatus.GENERATING

        repo.mark_ready(record.id, "/media/x.mp3", "ep-1/x.mp3", 10, "audio/mpeg", 30.0, "elevenlabs")

        stored = repo.get(record.id)
        assert stored.status == AudioStatus.READY
        assert stored.file_size == 10
        assert stored.provider == "elevenlabs"

    def test_failed_keeps_error(self, temp_db):
        get_episode_repository().create(_episode())
        repo = get_audio_repository()

        record = repo.create_pending("ep-1", AudioType.SFX)
        repo.mark_failed(record.id, "quota exceeded", provider="elevenlabs")

        stored = repo.get(record.id)
        assert stored.status == AudioStatus.FAILED
        assert stored.error == "quota exceeded"
        assert repo.list_for_episode("ep-1")[0].id == record.id
