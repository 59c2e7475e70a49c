"""
Tests for audio providers and the local blob store.
"""
import struct

import httpx
import pytest

from storycast.providers.audio import (
    AudioProviderFactory,
    ElevenLabsAudioProvider,
    LocalAudioProvider,
    get_audio_provider,
)
from storycast.providers.exceptions import AudioGenerationFailure, ProviderUnavailable
from storycast.providers.storage import LocalBlobStore


class TestLocalAudioProvider:
    """Tests for the silent WAV fallback."""

    @pytest.mark.asyncio
    async def test_music_length(self):
        audio = await LocalAudioProvider().compose_music("calliope", 1500)

        assert audio.mime_type == "audio/wav"
        assert audio.extension == "wav"
        assert audio.duration_seconds == 1.5
        assert audio.data[:4] == b"RIFF"
        assert audio.data[8:12] == b"WAVE"
        # 8 kHz mono 16-bit
        assert audio.size == 44 + 8000 * 2 * 3 // 2
        assert struct.unpack("<I", audio.data[24:28])[0] == 8000

    @pytest.mark.asyncio
    async def test_sfx_default_duration(self):
        audio = await LocalAudioProvider().synthesize_sound_effect("gate creak")

        assert audio.duration_seconds == 2.0

    @pytest.mark.asyncio
    async def test_duration_capped(self):
        audio = await LocalAudioProvider().compose_music("long", 600_000)

        assert audio.duration_seconds == 300.0


class TestElevenLabsAudioProvider:
    """Tests for the ElevenLabs provider with a mocked client."""

    @pytest.mark.asyncio
    async def test_compose_music_payload(self, mock_httpx_client):
        mock_httpx_client.post.return_value = httpx.Response(200, content=b"mp3-data")
        provider = ElevenLabsAudioProvider(api_key="xi-test", client=mock_httpx_client)

        audio = await provider.compose_music("calliope, instrumental only", 30000)

        assert audio.data == b"mp3-data"
        assert audio.duration_seconds == 30.0
        args, kwargs = mock_httpx_client.post.call_args
        assert args[0].endswith("/music")
        assert kwargs["json"] == {"prompt": "calliope, instrumental only", "music_length_ms": 30000}
        assert kwargs["headers"]["xi-api-key"] == "xi-test"
        assert kwargs["params"] == {"output_format": "mp3_44100_128"}

    @pytest.mark.asyncio
    async def test_sound_effect_payload(self, mock_httpx_client):
        mock_httpx_client.post.return_value = httpx.Response(200, content=b"sfx")
        provider = ElevenLabsAudioProvider(api_key="xi-test", client=mock_httpx_client)

        await provider.synthesize_sound_effect("wind", prompt_influence=0.2, loop=True)

        args, kwargs = mock_httpx_client.post.call_args
        assert args[0].endswith("/sound-generation")
        assert kwargs["json"] == {"text": "wind", "prompt_influence": 0.2, "loop": True}

    @pytest.mark.asyncio
    async def test_sound_effect_duration_sent(self, mock_httpx_client):
        mock_httpx_client.post.return_value = httpx.Response(200, content=b"sfx")
        provider = ElevenLabsAudioProvider(api_key="xi-test", client=mock_httpx_client)

        await provider.synthesize_sound_effect("crash", duration_seconds=1.5)

        assert mock_httpx_client.post.call_args.kwargs["json"]["duration_seconds"] == 1.5

    @pytest.mark.asyncio
    @pytest.mark.parametrize("response", [
        httpx.Response(500, text="server error"),
        httpx.Response(200, content=b""),
    ])
    async def test_failures(self, mock_httpx_client, response):
        mock_httpx_client.post.return_value = response
        provider = ElevenLabsAudioProvider(api_key="xi-test", client=mock_httpx_client)

        with pytest.raises(AudioGenerationFailure):
            await provider.synthesize_sound_effect("crash")

    @pytest.mark.asyncio
    async def test_missing_key(self, mock_httpx_client):
        provider = ElevenLabsAudioProvider(client=mock_httpx_client)

        assert provider.is_available is False
        with pytest.raises(ProviderUnavailable):
            await provider.compose_music("p", 10000)
        mock_httpx_client.post.assert_not_called()


class TestAudioProviderFactory:
    """Tests for provider selection."""

    def test_auto_falls_back_to_local(self):
        assert isinstance(get_audio_provider("auto"), LocalAudioProvider)

    def test_explicit_local(self):
        assert isinstance(AudioProviderFactory.create("local"), LocalAudioProvider)

    def test_unknown_falls_back_to_local(self):
        assert isinstance(AudioProviderFactory.create("nonexistent"), LocalAudioProvider)

    def test_auto_prefers_elevenlabs(self, monkeypatch):
        monkeypatch.setenv("ELEVENLABS_API_KEY", "xi-real")

        assert isinstance(get_audio_provider("auto"), ElevenLabsAudioProvider)


class TestLocalBlobStore:
    """Tests for the filesystem blob store."""

    @pytest.mark.asyncio
    async def test_upload_and_delete(self, temp_dir):
        store = LocalBlobStore(root=temp_dir, base_url="/media/")

        stored = await store.upload("episode-1/music/scene-1-theme.mp3", b"abc", "audio/mpeg")

        assert stored.url == "/media/episode-1/music/scene-1-theme.mp3"
        assert stored.size == 3
        assert (temp_dir / "episode-1" / "music" / "scene-1-theme.mp3").read_bytes() == b"abc"
        assert await store.delete(stored.path) is True
        assert await store.delete(stored.path) is False

    @pytest.mark.asyncio
    async def test_rejects_escaping_paths(self, temp_dir):
        store = LocalBlobStore(root=temp_dir)

        with pytest.raises(ValueError):
            await store.upload("../outside.mp3", b"abc", "audio/mpeg")
