"""Tests for the read-aloud player."""

import pytest

from mocks.providers import MockTTSProvider
from voice_chat.config.settings import SpeechSettings
from voice_chat.core.read_aloud import (
    ReadAloudPlayer,
    generate_identifier,
    preprocess_content,
    simple_checksum,
)


class TestIdentifier:
    def test_checksum_weights_position(self):
        assert simple_checksum("ab") == ord("a") * 1 + ord("b") * 2
        assert simple_checksum("ab") != simple_checksum("ba")
        assert simple_checksum("") == 0

    def test_checksum_wraps(self):
        assert simple_checksum("z" * 1000) < 65535

    def test_identifier_includes_speech_settings(self):
        speech = SpeechSettings(model_id="m", voice_id="v", speed=1.5)
        assert generate_identifier("ab", speech) == f"{simple_checksum('ab')}-m-v-1.5"

    def test_code_blocks_removed(self):
        content = "Run this:\n```python\nprint('hi')\n```\nDone."
        assert preprocess_content(content) == "Run this:\n\nDone."


class TestReadAloudPlayer:
    """Test play, toggle and caching behaviour."""

    def setup_method(self):
        self.tts = MockTTSProvider(playback_duration=0.02)
        self.speech = SpeechSettings(poll_interval=0.005)
        self.events = []
        self.player = ReadAloudPlayer(self.tts, self.speech, on_audio_play=self.events.append)

    @pytest.mark.asyncio
    async def test_play_synthesizes_without_code(self):
        assert await self.player.play("Hi\n```x```") is True
        assert self.tts.synthesized == ["Hi\n"]
        assert self.events == [True]

    @pytest.mark.asyncio
    async def test_replay_uses_cache(self):
        await self.player.play("Hello")
        self.player.stop()
        await self.player.play("Hello")

        assert self.tts.synthesized == ["Hello"]
        assert len(self.tts.played) == 2

    @pytest.mark.asyncio
    async def test_changed_speed_resynthesizes(self):
        await self.player.play("Hello")
        self.speech.speed = 1.25
        await self.player.play("Hello")

        assert len(self.tts.synthesized) == 2

    @pytest.mark.asyncio
    async def test_toggle_stops_playback(self):
        await self.player.toggle("Hello")
        await self.player.toggle("Hello")

        assert self.player.is_playing is False
        assert self.events == [True, False]

    @pytest.mark.asyncio
    async def test_toggle_ignored_while_loading(self):
        self.player.is_loading = True
        assert await self.player.toggle("Hello") is False
        assert self.tts.synthesized == []

    @pytest.mark.asyncio
    async def test_synthesis_failure_returns_to_idle(self):
        self.tts.fail = True

        assert await self.player.play("Hello") is False
        assert self.player.is_loading is False
        assert self.player.is_playing is False
        assert self.events == []

    @pytest.mark.asyncio
    async def test_wait_until_finished_notifies(self):
        await self.player.play("Hello")
        await self.player.wait_until_finished()

        assert self.player.is_playing is False
        assert self.events == [True, False]
