"""Tests for configuration, logging and cancellation utilities."""

import asyncio
import json
import logging
import tempfile
import pytest
from pathlib import Path
from unittest.mock import patch

from voice_chat.config.settings import Settings
from voice_chat.utils.cancellation import CancellationToken, ExchangeCancelled
from voice_chat.utils.logging import JsonFormatter, setup_logging


class TestSettings:
    """Test configuration management."""

    def test_default_settings(self):
        """Test default settings initialization."""
        with patch.dict("os.environ", {}, clear=True):
            settings = Settings()

        assert settings.chat.max_title_length == 50
        assert settings.chat.initial_greeting == "Hola"
        assert settings.transcription.base_url == "http://localhost:5000"
        assert settings.transcription.default_language == "es"
        assert settings.audio.file_extension == "webm"
        assert settings.providers.chat_transport == "gemini"

    def test_environment_variable_override(self):
        """Test environment variable overrides."""
        with patch.dict("os.environ", {
            "TRANSCRIPTION_URL": "http://stt.internal:9000",
            "CHAT_MODEL": "gemini-1.5-pro",
            "SPEECH_AUTO_PLAY": "true",
            "MAX_TITLE_LENGTH": "30",
        }):
            settings = Settings()

            assert settings.transcription.base_url == "http://stt.internal:9000"
            assert settings.chat.model == "gemini-1.5-pro"
            assert settings.speech.auto_play is True
            assert settings.chat.max_title_length == 30

    def test_config_file_loading(self):
        """Test loading settings from config file."""
        config_data = {
            "chat": {"max_title_length": 20, "unknown_key": "ignored"},
            "speech": {"voice_id": "custom-voice"},
        }
        with tempfile.TemporaryDirectory() as tmp_dir:
            config_file = Path(tmp_dir) / "config.json"
            config_file.write_text(json.dumps(config_data))

            with patch.dict("os.environ", {}, clear=True):
                settings = Settings(config_file)

            assert settings.chat.max_title_length == 20
            assert settings.speech.voice_id == "custom-voice"
            assert not hasattr(settings.chat, "unknown_key")

    def test_save_config_file(self):
        """Test saving settings to file."""
        with tempfile.TemporaryDirectory() as tmp_dir:
            settings = Settings()
            settings.transcription.timeout = 15.0
            save_path = Path(tmp_dir) / "nested" / "config.json"

            settings.save_to_file(save_path)

            saved = json.loads(save_path.read_text())
            assert saved["transcription"]["timeout"] == 15.0
            assert set(saved) >= {"chat", "audio", "speech", "providers", "storage"}

    def test_provider_config(self):
        settings = Settings()
        http_config = settings.get_provider_config("http")
        assert http_config["base_url"] == settings.transcription.base_url
        assert http_config["mime_type"] == "audio/webm;codecs=opus"
        with pytest.raises(ValueError, match="Unknown provider type"):
            settings.get_provider_config("whisper")

    def test_settings_validation(self):
        settings = Settings()
        settings.transcription.base_url = "http://localhost:5000"
        assert settings.validate() == []

        settings.audio.sample_rate = 12345
        settings.transcription.base_url = "localhost:5000"
        settings.chat.max_title_length = 0
        issues = settings.validate()

        assert len(issues) == 3
        assert any("sample rate" in issue for issue in issues)


class TestLogging:
    """Test logging configuration."""

    def test_json_formatter(self):
        """Test JSON log formatter."""
        formatter = JsonFormatter()
        record = logging.LogRecord(
            name="test_logger",
            level=logging.INFO,
            pathname="test.py",
            lineno=10,
            msg="Test message",
            args=(),
            exc_info=None,
        )
        record.conversation_id = 42

        log_data = json.loads(formatter.format(record))

        assert log_data["level"] == "INFO"
        assert log_data["logger"] == "test_logger"
        assert log_data["message"] == "Test message"
        assert log_data["attributes"]["conversation_id"] == 42
        assert "timestamp" in log_data

    def test_setup_logging_creates_file(self):
        with tempfile.TemporaryDirectory() as tmp_dir:
            log_path = setup_logging(debug=True, log_dir=tmp_dir)

            assert log_path is not None
            assert log_path.parent == Path(tmp_dir)
            assert logging.getLogger().level == logging.DEBUG
            assert logging.getLogger("httpx").level == logging.WARNING

            for handler in logging.getLogger().handlers[:]:
                handler.close()
                logging.getLogger().removeHandler(handler)

    def test_setup_logging_without_file(self):
        assert setup_logging(log_file=False, log_level="warning") is None
        assert logging.getLogger().level == logging.WARNING


class TestCancellationToken:
    def test_cancel_is_idempotent(self):
        token = CancellationToken()

        token.cancel()
        token.cancel()

        assert token.is_cancelled is True

    @pytest.mark.asyncio
    async def test_wait_returns_after_cancel(self):
        token = CancellationToken()
        token.cancel()
        await token.wait()
        assert token.is_cancelled

    @pytest.mark.asyncio
    async def test_run_returns_result(self):
        token = CancellationToken()

        async def answer():
            return 42

        assert await token.run(answer()) == 42

    @pytest.mark.asyncio
    async def test_run_interrupts_stalled_await(self):
        token = CancellationToken()
        stalled = asyncio.ensure_future(asyncio.sleep(10))
        asyncio.get_running_loop().call_later(0.02, token.cancel)

        with pytest.raises(ExchangeCancelled):
            await asyncio.wait_for(token.run(stalled), timeout=2)

        assert stalled.cancelled()

    @pytest.mark.asyncio
    async def test_run_after_cancel_raises_immediately(self):
        token = CancellationToken()
        token.cancel()

        with pytest.raises(ExchangeCancelled):
            await token.run(asyncio.sleep(10))
