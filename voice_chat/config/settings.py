"""Configuration settings for the voice chat client."""

import os
from pathlib import Path
from typing import Optional, Dict, Any, Union
from dataclasses import dataclass, asdict
import json
import structlog
from dotenv import load_dotenv
import threading


logger = structlog.get_logger()


# Last-resort instructions when no other system prompt is configured
DEFAULT_INSTRUCTIONS = "You are a helpful assistant."

DEFAULT_MODEL = "gemini-1.5-flash"

SNIPPET_MARKERS = {
    "begin": "----BEGIN-SNIPPET----",
    "end": "----END-SNIPPET----",
}


@dataclass
class SystemPrompts:
    """System prompts, from the most generic to the user's own."""
    default: str = "You are a friendly virtual assistant. Answer clearly and concisely."
    user: str = ""  # user-default instructions, empty when unset


@dataclass
class ChatDefaults:
    """Chat behaviour defaults."""
    model: str = DEFAULT_MODEL
    max_title_length: int = 50
    initial_greeting: str = "Hola"
    user_name: str = ""
    course: str = ""


@dataclass
class AudioSettings:
    """Microphone capture settings."""
    sample_rate: int = 16000
    channels: int = 1
    block_duration: float = 0.1  # seconds per captured chunk
    container: str = "OGG"
    subtype: str = "OPUS"
    file_extension: str = "webm"
    mime_type: str = "audio/webm;codecs=opus"


@dataclass
class TranscriptionSettings:
    """Remote transcription service settings."""
    base_url: str = "http://localhost:5000"
    timeout: float = 60.0  # seconds
    default_language: str = "es"
    default_temperature: float = 0.0


@dataclass
class SpeechSettings:
    """Read-aloud (text-to-speech) settings."""
    model_id: str = "eleven_flash_v2_5"
    voice_id: str = "pNInz6obpgDQGcFmaJgB"  # Adam voice
    speed: float = 1.0
    output_format: str = "mp3_22050_32"
    auto_play: bool = False
    poll_interval: float = 0.1  # seconds


@dataclass
class ProviderSettings:
    """Provider selection and provider-specific settings."""
    chat_transport: str = "gemini"
    transcriber: str = "http"
    tts: str = "elevenlabs"
    microphone: str = "sounddevice"

    # Gemini
    gemini_max_output_tokens: int = 2048

    # ElevenLabs
    elevenlabs_stability: float = 0.5
    elevenlabs_similarity_boost: float = 0.8
    elevenlabs_style: float = 0.0
    elevenlabs_use_speaker_boost: bool = True


@dataclass
class StorageSettings:
    """Where conversations and chat settings are persisted."""
    data_dir: str = "~/.voice-chat"


@dataclass
class LoggingSettings:
    """Logging configuration settings."""
    level: str = "INFO"
    format: str = "json"
    file_enabled: bool = True
    file_rotation_mb: int = 10
    file_backup_count: int = 7


_SECTIONS = (
    "system_prompts",
    "chat",
    "audio",
    "transcription",
    "speech",
    "providers",
    "storage",
    "logging",
)


def _env_bool(value: str) -> bool:
    return value.lower() == "true"


class Settings:
    """Main settings class for the voice chat client."""

    def __init__(self, config_file: Optional[Union[str, Path]] = None):
        self.config_file = Path(config_file) if config_file else None
        self._lock = threading.RLock()
        self._env_loaded = False

        # Initialize sub-settings
        self.system_prompts = SystemPrompts()
        self.chat = ChatDefaults()
        self.audio = AudioSettings()
        self.transcription = TranscriptionSettings()
        self.speech = SpeechSettings()
        self.providers = ProviderSettings()
        self.storage = StorageSettings()
        self.logging = LoggingSettings()

        # Load .env file first
        self._load_env_file()

        # Load from file if provided
        if self.config_file and self.config_file.exists():
            self.load_from_file()

        # Override with environment variables
        self.load_from_env()

    def _load_env_file(self) -> None:
        """Load environment variables from .env file."""
        if not self._env_loaded:
            # Look for .env in current directory and parent directories
            current_dir = Path.cwd()
            for parent in [current_dir] + list(current_dir.parents):
                env_file = parent / ".env"
                if env_file.exists():
                    load_dotenv(env_file)
                    logger.debug("Loaded .env file", path=str(env_file))
                    break
            self._env_loaded = True

    def load_from_file(self) -> None:
        """Load settings from configuration file."""
        if not self.config_file or not self.config_file.exists():
            return

        try:
            with self._lock:
                with open(self.config_file, "r") as f:
                    config = json.load(f)

                for section_name in _SECTIONS:
                    if section_name not in config:
                        continue
                    section = getattr(self, section_name)
                    for key, value in config[section_name].items():
                        if hasattr(section, key):
                            setattr(section, key, value)

                logger.info("Loaded settings from file", file=str(self.config_file))

        except Exception as e:
            logger.error(
                "Failed to load settings from file",
                file=str(self.config_file),
                error=str(e),
            )

    def load_from_env(self) -> None:
        """Load settings from environment variables."""
        with self._lock:
            # System prompts
            if os.getenv("SYSTEM_PROMPT_DEFAULT"):
                self.system_prompts.default = os.getenv("SYSTEM_PROMPT_DEFAULT")
            if os.getenv("USER_INSTRUCTIONS"):
                self.system_prompts.user = os.getenv("USER_INSTRUCTIONS")

            # Chat defaults
            if os.getenv("CHAT_MODEL"):
                self.chat.model = os.getenv("CHAT_MODEL")
            if os.getenv("MAX_TITLE_LENGTH"):
                self.chat.max_title_length = int(os.getenv("MAX_TITLE_LENGTH"))
            if os.getenv("CHAT_USER_NAME"):
                self.chat.user_name = os.getenv("CHAT_USER_NAME")
            if os.getenv("CHAT_COURSE"):
                self.chat.course = os.getenv("CHAT_COURSE")

            # Audio settings
            if os.getenv("AUDIO_SAMPLE_RATE"):
                self.audio.sample_rate = int(os.getenv("AUDIO_SAMPLE_RATE"))
            if os.getenv("AUDIO_CHANNELS"):
                self.audio.channels = int(os.getenv("AUDIO_CHANNELS"))

            # Transcription service
            if os.getenv("TRANSCRIPTION_URL"):
                self.transcription.base_url = os.getenv("TRANSCRIPTION_URL")
            if os.getenv("TRANSCRIPTION_TIMEOUT"):
                self.transcription.timeout = float(os.getenv("TRANSCRIPTION_TIMEOUT"))
            if os.getenv("TRANSCRIPTION_LANGUAGE"):
                self.transcription.default_language = os.getenv("TRANSCRIPTION_LANGUAGE")

            # Speech
            if os.getenv("ELEVENLABS_VOICE_ID"):
                self.speech.voice_id = os.getenv("ELEVENLABS_VOICE_ID")
            if os.getenv("ELEVENLABS_MODEL_ID"):
                self.speech.model_id = os.getenv("ELEVENLABS_MODEL_ID")
            if os.getenv("SPEECH_SPEED"):
                self.speech.speed = float(os.getenv("SPEECH_SPEED"))
            if os.getenv("SPEECH_AUTO_PLAY"):
                self.speech.auto_play = _env_bool(os.getenv("SPEECH_AUTO_PLAY"))

            # Provider selection
            if os.getenv("CHAT_TRANSPORT"):
                self.providers.chat_transport = os.getenv("CHAT_TRANSPORT")
            if os.getenv("TRANSCRIBER"):
                self.providers.transcriber = os.getenv("TRANSCRIBER")
            if os.getenv("TTS_PROVIDER"):
                self.providers.tts = os.getenv("TTS_PROVIDER")

            # Storage
            if os.getenv("VOICE_CHAT_DATA_DIR"):
                self.storage.data_dir = os.getenv("VOICE_CHAT_DATA_DIR")

            # Logging settings
            if os.getenv("LOG_LEVEL"):
                self.logging.level = os.getenv("LOG_LEVEL")
            if os.getenv("LOG_FORMAT"):
                self.logging.format = os.getenv("LOG_FORMAT")
            if os.getenv("LOG_FILE_ENABLED"):
                self.logging.file_enabled = _env_bool(os.getenv("LOG_FILE_ENABLED"))

    def save_to_file(self, file_path: Optional[Union[str, Path]] = None) -> None:
        """Save current settings to file."""
        save_path = Path(file_path) if file_path else self.config_file
        if not save_path:
            raise ValueError("No file path provided")

        try:
            with self._lock:
                config = self.to_dict()

                # Ensure parent directory exists
                save_path.parent.mkdir(parents=True, exist_ok=True)

                with open(save_path, "w") as f:
                    json.dump(config, f, indent=2, ensure_ascii=False)

                logger.info("Saved settings to file", file=str(save_path))

        except Exception as e:
            logger.error(
                "Failed to save settings to file", file=str(save_path), error=str(e)
            )
            raise

    @property
    def data_dir(self) -> Path:
        return Path(self.storage.data_dir).expanduser()

    def get_provider_config(self, provider_type: str) -> Dict[str, Any]:
        """Get configuration for a specific provider."""
        if provider_type == "gemini":
            return {
                "max_output_tokens": self.providers.gemini_max_output_tokens,
            }
        elif provider_type == "http":
            return {
                "base_url": self.transcription.base_url,
                "timeout": self.transcription.timeout,
                "mime_type": self.audio.mime_type,
            }
        elif provider_type == "elevenlabs":
            return {
                "output_format": self.speech.output_format,
                "stability": self.providers.elevenlabs_stability,
                "similarity_boost": self.providers.elevenlabs_similarity_boost,
                "style": self.providers.elevenlabs_style,
                "use_speaker_boost": self.providers.elevenlabs_use_speaker_boost,
            }
        elif provider_type == "sounddevice":
            return {
                "sample_rate": self.audio.sample_rate,
                "channels": self.audio.channels,
                "block_duration": self.audio.block_duration,
                "container": self.audio.container,
                "subtype": self.audio.subtype,
            }
        else:
            raise ValueError(f"Unknown provider type: {provider_type}")

    def reload(self) -> None:
        """Reload settings from file and environment."""
        with self._lock:
            if self.config_file and self.config_file.exists():
                self.load_from_file()
            self.load_from_env()
            logger.info("Settings reloaded")

    def validate(self) -> list[str]:
        """Validate current settings and return list of issues."""
        issues = []

        if self.audio.sample_rate not in [8000, 12000, 16000, 24000, 48000]:
            issues.append(f"Invalid sample rate: {self.audio.sample_rate}")
        if self.audio.channels not in [1, 2]:
            issues.append(f"Invalid channels: {self.audio.channels}")

        if self.chat.max_title_length <= 0:
            issues.append(f"Invalid max title length: {self.chat.max_title_length}")

        if self.transcription.timeout <= 0:
            issues.append(f"Invalid transcription timeout: {self.transcription.timeout}")
        if not self.transcription.base_url.startswith(("http://", "https://")):
            issues.append(f"Invalid transcription URL: {self.transcription.base_url}")

        if self.speech.speed <= 0:
            issues.append(f"Invalid speech speed: {self.speech.speed}")

        return issues

    def to_dict(self) -> Dict[str, Any]:
        """Convert settings to dictionary for serialization."""
        return {name: asdict(getattr(self, name)) for name in _SECTIONS}


# Global settings instance
settings = Settings()
