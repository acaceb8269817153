"""Provider registry for dynamic provider loading."""

from typing import Any, Callable, Dict, Optional, Type
import structlog

from .ai.base import ChatTransport
from .stt.base import MicrophoneDevice, TranscriptionClient
from .tts.base import TTSProvider


logger = structlog.get_logger()

ConfigGetter = Callable[[], Dict[str, Any]]


class ProviderRegistry:
    """Registry for managing provider implementations."""

    def __init__(self):
        self._chat_transports: Dict[str, Type[ChatTransport]] = {}
        self._transcribers: Dict[str, Type[TranscriptionClient]] = {}
        self._tts_providers: Dict[str, Type[TTSProvider]] = {}
        self._microphones: Dict[str, Type[MicrophoneDevice]] = {}
        self._provider_configs: Dict[str, ConfigGetter] = {}

    def _register(
        self,
        kind: str,
        table: Dict[str, type],
        name: str,
        provider_class: type,
        config_getter: Optional[ConfigGetter],
    ) -> None:
        table[name] = provider_class
        if config_getter:
            self._provider_configs[f"{kind}:{name}"] = config_getter
        logger.info(
            "Registered provider",
            kind=kind,
            name=name,
            class_name=provider_class.__name__,
        )

    def _create(self, kind: str, table: Dict[str, type], name: str, kwargs: dict):
        if name not in table:
            raise ValueError(f"Unknown {kind} provider: {name}")

        config_key = f"{kind}:{name}"
        if config_key in self._provider_configs:
            config = self._provider_configs[config_key]()
            # Explicit keyword arguments win over configured values
            kwargs = {**config, **kwargs}

        return table[name](**kwargs)

    def register_chat_transport(
        self,
        name: str,
        provider_class: Type[ChatTransport],
        config_getter: Optional[ConfigGetter] = None,
    ) -> None:
        """Register a chat transport."""
        self._register("chat", self._chat_transports, name, provider_class, config_getter)

    def register_transcriber(
        self,
        name: str,
        provider_class: Type[TranscriptionClient],
        config_getter: Optional[ConfigGetter] = None,
    ) -> None:
        """Register a transcription client."""
        self._register("stt", self._transcribers, name, provider_class, config_getter)

    def register_tts_provider(
        self,
        name: str,
        provider_class: Type[TTSProvider],
        config_getter: Optional[ConfigGetter] = None,
    ) -> None:
        """Register a TTS provider."""
        self._register("tts", self._tts_providers, name, provider_class, config_getter)

    def register_microphone(
        self,
        name: str,
        provider_class: Type[MicrophoneDevice],
        config_getter: Optional[ConfigGetter] = None,
    ) -> None:
        """Register a microphone device."""
        self._register("mic", self._microphones, name, provider_class, config_getter)

    def get_chat_transport(self, name: str, **kwargs) -> ChatTransport:
        """Get a chat transport instance."""
        return self._create("chat", self._chat_transports, name, kwargs)

    def get_transcriber(self, name: str, **kwargs) -> TranscriptionClient:
        """Get a transcription client instance."""
        return self._create("stt", self._transcribers, name, kwargs)

    def get_tts_provider(self, name: str, **kwargs) -> TTSProvider:
        """Get a TTS provider instance."""
        return self._create("tts", self._tts_providers, name, kwargs)

    def get_microphone(self, name: str, **kwargs) -> MicrophoneDevice:
        """Get a microphone device instance."""
        return self._create("mic", self._microphones, name, kwargs)

    def list_chat_transports(self) -> list[str]:
        return list(self._chat_transports.keys())

    def list_transcribers(self) -> list[str]:
        return list(self._transcribers.keys())

    def list_tts_providers(self) -> list[str]:
        return list(self._tts_providers.keys())

    def list_microphones(self) -> list[str]:
        return list(self._microphones.keys())

    def clear(self) -> None:
        """Clear all registered providers."""
        self._chat_transports.clear()
        self._transcribers.clear()
        self._tts_providers.clear()
        self._microphones.clear()
        self._provider_configs.clear()


# Global registry instance
registry = ProviderRegistry()
