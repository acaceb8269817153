"""Speech capture and transcription providers."""

def register_providers():
    """Register all transcribers and microphones."""
    # Import at function level to avoid circular imports
    from ..registry import registry
    from ...config.settings import settings
    from .microphone import SoundDeviceMicrophone
    from .transcription_client import HTTPTranscriptionClient

    registry.register_transcriber(
        "http",
        HTTPTranscriptionClient,
        lambda: settings.get_provider_config("http"),
    )
    registry.register_microphone(
        "sounddevice",
        SoundDeviceMicrophone,
        lambda: settings.get_provider_config("sounddevice"),
    )
