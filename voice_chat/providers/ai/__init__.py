"""Chat transports."""


def register_providers():
    """Register all chat transports."""
    # Import at function level to avoid circular imports
    from ..registry import registry
    from ...config.settings import settings
    from .gemini import GeminiTransport

    def get_gemini_config():
        config = settings.get_provider_config("gemini")
        return {
            "max_output_tokens": config.get("max_output_tokens", 2048),
            "default_model": settings.chat.model,
        }

    registry.register_chat_transport("gemini", GeminiTransport, get_gemini_config)
