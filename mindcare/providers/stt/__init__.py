"""Speech capabilities."""


def register_providers():
    """Register all speech capabilities."""
    # Import at function level to avoid circular imports
    from ..registry import registry
    from .mock import ScriptedCapability
    from .whisperkit import WhisperKitCapability

    def get_whisperkit_config(settings):
        return {
            "executable": settings.speech.whisperkit_path,
            "model": settings.speech.whisperkit_model,
        }

    registry.register_speech_capability("whisperkit", WhisperKitCapability, get_whisperkit_config)
    registry.register_speech_capability("scripted", ScriptedCapability)
