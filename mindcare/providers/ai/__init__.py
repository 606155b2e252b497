"""Response engines."""


def register_providers():
    """Register all response engines."""
    # Import at function level to avoid circular imports
    from ..registry import registry
    from .canned import CannedResponseEngine

    def get_canned_config(settings):
        return {"latency": settings.response.simulated_latency}

    registry.register_response_engine("canned", CannedResponseEngine, get_canned_config)
