"""Provider interfaces and implementations for replies and speech capture."""

from .registry import registry


def _register_all_providers():
    """Register all provider types."""
    from . import ai, stt
    ai.register_providers()
    stt.register_providers()


_register_all_providers()

__all__ = ["registry"]
