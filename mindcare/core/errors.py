"""Error types raised or recorded by the conversation core."""

from typing import Optional


class MindCareError(Exception):
    """Base class for all MindCare errors."""


class VoiceError(MindCareError):
    """A voice-input failure, surfaced to the user as a notification."""

    notification_key = "voice.recognition_error"


class CapabilityUnavailable(VoiceError):
    """The speech capability is absent for the lifetime of the process."""

    notification_key = "voice.unavailable"


class StartFailure(VoiceError):
    """The speech capability raised while starting; the user may retry."""

    notification_key = "voice.start_failed"


class RecognitionError(VoiceError):
    """Runtime error reported by the speech capability."""

    notification_key = "voice.recognition_error"

    def __init__(self, kind: str, message: Optional[str] = None):
        super().__init__(message or f"Speech recognition error: {kind}")
        self.kind = kind

    @property
    def is_network(self) -> bool:
        return self.kind == "network"


class ReconnectExhausted(RecognitionError):
    """Network errors kept recurring until the reconnection budget ran out."""

    notification_key = "voice.reconnect_exhausted"

    def __init__(self, attempts: int):
        super().__init__("network", f"Gave up reconnecting after {attempts} attempts")
        self.attempts = attempts


class ResponseEngineFailure(MindCareError):
    """Reply generation was rejected or raised."""


class SnapshotError(MindCareError):
    """A persisted snapshot cannot be read or migrated."""


class AuthError(MindCareError):
    """Credential exchange failed."""
