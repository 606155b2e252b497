"""Base interface for continuous speech-recognition capabilities."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Union

import structlog

from ...config.locales import DEFAULT_LANGUAGE, Language


logger = structlog.get_logger()


@dataclass(frozen=True)
class RecognitionAlternative:
    """One candidate transcription of a result."""

    transcript: str
    confidence: Optional[float] = None


@dataclass(frozen=True)
class RecognitionResult:
    """A recognition result with its alternatives, interim or final."""

    alternatives: List[RecognitionAlternative]
    is_final: bool = False

    @property
    def best(self) -> str:
        return self.alternatives[0].transcript if self.alternatives else ""


@dataclass(frozen=True)
class CapabilityStarted:
    """The capability began capturing audio."""


@dataclass(frozen=True)
class CapabilityResult:
    """All results reported so far in the current capture."""

    results: List[RecognitionResult] = field(default_factory=list)


@dataclass(frozen=True)
class CapabilityError:
    """Runtime error; error is a kind string such as "network" or "no-speech"."""

    error: str


@dataclass(frozen=True)
class CapabilityEnded:
    """The capability stopped capturing audio."""


CapabilityEvent = Union[CapabilityStarted, CapabilityResult, CapabilityError, CapabilityEnded]
EventSink = Callable[[CapabilityEvent], None]


class SpeechCapability(ABC):
    """
    Abstract continuous speech-recognition capability.

    Configuration attributes are mutated in place before each start().
    Events are delivered to the sink attached with bind().
    """

    def __init__(self):
        self.continuous = True
        self.interim_results = True
        self.language: Language = DEFAULT_LANGUAGE
        self._sink: Optional[EventSink] = None

    @classmethod
    def is_supported(cls) -> bool:
        """Whether the platform provides this capability."""
        return True

    def bind(self, sink: EventSink) -> None:
        """Attach the event sink receiving capability events."""
        self._sink = sink

    def emit(self, event: CapabilityEvent) -> None:
        if self._sink is None:
            logger.warning("Dropping capability event without sink", event=type(event).__name__)
            return
        self._sink(event)

    @abstractmethod
    def start(self) -> None:
        """Begin capturing; may raise synchronously."""

    @abstractmethod
    def stop(self) -> None:
        """Stop capturing, delivering pending results before the end event."""

    @abstractmethod
    def abort(self) -> None:
        """Stop capturing immediately, discarding pending results."""

    @abstractmethod
    def get_status(self) -> dict:
        """Get current status of the capability."""


@dataclass(frozen=True)
class CapabilityProbe:
    """Outcome of probing for a speech capability at startup."""

    available: bool
    capability: Optional[SpeechCapability] = None
    reason: Optional[str] = None


def probe_capability(factory: Optional[Callable[[], SpeechCapability]]) -> CapabilityProbe:
    """Probe for a capability once; any failure reports it as unavailable."""
    if factory is None:
        return CapabilityProbe(available=False, reason="No speech capability configured")

    provider_class = getattr(factory, "provider_class", None)
    try:
        if provider_class is not None and not provider_class.is_supported():
            return CapabilityProbe(
                available=False, reason=f"{provider_class.__name__} is not supported here"
            )
        capability = factory()
    except Exception as e:
        logger.warning("Speech capability probe failed", error=str(e))
        return CapabilityProbe(available=False, reason=str(e))

    return CapabilityProbe(available=True, capability=capability)
