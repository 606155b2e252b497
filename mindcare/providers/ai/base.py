"""Base interface for response engines."""

from abc import ABC, abstractmethod
from typing import Sequence, TYPE_CHECKING

from ...config.locales import Language

if TYPE_CHECKING:
    from ...state.session_manager import Message


class ResponseEngine(ABC):
    """Abstract base class for assistant reply generators."""

    def initialize(self) -> None:
        """Prepare the engine; the default implementation has nothing to do."""

    @abstractmethod
    async def generate_reply(self, history: Sequence["Message"], language: Language) -> str:
        """
        Produce the assistant reply for a conversation.

        Args:
            history: Ordered messages of the session, ending with the user turn
            language: Detected language of the user turn

        Returns:
            Reply text
        """

    def stop(self) -> None:
        """Release engine resources."""

    @abstractmethod
    def get_status(self) -> dict:
        """Get current status of the engine."""
