"""Chat sessions, message ordering and reply coordination."""

import time
import uuid
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, TYPE_CHECKING
from uuid import uuid4

import structlog

from ..config.locales import (
    DEFAULT_LANGUAGE,
    DEFAULT_TITLES,
    GREETINGS,
    SYSTEM_PROMPTS,
    Language,
    localized,
)
from ..core.errors import ResponseEngineFailure, SnapshotError
from ..core.language import detect_language
from ..providers.ai.base import ResponseEngine
from ..utils.notifications import Notifier, Severity
from .persistence import CHAT_NAMESPACE, SnapshotStorage

if TYPE_CHECKING:
    from ..metrics.collector import MetricsCollector


logger = structlog.get_logger()

TITLE_MAX_LENGTH = 30
TITLE_ELLIPSIS = "..."
PLACEHOLDER_TITLES = frozenset(DEFAULT_TITLES.values())


def generate_id() -> str:
    """Generate a time-sortable id. Falls back to uuid4 if uuid7 not available."""
    try:
        return str(uuid.uuid7())  # type: ignore[attr-defined]
    except AttributeError:
        # uuid7 not available in older Python versions, use uuid4
        return str(uuid4())


def derive_title(content: str) -> str:
    """Session title derived from the first user message."""
    if len(content) > TITLE_MAX_LENGTH:
        return content[:TITLE_MAX_LENGTH] + TITLE_ELLIPSIS
    return content


class MessageRole(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


@dataclass(frozen=True)
class Message:
    """One immutable turn of a session."""

    id: str
    role: MessageRole
    content: str
    timestamp: datetime

    @classmethod
    def create(cls, role: MessageRole, content: str) -> "Message":
        return cls(id=generate_id(), role=MessageRole(role), content=content, timestamp=datetime.now())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "role": self.role.value,
            "content": self.content,
            "timestamp": self.timestamp.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Message":
        return cls(
            id=data["id"],
            role=MessageRole(data["role"]),
            content=data["content"],
            timestamp=datetime.fromisoformat(data["timestamp"]),
        )


@dataclass
class Session:
    """A conversation thread: append-only messages plus title and language."""

    id: str
    title: str
    messages: List[Message]
    created_at: datetime
    updated_at: datetime
    language: Language = DEFAULT_LANGUAGE

    @classmethod
    def create(cls, language: Language) -> "Session":
        now = datetime.now()
        return cls(
            id=generate_id(),
            title=localized(DEFAULT_TITLES, language),
            messages=[
                Message.create(MessageRole.SYSTEM, localized(SYSTEM_PROMPTS, language)),
                Message.create(MessageRole.ASSISTANT, localized(GREETINGS, language)),
            ],
            created_at=now,
            updated_at=now,
            language=language,
        )

    def append(self, message: Message) -> None:
        self.messages.append(message)
        self.updated_at = message.timestamp

    @property
    def has_placeholder_title(self) -> bool:
        return self.title in PLACEHOLDER_TITLES

    def to_dict(self) -> Dict[str, Any]:
        """Convert session to dictionary for serialization."""
        return {
            "id": self.id,
            "title": self.title,
            "messages": [message.to_dict() for message in self.messages],
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
            "language": self.language.value,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Session":
        """Create session from dictionary."""
        return cls(
            id=data["id"],
            title=data["title"],
            messages=[Message.from_dict(message) for message in data.get("messages", [])],
            created_at=datetime.fromisoformat(data["created_at"]),
            updated_at=datetime.fromisoformat(data["updated_at"]),
            language=Language.parse(data.get("language")),
        )


class SessionStore:
    """
    Owns the chat sessions and the active one.

    Inserts messages in call order, tags languages, and runs one reply
    generation at a time behind the is_loading flag. The flag is global to
    the store: callers must not submit another user message while it is set.
    """

    def __init__(
        self,
        response_engine: ResponseEngine,
        storage: Optional[SnapshotStorage] = None,
        default_language: Language = DEFAULT_LANGUAGE,
        notifier: Optional[Notifier] = None,
        metrics: Optional["MetricsCollector"] = None,
        namespace: str = CHAT_NAMESPACE,
    ):
        self.response_engine = response_engine
        self.storage = storage
        self.notifier = notifier
        self.metrics = metrics
        self.namespace = namespace

        self.sessions: List[Session] = []
        self.current_session_id: Optional[str] = None
        self.is_loading = False
        self.default_language = default_language
        self.last_error: Optional[ResponseEngineFailure] = None

    # Persistence

    def snapshot(self) -> Dict[str, Any]:
        return {
            "sessions": [session.to_dict() for session in self.sessions],
            "current_session_id": self.current_session_id,
            "language": self.default_language.value,
        }

    def restore(self, state: Dict[str, Any]) -> None:
        self.sessions = [Session.from_dict(data) for data in state.get("sessions", [])]
        self.default_language = Language.parse(state.get("language"))
        current = state.get("current_session_id")
        self.current_session_id = current if self.get_session(current) else None

    def load(self) -> bool:
        """Rehydrate from storage. Returns True when a snapshot was restored."""
        if self.storage is None:
            return False
        try:
            state = self.storage.load(self.namespace)
            if state is None:
                return False
            self.restore(state)
        except (SnapshotError, KeyError, ValueError, TypeError) as e:
            logger.error("Failed to load chat snapshot, starting empty", error=str(e))
            return False

        logger.info(
            "Chat state loaded",
            sessions=len(self.sessions),
            current_session_id=self.current_session_id,
        )
        return True

    def persist(self) -> None:
        if self.storage is None:
            return
        try:
            self.storage.save(self.namespace, self.snapshot())
        except OSError as e:
            logger.error("Failed to persist chat state", error=str(e), exc_info=True)

    # Queries

    def get_session(self, session_id: Optional[str]) -> Optional[Session]:
        if session_id is None:
            return None
        for session in self.sessions:
            if session.id == session_id:
                return session
        return None

    def get_current_session(self) -> Optional[Session]:
        return self.get_session(self.current_session_id)

    # Operations

    def create_session(self) -> str:
        """Create a seeded session in the default language and make it current."""
        session = Session.create(self.default_language)
        self.sessions.insert(0, session)
        self.current_session_id = session.id
        self.persist()

        logger.info("Created new session", session_id=session.id, language=session.language.value)
        return session.id

    def set_current_session(self, session_id: str) -> None:
        if self.get_session(session_id) is None:
            logger.warning("Selecting unknown session", session_id=session_id)
        self.current_session_id = session_id
        self.persist()

    async def add_message(self, content: str, role: MessageRole = MessageRole.USER) -> None:
        """
        Append a message to the current session.

        A user message is language-tagged, may set the session title, and is
        followed by the assistant reply before is_loading clears. Reply
        failures are logged and notified; no assistant message is added.
        """
        role = MessageRole(role)
        session = self.get_current_session()
        if session is None:
            logger.debug("No current session, message ignored", role=role.value)
            return

        session.append(Message.create(role, content))

        if role is not MessageRole.USER:
            self.persist()
            return

        language = detect_language(content)
        if session.has_placeholder_title:
            session.title = derive_title(content)
        session.language = language
        self.default_language = language
        self.persist()

        self.is_loading = True
        started = time.monotonic()
        try:
            reply = await self.response_engine.generate_reply(list(session.messages), language)
            if not isinstance(reply, str) or not reply.strip():
                raise ResponseEngineFailure("Response engine returned an empty reply")
            self._append_reply(session.id, reply, (time.monotonic() - started) * 1000)
        except Exception as e:
            self._handle_reply_failure(session.id, language, e)
        finally:
            self.is_loading = False

    def _append_reply(self, session_id: str, reply: str, latency_ms: float) -> None:
        session = self.get_session(session_id)
        if session is None:
            logger.warning("Session deleted before its reply arrived", session_id=session_id)
            return

        session.append(Message.create(MessageRole.ASSISTANT, reply))
        self.persist()

        if self.metrics:
            self.metrics.record_reply_latency(latency_ms)
            self.metrics.record_interaction()
        logger.debug("Reply appended", session_id=session_id, latency_ms=round(latency_ms, 1))

    def _handle_reply_failure(self, session_id: str, language: Language, error: Exception) -> None:
        failure = (
            error if isinstance(error, ResponseEngineFailure) else ResponseEngineFailure(str(error))
        )
        self.last_error = failure
        logger.error(
            "Error generating reply", session_id=session_id, error=str(error), exc_info=error
        )
        if self.metrics:
            self.metrics.record_error("response_engine", str(error))
        if self.notifier:
            self.notifier.notify(Severity.ERROR, "chat.reply_failed", language)

    def delete_session(self, session_id: str) -> None:
        """Remove a session; deleting the current one selects the newest remaining."""
        self.sessions = [session for session in self.sessions if session.id != session_id]
        if session_id == self.current_session_id:
            self.current_session_id = self.sessions[0].id if self.sessions else None
        self.persist()

        logger.info(
            "Deleted session", session_id=session_id, current_session_id=self.current_session_id
        )

    def update_session_title(self, session_id: str, title: str) -> None:
        session = self.get_session(session_id)
        if session is not None:
            session.title = title
            self.persist()

    def set_language(self, language: Language) -> None:
        """Set the language used for sessions created from now on."""
        self.default_language = Language.parse(language)
        self.persist()

    def get_status(self) -> Dict[str, Any]:
        return {
            "sessions": len(self.sessions),
            "current_session_id": self.current_session_id,
            "is_loading": self.is_loading,
            "language": self.default_language.value,
        }
