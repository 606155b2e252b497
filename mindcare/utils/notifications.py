"""Transient user-facing status notifications."""

import collections
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Callable, Deque, List, Optional

import structlog

from ..config.locales import DEFAULT_LANGUAGE, NOTIFICATION_MESSAGES, Language, localized


logger = structlog.get_logger()


class Severity(str, Enum):
    SUCCESS = "success"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


@dataclass(frozen=True)
class Notification:
    """A (severity, language, message key) triple; rendering is left to the UI."""

    severity: Severity
    language: Language
    key: str
    timestamp: datetime = field(default_factory=datetime.now, compare=False)


NotificationCallback = Callable[[Notification], None]


class Notifier:
    """Fans notifications out to subscribers and keeps a short history."""

    def __init__(self, history_size: int = 50):
        self._subscribers: List[NotificationCallback] = []
        self.history: Deque[Notification] = collections.deque(maxlen=history_size)

    def subscribe(self, callback: NotificationCallback) -> None:
        self._subscribers.append(callback)

    def unsubscribe(self, callback: NotificationCallback) -> None:
        if callback in self._subscribers:
            self._subscribers.remove(callback)

    def notify(
        self, severity: Severity, key: str, language: Optional[Language] = None
    ) -> Notification:
        notification = Notification(
            severity=Severity(severity), language=language or DEFAULT_LANGUAGE, key=key
        )
        self.history.append(notification)
        logger.debug(
            "Notification emitted",
            severity=notification.severity.value,
            language=notification.language.value,
            key=key,
        )

        for callback in list(self._subscribers):
            try:
                callback(notification)
            except Exception as e:
                logger.warning("Notification subscriber failed", key=key, error=str(e))

        return notification

    def keys(self) -> List[str]:
        """Keys of the notifications in history, oldest first."""
        return [notification.key for notification in self.history]

    @staticmethod
    def render(notification: Notification) -> str:
        """Resolve a notification to its localized text."""
        messages = NOTIFICATION_MESSAGES.get(notification.key)
        if messages is None:
            return notification.key
        return localized(messages, notification.language)
