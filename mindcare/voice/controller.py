"""Retrying state machine around a continuous speech capability."""

import asyncio
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, TYPE_CHECKING

import structlog

from ..config.locales import DEFAULT_LANGUAGE, Language
from ..core.errors import (
    CapabilityUnavailable,
    ReconnectExhausted,
    RecognitionError,
    StartFailure,
    VoiceError,
)
from ..providers.stt.base import (
    CapabilityEnded,
    CapabilityError,
    CapabilityEvent,
    CapabilityProbe,
    CapabilityResult,
    CapabilityStarted,
)
from ..utils.notifications import Notifier, Severity

if TYPE_CHECKING:
    from ..metrics.collector import MetricsCollector


logger = structlog.get_logger()

MAX_RECONNECTION_ATTEMPTS = 3
RECONNECT_DELAY = 2.0  # seconds
LANGUAGE_RESTART_DELAY = 0.3  # seconds


class VoiceState(str, Enum):
    UNAVAILABLE = "unavailable"
    IDLE = "idle"
    STARTING = "starting"
    LISTENING = "listening"
    RECONNECTING = "reconnecting"
    STOPPED = "stopped"


ChangeCallback = Callable[["VoiceController"], None]


class VoiceController:
    """
    Drives one speech capability through start, listen, reconnect and stop.

    Capability events are queued with post() and applied in order by a pump
    task started with open(). Network errors are retried after a fixed delay
    up to max_reconnection_attempts consecutive times; every other failure
    returns the controller to idle and is surfaced as a notification.
    """

    def __init__(
        self,
        probe: CapabilityProbe,
        language: Language = DEFAULT_LANGUAGE,
        notifier: Optional[Notifier] = None,
        metrics: Optional["MetricsCollector"] = None,
        max_reconnection_attempts: int = MAX_RECONNECTION_ATTEMPTS,
        reconnect_delay: float = RECONNECT_DELAY,
        language_restart_delay: float = LANGUAGE_RESTART_DELAY,
    ):
        # Availability is decided once, here
        self.is_available = probe.available and probe.capability is not None
        self.unavailable_reason = probe.reason
        self._capability = probe.capability if self.is_available else None

        self.notifier = notifier
        self.metrics = metrics
        self.max_reconnection_attempts = max_reconnection_attempts
        self.reconnect_delay = reconnect_delay
        self.language_restart_delay = language_restart_delay

        self.state = VoiceState.IDLE if self.is_available else VoiceState.UNAVAILABLE
        self.is_listening = False
        self.transcript = ""
        self.language = Language.parse(language)
        self.reconnection_attempts = 0
        self.last_error: Optional[VoiceError] = None

        self._listeners: List[ChangeCallback] = []
        self._queue: Optional[asyncio.Queue] = None
        self._pump_task: Optional[asyncio.Task] = None
        self._reconnect_task: Optional[asyncio.Task] = None
        self._restart_task: Optional[asyncio.Task] = None
        # The current start was issued by a reconnection
        self._reconnecting = False
        # End events still owed by capture cycles the controller has moved past
        self._stale_ends = 0

        if self._capability is not None:
            self._capability.bind(self.post)

    # Event plumbing

    async def open(self) -> None:
        """Start the event pump on the running loop."""
        if self._pump_task is not None:
            return
        self._queue = asyncio.Queue()
        self._pump_task = asyncio.create_task(self._pump(), name="voice-event-pump")

    async def close(self) -> None:
        """Stop listening, cancel timers and the event pump."""
        if self.state in (VoiceState.STARTING, VoiceState.LISTENING, VoiceState.RECONNECTING):
            self.stop_listening()
        self._cancel_timers()

        if self._pump_task is not None:
            self._pump_task.cancel()
            try:
                await self._pump_task
            except asyncio.CancelledError:
                pass
        self._pump_task = None
        self._queue = None

    async def drain(self) -> None:
        """Wait until every posted event has been applied."""
        if self._queue is not None:
            await self._queue.join()

    def post(self, event: CapabilityEvent) -> None:
        """Event sink handed to the capability."""
        if self._queue is None:
            self.handle_event(event)
        else:
            self._queue.put_nowait(event)

    async def _pump(self) -> None:
        while True:
            event = await self._queue.get()
            try:
                self.handle_event(event)
            except Exception as e:
                logger.error(
                    "Voice event handling failed", event=type(event).__name__, error=str(e),
                    exc_info=True,
                )
            finally:
                self._queue.task_done()

    def add_listener(self, callback: ChangeCallback) -> None:
        self._listeners.append(callback)

    def _changed(self) -> None:
        for callback in list(self._listeners):
            callback(self)

    # Consumer operations

    def start_listening(self) -> bool:
        """Request the capability to start. Returns True if a start was issued."""
        if not self.is_available:
            self._signal(
                CapabilityUnavailable(self.unavailable_reason or "Speech capability unavailable"),
                Severity.WARNING,
            )
            return False

        if self.state not in (VoiceState.IDLE, VoiceState.STOPPED):
            logger.debug("Start ignored", state=self.state.value)
            return False

        self._cancel_timers()
        if self.state is VoiceState.STOPPED:
            # The stopped capture has not reported its end yet; close its cycle
            # so listeners can collect its transcript before the next one
            self._stale_ends += 1
            self._enter_idle()
            self._changed()
        self._reconnecting = False
        self.reconnection_attempts = 0
        self.last_error = None
        return self._begin_start()

    def stop_listening(self) -> None:
        """Manual stop: suppresses pending reconnection and clears the retry budget."""
        self._cancel_timers()
        self.reconnection_attempts = 0
        self._reconnecting = False
        self.is_listening = False

        previous = self.state
        if previous in (VoiceState.STARTING, VoiceState.LISTENING):
            self.state = VoiceState.STOPPED
            try:
                self._capability.stop()
            except Exception as e:
                logger.warning("Error stopping speech capability", error=str(e))
                self.state = VoiceState.IDLE
        elif previous is VoiceState.RECONNECTING:
            # Nothing is running while a restart is pending
            self.state = VoiceState.IDLE

        logger.info("Listening stopped", previous_state=previous.value)
        self._changed()

    def set_language(self, language: Language) -> None:
        """Change the recognition language, restarting an active capture."""
        self.language = Language.parse(language)
        if self.state is not VoiceState.LISTENING:
            return

        logger.info("Restarting capture for new language", language=self.language.value)
        self.stop_listening()
        self._restart_task = asyncio.create_task(self._restart_after_delay())

    def clear_transcript(self) -> None:
        self.transcript = ""
        self._changed()

    # Event handling

    def handle_event(self, event: CapabilityEvent) -> None:
        if isinstance(event, CapabilityStarted):
            self._on_started()
        elif isinstance(event, CapabilityResult):
            self._on_result(event)
        elif isinstance(event, CapabilityError):
            self._on_error(event.error)
        elif isinstance(event, CapabilityEnded):
            self._on_ended()
        else:
            logger.warning("Unknown capability event", event=repr(event))

    def _on_started(self) -> None:
        if self.state is not VoiceState.STARTING:
            logger.debug("Late start event ignored", state=self.state.value)
            return

        self.state = VoiceState.LISTENING
        self.is_listening = True
        if not self._reconnecting:
            self.reconnection_attempts = 0
            if self.metrics:
                self.metrics.record_voice_cycle()
        logger.info(
            "Listening", language=self.language.value, reconnecting=self._reconnecting,
            attempts=self.reconnection_attempts,
        )
        self._changed()

    def _on_result(self, event: CapabilityResult) -> None:
        if self.state not in (VoiceState.LISTENING, VoiceState.STOPPED):
            logger.debug("Result ignored", state=self.state.value)
            return

        # Cumulative: every event re-joins all results reported so far
        self.transcript = " ".join(result.best for result in event.results)
        if self._reconnecting and self.state is VoiceState.LISTENING:
            # Recognition works again after a reconnection
            self._reconnecting = False
            self.reconnection_attempts = 0
        self._changed()

    def _on_error(self, kind: str) -> None:
        if self.state not in (VoiceState.STARTING, VoiceState.LISTENING):
            logger.debug("Capability error ignored", error=kind, state=self.state.value)
            return

        # The capability always ends after reporting an error
        self._stale_ends += 1

        if kind == "network" and self.reconnection_attempts < self.max_reconnection_attempts:
            self._schedule_reconnect()
            self._changed()
            return

        if kind == "network":
            error: RecognitionError = ReconnectExhausted(self.reconnection_attempts)
        else:
            error = RecognitionError(kind)
        self._enter_idle()
        self._signal(error, Severity.ERROR)
        self._changed()

    def _on_ended(self) -> None:
        if self._stale_ends > 0:
            self._stale_ends -= 1
            return

        if self.state in (VoiceState.STOPPED, VoiceState.STARTING, VoiceState.LISTENING):
            self._enter_idle()
            logger.debug("Capture ended")
            self._changed()

    # Internals

    def _configure(self) -> None:
        self._capability.continuous = True
        self._capability.interim_results = True
        self._capability.language = self.language

    def _begin_start(self) -> bool:
        self._configure()
        self.state = VoiceState.STARTING
        try:
            self._capability.start()
        except Exception as e:
            logger.warning("Speech capability failed to start", error=str(e))
            if self._reconnecting:
                self._retry_or_give_up()
            else:
                self._enter_idle()
                self._signal(StartFailure(str(e)), Severity.ERROR)
            self._changed()
            return False

        self._changed()
        return True

    def _schedule_reconnect(self) -> None:
        self.reconnection_attempts += 1
        self.state = VoiceState.RECONNECTING
        self._reconnecting = True

        logger.warning(
            "Speech network error, reconnecting",
            attempt=self.reconnection_attempts,
            max_attempts=self.max_reconnection_attempts,
            delay=self.reconnect_delay,
        )
        if self.metrics:
            self.metrics.record_reconnection()
        if self.notifier:
            self.notifier.notify(Severity.INFO, "voice.reconnecting", self.language)

        self._reconnect_task = asyncio.create_task(self._reconnect_after_delay())

    def _retry_or_give_up(self) -> None:
        if self.reconnection_attempts < self.max_reconnection_attempts:
            self._schedule_reconnect()
        else:
            self._enter_idle()
            self._signal(ReconnectExhausted(self.reconnection_attempts), Severity.ERROR)

    async def _reconnect_after_delay(self) -> None:
        await asyncio.sleep(self.reconnect_delay)
        self._reconnect_task = None
        if self.state is VoiceState.RECONNECTING:
            self._begin_start()

    async def _restart_after_delay(self) -> None:
        await asyncio.sleep(self.language_restart_delay)
        self._restart_task = None
        self.start_listening()

    def _cancel_timers(self) -> None:
        current = asyncio.current_task() if self._has_running_loop() else None
        for task in (self._reconnect_task, self._restart_task):
            if task is not None and task is not current and not task.done():
                task.cancel()
        self._reconnect_task = None
        self._restart_task = None

    @staticmethod
    def _has_running_loop() -> bool:
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            return False
        return True

    def _enter_idle(self) -> None:
        if self._reconnect_task is not None:
            self._reconnect_task.cancel()
            self._reconnect_task = None
        self.state = VoiceState.IDLE
        self.is_listening = False
        self._reconnecting = False

    def _signal(self, error: VoiceError, severity: Severity) -> None:
        self.last_error = error
        logger.warning(
            "Voice input problem", error_type=type(error).__name__, error=str(error),
            state=self.state.value,
        )
        if self.metrics and not isinstance(error, CapabilityUnavailable):
            self.metrics.record_error("voice", f"{type(error).__name__}: {error}")
        if self.notifier:
            self.notifier.notify(severity, error.notification_key, self.language)

    def get_status(self) -> Dict[str, Any]:
        return {
            "state": self.state.value,
            "is_available": self.is_available,
            "is_listening": self.is_listening,
            "language": self.language.value,
            "transcript_length": len(self.transcript),
            "reconnection_attempts": self.reconnection_attempts,
            "max_reconnection_attempts": self.max_reconnection_attempts,
            "last_error": str(self.last_error) if self.last_error else None,
            "capability": self._capability.get_status() if self._capability else None,
        }
