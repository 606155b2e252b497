"""
Composition root that wires the stores, the response engine and voice input.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, Optional

import structlog

from ..config.locales import Language
from ..config.settings import Settings
from ..metrics.collector import MetricsCollector
from ..providers.ai.base import ResponseEngine
from ..providers.registry import registry
from ..providers.stt.base import SpeechCapability, probe_capability
from ..state.auth import AuthStore
from ..state.persistence import JsonFileStorage, MemoryStorage, SnapshotStorage
from ..state.session_manager import SessionStore, generate_id
from ..utils.notifications import Notifier
from ..voice.controller import VoiceController, VoiceState


logger = structlog.get_logger()


@dataclass
class ConversationConfig:
    """Configuration for one assistant run."""

    response_engine: Optional[str] = None  # defaults to settings.response.engine
    speech_provider: Optional[str] = None  # defaults to settings.speech.provider
    storage_dir: Optional[str] = None
    enable_voice: bool = True
    enable_metrics: bool = True
    ephemeral: bool = False
    mock_mode: bool = False


class ConversationManager:
    """
    Owns every long-lived component of the assistant and the glue between them.

    Voice transcripts are collected into a pending input buffer once a
    capture ends; send() turns the buffer (or explicit text) into a user
    message.
    """

    def __init__(
        self,
        config: Optional[ConversationConfig] = None,
        settings: Optional[Settings] = None,
        storage: Optional[SnapshotStorage] = None,
        response_engine: Optional[ResponseEngine] = None,
        speech_factory: Optional[Callable[[], SpeechCapability]] = None,
        notifier: Optional[Notifier] = None,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.config = config or ConversationConfig()
        self.settings = settings or Settings()
        self.run_id = generate_id()
        self.is_running = False
        self.pending_input = ""

        self.notifier = notifier or Notifier()
        self.storage = storage or self._initialize_storage()
        self.metrics = metrics
        if self.metrics is None and self.config.enable_metrics and self.settings.metrics.enabled:
            self.metrics = MetricsCollector(self.settings.metrics_dir())

        self.response_engine = response_engine or self._initialize_response_engine()
        self.store = SessionStore(
            self.response_engine,
            storage=self.storage,
            default_language=self.settings.default_language,
            notifier=self.notifier,
            metrics=self.metrics,
            namespace=self.settings.storage.chat_namespace,
        )
        self.auth = AuthStore(storage=self.storage, namespace=self.settings.storage.auth_namespace)

        if speech_factory is None and self.config.enable_voice:
            speech_factory = self._speech_factory()
        speech = self.settings.speech
        self.voice = VoiceController(
            probe_capability(speech_factory),
            language=self.settings.default_language,
            notifier=self.notifier,
            metrics=self.metrics,
            max_reconnection_attempts=speech.max_reconnection_attempts,
            reconnect_delay=speech.reconnect_delay,
            language_restart_delay=speech.language_restart_delay,
        )
        self.voice.add_listener(self._on_voice_change)

    def _initialize_storage(self) -> SnapshotStorage:
        if self.config.ephemeral:
            return MemoryStorage()
        directory = (
            Path(self.config.storage_dir).expanduser()
            if self.config.storage_dir
            else self.settings.storage_dir()
        )
        return JsonFileStorage(directory)

    def _initialize_response_engine(self) -> ResponseEngine:
        name = "canned" if self.config.mock_mode else (
            self.config.response_engine or self.settings.response.engine
        )
        return registry.get_response_engine(name, self.settings)

    def _speech_factory(self) -> Optional[Callable[[], SpeechCapability]]:
        name = "scripted" if self.config.mock_mode else (
            self.config.speech_provider or self.settings.speech.provider
        )
        try:
            return registry.speech_capability_factory(name, self.settings)
        except ValueError as e:
            logger.warning("Speech capability not registered", provider=name, error=str(e))
            return None

    def _on_voice_change(self, controller: VoiceController) -> None:
        # Only a finished capture contributes to the input buffer
        if controller.state is not VoiceState.IDLE:
            return
        text = controller.transcript.strip()
        if not text:
            return
        self.pending_input = f"{self.pending_input} {text}".strip()
        controller.clear_transcript()
        logger.debug("Voice transcript buffered", length=len(self.pending_input))

    async def start(self) -> None:
        """Load persisted state, select a session and open voice input."""
        logger.info(
            "Starting assistant",
            run_id=self.run_id,
            voice_available=self.voice.is_available,
            mock_mode=self.config.mock_mode,
        )

        self.response_engine.initialize()
        self.store.load()
        self.auth.load()

        if not self.store.sessions:
            self.store.create_session()
        elif self.store.get_current_session() is None:
            self.store.set_current_session(self.store.sessions[0].id)

        self.voice.set_language(self.store.default_language)
        await self.voice.open()

        if self.metrics:
            self.metrics.start_session(self.run_id)
        self.is_running = True

    async def send(self, text: Optional[str] = None) -> bool:
        """
        Submit text, or the pending voice input, as a user message.

        Returns False when there was nothing to send or a reply is still
        being generated.
        """
        content = (self.pending_input if text is None else text).strip()
        if not content:
            return False
        if self.store.is_loading:
            logger.warning("Reply in progress, message not sent")
            return False

        if text is None:
            self.pending_input = ""
        if self.store.get_current_session() is None:
            self.store.create_session()

        await self.store.add_message(content)

        # Recognition follows the language of the conversation
        if self.voice.language is not self.store.default_language:
            self.voice.set_language(self.store.default_language)
        return True

    def new_session(self) -> str:
        return self.store.create_session()

    def set_language(self, language: Language) -> None:
        self.store.set_language(language)
        self.voice.set_language(self.store.default_language)

    async def stop(self) -> None:
        """Stop voice input, flush metrics and persist state."""
        logger.info("Stopping assistant", run_id=self.run_id)

        await self.voice.close()
        try:
            self.response_engine.stop()
        except Exception as e:
            logger.warning("Error stopping response engine", error=str(e))

        if self.metrics:
            self.metrics.end_session()
            self.metrics.save_metrics()

        self.store.persist()
        self.is_running = False
        logger.info("Assistant stopped")

    def get_status(self) -> Dict[str, Any]:
        return {
            "run_id": self.run_id,
            "is_running": self.is_running,
            "pending_input": self.pending_input,
            "store": self.store.get_status(),
            "voice": self.voice.get_status(),
            "response_engine": self.response_engine.get_status(),
            "authenticated": self.auth.is_authenticated,
        }
