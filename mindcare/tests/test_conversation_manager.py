"""Tests for the composition root."""

import asyncio

import pytest

from mindcare.config.locales import Language
from mindcare.config.settings import Settings
from mindcare.core.conversation_manager import ConversationConfig, ConversationManager
from mindcare.providers.stt.mock import ScriptedCapability
from mindcare.state.persistence import CHAT_NAMESPACE
from mindcare.state.session_manager import MessageRole, SessionStore
from mindcare.voice.controller import VoiceState


@pytest.fixture
def manager(storage, engine, fake_capability, notifier):
    return ConversationManager(
        ConversationConfig(enable_metrics=False),
        settings=Settings(load_env=False),
        storage=storage,
        response_engine=engine,
        speech_factory=lambda: fake_capability,
        notifier=notifier,
    )


class TestConversationManager:

    @pytest.mark.asyncio
    async def test_start_creates_first_session(self, manager):
        await manager.start()
        try:
            assert len(manager.store.sessions) == 1
            assert manager.store.get_current_session() is not None
            assert manager.is_running is True
        finally:
            await manager.stop()

    @pytest.mark.asyncio
    async def test_start_selects_existing_session(self, storage, engine, fake_capability):
        seeded = SessionStore(engine, storage=storage)
        first = seeded.create_session()
        seeded.set_current_session("gone")

        manager = ConversationManager(
            ConversationConfig(enable_metrics=False),
            settings=Settings(load_env=False),
            storage=storage,
            response_engine=engine,
            speech_factory=lambda: fake_capability,
        )
        await manager.start()
        try:
            assert manager.store.current_session_id == first
            assert len(manager.store.sessions) == 1
        finally:
            await manager.stop()

    @pytest.mark.asyncio
    async def test_send_text(self, manager):
        await manager.start()
        try:
            assert await manager.send("Hello") is True
            assert await manager.send("   ") is False

            messages = manager.store.get_current_session().messages
            assert messages[-2].content == "Hello"
            assert messages[-1].role is MessageRole.ASSISTANT
            # Recognition follows the conversation language
            assert manager.voice.language is Language.EN
        finally:
            await manager.stop()

    @pytest.mark.asyncio
    async def test_send_refused_while_loading(self, manager):
        await manager.start()
        try:
            manager.store.is_loading = True
            assert await manager.send("Hello") is False
        finally:
            manager.store.is_loading = False
            await manager.stop()

    @pytest.mark.asyncio
    async def test_voice_transcript_is_buffered_and_sent(self, manager, fake_capability):
        await manager.start()
        try:
            manager.voice.start_listening()
            fake_capability.started()
            fake_capability.result("I feel")
            fake_capability.result("I feel", "anxious")
            await manager.voice.drain()
            assert manager.pending_input == ""

            manager.voice.stop_listening()
            fake_capability.ended()
            await manager.voice.drain()

            assert manager.voice.state is VoiceState.IDLE
            assert manager.pending_input == "I feel anxious"
            assert manager.voice.transcript == ""

            assert await manager.send() is True
            assert manager.pending_input == ""
            messages = manager.store.get_current_session().messages
            assert messages[-2].content == "I feel anxious"
        finally:
            await manager.stop()

    @pytest.mark.asyncio
    async def test_speech_before_language_restart_is_kept(self, manager, fake_capability):
        await manager.start()
        manager.voice.language_restart_delay = 0.01
        try:
            manager.voice.start_listening()
            fake_capability.started()
            fake_capability.result("je suis fatigue")
            await manager.voice.drain()

            manager.set_language(Language.EN)
            # The old capture reports its end only after the restart
            await _wait_for(lambda: manager.voice.state is VoiceState.STARTING)
            assert manager.pending_input == "je suis fatigue"

            fake_capability.ended()
            fake_capability.started()
            fake_capability.result("new words")
            await manager.voice.drain()
            assert manager.voice.state is VoiceState.LISTENING
            assert manager.pending_input == "je suis fatigue"

            manager.voice.stop_listening()
            fake_capability.ended()
            await manager.voice.drain()
            assert manager.pending_input == "je suis fatigue new words"
        finally:
            await manager.stop()

    @pytest.mark.asyncio
    async def test_set_language(self, manager):
        await manager.start()
        try:
            manager.set_language(Language.AR)
            assert manager.store.default_language is Language.AR
            assert manager.voice.language is Language.AR
        finally:
            await manager.stop()

    @pytest.mark.asyncio
    async def test_stop_persists(self, manager, storage):
        await manager.start()
        await manager.send("Hello")
        await manager.stop()

        state = storage.load(CHAT_NAMESPACE)
        assert state["current_session_id"] == manager.store.current_session_id
        assert manager.is_running is False

    def test_status(self, manager):
        status = manager.get_status()

        assert status["voice"]["state"] == "idle"
        assert status["store"]["sessions"] == 0
        assert status["response_engine"]["provider"] == "canned"
        assert status["authenticated"] is False

    def test_mock_mode_uses_scripted_voice(self, tmp_path):
        settings = Settings(load_env=False)
        settings.metrics.directory = str(tmp_path / "metrics")
        manager = ConversationManager(
            ConversationConfig(mock_mode=True, ephemeral=True), settings=settings
        )

        assert manager.voice.is_available is True
        assert manager.voice.get_status()["capability"]["provider"] == "scripted"
        assert manager.metrics is not None

    def test_unknown_speech_provider_is_unavailable(self):
        manager = ConversationManager(
            ConversationConfig(speech_provider="nope", ephemeral=True, enable_metrics=False),
            settings=Settings(load_env=False),
        )

        assert manager.voice.state is VoiceState.UNAVAILABLE

    @pytest.mark.asyncio
    async def test_scripted_capture_end_to_end(self, storage, engine):
        capability = ScriptedCapability(phrases=["I am stressed"], interval=0.01)
        manager = ConversationManager(
            ConversationConfig(enable_metrics=False),
            settings=Settings(load_env=False),
            storage=storage,
            response_engine=engine,
            speech_factory=lambda: capability,
        )
        await manager.start()
        try:
            manager.voice.start_listening()
            await _wait_for(lambda: manager.voice.transcript == "I am stressed")
            manager.voice.stop_listening()
            await _wait_for(lambda: manager.voice.state is VoiceState.IDLE)

            assert manager.pending_input == "I am stressed"
        finally:
            await manager.stop()


async def _wait_for(condition, timeout=1.0):
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not condition():
        if loop.time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.01)
