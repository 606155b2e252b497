"""Tests for chat sessions and reply coordination."""

import asyncio
from datetime import datetime
from unittest.mock import AsyncMock, MagicMock

import pytest

from mindcare.config.locales import DEFAULT_TITLES, GREETINGS, SYSTEM_PROMPTS, Language
from mindcare.core.errors import ResponseEngineFailure
from mindcare.providers.ai.canned import canned_reply
from mindcare.state.session_manager import (
    Message,
    MessageRole,
    Session,
    SessionStore,
    derive_title,
)


def engine_returning(reply):
    engine = MagicMock()
    engine.generate_reply = AsyncMock(return_value=reply)
    return engine


class TestSessions:
    """Session creation, selection and deletion."""

    def test_create_session_is_seeded(self, store):
        session_id = store.create_session()
        session = store.get_current_session()

        assert session.id == session_id
        assert session.title == DEFAULT_TITLES[Language.FR]
        assert session.language is Language.FR
        assert [m.role for m in session.messages] == [MessageRole.SYSTEM, MessageRole.ASSISTANT]
        assert session.messages[0].content == SYSTEM_PROMPTS[Language.FR]
        assert session.messages[1].content == GREETINGS[Language.FR]

    def test_new_sessions_are_prepended(self, store):
        first = store.create_session()
        second = store.create_session()

        assert [s.id for s in store.sessions] == [second, first]
        assert store.current_session_id == second

    def test_create_session_uses_default_language(self, store):
        store.set_language(Language.DE)
        store.create_session()

        session = store.get_current_session()
        assert session.language is Language.DE
        assert session.title == DEFAULT_TITLES[Language.DE]

    def test_select_unknown_session(self, store):
        store.create_session()
        store.set_current_session("missing")

        assert store.current_session_id == "missing"
        assert store.get_current_session() is None

    def test_delete_current_session_selects_first_remaining(self, store):
        oldest = store.create_session()
        middle = store.create_session()
        newest = store.create_session()

        store.delete_session(newest)
        assert store.current_session_id == middle
        assert [s.id for s in store.sessions] == [middle, oldest]

    def test_delete_other_session_keeps_selection(self, store):
        first = store.create_session()
        second = store.create_session()

        store.delete_session(first)
        assert store.current_session_id == second

    def test_delete_last_session(self, store):
        only = store.create_session()
        store.delete_session(only)

        assert store.sessions == []
        assert store.current_session_id is None

    def test_update_title(self, store):
        session_id = store.create_session()
        store.update_session_title(session_id, "Sleep")
        store.update_session_title("missing", "ignored")

        assert store.get_current_session().title == "Sleep"


class TestAddMessage:
    """User messages, replies and failures."""

    @pytest.mark.asyncio
    async def test_french_message_gets_french_reply(self, store):
        store.create_session()
        await store.add_message("Bonjour, je me sens triste")

        session = store.get_current_session()
        user, reply = session.messages[-2:]
        assert user.role is MessageRole.USER
        assert user.content == "Bonjour, je me sens triste"
        assert reply.role is MessageRole.ASSISTANT
        assert reply.content == canned_reply("Bonjour, je me sens triste", Language.FR)
        assert session.language is Language.FR
        assert session.title == "Bonjour, je me sens triste"
        assert store.is_loading is False

    @pytest.mark.asyncio
    async def test_language_is_detected_per_message(self, store):
        store.create_session()
        await store.add_message("Hello, how are you?")

        assert store.get_current_session().language is Language.EN
        assert store.default_language is Language.EN

        # Later sessions start in the last detected language
        store.create_session()
        assert store.get_current_session().title == DEFAULT_TITLES[Language.EN]

    @pytest.mark.asyncio
    async def test_english_greeting_in_french_session(self, store):
        store.create_session()
        session = store.get_current_session()
        assert session.title == "Nouvelle Conversation"
        assert len(session.messages) == 2

        await store.add_message("Hello there, how are you?")

        assert session.language is Language.EN
        assert session.title == "Hello there, how are you?"
        assert len(session.messages) == 4
        assert session.messages[-1].role is MessageRole.ASSISTANT
        assert session.messages[-1].content
        assert store.is_loading is False

    @pytest.mark.asyncio
    async def test_long_first_message_is_truncated_for_title(self, store):
        store.create_session()
        content = "I have been feeling very overwhelmed at work lately"
        await store.add_message(content)

        assert store.get_current_session().title == content[:30] + "..."

    @pytest.mark.asyncio
    async def test_title_set_only_from_placeholder(self, store):
        store.create_session()
        await store.add_message("Hello there")
        await store.add_message("Something completely different")

        assert store.get_current_session().title == "Hello there"

    @pytest.mark.asyncio
    async def test_placeholder_in_any_language_is_replaced(self, store):
        store.set_language(Language.ES)
        store.create_session()
        await store.add_message("Hello")

        assert store.get_current_session().title == "Hello"

    @pytest.mark.asyncio
    async def test_assistant_message_has_no_side_effects(self, store):
        engine = engine_returning("unused")
        store.response_engine = engine
        store.create_session()

        await store.add_message("Hello from the assistant", role=MessageRole.ASSISTANT)

        session = store.get_current_session()
        assert session.messages[-1].role is MessageRole.ASSISTANT
        assert session.title == DEFAULT_TITLES[Language.FR]
        assert session.language is Language.FR
        engine.generate_reply.assert_not_called()

    @pytest.mark.asyncio
    async def test_no_current_session_is_a_noop(self, store):
        engine = engine_returning("unused")
        store.response_engine = engine

        await store.add_message("Hello")

        assert store.sessions == []
        engine.generate_reply.assert_not_called()

    @pytest.mark.asyncio
    async def test_loading_flag_set_during_generation(self, store):
        observed = []

        async def generate(history, language):
            observed.append(store.is_loading)
            assert history[-1].content == "Hello"
            return "Hi!"

        engine = MagicMock()
        engine.generate_reply = AsyncMock(side_effect=generate)
        store.response_engine = engine
        store.create_session()

        await store.add_message("Hello")

        assert observed == [True]
        assert store.is_loading is False
        engine.generate_reply.assert_awaited_once()
        _, language = engine.generate_reply.call_args.args
        assert language is Language.EN

    @pytest.mark.asyncio
    async def test_engine_failure(self, store, notifier, metrics):
        engine = MagicMock()
        engine.generate_reply = AsyncMock(side_effect=RuntimeError("service down"))
        store.response_engine = engine
        store.create_session()

        await store.add_message("Hello")

        session = store.get_current_session()
        assert session.messages[-1].role is MessageRole.USER
        assert store.is_loading is False
        assert isinstance(store.last_error, ResponseEngineFailure)
        assert notifier.keys() == ["chat.reply_failed"]
        assert notifier.history[-1].language is Language.EN
        assert metrics.current_run.errors[0]["component"] == "response_engine"

    @pytest.mark.asyncio
    async def test_empty_reply_is_a_failure(self, store, notifier):
        store.response_engine = engine_returning("   ")
        store.create_session()

        await store.add_message("Hello")

        assert store.get_current_session().messages[-1].role is MessageRole.USER
        assert notifier.keys() == ["chat.reply_failed"]

    @pytest.mark.asyncio
    async def test_reply_dropped_when_session_deleted(self, store):
        release = asyncio.Event()

        async def generate(history, language):
            await release.wait()
            return "Too late"

        engine = MagicMock()
        engine.generate_reply = AsyncMock(side_effect=generate)
        store.response_engine = engine
        doomed = store.create_session()

        task = asyncio.create_task(store.add_message("Hello"))
        await asyncio.sleep(0)
        assert store.is_loading is True

        store.delete_session(doomed)
        release.set()
        await task

        assert store.sessions == []
        assert store.is_loading is False

    @pytest.mark.asyncio
    async def test_reply_goes_to_originating_session(self, store):
        release = asyncio.Event()

        async def generate(history, language):
            await release.wait()
            return "Reply"

        engine = MagicMock()
        engine.generate_reply = AsyncMock(side_effect=generate)
        store.response_engine = engine
        origin = store.create_session()

        task = asyncio.create_task(store.add_message("Hello"))
        await asyncio.sleep(0)
        other = store.create_session()
        release.set()
        await task

        assert store.get_session(origin).messages[-1].content == "Reply"
        assert len(store.get_session(other).messages) == 2

    @pytest.mark.asyncio
    async def test_successful_reply_recorded_in_metrics(self, store, metrics):
        store.create_session()
        await store.add_message("Hello")

        assert metrics.current_run.total_interactions == 1
        assert len(metrics.current_run.reply_latencies) == 1


class TestPersistence:
    """Snapshot round trips through storage."""

    @pytest.mark.asyncio
    async def test_state_survives_reload(self, store, storage, engine):
        store.create_session()
        await store.add_message("Hello")

        reloaded = SessionStore(engine, storage=storage)
        assert reloaded.load() is True

        session = reloaded.get_current_session()
        assert session.id == store.current_session_id
        assert session.title == "Hello"
        assert session.language is Language.EN
        assert [m.content for m in session.messages] == [
            m.content for m in store.get_current_session().messages
        ]
        assert isinstance(session.messages[0].timestamp, datetime)
        assert reloaded.default_language is Language.EN

    def test_load_without_snapshot(self, store):
        assert store.load() is False
        assert store.sessions == []

    def test_unknown_current_session_is_dropped_on_restore(self, store):
        store.restore({"sessions": [], "current_session_id": "gone", "language": "en-US"})

        assert store.current_session_id is None
        assert store.default_language is Language.EN


class TestModel:
    """Message and session value objects."""

    def test_derive_title(self):
        assert derive_title("short") == "short"
        assert derive_title("x" * 30) == "x" * 30
        assert derive_title("x" * 31) == "x" * 30 + "..."

    def test_message_dict_round_trip(self):
        message = Message.create(MessageRole.USER, "Hola")
        assert Message.from_dict(message.to_dict()) == message

    def test_session_append_updates_timestamp(self):
        session = Session.create(Language.IT)
        message = Message.create(MessageRole.USER, "Ciao")
        session.append(message)

        assert session.updated_at == message.timestamp
        assert session.has_placeholder_title
