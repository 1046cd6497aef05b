"""Tests for ChatSession: in-flight guard, indicators, mode reset."""
import asyncio

import pytest
from unittest.mock import AsyncMock

from companion.access.gatekeeper import SessionContext
from companion.api.errors import ProviderError
from companion.config import Settings
from companion.session.chat_session import ChatSession, open_chat_session
from companion.session.models import Mode, ModeState, Role, TextMessage
from companion.session.orchestrator import RequestOrchestrator
from companion.session.storage import InMemoryStorage


@pytest.fixture
def session(gateway, store, photo_character):
    return ChatSession(RequestOrchestrator(gateway, store), store, photo_character, "Ada")


class TestSubmit:
    @pytest.mark.asyncio
    async def test_mode_resets_after_success(self, session):
        session.toggle_image()
        session.set_edit(True)
        assert session.mode == ModeState(Mode.IMAGE, True)

        outcome = await session.submit("a red fox")

        assert outcome.ok is True
        assert session.mode == ModeState(Mode.TEXT, False)
        assert session.is_processing is False
        assert session.pending_indicator is None

    @pytest.mark.asyncio
    async def test_mode_resets_after_failure(self, session, gateway):
        gateway.complete_chat = AsyncMock(return_value="ok")
        gateway.synthesize_speech = AsyncMock(side_effect=ProviderError("quota exceeded"))
        session.toggle_voice()

        outcome = await session.submit("speak")

        assert outcome.ok is False
        assert session.error_message == "quota exceeded"
        assert session.mode == ModeState(Mode.TEXT, False)
        assert session.pending_indicator is None

    @pytest.mark.asyncio
    async def test_blank_input_is_ignored(self, session, gateway):
        assert await session.submit("   ") is None
        gateway.complete_chat.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_second_submit_while_in_flight_is_dropped(self, session, gateway):
        release = asyncio.Event()
        seen = {}

        async def slow_chat(turns, options):
            seen["indicator"] = session.pending_indicator
            await release.wait()
            return "done"

        gateway.complete_chat = AsyncMock(side_effect=slow_chat)

        first = asyncio.create_task(session.submit("one"))
        await asyncio.sleep(0)
        assert session.is_processing is True

        assert await session.submit("two") is None
        before = session.mode
        session.toggle_image()
        assert session.mode == before

        release.set()
        outcome = await first

        assert outcome.ok is True
        assert seen["indicator"] == "text"
        assert gateway.complete_chat.await_count == 1
        assert [m.content for m in session.active_thread.messages] == ["one", "done"]

    @pytest.mark.asyncio
    async def test_image_indicator(self, session, gateway):
        seen = {}

        async def generate(prompt):
            seen["indicator"] = session.pending_indicator
            return "B"

        gateway.generate_image = AsyncMock(side_effect=generate)
        session.toggle_image()
        await session.submit("a red fox")

        assert seen["indicator"] == "image"

    @pytest.mark.asyncio
    async def test_turn_goes_to_active_thread(self, session):
        first = session.active_thread.id
        second = session.create_thread()

        await session.submit("hello")

        assert len(session.store.get(second.id).messages) == 2
        assert session.store.get(first).messages == ()


class TestThreadsAndToggles:
    def test_create_thread_names_and_selects(self, session):
        thread = session.create_thread()
        assert thread.name == "Chat 2"
        assert session.active_thread.id == thread.id

    def test_toggle_clears_error(self, session):
        session.error_message = "old"
        session.toggle_voice()
        assert session.error_message is None

    def test_select_clears_error(self, session):
        other = session.store.create_thread()
        session.error_message = "old"
        assert session.select_thread(other.id) is True
        assert session.error_message is None

    def test_edit_requires_reference_image(self, gateway, store, character):
        plain = ChatSession(RequestOrchestrator(gateway, store), store, character)
        plain.toggle_image()
        plain.set_edit(True)
        assert plain.mode.edit_requested is False

    @pytest.mark.asyncio
    async def test_delete_is_ignored_while_turn_in_flight(self, session, gateway):
        busy = session.active_thread.id
        session.create_thread()
        session.select_thread(busy)
        release = asyncio.Event()

        async def slow_chat(turns, options):
            await release.wait()
            return "done"

        gateway.complete_chat = AsyncMock(side_effect=slow_chat)

        turn = asyncio.create_task(session.submit("hello"))
        await asyncio.sleep(0)
        assert session.delete_thread(busy) is False

        release.set()
        outcome = await turn

        assert outcome.ok is True
        assert busy in session.store
        assert [m.content for m in session.store.get(busy).messages] == ["hello", "done"]
        assert session.delete_thread(busy) is True

    def test_delete_last_thread_rejected(self, session):
        assert session.delete_thread(session.active_thread.id) is False

    def test_dismiss_error(self, session):
        session.error_message = "x"
        session.dismiss_error()
        assert session.error_message is None


def test_open_chat_session_restores_threads(gateway, store, storage, photo_character):
    store.append_messages(
        store.active_thread_id, [TextMessage(role=Role.USER, content="remember me")]
    )
    config = Settings(VENICE_API_KEY="test_key", HISTORY_LIMIT=5)
    context = SessionContext("exp_1", "user_1", "Ada", photo_character)

    session = open_chat_session(config, gateway, context, storage=storage)

    assert session.user_display_name == "Ada"
    assert session.orchestrator.history_limit == 5
    assert session.active_thread.messages[0].content == "remember me"


def test_open_chat_session_without_storage(gateway, photo_character):
    config = Settings(VENICE_API_KEY="test_key")
    context = SessionContext("exp_1", "user_1", "Ada", photo_character)

    session = open_chat_session(config, gateway, context, storage=InMemoryStorage())

    assert len(session.store) == 1
