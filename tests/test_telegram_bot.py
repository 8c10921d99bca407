"""Tests for quizlet_reminder.bot.telegram_bot — update conversion and handlers.

The dialogue engine is mocked; these tests only cover the Telegram glue.
"""

import pytest
from unittest.mock import AsyncMock, MagicMock

from quizlet_reminder.bot.telegram_bot import (
    build_app,
    callback_event,
    message_event,
    on_callback,
    on_message,
)
from quizlet_reminder.core.dialogue import IncomingCallback, IncomingMessage


def _make_update(text, user_id=12345, chat_id=-100):
    """Create a mock Update carrying a text message."""
    update = MagicMock()
    update.callback_query = None
    update.effective_message.text = text
    update.effective_user.id = user_id
    update.effective_chat.id = chat_id
    return update


def _make_callback_update(data, user_id=12345, chat_id=-100, message_id=7, text="Chem 101"):
    update = MagicMock()
    query = update.callback_query
    query.id = "cb1"
    query.data = data
    query.from_user.id = user_id
    query.message.chat.id = chat_id
    query.message.message_id = message_id
    query.message.text = text
    return update


def _make_context():
    context = MagicMock()
    engine = MagicMock()
    engine.handle_message = AsyncMock()
    engine.handle_callback = AsyncMock()
    context.bot_data = {"engine": engine}
    return context, engine


# ---------------------------------------------------------------------------
# Update → event conversion
# ---------------------------------------------------------------------------


class TestMessageEvent:
    def test_text_message(self):
        event = message_event(_make_update("/start"))
        assert event == IncomingMessage(user_id=12345, chat_id=-100, text="/start")

    def test_non_text_message(self):
        assert message_event(_make_update(None)) is None

    def test_no_user(self):
        update = _make_update("hi")
        update.effective_user = None
        assert message_event(update) is None


class TestCallbackEvent:
    def test_button_press(self):
        event = callback_event(_make_callback_update("SETOK:1.0"))
        assert event == IncomingCallback(
            user_id=12345, chat_id=-100, callback_id="cb1", data="SETOK:1.0",
            message_id=7, message_text="Chem 101",
        )

    def test_message_unavailable_falls_back_to_user_chat(self):
        update = _make_callback_update("SETOK:1.0")
        update.callback_query.message = None
        event = callback_event(update)
        assert event.chat_id == 12345
        assert event.message_id is None
        assert event.message_text is None

    def test_no_query(self):
        update = MagicMock()
        update.callback_query = None
        assert callback_event(update) is None

    def test_no_data(self):
        assert callback_event(_make_callback_update(None)) is None


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------


class TestHandlers:
    @pytest.mark.asyncio
    async def test_on_message_forwards_to_engine(self):
        context, engine = _make_context()
        await on_message(_make_update("Добавить модуль"), context)
        engine.handle_message.assert_awaited_once_with(
            IncomingMessage(user_id=12345, chat_id=-100, text="Добавить модуль")
        )

    @pytest.mark.asyncio
    async def test_on_message_ignores_non_text(self):
        context, engine = _make_context()
        await on_message(_make_update(None), context)
        engine.handle_message.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_on_callback_forwards_to_engine(self):
        context, engine = _make_context()
        await on_callback(_make_callback_update("SETOK:3.1"), context)
        event = engine.handle_callback.call_args.args[0]
        assert event.data == "SETOK:3.1"
        assert event.callback_id == "cb1"


# ---------------------------------------------------------------------------
# App wiring
# ---------------------------------------------------------------------------


class TestBuildApp:
    def test_only_engine_is_shared(self, study_db, notifier):
        app = build_app(db=study_db, notifier=notifier)
        assert set(app.bot_data) == {"engine"}
        assert [job.name for job in app.job_queue.jobs()] == ["daily_tick"]
