"""
Quizlet Reminder — Telegram Bot.

Telegram is the only user interface. This module turns Telegram updates
into dialogue-engine events, registers the daily reminder job, and starts
polling. All conversation logic lives in quizlet_reminder.core.dialogue.

Updates are processed concurrently; the engine serializes each user's
own events.
"""

from __future__ import annotations

import logging
from datetime import datetime, time as dt_time, timezone
from typing import TYPE_CHECKING

from telegram import BotCommand, Update
from telegram.ext import (
    Application,
    ApplicationBuilder,
    CallbackQueryHandler,
    CommandHandler,
    ContextTypes,
    MessageHandler,
    filters,
)

from quizlet_reminder.config import settings
from quizlet_reminder.core.dialogue import DialogueEngine, IncomingCallback, IncomingMessage
from quizlet_reminder.core.notifier import CONFIRM_PREFIX
from quizlet_reminder.core.session import SessionStore
from quizlet_reminder.core.ticker import Ticker, next_tick_at, today_in

if TYPE_CHECKING:
    from quizlet_reminder.ports.notification_port import NotificationPort
    from quizlet_reminder.ports.storage_port import StoragePort

logger = logging.getLogger(__name__)

_MENU_COMMANDS = [
    BotCommand("start", "Главное меню"),
    BotCommand("items", "Расписание повторений"),
    BotCommand("create_item", "Добавить модуль"),
    BotCommand("quit", "Покинуть группу"),
    BotCommand("cancel", "Сбросить состояние"),
    BotCommand("help", "Помощь"),
]


# ---------------------------------------------------------------------------
# Update → event conversion
# ---------------------------------------------------------------------------


def message_event(update: Update) -> IncomingMessage | None:
    """Build an IncomingMessage from a text update, or None if it isn't one."""
    message = update.effective_message
    user = update.effective_user
    chat = update.effective_chat
    if message is None or user is None or chat is None or message.text is None:
        return None
    return IncomingMessage(user_id=user.id, chat_id=chat.id, text=message.text)


def callback_event(update: Update) -> IncomingCallback | None:
    """Build an IncomingCallback from a button press, or None if it isn't one."""
    query = update.callback_query
    if query is None or query.data is None:
        return None
    message = query.message
    chat_id = message.chat.id if message is not None else query.from_user.id
    message_id = message.message_id if message is not None else None
    message_text = getattr(message, "text", None)
    return IncomingCallback(
        user_id=query.from_user.id,
        chat_id=chat_id,
        callback_id=query.id,
        data=query.data,
        message_id=message_id,
        message_text=message_text,
    )


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------


async def on_message(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle commands and plain text through the dialogue engine."""
    event = message_event(update)
    if event is None:
        return
    engine: DialogueEngine = context.bot_data["engine"]
    await engine.handle_message(event)


async def on_callback(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle inline button presses on reminders."""
    event = callback_event(update)
    if event is None:
        return
    engine: DialogueEngine = context.bot_data["engine"]
    await engine.handle_callback(event)


async def on_error(update: object, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Log anything a handler let escape; polling keeps going."""
    logger.error("Unhandled error while processing %r", update, exc_info=context.error)


# ---------------------------------------------------------------------------
# App builder
# ---------------------------------------------------------------------------


def build_app(
    db: StoragePort | None = None,
    notifier: NotificationPort | None = None,
) -> Application:
    """Build and configure the Telegram Application with all handlers.

    Args:
        db: Storage port implementation. Defaults to StudyDB at DATABASE_PATH.
        notifier: Notification port implementation. Defaults to TelegramNotifier
                  (created from the bot instance after app is built).
    """
    app = (
        ApplicationBuilder()
        .token(settings.TELEGRAM_BOT_TOKEN)
        .concurrent_updates(True)
        .post_init(_post_init)
        .build()
    )

    # Wire default adapters if not provided
    if db is None:
        from quizlet_reminder.data.db import StudyDB
        db = StudyDB()

    if notifier is None:
        from quizlet_reminder.adapters.telegram_notifier import TelegramNotifier
        notifier = TelegramNotifier(app.bot)

    ticker = Ticker(db, notifier, clock=lambda: today_in(settings.TIMEZONE))
    engine = DialogueEngine(
        db,
        notifier,
        SessionStore(),
        ticker=ticker,
        password_salt=settings.GROUP_PASSWORD_SALT,
        admin_ids=settings.ADMIN_USER_IDS,
        timezone=settings.TIMEZONE,
    )

    app.bot_data["engine"] = engine

    for command in engine.commands:
        app.add_handler(CommandHandler(command, on_message))
    app.add_handler(CallbackQueryHandler(on_callback, pattern=rf"^{CONFIRM_PREFIX}:"))
    app.add_handler(MessageHandler(filters.TEXT & ~filters.COMMAND, on_message))
    app.add_error_handler(on_error)

    _setup_daily_tick(app, ticker)

    logger.info("Telegram bot application built with %d handlers", len(app.handlers[0]))
    return app


async def _post_init(app: Application) -> None:
    await app.bot.set_my_commands(_MENU_COMMANDS)


def _setup_daily_tick(app: Application, ticker: Ticker) -> None:
    """Register the daily reminder cycle at TICK_HOUR_UTC:00 UTC."""
    tick_time = dt_time(hour=settings.TICK_HOUR_UTC, minute=0, tzinfo=timezone.utc)

    async def _tick_job_callback(context: ContextTypes.DEFAULT_TYPE) -> None:
        await ticker.run_cycle()
        logger.info("Next reminder cycle at %s", next_tick_at(datetime.now(timezone.utc), settings.TICK_HOUR_UTC))

    app.job_queue.run_daily(
        _tick_job_callback,
        time=tick_time,
        name="daily_tick",
    )

    logger.info(
        "Daily reminder cycle scheduled at %s",
        next_tick_at(datetime.now(timezone.utc), settings.TICK_HOUR_UTC),
    )


def main() -> None:
    """Entry point: build the app and start polling."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    logger.info("Starting Quizlet Reminder bot...")
    app = build_app()
    app.run_polling(allowed_updates=Update.ALL_TYPES)


if __name__ == "__main__":
    main()
