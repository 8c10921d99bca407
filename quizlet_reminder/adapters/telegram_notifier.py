"""Telegram notification adapter — implements NotificationPort.

Wraps a telegram.Bot instance to satisfy the NotificationPort protocol.
"""

from __future__ import annotations

import logging

from telegram import (
    Bot,
    InlineKeyboardButton,
    InlineKeyboardMarkup,
    KeyboardButton,
    LinkPreviewOptions,
    ReplyKeyboardMarkup,
)
from telegram.constants import ParseMode

from quizlet_reminder.ports.notification_port import InlineKeyboard, Keyboard, ReplyKeyboard

logger = logging.getLogger(__name__)


def to_reply_markup(
    keyboard: Keyboard | None,
) -> ReplyKeyboardMarkup | InlineKeyboardMarkup | None:
    """Convert a port keyboard into Telegram markup."""
    if keyboard is None:
        return None
    if isinstance(keyboard, ReplyKeyboard):
        return ReplyKeyboardMarkup(
            [[KeyboardButton(label) for label in row] for row in keyboard.rows],
            one_time_keyboard=keyboard.one_time,
            resize_keyboard=True,
        )
    if isinstance(keyboard, InlineKeyboard):
        return InlineKeyboardMarkup(
            [
                [InlineKeyboardButton(b.text, callback_data=b.callback_data) for b in row]
                for row in keyboard.rows
            ]
        )
    raise TypeError(f"Unsupported keyboard type: {type(keyboard).__name__}")


class TelegramNotifier:
    """Telegram implementation of NotificationPort."""

    def __init__(self, bot: Bot) -> None:
        self._bot = bot

    async def send_message(
        self,
        chat_id: int,
        text: str,
        *,
        keyboard: Keyboard | None = None,
        markdown: bool = False,
        silent: bool = False,
        disable_preview: bool = False,
    ) -> None:
        await self._bot.send_message(
            chat_id=chat_id,
            text=text,
            reply_markup=to_reply_markup(keyboard),
            parse_mode=ParseMode.MARKDOWN if markdown else None,
            disable_notification=silent,
            link_preview_options=LinkPreviewOptions(is_disabled=True) if disable_preview else None,
        )

    async def edit_message_text(self, chat_id: int, message_id: int, text: str) -> None:
        await self._bot.edit_message_text(text=text, chat_id=chat_id, message_id=message_id)

    async def answer_callback(self, callback_id: str, text: str | None = None) -> None:
        await self._bot.answer_callback_query(callback_query_id=callback_id, text=text)
