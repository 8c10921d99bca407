"""
Quizlet Reminder — Daily reminder fan-out.

Sends one morning greeting per chat, then one reminder per (item, chat)
with a "done" button. The button carries the item's counter as seen when
the reminder was composed, so a confirmation can be applied at most once.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from telegram.error import TelegramError
from telegram.helpers import escape_markdown

from quizlet_reminder.core.validation import MAX_ID
from quizlet_reminder.ports.notification_port import InlineButton, InlineKeyboard

if TYPE_CHECKING:
    from quizlet_reminder.data.models import Item
    from quizlet_reminder.ports.notification_port import NotificationPort

logger = logging.getLogger(__name__)

CONFIRM_PREFIX = "SETOK"
CONFIRM_BUTTON_TEXT = "Повторили!"

DIGEST_TEXT = (
    "Доброе утро! Соскучились по модулям? А они-то как по вас?)\n"
    "В общем, пора учиться :)"
)


@dataclass
class NotifyReport:
    """What one fan-out actually delivered."""

    digests_sent: int = 0
    reminders_sent: int = 0
    failed_sends: int = 0


def build_confirmation_payload(item: Item) -> str:
    return f"{CONFIRM_PREFIX}:{item.id}.{item.counter}"


def parse_confirmation_payload(data: str) -> tuple[int, int] | None:
    """Parse "SETOK:<item_id>.<counter>" into (item_id, counter), or None."""
    prefix, sep, body = (data or "").partition(":")
    if prefix != CONFIRM_PREFIX or not sep:
        return None
    raw_id, dot, raw_counter = body.partition(".")
    if not dot:
        return None
    try:
        item_id, counter = int(raw_id), int(raw_counter)
    except ValueError:
        return None
    if not (0 < item_id <= MAX_ID and 0 <= counter <= MAX_ID):
        return None
    return item_id, counter


def format_reminder(item: Item) -> str:
    return f"{escape_markdown(item.name)}\n[Тыц по ссылке]({item.url})"


def _unique(chat_ids: list[int]) -> list[int]:
    return list(dict.fromkeys(chat_ids))


async def send_daily_reminders(
    notifier: NotificationPort,
    items: list[Item],
    chats_by_item: dict[int, list[int]],
) -> NotifyReport:
    """Greet every reachable chat once, then send each item's reminder.

    A failed send is logged and counted; the remaining sends still go out.
    """
    report = NotifyReport()

    greeted: set[int] = set()
    for item in items:
        for chat_id in chats_by_item.get(item.id, []):
            if chat_id in greeted:
                continue
            greeted.add(chat_id)
            try:
                await notifier.send_message(chat_id, DIGEST_TEXT)
                report.digests_sent += 1
            except TelegramError as exc:
                report.failed_sends += 1
                logger.warning("Failed to send daily greeting to chat %d: %s", chat_id, exc)

    for item in items:
        keyboard = InlineKeyboard(
            rows=((InlineButton(CONFIRM_BUTTON_TEXT, build_confirmation_payload(item)),),)
        )
        for chat_id in _unique(chats_by_item.get(item.id, [])):
            try:
                await notifier.send_message(
                    chat_id,
                    format_reminder(item),
                    keyboard=keyboard,
                    markdown=True,
                    silent=True,
                    disable_preview=True,
                )
                report.reminders_sent += 1
            except TelegramError as exc:
                report.failed_sends += 1
                logger.warning(
                    "Failed to send reminder for item #%d to chat %d: %s",
                    item.id, chat_id, exc,
                )

    return report
