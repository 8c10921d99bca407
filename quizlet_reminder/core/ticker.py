"""
Quizlet Reminder — Daily reminder cycle.

Once a day (and whenever an operator sends /tick) the ticker:
1. moves overdue items to today, catching up on missed days,
2. loads the items due today,
3. resolves every chat bound to those items' group members,
4. hands both to the notifier.

Cycles never overlap: the scheduled run and a manual /tick share one lock,
and a cycle holds it until its last message has been sent.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import TYPE_CHECKING, Callable
from zoneinfo import ZoneInfo

from quizlet_reminder.core.notifier import send_daily_reminders
from quizlet_reminder.ports.storage_port import StorageError

if TYPE_CHECKING:
    from quizlet_reminder.ports.notification_port import NotificationPort
    from quizlet_reminder.ports.storage_port import StoragePort

logger = logging.getLogger(__name__)


def today_in(tz_name: str) -> date:
    """Today's date in the given IANA timezone."""
    return datetime.now(ZoneInfo(tz_name)).date()


def next_tick_at(now: datetime, hour: int) -> datetime:
    """Next UTC instant at `hour`:00 strictly after `now`."""
    now = now.astimezone(timezone.utc)
    candidate = now.replace(hour=hour, minute=0, second=0, microsecond=0)
    if candidate <= now:
        candidate += timedelta(days=1)
    return candidate


@dataclass
class CycleReport:
    """Summary of one reminder cycle, logged and shown to the operator."""

    today: str
    overdue_moved: int = 0
    items: int = 0
    chats: int = 0
    digests_sent: int = 0
    reminders_sent: int = 0
    failed_sends: int = 0
    completed: bool = False


class Ticker:
    """Runs reminder cycles, one at a time."""

    def __init__(
        self,
        db: StoragePort,
        notifier: NotificationPort,
        clock: Callable[[], date] | None = None,
    ) -> None:
        self._db = db
        self._notifier = notifier
        self._clock = clock or date.today
        self._lock = asyncio.Lock()

    @property
    def running(self) -> bool:
        return self._lock.locked()

    async def run_cycle(self) -> CycleReport:
        """Run one full cycle, waiting for any cycle already in progress."""
        async with self._lock:
            return await self._cycle()

    async def _cycle(self) -> CycleReport:
        today = self._clock().isoformat()
        report = CycleReport(today=today)
        logger.info("Reminder cycle started for %s", today)

        try:
            report.overdue_moved = self._db.prolong_overdue_items(today)
        except StorageError as exc:
            logger.error("Failed to move overdue items: %s", exc)

        try:
            items = self._db.get_today_items(today)
        except StorageError as exc:
            logger.error("Failed to load today's items: %s", exc)
            return report
        report.items = len(items)
        logger.info("Items due today: %d", len(items))

        try:
            chats_by_item = self._db.get_chats_by_item_ids([item.id for item in items])
        except StorageError as exc:
            logger.error("Failed to resolve chats for today's items: %s", exc)
            return report
        report.chats = len({c for chats in chats_by_item.values() for c in chats})
        logger.info("Chats to notify: %d", report.chats)

        sent = await send_daily_reminders(self._notifier, items, chats_by_item)
        report.digests_sent = sent.digests_sent
        report.reminders_sent = sent.reminders_sent
        report.failed_sends = sent.failed_sends
        report.completed = True

        logger.info(
            "Reminder cycle done: %d greeting(s), %d reminder(s), %d failed send(s)",
            report.digests_sent, report.reminders_sent, report.failed_sends,
        )
        return report
