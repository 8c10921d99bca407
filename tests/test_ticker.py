"""Tests for quizlet_reminder.core.ticker — the daily reminder cycle."""

import asyncio
from datetime import date, datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest

from conftest import TODAY
from quizlet_reminder.core.notifier import DIGEST_TEXT
from quizlet_reminder.core.ticker import Ticker, next_tick_at, today_in
from quizlet_reminder.ports.storage_port import StorageError

YESTERDAY = (TODAY - timedelta(days=1)).isoformat()


class TestNextTickAt:
    def test_later_today(self):
        now = datetime(2026, 10, 17, 1, 30, tzinfo=timezone.utc)
        assert next_tick_at(now, 3) == datetime(2026, 10, 17, 3, 0, tzinfo=timezone.utc)

    def test_already_passed(self):
        now = datetime(2026, 10, 17, 5, 0, tzinfo=timezone.utc)
        assert next_tick_at(now, 3) == datetime(2026, 10, 18, 3, 0, tzinfo=timezone.utc)

    def test_exactly_on_the_hour_is_next_day(self):
        now = datetime(2026, 10, 17, 3, 0, tzinfo=timezone.utc)
        assert next_tick_at(now, 3) == datetime(2026, 10, 18, 3, 0, tzinfo=timezone.utc)

    def test_converts_to_utc(self):
        krasnoyarsk = timezone(timedelta(hours=7))
        now = datetime(2026, 10, 17, 9, 0, tzinfo=krasnoyarsk)  # 02:00 UTC
        assert next_tick_at(now, 3) == datetime(2026, 10, 17, 3, 0, tzinfo=timezone.utc)


class TestTodayIn:
    def test_returns_date(self):
        assert isinstance(today_in("UTC"), date)


class TestRunCycle:
    @pytest.mark.asyncio
    async def test_end_to_end(self, study_db, notifier):
        group_a = study_db.create_group("a")
        group_b = study_db.create_group("b")
        study_db.add_user_to_group(1, group_a.id)
        study_db.add_user_to_group(2, group_b.id)
        study_db.add_user_to_group(3, group_a.id)
        study_db.set_chat_for_user(1, 100)
        study_db.set_chat_for_user(2, 200)
        study_db.set_chat_for_user(3, 100)  # shared chat

        chem = study_db.create_item(group_a.id, "http://x.com/chem", "Chem 101", today=YESTERDAY)
        bio = study_db.create_item(group_b.id, "http://x.com/bio", "Bio 101", today=YESTERDAY)
        study_db.create_item(group_a.id, "http://x.com/later", "Later", today=TODAY.isoformat())

        ticker = Ticker(study_db, notifier, clock=lambda: TODAY)
        report = await ticker.run_cycle()

        assert report.completed is True
        assert report.today == "2026-10-17"
        assert report.items == 2
        assert report.chats == 2
        assert report.digests_sent == 2
        assert report.reminders_sent == 2

        calls = notifier.send_message.call_args_list
        assert sorted(c.args[0] for c in calls if c.args[1] == DIGEST_TEXT) == [100, 200]
        reminders = sorted(
            (c.args[0], c.kwargs["keyboard"].rows[0][0].callback_data)
            for c in calls if c.args[1] != DIGEST_TEXT
        )
        assert reminders == [(100, f"SETOK:{chem.id}.0"), (200, f"SETOK:{bio.id}.0")]

    @pytest.mark.asyncio
    async def test_overdue_items_caught_up(self, study_db, notifier):
        group = study_db.create_group("a")
        study_db.add_user_to_group(1, group.id)
        study_db.set_chat_for_user(1, 100)
        study_db.create_item(group.id, "http://x.com/a", "Old one", today="2026-10-01")

        report = await Ticker(study_db, notifier, clock=lambda: TODAY).run_cycle()

        assert report.overdue_moved == 1
        assert report.items == 1
        assert report.reminders_sent == 1
        assert study_db.get_items_by_group(group.id)[0].repeat_at == "2026-10-17"

    @pytest.mark.asyncio
    async def test_nothing_due(self, study_db, notifier):
        report = await Ticker(study_db, notifier, clock=lambda: TODAY).run_cycle()
        assert report.completed is True
        assert report.items == 0
        notifier.send_message.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_cycles_never_overlap(self, study_db, notifier):
        group = study_db.create_group("a")
        study_db.add_user_to_group(1, group.id)
        study_db.set_chat_for_user(1, 100)
        study_db.create_item(group.id, "http://x.com/a", "Chem 101", today=YESTERDAY)

        active = 0
        peak = 0

        async def slow_send(*args, **kwargs):
            nonlocal active, peak
            active += 1
            peak = max(peak, active)
            await asyncio.sleep(0.01)
            active -= 1

        notifier.send_message.side_effect = slow_send
        ticker = Ticker(study_db, notifier, clock=lambda: TODAY)

        reports = await asyncio.gather(ticker.run_cycle(), ticker.run_cycle(), ticker.run_cycle())

        assert peak == 1
        assert all(r.completed for r in reports)
        assert not ticker.running

    @pytest.mark.asyncio
    async def test_storage_failure_reports_incomplete(self, notifier):
        db = MagicMock()
        db.prolong_overdue_items.return_value = 0
        db.get_today_items.side_effect = StorageError("locked")

        report = await Ticker(db, notifier, clock=lambda: TODAY).run_cycle()

        assert report.completed is False
        notifier.send_message.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_overdue_failure_does_not_stop_cycle(self, notifier):
        db = MagicMock()
        db.prolong_overdue_items.side_effect = StorageError("locked")
        db.get_today_items.return_value = []
        db.get_chats_by_item_ids.return_value = {}

        report = await Ticker(db, notifier, clock=lambda: TODAY).run_cycle()

        assert report.completed is True
        assert report.overdue_moved == 0

    @pytest.mark.asyncio
    async def test_lock_released_after_failure(self, notifier):
        db = MagicMock()
        db.prolong_overdue_items.return_value = 0
        db.get_today_items.return_value = []
        db.get_chats_by_item_ids.side_effect = StorageError("locked")
        ticker = Ticker(db, notifier, clock=lambda: TODAY)

        assert (await ticker.run_cycle()).completed is False
        assert not ticker.running
