"""Shared test fixtures and configuration.

Sets up fake environment variables so quizlet_reminder.config doesn't
sys.exit(), and provides common fixtures like a temp DB and a fake notifier.
"""

import os

# Patch env vars BEFORE any quizlet_reminder imports
os.environ.setdefault("TELEGRAM_BOT_TOKEN", "fake-token-for-tests")
os.environ.setdefault("DATABASE_PATH", ":memory:")
os.environ.setdefault("TIMEZONE", "UTC")

from datetime import date
from unittest.mock import AsyncMock

import pytest

TODAY = date(2026, 10, 17)


@pytest.fixture
def tmp_db_path(tmp_path):
    """Return a temporary SQLite DB path."""
    return str(tmp_path / "test_quizlet.db")


@pytest.fixture
def study_db(tmp_db_path):
    """Return a StudyDB instance backed by a temp file."""
    from quizlet_reminder.data.db import StudyDB
    return StudyDB(db_path=tmp_db_path, prolong_days=[1, 3, 7, 14])


@pytest.fixture
def notifier():
    """A NotificationPort double that records every call."""
    fake = AsyncMock()
    fake.send_message = AsyncMock()
    fake.edit_message_text = AsyncMock()
    fake.answer_callback = AsyncMock()
    return fake


@pytest.fixture
def sessions():
    from quizlet_reminder.core.session import SessionStore
    return SessionStore()


@pytest.fixture
def engine(study_db, notifier, sessions):
    """A DialogueEngine wired to the temp DB, with a fixed 'today'."""
    from quizlet_reminder.core.dialogue import DialogueEngine
    return DialogueEngine(
        study_db,
        notifier,
        sessions,
        password_salt="test-salt",
        clock=lambda: TODAY,
    )


def sent_texts(notifier) -> list[str]:
    """Texts of every send_message call, in order."""
    return [c.args[1] for c in notifier.send_message.call_args_list]
