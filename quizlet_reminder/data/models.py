"""
Quizlet Reminder — Data Models.

Groups and their study items persist in SQLite across restarts.
Conversation state does not: it lives in the in-process session store.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class Group:
    """A password-protected collection of shared study items.

    Only the salted SHA-256 digest of the password is ever stored.
    """

    id: int
    password_hash: str


@dataclass
class Item:
    """A Quizlet module tracked on a spaced-repetition schedule."""

    id: int
    group_id: int
    url: str
    name: str
    repeat_at: str       # ISO date YYYY-MM-DD, next time it is due
    counter: int = 0     # confirmed repetitions so far
