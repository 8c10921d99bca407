"""
Quizlet Reminder — Conversation session store.

Per-user conversation state for multi-step flows: a state tag plus a
scratch mapping of partial input (pending group, pending URL, ...).
Lives only in memory; a restart drops every user back to IDLE.

Records are spread over lock-guarded shards so that handlers for users in
different shards never wait on each other, and a record is fully built
under its shard lock before any reader can see it.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from threading import Lock

logger = logging.getLogger(__name__)


class UserState(Enum):
    """Where a user currently is in a conversation."""

    IDLE = "idle"
    AWAITING_GROUP_PASSWORD = "awaiting_group_password"
    AWAITING_GROUP_ID_TO_JOIN = "awaiting_group_id_to_join"
    AWAITING_JOIN_PASSWORD = "awaiting_join_password"
    AWAITING_ITEM_URL = "awaiting_item_url"
    AWAITING_ITEM_NAME = "awaiting_item_name"
    AWAITING_GROUP_CHOICE_FOR_ITEM = "awaiting_group_choice_for_item"
    AWAITING_GROUP_CHOICE_FOR_FULL_SUBMISSION = "awaiting_group_choice_for_full_submission"
    AWAITING_GROUP_CHOICE_TO_LEAVE = "awaiting_group_choice_to_leave"


@dataclass
class _Session:
    state: UserState = UserState.IDLE
    scratch: dict[str, str] = field(default_factory=dict)
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)


class _Shard:
    def __init__(self) -> None:
        self.lock = Lock()
        self.sessions: dict[int, _Session] = {}


class SessionStore:
    """Thread-safe mapping of user ID → conversation state and scratch values."""

    def __init__(self, shards: int = 16) -> None:
        if shards < 1:
            raise ValueError("shards must be >= 1")
        self._shards = [_Shard() for _ in range(shards)]

    def _shard(self, user_id: int) -> _Shard:
        return self._shards[user_id % len(self._shards)]

    def _session(self, shard: _Shard, user_id: int) -> _Session:
        # Caller must hold shard.lock
        session = shard.sessions.get(user_id)
        if session is None:
            session = _Session()
            shard.sessions[user_id] = session
        return session

    def get_state(self, user_id: int) -> UserState:
        shard = self._shard(user_id)
        with shard.lock:
            session = shard.sessions.get(user_id)
            return session.state if session else UserState.IDLE

    def set_state(self, user_id: int, state: UserState) -> None:
        shard = self._shard(user_id)
        with shard.lock:
            self._session(shard, user_id).state = state
        logger.debug("User %d → %s", user_id, state.value)

    def get_scratch(self, user_id: int, key: str) -> str:
        """Return a remembered value, or "" if nothing is stored under `key`."""
        shard = self._shard(user_id)
        with shard.lock:
            session = shard.sessions.get(user_id)
            if session is None:
                return ""
            return session.scratch.get(key, "")

    def set_scratch(self, user_id: int, key: str, value: str) -> None:
        shard = self._shard(user_id)
        with shard.lock:
            self._session(shard, user_id).scratch[key] = value

    def pop_scratch(self, user_id: int, key: str) -> str:
        shard = self._shard(user_id)
        with shard.lock:
            session = shard.sessions.get(user_id)
            if session is None:
                return ""
            return session.scratch.pop(key, "")

    def reset(self, user_id: int) -> None:
        """Return the user to IDLE and forget all scratch values."""
        shard = self._shard(user_id)
        with shard.lock:
            session = shard.sessions.get(user_id)
            if session is None:
                return
            session.state = UserState.IDLE
            session.scratch.clear()
        logger.debug("User %d session reset", user_id)

    def conversation_lock(self, user_id: int) -> asyncio.Lock:
        """Lock that serializes one user's events through the dialogue engine."""
        shard = self._shard(user_id)
        with shard.lock:
            return self._session(shard, user_id).lock
