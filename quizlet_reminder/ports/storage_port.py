"""Storage port — abstract interface for persistence operations.

Core modules depend on this protocol, never on a specific database.
"""

from __future__ import annotations

from typing import Protocol

from quizlet_reminder.data.models import Group, Item


class StorageError(Exception):
    """Raised when any persistence operation fails."""


class StoragePort(Protocol):
    """Abstract persistence interface used by core modules."""

    def create_group(self, password_hash: str) -> Group: ...

    def get_group(self, group_id: int) -> Group | None: ...

    def add_user_to_group(self, user_id: int, group_id: int) -> None: ...

    def remove_user_from_group(self, user_id: int, group_id: int) -> bool: ...

    def get_user_groups(self, user_id: int) -> list[Group]: ...

    def get_items_by_group(self, group_id: int) -> list[Item]: ...

    def get_today_items(self, today: str) -> list[Item]: ...

    def create_item(
        self, group_id: int, url: str, name: str, today: str,
    ) -> Item: ...

    def prolong_overdue_items(self, today: str) -> int: ...

    def prolong_item_with_check(
        self, item_id: int, counter: int, today: str,
    ) -> bool: ...

    def set_chat_for_user(self, user_id: int, chat_id: int) -> None: ...

    def get_chats_by_user_ids(self, user_ids: list[int]) -> dict[int, list[int]]: ...

    def get_chats_by_item_ids(self, item_ids: list[int]) -> dict[int, list[int]]: ...

    def current_date(self) -> str: ...
