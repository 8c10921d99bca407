"""
Quizlet Reminder — Study Database.

SQLite storage for groups, memberships, study items and chat bindings.
Implements StoragePort; every sqlite3 failure surfaces as StorageError.
"""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Iterator
from contextlib import closing, contextmanager
from datetime import date, timedelta
from pathlib import Path

from quizlet_reminder.data.models import Group, Item
from quizlet_reminder.ports.storage_port import StorageError

logger = logging.getLogger(__name__)

# Days until the next repetition, indexed by counter
DEFAULT_PROLONG_DAYS = (1, 3, 7, 14, 30, 60, 120)


class StudyDB:
    """SQLite-backed storage for groups and their spaced-repetition items."""

    def __init__(
        self,
        db_path: str | None = None,
        prolong_days: list[int] | tuple[int, ...] | None = None,
    ) -> None:
        if db_path is None:
            from quizlet_reminder.config import settings
            db_path = settings.DATABASE_PATH
            if prolong_days is None:
                prolong_days = settings.PROLONG_DAYS

        self._db_path = db_path
        self._prolong_days = tuple(prolong_days or DEFAULT_PROLONG_DAYS)
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        """Open a connection, commit on success, and translate storage errors.

        OverflowError comes from integers too large for an SQLite INTEGER.
        """
        try:
            with closing(sqlite3.connect(self._db_path)) as conn:
                conn.row_factory = sqlite3.Row
                with conn:
                    yield conn
        except (sqlite3.Error, OverflowError) as exc:
            raise StorageError(str(exc)) from exc

    def _init_db(self) -> None:
        """Create tables if they don't exist and load the repetition schedule."""
        with self._connect() as conn:
            conn.executescript("""
                CREATE TABLE IF NOT EXISTS groups (
                    id            INTEGER PRIMARY KEY AUTOINCREMENT,
                    password_hash TEXT    NOT NULL
                );
                CREATE TABLE IF NOT EXISTS group_members (
                    user_id  INTEGER NOT NULL,
                    group_id INTEGER NOT NULL REFERENCES groups(id),
                    UNIQUE (user_id, group_id)
                );
                CREATE TABLE IF NOT EXISTS items (
                    id        INTEGER PRIMARY KEY AUTOINCREMENT,
                    group_id  INTEGER NOT NULL REFERENCES groups(id),
                    url       TEXT    NOT NULL,
                    name      TEXT    NOT NULL,
                    repeat_at TEXT    NOT NULL,
                    counter   INTEGER NOT NULL DEFAULT 0
                );
                CREATE INDEX IF NOT EXISTS idx_items_repeat_at ON items (repeat_at);
                CREATE TABLE IF NOT EXISTS user_chats (
                    user_id INTEGER NOT NULL,
                    chat_id INTEGER NOT NULL,
                    UNIQUE (user_id, chat_id)
                );
                CREATE TABLE IF NOT EXISTS prolong (
                    count    INTEGER PRIMARY KEY,
                    add_days INTEGER NOT NULL
                );
            """)
            conn.execute("DELETE FROM prolong")
            conn.executemany(
                "INSERT INTO prolong (count, add_days) VALUES (?, ?)",
                list(enumerate(self._prolong_days)),
            )
        logger.debug("Study tables initialized at %s", self._db_path)

    @staticmethod
    def _row_to_group(row: sqlite3.Row) -> Group:
        return Group(id=row["id"], password_hash=row["password_hash"])

    @staticmethod
    def _row_to_item(row: sqlite3.Row) -> Item:
        return Item(
            id=row["id"],
            group_id=row["group_id"],
            url=row["url"],
            name=row["name"],
            repeat_at=row["repeat_at"],
            counter=row["counter"],
        )

    # ------------------------------------------------------------------
    # Groups and memberships
    # ------------------------------------------------------------------

    def create_group(self, password_hash: str) -> Group:
        """Insert a new group and return it with its assigned ID."""
        with self._connect() as conn:
            cursor = conn.execute(
                "INSERT INTO groups (password_hash) VALUES (?)", (password_hash,),
            )
            group_id = cursor.lastrowid
        logger.info("Group created: #%d", group_id)
        return Group(id=group_id, password_hash=password_hash)

    def get_group(self, group_id: int) -> Group | None:
        """Fetch a single group by ID."""
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM groups WHERE id = ?", (group_id,)
            ).fetchone()
        if row is None:
            return None
        return self._row_to_group(row)

    def add_user_to_group(self, user_id: int, group_id: int) -> None:
        """Add a membership. Re-adding an existing member is a no-op."""
        with self._connect() as conn:
            conn.execute(
                "INSERT OR IGNORE INTO group_members (user_id, group_id) VALUES (?, ?)",
                (user_id, group_id),
            )
        logger.info("User %d joined group #%d", user_id, group_id)

    def remove_user_from_group(self, user_id: int, group_id: int) -> bool:
        """Detach a user from a group. The group itself is kept."""
        with self._connect() as conn:
            cursor = conn.execute(
                "DELETE FROM group_members WHERE user_id = ? AND group_id = ?",
                (user_id, group_id),
            )
        removed = cursor.rowcount > 0
        if removed:
            logger.info("User %d left group #%d", user_id, group_id)
        return removed

    def get_user_groups(self, user_id: int) -> list[Group]:
        """Return every group the user currently belongs to, by ID."""
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT g.* FROM group_members gm
                JOIN groups g ON g.id = gm.group_id
                WHERE gm.user_id = ?
                ORDER BY g.id
                """,
                (user_id,),
            ).fetchall()
        return [self._row_to_group(r) for r in rows]

    # ------------------------------------------------------------------
    # Items
    # ------------------------------------------------------------------

    def get_items_by_group(self, group_id: int) -> list[Item]:
        """List a group's items, soonest due first."""
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM items WHERE group_id = ? ORDER BY repeat_at, id",
                (group_id,),
            ).fetchall()
        return [self._row_to_item(r) for r in rows]

    def get_today_items(self, today: str) -> list[Item]:
        """Return items due exactly on `today`."""
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM items WHERE repeat_at = ? ORDER BY group_id, id",
                (today,),
            ).fetchall()
        return [self._row_to_item(r) for r in rows]

    def create_item(
        self, group_id: int, url: str, name: str, today: str,
    ) -> Item:
        """Insert a new item with counter 0, first due the day after `today`."""
        repeat_at = (date.fromisoformat(today) + timedelta(days=1)).isoformat()

        with self._connect() as conn:
            cursor = conn.execute(
                """
                INSERT INTO items (group_id, url, name, repeat_at, counter)
                VALUES (?, ?, ?, ?, 0)
                """,
                (group_id, url, name, repeat_at),
            )
            item_id = cursor.lastrowid

        logger.info("Item added: #%d '%s' to group #%d, due %s", item_id, name, group_id, repeat_at)
        return Item(
            id=item_id,
            group_id=group_id,
            url=url,
            name=name,
            repeat_at=repeat_at,
            counter=0,
        )

    def prolong_overdue_items(self, today: str) -> int:
        """Move every item due before `today` to `today`. Returns rows moved."""
        with self._connect() as conn:
            cursor = conn.execute(
                "UPDATE items SET repeat_at = ? WHERE repeat_at < ?", (today, today),
            )
        moved = cursor.rowcount
        if moved:
            logger.info("Moved %d overdue item(s) to %s", moved, today)
        return moved

    def prolong_item_with_check(
        self, item_id: int, counter: int, today: str,
    ) -> bool:
        """Advance an item only if its stored counter still equals `counter`.

        The next due date is `today` plus the interval for the current
        counter (the last interval once the table runs out), never earlier
        than the stored date. Returns False when the counter has already
        moved on, which makes repeated confirmations harmless.
        """
        with self._connect() as conn:
            cursor = conn.execute(
                """
                UPDATE items
                SET repeat_at = max(
                        repeat_at,
                        date(?, '+' || COALESCE(
                            (SELECT add_days FROM prolong WHERE count = items.counter),
                            (SELECT add_days FROM prolong ORDER BY count DESC LIMIT 1)
                        ) || ' days')
                    ),
                    counter = counter + 1
                WHERE id = ? AND counter = ?
                """,
                (today, item_id, counter),
            )
        matched = cursor.rowcount > 0
        if matched:
            logger.info("Item #%d confirmed at counter %d", item_id, counter)
        else:
            logger.info("Item #%d confirmation for counter %d ignored (stale)", item_id, counter)
        return matched

    # ------------------------------------------------------------------
    # Chat bindings
    # ------------------------------------------------------------------

    def set_chat_for_user(self, user_id: int, chat_id: int) -> None:
        """Bind a chat to a user. Binding an already bound chat is a no-op."""
        with self._connect() as conn:
            conn.execute(
                "INSERT OR IGNORE INTO user_chats (user_id, chat_id) VALUES (?, ?)",
                (user_id, chat_id),
            )

    def get_chats_by_user_ids(self, user_ids: list[int]) -> dict[int, list[int]]:
        """Map each user to every chat bound to them."""
        if not user_ids:
            return {}
        placeholders = ", ".join("?" for _ in user_ids)
        with self._connect() as conn:
            rows = conn.execute(
                f"SELECT user_id, chat_id FROM user_chats "
                f"WHERE user_id IN ({placeholders}) ORDER BY user_id, chat_id",
                list(user_ids),
            ).fetchall()
        chats: dict[int, list[int]] = {}
        for row in rows:
            chats.setdefault(row["user_id"], []).append(row["chat_id"])
        return chats

    def get_chats_by_item_ids(self, item_ids: list[int]) -> dict[int, list[int]]:
        """Map each item to the distinct chats of its group's members."""
        if not item_ids:
            return {}
        placeholders = ", ".join("?" for _ in item_ids)
        with self._connect() as conn:
            rows = conn.execute(
                f"""
                SELECT DISTINCT i.id AS item_id, uc.chat_id AS chat_id
                FROM items i
                JOIN group_members gm ON gm.group_id = i.group_id
                JOIN user_chats uc ON uc.user_id = gm.user_id
                WHERE i.id IN ({placeholders})
                ORDER BY i.id, uc.chat_id
                """,
                list(item_ids),
            ).fetchall()
        chats: dict[int, list[int]] = {}
        for row in rows:
            chats.setdefault(row["item_id"], []).append(row["chat_id"])
        return chats

    def current_date(self) -> str:
        """Return the database's own notion of today (UTC)."""
        with self._connect() as conn:
            row = conn.execute("SELECT date('now') AS today").fetchone()
        return row["today"]
