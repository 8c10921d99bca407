"""
Quizlet Reminder — Dialogue engine.

Drives every conversation with the bot: group creation, joining, leaving,
adding modules (step by step or as a one-line submission), the schedule view,
and the "done" button on daily reminders.

The engine is transport-agnostic. It receives plain event objects, looks up
the caller's groups once per event, and answers through NotificationPort.
Each flow is a small state machine whose position lives in SessionStore;
one user's events are handled strictly one at a time.

Error policy:
- bad input → explain and re-prompt, state unchanged
- StorageError → "please retry", state unchanged
- flow can't continue (group vanished, session forgotten) → point to /cancel
  or reset to the main menu
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import TYPE_CHECKING, Awaitable, Callable
from zoneinfo import ZoneInfo

from telegram.error import TelegramError
from telegram.helpers import escape_markdown

from quizlet_reminder.core.notifier import CONFIRM_PREFIX, parse_confirmation_payload
from quizlet_reminder.core.session import SessionStore, UserState
from quizlet_reminder.core.validation import (
    ModuleSubmission,
    check_name,
    check_password,
    check_url,
    hash_password,
    parse_group_id,
    parse_module_submission,
    password_matches,
)
from quizlet_reminder.ports.notification_port import Keyboard, ReplyKeyboard
from quizlet_reminder.ports.storage_port import StorageError

if TYPE_CHECKING:
    from quizlet_reminder.core.ticker import Ticker
    from quizlet_reminder.data.models import Group
    from quizlet_reminder.ports.notification_port import NotificationPort
    from quizlet_reminder.ports.storage_port import StoragePort

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class IncomingMessage:
    """A text message or slash command from a user."""

    user_id: int
    chat_id: int
    text: str

    @property
    def command(self) -> str | None:
        """Command name without the slash and bot suffix, or None for plain text."""
        text = self.text.strip()
        if not text.startswith("/"):
            return None
        head = text.split(maxsplit=1)[0][1:]
        return head.split("@", 1)[0].lower() or None


@dataclass(frozen=True)
class IncomingCallback:
    """A press on an inline button attached to one of our messages."""

    user_id: int
    chat_id: int
    callback_id: str
    data: str
    message_id: int | None = None
    message_text: str | None = None


# ---------------------------------------------------------------------------
# Menu and texts
# ---------------------------------------------------------------------------

BUT_CREATE_GROUP = "Создать свою группу"
BUT_JOIN_GROUP = "Присоединиться к группе"
BUT_ADD_MODULE = "Добавить модуль"
BUT_GET_SCHEDULE = "Расписание повторений"
BUT_LEAVE_GROUP = "Покинуть группу"

KB_NEW = ReplyKeyboard(rows=((BUT_CREATE_GROUP, BUT_JOIN_GROUP),))
KB_AUTHED = ReplyKeyboard(
    rows=(
        (BUT_ADD_MODULE, BUT_GET_SCHEDULE),
        (BUT_CREATE_GROUP, BUT_JOIN_GROUP, BUT_LEAVE_GROUP),
    )
)

MSG_INTRO = "Я напоминаю вам, каждый раз, когда приходит время освежить в памяти какие-нибудь карточки"
MSG_NOT_IN_GROUP = "Вы не состоите в группе"
MSG_NOT_UNDERSTOOD = "Не понимаю, что вы имели в виду..."
MSG_NOT_A_NUMBER = "Вы уверены, что ввели число без всяких знаков? Повторите, пожалуйста, ещё раз"
MSG_CANNOT_SAVE_ITEM = "Тэкс... Я не смогу записать... Повторите, пожалуйста, еще раз..."
MSG_GROUPS_UNAVAILABLE = "Не удалось загрузить ваши группы, попробуйте ещё раз"

# Scratch keys
_JOIN_GROUP_ID = "join_group_id"
_ITEM_GROUP_ID = "item_group_id"
_ITEM_URL = "item_url"
_SUBMISSION_TEXT = "submission_text"


def home_keyboard(groups: list[Group]) -> ReplyKeyboard:
    return KB_AUTHED if groups else KB_NEW


def format_group_ids(groups: list[Group]) -> str:
    return "√" + ", ".join(str(g.id) for g in groups)


def format_due_date(iso_date: str) -> str:
    """YYYY-MM-DD → DD.MM.YYYY"""
    return date.fromisoformat(iso_date).strftime("%d.%m.%Y")


_Handler = Callable[[IncomingMessage, "list[Group]"], Awaitable[None]]


class DialogueEngine:
    """Conversation state machine shared by all users."""

    def __init__(
        self,
        db: StoragePort,
        notifier: NotificationPort,
        sessions: SessionStore | None = None,
        *,
        ticker: Ticker | None = None,
        password_salt: str = "",
        admin_ids: list[int] | None = None,
        timezone: str = "UTC",
        clock: Callable[[], date] | None = None,
    ) -> None:
        self._db = db
        self._notifier = notifier
        self._sessions = sessions or SessionStore()
        self._ticker = ticker
        self._salt = password_salt
        self._admin_ids = set(admin_ids or [])
        self._timezone = timezone
        self._clock = clock or (lambda: datetime.now(ZoneInfo(timezone)).date())

        self._commands: dict[str, _Handler] = {
            "start": self._cmd_start,
            "help": self._cmd_help,
            "cancel": self._cmd_cancel,
            "quit": self._leave_start,
            "items": self._cmd_items,
            "create_item": self._create_item_start,
            "create_group": self._create_group_start,
            "join_group": self._join_group_start,
            "tick": self._cmd_tick,
            "time": self._cmd_time,
        }
        self._buttons: dict[str, _Handler] = {
            BUT_CREATE_GROUP: self._create_group_start,
            BUT_JOIN_GROUP: self._join_group_start,
            BUT_ADD_MODULE: self._create_item_start,
            BUT_GET_SCHEDULE: self._cmd_items,
            BUT_LEAVE_GROUP: self._leave_start,
        }
        self._states: dict[UserState, _Handler] = {
            UserState.AWAITING_GROUP_PASSWORD: self._on_group_password,
            UserState.AWAITING_GROUP_ID_TO_JOIN: self._on_join_group_id,
            UserState.AWAITING_JOIN_PASSWORD: self._on_join_password,
            UserState.AWAITING_GROUP_CHOICE_FOR_ITEM: self._on_group_choice_for_item,
            UserState.AWAITING_ITEM_URL: self._on_item_url,
            UserState.AWAITING_ITEM_NAME: self._on_item_name,
            UserState.AWAITING_GROUP_CHOICE_FOR_FULL_SUBMISSION: self._on_group_choice_for_submission,
            UserState.AWAITING_GROUP_CHOICE_TO_LEAVE: self._on_group_choice_to_leave,
        }

    @property
    def commands(self) -> list[str]:
        return list(self._commands)

    @property
    def sessions(self) -> SessionStore:
        return self._sessions

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    async def handle_message(self, event: IncomingMessage) -> None:
        """Route a command or text message, one event per user at a time."""
        async with self._sessions.conversation_lock(event.user_id):
            groups = await self.resolve_groups(event.user_id, event.chat_id)
            if groups is None:
                return
            await self._dispatch_message(event, groups)

    async def handle_callback(self, event: IncomingCallback) -> None:
        """Route an inline button press."""
        async with self._sessions.conversation_lock(event.user_id):
            groups = await self.resolve_groups(event.user_id, event.chat_id)
            if groups is None:
                await self._notifier.answer_callback(event.callback_id)
                return
            prefix = event.data.partition(":")[0]
            if prefix == CONFIRM_PREFIX:
                await self._on_confirm(event)
            else:
                logger.warning("Unknown callback data from user %d: %r", event.user_id, event.data)
                await self._notifier.answer_callback(event.callback_id)

    async def resolve_groups(self, user_id: int, chat_id: int) -> list[Group] | None:
        """Bind the chat to the user and load their groups.

        Returns None (after telling the user) if the groups can't be loaded.
        """
        try:
            self._db.set_chat_for_user(user_id, chat_id)
        except StorageError as exc:
            logger.warning("Failed to bind chat %d to user %d: %s", chat_id, user_id, exc)

        try:
            return self._db.get_user_groups(user_id)
        except StorageError as exc:
            logger.error("Failed to load groups of user %d: %s", user_id, exc)
            await self._notifier.send_message(chat_id, MSG_GROUPS_UNAVAILABLE)
            return None

    async def _dispatch_message(self, event: IncomingMessage, groups: list[Group]) -> None:
        command = event.command
        if command is not None:
            handler = self._commands.get(command, self._not_understood)
            await handler(event, groups)
            return

        state = self._sessions.get_state(event.user_id)
        if state is UserState.IDLE:
            handler = self._buttons.get(event.text.strip(), self._on_free_text)
        else:
            handler = self._states[state]
        await handler(event, groups)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _reply(
        self,
        event: IncomingMessage,
        text: str,
        keyboard: Keyboard | None = None,
        *,
        markdown: bool = False,
    ) -> None:
        await self._notifier.send_message(
            event.chat_id, text, keyboard=keyboard, markdown=markdown,
            disable_preview=markdown,
        )

    def _today(self) -> str:
        return self._clock().isoformat()

    async def _require_groups(self, event: IncomingMessage, groups: list[Group]) -> bool:
        """End the flow if the user no longer belongs to any group."""
        if groups:
            return True
        self._sessions.reset(event.user_id)
        await self._reply(event, MSG_NOT_IN_GROUP, KB_NEW)
        return False

    async def _choose_group(self, event: IncomingMessage, groups: list[Group]) -> int | None:
        """Parse a group ID the user typed and check they are a member."""
        group_id = parse_group_id(event.text)
        if group_id is None:
            await self._reply(event, MSG_NOT_A_NUMBER)
            return None
        if group_id not in {g.id for g in groups}:
            await self._reply(event, f"Вы не входите в группу √{group_id}")
            return None
        return group_id

    def _remembered_group(self, user_id: int, key: str, groups: list[Group]) -> int | None:
        """The group picked earlier in the flow, if the user is still in it."""
        if len(groups) == 1:
            return groups[0].id
        group_id = parse_group_id(self._sessions.get_scratch(user_id, key))
        if group_id in {g.id for g in groups}:
            return group_id
        return None

    async def _remind_memberships(self, event: IncomingMessage, groups: list[Group]) -> None:
        if not groups:
            return
        noun = "группах" if len(groups) > 1 else "группе"
        await self._reply(event, f"Напоминаю, что вы состоите в {noun} {format_group_ids(groups)}")

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    async def _cmd_start(self, event: IncomingMessage, groups: list[Group]) -> None:
        if not groups:
            text = f"{MSG_INTRO}\nДавайте начнём!"
        elif len(groups) == 1:
            text = f"С возвращением! Вы находитесь в группе {format_group_ids(groups)}"
        else:
            text = f"С возвращением! Вы находитесь в группах {format_group_ids(groups)}"
        await self._reply(event, text, home_keyboard(groups))

    async def _cmd_help(self, event: IncomingMessage, groups: list[Group]) -> None:
        await self._reply(
            event,
            f"{MSG_INTRO}\n"
            "• /help - Вывести данное сообщение\n"
            "• /items - Расписание повторений\n"
            "• /create_item - Добавить модуль\n"
            "• /quit - Покинуть группу\n"
            "• /cancel - Сбросить состояние, вернуться в главное меню\n\n"
            "Модуль можно добавить и одним сообщением:\n"
            "Я изучаю <название> на Quizlet: <ссылка>",
            home_keyboard(groups),
        )

    async def _cmd_cancel(self, event: IncomingMessage, groups: list[Group]) -> None:
        self._sessions.reset(event.user_id)
        await self._reply(event, "Без вопросов", home_keyboard(groups))

    async def _not_understood(self, event: IncomingMessage, groups: list[Group]) -> None:
        await self._reply(event, MSG_NOT_UNDERSTOOD, home_keyboard(groups))

    async def _cmd_items(self, event: IncomingMessage, groups: list[Group]) -> None:
        """Show every group's schedule, soonest first."""
        if not groups:
            await self._reply(event, MSG_NOT_IN_GROUP, KB_NEW)
            return

        sections = []
        for group in groups:
            lines = [f"*Расписание группы √{group.id}*"]
            try:
                items = self._db.get_items_by_group(group.id)
            except StorageError as exc:
                logger.error("Failed to load items of group #%d: %s", group.id, exc)
                lines.append("Не удалось получить расписание")
                sections.append("\n".join(lines))
                continue
            if not items:
                lines.append("Пока пусто")
            for i, item in enumerate(items, start=1):
                lines.append(
                    f"{i}. ({format_due_date(item.repeat_at)}) {escape_markdown(item.name)}\n"
                    f"Ссылка на модуль: [тыц]({item.url})"
                )
            sections.append("\n".join(lines))

        await self._reply(event, "\n\n".join(sections), KB_AUTHED, markdown=True)

    async def _cmd_tick(self, event: IncomingMessage, groups: list[Group]) -> None:
        """Run a reminder cycle right now (operators only, if configured)."""
        if self._admin_ids and event.user_id not in self._admin_ids:
            logger.warning("User %d tried /tick without permission", event.user_id)
            await self._not_understood(event, groups)
            return
        if self._ticker is None:
            await self._reply(event, "Планировщик не запущен", home_keyboard(groups))
            return

        report = await self._ticker.run_cycle()
        if not report.completed:
            await self._reply(event, "Тик не удался, подробности в логах", home_keyboard(groups))
            return
        await self._reply(
            event,
            "Успешный тик\n"
            f"Модулей на сегодня: {report.items}\n"
            f"Чатов: {report.chats}\n"
            f"Напоминаний отправлено: {report.reminders_sent}",
            home_keyboard(groups),
        )

    async def _cmd_time(self, event: IncomingMessage, groups: list[Group]) -> None:
        now_app = datetime.now(ZoneInfo(self._timezone))
        try:
            db_today = self._db.current_date()
        except StorageError as exc:
            logger.error("Failed to read database date: %s", exc)
            db_today = "недоступно"
        await self._reply(
            event,
            f"Время в приложении: {now_app.isoformat(timespec='seconds')} ({self._timezone})\n"
            f"Дата в базе данных: {db_today}",
            home_keyboard(groups),
        )

    # ------------------------------------------------------------------
    # Create group
    # ------------------------------------------------------------------

    async def _create_group_start(self, event: IncomingMessage, groups: list[Group]) -> None:
        self._sessions.reset(event.user_id)
        await self._remind_memberships(event, groups)
        self._sessions.set_state(event.user_id, UserState.AWAITING_GROUP_PASSWORD)
        await self._reply(event, "Придумайте пароль (от 3 до 16 символов латиницей или цифрами)")

    async def _on_group_password(self, event: IncomingMessage, groups: list[Group]) -> None:
        password = event.text.strip()
        if not check_password(password):
            await self._reply(event, "Недопустимый пароль, попробуйте другой")
            return

        # A failure after create_group leaves an empty group behind; the
        # user simply retries and gets a fresh one.
        try:
            group = self._db.create_group(hash_password(password, self._salt))
            self._db.add_user_to_group(event.user_id, group.id)
        except StorageError as exc:
            logger.error("Failed to create group for user %d: %s", event.user_id, exc)
            await self._reply(event, "Не получилось создать группу, попробуйте еще раз")
            return

        self._sessions.reset(event.user_id)
        await self._reply(
            event,
            "Отлично, группа создана!\n"
            f"Вы можете пригласить в нее друзей по ID: {group.id}",
            KB_AUTHED,
        )

    # ------------------------------------------------------------------
    # Join group
    # ------------------------------------------------------------------

    async def _join_group_start(self, event: IncomingMessage, groups: list[Group]) -> None:
        self._sessions.reset(event.user_id)
        await self._remind_memberships(event, groups)
        self._sessions.set_state(event.user_id, UserState.AWAITING_GROUP_ID_TO_JOIN)
        await self._reply(event, "Введите ID группы, к которой хотите присоединиться")

    async def _on_join_group_id(self, event: IncomingMessage, groups: list[Group]) -> None:
        group_id = parse_group_id(event.text)
        if group_id is None:
            await self._reply(event, "Вы точно ввели число?")
            return

        try:
            group = self._db.get_group(group_id)
        except StorageError as exc:
            logger.error("Failed to look up group #%d: %s", group_id, exc)
            await self._reply(event, "Не удалось проверить наличие группы, попробуйте ещё раз")
            return

        if group is None:
            await self._reply(event, "Такой группы не существует, попробуйте ввести другой ID")
            return

        if group.id in {g.id for g in groups}:
            self._sessions.reset(event.user_id)
            await self._reply(event, f"Вы уже состоите в группе √{group.id}", KB_AUTHED)
            return

        self._sessions.set_scratch(event.user_id, _JOIN_GROUP_ID, str(group.id))
        self._sessions.set_state(event.user_id, UserState.AWAITING_JOIN_PASSWORD)
        await self._reply(event, "Хорошо, теперь введите пароль")

    async def _on_join_password(self, event: IncomingMessage, groups: list[Group]) -> None:
        group_id = parse_group_id(self._sessions.get_scratch(event.user_id, _JOIN_GROUP_ID))
        if group_id is None:
            await self._reply(event, "Что-то пошло не так... Вернитесь в начало с помощью /cancel")
            return

        password = event.text.strip()
        if not check_password(password):
            await self._reply(event, "Неверный формат пароля, попробуйте ещё раз")
            return

        try:
            group = self._db.get_group(group_id)
        except StorageError as exc:
            logger.error("Failed to look up group #%d: %s", group_id, exc)
            await self._reply(event, "Не удалось проверить наличие группы, попробуйте ещё раз")
            return

        if group is None:
            await self._reply(event, "Группа перестала существовать... Вернитесь в начало с помощью /cancel")
            return

        if not password_matches(group.password_hash, password, self._salt):
            await self._reply(event, "Неверный пароль, попробуйте ещё раз")
            return

        try:
            self._db.add_user_to_group(event.user_id, group.id)
        except StorageError as exc:
            logger.error("Failed to add user %d to group #%d: %s", event.user_id, group.id, exc)
            await self._reply(event, "Не удалось добавить вас в группу, попробуйте ещё раз")
            return

        self._sessions.reset(event.user_id)
        await self._reply(event, f"Добро пожаловать в группу √{group.id}", KB_AUTHED)

    # ------------------------------------------------------------------
    # Create item, step by step
    # ------------------------------------------------------------------

    async def _create_item_start(self, event: IncomingMessage, groups: list[Group]) -> None:
        self._sessions.reset(event.user_id)
        if not groups:
            await self._reply(event, MSG_NOT_IN_GROUP, KB_NEW)
        elif len(groups) == 1:
            self._sessions.set_state(event.user_id, UserState.AWAITING_ITEM_URL)
            await self._reply(event, "Новый модуль? Ок... Скиньте ссылку на него")
        else:
            self._sessions.set_state(event.user_id, UserState.AWAITING_GROUP_CHOICE_FOR_ITEM)
            await self._reply(
                event,
                "Новый модуль? Ок... В какую группу вы хотите его добавить?\n"
                f"Вы находитесь в группах {format_group_ids(groups)}",
            )

    async def _on_group_choice_for_item(self, event: IncomingMessage, groups: list[Group]) -> None:
        if not await self._require_groups(event, groups):
            return

        if len(groups) == 1:
            group_id = groups[0].id
            text = f"Выбрана группа √{group_id}\nА теперь скиньте ссылку на модуль"
        else:
            group_id = await self._choose_group(event, groups)
            if group_id is None:
                return
            text = "Отлично! А теперь скиньте ссылку на модуль"

        self._sessions.set_scratch(event.user_id, _ITEM_GROUP_ID, str(group_id))
        self._sessions.set_state(event.user_id, UserState.AWAITING_ITEM_URL)
        await self._reply(event, text)

    async def _on_item_url(self, event: IncomingMessage, groups: list[Group]) -> None:
        if not await self._require_groups(event, groups):
            return

        url = event.text.strip()
        if not check_url(url):
            await self._reply(event, "Проверьте ссылку, мне кажется, что она неверная")
            return

        self._sessions.set_scratch(event.user_id, _ITEM_URL, url)
        self._sessions.set_state(event.user_id, UserState.AWAITING_ITEM_NAME)
        await self._reply(event, "Окей, а теперь введите название модуля")

    async def _on_item_name(self, event: IncomingMessage, groups: list[Group]) -> None:
        if not await self._require_groups(event, groups):
            return

        name = event.text.strip()
        if not check_name(name):
            await self._reply(event, "Ухх, плохое название, придумайте другое")
            return

        url = self._sessions.get_scratch(event.user_id, _ITEM_URL)
        if not check_url(url):
            await self._reply(
                event,
                "Что-то у меня амнезия... Я ссылку-то уже забыл... Давайте заново? Введите /cancel",
            )
            return

        group_id = self._remembered_group(event.user_id, _ITEM_GROUP_ID, groups)
        if group_id is None:
            await self._reply(
                event,
                "Что-то у меня амнезия... Я выбранную группу уже забыл... Давайте заново? Введите /cancel",
            )
            return

        try:
            item = self._db.create_item(group_id, url, name, today=self._today())
        except StorageError as exc:
            logger.error("Failed to create item for user %d: %s", event.user_id, exc)
            await self._reply(event, MSG_CANNOT_SAVE_ITEM)
            return

        self._sessions.reset(event.user_id)
        await self._reply(
            event,
            f"Отлично! Карточка добавлена :)\nПовторим её {format_due_date(item.repeat_at)}",
            KB_AUTHED,
        )

    # ------------------------------------------------------------------
    # Create item from a one-line submission
    # ------------------------------------------------------------------

    async def _on_free_text(self, event: IncomingMessage, groups: list[Group]) -> None:
        submission = parse_module_submission(event.text)
        if submission is None:
            await self._not_understood(event, groups)
            return

        if not groups:
            await self._reply(event, MSG_NOT_IN_GROUP, KB_NEW)
        elif len(groups) == 1:
            await self._create_submitted_item(event, groups[0].id, submission)
        else:
            self._sessions.reset(event.user_id)
            self._sessions.set_scratch(event.user_id, _SUBMISSION_TEXT, event.text.strip())
            self._sessions.set_state(event.user_id, UserState.AWAITING_GROUP_CHOICE_FOR_FULL_SUBMISSION)
            await self._reply(
                event,
                "Введите номер группы, в которую хотите добавить эту карточку\n"
                f"Вы находитесь в группах {format_group_ids(groups)}",
            )

    async def _on_group_choice_for_submission(
        self, event: IncomingMessage, groups: list[Group],
    ) -> None:
        if not await self._require_groups(event, groups):
            return

        if len(groups) == 1:
            group_id = groups[0].id
        else:
            group_id = await self._choose_group(event, groups)
            if group_id is None:
                return

        submission = parse_module_submission(
            self._sessions.get_scratch(event.user_id, _SUBMISSION_TEXT)
        )
        if submission is None:
            self._sessions.reset(event.user_id)
            await self._reply(
                event,
                "Что-то у меня амнезия... Я карточку уже забыл... Пришлите её ещё раз",
                KB_AUTHED,
            )
            return

        await self._create_submitted_item(event, group_id, submission)

    async def _create_submitted_item(
        self, event: IncomingMessage, group_id: int, submission: ModuleSubmission,
    ) -> None:
        try:
            item = self._db.create_item(
                group_id, submission.url, submission.name, today=self._today(),
            )
        except StorageError as exc:
            logger.error("Failed to create item for user %d: %s", event.user_id, exc)
            await self._reply(event, MSG_CANNOT_SAVE_ITEM)
            return

        self._sessions.reset(event.user_id)
        await self._reply(
            event,
            f"Отлично! Карточка добавлена в группу √{group_id} :)\n"
            f"Название: {escape_markdown(item.name)}\n"
            f"Ссылка: [тыц]({item.url})\n"
            f"Повторим её {format_due_date(item.repeat_at)}",
            KB_AUTHED,
            markdown=True,
        )

    # ------------------------------------------------------------------
    # Leave group
    # ------------------------------------------------------------------

    async def _leave_start(self, event: IncomingMessage, groups: list[Group]) -> None:
        self._sessions.reset(event.user_id)
        if not groups:
            await self._reply(event, "Вы не находитесь в группе", KB_NEW)
        elif len(groups) == 1:
            await self._leave(event, groups, groups[0].id)
        else:
            self._sessions.set_state(event.user_id, UserState.AWAITING_GROUP_CHOICE_TO_LEAVE)
            await self._reply(
                event,
                "Выберите группу, из которой хотите выйти\n"
                f"Вы находитесь в группах {format_group_ids(groups)}",
            )

    async def _on_group_choice_to_leave(self, event: IncomingMessage, groups: list[Group]) -> None:
        if not await self._require_groups(event, groups):
            return

        if len(groups) == 1:
            group_id = groups[0].id
        else:
            group_id = await self._choose_group(event, groups)
            if group_id is None:
                return

        await self._leave(event, groups, group_id)

    async def _leave(self, event: IncomingMessage, groups: list[Group], group_id: int) -> None:
        try:
            self._db.remove_user_from_group(event.user_id, group_id)
        except StorageError as exc:
            logger.error("Failed to remove user %d from group #%d: %s", event.user_id, group_id, exc)
            await self._reply(event, "Не удалось выйти из группы, попробуйте ещё раз")
            return

        self._sessions.reset(event.user_id)
        remaining = [g for g in groups if g.id != group_id]
        await self._reply(event, f"Вы вышли из группы √{group_id}", home_keyboard(remaining))

    # ------------------------------------------------------------------
    # "Done" button on reminders
    # ------------------------------------------------------------------

    async def _on_confirm(self, event: IncomingCallback) -> None:
        """Advance the item once per counter value; stale presses are no-ops."""
        parsed = parse_confirmation_payload(event.data)
        if parsed is None:
            logger.warning("Malformed confirmation payload: %r", event.data)
            await self._notifier.answer_callback(event.callback_id, "Не удалось разобрать кнопку")
            return
        item_id, counter = parsed

        try:
            self._db.prolong_item_with_check(item_id, counter, today=self._today())
        except StorageError as exc:
            logger.error("Failed to advance item #%d: %s", item_id, exc)
            await self._notifier.answer_callback(
                event.callback_id, "Не удалось отметить повторение, нажмите ещё раз",
            )
            return

        await self._notifier.answer_callback(event.callback_id, "Отлично!")

        if event.message_id is None or event.message_text is None:
            return
        try:
            await self._notifier.edit_message_text(
                event.chat_id, event.message_id, f"{event.message_text}\nПовторили!",
            )
        except TelegramError as exc:
            logger.warning("Failed to edit reminder message %d: %s", event.message_id, exc)
