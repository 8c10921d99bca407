"""Notification port — abstract interface for talking to users.

Core modules depend on this protocol, never on a specific messaging provider.
Keyboards are described with the plain dataclasses below; adapters turn them
into provider-specific markup.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol, Union


@dataclass(frozen=True)
class ReplyKeyboard:
    """Menu buttons shown under the input field; pressing one sends its label."""

    rows: tuple[tuple[str, ...], ...]
    one_time: bool = True


@dataclass(frozen=True)
class InlineButton:
    text: str
    callback_data: str


@dataclass(frozen=True)
class InlineKeyboard:
    """Buttons attached to a message; pressing one raises a callback."""

    rows: tuple[tuple[InlineButton, ...], ...] = field(default_factory=tuple)


Keyboard = Union[ReplyKeyboard, InlineKeyboard]


class NotificationPort(Protocol):
    """Abstract messaging interface used by core modules."""

    async def send_message(
        self,
        chat_id: int,
        text: str,
        *,
        keyboard: Keyboard | None = None,
        markdown: bool = False,
        silent: bool = False,
        disable_preview: bool = False,
    ) -> None: ...

    async def edit_message_text(self, chat_id: int, message_id: int, text: str) -> None: ...

    async def answer_callback(self, callback_id: str, text: str | None = None) -> None: ...
