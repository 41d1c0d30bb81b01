"""Структуры данных relay-ядра.

Здесь нет логики маршрутизации, только типы:

- :class:`TextMessage` / :class:`ImageMessage` — то, что ждёт доставки
  посетителю (``PendingMessage``);
- :class:`InboundRecord` и :class:`Mailbox` — почтовый ящик посетителя;
- :class:`OperatorEvent` — разобранное сообщение оператора из Telegram;
- :class:`Resolved` / :class:`Unresolved` — результат резолвера.
"""

from __future__ import annotations

import time
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Deque, Dict, List, Optional, Union


def now_ms() -> int:
    """Текущее время в миллисекундах (формат поля ``t`` в API)."""
    return int(time.time() * 1000)


@dataclass(frozen=True)
class TextMessage:
    content: str
    t: int = field(default_factory=now_ms)

    def to_dict(self) -> Dict[str, Any]:
        return {"type": "text", "text": self.content, "t": self.t}


@dataclass(frozen=True)
class ImageMessage:
    url: str
    caption: Optional[str] = None
    t: int = field(default_factory=now_ms)

    def to_dict(self) -> Dict[str, Any]:
        return {"type": "image", "url": self.url, "caption": self.caption, "t": self.t}


PendingMessage = Union[TextMessage, ImageMessage]


@dataclass(frozen=True)
class InboundRecord:
    """Сообщение посетителя, сохранённое в inbox (только для аудита)."""

    text: str
    t: int = field(default_factory=now_ms)
    sender: str = "visitor"

    def to_dict(self) -> Dict[str, Any]:
        return {"t": self.t, "text": self.text, "sender": self.sender}


@dataclass
class Mailbox:
    """Почтовый ящик одного посетителя.

    ``outbox`` — FIFO; его читает и очищает только
    :meth:`metagate.relay.store.ConversationStore.drain_outbound`.
    """

    visitor_id: str
    inbox: List[InboundRecord] = field(default_factory=list)
    outbox: Deque[PendingMessage] = field(default_factory=deque)


@dataclass(frozen=True)
class PhotoRendition:
    file_id: str
    width: int = 0
    height: int = 0
    file_size: int = 0

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "PhotoRendition":
        def _int(value: Any) -> int:
            try:
                return int(value or 0)
            except (TypeError, ValueError):
                return 0

        return cls(
            file_id=str(raw.get("file_id") or "").strip(),
            width=_int(raw.get("width")),
            height=_int(raw.get("height")),
            file_size=_int(raw.get("file_size")),
        )


@dataclass(frozen=True)
class OperatorEvent:
    """Входящее сообщение из чата оператора.

    Собирается из Telegram ``Message`` (dict из Bot API), см.
    :meth:`from_telegram`.
    """

    chat_id: str = ""
    message_id: Optional[int] = None
    text: Optional[str] = None
    photo_renditions: tuple = ()
    replied_to_message_id: Optional[int] = None
    replied_to_text: Optional[str] = None

    @classmethod
    def from_telegram(cls, message: Dict[str, Any]) -> "OperatorEvent":
        chat = message.get("chat") or {}
        text = message.get("text")
        if text is None:
            # у фото текст приходит в caption
            text = message.get("caption")

        photos = tuple(
            PhotoRendition.from_dict(p)
            for p in (message.get("photo") or [])
            if isinstance(p, dict) and p.get("file_id")
        )

        replied = message.get("reply_to_message") or {}
        replied_text = replied.get("text")
        if replied_text is None:
            replied_text = replied.get("caption")

        return cls(
            chat_id=str(chat.get("id") or ""),
            message_id=message.get("message_id"),
            text=text,
            photo_renditions=photos,
            replied_to_message_id=replied.get("message_id"),
            replied_to_text=replied_text,
        )

    @property
    def is_reply(self) -> bool:
        return self.replied_to_message_id is not None or bool(self.replied_to_text)


@dataclass(frozen=True)
class Resolved:
    visitor_id: str
    payload: PendingMessage
    rule: str


@dataclass(frozen=True)
class Unresolved:
    reason: str


Resolution = Union[Resolved, Unresolved]
