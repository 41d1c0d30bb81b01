"""Определение посетителя по ответу оператора.

Оператор отвечает в Telegram, а нам нужно понять, какому посетителю
адресован ответ. Правила проверяются по порядку, первое сработавшее
побеждает:

1. ответ (reply) на пересланное сообщение:
   a. ``message_id`` есть в forward-индексе;
   b. в тексте исходного сообщения есть маркер ``Visitor: <id>`` или
      первая строка вида ``👤 <id>``;
2. явное упоминание в тексте: ``@<id> текст`` или ``<id>\\nтекст``;
3. иначе сообщение игнорируется (:class:`Unresolved`).

Модуль не трогает хранилище: всё внешнее (forward-индекс, ссылка на
фото, «известен ли посетитель») передаётся функциями.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable, Optional, Sequence, Tuple

from .models import (
    ImageMessage,
    OperatorEvent,
    PhotoRendition,
    Resolution,
    Resolved,
    TextMessage,
    Unresolved,
)

VISITOR_GLYPH = "👤"

_ID = r"[A-Za-z0-9_-]+"
_ID_RE = re.compile(_ID)
# маркер занимает остаток строки целиком: "Visitor: alice.smith" не даёт "alice"
_MARKER_RE = re.compile(r"Visitor:[ \t]*(\S+)[ \t]*$", re.MULTILINE)
_MENTION_RE = re.compile(rf"^@({_ID})[ \t]+(\S.*)$", re.DOTALL)


def is_valid_visitor_id(value: Optional[str]) -> bool:
    """visitor_id из одних символов идентификатора (их умеет разобрать резолвер)."""
    return bool(value) and _ID_RE.fullmatch(value) is not None


@dataclass(frozen=True)
class ResolverPolicy:
    # Минимальная длина id, извлечённого из маркера в тексте (правило 1b).
    marker_min_length: int = 1


DEFAULT_POLICY = ResolverPolicy()


@dataclass(frozen=True)
class _Context:
    policy: ResolverPolicy
    lookup_forward: Optional[Callable[[Optional[int]], Optional[str]]]
    is_known_visitor: Optional[Callable[[str], bool]]


# Правило возвращает (visitor_id, текст без маркера) или None.
_Match = Optional[Tuple[str, Optional[str]]]


def format_forward_text(visitor_id: str, text: str) -> str:
    """Заголовок пересылки в чат оператора; правило 1b умеет его разобрать."""
    return f"{VISITOR_GLYPH} Visitor: {visitor_id}\n{text}"


def extract_marker(text: Optional[str]) -> Optional[str]:
    """Достать visitor_id из текста пересланного сообщения."""
    if not text:
        return None
    m = _MARKER_RE.search(text)
    if m:
        candidate = m.group(1)
        return candidate if is_valid_visitor_id(candidate) else None
    first = text.split("\n", 1)[0].strip()
    if first.startswith(VISITOR_GLYPH):
        candidate = first[len(VISITOR_GLYPH):].strip()
        if is_valid_visitor_id(candidate):
            return candidate
    return None


def _from_forward_index(event: OperatorEvent, ctx: _Context) -> _Match:
    if ctx.lookup_forward is None or event.replied_to_message_id is None:
        return None
    visitor_id = ctx.lookup_forward(event.replied_to_message_id)
    if not visitor_id:
        return None
    return visitor_id, event.text


def _from_reply_marker(event: OperatorEvent, ctx: _Context) -> _Match:
    if not event.is_reply:
        return None
    visitor_id = extract_marker(event.replied_to_text)
    if not visitor_id or len(visitor_id) < ctx.policy.marker_min_length:
        return None
    return visitor_id, event.text


def _split_id_line(line: str) -> Tuple[Optional[str], bool]:
    """Разобрать первую строку: (id, был ли явный префикс)."""
    line = line.strip()
    explicit = False
    if line.startswith(VISITOR_GLYPH):
        line = line[len(VISITOR_GLYPH):].strip()
        explicit = True
        if line.startswith("Visitor:"):
            line = line[len("Visitor:"):].strip()
    elif line.startswith("@"):
        line = line[1:]
        explicit = True
    if not is_valid_visitor_id(line):
        return None, explicit
    return line, explicit


def _from_mention(event: OperatorEvent, ctx: _Context) -> _Match:
    raw = (event.text or "").strip()
    if not raw:
        return None

    if "\n" in raw:
        head, rest = raw.split("\n", 1)
        visitor_id, explicit = _split_id_line(head)
        if visitor_id:
            if not explicit and ctx.is_known_visitor is not None and not ctx.is_known_visitor(visitor_id):
                return None
            return visitor_id, rest.strip()

    m = _MENTION_RE.match(raw)
    if m:
        return m.group(1), m.group(2).strip()

    if event.photo_renditions:
        # фото с подписью «@id» без текста
        visitor_id, explicit = _split_id_line(raw)
        if visitor_id and explicit:
            return visitor_id, ""
    return None


RULES: Sequence[Tuple[str, Callable[[OperatorEvent, _Context], _Match]]] = (
    ("forward_index", _from_forward_index),
    ("reply_marker", _from_reply_marker),
    ("mention", _from_mention),
)


def pick_largest_rendition(renditions: Sequence[PhotoRendition]) -> Optional[PhotoRendition]:
    best: Optional[PhotoRendition] = None
    for item in renditions:
        if not item.file_id:
            continue
        if best is None or (item.file_size, item.width * item.height) >= (
            best.file_size,
            best.width * best.height,
        ):
            best = item
    return best


def resolve_reply(
    event: OperatorEvent,
    *,
    policy: ResolverPolicy = DEFAULT_POLICY,
    lookup_forward: Optional[Callable[[Optional[int]], Optional[str]]] = None,
    photo_url_for: Optional[Callable[[str], str]] = None,
    is_known_visitor: Optional[Callable[[str], bool]] = None,
) -> Resolution:
    """Определить посетителя и полезную нагрузку для сообщения оператора."""
    ctx = _Context(policy=policy, lookup_forward=lookup_forward, is_known_visitor=is_known_visitor)

    for name, rule in RULES:
        match = rule(event, ctx)
        if match is None:
            continue
        visitor_id, body = match
        visitor_id = (visitor_id or "").strip()
        if not visitor_id:
            continue
        body = (body or "").strip()

        if event.photo_renditions:
            photo = pick_largest_rendition(event.photo_renditions)
            if photo is not None:
                url = photo_url_for(photo.file_id) if photo_url_for else photo.file_id
                return Resolved(visitor_id, ImageMessage(url=url, caption=body or None), name)

        if not body:
            return Unresolved("empty_payload")
        return Resolved(visitor_id, TextMessage(content=body), name)

    return Unresolved("no_rule_matched")
