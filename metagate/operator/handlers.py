"""Обработка апдейтов из чата оператора.

Общая часть для webhook-маршрута и polling-раннера: на вход —
Telegram Update в виде dict (как в Bot API), на выходе — результат
резолвера или None, если апдейт нас не касается.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Optional
from urllib.parse import quote

from ..relay.models import OperatorEvent, Resolution
from ..relay.service import RelayService
from .channel import OperatorChannel

log = logging.getLogger("metagate.operator")


def build_media_url(base_url: str, file_id: str) -> str:
    """Ссылка на фото оператора через наш прокси ``/media/tg/<file_id>``."""
    base_url = (base_url or "").strip().rstrip("/")
    return f"{base_url}/media/tg/{quote(file_id, safe='')}"


def handle_operator_update(
    update: Dict[str, Any],
    *,
    relay: RelayService,
    channel: OperatorChannel,
    photo_url_for: Optional[Callable[[str], str]] = None,
) -> Optional[Resolution]:
    message = update.get("message")
    if not isinstance(message, dict):
        return None

    chat_id = (message.get("chat") or {}).get("id")
    if not channel.is_operator_chat(chat_id):
        # пишут боту не из чата оператора — игнорируем
        log.debug("update from foreign chat %s ignored", chat_id)
        return None

    event = OperatorEvent.from_telegram(message)
    if not event.text and not event.photo_renditions:
        return None

    return relay.handle_operator_event(event, photo_url_for=photo_url_for)
