"""Исключения relay-слоя.

UnresolvedReply сюда не входит: это обычное значение
(:class:`metagate.relay.models.Unresolved`), а не ошибка.
"""

from __future__ import annotations


class RelayError(Exception):
    """Базовое исключение MetaGate."""


class ValidationError(RelayError, ValueError):
    """Входящий запрос не содержит обязательного поля.

    Маршруты отвечают 400 и ничего не меняют в хранилище.
    """

    def __init__(self, field: str, message: str | None = None) -> None:
        self.field = field
        super().__init__(message or f"{field} is required")


class TransportError(RelayError):
    """Не удалось доставить сообщение в Telegram (или получить файл)."""

    def __init__(self, message: str, *, payload: dict | None = None) -> None:
        self.payload = payload or {}
        super().__init__(message)


class BotNotConfigured(TransportError):
    """Не заданы TELEGRAM_BOT_TOKEN / ADMIN_CHAT_ID."""

    def __init__(self) -> None:
        super().__init__("Bot not configured")
