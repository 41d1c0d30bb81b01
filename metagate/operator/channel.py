"""Исходящий канал в чат оператора (Telegram)."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx

from ..integrations.telegram_sender import (
    download_file,
    get_file_path,
    send_telegram_message,
    send_telegram_photo,
)
from ..relay.errors import BotNotConfigured, TransportError

log = logging.getLogger("metagate.telegram")


class OperatorChannel:
    """Пересылка сообщений посетителей оператору.

    ``forward`` / ``forward_image`` возвращают ``message_id`` отправленного
    сообщения (он попадает в forward-индекс) или бросают
    :class:`TransportError`.
    """

    def __init__(
        self,
        bot_token: str,
        chat_id: str,
        *,
        timeout_sec: float = 12,
        proxy: Optional[str] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.bot_token = (bot_token or "").strip()
        self.chat_id = str(chat_id or "").strip()
        self.timeout_sec = timeout_sec
        self.proxy = (proxy or "").strip() or None
        self.transport = transport

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "OperatorChannel":
        return cls(
            config.get("TELEGRAM_BOT_TOKEN") or "",
            config.get("ADMIN_CHAT_ID") or "",
            timeout_sec=float(config.get("TELEGRAM_TIMEOUT_SEC", 12)),
            proxy=config.get("TELEGRAM_PROXY") or None,
        )

    @property
    def configured(self) -> bool:
        return bool(self.bot_token and self.chat_id)

    def is_operator_chat(self, chat_id: Any) -> bool:
        return bool(self.chat_id) and str(chat_id) == self.chat_id

    def _require_configured(self) -> None:
        if not self.configured:
            raise BotNotConfigured()

    @staticmethod
    def _message_id(payload: Dict[str, Any], method: str) -> Optional[int]:
        if not payload.get("ok"):
            reason = payload.get("description") or payload.get("error") or "telegram_error"
            raise TransportError(f"{method} failed: {reason}", payload=payload)
        result = payload.get("result") or {}
        return result.get("message_id")

    def forward(self, text: str) -> Optional[int]:
        self._require_configured()
        try:
            payload = send_telegram_message(
                self.bot_token,
                self.chat_id,
                text,
                timeout_sec=self.timeout_sec,
                proxy=self.proxy,
                transport=self.transport,
            )
        except httpx.HTTPError as exc:
            raise TransportError(f"sendMessage failed: {exc}") from exc
        return self._message_id(payload, "sendMessage")

    def forward_image(self, url: str, caption: Optional[str] = None) -> Optional[int]:
        self._require_configured()
        try:
            payload = send_telegram_photo(
                self.bot_token,
                self.chat_id,
                url,
                caption=caption,
                timeout_sec=max(self.timeout_sec, 20),
                proxy=self.proxy,
                transport=self.transport,
            )
        except httpx.HTTPError as exc:
            raise TransportError(f"sendPhoto failed: {exc}") from exc
        return self._message_id(payload, "sendPhoto")

    def fetch_file(self, file_id: str) -> httpx.Response:
        """Скачать файл оператора (фото) по file_id."""
        self._require_configured()
        try:
            file_path = get_file_path(
                self.bot_token, file_id, timeout_sec=self.timeout_sec, proxy=self.proxy, transport=self.transport
            )
            if not file_path:
                raise TransportError(f"file {file_id} not available")
            resp = download_file(self.bot_token, file_path, proxy=self.proxy, transport=self.transport)
        except httpx.HTTPError as exc:
            raise TransportError(f"file download failed: {exc}") from exc
        if resp.status_code != 200:
            raise TransportError(f"file download failed: HTTP {resp.status_code}")
        return resp


def get_operator_channel() -> OperatorChannel:
    """OperatorChannel текущего приложения."""
    from flask import current_app

    return current_app.extensions["operator_channel"]
