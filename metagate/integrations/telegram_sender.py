from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx

log = logging.getLogger("metagate.telegram")

API_BASE = "https://api.telegram.org"


def _client(timeout_sec: float, proxy: Optional[str], transport: Optional[httpx.BaseTransport]) -> httpx.Client:
    kwargs: Dict[str, Any] = {"timeout": timeout_sec}
    if transport is not None:
        kwargs["transport"] = transport
    else:
        kwargs["proxy"] = (proxy or "").strip() or None
    return httpx.Client(**kwargs)


def call_bot_api(
    bot_token: str,
    method: str,
    data: Dict[str, Any],
    *,
    timeout_sec: float = 12,
    proxy: Optional[str] = None,
    transport: Optional[httpx.BaseTransport] = None,
) -> Dict[str, Any]:
    """Вызов метода Telegram Bot API. Возвращает JSON-ответ как есть.

    Proxy:
      ``proxy`` (из TELEGRAM_PROXY) — опционально. Поддерживаются http(s) прокси.
      SOCKS прокси потребуют установленного socksio (опциональная зависимость httpx).
    """
    bot_token = (bot_token or "").strip()
    if not bot_token:
        raise ValueError("bot_token is empty")

    url = f"{API_BASE}/bot{bot_token}/{method}"
    with _client(timeout_sec, proxy, transport) as client:
        r = client.post(url, data=data)
        # Telegram часто возвращает 200 с ok=false — поэтому парсим JSON всегда
        try:
            payload = r.json()
        except Exception:
            payload = {"ok": False, "error": "invalid_json", "status_code": r.status_code, "text": r.text[:1000]}
        return payload


def send_telegram_message(
    bot_token: str,
    chat_id: str,
    text: str,
    *,
    disable_web_preview: bool = True,
    timeout_sec: float = 12,
    proxy: Optional[str] = None,
    transport: Optional[httpx.BaseTransport] = None,
) -> Dict[str, Any]:
    data: Dict[str, Any] = {
        "chat_id": str(chat_id),
        "text": text,
        "disable_web_page_preview": bool(disable_web_preview),
    }
    return call_bot_api(bot_token, "sendMessage", data, timeout_sec=timeout_sec, proxy=proxy, transport=transport)


def send_telegram_photo(
    bot_token: str,
    chat_id: str,
    photo_url: str,
    *,
    caption: Optional[str] = None,
    timeout_sec: float = 20,
    proxy: Optional[str] = None,
    transport: Optional[httpx.BaseTransport] = None,
) -> Dict[str, Any]:
    """sendPhoto по URL: Telegram сам скачивает картинку."""
    data: Dict[str, Any] = {"chat_id": str(chat_id), "photo": photo_url}
    if caption:
        # лимит подписи в Telegram — 1024 символа
        data["caption"] = caption[:1024]
    return call_bot_api(bot_token, "sendPhoto", data, timeout_sec=timeout_sec, proxy=proxy, transport=transport)


def get_file_path(
    bot_token: str,
    file_id: str,
    *,
    timeout_sec: float = 12,
    proxy: Optional[str] = None,
    transport: Optional[httpx.BaseTransport] = None,
) -> Optional[str]:
    payload = call_bot_api(
        bot_token, "getFile", {"file_id": file_id}, timeout_sec=timeout_sec, proxy=proxy, transport=transport
    )
    if not payload.get("ok"):
        log.warning("getFile failed for %s: %s", file_id, payload.get("description") or payload.get("error"))
        return None
    result = payload.get("result") or {}
    file_path = result.get("file_path")
    if not isinstance(file_path, str) or not file_path.strip():
        return None
    return file_path.strip()


def download_file(
    bot_token: str,
    file_path: str,
    *,
    timeout_sec: float = 30,
    proxy: Optional[str] = None,
    transport: Optional[httpx.BaseTransport] = None,
) -> httpx.Response:
    """Скачать файл Telegram целиком (фото оператора — небольшие)."""
    url = f"{API_BASE}/file/bot{bot_token.strip()}/{file_path.lstrip('/')}"
    with _client(timeout_sec, proxy, transport) as client:
        return client.get(url)
