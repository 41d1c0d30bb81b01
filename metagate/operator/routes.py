"""Маршруты стороны оператора: webhook Telegram и прокси фото."""

from __future__ import annotations

import hmac
import mimetypes
from typing import Any, Dict

from flask import Response, abort, current_app, jsonify, request

from ..relay.errors import TransportError
from ..relay.models import Resolved
from ..relay.service import get_relay
from . import bp
from .channel import get_operator_channel
from .handlers import build_media_url, handle_operator_update


def _check_webhook_secret() -> None:
    expected = (current_app.config.get("TELEGRAM_WEBHOOK_SECRET") or "").strip()
    if not expected:
        return
    got = (request.headers.get("X-Telegram-Bot-Api-Secret-Token") or "").strip()
    if not hmac.compare_digest(got, expected):
        abort(403)


def media_url_for(file_id: str) -> str:
    base = current_app.config.get("PUBLIC_BASE_URL") or request.host_url
    return build_media_url(base, file_id)


@bp.post("/telegram/webhook")
def telegram_webhook():
    """Принять апдейт Telegram (webhook-режим).

    Отвечаем 200 даже при внутренней ошибке, иначе Telegram будет
    бесконечно повторять доставку того же апдейта.
    """
    _check_webhook_secret()
    update: Dict[str, Any] = request.get_json(force=True, silent=True) or {}
    routed = False
    try:
        result = handle_operator_update(
            update,
            relay=get_relay(),
            channel=get_operator_channel(),
            photo_url_for=media_url_for,
        )
        routed = isinstance(result, Resolved)
    except Exception:
        current_app.logger.exception("Failed to handle operator update %s", update.get("update_id"))
    return jsonify({"ok": True, "routed": routed})


@bp.get("/media/tg/<path:file_id>")
def telegram_media(file_id: str):
    """Отдать посетителю фото оператора, скачав его из Telegram."""
    channel = get_operator_channel()
    try:
        resp = channel.fetch_file(file_id)
    except TransportError as exc:
        current_app.logger.warning("media proxy failed for %s: %s", file_id, exc)
        return jsonify({"ok": False, "error": str(exc)}), 502

    mime = (resp.headers.get("content-type") or "").split(";")[0].strip()
    if not mime or mime == "application/octet-stream":
        mime = mimetypes.guess_type(str(resp.url))[0] or "image/jpeg"
    out = Response(resp.content, mimetype=mime)
    out.headers["Cache-Control"] = "private, max-age=3600"
    return out
