"""Маршруты чата посетителей.

API поддерживает следующие операции:

- ``POST /message`` — сообщение посетителя, пересылается оператору;
- ``POST /upload`` — файл посетителя (form-data), сохраняется в
  ``UPLOAD_FOLDER`` и пересылается оператору ссылкой;
- ``GET /poll?visitor_id=...`` — long-poll за ответами оператора;
- ``GET /uploads/<name>`` — отдать загруженный файл.

Формат ответов совместим со старым виджетом: ``{"ok": true, ...}``
или ``{"ok": false, "error": "..."}``.
"""

from __future__ import annotations

import json
import os
import uuid
from typing import Any, Dict, Mapping

from flask import Response, current_app, jsonify, request, send_from_directory
from werkzeug.utils import secure_filename

from .. import metrics
from ..operator.channel import get_operator_channel
from ..relay.errors import BotNotConfigured, TransportError, ValidationError
from ..relay.resolver import format_forward_text, is_valid_visitor_id
from ..relay.service import get_relay
from ..relay.waker import PollTicket
from . import bp

IMAGE_EXTENSIONS = {"png", "jpg", "jpeg", "gif", "webp"}


def _fail(error: str, status: int):
    return jsonify({"ok": False, "error": error}), status


def _require_field(source: Mapping[str, Any], name: str) -> str:
    value = source.get(name)
    value = "" if value is None else str(value).strip()
    if not value:
        raise ValidationError(name)
    return value


def _require_visitor_id(source: Mapping[str, Any]) -> str:
    visitor_id = _require_field(source, "visitor_id")
    if not is_valid_visitor_id(visitor_id):
        # такой id не восстановить из заголовка пересылки
        raise ValidationError("visitor_id", "visitor_id may contain only letters, digits, '_' and '-'")
    return visitor_id


def _forward_failed(exc: TransportError, visitor_id: str):
    # inbound-запись уже сохранена и не откатывается
    if isinstance(exc, BotNotConfigured):
        return _fail(str(exc), 503)
    metrics.inc("relay_forward_failed_total")
    current_app.logger.warning("Forward to operator failed for %s: %s", visitor_id, exc)
    return _fail("forward_failed", 502)


def _public_url(path: str) -> str:
    base = (current_app.config.get("PUBLIC_BASE_URL") or request.host_url).rstrip("/")
    return f"{base}/{path.lstrip('/')}"


@bp.get("/")
def index():
    return Response("MetaGate backend is running", mimetype="text/plain")


@bp.post("/message")
def api_submit_message():
    """Принять сообщение посетителя.

    Ожидает JSON ``{"visitor_id": "...", "message": "..."}``.
    """
    payload: Dict[str, Any] = request.get_json(force=True, silent=True) or {}
    try:
        visitor_id = _require_visitor_id(payload)
        text = _require_field(payload, "message")
    except ValidationError as exc:
        return _fail(str(exc), 400)

    relay = get_relay()
    relay.record_inbound(visitor_id, text)

    try:
        message_id = get_operator_channel().forward(format_forward_text(visitor_id, text))
    except TransportError as exc:
        return _forward_failed(exc, visitor_id)

    relay.remember_forward(message_id, visitor_id)
    return jsonify({"ok": True})


@bp.post("/upload")
def api_submit_upload():
    """Принять файл посетителя.

    Ожидает form-data:
      - ``visitor_id`` (обязателен);
      - ``file`` (обязателен);
      - ``caption`` (optional).
    """
    try:
        visitor_id = _require_visitor_id(request.form)
        file = request.files.get("file")
        if file is None or not file.filename:
            raise ValidationError("file")
        filename = secure_filename(file.filename)
        ext = os.path.splitext(filename)[1].lstrip(".").lower()
        allowed = current_app.config.get("ALLOWED_EXTENSIONS") or set()
        if not ext or (allowed and ext not in allowed):
            raise ValidationError("file", "file type not allowed")
    except ValidationError as exc:
        return _fail(str(exc), 400)

    caption = (request.form.get("caption") or "").strip()

    upload_root = current_app.config.get("UPLOAD_FOLDER") or "uploads"
    os.makedirs(upload_root, exist_ok=True)
    unique_name = f"{uuid.uuid4().hex}.{ext}"
    file.save(os.path.join(upload_root, unique_name))
    url = _public_url(f"uploads/{unique_name}")
    metrics.inc("relay_uploads_total")

    relay = get_relay()
    relay.record_inbound(visitor_id, f"[file] {url}" + (f" {caption}" if caption else ""))

    channel = get_operator_channel()
    try:
        if ext in IMAGE_EXTENSIONS:
            message_id = channel.forward_image(url, caption=format_forward_text(visitor_id, caption or filename))
        else:
            body = f"{caption}\n{url}" if caption else url
            message_id = channel.forward(format_forward_text(visitor_id, body))
    except TransportError as exc:
        return _forward_failed(exc, visitor_id)

    relay.remember_forward(message_id, visitor_id)
    return jsonify({"ok": True, "url": url})


@bp.get("/uploads/<path:name>")
def uploaded_file(name: str):
    return send_from_directory(current_app.config.get("UPLOAD_FOLDER") or "uploads", name)


def _poll_body(ticket: PollTicket) -> Dict[str, Any]:
    return {"ok": True, "replies": [m.to_dict() for m in ticket.replies]}


@bp.get("/poll")
def api_poll():
    """Long-poll за ответами оператора.

    Если ответы уже есть — отдаём сразу. Иначе держим запрос до ответа
    оператора или ``POLL_HOLD_SECONDS``. Пока ждём, раз в
    ``POLL_KEEPALIVE_SECONDS`` пишем пробел: так WSGI-сервер замечает
    отключившегося клиента и закрывает генератор.
    """
    try:
        visitor_id = _require_visitor_id(request.args)
    except ValidationError as exc:
        return _fail(str(exc), 400)

    relay = get_relay()
    ticket = relay.poll(visitor_id)
    if ticket.done:
        return jsonify(_poll_body(ticket))

    keepalive = float(current_app.config.get("POLL_KEEPALIVE_SECONDS", 5) or 0)

    def _stream():
        sent = False
        try:
            if keepalive > 0:
                while not ticket.wait(keepalive):
                    yield " "
            else:
                ticket.wait()
            yield json.dumps(_poll_body(ticket), ensure_ascii=False)
            sent = True
        finally:
            if not sent:
                # клиент ушёл: снимаем ожидание, а уже забранные ответы
                # возвращаем в голову outbox
                if not relay.release(visitor_id, ticket):
                    relay.reclaim(visitor_id, ticket)

    return Response(
        _stream(),
        mimetype="application/json",
        headers={"Cache-Control": "no-store", "X-Accel-Buffering": "no"},
    )
