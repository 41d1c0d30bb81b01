"""Polling-режим: слушаем чат оператора через python-telegram-bot.

Бот работает в фоновом потоке того же процесса, что и Flask: состояние
relay хранится в памяти, поэтому отдельный процесс для бота не подходит.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from typing import Optional

from flask import Flask
from telegram import Update
from telegram.error import BadRequest, Forbidden, TelegramError
from telegram.ext import Application, ApplicationBuilder, ContextTypes, MessageHandler, filters

from .handlers import build_media_url, handle_operator_update

log = logging.getLogger("metagate.operator")


async def error_handler(update: object, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Глобальный обработчик ошибок Telegram-бота.

    Ошибки Telegram API (Forbidden / BadRequest / другие TelegramError)
    логируем отдельно от ошибок нашей логики.
    """
    err = context.error
    try:
        update_repr = getattr(update, "to_dict", lambda: update)()
    except Exception:
        update_repr = repr(update)

    if isinstance(err, TelegramError):
        msg = f"Telegram API error: {err}"
        if isinstance(err, BadRequest) and "chat not found" in str(err).lower():
            msg += " (check ADMIN_CHAT_ID)"
        if isinstance(err, Forbidden):
            msg += " (bot was removed from the operator chat?)"
        log.warning("%s. Update=%s", msg, update_repr)
    else:
        log.exception("Unhandled exception while handling update %s", update_repr, exc_info=err)


def make_operator_handler(app: Flask):
    """Callback для MessageHandler, привязанный к Flask-приложению."""

    async def on_operator_message(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        with app.app_context():
            base_url = app.config.get("PUBLIC_BASE_URL") or ""
            handle_operator_update(
                update.to_dict(),
                relay=app.extensions["relay"],
                channel=app.extensions["operator_channel"],
                photo_url_for=lambda file_id: build_media_url(base_url, file_id),
            )

    return on_operator_message


def build_application(app: Flask) -> Application:
    builder = ApplicationBuilder().token(app.config["TELEGRAM_BOT_TOKEN"])
    proxy = (app.config.get("TELEGRAM_PROXY") or "").strip()
    if proxy:
        builder = builder.proxy(proxy).get_updates_proxy(proxy)
    application = builder.build()
    application.add_handler(
        MessageHandler((filters.TEXT & ~filters.COMMAND) | filters.PHOTO, make_operator_handler(app))
    )
    application.add_error_handler(error_handler)
    return application


def _run(application: Application) -> None:
    # run_polling ожидает event loop в текущем потоке
    asyncio.set_event_loop(asyncio.new_event_loop())
    # stop_signals=None: сигналы можно ставить только в главном потоке
    application.run_polling(allowed_updates=["message"], stop_signals=None)


def start_operator_polling(app: Flask) -> Optional[threading.Thread]:
    """Запустить polling в daemon-потоке, если он включён в конфиге."""
    mode = (app.config.get("TELEGRAM_UPDATES_MODE") or "polling").strip().lower()
    if mode != "polling":
        log.info("Telegram polling disabled (TELEGRAM_UPDATES_MODE=%s)", mode)
        return None
    if not app.extensions["operator_channel"].configured:
        log.warning("Missing env vars: TELEGRAM_BOT_TOKEN or ADMIN_CHAT_ID, operator replies will not arrive")
        return None

    application = build_application(app)
    thread = threading.Thread(target=_run, args=(application,), name="operator-polling", daemon=True)
    thread.start()
    log.info("Operator polling started for chat %s", app.config.get("ADMIN_CHAT_ID"))
    return thread
