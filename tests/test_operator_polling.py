import asyncio
import logging
from types import SimpleNamespace

import pytest
from telegram.error import BadRequest

from metagate.operator.polling import (
    build_application,
    error_handler,
    make_operator_handler,
    start_operator_polling,
)
from tests.conftest import operator_update


def _fake_update(payload):
    return SimpleNamespace(to_dict=lambda: payload)


def test_polling_handler_routes_operator_reply(app, relay):
    handler = make_operator_handler(app)
    asyncio.run(handler(_fake_update(operator_update("@abc123 добрый день")), SimpleNamespace()))

    assert [m.content for m in relay.drain_outbound("abc123")] == ["добрый день"]


@pytest.mark.asyncio
async def test_polling_handler_builds_media_urls(app, relay):
    photo = [{"file_id": "AgAD", "width": 640, "height": 480}]
    handler = make_operator_handler(app)
    await handler(_fake_update(operator_update(photo=photo, caption="@abc123")), SimpleNamespace())

    [msg] = relay.drain_outbound("abc123")
    assert msg.url == "http://testserver/media/tg/AgAD"


def test_polling_handler_ignores_foreign_chat(app, relay):
    handler = make_operator_handler(app)
    asyncio.run(handler(_fake_update(operator_update("@abc123 hi", chat_id=42)), SimpleNamespace()))
    assert relay.stats()["mailboxes"] == 0


def test_polling_not_started_when_disabled(app):
    # TestingConfig: TELEGRAM_UPDATES_MODE=off
    assert start_operator_polling(app) is None


def test_polling_not_started_without_token(app):
    app.config["TELEGRAM_UPDATES_MODE"] = "polling"
    app.extensions["operator_channel"].bot_token = ""
    assert start_operator_polling(app) is None


def test_build_application_registers_handlers(app):
    application = build_application(app)
    assert len(application.handlers[0]) == 1
    assert error_handler in application.error_handlers


def test_error_handler_logs_telegram_errors(caplog):
    context = SimpleNamespace(error=BadRequest("Chat not found"))
    with caplog.at_level(logging.WARNING, logger="metagate.operator"):
        asyncio.run(error_handler(None, context))
    assert "check ADMIN_CHAT_ID" in caplog.text


def test_error_handler_logs_unexpected_errors(caplog):
    context = SimpleNamespace(error=RuntimeError("boom"))
    with caplog.at_level(logging.ERROR, logger="metagate.operator"):
        asyncio.run(error_handler(_fake_update({"update_id": 1}), context))
    assert "Unhandled exception" in caplog.text


def test_build_application_uses_configured_proxy(app):
    app.config["TELEGRAM_PROXY"] = "http://proxy:3128"
    application = build_application(app)
    assert application.bot is not None
    assert len(application.handlers[0]) == 1
