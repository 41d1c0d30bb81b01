import itertools

import pytest

from metagate import create_app, metrics
from metagate.config import TestingConfig


@pytest.fixture()
def app(tmp_path):
    a = create_app(TestingConfig)
    # Изолируем загрузки в tmp
    a.config["UPLOAD_FOLDER"] = str(tmp_path / "uploads")
    yield a


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def relay(app):
    return app.extensions["relay"]


@pytest.fixture(autouse=True)
def reset_metrics():
    metrics.reset()
    yield
    metrics.reset()


@pytest.fixture()
def telegram(monkeypatch):
    """Подменяем Bot API: записываем вызовы, отвечаем ok с новым message_id."""
    sent = []
    ids = itertools.count(500)

    def fake_send_telegram_message(bot_token, chat_id, text, **kwargs):
        mid = next(ids)
        sent.append({"method": "sendMessage", "chat_id": chat_id, "text": text, "message_id": mid})
        return {"ok": True, "result": {"message_id": mid}}

    def fake_send_telegram_photo(bot_token, chat_id, photo_url, *, caption=None, **kwargs):
        mid = next(ids)
        sent.append({"method": "sendPhoto", "chat_id": chat_id, "photo": photo_url, "caption": caption, "message_id": mid})
        return {"ok": True, "result": {"message_id": mid}}

    monkeypatch.setattr("metagate.operator.channel.send_telegram_message", fake_send_telegram_message)
    monkeypatch.setattr("metagate.operator.channel.send_telegram_photo", fake_send_telegram_photo)
    return sent


class FakeTimer:
    """Замена threading.Timer: срабатывает только по fire()."""

    def __init__(self, interval, function, args=None, kwargs=None):
        self.interval = interval
        self.function = function
        self.args = tuple(args or ())
        self.kwargs = dict(kwargs or {})
        self.daemon = False
        self.started = False
        self.cancelled = False

    def start(self):
        self.started = True

    def cancel(self):
        self.cancelled = True

    def fire(self):
        if not self.cancelled:
            self.function(*self.args, **self.kwargs)


@pytest.fixture()
def fake_timers():
    created = []

    def factory(interval, function, args=None, kwargs=None):
        t = FakeTimer(interval, function, args=args, kwargs=kwargs)
        created.append(t)
        return t

    factory.created = created
    return factory


def operator_update(text=None, *, chat_id=1000, message_id=900, reply_to=None, photo=None, caption=None):
    """Собрать Telegram Update из чата оператора."""
    message = {"message_id": message_id, "chat": {"id": chat_id, "type": "private"}, "date": 0}
    if text is not None:
        message["text"] = text
    if caption is not None:
        message["caption"] = caption
    if photo is not None:
        message["photo"] = photo
    if reply_to is not None:
        message["reply_to_message"] = reply_to
    return {"update_id": message_id, "message": message}
