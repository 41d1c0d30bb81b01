"""Blueprint для чата посетителей сайта.

Этот модуль определяет Blueprint, через который виджет на сайте
общается с оператором: отправка сообщений и файлов, long-poll за
ответами. Пути без префикса (``/message``, ``/poll``) — их ждёт
уже встроенный на сайтах виджет.
"""

from flask import Blueprint

bp = Blueprint("chat", __name__)

from . import routes  # noqa: E402,F401
