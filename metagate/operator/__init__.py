"""Blueprint для стороны оператора (Telegram).

Маршруты:

- ``POST /telegram/webhook`` — апдейты Telegram в webhook-режиме;
- ``GET /media/tg/<file_id>`` — проксирование фото оператора посетителю
  (токен бота не уходит на клиент).

В polling-режиме апдейты приходят через :mod:`metagate.operator.polling`.
"""

from flask import Blueprint

bp = Blueprint("operator", __name__)

from . import routes  # noqa: E402,F401
