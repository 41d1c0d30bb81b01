# Точка входа ДЛЯ РАЗРАБОТКИ (debug server)
# В продакшене использовать wsgi.py + gunicorn (см. deploy/gunicorn.conf.py).

"""Точка входа для запуска MetaGate.

Конфигурация выбирается по переменной окружения:

- ``APP_ENV=production`` → ProductionConfig
- во всех остальных случаях используется DevelopmentConfig.
"""

import os

from env_loader import load_dotenv_like

# Load .env if present
load_dotenv_like()

from metagate import create_app
from metagate.config import DevelopmentConfig, ProductionConfig
from metagate.operator.polling import start_operator_polling


def _select_config_class() -> type:
    env = (os.getenv("APP_ENV") or os.getenv("FLASK_ENV") or "development").lower()
    if env.startswith("prod"):
        return ProductionConfig
    return DevelopmentConfig


def main() -> None:
    """Запуск веб-сервера и polling-бота оператора.

    В режиме отладки Flask использует два процесса (reloader). Бот
    запускаем только в рабочем процессе (``WERKZEUG_RUN_MAIN``), иначе
    Telegram вернёт Conflict из-за двух getUpdates одновременно.
    """
    app = create_app(_select_config_class())

    if not app.debug or os.environ.get("WERKZEUG_RUN_MAIN") == "true":
        start_operator_polling(app)

    port = int(os.environ.get("PORT", 3000))
    app.logger.info("MetaGate live on http://localhost:%s", port)
    # threaded=True обязателен: каждый /poll держит поток до POLL_HOLD_SECONDS
    app.run(host="0.0.0.0", port=port, debug=app.config.get("DEBUG", True), threaded=True)


if __name__ == "__main__":
    main()
