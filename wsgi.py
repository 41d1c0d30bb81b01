"""WSGI-энтрипоинт для прод-окружения.

    gunicorn -c deploy/gunicorn.conf.py wsgi:app

Состояние переписки хранится в памяти процесса, поэтому воркер должен
быть один (потоков — сколько угодно).
"""

import os

from env_loader import load_dotenv_like

# Load .env if present
load_dotenv_like()

from metagate import create_app
from metagate.config import DevelopmentConfig, ProductionConfig, TestingConfig
from metagate.operator.polling import start_operator_polling


def get_config_class():
    cfg_name = os.environ.get("APP_CONFIG", "production").lower()
    if cfg_name in {"dev", "development"}:
        return DevelopmentConfig
    if cfg_name in {"test", "testing"}:
        return TestingConfig
    return ProductionConfig


app = create_app(get_config_class())
start_operator_polling(app)


if __name__ == "__main__":
    app.run(host="0.0.0.0", port=int(os.environ.get("PORT", 8000)), threaded=True)
