"""
Модуль конфигурации приложения.

Здесь определяются классы конфигурации Flask для разработки, тестов
и продакшена. Все значения берутся из переменных окружения (``.env``
подхватывается в точках входа через :func:`env_loader.load_dotenv_like`).
"""

import os
from datetime import timedelta


def _parse_csv_set(env_name: str, default: str = "") -> set[str]:
    raw = (os.environ.get(env_name, default) or "").strip()
    out: set[str] = set()
    for part in raw.split(","):
        part = (part or "").strip().lower()
        if part:
            out.add(part)
    return out


class Config:
    """Базовый класс конфигурации."""

    # Каталог, в котором размещается проект
    BASE_DIR = os.path.abspath(os.path.dirname(os.path.dirname(__file__)))

    # --- Telegram (чат оператора) ---
    # Фолбэк: если TELEGRAM_BOT_TOKEN не задан, используем BOT_TOKEN (старое имя).
    TELEGRAM_BOT_TOKEN = (
        os.environ.get("TELEGRAM_BOT_TOKEN", "").strip()
        or os.environ.get("BOT_TOKEN", "").strip()
    )
    # Чат, куда пересылаются сообщения посетителей и откуда читаются ответы.
    ADMIN_CHAT_ID = os.environ.get("ADMIN_CHAT_ID", "").strip()
    TELEGRAM_PROXY = os.environ.get("TELEGRAM_PROXY", "").strip()
    TELEGRAM_TIMEOUT_SEC = float(os.environ.get("TELEGRAM_TIMEOUT_SEC", 12))
    # polling | webhook | off
    TELEGRAM_UPDATES_MODE = os.environ.get("TELEGRAM_UPDATES_MODE", "polling").strip().lower()
    # Если задан — /telegram/webhook требует заголовок X-Telegram-Bot-Api-Secret-Token.
    TELEGRAM_WEBHOOK_SECRET = os.environ.get("TELEGRAM_WEBHOOK_SECRET", "").strip()

    # --- Long-poll ---
    # Сколько держим GET /poll без ответа (секунды).
    POLL_HOLD_SECONDS = float(os.environ.get("POLL_HOLD_SECONDS", 25))
    # Интервал пробелов-keepalive в теле ответа; 0 — не писать.
    POLL_KEEPALIVE_SECONDS = float(os.environ.get("POLL_KEEPALIVE_SECONDS", 5))

    # --- Маршрутизация ответов ---
    # Минимальная длина visitor_id из маркера в тексте пересланного сообщения.
    VISITOR_MARKER_MIN_LENGTH = int(os.environ.get("VISITOR_MARKER_MIN_LENGTH", 1))
    # Сколько message_id пересланных сообщений помним для reply.
    FORWARD_INDEX_MAX = int(os.environ.get("FORWARD_INDEX_MAX", 5000))

    # --- Загрузки посетителей ---
    # Публичный адрес сервиса: из него строятся ссылки на файлы для Telegram.
    PUBLIC_BASE_URL = os.environ.get("PUBLIC_BASE_URL", "").strip().rstrip("/")
    UPLOAD_FOLDER = os.environ.get("UPLOAD_FOLDER") or os.path.join(BASE_DIR, "uploads")
    ALLOWED_EXTENSIONS = _parse_csv_set("ALLOWED_EXTENSIONS", "png,jpg,jpeg,gif,webp,pdf,txt")
    MAX_CONTENT_LENGTH = int(os.environ.get("MAX_UPLOAD_MB", 10)) * 1024 * 1024

    # --- CORS (виджет встраивается на чужие сайты) ---
    CORS_ORIGINS = os.environ.get("CORS_ORIGINS", "*").strip() or "*"

    # Настройки логирования. По умолчанию уровень INFO и вывод только в консоль.
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
    LOG_FILE = os.environ.get("LOG_FILE")  # если не задан, лог пишется только в stdout

    # --- Metrics (optional) ---
    ENABLE_METRICS = os.environ.get("ENABLE_METRICS", "0") == "1"


class DevelopmentConfig(Config):
    """Настройки для режима разработки."""

    DEBUG = True
    SEND_FILE_MAX_AGE_DEFAULT = 0


class TestingConfig(Config):
    """Настройки для тестов."""

    TESTING = True
    DEBUG = True
    # В тестах не ходим в Telegram.
    TELEGRAM_BOT_TOKEN = "test-token"
    ADMIN_CHAT_ID = "1000"
    TELEGRAM_UPDATES_MODE = "off"
    TELEGRAM_WEBHOOK_SECRET = ""
    TELEGRAM_PROXY = ""
    PUBLIC_BASE_URL = "http://testserver"
    POLL_HOLD_SECONDS = 0.5
    POLL_KEEPALIVE_SECONDS = 0.05
    VISITOR_MARKER_MIN_LENGTH = 1
    ENABLE_METRICS = True


class ProductionConfig(Config):
    """Настройки для режима продакшена."""

    DEBUG = False
    SEND_FILE_MAX_AGE_DEFAULT = timedelta(days=30)
