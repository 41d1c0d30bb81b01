"""Конфигурация gunicorn для MetaGate.

Запуск:
    gunicorn -c deploy/gunicorn.conf.py wsgi:app
"""

import os

bind = f"0.0.0.0:{os.environ.get('PORT', '8000')}"

# Ровно один воркер: почтовые ящики и ожидающие /poll живут в памяти процесса,
# а polling-бот оператора не должен запускаться дважды.
workers = 1

# Каждый висящий /poll занимает поток на POLL_HOLD_SECONDS.
worker_class = "gthread"
threads = int(os.environ.get("GUNICORN_THREADS", "64"))

# Больше, чем POLL_HOLD_SECONDS, чтобы long-poll не убивался по таймауту.
timeout = int(os.environ.get("GUNICORN_TIMEOUT", "60"))
preload_app = False

# Логи gunicorn — в stdout/stderr (подходит для docker/journalctl)
accesslog = "-"
errorlog = "-"
loglevel = "info"
