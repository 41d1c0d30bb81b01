"""Простейшие счётчики метрик relay.

Счётчики живут в памяти процесса и отдаются через ``/metrics``
(JSON) или в текстовом формате Prometheus.
"""

from __future__ import annotations

import threading
from collections import defaultdict
from typing import Dict

_counters: Dict[str, int] = defaultdict(int)
_lock = threading.Lock()


def inc(metric: str, value: int = 1) -> None:
    """Увеличить значение счётчика.

    Args:
        metric: Имя счётчика, например ``relay_polls_total``.
        value: Приращение (по умолчанию 1).
    """
    with _lock:
        _counters[metric] += value


def snapshot() -> Dict[str, int]:
    """Получить копию текущих значений всех счётчиков."""
    with _lock:
        return dict(_counters)


def reset() -> None:
    with _lock:
        _counters.clear()


def render_prometheus() -> str:
    """Сформировать текст в формате Prometheus."""
    lines = []
    for name, val in sorted(snapshot().items()):
        pname = name.replace("-", "_")
        lines.append(f"{pname} {val}")
    return "\n".join(lines)
