"""Long-poll: удержание запроса посетителя до ответа или таймаута.

Для каждого visitor_id есть не больше одного ожидающего запроса
(:class:`PollTicket`). Ticket завершается ровно одним способом:

- ``delivered``  — пришло сообщение, запрос получает весь outbox;
- ``timeout``    — истёк ``hold_seconds``, ответ — пустой список;
- ``superseded`` — пришёл новый poll того же посетителя, старый
  получает пустой список;
- ``disconnected`` — клиент закрыл соединение, ответа нет.

Все переходы выполняются под ``store.lock``. Проигравший путь видит уже
завершённый ticket и ничего не делает.

Если ответ ``delivered`` не удалось записать клиенту, :meth:`DeliveryWaker.reclaim`
возвращает сообщения в голову outbox.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable, Dict, List, Optional

from .. import metrics
from .models import PendingMessage
from .store import ConversationStore

log = logging.getLogger("metagate.relay")

DELIVERED = "delivered"
TIMEOUT = "timeout"
SUPERSEDED = "superseded"
DISCONNECTED = "disconnected"
IMMEDIATE = "immediate"


class PollTicket:
    """Одноразовый токен завершения для удерживаемого запроса."""

    def __init__(self, visitor_id: str) -> None:
        self.visitor_id = visitor_id
        self.replies: List[PendingMessage] = []
        self.outcome: Optional[str] = None
        self.timer: Optional[threading.Timer] = None
        self._guard = threading.Lock()
        self._event = threading.Event()

    @property
    def done(self) -> bool:
        return self._event.is_set()

    def resolve(self, replies: List[PendingMessage], outcome: str) -> bool:
        """Завершить ticket. False, если он уже был завершён."""
        with self._guard:
            if self.outcome is not None:
                return False
            self.outcome = outcome
            self.replies = list(replies)
            if self.timer is not None:
                self.timer.cancel()
                self.timer = None
        self._event.set()
        return True

    def wait(self, timeout: Optional[float] = None) -> bool:
        return self._event.wait(timeout)


class DeliveryWaker:
    def __init__(
        self,
        store: ConversationStore,
        *,
        hold_seconds: float = 25.0,
        timer_factory: Callable[..., threading.Timer] = threading.Timer,
    ) -> None:
        self.store = store
        self.hold_seconds = float(hold_seconds)
        self._timer_factory = timer_factory
        self._slots: Dict[str, PollTicket] = {}

    def poll(self, visitor_id: str) -> PollTicket:
        """Зарегистрировать poll-запрос.

        Если в outbox уже что-то есть — ticket возвращается завершённым,
        в таблицу ожидания он не попадает.
        """
        ticket = PollTicket(visitor_id)
        metrics.inc("relay_polls_total")
        with self.store.lock:
            replies = self.store.drain_outbound(visitor_id)
            if replies:
                ticket.resolve(replies, IMMEDIATE)
                return ticket

            previous = self._slots.pop(visitor_id, None)
            if previous is not None and previous.resolve([], SUPERSEDED):
                metrics.inc("relay_polls_superseded_total")
                log.debug("poll superseded for %s", visitor_id)

            timer = self._timer_factory(self.hold_seconds, self._expire, args=(visitor_id, ticket))
            timer.daemon = True
            ticket.timer = timer
            self._slots[visitor_id] = ticket
            timer.start()
        return ticket

    def wake(self, visitor_id: str) -> None:
        """Вызывается после enqueue: отдать outbox ожидающему запросу."""
        with self.store.lock:
            ticket = self._slots.get(visitor_id)
            if ticket is None:
                return
            replies = self.store.drain_outbound(visitor_id)
            if not replies:
                return
            del self._slots[visitor_id]
            if not ticket.resolve(replies, DELIVERED):
                # ticket уже кем-то завершён — сообщения не теряем
                self.store.requeue_front(visitor_id, replies)

    def release(self, visitor_id: str, ticket: PollTicket) -> bool:
        """Клиент отключился: снять ожидание без ответа."""
        with self.store.lock:
            if self._slots.get(visitor_id) is ticket:
                del self._slots[visitor_id]
            released = ticket.resolve([], DISCONNECTED)
        if released:
            metrics.inc("relay_polls_disconnected_total")
            log.debug("poll released (client gone) for %s", visitor_id)
        return released

    def reclaim(self, visitor_id: str, ticket: PollTicket) -> int:
        """Ответ с сообщениями не дошёл до клиента: вернуть их в голову outbox.

        Повторный вызов для того же ticket ничего не делает. Если посетитель
        уже ждёт новым запросом, он получает возвращённые сообщения сразу.
        """
        with self.store.lock:
            if ticket.outcome not in (DELIVERED, IMMEDIATE) or not ticket.replies:
                return 0
            replies, ticket.replies = ticket.replies, []
            self.store.requeue_front(visitor_id, replies)
            self.wake(visitor_id)
        metrics.inc("relay_replies_reclaimed_total", len(replies))
        log.info("%d undelivered replies returned to outbox of %s", len(replies), visitor_id)
        return len(replies)

    def _expire(self, visitor_id: str, ticket: PollTicket) -> None:
        with self.store.lock:
            if self._slots.get(visitor_id) is ticket:
                del self._slots[visitor_id]
            expired = ticket.resolve([], TIMEOUT)
        if expired:
            metrics.inc("relay_polls_timeout_total")

    def is_waiting(self, visitor_id: str) -> bool:
        with self.store.lock:
            return visitor_id in self._slots

    def waiting_count(self) -> int:
        with self.store.lock:
            return len(self._slots)
