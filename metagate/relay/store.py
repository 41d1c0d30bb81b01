"""In-memory хранилище переписки (почтовые ящики посетителей).

Ничего не сохраняется на диск: при перезапуске процесса всё теряется.
Все операции берут общий ``lock`` (RLock), тот же самый использует
:class:`metagate.relay.waker.DeliveryWaker`, поэтому
``enqueue_outbound`` + проверка ожидающего poll выполняются атомарно.
"""

from __future__ import annotations

import logging
import threading
from collections import OrderedDict
from typing import Callable, Dict, Iterable, List, Optional

from .models import InboundRecord, Mailbox, PendingMessage

log = logging.getLogger("metagate.relay")


class ConversationStore:
    def __init__(self, *, lock: Optional[threading.RLock] = None, forward_index_max: int = 5000) -> None:
        self.lock = lock or threading.RLock()
        self._mailboxes: Dict[str, Mailbox] = {}
        self._forwarded: "OrderedDict[int, str]" = OrderedDict()
        self._forward_index_max = max(1, int(forward_index_max))
        # Хук «проверить ожидающий poll», его ставит RelayService.
        self.on_enqueue: Optional[Callable[[str], None]] = None

    def _mailbox(self, visitor_id: str) -> Mailbox:
        box = self._mailboxes.get(visitor_id)
        if box is None:
            box = Mailbox(visitor_id=visitor_id)
            self._mailboxes[visitor_id] = box
        return box

    # ------------------------------------------------------------------
    # inbox / outbox
    # ------------------------------------------------------------------

    def record_inbound(self, visitor_id: str, text: str) -> InboundRecord:
        """Добавить сообщение посетителя в inbox (ящик создаётся при необходимости)."""
        record = InboundRecord(text=text)
        with self.lock:
            self._mailbox(visitor_id).inbox.append(record)
        return record

    def enqueue_outbound(self, visitor_id: str, message: PendingMessage) -> None:
        """Поставить сообщение в очередь посетителя и разбудить ожидающий poll."""
        with self.lock:
            self._mailbox(visitor_id).outbox.append(message)
            if self.on_enqueue is not None:
                self.on_enqueue(visitor_id)

    def drain_outbound(self, visitor_id: str) -> List[PendingMessage]:
        """Забрать и очистить outbox. Порядок сохраняется."""
        with self.lock:
            box = self._mailboxes.get(visitor_id)
            if box is None or not box.outbox:
                return []
            items = list(box.outbox)
            box.outbox.clear()
            return items

    def requeue_front(self, visitor_id: str, messages: Iterable[PendingMessage]) -> None:
        """Вернуть недоставленные сообщения в голову очереди."""
        messages = list(messages)
        if not messages:
            return
        with self.lock:
            self._mailbox(visitor_id).outbox.extendleft(reversed(messages))

    def has_pending(self, visitor_id: str) -> bool:
        with self.lock:
            box = self._mailboxes.get(visitor_id)
            return bool(box and box.outbox)

    def has_mailbox(self, visitor_id: str) -> bool:
        with self.lock:
            return visitor_id in self._mailboxes

    def inbox(self, visitor_id: str) -> List[InboundRecord]:
        """Копия inbox (для аудита и тестов)."""
        with self.lock:
            box = self._mailboxes.get(visitor_id)
            return list(box.inbox) if box else []

    # ------------------------------------------------------------------
    # forward index: message_id в Telegram -> visitor_id
    # ------------------------------------------------------------------

    def remember_forward(self, message_id: Optional[int], visitor_id: str) -> None:
        if message_id is None:
            return
        with self.lock:
            self._forwarded[int(message_id)] = visitor_id
            self._forwarded.move_to_end(int(message_id))
            while len(self._forwarded) > self._forward_index_max:
                self._forwarded.popitem(last=False)

    def lookup_forward(self, message_id: Optional[int]) -> Optional[str]:
        if message_id is None:
            return None
        with self.lock:
            return self._forwarded.get(int(message_id))

    def stats(self) -> Dict[str, int]:
        with self.lock:
            return {
                "mailboxes": len(self._mailboxes),
                "queued": sum(len(b.outbox) for b in self._mailboxes.values()),
                "forwarded": len(self._forwarded),
            }
