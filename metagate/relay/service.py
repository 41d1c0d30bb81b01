"""RelayService — единая точка входа в relay-ядро.

Один экземпляр на Flask-приложение (``app.extensions["relay"]``).
Маршруты и обработчик апдейтов оператора работают только через него.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Dict, List, Optional

from flask import current_app

from .. import metrics
from .models import InboundRecord, OperatorEvent, PendingMessage, Resolution, Resolved
from .resolver import ResolverPolicy, resolve_reply
from .store import ConversationStore
from .waker import DeliveryWaker, PollTicket

log = logging.getLogger("metagate.relay")


class RelayService:
    def __init__(
        self,
        *,
        hold_seconds: float = 25.0,
        policy: Optional[ResolverPolicy] = None,
        forward_index_max: int = 5000,
        timer_factory: Callable[..., threading.Timer] = threading.Timer,
    ) -> None:
        self.store = ConversationStore(lock=threading.RLock(), forward_index_max=forward_index_max)
        self.waker = DeliveryWaker(self.store, hold_seconds=hold_seconds, timer_factory=timer_factory)
        self.store.on_enqueue = self.waker.wake
        self.policy = policy or ResolverPolicy()

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "RelayService":
        return cls(
            hold_seconds=float(config.get("POLL_HOLD_SECONDS", 25)),
            policy=ResolverPolicy(marker_min_length=int(config.get("VISITOR_MARKER_MIN_LENGTH", 1))),
            forward_index_max=int(config.get("FORWARD_INDEX_MAX", 5000)),
        )

    # --- visitor side -------------------------------------------------

    def record_inbound(self, visitor_id: str, text: str) -> InboundRecord:
        metrics.inc("relay_inbound_total")
        return self.store.record_inbound(visitor_id, text)

    def remember_forward(self, message_id: Optional[int], visitor_id: str) -> None:
        self.store.remember_forward(message_id, visitor_id)

    def poll(self, visitor_id: str) -> PollTicket:
        return self.waker.poll(visitor_id)

    def release(self, visitor_id: str, ticket: PollTicket) -> bool:
        return self.waker.release(visitor_id, ticket)

    def reclaim(self, visitor_id: str, ticket: PollTicket) -> int:
        return self.waker.reclaim(visitor_id, ticket)

    # --- operator side ------------------------------------------------

    def enqueue_outbound(self, visitor_id: str, message: PendingMessage) -> None:
        self.store.enqueue_outbound(visitor_id, message)

    def drain_outbound(self, visitor_id: str) -> List[PendingMessage]:
        return self.store.drain_outbound(visitor_id)

    def handle_operator_event(
        self,
        event: OperatorEvent,
        *,
        photo_url_for: Optional[Callable[[str], str]] = None,
    ) -> Resolution:
        """Разобрать сообщение оператора и положить ответ в outbox."""
        result = resolve_reply(
            event,
            policy=self.policy,
            lookup_forward=self.store.lookup_forward,
            photo_url_for=photo_url_for,
            is_known_visitor=self.store.has_mailbox,
        )
        if isinstance(result, Resolved):
            self.enqueue_outbound(result.visitor_id, result.payload)
            metrics.inc("relay_replies_routed_total")
            log.info("reply routed to %s (rule=%s)", result.visitor_id, result.rule)
        else:
            metrics.inc("relay_replies_unresolved_total")
            log.debug("operator message %s ignored: %s", event.message_id, result.reason)
        return result

    def stats(self) -> Dict[str, int]:
        data = self.store.stats()
        data["waiting_polls"] = self.waker.waiting_count()
        return data


def get_relay() -> RelayService:
    """RelayService текущего приложения."""
    return current_app.extensions["relay"]
