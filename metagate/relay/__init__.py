"""Relay-ядро: хранилище переписки, резолвер ответов и long-poll."""

from .errors import BotNotConfigured, RelayError, TransportError, ValidationError
from .models import ImageMessage, OperatorEvent, Resolved, TextMessage, Unresolved
from .service import RelayService, get_relay

__all__ = [
    "BotNotConfigured",
    "ImageMessage",
    "OperatorEvent",
    "RelayError",
    "RelayService",
    "Resolved",
    "TextMessage",
    "TransportError",
    "Unresolved",
    "ValidationError",
    "get_relay",
]
