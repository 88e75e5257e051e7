"""
Event Bus Infrastructure

Architectural Intent:
- In-memory event bus implementation for publishing rollback domain events
- Supports async subscription handlers
- Handlers subscribed to a base class receive every subclass event
"""

import logging
from typing import Callable, Awaitable
from stack_rollback.domain.events.event_base import DomainEvent
from stack_rollback.infrastructure.logging import CONTEXT_FIELDS

logger = logging.getLogger(__name__)


class EventBus:
    def __init__(self) -> None:
        self._handlers: dict[type, list[Callable[[DomainEvent], Awaitable[None]]]] = {}
        self.published: list[DomainEvent] = []

    async def publish(self, events: list[DomainEvent]) -> None:
        for event in events:
            self.published.append(event)
            for event_type in type(event).__mro__:
                for handler in self._handlers.get(event_type, []):
                    await handler(event)

    def subscribe(
        self, event_type: type, handler: Callable[[DomainEvent], Awaitable[None]]
    ) -> None:
        if event_type not in self._handlers:
            self._handlers[event_type] = []
        self._handlers[event_type].append(handler)


def audit_log_handler(
    audit_logger: logging.Logger,
) -> Callable[[DomainEvent], Awaitable[None]]:
    """Build a handler that records every event on the given logger."""

    async def _handle(event: DomainEvent) -> None:
        data = event.to_dict()
        context = {name: data[name] for name in CONTEXT_FIELDS if data.get(name)}
        context["stack_name"] = event.aggregate_id
        audit_logger.info(
            "rollback event %s %s", event.event_type, data, extra=context
        )

    return _handle
