"""
Event Bus Port

Architectural Intent:
- Outlet for the domain events a Rollback aggregate accumulates
- The orchestrator publishes once per flow, after it returns or raises, so
  subscribers see the whole ordered sequence of one rollback at a time
- Subscribing is a wiring concern of the composition root, not of the port
"""

from typing import Protocol, Sequence, runtime_checkable

from stack_rollback.domain.events.event_base import DomainEvent


@runtime_checkable
class EventBusPort(Protocol):
    async def publish(self, events: Sequence[DomainEvent]) -> None:
        """Deliver the events in order; a failing subscriber propagates."""
        ...
