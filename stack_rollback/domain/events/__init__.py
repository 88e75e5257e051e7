"""
Domain Events Package

Architectural Intent:
- Contains domain events raised by the Rollback aggregate
- Events are the primary mechanism for cross-boundary communication
"""

from stack_rollback.domain.events.event_base import DomainEvent
from stack_rollback.domain.events.rollback_events import (
    RollbackStartedEvent,
    TargetStateImportedEvent,
    StateRestoredEvent,
    StateRestoreFailedEvent,
    RollbackCompletedEvent,
    RollbackFailedEvent,
)

__all__ = [
    "DomainEvent",
    "RollbackStartedEvent",
    "TargetStateImportedEvent",
    "StateRestoredEvent",
    "StateRestoreFailedEvent",
    "RollbackCompletedEvent",
    "RollbackFailedEvent",
]
