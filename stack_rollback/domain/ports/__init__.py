"""
Domain Ports Package

Architectural Intent:
- Contains port interfaces (abstract contracts) for external dependencies
- Ports define what the rollback core needs, adapters implement how
- Follows Hexagonal Architecture principles
"""

from stack_rollback.domain.ports.stack_operator_port import (
    StackOperatorPort,
    StackHandlePort,
)
from stack_rollback.domain.ports.event_bus_port import EventBusPort

__all__ = [
    "StackOperatorPort",
    "StackHandlePort",
    "EventBusPort",
]
