"""
Composition Root

Architectural Intent:
- Dependency injection composition root for the rollback tool
- Single place where the stack operator, services and use cases are wired
- The stack operator is chosen by the caller; nothing is process-global

Design Decisions:
- Uses a simple dataclass container instead of a DI framework
- Defaults to the Pulumi adapter; tests pass an InMemoryStackOperator
"""

import logging
from dataclasses import dataclass
from typing import Optional

from stack_rollback.application.use_cases.list_stack_history import ListStackHistory
from stack_rollback.application.use_cases.rollback_deployment import RollbackDeployment
from stack_rollback.domain.events.event_base import DomainEvent
from stack_rollback.domain.ports.stack_operator_port import StackOperatorPort
from stack_rollback.domain.services.checkpoint_retriever import CheckpointRetriever
from stack_rollback.domain.services.history_resolver import HistoryResolver
from stack_rollback.infrastructure.config import RollbackConfig
from stack_rollback.infrastructure.event_bus import EventBus, audit_log_handler


@dataclass
class RollbackContainer:
    """DI container holding all wired dependencies."""

    config: RollbackConfig
    operator: StackOperatorPort
    event_bus: EventBus
    history_resolver: HistoryResolver
    list_history: ListStackHistory
    rollback: RollbackDeployment


def create_pulumi_operator(config: RollbackConfig) -> StackOperatorPort:
    from stack_rollback.infrastructure.adapters.pulumi_adapter import PulumiStackOperator
    from stack_rollback.infrastructure.adapters.pulumi_checkpoint_store import (
        PulumiCheckpointStore,
    )

    store = PulumiCheckpointStore(
        command=config.pulumi.command,
        backend_url=config.pulumi.backend_url,
        source=config.pulumi.checkpoint_source,
        timeout=config.pulumi.command_timeout,
    )
    return PulumiStackOperator(store)


def create_container(
    config: Optional[RollbackConfig] = None,
    operator: Optional[StackOperatorPort] = None,
) -> RollbackContainer:
    """Create and wire all dependencies."""
    config = config or RollbackConfig()
    operator = operator or create_pulumi_operator(config)
    event_bus = EventBus()
    event_bus.subscribe(
        DomainEvent, audit_log_handler(logging.getLogger("stack_rollback.audit"))
    )

    history_resolver = HistoryResolver(operator)
    list_history = ListStackHistory(history_resolver)
    rollback = RollbackDeployment(
        operator, history_resolver, CheckpointRetriever(), event_bus
    )

    return RollbackContainer(
        config=config,
        operator=operator,
        event_bus=event_bus,
        history_resolver=history_resolver,
        list_history=list_history,
        rollback=rollback,
    )
