"""
Rollback Module

Architectural Intent:
- Rollback aggregate tracks one preview or execute flow from start to finish
- Each flow is a short linear state machine; steps must be taken in order
- All state changes produce new instances to ensure auditability
- Domain events are accumulated for publication once the flow ends

Domain Events:
- RollbackStartedEvent: the flow began for a target version
- TargetStateImportedEvent: committed state now holds the target snapshot
- StateRestoredEvent / StateRestoreFailedEvent: outcome of the preview restore
- RollbackCompletedEvent: the flow returned a result
- RollbackFailedEvent: the flow raised; flags whether manual follow-up is needed
"""

from __future__ import annotations

from enum import Enum
from typing import Optional

from stack_rollback.domain.events.event_base import DomainEvent
from stack_rollback.domain.events.rollback_events import (
    RollbackStartedEvent,
    TargetStateImportedEvent,
    StateRestoredEvent,
    StateRestoreFailedEvent,
    RollbackCompletedEvent,
    RollbackFailedEvent,
)


class RollbackMode(Enum):
    PREVIEW = "preview"
    EXECUTE = "execute"


class RollbackPhase(Enum):
    PENDING = "pending"
    SELECT_STACK = "select stack"
    EXPORT_CURRENT = "export current state"
    FETCH_CHECKPOINT = "fetch checkpoint"
    IMPORT_TARGET = "import target state"
    RUN_PREVIEW = "preview"
    RESTORE_CURRENT = "restore current state"
    REFRESH = "refresh"
    APPLY = "apply"
    DONE = "done"


class RollbackStatus(Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


PREVIEW_STEPS = (
    RollbackPhase.PENDING,
    RollbackPhase.SELECT_STACK,
    RollbackPhase.EXPORT_CURRENT,
    RollbackPhase.FETCH_CHECKPOINT,
    RollbackPhase.IMPORT_TARGET,
    RollbackPhase.RUN_PREVIEW,
    RollbackPhase.RESTORE_CURRENT,
    RollbackPhase.DONE,
)

EXECUTE_STEPS = (
    RollbackPhase.PENDING,
    RollbackPhase.SELECT_STACK,
    RollbackPhase.FETCH_CHECKPOINT,
    RollbackPhase.IMPORT_TARGET,
    RollbackPhase.REFRESH,
    RollbackPhase.APPLY,
    RollbackPhase.DONE,
)


class Rollback:
    __slots__ = (
        "_stack_name",
        "_mode",
        "_target_version",
        "_phase",
        "_status",
        "_target_imported",
        "_error_message",
        "_domain_events",
    )

    def __init__(
        self,
        stack_name: str,
        mode: RollbackMode,
        target_version: int,
        phase: RollbackPhase = RollbackPhase.PENDING,
        status: RollbackStatus = RollbackStatus.PENDING,
        target_imported: bool = False,
        error_message: Optional[str] = None,
        domain_events: tuple = (),
    ):
        self._stack_name = stack_name
        self._mode = mode
        self._target_version = target_version
        self._phase = phase
        self._status = status
        self._target_imported = target_imported
        self._error_message = error_message
        self._domain_events = domain_events

    @property
    def stack_name(self) -> str:
        return self._stack_name

    @property
    def mode(self) -> RollbackMode:
        return self._mode

    @property
    def target_version(self) -> int:
        return self._target_version

    @property
    def phase(self) -> RollbackPhase:
        return self._phase

    @property
    def status(self) -> RollbackStatus:
        return self._status

    @property
    def target_imported(self) -> bool:
        return self._target_imported

    @property
    def error_message(self) -> Optional[str]:
        return self._error_message

    @property
    def domain_events(self) -> tuple:
        return self._domain_events

    @property
    def steps(self) -> tuple:
        return PREVIEW_STEPS if self._mode == RollbackMode.PREVIEW else EXECUTE_STEPS

    @property
    def is_forward_only(self) -> bool:
        """True once a real rollback has written the target state."""
        return self._mode == RollbackMode.EXECUTE and self._target_imported

    def log_context(self) -> dict:
        """Fields attached to log records about this rollback."""
        return {
            "stack_name": self._stack_name,
            "mode": self._mode.value,
            "target_version": self._target_version,
            "phase": self._phase.value,
        }

    def _replace(self, **changes) -> Rollback:
        state = {
            "stack_name": self._stack_name,
            "mode": self._mode,
            "target_version": self._target_version,
            "phase": self._phase,
            "status": self._status,
            "target_imported": self._target_imported,
            "error_message": self._error_message,
            "domain_events": self._domain_events,
        }
        state.update(changes)
        return Rollback(**state)

    def _with_event(self, event: DomainEvent, **changes) -> Rollback:
        return self._replace(domain_events=self._domain_events + (event,), **changes)

    def start(self) -> Rollback:
        if self._status != RollbackStatus.PENDING:
            raise ValueError("Rollback can only start from PENDING state")
        return self._with_event(
            RollbackStartedEvent(
                aggregate_id=self._stack_name,
                mode=self._mode.value,
                target_version=self._target_version,
            ),
            status=RollbackStatus.RUNNING,
            phase=RollbackPhase.SELECT_STACK,
        )

    def advance(self, phase: RollbackPhase) -> Rollback:
        if self._status != RollbackStatus.RUNNING:
            raise ValueError("Rollback must be RUNNING to advance")
        steps = self.steps
        if phase not in steps or steps.index(phase) != steps.index(self._phase) + 1:
            raise ValueError(
                f"Cannot move {self._mode.value} flow from {self._phase.value} "
                f"to {phase.value}"
            )
        return self._replace(phase=phase)

    def target_state_imported(self) -> Rollback:
        if self._phase != RollbackPhase.IMPORT_TARGET:
            raise ValueError("Target state can only be imported in the import phase")
        return self._with_event(
            TargetStateImportedEvent(
                aggregate_id=self._stack_name, target_version=self._target_version
            ),
            target_imported=True,
        )

    def restored(self) -> Rollback:
        return self._with_event(
            StateRestoredEvent(
                aggregate_id=self._stack_name, target_version=self._target_version
            ),
            target_imported=False,
        )

    def restore_failed(self, message: str) -> Rollback:
        return self._with_event(
            StateRestoreFailedEvent(
                aggregate_id=self._stack_name,
                target_version=self._target_version,
                error_message=message,
            )
        )

    def complete(self, resource_changes: dict[str, int]) -> Rollback:
        if self._status != RollbackStatus.RUNNING:
            raise ValueError("Rollback must be RUNNING to complete")
        return self._with_event(
            RollbackCompletedEvent(
                aggregate_id=self._stack_name,
                mode=self._mode.value,
                target_version=self._target_version,
                resource_changes=dict(resource_changes),
            ),
            status=RollbackStatus.COMPLETED,
            phase=RollbackPhase.DONE,
        )

    def fail(self, message: str) -> Rollback:
        return self._with_event(
            RollbackFailedEvent(
                aggregate_id=self._stack_name,
                mode=self._mode.value,
                target_version=self._target_version,
                phase=self._phase.value,
                error_message=message,
                requires_manual_intervention=self.is_forward_only,
            ),
            status=RollbackStatus.FAILED,
            error_message=message,
        )

    def __repr__(self) -> str:
        return (
            f"Rollback(stack_name={self._stack_name}, mode={self._mode.value}, "
            f"target_version={self._target_version}, phase={self._phase.value}, "
            f"status={self._status.value})"
        )
