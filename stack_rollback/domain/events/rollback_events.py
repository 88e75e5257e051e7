from dataclasses import dataclass, field

from stack_rollback.domain.events.event_base import DomainEvent


@dataclass(frozen=True)
class RollbackStartedEvent(DomainEvent):
    mode: str = ""
    target_version: int = 0


@dataclass(frozen=True)
class TargetStateImportedEvent(DomainEvent):
    target_version: int = 0


@dataclass(frozen=True)
class StateRestoredEvent(DomainEvent):
    target_version: int = 0


@dataclass(frozen=True)
class StateRestoreFailedEvent(DomainEvent):
    target_version: int = 0
    error_message: str = ""


@dataclass(frozen=True)
class RollbackCompletedEvent(DomainEvent):
    mode: str = ""
    target_version: int = 0
    resource_changes: dict[str, int] = field(default_factory=dict)


@dataclass(frozen=True)
class RollbackFailedEvent(DomainEvent):
    mode: str = ""
    target_version: int = 0
    phase: str = ""
    error_message: str = ""
    requires_manual_intervention: bool = False
