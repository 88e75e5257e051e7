"""
Rollback DTOs

Architectural Intent:
- Data Transfer Objects for the rollback use case boundaries
- Input validation at the application boundary
- Decouples caller representation from the Rollback aggregate
"""

import sys
from dataclasses import dataclass, field
from typing import Optional, TextIO

from stack_rollback.domain.entities.deployment_record import DeploymentRecord
from stack_rollback.domain.value_objects.stack_ref import StackRef


@dataclass(frozen=True)
class RollbackRequest:
    project_path: str
    stack_name: str
    target_version: int
    dry_run: bool = False
    verbose: bool = False
    output: Optional[TextIO] = None

    def __post_init__(self) -> None:
        if self.target_version < 1:
            raise ValueError(
                f"target_version must be a positive integer, got {self.target_version}"
            )
        # Validates stack name and project path
        self.stack

    @property
    def stack(self) -> StackRef:
        return StackRef(self.stack_name, self.project_path)

    @property
    def sink(self) -> TextIO:
        return self.output if self.output is not None else sys.stdout


@dataclass(frozen=True)
class RollbackPlan:
    target: DeploymentRecord
    latest_version: int

    @property
    def is_current(self) -> bool:
        return self.target.version == self.latest_version


@dataclass(frozen=True)
class RollbackOutcome:
    success: bool
    message: str
    resource_changes: dict[str, int] = field(default_factory=dict)
    stdout: str = ""
    stderr: str = ""
    target_version: int = 0
    no_op: bool = False
