"""
Stack Operator Port

Architectural Intent:
- Port interface for every call the rollback core makes against a stack
- The only point of contact with the deployment backend
- Implemented by the Pulumi adapter and by the in-memory adapter used in tests

Contract:
- import_state replaces the backend's committed state; later exports and
  history reflect it; importing identical input twice is idempotent
- history(page_size=0) returns the full history, most recent first
- preview never mutates; refresh changes only committed state;
  apply changes live infrastructure
- checkpoint(version) returns the snapshot recorded for that version or raises
  CheckpointUnavailableError; it never substitutes the current state
"""

from abc import ABC, abstractmethod
from typing import List

from stack_rollback.domain.entities.deployment_record import DeploymentRecord
from stack_rollback.domain.value_objects.operation_result import (
    OperationOptions,
    OperationResult,
)
from stack_rollback.domain.value_objects.state_snapshot import StateSnapshot


class StackHandlePort(ABC):
    """
    Port interface for operations on one selected stack.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        pass

    @abstractmethod
    async def export(self) -> StateSnapshot:
        """
        Exports the currently committed state. Raises ExportError.
        """
        pass

    @abstractmethod
    async def import_state(self, snapshot: StateSnapshot) -> None:
        """
        Replaces the committed state with the snapshot. Raises StateImportError.
        """
        pass

    @abstractmethod
    async def history(self, page_size: int = 0, page: int = 0) -> List[DeploymentRecord]:
        """
        Lists deployment records, most recent first. Raises HistoryError.
        """
        pass

    @abstractmethod
    async def checkpoint(self, version: int) -> StateSnapshot:
        """
        Retrieves the snapshot recorded for a historical version.
        """
        pass

    @abstractmethod
    async def preview(self, options: OperationOptions) -> OperationResult:
        """
        Diffs committed state against the program. Raises PreviewError.
        """
        pass

    @abstractmethod
    async def refresh(self, options: OperationOptions) -> OperationResult:
        """
        Reconciles committed state with live infrastructure. Raises RefreshError.
        """
        pass

    @abstractmethod
    async def apply(self, options: OperationOptions) -> OperationResult:
        """
        Changes live infrastructure to match committed state. Raises ApplyError.
        """
        pass


class StackOperatorPort(ABC):
    """
    Port interface for selecting stacks on a deployment backend.
    """

    @abstractmethod
    async def select_stack(self, stack_name: str, project_path: str) -> StackHandlePort:
        """
        Selects an existing stack. Raises SelectionError if it cannot be reached.
        """
        pass
