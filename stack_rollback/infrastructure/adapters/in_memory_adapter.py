"""
In-Memory Stack Adapter

Architectural Intent:
- Infrastructure adapter implementing StackOperatorPort without any backend
- Deterministic stand-in for tests and dry experiments
- Records every call and supports injected failures per operation

Behaviour:
- import_state replaces the committed snapshot; export returns it
- apply and refresh append a new history record, like a real backend
- checkpoint(version) only returns snapshots actually recorded for that version
"""

import logging
from typing import Iterable, List, Optional

from stack_rollback.domain.entities.deployment_record import (
    RESULT_SUCCEEDED,
    DeploymentRecord,
)
from stack_rollback.domain.errors import (
    ApplyError,
    CheckpointUnavailableError,
    ExportError,
    HistoryError,
    PreviewError,
    RefreshError,
    SelectionError,
    StateImportError,
)
from stack_rollback.domain.ports.stack_operator_port import (
    StackHandlePort,
    StackOperatorPort,
)
from stack_rollback.domain.value_objects.operation_result import (
    OperationOptions,
    OperationResult,
)
from stack_rollback.domain.value_objects.state_snapshot import StateSnapshot

logger = logging.getLogger(__name__)

MUTATING_OPERATIONS = ("import", "refresh", "apply")

_ERROR_TYPES = {
    "export": ExportError,
    "import": StateImportError,
    "history": HistoryError,
    "preview": PreviewError,
    "refresh": RefreshError,
    "apply": ApplyError,
}


class InMemoryStack(StackHandlePort):
    """A stack whose committed state and history live in memory."""

    def __init__(
        self,
        name: str,
        state: Optional[StateSnapshot] = None,
        history: Iterable[DeploymentRecord] = (),
        checkpoints: Optional[dict[int, StateSnapshot]] = None,
        preview_result: Optional[OperationResult] = None,
        refresh_result: Optional[OperationResult] = None,
        apply_result: Optional[OperationResult] = None,
    ):
        self._name = name
        self.state = state or StateSnapshot("{}")
        self.records: list[DeploymentRecord] = list(history)
        self.checkpoints: dict[int, StateSnapshot] = dict(checkpoints or {})
        self.preview_result = preview_result or OperationResult()
        self.refresh_result = refresh_result or OperationResult()
        self.apply_result = apply_result or OperationResult()
        self.calls: list[str] = []
        self.imported: list[StateSnapshot] = []
        self._failures: dict[str, tuple[BaseException, Optional[int]]] = {}

    @property
    def name(self) -> str:
        return self._name

    def fail(self, operation: str, error, on_call: Optional[int] = None) -> None:
        """Make an operation raise. A string becomes that operation's error type.

        With on_call set, only the Nth call (1-based) of the operation fails.
        """
        if isinstance(error, str):
            error = _ERROR_TYPES[operation](error)
        self._failures[operation] = (error, on_call)

    def call_count(self, operation: str) -> int:
        return self.calls.count(operation)

    @property
    def mutating_calls(self) -> list[str]:
        return [c for c in self.calls if c in MUTATING_OPERATIONS]

    def record_deployment(
        self,
        snapshot: StateSnapshot,
        kind: str = "update",
        result: str = RESULT_SUCCEEDED,
        message: str = "",
        resource_changes: Optional[dict[str, int]] = None,
    ) -> DeploymentRecord:
        """Commit a snapshot as a new deployment, as the backend would."""
        version = self.records[0].version + 1 if self.records else 1
        record = DeploymentRecord(
            version=version,
            kind=kind,
            result=result,
            message=message,
            resource_changes=dict(resource_changes or {}),
        )
        self.records.insert(0, record)
        self.checkpoints[version] = snapshot
        self.state = snapshot
        return record

    def _enter(self, operation: str) -> None:
        self.calls.append(operation)
        failure = self._failures.get(operation)
        if failure is None:
            return
        error, on_call = failure
        if on_call is None or on_call == self.call_count(operation):
            logger.debug("Injected %s failure on %s: %s", operation, self._name, error)
            raise error

    async def export(self) -> StateSnapshot:
        self._enter("export")
        return self.state

    async def import_state(self, snapshot: StateSnapshot) -> None:
        self._enter("import")
        self.state = snapshot
        self.imported.append(snapshot)

    async def history(self, page_size: int = 0, page: int = 0) -> List[DeploymentRecord]:
        self._enter("history")
        if page_size <= 0:
            return list(self.records)
        start = (max(page, 1) - 1) * page_size
        return self.records[start:start + page_size]

    async def checkpoint(self, version: int) -> StateSnapshot:
        self._enter("checkpoint")
        if version not in self.checkpoints:
            raise CheckpointUnavailableError(version, "no checkpoint recorded in memory")
        return self.checkpoints[version]

    async def preview(self, options: OperationOptions) -> OperationResult:
        self._enter("preview")
        self._emit(options, self.preview_result)
        return self.preview_result

    async def refresh(self, options: OperationOptions) -> OperationResult:
        self._enter("refresh")
        self._emit(options, self.refresh_result)
        self.record_deployment(self.state, kind="refresh", message=options.message)
        return self.refresh_result

    async def apply(self, options: OperationOptions) -> OperationResult:
        self._enter("apply")
        self._emit(options, self.apply_result)
        self.record_deployment(
            self.state,
            kind="update",
            message=options.message,
            resource_changes=self.apply_result.change_summary,
        )
        return self.apply_result

    @staticmethod
    def _emit(options: OperationOptions, result: OperationResult) -> None:
        if options.on_output and result.stdout:
            for line in result.stdout.splitlines():
                options.on_output(line)


class InMemoryStackOperator(StackOperatorPort):
    """Selects InMemoryStack instances by name."""

    def __init__(self, stacks: Iterable[InMemoryStack] = ()):
        self.stacks: dict[str, InMemoryStack] = {s.name: s for s in stacks}
        self.selections: list[tuple[str, str]] = []

    def add_stack(self, stack: InMemoryStack) -> InMemoryStack:
        self.stacks[stack.name] = stack
        return stack

    async def select_stack(self, stack_name: str, project_path: str) -> StackHandlePort:
        self.selections.append((stack_name, project_path))
        stack = self.stacks.get(stack_name)
        if stack is None:
            raise SelectionError(f"stack {stack_name!r} not found in {project_path}")
        return stack
