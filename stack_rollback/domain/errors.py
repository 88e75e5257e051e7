"""
Rollback Errors

Architectural Intent:
- Single error taxonomy for every failure the rollback core can surface
- Backend-call failures carry the name of the operation that failed
- Severity is encoded in the type: callers distinguish "nothing changed"
  from "state is indeterminate" from "manual follow-up required"

Design Decisions:
- No retries are performed anywhere; errors propagate as soon as they occur
- RestoreWarning is a UserWarning and is never raised by the orchestrator
"""

from typing import Optional


class RollbackError(Exception):
    """Base class for all rollback failures."""


class StackOperationError(RollbackError):
    """A call against the deployment backend failed."""

    operation = "stack operation"

    def __init__(self, detail: str, operation: Optional[str] = None):
        if operation:
            self.operation = operation
        self.detail = detail
        super().__init__(f"{self.operation} failed: {detail}")


class SelectionError(StackOperationError):
    operation = "select stack"


class ExportError(StackOperationError):
    operation = "export"


class StateImportError(StackOperationError):
    operation = "import"


class HistoryError(StackOperationError):
    operation = "history"


class PreviewError(StackOperationError):
    operation = "preview"


class RefreshError(StackOperationError):
    operation = "refresh"


class ApplyError(StackOperationError):
    operation = "apply"


class VersionNotFoundError(RollbackError, LookupError):
    def __init__(self, version: int, stack_name: str = ""):
        self.version = version
        self.stack_name = stack_name
        where = f" for stack {stack_name}" if stack_name else ""
        super().__init__(f"version {version} not found in stack history{where}")


class EmptyHistoryError(RollbackError):
    def __init__(self, stack_name: str = ""):
        self.stack_name = stack_name
        super().__init__(f"no deployment history found for stack {stack_name}".rstrip())


class CheckpointParseError(RollbackError):
    """The checkpoint does not parse as a structured document."""


class CheckpointUnavailableError(RollbackError):
    """The backend cannot supply the snapshot recorded for a version."""

    def __init__(self, version: int, reason: str):
        self.version = version
        self.reason = reason
        super().__init__(f"checkpoint for version {version} is unavailable: {reason}")


class IndeterminateStateError(RollbackError):
    """Importing the target state failed; committed state may be partially written."""

    def __init__(self, version: int, cause: Exception):
        self.version = version
        self.cause = cause
        super().__init__(
            f"import of version {version} failed and the committed stack state "
            f"is indeterminate; verify it with an export before continuing: {cause}"
        )


class PartialRollbackError(RollbackError):
    """A real rollback failed after its target state was imported."""

    requires_manual_intervention = True

    def __init__(self, version: int, phase: str, cause: Exception):
        self.version = version
        self.phase = phase
        self.cause = cause
        super().__init__(
            f"rollback to version {version} stopped during {phase} after the "
            f"target state was imported; the stack is partially rolled back and "
            f"requires manual intervention: {cause}"
        )


class RestoreWarning(UserWarning):
    """The original state could not be restored after a preview."""

    def __init__(self, cause: Exception):
        self.cause = cause
        super().__init__(f"failed to restore current state: {cause}")
