"""
Pulumi Adapter

Architectural Intent:
- Infrastructure adapter implementing StackOperatorPort via the Pulumi Automation API
- Blocking SDK calls run in the default executor, one at a time
- Every SDK failure is re-raised as the typed error of the failing operation

Cancellation:
- A cancelled call asks the backend to cancel its in-flight update, then waits
  for the SDK call to settle before re-raising, so no later call (such as a
  restore import) can overlap it
"""

import asyncio
import functools
import logging
import os
from typing import Any, Callable, List, Optional

import pulumi.automation as auto

from stack_rollback.domain.entities.deployment_record import DeploymentRecord
from stack_rollback.domain.errors import (
    ApplyError,
    CheckpointUnavailableError,
    ExportError,
    HistoryError,
    PreviewError,
    RefreshError,
    RollbackError,
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
    normalize_change_summary,
)
from stack_rollback.domain.value_objects.state_snapshot import StateSnapshot
from stack_rollback.infrastructure.adapters.pulumi_checkpoint_store import (
    PulumiCheckpointStore,
)

logger = logging.getLogger(__name__)


def _error_detail(error: Exception) -> str:
    return str(error).strip() or type(error).__name__


async def _run_blocking(
    operation: str,
    error_type: Callable[[str], Exception],
    fn: Callable[..., Any],
    *args: Any,
    on_cancel: Optional[Callable[[], None]] = None,
    **kwargs: Any,
) -> Any:
    loop = asyncio.get_event_loop()
    future = loop.run_in_executor(None, functools.partial(fn, *args, **kwargs))
    try:
        return await asyncio.shield(future)
    except asyncio.CancelledError:
        logger.warning(
            "%s cancelled; waiting for the backend call to settle", operation
        )
        if on_cancel is not None:
            await loop.run_in_executor(None, on_cancel)
        await asyncio.wait([future])
        if not future.cancelled() and future.exception() is not None:
            logger.debug(
                "%s ended with %s after cancellation", operation, future.exception()
            )
        raise
    except RollbackError:
        raise
    except Exception as e:
        raise error_type(_error_detail(e)) from e


class PulumiStack(StackHandlePort):
    """Wraps a pulumi.automation.Stack."""

    def __init__(
        self,
        stack: auto.Stack,
        checkpoint_store: PulumiCheckpointStore,
        work_dir: str = ".",
    ):
        self._stack = stack
        self._checkpoint_store = checkpoint_store
        self._work_dir = work_dir

    @property
    def name(self) -> str:
        return self._stack.name

    def _cancel_update(self) -> None:
        try:
            self._stack.cancel()
        except auto.CommandError as e:
            logger.debug("Nothing to cancel on %s: %s", self.name, _error_detail(e))

    async def export(self) -> StateSnapshot:
        deployment = await _run_blocking(
            "export", ExportError, self._stack.export_stack
        )
        return StateSnapshot.from_mapping(deployment.deployment, deployment.version)

    async def import_state(self, snapshot: StateSnapshot) -> None:
        deployment = auto.Deployment(
            version=snapshot.schema_version, deployment=snapshot.parse()
        )
        await _run_blocking(
            "import", StateImportError, self._stack.import_stack, deployment
        )

    async def history(
        self, page_size: int = 0, page: int = 0
    ) -> List[DeploymentRecord]:
        # The SDK treats None as "no pagination"
        summaries = await _run_blocking(
            "history",
            HistoryError,
            self._stack.history,
            page_size=page_size or None,
            page=page or None,
        )
        return [DeploymentRecord.from_summary(s) for s in summaries or []]

    async def checkpoint(self, version: int) -> StateSnapshot:
        return await _run_blocking(
            "checkpoint",
            functools.partial(CheckpointUnavailableError, version),
            self._fetch_checkpoint,
            version,
        )

    def _fetch_checkpoint(self, version: int) -> StateSnapshot:
        workspace = self._stack.workspace
        project_name = ""
        try:
            project_name = workspace.project_settings().name
        except Exception as e:
            logger.debug("Could not read project settings: %s", e)
        env = dict(getattr(workspace, "env_vars", None) or {})
        return self._checkpoint_store.fetch(
            self.name,
            version,
            work_dir=getattr(workspace, "work_dir", None) or self._work_dir,
            project_name=project_name,
            env=env,
            backend_url=self._backend_url(workspace, env),
        )

    @staticmethod
    def _backend_url(workspace: Any, env: dict[str, str]) -> str:
        url = env.get("PULUMI_BACKEND_URL") or os.environ.get("PULUMI_BACKEND_URL")
        if url:
            return url
        try:
            return getattr(workspace.who_am_i(), "url", "") or ""
        except auto.CommandError as e:
            logger.debug("Could not determine backend URL: %s", _error_detail(e))
            return ""

    async def preview(self, options: OperationOptions) -> OperationResult:
        result = await _run_blocking(
            "preview",
            PreviewError,
            self._stack.preview,
            message=options.message or None,
            on_output=options.on_output,
            on_cancel=self._cancel_update,
        )
        return OperationResult(
            change_summary=normalize_change_summary(result.change_summary),
            stdout=result.stdout,
            stderr=result.stderr,
        )

    async def refresh(self, options: OperationOptions) -> OperationResult:
        result = await _run_blocking(
            "refresh",
            RefreshError,
            self._stack.refresh,
            message=options.message or None,
            on_output=options.on_output,
            on_cancel=self._cancel_update,
        )
        return OperationResult(
            change_summary=normalize_change_summary(
                getattr(result.summary, "resource_changes", None)
            ),
            stdout=result.stdout,
            stderr=result.stderr,
        )

    async def apply(self, options: OperationOptions) -> OperationResult:
        result = await _run_blocking(
            "apply",
            ApplyError,
            self._stack.up,
            message=options.message or None,
            on_output=options.on_output,
            on_cancel=self._cancel_update,
        )
        return OperationResult(
            change_summary=normalize_change_summary(
                getattr(result.summary, "resource_changes", None)
            ),
            stdout=result.stdout,
            stderr=result.stderr,
        )


class PulumiStackOperator(StackOperatorPort):
    """Selects stacks whose program lives in a local project directory."""

    def __init__(self, checkpoint_store: Optional[PulumiCheckpointStore] = None):
        self.checkpoint_store = checkpoint_store or PulumiCheckpointStore()

    async def select_stack(self, stack_name: str, project_path: str) -> StackHandlePort:
        logger.debug("Selecting stack %s in %s", stack_name, project_path)
        stack = await _run_blocking(
            "select stack",
            SelectionError,
            auto.select_stack,
            stack_name=stack_name,
            work_dir=project_path,
        )
        return PulumiStack(stack, self.checkpoint_store, work_dir=project_path)
