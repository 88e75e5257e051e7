"""
Rollback Deployment Use Case

Architectural Intent:
- Orchestrates reverting a stack to the state recorded for an earlier version
- Two flows with their own failure policy:
  Preview:  select -> export current -> fetch checkpoint -> import target
            -> preview -> restore current (always) -> return
  Execute:  select -> fetch checkpoint -> import target -> refresh -> apply
- Every backend call is awaited strictly in sequence

Compensation:
- Preview treats the target import as a temporary substitution; the original
  state is re-imported on every exit path once the import was attempted
  (normal return, preview error, cancellation)
- A failed restore after a successful preview is a warning on the output
  sink, never the call's error
- Execute has no compensation. Once the target import succeeds the rollback
  is forward-only; refresh or apply failures raise PartialRollbackError and
  are never retried
"""

import asyncio
import logging
from typing import Optional, TextIO

from stack_rollback.application.dtos.rollback_dtos import (
    RollbackOutcome,
    RollbackPlan,
    RollbackRequest,
)
from stack_rollback.domain.entities.rollback import (
    Rollback,
    RollbackMode,
    RollbackPhase,
)
from stack_rollback.domain.errors import (
    ApplyError,
    IndeterminateStateError,
    PartialRollbackError,
    RefreshError,
    RestoreWarning,
    StateImportError,
)
from stack_rollback.domain.ports.event_bus_port import EventBusPort
from stack_rollback.domain.ports.stack_operator_port import (
    StackHandlePort,
    StackOperatorPort,
)
from stack_rollback.domain.services.checkpoint_retriever import CheckpointRetriever
from stack_rollback.domain.services.history_resolver import (
    HistoryResolver,
    find_by_version,
    latest_version,
)
from stack_rollback.domain.value_objects.operation_result import (
    OperationOptions,
    normalize_change_summary,
)
from stack_rollback.domain.value_objects.state_snapshot import StateSnapshot

logger = logging.getLogger(__name__)


class RollbackDeployment:
    def __init__(
        self,
        operator: StackOperatorPort,
        history_resolver: HistoryResolver,
        checkpoint_retriever: CheckpointRetriever,
        event_bus: Optional[EventBusPort] = None,
    ):
        self.operator = operator
        self.history_resolver = history_resolver
        self.checkpoint_retriever = checkpoint_retriever
        self.event_bus = event_bus

    async def plan(self, request: RollbackRequest) -> RollbackPlan:
        """Resolve the target record and the latest version from fresh history."""
        history = await self.history_resolver.list_history(request.stack)
        target = find_by_version(history, request.target_version, request.stack_name)
        return RollbackPlan(
            target=target, latest_version=latest_version(history, request.stack_name)
        )

    async def run(self, request: RollbackRequest) -> RollbackOutcome:
        if request.dry_run:
            return await self.preview(request)
        return await self.execute(request)

    async def preview(self, request: RollbackRequest) -> RollbackOutcome:
        plan = await self.plan(request)
        if plan.is_current:
            return self._no_op(request)
        return await self._preview_flow(request)

    async def execute(self, request: RollbackRequest) -> RollbackOutcome:
        plan = await self.plan(request)
        if plan.is_current:
            return self._no_op(request)
        return await self._execute_flow(request)

    def _no_op(self, request: RollbackRequest) -> RollbackOutcome:
        version = request.target_version
        logger.info(
            "Version %d of %s is already current", version, request.stack_name,
            extra={"stack_name": request.stack_name, "target_version": version},
        )
        return RollbackOutcome(
            success=True,
            message=f"Version {version} is the current version. No rollback needed.",
            target_version=version,
            no_op=True,
        )

    async def _preview_flow(self, request: RollbackRequest) -> RollbackOutcome:
        version = request.target_version
        sink = request.sink
        rollback = Rollback(request.stack_name, RollbackMode.PREVIEW, version).start()

        try:
            self._step(request, f"Selecting stack {request.stack_name}...")
            handle = await self.operator.select_stack(
                request.stack_name, request.project_path
            )

            rollback = rollback.advance(RollbackPhase.EXPORT_CURRENT)
            self._step(request, "Exporting current state...")
            current = await handle.export()

            rollback = rollback.advance(RollbackPhase.FETCH_CHECKPOINT)
            self._step(request, f"Fetching checkpoint for version {version}...")
            target = await self.checkpoint_retriever.get_checkpoint(handle, version)

            rollback = rollback.advance(RollbackPhase.IMPORT_TARGET)
            self._step(request, f"Importing state of version {version} temporarily...")
            try:
                await handle.import_state(target)
            except StateImportError as e:
                raise IndeterminateStateError(version, e) from e
            except asyncio.CancelledError:
                # The import may have landed before the cancellation was seen
                rollback = await self._restore(handle, current, rollback, sink)
                raise
            rollback = rollback.target_state_imported()

            rollback = rollback.advance(RollbackPhase.RUN_PREVIEW)
            self._step(request, "Running preview...")
            try:
                result = await handle.preview(
                    OperationOptions(
                        message=f"Preview rollback to version {version}",
                        on_output=self._output_callback(request),
                    )
                )
            finally:
                rollback = rollback.advance(RollbackPhase.RESTORE_CURRENT)
                self._step(request, "Restoring current state...")
                rollback = await self._restore(handle, current, rollback, sink)

            changes = normalize_change_summary(result.change_summary)
            rollback = rollback.complete(changes)
            return RollbackOutcome(
                success=True,
                message=f"Preview of rollback to version {version} completed",
                resource_changes=changes,
                stdout=result.stdout,
                stderr=result.stderr,
                target_version=version,
            )
        except (Exception, asyncio.CancelledError) as e:
            rollback = rollback.fail(str(e) or type(e).__name__)
            logger.error(
                "Preview of %s failed during %s: %s",
                request.stack_name, rollback.phase.value, e,
                extra=rollback.log_context(),
            )
            raise
        finally:
            await self._publish(rollback)

    async def _restore(
        self,
        handle: StackHandlePort,
        current: StateSnapshot,
        rollback: Rollback,
        sink: TextIO,
    ) -> Rollback:
        try:
            await handle.import_state(current)
        except Exception as e:
            warning = RestoreWarning(e)
            sink.write(f"Warning: {warning}\n")
            logger.warning(
                "Stack %s may still hold the target state: %s", handle.name, warning,
                extra=rollback.log_context(),
            )
            return rollback.restore_failed(str(e))
        return rollback.restored()

    async def _execute_flow(self, request: RollbackRequest) -> RollbackOutcome:
        version = request.target_version
        sink = request.sink
        rollback = Rollback(request.stack_name, RollbackMode.EXECUTE, version).start()

        try:
            self._step(request, f"Selecting stack {request.stack_name}...")
            handle = await self.operator.select_stack(
                request.stack_name, request.project_path
            )

            rollback = rollback.advance(RollbackPhase.FETCH_CHECKPOINT)
            self._step(request, f"Fetching checkpoint for version {version}...")
            target = await self.checkpoint_retriever.get_checkpoint(handle, version)

            rollback = rollback.advance(RollbackPhase.IMPORT_TARGET)
            self._step(request, f"Importing state of version {version}...")
            try:
                await handle.import_state(target)
            except StateImportError as e:
                raise IndeterminateStateError(version, e) from e
            rollback = rollback.target_state_imported()

            # Past this point the rollback is forward-only
            rollback = rollback.advance(RollbackPhase.REFRESH)
            sink.write("Refreshing stack to reconcile with target state...\n")
            try:
                await handle.refresh(
                    OperationOptions(
                        message=f"Refresh before rollback to version {version}",
                        on_output=self._output_callback(request),
                    )
                )
            except RefreshError as e:
                raise PartialRollbackError(
                    version, RollbackPhase.REFRESH.value, e
                ) from e

            rollback = rollback.advance(RollbackPhase.APPLY)
            sink.write("Applying rollback changes...\n")
            try:
                result = await handle.apply(
                    OperationOptions(
                        message=f"Rollback to version {version}",
                        on_output=self._output_callback(request),
                    )
                )
            except ApplyError as e:
                raise PartialRollbackError(version, RollbackPhase.APPLY.value, e) from e

            changes = normalize_change_summary(result.change_summary)
            rollback = rollback.complete(changes)
            return RollbackOutcome(
                success=True,
                message=f"Successfully rolled back to version {version}",
                resource_changes=changes,
                stdout=result.stdout,
                stderr=result.stderr,
                target_version=version,
            )
        except (Exception, asyncio.CancelledError) as e:
            rollback = rollback.fail(str(e) or type(e).__name__)
            if rollback.is_forward_only:
                logger.error(
                    "Rollback of %s to version %d stopped during %s; "
                    "manual intervention required: %s",
                    request.stack_name, version, rollback.phase.value, e,
                    extra=rollback.log_context(),
                )
            else:
                logger.error(
                    "Rollback of %s failed during %s: %s",
                    request.stack_name, rollback.phase.value, e,
                    extra=rollback.log_context(),
                )
            raise
        finally:
            await self._publish(rollback)

    def _step(self, request: RollbackRequest, message: str) -> None:
        logger.info(
            message,
            extra={
                "stack_name": request.stack_name,
                "target_version": request.target_version,
            },
        )
        if request.verbose:
            request.sink.write(f"{message}\n")

    def _output_callback(self, request: RollbackRequest):
        if not request.verbose:
            return None
        sink = request.sink

        def _write(line: str) -> None:
            sink.write(line if line.endswith("\n") else f"{line}\n")

        return _write

    async def _publish(self, rollback: Rollback) -> None:
        if self.event_bus is not None:
            await self.event_bus.publish(list(rollback.domain_events))
