"""
History Resolver Service

Architectural Intent:
- Lists a stack's recorded deployments and resolves version numbers
- Pure lookups operate on an already-fetched history
- One thin backend call fetches the history; nothing is cached

Domain Logic:
- Histories are ordered most-recent-first, so the latest version is history[0]
- A version is resolvable iff some record carries exactly that version
"""

from __future__ import annotations
import logging
from typing import Sequence

from stack_rollback.domain.entities.deployment_record import DeploymentRecord
from stack_rollback.domain.errors import EmptyHistoryError, VersionNotFoundError
from stack_rollback.domain.ports.stack_operator_port import StackOperatorPort
from stack_rollback.domain.value_objects.stack_ref import StackRef

logger = logging.getLogger(__name__)


def find_by_version(
    history: Sequence[DeploymentRecord], version: int, stack_name: str = ""
) -> DeploymentRecord:
    for record in history:
        if record.version == version:
            return record
    raise VersionNotFoundError(version, stack_name)


def version_exists(history: Sequence[DeploymentRecord], version: int) -> bool:
    return any(record.version == version for record in history)


def latest_version(history: Sequence[DeploymentRecord], stack_name: str = "") -> int:
    if not history:
        raise EmptyHistoryError(stack_name)
    return history[0].version


class HistoryResolver:
    """
    Domain service that fetches deployment history through the stack operator.
    """

    def __init__(self, operator: StackOperatorPort):
        self.operator = operator

    async def list_history(self, stack: StackRef) -> list[DeploymentRecord]:
        """Fetch the full history of a stack, most recent first."""
        handle = await self.operator.select_stack(stack.name, stack.project_path)
        logger.debug("Fetching history for stack %s in %s", stack, stack.project_path)
        # page_size=0 means everything, unpaginated
        return list(await handle.history(0, 0))

    async def get_by_version(self, stack: StackRef, version: int) -> DeploymentRecord:
        history = await self.list_history(stack)
        return find_by_version(history, version, stack.name)

    async def get_latest_version(self, stack: StackRef) -> int:
        history = await self.list_history(stack)
        return latest_version(history, stack.name)
