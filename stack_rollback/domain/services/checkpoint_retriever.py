"""
Checkpoint Retriever Service

Architectural Intent:
- Obtains the historical state snapshot a rollback will restore
- Validates the version against freshly fetched history before any other call
- Never substitutes the current state for the requested version

Domain Logic:
- Unknown version: VersionNotFoundError, and no mutating call is made
- Snapshot must parse as a JSON object, else CheckpointParseError
"""

import logging

from stack_rollback.domain.ports.stack_operator_port import StackHandlePort
from stack_rollback.domain.services.history_resolver import find_by_version
from stack_rollback.domain.value_objects.state_snapshot import (
    StateSnapshot,
    validate_deployment,
)

logger = logging.getLogger(__name__)


class CheckpointRetriever:
    async def get_checkpoint(self, handle: StackHandlePort, version: int) -> StateSnapshot:
        history = await handle.history(0, 0)
        find_by_version(history, version, handle.name)

        snapshot = await handle.checkpoint(version)
        validate_deployment(snapshot)
        logger.debug(
            "Retrieved checkpoint for %s version %d (%s)", handle.name, version, snapshot
        )
        return snapshot
