"""
State Snapshot Value Object

Architectural Intent:
- Opaque serialized document describing a stack's full resource graph
- The rollback core never interprets its contents beyond "is a JSON object"
- Transient: fetched per invocation, never persisted by this tool
"""

import json
from dataclasses import dataclass
from typing import Any, Optional

from stack_rollback.domain.errors import CheckpointParseError


@dataclass(frozen=True)
class StateSnapshot:
    """
    Value Object holding a serialized deployment document.
    """
    document: str
    schema_version: Optional[int] = None

    @staticmethod
    def from_mapping(
        deployment: Any, schema_version: Optional[int] = None
    ) -> "StateSnapshot":
        return StateSnapshot(json.dumps(deployment), schema_version)

    def parse(self) -> dict[str, Any]:
        """Deserialize the document, raising CheckpointParseError if it is not an object."""
        return validate_deployment(self)

    def __str__(self):
        return f"StateSnapshot(schema_version={self.schema_version}, bytes={len(self.document)})"


def validate_deployment(snapshot: StateSnapshot) -> dict[str, Any]:
    if not snapshot.document or not snapshot.document.strip():
        raise CheckpointParseError("failed to parse deployment: document is empty")
    try:
        state = json.loads(snapshot.document)
    except json.JSONDecodeError as e:
        raise CheckpointParseError(f"failed to parse deployment: {e}") from e
    if not isinstance(state, dict):
        raise CheckpointParseError(
            f"failed to parse deployment: expected an object, got {type(state).__name__}"
        )
    return state
