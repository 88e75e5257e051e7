"""
Deployment Record

Architectural Intent:
- Read-only record of one deployment event in a stack's history
- Created by the deployment backend on every update; never mutated here
- Conversion from backend summaries tolerates missing or malformed timestamps

Invariants:
- version is unique within one stack's history
- histories are ordered most-recent-first as returned by the backend
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from stack_rollback.domain.value_objects.operation_result import (
    normalize_change_summary,
)

RESULT_SUCCEEDED = "succeeded"
RESULT_FAILED = "failed"
RESULT_IN_PROGRESS = "in-progress"


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Accept a datetime or an RFC 3339 string; anything else yields None."""
    if isinstance(value, datetime):
        return value
    if not value or not isinstance(value, str):
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


@dataclass(frozen=True)
class DeploymentRecord:
    version: int
    kind: str = ""
    result: str = ""
    message: str = ""
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    resource_changes: dict[str, int] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.version < 1:
            raise ValueError(f"Deployment version must be positive, got {self.version}")

    @property
    def succeeded(self) -> bool:
        return self.result == RESULT_SUCCEEDED

    @staticmethod
    def from_summary(summary: Any) -> DeploymentRecord:
        """Build a record from a backend update summary object."""
        return DeploymentRecord(
            version=int(summary.version),
            kind=str(getattr(summary, "kind", "") or ""),
            result=str(getattr(summary, "result", "") or ""),
            message=str(getattr(summary, "message", "") or ""),
            start_time=parse_timestamp(getattr(summary, "start_time", None)),
            end_time=parse_timestamp(getattr(summary, "end_time", None)),
            resource_changes=normalize_change_summary(
                getattr(summary, "resource_changes", None)
            ),
        )
