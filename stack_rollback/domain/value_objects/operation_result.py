from dataclasses import dataclass, field
from typing import Any, Callable, Mapping, Optional


def normalize_change_summary(summary: Optional[Mapping[Any, int]]) -> dict[str, int]:
    """Convert a backend change summary into a plain str -> int mapping.

    Absent summaries become an empty dict. Enum keys are reduced to their value.
    """
    if not summary:
        return {}
    changes: dict[str, int] = {}
    for kind, count in summary.items():
        key = kind.value if hasattr(kind, "value") else str(kind)
        changes[str(key)] = int(count)
    return changes


@dataclass(frozen=True)
class OperationOptions:
    """
    Value Object carrying per-call options for preview, refresh and apply.
    """
    message: str = ""
    on_output: Optional[Callable[[str], None]] = None


@dataclass(frozen=True)
class OperationResult:
    """
    Value Object summarizing a preview, refresh or apply call.
    """
    change_summary: dict[str, int] = field(default_factory=dict)
    stdout: str = ""
    stderr: str = ""
