"""
Stack Reference Value Object

Architectural Intent:
- Immutable identity of a stack: its name plus the project directory it lives in
- Accepts short names ("dev") and fully qualified names ("org/project/dev")
"""

import re
from dataclasses import dataclass

_SEGMENT_RE = re.compile(r"^[A-Za-z0-9_.-]+$")


@dataclass(frozen=True)
class StackRef:
    """
    Value Object identifying one stack within a project.
    """
    name: str
    project_path: str = "."

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError(
                "stack name is required: use --stack or set PULUMI_STACK"
            )
        segments = self.name.split("/")
        if len(segments) > 3 or not all(_SEGMENT_RE.match(s) for s in segments):
            raise ValueError(f"Invalid stack name: {self.name!r}")
        if not self.project_path:
            raise ValueError("project path cannot be empty")

    @property
    def short_name(self) -> str:
        """The stack name without any org/project qualifier."""
        return self.name.split("/")[-1]

    def __str__(self) -> str:
        return self.name
