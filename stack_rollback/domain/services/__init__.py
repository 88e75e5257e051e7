"""
Domain Services Package

Architectural Intent:
- Contains domain services implementing history and checkpoint logic
- Services depend only on ports, never on concrete adapters
"""

from stack_rollback.domain.services.history_resolver import (
    HistoryResolver,
    find_by_version,
    latest_version,
    version_exists,
)
from stack_rollback.domain.services.checkpoint_retriever import CheckpointRetriever

__all__ = [
    "HistoryResolver",
    "find_by_version",
    "latest_version",
    "version_exists",
    "CheckpointRetriever",
]
