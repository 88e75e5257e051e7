"""
List Stack History Use Case

Architectural Intent:
- Returns a stack's deployment records for display, most recent first
- History is fetched fresh on every call; the limit is applied afterwards
"""

from stack_rollback.domain.entities.deployment_record import DeploymentRecord
from stack_rollback.domain.services.history_resolver import HistoryResolver
from stack_rollback.domain.value_objects.stack_ref import StackRef


class ListStackHistory:
    def __init__(self, history_resolver: HistoryResolver):
        self.history_resolver = history_resolver

    async def execute(
        self, stack_name: str, project_path: str = ".", limit: int = 0
    ) -> list[DeploymentRecord]:
        if limit < 0:
            raise ValueError(f"limit cannot be negative, got {limit}")
        records = await self.history_resolver.list_history(
            StackRef(stack_name, project_path)
        )
        if limit and limit < len(records):
            records = records[:limit]
        return records
