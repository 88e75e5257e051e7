"""
Integration Tests: rollback flows through the composition root

Wires the real services, use cases and event bus around an in-memory stack
and drives list, preview and execute end to end.
"""

import io
import logging

import pytest

from stack_rollback.application.dtos.rollback_dtos import RollbackRequest
from stack_rollback.composition_root import create_container
from stack_rollback.domain.errors import PartialRollbackError


def _request(version, **overrides):
    params = {
        "project_path": ".",
        "stack_name": "dev",
        "target_version": version,
        "output": io.StringIO(),
    }
    params.update(overrides)
    return RollbackRequest(**params)


class TestRollbackFlow:
    @pytest.mark.asyncio
    async def test_preview_then_execute(self, stack, operator, snapshot_for):
        container = create_container(operator=operator)

        preview = await container.rollback.preview(_request(1))
        assert preview.success is True
        assert stack.state == snapshot_for(3)
        assert [r.version for r in await container.list_history.execute("dev")] == [
            3, 2, 1,
        ]

        outcome = await container.rollback.execute(_request(1))
        assert outcome.success is True
        assert stack.state == snapshot_for(1)

        history = await container.list_history.execute("dev")
        assert [r.version for r in history] == [5, 4, 3, 2, 1]
        assert history[0].message == "Rollback to version 1"

    @pytest.mark.asyncio
    async def test_latest_version_after_rollback_is_no_op(self, stack, operator):
        container = create_container(operator=operator)
        await container.rollback.execute(_request(2))
        calls_before = len(stack.calls)

        outcome = await container.rollback.execute(_request(5))

        assert outcome.no_op is True
        assert stack.mutating_calls.count("apply") == 1
        assert stack.calls[calls_before:] == ["history"]

    @pytest.mark.asyncio
    async def test_events_reach_audit_log(self, operator, caplog):
        container = create_container(operator=operator)

        with caplog.at_level(logging.INFO, logger="stack_rollback.audit"):
            await container.rollback.execute(_request(1))

        assert "RollbackStartedEvent" in caplog.text
        assert "RollbackCompletedEvent" in caplog.text
        assert [e.event_type for e in container.event_bus.published] == [
            "RollbackStartedEvent",
            "TargetStateImportedEvent",
            "RollbackCompletedEvent",
        ]

    @pytest.mark.asyncio
    async def test_partial_rollback_leaves_target_state(
        self, stack, operator, snapshot_for
    ):
        container = create_container(operator=operator)
        stack.fail("apply", "quota exceeded")

        with pytest.raises(PartialRollbackError):
            await container.rollback.execute(_request(2))

        assert stack.state == snapshot_for(2)
        failed = container.event_bus.published[-1]
        assert failed.requires_manual_intervention is True
