"""Global test configuration.

Shared fixtures: an in-memory "dev" stack with three recorded deployments,
each with its own checkpoint, and an operator that selects it.
"""

import io

import pytest

from stack_rollback.application.dtos.rollback_dtos import RollbackRequest
from stack_rollback.domain.value_objects.state_snapshot import StateSnapshot
from stack_rollback.infrastructure.adapters.in_memory_adapter import (
    InMemoryStack,
    InMemoryStackOperator,
)


def _snapshot_for(version: int) -> StateSnapshot:
    return StateSnapshot.from_mapping(
        {
            "manifest": {"magic": f"v{version}"},
            "resources": [{"urn": f"urn:pulumi:dev::app::bucket::b{version}"}],
        },
        schema_version=3,
    )


@pytest.fixture
def stack():
    dev = InMemoryStack("dev")
    for version in (1, 2, 3):
        dev.record_deployment(_snapshot_for(version), message=f"deploy {version}")
    return dev


@pytest.fixture
def operator(stack):
    return InMemoryStackOperator([stack])


@pytest.fixture
def make_request():
    def _make(target_version: int = 1, **overrides) -> RollbackRequest:
        params = {
            "project_path": ".",
            "stack_name": "dev",
            "target_version": target_version,
            "output": io.StringIO(),
        }
        params.update(overrides)
        return RollbackRequest(**params)

    return _make


@pytest.fixture
def snapshot_for():
    """The checkpoint recorded for each version of the "dev" stack."""
    return _snapshot_for
