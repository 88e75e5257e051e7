"""Tests for per-version checkpoint retrieval from Pulumi backends."""

import gzip
import json
import subprocess
from unittest.mock import patch

import pytest

from stack_rollback.domain.errors import (
    CheckpointParseError,
    CheckpointUnavailableError,
)
from stack_rollback.infrastructure.adapters.pulumi_checkpoint_store import (
    PulumiCheckpointStore,
    file_backend_root,
)

RUN = "stack_rollback.infrastructure.adapters.pulumi_checkpoint_store.subprocess.run"


def _completed(stdout="", returncode=0, stderr=""):
    return subprocess.CompletedProcess(
        args=["pulumi"], returncode=returncode, stdout=stdout, stderr=stderr
    )


def _write_history(directory, stack, timestamp, version, resources, compress=False):
    """Write a history/checkpoint pair the way a file:// backend lays them out."""
    directory.mkdir(parents=True, exist_ok=True)
    info = {"kind": "update", "result": "succeeded"}
    if version is not None:
        info["version"] = version
    checkpoint = {
        "version": 3,
        "checkpoint": {"stack": stack, "latest": {"resources": resources}},
    }
    suffix = ".json.gz" if compress else ".json"
    for kind, data in (("history", info), ("checkpoint", checkpoint)):
        path = directory / f"{stack}-{timestamp}.{kind}{suffix}"
        if compress:
            with gzip.open(path, "wt", encoding="utf-8") as f:
                json.dump(data, f)
        else:
            path.write_text(json.dumps(data))


class TestFileBackendRoot:
    def test_file_url(self, tmp_path):
        assert file_backend_root(f"file://{tmp_path}") == tmp_path

    def test_home_shorthand(self):
        assert file_backend_root("file://~").name != "~"

    @pytest.mark.parametrize("url", ["", "https://api.pulumi.com", "s3://bucket"])
    def test_other_backends(self, url):
        assert file_backend_root(url) is None


class TestConstruction:
    def test_rejects_unknown_source(self):
        with pytest.raises(ValueError, match="checkpoint source"):
            PulumiCheckpointStore(source="database")


class TestCliSource:
    def test_exported_version(self):
        exported = {"version": 3, "deployment": {"resources": [{"urn": "v2"}]}}
        with patch(RUN, return_value=_completed(json.dumps(exported))) as run:
            snapshot = PulumiCheckpointStore(source="cli").fetch(
                "dev", 2, work_dir="/srv/app", env={"PULUMI_CONFIG_PASSPHRASE": "x"}
            )

        assert snapshot.schema_version == 3
        assert snapshot.parse() == {"resources": [{"urn": "v2"}]}
        cmd = run.call_args.args[0]
        assert cmd == [
            "pulumi", "stack", "export", "--stack", "dev",
            "--version", "2", "--non-interactive",
        ]
        assert run.call_args.kwargs["cwd"] == "/srv/app"
        assert run.call_args.kwargs["env"]["PULUMI_CONFIG_PASSPHRASE"] == "x"

    def test_nonzero_exit_is_unavailable(self):
        failed = _completed(returncode=255, stderr="error: unknown flag: --version")
        with patch(RUN, return_value=failed):
            with pytest.raises(CheckpointUnavailableError, match="unknown flag"):
                PulumiCheckpointStore(source="cli").fetch("dev", 2)

    def test_missing_executable(self):
        with patch(RUN, side_effect=FileNotFoundError()):
            with pytest.raises(CheckpointUnavailableError, match="not found"):
                PulumiCheckpointStore(command="pulumi-x", source="cli").fetch("dev", 2)

    def test_timeout(self):
        with patch(RUN, side_effect=subprocess.TimeoutExpired("pulumi", 5)):
            with pytest.raises(CheckpointUnavailableError, match="timed out"):
                PulumiCheckpointStore(source="cli", timeout=5).fetch("dev", 2)

    def test_garbled_output(self):
        with patch(RUN, return_value=_completed("{not json")):
            with pytest.raises(CheckpointParseError):
                PulumiCheckpointStore(source="cli").fetch("dev", 2)

    def test_output_without_deployment(self):
        with patch(RUN, return_value=_completed('{"version": 3}')):
            with pytest.raises(CheckpointParseError, match="no deployment"):
                PulumiCheckpointStore(source="cli").fetch("dev", 2)


class TestFileSource:
    def test_project_scoped_history(self, tmp_path):
        history = tmp_path / ".pulumi" / "history" / "app" / "dev"
        _write_history(history, "dev", 1000, 1, [{"urn": "v1"}])
        _write_history(history, "dev", 2000, 2, [{"urn": "v2"}])
        store = PulumiCheckpointStore(backend_url=f"file://{tmp_path}", source="file")

        snapshot = store.fetch("dev", 1, project_name="app")

        assert snapshot.parse() == {"resources": [{"urn": "v1"}]}
        assert snapshot.schema_version == 3

    def test_legacy_layout_with_gzip(self, tmp_path):
        history = tmp_path / ".pulumi" / "history" / "dev"
        _write_history(history, "dev", 1000, 1, [{"urn": "v1"}], compress=True)
        _write_history(history, "dev", 2000, 2, [{"urn": "v2"}], compress=True)
        store = PulumiCheckpointStore(source="file")

        snapshot = store.fetch("org/app/dev", 2, backend_url=f"file://{tmp_path}")

        assert snapshot.parse() == {"resources": [{"urn": "v2"}]}

    def test_unversioned_entries_use_chronological_position(self, tmp_path):
        history = tmp_path / ".pulumi" / "history" / "dev"
        _write_history(history, "dev", 3000, None, [{"urn": "third"}])
        _write_history(history, "dev", 1000, None, [{"urn": "first"}])
        _write_history(history, "dev", 2000, None, [{"urn": "second"}])
        store = PulumiCheckpointStore(backend_url=f"file://{tmp_path}", source="file")

        assert store.fetch("dev", 2).parse() == {"resources": [{"urn": "second"}]}

    def test_other_stacks_are_ignored(self, tmp_path):
        history = tmp_path / ".pulumi" / "history" / "dev"
        _write_history(history, "dev-canary", 1000, 1, [{"urn": "canary"}])
        store = PulumiCheckpointStore(backend_url=f"file://{tmp_path}", source="file")

        with pytest.raises(CheckpointUnavailableError, match="no history entry"):
            store.fetch("dev", 1)

    def test_missing_checkpoint_file(self, tmp_path):
        history = tmp_path / ".pulumi" / "history" / "dev"
        _write_history(history, "dev", 1000, 1, [])
        (history / "dev-1000.checkpoint.json").unlink()
        store = PulumiCheckpointStore(backend_url=f"file://{tmp_path}", source="file")

        with pytest.raises(CheckpointUnavailableError, match="missing"):
            store.fetch("dev", 1)

    def test_checkpoint_without_deployment(self, tmp_path):
        history = tmp_path / ".pulumi" / "history" / "dev"
        _write_history(history, "dev", 1000, 1, [])
        (history / "dev-1000.checkpoint.json").write_text('{"version": 3}')
        store = PulumiCheckpointStore(backend_url=f"file://{tmp_path}", source="file")

        with pytest.raises(CheckpointUnavailableError, match="records no deployment"):
            store.fetch("dev", 1)

    def test_corrupt_history_file(self, tmp_path):
        history = tmp_path / ".pulumi" / "history" / "dev"
        history.mkdir(parents=True)
        (history / "dev-1000.history.json").write_text("{broken")
        store = PulumiCheckpointStore(backend_url=f"file://{tmp_path}", source="file")

        with pytest.raises(CheckpointParseError):
            store.fetch("dev", 1)

    def test_non_file_backend(self):
        store = PulumiCheckpointStore(source="file")

        with pytest.raises(CheckpointUnavailableError, match="not a file:// backend"):
            store.fetch("dev", 1, backend_url="https://api.pulumi.com")


class TestAutoSource:
    def test_prefers_cli(self, tmp_path):
        exported = {"version": 3, "deployment": {"resources": [{"urn": "cli"}]}}
        store = PulumiCheckpointStore(backend_url=f"file://{tmp_path}")

        with patch(RUN, return_value=_completed(json.dumps(exported))):
            snapshot = store.fetch("dev", 1)

        assert snapshot.parse() == {"resources": [{"urn": "cli"}]}

    def test_falls_back_to_history_dir(self, tmp_path):
        _write_history(
            tmp_path / ".pulumi" / "history" / "dev", "dev", 1000, 1, [{"urn": "file"}]
        )
        store = PulumiCheckpointStore(backend_url=f"file://{tmp_path}")

        with patch(RUN, return_value=_completed(returncode=1, stderr="unsupported")):
            snapshot = store.fetch("dev", 1)

        assert snapshot.parse() == {"resources": [{"urn": "file"}]}

    def test_reports_every_reason(self):
        store = PulumiCheckpointStore()

        with patch(RUN, return_value=_completed(returncode=1, stderr="unsupported")):
            with pytest.raises(CheckpointUnavailableError) as exc_info:
                store.fetch("dev", 4, backend_url="https://api.pulumi.com")

        assert "unsupported" in exc_info.value.reason
        assert "not a file:// backend" in exc_info.value.reason
