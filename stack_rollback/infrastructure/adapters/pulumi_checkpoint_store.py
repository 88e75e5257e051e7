"""
Pulumi Checkpoint Store

Architectural Intent:
- Retrieves the state recorded for one historical version of a Pulumi stack
- The Automation API only exports the latest state, so this goes around it

Sources, in order for checkpoint_source="auto":
1. `pulumi stack export --version N` (Pulumi Cloud, newer self-managed backends)
2. The history directory of a file:// backend:
   .pulumi/history/<project>/<stack>/<stack>-<unixnano>.history.json[.gz]
   next to the matching .checkpoint.json[.gz]
When neither can supply the version, CheckpointUnavailableError is raised.
The current state is never returned in place of a historical one.
"""

import gzip
import json
import logging
import os
import re
import subprocess
from pathlib import Path
from typing import Any, Optional

from stack_rollback.domain.errors import (
    CheckpointParseError,
    CheckpointUnavailableError,
)
from stack_rollback.domain.value_objects.state_snapshot import StateSnapshot

logger = logging.getLogger(__name__)

CHECKPOINT_SOURCES = ("auto", "cli", "file")

_HISTORY_SUFFIX_RE = re.compile(r"-(\d+)\.history\.json(\.gz)?$")


def file_backend_root(backend_url: str) -> Optional[Path]:
    """Return the directory of a file:// backend URL, or None for other backends."""
    if not backend_url or not backend_url.startswith("file://"):
        return None
    location = backend_url[len("file://"):] or "~"
    return Path(location).expanduser()


def _read_json(path: Path) -> Any:
    try:
        if path.suffix == ".gz":
            with gzip.open(path, "rt", encoding="utf-8") as f:
                return json.load(f)
        with open(path, encoding="utf-8") as f:
            return json.load(f)
    except json.JSONDecodeError as e:
        raise CheckpointParseError(f"failed to parse {path}: {e}") from e


class PulumiCheckpointStore:
    def __init__(
        self,
        command: str = "pulumi",
        backend_url: str = "",
        source: str = "auto",
        timeout: int = 300,
    ):
        if source not in CHECKPOINT_SOURCES:
            raise ValueError(
                f"checkpoint source must be one of {CHECKPOINT_SOURCES}, got {source!r}"
            )
        self.command = command
        self.backend_url = backend_url
        self.source = source
        self.timeout = timeout

    def fetch(
        self,
        stack_name: str,
        version: int,
        work_dir: str = ".",
        project_name: str = "",
        env: Optional[dict[str, str]] = None,
        backend_url: str = "",
    ) -> StateSnapshot:
        """Return the snapshot committed by deployment `version` of the stack."""
        reasons = []
        if self.source in ("auto", "cli"):
            try:
                return self._from_cli(stack_name, version, work_dir, env)
            except CheckpointUnavailableError as e:
                if self.source == "cli":
                    raise
                reasons.append(e.reason)

        root = file_backend_root(self.backend_url or backend_url)
        if root is None:
            reasons.append("backend is not a file:// backend")
        else:
            try:
                return self._from_history_dir(root, stack_name, project_name, version)
            except CheckpointUnavailableError as e:
                reasons.append(e.reason)

        raise CheckpointUnavailableError(version, "; ".join(reasons))

    def _from_cli(
        self,
        stack_name: str,
        version: int,
        work_dir: str,
        env: Optional[dict[str, str]],
    ) -> StateSnapshot:
        cmd = [self.command, "stack", "export", "--stack", stack_name,
               "--version", str(version), "--non-interactive"]
        logger.debug("Running %s in %s", " ".join(cmd), work_dir)
        try:
            result = subprocess.run(
                cmd,
                cwd=work_dir,
                capture_output=True,
                text=True,
                timeout=self.timeout,
                env={**os.environ, **(env or {})},
            )
        except FileNotFoundError:
            raise CheckpointUnavailableError(
                version, f"'{self.command}' executable not found"
            )
        except subprocess.TimeoutExpired:
            raise CheckpointUnavailableError(
                version, f"stack export timed out after {self.timeout}s"
            )

        if result.returncode != 0:
            detail = (result.stderr or result.stdout).strip()
            detail = detail or f"exit status {result.returncode}"
            raise CheckpointUnavailableError(version, f"stack export failed: {detail}")

        try:
            exported = json.loads(result.stdout)
        except json.JSONDecodeError as e:
            raise CheckpointParseError(
                f"failed to parse exported deployment: {e}"
            ) from e
        if not isinstance(exported, dict) or "deployment" not in exported:
            raise CheckpointParseError("exported document has no deployment section")
        return StateSnapshot.from_mapping(
            exported["deployment"], exported.get("version")
        )

    def _history_dirs(
        self, root: Path, stack_name: str, project_name: str
    ) -> list[Path]:
        short_name = stack_name.split("/")[-1]
        history_root = root / ".pulumi" / "history"
        dirs = []
        if project_name:
            dirs.append(history_root / project_name / short_name)
        # Stores created before project-scoped stacks
        dirs.append(history_root / short_name)
        return [d for d in dirs if d.is_dir()]

    def _from_history_dir(
        self, root: Path, stack_name: str, project_name: str, version: int
    ) -> StateSnapshot:
        short_name = stack_name.split("/")[-1]
        for history_dir in self._history_dirs(root, stack_name, project_name):
            entries = []
            for path in history_dir.glob(f"{short_name}-*.history.json*"):
                match = _HISTORY_SUFFIX_RE.search(path.name)
                if match and path.name[:match.start()] == short_name:
                    entries.append((int(match.group(1)), path))
            entries.sort()

            for ordinal, (_, history_file) in enumerate(entries, start=1):
                info = _read_json(history_file)
                # Older stores do not write the version; it is the 1-based position
                recorded = info.get("version") if isinstance(info, dict) else None
                if (recorded or ordinal) != version:
                    continue
                checkpoint_file = history_file.with_name(
                    history_file.name.replace(".history.json", ".checkpoint.json")
                )
                if not checkpoint_file.exists():
                    raise CheckpointUnavailableError(
                        version, f"checkpoint file {checkpoint_file} is missing"
                    )
                logger.debug(
                    "Reading checkpoint for version %d from %s", version, checkpoint_file
                )
                return self._snapshot_from_checkpoint(
                    _read_json(checkpoint_file), version
                )

        raise CheckpointUnavailableError(
            version, f"no history entry for version {version} under {root}"
        )

    @staticmethod
    def _snapshot_from_checkpoint(data: Any, version: int) -> StateSnapshot:
        if not isinstance(data, dict):
            raise CheckpointParseError("checkpoint file is not a JSON object")
        latest = (data.get("checkpoint") or {}).get("latest")
        if latest is None:
            raise CheckpointUnavailableError(
                version, "checkpoint file records no deployment"
            )
        return StateSnapshot.from_mapping(latest, data.get("version"))
