"""
Configuration Module

Architectural Intent:
- Centralized configuration loading from a JSON file
- Provides typed access to all rollback settings
- Falls back to sensible defaults when config file is absent
- Environment variables override file-based config

Design Decisions:
- Config is a frozen dataclass for immutability after load
- Nested config sections map to sub-dataclasses
- Only the composition root and CLI read configuration
"""

from __future__ import annotations
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional
import dataclasses
import json
import logging
import os

logger = logging.getLogger(__name__)

_TOP_LEVEL_KEYS = ("log_level", "log_format")


@dataclass(frozen=True)
class StackConfig:
    """Which stack to operate on."""
    project_path: str = "."
    name: str = ""


@dataclass(frozen=True)
class PulumiConfig:
    """Pulumi backend settings."""
    backend_url: str = ""
    command: str = "pulumi"
    checkpoint_source: str = "auto"  # "auto", "cli" or "file"
    command_timeout: int = 300


@dataclass(frozen=True)
class RollbackConfig:
    """Root configuration for the rollback tool."""
    stack: StackConfig = field(default_factory=StackConfig)
    pulumi: PulumiConfig = field(default_factory=PulumiConfig)
    log_level: str = "WARNING"
    log_format: str = "text"  # "text" or "json"


def _env_override(data: dict, prefix: str = "ROLLBACK") -> dict:
    """Override config values with environment variables.

    Environment variables follow the pattern ROLLBACK_SECTION_KEY.
    For example: ROLLBACK_STACK_NAME=dev, ROLLBACK_PULUMI_BACKEND_URL=file://~
    Top-level keys are matched whole: ROLLBACK_LOG_LEVEL=DEBUG
    """
    for key, value in os.environ.items():
        if not key.startswith(f"{prefix}_"):
            continue
        rest = key[len(prefix) + 1:].lower()
        if rest in _TOP_LEVEL_KEYS:
            data[rest] = value
            continue
        parts = rest.split("_", 1)
        if len(parts) != 2:
            logger.warning("Ignoring %s: expected %s_SECTION_KEY", key, prefix)
            continue
        section, field_name = parts
        if not isinstance(data.get(section), dict):
            data[section] = {}
        data[section][field_name] = value
    return data


def _parse_config_file(path: Path) -> dict:
    """Parse a JSON config file. Returns empty dict on failure."""
    try:
        with open(path) as f:
            data = json.load(f)
    except FileNotFoundError:
        logger.debug("Config file not found: %s", path)
        return {}
    except json.JSONDecodeError as e:
        logger.warning("Invalid config file %s: %s", path, e)
        return {}
    if not isinstance(data, dict):
        logger.warning("Config file %s must contain a JSON object", path)
        return {}
    return data


def _section(data: dict, name: str) -> dict:
    """Return a config section, ignoring one that is not a JSON object."""
    section = data.get(name, {})
    if not isinstance(section, dict):
        logger.warning("Ignoring config section %r: expected an object", name)
        return {}
    return section


def _build_sub_config(cls, data: dict):
    """Build a sub-config dataclass from a dict, ignoring unknown keys."""
    valid_fields = {f.name for f in dataclasses.fields(cls)}
    filtered = {k: v for k, v in data.items() if k in valid_fields}

    # Convert string numbers to int
    for f in dataclasses.fields(cls):
        if f.name in filtered and isinstance(filtered[f.name], str):
            if f.type == "int":
                try:
                    filtered[f.name] = int(filtered[f.name])
                except ValueError:
                    raise ValueError(
                        f"{f.name} must be an integer, got {filtered[f.name]!r}"
                    ) from None

    return cls(**filtered)


def load_config(
    path: Optional[str] = None,
    env_prefix: str = "ROLLBACK",
) -> RollbackConfig:
    """Load configuration from file and environment variables.

    Priority (highest to lowest):
    1. Environment variables (ROLLBACK_SECTION_KEY)
    2. Config file values
    3. Defaults
    The stack name additionally falls back to PULUMI_STACK.

    Args:
        path: Path to config file (JSON). Defaults to rollback.json in CWD.
        env_prefix: Environment variable prefix. Defaults to ROLLBACK.
    """
    config_path = Path(path) if path else Path("rollback.json")
    data = _parse_config_file(config_path)
    data = _env_override(data, env_prefix)

    stack_data = dict(_section(data, "stack"))
    if not stack_data.get("name") and os.environ.get("PULUMI_STACK"):
        stack_data["name"] = os.environ["PULUMI_STACK"]

    return RollbackConfig(
        stack=_build_sub_config(StackConfig, stack_data),
        pulumi=_build_sub_config(PulumiConfig, _section(data, "pulumi")),
        log_level=data.get("log_level", "WARNING"),
        log_format=data.get("log_format", "text"),
    )
