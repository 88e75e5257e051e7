"""
CLI Module

Architectural Intent:
- Command-line interface for stack rollback
- Builds RollbackRequests, delegates to use cases via the composition root
- Renders history tables and rollback outcomes; maps failures to exit status 1
- Supports --verbose/--debug flags for log level control
"""

import argparse
import asyncio
import logging
import sys
import traceback
from datetime import datetime
from importlib.metadata import PackageNotFoundError, version as package_version
from typing import Optional

from stack_rollback.application.dtos.rollback_dtos import RollbackRequest
from stack_rollback.composition_root import create_container
from stack_rollback.domain.entities.deployment_record import DeploymentRecord
from stack_rollback.domain.events import RollbackFailedEvent
from stack_rollback.domain.errors import (
    IndeterminateStateError,
    PartialRollbackError,
    RollbackError,
)
from stack_rollback.infrastructure.config import load_config
from stack_rollback.infrastructure.logging import configure_logging, level_from_name

DESCRIPTION = "Stack Rollback: revert a Pulumi stack to a previous deployment"


def format_time(value: Optional[datetime]) -> str:
    if value is None:
        return "N/A"
    return value.strftime("%Y-%m-%d %H:%M")


def format_result(result: str) -> str:
    return {
        "succeeded": "✓ success",
        "failed": "✗ failed",
        "in-progress": "⟳ running",
    }.get(result, result)


def format_changes(changes: dict[str, int]) -> str:
    parts = []
    if changes.get("create", 0) > 0:
        parts.append(f"+{changes['create']}")
    if changes.get("update", 0) > 0:
        parts.append(f"~{changes['update']}")
    if changes.get("delete", 0) > 0:
        parts.append(f"-{changes['delete']}")
    if not parts and changes.get("same", 0) > 0:
        return f"={changes['same']}"
    return " ".join(parts) or "-"


def truncate(text: str, max_len: int = 40) -> str:
    if len(text) <= max_len:
        return text
    return text[: max_len - 3] + "..."


def render_history(records: list[DeploymentRecord]) -> str:
    header = ("VERSION", "KIND", "RESULT", "TIME", "CHANGES", "MESSAGE")
    rows = [header, tuple("-" * len(h) for h in header)]
    for record in records:
        rows.append((
            str(record.version),
            record.kind,
            format_result(record.result),
            format_time(record.start_time),
            format_changes(record.resource_changes),
            truncate(record.message),
        ))
    widths = [max(len(row[i]) for row in rows) for i in range(len(header))]
    lines = [
        "  ".join(cell.ljust(widths[i]) for i, cell in enumerate(row)).rstrip()
        for row in rows
    ]
    return "\n".join(lines)


def describe_target(record: DeploymentRecord) -> None:
    print(f"  Kind: {record.kind}")
    print(f"  Result: {record.result}")
    print(f"  Time: {format_time(record.start_time)}")
    if record.message:
        print(f"  Message: {record.message}")
    print()


def print_changes(title: str, changes: dict[str, int]) -> None:
    if not changes:
        return
    print(f"\n{title}")
    for change, count in changes.items():
        print(f"  {change}: {count}")


def confirm(prompt: str = "Do you want to proceed? [y/N]: ") -> bool:
    try:
        response = input(prompt)
    except EOFError:
        return False
    return response.strip().lower() in ("y", "yes")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description=DESCRIPTION)
    parser.add_argument("--stack", "-s", help="Name of the Pulumi stack")
    parser.add_argument(
        "--cwd", "-C", help="Path to the Pulumi project directory (default: .)"
    )
    parser.add_argument("--config", help="Path to a JSON config file")
    parser.add_argument(
        "--verbose", "-v", action="store_true", help="Enable verbose output"
    )
    parser.add_argument(
        "--debug", action="store_true", help="Enable debug output with tracebacks"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    list_parser = subparsers.add_parser(
        "list", help="List deployment history for a stack"
    )
    list_parser.add_argument(
        "--limit", "-n", type=int, default=0,
        help="Limit the number of entries to show (0 = all)",
    )

    preview_parser = subparsers.add_parser(
        "preview", help="Preview changes that would be made by rolling back"
    )
    preview_parser.add_argument(
        "--version", "-V", type=int, required=True, dest="target_version",
        help="Target version to roll back to",
    )

    to_parser = subparsers.add_parser("to", help="Roll back to a specific version")
    to_parser.add_argument(
        "--version", "-V", type=int, required=True, dest="target_version",
        help="Target version to roll back to",
    )
    to_parser.add_argument(
        "--yes", "-y", action="store_true", help="Skip confirmation prompt"
    )

    subparsers.add_parser("version", help="Print the version information")
    return parser


def _tool_version() -> str:
    try:
        return package_version("stack-rollback")
    except PackageNotFoundError:
        return "dev"


async def run_list(container, stack_name: str, project_path: str, limit: int) -> None:
    records = await container.list_history.execute(stack_name, project_path, limit)
    if not records:
        print("No deployment history found for this stack.")
        return
    print(render_history(records))
    print(f"\nTotal: {len(records)} deployment(s)")
    print(
        "\nUse 'stack-rollback --stack <stack> preview --version <n>' "
        "to preview a rollback"
    )


async def run_preview(container, request: RollbackRequest) -> None:
    plan = await container.rollback.plan(request)
    if plan.is_current:
        print(
            f"Warning: Version {request.target_version} is the current version. "
            "No rollback needed."
        )
        return

    print(f"[*] Previewing rollback to version {request.target_version}...")
    describe_target(plan.target)

    outcome = await container.rollback.preview(request)
    print(f"\n{outcome.message}")
    print_changes("Resource changes:", outcome.resource_changes)
    print("\nTo execute this rollback, run:")
    print(
        f"  stack-rollback --stack {request.stack_name} to "
        f"--version {request.target_version}"
    )


async def run_rollback(
    container, request: RollbackRequest, skip_confirm: bool
) -> None:
    plan = await container.rollback.plan(request)
    if plan.is_current:
        print(
            f"Version {request.target_version} is the current version. "
            "No rollback needed."
        )
        return

    print(
        f"[*] Rolling back stack '{request.stack_name}' "
        f"to version {request.target_version}"
    )
    describe_target(plan.target)
    print("[!] WARNING: This will modify your infrastructure!")
    print(f"   Current version: {plan.latest_version}")
    print(f"   Target version:  {request.target_version}")
    print()

    if not skip_confirm and not confirm():
        print("Rollback cancelled.")
        return

    print("\n[*] Starting rollback...")
    outcome = await container.rollback.execute(request)
    print(f"\n[+] {outcome.message}")
    print_changes("Resource changes applied:", outcome.resource_changes)


def _print_manual_intervention(message: str) -> None:
    print("[!] MANUAL INTERVENTION REQUIRED")
    print(f"[-] {message}")
    print(
        "[!] The stack state was changed and is not what it was before this "
        "command. Inspect it with 'pulumi stack export' and 'pulumi preview' "
        "before running further updates."
    )


def _interrupted_forward_only(container) -> bool:
    """True when the last failed rollback left the stack partially rolled back."""
    failures = [
        e for e in container.event_bus.published if isinstance(e, RollbackFailedEvent)
    ]
    return bool(failures) and failures[-1].requires_manual_intervention


def _report_failure(error: Exception, verbose: bool) -> None:
    if isinstance(error, (PartialRollbackError, IndeterminateStateError)):
        _print_manual_intervention(str(error))
    else:
        print(f"[-] {error}")
    if verbose:
        traceback.print_exc()


async def async_main(argv: Optional[list[str]] = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        config = load_config(args.config)
    except ValueError as e:
        print(f"[-] invalid configuration: {e}")
        sys.exit(1)

    # Configure logging based on flags
    if args.debug:
        level = logging.DEBUG
    elif args.verbose:
        level = logging.INFO
    else:
        level = level_from_name(config.log_level)
    configure_logging(level=level, json_format=config.log_format == "json")

    verbose = args.verbose or args.debug

    if args.command is None:
        parser.print_help()
        return

    if args.command == "version":
        print(f"stack-rollback {_tool_version()}")
        return

    stack_name = args.stack or config.stack.name
    project_path = args.cwd or config.stack.project_path
    if not stack_name:
        print(
            "[-] stack name is required: use --stack flag or set "
            "PULUMI_STACK environment variable"
        )
        sys.exit(1)

    container = None
    try:
        container = create_container(config)

        if args.command == "list":
            if verbose:
                print(
                    f"[*] Fetching history for stack {stack_name} in {project_path}..."
                )
            await run_list(container, stack_name, project_path, args.limit)
            return

        request = RollbackRequest(
            project_path=project_path,
            stack_name=stack_name,
            target_version=args.target_version,
            dry_run=args.command == "preview",
            verbose=verbose,
            output=sys.stdout,
        )
        if args.command == "preview":
            await run_preview(container, request)
        else:
            await run_rollback(container, request, args.yes)
    except (RollbackError, ValueError) as e:
        _report_failure(e, verbose)
        sys.exit(1)
    except asyncio.CancelledError:
        if container is not None and _interrupted_forward_only(container):
            _print_manual_intervention(
                "rollback was interrupted after the target state was imported"
            )
        raise


def main():
    try:
        asyncio.run(async_main())
    except KeyboardInterrupt:
        print("\n[*] Interrupted.")
        sys.exit(130)


if __name__ == "__main__":
    main()
