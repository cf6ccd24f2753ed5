"""
Command-line front end for the grant engine.

Usage:
    grant-engine validate origin.json
    grant-engine summary origin.json --compendium compendium.json
    grant-engine migrate legacy-origin.json
    grant-engine apply origin.json actor.json --compendium compendium.json --seed 7 --write

Exit codes:
    0 - Success
    1 - Validation errors, or grants that failed to apply
    2 - Input files could not be read
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any

from pydantic import ValidationError
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from .config import load_config
from .manager import GrantsManager, coerce_item
from .state.actor import MemoryActor
from .state.resolver import MemoryCompendium
from .state.schema import ApplyOptions, GrantsApplicationResult, ItemData
from .tools.dice import SeededRandomSource

console = Console()


class InputError(Exception):
    """An input file is missing or not valid JSON."""


def _read_json(path: Path) -> Any:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise InputError(f"Could not read {path}: {exc}") from exc


def _load_item(path: Path) -> ItemData:
    data = _read_json(path)
    if not isinstance(data, dict):
        raise InputError(f"{path} does not hold a single item")
    try:
        return coerce_item(data)
    except ValidationError as exc:
        raise InputError(f"{path} is not a valid item: {exc}") from exc


def _load_actor(path: Path) -> MemoryActor:
    try:
        return MemoryActor(_read_json(path))
    except ValidationError as exc:
        raise InputError(f"{path} is not a valid actor: {exc}") from exc


def _build_manager(args: argparse.Namespace) -> GrantsManager:
    config = load_config(args.config)
    compendium = MemoryCompendium()
    if args.compendium:
        try:
            compendium = MemoryCompendium.load(args.compendium)
        except (OSError, json.JSONDecodeError, ValidationError) as exc:
            raise InputError(f"Could not load compendium {args.compendium}: {exc}") from exc
    return GrantsManager(
        resolver=compendium,
        random=SeededRandomSource(args.seed),
        config=config,
    )


# -----------------------------------------------------------------------------
# Commands
# -----------------------------------------------------------------------------

def cmd_validate(args: argparse.Namespace) -> int:
    item = _load_item(args.item)
    manager = _build_manager(args)
    errors = manager.validate_item_grants(item)

    if not manager.extract_grants(item):
        console.print(f"[yellow]{item.name} carries no grants[/yellow]")
        return 0

    if errors:
        console.print(f"[red]{len(errors)} problem(s) in {item.name}:[/red]")
        for error in errors:
            console.print(f"  [red]-[/red] {error}")
        return 1

    console.print(f"[green]{item.name}: all grants valid[/green]")
    return 0


def cmd_summary(args: argparse.Namespace) -> int:
    item = _load_item(args.item)
    manager = _build_manager(args)
    summary = asyncio.run(manager.get_grants_summary(item))

    if not summary.grants:
        console.print(f"[yellow]{summary.item} carries no grants[/yellow]")
        return 0

    table = Table(title=summary.item)
    table.add_column("Grant")
    table.add_column("Type", style="dim")
    table.add_column("Entry")
    table.add_column("Value")

    for grant in summary.grants:
        label = grant.label + (" (optional)" if grant.optional else "")
        if grant.options is not None:
            table.add_row(label, grant.type, f"choose {grant.choice_count}", "")
            for option in grant.options:
                table.add_row("", "", f"[bold]{option.label}[/bold]", option.description)
                for nested in option.grants:
                    for detail in nested.details:
                        table.add_row("", nested.type, f"  {detail.label}", detail.value)
            continue

        if not grant.details:
            table.add_row(label, grant.type, "", "")
        for i, detail in enumerate(grant.details):
            value = f"[red]{detail.value}[/red]" if detail.error else detail.value
            table.add_row(label if i == 0 else "", grant.type if i == 0 else "", detail.label, value)

    console.print(table)
    return 0


def cmd_migrate(args: argparse.Namespace) -> int:
    item = _load_item(args.item)
    manager = _build_manager(args)
    system = item.system or {}
    configs = manager.migrate_old_grants(system.get("grants"), system.get("modifiers"))
    console.print_json(data=configs)
    return 0


def _print_result(result: GrantsApplicationResult, indent: str = "") -> None:
    for message in result.notifications:
        console.print(f"{indent}[green]+[/green] {message}")
    for message in result.errors:
        console.print(f"{indent}[red]![/red] {message}")
    for nested in result.nested:
        _print_result(nested, indent + "  ")


def cmd_apply(args: argparse.Namespace) -> int:
    item = _load_item(args.item)
    actor = _load_actor(args.actor)
    selections = _read_json(args.selections) if args.selections else {}
    if not isinstance(selections, dict):
        raise InputError(f"{args.selections} does not hold a selections object")
    manager = _build_manager(args)

    options = ApplyOptions(
        dry_run=args.dry_run,
        force=args.force,
        selections=selections.get("selections", selections),
        rolled_values=selections.get("rolledValues", {}),
    )
    result = asyncio.run(manager.apply_item_grants(item, actor, options))

    verb = "Previewing" if args.dry_run else "Applied"
    console.print(f"[bold]{verb} grants from {item.name} on {actor.name}[/bold]")
    _print_result(result)

    if args.write and not args.dry_run:
        actor.save(args.actor)
        console.print(f"[dim]Saved {args.actor}[/dim]")

    return 0 if result.success else 1


# -----------------------------------------------------------------------------
# Entry point
# -----------------------------------------------------------------------------

def build_parser() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--config", type=Path, help="Engine config JSON file")
    common.add_argument("--compendium", type=Path, help="JSON file of item templates")
    common.add_argument("--seed", type=int, default=None, help="Seed for dice rolls")
    common.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    parser = argparse.ArgumentParser(
        prog="grant-engine",
        description="Validate, preview and apply grants carried by source items",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("validate", parents=[common], help="Check an item's grant configs")
    p.add_argument("item", type=Path)
    p.set_defaults(func=cmd_validate)

    p = sub.add_parser("summary", parents=[common], help="Show what an item would grant")
    p.add_argument("item", type=Path)
    p.set_defaults(func=cmd_summary)

    p = sub.add_parser("migrate", parents=[common], help="Print legacy grants converted to grant configs")
    p.add_argument("item", type=Path)
    p.set_defaults(func=cmd_migrate)

    p = sub.add_parser("apply", parents=[common], help="Apply an item's grants to an actor")
    p.add_argument("item", type=Path)
    p.add_argument("actor", type=Path)
    p.add_argument("--selections", type=Path, help="JSON of per-grant selections and rolledValues")
    p.add_argument("--dry-run", action="store_true", help="Compute without changing the actor")
    p.add_argument("--force", action="store_true", help="Apply even if already recorded on the actor")
    p.add_argument("--write", action="store_true", help="Save the actor file afterwards")
    p.set_defaults(func=cmd_apply)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    level = "DEBUG" if args.verbose else load_config(args.config).get("log_level", "INFO")
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )

    try:
        return args.func(args)
    except InputError as exc:
        console.print(f"[red]{exc}[/red]")
        return 2


if __name__ == "__main__":
    sys.exit(main())
