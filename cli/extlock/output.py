"""Rich console output utilities for the extlock CLI."""

import logging
from typing import Any

from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from extensions.installer import UpgradePlan
from extensions.manifest import ExtensionRecord, RepositoryLock

console = Console()
error_console = Console(stderr=True)


def setup_logging(level: str = "INFO") -> None:
    """Route log records through rich on stderr."""
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        handlers=[
            RichHandler(
                console=error_console,
                rich_tracebacks=True,
                show_time=False,
                show_path=False,
                markup=False,
            )
        ],
        force=True,
    )


def print_success(message: str) -> None:
    """Print a success message."""
    console.print(f"[green]✓[/green] {escape(message)}")


def print_error(message: str) -> None:
    """Print an error message to stderr."""
    error_console.print(f"[red]✗[/red] {escape(message)}", highlight=False)


def print_warning(message: str) -> None:
    """Print a warning message."""
    console.print(f"[yellow]![/yellow] {escape(message)}")


def print_info(message: str) -> None:
    """Print an info message."""
    console.print(f"[blue]→[/blue] {escape(message)}")


def print_key_value(key: str, value: Any, key_style: str = "bold") -> None:
    """Print a key-value pair."""
    console.print(f"[{key_style}]{key}:[/{key_style}] {value}")


def print_lock(lock: RepositoryLock) -> None:
    """Print the extensions of a repository lock as a table."""
    if not lock.extensions:
        print_info(f"Repository version {lock.version or '-'} contains no extensions.")
        return

    table = Table(title=f"Extensions repository version {lock.version or '-'}")
    table.add_column("Name", style="cyan")
    table.add_column("Version")
    table.add_column("UUID", style="dim")
    table.add_column("When")
    table.add_column("Children", justify="right")

    for spec in sorted(lock.extensions, key=lambda s: s.fully_qualified_name):
        table.add_row(
            spec.fully_qualified_name,
            spec.version,
            spec.uuid,
            ", ".join(w.value for w in spec.when) or "-",
            str(len(spec.children)) if spec.children else "-",
        )

    console.print(table)
    console.print(f"\n[dim]Total: {len(lock.extensions)} extensions[/dim]")


def print_installed(records: list[ExtensionRecord]) -> None:
    """Print installed extension records as a table."""
    table = Table(title="Installed Extensions")
    table.add_column("Name", style="cyan")
    table.add_column("Version")
    table.add_column("UUID", style="dim")
    table.add_column("Description")

    for record in sorted(records, key=lambda r: r.name):
        table.add_row(record.name, record.spec.version, record.uuid, record.spec.description or "-")

    console.print(table)
    console.print(f"\n[dim]Total: {len(records)} extensions[/dim]")


def print_plan(plan: UpgradePlan, dry_run: bool = False) -> None:
    """Summarize an upgrade run."""
    if not plan.changed:
        print_success("All extensions are up to date.")
        return

    verb = "Would add" if dry_run else "Added"
    for name in plan.created:
        print_info(f"{verb} {name}")
    verb = "Would upgrade" if dry_run else "Upgraded"
    for name, old, new in plan.upgraded:
        print_info(f"{verb} {name} from {old} to {new}")

    if plan.executables:
        header = "Hooks to run" if dry_run else "Hooks run"
        console.print(f"\n[bold]{header}:[/bold]")
        for i, executable in enumerate(plan.executables, 1):
            console.print(f"  {i}. {executable.fully_qualified_name} {executable.version}")
