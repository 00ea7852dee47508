"""Repository CLI commands for extlock.

Build the extensions repository lock from remote extension definitions.
"""

from pathlib import Path
from typing import Optional

import typer

from cli.commands.extensions import get_content_host
from cli.extlock.output import print_error, print_info, print_success
from extensions.config import get_config
from extensions.errors import ChildResolutionError, ExtensionError

repository_app = typer.Typer(
    name="repository",
    help="Build and maintain extension repository locks.",
)


@repository_app.command("upgrade")
def upgrade_repository(
    input_file: Optional[Path] = typer.Option(
        None,
        "--input",
        "-i",
        help="Repository definition (default: extensions-repository.yaml)",
    ),
    output_file: Optional[Path] = typer.Option(
        None,
        "--output",
        "-o",
        help="Lock file to update (default: extensions-repository.lock.yaml)",
    ),
    version: Optional[str] = typer.Option(
        None,
        "--version",
        help="Version stamp for the new lock (default: VERSION or previous + 1)",
    ),
) -> None:
    """Regenerate the repository lock from its remotes.

    The existing lock file is used as the previous lock so extension UUIDs
    and unchanged versions carry forward.

    Examples:
        extlock repository upgrade
        extlock repository upgrade -i repo.yaml -o repo.lock.yaml --version 42
    """
    from extensions.lock_builder import LockBuilder, update_repository_lock

    config = get_config()
    input_path = input_file or Path(config.repository.input_file)
    output_path = output_file or Path(config.repository.output_file)

    builder = LockBuilder(get_content_host(config), config.repository.definitions_file)
    try:
        lock, changes = update_repository_lock(
            builder,
            input_path,
            output_path,
            version=version or config.repository.version or None,
        )
    except ChildResolutionError as e:
        print_error(str(e))
        if e.partial_path:
            print_info(f"Inspect the partial lock at {e.partial_path}")
        raise typer.Exit(1)
    except ExtensionError as e:
        print_error(str(e))
        raise typer.Exit(1)

    print_success(f"Wrote {output_path} version {lock.version}")
    if not changes:
        print_info("No extension changes")
    for change in changes:
        print_info(change)
