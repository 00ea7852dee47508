"""extlock CLI.

Main command-line interface for building repository locks and upgrading
installed extensions.
"""

from pathlib import Path
from typing import Optional

import typer

from cli.extlock.output import (
    console,
    print_error,
    print_info,
    print_key_value,
    print_success,
    print_warning,
    setup_logging,
)

app = typer.Typer(
    name="extlock",
    help="extlock - extension repository locks and upgrades",
    no_args_is_help=True,
)

# Config sub-app
config_app = typer.Typer(
    name="config",
    help="Manage configuration settings.",
)
app.add_typer(config_app, name="config")

# Register command modules
from cli.commands.extensions import list_installed, show_lock, upgrade  # noqa: E402
from cli.commands.repository import repository_app  # noqa: E402

app.add_typer(repository_app, name="repository")
app.command("upgrade")(upgrade)
app.command("list")(list_installed)
app.command("show")(show_lock)


@app.callback()
def main_callback(
    log_level: Optional[str] = typer.Option(
        None,
        "--log-level",
        help="Log level (default: EXTLOCK_LOG_LEVEL or logging.level from extlock.toml)",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Shorthand for --log-level DEBUG",
    ),
) -> None:
    """Configure logging for every command."""
    from extensions.config import get_config
    from extensions.errors import ConfigError

    try:
        level = log_level or get_config().logging.level
    except ConfigError as e:
        print_error(str(e))
        raise typer.Exit(1)
    setup_logging("DEBUG" if verbose else level)


@config_app.command("show")
def config_show() -> None:
    """Show the effective configuration.

    Example:
        extlock config show
    """
    from extensions.config import find_config_file, get_config

    config = get_config()
    config_path = find_config_file()
    print_key_value("Config file", config_path or "(none, using defaults)")

    sections = [
        ("repository", config.repository),
        ("github", config.github),
        ("install", config.install),
        ("logging", config.logging),
    ]

    for name, section_config in sections:
        console.print(f"\n[bold]\\[{name}][/bold]")
        for key, value in vars(section_config).items():
            if key == "token" and value:
                value = "***"
            console.print(f"  {key} = {value}")


@config_app.command("init")
def config_init(
    force: bool = typer.Option(
        False,
        "--force",
        "-f",
        help="Overwrite existing extlock.toml",
    ),
) -> None:
    """Create a default extlock.toml file.

    Example:
        extlock config init
        extlock config init --force
    """
    from extensions.config import CONFIG_FILE, DEFAULT_CONFIG_TOML

    config_path = Path.cwd() / CONFIG_FILE

    if config_path.exists() and not force:
        print_warning(f"Config file already exists: {config_path}")
        print_info("Use --force to overwrite")
        raise typer.Exit(1)

    config_path.write_text(DEFAULT_CONFIG_TOML)
    print_success(f"Created config file: {config_path}")


@app.command()
def version() -> None:
    """Show extlock version."""
    from cli.extlock import __version__

    console.print(f"extlock v{__version__}")


def main() -> None:
    """Main entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
