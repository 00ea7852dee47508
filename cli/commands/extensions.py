"""Extension CLI commands for extlock.

Upgrade and inspect installed extensions.
"""

from pathlib import Path
from typing import Optional

import typer

from cli.extlock.output import print_error, print_info, print_installed, print_lock, print_plan
from extensions.config import Config, get_config
from extensions.errors import ExtensionError


def get_content_host(config: Config):
    """Get the content host for GitHub remotes."""
    from integrations.github import GitHubContentHost

    return GitHubContentHost(
        token=config.github.token or None,
        base_url=config.github.api_url,
        timeout=config.github.timeout,
    )


def get_helm(config: Config):
    """Get the helm client."""
    from tools.helm_tool import HelmClient

    return HelmClient(binary=config.install.helm_binary)


def get_installer(config: Config, store_dir: Path | None = None):
    """Get extension installer."""
    from extensions.installer import ExtensionInstaller
    from extensions.store import FileExtensionStore
    from tools.shell_tool import ScriptRunner

    return ExtensionInstaller(
        FileExtensionStore(store_dir or config.install.resolved_store_dir()),
        helm=get_helm(config) if config.install.refresh_charts else None,
        runner=ScriptRunner(shell=config.install.shell, timeout=config.install.script_timeout),
    )


def upgrade(
    lock_source: Optional[str] = typer.Option(
        None,
        "--lock",
        "-l",
        help="Repository lock: file, URL, github.com/org/repo or helm:repo/chart[@version]",
    ),
    team_config: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="Team extension config (default: extensions-config.yaml)",
    ),
    store_dir: Optional[Path] = typer.Option(
        None,
        "--store-dir",
        help="Installed record directory (default: ~/.extlock/installed)",
    ),
    dry_run: bool = typer.Option(
        False,
        "--dry-run",
        help="Show what would be installed or upgraded without changing anything",
    ),
) -> None:
    """Install and upgrade the extensions configured for your team.

    Examples:
        extlock upgrade
        extlock upgrade --lock github.com/jenkins-x/jx-extensions --dry-run
    """
    from extensions.manifest import TeamExtensionConfig
    from extensions.sources import load_lock

    config = get_config()
    source = lock_source or config.install.lock_source
    config_path = team_config or Path(config.install.team_config)

    try:
        lock = load_lock(
            source,
            host=get_content_host(config),
            helm=get_helm(config),
            timeout=config.github.timeout,
        )
        team = TeamExtensionConfig.from_yaml(config_path)
        if not team.extensions:
            print_info(f"No extensions configured in {config_path}")
            return
        installer = get_installer(config, store_dir)
        plan = installer.upgrade(lock, team, dry_run=dry_run)
    except ExtensionError as e:
        print_error(str(e))
        raise typer.Exit(1)

    print_plan(plan, dry_run=dry_run)


def list_installed(
    store_dir: Optional[Path] = typer.Option(
        None,
        "--store-dir",
        help="Installed record directory (default: ~/.extlock/installed)",
    ),
) -> None:
    """List installed extensions.

    Example:
        extlock list
    """
    from extensions.store import FileExtensionStore

    config = get_config()
    store = FileExtensionStore(store_dir or config.install.resolved_store_dir())
    try:
        installed = store.list_installed()
    except ExtensionError as e:
        print_error(str(e))
        raise typer.Exit(1)

    if not installed:
        print_info("No extensions installed")
        print_info("Install extensions with: extlock upgrade")
        return

    print_installed(list(installed.values()))


def show_lock(
    source: str = typer.Argument(
        ...,
        help="Repository lock: file, URL, github.com/org/repo or helm:repo/chart[@version]",
    ),
) -> None:
    """Show the extensions in a repository lock.

    Examples:
        extlock show extensions-repository.lock.yaml
        extlock show github.com/jenkins-x/jx-extensions
    """
    from extensions.sources import load_lock

    config = get_config()
    try:
        lock = load_lock(
            source,
            host=get_content_host(config),
            helm=get_helm(config),
            timeout=config.github.timeout,
        )
    except ExtensionError as e:
        print_error(str(e))
        raise typer.Exit(1)

    print_lock(lock)
