"""CLI command modules for extlock."""

from cli.commands.extensions import list_installed, show_lock, upgrade
from cli.commands.repository import repository_app

__all__ = ["list_installed", "repository_app", "show_lock", "upgrade"]
