"""extlock CLI.

Command-line interface for the extension lock builder and upgrader.
The Typer app lives in cli.extlock.cli.
"""

__version__ = "0.1.0"

__all__ = ["__version__"]
