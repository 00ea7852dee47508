"""Configuration management for extlock.

Loads configuration from:
1. extlock.toml (defaults, searched in the current and parent directories)
2. .env file and environment variables (overrides)
"""

import os
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

from dotenv import load_dotenv

from extensions.errors import ConfigError
from extensions.manifest import DEFINITIONS_FILE, LOCK_FILE, REPOSITORY_FILE, TEAM_CONFIG_FILE

# Load .env file if present
load_dotenv()

CONFIG_FILE = "extlock.toml"


@dataclass
class RepositoryConfig:
    """Lock builder configuration."""

    input_file: str = REPOSITORY_FILE
    output_file: str = LOCK_FILE
    definitions_file: str = DEFINITIONS_FILE
    # Lock version stamp (env: VERSION). Empty = previous stamp + 1
    version: str = ""


@dataclass
class GitHubConfig:
    """GitHub content host configuration.

    The token is also configurable via env: GITHUB_TOKEN or GH_TOKEN.
    """

    token: str = ""
    api_url: str = "https://api.github.com"
    timeout: float = 30.0


@dataclass
class InstallConfig:
    """Install/upgrade configuration."""

    # Installed record directory (default: ~/.extlock/installed)
    store_dir: str = ""
    team_config: str = TEAM_CONFIG_FILE
    # Lock to install from: file path, URL, github.com/org/repo or helm chart
    lock_source: str = LOCK_FILE
    shell: str = "bash"
    script_timeout: int = 1800
    helm_binary: str = "helm"
    refresh_charts: bool = True

    def resolved_store_dir(self) -> Path:
        if self.store_dir:
            return Path(self.store_dir).expanduser()
        return Path.home() / ".extlock" / "installed"


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str = "INFO"


@dataclass
class Config:
    """Main configuration container."""

    repository: RepositoryConfig = field(default_factory=RepositoryConfig)
    github: GitHubConfig = field(default_factory=GitHubConfig)
    install: InstallConfig = field(default_factory=InstallConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Config":
        """Create Config from dictionary.

        Raises:
            ConfigError: If a section contains unknown keys.
        """
        try:
            return cls(
                repository=RepositoryConfig(**data.get("repository", {})),
                github=GitHubConfig(**data.get("github", {})),
                install=InstallConfig(**data.get("install", {})),
                logging=LoggingConfig(**data.get("logging", {})),
            )
        except TypeError as e:
            raise ConfigError(f"Invalid configuration: {e}") from e


def find_config_file() -> Path | None:
    """Find extlock.toml in current or parent directories.

    Returns:
        Path to extlock.toml or None if not found.
    """
    current = Path.cwd()

    for directory in [current, *current.parents]:
        config_path = directory / CONFIG_FILE
        if config_path.exists():
            return config_path

    return None


def load_config(config_path: Path | str | None = None) -> Config:
    """Load configuration from file and environment.

    Args:
        config_path: Optional explicit path to extlock.toml

    Returns:
        Config object with merged settings.

    Raises:
        ConfigError: If the file is not valid TOML or has unknown keys.
    """
    config_data: dict[str, Any] = {}

    if config_path is None:
        config_path = find_config_file()

    if config_path is not None:
        path = Path(config_path)
        if path.exists():
            try:
                with open(path, "rb") as f:
                    config_data = tomllib.load(f)
            except tomllib.TOMLDecodeError as e:
                raise ConfigError(f"Invalid TOML in {path}: {e}") from e

    env_overrides = {
        "repository": {
            "version": os.getenv("VERSION"),
        },
        "github": {
            "token": os.getenv("GITHUB_TOKEN") or os.getenv("GH_TOKEN"),
        },
        "install": {
            "store_dir": os.getenv("EXTLOCK_STORE_DIR"),
            "lock_source": os.getenv("EXTLOCK_LOCK_SOURCE"),
            "script_timeout": _int_or_none(os.getenv("EXTLOCK_SCRIPT_TIMEOUT")),
        },
        "logging": {
            "level": os.getenv("EXTLOCK_LOG_LEVEL"),
        },
    }

    # Merge env overrides (only non-None values)
    for section, values in env_overrides.items():
        if section not in config_data:
            config_data[section] = {}
        for key, value in values.items():
            if value is not None:
                config_data[section][key] = value

    return Config.from_dict(config_data)


def _int_or_none(value: str | None) -> int | None:
    """Convert string to int, or return None."""
    if value is None:
        return None
    try:
        return int(value)
    except ValueError:
        return None


DEFAULT_CONFIG_TOML = f"""\
# extlock configuration

[repository]
input_file = "{REPOSITORY_FILE}"
output_file = "{LOCK_FILE}"
# version = ""  # lock version stamp, default is previous + 1

[github]
# token = ""  # prefer GITHUB_TOKEN / GH_TOKEN
timeout = 30.0

[install]
# store_dir = "~/.extlock/installed"
team_config = "{TEAM_CONFIG_FILE}"
lock_source = "{LOCK_FILE}"
shell = "bash"
script_timeout = 1800
refresh_charts = true

[logging]
level = "INFO"
"""


# Global config instance (lazy loaded)
_config: Config | None = None


def get_config() -> Config:
    """Get the global configuration instance.

    Returns:
        Config object (loaded once, cached).
    """
    global _config
    if _config is None:
        _config = load_config()
    return _config


def reload_config(config_path: Path | str | None = None) -> Config:
    """Force reload of configuration.

    Returns:
        Fresh Config object.
    """
    global _config
    _config = load_config(config_path)
    return _config
