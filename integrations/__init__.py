"""Remote content hosts for fetching extension definitions and scripts.

Supports:
- GitHub (github.com/<org>/<repo> remotes)
"""

from .base import ContentHost
from .github import GitHubContentHost, parse_remote

__all__ = [
    "ContentHost",
    "GitHubContentHost",
    "parse_remote",
]
