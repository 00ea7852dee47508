"""Base classes for remote content hosts that publish extension definitions."""

from abc import ABC, abstractmethod


class ContentHost(ABC):
    """Source-control host serving files at a given git reference.

    Remotes are host-qualified repository paths such as
    ``github.com/org/repo``.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Host name (e.g., 'github')."""
        ...

    @abstractmethod
    def supports(self, remote: str) -> bool:
        """Check whether this host can serve the given remote."""
        ...

    @abstractmethod
    def resolve_latest_tag(self, remote: str) -> str:
        """Resolve the newest published release tag of a remote.

        Args:
            remote: Remote such as 'github.com/org/repo'

        Returns:
            Tag name, e.g. 'v1.2.0'

        Raises:
            ExtensionFetchError: If the remote or its releases are unavailable
        """
        ...

    @abstractmethod
    def fetch_file(self, remote: str, tag: str, path: str) -> bytes:
        """Fetch the raw content of a file at a tag.

        Args:
            remote: Remote such as 'github.com/org/repo'
            tag: Git reference to read from
            path: Path of the file inside the repository

        Returns:
            File content

        Raises:
            ExtensionFetchError: If the file cannot be retrieved
        """
        ...
