"""Helm client for chart repository operations."""

from pathlib import Path

from .base import BaseTool, ToolResult, ToolStatus


class HelmClient(BaseTool):
    """Thin wrapper around the helm binary.

    Only two operations are used: refreshing the local chart repository
    index before hooks run, and fetching a chart that packages an extensions
    repository lock.
    """

    name = "helm"
    description = "Helm chart repository client"

    def __init__(self, binary: str = "helm", timeout: int = 300) -> None:
        super().__init__(timeout=timeout)
        self.binary = binary

    def execute(self, operation: str, **kwargs) -> ToolResult:
        """Execute a helm operation.

        Args:
            operation: "refresh_index" or "fetch_chart"
            **kwargs: Operation-specific parameters
        """
        operations = {
            "refresh_index": self.refresh_index,
            "fetch_chart": self.fetch_chart,
        }
        if operation not in operations:
            return ToolResult(
                status=ToolStatus.FAILURE,
                error=f"Unknown operation: {operation}. Available: {list(operations.keys())}",
            )
        return operations[operation](**kwargs)

    def refresh_index(self) -> ToolResult:
        """Update the local index of every configured chart repository."""
        return self._run([self.binary, "repo", "update"])

    def fetch_chart(
        self,
        chart: str,
        destination: Path,
        version: str | None = None,
        repo_url: str | None = None,
    ) -> ToolResult:
        """Download and unpack a chart.

        Args:
            chart: Chart reference, e.g. "jenkins-x/jx-extensions"
            destination: Directory to unpack into
            version: Chart version (latest when omitted)
            repo_url: Chart repository URL when the repo is not configured
        """
        args = [self.binary, "fetch", chart, "--untar", "--untardir", str(destination)]
        if version:
            args.extend(["--version", version])
        if repo_url:
            args.extend(["--repo", repo_url])
        return self._run(args)
