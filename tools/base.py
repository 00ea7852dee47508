"""Base tool interface for external commands the engine shells out to."""

import logging
import os
import subprocess
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)


class ToolStatus(Enum):
    """Status of a tool execution."""

    SUCCESS = "success"
    FAILURE = "failure"
    TIMEOUT = "timeout"


@dataclass
class ToolResult:
    """Result of a tool execution."""

    status: ToolStatus
    output: str = ""
    error: str | None = None
    returncode: int | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def success(self) -> bool:
        return self.status == ToolStatus.SUCCESS

    def __bool__(self) -> bool:
        return self.success


class BaseTool(ABC):
    """Abstract base class for command-line tools.

    Tools wrap a single external binary and report results as ToolResult
    instead of raising, leaving the caller to decide what a failure means.
    """

    name: str = "base_tool"
    description: str = "Base tool interface"

    def __init__(self, timeout: int = 300, working_dir: Path | str | None = None) -> None:
        """Initialize tool.

        Args:
            timeout: Default timeout in seconds
            working_dir: Working directory for commands (default: cwd)
        """
        self.timeout = timeout
        self.working_dir = Path(working_dir) if working_dir else None

    @abstractmethod
    def execute(self, *args: Any, **kwargs: Any) -> ToolResult:
        """Execute the tool operation."""
        ...

    def _run(
        self,
        command: list[str],
        env: dict[str, str] | None = None,
        timeout: int | None = None,
    ) -> ToolResult:
        """Run a command, capturing combined output."""
        if not command:
            return ToolResult(status=ToolStatus.FAILURE, error="Empty command")

        logger.debug("Running %s", " ".join(command))
        try:
            result = subprocess.run(
                command,
                cwd=self.working_dir,
                capture_output=True,
                text=True,
                timeout=timeout or self.timeout,
                env={**os.environ, **(env or {})},
            )
        except subprocess.TimeoutExpired:
            return ToolResult(
                status=ToolStatus.TIMEOUT,
                error=f"Command timed out after {timeout or self.timeout}s",
            )
        except FileNotFoundError:
            return ToolResult(
                status=ToolStatus.FAILURE,
                error=f"Command not found: {command[0]}",
            )

        return ToolResult(
            status=ToolStatus.SUCCESS if result.returncode == 0 else ToolStatus.FAILURE,
            output=result.stdout,
            error=result.stderr if result.returncode != 0 else None,
            returncode=result.returncode,
        )

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name={self.name!r})"
