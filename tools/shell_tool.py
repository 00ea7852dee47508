"""Script runner for extension install and upgrade hooks."""

import os
import tempfile
from pathlib import Path

from .base import BaseTool, ToolResult


class ScriptRunner(BaseTool):
    """Runs an inlined extension script with bash.

    The script is written to a private temporary file and executed with the
    given bindings added to the current environment.
    """

    name = "script"
    description = "Extension script execution"

    def __init__(
        self,
        shell: str = "bash",
        timeout: int = 1800,
        working_dir: Path | str | None = None,
    ) -> None:
        """Initialize script runner.

        Args:
            shell: Interpreter used to run scripts
            timeout: Timeout in seconds per script
            working_dir: Working directory for scripts
        """
        super().__init__(timeout=timeout, working_dir=working_dir)
        self.shell = shell

    def execute(self, script: str, env: dict[str, str] | None = None) -> ToolResult:
        """Run a script.

        Args:
            script: Script text
            env: Environment bindings for the script

        Returns:
            ToolResult with stdout as output and the exit status
        """
        fd, script_path = tempfile.mkstemp(prefix="extlock-", suffix=".sh")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(script)
                if not script.endswith("\n"):
                    f.write("\n")
            os.chmod(script_path, 0o700)
            return self._run([self.shell, script_path], env=env)
        finally:
            try:
                os.unlink(script_path)
            except OSError:
                pass
