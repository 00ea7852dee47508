"""Ready-to-run extension hooks."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from extensions.errors import ExtensionExecutionError
from extensions.manifest import ExtensionSpec
from tools.base import ToolResult
from tools.shell_tool import ScriptRunner

logger = logging.getLogger(__name__)


@dataclass
class ExecutableExtension:
    """An extension script with its parameters bound to environment variables.

    Created during an upgrade run, executed once and discarded.
    """

    name: str
    namespace: str
    uuid: str
    version: str
    script: str
    environment_variables: list[tuple[str, str]] = field(default_factory=list)

    @property
    def fully_qualified_name(self) -> str:
        return f"{self.namespace}.{self.name}" if self.namespace else self.name

    @property
    def env(self) -> dict[str, str]:
        return dict(self.environment_variables)

    def describe_environment(self) -> str:
        """Format bindings as "A=1, B=2" for the audit log."""
        return ", ".join(f"{k}={v}" for k, v in self.environment_variables)

    def execute(self, runner: ScriptRunner) -> ToolResult:
        """Run the script.

        Args:
            runner: Script runner to execute with.

        Returns:
            Successful ToolResult.

        Raises:
            ExtensionExecutionError: If the script fails or times out.
        """
        if self.environment_variables:
            logger.info(
                "Preparing %s with environment variables [ %s ]",
                self.fully_qualified_name,
                self.describe_environment(),
            )
        else:
            logger.info("Preparing %s", self.fully_qualified_name)

        result = runner.execute(self.script, env=self.env)
        if result.output:
            logger.debug("%s output:\n%s", self.fully_qualified_name, result.output)
        if not result:
            raise ExtensionExecutionError(
                self.fully_qualified_name,
                result.returncode,
                result.error or result.output,
            )
        return result


def to_executable(spec: ExtensionSpec, parameter_values: dict[str, str]) -> ExecutableExtension:
    """Bind an extension spec's parameters into an executable.

    Values come from the team's overrides, falling back to each parameter's
    declared default. Parameters that end up empty are not exported.

    Args:
        spec: Extension spec from the repository lock.
        parameter_values: Team overrides keyed by parameter name.

    Returns:
        ExecutableExtension ready to run.
    """
    bindings: list[tuple[str, str]] = []
    for parameter in spec.parameters:
        value = parameter_values.get(parameter.name) or parameter.default_value
        if value:
            bindings.append((parameter.env_name, value))
    return ExecutableExtension(
        name=spec.name,
        namespace=spec.namespace,
        uuid=spec.uuid,
        version=spec.version,
        script=spec.script,
        environment_variables=bindings,
    )
