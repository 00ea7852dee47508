"""Extension installer for extlock.

Reconciles a repository lock against the installed extension records:
creates missing records, patches outdated ones and runs the install and
upgrade hooks of everything that changed, in tree order.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from extensions.errors import (
    ExtensionCollisionError,
    ExtensionExecutionError,
    ExtensionReferenceError,
)
from extensions.executable import ExecutableExtension, to_executable
from extensions.manifest import (
    ExtensionRecord,
    ExtensionSpec,
    ExtensionWhen,
    RepositoryLock,
    TeamExtensionConfig,
    should_queue,
)
from extensions.store import ExtensionStore, MemoryExtensionStore
from extensions.versioning import is_newer
from tools.helm_tool import HelmClient
from tools.shell_tool import ScriptRunner

logger = logging.getLogger(__name__)


@dataclass
class UpgradePlan:
    """What an upgrade run changed and what it will execute, in order."""

    executables: list[ExecutableExtension] = field(default_factory=list)
    created: list[str] = field(default_factory=list)
    upgraded: list[tuple[str, str, str]] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.created or self.upgraded)


def _indent(depth: int) -> str:
    if depth == 0:
        return ""
    return "  " * (depth - 1) + "└ "


class ExtensionInstaller:
    """Install and upgrade extensions from a repository lock.

    Example:
        >>> installer = ExtensionInstaller(FileExtensionStore(store_dir))
        >>> plan = installer.upgrade(lock, team_config)
        >>> len(plan.executables)
    """

    def __init__(
        self,
        store: ExtensionStore,
        helm: HelmClient | None = None,
        runner: ScriptRunner | None = None,
    ):
        """Initialize the installer.

        Args:
            store: Store holding the installed extension records.
            helm: Helm client used to refresh chart repositories before hooks run.
            runner: Script runner for install and upgrade hooks.
        """
        self.store = store
        self.helm = helm
        self.runner = runner or ScriptRunner()

    def plan(
        self,
        lock: RepositoryLock,
        team_config: TeamExtensionConfig,
        installed: dict[str, ExtensionRecord],
        store: ExtensionStore | None = None,
    ) -> UpgradePlan:
        """Create or patch records and collect the hooks to run.

        Each configured extension is walked parent first, children in their
        declared order. ``installed`` is updated in place as records change.

        Args:
            lock: Repository lock to reconcile against.
            team_config: Extensions the team opted into.
            installed: Installed records keyed by UUID.
            store: Store to write to (defaults to the installer's store).

        Returns:
            UpgradePlan with the executables in execution order.

        Raises:
            ExtensionCollisionError: If an extension changed UUID and its old
                record is still installed.
            ExtensionReferenceError: If a child UUID is missing from the lock.
            ExtensionStoreError: If a record cannot be written.
        """
        store = store or self.store
        lock_by_uuid = lock.by_uuid()
        lock_by_name = lock.by_name()
        plan = UpgradePlan()

        for config in team_config.extensions:
            root = lock_by_name.get(config.fully_qualified_name)
            if root is None:
                logger.warning(
                    "Extension %s is configured but not in repository version %s, skipping",
                    config.fully_qualified_name, lock.version,
                )
                plan.skipped.append(config.fully_qualified_name)
                continue

            stack: list[tuple[ExtensionSpec, int, tuple[str, ...]]] = [(root, 0, ())]
            while stack:
                spec, depth, path = stack.pop()
                self.upsert_extension(spec, config.parameters, installed, store, plan, depth)

                path = (*path, spec.uuid)
                children = []
                for child_uuid in spec.children:
                    child = lock_by_uuid.get(child_uuid)
                    if child is None:
                        raise ExtensionReferenceError(
                            f"Unable to find extension with UUID {child_uuid} "
                            f"(child of {spec.fully_qualified_name}) in repository "
                            f"version {lock.version}"
                        )
                    if child_uuid in path:
                        logger.warning(
                            "Skipping %s as it is an ancestor of itself under %s",
                            child.fully_qualified_name, spec.fully_qualified_name,
                        )
                        continue
                    children.append((child, depth + 1, path))
                stack.extend(reversed(children))

        return plan

    def upsert_extension(
        self,
        spec: ExtensionSpec,
        parameter_values: dict[str, str],
        installed: dict[str, ExtensionRecord],
        store: ExtensionStore,
        plan: UpgradePlan,
        depth: int = 0,
    ) -> ExecutableExtension | None:
        """Create or upgrade the record for one extension.

        Returns:
            The queued executable, or None when nothing needs to run.
        """
        prefix = _indent(depth)
        record = installed.get(spec.uuid)

        if record is None:
            new_record = ExtensionRecord.for_spec(spec)
            for existing in installed.values():
                if existing.name == new_record.name:
                    raise ExtensionCollisionError(
                        spec.fully_qualified_name, new_record.name, existing.uuid, spec.uuid
                    )
            logger.info("%sAdding %s version %s", prefix, spec.fully_qualified_name, spec.version)
            installed[spec.uuid] = store.create(new_record)
            plan.created.append(spec.fully_qualified_name)
            trigger = ExtensionWhen.INSTALL
        elif is_newer(spec.version, record.spec.version):
            logger.info(
                "%sUpgrading %s from %s to %s",
                prefix, spec.fully_qualified_name, record.spec.version, spec.version,
            )
            plan.upgraded.append((spec.fully_qualified_name, record.spec.version, spec.version))
            installed[spec.uuid] = store.patch_update(ExtensionRecord(name=record.name, spec=spec))
            trigger = ExtensionWhen.UPGRADE
        else:
            logger.debug(
                "%s%s is up to date at version %s",
                prefix, spec.fully_qualified_name, record.spec.version,
            )
            return None

        if not should_queue(spec.when, trigger):
            return None
        executable = to_executable(spec, parameter_values)
        plan.executables.append(executable)
        return executable

    def upgrade(
        self,
        lock: RepositoryLock,
        team_config: TeamExtensionConfig,
        dry_run: bool = False,
    ) -> UpgradePlan:
        """Reconcile installed extensions with the lock and run their hooks.

        With ``dry_run`` the plan is computed against a snapshot of the
        installed records and nothing is written or executed.

        Raises:
            ExtensionExecutionError: If the chart refresh or a hook fails.
                Hooks after the failing one are not run.
        """
        installed = self.store.list_installed()
        if dry_run:
            snapshot = MemoryExtensionStore(installed)
            plan = self.plan(lock, team_config, installed, store=snapshot)
            logger.info("Dry run: %d extension hook(s) would run", len(plan.executables))
            return plan

        plan = self.plan(lock, team_config, installed)

        if self.helm is not None:
            result = self.helm.refresh_index()
            if not result:
                raise ExtensionExecutionError("helm repo update", result.returncode, result.error or "")

        for executable in plan.executables:
            executable.execute(self.runner)
        return plan
