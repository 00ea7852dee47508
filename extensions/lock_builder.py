"""Repository lock builder.

Resolves the extension definitions published by one or more remotes into a
versioned, UUID-addressed repository lock. Entries whose version did not move
are carried forward from the previous lock so identities stay stable across
renames.

Example:
    >>> builder = LockBuilder(GitHubContentHost())
    >>> result = builder.build(references.remotes, previous_lock)
    >>> lock = result.raise_for_errors()
"""

from __future__ import annotations

import logging
import os
import tempfile
from dataclasses import dataclass, field, replace
from pathlib import Path

from extensions.errors import (
    AmbiguousExtensionError,
    ChildResolutionError,
    ExtensionFetchError,
    ExtensionReferenceError,
    ExtensionVersionError,
)
from extensions.manifest import (
    DEFINITIONS_FILE,
    ExtensionDefinition,
    ExtensionDefinitionList,
    ExtensionDefinitionReferenceList,
    ExtensionSpec,
    RemoteReference,
    RepositoryLock,
)
from extensions.versioning import (
    LATEST,
    is_newer,
    is_uuid,
    new_uuid,
    parse_previous_semver,
    parse_semver,
    version_from_tag,
)
from integrations.base import ContentHost

logger = logging.getLogger(__name__)


@dataclass
class LockBuildResult:
    """Outcome of a lock build.

    When child references could not be resolved, ``lock`` is the partial
    lock (broken references left verbatim) and ``unresolved`` lists every one
    of them.
    """

    lock: RepositoryLock
    unresolved: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.unresolved

    def write_partial(self, directory: Path | None = None) -> Path:
        """Write the partial lock to a new temporary file and return its path."""
        fd, path = tempfile.mkstemp(
            prefix="extensions-repository-partial-",
            suffix=".lock.yaml",
            dir=str(directory) if directory else None,
        )
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(self.lock.to_yaml_text())
        return Path(path)

    def raise_for_errors(
        self, write_partial: bool = True, directory: Path | None = None
    ) -> RepositoryLock:
        """Return the lock, or fail with every unresolved child reference.

        Args:
            write_partial: Write the partial lock to a temp file for inspection.
            directory: Directory for the partial lock (system temp dir by default).

        Raises:
            ChildResolutionError: If any child reference was unresolved.
        """
        if self.ok:
            return self.lock
        partial_path = self.write_partial(directory) if write_partial else None
        raise ChildResolutionError(list(self.unresolved), partial_path)


class LockBuilder:
    """Build repository locks from remote extension definitions.

    Remotes are walked one at a time, depth-first through child remotes.
    """

    def __init__(self, host: ContentHost, definitions_file: str = DEFINITIONS_FILE):
        """Initialize the builder.

        Args:
            host: Content host serving definitions and scripts.
            definitions_file: Path of the definitions document in each remote.
        """
        self.host = host
        self.definitions_file = definitions_file

    def build(
        self,
        remotes: list[RemoteReference],
        previous: RepositoryLock,
        version: str | None = None,
    ) -> LockBuildResult:
        """Build a new lock.

        Args:
            remotes: Remotes to read definitions from, in order.
            previous: Previous lock, for UUID and version continuity.
            version: Version stamp for the new lock (default: previous + 1).

        Returns:
            LockBuildResult with the sorted, deduplicated lock.

        Raises:
            ExtensionFetchError: If a remote, tag or file cannot be fetched.
            ExtensionVersionError: If a definition has an unparsable version.
            AmbiguousExtensionError: If a UUID resolves to two versions.
            ExtensionReferenceError: If the previous lock is inconsistent.
        """
        old_by_name = previous.by_name()
        old_by_uuid = previous.by_uuid()

        candidates: list[ExtensionSpec] = []
        for reference in remotes:
            candidates.extend(
                self.walk_remote(reference.remote, reference.tag, old_by_name, old_by_uuid)
            )

        lookup_by_name: dict[str, ExtensionSpec] = {}
        lookup_by_uuid: dict[str, ExtensionSpec] = {}
        for spec in candidates:
            lookup_by_name[spec.fully_qualified_name] = spec
            lookup_by_uuid[spec.uuid] = spec
        logger.debug("Extension to UUID mapping:")
        for name, spec in lookup_by_name.items():
            logger.debug("  %s: %s", name, spec.uuid)

        extensions = self._deduplicate(candidates)

        unresolved: list[str] = []
        for spec in extensions:
            spec.children = self.fix_children(spec, lookup_by_name, lookup_by_uuid, unresolved)

        # Sorted for stable diffs of the emitted document
        extensions.sort(key=lambda e: e.uuid)
        lock = RepositoryLock(
            version=version or self._next_version(previous),
            extensions=extensions,
        )
        return LockBuildResult(lock=lock, unresolved=unresolved)

    def walk_remote(
        self,
        remote: str,
        tag: str,
        old_by_name: dict[str, ExtensionSpec],
        old_by_uuid: dict[str, ExtensionSpec],
        stack: tuple[tuple[str, str], ...] = (),
    ) -> list[ExtensionSpec]:
        """Resolve every definition published by one remote.

        Refreshed composites recurse into their child remotes first, so child
        specs precede their parent in the returned list.
        An empty tag resolves to the newest release like "latest", but only an
        explicit "latest" forces a refresh of entries that are not newer.
        """
        requested = tag or LATEST
        if (remote, requested) in stack:
            logger.warning(
                "Skipping %s@%s as it is already being resolved (child remote cycle)",
                remote, requested,
            )
            return []
        stack = (*stack, (remote, requested))

        resolved_tag = self.host.resolve_latest_tag(remote) if requested == LATEST else requested
        source = f"{remote}@{resolved_tag}"
        content = self.host.fetch_file(remote, resolved_tag, self.definitions_file)
        definitions = ExtensionDefinitionList.from_text(content, f"{source}/{self.definitions_file}")
        if not definitions.extensions:
            logger.warning("No extension definitions found in %s", source)

        result: list[ExtensionSpec] = []
        for definition in definitions.extensions:
            uuid = self._resolve_uuid(definition, old_by_name)
            new_version = definition.version or definitions.version or version_from_tag(resolved_tag)
            try:
                parse_semver(new_version)
            except ExtensionVersionError as e:
                raise ExtensionVersionError(
                    f"Unable to determine new version for {definition.fully_qualified_name} "
                    f"from {source}. {e}"
                ) from e

            old = old_by_uuid.get(uuid)
            old_version = old.version if old else None
            if old is not None and parse_previous_semver(old_version) is None:
                logger.info(
                    "Cannot determine existing version for %s. Upgrading to %s anyway.",
                    definition.fully_qualified_name, new_version,
                )

            if tag == LATEST or is_newer(new_version, old_version):
                children: list[str] = []
                script = ""
                if definition.is_composite:
                    for child in definition.children:
                        children.append(child.reference)
                        if child.remote:
                            result.extend(
                                self.walk_remote(
                                    child.remote, child.tag,
                                    old_by_name, old_by_uuid, stack,
                                )
                            )
                else:
                    script = definition.script or self._fetch_script(remote, resolved_tag, definition)
                spec = ExtensionSpec(
                    name=definition.name,
                    namespace=definition.namespace,
                    version=new_version,
                    uuid=uuid,
                    description=definition.description,
                    parameters=list(definition.parameters),
                    when=list(definition.when),
                    given=list(definition.given),
                    script=script.removesuffix("\n"),
                    children=children,
                )
                logger.debug("Found extension %s version %s", spec.fully_qualified_name, spec.version)
                result.append(spec)
            else:
                logger.debug(
                    "Keeping %s at version %s (%s offers %s)",
                    old.fully_qualified_name, old.version, source, new_version,
                )
                result.extend(self.walk_lock(old, old_by_uuid))
        return result

    def walk_lock(
        self,
        spec: ExtensionSpec,
        lookup_by_uuid: dict[str, ExtensionSpec],
        path: tuple[str, ...] = (),
    ) -> list[ExtensionSpec]:
        """Flatten a carried-forward entry, children before the parent.

        Raises:
            ExtensionReferenceError: If a child UUID is missing from the
                previous lock or the children form a cycle.
        """
        if spec.uuid in path:
            raise ExtensionReferenceError(
                f"Extension {spec.fully_qualified_name} ({spec.uuid}) is its own "
                "descendant in the previous lock"
            )
        path = (*path, spec.uuid)

        result: list[ExtensionSpec] = []
        for child_uuid in spec.children:
            child = lookup_by_uuid.get(child_uuid)
            if child is None:
                raise ExtensionReferenceError(
                    f"Unable to find extension for UUID {child_uuid} "
                    f"(child of {spec.fully_qualified_name}) in the previous lock"
                )
            result.extend(self.walk_lock(child, lookup_by_uuid, path))
        result.append(replace(spec, children=list(spec.children)))
        return result

    def fix_children(
        self,
        spec: ExtensionSpec,
        lookup_by_name: dict[str, ExtensionSpec],
        lookup_by_uuid: dict[str, ExtensionSpec],
        unresolved: list[str],
    ) -> list[str]:
        """Resolve child references of one spec into UUIDs.

        Unresolvable references are appended to ``unresolved`` and kept
        verbatim so the partial lock shows them.
        """
        children: list[str] = []
        for reference in spec.children:
            child_uuid = reference
            if not is_uuid(reference):
                match = lookup_by_name.get(reference)
                if match is None and spec.namespace and "." not in reference:
                    match = lookup_by_name.get(f"{spec.namespace}.{reference}")
                if match is None:
                    logger.error(
                        "Cannot resolve child %s of extension %s",
                        reference, spec.fully_qualified_name,
                    )
                    unresolved.append(f"{reference} (child of {spec.fully_qualified_name})")
                    children.append(reference)
                    continue
                logger.warning(
                    "We recommend you explicitly specify the UUID for child %s on extension %s "
                    "as this will stop the extension breaking if names are changed. "
                    "If you are the maintainer of the extension definition add\n\n"
                    "      uuid: %s\n\n"
                    "to the child definition. This does not stop you using the extension, as "
                    "the UUID was discovered from the fully qualified name.",
                    reference, spec.fully_qualified_name, match.uuid,
                )
                child_uuid = match.uuid
            if child_uuid not in lookup_by_uuid:
                logger.error(
                    "Unable to find extension for UUID %s (child of %s)",
                    child_uuid, spec.fully_qualified_name,
                )
                unresolved.append(f"{reference} (child of {spec.fully_qualified_name})")
                children.append(reference)
                continue
            children.append(child_uuid)
        return children

    def _resolve_uuid(
        self, definition: ExtensionDefinition, old_by_name: dict[str, ExtensionSpec]
    ) -> str:
        if definition.uuid:
            return definition.uuid
        previous = old_by_name.get(definition.fully_qualified_name)
        if previous is not None:
            return previous.uuid
        generated = new_uuid()
        logger.warning(
            "No UUID found for %s. Generated UUID %s, please update your extension "
            "definition accordingly, as renaming it later will orphan this identity.",
            definition.fully_qualified_name, generated,
        )
        return generated

    def _fetch_script(self, remote: str, tag: str, definition: ExtensionDefinition) -> str:
        script_file = definition.resolved_script_file
        content = self.host.fetch_file(remote, tag, script_file)
        try:
            return content.decode("utf-8")
        except UnicodeDecodeError as e:
            raise ExtensionFetchError(
                f"Script {script_file} for {definition.fully_qualified_name} in "
                f"{remote}@{tag} is not valid UTF-8",
                remote=remote, tag=tag, path=script_file,
            ) from e

    def _deduplicate(self, candidates: list[ExtensionSpec]) -> list[ExtensionSpec]:
        """Keep the first spec per UUID, failing when versions disagree."""
        seen: dict[str, ExtensionSpec] = {}
        extensions: list[ExtensionSpec] = []
        for spec in candidates:
            existing = seen.get(spec.uuid)
            if existing is None:
                seen[spec.uuid] = spec
                extensions.append(spec)
            elif existing.version != spec.version:
                raise AmbiguousExtensionError(
                    spec.fully_qualified_name, spec.uuid, (spec.version, existing.version)
                )
        return extensions

    @staticmethod
    def _next_version(previous: RepositoryLock) -> str:
        if previous.version.isdecimal():
            return str(int(previous.version) + 1)
        return "1"


def summarize_changes(previous: RepositoryLock, current: RepositoryLock) -> list[str]:
    """Describe added, upgraded and dropped extensions between two locks."""
    old_by_uuid = previous.by_uuid()
    new_by_uuid = current.by_uuid()
    changes: list[str] = []
    for spec in current.extensions:
        old = old_by_uuid.get(spec.uuid)
        if old is None:
            changes.append(f"added {spec.fully_qualified_name} {spec.version}")
        elif old.version != spec.version:
            changes.append(f"upgraded {spec.fully_qualified_name} {old.version} -> {spec.version}")
        elif old.fully_qualified_name != spec.fully_qualified_name:
            changes.append(f"renamed {old.fully_qualified_name} -> {spec.fully_qualified_name}")
    for spec in previous.extensions:
        if spec.uuid not in new_by_uuid:
            changes.append(f"dropped {spec.fully_qualified_name} {spec.version}")
    return changes


def update_repository_lock(
    builder: LockBuilder,
    input_file: Path,
    output_file: Path,
    version: str | None = None,
) -> tuple[RepositoryLock, list[str]]:
    """Regenerate a lock file from its repository definition file.

    The existing output file is the previous lock. On unresolved children the
    partial lock is written to the system temp dir and nothing is
    written to ``output_file``.

    Returns:
        The new lock and a summary of changes against the previous one.
    """
    references = ExtensionDefinitionReferenceList.from_yaml(input_file)
    previous = RepositoryLock.from_yaml(output_file, missing_ok=True)
    result = builder.build(references.remotes, previous, version=version)
    lock = result.raise_for_errors()
    lock.to_yaml(output_file)
    logger.info(
        "Updating extensions repository from %s to %s",
        previous.version or "<none>", lock.version,
    )
    return lock, summarize_changes(previous, lock)
