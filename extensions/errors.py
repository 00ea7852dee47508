"""Exception types raised by the extension lock builder and installer."""

from __future__ import annotations

from pathlib import Path


class ExtensionError(Exception):
    """Base class for all extension engine failures."""

    pass


class ConfigError(ExtensionError):
    """Raised when configuration or an input document is invalid."""

    pass


class ManifestError(ConfigError):
    """Raised when an extension document fails to parse or validate."""

    pass


class ExtensionFetchError(ExtensionError):
    """Raised when a remote, tag or file cannot be retrieved."""

    def __init__(self, message: str, remote: str = "", tag: str = "", path: str = ""):
        super().__init__(message)
        self.remote = remote
        self.tag = tag
        self.path = path


class ExtensionVersionError(ExtensionError):
    """Raised when an extension declares an unparsable semantic version."""

    pass


class AmbiguousExtensionError(ExtensionError):
    """Raised when one UUID resolves to two different versions."""

    def __init__(self, name: str, uuid: str, versions: tuple[str, str]):
        super().__init__(
            f"Unable to add {name} ({uuid}) as two versions are available in the "
            f"extension repository [ {versions[0]}, {versions[1]} ]. "
            "Fix the source repositories so only one version is published."
        )
        self.name = name
        self.uuid = uuid
        self.versions = versions


class ExtensionCollisionError(ExtensionError):
    """Raised when an extension changed UUID but the old record still exists."""

    def __init__(self, name: str, resource_name: str, old_uuid: str, new_uuid: str):
        super().__init__(
            f"Extension {name} has changed UUID. It used to have UUID {old_uuid} "
            f"and now has UUID {new_uuid}. If this is correct, remove the stale "
            f"record {resource_name!r} manually before upgrading again.\n"
            "If this is not correct, contact the extension maintainer and "
            "inform them of this change."
        )
        self.name = name
        self.resource_name = resource_name
        self.old_uuid = old_uuid
        self.new_uuid = new_uuid


class ExtensionReferenceError(ExtensionError):
    """Raised when a lock references a UUID it does not contain."""

    pass


class ChildResolutionError(ExtensionError):
    """Raised when child references could not be resolved.

    Carries every unresolved reference from the run, plus the path of the
    partial lock written for inspection (if one was written).
    """

    def __init__(self, references: list[str], partial_path: Path | None = None):
        message = f"Cannot resolve children {references} in repository."
        if partial_path is not None:
            message += f" Partial .lock file written to {partial_path}."
        super().__init__(message)
        self.references = references
        self.partial_path = partial_path


class ExtensionStoreError(ExtensionError):
    """Raised when installed extension records cannot be read or written."""

    pass


class ExtensionExecutionError(ExtensionError):
    """Raised when an install or upgrade script exits unsuccessfully."""

    def __init__(self, name: str, returncode: int | None, output: str = ""):
        super().__init__(
            f"Extension {name} failed with exit status {returncode}: {output.strip()}"
        )
        self.name = name
        self.returncode = returncode
        self.output = output
