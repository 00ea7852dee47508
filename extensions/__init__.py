"""Extension repository engine for extlock.

This module resolves remotely published extension definitions into a
versioned repository lock and installs or upgrades the extensions a team
opted into.

- lock_builder: build extensions-repository.lock.yaml from remote definitions
- installer: reconcile a lock against installed records and run hooks
- store: installed extension records (one YAML document each)
- sources: load a lock from a file, URL, GitHub release or Helm chart

Installed records are stored in ~/.extlock/installed/ by default.
"""

from extensions.errors import (
    AmbiguousExtensionError,
    ChildResolutionError,
    ConfigError,
    ExtensionCollisionError,
    ExtensionError,
    ExtensionExecutionError,
    ExtensionFetchError,
    ExtensionReferenceError,
    ExtensionStoreError,
    ExtensionVersionError,
    ManifestError,
)
from extensions.executable import ExecutableExtension, to_executable
from extensions.installer import ExtensionInstaller, UpgradePlan
from extensions.lock_builder import LockBuilder, LockBuildResult, update_repository_lock
from extensions.manifest import (
    ExtensionConfig,
    ExtensionDefinition,
    ExtensionGiven,
    ExtensionRecord,
    ExtensionSpec,
    ExtensionWhen,
    RepositoryLock,
    TeamExtensionConfig,
)
from extensions.store import ExtensionStore, FileExtensionStore, MemoryExtensionStore

__all__ = [
    "AmbiguousExtensionError",
    "ChildResolutionError",
    "ConfigError",
    "ExecutableExtension",
    "ExtensionCollisionError",
    "ExtensionConfig",
    "ExtensionDefinition",
    "ExtensionError",
    "ExtensionExecutionError",
    "ExtensionFetchError",
    "ExtensionGiven",
    "ExtensionInstaller",
    "ExtensionRecord",
    "ExtensionReferenceError",
    "ExtensionSpec",
    "ExtensionStore",
    "ExtensionStoreError",
    "ExtensionVersionError",
    "ExtensionWhen",
    "FileExtensionStore",
    "LockBuilder",
    "LockBuildResult",
    "ManifestError",
    "MemoryExtensionStore",
    "RepositoryLock",
    "TeamExtensionConfig",
    "UpgradePlan",
    "to_executable",
    "update_repository_lock",
]
