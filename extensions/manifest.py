"""Extension document schemas.

Defines the author-facing definitions (extension-definitions.yaml), the
resolved specs and repository lock (extensions-repository.lock.yaml), the
lock builder input (extensions-repository.yaml), installed records and the
team extension configuration.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Iterable

import yaml

from extensions.errors import ExtensionStoreError, ManifestError
from extensions.versioning import kebab_case, snake_case

DEFINITIONS_FILE = "extension-definitions.yaml"
REPOSITORY_FILE = "extensions-repository.yaml"
LOCK_FILE = "extensions-repository.lock.yaml"
TEAM_CONFIG_FILE = "extensions-config.yaml"


class ExtensionWhen(str, Enum):
    """Trigger kinds an extension can run on."""

    INSTALL = "install"
    UPGRADE = "upgrade"
    PIPELINE = "pipeline"
    POST = "post"
    ON_DEMAND = "onDemand"


class ExtensionGiven(str, Enum):
    """Activation conditions for pipeline-triggered extensions."""

    ALWAYS = "Always"
    SUCCESS = "Success"
    FAILURE = "Failure"


def should_queue(when: Iterable[ExtensionWhen], trigger: ExtensionWhen) -> bool:
    """Check whether an extension declares the given trigger."""
    return trigger in set(when)


def fully_qualified_name(namespace: str, name: str) -> str:
    return f"{namespace}.{name}" if namespace else name


def fully_qualified_kebab_name(namespace: str, name: str) -> str:
    """Resource name used for installed records, e.g. "jx.my-extension"."""
    kebab_namespace = kebab_case(namespace)
    if kebab_namespace:
        return f"{kebab_namespace}.{kebab_case(name)}"
    return kebab_case(name)


class _LockDumper(yaml.SafeDumper):
    """Safe dumper that writes multi-line scripts as literal blocks."""


def _represent_str(dumper: yaml.SafeDumper, data: str) -> yaml.Node:
    if "\n" in data:
        return dumper.represent_scalar("tag:yaml.org,2002:str", data, style="|")
    return dumper.represent_scalar("tag:yaml.org,2002:str", data)


_LockDumper.add_representer(str, _represent_str)


def dump_yaml(data: Any) -> str:
    return yaml.dump(
        data,
        Dumper=_LockDumper,
        default_flow_style=False,
        sort_keys=False,
        allow_unicode=True,
    )


def load_yaml_text(text: str | bytes, source: str) -> dict[str, Any]:
    """Parse a YAML mapping document.

    Args:
        text: Raw document content.
        source: Where the document came from, for error messages.

    Returns:
        Parsed mapping (empty for an empty document).

    Raises:
        ManifestError: If the YAML is invalid or not a mapping.
    """
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ManifestError(f"Invalid YAML in {source}: {e}") from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ManifestError(f"Document must be a YAML mapping: {source}")
    return data


def load_yaml_file(path: Path) -> dict[str, Any]:
    if not path.exists():
        raise ManifestError(f"File not found: {path}")
    return load_yaml_text(path.read_text(encoding="utf-8"), str(path))


def _as_list(value: Any, field_name: str) -> list[Any]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if not isinstance(value, list):
        raise ManifestError(f"Field {field_name!r} must be a list")
    return value


def _parse_when(value: Any) -> list[ExtensionWhen]:
    try:
        return [ExtensionWhen(w) for w in _as_list(value, "when")]
    except ValueError as e:
        raise ManifestError(f"Invalid trigger in 'when': {e}") from e


def _parse_given(value: Any) -> list[ExtensionGiven]:
    try:
        return [ExtensionGiven(g) for g in _as_list(value, "given")]
    except ValueError as e:
        raise ManifestError(f"Invalid condition in 'given': {e}") from e


@dataclass
class ExtensionParameter:
    """Named input for an extension script, exposed as an environment variable."""

    name: str
    description: str = ""
    environment_variable_name: str = ""
    default_value: str = ""

    @property
    def env_name(self) -> str:
        return self.environment_variable_name or snake_case(self.name).upper()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ExtensionParameter:
        if not isinstance(data, dict) or not data.get("name"):
            raise ManifestError(f"Extension parameter requires a name: {data!r}")
        return cls(
            name=str(data["name"]),
            description=str(data.get("description", "") or ""),
            environment_variable_name=str(data.get("environmentVariableName", "") or ""),
            default_value=str(data.get("defaultValue", "") or ""),
        )

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"name": self.name}
        if self.description:
            result["description"] = self.description
        if self.environment_variable_name:
            result["environmentVariableName"] = self.environment_variable_name
        if self.default_value:
            result["defaultValue"] = self.default_value
        return result


@dataclass
class ChildReference:
    """Reference from a composite definition to one of its children.

    Attributes:
        name: Child name, optionally fully qualified ("namespace.name").
        namespace: Child namespace when given separately.
        uuid: Explicit child UUID (preferred, survives renames).
        remote: Further remote to fetch the child definitions from.
        tag: Tag of that remote. Empty resolves to the newest release.
    """

    name: str = ""
    namespace: str = ""
    uuid: str = ""
    remote: str = ""
    tag: str = ""

    @property
    def fully_qualified_name(self) -> str:
        return fully_qualified_name(self.namespace, self.name)

    @property
    def reference(self) -> str:
        """UUID when known, else the (possibly bare) name."""
        return self.uuid or self.fully_qualified_name

    @classmethod
    def from_value(cls, value: Any, key: str | None = None) -> ChildReference:
        """Parse a child entry.

        Args:
            value: A string (name or UUID) or a mapping with name, namespace,
                uuid, remote and tag.
            key: Fully qualified name when children are given as a mapping.
        """
        if isinstance(value, str):
            return cls(name=value)
        if value is None:
            value = {}
        if not isinstance(value, dict):
            raise ManifestError(f"Invalid child reference: {value!r}")
        ref = cls(
            name=str(value.get("name", "") or ""),
            namespace=str(value.get("namespace", "") or ""),
            uuid=str(value.get("uuid", "") or ""),
            remote=str(value.get("remote", "") or ""),
            tag=str(value.get("tag", "") or ""),
        )
        if not ref.name and key:
            ref.name = key
        if not ref.reference:
            raise ManifestError(f"Child reference needs a name or uuid: {value!r}")
        return ref


def _parse_children(value: Any) -> list[ChildReference]:
    if value is None:
        return []
    if isinstance(value, dict):
        return [ChildReference.from_value(v, key=k) for k, v in value.items()]
    return [ChildReference.from_value(v) for v in _as_list(value, "children")]


@dataclass
class ExtensionDefinition:
    """Author-maintained extension definition published by a remote.

    A definition is either a leaf (script or script file) or a composite
    (non-empty children). When both are given, children win.
    """

    name: str
    namespace: str = ""
    uuid: str = ""
    version: str = ""
    description: str = ""
    parameters: list[ExtensionParameter] = field(default_factory=list)
    when: list[ExtensionWhen] = field(default_factory=list)
    given: list[ExtensionGiven] = field(default_factory=list)
    script: str = ""
    script_file: str = ""
    children: list[ChildReference] = field(default_factory=list)

    @property
    def fully_qualified_name(self) -> str:
        return fully_qualified_name(self.namespace, self.name)

    @property
    def is_composite(self) -> bool:
        return bool(self.children)

    @property
    def resolved_script_file(self) -> str:
        return self.script_file or f"{snake_case(self.name)}.sh"

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ExtensionDefinition:
        if not isinstance(data, dict):
            raise ManifestError(f"Extension definition must be a mapping: {data!r}")
        name = data.get("name")
        if not name:
            raise ManifestError(f"Extension definition requires a name: {data!r}")
        return cls(
            name=str(name),
            namespace=str(data.get("namespace", "") or ""),
            uuid=str(data.get("uuid", "") or ""),
            version=str(data.get("version", "") or ""),
            description=str(data.get("description", "") or ""),
            parameters=[
                ExtensionParameter.from_dict(p)
                for p in _as_list(data.get("parameters"), "parameters")
            ],
            when=_parse_when(data.get("when")),
            given=_parse_given(data.get("given")),
            script=str(data.get("script", "") or ""),
            script_file=str(data.get("scriptFile", "") or ""),
            children=_parse_children(data.get("children")),
        )


@dataclass
class ExtensionDefinitionList:
    """Contents of a remote's extension-definitions.yaml."""

    version: str = ""
    extensions: list[ExtensionDefinition] = field(default_factory=list)

    @classmethod
    def from_text(cls, text: str | bytes, source: str) -> ExtensionDefinitionList:
        data = load_yaml_text(text, source)
        return cls(
            version=str(data.get("version", "") or ""),
            extensions=[
                ExtensionDefinition.from_dict(e)
                for e in _as_list(data.get("extensions"), "extensions")
            ],
        )


@dataclass
class ExtensionSpec:
    """Resolved, versioned extension as recorded in a repository lock.

    The UUID is the only stable identity. The fully qualified name is a
    label and may change between releases.
    """

    name: str
    namespace: str
    version: str
    uuid: str
    description: str = ""
    parameters: list[ExtensionParameter] = field(default_factory=list)
    when: list[ExtensionWhen] = field(default_factory=list)
    given: list[ExtensionGiven] = field(default_factory=list)
    script: str = ""
    children: list[str] = field(default_factory=list)

    @property
    def fully_qualified_name(self) -> str:
        return fully_qualified_name(self.namespace, self.name)

    @property
    def fully_qualified_kebab_name(self) -> str:
        return fully_qualified_kebab_name(self.namespace, self.name)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ExtensionSpec:
        if not isinstance(data, dict):
            raise ManifestError(f"Extension spec must be a mapping: {data!r}")
        if not data.get("name") or not data.get("uuid"):
            raise ManifestError(f"Extension spec requires a name and uuid: {data!r}")
        return cls(
            name=str(data["name"]),
            namespace=str(data.get("namespace", "") or ""),
            version=str(data.get("version", "") or ""),
            uuid=str(data["uuid"]),
            description=str(data.get("description", "") or ""),
            parameters=[
                ExtensionParameter.from_dict(p)
                for p in _as_list(data.get("parameters"), "parameters")
            ],
            when=_parse_when(data.get("when")),
            given=_parse_given(data.get("given")),
            script=str(data.get("script", "") or ""),
            children=[str(c) for c in _as_list(data.get("children"), "children")],
        )

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "name": self.name,
            "namespace": self.namespace,
            "version": self.version,
            "uuid": self.uuid,
        }
        if self.description:
            result["description"] = self.description
        if self.parameters:
            result["parameters"] = [p.to_dict() for p in self.parameters]
        if self.when:
            result["when"] = [w.value for w in self.when]
        if self.given:
            result["given"] = [g.value for g in self.given]
        if self.script:
            result["script"] = self.script
        if self.children:
            result["children"] = list(self.children)
        return result


@dataclass
class RepositoryLock:
    """Versioned, UUID-addressed snapshot of every available extension."""

    version: str = ""
    extensions: list[ExtensionSpec] = field(default_factory=list)

    def by_uuid(self) -> dict[str, ExtensionSpec]:
        return {e.uuid: e for e in self.extensions}

    def by_name(self) -> dict[str, ExtensionSpec]:
        return {e.fully_qualified_name: e for e in self.extensions}

    @classmethod
    def from_text(cls, text: str | bytes, source: str) -> RepositoryLock:
        data = load_yaml_text(text, source)
        return cls(
            version=str(data.get("version", "") or ""),
            extensions=[
                ExtensionSpec.from_dict(e)
                for e in _as_list(data.get("extensions"), "extensions")
            ],
        )

    @classmethod
    def from_yaml(cls, path: Path, missing_ok: bool = False) -> RepositoryLock:
        """Load a lock file.

        Args:
            path: Path to the lock file.
            missing_ok: Return an empty lock when the file does not exist.

        Raises:
            ManifestError: If the file is missing (and not missing_ok) or invalid.
        """
        if not path.exists():
            if missing_ok:
                return cls()
            raise ManifestError(f"Lock file not found: {path}")
        return cls.from_text(path.read_text(encoding="utf-8"), str(path))

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": self.version,
            "extensions": [e.to_dict() for e in self.extensions],
        }

    def to_yaml_text(self) -> str:
        return dump_yaml(self.to_dict())

    def to_yaml(self, path: Path) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(self.to_yaml_text(), encoding="utf-8")


@dataclass
class RemoteReference:
    """One remote the lock builder reads definitions from."""

    remote: str
    tag: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RemoteReference:
        if not isinstance(data, dict) or not data.get("remote"):
            raise ManifestError(f"Remote reference requires a remote: {data!r}")
        return cls(remote=str(data["remote"]), tag=str(data.get("tag") or ""))


@dataclass
class ExtensionDefinitionReferenceList:
    """Contents of extensions-repository.yaml, the lock builder input."""

    remotes: list[RemoteReference] = field(default_factory=list)

    @classmethod
    def from_yaml(cls, path: Path) -> ExtensionDefinitionReferenceList:
        data = load_yaml_file(path)
        return cls(
            remotes=[
                RemoteReference.from_dict(r) for r in _as_list(data.get("remotes"), "remotes")
            ]
        )


@dataclass
class ExtensionRecord:
    """Installed state of one extension, keyed by its spec's UUID."""

    name: str
    spec: ExtensionSpec

    @property
    def uuid(self) -> str:
        return self.spec.uuid

    @classmethod
    def for_spec(cls, spec: ExtensionSpec) -> ExtensionRecord:
        if not kebab_case(spec.name):
            raise ExtensionStoreError(
                f"Cannot derive a resource name for extension {spec.name!r} ({spec.uuid}). "
                "Give it a name containing letters or digits."
            )
        return cls(name=spec.fully_qualified_kebab_name, spec=spec)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ExtensionRecord:
        if not isinstance(data, dict) or not data.get("name"):
            raise ManifestError(f"Extension record requires a name: {data!r}")
        return cls(name=str(data["name"]), spec=ExtensionSpec.from_dict(data.get("spec") or {}))

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "spec": self.spec.to_dict()}


@dataclass
class ExtensionConfig:
    """A top-level extension a team opted into, with parameter overrides."""

    name: str
    namespace: str = ""
    parameters: dict[str, str] = field(default_factory=dict)

    @property
    def fully_qualified_name(self) -> str:
        return fully_qualified_name(self.namespace, self.name)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ExtensionConfig:
        if not isinstance(data, dict) or not data.get("name"):
            raise ManifestError(f"Extension config requires a name: {data!r}")
        parameters: dict[str, str] = {}
        for item in _as_list(data.get("parameters"), "parameters"):
            if not isinstance(item, dict) or not item.get("name"):
                raise ManifestError(f"Parameter value requires a name: {item!r}")
            parameters[str(item["name"])] = str(item.get("value", "") or "")
        return cls(
            name=str(data["name"]),
            namespace=str(data.get("namespace", "") or ""),
            parameters=parameters,
        )


@dataclass
class TeamExtensionConfig:
    """Extensions configured for a team (extensions-config.yaml)."""

    extensions: list[ExtensionConfig] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TeamExtensionConfig:
        return cls(
            extensions=[
                ExtensionConfig.from_dict(e) for e in _as_list(data.get("extensions"), "extensions")
            ]
        )

    @classmethod
    def from_yaml(cls, path: Path, missing_ok: bool = False) -> TeamExtensionConfig:
        if missing_ok and not path.exists():
            return cls()
        return cls.from_dict(load_yaml_file(path))
