"""Identity and semantic version helpers shared by the lock builder and installer."""

from __future__ import annotations

import re
import uuid
from dataclasses import dataclass, field

from extensions.errors import ExtensionVersionError

# MAJOR.MINOR.PATCH with optional pre-release and build metadata
SEMVER_PATTERN = re.compile(
    r"^(0|[1-9]\d*)\.(0|[1-9]\d*)\.(0|[1-9]\d*)"
    r"(?:-([0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*))?"
    r"(?:\+([0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*))?$"
)

LATEST = "latest"


@dataclass(frozen=True, order=True)
class SemanticVersion:
    """Comparable semantic version. Build metadata does not take part in ordering."""

    major: int
    minor: int
    patch: int
    # (1,) for a release, (0, ...identifiers) for a pre-release
    _precedence: tuple = field(repr=False)
    text: str = field(compare=False)

    def __str__(self) -> str:
        return self.text


def _prerelease_key(prerelease: str | None) -> tuple:
    if not prerelease:
        return (1,)
    parts: list[tuple[int, int, str]] = []
    for identifier in prerelease.split("."):
        if identifier.isdigit():
            parts.append((0, int(identifier), ""))
        else:
            parts.append((1, 0, identifier))
    return (0, *parts)


def parse_semver(version: str) -> SemanticVersion:
    """Parse a strict semantic version.

    Args:
        version: Version string such as "1.2.3" or "1.2.3-rc.1".

    Returns:
        Comparable SemanticVersion.

    Raises:
        ExtensionVersionError: If the string is not a semantic version.
    """
    candidate = (version or "").strip()
    match = SEMVER_PATTERN.match(candidate)
    if not match:
        raise ExtensionVersionError(f"invalid semantic version: {version!r}")
    major, minor, patch, prerelease, _build = match.groups()
    return SemanticVersion(
        major=int(major),
        minor=int(minor),
        patch=int(patch),
        _precedence=_prerelease_key(prerelease),
        text=candidate,
    )


def parse_previous_semver(version: str | None) -> SemanticVersion | None:
    """Parse a previously recorded version, returning None when unusable."""
    if not version:
        return None
    try:
        return parse_semver(version)
    except ExtensionVersionError:
        return None


def is_newer(candidate: str, existing: str | None) -> bool:
    """Return True when candidate is strictly newer than existing.

    A missing or unparsable existing version counts as "no prior version".

    Raises:
        ExtensionVersionError: If candidate itself is not a semantic version.
    """
    new_version = parse_semver(candidate)
    old_version = parse_previous_semver(existing)
    if old_version is None:
        return True
    return old_version < new_version


def version_from_tag(tag: str) -> str:
    """Strip the conventional "v" prefix from a release tag."""
    return tag[1:] if tag.startswith("v") else tag


def is_uuid(value: str) -> bool:
    """Check whether a child reference is already a UUID."""
    try:
        uuid.UUID(value)
    except (ValueError, AttributeError, TypeError):
        return False
    return True


def new_uuid() -> str:
    return str(uuid.uuid4())


def _words(value: str) -> list[str]:
    spaced = re.sub(r"([a-z0-9])([A-Z])", r"\1 \2", value)
    spaced = re.sub(r"([A-Z]+)([A-Z][a-z])", r"\1 \2", spaced)
    return [w for w in re.split(r"[\W_]+", spaced) if w]


def kebab_case(value: str) -> str:
    """Convert "myExtension_name" into "my-extension-name"."""
    return "-".join(w.lower() for w in _words(value))


def snake_case(value: str) -> str:
    """Convert "myExtension-name" into "my_extension_name"."""
    return "_".join(w.lower() for w in _words(value))
