"""Stores for installed extension records.

The installer only ever lists, creates and patches records. Removing a
record is an explicit operator action outside this engine.
"""

from __future__ import annotations

import logging
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path

from extensions.errors import ExtensionStoreError, ManifestError
from extensions.manifest import ExtensionRecord, dump_yaml, load_yaml_file

logger = logging.getLogger(__name__)


class ExtensionStore(ABC):
    """Persistence for installed extension records."""

    @abstractmethod
    def list_installed(self) -> dict[str, ExtensionRecord]:
        """Return every installed record keyed by UUID.

        Raises:
            ExtensionStoreError: If a record has no UUID or cannot be read.
        """
        ...

    @abstractmethod
    def create(self, record: ExtensionRecord) -> ExtensionRecord:
        """Persist a new record.

        Raises:
            ExtensionStoreError: If a record with the same name exists.
        """
        ...

    @abstractmethod
    def patch_update(self, record: ExtensionRecord) -> ExtensionRecord:
        """Replace the spec of an existing record in place.

        Raises:
            ExtensionStoreError: If the record does not exist.
        """
        ...


class FileExtensionStore(ExtensionStore):
    """Keeps one YAML document per installed extension in a directory.

    Example:
        >>> store = FileExtensionStore(Path("~/.extlock/installed").expanduser())
        >>> installed = store.list_installed()
    """

    def __init__(self, directory: Path):
        self.directory = Path(directory)

    def _path(self, name: str) -> Path:
        if not name or name.startswith(".") or "/" in name:
            raise ExtensionStoreError(f"Invalid extension record name {name!r}")
        return self.directory / f"{name}.yaml"

    def list_installed(self) -> dict[str, ExtensionRecord]:
        installed: dict[str, ExtensionRecord] = {}
        if not self.directory.exists():
            return installed

        for path in sorted(self.directory.glob("*.yaml")):
            try:
                data = load_yaml_file(path)
            except ManifestError as e:
                raise ExtensionStoreError(f"Cannot read extension record {path}: {e}") from e
            spec_data = data.get("spec") or {}
            if not isinstance(spec_data, dict) or not spec_data.get("uuid"):
                raise ExtensionStoreError(
                    f"Extension {data.get('name') or path.stem} does not have a UUID"
                )
            try:
                record = ExtensionRecord.from_dict(data)
            except ManifestError as e:
                raise ExtensionStoreError(f"Invalid extension record {path}: {e}") from e
            if record.uuid in installed:
                raise ExtensionStoreError(
                    f"Extensions {installed[record.uuid].name} and {record.name} "
                    f"share UUID {record.uuid}"
                )
            installed[record.uuid] = record
        return installed

    def create(self, record: ExtensionRecord) -> ExtensionRecord:
        path = self._path(record.name)
        if path.exists():
            raise ExtensionStoreError(f"Extension record {record.name} already exists")
        self._write(path, record)
        logger.debug("Created extension record %s", record.name)
        return record

    def patch_update(self, record: ExtensionRecord) -> ExtensionRecord:
        path = self._path(record.name)
        if not path.exists():
            raise ExtensionStoreError(f"Extension record {record.name} does not exist")
        self._write(path, record)
        logger.debug("Patched extension record %s", record.name)
        return record

    def _write(self, path: Path, record: ExtensionRecord) -> None:
        """Write a record atomically via a sibling temp file."""
        self.directory.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", dir=self.directory)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(dump_yaml(record.to_dict()))
            os.replace(tmp_name, path)
        except OSError as e:
            try:
                os.unlink(tmp_name)
            except OSError:
                pass
            raise ExtensionStoreError(f"Cannot write extension record {path}: {e}") from e


class MemoryExtensionStore(ExtensionStore):
    """In-memory store, used for dry runs over a snapshot of another store."""

    def __init__(self, records: dict[str, ExtensionRecord] | None = None):
        self.records: dict[str, ExtensionRecord] = dict(records or {})

    def list_installed(self) -> dict[str, ExtensionRecord]:
        return dict(self.records)

    def create(self, record: ExtensionRecord) -> ExtensionRecord:
        if any(r.name == record.name for r in self.records.values()):
            raise ExtensionStoreError(f"Extension record {record.name} already exists")
        self.records[record.uuid] = record
        return record

    def patch_update(self, record: ExtensionRecord) -> ExtensionRecord:
        if record.uuid not in self.records:
            raise ExtensionStoreError(f"Extension record {record.name} does not exist")
        self.records[record.uuid] = record
        return record
