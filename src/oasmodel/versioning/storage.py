"""Durable storage collaborators for :class:`~oasmodel.versioning.store.SchemaVersionStore`.

A :class:`VersionStorage` keeps one immutable record per
``(schema_name, version_id)`` plus a per-schema "active version" pointer.
``write`` is an exclusive create: a second write of the same key raises
:class:`~oasmodel.exceptions.DuplicateVersionError` and never overwrites.

Two implementations ship with the package:

* :class:`InMemoryVersionStorage` -- dicts guarded by a lock.
* :class:`FileVersionStorage` -- one directory per schema::

      <root>/<schema_name>/<version_id>.json       raw content, as given
      <root>/<schema_name>/<version_id>.meta.json  hash, timestamps, sequence
      <root>/<schema_name>/.active                 active version pointer

  Content files are created with ``O_CREAT | O_EXCL`` so that concurrent
  writers (threads or processes) race deterministically; metadata and the
  active pointer are written with :func:`~oasmodel.config._atomic_write`.
"""

from __future__ import annotations

import json
import logging
import os
import threading
from datetime import datetime
from pathlib import Path
from typing import Optional, Protocol

from oasmodel.config import _atomic_write
from oasmodel.exceptions import DuplicateVersionError, SchemaVersionError
from oasmodel.models import SchemaVersion

logger = logging.getLogger(__name__)

_CONTENT_SUFFIX = ".json"
_META_SUFFIX = ".meta.json"
_ACTIVE_FILENAME = ".active"


class VersionStorage(Protocol):
    """Append-only version record store."""

    def write(self, version: SchemaVersion) -> None:
        """Persist *version*; raise :class:`DuplicateVersionError` if the key exists."""
        ...

    def read(self, schema_name: str, version_id: str) -> Optional[SchemaVersion]:
        ...

    def read_all(self, schema_name: str) -> list[SchemaVersion]:
        ...

    def get_active(self, schema_name: str) -> Optional[str]:
        ...

    def set_active(self, schema_name: str, version_id: str) -> None:
        ...


def _duplicate(version: SchemaVersion) -> DuplicateVersionError:
    return DuplicateVersionError(
        f"Version '{version.version_id}' already exists for schema '{version.schema_name}'",
        schema_name=version.schema_name,
        version_id=version.version_id,
    )


class InMemoryVersionStorage:
    """Process-local :class:`VersionStorage`."""

    def __init__(self) -> None:
        self._versions: dict[str, dict[str, SchemaVersion]] = {}
        self._active: dict[str, str] = {}
        self._lock = threading.Lock()

    def write(self, version: SchemaVersion) -> None:
        with self._lock:
            versions = self._versions.setdefault(version.schema_name, {})
            if version.version_id in versions:
                raise _duplicate(version)
            versions[version.version_id] = version

    def read(self, schema_name: str, version_id: str) -> Optional[SchemaVersion]:
        with self._lock:
            return self._versions.get(schema_name, {}).get(version_id)

    def read_all(self, schema_name: str) -> list[SchemaVersion]:
        with self._lock:
            return list(self._versions.get(schema_name, {}).values())

    def get_active(self, schema_name: str) -> Optional[str]:
        with self._lock:
            return self._active.get(schema_name)

    def set_active(self, schema_name: str, version_id: str) -> None:
        with self._lock:
            self._active[schema_name] = version_id


class FileVersionStorage:
    """Filesystem :class:`VersionStorage` rooted at *root*.

    Args:
        root: Base directory; created on first write.
    """

    def __init__(self, root: str | Path) -> None:
        self._root = Path(root)

    @property
    def root(self) -> Path:
        return self._root

    def _schema_dir(self, schema_name: str) -> Path:
        return self._root / schema_name

    def write(self, version: SchemaVersion) -> None:
        schema_dir = self._schema_dir(version.schema_name)
        schema_dir.mkdir(parents=True, exist_ok=True)
        content_path = schema_dir / f"{version.version_id}{_CONTENT_SUFFIX}"

        try:
            fd = os.open(content_path, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
        except FileExistsError as exc:
            raise _duplicate(version) from exc
        except OSError as exc:
            raise SchemaVersionError(
                f"Failed to create version file {content_path}: {exc}",
                schema_name=version.schema_name,
                version_id=version.version_id,
            ) from exc

        try:
            with os.fdopen(fd, "w", encoding="utf-8", newline="") as handle:
                handle.write(version.raw_content)
            meta = version.model_dump(mode="json", exclude={"raw_content"})
            _atomic_write(
                schema_dir / f"{version.version_id}{_META_SUFFIX}",
                json.dumps(meta, indent=2) + "\n",
            )
        except BaseException as exc:
            # Never leave a content file without its metadata.
            try:
                content_path.unlink()
            except OSError:
                pass
            if isinstance(exc, OSError):
                raise SchemaVersionError(
                    f"Failed to write version '{version.version_id}' of schema "
                    f"'{version.schema_name}': {exc}",
                    schema_name=version.schema_name,
                    version_id=version.version_id,
                ) from exc
            raise
        logger.debug("Wrote %s", content_path)

    def read(self, schema_name: str, version_id: str) -> Optional[SchemaVersion]:
        schema_dir = self._schema_dir(schema_name)
        meta_path = schema_dir / f"{version_id}{_META_SUFFIX}"
        content_path = schema_dir / f"{version_id}{_CONTENT_SUFFIX}"
        if not meta_path.is_file() or not content_path.is_file():
            return None
        try:
            meta = json.loads(meta_path.read_text(encoding="utf-8"))
            with open(content_path, encoding="utf-8", newline="") as handle:
                raw_content = handle.read()
        except (OSError, ValueError) as exc:
            raise SchemaVersionError(
                f"Failed to read version '{version_id}' of schema '{schema_name}': {exc}",
                schema_name=schema_name,
                version_id=version_id,
            ) from exc
        return SchemaVersion(
            schema_name=schema_name,
            version_id=version_id,
            content_hash=meta["content_hash"],
            raw_content=raw_content,
            created_at=datetime.fromisoformat(meta["created_at"].replace("Z", "+00:00")),
            sequence=meta.get("sequence", 0),
        )

    def read_all(self, schema_name: str) -> list[SchemaVersion]:
        schema_dir = self._schema_dir(schema_name)
        if not schema_dir.is_dir():
            return []
        versions = []
        for meta_path in sorted(schema_dir.glob(f"*{_META_SUFFIX}")):
            version = self.read(schema_name, meta_path.name[: -len(_META_SUFFIX)])
            if version is not None:
                versions.append(version)
        return versions

    def get_active(self, schema_name: str) -> Optional[str]:
        pointer = self._schema_dir(schema_name) / _ACTIVE_FILENAME
        if not pointer.is_file():
            return None
        try:
            data = json.loads(pointer.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            raise SchemaVersionError(
                f"Invalid active version pointer for schema '{schema_name}': {exc}",
                schema_name=schema_name,
            ) from exc
        return data.get("version_id")

    def set_active(self, schema_name: str, version_id: str) -> None:
        pointer = self._schema_dir(schema_name) / _ACTIVE_FILENAME
        _atomic_write(pointer, json.dumps({"version_id": version_id}) + "\n")
