"""Append-only schema version store with diffing and migration strategies.

:class:`SchemaVersionStore` keeps immutable :class:`~oasmodel.models.SchemaVersion`
snapshots of raw schema documents in a
:class:`~oasmodel.versioning.storage.VersionStorage` and tracks which version
is active per schema. It works on raw document text and never on parse
results.

Migration strategies:

* ``backup_and_replace`` -- snapshot the active content (or ``from`` when
  nothing is active yet) as ``<id>_backup_<timestamp>`` and activate ``to``.
* ``merge`` -- union the component property sets of ``from`` and ``to``.
  Properties declared with different types are reported as conflicts and
  nothing is written until every conflict is settled through ``resolutions``
  (``{"Pet.status": "from" | "to"}``). The result is stored and activated as
  ``<timestamp>_merged``.
* ``manual`` -- no mutation; returns the content diff and instructions.
"""

from __future__ import annotations

import json
import logging
import re
import threading
from datetime import datetime, timezone
from typing import Callable, Optional

from oasmodel.exceptions import SchemaVersionError, SchemaVersionNotFoundError
from oasmodel.models import (
    CompareStrategy,
    MigrationResult,
    MigrationStrategy,
    SchemaVersion,
    VersionDiff,
)
from oasmodel.versioning.diff import (
    compare,
    content_hash,
    decode_content,
    merge_documents,
    property_conflicts,
)
from oasmodel.versioning.storage import VersionStorage

logger = logging.getLogger(__name__)

VERSION_ID_FORMAT = "%Y-%m-%d_%H-%M-%S-%f"
_SAFE_NAME_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.-]*$")
_RESOLUTION_CHOICES = ("from", "to")

MANUAL_INSTRUCTIONS = [
    "Review the differences between versions",
    "Manually update your schema configuration",
    "Test the changes in a development environment",
    "Apply changes to production when ready",
]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _check_name(value: str, label: str) -> None:
    if not _SAFE_NAME_RE.match(value) or value.endswith(".meta"):
        raise SchemaVersionError(
            f"Invalid {label} '{value}': use letters, digits, '.', '_' or '-'"
        )


class SchemaVersionStore:
    """Create, list, compare and migrate schema versions.

    Args:
        storage: The durable record store.
        clock: Returns the current time; defaults to timezone-aware UTC now.
        compare_strategy: Default for :meth:`compare_versions`.
        migration_strategy: Default for :meth:`migrate`.
    """

    def __init__(
        self,
        storage: VersionStorage,
        *,
        clock: Optional[Callable[[], datetime]] = None,
        compare_strategy: CompareStrategy | str = CompareStrategy.HASH,
        migration_strategy: MigrationStrategy | str = MigrationStrategy.BACKUP_AND_REPLACE,
    ) -> None:
        self._storage = storage
        self._clock = clock or _utc_now
        self._compare_strategy = CompareStrategy(compare_strategy)
        self._migration_strategy = MigrationStrategy(migration_strategy)
        self._lock = threading.RLock()

    @property
    def storage(self) -> VersionStorage:
        return self._storage

    # --- Snapshots ---

    def create_version(
        self,
        schema_name: str,
        raw_content: str,
        version_id: Optional[str] = None,
    ) -> SchemaVersion:
        """Store *raw_content* as a new immutable version.

        Args:
            schema_name: Logical schema the version belongs to.
            raw_content: JSON or YAML text that decodes to a mapping.
            version_id: Explicit id; defaults to a ``%Y-%m-%d_%H-%M-%S-%f``
                timestamp.

        Raises:
            FormatError: If *raw_content* does not decode to a mapping.
            DuplicateVersionError: If *version_id* is already taken.
        """
        _check_name(schema_name, "schema name")
        if version_id is not None:
            _check_name(version_id, "version id")
        decode_content(raw_content, f"{schema_name}@{version_id or 'new'}")

        with self._lock:
            now = self._clock()
            if version_id is None:
                version_id = self._generate_id(schema_name, now)
            existing = self._storage.read_all(schema_name)
            version = SchemaVersion(
                schema_name=schema_name,
                version_id=version_id,
                content_hash=content_hash(raw_content),
                raw_content=raw_content,
                created_at=now,
                sequence=max((v.sequence for v in existing), default=0) + 1,
            )
            self._storage.write(version)

        logger.info("Created version %s of schema %s", version_id, schema_name)
        return version

    def _generate_id(self, schema_name: str, now: datetime) -> str:
        base = now.strftime(VERSION_ID_FORMAT)
        candidate = base
        suffix = 2
        while self._storage.read(schema_name, candidate) is not None:
            candidate = f"{base}-{suffix}"
            suffix += 1
        return candidate

    def get_version(self, schema_name: str, version_id: str) -> SchemaVersion:
        """Return a version or raise :class:`SchemaVersionNotFoundError`."""
        version = self._storage.read(schema_name, version_id)
        if version is None:
            raise SchemaVersionNotFoundError(
                f"Version '{version_id}' not found for schema '{schema_name}'",
                schema_name=schema_name,
                version_id=version_id,
            )
        return version

    def list_versions(self, schema_name: str) -> list[SchemaVersion]:
        """All versions of *schema_name*, oldest first (creation time, then write order)."""
        return sorted(
            self._storage.read_all(schema_name),
            key=lambda v: (v.created_at, v.sequence),
        )

    def get_latest_version(self, schema_name: str) -> Optional[SchemaVersion]:
        versions = self.list_versions(schema_name)
        return versions[-1] if versions else None

    def get_active_version(self, schema_name: str) -> Optional[SchemaVersion]:
        active_id = self._storage.get_active(schema_name)
        if active_id is None:
            return None
        return self._storage.read(schema_name, active_id)

    def activate(self, schema_name: str, version_id: str) -> SchemaVersion:
        """Make an existing version the active one."""
        version = self.get_version(schema_name, version_id)
        self._storage.set_active(schema_name, version_id)
        logger.info("Activated version %s of schema %s", version_id, schema_name)
        return version

    # --- Comparison ---

    def compare_versions(
        self,
        schema_name: str,
        version1: str,
        version2: str,
        strategy: CompareStrategy | str | None = None,
    ) -> VersionDiff:
        """Compare two stored versions with the ``hash``, ``content`` or ``timestamp`` strategy."""
        first = self.get_version(schema_name, version1)
        second = self.get_version(schema_name, version2)
        return compare(first, second, strategy if strategy is not None else self._compare_strategy)

    # --- Migration ---

    def migrate(
        self,
        schema_name: str,
        from_version: str,
        to_version: str,
        strategy: MigrationStrategy | str | None = None,
        resolutions: Optional[dict[str, str]] = None,
    ) -> MigrationResult:
        """Move *schema_name* from one version to another.

        Raises:
            SchemaVersionNotFoundError: If a version the strategy needs is missing.
        """
        strategy = MigrationStrategy(strategy if strategy is not None else self._migration_strategy)
        with self._lock:
            if strategy == MigrationStrategy.BACKUP_AND_REPLACE:
                return self._backup_and_replace(schema_name, from_version, to_version)
            if strategy == MigrationStrategy.MERGE:
                return self._merge(schema_name, from_version, to_version, resolutions or {})
            return self._manual(schema_name, from_version, to_version)

    def _timestamp(self) -> str:
        return self._clock().strftime(VERSION_ID_FORMAT)

    def _backup_and_replace(self, schema_name: str, from_version: str, to_version: str) -> MigrationResult:
        target = self.get_version(schema_name, to_version)

        source = self.get_active_version(schema_name)
        if source is None:
            source = self.get_version(schema_name, from_version)

        backup = self.create_version(
            schema_name,
            source.raw_content,
            f"{source.version_id}_backup_{self._timestamp()}",
        )
        self._storage.set_active(schema_name, target.version_id)

        logger.info(
            "Migrated schema %s from %s to %s (backup %s)",
            schema_name, from_version, to_version, backup.version_id,
        )
        return MigrationResult(
            success=True,
            strategy=MigrationStrategy.BACKUP_AND_REPLACE,
            from_version=from_version,
            to_version=to_version,
            active_version=target.version_id,
            backup_version=backup.version_id,
            message=f"Activated {to_version}; previous content saved as {backup.version_id}",
        )

    def _merge(
        self,
        schema_name: str,
        from_version: str,
        to_version: str,
        resolutions: dict[str, str],
    ) -> MigrationResult:
        source = self.get_version(schema_name, from_version)
        target = self.get_version(schema_name, to_version)
        old = decode_content(source.raw_content, from_version)
        new = decode_content(target.raw_content, to_version)

        unresolved = [
            conflict for conflict in property_conflicts(old, new)
            if resolutions.get(conflict.key) not in _RESOLUTION_CHOICES
        ]
        if unresolved:
            logger.warning(
                "Merge of schema %s blocked by %d unresolved conflicts", schema_name, len(unresolved)
            )
            return MigrationResult(
                success=False,
                strategy=MigrationStrategy.MERGE,
                from_version=from_version,
                to_version=to_version,
                active_version=self._storage.get_active(schema_name),
                conflicts=unresolved,
                message=(
                    f"{len(unresolved)} property conflicts must be resolved: "
                    + ", ".join(conflict.key for conflict in unresolved)
                ),
            )

        merged = merge_documents(old, new, resolutions)
        merged_version = self.create_version(
            schema_name,
            json.dumps(merged, indent=2),
            f"{self._timestamp()}_merged",
        )
        self._storage.set_active(schema_name, merged_version.version_id)

        logger.info(
            "Merged schema %s versions %s and %s into %s",
            schema_name, from_version, to_version, merged_version.version_id,
        )
        return MigrationResult(
            success=True,
            strategy=MigrationStrategy.MERGE,
            from_version=from_version,
            to_version=to_version,
            active_version=merged_version.version_id,
            merged_version=merged_version.version_id,
            message=f"Merged into {merged_version.version_id}",
        )

    def _manual(self, schema_name: str, from_version: str, to_version: str) -> MigrationResult:
        diff = self.compare_versions(schema_name, from_version, to_version, CompareStrategy.CONTENT)
        return MigrationResult(
            success=False,
            strategy=MigrationStrategy.MANUAL,
            from_version=from_version,
            to_version=to_version,
            active_version=self._storage.get_active(schema_name),
            diff=diff,
            instructions=list(MANUAL_INSTRUCTIONS),
            message="Manual migration required",
        )

    def restore_from_backup(self, schema_name: str, backup_version: str) -> SchemaVersion:
        """Make *backup_version* the active version after re-validating its content."""
        backup = self.get_version(schema_name, backup_version)
        decode_content(backup.raw_content, backup_version)
        self._storage.set_active(schema_name, backup.version_id)
        logger.info("Restored schema %s from backup %s", schema_name, backup_version)
        return backup
