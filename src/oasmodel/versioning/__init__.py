"""Versioned, diffable snapshots of schema documents.

* :mod:`~oasmodel.versioning.store` -- :class:`SchemaVersionStore`:
  create, list, compare and migrate versions.
* :mod:`~oasmodel.versioning.storage` -- :class:`VersionStorage` protocol with
  in-memory and file-backed implementations.
* :mod:`~oasmodel.versioning.diff` -- hashing, component diffs, property
  conflict detection and merging.
"""

from oasmodel.versioning.storage import FileVersionStorage, InMemoryVersionStorage, VersionStorage
from oasmodel.versioning.store import SchemaVersionStore

__all__ = ["SchemaVersionStore", "VersionStorage", "InMemoryVersionStorage", "FileVersionStorage"]
