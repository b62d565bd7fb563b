"""Shared test fixtures for oasmodel.

Provides reusable fixtures for loading document fixtures, building resolved
documents and extracted maps, creating isolated config environments and
constructing engines. These fixtures are automatically discovered by pytest
and available to all test modules without explicit imports.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pytest

from oasmodel.engine import OpenApiEngine
from oasmodel.models import CacheConfig, Endpoint, EngineConfig, SchemaNode
from oasmodel.parser.resolver import ReferenceResolver, resolve_document


FIXTURES_DIR = Path(__file__).parent / "fixtures"


def load_fixture(name: str) -> dict[str, Any]:
    with open(FIXTURES_DIR / name) as f:
        return json.load(f)


# ---------------------------------------------------------------------------
# Raw document fixtures (plain dicts loaded from JSON files)
# ---------------------------------------------------------------------------


@pytest.fixture
def petstore_raw() -> dict[str, Any]:
    """Load the raw petstore 3.0 document."""
    return load_fixture("petstore.json")


@pytest.fixture
def petstore_31_raw() -> dict[str, Any]:
    """Load the raw petstore 3.1 document."""
    return load_fixture("petstore_3.1.json")


@pytest.fixture
def minimal_raw() -> dict[str, Any]:
    """A one-endpoint document without components."""
    return load_fixture("minimal.json")


# ---------------------------------------------------------------------------
# Resolved / extracted fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def petstore_resolver(petstore_raw: dict[str, Any]) -> ReferenceResolver:
    return resolve_document(petstore_raw, "petstore.json")


@pytest.fixture
def petstore_schemas(petstore_resolver: ReferenceResolver) -> dict[str, SchemaNode]:
    from oasmodel.parser.schemas import extract_schemas

    return extract_schemas(petstore_resolver)


@pytest.fixture
def petstore_endpoints(petstore_resolver: ReferenceResolver) -> dict[str, Endpoint]:
    from oasmodel.parser.endpoints import extract_endpoints

    return extract_endpoints(petstore_resolver)


# ---------------------------------------------------------------------------
# Engine fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def engine() -> OpenApiEngine:
    """An engine with caching disabled."""
    return OpenApiEngine(EngineConfig(cache=CacheConfig(enabled=False)))


# ---------------------------------------------------------------------------
# Config isolation fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Isolate configuration to a temporary directory.

    Sets XDG_CONFIG_HOME, XDG_CACHE_HOME, and XDG_DATA_HOME to
    subdirectories of tmp_path so that tests never touch real user
    config. Clears all OASMODEL_* environment variables and changes
    the working directory to tmp_path.

    Returns:
        The tmp_path root directory for additional file creation.
    """
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_CACHE_HOME", str(tmp_path / "cache"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))

    for var in [
        "OASMODEL_CACHE_ENABLED",
        "OASMODEL_CACHE_TTL",
        "OASMODEL_CACHE_DIR",
        "OASMODEL_CACHE_PERSISTENT",
        "OASMODEL_REMOTE_TIMEOUT",
        "OASMODEL_MAX_FILE_SIZE",
        "OASMODEL_STRICTNESS",
        "OASMODEL_VERSION_STORAGE",
        "OASMODEL_VERSIONING_ENABLED",
        "OASMODEL_COMPARE_STRATEGY",
        "OASMODEL_MIGRATION_STRATEGY",
    ]:
        monkeypatch.delenv(var, raising=False)

    monkeypatch.chdir(tmp_path)
    return tmp_path
