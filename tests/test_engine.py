"""End-to-end tests for oasmodel.engine.OpenApiEngine."""

from __future__ import annotations

import json
import textwrap
from pathlib import Path
from typing import Any

import pytest

from oasmodel.cache import DiskCacheStore, MemoryCacheStore, ParseCache
from oasmodel.engine import OpenApiEngine
from oasmodel.exceptions import (
    DocumentIOError,
    SchemaValidationError,
    UnresolvedReferenceError,
    UnsupportedVersionError,
    ValidationException,
)
from oasmodel.models import CacheConfig, EngineConfig, OperationType, Strictness, VersioningConfig
from oasmodel.versioning import SchemaVersionStore

FIXTURES_DIR = Path(__file__).parent / "fixtures"
PETSTORE = str(FIXTURES_DIR / "petstore.json")


class _CountingFetcher:
    def __init__(self, document: dict[str, Any]) -> None:
        self.body = json.dumps(document).encode("utf-8")
        self.calls = 0

    def fetch(self, url: str, timeout: float) -> bytes:
        self.calls += 1
        return self.body


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------


class TestParse:
    def test_minimal_document(self, engine: OpenApiEngine) -> None:
        result = engine.parse(str(FIXTURES_DIR / "minimal.json"))

        assert result.openapi_version == "3.0.0"
        assert result.info.title == "Test API"
        assert list(result.endpoints) == ["get_test"]
        assert result.schemas == {}
        assert result.validation_rules == {}
        assert list(result.model_mappings) == ["Test"]
        assert result.model_mappings["Test"].operations == [OperationType.INDEX]
        assert result.endpoint_rules == {"get_test": {}}

    def test_petstore_document(self, engine: OpenApiEngine) -> None:
        result = engine.parse(PETSTORE)

        assert len(result.endpoints) == 11
        assert list(result.schemas) == ["Pet", "Category", "Tag", "Owner", "Order", "Error"]
        assert list(result.model_mappings) == ["Pet", "Category", "Order", "Health"]
        assert result.security == [{"api_key": []}]
        assert result.servers[0].url == "https://petstore.example.com/v1"
        assert result.parsed_at.tzinfo is not None

    def test_pet_rules(self, engine: OpenApiEngine) -> None:
        result = engine.parse(PETSTORE)

        create = result.rules_for("Pet", "create")
        assert create["name"] == ["required", "string", "min:1", "max:100"]
        assert create["status"] == ["string", "in:available,pending,sold"]
        assert result.rules_for("Pet", OperationType.UPDATE)["name"] == ["string", "min:1", "max:100"]
        assert result.rules_for("Nope") == {}
        assert result.endpoint_rules["showPetById"] == {"petId": ["required", "integer"]}
        assert result.endpoint_rules["createPet"]["name"] == ["required", "string", "min:1", "max:100"]
        assert result.endpoint_rules["updatePet"]["petId"] == ["required", "string"]
        assert "required" not in result.endpoint_rules["updatePet"]["name"]

    def test_parse_is_deterministic(self, engine: OpenApiEngine) -> None:
        first = engine.parse(PETSTORE)
        second = engine.parse(PETSTORE)
        assert first.model_dump(exclude={"parsed_at"}) == second.model_dump(exclude={"parsed_at"})

    def test_yaml_string(self, engine: OpenApiEngine) -> None:
        content = textwrap.dedent("""\
            openapi: 3.1.0
            info:
              title: YAML API
              version: "2"
            paths:
              /widgets:
                get:
                  operationId: listWidgets
                  responses:
                    "200":
                      description: ok
                      content:
                        application/json:
                          schema:
                            type: array
                            items:
                              $ref: "#/components/schemas/Widget"
            components:
              schemas:
                Widget:
                  type: object
                  required: [label]
                  properties:
                    label:
                      type: string
        """)
        result = engine.parse_string(content, "widgets.yaml")
        assert result.source == "widgets.yaml"
        assert result.model_mappings["Widget"].base_endpoint == "/widgets"
        assert result.rules_for("Widget") == {"label": ["required", "string"]}

    def test_openapi_31_document(self, engine: OpenApiEngine) -> None:
        result = engine.parse(str(FIXTURES_DIR / "petstore_3.1.json"))
        rules = result.rules_for("Pet")
        assert rules["nickname"] == ["string", "max:30", "nullable"]
        assert rules["owner"] == []
        assert [(r.name, r.related_model) for r in result.model_mappings["Pet"].relationships] == [
            ("owner", "Owner")
        ]


class TestParseFailures:
    def test_swagger_2_is_rejected(self, engine: OpenApiEngine) -> None:
        content = json.dumps({"swagger": "2.0", "info": {"title": "Old", "version": "1"}, "paths": {}})
        with pytest.raises(UnsupportedVersionError):
            engine.parse_string(content)

    def test_openapi_2_declaration_is_rejected(self, engine: OpenApiEngine) -> None:
        content = json.dumps({"openapi": "2.0", "info": {"title": "Old", "version": "1"}, "paths": {}})
        with pytest.raises(UnsupportedVersionError):
            engine.parse_string(content)

    def test_missing_title(self, engine: OpenApiEngine) -> None:
        with pytest.raises(SchemaValidationError) as exc_info:
            engine.parse_raw({"openapi": "3.0.0", "info": {"version": "1"}, "paths": {}})
        assert exc_info.value.field == "info.title"

    def test_dangling_reference_fails_whole_parse(self, engine: OpenApiEngine) -> None:
        data = {
            "openapi": "3.0.0",
            "info": {"title": "T", "version": "1"},
            "paths": {
                "/a": {"post": {"requestBody": {"content": {"application/json": {"schema": {"$ref": "#/components/schemas/Gone"}}}}, "responses": {}}}
            },
        }
        with pytest.raises(UnresolvedReferenceError) as exc_info:
            engine.parse_raw(data, "broken.json")
        assert exc_info.value.component == "POST /a"

    def test_missing_file(self, engine: OpenApiEngine, tmp_path: Path) -> None:
        with pytest.raises(DocumentIOError):
            engine.parse(str(tmp_path / "missing.yaml"))


# ---------------------------------------------------------------------------
# Caching
# ---------------------------------------------------------------------------


class TestCaching:
    def test_default_cache_is_in_memory(self) -> None:
        engine = OpenApiEngine()
        assert engine.cache is not None
        assert isinstance(engine.cache.store, MemoryCacheStore)

    def test_cached_parse_returns_same_result(self) -> None:
        engine = OpenApiEngine()
        first = engine.parse(PETSTORE)
        assert engine.parse(PETSTORE) is first
        assert engine.parse(PETSTORE, use_cache=False) is not first
        assert engine.cache.stats()["hits"] == 1  # type: ignore[union-attr]

    def test_disabled_cache(self, engine: OpenApiEngine) -> None:
        assert engine.cache is None
        assert engine.parse(PETSTORE) is not engine.parse(PETSTORE)

    def test_remote_source_is_fetched_once(self, petstore_raw: dict[str, Any]) -> None:
        fetcher = _CountingFetcher(petstore_raw)
        engine = OpenApiEngine(fetcher=fetcher)

        first = engine.parse("https://petstore.example.com/openapi.json")
        second = engine.parse("https://petstore.example.com/openapi.json")

        assert fetcher.calls == 1
        assert first is second

    def test_failed_parse_is_not_cached(self, tmp_path: Path) -> None:
        engine = OpenApiEngine()
        target = tmp_path / "later.json"
        with pytest.raises(DocumentIOError):
            engine.parse(str(target))

        target.write_text((FIXTURES_DIR / "minimal.json").read_text(encoding="utf-8"), encoding="utf-8")
        assert list(engine.parse(str(target)).endpoints) == ["get_test"]

    def test_disk_cache(self, tmp_path: Path) -> None:
        engine = OpenApiEngine(EngineConfig(cache=CacheConfig(directory=str(tmp_path))))
        try:
            assert isinstance(engine.cache.store, DiskCacheStore)  # type: ignore[union-attr]
            first = engine.parse(PETSTORE)
            second = engine.parse(PETSTORE)
            assert first == second
            assert engine.cache.stats()["hits"] == 1  # type: ignore[union-attr]
        finally:
            engine.close()

    def test_injected_cache(self) -> None:
        cache = ParseCache(MemoryCacheStore(), ttl_seconds=5, prefix="test_")
        engine = OpenApiEngine(cache=cache)
        engine.parse(PETSTORE)
        assert cache.stats()["misses"] == 1


# ---------------------------------------------------------------------------
# Validation and wiring
# ---------------------------------------------------------------------------


class TestValidate:
    def test_validate_with_parsed_rules(self, engine: OpenApiEngine) -> None:
        rules = engine.parse(PETSTORE).rules_for("Pet", "create")
        outcome = engine.validate({"name": "Rex", "price": "19.99", "status": "sold"}, rules)
        assert outcome.valid is True
        assert outcome.data["price"] == 19.99

    def test_configured_strictness(self) -> None:
        config = EngineConfig.model_validate({"cache": {"enabled": False}, "validation": {"strictness": "lenient"}})
        engine = OpenApiEngine(config)
        rules = engine.parse(PETSTORE).rules_for("Pet", "create")

        outcome = engine.validate({"status": "lost"}, rules)
        assert outcome.strictness == Strictness.LENIENT
        assert len(outcome.warnings) == 2

        with pytest.raises(ValidationException):
            engine.validate({"status": "lost"}, rules, strictness="strict")


class TestWiring:
    def test_version_store_from_config(self, tmp_path: Path) -> None:
        config = EngineConfig(
            cache=CacheConfig(enabled=False),
            versioning=VersioningConfig(storage_path=str(tmp_path / "versions"), compare_strategy="content"),
        )
        engine = OpenApiEngine(config)
        assert isinstance(engine.version_store, SchemaVersionStore)

        content = (FIXTURES_DIR / "petstore.json").read_text(encoding="utf-8")
        version = engine.version_store.create_version("petstore", content, "v1")
        assert (tmp_path / "versions" / "petstore" / "v1.json").is_file()
        assert version.raw_content == content

    def test_no_version_store_by_default(self, engine: OpenApiEngine) -> None:
        assert engine.version_store is None

    def test_from_config(self, isolated_config: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("OASMODEL_STRICTNESS", "moderate")
        engine = OpenApiEngine.from_config(overrides={"cache": {"enabled": False}})
        assert engine.cache is None
        assert engine.config.validation.strictness == Strictness.MODERATE

    def test_persistent_cache_uses_xdg_cache_dir(self, isolated_config: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("oasmodel.config._is_xdg_platform", lambda: True)
        engine = OpenApiEngine(EngineConfig(cache=CacheConfig(persistent=True)))
        try:
            assert isinstance(engine.cache.store, DiskCacheStore)  # type: ignore[union-attr]
            assert engine.cache.store.directory == isolated_config / "cache" / "oasmodel" / "parses"  # type: ignore[union-attr]
        finally:
            engine.close()

    def test_enabled_versioning_uses_xdg_data_dir(self, isolated_config: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("oasmodel.config._is_xdg_platform", lambda: True)
        monkeypatch.setenv("OASMODEL_VERSIONING_ENABLED", "true")
        engine = OpenApiEngine.from_config(overrides={"cache": {"enabled": False}})
        assert engine.version_store is not None

        content = (FIXTURES_DIR / "minimal.json").read_text(encoding="utf-8")
        engine.version_store.create_version("minimal", content, "v1")
        assert (isolated_config / "data" / "oasmodel" / "versions" / "minimal" / "v1.json").is_file()
