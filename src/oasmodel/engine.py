"""The parse pipeline: load, validate, resolve, extract, infer and build rules.

:class:`OpenApiEngine` wires the components together::

    load_document -> validate_document -> ReferenceResolver.resolve
        -> extract_schemas / extract_endpoints
        -> ModelMappingInferencer.infer
        -> build_rules / build_endpoint_rules
        -> ParseResult

Parsing fails fast: any loader, structure or reference error propagates and
no partial :class:`~oasmodel.models.ParseResult` is returned or cached. The
optional :class:`~oasmodel.cache.ParseCache` and
:class:`~oasmodel.versioning.SchemaVersionStore` are injected (or built from
the configuration); the engine holds no process-wide state.

Example::

    engine = OpenApiEngine.from_config()
    result = engine.parse("https://petstore3.swagger.io/api/v3/openapi.json")
    rules = result.rules_for("Pet", "create")
    outcome = engine.validate({"name": "Rex", "status": "sold"}, rules)
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional, Sequence

from oasmodel.cache import DiskCacheStore, MemoryCacheStore, ParseCache
from oasmodel.config import get_cache_dir, get_data_dir, load_engine_config
from oasmodel.inference import ModelMappingInferencer, RelationshipMatcher
from oasmodel.models import (
    EngineConfig,
    OperationType,
    ParseResult,
    Strictness,
    ValidationOutcome,
    ValidationRuleSet,
)
from oasmodel.parser import (
    extract_endpoints,
    extract_info,
    extract_schemas,
    extract_servers,
    load_document,
    parse_content,
    resolve_document,
    validate_document,
)
from oasmodel.parser.loader import Fetcher
from oasmodel.validation import StrictnessEvaluator, build_endpoint_rules, build_rules
from oasmodel.versioning import FileVersionStorage, SchemaVersionStore

logger = logging.getLogger(__name__)


class OpenApiEngine:
    """Parse OpenAPI documents into :class:`~oasmodel.models.ParseResult` objects.

    Args:
        config: Engine configuration; defaults to :class:`EngineConfig` defaults.
        cache: Parse cache. When omitted and caching is enabled, a disk cache
            is created in ``config.cache.directory`` (or the XDG cache dir when
            ``config.cache.persistent`` is set), otherwise an in-memory one.
        version_store: Schema version store. When omitted, a file-backed store
            is created in ``config.versioning.storage_path``, or under the XDG
            data dir when ``config.versioning.enabled`` is set.
        fetcher: HTTP collaborator for URL sources.
        matchers: Relationship matcher chain for model inference.
    """

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        *,
        cache: Optional[ParseCache] = None,
        version_store: Optional[SchemaVersionStore] = None,
        fetcher: Optional[Fetcher] = None,
        matchers: Optional[Sequence[RelationshipMatcher]] = None,
    ) -> None:
        self.config = config or EngineConfig()
        self.cache = cache if cache is not None else self._build_cache()
        self.version_store = version_store if version_store is not None else self._build_version_store()
        self._fetcher = fetcher
        self._inferencer = ModelMappingInferencer(matchers)
        self._evaluator = StrictnessEvaluator(self.config.validation.strictness)

    @classmethod
    def from_config(
        cls,
        path: str | Path | None = None,
        overrides: Optional[dict[str, Any]] = None,
        **kwargs: Any,
    ) -> OpenApiEngine:
        """Build an engine from :func:`~oasmodel.config.load_engine_config`."""
        return cls(load_engine_config(path, overrides), **kwargs)

    def _build_cache(self) -> Optional[ParseCache]:
        settings = self.config.cache
        if not settings.enabled:
            return None
        directory = settings.directory
        if not directory and settings.persistent:
            directory = str(get_cache_dir())
        if directory:
            store = DiskCacheStore(directory)
        else:
            store = MemoryCacheStore()
        return ParseCache(
            store,
            ttl_seconds=settings.ttl_seconds,
            prefix=settings.prefix,
            tag=settings.tag,
        )

    def _build_version_store(self) -> Optional[SchemaVersionStore]:
        settings = self.config.versioning
        storage_path = settings.storage_path
        if not storage_path and settings.enabled:
            storage_path = str(get_data_dir() / "versions")
        if not storage_path:
            return None
        return SchemaVersionStore(
            FileVersionStorage(storage_path),
            compare_strategy=settings.compare_strategy,
            migration_strategy=settings.migration_strategy,
        )

    # --- Parsing ---

    def parse(self, source: str, use_cache: bool = True) -> ParseResult:
        """Parse the document at *source* (path, URL or ``-`` for stdin).

        Raises:
            DocumentIOError, FormatError, SchemaValidationError,
            UnresolvedReferenceError: The first failure in the pipeline.
        """
        if use_cache and self.config.cache.enabled and self.cache is not None and source != "-":
            return self.cache.get_or_parse(source, lambda: self._parse_source(source))
        return self._parse_source(source)

    def _parse_source(self, source: str) -> ParseResult:
        logger.debug("Parsing OpenAPI document %s", source)
        raw = load_document(
            source,
            fetcher=self._fetcher,
            timeout=self.config.remote.timeout,
            max_size=self.config.remote.max_file_size,
        )
        return self.parse_raw(raw.data, raw.source)

    def parse_string(self, content: str, source: str = "<string>") -> ParseResult:
        """Parse JSON or YAML text that has already been read."""
        return self.parse_raw(parse_content(content, source).data, source)

    def parse_raw(self, data: dict[str, Any], source: str = "<memory>") -> ParseResult:
        """Run the pipeline on an already-decoded document mapping."""
        version = validate_document(data, source, self.config.supported_versions)
        resolver = resolve_document(data, source)

        schemas = extract_schemas(resolver)
        endpoints = extract_endpoints(resolver)
        mappings = self._inferencer.infer(endpoints, schemas)

        validation_rules = {
            name: {
                OperationType.CREATE.value: build_rules(node, OperationType.CREATE),
                OperationType.UPDATE.value: build_rules(node, OperationType.UPDATE),
            }
            for name, node in schemas.items()
        }
        endpoint_rules = {
            operation_id: build_endpoint_rules(endpoint, schemas)
            for operation_id, endpoint in endpoints.items()
        }

        result = ParseResult(
            source=source,
            openapi_version=version,
            info=extract_info(data),
            servers=extract_servers(data),
            security=data.get("security") or [],
            endpoints=endpoints,
            schemas=schemas,
            model_mappings=mappings,
            validation_rules=validation_rules,
            endpoint_rules=endpoint_rules,
            parsed_at=datetime.now(timezone.utc),
        )
        logger.debug(
            "Parsed %s: %d endpoints, %d schemas, %d models",
            source, len(endpoints), len(schemas), len(mappings),
        )
        return result

    # --- Validation ---

    def validate(
        self,
        data: dict[str, Any],
        rules: ValidationRuleSet,
        strictness: Strictness | str | None = None,
    ) -> ValidationOutcome:
        """Evaluate *data* against *rules*, defaulting to the configured strictness."""
        return self._evaluator.evaluate(data, rules, strictness)

    def close(self) -> None:
        """Release the disk cache, if one is open."""
        if self.cache is not None and isinstance(self.cache.store, DiskCacheStore):
            self.cache.store.close()
