"""Canonical Pydantic models shared across all oasmodel modules.

This is the single source of truth for data shapes in the project. Every other
module imports from here rather than defining its own models. The models fall
into four groups:

**Configuration models** -- serialised as JSON in the user's config directory:
    :class:`CacheConfig`, :class:`RemoteConfig`, :class:`ValidationConfig`,
    :class:`VersioningConfig` and :class:`EngineConfig`.

**Schema models** -- the normalized view of component schemas:
    :class:`SchemaNode`, :class:`SchemaRef` and :class:`Constraints`. A
    property is either an inlined node or a ``SchemaRef`` marker, which is how
    self-referencing schemas are represented without infinite materialisation.

**Parser output models** -- produced by the pipeline and consumed by code
generators: :class:`RawDocument`, :class:`Parameter`, :class:`Endpoint`,
:class:`AttributeDescriptor`, :class:`RelationshipDescriptor`,
:class:`ModelMapping`, :class:`ValidationOutcome` and :class:`ParseResult`.

**Versioning models** -- :class:`SchemaVersion`, :class:`VersionDiff`,
:class:`PropertyConflict` and :class:`MigrationResult`.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


# --- Enumerations ---


class HTTPMethod(str, Enum):
    """HTTP methods recognised by OpenAPI 3.x path-item objects, in extraction order."""

    GET = "get"
    POST = "post"
    PUT = "put"
    PATCH = "patch"
    DELETE = "delete"
    HEAD = "head"
    OPTIONS = "options"
    TRACE = "trace"


class ParameterLocation(str, Enum):
    """Locations where an API parameter can appear, per OpenAPI ``in`` field."""

    QUERY = "query"
    HEADER = "header"
    PATH = "path"
    COOKIE = "cookie"


class DocumentFormat(str, Enum):
    JSON = "json"
    YAML = "yaml"


class OperationType(str, Enum):
    """CRUD operation classes a resource model can support.

    Declaration order is the canonical order used when listing a model's
    operations.
    """

    INDEX = "index"
    SHOW = "show"
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class RelationshipKind(str, Enum):
    BELONGS_TO = "belongsTo"
    HAS_MANY = "hasMany"
    EMBEDDED = "embedded"


class Strictness(str, Enum):
    """Validation strictness levels.

    ``STRICT`` raises on the first violation, ``MODERATE`` collects every
    violation before raising, ``LENIENT`` only records warnings.
    """

    STRICT = "strict"
    MODERATE = "moderate"
    LENIENT = "lenient"


class CompareStrategy(str, Enum):
    HASH = "hash"
    CONTENT = "content"
    TIMESTAMP = "timestamp"


class MigrationStrategy(str, Enum):
    BACKUP_AND_REPLACE = "backup_and_replace"
    MERGE = "merge"
    MANUAL = "manual"


# --- Configuration ---


class CacheConfig(BaseModel):
    """Parse cache settings stored in :class:`EngineConfig`."""

    enabled: bool = Field(default=True, description="Memoize whole-document parses")
    ttl_seconds: int = Field(default=3600, description="Cache TTL in seconds")
    prefix: str = Field(default="openapi_schema_", description="Cache key prefix")
    tag: str = Field(default="openapi", description="Tag used for bulk eviction")
    directory: Optional[str] = Field(
        default=None,
        description="Directory for a disk-backed cache",
    )
    persistent: bool = Field(
        default=False,
        description="Use a disk cache under the XDG cache dir when no directory is set",
    )


class RemoteConfig(BaseModel):
    """Settings for loading documents from URLs."""

    timeout: float = Field(default=30.0, description="Fetch timeout in seconds")
    max_file_size: int = Field(
        default=10 * 1024 * 1024, description="Maximum document size in bytes"
    )


class ValidationConfig(BaseModel):
    strictness: Strictness = Field(
        default=Strictness.STRICT, description="Default strictness for payload validation"
    )


class VersioningConfig(BaseModel):
    """Schema version store settings."""

    storage_path: Optional[str] = Field(
        default=None,
        description="Directory for file-backed versions",
    )
    enabled: bool = Field(
        default=False,
        description="Build a version store under the XDG data dir when no path is set",
    )
    compare_strategy: CompareStrategy = CompareStrategy.HASH
    migration_strategy: MigrationStrategy = MigrationStrategy.BACKUP_AND_REPLACE


class EngineConfig(BaseModel):
    """Engine-wide configuration persisted at ``~/.config/oasmodel/config.json``.

    Loaded by :func:`~oasmodel.config.load_engine_config`, which layers
    environment variables and a project-local file on top of the user file.
    """

    supported_versions: list[str] = Field(
        default_factory=lambda: ["3.0.", "3.1."],
        description="Accepted OpenAPI version prefixes",
    )
    cache: CacheConfig = Field(default_factory=CacheConfig)
    remote: RemoteConfig = Field(default_factory=RemoteConfig)
    validation: ValidationConfig = Field(default_factory=ValidationConfig)
    versioning: VersioningConfig = Field(default_factory=VersioningConfig)


# --- Schema Models ---


class Constraints(BaseModel):
    """Numeric, length and item-count bounds declared on a schema."""

    minimum: Optional[Union[int, float]] = None
    maximum: Optional[Union[int, float]] = None
    min_length: Optional[int] = None
    max_length: Optional[int] = None
    min_items: Optional[int] = None
    max_items: Optional[int] = None
    pattern: Optional[str] = None


class SchemaRef(BaseModel):
    """Marker for ``#/components/schemas/<name>`` left unresolved in place.

    Property and item references always stay as ``SchemaRef`` so that cycles
    (e.g. a category holding sub-categories) are never inlined.
    """

    model_config = ConfigDict(frozen=True)

    kind: Literal["ref"] = "ref"
    name: str

    @property
    def ref(self) -> str:
        return f"#/components/schemas/{self.name}"


class SchemaNode(BaseModel):
    """A normalized schema object.

    ``required`` has set semantics but keeps declaration order so that rule
    generation and attribute listing are deterministic.
    """

    kind: Literal["node"] = "node"
    type: Optional[str] = None
    format: Optional[str] = None
    description: Optional[str] = None
    properties: dict[str, SchemaProperty] = Field(default_factory=dict)
    items: Optional[SchemaProperty] = None
    required: list[str] = Field(default_factory=list)
    enum: Optional[list[Any]] = None
    constraints: Constraints = Field(default_factory=Constraints)
    read_only: bool = False
    nullable: bool = False
    default: Any = None
    example: Any = None

    def is_required(self, name: str) -> bool:
        return name in self.required


SchemaProperty = Annotated[Union[SchemaNode, SchemaRef], Field(discriminator="kind")]


def referenced_component(schema: Optional[SchemaNode | SchemaRef]) -> Optional[str]:
    """Return the component a schema points at, directly or as array items.

    ``Ref(Pet)`` and ``array<Ref(Pet)>`` both yield ``"Pet"``; anything else
    yields ``None``.
    """
    if isinstance(schema, SchemaRef):
        return schema.name
    if isinstance(schema, SchemaNode) and schema.type == "array":
        if isinstance(schema.items, SchemaRef):
            return schema.items.name
    return None


# --- Parser Output Models ---


class RawDocument(BaseModel):
    """A decoded but not yet interpreted OpenAPI document."""

    source: str
    format: DocumentFormat
    content: str = Field(description="Original text as read or fetched")
    data: dict[str, Any]


class APIInfo(BaseModel):
    """API metadata extracted from the document's *Info Object*."""

    title: str
    version: str
    description: Optional[str] = None
    terms_of_service: Optional[str] = None
    contact_name: Optional[str] = None
    contact_email: Optional[str] = None
    contact_url: Optional[str] = None
    license_name: Optional[str] = None
    license_url: Optional[str] = None


class ServerInfo(BaseModel):
    url: str
    description: Optional[str] = None


class Parameter(BaseModel):
    """A single merged parameter of an :class:`Endpoint`."""

    name: str
    location: ParameterLocation
    required: bool = False
    description: Optional[str] = None
    schema_: Optional[SchemaProperty] = Field(default=None, alias="schema")

    model_config = ConfigDict(populate_by_name=True)


class Endpoint(BaseModel):
    """A single API operation (one URL path + HTTP method pair)."""

    operation_id: str
    method: HTTPMethod
    path: str
    parameters: list[Parameter] = Field(default_factory=list)
    request_body_schema: Optional[SchemaProperty] = None
    response_schema: Optional[SchemaProperty] = None
    summary: Optional[str] = None
    description: Optional[str] = None
    tags: list[str] = Field(default_factory=list)
    deprecated: bool = False
    security: list[dict[str, list[str]]] = Field(default_factory=list)

    @property
    def has_path_parameter(self) -> bool:
        return "{" in self.path


class AttributeDescriptor(BaseModel):
    name: str
    type: str = "string"
    format: Optional[str] = None
    required: bool = False
    constraints: Constraints = Field(default_factory=Constraints)
    enum: Optional[list[Any]] = None
    nullable: bool = False
    read_only: bool = False
    description: Optional[str] = None


class RelationshipDescriptor(BaseModel):
    """A relationship from one model to another (or to an embedded shape).

    ``matcher`` records which :class:`~oasmodel.inference.matchers.RelationshipMatcher`
    produced the descriptor, so heuristic matches can be told apart from
    structural ones.
    """

    name: str
    kind: RelationshipKind
    related_model: str
    matcher: str = "structural"


class ModelMapping(BaseModel):
    """The inferred grouping of a schema and its operations into one resource."""

    model_config = ConfigDict(protected_namespaces=())

    model_name: str
    base_endpoint: str
    schema_name: Optional[str] = None
    operations: list[OperationType] = Field(default_factory=list)
    endpoints: list[str] = Field(
        default_factory=list, description="Operation ids grouped under this model"
    )
    attributes: list[AttributeDescriptor] = Field(default_factory=list)
    relationships: list[RelationshipDescriptor] = Field(default_factory=list)

    def supports(self, operation: OperationType | str) -> bool:
        return OperationType(operation) in self.operations


ValidationRuleSet = dict[str, list[str]]


class ValidationOutcome(BaseModel):
    """Result of evaluating a payload against a :data:`ValidationRuleSet`.

    ``data`` holds the auto-cast payload.
    """

    valid: bool
    data: dict[str, Any] = Field(default_factory=dict)
    errors: dict[str, list[str]] = Field(default_factory=dict)
    warnings: list[str] = Field(default_factory=list)
    strictness: Strictness


class ParseResult(BaseModel):
    """Complete parsed representation of an OpenAPI document.

    Produced by :meth:`~oasmodel.engine.OpenApiEngine.parse` and consumed by
    code generators. ``validation_rules`` maps a component name to its rule
    sets keyed by operation (``"create"`` / ``"update"``); ``endpoint_rules``
    maps an operation id to the rules for its parameters merged with those of
    its request body.
    """

    model_config = ConfigDict(protected_namespaces=())

    source: str
    openapi_version: str
    info: APIInfo
    servers: list[ServerInfo] = Field(default_factory=list)
    security: list[dict[str, list[str]]] = Field(default_factory=list)
    endpoints: dict[str, Endpoint] = Field(default_factory=dict)
    schemas: dict[str, SchemaNode] = Field(default_factory=dict)
    model_mappings: dict[str, ModelMapping] = Field(default_factory=dict)
    validation_rules: dict[str, dict[str, ValidationRuleSet]] = Field(default_factory=dict)
    endpoint_rules: dict[str, ValidationRuleSet] = Field(default_factory=dict)
    parsed_at: datetime

    def rules_for(self, schema_name: str, operation: OperationType | str = OperationType.CREATE) -> ValidationRuleSet:
        """Return the rule set of *schema_name* for *operation* (empty when unknown)."""
        return self.validation_rules.get(schema_name, {}).get(OperationType(operation).value, {})


# --- Versioning Models ---


class SchemaVersion(BaseModel):
    """An immutable snapshot of a schema document."""

    model_config = ConfigDict(frozen=True)

    schema_name: str
    version_id: str
    content_hash: str = Field(description="SHA-256 hex digest of raw_content")
    raw_content: str
    created_at: datetime
    sequence: int = Field(default=0, description="Write order within the schema")


class VersionDiff(BaseModel):
    """Comparison of two versions.

    ``added`` / ``removed`` / ``changed`` list top-level component names and
    are only populated by the ``content`` strategy.
    """

    strategy: CompareStrategy
    identical: bool
    version1: str
    version2: str
    added: list[str] = Field(default_factory=list)
    removed: list[str] = Field(default_factory=list)
    changed: list[str] = Field(default_factory=list)
    hash1: Optional[str] = None
    hash2: Optional[str] = None
    newer_version: Optional[str] = None


class PropertyConflict(BaseModel):
    """A property declared with different types in two versions."""

    component: str
    property_name: str
    from_type: Optional[str] = None
    to_type: Optional[str] = None

    @property
    def key(self) -> str:
        return f"{self.component}.{self.property_name}"


class MigrationResult(BaseModel):
    success: bool
    strategy: MigrationStrategy
    from_version: str
    to_version: str
    active_version: Optional[str] = None
    backup_version: Optional[str] = None
    merged_version: Optional[str] = None
    conflicts: list[PropertyConflict] = Field(default_factory=list)
    diff: Optional[VersionDiff] = None
    instructions: list[str] = Field(default_factory=list)
    message: str = ""


SchemaNode.model_rebuild()
Parameter.model_rebuild()
Endpoint.model_rebuild()
