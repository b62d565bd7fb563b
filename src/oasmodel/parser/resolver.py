"""Resolve ``$ref`` JSON Reference pointers in OpenAPI documents.

Component schemas live in an arena keyed by name (``components.schemas``).
:class:`ReferenceResolver` turns raw schema dicts into
:class:`~oasmodel.models.SchemaNode` objects on demand:

* A ``{"$ref": "#/components/schemas/<name>"}`` found inside a schema becomes a
  :class:`~oasmodel.models.SchemaRef` marker instead of being inlined, so a
  self-referencing schema (a category holding sub-categories) stays finite.
* :meth:`ReferenceResolver.node` builds a component lazily and memoizes it.
  A visited set guards alias chains (``A: {$ref: B}``) and ``allOf``
  composition; hitting a component that is already being built yields a
  ``SchemaRef`` rather than recursing.
* Only object and array containers are walked; scalars pass through.

Non-schema references (``#/components/parameters/...``, ``requestBodies``,
``responses``) are followed by :meth:`ReferenceResolver.deref` using RFC 6901
JSON Pointer navigation. Only internal references (``#/...``) are supported.

:meth:`ReferenceResolver.resolve` validates every reference in the document
up front, so a dangling pointer fails the whole parse before any extraction
starts.
"""

from __future__ import annotations

import logging
from typing import Any, Iterator, Optional

from oasmodel.exceptions import UnresolvedReferenceError
from oasmodel.models import Constraints, SchemaNode, SchemaRef

logger = logging.getLogger(__name__)

SCHEMA_REF_PREFIX = "#/components/schemas/"


class ReferenceResolver:
    """Lazy, memoizing resolver over a decoded OpenAPI document.

    Args:
        data: The decoded document mapping (see
            :func:`~oasmodel.parser.loader.load_document`). It is never mutated.
        source: Source locator used in error messages.
    """

    def __init__(self, data: dict[str, Any], source: Optional[str] = None) -> None:
        self._data = data
        self._source = source
        components = data.get("components") or {}
        schemas = components.get("schemas") if isinstance(components, dict) else None
        self._raw_schemas: dict[str, Any] = schemas if isinstance(schemas, dict) else {}
        self._nodes: dict[str, SchemaNode | SchemaRef] = {}
        self._building: set[str] = set()

    @property
    def data(self) -> dict[str, Any]:
        return self._data

    @property
    def source(self) -> Optional[str]:
        return self._source

    @property
    def component_names(self) -> list[str]:
        """Component schema names in declaration order."""
        return list(self._raw_schemas)

    def has_component(self, name: str) -> bool:
        return name in self._raw_schemas

    # ------------------------------------------------------------------
    # Whole-document validation
    # ------------------------------------------------------------------

    def resolve(self) -> ReferenceResolver:
        """Check every ``$ref`` in the document and build all component nodes.

        Returns:
            ``self``, so calls can be chained.

        Raises:
            UnresolvedReferenceError: On the first dangling or external reference.
        """
        for ref, container in self._iter_refs():
            self._check_ref(ref, container)
        for name in self._raw_schemas:
            self.node(name)
        logger.debug(
            "Resolved %d component schemas from %s", len(self._raw_schemas), self._source
        )
        return self

    def _iter_refs(self) -> Iterator[tuple[str, str]]:
        """Yield ``(ref, container)`` for every ``$ref`` reachable in the document."""
        for name, schema in self._raw_schemas.items():
            yield from _walk_refs(schema, name)

        components = self._data.get("components") or {}
        if isinstance(components, dict):
            for section, entries in components.items():
                if section == "schemas" or not isinstance(entries, dict):
                    continue
                for name, entry in entries.items():
                    yield from _walk_refs(entry, f"components.{section}.{name}")

        paths = self._data.get("paths") or {}
        for path, path_item in paths.items():
            if not isinstance(path_item, dict):
                continue
            for key, value in path_item.items():
                container = f"{key.upper()} {path}" if isinstance(value, dict) else path
                yield from _walk_refs(value, container)

    def _check_ref(self, ref: Any, container: str) -> None:
        if not isinstance(ref, str):
            raise UnresolvedReferenceError(str(ref), container, self._source, "reference must be a string")
        if ref.startswith(SCHEMA_REF_PREFIX) and "/" not in ref[len(SCHEMA_REF_PREFIX):]:
            self.schema_ref_name(ref, container)
        else:
            self._pointer(ref, container)

    # ------------------------------------------------------------------
    # Schema arena
    # ------------------------------------------------------------------

    def node(self, name: str, container: Optional[str] = None) -> SchemaNode | SchemaRef:
        """Return the memoized node for component *name*, building it on first use.

        A component whose construction is already in progress (an alias or
        ``allOf`` cycle) is returned as a :class:`SchemaRef`.

        Raises:
            UnresolvedReferenceError: If no such component exists.
        """
        if name in self._nodes:
            return self._nodes[name]
        if name in self._building:
            return SchemaRef(name=name)
        if name not in self._raw_schemas:
            raise UnresolvedReferenceError(
                SCHEMA_REF_PREFIX + name, container or name, self._source, "component not found"
            )

        self._building.add(name)
        try:
            raw = self._raw_schemas[name]
            if isinstance(raw, dict) and "$ref" in raw and _is_component_ref(raw["$ref"]):
                # An alias is dereferenced one level for attribute enumeration.
                result = self.node(self.schema_ref_name(raw["$ref"], name), name)
            else:
                result = self._build(raw, name)
        finally:
            self._building.discard(name)

        self._nodes[name] = result
        return result

    def schema_node(self, name: str) -> SchemaNode:
        """Like :meth:`node` but always returns a :class:`SchemaNode`.

        A component that is nothing but an alias cycle has no shape of its own
        and is represented by an empty node.
        """
        result = self.node(name)
        if isinstance(result, SchemaRef):
            logger.warning("Component schema '%s' is an alias cycle; treating it as empty", name)
            return SchemaNode()
        return result

    def convert(self, raw: Any, container: str) -> SchemaNode | SchemaRef:
        """Normalize any raw schema dict found inside *container*."""
        if not isinstance(raw, dict):
            # OpenAPI 3.1 boolean schemas and malformed entries carry no shape.
            return SchemaNode()

        if "$ref" in raw:
            ref = raw["$ref"]
            if _is_component_ref(ref):
                return SchemaRef(name=self.schema_ref_name(ref, container))
            if ref in self._building:
                return SchemaNode()
            self._building.add(ref)
            try:
                return self.convert(self._pointer(ref, container), container)
            finally:
                self._building.discard(ref)

        variants = _variants(raw)
        if variants is not None:
            return self.convert(variants[0], container)

        return self._build(raw, container)

    def _build(self, raw: Any, container: str) -> SchemaNode:
        if not isinstance(raw, dict):
            return SchemaNode()

        raw = self._compose(raw, container)
        schema_type, nullable = _schema_type(raw.get("type"))

        properties = {
            prop_name: self.convert(prop, container)
            for prop_name, prop in (raw.get("properties") or {}).items()
        }
        items_raw = raw.get("items")
        items = self.convert(items_raw, container) if isinstance(items_raw, dict) else None

        if schema_type is None:
            if properties:
                schema_type = "object"
            elif items is not None:
                schema_type = "array"

        required: list[str] = []
        for field_name in raw.get("required") or []:
            if isinstance(field_name, str) and field_name not in required:
                required.append(field_name)

        enum = raw.get("enum")
        return SchemaNode(
            type=schema_type,
            format=raw.get("format") if isinstance(raw.get("format"), str) else None,
            description=raw.get("description"),
            properties=properties,
            items=items,
            required=required,
            enum=list(enum) if isinstance(enum, list) else None,
            constraints=_constraints(raw),
            read_only=bool(raw.get("readOnly", False)),
            nullable=nullable or bool(raw.get("nullable", False)),
            default=raw.get("default"),
            example=raw.get("example"),
        )

    def _compose(self, raw: dict[str, Any], container: str) -> dict[str, Any]:
        """Flatten ``allOf`` into a single raw schema (properties and required unioned)."""
        members = raw.get("allOf")
        if not isinstance(members, list):
            return raw

        merged = {key: value for key, value in raw.items() if key != "allOf"}
        properties: dict[str, Any] = {}
        required: list[Any] = []
        for member in members:
            member_raw = self._composed_member(member, container)
            if member_raw is None:
                continue
            properties.update(member_raw.get("properties") or {})
            required.extend(member_raw.get("required") or [])
            for key, value in member_raw.items():
                if key not in ("properties", "required"):
                    merged.setdefault(key, value)

        properties.update(raw.get("properties") or {})
        required.extend(raw.get("required") or [])
        merged["properties"] = properties
        merged["required"] = required
        return merged

    def _composed_member(self, member: Any, container: str) -> Optional[dict[str, Any]]:
        if not isinstance(member, dict):
            return None
        if "$ref" not in member:
            return self._compose(member, container)

        ref = member["$ref"]
        if _is_component_ref(ref):
            name = self.schema_ref_name(ref, container)
            if name in self._building:
                return None
            target = self._raw_schemas[name]
        else:
            name = ref
            if name in self._building:
                return None
            target = self._pointer(ref, container)
        if not isinstance(target, dict):
            return None

        self._building.add(name)
        try:
            if "$ref" in target:
                return self._composed_member(target, container)
            return self._compose(target, container)
        finally:
            self._building.discard(name)

    # ------------------------------------------------------------------
    # Pointer helpers
    # ------------------------------------------------------------------

    def schema_ref_name(self, ref: str, container: str) -> str:
        """Return the component name of a ``#/components/schemas/<name>`` ref.

        Raises:
            UnresolvedReferenceError: If the component does not exist.
        """
        name = _unescape(ref[len(SCHEMA_REF_PREFIX):])
        if name not in self._raw_schemas:
            raise UnresolvedReferenceError(ref, container, self._source, "component not found")
        return name

    def deref(self, obj: Any, container: str) -> Any:
        """Follow non-schema ``$ref`` pointers until a concrete object is reached."""
        seen: set[str] = set()
        while isinstance(obj, dict) and "$ref" in obj:
            ref = obj["$ref"]
            if ref in seen:
                raise UnresolvedReferenceError(ref, container, self._source, "circular reference")
            seen.add(ref)
            obj = self._pointer(ref, container)
        return obj

    def _pointer(self, ref: Any, container: str) -> Any:
        """Navigate an internal JSON Pointer (``#/a/b/0``) against the document root.

        Handles RFC 6901 escaping (``~0`` for ``~``, ``~1`` for ``/``).
        """
        if not isinstance(ref, str) or not ref.startswith("#/"):
            raise UnresolvedReferenceError(
                str(ref), container, self._source,
                "only internal references (#/...) are supported",
            )

        current: Any = self._data
        for segment in ref[2:].split("/"):
            segment = _unescape(segment)
            if isinstance(current, dict):
                if segment not in current:
                    raise UnresolvedReferenceError(
                        ref, container, self._source, f"key '{segment}' not found"
                    )
                current = current[segment]
            elif isinstance(current, list):
                try:
                    current = current[int(segment)]
                except (ValueError, IndexError) as exc:
                    raise UnresolvedReferenceError(
                        ref, container, self._source, f"invalid array index '{segment}'"
                    ) from exc
            else:
                raise UnresolvedReferenceError(
                    ref, container, self._source,
                    f"cannot navigate into {type(current).__name__}",
                )
        return current


def resolve_document(data: dict[str, Any], source: Optional[str] = None) -> ReferenceResolver:
    """Build a :class:`ReferenceResolver` for *data* and validate all its references."""
    return ReferenceResolver(data, source).resolve()


def _is_component_ref(ref: Any) -> bool:
    return (
        isinstance(ref, str)
        and ref.startswith(SCHEMA_REF_PREFIX)
        and "/" not in ref[len(SCHEMA_REF_PREFIX):]
    )


def _unescape(segment: str) -> str:
    return segment.replace("~1", "/").replace("~0", "~")


# Keys whose values are literal payloads inside a schema, parameter or example.
_LITERAL_KEYS = frozenset({"example", "examples", "default", "enum", "const", "value"})

# Keys whose values map user-chosen names (property names, status codes,
# media types) to objects, so a child named ``default`` is not a keyword.
_NAME_MAP_KEYS = frozenset({
    "properties", "patternProperties", "$defs", "definitions", "dependentSchemas",
    "responses", "headers", "content", "encoding", "links", "callbacks", "examples",
})


def _walk_refs(
    obj: Any,
    container: str,
    _parent: Optional[str] = None,
    _stack: Optional[set[int]] = None,
) -> Iterator[tuple[str, str]]:
    """Yield every ``$ref`` value under *obj*.

    ``_parent`` is the key *obj* was found under. Literal keywords such as
    ``default`` are skipped only where they are keywords; under a name map
    like ``responses`` or ``properties`` they are ordinary entries. A dict of
    named ``examples`` is walked, a list of example values is not.

    ``_stack`` holds the ids of containers on the current path, guarding
    against self-referencing YAML aliases.
    """
    if not isinstance(obj, (dict, list)):
        return
    stack = _stack if _stack is not None else set()
    if id(obj) in stack:
        return
    stack.add(id(obj))
    try:
        if isinstance(obj, dict):
            named = _parent in _NAME_MAP_KEYS
            if "$ref" in obj and not named:
                yield obj["$ref"], container
            for key, value in obj.items():
                if named:
                    yield from _walk_refs(value, container, None, stack)
                    continue
                if key in _LITERAL_KEYS and not (key == "examples" and isinstance(value, dict)):
                    continue
                yield from _walk_refs(value, container, key, stack)
        else:
            for item in obj:
                yield from _walk_refs(item, container, None, stack)
    finally:
        stack.discard(id(obj))


def _variants(raw: dict[str, Any]) -> Optional[list[Any]]:
    """Return the non-null ``oneOf``/``anyOf`` variants of a type-less schema."""
    if "type" in raw or "properties" in raw or "allOf" in raw:
        return None
    for key in ("oneOf", "anyOf"):
        variants = raw.get(key)
        if isinstance(variants, list):
            non_null = [v for v in variants if not (isinstance(v, dict) and v.get("type") == "null")]
            if non_null:
                return non_null
    return None


def _schema_type(type_value: Any) -> tuple[Optional[str], bool]:
    """Return ``(type, nullable)``.

    OpenAPI 3.1 allows ``type`` to be an array (e.g. ``["string", "null"]``);
    the first non-null entry wins and ``"null"`` marks the schema nullable.
    """
    if isinstance(type_value, list):
        non_null = [t for t in type_value if t != "null"]
        return (str(non_null[0]) if non_null else None), "null" in type_value
    if isinstance(type_value, str):
        return type_value, False
    return None, False


def _number(value: Any) -> Optional[int | float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return value


def _count(value: Any) -> Optional[int]:
    if isinstance(value, bool) or not isinstance(value, int):
        return None
    return value


def _constraints(raw: dict[str, Any]) -> Constraints:
    pattern = raw.get("pattern")
    return Constraints(
        minimum=_number(raw.get("minimum")),
        maximum=_number(raw.get("maximum")),
        min_length=_count(raw.get("minLength")),
        max_length=_count(raw.get("maxLength")),
        min_items=_count(raw.get("minItems")),
        max_items=_count(raw.get("maxItems")),
        pattern=pattern if isinstance(pattern, str) else None,
    )
