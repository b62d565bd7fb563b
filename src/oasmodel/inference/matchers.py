"""Relationship detection strategies.

A :class:`RelationshipMatcher` looks at one property of a schema and either
returns a :class:`~oasmodel.models.RelationshipDescriptor` or ``None``. The
inferencer runs an ordered chain of matchers per property and keeps the first
match, so structural evidence always beats naming conventions:

1. :class:`StructuralRefMatcher` -- ``$ref`` and array-of-``$ref`` properties.
2. :class:`EmbeddedObjectMatcher` -- inline object properties.
3. :class:`NamePatternMatcher` -- ``<name>_id`` / ``<name>Id`` scalars that
   name a known model. This is a heuristic; drop it from the chain (or pass
   a custom chain to :class:`~oasmodel.inference.mapper.ModelMappingInferencer`)
   when a document's naming does not follow the convention.
"""

from __future__ import annotations

import re
from typing import Optional, Protocol

from oasmodel.inference.naming import model_name_for, pascal_case
from oasmodel.models import (
    RelationshipDescriptor,
    RelationshipKind,
    SchemaNode,
    SchemaRef,
)


class RelationshipMatcher(Protocol):
    """Strategy interface for relationship detection."""

    name: str

    def match(
        self,
        property_name: str,
        schema: SchemaNode | SchemaRef,
        known_models: set[str],
    ) -> Optional[RelationshipDescriptor]:
        ...


class StructuralRefMatcher:
    """``Ref(X)`` -> ``belongsTo X``; ``array`` of ``Ref(X)`` -> ``hasMany X``."""

    name = "structural"

    def match(
        self,
        property_name: str,
        schema: SchemaNode | SchemaRef,
        known_models: set[str],
    ) -> Optional[RelationshipDescriptor]:
        if isinstance(schema, SchemaRef):
            return RelationshipDescriptor(
                name=property_name,
                kind=RelationshipKind.BELONGS_TO,
                related_model=model_name_for(schema.name),
                matcher=self.name,
            )
        if schema.type == "array" and isinstance(schema.items, SchemaRef):
            return RelationshipDescriptor(
                name=property_name,
                kind=RelationshipKind.HAS_MANY,
                related_model=model_name_for(schema.items.name),
                matcher=self.name,
            )
        return None


class EmbeddedObjectMatcher:
    """An inline ``object`` with its own properties is an embedded shape."""

    name = "embedded"

    def match(
        self,
        property_name: str,
        schema: SchemaNode | SchemaRef,
        known_models: set[str],
    ) -> Optional[RelationshipDescriptor]:
        if isinstance(schema, SchemaNode) and schema.type == "object" and schema.properties:
            return RelationshipDescriptor(
                name=property_name,
                kind=RelationshipKind.EMBEDDED,
                related_model=pascal_case(property_name),
                matcher=self.name,
            )
        return None


_FOREIGN_KEY_RE = re.compile(r"^(?P<base>[A-Za-z][A-Za-z0-9_]*?)(?:_id|Id)$")
_SCALAR_TYPES = frozenset({"string", "integer", "number"})


class NamePatternMatcher:
    """``owner_id`` / ``ownerId`` scalars -> ``belongsTo Owner`` for known models only."""

    name = "name_pattern"

    def match(
        self,
        property_name: str,
        schema: SchemaNode | SchemaRef,
        known_models: set[str],
    ) -> Optional[RelationshipDescriptor]:
        if not isinstance(schema, SchemaNode) or schema.type not in _SCALAR_TYPES:
            return None
        found = _FOREIGN_KEY_RE.match(property_name)
        if found is None:
            return None
        base = found.group("base")
        related = model_name_for(base)
        if related not in known_models:
            return None
        return RelationshipDescriptor(
            name=base,
            kind=RelationshipKind.BELONGS_TO,
            related_model=related,
            matcher=self.name,
        )


def default_matchers() -> list[RelationshipMatcher]:
    return [StructuralRefMatcher(), EmbeddedObjectMatcher(), NamePatternMatcher()]
