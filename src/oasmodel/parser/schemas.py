"""Extract the normalized component schema map from a resolved document."""

from __future__ import annotations

import logging

from oasmodel.models import SchemaNode
from oasmodel.parser.resolver import ReferenceResolver

logger = logging.getLogger(__name__)


def extract_schemas(resolver: ReferenceResolver) -> dict[str, SchemaNode]:
    """Return one :class:`~oasmodel.models.SchemaNode` per component schema.

    Entries keep declaration order. A component that is itself an alias is
    dereferenced one level so its attributes can be enumerated; references
    inside properties and items stay :class:`~oasmodel.models.SchemaRef`.
    """
    schemas = {name: resolver.schema_node(name) for name in resolver.component_names}
    logger.debug("Extracted %d component schemas", len(schemas))
    return schemas
