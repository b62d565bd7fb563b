"""Cluster endpoints and component schemas into resource models.

:class:`ModelMappingInferencer` groups every endpoint under a model:

* by the component its request body references (directly or as array items),
* else by the component its response references,
* else by the first non-parameterized path segment.

Groups that resolve to the same model name (``Pet`` from a ``Pet`` reference
and ``Pet`` from ``/pets``) are merged. Each model then collects:

* **operations** -- classified from method and path (see
  :func:`classify_operation`), listed in canonical order;
* **attributes** -- every schema property that is not a reference or an
  array of references;
* **relationships** -- from the ordered matcher chain in
  :mod:`oasmodel.inference.matchers`;
* **base_endpoint** -- see :func:`select_base_endpoint`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional, Sequence

from oasmodel.inference.matchers import RelationshipMatcher, default_matchers
from oasmodel.inference.naming import model_name_for, resource_segment, split_segments, has_path_param
from oasmodel.models import (
    AttributeDescriptor,
    Endpoint,
    HTTPMethod,
    ModelMapping,
    OperationType,
    RelationshipDescriptor,
    SchemaNode,
    SchemaRef,
    referenced_component,
)

logger = logging.getLogger(__name__)


def classify_operation(endpoint: Endpoint) -> Optional[OperationType]:
    """Map an endpoint to the CRUD operation it implements.

    * ``GET`` on a path without parameters -> ``index``
    * ``GET`` on a path with a parameter   -> ``show``
    * ``POST`` -> ``create``, ``PUT``/``PATCH`` -> ``update``, ``DELETE`` -> ``delete``

    ``HEAD``, ``OPTIONS`` and ``TRACE`` map to nothing.
    """
    if endpoint.method == HTTPMethod.GET:
        return OperationType.SHOW if endpoint.has_path_parameter else OperationType.INDEX
    return _METHOD_OPERATIONS.get(endpoint.method)


_METHOD_OPERATIONS = {
    HTTPMethod.POST: OperationType.CREATE,
    HTTPMethod.PUT: OperationType.UPDATE,
    HTTPMethod.PATCH: OperationType.UPDATE,
    HTTPMethod.DELETE: OperationType.DELETE,
}


def select_base_endpoint(paths: Sequence[str]) -> str:
    """Pick the canonical collection path among *paths*.

    The shortest path (fewest segments) without path parameters wins; when
    every path is parameterized the shortest parameterized one is used.
    Ties are broken lexicographically.
    """
    unique = sorted(set(paths))
    if not unique:
        return "/"
    plain = [p for p in unique if not has_path_param(p)]
    candidates = plain or unique
    return min(candidates, key=lambda p: (len(split_segments(p)), p))


def endpoint_component(endpoint: Endpoint) -> Optional[str]:
    """Return the component an endpoint's request, else response, references."""
    return referenced_component(endpoint.request_body_schema) or referenced_component(
        endpoint.response_schema
    )


@dataclass
class _Group:
    model_name: str
    schema_name: Optional[str] = None
    endpoints: list[Endpoint] = field(default_factory=list)


class ModelMappingInferencer:
    """Infer :class:`~oasmodel.models.ModelMapping` objects from a parsed document.

    Args:
        matchers: Ordered relationship matcher chain. Defaults to
            :func:`~oasmodel.inference.matchers.default_matchers`.
    """

    def __init__(self, matchers: Optional[Sequence[RelationshipMatcher]] = None) -> None:
        self.matchers: list[RelationshipMatcher] = (
            list(matchers) if matchers is not None else default_matchers()
        )

    def infer(
        self,
        endpoints: dict[str, Endpoint],
        schemas: dict[str, SchemaNode],
    ) -> dict[str, ModelMapping]:
        groups = self._group(endpoints, schemas)
        known_models = set(groups) | {model_name_for(name) for name in schemas}

        mappings: dict[str, ModelMapping] = {}
        for model_name, group in groups.items():
            schema = schemas.get(group.schema_name) if group.schema_name else None
            mappings[model_name] = ModelMapping(
                model_name=model_name,
                base_endpoint=self._base_endpoint(group),
                schema_name=group.schema_name,
                operations=self._operations(group.endpoints),
                endpoints=[ep.operation_id for ep in group.endpoints],
                attributes=_attributes(schema) if schema is not None else [],
                relationships=self._relationships(schema, known_models) if schema is not None else [],
            )

        logger.debug("Inferred %d model mappings", len(mappings))
        return mappings

    def _group(
        self,
        endpoints: dict[str, Endpoint],
        schemas: dict[str, SchemaNode],
    ) -> dict[str, _Group]:
        groups: dict[str, _Group] = {}

        for endpoint in endpoints.values():
            component = endpoint_component(endpoint)
            if component is not None:
                model_name = model_name_for(component)
            else:
                model_name = model_name_for(resource_segment(endpoint.path) or "")
            group = groups.setdefault(model_name, _Group(model_name))
            if component is not None and group.schema_name is None:
                group.schema_name = component
            group.endpoints.append(endpoint)

        # Segment-only groups adopt the component whose model name matches.
        for group in groups.values():
            if group.schema_name is None:
                group.schema_name = next(
                    (name for name in schemas if model_name_for(name) == group.model_name),
                    None,
                )
        return groups

    @staticmethod
    def _operations(endpoints: list[Endpoint]) -> list[OperationType]:
        found = {classify_operation(ep) for ep in endpoints}
        return [op for op in OperationType if op in found]

    @staticmethod
    def _base_endpoint(group: _Group) -> str:
        referencing = []
        for ep in group.endpoints:
            component = endpoint_component(ep)
            if component is not None and model_name_for(component) == group.model_name:
                referencing.append(ep.path)
        return select_base_endpoint(referencing or [ep.path for ep in group.endpoints])

    def _relationships(
        self,
        schema: SchemaNode,
        known_models: set[str],
    ) -> list[RelationshipDescriptor]:
        relationships: list[RelationshipDescriptor] = []
        for prop_name, prop in schema.properties.items():
            for matcher in self.matchers:
                descriptor = matcher.match(prop_name, prop, known_models)
                if descriptor is not None:
                    relationships.append(descriptor)
                    break
        return relationships


def _attributes(schema: SchemaNode) -> list[AttributeDescriptor]:
    """Describe every property that is not a reference or array of references."""
    attributes: list[AttributeDescriptor] = []
    for prop_name, prop in schema.properties.items():
        if isinstance(prop, SchemaRef) or referenced_component(prop) is not None:
            continue
        attributes.append(
            AttributeDescriptor(
                name=prop_name,
                type=prop.type or "string",
                format=prop.format,
                required=schema.is_required(prop_name),
                constraints=prop.constraints,
                enum=prop.enum,
                nullable=prop.nullable,
                read_only=prop.read_only,
                description=prop.description,
            )
        )
    return attributes
