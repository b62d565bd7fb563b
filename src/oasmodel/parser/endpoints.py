"""Extract endpoints, document info and servers from a resolved OpenAPI document.

This module walks the ``paths`` object of a document whose references have
been validated by :class:`~oasmodel.parser.resolver.ReferenceResolver` and
builds one :class:`~oasmodel.models.Endpoint` per declared path + HTTP method
pair.

The public entry points are:

* :func:`extract_endpoints` -- the ``operationId -> Endpoint`` map.
* :func:`extract_info` -- the ``info`` object (title, version, contact, license).
* :func:`extract_servers` -- the ``servers`` array.

Parameter merging follows the OpenAPI specification: path-level parameters
provide defaults, and operation-level parameters override them when they share
the same ``name`` and ``in`` values. Path parameters are always required.

Operations without an ``operationId`` get one derived from the method and
path: ``get /pets/{petId}`` becomes ``get_pets__petId``. Identifiers that
collide with an earlier endpoint receive a numeric suffix (``_2``, ``_3``, ...)
so that no endpoint is dropped.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Optional

from oasmodel.models import (
    APIInfo,
    Endpoint,
    HTTPMethod,
    Parameter,
    ParameterLocation,
    SchemaNode,
    SchemaRef,
    ServerInfo,
)
from oasmodel.parser.resolver import ReferenceResolver

logger = logging.getLogger(__name__)

_NON_ALNUM_RE = re.compile(r"[^A-Za-z0-9]")
_SUCCESS_STATUS_RE = re.compile(r"^2(\d\d|XX)$", re.IGNORECASE)


def generate_operation_id(method: str, path: str) -> str:
    """Derive an operation id from *method* and *path*.

    Every non-alphanumeric character of the path becomes ``_`` and leading or
    trailing underscores are trimmed::

        >>> generate_operation_id("GET", "/pets/{petId}")
        'get_pets__petId'
    """
    return f"{method.lower()}_{_NON_ALNUM_RE.sub('_', path).strip('_')}"


def extract_endpoints(resolver: ReferenceResolver) -> dict[str, Endpoint]:
    """Extract all endpoints from the document's ``paths`` object.

    Iterates over every path and recognised HTTP method in the fixed order
    GET, POST, PUT, PATCH, DELETE, HEAD, OPTIONS, TRACE.

    Security requirements follow the OpenAPI override rule: an operation-level
    ``security`` array replaces the global one; an explicit empty array
    ``[]`` means "no auth required".

    Args:
        resolver: Resolver over the validated document.

    Returns:
        Endpoints keyed by operation id, in document order.
    """
    data = resolver.data
    paths = data.get("paths") or {}
    global_security = data.get("security") or []
    endpoints: dict[str, Endpoint] = {}

    for path, path_item in paths.items():
        if not isinstance(path_item, dict):
            logger.warning("Skipping non-mapping path item for %s", path)
            continue

        path_params = _deref_list(resolver, path_item.get("parameters"), path)

        for method in HTTPMethod:
            operation = path_item.get(method.value)
            if not isinstance(operation, dict):
                continue

            container = f"{method.value.upper()} {path}"
            op_params = _deref_list(resolver, operation.get("parameters"), container)
            merged_params = _merge_parameters(path_params, op_params)

            op_security = operation.get("security")
            security = op_security if op_security is not None else global_security

            operation_id = operation.get("operationId") or generate_operation_id(method.value, path)
            operation_id = _unique_id(str(operation_id), endpoints, container)

            endpoints[operation_id] = Endpoint(
                operation_id=operation_id,
                method=method,
                path=path,
                parameters=_extract_parameters(resolver, merged_params, container),
                request_body_schema=_request_schema(resolver, operation.get("requestBody"), container),
                response_schema=_response_schema(resolver, operation.get("responses"), container),
                summary=operation.get("summary"),
                description=operation.get("description"),
                tags=list(operation.get("tags") or []),
                deprecated=bool(operation.get("deprecated", False)),
                security=security,
            )

    logger.debug("Extracted %d endpoints from %s", len(endpoints), resolver.source)
    return endpoints


def _unique_id(operation_id: str, taken: dict[str, Endpoint], container: str) -> str:
    if operation_id not in taken:
        return operation_id
    suffix = 2
    while f"{operation_id}_{suffix}" in taken:
        suffix += 1
    unique = f"{operation_id}_{suffix}"
    logger.warning(
        "Duplicate operationId '%s' at %s; renamed to '%s'", operation_id, container, unique
    )
    return unique


def _deref_list(resolver: ReferenceResolver, items: Any, container: str) -> list[dict[str, Any]]:
    if not isinstance(items, list):
        return []
    result = []
    for item in items:
        item = resolver.deref(item, container)
        if isinstance(item, dict):
            result.append(item)
    return result


def _merge_parameters(
    path_params: list[dict[str, Any]],
    op_params: list[dict[str, Any]],
) -> list[dict[str, Any]]:
    """Merge path-level and operation-level parameters.

    Operation-level parameters override path-level parameters with the same
    name and location (``in`` field).
    """
    op_keys = {(param.get("name", ""), param.get("in", "")) for param in op_params}

    merged = [
        param for param in path_params
        if (param.get("name", ""), param.get("in", "")) not in op_keys
    ]
    merged.extend(op_params)
    return merged


def _extract_parameters(
    resolver: ReferenceResolver,
    params_list: list[dict[str, Any]],
    container: str,
) -> list[Parameter]:
    """Convert raw parameter dicts into :class:`~oasmodel.models.Parameter` models.

    Parameters with unrecognised ``in`` locations are skipped.
    """
    parameters: list[Parameter] = []

    for param in params_list:
        try:
            location = ParameterLocation(param.get("in", "query"))
        except ValueError:
            logger.debug("Skipping parameter with unknown location at %s: %r", container, param)
            continue

        schema = param.get("schema")
        required = bool(param.get("required", False))
        if location == ParameterLocation.PATH:
            required = True

        parameters.append(
            Parameter(
                name=str(param.get("name", "")),
                location=location,
                required=required,
                description=param.get("description"),
                schema_=resolver.convert(schema, container) if isinstance(schema, dict) else None,
            )
        )

    return parameters


def _content_schema(
    resolver: ReferenceResolver,
    content: Any,
    container: str,
) -> Optional[SchemaNode | SchemaRef]:
    """Return the schema of the first media type that declares one, JSON first."""
    if not isinstance(content, dict):
        return None
    media_types = sorted(content.items(), key=lambda entry: "json" not in str(entry[0]).lower())
    for _media_type, media in media_types:
        if isinstance(media, dict) and isinstance(media.get("schema"), dict):
            return resolver.convert(media["schema"], container)
    return None


def _request_schema(
    resolver: ReferenceResolver,
    body: Any,
    container: str,
) -> Optional[SchemaNode | SchemaRef]:
    body = resolver.deref(body, container)
    if not isinstance(body, dict):
        return None
    return _content_schema(resolver, body.get("content"), container)


def _response_schema(
    resolver: ReferenceResolver,
    responses: Any,
    container: str,
) -> Optional[SchemaNode | SchemaRef]:
    """Return the schema of the first 2xx response that has one, then ``default``."""
    if not isinstance(responses, dict):
        return None

    candidates = [code for code in responses if _SUCCESS_STATUS_RE.match(str(code))]
    if "default" in responses:
        candidates.append("default")

    for code in candidates:
        response = resolver.deref(responses[code], container)
        if not isinstance(response, dict):
            continue
        schema = _content_schema(resolver, response.get("content"), container)
        if schema is not None:
            return schema
    return None


def extract_info(data: dict[str, Any]) -> APIInfo:
    """Extract API metadata from the document's ``info`` object.

    Missing optional fields default to ``None``.
    """
    info = data.get("info") or {}
    contact = info.get("contact") or {}
    license_info = info.get("license") or {}

    return APIInfo(
        title=str(info.get("title", "Untitled API")),
        version=str(info.get("version", "0.0.0")),
        description=info.get("description"),
        terms_of_service=info.get("termsOfService"),
        contact_name=contact.get("name"),
        contact_email=contact.get("email"),
        contact_url=contact.get("url"),
        license_name=license_info.get("name"),
        license_url=license_info.get("url"),
    )


def extract_servers(data: dict[str, Any]) -> list[ServerInfo]:
    """Extract server entries from the document's ``servers`` array."""
    servers = data.get("servers") or []
    return [
        ServerInfo(url=server.get("url", "/"), description=server.get("description"))
        for server in servers
        if isinstance(server, dict)
    ]
