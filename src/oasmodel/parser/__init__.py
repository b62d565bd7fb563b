"""OpenAPI document parser -- load, resolve ``$ref`` pointers, and extract shapes.

This sub-package is the first half of the oasmodel pipeline: turning a raw
OpenAPI 3.x document (JSON or YAML, local file, stdin or remote URL) into the
normalized schema and endpoint maps that inference and rule building consume.

Typical usage::

    from oasmodel.parser import load_document, validate_document, resolve_document
    from oasmodel.parser import extract_endpoints, extract_schemas

    raw = load_document("petstore.yaml")
    version = validate_document(raw.data, raw.source)
    resolver = resolve_document(raw.data, raw.source)
    schemas = extract_schemas(resolver)
    endpoints = extract_endpoints(resolver)

Sub-modules:

* :mod:`~oasmodel.parser.loader` -- I/O layer (URL, file, stdin) plus format
  sniffing and top-level structure validation.
* :mod:`~oasmodel.parser.resolver` -- Lazy ``$ref`` resolution with a
  visited-set cycle guard.
* :mod:`~oasmodel.parser.schemas` -- The ``name -> SchemaNode`` map.
* :mod:`~oasmodel.parser.endpoints` -- The ``operationId -> Endpoint`` map.
"""

from oasmodel.parser.endpoints import extract_endpoints, extract_info, extract_servers
from oasmodel.parser.loader import load_document, parse_content, validate_document
from oasmodel.parser.resolver import ReferenceResolver, resolve_document
from oasmodel.parser.schemas import extract_schemas

__all__ = [
    "load_document",
    "parse_content",
    "validate_document",
    "ReferenceResolver",
    "resolve_document",
    "extract_schemas",
    "extract_endpoints",
    "extract_info",
    "extract_servers",
]
