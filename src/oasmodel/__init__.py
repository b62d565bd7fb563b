"""oasmodel -- schema intelligence for OpenAPI 3.0/3.1 documents.

This package turns an OpenAPI description into a normalized *resource model*
that downstream code generators can consume: endpoints, component schemas,
inferred model mappings (attributes, relationships, CRUD operations) and
field-level validation rules. It also keeps versioned, diffable snapshots of
schema documents over time.

Typical workflow::

    from oasmodel.engine import OpenApiEngine

    engine = OpenApiEngine()
    result = engine.parse("petstore.yaml")
    result.model_mappings["Pet"].base_endpoint   # "/pets"

Modules:
    engine: The :class:`~oasmodel.engine.OpenApiEngine` pipeline facade.
    models: Pydantic models shared across the entire package.
    config: XDG-aware configuration with environment precedence.
    exceptions: Exception hierarchy with exit-code mapping.
    exit_codes: Numeric exit codes for command-line collaborators.
"""

__version__ = "0.1.0"
