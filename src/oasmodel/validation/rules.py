"""Derive field-level validation rule tokens from normalized schemas.

Rules are flat string tokens in a fixed per-attribute order:

1. the primitive type: ``integer``, ``numeric`` (OpenAPI ``number``),
   ``boolean``, ``array`` or ``string``;
2. ``date`` for the ``date`` and ``date-time`` formats;
3. bounds as ``min:N`` / ``max:N`` -- string length, numeric value or item
   count depending on the type;
4. ``in:a,b,c`` listing enum values in declaration order (a comma or
   backslash inside a value is escaped with a backslash);
5. ``regex:<pattern>`` and ``nullable`` when declared.

``required`` is prepended only for the ``create`` operation, and only for
attributes in the schema's ``required`` list. ``update`` never inherits it;
fields that must be present on update are named explicitly through
``update_required``.

Example::

    >>> build_rules(pet_schema, OperationType.CREATE)["status"]
    ['string', 'in:available,pending,sold']
"""

from __future__ import annotations

from typing import Any, Iterable, Mapping, Optional

from oasmodel.inference.mapper import classify_operation
from oasmodel.models import (
    Endpoint,
    OperationType,
    SchemaNode,
    SchemaRef,
    ValidationRuleSet,
)

TYPE_RULES = {
    "integer": "integer",
    "number": "numeric",
    "boolean": "boolean",
    "array": "array",
    "string": "string",
}
DATE_FORMATS = frozenset({"date", "date-time"})


def build_rules(
    node: SchemaNode,
    operation: OperationType | str,
    *,
    update_required: Iterable[str] = (),
) -> ValidationRuleSet:
    """Build the rule set for every property of *node* under *operation*.

    Args:
        node: A component schema.
        operation: ``create`` applies the schema's ``required`` list; any
            other operation only requires the names in *update_required*.
        update_required: Attributes that must be present for non-create
            operations.

    Returns:
        Mapping of attribute name to ordered rule tokens. Every property gets
        an entry, possibly empty (object and reference properties carry no
        type token).
    """
    operation = OperationType(operation)
    if operation == OperationType.CREATE:
        required = set(node.required)
    else:
        required = set(update_required)

    rules: ValidationRuleSet = {}
    for name, prop in node.properties.items():
        tokens = property_rules(prop)
        if name in required:
            tokens.insert(0, "required")
        rules[name] = tokens
    return rules


def build_parameter_rules(endpoint: Endpoint) -> ValidationRuleSet:
    """Build rules for an endpoint's parameters, keyed by parameter name.

    ``required`` comes from the parameter's own flag (always set for path
    parameters).
    """
    rules: ValidationRuleSet = {}
    for param in endpoint.parameters:
        tokens = property_rules(param.schema_) if param.schema_ is not None else ["string"]
        if param.required:
            tokens.insert(0, "required")
        rules[param.name] = tokens
    return rules


def build_endpoint_rules(
    endpoint: Endpoint,
    schemas: Optional[Mapping[str, SchemaNode]] = None,
) -> ValidationRuleSet:
    """Merge an endpoint's parameter rules with the rules of its request body.

    The body is built under the endpoint's CRUD operation, so a ``POST``
    body applies its ``required`` list and a ``PUT``/``PATCH`` body does
    not. A body that references a component is looked up in *schemas*; an
    inline body is used as is. Body properties override parameters of the
    same name.
    """
    rules = build_parameter_rules(endpoint)
    body = endpoint.request_body_schema
    if isinstance(body, SchemaRef):
        body = (schemas or {}).get(body.name)
    if not isinstance(body, SchemaNode):
        return rules

    operation = classify_operation(endpoint) or OperationType.UPDATE
    rules.update(build_rules(body, operation))
    return rules


def property_rules(schema: SchemaNode | SchemaRef) -> list[str]:
    """Return the type, format, bound, enum, regex and nullable tokens for one schema."""
    if isinstance(schema, SchemaRef):
        return []

    schema_type = schema.type
    if schema_type is None and not schema.properties:
        schema_type = "string"

    tokens: list[str] = []
    type_rule = TYPE_RULES.get(schema_type or "")
    if type_rule is not None:
        tokens.append(type_rule)

    if schema.format in DATE_FORMATS:
        tokens.append("date")

    lower, upper = _bounds(schema, schema_type)
    if lower is not None:
        tokens.append(f"min:{format_value(lower)}")
    if upper is not None:
        tokens.append(f"max:{format_value(upper)}")

    if schema.enum:
        tokens.append("in:" + enum_argument(schema.enum))

    if schema.constraints.pattern and schema_type == "string":
        tokens.append(f"regex:{schema.constraints.pattern}")

    if schema.nullable:
        tokens.append("nullable")
    return tokens


def _bounds(schema: SchemaNode, schema_type: Optional[str]) -> tuple[Any, Any]:
    constraints = schema.constraints
    if schema_type == "string":
        return constraints.min_length, constraints.max_length
    if schema_type in ("integer", "number"):
        return constraints.minimum, constraints.maximum
    if schema_type == "array":
        return constraints.min_items, constraints.max_items
    return None, None


def format_value(value: Any) -> str:
    """Render a bound or enum value the way it appears inside a rule token."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def parse_rule(token: str) -> tuple[str, Optional[str]]:
    """Split ``"min:3"`` into ``("min", "3")``; bare tokens yield ``(token, None)``."""
    name, sep, argument = token.partition(":")
    return name, (argument if sep else None)


def enum_argument(values: Iterable[Any]) -> str:
    """Join enum values for an ``in:`` token, escaping ``\\`` and ``,`` with a backslash."""
    return ",".join(
        format_value(value).replace("\\", "\\\\").replace(",", "\\,") for value in values
    )


def split_enum(argument: str) -> list[str]:
    """Split an ``in:`` argument built by :func:`enum_argument` back into its values."""
    values: list[str] = []
    current: list[str] = []
    escaped = False
    for char in argument:
        if escaped:
            current.append(char)
            escaped = False
        elif char == "\\":
            escaped = True
        elif char == ",":
            values.append("".join(current))
            current = []
        else:
            current.append(char)
    values.append("".join(current))
    return values
