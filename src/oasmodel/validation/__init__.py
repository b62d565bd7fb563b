"""Validation rule derivation and strictness-aware payload evaluation.

* :mod:`~oasmodel.validation.rules` -- Build ordered rule tokens per
  attribute from a :class:`~oasmodel.models.SchemaNode`.
* :mod:`~oasmodel.validation.strictness` -- :class:`StrictnessEvaluator`,
  which auto-casts a payload and applies those rules in strict, moderate or
  lenient mode.
"""

from oasmodel.validation.rules import (
    build_endpoint_rules,
    build_parameter_rules,
    build_rules,
    property_rules,
)
from oasmodel.validation.strictness import StrictnessEvaluator, cast_value

__all__ = [
    "build_rules",
    "build_parameter_rules",
    "build_endpoint_rules",
    "property_rules",
    "StrictnessEvaluator",
    "cast_value",
]
