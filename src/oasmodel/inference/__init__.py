"""Resource model inference -- group endpoints and schemas into models.

Sub-modules:

* :mod:`~oasmodel.inference.naming` -- PascalCase / singular naming and path
  segment helpers.
* :mod:`~oasmodel.inference.matchers` -- Ordered relationship detection
  strategies.
* :mod:`~oasmodel.inference.mapper` -- :class:`ModelMappingInferencer`, the
  grouping and classification algorithm.
"""

from oasmodel.inference.mapper import ModelMappingInferencer, classify_operation, select_base_endpoint
from oasmodel.inference.matchers import (
    EmbeddedObjectMatcher,
    NamePatternMatcher,
    RelationshipMatcher,
    StructuralRefMatcher,
    default_matchers,
)

__all__ = [
    "ModelMappingInferencer",
    "classify_operation",
    "select_base_endpoint",
    "RelationshipMatcher",
    "StructuralRefMatcher",
    "EmbeddedObjectMatcher",
    "NamePatternMatcher",
    "default_matchers",
]
