"""Type and relationship inference over introspected tables.

Usage:
    >>> from schemagen.inference import TypeMapper, RelationshipInferencer
"""

from schemagen.inference.models import (
    InferenceResult,
    InferenceWarning,
    RelationshipDescriptor,
    RelationshipKind,
    RuleExpression,
    TargetType,
)
from schemagen.inference.naming import camel, model_name, pluralize, singularize, studly
from schemagen.inference.relationships import MorphPair, RelationshipInferencer
from schemagen.inference.types import TypeMapper, decimal_bound

__all__ = [
    # Models
    "InferenceResult",
    "InferenceWarning",
    "RelationshipDescriptor",
    "RelationshipKind",
    "RuleExpression",
    "TargetType",
    # Inference
    "TypeMapper",
    "RelationshipInferencer",
    "MorphPair",
    "decimal_bound",
    # Naming
    "camel",
    "model_name",
    "pluralize",
    "singularize",
    "studly",
]
