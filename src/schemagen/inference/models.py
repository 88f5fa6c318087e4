"""Pydantic models for type and relationship inference results.

Inference never raises on ambiguity.  Anything the mapper or inferencer
had to guess is attached to its result as an ``InferenceWarning`` so the
pipeline can surface it in the run report.
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict


class InferenceWarning(BaseModel):
    """A non-fatal inference ambiguity attached to an entity.

    Kinds in use:
        - ``unmapped_type``: native type missing from the mapping table,
          the configured default was used
        - ``pivot_ambiguous``: pivot-like naming without a pivot shape
        - ``pivot_naming``: pivot shape whose name does not follow
          ``{singular}_{singular}``
        - ``pivot_morph_conflict``: pivot shape that also matches a
          polymorphic column pattern
    """

    model_config = ConfigDict(frozen=True)

    kind: str
    entity: str
    message: str


class TargetType(BaseModel):
    """Semantic type and cast directive for one column."""

    model_config = ConfigDict(frozen=True)

    column: str
    type: str
    cast: str | None = None
    source: str = "native"  # name | native | fallback
    warnings: tuple[InferenceWarning, ...] = ()


class RuleExpression(BaseModel):
    """Validation rule list for one column.

    Example:
        >>> RuleExpression(column="title", rules=("required", "string", "max:255")).expression
        'required|string|max:255'
    """

    model_config = ConfigDict(frozen=True)

    column: str
    rules: tuple[str, ...] = ()
    warnings: tuple[InferenceWarning, ...] = ()

    @property
    def expression(self) -> str:
        return "|".join(self.rules)

    def __str__(self) -> str:
        return self.expression


class RelationshipKind(str, Enum):
    BELONGS_TO = "belongs_to"
    HAS_MANY = "has_many"
    MANY_TO_MANY = "many_to_many"
    POLYMORPHIC = "polymorphic"


class RelationshipDescriptor(BaseModel):
    """One inferred relationship, seen from ``local_table``.

    ``related_table`` is None for polymorphic relationships, whose target
    is chosen at runtime by the value in ``morph_type_column``.
    """

    model_config = ConfigDict(frozen=True)

    kind: RelationshipKind
    local_table: str
    related_table: str | None = None
    through_table: str | None = None
    foreign_key_name: str | None = None
    related_key_name: str | None = None
    morph_type_column: str | None = None
    method_name: str = ""
    inferred_from_convention: bool = False


class InferenceResult(BaseModel):
    """Relationships of one table plus the warnings raised while inferring them."""

    model_config = ConfigDict(frozen=True)

    table: str
    relationships: tuple[RelationshipDescriptor, ...] = ()
    warnings: tuple[InferenceWarning, ...] = ()

    def of_kind(self, kind: RelationshipKind) -> list[RelationshipDescriptor]:
        return [rel for rel in self.relationships if rel.kind == kind]
