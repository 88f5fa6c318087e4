"""Relationship inference from foreign keys and column naming patterns.

Evidence, strongest first:
- Foreign key constraints: belongs-to on the owning table, has-many on the
  referenced table
- Pivot shape: exactly two foreign keys and nothing else but an optional
  surrogate key and timestamps.  Naming (``post_category``) only confirms
- Polymorphic pairs: ``{x}able_type`` / ``{x}able_id`` (configurable
  globs) where the id column has no foreign key constraint
- Optionally, ``{x}_id`` columns without constraints whose plural table
  exists (conventional keys)

Conflicting evidence is reported as ``InferenceWarning``s and resolved to
the documented default (independent belongs-to relationships).
"""

import logging
import re
from collections.abc import Mapping
from typing import NamedTuple

from schemagen.config.models import RelationshipSettings
from schemagen.inference.models import (
    InferenceResult,
    InferenceWarning,
    RelationshipDescriptor,
    RelationshipKind,
)
from schemagen.inference.naming import camel, pluralize, singularize
from schemagen.schema.models import ForeignKeySchema, TableSchema

logger = logging.getLogger(__name__)

_STRING_TYPES = {
    "varchar",
    "character varying",
    "char",
    "character",
    "text",
    "tinytext",
    "mediumtext",
    "longtext",
    "string",
    "enum",
}


class MorphPair(NamedTuple):
    """A polymorphic ``{x}_type`` / ``{x}_id`` column pair."""

    name: str
    type_column: str
    id_column: str


class PivotShape(NamedTuple):
    is_pivot: bool
    warnings: tuple[InferenceWarning, ...]


def glob_to_regex(pattern: str) -> re.Pattern:
    """Compile a column glob (``*able_type``) into an anchored regex.

    The first ``*`` becomes a capturing group; a glob without ``*``
    compiles to a literal match with no groups.

    Example:
        >>> glob_to_regex("*able_type").match("commentable_type").group(1)
        'comment'
    """
    escaped = re.escape(pattern).replace(r"\*", "(.+)", 1).replace(r"\*", ".*")
    return re.compile(f"^{escaped}$")


class RelationshipInferencer:
    """Infers relationships for a table against the full schema set.

    Usage:
        inferencer = RelationshipInferencer(config.relationships)
        result = inferencer.infer(schemas["posts"], schemas)
        for rel in result.relationships:
            print(rel.kind, rel.related_table)
    """

    def __init__(self, settings: RelationshipSettings | None = None):
        self._settings = settings or RelationshipSettings()
        self._morph_patterns = [
            (glob_to_regex(type_glob), id_glob)
            for type_glob, id_glob in self._settings.morph_patterns.items()
        ]

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def infer(
        self, schema: TableSchema, all_schemas: Mapping[str, TableSchema]
    ) -> InferenceResult:
        """Infer every relationship of ``schema``.

        Args:
            schema: Table to infer relationships for
            all_schemas: Every known table by name (may include ``schema``)

        Returns:
            InferenceResult with descriptors in deterministic order:
            owned keys first, then inverse relationships by table name,
            then polymorphic pairs
        """
        settings = self._settings
        relationships: list[RelationshipDescriptor] = []
        shape = self.pivot_shape(schema)
        warnings = list(shape.warnings)

        if shape.is_pivot and settings.detect_many_to_many:
            relationships.append(self._pivot_descriptor(schema))
        else:
            if settings.detect_belongs_to:
                relationships.extend(self._belongs_to(schema))
            if settings.detect_conventional_keys:
                relationships.extend(self._conventional_belongs_to(schema, all_schemas))

        for other_name in sorted(all_schemas):
            other = all_schemas[other_name]
            relationships.extend(self._inverse(schema, other))

        if settings.detect_polymorphic:
            for pair in self.morph_pairs(schema):
                relationships.append(
                    RelationshipDescriptor(
                        kind=RelationshipKind.POLYMORPHIC,
                        local_table=schema.name,
                        foreign_key_name=pair.id_column,
                        morph_type_column=pair.type_column,
                        method_name=camel(pair.name),
                    )
                )

        for warning in warnings:
            logger.warning("Table %s: %s", warning.entity, warning.message)

        return InferenceResult(
            table=schema.name,
            relationships=tuple(relationships),
            warnings=tuple(warnings),
        )

    def infer_all(self, schemas: Mapping[str, TableSchema]) -> dict[str, InferenceResult]:
        """Infer relationships for every table, keyed and ordered by table name."""
        return {name: self.infer(schemas[name], schemas) for name in sorted(schemas)}

    # ------------------------------------------------------------------
    # Pivot detection
    # ------------------------------------------------------------------

    def is_pivot(self, schema: TableSchema) -> bool:
        return self.pivot_shape(schema).is_pivot

    def pivot_shape(self, schema: TableSchema) -> PivotShape:
        """Classify ``schema`` as pivot table or not, with any ambiguity found.

        Structure decides.  A pivot-like name without the pivot shape, a
        pivot shape with an unconventional name, and a pivot shape spoiled
        only by polymorphic type columns are all reported as warnings.
        """
        fks = schema.foreign_keys
        fk_columns = {fk.column_name for fk in fks}
        if len(fks) != 2 or len(fk_columns) != 2:
            return PivotShape(False, ())

        allowed = set(self._settings.pivot_extra_columns)
        if schema.primary_key and len(schema.primary_key) == 1:
            surrogate = schema.primary_key[0]
            if surrogate not in fk_columns:
                allowed.add(surrogate)
        if "id" not in fk_columns:
            allowed.add("id")

        extra = [
            name for name in schema.column_names if name not in fk_columns and name not in allowed
        ]
        named_like_pivot = schema.name in self._pivot_names(fks[0], fks[1])

        if not extra:
            if named_like_pivot:
                return PivotShape(True, ())
            return PivotShape(
                True,
                (
                    InferenceWarning(
                        kind="pivot_naming",
                        entity=schema.name,
                        message=(
                            f"Treated as pivot between '{fks[0].referenced_table}' and "
                            f"'{fks[1].referenced_table}' by structure; name does not "
                            "follow the {singular}_{singular} convention"
                        ),
                    ),
                ),
            )

        morph_types = {pair.type_column for pair in self.morph_pairs(schema, require_no_fk=False)}
        if all(name in morph_types for name in extra):
            return PivotShape(
                False,
                (
                    InferenceWarning(
                        kind="pivot_morph_conflict",
                        entity=schema.name,
                        message=(
                            "Two foreign keys plus polymorphic type column(s) "
                            f"{', '.join(extra)}; defaulting to belongs-to relationships"
                        ),
                    ),
                ),
            )

        if named_like_pivot:
            return PivotShape(
                False,
                (
                    InferenceWarning(
                        kind="pivot_ambiguous",
                        entity=schema.name,
                        message=(
                            "Named like a pivot table but has extra column(s) "
                            f"{', '.join(extra)}; defaulting to belongs-to relationships"
                        ),
                    ),
                ),
            )

        return PivotShape(False, ())

    @staticmethod
    def _pivot_names(first: ForeignKeySchema, second: ForeignKeySchema) -> set[str]:
        a = singularize(first.referenced_table)
        b = singularize(second.referenced_table)
        return {f"{a}_{b}", f"{b}_{a}"}

    def _pivot_descriptor(self, schema: TableSchema) -> RelationshipDescriptor:
        first, second = schema.foreign_keys
        return RelationshipDescriptor(
            kind=RelationshipKind.MANY_TO_MANY,
            local_table=first.referenced_table,
            related_table=second.referenced_table,
            through_table=schema.name,
            foreign_key_name=first.column_name,
            related_key_name=second.column_name,
            method_name=camel(pluralize(second.referenced_table)),
        )

    # ------------------------------------------------------------------
    # Owned keys
    # ------------------------------------------------------------------

    def _strip_key_suffix(self, column_name: str) -> str:
        suffix = self._settings.foreign_key_suffix
        if suffix and column_name.endswith(suffix) and len(column_name) > len(suffix):
            return column_name[: -len(suffix)]
        return column_name

    def _belongs_to(self, schema: TableSchema) -> list[RelationshipDescriptor]:
        relationships = []
        for fk in schema.foreign_keys:
            base = self._strip_key_suffix(fk.column_name)
            if base == fk.column_name:
                base = singularize(fk.referenced_table)
            relationships.append(
                RelationshipDescriptor(
                    kind=RelationshipKind.BELONGS_TO,
                    local_table=schema.name,
                    related_table=fk.referenced_table,
                    foreign_key_name=fk.column_name,
                    related_key_name=fk.referenced_column,
                    method_name=camel(base),
                )
            )
        return relationships

    def _conventional_keys(
        self, schema: TableSchema, all_schemas: Mapping[str, TableSchema]
    ) -> list[tuple[str, str]]:
        """``(column, referenced table)`` for unconstrained ``{x}_id`` columns."""
        suffix = self._settings.foreign_key_suffix
        constrained = {fk.column_name for fk in schema.foreign_keys}
        morph_ids = {pair.id_column for pair in self.morph_pairs(schema, require_no_fk=False)}
        keys = []
        for name in schema.column_names:
            if name in constrained or name in morph_ids or not name.endswith(suffix):
                continue
            base = self._strip_key_suffix(name)
            if base == name:
                continue
            table = pluralize(base)
            if table in all_schemas:
                keys.append((name, table))
        return keys

    def _conventional_belongs_to(
        self, schema: TableSchema, all_schemas: Mapping[str, TableSchema]
    ) -> list[RelationshipDescriptor]:
        return [
            RelationshipDescriptor(
                kind=RelationshipKind.BELONGS_TO,
                local_table=schema.name,
                related_table=table,
                foreign_key_name=column,
                related_key_name="id",
                method_name=camel(self._strip_key_suffix(column)),
                inferred_from_convention=True,
            )
            for column, table in self._conventional_keys(schema, all_schemas)
        ]

    # ------------------------------------------------------------------
    # Inverse relationships
    # ------------------------------------------------------------------

    def _inverse(
        self, schema: TableSchema, other: TableSchema
    ) -> list[RelationshipDescriptor]:
        """Has-many / many-to-many descriptors on ``schema`` evidenced by ``other``."""
        settings = self._settings
        relationships: list[RelationshipDescriptor] = []

        if settings.detect_many_to_many and self.is_pivot(other):
            first, second = other.foreign_keys
            for own, far in ((first, second), (second, first)):
                if own.referenced_table != schema.name:
                    continue
                relationships.append(
                    RelationshipDescriptor(
                        kind=RelationshipKind.MANY_TO_MANY,
                        local_table=schema.name,
                        related_table=far.referenced_table,
                        through_table=other.name,
                        foreign_key_name=own.column_name,
                        related_key_name=far.column_name,
                        method_name=camel(pluralize(far.referenced_table)),
                    )
                )
            return relationships

        if not settings.detect_has_many:
            return relationships

        keys = [
            (fk.column_name, False)
            for fk in other.foreign_keys
            if fk.referenced_table == schema.name
        ]
        if settings.detect_conventional_keys:
            keys.extend(
                (column, True)
                for column, table in self._conventional_keys(other, {schema.name: schema})
                if table == schema.name
            )

        for column, conventional in keys:
            method = pluralize(other.name)
            if len(keys) > 1:
                method = f"{self._strip_key_suffix(column)}_{method}"
            relationships.append(
                RelationshipDescriptor(
                    kind=RelationshipKind.HAS_MANY,
                    local_table=schema.name,
                    related_table=other.name,
                    foreign_key_name=column,
                    method_name=camel(method),
                    inferred_from_convention=conventional,
                )
            )
        return relationships

    # ------------------------------------------------------------------
    # Polymorphic pairs
    # ------------------------------------------------------------------

    def morph_pairs(self, schema: TableSchema, require_no_fk: bool = True) -> list[MorphPair]:
        """Find polymorphic type/id column pairs in ``schema``.

        A pair needs a string-typed type column matching one of the
        configured globs and an existing partner id column.  With
        ``require_no_fk`` (the default) the id column must not carry a
        foreign key constraint.  Pairs are deduplicated across patterns.
        """
        suffix = self._settings.morph_suffix
        pairs: list[MorphPair] = []
        seen: set[str] = set()

        for column in schema.columns:
            if column.name in seen or column.base_type not in _STRING_TYPES:
                continue
            for regex, id_glob in self._morph_patterns:
                match = regex.match(column.name)
                if not match:
                    continue
                # A glob without "*" is a literal column pair
                stem = match.group(1) if regex.groups else None
                id_column = id_glob if stem is None else id_glob.replace("*", stem, 1)
                if not schema.has_column(id_column):
                    continue
                if require_no_fk and schema.foreign_key_for(id_column) is not None:
                    continue
                if column.name.endswith(suffix):
                    name = column.name[: -len(suffix)]
                else:
                    name = stem or column.name
                pairs.append(MorphPair(name=name, type_column=column.name, id_column=id_column))
                seen.add(column.name)
                break

        return pairs
