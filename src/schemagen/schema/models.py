"""Pydantic models for introspected table schemas.

This module contains the immutable schema snapshot models consumed by every
generation decision:
- ColumnSchema, IndexSchema, ForeignKeySchema, TableSchema
- SchemaSnapshot: a serialized set of tables (snapshot source format)

Native type strings are parsed once (``parse_native_type``) so that
length/precision/scale are available even when the source only reports
the raw type, e.g. ``decimal(8,2) unsigned``.
"""

from typing import Any, NamedTuple

from pydantic import BaseModel, ConfigDict, Field, model_validator


# ============================================================================
# Native type parsing
# ============================================================================


_TYPE_MODIFIERS = {"unsigned", "signed", "zerofill"}
_DECIMAL_TYPES = {"decimal", "numeric", "float", "double", "real"}
_LIST_TYPES = {"enum", "set"}


class NativeType(NamedTuple):
    """A native column type split into its parts."""

    base: str
    args: tuple[str, ...]
    unsigned: bool


def parse_native_type(native_type: str) -> NativeType:
    """Split a native type like ``varchar(255)`` into base type and arguments.

    Examples:
        >>> parse_native_type("decimal(8,2) unsigned")
        NativeType(base='decimal', args=('8', '2'), unsigned=True)
        >>> parse_native_type("enum('draft','published')").args
        ('draft', 'published')
        >>> parse_native_type("timestamp with time zone").base
        'timestamp with time zone'
    """
    raw = (native_type or "").strip()
    text = raw.lower()
    args: tuple[str, ...] = ()

    open_paren = raw.find("(")
    close_paren = raw.rfind(")")
    if open_paren != -1 and close_paren > open_paren:
        raw_args = raw[open_paren + 1 : close_paren]
        args = tuple(
            part.strip().strip("'\"") for part in raw_args.split(",") if part.strip()
        )
        text = f"{text[:open_paren]} {text[close_paren + 1:]}"

    words = text.split()
    unsigned = "unsigned" in words
    base = " ".join(word for word in words if word not in _TYPE_MODIFIERS)
    return NativeType(base=base, args=args, unsigned=unsigned)


def _int_or_none(value: str) -> int | None:
    try:
        return int(value)
    except ValueError:
        return None


# ============================================================================
# Schema models
# ============================================================================


class ColumnSchema(BaseModel):
    """Schema for a table column.

    Example:
        >>> col = ColumnSchema(name="price", native_type="decimal(8,2)")
        >>> (col.precision, col.scale)
        (8, 2)
    """

    model_config = ConfigDict(frozen=True)

    name: str
    native_type: str
    nullable: bool = False
    default_value: str | None = None
    length: int | None = None
    precision: int | None = None
    scale: int | None = None
    is_auto_increment: bool = False
    is_unsigned: bool = False

    @model_validator(mode="before")
    @classmethod
    def _fill_from_native_type(cls, data: Any) -> Any:
        """Derive length/precision/scale/unsigned from the native type string."""
        if not isinstance(data, dict) or not data.get("native_type"):
            return data

        parsed = parse_native_type(data["native_type"])
        values = dict(data)
        if parsed.unsigned:
            values.setdefault("is_unsigned", True)

        if parsed.base in _DECIMAL_TYPES:
            if parsed.args and values.get("precision") is None:
                values["precision"] = _int_or_none(parsed.args[0])
            if len(parsed.args) > 1 and values.get("scale") is None:
                values["scale"] = _int_or_none(parsed.args[1])
        elif parsed.base not in _LIST_TYPES and len(parsed.args) == 1:
            if values.get("length") is None:
                values["length"] = _int_or_none(parsed.args[0])

        return values

    @property
    def base_type(self) -> str:
        """Native type without arguments or modifiers (``varchar``)."""
        return parse_native_type(self.native_type).base

    @property
    def enum_values(self) -> list[str]:
        """Allowed values for ``enum(...)`` / ``set(...)`` columns."""
        parsed = parse_native_type(self.native_type)
        if parsed.base in _LIST_TYPES:
            return list(parsed.args)
        return []


class IndexSchema(BaseModel):
    """Schema for a table index."""

    model_config = ConfigDict(frozen=True)

    name: str
    columns: tuple[str, ...] = ()
    is_unique: bool = False
    is_primary: bool = False


class ForeignKeySchema(BaseModel):
    """Schema for a single-column foreign key constraint."""

    model_config = ConfigDict(frozen=True)

    column_name: str
    referenced_table: str
    referenced_column: str = "id"
    on_update: str | None = None
    on_delete: str | None = None
    name: str | None = None


class TableSchema(BaseModel):
    """Immutable snapshot of a table: ordered columns, indexes, foreign keys.

    Example:
        >>> table = TableSchema(
        ...     name="posts",
        ...     columns=(ColumnSchema(name="id", native_type="bigint"),),
        ...     primary_key=("id",),
        ... )
        >>> table.column_names
        ['id']
    """

    model_config = ConfigDict(frozen=True)

    name: str
    columns: tuple[ColumnSchema, ...] = ()
    indexes: tuple[IndexSchema, ...] = ()
    foreign_keys: tuple[ForeignKeySchema, ...] = ()
    primary_key: tuple[str, ...] | None = None

    @property
    def column_names(self) -> list[str]:
        """Column names in table order."""
        return [col.name for col in self.columns]

    def column(self, name: str) -> ColumnSchema | None:
        """Return the column with ``name``, or None."""
        for col in self.columns:
            if col.name == name:
                return col
        return None

    def has_column(self, name: str) -> bool:
        return self.column(name) is not None

    def foreign_key_for(self, column_name: str) -> ForeignKeySchema | None:
        """Return the foreign key constraint declared on ``column_name``."""
        for fk in self.foreign_keys:
            if fk.column_name == column_name:
                return fk
        return None

    def is_unique(self, column_name: str) -> bool:
        """True if a single-column unique index covers ``column_name``."""
        return any(
            idx.is_unique and not idx.is_primary and idx.columns == (column_name,)
            for idx in self.indexes
        )

    @property
    def has_timestamps(self) -> bool:
        return self.has_column("created_at") and self.has_column("updated_at")

    @property
    def has_soft_deletes(self) -> bool:
        return self.has_column("deleted_at")

    def without_columns(self, excluded: set[str] | frozenset[str]) -> "TableSchema":
        """Copy of this table with ``excluded`` columns removed, order preserved."""
        if not excluded or not any(col.name in excluded for col in self.columns):
            return self
        return self.model_copy(
            update={"columns": tuple(c for c in self.columns if c.name not in excluded)}
        )


class SchemaSnapshot(BaseModel):
    """A serialized set of table schemas (the snapshot source format)."""

    tables: dict[str, TableSchema] = Field(default_factory=dict)


class TableListing(BaseModel):
    """Result of a batch table enumeration.

    ``tables`` holds the names that will be scanned, in lexicographic order.
    When the scan ceiling was hit, ``truncated`` lists the names that were
    left out so callers can report them.
    """

    tables: list[str] = Field(default_factory=list)
    ignored: list[str] = Field(default_factory=list)
    truncated: list[str] = Field(default_factory=list)

    @property
    def is_truncated(self) -> bool:
        return bool(self.truncated)
