"""Schema introspection: table models, schema sources, and the introspector.

This module provides:
- Pydantic models for table schemas (ColumnSchema, TableSchema, etc.)
- SchemaSource protocol with snapshot, PostgreSQL and SQLAlchemy variants
- SchemaIntrospector: cached, exclusion-aware table reads

Usage:
    >>> from schemagen.schema import SchemaIntrospector, SnapshotSchemaSource
    >>> from schemagen.schema import TableSchema, ColumnSchema
"""

from schemagen.schema.introspector import SchemaIntrospector
from schemagen.schema.models import (
    ColumnSchema,
    ForeignKeySchema,
    IndexSchema,
    NativeType,
    SchemaSnapshot,
    TableListing,
    TableSchema,
    parse_native_type,
)
from schemagen.schema.postgres import PostgresSchemaSource
from schemagen.schema.reflection import SqlAlchemySchemaSource
from schemagen.schema.sources import SchemaSource, SnapshotSchemaSource

__all__ = [
    # Models
    "ColumnSchema",
    "ForeignKeySchema",
    "IndexSchema",
    "NativeType",
    "SchemaSnapshot",
    "TableListing",
    "TableSchema",
    "parse_native_type",
    # Sources
    "SchemaSource",
    "SnapshotSchemaSource",
    "PostgresSchemaSource",
    "SqlAlchemySchemaSource",
    # Introspection
    "SchemaIntrospector",
]
