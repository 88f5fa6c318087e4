"""PostgreSQL schema source via information_schema and pg_catalog.

Reads, per table:
- Columns in ordinal order with native type, nullability, default, length,
  precision/scale, identity/serial detection and enum labels
- Primary key and foreign key constraints (with ON UPDATE / ON DELETE rules)
- Indexes (name, ordered columns, uniqueness, primary flag)

Uses psycopg (v3) ``AsyncConnection`` for PostgreSQL connections.
"""

import logging

import psycopg
from psycopg import AsyncConnection

from schemagen.errors import SourceConnectionError, TableNotFoundError
from schemagen.schema.models import (
    ColumnSchema,
    ForeignKeySchema,
    IndexSchema,
    TableSchema,
)

logger = logging.getLogger(__name__)


class PostgresSchemaSource:
    """Live PostgreSQL schema source.

    Works with any PostgreSQL database (RDS, Supabase, local).

    Usage:
        async with PostgresSchemaSource(database_url) as source:
            names = await source.list_tables()
            posts = await source.get_table("posts")
    """

    def __init__(
        self,
        database_url: str,
        schema_name: str = "public",
        connect_timeout: int = 10,
    ):
        """Initialize with database connection URL.

        Args:
            database_url: PostgreSQL connection URL
            schema_name: PostgreSQL schema to read (default: public)
            connect_timeout: Connection timeout in seconds (default: 10)
        """
        self._database_url = database_url
        self._schema_name = schema_name
        self._connect_timeout = connect_timeout
        self._conn: AsyncConnection | None = None

    @property
    def identity(self) -> str:
        # Strip credentials so the identity is safe to log
        location = self._database_url.rsplit("@", 1)[-1]
        return f"postgres:{location}/{self._schema_name}"

    async def __aenter__(self) -> "PostgresSchemaSource":
        """Async context manager entry - opens connection."""
        try:
            self._conn = await psycopg.AsyncConnection.connect(
                self._database_url,
                connect_timeout=self._connect_timeout,
            )
        except psycopg.Error as e:
            raise SourceConnectionError(
                f"Could not connect to {self.identity}: {e}", entity=self.identity
            ) from e
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit - closes connection."""
        await self.close()

    async def close(self) -> None:
        if self._conn:
            await self._conn.close()
            self._conn = None

    def _require_connection(self) -> AsyncConnection:
        if not self._conn:
            raise RuntimeError("Schema source not connected. Use async with statement.")
        return self._conn

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def list_tables(self) -> list[str]:
        """Get all base table names in the schema, sorted."""
        query = """
            SELECT table_name
            FROM information_schema.tables
            WHERE table_schema = %s
              AND table_type = 'BASE TABLE'
            ORDER BY table_name
        """
        rows = await self._fetch(query, (self._schema_name,))
        return [row[0] for row in rows]

    async def get_table(self, table_name: str) -> TableSchema:
        """Read one table's columns, keys and indexes.

        Raises:
            TableNotFoundError: If the table does not exist in the schema.
            SourceConnectionError: On any database error.
        """
        if not await self._table_exists(table_name):
            raise TableNotFoundError(table_name)

        columns = await self._get_columns(table_name)
        primary_key, foreign_keys = await self._get_constraints(table_name)
        indexes = await self._get_indexes(table_name)

        logger.debug(
            "Read table %s: %d columns, %d foreign keys",
            table_name,
            len(columns),
            len(foreign_keys),
        )
        return TableSchema(
            name=table_name,
            columns=tuple(columns),
            indexes=tuple(indexes),
            foreign_keys=tuple(foreign_keys),
            primary_key=tuple(primary_key) if primary_key else None,
        )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def _fetch(self, query: str, params: tuple) -> list[tuple]:
        conn = self._require_connection()
        try:
            async with conn.cursor() as cur:
                await cur.execute(query, params)
                return await cur.fetchall()
        except psycopg.Error as e:
            raise SourceConnectionError(
                f"Query against {self.identity} failed: {e}", entity=self.identity
            ) from e

    async def _table_exists(self, table_name: str) -> bool:
        query = """
            SELECT 1
            FROM information_schema.tables
            WHERE table_schema = %s
              AND table_name = %s
              AND table_type = 'BASE TABLE'
        """
        rows = await self._fetch(query, (self._schema_name, table_name))
        return bool(rows)

    async def _get_columns(self, table_name: str) -> list[ColumnSchema]:
        """Get columns for a table in ordinal order."""
        query = """
            SELECT
                column_name,
                data_type,
                udt_name,
                is_nullable,
                column_default,
                character_maximum_length,
                numeric_precision,
                numeric_scale,
                is_identity
            FROM information_schema.columns
            WHERE table_schema = %s
              AND table_name = %s
            ORDER BY ordinal_position
        """
        rows = await self._fetch(query, (self._schema_name, table_name))

        columns = []
        for row in rows:
            (
                col_name,
                data_type,
                udt_name,
                is_nullable,
                default,
                max_length,
                precision,
                scale,
                is_identity,
            ) = row

            native_type = self._normalize_data_type(data_type)
            if data_type == "USER-DEFINED":
                labels = await self._get_enum_labels(udt_name)
                if labels:
                    quoted = ",".join(f"'{label}'" for label in labels)
                    native_type = f"enum({quoted})"
                else:
                    native_type = udt_name
            elif max_length is not None:
                native_type = f"{native_type}({max_length})"
            elif native_type in ("numeric", "decimal") and precision is not None:
                native_type = f"{native_type}({precision},{scale or 0})"

            is_auto_increment = is_identity == "YES" or (
                isinstance(default, str) and default.startswith("nextval(")
            )
            columns.append(
                ColumnSchema(
                    name=col_name,
                    native_type=native_type,
                    nullable=(is_nullable == "YES"),
                    default_value=None if is_auto_increment else default,
                    is_auto_increment=is_auto_increment,
                )
            )
        return columns

    async def _get_enum_labels(self, type_name: str) -> list[str]:
        query = """
            SELECT e.enumlabel
            FROM pg_type t
            JOIN pg_enum e ON e.enumtypid = t.oid
            WHERE t.typname = %s
            ORDER BY e.enumsortorder
        """
        rows = await self._fetch(query, (type_name,))
        return [row[0] for row in rows]

    def _normalize_data_type(self, data_type: str) -> str:
        """Normalize PostgreSQL data type names.

        Maps verbose information_schema types to standard names.
        """
        type_map = {
            "character varying": "varchar",
            "character": "char",
            "timestamp with time zone": "timestamptz",
            "timestamp without time zone": "timestamp",
            "time without time zone": "time",
            "integer": "int",
            "boolean": "bool",
        }
        return type_map.get(data_type.lower(), data_type.lower())

    async def _get_constraints(
        self, table_name: str
    ) -> tuple[list[str], list[ForeignKeySchema]]:
        """Get primary key columns and single-column foreign keys."""
        query = """
            SELECT
                tc.constraint_name,
                tc.constraint_type,
                kcu.column_name,
                ccu.table_name AS references_table,
                ccu.column_name AS references_column,
                rc.update_rule,
                rc.delete_rule
            FROM information_schema.table_constraints tc
            JOIN information_schema.key_column_usage kcu
                ON tc.constraint_name = kcu.constraint_name
                AND tc.table_schema = kcu.table_schema
            LEFT JOIN information_schema.constraint_column_usage ccu
                ON tc.constraint_name = ccu.constraint_name
                AND tc.constraint_type = 'FOREIGN KEY'
            LEFT JOIN information_schema.referential_constraints rc
                ON tc.constraint_name = rc.constraint_name
            WHERE tc.table_schema = %s
              AND tc.table_name = %s
              AND tc.constraint_type IN ('PRIMARY KEY', 'FOREIGN KEY')
            ORDER BY tc.constraint_name, kcu.ordinal_position
        """
        rows = await self._fetch(query, (self._schema_name, table_name))

        primary_key: list[str] = []
        fk_rows: dict[str, list[tuple]] = {}
        for row in rows:
            name, ctype, col_name, ref_table, ref_col, update_rule, delete_rule = row
            if ctype == "PRIMARY KEY":
                if col_name not in primary_key:
                    primary_key.append(col_name)
            else:
                fk_rows.setdefault(name, []).append(
                    (col_name, ref_table, ref_col, update_rule, delete_rule)
                )

        foreign_keys = []
        for name, fk_cols in fk_rows.items():
            local_columns = {fk_col[0] for fk_col in fk_cols}
            if len(local_columns) != 1:
                # Composite keys carry no single-column relationship evidence
                logger.debug("Skipping composite foreign key %s on %s", name, table_name)
                continue
            col_name, ref_table, ref_col, update_rule, delete_rule = fk_cols[0]
            foreign_keys.append(
                ForeignKeySchema(
                    column_name=col_name,
                    referenced_table=ref_table,
                    referenced_column=ref_col or "id",
                    on_update=update_rule,
                    on_delete=delete_rule,
                    name=name,
                )
            )
        return primary_key, foreign_keys

    async def _get_indexes(self, table_name: str) -> list[IndexSchema]:
        """Get indexes for a table, including the primary key index."""
        query = """
            SELECT
                i.relname AS index_name,
                array_agg(a.attname ORDER BY x.ordinality) AS columns,
                ix.indisunique AS is_unique,
                ix.indisprimary AS is_primary
            FROM pg_index ix
            JOIN pg_class t ON t.oid = ix.indrelid
            JOIN pg_class i ON i.oid = ix.indexrelid
            JOIN pg_namespace n ON n.oid = t.relnamespace
            JOIN LATERAL unnest(ix.indkey) WITH ORDINALITY AS x(attnum, ordinality) ON TRUE
            JOIN pg_attribute a ON a.attrelid = t.oid AND a.attnum = x.attnum
            WHERE n.nspname = %s
              AND t.relname = %s
            GROUP BY i.relname, ix.indisunique, ix.indisprimary
            ORDER BY i.relname
        """
        rows = await self._fetch(query, (self._schema_name, table_name))
        return [
            IndexSchema(
                name=name,
                columns=tuple(columns),
                is_unique=is_unique,
                is_primary=is_primary,
            )
            for name, columns, is_unique, is_primary in rows
        ]
