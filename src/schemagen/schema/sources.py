"""Schema source protocol and the snapshot-backed source.

A schema source is the only thing the introspector talks to.  Two kinds
exist: live database connections (``PostgresSchemaSource``,
``SqlAlchemySchemaSource``) and pre-serialized snapshots
(``SnapshotSchemaSource``).  All methods are ``async def``.

Usage:
    from schemagen.schema.sources import SnapshotSchemaSource

    async with SnapshotSchemaSource.from_file("schema.json") as source:
        names = await source.list_tables()
        users = await source.get_table("users")
"""

import json
from pathlib import Path
from typing import Protocol

from pydantic import ValidationError

from schemagen.errors import InvalidOptionError, TableNotFoundError
from schemagen.schema.models import SchemaSnapshot, TableSchema


class SchemaSource(Protocol):
    """Interface every schema source must implement."""

    @property
    def identity(self) -> str:
        """Stable identifier of the underlying connection or file.

        Used as part of the introspection cache key, so two sources that
        point at different databases never share cached tables.
        """
        ...

    async def list_tables(self) -> list[str]:
        """Return all table names known to the source, sorted."""
        ...

    async def get_table(self, table_name: str) -> TableSchema:
        """Return the full schema of one table.

        Raises:
            TableNotFoundError: If the table does not exist.
            SourceConnectionError: On transport failure.
        """
        ...

    async def close(self) -> None:
        """Release connections held by the source."""
        ...


class SnapshotSchemaSource:
    """Schema source backed by an in-memory ``SchemaSnapshot``.

    Snapshot files are JSON documents of the form ``{"tables": {...}}``
    as written by ``SchemaIntrospector.snapshot()``.
    """

    def __init__(self, snapshot: SchemaSnapshot, identity: str = "snapshot:memory"):
        self._snapshot = snapshot
        self._identity = identity

    @classmethod
    def from_file(cls, path: str | Path) -> "SnapshotSchemaSource":
        """Load a snapshot file.

        Raises:
            FileNotFoundError: If the file does not exist.
            InvalidOptionError: If the file is not a valid snapshot.
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Schema snapshot not found: {path}")

        try:
            data = json.loads(path.read_text())
            snapshot = SchemaSnapshot.model_validate(data)
        except (json.JSONDecodeError, ValidationError) as e:
            raise InvalidOptionError(
                f"Invalid schema snapshot {path}: {e}", entity=str(path)
            ) from e

        return cls(snapshot, identity=f"snapshot:{path.resolve()}")

    @property
    def identity(self) -> str:
        return self._identity

    async def __aenter__(self) -> "SnapshotSchemaSource":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def list_tables(self) -> list[str]:
        return sorted(self._snapshot.tables)

    async def get_table(self, table_name: str) -> TableSchema:
        table = self._snapshot.tables.get(table_name)
        if table is None:
            raise TableNotFoundError(table_name)
        return table

    async def close(self) -> None:
        pass
