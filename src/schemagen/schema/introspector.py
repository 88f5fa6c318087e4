"""Cached, exclusion-aware schema introspection over any ``SchemaSource``.

``SchemaIntrospector`` is the single source of truth for generation
decisions.  It adds, on top of a raw schema source:
- A TTL cache keyed by ``(source identity, table name)``
- Removal of excluded columns (secrets) with the remaining order intact
- Table enumeration with an ignore list and a deterministic scan ceiling
- Snapshot export for offline generation
"""

import logging
import time
from collections.abc import Callable, Iterable
from pathlib import Path

from schemagen.config.models import IntrospectionSettings
from schemagen.schema.models import SchemaSnapshot, TableListing, TableSchema
from schemagen.schema.sources import SchemaSource

logger = logging.getLogger(__name__)


class SchemaIntrospector:
    """Introspects tables through a schema source.

    Usage:
        async with PostgresSchemaSource(url) as source:
            introspector = SchemaIntrospector(source, config.introspection)
            posts = await introspector.introspect("posts")
            listing = await introspector.list_tables()
    """

    def __init__(
        self,
        source: SchemaSource,
        settings: IntrospectionSettings | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize with a schema source.

        Args:
            source: Live or snapshot schema source
            settings: Introspection settings (defaults if None)
            clock: Monotonic time function, injectable for cache tests
        """
        self._source = source
        self._settings = settings or IntrospectionSettings()
        self._clock = clock
        self._excluded = frozenset(self._settings.exclude_columns)
        self._cache: dict[tuple[str, str], tuple[float, TableSchema]] = {}

    @property
    def source(self) -> SchemaSource:
        return self._source

    async def introspect(self, table_name: str, refresh: bool = False) -> TableSchema:
        """Return the schema of ``table_name``.

        Args:
            table_name: Table to read
            refresh: Bypass (and replace) any cached entry

        Returns:
            TableSchema with excluded columns removed

        Raises:
            TableNotFoundError: If the table does not exist
            SourceConnectionError: On transport failure
        """
        key = (self._source.identity, table_name)

        if self._settings.cache_schema and not refresh:
            cached = self._cache.get(key)
            if cached is not None:
                expires_at, table = cached
                if expires_at <= 0 or self._clock() < expires_at:
                    logger.debug("Schema cache hit: %s", table_name)
                    return table
                logger.debug("Schema cache expired: %s", table_name)
                del self._cache[key]

        logger.debug("Schema cache miss: %s", table_name)
        table = (await self._source.get_table(table_name)).without_columns(self._excluded)

        if self._settings.cache_schema:
            ttl = self._settings.cache_ttl
            expires_at = self._clock() + ttl if ttl > 0 else 0.0
            self._cache[key] = (expires_at, table)

        return table

    def invalidate(self, table_name: str | None = None) -> int:
        """Drop cached tables for this source.

        Args:
            table_name: Table to drop, or None for every table of the source

        Returns:
            Number of cache entries removed
        """
        identity = self._source.identity
        if table_name is not None:
            removed = 1 if self._cache.pop((identity, table_name), None) else 0
        else:
            keys = [key for key in self._cache if key[0] == identity]
            for key in keys:
                del self._cache[key]
            removed = len(keys)
        logger.debug("Invalidated %d schema cache entries", removed)
        return removed

    async def list_tables(self) -> TableListing:
        """Enumerate tables, minus the ignore list, up to ``max_table_scan``.

        Names are sorted lexicographically before truncation, so the same
        database always yields the same listing.  Truncated names are
        reported on the listing and logged, never silently dropped.
        """
        ignore = set(self._settings.tables_to_ignore)
        names = sorted(await self._source.list_tables())
        kept = [name for name in names if name not in ignore]
        ignored = [name for name in names if name in ignore]

        ceiling = self._settings.max_table_scan
        truncated: list[str] = []
        if ceiling and len(kept) > ceiling:
            kept, truncated = kept[:ceiling], kept[ceiling:]
            logger.warning(
                "Table scan limited to %d of %d tables; skipped: %s",
                ceiling,
                ceiling + len(truncated),
                ", ".join(truncated),
            )

        return TableListing(tables=kept, ignored=ignored, truncated=truncated)

    async def introspect_all(
        self, tables: Iterable[str] | None = None
    ) -> dict[str, TableSchema]:
        """Introspect several tables (default: every listed table).

        Returns:
            Dict mapping table name to TableSchema, in listing order
        """
        if tables is None:
            tables = (await self.list_tables()).tables
        return {name: await self.introspect(name) for name in tables}

    async def snapshot(
        self, path: str | Path, tables: Iterable[str] | None = None
    ) -> SchemaSnapshot:
        """Write a JSON snapshot usable by ``SnapshotSchemaSource``.

        Args:
            path: Destination file (parent directories are created)
            tables: Tables to include (default: every listed table)

        Returns:
            The snapshot that was written
        """
        snapshot = SchemaSnapshot(tables=await self.introspect_all(tables))
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(snapshot.model_dump_json(indent=2))
        logger.info("Wrote schema snapshot with %d tables to %s", len(snapshot.tables), path)
        return snapshot
