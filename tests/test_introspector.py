"""Tests for SchemaIntrospector: caching, exclusion, listing, snapshots."""

import asyncio

import pytest

from schemagen.config.models import IntrospectionSettings
from schemagen.errors import TableNotFoundError
from schemagen.schema.introspector import SchemaIntrospector
from schemagen.schema.sources import SnapshotSchemaSource


class CountingSource(SnapshotSchemaSource):
    """Snapshot source that counts get_table calls."""

    def __init__(self, snapshot, identity: str = "snapshot:counting"):
        super().__init__(snapshot, identity=identity)
        self.reads: list[str] = []

    async def get_table(self, table_name):
        self.reads.append(table_name)
        return await super().get_table(table_name)


class FakeClock:
    def __init__(self, now: float = 100.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def source(blog_snapshot) -> CountingSource:
    return CountingSource(blog_snapshot)


# ============================================================
# Test: Cache
# ============================================================


class TestIntrospectCache:
    """Repeated reads within the TTL hit the cache."""

    def test_second_read_is_cached(self, source) -> None:
        introspector = SchemaIntrospector(source)
        first = asyncio.run(introspector.introspect("posts"))
        second = asyncio.run(introspector.introspect("posts"))
        assert first is second
        assert source.reads == ["posts"]

    def test_expired_entry_is_reread(self, source) -> None:
        clock = FakeClock()
        settings = IntrospectionSettings(cache_ttl=10)
        introspector = SchemaIntrospector(source, settings, clock=clock)

        asyncio.run(introspector.introspect("posts"))
        clock.now += 9
        asyncio.run(introspector.introspect("posts"))
        assert source.reads == ["posts"]

        clock.now += 2
        asyncio.run(introspector.introspect("posts"))
        assert source.reads == ["posts", "posts"]

    def test_zero_ttl_never_expires(self, source) -> None:
        clock = FakeClock()
        introspector = SchemaIntrospector(source, IntrospectionSettings(cache_ttl=0), clock=clock)
        asyncio.run(introspector.introspect("users"))
        clock.now += 1_000_000
        asyncio.run(introspector.introspect("users"))
        assert source.reads == ["users"]

    def test_cache_disabled(self, source) -> None:
        introspector = SchemaIntrospector(source, IntrospectionSettings(cache_schema=False))
        asyncio.run(introspector.introspect("users"))
        asyncio.run(introspector.introspect("users"))
        assert source.reads == ["users", "users"]

    def test_refresh_bypasses_cache(self, source) -> None:
        introspector = SchemaIntrospector(source)
        asyncio.run(introspector.introspect("users"))
        asyncio.run(introspector.introspect("users", refresh=True))
        asyncio.run(introspector.introspect("users"))
        assert source.reads == ["users", "users"]

    def test_invalidate(self, source) -> None:
        introspector = SchemaIntrospector(source)
        asyncio.run(introspector.introspect_all(["users", "posts"]))

        assert introspector.invalidate("users") == 1
        assert introspector.invalidate("users") == 0
        assert introspector.invalidate() == 1

        asyncio.run(introspector.introspect("posts"))
        assert source.reads.count("posts") == 2

    def test_cache_keyed_by_source_identity(self, blog_snapshot) -> None:
        first = CountingSource(blog_snapshot, identity="snapshot:a")
        introspector = SchemaIntrospector(first)
        asyncio.run(introspector.introspect("users"))

        # Swapping the source identity must not serve the other source's entry
        first._identity = "snapshot:b"
        asyncio.run(introspector.introspect("users"))
        assert first.reads == ["users", "users"]

    def test_missing_table_not_cached(self, source) -> None:
        introspector = SchemaIntrospector(source)
        for _ in range(2):
            with pytest.raises(TableNotFoundError):
                asyncio.run(introspector.introspect("ghosts"))
        assert source.reads == ["ghosts", "ghosts"]


# ============================================================
# Test: Exclusion
# ============================================================


class TestExcludedColumns:
    def test_default_exclusions_removed(self, source) -> None:
        users = asyncio.run(SchemaIntrospector(source).introspect("users"))
        assert "password" not in users.column_names
        assert users.column_names == ["id", "name", "email", "created_at", "updated_at"]

    def test_custom_exclusions(self, source) -> None:
        settings = IntrospectionSettings(exclude_columns=("body", "rating"))
        posts = asyncio.run(SchemaIntrospector(source, settings).introspect("posts"))
        assert "body" not in posts.column_names
        assert "rating" not in posts.column_names
        assert posts.column_names[:3] == ["id", "user_id", "title"]


# ============================================================
# Test: Listing
# ============================================================


class TestListTables:
    """Listing is sorted, honours the ignore list, and reports truncation."""

    def test_sorted_listing(self, source) -> None:
        listing = asyncio.run(SchemaIntrospector(source).list_tables())
        assert listing.tables == sorted(listing.tables)
        assert not listing.is_truncated

    def test_ignore_list(self, source) -> None:
        settings = IntrospectionSettings(tables_to_ignore=("comments", "post_category"))
        listing = asyncio.run(SchemaIntrospector(source, settings).list_tables())
        assert listing.tables == ["categories", "posts", "users"]
        assert listing.ignored == ["comments", "post_category"]

    def test_truncation_is_deterministic(self, source, caplog) -> None:
        settings = IntrospectionSettings(max_table_scan=2, tables_to_ignore=())
        introspector = SchemaIntrospector(source, settings)

        with caplog.at_level("WARNING"):
            listing = asyncio.run(introspector.list_tables())

        assert listing.tables == ["categories", "comments"]
        assert listing.truncated == ["post_category", "posts", "users"]
        assert "limited to 2 of 5" in caplog.text
        assert asyncio.run(introspector.list_tables()) == listing


# ============================================================
# Test: Snapshots
# ============================================================


class TestSnapshot:
    def test_snapshot_round_trip(self, source, tmp_path) -> None:
        path = tmp_path / "out" / "schema.json"
        snapshot = asyncio.run(SchemaIntrospector(source).snapshot(path, ["users", "posts"]))

        assert path.exists()
        assert set(snapshot.tables) == {"users", "posts"}

        reloaded = SnapshotSchemaSource.from_file(path)
        users = asyncio.run(reloaded.get_table("users"))
        assert users == snapshot.tables["users"]
        assert "password" not in users.column_names
