"""Tests for schema models and native type parsing."""

import pytest

from schemagen.schema.models import (
    ColumnSchema,
    ForeignKeySchema,
    IndexSchema,
    SchemaSnapshot,
    TableListing,
    TableSchema,
    parse_native_type,
)


class TestParseNativeType:
    """parse_native_type splits base type, arguments and modifiers."""

    @pytest.mark.parametrize(
        "native_type, base, args, unsigned",
        [
            ("varchar(255)", "varchar", ("255",), False),
            ("decimal(8,2) unsigned", "decimal", ("8", "2"), True),
            ("INT UNSIGNED", "int", (), True),
            ("text", "text", (), False),
            ("timestamp with time zone", "timestamp with time zone", (), False),
            ("enum('Draft','published')", "enum", ("Draft", "published"), False),
            ("", "", (), False),
        ],
    )
    def test_parse(self, native_type, base, args, unsigned) -> None:
        parsed = parse_native_type(native_type)
        assert parsed.base == base
        assert parsed.args == args
        assert parsed.unsigned is unsigned


class TestColumnSchema:
    """ColumnSchema derives sizes from its native type."""

    def test_length_from_varchar(self) -> None:
        assert ColumnSchema(name="title", native_type="varchar(120)").length == 120

    def test_precision_and_scale(self) -> None:
        col = ColumnSchema(name="price", native_type="decimal(10,4) unsigned")
        assert (col.precision, col.scale, col.is_unsigned) == (10, 4, True)
        assert col.length is None

    def test_explicit_values_win(self) -> None:
        col = ColumnSchema(name="code", native_type="char(2)", length=3)
        assert col.length == 3

    def test_enum_values(self) -> None:
        col = ColumnSchema(name="status", native_type="enum('draft','published')")
        assert col.base_type == "enum"
        assert col.enum_values == ["draft", "published"]
        assert col.length is None

    def test_non_enum_has_no_values(self) -> None:
        assert ColumnSchema(name="n", native_type="int").enum_values == []


class TestTableSchema:
    """TableSchema lookups and derived flags."""

    def test_lookups(self, posts) -> None:
        assert posts.column_names[:3] == ["id", "user_id", "title"]
        assert posts.column("title").length == 255
        assert posts.column("missing") is None
        assert posts.foreign_key_for("user_id").referenced_table == "users"
        assert posts.foreign_key_for("title") is None

    def test_unique_excludes_primary(self, users) -> None:
        assert users.is_unique("email") is True
        assert users.is_unique("id") is False
        assert users.is_unique("name") is False

    def test_composite_unique_does_not_count(self) -> None:
        table = TableSchema(
            name="t",
            columns=(ColumnSchema(name="a", native_type="int"), ColumnSchema(name="b", native_type="int")),
            indexes=(IndexSchema(name="ab", columns=("a", "b"), is_unique=True),),
        )
        assert table.is_unique("a") is False

    def test_timestamps_and_soft_deletes(self, posts, categories) -> None:
        assert posts.has_timestamps is True
        assert posts.has_soft_deletes is True
        assert categories.has_timestamps is False
        assert categories.has_soft_deletes is False

    def test_without_columns_preserves_order(self, users) -> None:
        trimmed = users.without_columns({"password"})
        assert trimmed.column_names == ["id", "name", "email", "created_at", "updated_at"]
        assert users.has_column("password")

    def test_without_columns_noop_returns_self(self, categories) -> None:
        assert categories.without_columns({"password"}) is categories

    def test_snapshot_json_round_trip(self, blog) -> None:
        snapshot = SchemaSnapshot(tables=blog)
        loaded = SchemaSnapshot.model_validate_json(snapshot.model_dump_json())
        assert loaded.tables["posts"] == blog["posts"]

    def test_foreign_key_defaults(self) -> None:
        fk = ForeignKeySchema(column_name="user_id", referenced_table="users")
        assert fk.referenced_column == "id"


class TestTableListing:
    def test_is_truncated(self) -> None:
        assert TableListing(tables=["a"]).is_truncated is False
        assert TableListing(tables=["a"], truncated=["b"]).is_truncated is True
