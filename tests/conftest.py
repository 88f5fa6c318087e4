"""Shared fixtures: a small blog schema covering every relationship kind.

- users(id, name, email unique, password, timestamps)
- posts(id, user_id -> users, title, body, status enum, rating, timestamps, deleted_at)
- categories(id, name)
- post_category(id, post_id -> posts, category_id -> categories, timestamps)
- comments(id, body, commentable_type, commentable_id, timestamps)
"""

import pytest

from schemagen.schema.models import (
    ColumnSchema,
    ForeignKeySchema,
    IndexSchema,
    SchemaSnapshot,
    TableSchema,
)


def _id() -> ColumnSchema:
    return ColumnSchema(name="id", native_type="bigint", is_auto_increment=True)


def _timestamps() -> tuple[ColumnSchema, ...]:
    return (
        ColumnSchema(name="created_at", native_type="timestamp", nullable=True),
        ColumnSchema(name="updated_at", native_type="timestamp", nullable=True),
    )


def _pk(table: str) -> IndexSchema:
    return IndexSchema(name=f"{table}_pkey", columns=("id",), is_unique=True, is_primary=True)


@pytest.fixture
def users() -> TableSchema:
    return TableSchema(
        name="users",
        columns=(
            _id(),
            ColumnSchema(name="name", native_type="varchar(255)"),
            ColumnSchema(name="email", native_type="varchar(255)"),
            ColumnSchema(name="password", native_type="varchar(255)"),
            *_timestamps(),
        ),
        indexes=(
            _pk("users"),
            IndexSchema(name="users_email_unique", columns=("email",), is_unique=True),
        ),
        primary_key=("id",),
    )


@pytest.fixture
def posts() -> TableSchema:
    return TableSchema(
        name="posts",
        columns=(
            _id(),
            ColumnSchema(name="user_id", native_type="bigint"),
            ColumnSchema(name="title", native_type="varchar(255)"),
            ColumnSchema(name="body", native_type="text", nullable=True),
            ColumnSchema(name="status", native_type="enum('draft','published')"),
            ColumnSchema(name="rating", native_type="decimal(3,1)", nullable=True),
            *_timestamps(),
            ColumnSchema(name="deleted_at", native_type="timestamp", nullable=True),
        ),
        indexes=(_pk("posts"),),
        foreign_keys=(
            ForeignKeySchema(column_name="user_id", referenced_table="users", on_delete="CASCADE"),
        ),
        primary_key=("id",),
    )


@pytest.fixture
def categories() -> TableSchema:
    return TableSchema(
        name="categories",
        columns=(_id(), ColumnSchema(name="name", native_type="varchar(100)")),
        indexes=(_pk("categories"),),
        primary_key=("id",),
    )


@pytest.fixture
def post_category() -> TableSchema:
    return TableSchema(
        name="post_category",
        columns=(
            _id(),
            ColumnSchema(name="post_id", native_type="bigint"),
            ColumnSchema(name="category_id", native_type="bigint"),
            *_timestamps(),
        ),
        foreign_keys=(
            ForeignKeySchema(column_name="post_id", referenced_table="posts"),
            ForeignKeySchema(column_name="category_id", referenced_table="categories"),
        ),
        primary_key=("id",),
    )


@pytest.fixture
def comments() -> TableSchema:
    return TableSchema(
        name="comments",
        columns=(
            _id(),
            ColumnSchema(name="body", native_type="text"),
            ColumnSchema(name="commentable_type", native_type="varchar(255)"),
            ColumnSchema(name="commentable_id", native_type="bigint"),
            *_timestamps(),
        ),
        primary_key=("id",),
    )


@pytest.fixture
def blog(users, posts, categories, post_category, comments) -> dict[str, TableSchema]:
    """Every blog table by name."""
    return {
        table.name: table
        for table in (users, posts, categories, post_category, comments)
    }


@pytest.fixture
def blog_snapshot(blog) -> SchemaSnapshot:
    return SchemaSnapshot(tables=blog)
