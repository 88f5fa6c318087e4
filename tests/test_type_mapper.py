"""Tests for TypeMapper and naming helpers."""

import pytest

from schemagen.config.models import TypeMappingSettings
from schemagen.inference.naming import camel, model_name, pluralize, singularize, studly
from schemagen.inference.types import TypeMapper, decimal_bound
from schemagen.schema.models import ColumnSchema


@pytest.fixture
def mapper() -> TypeMapper:
    return TypeMapper()


# ============================================================
# Test: Naming
# ============================================================


class TestNaming:
    @pytest.mark.parametrize(
        "singular, plural",
        [
            ("user", "users"),
            ("category", "categories"),
            ("box", "boxes"),
            ("class", "classes"),
            ("person", "people"),
            ("status", "statuses"),
            ("day", "days"),
            ("blog_post", "blog_posts"),
        ],
    )
    def test_inflection(self, singular, plural) -> None:
        assert pluralize(singular) == plural
        assert singularize(plural) == singular

    def test_already_inflected(self) -> None:
        assert pluralize("users") == "users"
        assert singularize("user") == "user"

    def test_case_helpers(self) -> None:
        assert studly("order_item") == "OrderItem"
        assert camel("order_item") == "orderItem"
        assert model_name("blog_posts") == "BlogPost"
        assert model_name("categories") == "Category"


# ============================================================
# Test: Types and casts
# ============================================================


class TestMapColumnType:
    """Native types resolve to a semantic type and a cast."""

    @pytest.mark.parametrize(
        "native_type, expected_type, expected_cast",
        [
            ("varchar(255)", "string", None),
            ("bigint", "int", "integer"),
            ("tinyint(1)", "bool", "boolean"),
            ("tinyint(4)", "int", "integer"),
            ("decimal(8,2)", "float", "decimal:2"),
            ("numeric", "float", "decimal:2"),
            ("timestamp", "datetime", "datetime"),
            ("jsonb", "array", "array"),
            ("boolean", "bool", "boolean"),
        ],
    )
    def test_native_mapping(self, mapper, native_type, expected_type, expected_cast) -> None:
        target = mapper.map_column_type(ColumnSchema(name="c", native_type=native_type))
        assert target.type == expected_type
        assert target.cast == expected_cast
        assert target.source == "native"
        assert target.warnings == ()

    def test_unknown_type_falls_back_with_warning(self, mapper) -> None:
        target = mapper.map_column_type(ColumnSchema(name="area", native_type="geometry"))
        assert target.type == "string"
        assert target.source == "fallback"
        assert [w.kind for w in target.warnings] == ["unmapped_type"]
        assert target.warnings[0].entity == "area"

    def test_name_override(self) -> None:
        mapper = TypeMapper(TypeMappingSettings(name_types={"settings": "array"}))
        target = mapper.map_column_type(ColumnSchema(name="settings", native_type="text"))
        assert (target.type, target.source) == ("array", "name")

    def test_table_casts_skip_primary_key(self, mapper, posts) -> None:
        casts = mapper.map_casts(posts)
        assert "id" not in casts
        assert casts["user_id"] == "integer"
        assert casts["rating"] == "decimal:1"
        assert casts["deleted_at"] == "datetime"
        assert "title" not in casts


# ============================================================
# Test: Validation rules
# ============================================================


class TestValidationRules:
    """Rules carry required/nullable, size bounds, uniqueness and existence."""

    def test_decimal_bound(self) -> None:
        assert decimal_bound(8, 2) == "999999.99"
        assert decimal_bound(3, 1) == "99.9"
        assert decimal_bound(5, 0) == "99999"

    def test_post_rules(self, mapper, posts) -> None:
        rules = mapper.map_validation_rules(posts)

        assert list(rules) == ["user_id", "title", "body", "status", "rating"]
        assert rules["title"].expression == "required|string|max:255"
        assert rules["body"].expression == "nullable|string"
        assert rules["status"].expression == "required|in:draft,published"
        assert rules["rating"].expression == "nullable|numeric|between:-99.9,99.9"
        assert rules["user_id"].expression == "required|integer|exists:users,id"

    def test_unique_and_name_rule(self, mapper, users) -> None:
        rules = mapper.map_validation_rules(users)
        assert rules["email"].expression == "required|email|max:255|unique:users,email"
        assert rules["password"].expression == "required|string|min:8"

    def test_update_rules_ignore_current_record(self, mapper, users) -> None:
        rules = mapper.map_update_rules(users)
        assert rules["email"].rules[-1] == "unique:users,email,{id}"
        assert rules["name"].expression == "required|string|max:255"

    def test_unsigned_decimal_lower_bound(self, mapper) -> None:
        column = ColumnSchema(name="price", native_type="decimal(5,2) unsigned")
        assert mapper.map_validation_rule(column).rules == (
            "required",
            "numeric",
            "between:0,999.99",
        )

    def test_length_placeholder_dropped_without_length(self, mapper) -> None:
        column = ColumnSchema(name="label", native_type="varchar", nullable=True)
        assert mapper.map_validation_rule(column).expression == "nullable|string"

    def test_boolean_tinyint(self, mapper) -> None:
        column = ColumnSchema(name="active", native_type="tinyint(1)")
        assert mapper.map_validation_rule(column).expression == "required|boolean"

    def test_unknown_type_uses_default_rule(self, mapper) -> None:
        expression = mapper.map_validation_rule(ColumnSchema(name="area", native_type="geometry"))
        assert expression.expression == "required|string"
        assert expression.warnings[0].kind == "unmapped_type"

    def test_validation_messages(self, mapper, users) -> None:
        messages = TypeMapper.validation_messages(mapper.map_validation_rules(users))
        assert messages["email.required"] == "The email field is required."
        assert messages["email.unique"] == "The email has already been taken."
        assert "name.unique" not in messages
