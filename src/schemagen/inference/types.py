"""Column type, cast and validation rule mapping.

Resolution order for every column:
1. Exact column-name override (``name_types`` / ``name_rules``)
2. Native-type mapping table (``native_types`` / ``casts`` / ``rules``)
3. Configured default, recorded as an ``unmapped_type`` warning

Numeric columns with explicit precision/scale carry their magnitude
bounds into the rule, e.g. ``decimal(8,2)`` becomes
``numeric|between:-999999.99,999999.99``.
"""

import logging
from decimal import Decimal

from schemagen.config.models import TypeMappingSettings
from schemagen.inference.models import InferenceWarning, RuleExpression, TargetType
from schemagen.schema.models import ColumnSchema, TableSchema

logger = logging.getLogger(__name__)

_BOUNDED_DECIMALS = {"decimal", "numeric"}


def decimal_bound(precision: int, scale: int) -> str:
    """Largest magnitude a ``decimal(precision, scale)`` column can hold.

    Examples:
        >>> decimal_bound(8, 2)
        '999999.99'
        >>> decimal_bound(5, 0)
        '99999'
    """
    bound = Decimal(10) ** (precision - scale) - Decimal(10) ** -scale
    return f"{bound:.{scale}f}"


def _is_boolean_tinyint(column: ColumnSchema) -> bool:
    return column.base_type == "tinyint" and column.length == 1


def _unique(rules: list[str]) -> tuple[str, ...]:
    return tuple(dict.fromkeys(rule for rule in rules if rule))


class TypeMapper:
    """Maps columns to semantic types, cast directives and validation rules.

    Usage:
        mapper = TypeMapper(config.type_mapping)
        target = mapper.map_column_type(column)
        rules = mapper.map_validation_rules(table)
    """

    def __init__(self, settings: TypeMappingSettings | None = None):
        self._settings = settings or TypeMappingSettings()

    # ------------------------------------------------------------------
    # Types & casts
    # ------------------------------------------------------------------

    def map_column_type(self, column: ColumnSchema) -> TargetType:
        """Semantic type and cast for ``column``.

        Unknown native types fall back to ``default_type`` with a warning
        instead of failing.
        """
        settings = self._settings
        cast = self.map_cast(column)

        if column.name in settings.name_types:
            return TargetType(
                column=column.name,
                type=settings.name_types[column.name],
                cast=cast,
                source="name",
            )

        if _is_boolean_tinyint(column):
            return TargetType(column=column.name, type="bool", cast=cast)

        mapped = settings.native_types.get(column.base_type)
        if mapped is not None:
            return TargetType(column=column.name, type=mapped, cast=cast)

        warning = InferenceWarning(
            kind="unmapped_type",
            entity=column.name,
            message=(
                f"No type mapping for '{column.native_type}', "
                f"using '{settings.default_type}'"
            ),
        )
        logger.warning("Column %s: %s", column.name, warning.message)
        return TargetType(
            column=column.name,
            type=settings.default_type,
            cast=cast,
            source="fallback",
            warnings=(warning,),
        )

    def map_cast(self, column: ColumnSchema) -> str | None:
        """Cast directive for ``column`` (``decimal:2``, ``boolean``, ...), or None."""
        base = column.base_type
        if base == "tinyint":
            return "boolean" if column.length == 1 else "integer"
        if base in _BOUNDED_DECIMALS:
            scale = column.scale if column.scale is not None else 2
            return f"decimal:{scale}"
        return self._settings.casts.get(base)

    def map_casts(self, table: TableSchema) -> dict[str, str]:
        """Cast directives for every column that has one, primary key excluded."""
        skip = set(table.primary_key or ())
        casts = {}
        for column in table.columns:
            if column.name in skip:
                continue
            cast = self.map_cast(column)
            if cast:
                casts[column.name] = cast
        return casts

    # ------------------------------------------------------------------
    # Validation rules
    # ------------------------------------------------------------------

    def map_validation_rule(
        self, column: ColumnSchema, table: TableSchema | None = None
    ) -> RuleExpression:
        """Validation rules for ``column``.

        Args:
            column: Column to map
            table: Owning table; when given, unique indexes and foreign keys
                add ``unique:`` and ``exists:`` rules

        Returns:
            RuleExpression starting with ``required`` or ``nullable``
        """
        settings = self._settings
        rules = ["nullable" if column.nullable else "required"]
        warnings: tuple[InferenceWarning, ...] = ()

        if column.name in settings.name_rules:
            rules.extend(settings.name_rules[column.name].split("|"))
        else:
            native_rules = self._native_rules(column)
            if native_rules is None:
                warnings = (
                    InferenceWarning(
                        kind="unmapped_type",
                        entity=column.name,
                        message=(
                            f"No validation rule for '{column.native_type}', "
                            f"using '{settings.default_rule}'"
                        ),
                    ),
                )
                native_rules = settings.default_rule.split("|")
            rules.extend(native_rules)

        if table is not None:
            if table.is_unique(column.name):
                rules.append(f"unique:{table.name},{column.name}")
            fk = table.foreign_key_for(column.name)
            if fk is not None:
                rules.append(f"exists:{fk.referenced_table},{fk.referenced_column}")

        return RuleExpression(column=column.name, rules=_unique(rules), warnings=warnings)

    def _native_rules(self, column: ColumnSchema) -> list[str] | None:
        base = column.base_type
        if _is_boolean_tinyint(column):
            return ["boolean"]

        if base in _BOUNDED_DECIMALS and column.precision is not None:
            scale = column.scale or 0
            bound = decimal_bound(column.precision, scale)
            lower = "0" if column.is_unsigned else f"-{bound}"
            return ["numeric", f"between:{lower},{bound}"]

        template = self._settings.rules.get(base)
        if template is None:
            return None

        rules = []
        for part in template.split("|"):
            if "{length}" in part:
                if column.length is None:
                    continue
                part = part.replace("{length}", str(column.length))
            if "{values}" in part:
                values = column.enum_values
                if not values:
                    continue
                part = part.replace("{values}", ",".join(values))
            rules.append(part)
        return rules

    def map_validation_rules(self, table: TableSchema) -> dict[str, RuleExpression]:
        """Creation rules for every fillable column of ``table``.

        Primary key, auto-increment and timestamp columns are skipped.
        """
        skip = set(table.primary_key or ()) | set(self._settings.timestamp_columns)
        return {
            column.name: self.map_validation_rule(column, table)
            for column in table.columns
            if column.name not in skip and not column.is_auto_increment
        }

    def map_update_rules(self, table: TableSchema) -> dict[str, RuleExpression]:
        """Update rules: unique checks ignore the record being updated."""
        updated = {}
        for name, expression in self.map_validation_rules(table).items():
            rules = tuple(
                f"unique:{table.name},{name},{{id}}" if rule.startswith("unique:") else rule
                for rule in expression.rules
            )
            updated[name] = expression.model_copy(update={"rules": rules})
        return updated

    @staticmethod
    def validation_messages(rules: dict[str, RuleExpression]) -> dict[str, str]:
        """Default human-readable messages for required/unique/exists rules."""
        messages = {}
        for field, expression in rules.items():
            for rule in expression.rules:
                if rule == "required":
                    messages[f"{field}.required"] = f"The {field} field is required."
                elif rule.startswith("unique:"):
                    messages[f"{field}.unique"] = f"The {field} has already been taken."
                elif rule.startswith("exists:"):
                    messages[f"{field}.exists"] = f"The selected {field} is invalid."
        return messages
