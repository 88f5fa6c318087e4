"""Template-backed package generator.

Renders one package template per table with variables derived from the
table schema, its type mappings and its inferred relationships, and
returns the result as a single ``GeneratedFile``.

Template variables:
    table, model, model_variable, model_plural, package, primary_key,
    columns (name, type, cast, nullable, rules, native_type, is_primary),
    fillable, casts, rules, update_rules, relationships (kind, method,
    related_table, related_model, foreign_key, related_key, through_table,
    morph_type_column), has_timestamps, has_soft_deletes

Usage:
    renderer = TemplateRenderer(FileTemplateStore(["stubs"]), dialect="blade")
    generator = TemplatePackageGenerator("model", renderer)
    registry.set_generator("model", generator)
"""

from collections.abc import Mapping
from typing import Any

from schemagen.config.models import PackageSettings
from schemagen.inference.models import RelationshipDescriptor
from schemagen.inference.naming import camel, model_name, pluralize
from schemagen.inference.types import TypeMapper
from schemagen.pipeline.models import GeneratedFile
from schemagen.schema.models import TableSchema
from schemagen.templates.renderer import TemplateRenderer

# Output locations of the built-in packages
DEFAULT_OUTPUTS: dict[str, str] = {
    "model": "app/Models/{model}.php",
    "migration": "database/migrations/create_{table}_table.php",
    "controller": "app/Http/Controllers/{model}Controller.php",
    "views": "resources/views/{table}/index.blade.php",
    "factory": "database/factories/{model}Factory.php",
    "datatable": "app/DataTables/{model}DataTable.php",
}


class TemplatePackageGenerator:
    """Generator that renders ``template`` to ``output`` for a table.

    Args:
        package: Package name (also the default template name)
        renderer: Renderer used for the template
        template: Template name, if it differs from the package name
        output: Output path pattern with ``{model}``, ``{table}`` and
            ``{package}`` placeholders
        type_mapper: Mapper for column types, casts and rules

    Generator options (per package, per run):
        variables: Extra template variables (override the derived ones)
        template: Template name for this run
        output: Output path pattern for this run
    """

    def __init__(
        self,
        package: str,
        renderer: TemplateRenderer,
        template: str | None = None,
        output: str | None = None,
        type_mapper: TypeMapper | None = None,
    ):
        self.package = package
        self.template = template or package
        self.output = output or DEFAULT_OUTPUTS.get(package, "{package}/{model}.txt")
        self._renderer = renderer
        self._mapper = type_mapper or TypeMapper()

    @classmethod
    def from_settings(
        cls,
        package: str,
        settings: PackageSettings,
        renderer: TemplateRenderer,
        type_mapper: TypeMapper | None = None,
    ) -> "TemplatePackageGenerator":
        return cls(
            package,
            renderer,
            template=settings.template,
            output=settings.output,
            type_mapper=type_mapper,
        )

    def build_variables(
        self, schema: TableSchema, relationships: list[RelationshipDescriptor]
    ) -> dict[str, Any]:
        """Template variables for ``schema``."""
        mapper = self._mapper
        model = model_name(schema.name)
        rules = mapper.map_validation_rules(schema)
        primary = set(schema.primary_key or ())

        columns = []
        for column in schema.columns:
            target = mapper.map_column_type(column)
            columns.append({
                "name": column.name,
                "type": target.type,
                "cast": target.cast,
                "nullable": column.nullable,
                "native_type": column.native_type,
                "is_primary": column.name in primary,
                "rules": rules[column.name].expression if column.name in rules else "",
            })

        return {
            "package": self.package,
            "table": schema.name,
            "model": model,
            "model_variable": camel(model),
            "model_plural": pluralize(schema.name),
            "primary_key": schema.primary_key[0] if schema.primary_key else None,
            "columns": columns,
            "fillable": list(rules),
            "casts": mapper.map_casts(schema),
            "rules": {name: expr.expression for name, expr in rules.items()},
            "update_rules": {
                name: expr.expression for name, expr in mapper.map_update_rules(schema).items()
            },
            "relationships": [self._relationship_vars(rel) for rel in relationships],
            "has_timestamps": schema.has_timestamps,
            "has_soft_deletes": schema.has_soft_deletes,
        }

    @staticmethod
    def _relationship_vars(rel: RelationshipDescriptor) -> dict[str, Any]:
        return {
            "kind": rel.kind.value,
            "method": rel.method_name,
            "related_table": rel.related_table,
            "related_model": model_name(rel.related_table) if rel.related_table else None,
            "foreign_key": rel.foreign_key_name,
            "related_key": rel.related_key_name,
            "through_table": rel.through_table,
            "morph_type_column": rel.morph_type_column,
        }

    def output_path(self, schema: TableSchema, pattern: str | None = None) -> str:
        return (pattern or self.output).format_map({
            "model": model_name(schema.name),
            "table": schema.name,
            "package": self.package,
        })

    async def generate(
        self,
        schema: TableSchema,
        relationships: list[RelationshipDescriptor],
        options: Mapping[str, Any],
    ) -> list[GeneratedFile]:
        """Render the package template for ``schema``.

        Raises:
            TemplateNotFoundError: If the template cannot be found
            TemplateSyntaxError: If the template's directives are malformed
        """
        variables = self.build_variables(schema, relationships)
        variables.update(options.get("variables", {}))
        content = self._renderer.render(options.get("template", self.template), variables)
        return [GeneratedFile(path=self.output_path(schema, options.get("output")), content=content)]
