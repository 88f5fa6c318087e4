"""Construction of schema sources, registries and pipelines from configuration.

Profile selection priority:
1. Explicit ``profile_name`` argument (the CLI ``--profile`` flag)
2. ``SCHEMAGEN_PROFILE`` environment variable
3. The only configured profile, when exactly one exists

Usage:
    from schemagen.config import load_config
    from schemagen.factory import create_source, create_pipeline, generate_for_table

    config = load_config()
    async with create_source(config) as source:
        introspector = SchemaIntrospector(source, config.introspection)
        report = await generate_for_table(
            introspector, create_pipeline(config), "posts", {"model"}, config
        )
"""

import logging
import os
from collections.abc import Iterable, Mapping
from typing import Any
from urllib.parse import quote

from schemagen.config.models import Configuration, SourceProfile
from schemagen.errors import InvalidOptionError, ProfileNotFoundError
from schemagen.inference.relationships import RelationshipInferencer
from schemagen.inference.types import TypeMapper
from schemagen.pipeline.models import RunReport
from schemagen.pipeline.orchestrator import GenerationPipeline
from schemagen.pipeline.registry import PackageRegistry
from schemagen.schema.introspector import SchemaIntrospector
from schemagen.schema.postgres import PostgresSchemaSource
from schemagen.schema.reflection import SqlAlchemySchemaSource
from schemagen.schema.sources import SchemaSource, SnapshotSchemaSource
from schemagen.templates.generator import TemplatePackageGenerator
from schemagen.templates.renderer import TemplateRenderer
from schemagen.templates.store import FileTemplateStore

logger = logging.getLogger(__name__)

PROFILE_ENV_VAR = "SCHEMAGEN_PROFILE"


# ============================================================================
# Profiles and sources
# ============================================================================


def get_active_profile(
    config: Configuration, profile_name: str | None = None
) -> tuple[str, SourceProfile]:
    """Pick the schema source profile to use.

    Returns:
        Tuple of (profile_name, SourceProfile)

    Raises:
        ProfileNotFoundError: If no profile is selected or it is not configured
    """
    name = profile_name or os.environ.get(PROFILE_ENV_VAR)
    if not name:
        if len(config.profiles) == 1:
            name = next(iter(config.profiles))
        else:
            raise ProfileNotFoundError(
                "No schema source profile selected.\n"
                f"Pass --profile or set {PROFILE_ENV_VAR}. "
                f"Available profiles: {', '.join(sorted(config.profiles)) or '(none)'}"
            )

    if name not in config.profiles:
        raise ProfileNotFoundError(
            f"Profile '{name}' not found in config. "
            f"Available profiles: {', '.join(sorted(config.profiles)) or '(none)'}",
            entity=name,
        )
    return name, config.profiles[name]


def resolve_url(profile: SourceProfile) -> str:
    """Profile URL with the ``[YOUR-PASSWORD]`` placeholder substituted.

    Example:
        >>> resolve_url(SourceProfile(url="postgresql://u:[YOUR-PASSWORD]@h/db", db_password="p@ss"))
        'postgresql://u:p%40ss@h/db'
    """
    url = profile.url
    if profile.db_password and "[YOUR-PASSWORD]" in url:
        url = url.replace("[YOUR-PASSWORD]", quote(profile.db_password, safe=""))
    return url


def create_source(config: Configuration, profile_name: str | None = None) -> SchemaSource:
    """Build the schema source for the active profile (not yet connected).

    Raises:
        ProfileNotFoundError: If no usable profile is configured
        InvalidOptionError: If a snapshot profile has no ``snapshot_path``
    """
    name, profile = get_active_profile(config, profile_name)
    settings = config.introspection
    logger.info("Using profile '%s' (%s)", name, profile.provider)

    if profile.provider == "snapshot":
        if not profile.snapshot_path:
            raise InvalidOptionError(
                f"Profile '{name}' uses the snapshot provider but has no snapshot_path",
                entity=f"profiles.{name}.snapshot_path",
            )
        return SnapshotSchemaSource.from_file(profile.snapshot_path)

    url = resolve_url(profile)
    if profile.provider == "sqlalchemy":
        return SqlAlchemySchemaSource(url, schema_name=settings.schema_name)
    return PostgresSchemaSource(
        url, schema_name=settings.schema_name, connect_timeout=settings.connect_timeout
    )


# ============================================================================
# Rendering and pipeline
# ============================================================================


def create_renderer(config: Configuration) -> TemplateRenderer:
    templates = config.templates
    return TemplateRenderer(
        FileTemplateStore(templates.paths, extension=templates.extension),
        dialect=templates.dialect,
        cache_enabled=templates.cache_enabled,
        cache_dir=templates.cache_directory,
    )


def create_registry(
    config: Configuration,
    renderer: TemplateRenderer | None = None,
    type_mapper: TypeMapper | None = None,
) -> PackageRegistry:
    """Registry of the configured packages.

    Every package gets a ``TemplatePackageGenerator`` when template paths
    are configured.  Otherwise generators must be set by the caller.
    """
    registry = PackageRegistry.from_settings(config.packages)
    if renderer is None and not config.templates.paths:
        return registry

    renderer = renderer or create_renderer(config)
    type_mapper = type_mapper or TypeMapper(config.type_mapping)
    for name, settings in config.packages.items():
        registry.set_generator(
            name, TemplatePackageGenerator.from_settings(name, settings, renderer, type_mapper)
        )
    return registry


def create_pipeline(
    config: Configuration, registry: PackageRegistry | None = None
) -> GenerationPipeline:
    return GenerationPipeline(registry or create_registry(config), config)


async def generate_for_table(
    introspector: SchemaIntrospector,
    pipeline: GenerationPipeline,
    table: str,
    requested: Iterable[str],
    config: Configuration,
    per_package_options: Mapping[str, Mapping[str, Any]] | None = None,
    overwrite: bool = False,
    parallel: bool | None = None,
) -> RunReport:
    """Introspect ``table``, infer its types and relationships, then run.

    Type-mapping and relationship warnings are collected into the report.

    Raises:
        TableNotFoundError: If the table does not exist
        SourceConnectionError: On transport failure
    """
    schema = await introspector.introspect(table)
    all_schemas = await introspector.introspect_all()
    all_schemas.setdefault(schema.name, schema)

    inference = RelationshipInferencer(config.relationships).infer(schema, all_schemas)

    mapper = TypeMapper(config.type_mapping)
    warnings = []
    for column in schema.columns:
        warnings.extend(mapper.map_column_type(column).warnings)
    for expression in mapper.map_validation_rules(schema).values():
        warnings.extend(w for w in expression.warnings if w not in warnings)

    return await pipeline.plan_and_run(
        schema,
        requested,
        per_package_options,
        relationships=inference,
        warnings=warnings,
        overwrite=overwrite,
        parallel=parallel,
    )
