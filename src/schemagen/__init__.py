"""schemagen: schema-driven code generation with rollback.

Introspects a database table (live PostgreSQL, any async SQLAlchemy
dialect, or a JSON snapshot), infers column types, validation rules and
relationships, and renders dependency-ordered generation packages whose
file writes are backed up and reverted on critical failure.

Usage:
    from schemagen import load_config, SchemaIntrospector, TypeMapper
    from schemagen import RelationshipInferencer, GenerationPipeline
    from schemagen import create_source, create_pipeline, generate_for_table
"""

__version__ = "0.1.0"

# Config
from schemagen.config.loader import load_config
from schemagen.config.models import Configuration

# Errors
from schemagen.errors import SchemagenError

# Schema
from schemagen.schema.introspector import SchemaIntrospector
from schemagen.schema.models import ColumnSchema, TableSchema
from schemagen.schema.sources import SnapshotSchemaSource

# Inference
from schemagen.inference.relationships import RelationshipInferencer
from schemagen.inference.types import TypeMapper

# Pipeline
from schemagen.pipeline.models import GenerationPlan, RunReport
from schemagen.pipeline.orchestrator import GenerationPipeline
from schemagen.pipeline.registry import PackageRegistry
from schemagen.pipeline.resolver import DependencyResolver

# Templates & files
from schemagen.backup.writer import BackupManager, FileWriter
from schemagen.templates.renderer import TemplateRenderer

# Factory
from schemagen.factory import create_pipeline, create_source, generate_for_table

__all__ = [
    # Config
    "load_config",
    "Configuration",
    # Errors
    "SchemagenError",
    # Schema
    "SchemaIntrospector",
    "SnapshotSchemaSource",
    "ColumnSchema",
    "TableSchema",
    # Inference
    "TypeMapper",
    "RelationshipInferencer",
    # Pipeline
    "PackageRegistry",
    "DependencyResolver",
    "GenerationPipeline",
    "GenerationPlan",
    "RunReport",
    # Templates & files
    "TemplateRenderer",
    "FileWriter",
    "BackupManager",
    # Factory
    "create_source",
    "create_pipeline",
    "generate_for_table",
]
