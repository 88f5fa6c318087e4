"""Pydantic models for schemagen configuration.

Every section is frozen: a ``Configuration`` is built once (usually by
``load_config``) and handed to each component's constructor.  Defaults
mirror a typical web-framework scaffold: bookkeeping tables ignored,
secrets excluded from introspection, model/controller critical.
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")


# ============================================================================
# Schema sources
# ============================================================================


class SourceProfile(_Frozen):
    """Schema source profile from schemagen.toml."""

    url: str = ""
    provider: str = "postgres"  # postgres | sqlalchemy | snapshot
    description: str = ""
    db_password: str | None = None  # For [YOUR-PASSWORD] placeholder substitution
    snapshot_path: str | None = None

    @field_validator("provider")
    @classmethod
    def _known_provider(cls, value: str) -> str:
        if value not in ("postgres", "sqlalchemy", "snapshot"):
            raise ValueError(f"unknown provider '{value}'")
        return value


class IntrospectionSettings(_Frozen):
    """Schema introspection: caching, exclusions, scan ceiling."""

    cache_schema: bool = True
    cache_ttl: float = 3600.0
    exclude_columns: tuple[str, ...] = ("password", "remember_token")
    tables_to_ignore: tuple[str, ...] = (
        "migrations",
        "failed_jobs",
        "password_resets",
        "password_reset_tokens",
        "personal_access_tokens",
        "cache",
        "cache_locks",
        "sessions",
        "jobs",
        "job_batches",
    )
    max_table_scan: int = Field(default=100, ge=0)  # 0 = unbounded
    schema_name: str = "public"
    connect_timeout: int = Field(default=10, ge=1)


# ============================================================================
# Inference
# ============================================================================


class TypeMappingSettings(_Frozen):
    """Native type -> semantic type / cast / validation rule tables."""

    native_types: dict[str, str] = Field(
        default_factory=lambda: {
            "varchar": "string",
            "character varying": "string",
            "char": "string",
            "character": "string",
            "text": "string",
            "tinytext": "string",
            "mediumtext": "string",
            "longtext": "string",
            "string": "string",
            "uuid": "string",
            "enum": "string",
            "tinyint": "int",
            "smallint": "int",
            "mediumint": "int",
            "int": "int",
            "integer": "int",
            "bigint": "int",
            "serial": "int",
            "bigserial": "int",
            "year": "int",
            "decimal": "float",
            "numeric": "float",
            "float": "float",
            "double": "float",
            "double precision": "float",
            "real": "float",
            "boolean": "bool",
            "bool": "bool",
            "date": "date",
            "datetime": "datetime",
            "timestamp": "datetime",
            "timestamptz": "datetime",
            "timestamp with time zone": "datetime",
            "timestamp without time zone": "datetime",
            "time": "time",
            "json": "array",
            "jsonb": "array",
            "set": "array",
            "binary": "binary",
            "varbinary": "binary",
            "blob": "binary",
            "bytea": "binary",
        }
    )
    casts: dict[str, str] = Field(
        default_factory=lambda: {
            "boolean": "boolean",
            "bool": "boolean",
            "smallint": "integer",
            "mediumint": "integer",
            "int": "integer",
            "integer": "integer",
            "bigint": "integer",
            "float": "float",
            "double": "double",
            "real": "float",
            "date": "date",
            "datetime": "datetime",
            "timestamp": "datetime",
            "timestamptz": "datetime",
            "json": "array",
            "jsonb": "array",
            "set": "array",
        }
    )
    rules: dict[str, str] = Field(
        default_factory=lambda: {
            "varchar": "string|max:{length}",
            "character varying": "string|max:{length}",
            "char": "string|size:{length}",
            "text": "string",
            "tinytext": "string",
            "mediumtext": "string",
            "longtext": "string",
            "uuid": "uuid",
            "tinyint": "integer|min:0|max:255",
            "smallint": "integer",
            "mediumint": "integer",
            "int": "integer",
            "integer": "integer",
            "bigint": "integer",
            "decimal": "numeric",
            "numeric": "numeric",
            "float": "numeric",
            "double": "numeric",
            "real": "numeric",
            "boolean": "boolean",
            "bool": "boolean",
            "date": "date",
            "datetime": "date",
            "timestamp": "date",
            "timestamptz": "date",
            "time": "date_format:H:i:s",
            "year": "integer|min:1901|max:2155",
            "json": "json",
            "jsonb": "json",
            "enum": "in:{values}",
            "set": "array",
        }
    )
    name_rules: dict[str, str] = Field(
        default_factory=lambda: {
            "email": "email|max:255",
            "password": "string|min:8",
            "phone": "string|max:20",
            "url": "url|max:255",
            "website": "url|max:255",
            "slug": "alpha_dash|max:255",
            "uuid": "uuid",
            "ip": "ip",
            "ip_address": "ip",
            "mac_address": "mac_address",
        }
    )
    name_types: dict[str, str] = Field(default_factory=dict)  # exact column name -> type
    default_type: str = "string"
    default_rule: str = "string"
    timestamp_columns: tuple[str, ...] = ("created_at", "updated_at", "deleted_at")


class RelationshipSettings(_Frozen):
    """Relationship detection toggles and naming conventions."""

    detect_belongs_to: bool = True
    detect_has_many: bool = True
    detect_many_to_many: bool = True
    detect_polymorphic: bool = True
    detect_conventional_keys: bool = False
    foreign_key_suffix: str = "_id"
    morph_suffix: str = "_type"
    morph_patterns: dict[str, str] = Field(
        default_factory=lambda: {"*able_type": "*able_id", "*_type": "*_id"}
    )
    pivot_extra_columns: tuple[str, ...] = ("created_at", "updated_at")


# ============================================================================
# Packages & execution
# ============================================================================


class PackageSettings(_Frozen):
    """Static definition of one generation package."""

    depends_on: tuple[str, ...] = ()
    priority: int = 100
    critical: bool = False
    timeout: float = Field(default=0.0, ge=0)  # 0 = unbounded
    template: str | None = None
    output: str | None = None


def _default_packages() -> dict[str, PackageSettings]:
    return {
        "model": PackageSettings(priority=1, critical=True, timeout=30),
        "migration": PackageSettings(priority=2, timeout=25),
        "controller": PackageSettings(
            depends_on=("model",), priority=3, critical=True, timeout=45
        ),
        "views": PackageSettings(
            depends_on=("model", "controller"), priority=4, timeout=60
        ),
        "factory": PackageSettings(depends_on=("model",), priority=5, timeout=20),
        "datatable": PackageSettings(
            depends_on=("model", "views"), priority=6, timeout=40
        ),
    }


class RollbackSettings(_Frozen):
    """Backup-before-overwrite and backup retention."""

    backup_existing: bool = True
    backup_directory: str = ".schemagen/backups"
    max_backup_age: float = Field(default=30, ge=0)  # days
    exclude_patterns: tuple[str, ...] = ("*.log", "*.cache")


class ErrorHandlingSettings(_Frozen):
    """Retry policy for non-critical packages."""

    continue_on_error: bool = True
    max_retries: int = Field(default=3, ge=0)
    retry_delay: float = Field(default=1.0, ge=0)


class PerformanceSettings(_Frozen):
    """Parallel execution of independent packages."""

    enable_parallel: bool = False
    max_parallel: int = Field(default=3, ge=1)


class TemplateSettings(_Frozen):
    """Template lookup, dialect, and compiled-template cache."""

    paths: tuple[str, ...] = ()
    extension: str = ".stub"
    dialect: str = "simple"
    cache_enabled: bool = True
    cache_directory: str | None = None


class HistorySettings(_Frozen):
    """Run history log location and size bound."""

    path: str = ".schemagen/history.jsonl"
    max_entries: int = Field(default=50, ge=1)


class OutputSettings(_Frozen):
    """Where generated relative paths are rooted."""

    base_path: str = "."


# ============================================================================
# Root configuration
# ============================================================================


class Configuration(_Frozen):
    """Complete, immutable schemagen configuration."""

    profiles: dict[str, SourceProfile] = Field(default_factory=dict)
    introspection: IntrospectionSettings = Field(default_factory=IntrospectionSettings)
    type_mapping: TypeMappingSettings = Field(default_factory=TypeMappingSettings)
    relationships: RelationshipSettings = Field(default_factory=RelationshipSettings)
    packages: dict[str, PackageSettings] = Field(default_factory=_default_packages)
    rollback: RollbackSettings = Field(default_factory=RollbackSettings)
    error_handling: ErrorHandlingSettings = Field(default_factory=ErrorHandlingSettings)
    performance: PerformanceSettings = Field(default_factory=PerformanceSettings)
    templates: TemplateSettings = Field(default_factory=TemplateSettings)
    history: HistorySettings = Field(default_factory=HistorySettings)
    output: OutputSettings = Field(default_factory=OutputSettings)
