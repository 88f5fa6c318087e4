"""Exception taxonomy for schemagen.

Every error carries a stable ``kind`` string and the offending ``entity``
(table, package, path, or run id) so callers get a deterministic payload:

- Input errors: ``TableNotFoundError``, ``UnknownPackageError``,
  ``InvalidOptionError``, ``RunNotFoundError``, ``ProfileNotFoundError``
- Transport errors: ``SourceConnectionError``
- Execution errors (retryable for non-critical packages):
  ``GeneratorError``, ``PackageTimeoutError``
- Integrity errors (fatal to a run): ``CyclicDependencyError``,
  ``FileConflictError``, ``BackupCorruptedError``
- Rendering errors: ``TemplateNotFoundError``, ``TemplateSyntaxError``

Usage:
    from schemagen.errors import SchemagenError

    try:
        schema = await introspector.introspect("users")
    except SchemagenError as e:
        print(e.to_dict())
"""

from typing import Any


class SchemagenError(Exception):
    """Base class for all schemagen errors."""

    kind: str = "schemagen_error"

    def __init__(self, message: str, entity: str | None = None) -> None:
        super().__init__(message)
        self.entity = entity

    def to_dict(self) -> dict[str, Any]:
        """Deterministic error payload: kind, offending entity, message."""
        return {"kind": self.kind, "entity": self.entity, "message": str(self)}


# ============================================================================
# Input errors
# ============================================================================


class TableNotFoundError(SchemagenError):
    """Raised when an introspected table does not exist."""

    kind = "table_not_found"

    def __init__(self, table: str) -> None:
        super().__init__(f"Table not found: {table}", entity=table)


class UnknownPackageError(SchemagenError):
    """Raised when a package (or one of its dependencies) is not registered."""

    kind = "unknown_package"

    def __init__(self, package: str, required_by: str | None = None) -> None:
        message = f"Unknown package: {package}"
        if required_by:
            message += f" (required by '{required_by}')"
        super().__init__(message, entity=package)
        self.required_by = required_by


class InvalidOptionError(SchemagenError):
    """Raised for invalid configuration or option values."""

    kind = "invalid_option"


class RunNotFoundError(SchemagenError):
    """Raised when a run id is not present in the run history."""

    kind = "run_not_found"

    def __init__(self, run_id: str) -> None:
        super().__init__(f"Run not found in history: {run_id}", entity=run_id)


class ProfileNotFoundError(SchemagenError):
    """Raised when no schema source profile is configured."""

    kind = "profile_not_found"


# ============================================================================
# Transport errors
# ============================================================================


class SourceConnectionError(SchemagenError, ConnectionError):
    """Raised when a schema source cannot be reached."""

    kind = "connection_error"


# ============================================================================
# Execution errors
# ============================================================================


class GeneratorError(SchemagenError):
    """Raised when a package generator fails."""

    kind = "generator_error"


class PackageTimeoutError(GeneratorError):
    """Raised when a package generator exceeds its deadline."""

    kind = "package_timeout"

    def __init__(self, package: str, timeout: float) -> None:
        super().__init__(
            f"Package '{package}' timed out after {timeout:g}s", entity=package
        )
        self.timeout = timeout


# ============================================================================
# Integrity errors
# ============================================================================


class IntegrityError(SchemagenError):
    """Base class for errors that are fatal to a run."""

    kind = "integrity_error"


class CyclicDependencyError(IntegrityError):
    """Raised when the package dependency graph contains a cycle."""

    kind = "cyclic_dependency"

    def __init__(self, cycle: list[str]) -> None:
        super().__init__(
            f"Circular dependency detected: {' -> '.join(cycle)}",
            entity=cycle[0] if cycle else None,
        )
        self.cycle = cycle

    def to_dict(self) -> dict[str, Any]:
        payload = super().to_dict()
        payload["cycle"] = list(self.cycle)
        return payload


class FileConflictError(IntegrityError):
    """Raised when a target file exists and overwriting was not allowed."""

    kind = "file_conflict"

    def __init__(self, paths: list[str]) -> None:
        joined = ", ".join(paths)
        super().__init__(
            f"File already exists (use overwrite): {joined}",
            entity=paths[0] if paths else None,
        )
        self.paths = paths

    def to_dict(self) -> dict[str, Any]:
        payload = super().to_dict()
        payload["paths"] = list(self.paths)
        return payload


class BackupCorruptedError(IntegrityError):
    """Raised when a backup is missing or fails checksum verification."""

    kind = "backup_corrupted"


# ============================================================================
# Rendering errors
# ============================================================================


class TemplateNotFoundError(SchemagenError):
    """Raised when a template name cannot be resolved by the template store."""

    kind = "template_not_found"

    def __init__(self, name: str) -> None:
        super().__init__(f"Template not found: {name}", entity=name)


class TemplateSyntaxError(SchemagenError):
    """Raised when template directives are unbalanced or malformed."""

    kind = "template_syntax"
