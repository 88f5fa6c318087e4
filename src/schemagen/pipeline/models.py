"""Pydantic models for generation plans, results and run reports."""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from schemagen.backup.models import FileWriteRecord
from schemagen.inference.models import InferenceWarning


class PackageDescriptor(BaseModel):
    """Static definition of a generation package.

    Example:
        >>> PackageDescriptor(name="views", depends_on=["model", "controller"]).depends_on
        ('controller', 'model')
    """

    model_config = ConfigDict(frozen=True)

    name: str
    depends_on: tuple[str, ...] = ()
    priority: int = 100                 # lower runs earlier among ready packages
    is_critical: bool = False
    timeout_seconds: float = Field(default=0.0, ge=0)  # 0 = unbounded

    @field_validator("depends_on", mode="before")
    @classmethod
    def _sorted_unique(cls, value: Any) -> tuple[str, ...]:
        return tuple(sorted(set(value or ())))


class GenerationPlan(BaseModel):
    """Resolved execution order: every package follows all its dependencies."""

    model_config = ConfigDict(frozen=True)

    packages: tuple[PackageDescriptor, ...] = ()
    requested: tuple[str, ...] = ()

    @property
    def names(self) -> list[str]:
        return [pkg.name for pkg in self.packages]

    def get(self, name: str) -> PackageDescriptor | None:
        for pkg in self.packages:
            if pkg.name == name:
                return pkg
        return None

    def __len__(self) -> int:
        return len(self.packages)


class GeneratedFile(BaseModel):
    """One file produced by a package generator (path relative to the output root)."""

    path: str
    content: str


class PackageStatus(str, Enum):
    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"


class GenerationResult(BaseModel):
    """Outcome of one package in a run."""

    package: str
    status: PackageStatus
    produced_files: list[str] = Field(default_factory=list)
    error: dict[str, Any] | None = None   # SchemagenError.to_dict() payload
    attempts: int = 0
    duration: float = 0.0
    reason: str | None = None             # why a package was skipped


class RunStatus(str, Enum):
    PLANNING = "planning"
    EXECUTING = "executing"
    COMPLETED = "completed"
    ROLLED_BACK = "rolled_back"
    ABORTED = "aborted"


class RunReport(BaseModel):
    """Everything a caller needs to know about one run, success or not."""

    run_id: str
    table: str | None = None
    status: RunStatus = RunStatus.PLANNING
    requested: list[str] = Field(default_factory=list)
    plan: list[str] = Field(default_factory=list)
    results: list[GenerationResult] = Field(default_factory=list)
    warnings: list[InferenceWarning] = Field(default_factory=list)
    records: list[FileWriteRecord] = Field(default_factory=list)
    error: dict[str, Any] | None = None
    restore_errors: list[dict[str, Any]] = Field(default_factory=list)
    stopped: bool = False                # a stop request ended the run early
    started_at: datetime = Field(default_factory=datetime.now)
    finished_at: datetime | None = None

    def result_for(self, package: str) -> GenerationResult | None:
        for result in self.results:
            if result.package == package:
                return result
        return None

    @property
    def failed_packages(self) -> list[str]:
        return [r.package for r in self.results if r.status == PackageStatus.FAILED]

    @property
    def skipped_packages(self) -> list[str]:
        return [r.package for r in self.results if r.status == PackageStatus.SKIPPED]

    @property
    def produced_files(self) -> list[str]:
        return [path for r in self.results for path in r.produced_files]

    @property
    def outcome(self) -> str:
        """``completed``, ``completed_with_warnings``, ``rolled_back`` or ``aborted``.

        Non-critical failures and skips count as warnings of a completed run.
        """
        if self.status != RunStatus.COMPLETED:
            return self.status.value
        if self.warnings or self.failed_packages or self.skipped_packages:
            return "completed_with_warnings"
        return "completed"
