"""Package planning and execution.

Provides the package registry (``PackageRegistry``), dependency-ordered
planning (``DependencyResolver``), the run orchestrator
(``GenerationPipeline``) and the persistent run log (``RunHistory``).

Usage:
    from schemagen.pipeline import GenerationPipeline, PackageRegistry
    from schemagen.pipeline import DependencyResolver, RunHistory
"""

from schemagen.pipeline.history import HistoryEntry, HistoryEvent, RunHistory
from schemagen.pipeline.models import (
    GeneratedFile,
    GenerationPlan,
    GenerationResult,
    PackageDescriptor,
    PackageStatus,
    RunReport,
    RunStatus,
)
from schemagen.pipeline.orchestrator import GenerationPipeline, new_run_id
from schemagen.pipeline.registry import GenerateFn, PackageGenerator, PackageRegistry
from schemagen.pipeline.resolver import DependencyResolver

__all__ = [
    # Models
    "PackageDescriptor",
    "GenerationPlan",
    "GeneratedFile",
    "GenerationResult",
    "PackageStatus",
    "RunReport",
    "RunStatus",
    # Registry & planning
    "PackageRegistry",
    "PackageGenerator",
    "GenerateFn",
    "DependencyResolver",
    # Execution
    "GenerationPipeline",
    "new_run_id",
    # History
    "RunHistory",
    "HistoryEntry",
    "HistoryEvent",
]
