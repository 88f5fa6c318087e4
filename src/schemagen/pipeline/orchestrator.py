"""Generation pipeline: plan, execute, and roll back package runs.

A run moves through ``planning -> executing -> {completed, rolled_back,
aborted}``:

- Planning resolves the requested packages into a ``GenerationPlan``.  Any
  failure here aborts the run before it touches the filesystem.
- Executing invokes each package's generator under its deadline and writes
  the returned files.  All of a package's target paths are conflict-checked
  before the first one is written.
- A critical failure (or a file conflict) stops the run and reverts every
  write of the run in reverse commit order.  After a file conflict the
  remaining packages are still generated, without writing, so that every
  existing target is reported.  A non-critical failure is retried, then
  recorded; packages depending on it are skipped.

Usage:
    from schemagen.pipeline import GenerationPipeline, PackageRegistry

    registry = PackageRegistry.from_settings(config.packages)
    registry.set_generator("model", model_generator)
    pipeline = GenerationPipeline(registry, config)

    report = await pipeline.plan_and_run(schema, {"views"}, relationships=inference)
    if report.outcome == "rolled_back":
        print(report.error)
"""

import asyncio
import inspect
import logging
import time
import uuid
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from schemagen.backup.models import FileWriteRecord
from schemagen.backup.writer import BackupManager, FileWriter
from schemagen.config.models import Configuration
from schemagen.errors import (
    BackupCorruptedError,
    FileConflictError,
    GeneratorError,
    PackageTimeoutError,
    SchemagenError,
)
from schemagen.inference.models import InferenceResult, InferenceWarning, RelationshipDescriptor
from schemagen.pipeline.history import HistoryEntry, RunHistory
from schemagen.pipeline.models import (
    GeneratedFile,
    GenerationPlan,
    GenerationResult,
    PackageDescriptor,
    PackageStatus,
    RunReport,
    RunStatus,
)
from schemagen.pipeline.registry import PackageRegistry
from schemagen.pipeline.resolver import DependencyResolver
from schemagen.schema.models import TableSchema

logger = logging.getLogger(__name__)


def new_run_id() -> str:
    """Sortable run identifier, e.g. ``20240101-120000-ab12cd34``."""
    return f"{datetime.now():%Y%m%d-%H%M%S}-{uuid.uuid4().hex[:8]}"


@dataclass
class _RunState:
    """Mutable bookkeeping for one run (owned by ``plan_and_run``)."""

    report: RunReport
    plan: GenerationPlan
    schema: TableSchema
    relationships: list[RelationshipDescriptor]
    options: Mapping[str, Mapping[str, Any]]
    writer: FileWriter
    overwrite: bool
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    records: list[FileWriteRecord] = field(default_factory=list)
    unsuccessful: set[str] = field(default_factory=set)
    conflicts: list[str] = field(default_factory=list)
    fatal: SchemagenError | None = None
    halted_by: str | None = None
    stop_in_flight: list[str] = field(default_factory=list)


class GenerationPipeline:
    """Runs generation plans with deadlines, retries, and rollback.

    Args:
        registry: Package descriptors and generators
        config: Execution settings (retries, rollback, parallelism, history)
        resolver: Dependency resolver (default: a new ``DependencyResolver``)
        history: Run log for later rollback (default: from ``config.history``)
        sleep: Coroutine used between retries (injectable for tests)
    """

    def __init__(
        self,
        registry: PackageRegistry,
        config: Configuration | None = None,
        resolver: DependencyResolver | None = None,
        history: RunHistory | None = None,
        sleep: Callable[[float], Any] = asyncio.sleep,
    ):
        self._registry = registry
        self._config = config or Configuration()
        self._resolver = resolver or DependencyResolver()
        self._history = history or RunHistory(
            self._config.history.path, self._config.history.max_entries
        )
        self._sleep = sleep
        self._stop_requested = False

    @property
    def registry(self) -> PackageRegistry:
        return self._registry

    @property
    def history(self) -> RunHistory:
        return self._history

    @property
    def base_path(self) -> Path:
        return Path(self._config.output.base_path)

    def _backups(self, run_id: str) -> BackupManager:
        rollback = self._config.rollback
        return BackupManager(
            rollback.backup_directory,
            run_id,
            base_path=self.base_path,
            exclude_patterns=rollback.exclude_patterns,
        )

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    def dry_run(self, requested: Iterable[str]) -> GenerationPlan:
        """Resolve the plan for ``requested`` without running anything.

        Raises:
            UnknownPackageError: If a package is not registered
            CyclicDependencyError: If the dependency graph has a cycle
        """
        return self._resolver.resolve(self._registry.descriptors(), requested)

    def request_stop(self) -> None:
        """Ask the current run to stop at the next package boundary.

        The request applies to the run in progress only: each
        ``plan_and_run`` clears it when it starts, so a stop requested
        while no run is active is discarded.
        """
        logger.info("Stop requested")
        self._stop_requested = True

    def latest_run(self) -> HistoryEntry | None:
        return self._history.latest()

    async def plan_and_run(
        self,
        schema: TableSchema,
        requested: Iterable[str],
        per_package_options: Mapping[str, Mapping[str, Any]] | None = None,
        relationships: InferenceResult | list[RelationshipDescriptor] | None = None,
        warnings: Iterable[InferenceWarning] = (),
        overwrite: bool = False,
        parallel: bool | None = None,
    ) -> RunReport:
        """Resolve and execute the requested packages for one table.

        Args:
            schema: Table to generate from
            requested: Package names; dependencies are pulled in automatically
            per_package_options: Options passed to each package's generator
            relationships: Inferred relationships of ``schema``
            warnings: Extra inference warnings to surface in the report
            overwrite: Allow replacing existing files (backed up first)
            parallel: Run independent packages concurrently (default from config)

        Returns:
            RunReport for the run, whatever its outcome
        """
        self._stop_requested = False
        requested = sorted(set(requested))
        report = RunReport(run_id=new_run_id(), table=schema.name, requested=requested)

        relationship_list: list[RelationshipDescriptor]
        if isinstance(relationships, InferenceResult):
            relationship_list = list(relationships.relationships)
            report.warnings.extend(relationships.warnings)
        else:
            relationship_list = list(relationships or [])
        report.warnings.extend(warnings)

        # Planning
        try:
            plan = self.dry_run(requested)
            for pkg in plan.packages:
                self._registry.generator_for(pkg.name)
        except SchemagenError as e:
            logger.error("Planning failed: %s", e)
            report.status = RunStatus.ABORTED
            report.error = e.to_dict()
            return self._finish(report)

        report.plan = plan.names
        report.status = RunStatus.EXECUTING
        backups = self._backups(report.run_id) if self._config.rollback.backup_existing else None
        state = _RunState(
            report=report,
            plan=plan,
            schema=schema,
            relationships=relationship_list,
            options=per_package_options or {},
            writer=FileWriter(self.base_path, backups),
            overwrite=overwrite,
        )

        if parallel is None:
            parallel = self._config.performance.enable_parallel
        logger.info(
            "Run %s: %s (%s)", report.run_id, " -> ".join(plan.names),
            "parallel" if parallel else "sequential",
        )

        if parallel:
            await self._execute_parallel(state)
        else:
            for pkg in plan.packages:
                await self._step(pkg, state)

        order = {name: index for index, name in enumerate(plan.names)}
        report.results.sort(key=lambda r: order[r.package])
        report.records = list(state.records)
        self._conclude(state)
        return self._finish(report)

    def rollback(self, run_id: str) -> bool:
        """Revert every write of a logged run.

        Returns:
            False if the run is unknown, already rolled back, or wrote
            nothing; True once its writes are reverted

        Raises:
            BackupCorruptedError: If a backup is missing or corrupted
        """
        entry = self._history.find(run_id)
        if entry is None:
            logger.warning("Run %s not found in history", run_id)
            return False
        if not entry.can_roll_back:
            logger.warning("Run %s cannot be rolled back (status %s)", run_id, entry.status.value)
            return False

        restored = self._backups(run_id).restore_all(entry.records)
        self._history.mark_rolled_back(run_id)
        logger.info("Rolled back run %s (%d file(s) restored)", run_id, len(restored))
        return True

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    async def _execute_parallel(self, state: _RunState) -> None:
        semaphore = asyncio.Semaphore(self._config.performance.max_parallel)
        done = {pkg.name: asyncio.Event() for pkg in state.plan.packages}

        async def run_one(pkg: PackageDescriptor) -> None:
            try:
                for dep in pkg.depends_on:
                    await done[dep].wait()
                async with semaphore:
                    await self._step(pkg, state)
            finally:
                done[pkg.name].set()

        await asyncio.gather(*(run_one(pkg) for pkg in state.plan.packages))

    async def _step(self, pkg: PackageDescriptor, state: _RunState) -> None:
        """Run ``pkg`` unless the run has halted or an upstream package failed."""
        if state.fatal is not None:
            if isinstance(state.fatal, FileConflictError):
                await self._record(state, await self._check_conflicts(pkg, state))
            else:
                await self._record(state, self._skipped(pkg, f"run halted by '{state.halted_by}'"))
            return
        if self._stop_requested:
            state.report.stopped = True
            await self._record(state, self._skipped(pkg, "stop requested"))
            return

        blocked = sorted(set(pkg.depends_on) & state.unsuccessful)
        if blocked:
            reason = f"dependency not generated: {', '.join(blocked)}"
            logger.warning("Skipping %s: %s", pkg.name, reason)
            state.unsuccessful.add(pkg.name)
            await self._record(state, self._skipped(pkg, reason))
            return

        result = await self._run_package(pkg, state)
        await self._record(state, result)

        if self._stop_requested:
            state.report.stopped = True
            if pkg.is_critical:
                state.stop_in_flight.append(pkg.name)

    @staticmethod
    def _skipped(pkg: PackageDescriptor, reason: str) -> GenerationResult:
        return GenerationResult(package=pkg.name, status=PackageStatus.SKIPPED, reason=reason)

    @staticmethod
    async def _record(state: _RunState, result: GenerationResult) -> None:
        async with state.lock:
            state.report.results.append(result)

    async def _check_conflicts(self, pkg: PackageDescriptor, state: _RunState) -> GenerationResult:
        """Report the conflicts ``pkg`` would hit, writing nothing.

        Used after a file conflict halted the run so that every existing
        target is reported, not only those of the first conflicting package.
        """
        reason = f"run halted by '{state.halted_by}'"
        try:
            files = await self._generate(pkg, state)
        except SchemagenError as e:
            logger.debug("Could not check %s for conflicts: %s", pkg.name, e)
            return self._skipped(pkg, reason)

        conflicts = state.writer.conflicts([f.path for f in files], state.overwrite)
        if not conflicts:
            return self._skipped(pkg, reason)

        logger.error("%s would overwrite %d existing file(s)", pkg.name, len(conflicts))
        state.unsuccessful.add(pkg.name)
        state.conflicts.extend(conflicts)
        return GenerationResult(
            package=pkg.name,
            status=PackageStatus.FAILED,
            attempts=1,
            error=FileConflictError(conflicts).to_dict(),
            reason=reason,
        )

    async def _run_package(self, pkg: PackageDescriptor, state: _RunState) -> GenerationResult:
        settings = self._config.error_handling
        # Critical packages are never retried: they may have written files already
        max_attempts = 1 if pkg.is_critical else 1 + settings.max_retries
        started = time.monotonic()
        result = GenerationResult(package=pkg.name, status=PackageStatus.FAILED)

        logger.info("Generating %s", pkg.name)
        error: SchemagenError | None = None
        while result.attempts < max_attempts:
            result.attempts += 1
            try:
                files = await self._generate(pkg, state)
                result.produced_files = await self._write(pkg, files, state)
            except GeneratorError as e:
                error = e
                if result.attempts < max_attempts:
                    logger.warning(
                        "%s failed (attempt %d/%d), retrying in %gs: %s",
                        pkg.name, result.attempts, max_attempts, settings.retry_delay, e,
                    )
                    await self._sleep(settings.retry_delay)
                continue
            except SchemagenError as e:
                error = e
                break
            error = None
            break

        result.duration = time.monotonic() - started
        if error is None:
            result.status = PackageStatus.SUCCESS
            logger.info("Generated %s (%d file(s))", pkg.name, len(result.produced_files))
            return result

        result.error = error.to_dict()
        self._on_failure(pkg, error, state)
        return result

    def _on_failure(self, pkg: PackageDescriptor, error: SchemagenError, state: _RunState) -> None:
        # With continue_on_error off every failure is treated as critical
        fatal = (
            isinstance(error, FileConflictError)
            or pkg.is_critical
            or not self._config.error_handling.continue_on_error
        )
        state.unsuccessful.add(pkg.name)
        if isinstance(error, FileConflictError):
            state.conflicts.extend(error.paths)
        if fatal:
            logger.error("%s failed, halting run: %s", pkg.name, error)
            if state.fatal is None:
                state.fatal = error
                state.halted_by = pkg.name
        else:
            logger.warning("%s failed, skipping its dependents: %s", pkg.name, error)

    async def _generate(self, pkg: PackageDescriptor, state: _RunState) -> list[GeneratedFile]:
        """Invoke the generator under the package deadline.

        Raises:
            PackageTimeoutError: If the deadline passes
            GeneratorError: If the generator raises anything else
        """
        generate = self._registry.generator_for(pkg.name)
        args = (state.schema, list(state.relationships), dict(state.options.get(pkg.name, {})))

        async def invoke() -> Any:
            if inspect.iscoroutinefunction(generate):
                return await generate(*args)
            # Sync generators run in a worker thread; the thread is not
            # interrupted on timeout
            produced = await asyncio.to_thread(generate, *args)
            if inspect.isawaitable(produced):
                produced = await produced
            return produced

        try:
            if pkg.timeout_seconds > 0:
                produced = await asyncio.wait_for(invoke(), timeout=pkg.timeout_seconds)
            else:
                produced = await invoke()
        except asyncio.TimeoutError:
            raise PackageTimeoutError(pkg.name, pkg.timeout_seconds) from None
        except SchemagenError:
            raise
        except Exception as e:
            raise GeneratorError(f"Generator for '{pkg.name}' failed: {e}", entity=pkg.name) from e

        try:
            return [
                f if isinstance(f, GeneratedFile) else GeneratedFile.model_validate(f)
                for f in produced or []
            ]
        except (TypeError, ValidationError) as e:
            raise GeneratorError(
                f"Generator for '{pkg.name}' returned invalid files: {e}", entity=pkg.name
            ) from e

    async def _write(
        self, pkg: PackageDescriptor, files: list[GeneratedFile], state: _RunState
    ) -> list[str]:
        """Conflict-check then write all of a package's files.

        Writes are serialized across packages so records stay in commit
        order.  A write that fails part way reverts the package's own
        earlier writes before raising (a path repeated within the package
        conflicts on its second write).

        Raises:
            FileConflictError: If any target exists and overwrite is off
            GeneratorError: If a write fails with an OS error
        """
        async with state.lock:
            conflicts = state.writer.conflicts([f.path for f in files], state.overwrite)
            if conflicts:
                raise FileConflictError(conflicts)

            written: list[FileWriteRecord] = []
            try:
                for generated in files:
                    record = state.writer.write(
                        generated.path, generated.content, overwrite=state.overwrite, package=pkg.name
                    )
                    written.append(record)
            except FileConflictError:
                self._revert(written, state)
                raise
            except OSError as e:
                self._revert(written, state)
                raise GeneratorError(
                    f"Could not write output of '{pkg.name}': {e}", entity=pkg.name
                ) from e

            state.records.extend(written)
            return [r.target_path for r in written]

    def _revert(self, written: list[FileWriteRecord], state: _RunState) -> None:
        if written:
            logger.warning("Reverting %d partial write(s)", len(written))
            self._backups(state.report.run_id).restore_all(written)

    # ------------------------------------------------------------------
    # Completion
    # ------------------------------------------------------------------

    def _conclude(self, state: _RunState) -> None:
        report = state.report
        if state.fatal is None and not state.stop_in_flight:
            report.status = RunStatus.COMPLETED
            return

        if isinstance(state.fatal, FileConflictError):
            report.error = FileConflictError(state.conflicts).to_dict()
        elif state.fatal is not None:
            report.error = state.fatal.to_dict()
        else:
            names = ", ".join(state.stop_in_flight)
            report.error = {
                "kind": "stopped",
                "entity": state.stop_in_flight[0],
                "message": f"Run stopped while critical package(s) {names} were in flight",
            }

        if not state.records:
            report.status = RunStatus.ABORTED
            logger.error("Run %s aborted before any write", report.run_id)
            return

        report.status = RunStatus.ROLLED_BACK
        backups = self._backups(report.run_id)
        for record in reversed(state.records):
            try:
                backups.restore(record)
            except BackupCorruptedError as e:
                logger.error("Could not restore %s: %s", record.target_path, e)
                report.restore_errors.append(e.to_dict())
        logger.warning(
            "Run %s rolled back %d write(s)", report.run_id, len(state.records)
        )

    def _finish(self, report: RunReport) -> RunReport:
        report.finished_at = datetime.now()
        self._history.append(report)
        logger.info("Run %s finished: %s", report.run_id, report.outcome)
        return report
