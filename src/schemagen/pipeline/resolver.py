"""Dependency resolution for generation packages.

Kahn's algorithm over the dependency closure of the requested packages.
Among packages whose dependencies are all placed, the lowest
``(priority, name)`` goes next, so the same input always yields the same
plan.
"""

import heapq
import logging
from collections.abc import Iterable, Mapping

from schemagen.errors import CyclicDependencyError, UnknownPackageError
from schemagen.pipeline.models import GenerationPlan, PackageDescriptor

logger = logging.getLogger(__name__)


def _index(
    descriptors: Iterable[PackageDescriptor] | Mapping[str, PackageDescriptor],
) -> dict[str, PackageDescriptor]:
    if isinstance(descriptors, Mapping):
        return dict(descriptors)
    return {d.name: d for d in descriptors}


class DependencyResolver:
    """Computes execution order and related graph views.

    Usage:
        resolver = DependencyResolver()
        plan = resolver.resolve(registry.descriptors(), {"views"})
        plan.names  # ['model', 'controller', 'views']
    """

    def closure(
        self,
        descriptors: Iterable[PackageDescriptor] | Mapping[str, PackageDescriptor],
        requested: Iterable[str],
    ) -> dict[str, PackageDescriptor]:
        """Requested packages plus everything they transitively depend on.

        Raises:
            UnknownPackageError: If a requested package or a dependency is
                not registered
        """
        index = _index(descriptors)
        selected: dict[str, PackageDescriptor] = {}
        pending = [(name, None) for name in sorted(set(requested))]

        while pending:
            name, required_by = pending.pop()
            if name in selected:
                continue
            if name not in index:
                raise UnknownPackageError(name, required_by=required_by)
            selected[name] = index[name]
            pending.extend((dep, name) for dep in index[name].depends_on)

        return selected

    def resolve(
        self,
        descriptors: Iterable[PackageDescriptor] | Mapping[str, PackageDescriptor],
        requested: Iterable[str],
    ) -> GenerationPlan:
        """Order the requested packages and their dependencies.

        Args:
            descriptors: Every registered package
            requested: Package names asked for by the caller

        Returns:
            GenerationPlan with each package after all of its dependencies

        Raises:
            UnknownPackageError: If a package is not registered
            CyclicDependencyError: If the closure contains a cycle
        """
        requested = sorted(set(requested))
        selected = self.closure(descriptors, requested)

        indegree = {name: len(d.depends_on) for name, d in selected.items()}
        dependents: dict[str, list[str]] = {name: [] for name in selected}
        for name, descriptor in selected.items():
            for dep in descriptor.depends_on:
                dependents[dep].append(name)

        ready = [(selected[n].priority, n) for n, count in indegree.items() if count == 0]
        heapq.heapify(ready)

        order: list[PackageDescriptor] = []
        while ready:
            _, name = heapq.heappop(ready)
            order.append(selected[name])
            for dependent in dependents[name]:
                indegree[dependent] -= 1
                if indegree[dependent] == 0:
                    heapq.heappush(ready, (selected[dependent].priority, dependent))

        if len(order) != len(selected):
            remaining = {n: selected[n] for n, count in indegree.items() if count > 0}
            raise CyclicDependencyError(self._find_cycle(remaining))

        plan = GenerationPlan(packages=tuple(order), requested=tuple(requested))
        logger.info("Resolved plan: %s", " -> ".join(plan.names))
        return plan

    @staticmethod
    def _find_cycle(remaining: dict[str, PackageDescriptor]) -> list[str]:
        """Walk dependency edges inside ``remaining`` until a name repeats.

        Every node left after Kahn's algorithm has a dependency that is also
        left, so the walk always closes a cycle.
        """
        start = min(remaining)
        path: list[str] = []
        seen: dict[str, int] = {}
        current = start
        while current not in seen:
            seen[current] = len(path)
            path.append(current)
            current = min(dep for dep in remaining[current].depends_on if dep in remaining)
        return path[seen[current]:] + [current]

    # ------------------------------------------------------------------
    # Graph views
    # ------------------------------------------------------------------

    def execution_levels(self, plan: GenerationPlan) -> list[list[str]]:
        """Group the plan into levels whose packages may run concurrently.

        A package's level is one more than the deepest of its dependencies.
        """
        level: dict[str, int] = {}
        for pkg in plan.packages:
            level[pkg.name] = 1 + max((level[d] for d in pkg.depends_on), default=-1)

        levels: list[list[str]] = [[] for _ in range(max(level.values(), default=-1) + 1)]
        for pkg in plan.packages:
            levels[level[pkg.name]].append(pkg.name)
        return levels

    def critical_path(self, plan: GenerationPlan) -> list[str]:
        """Longest dependency chain in the plan (ties go to the earliest candidate)."""
        best: dict[str, list[str]] = {}
        for pkg in plan.packages:
            longest: list[str] = []
            for dep in pkg.depends_on:
                if len(best[dep]) > len(longest):
                    longest = best[dep]
            best[pkg.name] = [*longest, pkg.name]
        return max(best.values(), key=len, default=[])

    def dependents_of(
        self,
        descriptors: Iterable[PackageDescriptor] | Mapping[str, PackageDescriptor],
        package: str,
    ) -> set[str]:
        """Every package that transitively depends on ``package``."""
        index = _index(descriptors)
        direct: dict[str, set[str]] = {name: set() for name in index}
        for name, descriptor in index.items():
            for dep in descriptor.depends_on:
                direct.setdefault(dep, set()).add(name)

        found: set[str] = set()
        pending = [package]
        while pending:
            for dependent in direct.get(pending.pop(), ()):
                if dependent not in found:
                    found.add(dependent)
                    pending.append(dependent)
        return found
