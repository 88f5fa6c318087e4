"""Tests for DependencyResolver and PackageRegistry."""

import pytest

from schemagen.config.models import Configuration
from schemagen.errors import CyclicDependencyError, UnknownPackageError
from schemagen.pipeline.models import GeneratedFile, PackageDescriptor
from schemagen.pipeline.registry import PackageRegistry
from schemagen.pipeline.resolver import DependencyResolver


@pytest.fixture
def registry() -> PackageRegistry:
    return PackageRegistry.from_settings(Configuration().packages)


@pytest.fixture
def resolver() -> DependencyResolver:
    return DependencyResolver()


# ============================================================
# Test: Resolution
# ============================================================


class TestResolve:
    """Plans contain the dependency closure in a deterministic order."""

    def test_views_pulls_in_dependencies(self, resolver, registry) -> None:
        plan = resolver.resolve(registry.descriptors(), {"views"})
        assert plan.names == ["model", "controller", "views"]
        assert plan.requested == ("views",)

    def test_duplicate_request_is_not_repeated(self, resolver, registry) -> None:
        plan = resolver.resolve(registry.descriptors(), ["views", "model", "views"])
        assert plan.names == ["model", "controller", "views"]

    def test_full_plan_order(self, resolver, registry) -> None:
        plan = resolver.resolve(registry.descriptors(), registry.names)
        assert plan.names == ["model", "migration", "controller", "views", "factory", "datatable"]

    def test_every_package_follows_its_dependencies(self, resolver, registry) -> None:
        plan = resolver.resolve(registry.descriptors(), registry.names)
        position = {name: i for i, name in enumerate(plan.names)}
        for pkg in plan.packages:
            assert all(position[dep] < position[pkg.name] for dep in pkg.depends_on)

    def test_deterministic_across_input_order(self, resolver, registry) -> None:
        descriptors = registry.descriptors()
        forward = resolver.resolve(descriptors, ["datatable", "factory"])
        backward = resolver.resolve(list(reversed(descriptors)), ["factory", "datatable"])
        assert forward == backward

    def test_priority_breaks_ties(self, resolver) -> None:
        descriptors = [
            PackageDescriptor(name="a", priority=5),
            PackageDescriptor(name="b", priority=1),
            PackageDescriptor(name="c", priority=5),
        ]
        assert resolver.resolve(descriptors, ["a", "b", "c"]).names == ["b", "a", "c"]

    def test_unknown_package(self, resolver, registry) -> None:
        with pytest.raises(UnknownPackageError) as exc_info:
            resolver.resolve(registry.descriptors(), ["api"])
        assert exc_info.value.entity == "api"

    def test_unknown_dependency_names_requirer(self, resolver) -> None:
        descriptors = [PackageDescriptor(name="x", depends_on=("ghost",))]
        with pytest.raises(UnknownPackageError) as exc_info:
            resolver.resolve(descriptors, ["x"])
        assert exc_info.value.entity == "ghost"
        assert exc_info.value.required_by == "x"

    def test_cycle(self, resolver) -> None:
        descriptors = [
            PackageDescriptor(name="a", depends_on=("b",)),
            PackageDescriptor(name="b", depends_on=("a",)),
            PackageDescriptor(name="c"),
        ]
        with pytest.raises(CyclicDependencyError) as exc_info:
            resolver.resolve(descriptors, ["a", "c"])
        assert exc_info.value.cycle == ["a", "b", "a"]
        assert exc_info.value.to_dict()["kind"] == "cyclic_dependency"

    def test_self_dependency_is_a_cycle(self, resolver) -> None:
        descriptors = [PackageDescriptor(name="a", depends_on=("a",))]
        with pytest.raises(CyclicDependencyError) as exc_info:
            resolver.resolve(descriptors, ["a"])
        assert exc_info.value.cycle == ["a", "a"]


# ============================================================
# Test: Graph views
# ============================================================


class TestGraphViews:
    def test_execution_levels(self, resolver, registry) -> None:
        plan = resolver.resolve(registry.descriptors(), registry.names)
        assert resolver.execution_levels(plan) == [
            ["model", "migration"],
            ["controller", "factory"],
            ["views"],
            ["datatable"],
        ]

    def test_critical_path(self, resolver, registry) -> None:
        plan = resolver.resolve(registry.descriptors(), registry.names)
        assert resolver.critical_path(plan) == ["model", "controller", "views", "datatable"]

    def test_empty_plan(self, resolver) -> None:
        plan = resolver.resolve([], [])
        assert plan.names == []
        assert resolver.execution_levels(plan) == []
        assert resolver.critical_path(plan) == []

    def test_dependents_of(self, resolver, registry) -> None:
        descriptors = registry.descriptors()
        assert resolver.dependents_of(descriptors, "model") == {
            "controller",
            "views",
            "factory",
            "datatable",
        }
        assert resolver.dependents_of(descriptors, "views") == {"datatable"}
        assert resolver.dependents_of(descriptors, "migration") == set()


# ============================================================
# Test: Registry
# ============================================================


class TestPackageRegistry:
    """Registry lookups and dynamic dependency edits."""

    def test_from_settings(self, registry) -> None:
        model = registry.get("model")
        assert model.is_critical is True
        assert model.timeout_seconds == 30
        assert "views" in registry
        assert "api" not in registry

    def test_unknown_package(self, registry) -> None:
        with pytest.raises(UnknownPackageError):
            registry.get("api")

    def test_generator_lookup(self, registry) -> None:
        class ModelGenerator:
            def generate(self, schema, relationships, options):
                return [GeneratedFile(path="m.php", content="")]

        def migration(schema, relationships, options):
            return []

        generator = ModelGenerator()
        registry.set_generator("model", generator)
        registry.set_generator("migration", migration)

        assert registry.generator_for("model") == generator.generate
        assert registry.generator_for("migration") is migration

    def test_missing_generator(self, registry) -> None:
        with pytest.raises(UnknownPackageError) as exc_info:
            registry.generator_for("views")
        assert exc_info.value.entity == "views"

    def test_set_generator_requires_registration(self, registry) -> None:
        with pytest.raises(UnknownPackageError):
            registry.set_generator("api", lambda *args: [])

    def test_add_and_remove_dependency(self, resolver, registry) -> None:
        registry.add_dependency("factory", "migration")
        assert registry.get("factory").depends_on == ("migration", "model")
        assert "migration" in resolver.resolve(registry.descriptors(), ["factory"]).names

        registry.remove_dependency("factory", "migration")
        assert resolver.resolve(registry.descriptors(), ["factory"]).names == ["model", "factory"]

    def test_add_unknown_dependency(self, registry) -> None:
        with pytest.raises(UnknownPackageError) as exc_info:
            registry.add_dependency("factory", "ghost")
        assert exc_info.value.required_by == "factory"

    def test_descriptor_sorts_dependencies(self) -> None:
        descriptor = PackageDescriptor(name="views", depends_on=["model", "controller", "model"])
        assert descriptor.depends_on == ("controller", "model")
