"""Package registry: descriptors plus one generator per package.

A generator is either an object with a ``generate`` method or a plain
callable, sync or async, with the signature::

    generate(schema, relationships, options) -> list[GeneratedFile]
"""

import logging
from collections.abc import Awaitable, Callable, Mapping
from typing import Any, Protocol, Union

from schemagen.config.models import PackageSettings
from schemagen.errors import UnknownPackageError
from schemagen.inference.models import RelationshipDescriptor
from schemagen.pipeline.models import GeneratedFile, PackageDescriptor
from schemagen.schema.models import TableSchema

logger = logging.getLogger(__name__)

GenerateFn = Callable[
    [TableSchema, list[RelationshipDescriptor], Mapping[str, Any]],
    Union[list[GeneratedFile], Awaitable[list[GeneratedFile]]],
]


class PackageGenerator(Protocol):
    """Object form of a package generator."""

    def generate(
        self,
        schema: TableSchema,
        relationships: list[RelationshipDescriptor],
        options: Mapping[str, Any],
    ) -> list[GeneratedFile] | Awaitable[list[GeneratedFile]]:
        ...


class PackageRegistry:
    """Registered packages and their generators.

    Usage:
        registry = PackageRegistry.from_settings(config.packages)
        registry.set_generator("model", model_generator)
        registry.add_dependency("factory", "migration")
    """

    def __init__(self) -> None:
        self._descriptors: dict[str, PackageDescriptor] = {}
        self._generators: dict[str, PackageGenerator | GenerateFn] = {}

    @classmethod
    def from_settings(cls, packages: Mapping[str, PackageSettings]) -> "PackageRegistry":
        registry = cls()
        for name, settings in packages.items():
            registry.register(
                PackageDescriptor(
                    name=name,
                    depends_on=settings.depends_on,
                    priority=settings.priority,
                    is_critical=settings.critical,
                    timeout_seconds=settings.timeout,
                )
            )
        return registry

    def register(
        self,
        descriptor: PackageDescriptor,
        generator: PackageGenerator | GenerateFn | None = None,
    ) -> None:
        self._descriptors[descriptor.name] = descriptor
        if generator is not None:
            self._generators[descriptor.name] = generator

    def set_generator(self, name: str, generator: PackageGenerator | GenerateFn) -> None:
        self.get(name)
        self._generators[name] = generator

    def get(self, name: str) -> PackageDescriptor:
        try:
            return self._descriptors[name]
        except KeyError:
            raise UnknownPackageError(name) from None

    def generator_for(self, name: str) -> GenerateFn:
        """The generate callable of ``name``.

        Raises:
            UnknownPackageError: If the package or its generator is not registered
        """
        self.get(name)
        generator = self._generators.get(name)
        if generator is None:
            raise UnknownPackageError(name, required_by="generator lookup")
        return getattr(generator, "generate", generator)

    def __contains__(self, name: object) -> bool:
        return name in self._descriptors

    @property
    def names(self) -> list[str]:
        return sorted(self._descriptors)

    def descriptors(self) -> list[PackageDescriptor]:
        return [self._descriptors[name] for name in self.names]

    def add_dependency(self, package: str, dependency: str) -> None:
        """Make ``package`` depend on ``dependency`` (both must be registered)."""
        descriptor = self.get(package)
        if dependency not in self._descriptors:
            raise UnknownPackageError(dependency, required_by=package)
        self._descriptors[package] = descriptor.model_copy(
            update={"depends_on": tuple(sorted({*descriptor.depends_on, dependency}))}
        )
        logger.debug("Added dependency %s -> %s", package, dependency)

    def remove_dependency(self, package: str, dependency: str) -> None:
        descriptor = self.get(package)
        self._descriptors[package] = descriptor.model_copy(
            update={"depends_on": tuple(d for d in descriptor.depends_on if d != dependency)}
        )
        logger.debug("Removed dependency %s -> %s", package, dependency)
