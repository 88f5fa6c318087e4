"""Template stores: resolve a template name to raw template text."""

from collections.abc import Mapping
from pathlib import Path
from typing import Protocol

from schemagen.errors import TemplateNotFoundError


class TemplateStore(Protocol):
    """Anything that can load raw template text by name."""

    def load(self, name: str) -> str:
        """Return the raw text of template ``name``.

        Raises:
            TemplateNotFoundError: If no template has that name.
        """
        ...


class FileTemplateStore:
    """Loads ``{name}{extension}`` from the first directory that has it.

    Example:
        store = FileTemplateStore(["stubs/custom", "stubs/default"])
        raw = store.load("model")  # stubs/custom/model.stub if present
    """

    def __init__(self, paths: list[str | Path] | tuple[str | Path, ...], extension: str = ".stub"):
        self._paths = [Path(p) for p in paths]
        self._extension = extension

    def _candidates(self, name: str) -> list[Path]:
        filename = name if Path(name).suffix else f"{name}{self._extension}"
        return [path / filename for path in self._paths]

    def load(self, name: str) -> str:
        for candidate in self._candidates(name):
            if candidate.is_file():
                return candidate.read_text(encoding="utf-8")
        raise TemplateNotFoundError(name)


class DictTemplateStore:
    """In-memory templates, mainly for tests and embedded defaults."""

    def __init__(self, templates: Mapping[str, str]):
        self._templates = dict(templates)

    def load(self, name: str) -> str:
        try:
            return self._templates[name]
        except KeyError:
            raise TemplateNotFoundError(name) from None
