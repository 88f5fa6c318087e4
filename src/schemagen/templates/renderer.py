"""Two-phase template rendering with a content-addressed compile cache.

Phase 1 (compile) expands dialect directives into a node tree; phase 2
(render) walks the tree and substitutes ``{{ name }}`` placeholders.
Placeholders whose variable is absent are left untouched.

Compiled templates are cached under ``sha256(dialect + raw text)``.  A
template edited on disk therefore gets a new key and is recompiled; stale
entries are never served.  With a cache directory, entries are also
persisted as ``{key}.json``.

Usage:
    renderer = TemplateRenderer(FileTemplateStore(["stubs"]), dialect="blade")
    text = renderer.render("model", {"model": "Post", "fillable": ["title"]})
"""

import hashlib
import logging
import re
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from schemagen.backup.writer import atomic_write_bytes
from schemagen.templates.dialects import (
    CompiledTemplate,
    ForNode,
    IfNode,
    Node,
    TextNode,
    check_dialect,
    compile_nodes,
)
from schemagen.templates.store import TemplateStore

logger = logging.getLogger(__name__)

_PLACEHOLDER = re.compile(r"\{\{\s*\$?([\w.]+)\s*\}\}")
_MISSING = object()


def lookup(variables: Mapping[str, Any], dotted: str) -> Any:
    """Resolve ``a.b.c`` through mappings and attributes; ``_MISSING`` if absent."""
    value: Any = variables
    for part in dotted.split("."):
        if isinstance(value, Mapping):
            value = value.get(part, _MISSING)
        else:
            value = getattr(value, part, _MISSING)
        if value is _MISSING:
            return _MISSING
    return value


def _format(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (list, tuple)):
        return ", ".join(_format(item) for item in value)
    return str(value)


class TemplateRenderer:
    """Compiles and renders named templates.

    Args:
        store: Resolves template names to raw text
        dialect: Directive dialect (``simple``, ``blade`` or ``twig``)
        cache_enabled: Keep compiled templates in memory
        cache_dir: Also persist compiled templates here
    """

    def __init__(
        self,
        store: TemplateStore,
        dialect: str = "simple",
        cache_enabled: bool = True,
        cache_dir: str | Path | None = None,
    ):
        check_dialect(dialect)
        self._store = store
        self._dialect = dialect
        self._cache_enabled = cache_enabled
        self._cache_dir = Path(cache_dir) if cache_dir else None
        self._cache: dict[str, CompiledTemplate] = {}
        self.hits = 0
        self.misses = 0

    @property
    def dialect(self) -> str:
        return self._dialect

    def cache_key(self, raw: str) -> str:
        return hashlib.sha256(f"{self._dialect}\0{raw}".encode("utf-8")).hexdigest()

    # ------------------------------------------------------------------
    # Compile
    # ------------------------------------------------------------------

    def compile(self, raw: str) -> CompiledTemplate:
        """Compile ``raw``, serving from the memory or disk cache when possible."""
        key = self.cache_key(raw)

        if self._cache_enabled:
            compiled = self._cache.get(key) or self._load_persisted(key)
            if compiled is not None:
                self.hits += 1
                self._cache[key] = compiled
                return compiled

        self.misses += 1
        compiled = CompiledTemplate(
            key=key, dialect=self._dialect, nodes=compile_nodes(raw, self._dialect)
        )
        if self._cache_enabled:
            self._cache[key] = compiled
            self._persist(compiled)
        return compiled

    def _cache_path(self, key: str) -> Path | None:
        return self._cache_dir / f"{key}.json" if self._cache_dir else None

    def _load_persisted(self, key: str) -> CompiledTemplate | None:
        path = self._cache_path(key)
        if path is None or not path.is_file():
            return None
        try:
            compiled = CompiledTemplate.model_validate_json(path.read_text(encoding="utf-8"))
        except (OSError, ValidationError) as e:
            logger.debug("Ignoring unreadable template cache entry %s: %s", path, e)
            return None
        if compiled.key != key or compiled.dialect != self._dialect:
            logger.debug("Ignoring mismatched template cache entry %s", path)
            return None
        return compiled

    def _persist(self, compiled: CompiledTemplate) -> None:
        path = self._cache_path(compiled.key)
        if path is None:
            return
        try:
            atomic_write_bytes(path, compiled.model_dump_json().encode("utf-8"))
        except OSError as e:
            logger.warning("Could not persist template cache entry %s: %s", path, e)

    def clear_cache(self) -> None:
        """Drop in-memory entries (persisted entries stay valid by key)."""
        self._cache.clear()

    # ------------------------------------------------------------------
    # Render
    # ------------------------------------------------------------------

    def render(self, template_name: str, variables: Mapping[str, Any]) -> str:
        """Render the named template.

        Raises:
            TemplateNotFoundError: If the store has no such template
            TemplateSyntaxError: If the template's directives are malformed
        """
        return self.render_string(self._store.load(template_name), variables)

    def render_string(self, raw: str, variables: Mapping[str, Any]) -> str:
        compiled = self.compile(raw)
        parts: list[str] = []
        self._render_nodes(compiled.nodes, dict(variables), parts)
        return "".join(parts)

    def _render_nodes(
        self, nodes: Iterable[Node], scope: dict[str, Any], out: list[str]
    ) -> None:
        for node in nodes:
            if isinstance(node, TextNode):
                out.append(self.interpolate(node.text, scope))
            elif isinstance(node, IfNode):
                value = lookup(scope, node.var)
                truthy = value is not _MISSING and bool(value)
                if node.negate:
                    truthy = not truthy
                self._render_nodes(node.body if truthy else node.orelse, scope, out)
            elif isinstance(node, ForNode):
                items = lookup(scope, node.iterable)
                if items is _MISSING or items is None:
                    continue
                items = list(items)
                for index, item in enumerate(items):
                    inner = dict(scope)
                    inner[node.item] = item
                    inner["loop"] = {
                        "index": index,
                        "first": index == 0,
                        "last": index == len(items) - 1,
                    }
                    self._render_nodes(node.body, inner, out)

    @staticmethod
    def interpolate(text: str, variables: Mapping[str, Any]) -> str:
        """Substitute placeholders; unknown ones pass through unchanged."""

        def _replace(match: re.Match) -> str:
            value = lookup(variables, match.group(1))
            if value is _MISSING:
                return match.group(0)
            return _format(value)

        return _PLACEHOLDER.sub(_replace, text)
