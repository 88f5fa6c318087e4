"""Template stores, directive dialects, rendering, and the template generator.

Usage:
    from schemagen.templates import FileTemplateStore, TemplateRenderer
    from schemagen.templates import TemplatePackageGenerator
"""

from schemagen.templates.dialects import (
    DIALECTS,
    CompiledTemplate,
    ForNode,
    IfNode,
    TextNode,
    compile_nodes,
)
from schemagen.templates.generator import DEFAULT_OUTPUTS, TemplatePackageGenerator
from schemagen.templates.renderer import TemplateRenderer
from schemagen.templates.store import DictTemplateStore, FileTemplateStore, TemplateStore

__all__ = [
    # Stores
    "TemplateStore",
    "FileTemplateStore",
    "DictTemplateStore",
    # Compilation
    "DIALECTS",
    "CompiledTemplate",
    "TextNode",
    "IfNode",
    "ForNode",
    "compile_nodes",
    # Rendering
    "TemplateRenderer",
    "TemplatePackageGenerator",
    "DEFAULT_OUTPUTS",
]
