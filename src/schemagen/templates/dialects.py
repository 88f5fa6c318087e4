"""Directive dialects and the template compiler.

Compilation turns raw template text into a tree of nodes that does not
depend on any variable values, so it can be cached and reused:

- ``TextNode``: literal text, still holding ``{{ name }}`` placeholders
- ``IfNode``: conditional on a (possibly negated) variable, with else branch
- ``ForNode``: loop binding ``item`` to each element of ``iterable``

Supported dialects:

=========  ============================================================
simple     no directives, placeholders only
blade      ``@if($x)`` ``@if(!$x)`` ``@else`` ``@endif``
           ``@foreach($items as $item)`` ``@endforeach``
twig       ``{% if x %}`` ``{% if not x %}`` ``{% else %}`` ``{% endif %}``
           ``{% for item in items %}`` ``{% endfor %}``
=========  ============================================================
"""

import re
from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field

from schemagen.errors import InvalidOptionError, TemplateSyntaxError


# ============================================================================
# Node tree
# ============================================================================


class TextNode(BaseModel):
    kind: Literal["text"] = "text"
    text: str


class IfNode(BaseModel):
    kind: Literal["if"] = "if"
    var: str
    negate: bool = False
    body: list["Node"] = Field(default_factory=list)
    orelse: list["Node"] = Field(default_factory=list)


class ForNode(BaseModel):
    kind: Literal["for"] = "for"
    item: str
    iterable: str
    body: list["Node"] = Field(default_factory=list)


Node = Annotated[Union[TextNode, IfNode, ForNode], Field(discriminator="kind")]

IfNode.model_rebuild()
ForNode.model_rebuild()


class CompiledTemplate(BaseModel):
    """A compiled template, keyed by the hash of its dialect and raw text."""

    key: str
    dialect: str
    nodes: list[Node] = Field(default_factory=list)


# ============================================================================
# Dialects
# ============================================================================


_DIRECTIVES: dict[str, re.Pattern | None] = {
    "simple": None,
    "blade": re.compile(
        r"@if\s*\(\s*(?P<if_neg>!?)\s*\$?(?P<if_var>[\w.]+)\s*\)"
        r"|(?P<else>@else\b)"
        r"|(?P<endif>@endif\b)"
        r"|@foreach\s*\(\s*\$?(?P<for_iter>[\w.]+)\s+as\s+\$?(?P<for_item>\w+)\s*\)"
        r"|(?P<endfor>@endforeach\b)"
    ),
    "twig": re.compile(
        r"\{%-?\s*if\s+(?P<if_neg>not\s+)?(?P<if_var>[\w.]+)\s*-?%\}"
        r"|(?P<else>\{%-?\s*else\s*-?%\})"
        r"|(?P<endif>\{%-?\s*endif\s*-?%\})"
        r"|\{%-?\s*for\s+(?P<for_item>\w+)\s+in\s+(?P<for_iter>[\w.]+)\s*-?%\}"
        r"|(?P<endfor>\{%-?\s*endfor\s*-?%\})"
    ),
}

DIALECTS = tuple(_DIRECTIVES)


def check_dialect(dialect: str) -> re.Pattern | None:
    if dialect not in _DIRECTIVES:
        raise InvalidOptionError(
            f"Unknown template dialect '{dialect}' (expected one of: {', '.join(DIALECTS)})",
            entity=dialect,
        )
    return _DIRECTIVES[dialect]


def compile_nodes(raw: str, dialect: str = "simple") -> list[Node]:
    """Expand the dialect's directives in ``raw`` into a node tree.

    Raises:
        InvalidOptionError: Unknown dialect
        TemplateSyntaxError: Unbalanced or misplaced directives
    """
    pattern = check_dialect(dialect)
    if pattern is None:
        return [TextNode(text=raw)] if raw else []

    root: list[Node] = []
    # Each frame: (node or None for root, list currently receiving children)
    stack: list[tuple[IfNode | ForNode | None, list[Node]]] = [(None, root)]
    position = 0

    def emit(node: Node) -> None:
        stack[-1][1].append(node)

    for match in pattern.finditer(raw):
        if match.start() > position:
            emit(TextNode(text=raw[position : match.start()]))
        position = match.end()
        line = raw.count("\n", 0, match.start()) + 1
        current = stack[-1][0]

        if match.group("if_var"):
            node = IfNode(var=match.group("if_var"), negate=bool(match.group("if_neg")))
            emit(node)
            stack.append((node, node.body))
        elif match.group("for_iter"):
            node = ForNode(item=match.group("for_item"), iterable=match.group("for_iter"))
            emit(node)
            stack.append((node, node.body))
        elif match.group("else"):
            if not isinstance(current, IfNode) or stack[-1][1] is current.orelse:
                raise TemplateSyntaxError(f"Unexpected else on line {line}")
            stack[-1] = (current, current.orelse)
        elif match.group("endif"):
            if not isinstance(current, IfNode):
                raise TemplateSyntaxError(f"Unexpected endif on line {line}")
            stack.pop()
        elif match.group("endfor"):
            if not isinstance(current, ForNode):
                raise TemplateSyntaxError(f"Unexpected endfor on line {line}")
            stack.pop()

    if position < len(raw):
        emit(TextNode(text=raw[position:]))

    if len(stack) > 1:
        unclosed = stack[-1][0]
        kind = "if" if isinstance(unclosed, IfNode) else "for"
        raise TemplateSyntaxError(f"Unclosed {kind} block")

    return root
