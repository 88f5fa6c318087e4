"""Naming helpers for table, model and relationship method names.

Naive English inflection sufficient for code generation.  Only the last
``snake_case`` segment of a name is inflected, so ``blog_post`` becomes
``blog_posts`` and ``order_items`` becomes ``order_item``.
"""

import functools

_IRREGULAR_PLURALS = {
    "person": "people",
    "child": "children",
    "man": "men",
    "woman": "women",
    "mouse": "mice",
    "datum": "data",
    "index": "indices",
    "matrix": "matrices",
    "vertex": "vertices",
    "axis": "axes",
    "crisis": "crises",
    "analysis": "analyses",
    "status": "statuses",
    "address": "addresses",
}
_IRREGULAR_SINGULARS = {plural: singular for singular, plural in _IRREGULAR_PLURALS.items()}


def _split_last(name: str) -> tuple[str, str]:
    head, sep, last = name.rpartition("_")
    return head + sep, last


@functools.lru_cache(maxsize=None)
def pluralize(name: str) -> str:
    """Pluralize the last segment of a snake_case name.

    Examples:
        >>> pluralize("category")
        'categories'
        >>> pluralize("blog_post")
        'blog_posts'
    """
    if not name:
        return ""
    head, word = _split_last(name)
    lower = word.lower()

    if lower in _IRREGULAR_PLURALS:
        return head + _IRREGULAR_PLURALS[lower]
    if lower in _IRREGULAR_SINGULARS:
        return name
    if lower.endswith("s") and not lower.endswith("ss"):
        return name
    if lower.endswith(("sh", "ch", "x", "z", "ss")):
        return name + "es"
    if lower.endswith("y") and len(word) > 1 and lower[-2] not in "aeiou":
        return head + word[:-1] + "ies"
    return name + "s"


@functools.lru_cache(maxsize=None)
def singularize(name: str) -> str:
    """Singularize the last segment of a snake_case name.

    Examples:
        >>> singularize("categories")
        'category'
        >>> singularize("order_items")
        'order_item'
    """
    if not name:
        return ""
    head, word = _split_last(name)
    lower = word.lower()

    if lower in _IRREGULAR_SINGULARS:
        return head + _IRREGULAR_SINGULARS[lower]
    if lower in _IRREGULAR_PLURALS:
        return name
    if lower.endswith("ies") and len(word) > 3:
        return head + word[:-3] + "y"
    if lower.endswith(("sses", "xes", "zes", "ches", "shes")):
        return name[:-2]
    if lower.endswith("s") and not lower.endswith("ss"):
        return name[:-1]
    return name


@functools.lru_cache(maxsize=None)
def studly(name: str) -> str:
    """``order_item`` -> ``OrderItem``."""
    return "".join(part.capitalize() for part in name.replace("-", "_").split("_") if part)


def camel(name: str) -> str:
    """``order_item`` -> ``orderItem``."""
    value = studly(name)
    return value[:1].lower() + value[1:]


def model_name(table: str) -> str:
    """Class name for the model of ``table`` (``blog_posts`` -> ``BlogPost``)."""
    return studly(singularize(table))
