"""Naming and path helpers used by model inference.

* :func:`pascal_case` / :func:`singularize` / :func:`model_name_for` turn
  component names and path segments into resource model names
  (``"pet_categories"`` -> ``"PetCategory"``).
* :func:`split_segments`, :func:`is_path_param` and :func:`resource_segment`
  take API paths apart the same way for grouping and ``base_endpoint``
  selection.
"""

from __future__ import annotations

import re
from typing import Optional

_WORD_SPLIT_RE = re.compile(r"[^A-Za-z0-9]+")
_CAMEL_BOUNDARY_RE = re.compile(r"([a-z0-9])([A-Z])")
_ACRONYM_BOUNDARY_RE = re.compile(r"([A-Z]+)([A-Z][a-z])")

_IRREGULAR_PLURALS = {
    "people": "person",
    "children": "child",
    "men": "man",
    "women": "woman",
    "mice": "mouse",
    "geese": "goose",
    "teeth": "tooth",
    "feet": "foot",
}
_UNCOUNTABLE = frozenset({"data", "metadata", "news", "series", "species", "information", "equipment"})


def split_words(name: str) -> list[str]:
    """Split *name* on separators and CamelCase boundaries.

    ``"petCategories"`` -> ``["pet", "Categories"]``
    ``"pet-store_v2"``  -> ``["pet", "store", "v2"]``
    """
    result = _ACRONYM_BOUNDARY_RE.sub(r"\1 \2", name)
    result = _CAMEL_BOUNDARY_RE.sub(r"\1 \2", result)
    return [word for word in _WORD_SPLIT_RE.split(result) if word]


def pascal_case(name: str) -> str:
    """Join the words of *name* with their first letters upper-cased.

    ``"pet_store"`` -> ``"PetStore"``, ``"HTTPStatus"`` -> ``"HTTPStatus"``
    """
    return "".join(word[0].upper() + word[1:] for word in split_words(name))


def singularize(word: str) -> str:
    """Return an English singular form of *word*, preserving its leading case.

    Covers the regular suffix rules (``categories`` -> ``category``,
    ``boxes`` -> ``box``, ``pets`` -> ``pet``) and a few irregular plurals.
    Words ending in ``ss``, ``us`` or ``is`` are left alone.
    """
    lower = word.lower()
    if not lower or lower in _UNCOUNTABLE:
        return word
    if lower in _IRREGULAR_PLURALS:
        singular = _IRREGULAR_PLURALS[lower]
        return singular.capitalize() if word[0].isupper() else singular
    if lower.endswith("ies") and len(lower) > 3:
        return word[:-3] + ("Y" if word[-3:].isupper() else "y")
    if lower.endswith(("sses", "xes", "ches", "shes", "zzes")):
        return word[:-2]
    if lower.endswith("s") and not lower.endswith(("ss", "us", "is")):
        return word[:-1]
    return word


def model_name_for(name: str) -> str:
    """Return the PascalCase singular model name for a component or segment.

    Only the last word is singularized: ``"user_addresses"`` ->
    ``"UserAddress"``. An empty name yields ``"Resource"``.
    """
    words = split_words(name)
    if not words:
        return "Resource"
    words[-1] = singularize(words[-1])
    return pascal_case(" ".join(words))


def is_path_param(segment: str) -> bool:
    """Return ``True`` if *segment* is a path parameter (e.g., ``{id}``)."""
    return segment.startswith("{") and segment.endswith("}")


def split_segments(path: str) -> list[str]:
    """Split a path into non-empty segments.

    ``"/api/v1/users"`` -> ``["api", "v1", "users"]``
    ``"/"``             -> ``[]``
    """
    return [s for s in path.split("/") if s]


def has_path_param(path: str) -> bool:
    return any(is_path_param(segment) for segment in split_segments(path))


def resource_segment(path: str) -> Optional[str]:
    """Return the first non-parameterized segment of *path*, if any."""
    for segment in split_segments(path):
        if not is_path_param(segment):
            return segment
    return None
