"""Content hashing, comparison and merging of stored schema documents.

Comparison works on decoded documents. The "components" of a document are
the entries of ``components.schemas``; a document without that section (a bare
schema map) uses its top-level keys instead.
"""

from __future__ import annotations

import copy
import hashlib
from typing import Any, Optional

from oasmodel.models import CompareStrategy, PropertyConflict, SchemaVersion, VersionDiff
from oasmodel.parser.loader import parse_content


def content_hash(raw_content: str) -> str:
    """Return the SHA-256 hex digest of *raw_content*."""
    return hashlib.sha256(raw_content.encode("utf-8")).hexdigest()


def decode_content(raw_content: str, source: str = "<version>") -> dict[str, Any]:
    """Decode JSON or YAML version content into a mapping.

    Raises:
        FormatError: If the content is malformed or not a mapping.
    """
    return parse_content(raw_content, source).data


def component_map(data: dict[str, Any]) -> dict[str, Any]:
    components = data.get("components")
    if isinstance(components, dict) and isinstance(components.get("schemas"), dict):
        return components["schemas"]
    return data


def diff_components(old: dict[str, Any], new: dict[str, Any]) -> tuple[list[str], list[str], list[str]]:
    """Return ``(added, removed, changed)`` component names between two documents."""
    old_components = component_map(old)
    new_components = component_map(new)
    added = [name for name in new_components if name not in old_components]
    removed = [name for name in old_components if name not in new_components]
    changed = [
        name for name in old_components
        if name in new_components and old_components[name] != new_components[name]
    ]
    return added, removed, changed


def compare(first: SchemaVersion, second: SchemaVersion, strategy: CompareStrategy | str) -> VersionDiff:
    """Compare two versions of the same schema.

    * ``hash`` -- ``identical`` plus both digests, no detail.
    * ``content`` -- decoded equality plus added/removed/changed components.
    * ``timestamp`` -- ``newer_version`` by creation time (then write order).
    """
    strategy = CompareStrategy(strategy)
    result = VersionDiff(
        strategy=strategy,
        identical=first.content_hash == second.content_hash,
        version1=first.version_id,
        version2=second.version_id,
        hash1=first.content_hash,
        hash2=second.content_hash,
    )

    if strategy == CompareStrategy.CONTENT:
        old = decode_content(first.raw_content, first.version_id)
        new = decode_content(second.raw_content, second.version_id)
        added, removed, changed = diff_components(old, new)
        result.identical = old == new
        result.added = added
        result.removed = removed
        result.changed = changed
    elif strategy == CompareStrategy.TIMESTAMP:
        newer = max((first, second), key=lambda v: (v.created_at, v.sequence))
        result.newer_version = newer.version_id

    return result


def _declared_type(prop: Any) -> Optional[str]:
    if not isinstance(prop, dict):
        return None
    if "$ref" in prop:
        return f"$ref:{prop['$ref']}"
    declared = prop.get("type")
    if isinstance(declared, list):
        return "|".join(str(t) for t in declared)
    return str(declared) if declared is not None else None


def _properties(component: Any) -> dict[str, Any]:
    if isinstance(component, dict) and isinstance(component.get("properties"), dict):
        return component["properties"]
    return {}


def property_conflicts(old: dict[str, Any], new: dict[str, Any]) -> list[PropertyConflict]:
    """List properties declared with different types in both documents."""
    conflicts: list[PropertyConflict] = []
    new_components = component_map(new)
    for component, old_schema in component_map(old).items():
        if component not in new_components:
            continue
        new_props = _properties(new_components[component])
        for prop_name, old_prop in _properties(old_schema).items():
            if prop_name not in new_props:
                continue
            old_type = _declared_type(old_prop)
            new_type = _declared_type(new_props[prop_name])
            if old_type != new_type:
                conflicts.append(
                    PropertyConflict(
                        component=component,
                        property_name=prop_name,
                        from_type=old_type,
                        to_type=new_type,
                    )
                )
    return conflicts


def merge_documents(
    old: dict[str, Any],
    new: dict[str, Any],
    resolutions: Optional[dict[str, str]] = None,
) -> dict[str, Any]:
    """Union *old* into *new* and return the merged document.

    The newer document is the base. Components and properties present only in
    *old* are carried over, ``required`` lists are unioned, and top-level keys
    missing from *new* are kept. A conflicting property keeps the *new*
    definition unless ``resolutions["Component.property"] == "from"``.
    """
    resolutions = resolutions or {}
    merged = copy.deepcopy(new)

    for key, value in old.items():
        if key not in merged:
            merged[key] = copy.deepcopy(value)

    old_components = component_map(old)
    if old_components is not old and component_map(merged) is merged:
        components = merged.setdefault("components", {})
        if isinstance(components, dict):
            components["schemas"] = {}
    merged_components = component_map(merged)
    if (old_components is old) != (merged_components is merged):
        # One side is a bare schema map and the other a full document.
        return merged

    for component, old_schema in old_components.items():
        if component not in merged_components:
            merged_components[component] = copy.deepcopy(old_schema)
            continue
        target = merged_components[component]
        if not isinstance(target, dict) or not isinstance(old_schema, dict):
            continue

        old_props = _properties(old_schema)
        if old_props:
            target_props = target.setdefault("properties", {})
            for prop_name, old_prop in old_props.items():
                if prop_name not in target_props:
                    target_props[prop_name] = copy.deepcopy(old_prop)
                elif resolutions.get(f"{component}.{prop_name}") == "from":
                    target_props[prop_name] = copy.deepcopy(old_prop)

        old_required = old_schema.get("required")
        if isinstance(old_required, list):
            required = list(target.get("required") or [])
            required.extend(name for name in old_required if name not in required)
            target["required"] = required

    return merged
