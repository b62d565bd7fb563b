"""Tests for oasmodel.parser.resolver."""

from __future__ import annotations

from typing import Any

import pytest

from oasmodel.exceptions import UnresolvedReferenceError
from oasmodel.models import SchemaNode, SchemaRef
from oasmodel.parser.resolver import ReferenceResolver, resolve_document


def _doc(schemas: dict[str, Any], paths: dict[str, Any] | None = None, **components: Any) -> dict[str, Any]:
    return {
        "openapi": "3.0.3",
        "info": {"title": "T", "version": "1"},
        "paths": paths or {},
        "components": {"schemas": schemas, **components},
    }


# ---------------------------------------------------------------------------
# Component references
# ---------------------------------------------------------------------------


class TestComponentRefs:
    def test_property_ref_stays_a_marker(self, petstore_resolver: ReferenceResolver) -> None:
        pet = petstore_resolver.schema_node("Pet")
        assert pet.properties["category"] == SchemaRef(name="Category")

    def test_array_items_ref_stays_a_marker(self, petstore_resolver: ReferenceResolver) -> None:
        pet = petstore_resolver.schema_node("Pet")
        tags = pet.properties["tags"]
        assert isinstance(tags, SchemaNode)
        assert tags.type == "array"
        assert tags.items == SchemaRef(name="Tag")

    def test_self_reference_terminates(self, petstore_resolver: ReferenceResolver) -> None:
        category = petstore_resolver.schema_node("Category")
        assert category.properties["parent"] == SchemaRef(name="Category")
        children = category.properties["children"]
        assert isinstance(children, SchemaNode)
        assert children.items == SchemaRef(name="Category")

    def test_mutual_references(self) -> None:
        data = _doc({
            "Author": {"type": "object", "properties": {"books": {"type": "array", "items": {"$ref": "#/components/schemas/Book"}}}},
            "Book": {"type": "object", "properties": {"author": {"$ref": "#/components/schemas/Author"}}},
        })
        resolver = resolve_document(data)
        assert resolver.schema_node("Book").properties["author"] == SchemaRef(name="Author")

    def test_node_is_memoized(self, petstore_resolver: ReferenceResolver) -> None:
        assert petstore_resolver.node("Pet") is petstore_resolver.node("Pet")

    def test_component_names_keep_declaration_order(self, petstore_resolver: ReferenceResolver) -> None:
        assert petstore_resolver.component_names == ["Pet", "Category", "Tag", "Owner", "Order", "Error"]

    def test_does_not_mutate_document(self, petstore_raw: dict[str, Any]) -> None:
        before = repr(petstore_raw)
        resolve_document(petstore_raw)
        assert repr(petstore_raw) == before


# ---------------------------------------------------------------------------
# Aliases and composition
# ---------------------------------------------------------------------------


class TestAliasesAndComposition:
    def test_alias_is_dereferenced_one_level(self) -> None:
        data = _doc({
            "Pet": {"type": "object", "properties": {"name": {"type": "string"}}},
            "Animal": {"$ref": "#/components/schemas/Pet"},
        })
        resolver = resolve_document(data)
        animal = resolver.schema_node("Animal")
        assert animal.type == "object"
        assert list(animal.properties) == ["name"]

    def test_alias_cycle_becomes_empty_node(self) -> None:
        data = _doc({
            "A": {"$ref": "#/components/schemas/B"},
            "B": {"$ref": "#/components/schemas/A"},
        })
        resolver = resolve_document(data)
        assert resolver.schema_node("A") == SchemaNode()

    def test_all_of_unions_properties_and_required(self) -> None:
        data = _doc({
            "Base": {"type": "object", "required": ["id"], "properties": {"id": {"type": "integer"}}},
            "Dog": {
                "allOf": [
                    {"$ref": "#/components/schemas/Base"},
                    {"type": "object", "required": ["bark"], "properties": {"bark": {"type": "boolean"}}},
                ]
            },
        })
        dog = resolve_document(data).schema_node("Dog")
        assert dog.type == "object"
        assert list(dog.properties) == ["id", "bark"]
        assert dog.required == ["id", "bark"]

    def test_all_of_cycle_terminates(self) -> None:
        data = _doc({
            "Node": {
                "allOf": [
                    {"$ref": "#/components/schemas/Node"},
                    {"type": "object", "properties": {"value": {"type": "string"}}},
                ]
            },
        })
        node = resolve_document(data).schema_node("Node")
        assert list(node.properties) == ["value"]

    def test_one_of_takes_first_non_null_variant(self) -> None:
        data = _doc({
            "Holder": {
                "type": "object",
                "properties": {
                    "owner": {"anyOf": [{"type": "null"}, {"$ref": "#/components/schemas/Owner"}]},
                    "contact": {"oneOf": [{"type": "string", "format": "email"}, {"type": "integer"}]},
                },
            },
            "Owner": {"type": "object"},
        })
        holder = resolve_document(data).schema_node("Holder")
        assert holder.properties["owner"] == SchemaRef(name="Owner")
        contact = holder.properties["contact"]
        assert isinstance(contact, SchemaNode)
        assert (contact.type, contact.format) == ("string", "email")


# ---------------------------------------------------------------------------
# Normalization details
# ---------------------------------------------------------------------------


class TestNormalization:
    def test_constraints_and_flags(self, petstore_resolver: ReferenceResolver) -> None:
        pet = petstore_resolver.schema_node("Pet")
        name = pet.properties["name"]
        assert isinstance(name, SchemaNode)
        assert (name.constraints.min_length, name.constraints.max_length) == (1, 100)

        pet_id = pet.properties["id"]
        assert isinstance(pet_id, SchemaNode)
        assert pet_id.read_only is True
        assert pet_id.format == "int64"

        tag = pet.properties["tag"]
        assert isinstance(tag, SchemaNode)
        assert tag.nullable is True

    def test_type_array_of_openapi_31(self, petstore_31_raw: dict[str, Any]) -> None:
        pet = resolve_document(petstore_31_raw).schema_node("Pet")
        nickname = pet.properties["nickname"]
        assert isinstance(nickname, SchemaNode)
        assert nickname.type == "string"
        assert nickname.nullable is True
        assert nickname.constraints.max_length == 30

    def test_type_inferred_from_shape(self) -> None:
        data = _doc({
            "Implicit": {"properties": {"list": {"items": {"type": "string"}}}},
        })
        node = resolve_document(data).schema_node("Implicit")
        assert node.type == "object"
        inner = node.properties["list"]
        assert isinstance(inner, SchemaNode)
        assert inner.type == "array"

    def test_duplicate_required_entries_collapse(self) -> None:
        data = _doc({"X": {"type": "object", "required": ["a", "a", "b"]}})
        assert resolve_document(data).schema_node("X").required == ["a", "b"]

    def test_boolean_constraint_values_are_ignored(self) -> None:
        data = _doc({"X": {"type": "integer", "minimum": True, "maxLength": "5"}})
        node = resolve_document(data).schema_node("X")
        assert node.constraints.minimum is None
        assert node.constraints.max_length is None


# ---------------------------------------------------------------------------
# Unresolved references
# ---------------------------------------------------------------------------


class TestUnresolvedReferences:
    def test_missing_component_names_container(self) -> None:
        data = _doc({"Pet": {"type": "object", "properties": {"owner": {"$ref": "#/components/schemas/Owner"}}}})
        with pytest.raises(UnresolvedReferenceError) as exc_info:
            resolve_document(data, "api.json")
        assert exc_info.value.ref == "#/components/schemas/Owner"
        assert exc_info.value.component == "Pet"
        assert exc_info.value.source == "api.json"

    def test_missing_ref_in_operation(self) -> None:
        paths = {
            "/pets": {
                "get": {
                    "responses": {
                        "200": {
                            "description": "ok",
                            "content": {"application/json": {"schema": {"$ref": "#/components/schemas/Nope"}}},
                        }
                    }
                }
            }
        }
        with pytest.raises(UnresolvedReferenceError) as exc_info:
            resolve_document(_doc({}, paths))
        assert exc_info.value.component == "GET /pets"

    def test_missing_parameter_pointer(self) -> None:
        paths = {"/pets": {"get": {"parameters": [{"$ref": "#/components/parameters/Missing"}], "responses": {}}}}
        with pytest.raises(UnresolvedReferenceError, match="key 'Missing' not found"):
            resolve_document(_doc({}, paths, parameters={}))

    def test_external_reference_is_rejected(self) -> None:
        data = _doc({"Pet": {"$ref": "other.yaml#/Pet"}})
        with pytest.raises(UnresolvedReferenceError, match="only internal references"):
            resolve_document(data)

    def test_refs_inside_examples_are_ignored(self) -> None:
        data = _doc({
            "Doc": {
                "type": "object",
                "example": {"$ref": "#/not/a/real/pointer"},
                "properties": {"link": {"type": "string", "default": {"$ref": "x"}}},
            }
        })
        resolver = resolve_document(data)
        assert "link" in resolver.schema_node("Doc").properties

    def test_missing_ref_in_default_response(self) -> None:
        paths = {
            "/pets": {
                "get": {
                    "responses": {
                        "200": {"description": "ok"},
                        "default": {"$ref": "#/components/responses/Missing"},
                    }
                }
            }
        }
        with pytest.raises(UnresolvedReferenceError) as exc_info:
            resolve_document(_doc({}, paths, responses={}))
        assert exc_info.value.ref == "#/components/responses/Missing"
        assert exc_info.value.component == "GET /pets"

    def test_missing_schema_under_default_response(self) -> None:
        paths = {
            "/pets": {
                "get": {
                    "responses": {
                        "default": {
                            "description": "error",
                            "content": {"application/json": {"schema": {"$ref": "#/components/schemas/NoSuchError"}}},
                        }
                    }
                }
            }
        }
        with pytest.raises(UnresolvedReferenceError) as exc_info:
            resolve_document(_doc({}, paths))
        assert exc_info.value.ref == "#/components/schemas/NoSuchError"

    def test_property_named_like_a_keyword_is_walked(self) -> None:
        data = _doc({
            "Settings": {
                "type": "object",
                "properties": {
                    "default": {"$ref": "#/components/schemas/Gone"},
                    "enum": {"type": "string"},
                },
            }
        })
        with pytest.raises(UnresolvedReferenceError) as exc_info:
            resolve_document(data)
        assert exc_info.value.component == "Settings"

    def test_named_example_refs_are_checked(self) -> None:
        paths = {
            "/pets": {
                "get": {
                    "responses": {
                        "200": {
                            "description": "ok",
                            "content": {
                                "application/json": {
                                    "examples": {
                                        "inline": {"value": {"$ref": "literal text"}},
                                        "shared": {"$ref": "#/components/examples/Missing"},
                                    }
                                }
                            },
                        }
                    }
                }
            }
        }
        with pytest.raises(UnresolvedReferenceError) as exc_info:
            resolve_document(_doc({}, paths, examples={}))
        assert exc_info.value.ref == "#/components/examples/Missing"


# ---------------------------------------------------------------------------
# Non-schema dereferencing
# ---------------------------------------------------------------------------


class TestDeref:
    def test_deref_follows_parameter_ref(self, petstore_resolver: ReferenceResolver) -> None:
        param = petstore_resolver.deref({"$ref": "#/components/parameters/StatusFilter"}, "GET /pets")
        assert param["name"] == "status"

    def test_deref_passes_concrete_objects_through(self, petstore_resolver: ReferenceResolver) -> None:
        obj = {"name": "limit", "in": "query"}
        assert petstore_resolver.deref(obj, "GET /pets") is obj

    def test_deref_detects_cycles(self) -> None:
        data = _doc({}, parameters={
            "A": {"$ref": "#/components/parameters/B"},
            "B": {"$ref": "#/components/parameters/A"},
        })
        resolver = ReferenceResolver(data)
        with pytest.raises(UnresolvedReferenceError, match="circular"):
            resolver.deref({"$ref": "#/components/parameters/A"}, "GET /x")

    def test_pointer_escaping(self) -> None:
        data = _doc({"a/b": {"type": "string"}, "c~d": {"type": "integer"}})
        resolver = resolve_document(data)
        assert resolver.convert({"$ref": "#/components/schemas/a~1b"}, "X") == SchemaRef(name="a/b")
        assert resolver.schema_node("c~d").type == "integer"
