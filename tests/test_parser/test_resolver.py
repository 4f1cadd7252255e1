"""Tests for oasresolve.parser.resolver."""

from __future__ import annotations

import pytest

from oasresolve.exceptions import MalformedDocumentError, MalformedPointerError
from oasresolve.models import BackReference, ResolutionState, ResolvedSchema, SchemaKind
from oasresolve.parser.serializer import fingerprint, to_openapi


PET = {
    "type": "object",
    "description": "A pet",
    "required": ["name"],
    "properties": {
        "id": {"type": "integer", "format": "int64"},
        "name": {"type": "string", "minLength": 1},
        "tags": {"type": "array", "items": {"type": "string"}},
        "status": {"type": "string", "enum": ["available", "sold"]},
    },
}


@pytest.fixture
def load(harness, write_doc, minimal_spec):
    """Write a spec with the given component schemas and return its document id."""

    def _load(schemas: dict) -> str:
        return harness.load(write_doc("api.yaml", minimal_spec(schemas=schemas)))

    return _load


# ---------------------------------------------------------------------------
# Plain schemas
# ---------------------------------------------------------------------------


class TestPlainSchemas:
    """Non-composed, acyclic schemas."""

    def test_round_trip(self, harness, load) -> None:
        doc = load({"Pet": PET})
        pet = harness.component(doc, "Pet")
        assert to_openapi(pet) == PET
        assert list(to_openapi(pet)["properties"]) == ["id", "name", "tags", "status"]

    def test_kinds(self, harness, load) -> None:
        doc = load({"Pet": PET})
        pet = harness.component(doc, "Pet")
        assert pet.kind is SchemaKind.OBJECT
        assert pet.properties["tags"].kind is SchemaKind.ARRAY
        assert pet.properties["id"].kind is SchemaKind.SCALAR

    def test_implicit_object(self, harness, load) -> None:
        doc = load({"Thing": {"properties": {"a": {"type": "string"}}}})
        assert harness.component(doc, "Thing").kind is SchemaKind.OBJECT

    def test_component_is_named(self, harness, load) -> None:
        doc = load({"Pet": PET})
        pet = harness.component(doc, "Pet")
        assert pet.name == "Pet"
        assert pet.source is not None and pet.source.pointer == ("components", "schemas", "Pet")

    def test_extensions_and_constraints_kept(self, harness, load) -> None:
        doc = load({"Code": {"type": "string", "pattern": "^[A-Z]+$", "x-internal": True}})
        code = harness.component(doc, "Code")
        assert code.constraints == {"pattern": "^[A-Z]+$"}
        assert code.extensions == {"x-internal": True}

    def test_nullable_type_array(self, harness, load) -> None:
        doc = load({"Name": {"type": ["string", "null"]}})
        name = harness.component(doc, "Name")
        assert name.type == "string"
        assert name.nullable is True
        assert name.kind is SchemaKind.SCALAR

    def test_multi_type_array_becomes_any_of(self, harness, load) -> None:
        doc = load({"Id": {"type": ["string", "integer"]}})
        ident = harness.component(doc, "Id")
        assert ident.kind is SchemaKind.COMPOSED
        assert [branch.type for branch in ident.any_of] == ["string", "integer"]

    def test_boolean_schemas(self, harness, load) -> None:
        doc = load({
            "Open": {"type": "object", "properties": {"any": True}, "additionalProperties": False}
        })
        schema = harness.component(doc, "Open")
        assert schema.additional_properties is False
        assert isinstance(schema.properties["any"], ResolvedSchema)
        assert schema.properties["any"].type is None

    def test_single_item_tuple_items(self, harness, load) -> None:
        doc = load({"List": {"type": "array", "items": [{"type": "string"}]}})
        assert harness.component(doc, "List").items.type == "string"

    def test_multi_item_tuple_items_rejected(self, harness, load) -> None:
        doc = load({"Pair": {"type": "array", "items": [{"type": "string"}, {"type": "integer"}]}})
        with pytest.raises(MalformedDocumentError, match="Tuple-form"):
            harness.component(doc, "Pair")

    def test_non_mapping_schema_rejected(self, harness, load) -> None:
        doc = load({"Bad": "just a string"})
        with pytest.raises(MalformedDocumentError, match="must be a mapping"):
            harness.component(doc, "Bad")

    def test_properties_must_be_mapping(self, harness, load) -> None:
        doc = load({"Bad": {"type": "object", "properties": ["a", "b"]}})
        with pytest.raises(MalformedDocumentError, match="'properties'"):
            harness.component(doc, "Bad")


# ---------------------------------------------------------------------------
# References
# ---------------------------------------------------------------------------


class TestReferences:
    """$ref handling and referential transparency."""

    def test_ref_equals_direct_resolution(self, harness, load) -> None:
        doc = load({"Pet": PET, "Holder": {"properties": {"pet": {"$ref": "#/components/schemas/Pet"}}}})
        via_ref = harness.component(doc, "Holder").properties["pet"]
        raw_pet = harness.store.get(doc)["components"]["schemas"]["Pet"]
        direct = harness.resolver.resolve(raw_pet, doc)
        assert fingerprint(via_ref) == fingerprint(direct)

    def test_each_key_resolved_once(self, harness, load) -> None:
        doc = load({
            "Pet": PET,
            "Pair": {
                "properties": {
                    "first": {"$ref": "#/components/schemas/Pet"},
                    "second": {"$ref": "#/components/schemas/Pet"},
                }
            },
        })
        pair = harness.component(doc, "Pair")
        assert pair.properties["first"] is pair.properties["second"]
        assert pair.properties["first"] is harness.component(doc, "Pet")

    def test_ref_siblings_ignored(self, harness, load) -> None:
        doc = load({
            "Pet": PET,
            "Holder": {
                "properties": {
                    "pet": {"$ref": "#/components/schemas/Pet", "description": "ignored"}
                }
            },
        })
        pet = harness.component(doc, "Holder").properties["pet"]
        assert pet.description == "A pet"

    def test_alias_component_gets_own_name(self, harness, load) -> None:
        doc = load({"Pet": PET, "Animal": {"$ref": "#/components/schemas/Pet"}})
        animal = harness.component(doc, "Animal")
        assert animal.name == "Animal"
        assert list(animal.properties) == list(PET["properties"])

    def test_cross_file(self, harness, write_doc, minimal_spec) -> None:
        write_doc("schemas/pet.yaml", {
            "Pet": {"type": "object", "properties": {"tag": {"$ref": "#/Tag"}}},
            "Tag": {"type": "string"},
        })
        doc = harness.load(write_doc(
            "api.yaml",
            minimal_spec(schemas={"Holder": {"properties": {"pet": {"$ref": "schemas/pet.yaml#/Pet"}}}}),
        ))
        pet = harness.component(doc, "Holder").properties["pet"]
        assert pet.name == "Pet"
        assert pet.source.document.endswith("pet.yaml")
        assert pet.properties["tag"].name == "Tag"

    def test_state_tracking(self, harness, load) -> None:
        doc = load({"Pet": PET})
        key = harness.pointers.key_for("#/components/schemas/Pet", doc)
        assert harness.resolver.state_of(key) is ResolutionState.UNVISITED
        assert harness.resolver.cached(key) is None
        pet = harness.resolver.resolve_key(key)
        assert harness.resolver.state_of(key) is ResolutionState.RESOLVED
        assert harness.resolver.cached(key) is pet

    def test_discriminator_mapping_uses_registry_names(self, harness, load) -> None:
        doc = load({
            "Pet": {
                "type": "object",
                "properties": {"kind": {"type": "string"}},
                "discriminator": {
                    "propertyName": "kind",
                    "mapping": {"cat": "#/components/schemas/Cat", "dog": "Dog"},
                },
            },
            "Cat": {"type": "object"},
            "Dog": {"type": "object"},
        })
        pet = harness.component(doc, "Pet")
        assert pet.discriminator.property_name == "kind"
        assert pet.discriminator.mapping == {"cat": "Cat", "dog": "Dog"}
        harness.resolver.finish()
        assert harness.registry["Dog"].kind is SchemaKind.OBJECT


# ---------------------------------------------------------------------------
# Cycles
# ---------------------------------------------------------------------------


class TestCycles:
    """Self-referential graphs resolve with BackReference; alias loops fail."""

    def test_linked_list(self, harness, load) -> None:
        doc = load({
            "Node": {
                "type": "object",
                "properties": {"value": {"type": "string"}, "next": {"$ref": "#/components/schemas/Node"}},
            }
        })
        node = harness.component(doc, "Node")
        back = node.properties["next"]
        assert isinstance(back, BackReference)
        assert back.name == "Node"
        assert back.key == node.source

    def test_direct_all_of_self_reference(self, harness, load) -> None:
        doc = load({
            "A": {
                "allOf": [{"$ref": "#/components/schemas/A"}],
                "properties": {"x": {"type": "string"}},
            }
        })
        a = harness.component(doc, "A")
        assert a.kind is SchemaKind.COMPOSED
        assert isinstance(a.all_of[0], BackReference)
        assert a.all_of[0].name == "A"

    def test_mutual_recursion(self, harness, load) -> None:
        doc = load({
            "A": {"properties": {"b": {"$ref": "#/components/schemas/B"}}},
            "B": {"properties": {"a": {"$ref": "#/components/schemas/A"}}},
        })
        a = harness.component(doc, "A")
        b = a.properties["b"]
        assert isinstance(b, ResolvedSchema) and b.name == "B"
        assert isinstance(b.properties["a"], BackReference)
        assert b.properties["a"].name == "A"

    def test_back_reference_target_is_bound_by_finish(self, harness, load) -> None:
        doc = load({
            "Tree": {"properties": {"children": {"type": "array", "items": {"$ref": "#/components/schemas/Tree"}}}}
        })
        harness.component(doc, "Tree")
        assert "Tree" in harness.registry
        assert harness.registry.get("Tree") is None
        harness.resolver.finish()
        assert harness.registry["Tree"].properties["children"].items.name == "Tree"

    def test_wide_sharing_is_linear(self, harness, load) -> None:
        depth = 30
        schemas = {
            f"L{i}": {
                "properties": {
                    "left": {"$ref": f"#/components/schemas/L{i + 1}"},
                    "right": {"$ref": f"#/components/schemas/L{i + 1}"},
                }
            }
            for i in range(depth)
        }
        schemas[f"L{depth}"] = {"type": "string"}
        doc = load(schemas)
        top = harness.component(doc, "L0")
        assert top.properties["left"] is top.properties["right"]

    def test_long_cycle(self, harness, load) -> None:
        size = 40
        schemas = {
            f"S{i}": {"properties": {"next": {"$ref": f"#/components/schemas/S{(i + 1) % size}"}}}
            for i in range(size)
        }
        doc = load(schemas)
        node = harness.component(doc, "S0")
        for _ in range(size - 1):
            node = node.properties["next"]
        assert isinstance(node.properties["next"], BackReference)
        assert node.properties["next"].name == "S0"

    def test_self_alias_rejected(self, harness, load) -> None:
        doc = load({"A": {"$ref": "#/components/schemas/A"}})
        with pytest.raises(MalformedPointerError, match="circular alias"):
            harness.component(doc, "A")

    def test_alias_loop_rejected(self, harness, load) -> None:
        doc = load({
            "A": {"$ref": "#/components/schemas/B"},
            "B": {"$ref": "#/components/schemas/A"},
        })
        with pytest.raises(MalformedPointerError, match="circular alias"):
            harness.component(doc, "A")
