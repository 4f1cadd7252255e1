"""Tests for oasresolve.parser.naming."""

from __future__ import annotations

import pytest

from oasresolve.models import ReferenceKey
from oasresolve.parser.naming import (
    is_component_pointer,
    parameter_name,
    pascal_case,
    preferred_name,
    request_name,
    response_name,
)


class TestPascalCase:
    @pytest.mark.parametrize(
        "text, expected",
        [
            ("getPet", "GetPet"),
            ("list-all_pets", "ListAllPets"),
            ("/pets/{petId}", "PetsPetId"),
            ("4XX", "4XX"),
            ("", ""),
        ],
    )
    def test_conversion(self, text: str, expected: str) -> None:
        assert pascal_case(text) == expected


class TestPreferredName:
    """Names asked for by reference keys."""

    def test_component(self) -> None:
        key = ReferenceKey(document="/s/api.yaml", pointer=("components", "schemas", "Pet"))
        assert preferred_name(key) == "Pet"

    def test_definitions(self) -> None:
        key = ReferenceKey(document="/s/api.yaml", pointer=("definitions", "Error"))
        assert preferred_name(key) == "Error"

    def test_whole_document(self) -> None:
        key = ReferenceKey(document="/s/shared/error-model.json")
        assert preferred_name(key) == "ErrorModel"

    def test_top_level_entry_of_shared_file(self) -> None:
        key = ReferenceKey(document="/s/schemas/pet.yaml", pointer=("Pet",))
        assert is_component_pointer(key.pointer)
        assert preferred_name(key) == "Pet"

    def test_nested_pointer(self) -> None:
        key = ReferenceKey(
            document="/s/api.yaml",
            pointer=("components", "schemas", "Pet", "properties", "owner"),
        )
        assert not is_component_pointer(key.pointer)
        assert preferred_name(key) == "PetOwner"


class TestOperationNames:
    """Candidate names for promoted inline schemas."""

    def test_response_with_operation_id(self) -> None:
        assert response_name("getPet", "get", "/pets/{petId}", "200") == "GetPetResponse200"

    def test_response_default(self) -> None:
        assert response_name("getPet", "get", "/pets", "default") == "GetPetResponseDefault"

    def test_response_without_operation_id(self) -> None:
        assert response_name(None, "get", "/pets/{petId}", "200") == "GetPetsPetIdResponse"

    def test_request(self) -> None:
        assert request_name("createPet", "post", "/pets") == "CreatePetRequest"
        assert request_name(None, "post", "/pets") == "PostPetsRequest"

    def test_parameter(self) -> None:
        assert parameter_name("listPets", "get", "/pets", "filter") == "ListPetsFilterParam"
