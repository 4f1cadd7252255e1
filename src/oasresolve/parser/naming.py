"""Deterministic names for registry entries.

Registry names come from two places: component-style pointers
(``#/components/schemas/Pet`` is named ``Pet``) and inline schemas promoted
out of operations (``getPet`` + 200 response becomes ``GetPetResponse200``).

Examples::

    pascal_case("getPet")            -> "GetPet"
    pascal_case("list-all_pets")     -> "ListAllPets"
    sanitize_path("/pets/{petId}")   -> "PetsPetId"
    preferred_name(key for "common.yaml#")                -> "Common"
    preferred_name(key for "#/components/schemas/Pet")    -> "Pet"
    preferred_name(key for "#/components/schemas/Pet/properties/owner") -> "PetOwner"
"""

from __future__ import annotations

import re
from pathlib import Path

from oasresolve.models import ReferenceKey

_WORD_SPLIT = re.compile(r"[^0-9A-Za-z]+")

# Parents whose children are named schemas.
_COMPONENT_PARENTS = frozenset({"schemas", "definitions", "$defs"})

# Pointer segments that carry structure rather than meaning.
_STRUCTURAL_SEGMENTS = frozenset({
    "components", "schemas", "definitions", "$defs", "properties", "items",
    "allOf", "oneOf", "anyOf", "not", "additionalProperties", "content",
    "paths", "responses", "requestBody", "parameters", "schema",
})


def pascal_case(text: str) -> str:
    """Upper-case the first letter of every alphanumeric run and join them.

    Characters after the first in a run are kept as written, so camelCase
    input keeps its inner capitals.
    """
    return "".join(word[:1].upper() + word[1:] for word in _WORD_SPLIT.split(text) if word)


def sanitize_path(path: str) -> str:
    """PascalCase form of a URL path template, braces and slashes removed."""
    return pascal_case(path)


def is_component_pointer(pointer: tuple[str, ...]) -> bool:
    """True for whole documents, top-level entries and children of a schemas map.

    A one-segment pointer (``pet.yaml#/Pet``) addresses a top-level entry of
    a shared schema file, which names it as plainly as ``components/schemas``.
    """
    if len(pointer) <= 1:
        return True
    return pointer[-2] in _COMPONENT_PARENTS


def preferred_name(key: ReferenceKey) -> str:
    """The registry name a key asks for before collision handling."""
    if not key.pointer:
        return pascal_case(Path(key.document).stem) or "Document"
    if is_component_pointer(key.pointer):
        return key.pointer[-1]
    meaningful = [seg for seg in key.pointer if seg not in _STRUCTURAL_SEGMENTS]
    return pascal_case(" ".join(meaningful)) or "Schema"


def operation_base_name(operation_id: str | None, method: str, path: str) -> str:
    """Stem shared by every promoted schema of one operation."""
    if operation_id:
        return pascal_case(operation_id)
    return pascal_case(method) + sanitize_path(path)


def response_name(operation_id: str | None, method: str, path: str, status_code: str) -> str:
    """Candidate name for an inline response schema.

    With an ``operationId`` the status code is appended; without one the
    name is method + path only and same-path responses rely on suffixing.
    """
    base = operation_base_name(operation_id, method, path)
    if operation_id:
        return f"{base}Response{pascal_case(status_code)}"
    return f"{base}Response"


def request_name(operation_id: str | None, method: str, path: str) -> str:
    """Candidate name for an inline request-body schema."""
    return operation_base_name(operation_id, method, path) + "Request"


def parameter_name(operation_id: str | None, method: str, path: str, param: str) -> str:
    """Candidate name for an inline object schema of a parameter."""
    return operation_base_name(operation_id, method, path) + pascal_case(param) + "Param"
