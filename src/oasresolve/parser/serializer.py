"""Re-serialize resolved schemas and models into plain OpenAPI-shaped dicts.

:func:`to_openapi` is the inverse of resolution for acyclic, non-composed
schemas: property sets and their order come back unchanged. Registry
entries nested below the top level, and every
:class:`~oasresolve.models.BackReference`, are written as
``{"$ref": "#/components/schemas/<name>"}`` so the output stays finite.

:func:`fingerprint` builds on it to give structural identity, used by the
registry to deduplicate promoted schemas.
"""

from __future__ import annotations

import json
from typing import Any

from oasresolve.models import (
    BackReference,
    ResolvedMediaType,
    ResolvedOperation,
    ResolvedSpecificationModel,
    SchemaNode,
)

COMPONENT_PREFIX = "#/components/schemas/"


def component_ref(name: str) -> dict[str, str]:
    return {"$ref": COMPONENT_PREFIX + name}


def to_openapi(node: SchemaNode, top_level: bool = True) -> dict[str, Any]:
    """Return an OpenAPI dict for *node*.

    Args:
        node: A resolved schema or back-reference.
        top_level: When ``False``, a schema with a registry name is written
            as a ``$ref`` instead of being expanded.
    """
    if isinstance(node, BackReference):
        return component_ref(node.name)
    if node.name is not None and not top_level:
        return component_ref(node.name)

    out: dict[str, Any] = {}
    if node.type is not None:
        out["type"] = node.type
    if node.format is not None:
        out["format"] = node.format
    if node.title is not None:
        out["title"] = node.title
    if node.description is not None:
        out["description"] = node.description
    if node.nullable:
        out["nullable"] = True
    if node.enum is not None:
        out["enum"] = list(node.enum)
    if node.default is not None:
        out["default"] = node.default
    if node.example is not None:
        out["example"] = node.example
    out.update(node.constraints)
    if node.read_only:
        out["readOnly"] = True
    if node.write_only:
        out["writeOnly"] = True
    if node.deprecated:
        out["deprecated"] = True
    if node.properties:
        out["properties"] = {
            prop: to_openapi(value, top_level=False) for prop, value in node.properties.items()
        }
    if node.required:
        out["required"] = list(node.required)
    if node.items is not None:
        out["items"] = to_openapi(node.items, top_level=False)
    if isinstance(node.additional_properties, bool):
        out["additionalProperties"] = node.additional_properties
    elif node.additional_properties is not None:
        out["additionalProperties"] = to_openapi(node.additional_properties, top_level=False)
    for keyword, branches in (("allOf", node.all_of), ("oneOf", node.one_of), ("anyOf", node.any_of)):
        if branches:
            out[keyword] = [to_openapi(branch, top_level=False) for branch in branches]
    if node.not_ is not None:
        out["not"] = to_openapi(node.not_, top_level=False)
    if node.discriminator is not None:
        discriminator: dict[str, Any] = {"propertyName": node.discriminator.property_name}
        if node.discriminator.mapping:
            discriminator["mapping"] = {
                value: COMPONENT_PREFIX + name
                for value, name in node.discriminator.mapping.items()
            }
        out["discriminator"] = discriminator
    if node.composition:
        out["x-composition"] = list(node.composition)
        out["x-variants"] = [to_openapi(v, top_level=False) for v in node.variants]
    out.update(node.extensions)
    return out


def fingerprint(node: SchemaNode) -> str:
    """Canonical JSON text of *node*; equal strings mean structurally identical."""
    return json.dumps(to_openapi(node), sort_keys=True, separators=(",", ":"), default=str)


def _dump_content(content: tuple[ResolvedMediaType, ...]) -> dict[str, Any]:
    return {
        media.media_type: (
            {"schema": to_openapi(media.schema_, top_level=False)}
            if media.schema_ is not None
            else {}
        )
        for media in content
    }


def dump_operation(operation: ResolvedOperation) -> dict[str, Any]:
    """JSON-ready dict describing one resolved operation."""
    data: dict[str, Any] = {
        "path": operation.path,
        "method": operation.method.value,
    }
    if operation.operation_id:
        data["operationId"] = operation.operation_id
    if operation.summary:
        data["summary"] = operation.summary
    if operation.tags:
        data["tags"] = list(operation.tags)
    if operation.deprecated:
        data["deprecated"] = True
    if operation.parameters:
        data["parameters"] = [
            {
                "name": param.name,
                "in": param.location.value,
                "required": param.required,
                **(
                    {"schema": to_openapi(param.schema_, top_level=False)}
                    if param.schema_ is not None
                    else {}
                ),
            }
            for param in operation.parameters
        ]
    if operation.request_body is not None:
        data["requestBody"] = {
            "required": operation.request_body.required,
            "content": _dump_content(operation.request_body.content),
        }
    data["responses"] = {
        status: {
            "description": response.description or "",
            **({"content": _dump_content(response.content)} if response.content else {}),
        }
        for status, response in operation.responses.items()
    }
    return data


def dump_model(model: ResolvedSpecificationModel) -> dict[str, Any]:
    """JSON-ready dict of a whole resolved specification."""
    return {
        "openapi": model.openapi_version,
        "info": model.info.model_dump(exclude_none=True),
        "servers": [server.model_dump(exclude_none=True) for server in model.servers],
        "documents": list(model.documents),
        "operations": [dump_operation(op) for op in model.operations],
        "schemas": {name: to_openapi(schema) for name, schema in model.schemas.items()},
    }
