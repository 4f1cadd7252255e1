"""Give anonymous operation schemas stable registry names.

After normalization, every schema an operation uses directly (parameter
schemas, request-body media types, response media types) is checked. A
schema is *anonymous* when it was written inline (not reached through
``$ref``), has no registry name, and is either an object with properties
or an array whose items are such an object. Each anonymous schema is
registered through :meth:`SchemaRegistry.promote
<oasresolve.parser.registry.SchemaRegistry.promote>` and the operation is
rebuilt to hold the registry entry.

Visitation is deterministic: path-declaration order, then
:data:`METHOD_ORDER`, then parameters, request body and responses sorted by
:func:`status_sort_key`. That order decides who gets the unsuffixed name
when candidates collide.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional

from oasresolve.models import (
    HTTPMethod,
    ResolvedMediaType,
    ResolvedOperation,
    ResolvedSchema,
    SchemaKind,
    SchemaNode,
)
from oasresolve.parser.naming import parameter_name, request_name, response_name
from oasresolve.parser.registry import SchemaRegistry

logger = logging.getLogger(__name__)

METHOD_ORDER: tuple[HTTPMethod, ...] = tuple(HTTPMethod)


def status_sort_key(status_code: str) -> tuple[int, int, str]:
    """Sort numeric codes ascending, then range codes (``2XX``), then ``default``."""
    code = status_code.strip()
    if code.isdigit():
        return (0, int(code), code)
    if code.lower() == "default":
        return (2, 0, code)
    return (1, int(code[0]) if code[:1].isdigit() else 9, code.upper())


def _is_inline_object(node: Optional[SchemaNode]) -> bool:
    return (
        isinstance(node, ResolvedSchema)
        and node.name is None
        and node.source is None
        and node.kind is SchemaKind.OBJECT
        and bool(node.properties)
    )


def is_anonymous(node: Optional[SchemaNode]) -> bool:
    """True for inline objects with properties and inline arrays of them."""
    if _is_inline_object(node):
        return True
    return (
        isinstance(node, ResolvedSchema)
        and node.name is None
        and node.source is None
        and node.kind is SchemaKind.ARRAY
        and _is_inline_object(node.items)
    )


class InlineSchemaPromoter:
    """Promote anonymous operation schemas into a :class:`SchemaRegistry`.

    Args:
        registry: The pass registry; receives the promoted entries.
        promote_parameters: Also promote inline object schemas of parameters.
    """

    def __init__(self, registry: SchemaRegistry, promote_parameters: bool = True) -> None:
        self._registry = registry
        self._promote_parameters = promote_parameters

    def promote(self, operations: list[ResolvedOperation]) -> list[ResolvedOperation]:
        """Return *operations* rebuilt so promoted schemas are registry entries.

        The returned list keeps the input order; only the visitation order
        used for naming is canonical.
        """
        path_order: dict[str, int] = {}
        for operation in operations:
            path_order.setdefault(operation.path, len(path_order))

        visit = sorted(
            range(len(operations)),
            key=lambda i: (
                path_order[operations[i].path],
                METHOD_ORDER.index(operations[i].method),
            ),
        )
        result = list(operations)
        for index in visit:
            result[index] = self._promote_operation(operations[index])
        return result

    def _promote_operation(self, operation: ResolvedOperation) -> ResolvedOperation:
        op_id = operation.operation_id
        method = operation.method.value
        path = operation.path
        update: dict[str, object] = {}

        if self._promote_parameters and operation.parameters:
            update["parameters"] = tuple(
                param.model_copy(
                    update={
                        "schema_": self._lift(
                            param.schema_, parameter_name(op_id, method, path, param.name)
                        )
                    }
                )
                if param.schema_ is not None
                else param
                for param in operation.parameters
            )

        body = operation.request_body
        if body is not None:
            update["request_body"] = body.model_copy(
                update={
                    "content": self._lift_content(
                        body.content, lambda: request_name(op_id, method, path)
                    )
                }
            )

        responses = dict(operation.responses)
        for status in sorted(responses, key=status_sort_key):
            response = responses[status]
            responses[status] = response.model_copy(
                update={
                    "content": self._lift_content(
                        response.content,
                        lambda status=status: response_name(op_id, method, path, status),
                    )
                }
            )
        update["responses"] = responses
        return operation.model_copy(update=update)

    def _lift_content(
        self, content: tuple[ResolvedMediaType, ...], candidate: Callable[[], str]
    ) -> tuple[ResolvedMediaType, ...]:
        return tuple(
            media.model_copy(update={"schema_": self._lift(media.schema_, candidate())})
            if media.schema_ is not None
            else media
            for media in content
        )

    def _lift(self, node: SchemaNode, candidate: str) -> SchemaNode:
        if not is_anonymous(node):
            return node
        entry = self._registry.promote(candidate, node)
        logger.debug("Operation schema %s bound to registry entry '%s'", candidate, entry.name)
        return entry
