"""Run one resolution pass and build the :class:`ResolvedSpecificationModel`.

The single public entry point is :func:`resolve_specification`. It wires the
pass together in a fixed order:

1. Load the root document through a sandboxed
   :class:`~oasresolve.parser.store.DocumentStore` and check its version.
2. Reserve every root ``components/schemas`` name in the registry, then
   resolve those schemas.
3. Walk ``paths`` (``_extract_operations``), resolving every parameter,
   request-body and response schema with the same
   :class:`~oasresolve.parser.resolver.GraphResolver`.
4. Bind back-reference and discriminator targets (``GraphResolver.finish``).
5. Normalize composition in the registry and in every operation.
6. Promote anonymous operation schemas, then freeze everything into the
   model.

Path items, parameters, request bodies and responses may themselves be
``$ref``s, possibly into other files; they are dereferenced in their own
document so schemas inside them resolve relative to that file.

Parameter merging follows the OpenAPI specification: path-level parameters
provide defaults, and operation-level parameters override them when they share
the same ``name`` and ``in`` values.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Optional

from pydantic import ValidationError

from oasresolve.exceptions import MalformedDocumentError, MalformedPointerError
from oasresolve.models import (
    APIInfo,
    HTTPMethod,
    ParameterLocation,
    ReferenceKey,
    ResolvedMediaType,
    ResolvedOperation,
    ResolvedParameter,
    ResolvedRequestBody,
    ResolvedResponse,
    ResolvedSpecificationModel,
    ResolverConfig,
    ServerInfo,
)
from oasresolve.parser.normalizer import CompositionNormalizer
from oasresolve.parser.pointer import PointerResolver
from oasresolve.parser.promoter import InlineSchemaPromoter
from oasresolve.parser.registry import SchemaRegistry
from oasresolve.parser.resolver import GraphResolver
from oasresolve.parser.sandbox import PathLike, PathSandboxGuard
from oasresolve.parser.store import DocumentStore, RawNode, validate_openapi_version

logger = logging.getLogger(__name__)

# A raw node together with the document it was found in.
Located = tuple[Mapping[str, Any], str]


def resolve_specification(
    path: PathLike, config: Optional[ResolverConfig] = None
) -> ResolvedSpecificationModel:
    """Resolve the OpenAPI document at *path* into an immutable model.

    Args:
        path: The root specification file (YAML or JSON).
        config: Pass settings. Defaults to :class:`ResolverConfig` with the
            sandbox rooted at the root file's parent directory.

    Returns:
        A :class:`~oasresolve.models.ResolvedSpecificationModel` with no
        ``$ref`` left anywhere in it.

    Raises:
        ResolverError: Any subclass; resolution either completes or fails
            outright, partial results are never returned.

    Example::

        model = resolve_specification("specs/petstore.yaml")
        for op in model.operations:
            print(op.method.value.upper(), op.path, op.response_schemas.keys())
    """
    config = config or ResolverConfig()
    sandbox_root = config.sandbox_root or Path(path).absolute().parent
    guard = PathSandboxGuard(sandbox_root, config.search_paths)
    store = DocumentStore(guard, config.allowed_extensions, config.max_document_bytes)

    root_id = store.load(path)
    document = store.get(root_id)
    if config.validate_version:
        openapi_version: Optional[str] = validate_openapi_version(document)
    else:
        openapi_version = str(document["openapi"]) if "openapi" in document else None
    logger.debug("Resolving %s (OpenAPI %s) inside %s", root_id, openapi_version, guard.root)

    registry = SchemaRegistry()
    pointers = PointerResolver(store)
    resolver = GraphResolver(pointers, registry)

    component_keys = _reserve_components(document, root_id, registry)
    for key in component_keys:
        resolver.resolve_key(key)

    operations = _extract_operations(document, root_id, pointers, resolver, config)
    resolver.finish()

    # Back-reference branches merge through the entries as they were resolved.
    entries = registry.snapshot()
    normalizer = CompositionNormalizer(entries.get)
    for name, schema in entries.items():
        registry.replace(name, normalizer.normalize(schema))
    operations = [_normalize_operation(normalizer, op) for op in operations]

    promoter = InlineSchemaPromoter(registry, promote_parameters=config.promote_parameters)
    operations = promoter.promote(operations)

    try:
        info = _extract_info(document)
        servers = _extract_servers(document)
    except ValidationError as exc:
        raise MalformedDocumentError(f"Invalid info or servers in {root_id}: {exc}") from exc

    return ResolvedSpecificationModel(
        openapi_version=openapi_version,
        info=info,
        servers=servers,
        documents=store.document_ids,
        operations=tuple(operations),
        schemas=registry.snapshot(),
    )


def _reserve_components(
    document: Mapping[str, Any], root_id: str, registry: SchemaRegistry
) -> list[ReferenceKey]:
    """Claim the root document's component names before anything else is named."""
    components = document.get("components") or {}
    if not isinstance(components, Mapping):
        raise MalformedDocumentError("'components' must be a mapping")
    schemas = components.get("schemas") or {}
    if not isinstance(schemas, Mapping):
        raise MalformedDocumentError("'components/schemas' must be a mapping")

    keys = []
    for name in schemas:
        key = ReferenceKey(document=root_id, pointer=("components", "schemas", name))
        registry.name_for(key, preferred=name)
        keys.append(key)
    return keys


def _extract_info(document: Mapping[str, Any]) -> APIInfo:
    """Extract API metadata from the document's ``info`` object.

    Missing fields fall back to ``"Untitled API"`` and ``"0.0.0"``.
    """
    info = document.get("info") or {}
    return APIInfo(
        title=str(info.get("title", "Untitled API")),
        version=str(info.get("version", "0.0.0")),
        description=info.get("description"),
    )


def _extract_servers(document: Mapping[str, Any]) -> tuple[ServerInfo, ...]:
    servers = document.get("servers") or ()
    return tuple(
        ServerInfo(url=str(server.get("url", "/")), description=server.get("description"))
        for server in servers
        if isinstance(server, Mapping)
    )


def _deref(
    pointers: PointerResolver, node: RawNode, document_id: str, what: str
) -> Located:
    """Follow ``$ref`` chains on a non-schema object (path item, response, ...).

    Raises:
        MalformedPointerError: If the chain loops back on itself.
        MalformedDocumentError: If the final target is not a mapping.
    """
    seen: set[ReferenceKey] = set()
    while isinstance(node, Mapping) and "$ref" in node:
        key = pointers.key_for(node["$ref"], document_id)
        if key in seen:
            raise MalformedPointerError(f"Circular $ref chain for {what} at '{key}'")
        seen.add(key)
        node = pointers.fetch(key)
        document_id = key.document
    if not isinstance(node, Mapping):
        raise MalformedDocumentError(
            f"{what} in {document_id} must be a mapping, got {type(node).__name__}"
        )
    return node, document_id


def _path_included(path: str, config: ResolverConfig) -> bool:
    if config.include_paths is None:
        return True
    for prefix in config.include_paths:
        if path == prefix or path.startswith(prefix.rstrip("/") + "/"):
            return True
    return False


def _allowed_methods(path: str, config: ResolverConfig) -> Optional[set[str]]:
    methods = config.include_operations.get(path)
    if methods is None:
        return None
    return {method.lower() for method in methods}


def _extract_operations(
    document: Mapping[str, Any],
    root_id: str,
    pointers: PointerResolver,
    resolver: GraphResolver,
    config: ResolverConfig,
) -> list[ResolvedOperation]:
    """Extract all operations from the document's ``paths`` object.

    Paths are visited in declaration order and methods in
    :class:`~oasresolve.models.HTTPMethod` order, which is also the order of
    the returned list.
    """
    paths = document.get("paths") or {}
    if not isinstance(paths, Mapping):
        raise MalformedDocumentError("'paths' must be a mapping")
    operations: list[ResolvedOperation] = []

    for path, raw_item in paths.items():
        if not _path_included(path, config):
            logger.debug("Skipping path %s (not in include_paths)", path)
            continue
        path_item, item_doc = _deref(pointers, raw_item, root_id, f"path item '{path}'")

        # Path-level parameters apply to all operations under this path
        path_params = [
            _deref(pointers, p, item_doc, f"parameter of '{path}'")
            for p in path_item.get("parameters") or ()
        ]
        allowed = _allowed_methods(path, config)

        for method in HTTPMethod:
            operation = path_item.get(method.value)
            if operation is None or not isinstance(operation, Mapping):
                continue
            if allowed is not None and method.value not in allowed:
                continue
            label = f"{method.value.upper()} {path}"
            try:
                operations.append(
                    _extract_operation(
                        path, method, operation, item_doc, path_params, pointers, resolver
                    )
                )
            except ValidationError as exc:
                raise MalformedDocumentError(f"Invalid operation {label} in {item_doc}: {exc}") from exc
            logger.debug("Extracted %s", label)

    return operations


def _extract_operation(
    path: str,
    method: HTTPMethod,
    operation: Mapping[str, Any],
    item_doc: str,
    path_params: list[Located],
    pointers: PointerResolver,
    resolver: GraphResolver,
) -> ResolvedOperation:
    label = f"{method.value.upper()} {path}"
    op_params = [
        _deref(pointers, p, item_doc, f"parameter of {label}")
        for p in operation.get("parameters") or ()
    ]
    parameters = []
    for raw_param, param_doc in _merge_parameters(path_params, op_params):
        parameter = _extract_parameter(resolver, raw_param, param_doc)
        if parameter is not None:
            parameters.append(parameter)

    request_body = None
    if operation.get("requestBody") is not None:
        request_body = _extract_request_body(
            resolver,
            *_deref(pointers, operation["requestBody"], item_doc, f"request body of {label}"),
        )

    responses: dict[str, ResolvedResponse] = {}
    for status, raw_response in (operation.get("responses") or {}).items():
        response, response_doc = _deref(
            pointers, raw_response, item_doc, f"response {status} of {label}"
        )
        responses[str(status)] = ResolvedResponse(
            status_code=str(status),
            description=response.get("description"),
            content=_extract_content(resolver, response.get("content"), response_doc),
        )

    return ResolvedOperation(
        path=path,
        method=method,
        operation_id=operation.get("operationId"),
        summary=operation.get("summary"),
        description=operation.get("description"),
        tags=tuple(operation.get("tags") or ()),
        deprecated=bool(operation.get("deprecated", False)),
        parameters=tuple(parameters),
        request_body=request_body,
        responses=responses,
    )


def _merge_parameters(path_params: list[Located], op_params: list[Located]) -> list[Located]:
    """Merge path-level and operation-level parameters.

    Operation-level parameters override path-level parameters with the same
    name and location (``in`` field), per the OpenAPI spec.
    """
    op_lookup = {(p.get("name", ""), p.get("in", "")) for p, _ in op_params}

    merged = [
        (param, doc)
        for param, doc in path_params
        if (param.get("name", ""), param.get("in", "")) not in op_lookup
    ]
    merged.extend(op_params)
    return merged


def _extract_parameter(
    resolver: GraphResolver, param: Mapping[str, Any], document_id: str
) -> Optional[ResolvedParameter]:
    """Resolve one parameter; path parameters are always required.

    Parameters with unrecognised ``in`` locations are skipped.
    """
    name = str(param.get("name", ""))
    try:
        location = ParameterLocation(param.get("in", "query"))
    except ValueError:
        logger.debug("Skipping parameter '%s' with unknown location %r", name, param.get("in"))
        return None

    schema = None
    if "schema" in param:
        schema = resolver.resolve(param["schema"], document_id)
    elif param.get("content"):
        content = _extract_content(resolver, param["content"], document_id)
        schema = content[0].schema_ if content else None

    required = bool(param.get("required", False))
    if location == ParameterLocation.PATH:
        required = True

    return ResolvedParameter(
        name=name,
        location=location,
        required=required,
        description=param.get("description"),
        deprecated=bool(param.get("deprecated", False)),
        schema_=schema,
    )


def _extract_request_body(
    resolver: GraphResolver, body: Mapping[str, Any], document_id: str
) -> ResolvedRequestBody:
    return ResolvedRequestBody(
        required=bool(body.get("required", False)),
        description=body.get("description"),
        content=_extract_content(resolver, body.get("content"), document_id),
    )


def _extract_content(
    resolver: GraphResolver, content: Any, document_id: str
) -> tuple[ResolvedMediaType, ...]:
    """Resolve the schema of every media type in a ``content`` map, in order."""
    if not content:
        return ()
    if not isinstance(content, Mapping):
        raise MalformedDocumentError(f"'content' in {document_id} must be a mapping")

    media_types = []
    for media_type, media in content.items():
        schema = None
        if isinstance(media, Mapping) and "schema" in media:
            schema = resolver.resolve(media["schema"], document_id)
        media_types.append(ResolvedMediaType(media_type=media_type, schema_=schema))
    return tuple(media_types)


def _normalize_content(
    normalizer: CompositionNormalizer, content: tuple[ResolvedMediaType, ...]
) -> tuple[ResolvedMediaType, ...]:
    return tuple(
        media.model_copy(update={"schema_": normalizer.normalize(media.schema_)})
        if media.schema_ is not None
        else media
        for media in content
    )


def _normalize_operation(
    normalizer: CompositionNormalizer, operation: ResolvedOperation
) -> ResolvedOperation:
    parameters = tuple(
        p.model_copy(update={"schema_": normalizer.normalize(p.schema_)})
        if p.schema_ is not None
        else p
        for p in operation.parameters
    )
    request_body = operation.request_body
    if request_body is not None:
        request_body = request_body.model_copy(
            update={"content": _normalize_content(normalizer, request_body.content)}
        )
    responses = {
        status: response.model_copy(
            update={"content": _normalize_content(normalizer, response.content)}
        )
        for status, response in operation.responses.items()
    }
    return operation.model_copy(
        update={"parameters": parameters, "request_body": request_body, "responses": responses}
    )
