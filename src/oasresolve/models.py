"""Canonical Pydantic models shared across all oasresolve modules.

This is the single source of truth for data shapes in the project. Every other
module imports from here rather than defining its own models. The models fall
into three groups:

**Configuration** -- :class:`ResolverConfig`, assembled by
:func:`~oasresolve.config.resolve_config`.

**Reference identity** -- :class:`ReferenceKey` and :class:`ResolutionState`,
used by the pointer and graph resolvers to track every ``$ref`` target.

**Resolved output** -- :class:`ResolvedSchema`, :class:`BackReference` and the
operation tree (:class:`ResolvedParameter`, :class:`ResolvedRequestBody`,
:class:`ResolvedResponse`, :class:`ResolvedOperation`), gathered into the
immutable :class:`ResolvedSpecificationModel` that downstream generators read.

Every output model is frozen. A resolved graph never contains a ``$ref``:
back-edges are expressed with :class:`BackReference`, which names the
registry entry to look up instead of inlining it again.
"""

from __future__ import annotations

import enum
from types import MappingProxyType
from typing import Any, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


# --- Configuration ---


class ResolverConfig(BaseModel):
    """Settings for one resolution pass.

    See Also:
        :func:`~oasresolve.config.resolve_config`: precedence rules that
        produce this object from CLI flags, environment and project config.
    """

    sandbox_root: Optional[str] = Field(
        default=None,
        description="Directory external refs may not escape (default: root file's parent)",
    )
    search_paths: list[str] = Field(
        default_factory=list,
        description="Extra directories tried when a referenced file is not found",
    )
    allowed_extensions: list[str] = Field(
        default_factory=lambda: [".yaml", ".yml", ".json"],
        description="Accepted document extensions; empty means any",
    )
    max_document_bytes: int = Field(
        default=100 * 1024 * 1024, description="Largest document the store will read"
    )
    validate_version: bool = Field(
        default=True, description="Require an OpenAPI 3.x root document"
    )
    promote_parameters: bool = Field(
        default=True, description="Promote inline object schemas of parameters"
    )
    include_paths: Optional[list[str]] = Field(
        default=None, description="Only keep paths starting with one of these prefixes"
    )
    include_operations: dict[str, list[str]] = Field(
        default_factory=dict,
        description="Per-path method allow-list, e.g. {'/pets': ['get']}",
    )


# --- Reference identity ---


class ReferenceKey(BaseModel):
    """Canonical identity of a ``$ref`` target: ``(document, pointer)``.

    Two references that spell the same target differently (``#/a/b`` from the
    root versus ``api.yaml#/a/b`` from a sibling file) produce equal keys.
    Keys are hashable and serve as dictionary keys throughout a pass.
    """

    model_config = ConfigDict(frozen=True)

    document: str
    pointer: tuple[str, ...] = ()

    @property
    def fragment(self) -> str:
        """The pointer re-encoded as a URI fragment, e.g. ``#/components/schemas/Pet``."""
        from oasresolve.parser.pointer import encode_pointer

        return "#" + encode_pointer(self.pointer)

    def __str__(self) -> str:
        return f"{self.document}{self.fragment}"


class ResolutionState(str, enum.Enum):
    """Per-key progress marker for one resolution pass."""

    UNVISITED = "unvisited"
    IN_PROGRESS = "in_progress"
    RESOLVED = "resolved"


# --- Resolved schemas ---


class SchemaKind(str, enum.Enum):
    """Tagged variant of a :class:`ResolvedSchema`."""

    OBJECT = "object"
    ARRAY = "array"
    SCALAR = "scalar"
    COMPOSED = "composed"


class BackReference(BaseModel):
    """Stand-in for a schema that is still being resolved higher up the chain.

    Carries no schema content; ``name`` is the :class:`SchemaRegistry` entry
    the target will be bound to once the pass finishes.
    """

    model_config = ConfigDict(frozen=True)

    key: ReferenceKey
    name: str


class Discriminator(BaseModel):
    """Resolved ``discriminator`` object; mapping values are registry names."""

    model_config = ConfigDict(frozen=True)

    property_name: str
    mapping: dict[str, str] = Field(default_factory=dict)


class ResolvedSchema(BaseModel):
    """A schema node with every ``$ref`` replaced.

    Before normalization a composed schema keeps its branches in
    :attr:`all_of`, :attr:`one_of` and :attr:`any_of`. After
    :class:`~oasresolve.parser.normalizer.CompositionNormalizer` runs those are
    empty, the merged result lives in :attr:`properties`/:attr:`required`, and
    the original branches are kept in :attr:`variants` for documentation.

    The ``dict`` fields are shared by every parent holding this node; treat
    them as read-only.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    kind: SchemaKind
    type: Optional[str] = None
    format: Optional[str] = None
    title: Optional[str] = None
    description: Optional[str] = None
    properties: dict[str, Union[ResolvedSchema, BackReference]] = Field(default_factory=dict)
    required: tuple[str, ...] = ()
    items: Optional[Union[ResolvedSchema, BackReference]] = None
    additional_properties: Optional[Union[bool, ResolvedSchema, BackReference]] = None
    enum: Optional[tuple[Any, ...]] = None
    constraints: dict[str, Any] = Field(default_factory=dict)
    nullable: bool = False
    read_only: bool = False
    write_only: bool = False
    deprecated: bool = False
    default: Any = None
    example: Any = None
    discriminator: Optional[Discriminator] = None
    not_: Optional[Union[ResolvedSchema, BackReference]] = Field(default=None, alias="not")
    all_of: tuple[Union[ResolvedSchema, BackReference], ...] = ()
    one_of: tuple[Union[ResolvedSchema, BackReference], ...] = ()
    any_of: tuple[Union[ResolvedSchema, BackReference], ...] = ()
    variants: tuple[Union[ResolvedSchema, BackReference], ...] = ()
    composition: tuple[str, ...] = ()
    extensions: dict[str, Any] = Field(default_factory=dict)
    name: Optional[str] = Field(default=None, description="Registry name, if registered")
    source: Optional[ReferenceKey] = Field(
        default=None, description="Key this schema was resolved from via $ref"
    )

    @property
    def is_composed(self) -> bool:
        """True while composition branches are still unmerged."""
        return bool(self.all_of or self.one_of or self.any_of)


SchemaNode = Union[ResolvedSchema, BackReference]

ResolvedSchema.model_rebuild()


# --- Operation tree ---


class HTTPMethod(str, enum.Enum):
    """HTTP methods recognised by OpenAPI 3.x path-item objects.

    Declaration order is the canonical visitation order of a pass.
    """

    GET = "get"
    POST = "post"
    PUT = "put"
    DELETE = "delete"
    PATCH = "patch"
    HEAD = "head"
    OPTIONS = "options"
    TRACE = "trace"


class ParameterLocation(str, enum.Enum):
    """Locations where an API parameter can appear, per OpenAPI ``in`` field."""

    QUERY = "query"
    HEADER = "header"
    PATH = "path"
    COOKIE = "cookie"


class ResolvedParameter(BaseModel):
    """A parameter with its schema resolved. Path parameters are always required."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    name: str
    location: ParameterLocation
    required: bool = False
    description: Optional[str] = None
    deprecated: bool = False
    schema_: Optional[SchemaNode] = Field(default=None, alias="schema")


class ResolvedMediaType(BaseModel):
    """One entry of a ``content`` map."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    media_type: str
    schema_: Optional[SchemaNode] = Field(default=None, alias="schema")


class ResolvedRequestBody(BaseModel):
    """Request body metadata plus its per-media-type schemas."""

    model_config = ConfigDict(frozen=True)

    required: bool = False
    description: Optional[str] = None
    content: tuple[ResolvedMediaType, ...] = ()


class ResolvedResponse(BaseModel):
    """A single response keyed by its status code."""

    model_config = ConfigDict(frozen=True)

    status_code: str
    description: Optional[str] = None
    content: tuple[ResolvedMediaType, ...] = ()


def _preferred_schema(content: tuple[ResolvedMediaType, ...]) -> Optional[SchemaNode]:
    """Pick ``application/json`` when present, else the first declared media type."""
    for media in content:
        if media.media_type == "application/json":
            return media.schema_
    return content[0].schema_ if content else None


class ResolvedOperation(BaseModel):
    """One path + method pair with everything resolved.

    The sole per-operation shape generators consume; no ``$ref`` remains
    anywhere below it.
    """

    model_config = ConfigDict(frozen=True)

    path: str
    method: HTTPMethod
    operation_id: Optional[str] = None
    summary: Optional[str] = None
    description: Optional[str] = None
    tags: tuple[str, ...] = ()
    deprecated: bool = False
    parameters: tuple[ResolvedParameter, ...] = ()
    request_body: Optional[ResolvedRequestBody] = None
    responses: dict[str, ResolvedResponse] = Field(default_factory=dict)

    @property
    def request_schema(self) -> Optional[SchemaNode]:
        """Schema of the preferred request-body media type, if any."""
        if self.request_body is None:
            return None
        return _preferred_schema(self.request_body.content)

    @property
    def response_schemas(self) -> dict[str, SchemaNode]:
        """Status code to preferred-media-type schema, skipping schemaless responses."""
        result: dict[str, SchemaNode] = {}
        for status, response in self.responses.items():
            schema = _preferred_schema(response.content)
            if schema is not None:
                result[status] = schema
        return result


class APIInfo(BaseModel):
    """API metadata extracted from the root document's *Info Object*."""

    model_config = ConfigDict(frozen=True)

    title: str
    version: str
    description: Optional[str] = None


class ServerInfo(BaseModel):
    """A server entry from the root document's ``servers`` array."""

    model_config = ConfigDict(frozen=True)

    url: str
    description: Optional[str] = None


class ResolvedSpecificationModel(BaseModel):
    """The single artifact handed to every downstream generator.

    Built once per pass and never mutated afterwards. ``schemas`` is the
    final registry snapshot: originally named components and promoted inline
    schemas share one namespace. It is stored as a read-only mapping; the
    ``dict`` fields of the schemas and operations inside it are shared with
    every other holder of the same node and must be treated as read-only too.

    See Also:
        :func:`~oasresolve.parser.extractor.resolve_specification`
    """

    model_config = ConfigDict(frozen=True)

    openapi_version: Optional[str] = None
    info: APIInfo
    servers: tuple[ServerInfo, ...] = ()
    documents: tuple[str, ...] = ()
    operations: tuple[ResolvedOperation, ...] = ()
    schemas: Mapping[str, SchemaNode] = Field(default_factory=lambda: MappingProxyType({}))

    @field_validator("schemas", mode="after")
    @classmethod
    def _freeze_schemas(cls, value: Mapping[str, SchemaNode]) -> Mapping[str, SchemaNode]:
        return MappingProxyType(dict(value))

    @property
    def schema_registry(self) -> Mapping[str, SchemaNode]:
        """Read-only view of :attr:`schemas`, in registry order."""
        return self.schemas

    def lookup(self, node: SchemaNode) -> ResolvedSchema:
        """Follow *node* through any back-references to a concrete schema.

        Raises:
            KeyError: If a back-reference names an entry that is not registered.
        """
        seen: set[str] = set()
        while isinstance(node, BackReference):
            if node.name in seen:
                raise KeyError(f"Back-reference loop through '{node.name}'")
            seen.add(node.name)
            node = self.schemas[node.name]
        return node

    def get_operation(self, operation_id: str) -> Optional[ResolvedOperation]:
        """Return the operation with *operation_id*, or ``None``."""
        for operation in self.operations:
            if operation.operation_id == operation_id:
                return operation
        return None
