"""Resolve ``$ref`` pointers into a cycle-safe graph of resolved schemas.

The :class:`GraphResolver` walks raw document nodes and produces
:class:`~oasresolve.models.ResolvedSchema` objects. Every ``$ref`` is turned
into a :class:`~oasresolve.models.ReferenceKey`; each key is resolved once
and cached, so two spellings of the same target share one result.

Cycles are detected with an explicit *active chain*: the set of keys whose
resolution is still on the call stack (state ``IN_PROGRESS``). Meeting one
of those keys again yields a :class:`~oasresolve.models.BackReference`
instead of recursing, so self-referential schemas (trees, linked lists,
``allOf: [A]`` inside ``A``) resolve in time proportional to the document
size. A key whose resolution comes back as a back-reference to *itself*
is a chain of bare ``$ref`` aliases that never reaches a schema; that is
rejected as malformed.

``$ref`` siblings are ignored, as in OpenAPI 3.0.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, Optional

from pydantic import ValidationError

from oasresolve.exceptions import MalformedDocumentError, MalformedPointerError
from oasresolve.models import (
    BackReference,
    Discriminator,
    ReferenceKey,
    ResolutionState,
    ResolvedSchema,
    SchemaKind,
    SchemaNode,
)
from oasresolve.parser.naming import is_component_pointer
from oasresolve.parser.pointer import PointerResolver
from oasresolve.parser.registry import SchemaRegistry
from oasresolve.parser.store import RawNode, thaw

logger = logging.getLogger(__name__)

CONSTRAINT_KEYWORDS = (
    "multipleOf",
    "maximum",
    "exclusiveMaximum",
    "minimum",
    "exclusiveMinimum",
    "maxLength",
    "minLength",
    "pattern",
    "maxItems",
    "minItems",
    "uniqueItems",
    "maxProperties",
    "minProperties",
    "const",
    "contentEncoding",
    "contentMediaType",
)

_COMPOSITION_KEYWORDS = (("allOf", "all_of"), ("oneOf", "one_of"), ("anyOf", "any_of"))


def _kind_for_type(schema_type: Optional[str]) -> SchemaKind:
    if schema_type == "object":
        return SchemaKind.OBJECT
    if schema_type == "array":
        return SchemaKind.ARRAY
    return SchemaKind.SCALAR


class GraphResolver:
    """Turn raw schema nodes into resolved schemas for one pass.

    Args:
        pointers: Resolver used to compute keys and fetch raw targets.
        registry: Registry that names back-reference and component targets.
    """

    def __init__(self, pointers: PointerResolver, registry: SchemaRegistry) -> None:
        self._pointers = pointers
        self._registry = registry
        self._states: dict[ReferenceKey, ResolutionState] = {}
        self._cache: dict[ReferenceKey, SchemaNode] = {}

    @property
    def registry(self) -> SchemaRegistry:
        return self._registry

    def state_of(self, key: ReferenceKey) -> ResolutionState:
        return self._states.get(key, ResolutionState.UNVISITED)

    def cached(self, key: ReferenceKey) -> Optional[SchemaNode]:
        """Return the resolved result for *key* if it has been resolved."""
        return self._cache.get(key)

    def resolve(
        self,
        raw: RawNode,
        document_id: str,
        active_chain: Optional[set[ReferenceKey]] = None,
    ) -> SchemaNode:
        """Resolve one raw schema node found in *document_id*.

        Args:
            raw: The raw node (a mapping, or a boolean schema).
            document_id: Document the node lives in; relative refs inside it
                resolve against this document.
            active_chain: Keys currently being resolved further up the call
                stack. ``None`` starts a fresh chain.

        Returns:
            A :class:`ResolvedSchema`, or a :class:`BackReference` when *raw*
            is a ``$ref`` to a key on the active chain.
        """
        if active_chain is None:
            active_chain = set()
        if isinstance(raw, bool):
            return self._boolean_schema(raw)
        if not isinstance(raw, Mapping):
            raise MalformedDocumentError(
                f"Schema in {document_id} must be a mapping, got {type(raw).__name__}"
            )
        if "$ref" in raw:
            key = self._pointers.key_for(raw["$ref"], document_id)
            return self.resolve_key(key, active_chain)
        try:
            return self._build(raw, document_id, active_chain)
        except ValidationError as exc:
            raise MalformedDocumentError(f"Invalid schema in {document_id}: {exc}") from exc

    def resolve_reference(
        self,
        ref: str,
        document_id: str,
        active_chain: Optional[set[ReferenceKey]] = None,
    ) -> SchemaNode:
        """Resolve a ``$ref`` string as if it appeared in *document_id*."""
        return self.resolve_key(self._pointers.key_for(ref, document_id), active_chain)

    def resolve_key(
        self,
        key: ReferenceKey,
        active_chain: Optional[set[ReferenceKey]] = None,
    ) -> SchemaNode:
        """Resolve the schema addressed by *key*, honouring the active chain."""
        if active_chain is None:
            active_chain = set()

        if key in active_chain:
            name = self._registry.name_for(key)
            logger.debug("Cycle at %s, emitting back-reference to '%s'", key, name)
            return BackReference(key=key, name=name)
        if self._states.get(key) is ResolutionState.RESOLVED:
            return self._cache[key]

        raw = self._pointers.fetch(key)
        self._states[key] = ResolutionState.IN_PROGRESS
        active_chain.add(key)
        try:
            result = self.resolve(raw, key.document, active_chain)
        finally:
            active_chain.discard(key)

        if isinstance(result, BackReference):
            if result.key == key:
                raise MalformedPointerError(
                    f"$ref '{key}' is a circular alias that never reaches a schema"
                )
        else:
            name = self._registry.name_of(key)
            if name is None and is_component_pointer(key.pointer):
                name = self._registry.name_for(key)
            if name is not None:
                result = result.model_copy(update={"source": key, "name": name})
            elif result.source is None:
                result = result.model_copy(update={"source": key})

        self._states[key] = ResolutionState.RESOLVED
        self._cache[key] = result
        return result

    def finish(self) -> None:
        """Resolve and bind every key the registry has named but not yet bound.

        Binding can name further keys (a discriminator mapping inside a newly
        resolved target, say), so this repeats until nothing is pending.
        """
        pending = self._registry.unbound_keys()
        while pending:
            for key in pending:
                self._registry.bind(key, self.resolve_key(key))
            pending = self._registry.unbound_keys()

    # ------------------------------------------------------------------ #
    # Node construction
    # ------------------------------------------------------------------ #

    def _boolean_schema(self, value: bool) -> ResolvedSchema:
        if value:
            return ResolvedSchema(kind=SchemaKind.SCALAR)
        return ResolvedSchema(kind=SchemaKind.SCALAR, not_=ResolvedSchema(kind=SchemaKind.SCALAR))

    def _build(
        self,
        raw: Mapping[str, Any],
        document_id: str,
        chain: set[ReferenceKey],
    ) -> ResolvedSchema:
        schema_type, nullable, type_branches = self._split_type(raw, document_id)

        raw_properties = raw.get("properties", {})
        if not isinstance(raw_properties, Mapping):
            raise MalformedDocumentError(f"'properties' in {document_id} must be a mapping")
        properties = {
            prop: self.resolve(sub, document_id, chain) for prop, sub in raw_properties.items()
        }

        raw_required = raw.get("required", ())
        required: tuple[str, ...] = ()
        if isinstance(raw_required, tuple):
            required = tuple(dict.fromkeys(str(name) for name in raw_required))
        elif not isinstance(raw_required, bool):
            raise MalformedDocumentError(f"'required' in {document_id} must be a list")

        items = self._resolve_items(raw.get("items"), document_id, chain)

        additional: Optional[bool | SchemaNode] = None
        raw_additional = raw.get("additionalProperties")
        if isinstance(raw_additional, bool):
            additional = raw_additional
        elif raw_additional is not None:
            additional = self.resolve(raw_additional, document_id, chain)

        branches: dict[str, tuple[SchemaNode, ...]] = {}
        for keyword, field in _COMPOSITION_KEYWORDS:
            raw_branches = raw.get(keyword)
            if raw_branches is None:
                continue
            if not isinstance(raw_branches, tuple):
                raise MalformedDocumentError(f"'{keyword}' in {document_id} must be a list")
            branches[field] = tuple(self.resolve(b, document_id, chain) for b in raw_branches)
        if type_branches:
            branches["any_of"] = type_branches + branches.get("any_of", ())

        negated = None
        if "not" in raw:
            negated = self.resolve(raw["not"], document_id, chain)

        if branches:
            kind = SchemaKind.COMPOSED
        elif schema_type == "object" or properties or isinstance(additional, (ResolvedSchema, BackReference)):
            kind = SchemaKind.OBJECT
        elif schema_type == "array" or items is not None:
            kind = SchemaKind.ARRAY
        else:
            kind = SchemaKind.SCALAR

        enum = raw.get("enum")
        return ResolvedSchema(
            kind=kind,
            type=schema_type,
            format=raw.get("format"),
            title=raw.get("title"),
            description=raw.get("description"),
            properties=properties,
            required=required,
            items=items,
            additional_properties=additional,
            enum=tuple(thaw(value) for value in enum) if isinstance(enum, tuple) else None,
            constraints={k: thaw(raw[k]) for k in CONSTRAINT_KEYWORDS if k in raw},
            nullable=nullable,
            read_only=bool(raw.get("readOnly", False)),
            write_only=bool(raw.get("writeOnly", False)),
            deprecated=bool(raw.get("deprecated", False)),
            default=thaw(raw.get("default")),
            example=thaw(raw.get("example")),
            discriminator=self._discriminator(raw.get("discriminator"), document_id),
            not_=negated,
            extensions={k: thaw(v) for k, v in raw.items() if k.startswith("x-")},
            **branches,
        )

    def _split_type(
        self, raw: Mapping[str, Any], document_id: str
    ) -> tuple[Optional[str], bool, tuple[SchemaNode, ...]]:
        """Handle OpenAPI 3.1 type arrays: ``[string, "null"]`` is a nullable string."""
        raw_type = raw.get("type")
        nullable = bool(raw.get("nullable", False))
        if raw_type is None or isinstance(raw_type, str):
            return raw_type, nullable, ()
        if not isinstance(raw_type, tuple) or not all(isinstance(t, str) for t in raw_type):
            raise MalformedDocumentError(f"Invalid 'type' {thaw(raw_type)!r} in {document_id}")

        types = [t for t in raw_type if t != "null"]
        nullable = nullable or len(types) != len(raw_type)
        if not types:
            return "null", nullable, ()
        if len(types) == 1:
            return types[0], nullable, ()
        return None, nullable, tuple(ResolvedSchema(kind=_kind_for_type(t), type=t) for t in types)

    def _resolve_items(
        self, raw_items: Any, document_id: str, chain: set[ReferenceKey]
    ) -> Optional[SchemaNode]:
        if raw_items is None:
            return None
        if isinstance(raw_items, tuple):
            if len(raw_items) != 1:
                raise MalformedDocumentError(
                    f"Tuple-form 'items' with {len(raw_items)} entries is not supported ({document_id})"
                )
            raw_items = raw_items[0]
        return self.resolve(raw_items, document_id, chain)

    def _discriminator(self, raw: Any, document_id: str) -> Optional[Discriminator]:
        """Convert a discriminator, turning mapping refs into registry names."""
        if not isinstance(raw, Mapping) or "propertyName" not in raw:
            return None
        mapping: dict[str, str] = {}
        for value, target in (raw.get("mapping") or {}).items():
            target = str(target)
            if "#" in target or "/" in target or target.endswith((".yaml", ".yml", ".json")):
                key = self._pointers.key_for(target, document_id)
            else:
                key = ReferenceKey(document=document_id, pointer=("components", "schemas", target))
            mapping[value] = self._registry.name_for(key)
        return Discriminator(property_name=str(raw["propertyName"]), mapping=mapping)
