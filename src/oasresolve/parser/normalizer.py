"""Flatten ``allOf``/``oneOf``/``anyOf`` into one canonical property set.

The merge walks contributions in a fixed order: ``allOf`` branches, then
``oneOf``, then ``anyOf``, and finally the composing schema's own sibling
``properties``/``required``. Properties are last-writer-wins and
``required`` is an ordered union, so the composing schema always has the
last word.

``oneOf``/``anyOf`` are merged with the same rule; the original branches are
kept in :attr:`~oasresolve.models.ResolvedSchema.variants` for
documentation.

A :class:`~oasresolve.models.BackReference` branch is merged through its
registry entry, fetched with the ``lookup`` callable. Which member of a
cycle comes back as a back-reference depends on which schema was resolved
first, so merging through the entry makes the result the same whatever the
declaration order. Without a lookup, or when the target is already being
expanded further up (``A: {allOf: [A]}``), the branch is recorded in
``variants`` only.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Optional

from oasresolve.exceptions import CompositionConflictError
from oasresolve.models import BackReference, ResolvedSchema, SchemaKind, SchemaNode

logger = logging.getLogger(__name__)

# Registry name -> entry as it was before normalization.
Lookup = Callable[[str], Optional[SchemaNode]]

# Facets taken from the schema itself first, else from the last branch that sets them.
_INHERITED_FACETS = (
    "type",
    "format",
    "enum",
    "discriminator",
    "additional_properties",
    "items",
    "default",
    "example",
)


class CompositionNormalizer:
    """Normalize resolved schema graphs; one instance per pass.

    Results are memoized by object identity, so a sub-graph shared between
    several parents (every use of a component, say) is normalized once and
    every parent ends up holding the same normalized object.

    Args:
        lookup: Returns the un-normalized registry entry for a name. Needed
            to merge back-reference branches.
    """

    def __init__(self, lookup: Optional[Lookup] = None) -> None:
        self._lookup = lookup
        # id -> (original, normalized); the original is held so its id stays unique.
        self._memo: dict[int, tuple[ResolvedSchema, ResolvedSchema]] = {}
        self._active: set[int] = set()
        self._expanding: set[str] = set()

    def normalize(self, node: SchemaNode) -> SchemaNode:
        """Return the normalized form of *node*.

        Back-references are returned as they are. Normalizing an already
        normalized schema yields an equal schema.

        Raises:
            CompositionConflictError: If a required name has no property in
                any merged contribution and every branch was merged.
        """
        if isinstance(node, BackReference):
            return node
        hit = self._memo.get(id(node))
        if hit is not None and hit[0] is node:
            return hit[1]
        if id(node) in self._active:
            return self._reenter(node)

        self._active.add(id(node))
        try:
            result = self._normalize(node)
        finally:
            self._active.discard(id(node))
        self._memo[id(node)] = (node, result)
        return result

    def _reenter(self, node: ResolvedSchema) -> SchemaNode:
        """Handle a node reached again while its own normalization is running.

        This only happens below an expanded back-reference. A named schema
        becomes a back-reference to itself; an anonymous one is normalized
        again without memoizing, down to the next named schema.
        """
        if node.name is not None and node.source is not None:
            return BackReference(key=node.source, name=node.name)
        return self._normalize(node)

    def _normalize_optional(self, node: Any) -> Any:
        if node is None or isinstance(node, bool):
            return node
        return self.normalize(node)

    def _normalize(self, node: ResolvedSchema) -> ResolvedSchema:
        children = {
            "properties": {prop: self.normalize(sub) for prop, sub in node.properties.items()},
            "items": self._normalize_optional(node.items),
            "additional_properties": self._normalize_optional(node.additional_properties),
            "not_": self._normalize_optional(node.not_),
        }
        if not node.is_composed:
            return node.model_copy(update=children)

        own = node.model_copy(update=children)
        groups = (
            ("allOf", tuple(self.normalize(b) for b in node.all_of)),
            ("oneOf", tuple(self.normalize(b) for b in node.one_of)),
            ("anyOf", tuple(self.normalize(b) for b in node.any_of)),
        )
        merged = tuple(
            (keyword, tuple(self._expand(b) for b in group)) for keyword, group in groups
        )
        return self._merge(own, groups, merged)

    def _expand(self, branch: SchemaNode) -> Optional[ResolvedSchema]:
        """Return the schema *branch* contributes to a merge, if any."""
        if isinstance(branch, ResolvedSchema):
            return branch
        if self._lookup is None or branch.name in self._expanding:
            return None
        target = self._lookup(branch.name)
        if not isinstance(target, ResolvedSchema):
            return None

        self._expanding.add(branch.name)
        try:
            if id(target) in self._active:
                expanded = self._normalize(target)
            else:
                expanded = self.normalize(target)
        finally:
            self._expanding.discard(branch.name)
        logger.debug("Merging back-reference branch '%s' through its registry entry", branch.name)
        return expanded if isinstance(expanded, ResolvedSchema) else None

    def _merge(
        self,
        own: ResolvedSchema,
        groups: tuple[tuple[str, tuple[SchemaNode, ...]], ...],
        merged: tuple[tuple[str, tuple[Optional[ResolvedSchema], ...]], ...],
    ) -> ResolvedSchema:
        concrete = [part for _, group in merged for part in group if part is not None]
        all_merged = all(part is not None for _, group in merged for part in group)
        contributions = [*concrete, own]

        properties: dict[str, SchemaNode] = {}
        required: dict[str, None] = {}
        constraints: dict[str, Any] = {}
        extensions: dict[str, Any] = {}
        for part in contributions:
            properties.update(part.properties)
            required.update(dict.fromkeys(part.required))
            constraints.update(part.constraints)
            extensions.update(part.extensions)

        facets: dict[str, Any] = {}
        for facet in _INHERITED_FACETS:
            value = getattr(own, facet)
            if value is None:
                value = next(
                    (getattr(b, facet) for b in reversed(concrete) if getattr(b, facet) is not None),
                    None,
                )
            facets[facet] = value

        if all_merged:
            missing = [name for name in required if name not in properties]
            if missing:
                raise CompositionConflictError(
                    f"Composed schema{self._label(own)} requires {', '.join(missing)} "
                    "but no branch defines a property for it"
                )

        variants = tuple(b for _, group in groups for b in group)
        composition = tuple(keyword for keyword, group in groups if group)
        kind = self._merged_kind(properties, facets["type"], merged, concrete)
        logger.debug(
            "Merged %s%s into %d properties", "/".join(composition), self._label(own), len(properties)
        )
        return own.model_copy(
            update={
                "kind": kind,
                "properties": properties,
                "required": tuple(required),
                "constraints": constraints,
                "extensions": extensions,
                "nullable": own.nullable or any(b.nullable for b in concrete),
                "all_of": (),
                "one_of": (),
                "any_of": (),
                "variants": variants,
                "composition": composition,
                **facets,
            }
        )

    @staticmethod
    def _merged_kind(
        properties: dict[str, SchemaNode],
        merged_type: Optional[str],
        merged: tuple[tuple[str, tuple[Optional[ResolvedSchema], ...]], ...],
        concrete: list[ResolvedSchema],
    ) -> SchemaKind:
        if properties or merged_type == "object":
            return SchemaKind.OBJECT
        alternatives = [
            b for keyword, group in merged if keyword != "allOf" for b in group if b is not None
        ]
        if len({b.type for b in alternatives}) > 1:
            return SchemaKind.COMPOSED
        if merged_type == "array":
            return SchemaKind.ARRAY
        if not concrete and merged_type is None:
            return SchemaKind.COMPOSED
        return SchemaKind.SCALAR

    @staticmethod
    def _label(schema: ResolvedSchema) -> str:
        return f" '{schema.name}'" if schema.name else ""
