"""The single namespace of named schemas for one resolution pass.

A :class:`SchemaRegistry` binds unique names to resolved schemas. Names are
handed out in two ways:

* :meth:`SchemaRegistry.name_for` -- for a :class:`~oasresolve.models.ReferenceKey`
  (root components are reserved first, so they keep their declared names;
  back-reference and discriminator targets are named on demand).
* :meth:`SchemaRegistry.promote` -- for anonymous schemas lifted out of
  operations by the :class:`~oasresolve.parser.promoter.InlineSchemaPromoter`.

Collisions never overwrite: the loser gets a numeric suffix (``Pet2``,
``Pet3`` ...). The registry is created explicitly per pass and passed by
reference; nothing about it is global.
"""

from __future__ import annotations

import logging
from typing import Iterator, Optional

from oasresolve.models import ReferenceKey, ResolvedSchema, SchemaNode
from oasresolve.parser.naming import preferred_name
from oasresolve.parser.serializer import fingerprint

logger = logging.getLogger(__name__)


class SchemaRegistry:
    """Name → schema map with deterministic collision handling."""

    def __init__(self) -> None:
        self._order: list[str] = []
        self._schemas: dict[str, SchemaNode] = {}
        self._names: dict[ReferenceKey, str] = {}
        self._keys: dict[str, ReferenceKey] = {}
        self._fingerprints: dict[str, str] = {}
        self._promoted: dict[str, str] = {}

    # ------------------------------------------------------------------ #
    # Mapping protocol
    # ------------------------------------------------------------------ #

    def __contains__(self, name: object) -> bool:
        return name in self._schemas or name in self._keys

    def __getitem__(self, name: str) -> SchemaNode:
        return self._schemas[name]

    def __iter__(self) -> Iterator[str]:
        return (name for name in self._order if name in self._schemas)

    def __len__(self) -> int:
        return len(self._schemas)

    def get(self, name: str) -> Optional[SchemaNode]:
        return self._schemas.get(name)

    def items(self) -> list[tuple[str, SchemaNode]]:
        return [(name, self._schemas[name]) for name in self]

    # ------------------------------------------------------------------ #
    # Key-bound names
    # ------------------------------------------------------------------ #

    def name_of(self, key: ReferenceKey) -> Optional[str]:
        """Return the name already assigned to *key*, if any."""
        return self._names.get(key)

    def name_for(self, key: ReferenceKey, preferred: Optional[str] = None) -> str:
        """Return the name of *key*, assigning a unique one on first use."""
        existing = self._names.get(key)
        if existing is not None:
            return existing
        name = self._unique(preferred or preferred_name(key))
        self._names[key] = name
        self._keys[name] = key
        self._order.append(name)
        logger.debug("Named %s as '%s'", key, name)
        return name

    def bind(self, key: ReferenceKey, schema: SchemaNode) -> SchemaNode:
        """Store *schema* as the entry for *key* and return the stored entry."""
        name = self.name_for(key)
        if isinstance(schema, ResolvedSchema) and schema.name != name:
            schema = schema.model_copy(update={"name": name})
        self._store(name, schema)
        return schema

    def unbound_keys(self) -> list[ReferenceKey]:
        """Named keys that do not have an entry yet."""
        return [key for key, name in self._names.items() if name not in self._schemas]

    # ------------------------------------------------------------------ #
    # Entries
    # ------------------------------------------------------------------ #

    def replace(self, name: str, schema: SchemaNode) -> None:
        """Swap the entry for an existing *name* (e.g. with its normalized form)."""
        if name not in self._schemas:
            raise KeyError(name)
        self._store(name, schema)

    def promote(self, candidate: str, schema: ResolvedSchema) -> ResolvedSchema:
        """Register an anonymous schema under *candidate* (or a suffixed variant).

        An earlier promoted schema with the same structure is reused, as is
        an entry already bound to the candidate (or a suffixed candidate)
        with identical structure.

        Returns:
            The registry entry now standing for *schema*.
        """
        digest = fingerprint(schema)
        existing = self._promoted.get(digest)
        if existing is not None:
            return self._entry(existing)

        name = candidate
        suffix = 1
        while name in self:
            if name in self._schemas and self.fingerprint_of(name) == digest:
                return self._entry(name)
            suffix += 1
            name = f"{candidate}{suffix}"

        entry = schema.model_copy(update={"name": name})
        self._order.append(name)
        self._store(name, entry)
        self._promoted[digest] = name
        logger.debug("Promoted inline schema as '%s'", name)
        return entry

    def fingerprint_of(self, name: str) -> str:
        if name not in self._fingerprints:
            self._fingerprints[name] = fingerprint(self._schemas[name])
        return self._fingerprints[name]

    def snapshot(self) -> dict[str, SchemaNode]:
        """Ordered plain-dict copy of every entry."""
        return dict(self.items())

    def _entry(self, name: str) -> ResolvedSchema:
        entry = self._schemas[name]
        if not isinstance(entry, ResolvedSchema):
            raise TypeError(f"Registry entry '{name}' is not a concrete schema")
        return entry

    def _store(self, name: str, schema: SchemaNode) -> None:
        self._schemas[name] = schema
        self._fingerprints.pop(name, None)

    def _unique(self, candidate: str) -> str:
        name = candidate
        suffix = 1
        while name in self:
            suffix += 1
            name = f"{candidate}{suffix}"
        return name
