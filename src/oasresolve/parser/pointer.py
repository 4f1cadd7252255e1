"""Turn ``$ref`` strings into canonical reference keys and raw target nodes.

A reference has an optional document part and an optional fragment::

    #/components/schemas/Pet              same document
    schemas/pet.yaml#/Pet                 sibling file, pointer inside it
    schemas/pet.yaml                      whole sibling file
    file:///abs/path/common.json#/Error   absolute file URI

The fragment is a JSON Pointer (RFC 6901) inside a URI fragment, so it is
percent-decoded first and then ``~1``/``~0`` escapes are undone per segment.
External document parts go through the
:class:`~oasresolve.parser.store.DocumentStore` (and therefore the sandbox
guard). Remote references are rejected.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from typing import Any
from urllib.parse import unquote, urlsplit

from oasresolve.exceptions import MalformedPointerError, ReferenceNotFoundError
from oasresolve.models import ReferenceKey
from oasresolve.parser.store import DocumentStore, RawNode

_INVALID_ESCAPE = re.compile(r"~(?![01])")
_ARRAY_INDEX = re.compile(r"^(0|[1-9][0-9]*)$")


def decode_pointer(fragment: str) -> tuple[str, ...]:
    """Decode a JSON pointer (without the leading ``#``) into segments.

    ``""`` addresses the whole document.

    Raises:
        MalformedPointerError: If the pointer does not start with ``/`` or
            contains an invalid ``~`` escape.
    """
    if fragment == "":
        return ()
    if not fragment.startswith("/"):
        raise MalformedPointerError(
            f"Invalid JSON pointer '{fragment}': must be empty or start with '/'"
        )
    segments = []
    for raw in fragment[1:].split("/"):
        if _INVALID_ESCAPE.search(raw):
            raise MalformedPointerError(
                f"Invalid JSON pointer '{fragment}': bad escape in segment '{raw}'"
            )
        segments.append(raw.replace("~1", "/").replace("~0", "~"))
    return tuple(segments)


def encode_pointer(segments: tuple[str, ...]) -> str:
    """Inverse of :func:`decode_pointer`."""
    if not segments:
        return ""
    return "/" + "/".join(s.replace("~", "~0").replace("/", "~1") for s in segments)


def parse_reference(ref: Any) -> tuple[str, tuple[str, ...]]:
    """Split a ``$ref`` value into ``(document_part, pointer_segments)``.

    An empty document part means "the current document".

    Raises:
        MalformedPointerError: If *ref* is not a non-empty string, uses a
            remote scheme, or carries an invalid pointer.
    """
    if not isinstance(ref, str) or not ref.strip():
        raise MalformedPointerError(f"Invalid $ref value: {ref!r}")

    document_part, _, fragment = ref.partition("#")
    parts = urlsplit(document_part)
    # one-letter schemes are Windows drive letters, not URLs
    if parts.scheme and len(parts.scheme) > 1:
        if parts.scheme.lower() != "file":
            raise MalformedPointerError(
                f"Remote reference '{ref}' is not supported; only local files can be referenced"
            )
        document_part = parts.path
    return unquote(document_part), decode_pointer(unquote(fragment))


def walk(node: RawNode, pointer: tuple[str, ...], ref: str) -> RawNode:
    """Follow *pointer* inside *node*.

    Raises:
        ReferenceNotFoundError: If any segment does not exist.
    """
    current = node
    for segment in pointer:
        if isinstance(current, Mapping):
            if segment not in current:
                raise ReferenceNotFoundError(
                    f"Cannot resolve $ref '{ref}': key '{segment}' not found"
                )
            current = current[segment]
        elif isinstance(current, tuple):
            if not _ARRAY_INDEX.match(segment) or int(segment) >= len(current):
                raise ReferenceNotFoundError(
                    f"Cannot resolve $ref '{ref}': invalid array index '{segment}'"
                )
            current = current[int(segment)]
        else:
            raise ReferenceNotFoundError(
                f"Cannot resolve $ref '{ref}': cannot navigate into {type(current).__name__}"
            )
    return current


class PointerResolver:
    """Resolve ``$ref`` strings against documents held by a store."""

    def __init__(self, store: DocumentStore) -> None:
        self._store = store

    @property
    def store(self) -> DocumentStore:
        return self._store

    def key_for(self, ref: Any, current_document: str) -> ReferenceKey:
        """Compute the canonical key of *ref*, loading its document if needed."""
        document_part, pointer = parse_reference(ref)
        if document_part:
            document_id = self._store.load(document_part, base_document=current_document)
        else:
            document_id = current_document
        return ReferenceKey(document=document_id, pointer=pointer)

    def resolve(self, ref: Any, current_document: str) -> tuple[ReferenceKey, RawNode]:
        """Return ``(key, raw_target)`` for *ref* seen from *current_document*.

        Raises:
            MalformedPointerError: For syntactically invalid references.
            ReferenceNotFoundError: If the pointer does not exist.
            PathTraversalError: If an external document escapes the sandbox.
            DocumentNotFoundError: If an external document is missing.
            MalformedDocumentError: If an external document cannot be parsed.
        """
        key = self.key_for(ref, current_document)
        return key, walk(self._store.get(key.document), key.pointer, str(ref))

    def fetch(self, key: ReferenceKey) -> RawNode:
        """Return the raw node addressed by an already computed *key*."""
        return walk(self._store.get(key.document), key.pointer, str(key))
