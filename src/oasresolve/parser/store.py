"""Load, parse, and cache document trees keyed by canonical path.

The :class:`DocumentStore` is the only component that touches document
contents on disk. Every path goes through the
:class:`~oasresolve.parser.sandbox.PathSandboxGuard` first, so a reference
that escapes the sandbox fails before any read is attempted.

Parsed documents are frozen on load (see :func:`freeze`): mappings become
read-only :class:`~types.MappingProxyType` views and sequences become tuples,
so nothing downstream can mutate the raw tree it resolves against. Mapping
keys are coerced to ``str`` because YAML parses unquoted status codes such
as ``200:`` as integers, and JSON pointers address keys as strings.

Public names:

* :class:`DocumentStore` -- the cache.
* :func:`parse_content` -- JSON-then-YAML parsing with a format hint.
* :func:`validate_openapi_version` -- accept OpenAPI 3.x roots only.
* :func:`freeze` / :func:`thaw` -- convert between plain and frozen trees.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from types import MappingProxyType
from typing import Any, Iterable, Mapping, Optional

import yaml

from oasresolve.exceptions import DocumentNotFoundError, MalformedDocumentError
from oasresolve.parser.sandbox import PathLike, PathSandboxGuard

logger = logging.getLogger(__name__)

RawNode = Any


def freeze(node: Any) -> RawNode:
    """Return an immutable copy of a parsed JSON/YAML tree."""
    if isinstance(node, Mapping):
        return MappingProxyType({str(key): freeze(value) for key, value in node.items()})
    if isinstance(node, (list, tuple)):
        return tuple(freeze(item) for item in node)
    return node


def thaw(node: RawNode) -> Any:
    """Return a plain ``dict``/``list`` copy of a frozen tree."""
    if isinstance(node, Mapping):
        return {key: thaw(value) for key, value in node.items()}
    if isinstance(node, tuple):
        return [thaw(item) for item in node]
    return node


class DocumentStore:
    """Cache of parsed documents for one resolution pass.

    Args:
        guard: Sandbox guard applied to every path before it is read.
        allowed_extensions: Accepted file suffixes (case-insensitive). An
            empty collection accepts any suffix and relies on content
            detection.
        max_document_bytes: Documents larger than this are rejected.
    """

    def __init__(
        self,
        guard: PathSandboxGuard,
        allowed_extensions: Iterable[str] = (".yaml", ".yml", ".json"),
        max_document_bytes: int = 100 * 1024 * 1024,
    ) -> None:
        self._guard = guard
        self._allowed = frozenset(ext.lower() for ext in allowed_extensions)
        self._max_bytes = max_document_bytes
        self._documents: dict[str, RawNode] = {}

    @property
    def guard(self) -> PathSandboxGuard:
        return self._guard

    @property
    def document_ids(self) -> tuple[str, ...]:
        """Loaded document ids in load order."""
        return tuple(self._documents)

    def __contains__(self, document_id: object) -> bool:
        return document_id in self._documents

    def __len__(self) -> int:
        return len(self._documents)

    def load(self, path: PathLike, base_document: Optional[str] = None) -> str:
        """Load *path* (relative to *base_document*) and return its ``DocumentId``.

        Already-loaded documents are returned from the cache without any
        filesystem access beyond path canonicalization.

        Raises:
            PathTraversalError: If the path escapes the sandbox.
            DocumentNotFoundError: If the file does not exist or cannot be read.
            MalformedDocumentError: If the file is too large, has a rejected
                extension, or cannot be parsed into a mapping.
        """
        document_id = self._guard.resolve(base_document, path)
        if document_id in self._documents:
            return document_id

        file_path = Path(document_id)
        suffix = file_path.suffix.lower()
        if self._allowed and suffix not in self._allowed:
            raise MalformedDocumentError(
                f"Unsupported document type '{suffix or file_path.name}': {document_id} "
                f"(allowed: {', '.join(sorted(self._allowed))})"
            )
        if not file_path.is_file():
            raise DocumentNotFoundError(f"Document not found: {document_id}")

        size = file_path.stat().st_size
        if size > self._max_bytes:
            raise MalformedDocumentError(
                f"Document {document_id} is {size} bytes, "
                f"larger than the {self._max_bytes} byte limit"
            )

        content = self._read(file_path)
        if not content.strip():
            raise MalformedDocumentError(f"Document is empty: {document_id}")

        hint = ""
        if suffix == ".json":
            hint = "json"
        elif suffix in (".yaml", ".yml"):
            hint = "yaml"

        try:
            parsed = parse_content(content, hint=hint)
        except MalformedDocumentError as exc:
            raise MalformedDocumentError(f"{document_id}: {exc}") from exc

        self._documents[document_id] = freeze(parsed)
        logger.debug("Loaded document %s (%d bytes)", document_id, size)
        return document_id

    def get(self, document_id: str) -> RawNode:
        """Return the frozen tree of a loaded document.

        Raises:
            DocumentNotFoundError: If *document_id* was never loaded.
        """
        try:
            return self._documents[document_id]
        except KeyError:
            raise DocumentNotFoundError(f"Document not loaded: {document_id}") from None

    @staticmethod
    def _read(file_path: Path) -> str:
        try:
            return file_path.read_text(encoding="utf-8")
        except OSError as exc:
            raise DocumentNotFoundError(f"Failed to read document {file_path}: {exc}") from exc
        except UnicodeDecodeError as exc:
            raise MalformedDocumentError(f"Document {file_path} is not UTF-8: {exc}") from exc


def parse_content(content: str, hint: str = "") -> dict[str, Any]:
    """Parse content as JSON or YAML.

    Tries JSON first (unless hint is 'yaml'), then falls back to YAML.
    Valid JSON is also valid YAML, but JSON parsing is stricter and faster.

    Args:
        content: The raw string content.
        hint: Optional format hint ('json' or 'yaml').

    Returns:
        The parsed dictionary.

    Raises:
        MalformedDocumentError: If the content cannot be parsed as either
            format, or does not parse to a mapping.
    """
    json_error: Exception | None = None
    yaml_error: Exception | None = None

    if hint != "yaml":
        try:
            result = json.loads(content)
            if not isinstance(result, dict):
                raise MalformedDocumentError(
                    "Document must be a JSON/YAML object (got "
                    f"{type(result).__name__})"
                )
            return result
        except json.JSONDecodeError as exc:
            json_error = exc
            if hint == "json":
                raise MalformedDocumentError(f"Invalid JSON: {exc}") from exc

    try:
        result = yaml.safe_load(content)
        if not isinstance(result, dict):
            raise MalformedDocumentError(
                "Document must be a JSON/YAML object (got "
                f"{type(result).__name__ if result is not None else 'empty document'})"
            )
        return result
    except yaml.YAMLError as exc:
        yaml_error = exc

    msg = "Failed to parse document as JSON or YAML"
    if json_error:
        msg += f"\n  JSON error: {json_error}"
    if yaml_error:
        msg += f"\n  YAML error: {yaml_error}"
    raise MalformedDocumentError(msg)


def validate_openapi_version(document: Mapping[str, Any]) -> str:
    """Validate and return the OpenAPI version string of a root document.

    Args:
        document: The parsed root document.

    Returns:
        The OpenAPI version string (e.g., '3.0.3', '3.1.0').

    Raises:
        MalformedDocumentError: If the version is missing, unsupported, or
            indicates Swagger 2.x.
    """
    if "swagger" in document:
        raise MalformedDocumentError(
            f"Swagger {document['swagger']} is not supported. "
            "Only OpenAPI 3.x documents can be resolved."
        )

    openapi_version = document.get("openapi")
    if openapi_version is None:
        raise MalformedDocumentError(
            "Missing 'openapi' field. Is this an OpenAPI 3.x document?"
        )

    version_str = str(openapi_version)
    if version_str.startswith("3."):
        return version_str

    raise MalformedDocumentError(
        f"Unsupported OpenAPI version: {version_str}. Only OpenAPI 3.x is supported."
    )
