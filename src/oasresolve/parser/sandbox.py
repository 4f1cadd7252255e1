"""Keep external ``$ref`` targets inside a configured root directory.

:class:`PathSandboxGuard` is consulted by the
:class:`~oasresolve.parser.store.DocumentStore` before every read. It turns a
relative or absolute reference path into a canonical absolute path and
rejects anything that lands outside the sandbox root, including escapes via
``..`` segments and via symlinks. The check is purely lexical plus
``Path.resolve``; the target file is never opened here, so a rejected path
is never read.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Iterable, Optional, Union

from oasresolve.exceptions import DocumentNotFoundError, PathTraversalError

logger = logging.getLogger(__name__)

PathLike = Union[str, "os.PathLike[str]"]


class PathSandboxGuard:
    """Canonicalize document paths and enforce the sandbox root.

    Args:
        root: Directory every loaded document must live under.
        search_paths: Extra directories (inside *root*) tried in order when
            a reference does not exist relative to its base document.
    """

    def __init__(self, root: PathLike, search_paths: Iterable[PathLike] = ()) -> None:
        self._root = Path(root).resolve()
        self._search_paths = tuple(self._canonical(Path(p)) for p in search_paths)
        for search_path in self._search_paths:
            if not self.contains(search_path):
                raise PathTraversalError(
                    f"Search path {search_path} is outside the sandbox root {self._root}"
                )

    @property
    def root(self) -> Path:
        """The canonical sandbox root."""
        return self._root

    @property
    def search_paths(self) -> tuple[Path, ...]:
        return self._search_paths

    def contains(self, path: Path) -> bool:
        """Return True when canonical *path* is the root or one of its descendants."""
        try:
            path.relative_to(self._root)
        except ValueError:
            return False
        return True

    def resolve(self, base_document: Optional[PathLike], path: PathLike) -> str:
        """Return the canonical absolute path for *path* seen from *base_document*.

        Relative paths are joined to the directory of *base_document*, or to
        the working directory when there is no base (the root document).

        Args:
            base_document: Canonical path of the referencing document, or
                ``None``.
            path: The path as written in the reference.

        Returns:
            The canonical absolute path as a string (a ``DocumentId``).

        Raises:
            DocumentNotFoundError: If *path* is empty.
            PathTraversalError: If the canonical path leaves the sandbox.
        """
        text = os.fspath(path)
        if not text:
            raise DocumentNotFoundError("Empty document path")
        if "\x00" in text:
            raise PathTraversalError(f"Document path contains a NUL byte: {text!r}")

        base_dir = Path(base_document).parent if base_document is not None else Path.cwd()
        raw = Path(text)
        candidate = self._canonical(raw if raw.is_absolute() else base_dir / raw)
        self._check(candidate, text)

        if candidate.exists() or raw.is_absolute():
            return str(candidate)

        for search_path in self._search_paths:
            alternative = self._canonical(search_path / raw)
            if not self.contains(alternative):
                logger.debug("Skipping search candidate %s outside sandbox", alternative)
                continue
            if alternative.exists():
                logger.debug("Resolved %s via search path %s", text, search_path)
                return str(alternative)

        return str(candidate)

    def _check(self, candidate: Path, original: str) -> None:
        if not self.contains(candidate):
            raise PathTraversalError(
                f"Reference '{original}' resolves to {candidate}, "
                f"outside the sandbox root {self._root}"
            )

    @staticmethod
    def _canonical(path: Path) -> Path:
        """Collapse ``.``/``..`` lexically, then follow symlinks."""
        return Path(os.path.normpath(os.path.abspath(path))).resolve()
