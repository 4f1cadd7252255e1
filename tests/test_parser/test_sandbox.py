"""Tests for oasresolve.parser.sandbox."""

from __future__ import annotations

import os
from pathlib import Path

import pytest

from oasresolve.exceptions import DocumentNotFoundError, PathTraversalError
from oasresolve.parser.sandbox import PathSandboxGuard


@pytest.fixture
def specs(tmp_path: Path) -> Path:
    """A ``specs`` sandbox with an ``api.yaml`` root and a schema file."""
    root = tmp_path / "specs"
    (root / "schemas").mkdir(parents=True)
    (root / "api.yaml").write_text("openapi: 3.0.3\n", encoding="utf-8")
    (root / "schemas" / "pet.yaml").write_text("Pet: {}\n", encoding="utf-8")
    return root


# ---------------------------------------------------------------------------
# Paths inside the sandbox
# ---------------------------------------------------------------------------


class TestInsideSandbox:
    """Paths that stay inside the root resolve to canonical absolute paths."""

    def test_relative_to_base_document(self, specs: Path) -> None:
        guard = PathSandboxGuard(specs)
        result = guard.resolve(str(specs / "api.yaml"), "schemas/pet.yaml")
        assert result == str((specs / "schemas" / "pet.yaml").resolve())

    def test_dot_segments_collapse(self, specs: Path) -> None:
        guard = PathSandboxGuard(specs)
        result = guard.resolve(str(specs / "api.yaml"), "./schemas/../schemas/pet.yaml")
        assert result == str((specs / "schemas" / "pet.yaml").resolve())

    def test_parent_segment_staying_inside(self, specs: Path) -> None:
        guard = PathSandboxGuard(specs)
        base = str(specs / "schemas" / "pet.yaml")
        assert guard.resolve(base, "../api.yaml") == str((specs / "api.yaml").resolve())

    def test_absolute_path_inside(self, specs: Path) -> None:
        guard = PathSandboxGuard(specs)
        target = specs / "schemas" / "pet.yaml"
        assert guard.resolve(None, str(target)) == str(target.resolve())

    def test_no_base_uses_working_directory(
        self, specs: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.chdir(specs)
        guard = PathSandboxGuard(specs)
        assert guard.resolve(None, "api.yaml") == str((specs / "api.yaml").resolve())

    def test_missing_file_still_resolves(self, specs: Path) -> None:
        guard = PathSandboxGuard(specs)
        result = guard.resolve(str(specs / "api.yaml"), "missing.yaml")
        assert result == str((specs / "missing.yaml").resolve())

    def test_root_contains_itself(self, specs: Path) -> None:
        guard = PathSandboxGuard(specs)
        assert guard.contains(guard.root)
        assert not guard.contains(guard.root.parent)


# ---------------------------------------------------------------------------
# Escapes
# ---------------------------------------------------------------------------


class TestTraversal:
    """Every way out of the sandbox raises PathTraversalError."""

    def test_dotdot_escape(self, specs: Path) -> None:
        guard = PathSandboxGuard(specs)
        with pytest.raises(PathTraversalError, match="outside the sandbox root"):
            guard.resolve(str(specs / "api.yaml"), "../../../etc/passwd")

    def test_absolute_escape(self, specs: Path, tmp_path: Path) -> None:
        guard = PathSandboxGuard(specs)
        with pytest.raises(PathTraversalError):
            guard.resolve(str(specs / "api.yaml"), str(tmp_path / "other.yaml"))

    def test_sibling_with_common_prefix(self, specs: Path, tmp_path: Path) -> None:
        sibling = tmp_path / "specs-private"
        sibling.mkdir()
        (sibling / "secret.yaml").write_text("x: 1\n", encoding="utf-8")
        guard = PathSandboxGuard(specs)
        with pytest.raises(PathTraversalError):
            guard.resolve(str(specs / "api.yaml"), "../specs-private/secret.yaml")

    @pytest.mark.skipif(not hasattr(os, "symlink"), reason="symlinks unsupported")
    def test_symlink_escape(self, specs: Path, tmp_path: Path) -> None:
        outside = tmp_path / "outside"
        outside.mkdir()
        (outside / "secret.yaml").write_text("Secret: {}\n", encoding="utf-8")
        (specs / "link.yaml").symlink_to(outside / "secret.yaml")
        guard = PathSandboxGuard(specs)
        with pytest.raises(PathTraversalError):
            guard.resolve(str(specs / "api.yaml"), "link.yaml")

    def test_nul_byte_rejected(self, specs: Path) -> None:
        guard = PathSandboxGuard(specs)
        with pytest.raises(PathTraversalError, match="NUL"):
            guard.resolve(str(specs / "api.yaml"), "pet.yaml\x00.txt")

    def test_empty_path_is_not_found(self, specs: Path) -> None:
        guard = PathSandboxGuard(specs)
        with pytest.raises(DocumentNotFoundError):
            guard.resolve(str(specs / "api.yaml"), "")


# ---------------------------------------------------------------------------
# Search paths
# ---------------------------------------------------------------------------


class TestSearchPaths:
    """Search paths are fallbacks for files missing next to the base document."""

    def test_falls_back_to_search_path(self, specs: Path) -> None:
        shared = specs / "shared"
        shared.mkdir()
        (shared / "common.yaml").write_text("Error: {}\n", encoding="utf-8")
        guard = PathSandboxGuard(specs, search_paths=[shared])
        result = guard.resolve(str(specs / "api.yaml"), "common.yaml")
        assert result == str((shared / "common.yaml").resolve())

    def test_existing_relative_file_wins(self, specs: Path) -> None:
        shared = specs / "shared"
        (shared / "schemas").mkdir(parents=True)
        (shared / "schemas" / "pet.yaml").write_text("Pet: {}\n", encoding="utf-8")
        guard = PathSandboxGuard(specs, search_paths=[shared])
        result = guard.resolve(str(specs / "api.yaml"), "schemas/pet.yaml")
        assert result == str((specs / "schemas" / "pet.yaml").resolve())

    def test_search_path_outside_root_rejected(self, specs: Path, tmp_path: Path) -> None:
        with pytest.raises(PathTraversalError, match="Search path"):
            PathSandboxGuard(specs, search_paths=[tmp_path])

    def test_search_paths_are_canonical(self, specs: Path) -> None:
        guard = PathSandboxGuard(specs, search_paths=[specs / "schemas" / ".."])
        assert guard.search_paths == (specs.resolve(),)
