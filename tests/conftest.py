"""Shared test fixtures for oasresolve.

Provides reusable fixtures for writing spec documents to temporary
directories, building resolver components around them, isolating the
environment, managing output state, and running CLI commands. These
fixtures are automatically discovered by pytest and available to all test
modules without explicit imports.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Callable

import pytest
import yaml

from oasresolve.models import ResolvedSpecificationModel
from oasresolve.output import OutputFormat, OutputManager, reset_output, set_output
from oasresolve.parser.pointer import PointerResolver
from oasresolve.parser.registry import SchemaRegistry
from oasresolve.parser.resolver import GraphResolver
from oasresolve.parser.sandbox import PathSandboxGuard
from oasresolve.parser.store import DocumentStore


FIXTURES_DIR = Path(__file__).parent / "fixtures"


# ---------------------------------------------------------------------------
# Auto-reset global output state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Reset the global OutputManager after every test.

    The OutputManager caches references to sys.stdout/sys.stderr at
    creation time. When Typer's CliRunner redirects those streams and the
    test finishes, the cached references become stale. Resetting forces a
    fresh manager to be created on next use.
    """
    yield
    reset_output()


# ---------------------------------------------------------------------------
# Spec documents
# ---------------------------------------------------------------------------


@pytest.fixture
def petstore_path() -> Path:
    """Single-file petstore with cycles, composition and inline schemas."""
    return FIXTURES_DIR / "petstore.yaml"


@pytest.fixture
def split_dir() -> Path:
    """Directory of the multi-file spec (``api.yaml`` plus referenced files)."""
    return FIXTURES_DIR / "split"


@pytest.fixture
def petstore_model(petstore_path: Path) -> ResolvedSpecificationModel:
    """Fully resolved petstore model."""
    from oasresolve.parser import resolve_specification

    return resolve_specification(petstore_path)


@pytest.fixture
def write_doc(tmp_path: Path) -> Callable[..., Path]:
    """Return a helper that writes a document under ``tmp_path``.

    ``write_doc("api.yaml", {...})`` dumps a dict as YAML (or JSON for a
    ``.json`` name); a string is written verbatim. Parent directories are
    created as needed.
    """

    def _write(name: str, content: Any) -> Path:
        path = tmp_path / name
        path.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, str):
            text = content
        elif path.suffix == ".json":
            import json

            text = json.dumps(content, indent=2)
        else:
            text = yaml.safe_dump(content, sort_keys=False)
        path.write_text(text, encoding="utf-8")
        return path

    return _write


@pytest.fixture
def minimal_spec() -> Callable[..., dict[str, Any]]:
    """Return a builder for a minimal OpenAPI 3.0 document."""

    def _build(
        schemas: dict[str, Any] | None = None, paths: dict[str, Any] | None = None
    ) -> dict[str, Any]:
        doc: dict[str, Any] = {
            "openapi": "3.0.3",
            "info": {"title": "Test API", "version": "1.0.0"},
            "paths": paths or {},
        }
        if schemas is not None:
            doc["components"] = {"schemas": schemas}
        return doc

    return _build


# ---------------------------------------------------------------------------
# Resolver components
# ---------------------------------------------------------------------------


class ResolverHarness:
    """A store, registry and graph resolver sandboxed to one directory."""

    def __init__(self, root: Path) -> None:
        self.guard = PathSandboxGuard(root)
        self.store = DocumentStore(self.guard)
        self.pointers = PointerResolver(self.store)
        self.registry = SchemaRegistry()
        self.resolver = GraphResolver(self.pointers, self.registry)

    def load(self, path: Path) -> str:
        return self.store.load(path)

    def component(self, document_id: str, name: str):
        """Resolve ``#/components/schemas/<name>`` of *document_id*."""
        return self.resolver.resolve_reference(f"#/components/schemas/{name}", document_id)


@pytest.fixture
def harness(tmp_path: Path) -> ResolverHarness:
    """Resolver components sandboxed to ``tmp_path``."""
    return ResolverHarness(tmp_path)


# ---------------------------------------------------------------------------
# Environment isolation
# ---------------------------------------------------------------------------


@pytest.fixture
def isolated_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Clear all OASRESOLVE_* variables and change into ``tmp_path``.

    Returns:
        The tmp_path root directory for additional file creation.
    """
    for var in [
        "OASRESOLVE_SANDBOX_ROOT",
        "OASRESOLVE_SEARCH_PATHS",
        "OASRESOLVE_MAX_DOCUMENT_BYTES",
    ]:
        monkeypatch.delenv(var, raising=False)
    monkeypatch.chdir(tmp_path)
    return tmp_path


# ---------------------------------------------------------------------------
# Output fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def json_output() -> OutputManager:
    """Install a JSON-format OutputManager for the duration of the test."""
    output = OutputManager(format=OutputFormat.JSON)
    set_output(output)
    yield output
    reset_output()


# ---------------------------------------------------------------------------
# CLI runner fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def cli_runner():
    """Typer CLI test runner."""
    from typer.testing import CliRunner

    return CliRunner()
