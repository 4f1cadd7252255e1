"""Configuration loading and precedence resolution.

:func:`resolve_config` builds the :class:`~oasresolve.models.ResolverConfig`
for one pass by layering, from high to low precedence:

1. CLI flags
2. Environment variables (``OASRESOLVE_SANDBOX_ROOT``,
   ``OASRESOLVE_SEARCH_PATHS``, ``OASRESOLVE_MAX_DOCUMENT_BYTES``)
3. Project config (``./oasresolve.json``)
4. Defaults

Any invalid file or value surfaces as :class:`~oasresolve.exceptions.ConfigError`.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Optional

from pydantic import ValidationError

from oasresolve.exceptions import ConfigError
from oasresolve.models import ResolverConfig

_PROJECT_CONFIG_FILENAME = "oasresolve.json"

ENV_SANDBOX_ROOT = "OASRESOLVE_SANDBOX_ROOT"
ENV_SEARCH_PATHS = "OASRESOLVE_SEARCH_PATHS"
ENV_MAX_DOCUMENT_BYTES = "OASRESOLVE_MAX_DOCUMENT_BYTES"


# --- Project-local config ---


def load_project_config(directory: Optional[Path] = None) -> Optional[dict[str, Any]]:
    """Load project-local configuration from ``oasresolve.json``.

    Args:
        directory: Where to look. Defaults to the current working directory.

    Returns:
        The parsed JSON object, or ``None`` if the file does not exist.

    Raises:
        ConfigError: If the file exists but is not a JSON object.
    """
    path = (directory or Path.cwd()) / _PROJECT_CONFIG_FILENAME
    if not path.is_file():
        return None
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, ValueError) as exc:
        raise ConfigError(f"Invalid project config at {path}: {exc}") from exc
    except OSError as exc:
        raise ConfigError(f"Cannot read project config at {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Project config at {path} must be a JSON object")
    return data


# --- Environment ---


def load_env_config() -> dict[str, Any]:
    """Read the ``OASRESOLVE_*`` variables that are set and non-empty."""
    values: dict[str, Any] = {}

    sandbox_root = os.environ.get(ENV_SANDBOX_ROOT)
    if sandbox_root:
        values["sandbox_root"] = sandbox_root

    search_paths = os.environ.get(ENV_SEARCH_PATHS)
    if search_paths:
        values["search_paths"] = [p for p in search_paths.split(os.pathsep) if p]

    max_bytes = os.environ.get(ENV_MAX_DOCUMENT_BYTES)
    if max_bytes:
        try:
            values["max_document_bytes"] = int(max_bytes)
        except ValueError:
            raise ConfigError(
                f"{ENV_MAX_DOCUMENT_BYTES} must be an integer, got {max_bytes!r}"
            ) from None

    return values


# --- Precedence resolution ---


def resolve_config(
    cli_sandbox_root: Optional[str] = None,
    cli_search_paths: Optional[list[str]] = None,
    cli_validate_version: Optional[bool] = None,
    project_dir: Optional[Path] = None,
) -> ResolverConfig:
    """Resolve the pass configuration with the full precedence chain.

    Args:
        cli_sandbox_root: ``--root`` flag value.
        cli_search_paths: ``--search-path`` flag values; an empty list
            counts as unset.
        cli_validate_version: ``False`` when ``--no-version-check`` was given.
        project_dir: Directory holding ``oasresolve.json`` (default: cwd).

    Raises:
        ConfigError: If any layer holds an invalid value.
    """
    # 4 + 3. Defaults, then project-local config
    merged: dict[str, Any] = dict(load_project_config(project_dir) or {})

    # 2. Environment variables
    merged.update(load_env_config())

    # 1. CLI flags (highest precedence)
    if cli_sandbox_root is not None:
        merged["sandbox_root"] = cli_sandbox_root
    if cli_search_paths:
        merged["search_paths"] = list(cli_search_paths)
    if cli_validate_version is not None:
        merged["validate_version"] = cli_validate_version

    try:
        return ResolverConfig.model_validate(merged)
    except ValidationError as exc:
        raise ConfigError(f"Invalid resolver configuration: {exc}") from exc
