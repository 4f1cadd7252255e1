"""Inspect commands -- resolve a specification and show what came out.

Provides the ``oasresolve inspect`` sub-command group. Every command runs a
full resolution pass on the ``SPEC`` argument and presents part of the
resulting :class:`~oasresolve.models.ResolvedSpecificationModel`:
operations, the schema registry, API info, or a complete dump.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer

from oasresolve.exit_codes import EXIT_INVALID_USAGE
from oasresolve.models import BackReference, ResolvedSpecificationModel, SchemaNode
from oasresolve.output import debug, error, get_output, info, warning


inspect_app = typer.Typer(no_args_is_help=True)

SpecArgument = typer.Argument(..., help="Root OpenAPI document (YAML or JSON).")
RootOption = typer.Option(
    None, "--root", "-r", help="Sandbox root (default: the root document's directory)."
)
SearchPathOption = typer.Option(
    None, "--search-path", "-s", help="Extra directory for relative refs (repeatable)."
)
NoVersionCheckOption = typer.Option(
    False, "--no-version-check", help="Skip the OpenAPI 3.x version check."
)


def _resolve(
    spec: Path,
    root: Optional[str],
    search_paths: Optional[list[str]],
    no_version_check: bool,
) -> ResolvedSpecificationModel:
    """Resolve *spec* with configuration from flags, environment and project file.

    Raises:
        typer.Exit: With the error's exit code when configuration or
            resolution fails.
    """
    from oasresolve.config import resolve_config
    from oasresolve.exceptions import ResolverError
    from oasresolve.parser import resolve_specification

    try:
        config = resolve_config(
            cli_sandbox_root=root,
            cli_search_paths=search_paths,
            cli_validate_version=False if no_version_check else None,
        )
        debug(f"Resolving {spec} (sandbox root: {config.sandbox_root or 'spec directory'})")
        model = resolve_specification(spec, config)
    except ResolverError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None

    debug(
        f"Resolved {len(model.operations)} operations and {len(model.schemas)} schemas "
        f"from {len(model.documents)} documents"
    )
    return model


def _schema_label(node: Optional[SchemaNode]) -> str:
    """Short human-readable description of a schema for table cells."""
    if node is None:
        return "-"
    if isinstance(node, BackReference):
        return node.name
    if node.name:
        return node.name
    if node.kind.value == "array" and node.items is not None:
        return f"array[{_schema_label(node.items)}]"
    return node.type or node.kind.value


@inspect_app.command("operations")
def inspect_operations(
    spec: Path = SpecArgument,
    root: Optional[str] = RootOption,
    search_path: Optional[list[str]] = SearchPathOption,
    no_version_check: bool = NoVersionCheckOption,
) -> None:
    """List every resolved operation with its request and response schemas.

    Example::

        oasresolve inspect operations specs/petstore.yaml
    """
    model = _resolve(spec, root, search_path, no_version_check)

    if not model.operations:
        warning("No operations in the resolved specification.")
        return

    headers = ["Method", "Path", "Operation", "Request", "Responses"]
    rows: list[list[str]] = []
    for op in model.operations:
        responses = ", ".join(
            f"{status}:{_schema_label(schema)}" for status, schema in op.response_schemas.items()
        )
        rows.append([
            op.method.value.upper(),
            op.path,
            op.operation_id or "-",
            _schema_label(op.request_schema),
            responses or "-",
        ])

    get_output().print_table(
        headers, rows, title=f"{model.info.title} -- Operations ({len(rows)})"
    )


@inspect_app.command("schemas")
def inspect_schemas(
    spec: Path = SpecArgument,
    root: Optional[str] = RootOption,
    search_path: Optional[list[str]] = SearchPathOption,
    no_version_check: bool = NoVersionCheckOption,
) -> None:
    """List the schema registry: named components and promoted inline schemas.

    Example::

        oasresolve inspect schemas specs/petstore.yaml
    """
    model = _resolve(spec, root, search_path, no_version_check)

    if not model.schemas:
        info("No schemas in the resolved specification.")
        return

    headers = ["Schema", "Kind", "Properties", "Composition"]
    rows: list[list[str]] = []
    for name, node in model.schemas.items():
        schema = model.lookup(node)
        prop_names = list(schema.properties)
        props = ", ".join(prop_names[:5])
        if len(prop_names) > 5:
            props += "..."
        rows.append([
            name,
            schema.kind.value,
            props or "-",
            "/".join(schema.composition) or "-",
        ])

    get_output().print_table(headers, rows, title=f"Schemas ({len(rows)})")


@inspect_app.command("info")
def inspect_info(
    spec: Path = SpecArgument,
    root: Optional[str] = RootOption,
    search_path: Optional[list[str]] = SearchPathOption,
    no_version_check: bool = NoVersionCheckOption,
) -> None:
    """Show API info and resolution totals.

    Example::

        oasresolve inspect info specs/petstore.yaml
    """
    model = _resolve(spec, root, search_path, no_version_check)

    data: dict = {
        "title": model.info.title,
        "version": model.info.version,
        "openapi_version": model.openapi_version,
        "description": model.info.description or "-",
        "servers": [s.url for s in model.servers],
        "documents": list(model.documents),
        "operations": len(model.operations),
        "schemas": len(model.schemas),
    }
    get_output().print_document(data)


@inspect_app.command("dump")
def inspect_dump(
    spec: Path = SpecArgument,
    root: Optional[str] = RootOption,
    search_path: Optional[list[str]] = SearchPathOption,
    no_version_check: bool = NoVersionCheckOption,
    schema: Optional[str] = typer.Option(
        None, "--schema", help="Dump only this registry entry."
    ),
) -> None:
    """Dump the resolved model (or one schema) as JSON or YAML.

    Example::

        oasresolve --json inspect dump specs/petstore.yaml
        oasresolve inspect dump specs/petstore.yaml --schema Pet
    """
    from oasresolve.parser.serializer import dump_model, to_openapi

    model = _resolve(spec, root, search_path, no_version_check)

    if schema is None:
        get_output().print_document(dump_model(model))
        return

    if schema not in model.schemas:
        error(f"No schema named '{schema}' in the resolved specification")
        raise typer.Exit(code=EXIT_INVALID_USAGE)
    get_output().print_document(to_openapi(model.schemas[schema]))
