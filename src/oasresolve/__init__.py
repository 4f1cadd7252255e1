"""oasresolve -- resolve OpenAPI 3.x ``$ref`` graphs into one immutable model.

This package loads a root OpenAPI document and every file it references,
resolves all ``$ref`` pointers into a cycle-safe graph, flattens
``allOf``/``oneOf``/``anyOf`` composition, names anonymous inline schemas,
and hands the result to code generators as a single frozen
:class:`~oasresolve.models.ResolvedSpecificationModel`. External references
are confined to a sandbox root directory.

Typical usage::

    from oasresolve.parser import resolve_specification

    model = resolve_specification("specs/petstore.yaml")
    pet = model.schemas["Pet"]

Modules:
    app: Typer application and CLI entry point.
    models: Pydantic models shared across the entire package.
    config: Resolver configuration precedence.
    exceptions: Exception hierarchy with exit-code mapping.
    exit_codes: Numeric exit codes following clig.dev conventions.
    output: stdout/stderr formatting system with Rich support.
    parser: The resolution engine.
"""

__version__ = "0.1.0"
