"""Typer application and CLI entry point for oasresolve.

The root :data:`app` owns the global output flags; the ``inspect`` group
(:mod:`oasresolve.commands.inspect`) does the work. :func:`main` is the
console-script entry point declared in ``pyproject.toml``: it maps every
:class:`~oasresolve.exceptions.ResolverError` to a one-line stderr message
and the error's exit code.

See Also:
    :mod:`oasresolve.config`: Resolver configuration precedence.
    :mod:`oasresolve.output`: Output formatting initialised in :func:`main_callback`.
"""

from __future__ import annotations

import logging
import sys

import typer

from oasresolve import __version__
from oasresolve.commands.inspect import inspect_app
from oasresolve.exit_codes import EXIT_GENERIC_FAILURE

logger = logging.getLogger(__name__)

app = typer.Typer(
    name="oasresolve",
    help="Resolve OpenAPI 3.x $ref graphs into a flat, named schema model.",
    no_args_is_help=True,
    add_completion=False,
    rich_markup_mode="rich",
)
app.add_typer(inspect_app, name="inspect", help="Inspect a resolved specification.")


def _version_callback(value: bool) -> None:
    """Print version and exit when --version is passed."""
    if value:
        typer.echo(f"oasresolve {__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    json_output: bool = typer.Option(
        False, "--json", help="JSON output format."
    ),
    plain_output: bool = typer.Option(
        False, "--plain", help="Plain text output."
    ),
    no_color: bool = typer.Option(
        False, "--no-color", help="Disable color output."
    ),
    quiet: bool = typer.Option(
        False, "--quiet", "-q", help="Suppress non-essential output."
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Enable debug output and resolver traces."
    ),
) -> None:
    """Root callback executed before every sub-command.

    Initialises the global :class:`~oasresolve.output.OutputManager` from
    CLI flags and, with ``--verbose``, routes the engine's debug logging to
    stderr.
    """
    from oasresolve.output import OutputFormat, OutputManager, set_output

    fmt = OutputFormat.AUTO
    if json_output:
        fmt = OutputFormat.JSON
    elif plain_output:
        fmt = OutputFormat.PLAIN

    set_output(OutputManager(format=fmt, no_color=no_color, quiet=quiet, verbose=verbose))

    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            stream=sys.stderr,
            format="%(levelname)s %(name)s: %(message)s",
        )

    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose


def main() -> None:
    """CLI entry point invoked by the ``oasresolve`` console script.

    :class:`~oasresolve.exceptions.ResolverError` instances cause a clean
    exit with the error's ``exit_code``; anything else is reported as an
    unexpected error with a generic failure code.

    Raises:
        SystemExit: Always raised (either by Typer or explicitly).
    """
    from oasresolve.exceptions import ResolverError
    from oasresolve.output import error

    try:
        app()
    except SystemExit:
        raise
    except KeyboardInterrupt:
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)
    except ResolverError as exc:
        error(str(exc))
        sys.exit(exc.exit_code)
    except Exception as exc:
        logger.debug("Unexpected error", exc_info=True)
        error(f"Unexpected error: {exc}")
        sys.exit(EXIT_GENERIC_FAILURE)
