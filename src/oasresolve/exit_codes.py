"""Numeric process exit codes following `clig.dev <https://clig.dev/>`_ conventions.

Each constant maps to a specific error category and is referenced by the
corresponding :class:`~oasresolve.exceptions.ResolverError` subclass.
External tooling (CI scripts, generator wrappers) can inspect the exit code
to determine the failure class without parsing stderr.

Example::

    $ oasresolve inspect schemas specs/api.yaml
    $ echo $?
    4   # EXIT_PATH_TRAVERSAL -- a $ref tried to leave the sandbox root
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_USAGE = 2
"""The command was invoked with invalid arguments or configuration."""

EXIT_DOCUMENT_ERROR = 3
"""A document could not be found, read, or parsed."""

EXIT_PATH_TRAVERSAL = 4
"""An external reference resolved outside the sandbox root."""

EXIT_REFERENCE_ERROR = 5
"""A ``$ref`` pointer was malformed or pointed at nothing."""

EXIT_COMPOSITION_ERROR = 6
"""Schema composition produced an unsatisfiable constraint."""
