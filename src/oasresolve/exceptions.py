"""Exception hierarchy for oasresolve.

All exceptions inherit from :class:`ResolverError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`oasresolve.exit_codes`.
Every error raised during a resolution pass is fatal to that pass: nothing is
retried and no partial model is returned.  The top-level handler in
:func:`oasresolve.app.main` catches ``ResolverError`` and exits with the
appropriate code.

Subclass hierarchy::

    ResolverError                 (exit 1)
    +-- ConfigError               (exit 2)
    +-- DocumentNotFoundError     (exit 3)
    +-- MalformedDocumentError    (exit 3)
    +-- PathTraversalError        (exit 4)
    +-- MalformedPointerError     (exit 5)
    +-- ReferenceNotFoundError    (exit 5)
    +-- CompositionConflictError  (exit 6)
"""

from oasresolve.exit_codes import (
    EXIT_COMPOSITION_ERROR,
    EXIT_DOCUMENT_ERROR,
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_USAGE,
    EXIT_PATH_TRAVERSAL,
    EXIT_REFERENCE_ERROR,
)


class ResolverError(Exception):
    """Base exception for all oasresolve errors.

    Every subclass sets a class-level ``exit_code`` corresponding to one of
    the constants in :mod:`oasresolve.exit_codes`.

    Args:
        message: Human-readable error description printed to stderr.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class ConfigError(ResolverError):
    """Raised for invalid configuration files, environment values, or options."""

    exit_code = EXIT_INVALID_USAGE


class DocumentNotFoundError(ResolverError):
    """Raised when a referenced document does not exist or cannot be read."""

    exit_code = EXIT_DOCUMENT_ERROR


class MalformedDocumentError(ResolverError):
    """Raised when a document cannot be parsed or has an unusable shape."""

    exit_code = EXIT_DOCUMENT_ERROR


class PathTraversalError(ResolverError):
    """Raised when a document path resolves outside the sandbox root.

    Always raised *before* any filesystem read of the offending path.
    """

    exit_code = EXIT_PATH_TRAVERSAL


class MalformedPointerError(ResolverError):
    """Raised for syntactically invalid or unsupported ``$ref`` values."""

    exit_code = EXIT_REFERENCE_ERROR


class ReferenceNotFoundError(ResolverError):
    """Raised when a JSON pointer does not exist in its target document."""

    exit_code = EXIT_REFERENCE_ERROR


class CompositionConflictError(ResolverError):
    """Raised when a composed schema requires a property no branch defines."""

    exit_code = EXIT_COMPOSITION_ERROR
