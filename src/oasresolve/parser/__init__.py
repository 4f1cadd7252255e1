"""The resolution engine -- load, resolve ``$ref`` pointers, normalize, promote.

Typical usage::

    from oasresolve.parser import resolve_specification

    model = resolve_specification("specs/api.yaml")
    for op in model.operations:
        print(op.method.value.upper(), op.path)

Sub-modules, in pass order:

* :mod:`~oasresolve.parser.sandbox` -- canonicalizes document paths and
  rejects anything outside the sandbox root.
* :mod:`~oasresolve.parser.store` -- loads, parses and caches documents.
* :mod:`~oasresolve.parser.pointer` -- turns ``$ref`` strings into
  canonical :class:`~oasresolve.models.ReferenceKey` values.
* :mod:`~oasresolve.parser.resolver` -- cycle-safe graph resolution.
* :mod:`~oasresolve.parser.normalizer` -- flattens schema composition.
* :mod:`~oasresolve.parser.promoter` -- names anonymous operation schemas.
* :mod:`~oasresolve.parser.registry` / :mod:`~oasresolve.parser.naming` --
  the shared schema namespace and its naming rules.
* :mod:`~oasresolve.parser.extractor` -- runs the pass and builds the model.
* :mod:`~oasresolve.parser.serializer` -- back to OpenAPI-shaped dicts.
"""

from oasresolve.parser.extractor import resolve_specification
from oasresolve.parser.serializer import dump_model, to_openapi
from oasresolve.parser.store import parse_content, validate_openapi_version

__all__ = ["resolve_specification", "dump_model", "to_openapi", "parse_content", "validate_openapi_version"]
