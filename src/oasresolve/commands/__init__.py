"""Built-in CLI sub-commands for oasresolve.

* :mod:`~oasresolve.commands.inspect` -- resolve a specification and show
  its operations, schema registry, info, or a full dump.
"""
