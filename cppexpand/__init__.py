"""cppexpand — resolve the call under the cursor for inline expansion.

Given a parsed C/C++ translation unit and one source location, this package
finds the function, method, constructor, operator overload or macro invoked
there and collects what an editor needs to replace the call, in place, with
the callee's body.

Submodules
----------
errors
    ``ExpandError`` hierarchy and structured ``EXP-NNNN`` error codes.

source, tokens, tree
    Source locations and raw text, raw token scanning, and the arena syntax
    tree a front end hands over.

query
    The ``Query`` result record and its ``CallData`` / ``DeclarationData``
    / ``DefinitionData`` parts.

binder, context, macro, collect
    Parameter binding, call-context classification, macro-body rewriting
    and declaration/definition collection.

matcher
    ``LocationMatcher`` and the ``resolve()`` pass.

builder, dump
    Front-end adapters: build a unit from snippets of source text, or load
    one from an S-expression dump.

Usage
-----
Command-line::

    python -m cppexpand unit.sexp --line 12 --column 5

Programmatic::

    from cppexpand import load_unit_file, resolve

    unit = load_unit_file("unit.sexp")
    query = resolve(unit, unit.location(12, 5))
    print(query.to_dict())
"""

from __future__ import annotations

__version__: str = "0.1.0"

from cppexpand.config import ExpandConfig
from cppexpand.dump import load_unit, load_unit_file
from cppexpand.errors import (
    DumpError,
    ErrorKind,
    ExpandError,
    InvariantViolation,
    ResolutionError,
    UnsafeContextError,
)
from cppexpand.matcher import LocationMatcher, TranslationUnit, resolve
from cppexpand.query import (
    AssigneeData,
    CallData,
    ContextEntry,
    DeclarationData,
    DefinitionData,
    Query,
    QueryOptions,
)

__all__: list[str] = [
    "__version__",
    "AssigneeData",
    "CallData",
    "ContextEntry",
    "DeclarationData",
    "DefinitionData",
    "DumpError",
    "ErrorKind",
    "ExpandConfig",
    "ExpandError",
    "InvariantViolation",
    "LocationMatcher",
    "Query",
    "QueryOptions",
    "ResolutionError",
    "TranslationUnit",
    "UnsafeContextError",
    "load_unit",
    "load_unit_file",
    "resolve",
]
