"""cppexpand/dump.py – S-expression translation-unit dump → ``TranslationUnit``.

A front end that cannot be linked in-process writes the parts of a
translation unit the resolver needs as one S-expression, read here with
``sexpdata.loads``.

Surface syntax
--------------
::

    (unit
      (file "main.cpp" "<buffer text>")
      (node ID KIND (in PARENT-ID)? FIELD ...)
      (macro ID "NAME" (loc ...) (params "a" "b" ...)? (body FILE START END)
             (function-like true|false)?)
      (expansion MACRO-ID (range ...) (args (FILE START END) ...)?))

    ;; node fields
    (range FILE BEGIN LAST)          ;; LAST = offset of the last token
    (loc FILE OFFSET (spelling FILE OFFSET)?)
    (name "n")  (opcode "+=")  (tag "struct")
    (type "T" (canonical "T")? (const B)? (reference B)? (record ID)?)
    (ref ID)  (definition ID)  (context ID)
    (implicit B)  (default-constructible B)

``KIND`` is the value of a :class:`~cppexpand.tree.NodeKind`
(``call-expr``, ``member-expr`` ...).  Nodes are listed parents first;
children keep the order in which they appear.  Cross references may point
forward.  Macro bodies and argument runs are character spans, lexed from
the buffers when the dump is loaded.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any, Callable, Dict, List, Optional, Tuple

import sexpdata
from sexpdata import Symbol

from cppexpand.errors import DumpError, ExpandErrorCodes
from cppexpand.macro import MacroExpansion, MacroInfo
from cppexpand.matcher import TranslationUnit
from cppexpand.source import SourceLocation, SourceManager, SourceRange
from cppexpand.tree import NodeKind, SyntaxTree, TypeInfo

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════
#  Helpers
# ═══════════════════════════════════════════════════════════════════════

Sexp = Any  # Union[list, Symbol, str, int, float]


def _sym_name(s: Sexp) -> str:
    if isinstance(s, Symbol):
        return s.value()
    raise DumpError(f"Expected symbol, got {type(s).__name__}: {s!r}")


def _expect_list(s: Sexp, *, min_len: int = 0, tag: Optional[str] = None) -> list:
    if not isinstance(s, list):
        raise DumpError(
            f"Expected list{f' ({tag} ...)' if tag else ''}, "
            f"got {type(s).__name__}: {s!r}"
        )
    if len(s) < min_len:
        raise DumpError(
            f"List too short: expected at least {min_len} elements, got {len(s)}: {s!r}"
        )
    if tag is not None and _sym_name(s[0]) != tag:
        raise DumpError(f"Expected ({tag} ...), got ({_sym_name(s[0])} ...)")
    return s


def _head(s: list) -> str:
    if not s:
        raise DumpError("Unexpected empty list")
    return _sym_name(s[0])


def _as_str(s: Sexp) -> str:
    # Symbol subclasses str in recent sexpdata releases; check it first.
    if isinstance(s, Symbol):
        return s.value()
    if isinstance(s, str):
        return s
    raise DumpError(f"Expected string or symbol, got {type(s).__name__}: {s!r}")


def _as_int(s: Sexp) -> int:
    if isinstance(s, int) and not isinstance(s, bool):
        return s
    raise DumpError(f"Expected integer, got {type(s).__name__}: {s!r}")


def _as_bool(s: Sexp) -> bool:
    if isinstance(s, bool):
        return s
    if isinstance(s, Symbol):
        v = s.value().lower()
        if v in ("true", "#t", "yes"):
            return True
        if v in ("false", "#f", "no"):
            return False
    raise DumpError(f"Expected boolean, got {type(s).__name__}: {s!r}")


def _kind(s: Sexp) -> NodeKind:
    name = _as_str(s)
    try:
        return NodeKind(name)
    except ValueError:
        raise DumpError(f"Unknown node kind '{name}'") from None


# ═══════════════════════════════════════════════════════════════════════
#  Loader
# ═══════════════════════════════════════════════════════════════════════

_FieldParser = Callable[["_Loader", list], Tuple[str, Any]]
_NODE_FIELD_DISPATCH: Dict[str, _FieldParser] = {}

# Fields holding dump ids that must be mapped to handles once all nodes exist.
_REFERENCE_FIELDS = ("referenced", "definition", "context")


def _register(table: dict, tag: str):
    """Decorator: register a parser function under *tag* in *table*."""
    def deco(fn):
        table[tag] = fn
        return fn
    return deco


class _Loader:
    def __init__(self) -> None:
        self.sources = SourceManager()
        self.tree = SyntaxTree()
        self.handles: Dict[int, int] = {}
        self.macros: Dict[int, MacroInfo] = {}
        self.expansions: List[MacroExpansion] = []
        self.main_file = ""
        # (handle, field, dump id) and (handle, TypeInfo, dump id)
        self.pending: List[Tuple[int, str, int]] = []
        self.pending_records: List[Tuple[int, TypeInfo, int]] = []

    # -- shared pieces -------------------------------------------------------

    def location(self, s: Sexp) -> SourceLocation:
        form = _expect_list(s, min_len=3, tag="loc")
        spelling = None
        if len(form) > 3:
            inner = _expect_list(form[3], min_len=3, tag="spelling")
            spelling = SourceLocation(_as_str(inner[1]), _as_int(inner[2]))
        return SourceLocation(_as_str(form[1]), _as_int(form[2]), spelling)

    def source_range(self, s: Sexp) -> SourceRange:
        form = _expect_list(s, min_len=4, tag="range")
        filename = _as_str(form[1])
        return SourceRange(
            SourceLocation(filename, _as_int(form[2])),
            SourceLocation(filename, _as_int(form[3])),
        )

    def span(self, s: Sexp) -> Tuple[str, int, int]:
        form = _expect_list(s, min_len=3)
        return _as_str(form[-3]), _as_int(form[-2]), _as_int(form[-1])

    def handle(self, dump_id: int) -> int:
        try:
            return self.handles[dump_id]
        except KeyError:
            raise DumpError(
                f"Reference to unknown node {dump_id}",
                code=ExpandErrorCodes.UNKNOWN_REFERENCE,
            ) from None

    # -- top-level forms -----------------------------------------------------

    def load(self, sexp: Sexp) -> TranslationUnit:
        form = _expect_list(sexp, min_len=1, tag="unit")
        for item in form[1:]:
            item = _expect_list(item, min_len=1)
            parser = _UNIT_ITEM_DISPATCH.get(_head(item))
            if parser is None:
                raise DumpError(f"Unknown unit item: ({_head(item)} ...)")
            parser(self, item)

        for handle, name, dump_id in self.pending:
            self.tree.link(handle, **{name: self.handle(dump_id)})
        for handle, info, dump_id in self.pending_records:
            self.tree.link(handle, type=replace(info, record=self.handle(dump_id)))

        logger.debug(
            "Loaded dump: %d file(s), %d node(s), %d expansion(s)",
            len(self.sources.files), len(self.tree), len(self.expansions),
        )
        return TranslationUnit(self.sources, self.tree, self.expansions, self.main_file)


_UNIT_ITEM_DISPATCH: Dict[str, Callable[[_Loader, list], None]] = {}


@_register(_UNIT_ITEM_DISPATCH, "file")
def _load_file(loader: _Loader, s: list) -> None:
    _expect_list(s, min_len=3)
    name = _as_str(s[1])
    loader.sources.add_buffer(name, _as_str(s[2]))
    if not loader.main_file:
        loader.main_file = name


@_register(_UNIT_ITEM_DISPATCH, "node")
def _load_node(loader: _Loader, s: list) -> None:
    _expect_list(s, min_len=3)
    dump_id = _as_int(s[1])
    kind = _kind(s[2])
    if dump_id in loader.handles:
        raise DumpError(f"Duplicate node id {dump_id}")

    parent = None
    fields: Dict[str, Any] = {}
    references: List[Tuple[str, int]] = []
    record: Optional[int] = None
    source_range: Optional[SourceRange] = None

    for item in s[3:]:
        item = _expect_list(item, min_len=1)
        tag = _head(item)
        if tag == "in":
            parent = loader.handle(_as_int(_expect_list(item, min_len=2)[1]))
        elif tag == "range":
            source_range = loader.source_range(item)
        else:
            parser = _NODE_FIELD_DISPATCH.get(tag)
            if parser is None:
                raise DumpError(f"Unknown node field: ({tag} ...)")
            name, value = parser(loader, item)
            if name in _REFERENCE_FIELDS:
                references.append((name, value))
            elif name == "type":
                fields["type"], record = value
            else:
                fields[name] = value

    if source_range is None:
        raise DumpError(f"Node {dump_id} has no range")

    handle = loader.tree.add(kind, source_range, parent=parent, **fields)
    loader.handles[dump_id] = handle
    for name, target in references:
        loader.pending.append((handle, name, target))
    if record is not None:
        loader.pending_records.append((handle, fields["type"], record))


@_register(_UNIT_ITEM_DISPATCH, "macro")
def _load_macro(loader: _Loader, s: list) -> None:
    _expect_list(s, min_len=4)
    dump_id = _as_int(s[1])
    name = _as_str(s[2])
    location = loader.location(s[3])
    parameters: Tuple[str, ...] = ()
    tokens: tuple = ()
    function_like: Optional[bool] = None

    for item in s[4:]:
        item = _expect_list(item, min_len=1)
        tag = _head(item)
        if tag == "params":
            parameters = tuple(_as_str(p) for p in item[1:])
        elif tag == "body":
            filename, start, end = loader.span(item)
            tokens = tuple(loader.sources.tokens(filename, start, end))
        elif tag == "function-like":
            function_like = _as_bool(_expect_list(item, min_len=2)[1])
        else:
            raise DumpError(f"Unknown macro field: ({tag} ...)")

    loader.macros[dump_id] = MacroInfo(
        name=name,
        definition_location=location,
        parameters=parameters,
        tokens=tokens,
        is_function_like=bool(parameters) if function_like is None else function_like,
    )


@_register(_UNIT_ITEM_DISPATCH, "expansion")
def _load_expansion(loader: _Loader, s: list) -> None:
    _expect_list(s, min_len=3)
    macro_id = _as_int(s[1])
    macro = loader.macros.get(macro_id)
    if macro is None:
        raise DumpError(
            f"Expansion of unknown macro {macro_id}",
            code=ExpandErrorCodes.UNKNOWN_REFERENCE,
        )

    source_range = loader.source_range(s[2])
    arguments = []
    for item in s[3:]:
        item = _expect_list(item, min_len=1, tag="args")
        for run in item[1:]:
            filename, start, end = loader.span(run)
            arguments.append(tuple(loader.sources.tokens(filename, start, end)))

    loader.expansions.append(MacroExpansion(macro, source_range, tuple(arguments)))


# ═══════════════════════════════════════════════════════════════════════
#  Node fields
# ═══════════════════════════════════════════════════════════════════════

def _string_field(name: str) -> _FieldParser:
    def parse(loader: _Loader, s: list) -> Tuple[str, Any]:
        return name, _as_str(_expect_list(s, min_len=2)[1])
    return parse


def _bool_field(name: str) -> _FieldParser:
    def parse(loader: _Loader, s: list) -> Tuple[str, Any]:
        return name, _as_bool(_expect_list(s, min_len=2)[1])
    return parse


def _reference_field(name: str) -> _FieldParser:
    def parse(loader: _Loader, s: list) -> Tuple[str, Any]:
        return name, _as_int(_expect_list(s, min_len=2)[1])
    return parse


for _tag, _parser in (
    ("name", _string_field("name")),
    ("opcode", _string_field("opcode")),
    ("tag", _string_field("tag")),
    ("implicit", _bool_field("implicit")),
    ("default-constructible", _bool_field("has_default_constructor")),
    ("ref", _reference_field("referenced")),
    ("definition", _reference_field("definition")),
    ("context", _reference_field("context")),
):
    _register(_NODE_FIELD_DISPATCH, _tag)(_parser)


@_register(_NODE_FIELD_DISPATCH, "loc")
def _parse_loc(loader: _Loader, s: list) -> Tuple[str, Any]:
    return "location", loader.location(s)


@_register(_NODE_FIELD_DISPATCH, "type")
def _parse_type(loader: _Loader, s: list) -> Tuple[str, Any]:
    _expect_list(s, min_len=2)
    spelling = _as_str(s[1])
    canonical = ""
    is_const = is_reference = False
    record: Optional[int] = None
    for item in s[2:]:
        item = _expect_list(item, min_len=2)
        tag = _head(item)
        if tag == "canonical":
            canonical = _as_str(item[1])
        elif tag == "const":
            is_const = _as_bool(item[1])
        elif tag == "reference":
            is_reference = _as_bool(item[1])
        elif tag == "record":
            record = _as_int(item[1])
        else:
            raise DumpError(f"Unknown type field: ({tag} ...)")
    return "type", (TypeInfo(spelling, canonical, is_const, is_reference), record)


# ═══════════════════════════════════════════════════════════════════════
#  Public API
# ═══════════════════════════════════════════════════════════════════════

def load_unit(text: str) -> TranslationUnit:
    """Parse a ``(unit ...)`` dump into a ``TranslationUnit``.

    >>> unit = load_unit('(unit (file "a.c" "f();") (node 0 translation-unit (range "a.c" 0 3)))')
    """
    try:
        sexp = sexpdata.loads(text, nil=None, true=None, false=None)
    except Exception as exc:
        raise DumpError(f"Unreadable dump: {exc}") from exc
    return _Loader().load(sexp)


def load_unit_file(path: str, encoding: str = "utf-8") -> TranslationUnit:
    with open(path, encoding=encoding) as handle:
        return load_unit(handle.read())
