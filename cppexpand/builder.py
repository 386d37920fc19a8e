"""
cppexpand/builder.py
====================

Assemble a ``TranslationUnit`` by pointing at snippets of one source buffer.

``UnitBuilder`` stands in for a compiler front end: node ranges are found by
searching the buffer for the snippet a node spans, so the tree always agrees
with the text.  Searches start at the parent's range unless ``after`` says
otherwise.

Usage::

    b = UnitBuilder("int f(int a) { return a; }\\nvoid g() { f(1); }\\n")
    f = b.function("f", "int f(int a) { return a; }", params=[("int", "a")])
    g = b.function("g", "void g() { f(1); }")
    b.call(b.tree.body(g), "f(1)", f, args=["1"])
    unit = b.build()
    query = resolve(unit, b.at("f(1)"))
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Sequence, Tuple, Union

from cppexpand.macro import VARIADIC_PARAMETER, MacroExpansion, MacroInfo
from cppexpand.matcher import TranslationUnit
from cppexpand.source import SourceLocation, SourceManager, SourceRange
from cppexpand.tokens import Token
from cppexpand.tree import Handle, NodeKind, SyntaxTree, TypeInfo

logger = logging.getLogger(__name__)


Offset = Union[int, str]
Parameter = Tuple[Union[str, TypeInfo], str]


def _type(value: Union[str, TypeInfo, None]) -> Optional[TypeInfo]:
    if value is None or isinstance(value, TypeInfo):
        return value
    return TypeInfo(value)


def _is_word(char: str) -> bool:
    return bool(char) and (char.isalnum() or char == "_")


def _leaf_kind(snippet: str) -> NodeKind:
    if snippet[:1].isdigit() or snippet[:1] in ("'", '"'):
        return NodeKind.LITERAL
    if snippet.isidentifier():
        return NodeKind.DECL_REF_EXPR
    return NodeKind.UNEXPOSED_EXPR


class UnitBuilder:
    def __init__(self, text: str, filename: str = "main.cpp") -> None:
        self.text = text
        self.filename = filename
        self.sources = SourceManager()
        self.sources.add_buffer(filename, text)
        self.tree = SyntaxTree()
        self.expansions: List[MacroExpansion] = []
        self.macros: Dict[str, MacroInfo] = {}
        self.root = self.tree.add(
            NodeKind.TRANSLATION_UNIT,
            self.sources.token_range(filename, 0, len(text)),
        )

    # -- offsets -------------------------------------------------------------

    def _is_whole(self, index: int, snippet: str) -> bool:
        # "f(1)" must not match inside "if(1)", nor "a" inside "int a"'s "int".
        before = self.text[index - 1:index]
        after = self.text[index + len(snippet):index + len(snippet) + 1]
        if _is_word(snippet[:1]) and _is_word(before):
            return False
        if _is_word(snippet[-1:]) and _is_word(after):
            return False
        return True

    def offset(self, snippet: str, after: Offset = 0) -> int:
        """Offset of the first whole-word *snippet* at or after *after*."""
        start = self.offset(after) if isinstance(after, str) else after
        index = self.text.find(snippet, start)
        while index >= 0 and not self._is_whole(index, snippet):
            index = self.text.find(snippet, index + 1)
        if index < 0:
            raise ValueError(f"{snippet!r} not found after offset {start}")
        return index

    def at(self, snippet: str, after: Offset = 0) -> SourceLocation:
        """Location of *snippet*, for use as a resolution target."""
        return SourceLocation(self.filename, self.offset(snippet, after))

    def _search_start(self, parent: Optional[Handle], after: Optional[Offset]) -> int:
        if after is not None:
            return self.offset(after) if isinstance(after, str) else after
        if parent is None:
            return 0
        return self.tree.node(parent).range.begin.offset

    # -- nodes ---------------------------------------------------------------

    def add(
        self,
        kind: NodeKind,
        parent: Optional[Handle],
        snippet: Optional[str] = None,
        *,
        at: Optional[Offset] = None,
        after: Optional[Offset] = None,
        **fields,
    ) -> Handle:
        """Add a node spanning *snippet*.

        ``at`` picks the node's location: a substring of the snippet or an
        absolute offset.  Without a snippet the node is zero-length, placed
        at ``at`` or at the search start.
        """
        search = self._search_start(parent, after)
        if snippet is None:
            start = at if isinstance(at, int) else search
            if isinstance(at, str):
                start = self.offset(at, search)
            location = SourceLocation(self.filename, start)
            return self.tree.add(kind, SourceRange(location, location), parent=parent, **fields)

        start = self.offset(snippet, search)
        source_range = self.sources.token_range(self.filename, start, start + len(snippet))
        if isinstance(at, str):
            location = SourceLocation(self.filename, self.offset(at, start))
        elif isinstance(at, int):
            location = SourceLocation(self.filename, at)
        else:
            location = source_range.begin
        return self.tree.add(kind, source_range, parent=parent, location=location, **fields)

    def _leaves(self, parent: Handle, snippets: Sequence[str], after: int) -> List[Handle]:
        handles = []
        for snippet in snippets:
            handle = self.add(_leaf_kind(snippet), parent, snippet, after=after)
            after = self.tree.node(handle).range.begin.offset + len(snippet)
            handles.append(handle)
        return handles

    # -- declarations --------------------------------------------------------

    def namespace(self, name: str, snippet: str, parent: Optional[Handle] = None) -> Handle:
        return self.add(NodeKind.NAMESPACE, parent if parent is not None else self.root,
                        snippet, at=name or None, name=name)

    def record(
        self,
        name: str,
        snippet: str,
        parent: Optional[Handle] = None,
        tag: str = "class",
        has_default_constructor: bool = True,
    ) -> Handle:
        return self.add(
            NodeKind.RECORD, parent if parent is not None else self.root, snippet,
            at=name, name=name, tag=tag, has_default_constructor=has_default_constructor,
        )

    def function(
        self,
        name: str,
        snippet: str,
        parent: Optional[Handle] = None,
        params: Sequence[Parameter] = (),
        kind: NodeKind = NodeKind.FUNCTION,
        after: Optional[Offset] = None,
        **fields,
    ) -> Handle:
        """Add a function-like declaration with its parameters and, if the
        snippet has one, its body (first ``{`` to the end of the snippet)."""
        parent = parent if parent is not None else self.root
        handle = self.add(kind, parent, snippet, at=name, after=after, name=name, **fields)
        node = self.tree.node(handle)
        start = node.range.begin.offset
        cursor = self.offset("(", node.location.offset)

        for type_, param_name in params:
            if param_name:
                param_at = self.offset(param_name, cursor)
                self.add(NodeKind.PARAM, handle, param_name, after=param_at,
                         name=param_name, type=_type(type_))
                cursor = param_at + len(param_name)
            else:
                self.add(NodeKind.PARAM, handle, at=cursor, type=_type(type_))

        brace = self.text.find("{", cursor, start + len(snippet))
        if brace >= 0:
            self.add(NodeKind.COMPOUND_STMT, handle, self.text[brace:start + len(snippet)], after=brace)
        return handle

    def method(self, name: str, snippet: str, record: Handle, **kwargs) -> Handle:
        return self.function(name, snippet, parent=record, kind=NodeKind.METHOD, **kwargs)

    def var(
        self,
        parent: Handle,
        snippet: str,
        name: str,
        type_: Union[str, TypeInfo],
        statement: bool = True,
        after: Optional[Offset] = None,
    ) -> Handle:
        """Add ``T name = ...;``; wrapped in a declaration statement unless
        *statement* is false (globals)."""
        if statement:
            parent = self.add(NodeKind.DECL_STMT, parent, snippet, after=after)
            after = None
        declaration = snippet.rstrip().rstrip(";").rstrip()
        return self.add(NodeKind.VAR, parent, declaration, at=name, after=after,
                        name=name, type=_type(type_))

    # -- expressions ---------------------------------------------------------

    def call(
        self,
        parent: Handle,
        snippet: str,
        function: Optional[Handle],
        args: Sequence[str] = (),
        after: Optional[Offset] = None,
        name: Optional[str] = None,
    ) -> Handle:
        handle = self.add(NodeKind.CALL_EXPR, parent, snippet, after=after)
        begin = self.tree.node(handle).range.begin.offset
        callee = name or self.tree.node(function).name
        self.add(NodeKind.DECL_REF_EXPR, handle, callee, after=begin,
                 name=callee, referenced=function)
        self._leaves(handle, args, self.offset("(", begin))
        return handle

    def member_call(
        self,
        parent: Handle,
        snippet: str,
        method: Optional[Handle],
        base: Optional[str] = None,
        args: Sequence[str] = (),
        after: Optional[Offset] = None,
        member: Optional[str] = None,
    ) -> Handle:
        """``base.member(args)``; without *base* the receiver is the implicit
        ``this``."""
        handle = self.add(NodeKind.MEMBER_CALL_EXPR, parent, snippet, after=after)
        begin = self.tree.node(handle).range.begin.offset
        member = member or self.tree.node(method).name
        member_at = self.offset(member, begin + len(base or ""))
        member_snippet = self.text[begin:member_at + len(member)]
        access = self.add(NodeKind.MEMBER_EXPR, handle, member_snippet, after=begin,
                          at=member_at, name=member, referenced=method)
        if base is None:
            self.add(NodeKind.THIS_EXPR, access, at=begin, implicit=True)
        elif base == "this":
            self.add(NodeKind.THIS_EXPR, access, base, after=begin)
        else:
            self.add(_leaf_kind(base), access, base, after=begin)
        self._leaves(handle, args, self.offset("(", member_at))
        return handle

    def operator_call(
        self,
        parent: Handle,
        snippet: str,
        function: Optional[Handle],
        symbol: str,
        operands: Sequence[str],
        after: Optional[Offset] = None,
    ) -> Handle:
        """Overloaded operator use such as ``a + b`` or ``-a``; the callee
        reference sits on the operator symbol."""
        handle = self.add(NodeKind.OPERATOR_CALL_EXPR, parent, snippet, after=after, opcode=symbol)
        begin = self.tree.node(handle).range.begin.offset
        symbol_at = begin
        if operands and snippet.startswith(operands[0]):
            symbol_at = self.offset(symbol, begin + len(operands[0]))
        self.add(NodeKind.DECL_REF_EXPR, handle, symbol, after=symbol_at,
                 name=f"operator{symbol}", referenced=function)
        self._leaves(handle, operands, begin)
        return handle

    def construct(
        self,
        parent: Handle,
        snippet: str,
        constructor: Optional[Handle],
        args: Sequence[str] = (),
        at: Optional[str] = None,
        after: Optional[Offset] = None,
        implicit: bool = False,
    ) -> Handle:
        handle = self.add(NodeKind.CONSTRUCT_EXPR, parent, snippet, at=at, after=after,
                          referenced=constructor, implicit=implicit)
        begin = self.tree.node(handle).range.begin.offset
        paren = self.text.find("(", begin, begin + len(snippet))
        self._leaves(handle, args, paren if paren >= 0 else begin)
        return handle

    def binary(self, parent: Handle, snippet: str, opcode: str, after: Optional[Offset] = None) -> Handle:
        return self.add(NodeKind.BINARY_OPERATOR, parent, snippet, at=opcode, after=after, opcode=opcode)

    # -- macros --------------------------------------------------------------

    def _tokens(self, start: int, end: int) -> Tuple[Token, ...]:
        return tuple(self.sources.tokens(self.filename, start, end))

    def _line_end(self, offset: int) -> int:
        end = offset
        while True:
            end = self.text.find("\n", end)
            if end < 0:
                return len(self.text)
            if end > 0 and self.text[end - 1] == "\\":
                end += 1
                continue
            return end

    def define(self, name: str, after: Offset = 0) -> MacroInfo:
        """Register the ``#define name`` directive found in the buffer."""
        directive = self.offset("#define", after)
        name_at = self.offset(name, directive)
        line_end = self._line_end(name_at)
        cursor = name_at + len(name)

        parameters: Tuple[str, ...] = ()
        function_like = self.text.startswith("(", cursor)
        if function_like:
            close = self.text.index(")", cursor)
            inside = self.text[cursor + 1:close]
            parameters = tuple(
                VARIADIC_PARAMETER if p.strip() == "..." else p.strip()
                for p in inside.split(",") if p.strip()
            )
            cursor = close + 1

        info = MacroInfo(
            name=name,
            definition_location=SourceLocation(self.filename, name_at),
            parameters=parameters,
            tokens=self._tokens(cursor, line_end),
            is_function_like=function_like,
        )
        self.macros[name] = info
        return info

    def expand(self, name: str, snippet: Optional[str] = None, after: Offset = 0) -> MacroExpansion:
        """Record an expansion of macro *name* spanning *snippet*."""
        macro = self.macros[name]
        snippet = snippet or name
        start = self.offset(snippet, after)
        stop = start + len(snippet)

        runs: List[Tuple[Token, ...]] = []
        if macro.is_function_like:
            runs = self._split_arguments(macro, start + len(name), stop)

        expansion = MacroExpansion(
            macro=macro,
            range=self.sources.token_range(self.filename, start, stop),
            arguments=tuple(runs),
        )
        self.expansions.append(expansion)
        return expansion

    def _split_arguments(self, macro: MacroInfo, start: int, stop: int) -> List[Tuple[Token, ...]]:
        tokens = self._tokens(start, stop)
        runs: List[List[Token]] = [[]]
        depth = 0
        for token in tokens:
            if token.spelling in ("(", "[", "{"):
                depth += 1
                if depth == 1:
                    continue
            elif token.spelling in (")", "]", "}"):
                depth -= 1
                if depth == 0:
                    break
            elif token.spelling == "," and depth == 1:
                if not macro.is_variadic or len(runs) < len(macro.parameters):
                    runs.append([])
                    continue
            runs[-1].append(token)
        if len(runs) == 1 and not runs[0] and not macro.parameters:
            return []
        return [tuple(run) for run in runs]

    # -- result --------------------------------------------------------------

    def build(self) -> TranslationUnit:
        return TranslationUnit(
            sources=self.sources,
            tree=self.tree,
            expansions=list(self.expansions),
            main_file=self.filename,
        )
