#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
cppexpand/tree.py
═════════════════

Arena-allocated syntax tree for a single translation unit.

Nodes live in one list and are addressed by a stable integer handle.  Child
lists are stored on the nodes; the parent index is derived from them once
per pass and rebuilt only if the arena changes, so no node ever holds a
back-reference to another ``Node`` object.

    ┌─────────────────────────────────────────────────────────────────┐
    │  Children conventions                                           │
    │    CALL_EXPR, OPERATOR_CALL_EXPR   [callee, arg0, arg1, ...]    │
    │    MEMBER_CALL_EXPR                [member-expr, arg0, ...]     │
    │    CONSTRUCT_EXPR                  [arg0, arg1, ...]            │
    │    MEMBER_EXPR                     [base]                       │
    │    BINARY_OPERATOR                 [lhs, rhs]                   │
    │    VAR                             [initializer?]               │
    │    FUNCTION, METHOD, CONSTRUCTOR   [param..., body?]            │
    │    RETURN_STMT                     [value?]                     │
    │    DECL_STMT                       [var...]                     │
    └─────────────────────────────────────────────────────────────────┘

Cross references (callee, referenced declaration, definition, semantic
context) are handles as well.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, FrozenSet, Iterable, Iterator, List, Optional

from cppexpand.errors import ExpandErrorCodes, InvariantViolation
from cppexpand.source import SourceLocation, SourceRange


Handle = int


class NodeKind(Enum):
    # declarations
    TRANSLATION_UNIT = "translation-unit"
    NAMESPACE = "namespace"
    RECORD = "record"
    FUNCTION = "function"
    METHOD = "method"
    CONSTRUCTOR = "constructor"
    PARAM = "param"
    VAR = "var"

    # statements
    COMPOUND_STMT = "compound-stmt"
    DECL_STMT = "decl-stmt"
    RETURN_STMT = "return-stmt"
    IF_STMT = "if-stmt"
    WHILE_STMT = "while-stmt"
    DO_STMT = "do-stmt"
    FOR_STMT = "for-stmt"
    SWITCH_STMT = "switch-stmt"
    OTHER_STMT = "other-stmt"

    # expressions
    CALL_EXPR = "call-expr"
    MEMBER_CALL_EXPR = "member-call-expr"
    OPERATOR_CALL_EXPR = "operator-call-expr"
    CONSTRUCT_EXPR = "construct-expr"
    MEMBER_EXPR = "member-expr"
    DECL_REF_EXPR = "decl-ref-expr"
    BINARY_OPERATOR = "binary-operator"
    UNARY_OPERATOR = "unary-operator"
    CONDITIONAL_OPERATOR = "conditional-operator"
    PAREN_EXPR = "paren-expr"
    THIS_EXPR = "this-expr"
    DEFAULT_ARG_EXPR = "default-arg-expr"
    LITERAL = "literal"
    IMPLICIT_CAST_EXPR = "implicit-cast-expr"
    EXPR_WITH_CLEANUPS = "expr-with-cleanups"
    MATERIALIZE_TEMPORARY_EXPR = "materialize-temporary-expr"
    BIND_TEMPORARY_EXPR = "bind-temporary-expr"
    UNEXPOSED_EXPR = "unexposed-expr"

    @property
    def is_expr(self) -> bool:
        return self in EXPR_KINDS

    @property
    def is_decl(self) -> bool:
        return self in DECL_KINDS

    @property
    def is_implicit_wrapper(self) -> bool:
        return self in IMPLICIT_WRAPPER_KINDS

    @property
    def is_call(self) -> bool:
        return self in CALL_KINDS

    @property
    def is_function(self) -> bool:
        return self in FUNCTION_KINDS


DECL_KINDS: FrozenSet[NodeKind] = frozenset({
    NodeKind.TRANSLATION_UNIT, NodeKind.NAMESPACE, NodeKind.RECORD,
    NodeKind.FUNCTION, NodeKind.METHOD, NodeKind.CONSTRUCTOR,
    NodeKind.PARAM, NodeKind.VAR,
})

FUNCTION_KINDS: FrozenSet[NodeKind] = frozenset({
    NodeKind.FUNCTION, NodeKind.METHOD, NodeKind.CONSTRUCTOR,
})

SCOPE_KINDS: FrozenSet[NodeKind] = frozenset({
    NodeKind.NAMESPACE, NodeKind.RECORD,
})

CALL_KINDS: FrozenSet[NodeKind] = frozenset({
    NodeKind.CALL_EXPR, NodeKind.MEMBER_CALL_EXPR,
    NodeKind.OPERATOR_CALL_EXPR, NodeKind.CONSTRUCT_EXPR,
})

# Nodes the front end inserts without any spelling of their own.
IMPLICIT_WRAPPER_KINDS: FrozenSet[NodeKind] = frozenset({
    NodeKind.IMPLICIT_CAST_EXPR, NodeKind.EXPR_WITH_CLEANUPS,
    NodeKind.MATERIALIZE_TEMPORARY_EXPR, NodeKind.BIND_TEMPORARY_EXPR,
})

EXPR_KINDS: FrozenSet[NodeKind] = frozenset(
    kind for kind in NodeKind if kind.value.endswith(("-expr", "-operator", "literal"))
) | IMPLICIT_WRAPPER_KINDS

# Operator spellings that are not infix binary even with two call arguments
# (postfix increments carry a dummy int argument).
NON_INFIX_OPERATORS: FrozenSet[str] = frozenset({"()", "[]", "->", "++", "--"})


@dataclass(frozen=True)
class TypeInfo:
    """Type of a declaration as the front end printed it."""

    spelling: str
    canonical_spelling: str = ""
    is_const: bool = False
    is_reference: bool = False
    record: Optional[Handle] = None

    @property
    def canonical(self) -> str:
        return self.canonical_spelling or self.spelling


@dataclass
class Node:
    handle: Handle
    kind: NodeKind
    range: SourceRange
    location: SourceLocation
    name: str = ""
    type: Optional[TypeInfo] = None
    opcode: str = ""
    referenced: Optional[Handle] = None
    definition: Optional[Handle] = None
    context: Optional[Handle] = None
    tag: str = ""
    implicit: bool = False
    has_default_constructor: bool = True
    children: List[Handle] = field(default_factory=list)

    @property
    def is_overloaded_operator(self) -> bool:
        if not self.kind.is_function or not self.name.startswith("operator"):
            return False
        rest = self.name[len("operator"):].lstrip()
        if not rest:
            return False
        # "operator int" is a conversion, "operator new" is an overload
        return not (rest[0].isalnum() or rest[0] == "_") or rest.startswith(("new", "delete"))

    @property
    def is_transparent(self) -> bool:
        """True for nodes with no spelling of their own around one child."""
        if self.kind.is_implicit_wrapper:
            return bool(self.children)
        return self.kind is NodeKind.CONSTRUCT_EXPR and self.implicit and len(self.children) == 1


class SyntaxTree:
    """Arena of ``Node`` objects with a lazily derived parent index."""

    def __init__(self) -> None:
        self._nodes: List[Node] = []
        self._parents: Optional[Dict[Handle, Handle]] = None

    # -- construction --------------------------------------------------------

    def add(
        self,
        kind: NodeKind,
        range: SourceRange,
        *,
        parent: Optional[Handle] = None,
        location: Optional[SourceLocation] = None,
        **fields,
    ) -> Handle:
        handle = len(self._nodes)
        node = Node(handle, kind, range, location or range.begin, **fields)
        self._nodes.append(node)
        if parent is not None:
            self.node(parent).children.append(handle)
        self._parents = None
        return handle

    def link(self, handle: Handle, **fields) -> None:
        """Set cross-reference fields on an existing node."""
        node = self.node(handle)
        for name, value in fields.items():
            if not hasattr(node, name) or name in ("handle", "children"):
                raise AttributeError(f"Node has no settable field '{name}'")
            setattr(node, name, value)

    # -- access --------------------------------------------------------------

    def node(self, handle: Handle) -> Node:
        try:
            return self._nodes[handle]
        except (IndexError, TypeError):
            raise InvariantViolation(f"Unknown node handle {handle!r}") from None

    def __len__(self) -> int:
        return len(self._nodes)

    def __iter__(self) -> Iterator[Node]:
        return iter(self._nodes)

    def kind(self, handle: Handle) -> NodeKind:
        return self.node(handle).kind

    def children(self, handle: Handle) -> List[Handle]:
        return list(self.node(handle).children)

    def nodes_of_kind(self, kinds: Iterable[NodeKind]) -> Iterator[Node]:
        wanted = frozenset(kinds)
        return (n for n in self._nodes if n.kind in wanted)

    # -- parents -------------------------------------------------------------

    def _parent_index(self) -> Dict[Handle, Handle]:
        if self._parents is None:
            index: Dict[Handle, Handle] = {}
            for node in self._nodes:
                for child in node.children:
                    index[child] = node.handle
            self._parents = index
        return self._parents

    def parent(self, handle: Handle) -> Optional[Handle]:
        return self._parent_index().get(handle)

    def parents(self, handle: Handle) -> List[Handle]:
        parent = self.parent(handle)
        return [] if parent is None else [parent]

    def ancestors(self, handle: Handle) -> Iterator[Handle]:
        """Parent chain from the immediate parent to the root."""
        current = self.parent(handle)
        while current is not None:
            yield current
            current = self.parent(current)

    def first_ancestor(self, handle: Handle, kinds: Iterable[NodeKind]) -> Optional[Handle]:
        wanted = frozenset(kinds)
        for ancestor in self.ancestors(handle):
            if self.kind(ancestor) in wanted:
                return ancestor
        return None

    def descendants(self, handle: Handle, kinds: Optional[Iterable[NodeKind]] = None) -> Iterator[Handle]:
        """Pre-order descendants of *handle*, optionally filtered by kind."""
        wanted = frozenset(kinds) if kinds is not None else None
        stack = list(reversed(self.node(handle).children))
        while stack:
            current = stack.pop()
            if wanted is None or self.kind(current) in wanted:
                yield current
            stack.extend(reversed(self.node(current).children))

    # -- implicit nodes ------------------------------------------------------

    def ignore_implicit(self, handle: Handle) -> Handle:
        """Strip front-end inserted wrappers down to the spelled expression."""
        node = self.node(handle)
        while node.is_transparent:
            node = self.node(node.children[0])
        return node.handle

    def is_implicit_expression(self, child: Handle, parent: Handle) -> bool:
        # If stripping the parent's implicit wrappers lands on the child, the
        # parent was nothing but a wrapper around it.
        return self.ignore_implicit(parent) == child

    def parent_as(self, handle: Handle, kinds: Iterable[NodeKind]) -> Optional[Handle]:
        """The parent of *handle* if it is of one of *kinds*, looking through
        implicit wrapper expressions; ``None`` otherwise."""
        wanted = frozenset(kinds)
        current = handle
        while True:
            parent = self.parent(current)
            if parent is None:
                if self.kind(current) is NodeKind.TRANSLATION_UNIT:
                    return None
                raise InvariantViolation(
                    f"Orphan node {current} ({self.kind(current).value})",
                    code=ExpandErrorCodes.ORPHAN_NODE,
                )
            if self.kind(parent) in wanted:
                return parent
            if (
                self.kind(current).is_expr
                and self.kind(parent).is_expr
                and self.is_implicit_expression(current, parent)
            ):
                current = parent
                continue
            return None

    # -- calls and declarations ----------------------------------------------

    def call_arguments(self, call: Handle) -> List[Handle]:
        node = self.node(call)
        if node.kind is NodeKind.CONSTRUCT_EXPR:
            return list(node.children)
        return list(node.children[1:])

    def callee_expression(self, call: Handle) -> Optional[Handle]:
        node = self.node(call)
        if node.kind is NodeKind.CONSTRUCT_EXPR or not node.children:
            return None
        return node.children[0]

    def parameters(self, function: Handle) -> List[Handle]:
        return [c for c in self.node(function).children if self.kind(c) is NodeKind.PARAM]

    def body(self, function: Handle) -> Optional[Handle]:
        for child in self.node(function).children:
            if self.kind(child) is NodeKind.COMPOUND_STMT:
                return child
        return None

    def definition_of(self, function: Handle) -> Optional[Handle]:
        """The declaration of *function* that carries its body, if any."""
        if self.body(function) is not None:
            return function
        definition = self.node(function).definition
        if definition is not None and self.body(definition) is not None:
            return definition
        return None

    def decl_context(self, decl: Handle) -> Optional[Handle]:
        """Semantic parent of a declaration (its lexical parent by default)."""
        context = self.node(decl).context
        if context is not None:
            return context
        return self.parent(decl)

    def is_infix_binary_operator(self, call: Handle) -> bool:
        node = self.node(call)
        return (
            node.kind is NodeKind.OPERATOR_CALL_EXPR
            and len(self.call_arguments(call)) == 2
            and node.opcode not in NON_INFIX_OPERATORS
        )
