"""
cppexpand/context.py
====================

Classify how the result of a matched call is consumed and compute the text
range an expansion must replace.

Accepted contexts::

    f(x);                 bare statement (or global initializer)
    return f(x);          return statement
    T v = f(x);           variable declaration in a plain statement list
    v = f(x);  v += f(x); assignment, compound or shift assignment

Everything else (conditions, loop headers, operands of other operators,
arguments of other calls) is refused with ``UnsafeContextError``.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Optional

from cppexpand.binder import is_member_operator_call
from cppexpand.config import ExpandConfig
from cppexpand.errors import ExpandErrorCodes, InvariantViolation, UnsafeContextError
from cppexpand.query import AssigneeData, CallData
from cppexpand.source import Range, SourceRange
from cppexpand.tree import Handle, NodeKind

if TYPE_CHECKING:
    from cppexpand.matcher import TranslationUnit

logger = logging.getLogger(__name__)


ASSIGNMENT_OPERATORS = frozenset({
    "=", "*=", "/=", "%=", "+=", "-=", "&=", "^=", "|=", "<<=", ">>=",
})

_STATEMENT_PARENTS = (NodeKind.COMPOUND_STMT, NodeKind.TRANSLATION_UNIT)

# Expressions that compute something from the call result
_OPERAND_KINDS = frozenset({NodeKind.UNARY_OPERATOR, NodeKind.CONDITIONAL_OPERATOR})


def clean_call_range(
    unit: "TranslationUnit",
    call: Handle,
    source_range: SourceRange,
    config: Optional[ExpandConfig] = None,
) -> Range:
    """Turn the token range of a call's context into the replaceable range.

    The end of an ordinary call range is its closing parenthesis, so the
    statement terminator sits ``statement_terminator_width`` characters
    further.  Operator calls end at the first character of their last
    operand; that whole token is skipped instead.
    """
    config = config or ExpandConfig()
    sources = unit.sources
    end = source_range.end.canonical
    if unit.tree.kind(call) is NodeKind.OPERATOR_CALL_EXPR:
        extra = sources.measure_token_length(end)
    else:
        extra = config.statement_terminator_width
    terminator = end.with_offset(extra)
    return Range(sources.presumed(source_range.begin), sources.presumed(terminator.with_offset(1)))


class CallContextWalker:
    """Walks upward from a matched call to find its consuming context."""

    def __init__(self, unit: "TranslationUnit", config: Optional[ExpandConfig] = None) -> None:
        self.unit = unit
        self.tree = unit.tree
        self.sources = unit.sources
        self.config = config or ExpandConfig()

    def _location(self, handle: Handle):
        return self.sources.presumed(self.tree.node(handle).location)

    def _range(self, call: Handle, source_range: SourceRange) -> Range:
        return clean_call_range(self.unit, call, source_range, self.config)

    # -- entry point ---------------------------------------------------------

    def walk(self, call: Handle) -> CallData:
        if self.tree.parent_as(call, _STATEMENT_PARENTS) is not None:
            logger.debug("Call %d is a bare statement", call)
            return CallData(self._range(call, self.tree.node(call).range))

        data = self._from_context(call, call, self.config.max_context_depth)
        if data is not None:
            return data

        raise UnsafeContextError(
            "Refuse or unable to expand at given location",
            location=self._location(call),
        )

    # -- context search ------------------------------------------------------

    def _from_context(self, call: Handle, expression: Handle, depth: int) -> Optional[CallData]:
        if depth < 1:
            raise InvariantViolation(
                "Reached invalid depth while walking up call expression",
                code=ExpandErrorCodes.INVALID_DEPTH,
            )

        tree = self.tree
        for parent in tree.parents(expression):
            kind = tree.kind(parent)
            if kind is NodeKind.RETURN_STMT:
                logger.debug("Call %d is returned", call)
                return CallData(self._range(call, tree.node(parent).range))
            if kind is NodeKind.VAR:
                return self._for_variable(call, parent)
            if kind is NodeKind.BINARY_OPERATOR:
                return self._for_binary_operator(call, parent)

        if depth > 1:
            for parent in tree.parents(expression):
                node = tree.node(parent)
                if not node.kind.is_expr:
                    continue
                if node.kind.is_call and not node.is_transparent:
                    raise UnsafeContextError(
                        "Cannot expand call nested inside another call",
                        code=ExpandErrorCodes.NESTED_CALL,
                        location=self._location(call),
                    )
                if node.kind in _OPERAND_KINDS:
                    # -f(x), c ? f(x) : y: the operator would be lost
                    raise UnsafeContextError(
                        f"Cannot expand call as operand of {node.opcode or '?:'}",
                        code=ExpandErrorCodes.OPERAND_OF_OPERATOR,
                        location=self._location(call),
                    )
                if not (node.kind is NodeKind.PAREN_EXPR or node.kind.is_implicit_wrapper
                        or node.is_transparent):
                    logger.debug("Call %d is part of a %s", call, node.kind.value)
                    return None
                result = self._from_context(call, parent, depth - 1)
                if result is not None:
                    return result

        return None

    def _is_nested_declaration(self, variable: Handle) -> bool:
        # Only [DeclStmt -> CompoundStmt] and global variables are plain.
        tree = self.tree
        if tree.parent_as(variable, (NodeKind.TRANSLATION_UNIT,)) is not None:
            return False
        statement = tree.parent_as(variable, (NodeKind.DECL_STMT,))
        if statement is not None and tree.parent_as(statement, (NodeKind.COMPOUND_STMT,)) is not None:
            return False
        return True

    def _for_variable(self, call: Handle, variable: Handle) -> CallData:
        if self._is_nested_declaration(variable):
            raise UnsafeContextError(
                "Cannot expand call initializing a variable declared inside another statement",
                code=ExpandErrorCodes.NESTED_DECLARATION,
                location=self._location(call),
            )

        node = self.tree.node(variable)
        if node.type is None:
            raise InvariantViolation(f"Variable '{node.name}' has no type")

        info = node.type
        constructible = not (info.is_const or info.is_reference)
        if constructible and info.record is not None:
            constructible = self.tree.node(info.record).has_default_constructor

        assignee = AssigneeData(
            name=node.name,
            op="=",
            type=info.canonical,
            is_default_constructible=constructible,
        )
        logger.debug("Call %d initializes '%s'", call, node.name)
        return CallData(self._range(call, node.range), assignee=assignee)

    def _for_binary_operator(self, call: Handle, operator: Handle) -> CallData:
        tree = self.tree
        node = tree.node(operator)
        if node.opcode not in ASSIGNMENT_OPERATORS:
            raise UnsafeContextError(
                f"Cannot expand call as operand of {node.opcode}",
                code=ExpandErrorCodes.OPERAND_OF_OPERATOR,
                location=self._location(call),
            )

        lhs = tree.node(node.children[0])
        if lhs.kind is NodeKind.DECL_REF_EXPR:
            name = tree.node(lhs.referenced).name if lhs.referenced is not None else lhs.name
        elif lhs.kind is NodeKind.MEMBER_EXPR:
            # x.y, x->y, x.T::y ... all read back from the source.
            name = self.sources.text(lhs.range)
        else:
            raise UnsafeContextError(
                "Cannot expand call because assignee is not recognized",
                code=ExpandErrorCodes.UNRECOGNIZED_ASSIGNEE,
                location=self._location(call),
            )

        logger.debug("Call %d is assigned to '%s' with %s", call, name, node.opcode)
        return CallData(self._range(call, node.range), assignee=AssigneeData(name=name, op=node.opcode))


def decorate_member_base(
    unit: "TranslationUnit",
    call_data: CallData,
    call: Handle,
    function: Optional[Handle],
    member: Optional[Handle] = None,
    config: Optional[ExpandConfig] = None,
) -> None:
    """Record the receiver prefix for member references in the inlined body."""
    config = config or ExpandConfig()
    tree, sources = unit.tree, unit.sources

    if is_member_operator_call(tree, call, function):
        receiver = tree.call_arguments(call)[0]
        call_data.base = sources.text(tree.node(receiver).range) + config.member_separator
        return

    if member is not None:
        node = tree.node(member)
        base = tree.ignore_implicit(node.children[0]) if node.children else None
        if base is not None and tree.kind(base) is not NodeKind.THIS_EXPR:
            call_data.base = sources.char_text(node.range.begin, node.location)
            return

    if (
        function is not None
        and tree.kind(function) is NodeKind.CONSTRUCTOR
        and call_data.assignee is not None
    ):
        call_data.base = call_data.assignee.name + config.member_separator
