"""
cppexpand/binder.py
===================

Parameter binding: formal parameter name -> argument text at one call site.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Optional

from cppexpand.errors import ExpandErrorCodes, InvariantViolation
from cppexpand.query import ParameterMap
from cppexpand.tree import Handle, NodeKind, SyntaxTree

if TYPE_CHECKING:
    from cppexpand.matcher import TranslationUnit

logger = logging.getLogger(__name__)


def is_member_operator_call(tree: SyntaxTree, call: Handle, function: Optional[Handle]) -> bool:
    """An operator call whose overload is a method: ``a + b`` with
    ``A::operator+(const A&)``.  The receiver is the first call argument and
    has no formal parameter of its own."""
    return (
        function is not None
        and tree.kind(call) is NodeKind.OPERATOR_CALL_EXPR
        and tree.kind(function) is NodeKind.METHOD
    )


def _add_mapping(
    parameters: ParameterMap,
    unit: "TranslationUnit",
    parameter: Handle,
    argument: Handle,
) -> None:
    name = unit.tree.node(parameter).name
    if not name:
        return
    parameters[name] = unit.sources.text(unit.tree.node(argument).range)


def _map_operator_overload(
    unit: "TranslationUnit", call: Handle, function: Handle
) -> ParameterMap:
    tree = unit.tree
    parameters: ParameterMap = {}
    if tree.is_infix_binary_operator(call):
        formals = tree.parameters(function)
        if not formals:
            raise InvariantViolation(
                f"Binary operator '{tree.node(function).name}' declares no parameter"
            )
        argument = tree.ignore_implicit(tree.call_arguments(call)[1])
        _add_mapping(parameters, unit, formals[0], argument)
    return parameters


def map_call_parameters(
    unit: "TranslationUnit", call: Handle, function: Handle
) -> ParameterMap:
    """Map *function*'s formal parameters to the arguments spelled at *call*.

    Arguments the front end filled in from default values are skipped, so
    the map only holds parameters the caller actually supplied.  For member
    operator overloads a unary operator binds nothing and an infix binary
    operator binds its single parameter to the right operand.
    """
    tree = unit.tree
    if is_member_operator_call(tree, call, function):
        return _map_operator_overload(unit, call, function)

    parameters: ParameterMap = {}
    formals = iter(tree.parameters(function))
    for argument in tree.call_arguments(call):
        argument = tree.ignore_implicit(argument)
        if tree.kind(argument) is NodeKind.DEFAULT_ARG_EXPR:
            continue

        parameter = next(formals, None)
        if parameter is None:
            raise InvariantViolation(
                f"Call passes more arguments than '{tree.node(function).name}' has parameters",
                code=ExpandErrorCodes.TOO_MANY_ARGUMENTS,
            )
        _add_mapping(parameters, unit, parameter, argument)

    logger.debug("Bound %d parameter(s) of %s", len(parameters), tree.node(function).name)
    return parameters
