"""
cppexpand/collect.py
====================

Declaration and definition collection for a resolved callee.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, List, Optional

from cppexpand.errors import InvariantViolation
from cppexpand.query import ContextEntry, DeclarationData, DefinitionData, ParameterMap
from cppexpand.source import SourceLocation
from cppexpand.tree import SCOPE_KINDS, Handle, NodeKind

if TYPE_CHECKING:
    from cppexpand.matcher import TranslationUnit

logger = logging.getLogger(__name__)


def _initializer_start(unit: "TranslationUnit", function: Handle, end: int) -> Optional[int]:
    """Offset of the ``:`` opening a constructor's member-initializer list."""
    begin = unit.tree.node(function).range.begin.canonical
    depth = 0
    closed = False
    for token in unit.sources.tokens(begin.file, begin.offset, end):
        if token.spelling == "(":
            depth += 1
        elif token.spelling == ")":
            depth -= 1
            closed = closed or depth == 0
        elif token.spelling == ":" and closed and depth == 0:
            return token.location.offset
    return None


def _declaration_text(unit: "TranslationUnit", function: Handle) -> str:
    tree, sources = unit.tree, unit.sources
    node = tree.node(function)
    body = tree.body(function)
    if body is not None:
        end = tree.node(body).range.begin.canonical
        if node.kind is NodeKind.CONSTRUCTOR:
            colon = _initializer_start(unit, function, end.offset)
            if colon is not None:
                end = SourceLocation(end.file, colon)
        text = sources.char_text(node.range.begin, end)
    else:
        text = sources.text(node.range)
    text = text.rstrip()
    if not text.endswith(";"):
        text += ";"
    return text


def collect_contexts(unit: "TranslationUnit", function: Handle) -> List[ContextEntry]:
    """Enclosing namespaces and records of *function*, innermost first."""
    tree = unit.tree
    contexts: List[ContextEntry] = []
    current = tree.decl_context(function)
    while current is not None:
        node = tree.node(current)
        if node.kind is NodeKind.TRANSLATION_UNIT:
            break
        if node.kind in SCOPE_KINDS:
            scope = "namespace" if node.kind is NodeKind.NAMESPACE else node.tag or "class"
            contexts.append(ContextEntry(scope, node.name))
        current = tree.decl_context(current)
    return contexts


def collect_declaration_data(
    unit: "TranslationUnit",
    function: Handle,
    parameter_map: Optional[ParameterMap] = None,
) -> DeclarationData:
    tree, sources = unit.tree, unit.sources
    node = tree.node(function)

    parameter_types: List[str] = []
    for parameter in tree.parameters(function):
        info = tree.node(parameter).type
        if info is None:
            raise InvariantViolation(
                f"Parameter {parameter} of '{node.name}' has no type"
            )
        parameter_types.append(info.canonical)

    declaration = DeclarationData(
        name=node.name,
        location=sources.presumed(node.location),
        text=_declaration_text(unit, function),
        parameter_map=dict(parameter_map or {}),
        parameter_types=parameter_types,
        contexts=collect_contexts(unit, function),
    )
    logger.debug("Collected declaration of %s: %r", node.name, declaration.text)
    return declaration


def collect_definition_data(unit: "TranslationUnit", function: Handle) -> Optional[DefinitionData]:
    """Body of *function* (or of its out-of-line definition), if one exists."""
    tree, sources = unit.tree, unit.sources
    definition = tree.definition_of(function)
    if definition is None:
        logger.debug("No body for %s", tree.node(function).name)
        return None

    body = tree.body(definition)
    original = sources.text(tree.node(body).range)
    return DefinitionData(
        location=sources.presumed(tree.node(definition).location),
        original=original,
        rewritten=original,
        is_macro=False,
    )
