#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
cppexpand/matcher.py
════════════════════

Location matching and the top-level resolution pass.

Every candidate the translation unit offers is one of a closed set of match
variants:

    MacroMatch          a macro expansion from the preprocessor trace
    CallMatch           f(x), a + b            (callee named by a reference)
    MemberMatch         obj.f(x), p->f(x)      (callee named by a member access)
    ConstructionMatch   T(x), T v(x)           (explicit constructor invocation)

``LocationMatcher.match`` compares the variant's invocation location with the
target using canonical equality.  A mismatch returns ``False`` and touches
nothing; a match fills the ``Query``.  ``resolve`` runs one full pass, macro
expansions first, and turns any fatal error into a single
``ResolutionError``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterator, List, Optional, Union

from cppexpand.binder import map_call_parameters
from cppexpand.collect import collect_declaration_data, collect_definition_data
from cppexpand.config import ExpandConfig
from cppexpand.context import CallContextWalker, decorate_member_base
from cppexpand.errors import ExpandError, ExpandErrorCodes, InvariantViolation, ResolutionError
from cppexpand.macro import MacroExpansion, MacroRewriter, map_macro_arguments
from cppexpand.query import CallData, DefinitionData, Query, QueryOptions
from cppexpand.source import SourceLocation, SourceManager
from cppexpand.tree import Handle, NodeKind, SyntaxTree

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════
#  TRANSLATION UNIT
# ═══════════════════════════════════════════════════════════════════════════

@dataclass
class TranslationUnit:
    """Everything one parse pass provides: buffers, syntax tree, macro trace."""

    sources: SourceManager
    tree: SyntaxTree
    expansions: List[MacroExpansion] = field(default_factory=list)
    main_file: str = ""

    def location(self, line: int, column: int, filename: Optional[str] = None) -> SourceLocation:
        return self.sources.location(filename or self.main_file, line, column)


# ═══════════════════════════════════════════════════════════════════════════
#  MATCH VARIANTS
# ═══════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class CallMatch:
    call: Handle
    function: Optional[Handle]
    reference: Optional[Handle] = None


@dataclass(frozen=True)
class MemberMatch:
    call: Handle
    function: Optional[Handle]
    member: Handle


@dataclass(frozen=True)
class ConstructionMatch:
    call: Handle
    function: Optional[Handle]


@dataclass(frozen=True)
class MacroMatch:
    expansion: MacroExpansion


Candidate = Union[CallMatch, MemberMatch, ConstructionMatch, MacroMatch]


def _callee_function(tree: SyntaxTree, referenced: Optional[Handle]):
    """``(offer, function)`` for the declaration a callee refers to."""
    if referenced is None:
        return True, None
    if tree.kind(referenced).is_function:
        return True, referenced
    # Calls through function pointers and other callable variables
    return False, None


def iter_candidates(tree: SyntaxTree) -> Iterator[Candidate]:
    """Call and construction candidates of *tree* in arena order."""
    for node in tree:
        kind = node.kind
        if kind in (NodeKind.CALL_EXPR, NodeKind.OPERATOR_CALL_EXPR):
            callee = tree.callee_expression(node.handle)
            reference = tree.ignore_implicit(callee) if callee is not None else None
            if reference is None or tree.kind(reference) is not NodeKind.DECL_REF_EXPR:
                # f()->g(1), g(1)(2): no name token to match against
                logger.debug("Skipping call %d, callee is not a name", node.handle)
                continue
            offer, function = _callee_function(tree, tree.node(reference).referenced)
            if offer:
                yield CallMatch(node.handle, function, reference)

        elif kind is NodeKind.MEMBER_CALL_EXPR:
            callee = tree.callee_expression(node.handle)
            member = tree.ignore_implicit(callee) if callee is not None else None
            if member is None or tree.kind(member) is not NodeKind.MEMBER_EXPR:
                logger.debug("Skipping member call %d, callee is not a member access", node.handle)
                continue
            offer, function = _callee_function(tree, tree.node(member).referenced)
            if offer:
                yield MemberMatch(node.handle, function, member)

        elif kind is NodeKind.CONSTRUCT_EXPR and not node.implicit:
            offer, function = _callee_function(tree, node.referenced)
            if offer:
                yield ConstructionMatch(node.handle, function)


# ═══════════════════════════════════════════════════════════════════════════
#  LOCATION MATCHER
# ═══════════════════════════════════════════════════════════════════════════

class LocationMatcher:
    """Filters candidates by invocation location and fills the ``Query``."""

    def __init__(
        self,
        unit: TranslationUnit,
        target: SourceLocation,
        query: Query,
        config: Optional[ExpandConfig] = None,
    ) -> None:
        self.unit = unit
        self.target = target
        self.query = query
        self.config = config or ExpandConfig()
        self.walker = CallContextWalker(unit, self.config)
        self.rewriter = MacroRewriter(unit.sources)

    def invocation_location(self, candidate: Candidate) -> SourceLocation:
        """Location of the token naming the callable."""
        tree = self.unit.tree
        if isinstance(candidate, MacroMatch):
            return candidate.expansion.location
        if isinstance(candidate, CallMatch):
            if candidate.reference is not None:
                return tree.node(candidate.reference).location
            return tree.node(candidate.call).location
        if isinstance(candidate, MemberMatch):
            location = tree.node(candidate.member).location
            if candidate.function is not None and tree.node(candidate.function).is_overloaded_operator:
                # x.operator+(y) is named by the '+', not by 'operator'
                return location.with_offset(len("operator"))
            return location
        return tree.node(candidate.call).location

    def matches(self, candidate: Candidate) -> bool:
        return self.invocation_location(candidate).same_position(self.target)

    # -- dispatch ------------------------------------------------------------

    def match(self, candidate: Candidate) -> bool:
        """Handle one candidate; ``True`` if it was at the target location."""
        if not self.matches(candidate):
            return False
        if isinstance(candidate, MacroMatch):
            self._handle_macro(candidate.expansion)
        else:
            self._handle_call(candidate)
        return True

    def match_macro(self, expansion: MacroExpansion) -> bool:
        return self.match(MacroMatch(expansion))

    def _handle_macro(self, expansion: MacroExpansion) -> None:
        sources = self.unit.sources
        macro = expansion.macro
        mapping = map_macro_arguments(macro, expansion.arguments)

        self.query.call = CallData(sources.char_range(expansion.range))
        self.query.definition = DefinitionData(
            location=sources.presumed(macro.definition_location),
            original=self.rewriter.original_text(macro),
            rewritten=self.rewriter.rewrite(macro, mapping),
            is_macro=True,
        )
        logger.debug("Matched expansion of macro %s at %s", macro.name, expansion.location)

    def _handle_call(self, candidate: Union[CallMatch, MemberMatch, ConstructionMatch]) -> None:
        unit, query = self.unit, self.query
        if query.found_macro:
            logger.debug("Ignoring call %d, a macro was already matched here", candidate.call)
            return

        function = candidate.function
        if function is None:
            raise InvariantViolation(
                "Did not match required function declaration",
                code=ExpandErrorCodes.MISSING_FUNCTION_DECL,
                location=unit.sources.presumed(unit.tree.node(candidate.call).location),
            )

        call = candidate.call
        logger.debug("Matched call %d to %s", call, unit.tree.node(function).name)
        parameter_map = map_call_parameters(unit, call, function)

        options = query.options
        if options.wants_call or options.wants_rewritten:
            call_data = self.walker.walk(call)
            member = candidate.member if isinstance(candidate, MemberMatch) else None
            decorate_member_base(unit, call_data, call, function, member, self.config)
            query.call = call_data

        if options.requires_declaration:
            query.declaration = collect_declaration_data(unit, function, parameter_map)

        if options.requires_definition:
            definition = collect_definition_data(unit, function)
            if definition is not None:
                query.definition = definition


# ═══════════════════════════════════════════════════════════════════════════
#  RESOLUTION
# ═══════════════════════════════════════════════════════════════════════════

def resolve(
    unit: TranslationUnit,
    target: SourceLocation,
    options: Optional[QueryOptions] = None,
    config: Optional[ExpandConfig] = None,
) -> Query:
    """Resolve the call at *target* in one pass over *unit*.

    Raises ``ResolutionError`` if any component fails; a partially filled
    ``Query`` is never returned.
    """
    config = config or ExpandConfig()
    for warning in config.validate():
        logger.warning("ExpandConfig: %s", warning)

    query = Query(options)
    matcher = LocationMatcher(unit, target, query, config)
    try:
        # The preprocessor reports expansions before any syntax node exists.
        for expansion in unit.expansions:
            matcher.match_macro(expansion)
        for candidate in iter_candidates(unit.tree):
            matcher.match(candidate)
    except ExpandError as error:
        logger.error("Cannot resolve call at %s: %s", target, error)
        raise ResolutionError(error) from error

    return query
