#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
cppexpand/macro.py
══════════════════

Macro expansion records and textual macro-body rewriting.

The preprocessor trace hands over one ``MacroExpansion`` per expanded macro:
the ``MacroInfo`` (name, formal parameters, defining tokens) and one raw,
unexpanded token run per actual argument.  ``MacroRewriter`` substitutes the
arguments into the defining tokens the way the preprocessor would, minus
rescanning:

    ┌──────────────────┬────────────────────────────┬─────────────────────┐
    │ body             │ x ↦ foo+1                  │ rewritten           │
    ├──────────────────┼────────────────────────────┼─────────────────────┤
    │ (x) * 2          │ plain substitution         │ (foo+1) * 2         │
    │ #x               │ stringification            │ "foo+1"             │
    │ a##x##b          │ concatenation (x ↦ 12)     │ a12b                │
    └──────────────────┴────────────────────────────┴─────────────────────┘

Everything outside the replaced spans is copied byte for byte from the
buffer that holds the ``#define``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

from cppexpand.errors import ExpandErrorCodes, InvariantViolation
from cppexpand.source import SourceLocation, SourceManager, SourceRange
from cppexpand.tokens import Token

logger = logging.getLogger(__name__)


MacroParameterMap = Dict[str, str]

VARIADIC_PARAMETER = "__VA_ARGS__"


@dataclass(frozen=True)
class MacroInfo:
    """A ``#define``: its name, formal parameters and replacement tokens."""

    name: str
    definition_location: SourceLocation
    parameters: Tuple[str, ...] = ()
    tokens: Tuple[Token, ...] = ()
    is_function_like: bool = False

    @property
    def is_variadic(self) -> bool:
        return bool(self.parameters) and self.parameters[-1] == VARIADIC_PARAMETER


@dataclass(frozen=True)
class MacroExpansion:
    """One use of a macro.  ``range`` runs from the macro name to the closing
    parenthesis of the argument list (or just the name)."""

    macro: MacroInfo
    range: SourceRange
    arguments: Tuple[Tuple[Token, ...], ...] = field(default_factory=tuple)

    @property
    def location(self) -> SourceLocation:
        return self.range.begin


def argument_text(tokens: Sequence[Token]) -> str:
    """Spell a raw argument run, one space wherever the source had whitespace."""
    parts: List[str] = []
    for token in tokens:
        if parts and token.has_leading_space:
            parts.append(" ")
        parts.append(token.spelling)
    return "".join(parts)


def map_macro_arguments(
    macro: MacroInfo, arguments: Sequence[Sequence[Token]]
) -> MacroParameterMap:
    """Map each formal parameter of *macro* to the text of its argument run."""
    mapping: MacroParameterMap = {}
    if not macro.parameters:
        return mapping

    if len(arguments) > len(macro.parameters):
        raise InvariantViolation(
            f"Macro '{macro.name}' expanded with {len(arguments)} arguments "
            f"but takes {len(macro.parameters)}",
            code=ExpandErrorCodes.TOO_MANY_ARGUMENTS,
        )

    for index, name in enumerate(macro.parameters):
        run = arguments[index] if index < len(arguments) else ()
        mapping[name] = argument_text(run)
    return mapping


def _stringify(text: str) -> str:
    escaped = text.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


class MacroRewriter:
    """Substitutes argument text into a macro's defining tokens."""

    def __init__(self, sources: SourceManager) -> None:
        self.sources = sources

    def _bounds(self, macro: MacroInfo) -> Optional[Tuple[str, int, int]]:
        if not macro.tokens:
            return None
        first = macro.tokens[0].location.canonical
        last = macro.tokens[-1]
        stop = last.location.canonical.offset + last.length
        return first.file, first.offset, stop

    def original_text(self, macro: MacroInfo) -> str:
        """Raw text of the macro body, first token start to last token end."""
        bounds = self._bounds(macro)
        if bounds is None:
            return ""
        filename, start, stop = bounds
        return self.sources.buffer(filename)[start:stop]

    def edits(self, macro: MacroInfo, mapping: MacroParameterMap) -> List[Tuple[int, int, str]]:
        """Replacement spans ``(start, end, text)`` over the defining buffer.

        A counter tracks how many ``#`` characters directly precede the
        current token (``##`` counts two).  A parameter after exactly one is
        stringified together with its ``#``.  After two, the pasting
        operator and the whitespace around it are dropped; concatenation
        is implicit in plain textual substitution.
        """
        edits: List[Tuple[int, int, str]] = []
        hashes = 0
        run_start = 0
        glue_start = 0
        previous_end: Optional[int] = None

        for token in macro.tokens:
            start = token.location.canonical.offset
            end = start + token.length

            count = token.kind.hash_count
            if count:
                if hashes == 0:
                    run_start = start
                    glue_start = previous_end if previous_end is not None else start
                hashes += count
                previous_end = end
                continue

            mapped = mapping.get(token.spelling) if token.is_identifier else None
            if hashes == 1 and mapped is not None:
                edits.append((run_start, end, _stringify(mapped)))
            elif hashes == 2:
                if mapped is not None:
                    edits.append((glue_start, end, mapped))
                else:
                    edits.append((glue_start, start, ""))
            elif mapped is not None:
                edits.append((start, end, mapped))

            hashes = 0
            previous_end = end

        return edits

    def rewrite(self, macro: MacroInfo, mapping: MacroParameterMap) -> str:
        bounds = self._bounds(macro)
        if bounds is None:
            return ""
        filename, start, stop = bounds
        text = self.sources.buffer(filename)

        pieces: List[str] = []
        position = start
        for edit_start, edit_end, replacement in sorted(self.edits(macro, mapping)):
            pieces.append(text[position:edit_start])
            pieces.append(replacement)
            position = edit_end
        pieces.append(text[position:stop])

        rewritten = "".join(pieces)
        logger.debug("Rewrote macro %s: %r -> %r", macro.name, text[start:stop], rewritten)
        return rewritten
