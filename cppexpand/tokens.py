#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
cppexpand/tokens.py
═══════════════════

Raw C/C++ token scanning.

The scanner works on raw buffer text with macro expansion disabled, the way
a preprocessor sees a ``#define`` body or an unexpanded macro argument.  It
is used for two things:

    • measuring the length of the token that starts at a given offset, so
      that token ranges can be turned into character ranges;
    • splitting macro bodies and macro arguments into ``Token`` runs.

Comments and line continuations are skipped and count as whitespace.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Iterator, List, NamedTuple, Optional

if TYPE_CHECKING:
    from cppexpand.source import SourceLocation


class TokenKind(Enum):
    IDENTIFIER = "identifier"
    HASH = "hash"
    HASHHASH = "hashhash"
    NUMBER = "number"
    STRING = "string"
    CHAR = "char"
    PUNCTUATOR = "punctuator"
    UNKNOWN = "unknown"

    @property
    def hash_count(self) -> int:
        """Number of ``#`` characters this token contributes to a hash run."""
        if self is TokenKind.HASH:
            return 1
        if self is TokenKind.HASHHASH:
            return 2
        return 0


@dataclass(frozen=True)
class Token:
    kind: TokenKind
    spelling: str
    location: "SourceLocation"
    has_leading_space: bool = False

    @property
    def length(self) -> int:
        return len(self.spelling)

    @property
    def is_identifier(self) -> bool:
        return self.kind is TokenKind.IDENTIFIER


class RawToken(NamedTuple):
    kind: TokenKind
    spelling: str
    offset: int
    has_leading_space: bool


# ═══════════════════════════════════════════════════════════════════════════
#  PATTERNS
# ═══════════════════════════════════════════════════════════════════════════

# Longest punctuators first so that maximal munch falls out of alternation.
PUNCTUATORS: List[str] = sorted(
    [
        "%:%:", "...", "<<=", ">>=", "->*", "<=>",
        "##", "->", "++", "--", "<<", ">>", "<=", ">=", "==", "!=",
        "&&", "||", "+=", "-=", "*=", "/=", "%=", "&=", "|=", "^=",
        "::", ".*", "%:", "<:", ":>", "<%", "%>",
        "#", "{", "}", "[", "]", "(", ")", ";", ":", "?", ".", "~",
        "!", "+", "-", "*", "/", "%", "^", "&", "|", "=", "<", ">", ",",
    ],
    key=len,
    reverse=True,
)

_IDENTIFIER = re.compile(r"[A-Za-z_$][A-Za-z0-9_$]*")
# pp-number: digits, dots, identifier characters and signed exponents
_NUMBER = re.compile(r"\.?[0-9](?:[eEpP][+-]|[A-Za-z0-9_.'])*")
_STRING = re.compile(r'(?:u8|u|U|L)?"(?:[^"\\\n]|\\.)*"?')
_CHAR = re.compile(r"(?:u8|u|U|L)?'(?:[^'\\\n]|\\.)*'?")
_PUNCTUATOR = re.compile("|".join(re.escape(p) for p in PUNCTUATORS))
_WHITESPACE = re.compile(r"(?:[ \t\r\n\f\v]|\\\r?\n|//[^\n]*|/\*.*?(?:\*/|\Z))+", re.DOTALL)


def _match_at(text: str, offset: int, end: int) -> Optional[RawToken]:
    """Match one token starting exactly at *offset* (no leading whitespace)."""
    for pattern, kind in ((_STRING, TokenKind.STRING), (_CHAR, TokenKind.CHAR)):
        m = pattern.match(text, offset, end)
        if m:
            return RawToken(kind, m.group(0), offset, False)

    m = _IDENTIFIER.match(text, offset, end)
    if m:
        return RawToken(TokenKind.IDENTIFIER, m.group(0), offset, False)

    m = _NUMBER.match(text, offset, end)
    if m:
        return RawToken(TokenKind.NUMBER, m.group(0), offset, False)

    m = _PUNCTUATOR.match(text, offset, end)
    if m:
        spelling = m.group(0)
        if spelling in ("#", "%:"):
            kind = TokenKind.HASH
        elif spelling in ("##", "%:%:"):
            kind = TokenKind.HASHHASH
        else:
            kind = TokenKind.PUNCTUATOR
        return RawToken(kind, spelling, offset, False)

    if offset < end:
        return RawToken(TokenKind.UNKNOWN, text[offset], offset, False)
    return None


def scan(text: str, start: int = 0, end: Optional[int] = None) -> Iterator[RawToken]:
    """Yield the raw tokens of ``text[start:end]`` in buffer order."""
    if end is None:
        end = len(text)
    pos = start
    leading_space = False
    while pos < end:
        ws = _WHITESPACE.match(text, pos, end)
        if ws:
            pos = ws.end()
            leading_space = True
            continue
        raw = _match_at(text, pos, end)
        if raw is None:
            break
        yield raw._replace(has_leading_space=leading_space)
        pos += len(raw.spelling)
        leading_space = False


def measure_token_length(text: str, offset: int) -> int:
    """Length of the token starting at *offset*, or 0 at whitespace/EOF."""
    if offset < 0 or offset >= len(text):
        return 0
    if _WHITESPACE.match(text, offset):
        return 0
    raw = _match_at(text, offset, len(text))
    return len(raw.spelling) if raw is not None else 0


def last_token_offset(text: str, start: int, end: int) -> int:
    """Offset of the first character of the last token in ``text[start:end]``.

    Returns *start* when the slice holds no tokens.
    """
    last = start
    for raw in scan(text, start, end):
        last = raw.offset
    return last
