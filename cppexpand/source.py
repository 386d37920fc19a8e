"""
cppexpand/source.py
===================

Source positions and the raw-text service.

* ``SourceLocation``  – opaque buffer position, possibly inside a macro layer
* ``SourceRange``     – token range ``(begin, end)`` as reported by a front end
* ``SourceManager``   – owns buffers; extracts raw text, measures tokens and
  compares locations canonically
* ``Location``/``Range`` – owned, line/column output forms stored in a Query

A ``SourceRange`` ends at the *first* character of its last token.  Turning
it into text or into a character ``Range`` extends the end by the length of
the token found there.
"""

from __future__ import annotations

import bisect
from dataclasses import dataclass
from typing import Dict, List, Optional

from cppexpand.errors import ExpandErrorCodes, InvariantViolation
from cppexpand.tokens import Token, last_token_offset, measure_token_length, scan


@dataclass(frozen=True)
class SourceLocation:
    """A position in a source buffer.

    ``spelling`` is the location one macro-expansion layer down, i.e. where
    the characters producing this position were actually written.  Plain
    file locations have no spelling layer.
    """

    file: str
    offset: int
    spelling: Optional["SourceLocation"] = None

    @property
    def canonical(self) -> "SourceLocation":
        loc = self
        while loc.spelling is not None:
            loc = loc.spelling
        return loc

    @property
    def is_macro_location(self) -> bool:
        return self.spelling is not None

    def with_offset(self, delta: int) -> "SourceLocation":
        """Canonical location *delta* characters further in the same buffer."""
        base = self.canonical
        return SourceLocation(base.file, base.offset + delta)

    def same_position(self, other: "SourceLocation") -> bool:
        """Canonical equality: the same buffer position once macro layers are resolved."""
        a, b = self.canonical, other.canonical
        return a.file == b.file and a.offset == b.offset

    def __str__(self) -> str:
        c = self.canonical
        return f"{c.file}@{c.offset}"


@dataclass(frozen=True)
class SourceRange:
    begin: SourceLocation
    end: SourceLocation

    def __post_init__(self) -> None:
        b, e = self.begin.canonical, self.end.canonical
        if b.file == e.file and e.offset < b.offset:
            raise InvariantViolation(
                f"Source range ends before it begins ({b} > {e})",
                code=ExpandErrorCodes.INVALID_RANGE,
            )

    @property
    def file(self) -> str:
        return self.begin.canonical.file


@dataclass(frozen=True)
class Location:
    """Owned output position: 1-based line and column plus buffer offset."""

    filename: str
    line: int
    column: int
    offset: int

    def to_dict(self) -> dict:
        return {
            "filename": self.filename,
            "line": self.line,
            "column": self.column,
            "offset": self.offset,
        }


@dataclass(frozen=True)
class Range:
    """Owned output range; ``end`` is one past the last character."""

    begin: Location
    end: Location

    def to_dict(self) -> dict:
        return {"begin": self.begin.to_dict(), "end": self.end.to_dict()}


class SourceManager:
    """Owns the text of every buffer of a translation unit."""

    def __init__(self) -> None:
        self._buffers: Dict[str, str] = {}
        self._line_starts: Dict[str, List[int]] = {}

    # -- buffers -------------------------------------------------------------

    def add_buffer(self, filename: str, text: str) -> None:
        self._buffers[filename] = text
        starts = [0]
        for i, ch in enumerate(text):
            if ch == "\n":
                starts.append(i + 1)
        self._line_starts[filename] = starts

    def buffer(self, filename: str) -> str:
        try:
            return self._buffers[filename]
        except KeyError:
            raise InvariantViolation(f"No source buffer for '{filename}'") from None

    @property
    def files(self) -> List[str]:
        return list(self._buffers)

    # -- locations -----------------------------------------------------------

    def location(self, filename: str, line: int, column: int) -> SourceLocation:
        """Location of a 1-based ``line:column`` position in *filename*.

        Column ``length + 1`` is the end of the line; anything further would
        spill onto the next line and is rejected.
        """
        starts = self._line_starts.get(filename)
        if starts is None:
            raise InvariantViolation(f"No source buffer for '{filename}'")
        if not 1 <= line <= len(starts):
            raise InvariantViolation(f"Line {line} is outside '{filename}'")
        start = starts[line - 1]
        if line < len(starts):
            length = starts[line] - start - 1
        else:
            length = len(self._buffers[filename]) - start
        if not 1 <= column <= length + 1:
            raise InvariantViolation(f"Column {column} is outside line {line} of '{filename}'")
        return SourceLocation(filename, start + column - 1)

    def presumed(self, location: SourceLocation) -> Location:
        loc = location.canonical
        starts = self._line_starts.get(loc.file)
        if starts is None:
            raise InvariantViolation(f"No source buffer for '{loc.file}'")
        index = bisect.bisect_right(starts, loc.offset) - 1
        return Location(loc.file, index + 1, loc.offset - starts[index] + 1, loc.offset)

    @staticmethod
    def locations_equal(first: SourceLocation, second: SourceLocation) -> bool:
        return first.same_position(second)

    # -- tokens --------------------------------------------------------------

    def measure_token_length(self, location: SourceLocation) -> int:
        loc = location.canonical
        return measure_token_length(self.buffer(loc.file), loc.offset)

    def tokens(self, filename: str, start: int, end: int) -> List[Token]:
        """Raw tokens of the character span ``[start, end)``."""
        text = self.buffer(filename)
        return [
            Token(raw.kind, raw.spelling, SourceLocation(filename, raw.offset), raw.has_leading_space)
            for raw in scan(text, start, end)
        ]

    def token_range(self, filename: str, start: int, end: int) -> SourceRange:
        """Token range covering the character span ``[start, end)``."""
        last = last_token_offset(self.buffer(filename), start, end)
        return SourceRange(SourceLocation(filename, start), SourceLocation(filename, last))

    # -- text ----------------------------------------------------------------

    def _char_end(self, source_range: SourceRange) -> int:
        end = source_range.end.canonical
        return end.offset + self.measure_token_length(end)

    def text(self, source_range: SourceRange) -> str:
        """Raw text of a token range, last token included."""
        begin = source_range.begin.canonical
        end = source_range.end.canonical
        if begin.file != end.file:
            raise InvariantViolation(
                f"Source range spans two buffers ({begin.file}, {end.file})",
                code=ExpandErrorCodes.INVALID_RANGE,
            )
        return self.buffer(begin.file)[begin.offset:self._char_end(source_range)]

    def char_text(self, begin: SourceLocation, end: SourceLocation) -> str:
        """Raw text of the character span ``[begin, end)``."""
        b, e = begin.canonical, end.canonical
        if b.file != e.file:
            raise InvariantViolation(
                f"Source span crosses buffers ({b.file}, {e.file})",
                code=ExpandErrorCodes.INVALID_RANGE,
            )
        return self.buffer(b.file)[b.offset:e.offset]

    def char_range(self, source_range: SourceRange) -> Range:
        """Owned character range of a token range."""
        begin = source_range.begin.canonical
        end = SourceLocation(source_range.end.canonical.file, self._char_end(source_range))
        return Range(self.presumed(begin), self.presumed(end))
