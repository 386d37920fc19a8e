"""
cppexpand/config.py
===================

Tuning knobs for call-site resolution.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List


DEFAULT_CONTEXT_DEPTH = 8


@dataclass
class ExpandConfig:
    """Configuration for one resolution request.

    ``max_context_depth`` bounds how many levels above a call expression the
    context search looks for a return statement, variable declaration or
    assignment.  It is a heuristic: deeply wrapped expressions may exceed it
    and be refused even though a human could expand them.
    """

    max_context_depth: int = DEFAULT_CONTEXT_DEPTH
    member_separator: str = "."
    statement_terminator_width: int = 1

    def validate(self) -> List[str]:
        """Return a list of validation warnings (empty if valid)."""
        warnings: List[str] = []
        if self.max_context_depth <= 0:
            warnings.append("max_context_depth must be positive")
        if not self.member_separator:
            warnings.append("member_separator should not be empty")
        if self.statement_terminator_width < 0:
            warnings.append("statement_terminator_width must be non-negative")
        return warnings
