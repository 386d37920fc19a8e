# cppexpand/errors.py
"""
Error Types for Call-Site Expansion

Every fatal condition raised while resolving a call site derives from
``ExpandError``.  A request that raises is aborted as a whole: no partially
populated ``Query`` is ever handed back to the driver.

Error Hierarchy:
────────────────
┌─────────────────────────────────────────────────────────────────────────────┐
│  ExpandError (base)                                                         │
│  ├── UnsafeContextError  - call sits where it cannot be replaced in place   │
│  ├── InvariantViolation  - internal expectation broken (a defect)           │
│  ├── DumpError           - front-end dump could not be read                 │
│  └── ResolutionError     - the single failure surfaced by ``resolve()``     │
└─────────────────────────────────────────────────────────────────────────────┘

Error Codes:
────────────
Codes follow the pattern EXP-NNNN:
  - 1000-1999: Unsafe context
  - 2000-2999: Malformed input
  - 9000-9999: Invariant violations

A non-matching syntax node or macro expansion is *not* an error; the matcher
simply returns.
"""

from __future__ import annotations

from enum import Enum, unique
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from cppexpand.source import Location


@unique
class ErrorKind(Enum):
    """Taxonomy of fatal resolution failures."""

    UNSAFE_CONTEXT = "unsafe-context"
    MALFORMED_INPUT = "malformed-input"
    INVARIANT_VIOLATION = "invariant-violation"


class ErrorCode:
    """A structured ``EXP-NNNN`` error code bound to an ``ErrorKind``."""

    __slots__ = ("prefix", "number", "kind")

    def __init__(self, prefix: str, number: int, kind: ErrorKind) -> None:
        self.prefix = prefix
        self.number = number
        self.kind = kind

    @property
    def code(self) -> str:
        return f"{self.prefix}-{self.number:04d}"

    def __str__(self) -> str:
        return self.code

    def __repr__(self) -> str:
        return f"ErrorCode({self.code}, {self.kind.name})"

    def __eq__(self, other: object) -> bool:
        if isinstance(other, ErrorCode):
            return self.code == other.code
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self.code)


class ExpandErrorCodes:
    """Predefined error codes."""

    # ═══════════════════════════════════════════════════════════════════════
    # UNSAFE CONTEXT (1000-1999)
    # ═══════════════════════════════════════════════════════════════════════

    UNSAFE_LOCATION = ErrorCode("EXP", 1000, ErrorKind.UNSAFE_CONTEXT)
    OPERAND_OF_OPERATOR = ErrorCode("EXP", 1001, ErrorKind.UNSAFE_CONTEXT)
    UNRECOGNIZED_ASSIGNEE = ErrorCode("EXP", 1002, ErrorKind.UNSAFE_CONTEXT)
    NESTED_DECLARATION = ErrorCode("EXP", 1003, ErrorKind.UNSAFE_CONTEXT)
    NESTED_CALL = ErrorCode("EXP", 1004, ErrorKind.UNSAFE_CONTEXT)

    # ═══════════════════════════════════════════════════════════════════════
    # MALFORMED INPUT (2000-2999)
    # ═══════════════════════════════════════════════════════════════════════

    MALFORMED_DUMP = ErrorCode("EXP", 2000, ErrorKind.MALFORMED_INPUT)
    UNKNOWN_REFERENCE = ErrorCode("EXP", 2001, ErrorKind.MALFORMED_INPUT)

    # ═══════════════════════════════════════════════════════════════════════
    # INVARIANT VIOLATIONS (9000-9999)
    # ═══════════════════════════════════════════════════════════════════════

    INTERNAL_ERROR = ErrorCode("EXP", 9000, ErrorKind.INVARIANT_VIOLATION)
    MISSING_FUNCTION_DECL = ErrorCode("EXP", 9001, ErrorKind.INVARIANT_VIOLATION)
    TOO_MANY_ARGUMENTS = ErrorCode("EXP", 9002, ErrorKind.INVARIANT_VIOLATION)
    FIELD_ALREADY_SET = ErrorCode("EXP", 9003, ErrorKind.INVARIANT_VIOLATION)
    INVALID_DEPTH = ErrorCode("EXP", 9004, ErrorKind.INVARIANT_VIOLATION)
    ORPHAN_NODE = ErrorCode("EXP", 9005, ErrorKind.INVARIANT_VIOLATION)
    INVALID_RANGE = ErrorCode("EXP", 9006, ErrorKind.INVARIANT_VIOLATION)


# ═══════════════════════════════════════════════════════════════════════════
# EXCEPTION CLASSES
# ═══════════════════════════════════════════════════════════════════════════

class ExpandError(Exception):
    """
    Base exception for all call-site expansion errors.

    Carries a structured ``ErrorCode`` and, when known, the output
    ``Location`` the error refers to.
    """

    default_code: ErrorCode = ExpandErrorCodes.INTERNAL_ERROR

    def __init__(
        self,
        message: str,
        code: Optional[ErrorCode] = None,
        location: Optional["Location"] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.location = location

    @property
    def kind(self) -> ErrorKind:
        return self.code.kind

    def to_gcc_format(self) -> str:
        """Format as a GCC-style error message."""
        if self.location is not None:
            loc = self.location
            return f"{loc.filename}:{loc.line}:{loc.column}: {self.message} [{self.code}]"
        return f"{self.message} [{self.code}]"

    def __str__(self) -> str:
        return self.to_gcc_format()


class UnsafeContextError(ExpandError):
    """The call cannot be expressed as a single statement replacement."""

    default_code = ExpandErrorCodes.UNSAFE_LOCATION


class InvariantViolation(ExpandError):
    """An internal expectation was violated; always a defect upstream."""

    default_code = ExpandErrorCodes.INTERNAL_ERROR


class DumpError(ExpandError):
    """A translation-unit dump could not be mapped onto the syntax tree."""

    default_code = ExpandErrorCodes.MALFORMED_DUMP


class ResolutionError(ExpandError):
    """
    The single externally visible failure of a resolution request.

    Wraps the error that aborted the request; ``kind`` and ``code`` are
    taken from it.
    """

    def __init__(self, cause: ExpandError) -> None:
        super().__init__(cause.message, code=cause.code, location=cause.location)
        self.cause = cause
