"""
cppexpand/query.py
==================

The result record of one resolution request.

A ``Query`` is created by the orchestrator, handed by reference to every
component that contributes to it and returned to the driver at the end of
the pass.  Each of its three result fields can be written exactly once; a
second write is a defect and raises ``InvariantViolation``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from cppexpand.errors import ExpandErrorCodes, InvariantViolation
from cppexpand.source import Location, Range


ParameterMap = Dict[str, str]


@dataclass(frozen=True)
class QueryOptions:
    """Which outputs the driver asked for."""

    wants_call: bool = True
    wants_declaration: bool = True
    wants_definition: bool = True
    wants_rewritten: bool = False

    @property
    def requires_declaration(self) -> bool:
        # Rewriting a function body needs the parameter map.
        return self.wants_declaration or self.wants_rewritten

    @property
    def requires_definition(self) -> bool:
        return self.wants_definition or self.wants_rewritten


@dataclass
class AssigneeData:
    """The variable (or lvalue expression) receiving the call's result."""

    name: str
    op: str = "="
    type: Optional[str] = None
    is_default_constructible: bool = True

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"name": self.name, "op": self.op}
        if self.type is not None:
            data["type"] = {
                "name": self.type,
                "isDefaultConstructible": self.is_default_constructible,
            }
        return data


@dataclass
class CallData:
    range: Range
    assignee: Optional[AssigneeData] = None
    base: str = ""

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"range": self.range.to_dict()}
        if self.assignee is not None:
            data["assignee"] = self.assignee.to_dict()
        if self.base:
            data["base"] = self.base
        return data


@dataclass(frozen=True)
class ContextEntry:
    """One enclosing scope: ``kind`` is namespace, class, struct or union."""

    kind: str
    name: str

    def to_dict(self) -> Dict[str, str]:
        return {"kind": self.kind, "name": self.name}


@dataclass
class DeclarationData:
    name: str
    location: Location
    text: str = ""
    parameter_map: ParameterMap = field(default_factory=dict)
    parameter_types: List[str] = field(default_factory=list)
    contexts: List[ContextEntry] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "location": self.location.to_dict(),
            "text": self.text,
            "parameterMap": dict(sorted(self.parameter_map.items())),
            "parameterTypes": list(self.parameter_types),
            "contexts": [c.to_dict() for c in self.contexts],
        }


@dataclass
class DefinitionData:
    location: Location
    original: str
    rewritten: str
    is_macro: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "location": self.location.to_dict(),
            "original": self.original,
            "rewritten": self.rewritten,
            "isMacro": self.is_macro,
        }


class _WriteOnce:
    """Data descriptor for a Query field that accepts a single assignment."""

    def __set_name__(self, owner: type, name: str) -> None:
        self.name = name
        self.slot = "_" + name

    def __get__(self, instance: Optional["Query"], owner: type) -> Any:
        if instance is None:
            return self
        return instance.__dict__.get(self.slot)

    def __set__(self, instance: "Query", value: Any) -> None:
        if instance.__dict__.get(self.slot) is not None:
            raise InvariantViolation(
                f"Query.{self.name} is already set",
                code=ExpandErrorCodes.FIELD_ALREADY_SET,
            )
        instance.__dict__[self.slot] = value


class Query:
    """Accumulates the outputs of one resolution request."""

    call = _WriteOnce()
    declaration = _WriteOnce()
    definition = _WriteOnce()

    def __init__(self, options: Optional[QueryOptions] = None) -> None:
        self.options = options or QueryOptions()

    @property
    def found_macro(self) -> bool:
        return self.definition is not None and self.definition.is_macro

    @property
    def is_empty(self) -> bool:
        return self.call is None and self.declaration is None and self.definition is None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {}
        for name in ("call", "declaration", "definition"):
            value = getattr(self, name)
            if value is not None:
                data[name] = value.to_dict()
        return data

    def __repr__(self) -> str:
        parts = [name for name in ("call", "declaration", "definition") if getattr(self, name) is not None]
        return f"Query(options={self.options!r}, set={parts})"
