# tests/test_context.py
"""
Tests for call-context classification, replaceable ranges and member bases.
"""

import pytest

from cppexpand.builder import UnitBuilder
from cppexpand.config import ExpandConfig
from cppexpand.context import CallContextWalker, clean_call_range, decorate_member_base
from cppexpand.errors import ExpandErrorCodes, InvariantViolation, UnsafeContextError
from cppexpand.query import AssigneeData
from cppexpand.tree import NodeKind, TypeInfo

CALLEE = "int f(int n) { return n; }"


def make(statement, prelude=""):
    """A unit whose ``host`` function body holds *statement*."""
    host = "void host() {\n  " + statement + "\n}"
    b = UnitBuilder(prelude + CALLEE + "\n" + host + "\n")
    f = b.function("f", CALLEE, params=[("int", "n")])
    body = b.tree.body(b.function("host", host))
    return b, f, body


def walk(b, call, config=None):
    return CallContextWalker(b.build(), config).walk(call)


def covers(b, data, snippet):
    """The call range spans exactly *snippet*."""
    start = b.offset(snippet)
    return (data.range.begin.offset, data.range.end.offset) == (start, start + len(snippet))


class TestStatementContexts:

    def test_bare_call(self):
        b, f, body = make("f(1);")
        call = b.call(body, "f(1)", f, args=["1"])
        data = walk(b, call)
        assert covers(b, data, "f(1);")
        assert data.assignee is None

    def test_bare_call_through_cleanups(self):
        b, f, body = make("f(1);")
        cleanups = b.add(NodeKind.EXPR_WITH_CLEANUPS, body, "f(1)")
        call = b.call(cleanups, "f(1)", f, args=["1"])
        assert covers(b, walk(b, call), "f(1);")

    def test_return(self):
        b, f, body = make("return f(2);")
        ret = b.add(NodeKind.RETURN_STMT, body, "return f(2)")
        call = b.call(ret, "f(2)", f, args=["2"])
        data = walk(b, call)
        assert covers(b, data, "return f(2);")
        assert data.assignee is None

    def test_range_is_line_and_column(self):
        b, f, body = make("f(1);")
        call = b.call(body, "f(1)", f, args=["1"])
        data = walk(b, call)
        assert (data.range.begin.line, data.range.begin.column) == (3, 3)
        assert (data.range.end.line, data.range.end.column) == (3, 8)

    def test_operator_call_range_skips_last_operand(self):
        b, f, body = make("left + right;")
        call = b.operator_call(body, "left + right", None, "+", ["left", "right"])
        assert covers(b, walk(b, call), "left + right;")

    def test_terminator_width_is_configurable(self):
        b, f, body = make("f(1) ;")
        call = b.call(body, "f(1)", f, args=["1"])
        data = walk(b, call, ExpandConfig(statement_terminator_width=2))
        assert covers(b, data, "f(1) ;")


class TestVariableContexts:

    def test_initializer(self):
        b, f, body = make("int x = f(3);")
        var = b.var(body, "int x = f(3);", "x", "int")
        call = b.call(var, "f(3)", f, args=["3"])
        data = walk(b, call)
        assert covers(b, data, "int x = f(3);")
        assert data.assignee == AssigneeData("x", "=", "int", True)

    def test_const_is_not_default_constructible(self):
        b, f, body = make("const int y = f(4);")
        var = b.var(body, "const int y = f(4);", "y", TypeInfo("const int", is_const=True))
        call = b.call(var, "f(4)", f, args=["4"])
        assert walk(b, call).assignee == AssigneeData("y", "=", "const int", False)

    def test_reference_is_not_default_constructible(self):
        b, f, body = make("const int& r = f(5);")
        var = b.var(body, "const int& r = f(5);", "r", TypeInfo("const int &", is_reference=True))
        call = b.call(var, "f(5)", f, args=["5"])
        assert walk(b, call).assignee.is_default_constructible is False

    def test_record_without_default_constructor(self):
        b, f, body = make("Big big = f(6);", prelude="struct Big { Big(int v); };\n")
        big = b.record("Big", "struct Big { Big(int v); }", tag="struct", has_default_constructor=False)
        var = b.var(body, "Big big = f(6);", "big", TypeInfo("Big", "struct Big", record=big))
        call = b.call(var, "f(6)", f, args=["6"])
        assert walk(b, call).assignee == AssigneeData("big", "=", "struct Big", False)

    def test_record_with_default_constructor(self):
        b, f, body = make("Small s = f(6);", prelude="struct Small {};\n")
        small = b.record("Small", "struct Small {}", tag="struct")
        var = b.var(body, "Small s = f(6);", "s", TypeInfo("Small", record=small))
        call = b.call(var, "f(6)", f, args=["6"])
        assert walk(b, call).assignee.is_default_constructible is True

    def test_global_initializer(self):
        text = CALLEE + "\nint g0 = f(7);\n"
        b = UnitBuilder(text)
        f = b.function("f", CALLEE, params=[("int", "n")])
        var = b.var(b.root, "int g0 = f(7);", "g0", "int", statement=False)
        call = b.call(var, "f(7)", f, args=["7"])
        data = walk(b, call)
        assert covers(b, data, "int g0 = f(7);")
        assert data.assignee.name == "g0"

    def test_declaration_in_condition_refused(self):
        b, f, body = make("if (int z = f(8)) {}")
        stmt = b.add(NodeKind.IF_STMT, body, "if (int z = f(8)) {}")
        var = b.var(stmt, "int z = f(8)", "z", "int")
        call = b.call(var, "f(8)", f, args=["8"])
        with pytest.raises(UnsafeContextError) as exc_info:
            walk(b, call)
        assert exc_info.value.code == ExpandErrorCodes.NESTED_DECLARATION

    def test_bare_declaration_in_condition_refused(self):
        b, f, body = make("while (int z = f(8)) {}")
        stmt = b.add(NodeKind.WHILE_STMT, body, "while (int z = f(8)) {}")
        var = b.var(stmt, "int z = f(8)", "z", "int", statement=False)
        call = b.call(var, "f(8)", f, args=["8"])
        with pytest.raises(UnsafeContextError) as exc_info:
            walk(b, call)
        assert exc_info.value.code == ExpandErrorCodes.NESTED_DECLARATION

    def test_untyped_variable_is_a_defect(self):
        b, f, body = make("int x = f(3);")
        stmt = b.add(NodeKind.DECL_STMT, body, "int x = f(3);")
        var = b.add(NodeKind.VAR, stmt, "int x = f(3)", at="x", name="x")
        call = b.call(var, "f(3)", f, args=["3"])
        with pytest.raises(InvariantViolation):
            walk(b, call)


class TestAssignmentContexts:

    def test_compound_assignment(self):
        b, f, body = make("total += f(8);", prelude="int total;\n")
        total = b.var(b.root, "int total;", "total", "int", statement=False)
        op = b.binary(body, "total += f(8)", "+=")
        b.add(NodeKind.DECL_REF_EXPR, op, "total", name="total", referenced=total)
        call = b.call(op, "f(8)", f, args=["8"])
        data = walk(b, call)
        assert covers(b, data, "total += f(8);")
        assert data.assignee == AssigneeData("total", "+=")
        assert data.assignee.to_dict() == {"name": "total", "op": "+="}

    def test_shift_assignment(self):
        b, f, body = make("bits <<= f(1);")
        op = b.binary(body, "bits <<= f(1)", "<<=")
        b.add(NodeKind.DECL_REF_EXPR, op, "bits", name="bits")
        call = b.call(op, "f(1)", f, args=["1"])
        assert walk(b, call).assignee == AssigneeData("bits", "<<=")

    def test_member_assignee(self):
        b, f, body = make("obj.count = f(9);")
        op = b.binary(body, "obj.count = f(9)", "=")
        member = b.add(NodeKind.MEMBER_EXPR, op, "obj.count", at="count", name="count")
        b.add(NodeKind.DECL_REF_EXPR, member, "obj", name="obj")
        call = b.call(op, "f(9)", f, args=["9"])
        assert walk(b, call).assignee == AssigneeData("obj.count", "=")

    def test_arrow_member_assignee(self):
        b, f, body = make("self->count = f(9);")
        op = b.binary(body, "self->count = f(9)", "=")
        member = b.add(NodeKind.MEMBER_EXPR, op, "self->count", at="count", name="count")
        b.add(NodeKind.DECL_REF_EXPR, member, "self", name="self")
        call = b.call(op, "f(9)", f, args=["9"])
        assert walk(b, call).assignee.name == "self->count"

    def test_unrecognized_assignee(self):
        b, f, body = make("*ptr = f(10);")
        op = b.binary(body, "*ptr = f(10)", "=")
        b.add(NodeKind.UNARY_OPERATOR, op, "*ptr", opcode="*")
        call = b.call(op, "f(10)", f, args=["10"])
        with pytest.raises(UnsafeContextError) as exc_info:
            walk(b, call)
        assert exc_info.value.code == ExpandErrorCodes.UNRECOGNIZED_ASSIGNEE
        assert exc_info.value.message == "Cannot expand call because assignee is not recognized"


class TestRefusedContexts:

    def test_operand_of_operator(self):
        b, f, body = make("int w = f(11) * 3;")
        var = b.var(body, "int w = f(11) * 3;", "w", "int")
        mul = b.binary(var, "f(11) * 3", "*")
        call = b.call(mul, "f(11)", f, args=["11"])
        with pytest.raises(UnsafeContextError) as exc_info:
            walk(b, call)
        assert exc_info.value.code == ExpandErrorCodes.OPERAND_OF_OPERATOR
        assert exc_info.value.message == "Cannot expand call as operand of *"

    def test_operand_of_unary_operator(self):
        b, f, body = make("x = -f(5);")
        op = b.binary(body, "x = -f(5)", "=")
        b.add(NodeKind.DECL_REF_EXPR, op, "x", name="x")
        negate = b.add(NodeKind.UNARY_OPERATOR, op, "-f(5)", opcode="-")
        call = b.call(negate, "f(5)", f, args=["5"])
        with pytest.raises(UnsafeContextError) as exc_info:
            walk(b, call)
        assert exc_info.value.code == ExpandErrorCodes.OPERAND_OF_OPERATOR
        assert exc_info.value.message == "Cannot expand call as operand of -"

    def test_operand_of_conditional_operator(self):
        b, f, body = make("int w = c ? f(6) : 0;")
        var = b.var(body, "int w = c ? f(6) : 0;", "w", "int")
        choice = b.add(NodeKind.CONDITIONAL_OPERATOR, var, "c ? f(6) : 0")
        call = b.call(choice, "f(6)", f, args=["6"])
        with pytest.raises(UnsafeContextError) as exc_info:
            walk(b, call)
        assert exc_info.value.code == ExpandErrorCodes.OPERAND_OF_OPERATOR
        assert exc_info.value.message == "Cannot expand call as operand of ?:"

    def test_member_of_result_is_refused(self):
        b, f, body = make("int w = f(7).x;")
        var = b.var(body, "int w = f(7).x;", "w", "int")
        access = b.add(NodeKind.MEMBER_EXPR, var, "f(7).x", at="x", name="x")
        call = b.call(access, "f(7)", f, args=["7"])
        with pytest.raises(UnsafeContextError) as exc_info:
            walk(b, call)
        assert exc_info.value.code == ExpandErrorCodes.UNSAFE_LOCATION

    def test_error_carries_call_location(self):
        b, f, body = make("int w = f(11) * 3;")
        var = b.var(body, "int w = f(11) * 3;", "w", "int")
        mul = b.binary(var, "f(11) * 3", "*")
        call = b.call(mul, "f(11)", f, args=["11"])
        with pytest.raises(UnsafeContextError) as exc_info:
            walk(b, call)
        location = exc_info.value.location
        assert location.offset == b.offset("f(11)")
        assert str(exc_info.value).startswith(f"main.cpp:3:{location.column}: ")

    def test_argument_of_another_call(self):
        b, f, body = make("f(f(12));")
        outer = b.call(body, "f(f(12))", f)
        inner = b.call(outer, "f(12)", f, args=["12"])
        with pytest.raises(UnsafeContextError) as exc_info:
            walk(b, inner)
        assert exc_info.value.code == ExpandErrorCodes.NESTED_CALL

    def test_condition_is_refused(self):
        b, f, body = make("if (f(13)) {}")
        stmt = b.add(NodeKind.IF_STMT, body, "if (f(13)) {}")
        cast = b.add(NodeKind.IMPLICIT_CAST_EXPR, stmt, "f(13)")
        call = b.call(cast, "f(13)", f, args=["13"])
        with pytest.raises(UnsafeContextError) as exc_info:
            walk(b, call)
        assert exc_info.value.code == ExpandErrorCodes.UNSAFE_LOCATION
        assert exc_info.value.message == "Refuse or unable to expand at given location"


class TestContextDepth:

    def _parenthesized(self):
        b, f, body = make("int d = ((f(16)));")
        var = b.var(body, "int d = ((f(16)));", "d", "int")
        outer = b.add(NodeKind.PAREN_EXPR, var, "((f(16)))")
        inner = b.add(NodeKind.PAREN_EXPR, outer, "(f(16))", after=b.offset("((f(16)))") + 1)
        call = b.call(inner, "f(16)", f, args=["16"])
        return b, call

    def test_through_implicit_cast(self):
        b, f, body = make("long v = f(14);")
        var = b.var(body, "long v = f(14);", "v", "long")
        cast = b.add(NodeKind.IMPLICIT_CAST_EXPR, var, "f(14)")
        call = b.call(cast, "f(14)", f, args=["14"])
        data = walk(b, call)
        assert data.assignee.name == "v"
        assert covers(b, data, "long v = f(14);")

    def test_through_parentheses(self):
        b, call = self._parenthesized()
        data = walk(b, call)
        assert data.assignee.name == "d"
        assert covers(b, data, "int d = ((f(16)));")

    def test_enough_depth(self):
        b, call = self._parenthesized()
        assert walk(b, call, ExpandConfig(max_context_depth=3)).assignee.name == "d"

    def test_depth_exhausted(self):
        b, call = self._parenthesized()
        with pytest.raises(UnsafeContextError) as exc_info:
            walk(b, call, ExpandConfig(max_context_depth=2))
        assert exc_info.value.code == ExpandErrorCodes.UNSAFE_LOCATION

    def test_invalid_depth(self):
        b, call = self._parenthesized()
        with pytest.raises(InvariantViolation) as exc_info:
            walk(b, call, ExpandConfig(max_context_depth=0))
        assert exc_info.value.code == ExpandErrorCodes.INVALID_DEPTH


class TestCleanCallRange:

    def test_range_of_other_node(self):
        b, f, body = make("return f(2);")
        ret = b.add(NodeKind.RETURN_STMT, body, "return f(2)")
        call = b.call(ret, "f(2)", f, args=["2"])
        unit = b.build()
        result = clean_call_range(unit, call, unit.tree.node(ret).range)
        start = b.offset("return f(2);")
        assert result.begin.offset == start
        assert result.end.offset == start + len("return f(2);")


MEMBERS = "struct S {\n  int get() { return 1; }\n}"
HOST = ("void host(S obj, S* ptr) {\n  obj.get();\n  ptr->get();\n"
        "  this->get();\n  get();\n  obj + obj;\n}")
POINT = "struct Point { Point(int x, int y) {} }"
MAKE = "void make() {\n  Point pt(1, 2);\n}"


class TestMemberBase:

    @pytest.fixture
    def members(self):
        plus = "int operator+(const S& o) const { return 0; }"
        record = MEMBERS.replace("\n}", "\n  " + plus + "\n}")
        b = UnitBuilder(record + ";\n" + HOST + "\n")
        rec = b.record("S", record, tag="struct")
        get = b.method("get", "int get() { return 1; }", rec)
        op = b.method("operator+", plus, rec, params=[("const S &", "o")])
        host = b.function("host", HOST, params=[("S", "obj"), ("S *", "ptr")])
        return b, get, op, b.tree.body(host)

    def _base(self, b, call, function):
        unit = b.build()
        data = CallContextWalker(unit).walk(call)
        decorate_member_base(unit, data, call, function, unit.tree.callee_expression(call))
        return data.base

    def test_dot_receiver(self, members):
        b, get, op, body = members
        call = b.member_call(body, "obj.get()", get, base="obj")
        assert self._base(b, call, get) == "obj."

    def test_arrow_receiver(self, members):
        b, get, op, body = members
        call = b.member_call(body, "ptr->get()", get, base="ptr")
        assert self._base(b, call, get) == "ptr->"

    def test_explicit_this(self, members):
        b, get, op, body = members
        call = b.member_call(body, "this->get()", get, base="this")
        assert self._base(b, call, get) == ""

    def test_implicit_this(self, members):
        b, get, op, body = members
        call = b.member_call(body, "get()", get, after=b.offset("\n  get();"))
        assert self._base(b, call, get) == ""

    def test_member_operator_receiver(self, members):
        b, get, op, body = members
        call = b.operator_call(body, "obj + obj", op, "+", ["obj", "obj"])
        unit = b.build()
        data = CallContextWalker(unit).walk(call)
        decorate_member_base(unit, data, call, op)
        assert data.base == "obj."

    def test_custom_separator(self, members):
        b, get, op, body = members
        call = b.operator_call(body, "obj + obj", op, "+", ["obj", "obj"])
        unit = b.build()
        data = CallContextWalker(unit).walk(call)
        decorate_member_base(unit, data, call, op, config=ExpandConfig(member_separator="::"))
        assert data.base == "obj::"

    def test_constructor_uses_assignee(self):
        b = UnitBuilder(POINT + ";\n" + MAKE + "\n")
        point = b.record("Point", POINT, tag="struct")
        ctor = b.function("Point", "Point(int x, int y) {}", parent=point,
                          kind=NodeKind.CONSTRUCTOR, params=[("int", "x"), ("int", "y")])
        body = b.tree.body(b.function("make", MAKE))
        var = b.var(body, "Point pt(1, 2);", "pt", TypeInfo("Point", "struct Point", record=point))
        construct = b.construct(var, "pt(1, 2)", ctor, args=["1", "2"])
        unit = b.build()
        data = CallContextWalker(unit).walk(construct)
        decorate_member_base(unit, data, construct, ctor)
        assert data.base == "pt."
        assert data.assignee.type == "struct Point"

    def test_plain_function_has_no_base(self):
        b, f, body = make("f(1);")
        call = b.call(body, "f(1)", f, args=["1"])
        assert self._base(b, call, f) == ""
