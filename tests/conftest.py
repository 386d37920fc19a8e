# tests/conftest.py
"""
Shared fixtures: a small translation unit in S-expression dump form.
"""

import pytest

DUMP_SOURCE = "int id(int v) { return v; }\nint use() { return id(7); }\n"


def make_dump(source: str = DUMP_SOURCE, filename: str = "m.cpp") -> str:
    """Dump of ``source``: two functions, ``use`` returning ``id(7)``."""
    last = source.rindex("}")
    open_id, close_id = source.index("{"), source.index("}")
    param = source.index("v)")
    use = source.index("int use")
    open_use = source.index("{", use)
    ret = source.index("return id")
    call = source.index("id(7)")
    close_call = source.index(")", call)
    seven = source.index("7")
    return f"""
    (unit
      (file "{filename}" "{source}")
      (node 0 translation-unit (range "{filename}" 0 {last}))
      (node 1 function (in 0) (range "{filename}" 0 {close_id})
            (loc "{filename}" {source.index('id')}) (name "id") (definition 1))
      (node 2 param (in 1) (range "{filename}" {param} {param})
            (name "v") (type "int" (const false)))
      (node 3 compound-stmt (in 1) (range "{filename}" {open_id} {close_id}))
      (node 4 function (in 0) (range "{filename}" {use} {last})
            (loc "{filename}" {source.index('use')}) (name "use"))
      (node 5 compound-stmt (in 4) (range "{filename}" {open_use} {last}))
      (node 6 return-stmt (in 5) (range "{filename}" {ret} {close_call}))
      (node 7 call-expr (in 6) (range "{filename}" {call} {close_call}))
      (node 8 decl-ref-expr (in 7) (range "{filename}" {call} {call}) (name "id") (ref 1))
      (node 9 literal (in 7) (range "{filename}" {seven} {seven})))
    """


@pytest.fixture
def dump_text():
    return make_dump()


@pytest.fixture
def dump_file(tmp_path, dump_text):
    path = tmp_path / "unit.sexp"
    path.write_text(dump_text, encoding="utf-8")
    return path
