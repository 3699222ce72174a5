import io

import pytest

from y86sim.hcl import (
    HclError,
    HclGenerator,
    NodeType,
    concat,
    make_num,
    make_quote,
    make_var,
    set_bool,
)

HEADER = 'char simname[] = "Y86-64 Processor";\n'


def _generator(simname=""):
    out = io.StringIO()
    return HclGenerator(out, simname), out


def test_default_simname_line():
    _, out = _generator()
    assert out.getvalue() == HEADER


def test_named_simname_line():
    _, out = _generator("pipe-std.hcl")
    assert out.getvalue() == 'char simname[] = "Y86-64 Processor: pipe-std.hcl";\n'


def test_make_quote_strips_quotes():
    node = make_quote("'if_id_curr->icode'")
    assert node.type == NodeType.QUOTE
    assert node.sval == "if_id_curr->icode"


def test_concat_links_lists():
    a, b, c = make_num("1"), make_num("2"), make_num("3")
    head = concat(concat(a, b), c)
    assert [n.sval for n in head.chain()] == ["1", "2", "3"]
    assert concat(None, c) is c


def test_set_bool_null():
    with pytest.raises(HclError):
        set_bool(None)


def test_membership_function():
    gen, out = _generator()
    gen.add_arg(make_var("icode"), make_quote("'if_id_curr->icode'"), False)
    expr = gen.make_ele(make_var("icode"), concat(make_num("2"), make_num("3")))
    gen.gen_funct(make_var("need_regids"), expr, True)
    body = out.getvalue()[len(HEADER):]
    assert body == (
        "long long gen_need_regids()\n{\n"
        "    return ((if_id_curr->icode) == 2 || (if_id_curr->icode) == 3);\n"
        "}\n\n"
    )


def test_case_function():
    gen, out = _generator()
    gen.add_arg(make_var("cnd"), make_quote("'x'"), True)
    cases = concat(
        gen.make_case(make_var("cnd"), make_num("5")),
        gen.make_case(make_num("1"), make_num("7")),
    )
    gen.gen_funct(make_var("out"), cases, False)
    assert "    return ((x) ? 5 : 7);\n" in out.getvalue()


def test_case_without_default_ends_in_zero():
    gen, out = _generator()
    gen.add_arg(make_var("cnd"), make_quote("'x'"), True)
    gen.gen_funct(make_var("out"), gen.make_case(make_var("cnd"), make_num("5")), False)
    assert "    return ((x) ? 5 : 0);\n" in out.getvalue()


def test_not_and_or_generation():
    gen, out = _generator()
    gen.add_arg(make_var("a"), make_quote("'p'"), True)
    gen.add_arg(make_var("b"), make_quote("'q'"), True)
    expr = gen.make_or(gen.make_not(make_var("a")), gen.make_and(make_var("a"), make_var("b")))
    gen.gen_funct(make_var("f"), expr, True)
    assert "    return (!(p) | ((p) & (q)));\n" in out.getvalue()


def test_insert_code():
    gen, out = _generator()
    gen.insert_code(make_quote("'#include <stdio.h>'"))
    assert out.getvalue().endswith("#include <stdio.h>\n")


def test_not_of_non_boolean_number():
    gen, _ = _generator()
    with pytest.raises(HclError):
        gen.make_not(make_num("2"))


def test_unknown_symbol():
    gen, _ = _generator()
    with pytest.raises(HclError):
        gen.make_and(make_var("missing"), make_num("1"))


def test_variable_type_mismatch():
    gen, _ = _generator()
    gen.add_arg(make_var("n"), make_quote("'v'"), False)
    with pytest.raises(HclError):
        gen.make_not(make_var("n"))


def test_gen_funct_type_mismatch():
    gen, _ = _generator()
    gen.add_arg(make_var("a"), make_quote("'p'"), True)
    with pytest.raises(HclError):
        gen.gen_funct(make_var("f"), gen.make_not(make_var("a")), False)


def test_quote_in_expression_rejected():
    gen, _ = _generator()
    with pytest.raises(HclError):
        gen.gen_funct(make_var("f"), make_quote("'raw'"), False)


def test_symbol_table_limit():
    gen, _ = _generator()
    for i in range(100):
        gen.add_arg(make_var(f"v{i}"), make_quote("'x'"), False)
    with pytest.raises(HclError):
        gen.add_arg(make_var("extra"), make_quote("'x'"), False)


def test_finish_reports_unreferenced():
    gen, _ = _generator()
    gen.add_arg(make_var("used"), make_quote("'u'"), True)
    gen.add_arg(make_var("idle"), make_quote("'i'"), True)
    gen.make_not(make_var("used"))
    assert gen.finish(True) == ["idle"]
    assert gen.finish(False) == []


def test_show_expr_short():
    gen, _ = _generator()
    gen.add_arg(make_var("a"), make_quote("'p'"), True)
    gen.add_arg(make_var("b"), make_quote("'q'"), True)
    expr = gen.make_and(make_var("a"), make_var("b"))
    assert gen.show_expr(expr) == "(a & b)"