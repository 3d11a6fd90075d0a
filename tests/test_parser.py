import pytest

from exprcc import (
    BinaryOp, CompileError, Number, Parser, parse, tokenize,
    ND_ADD, ND_SUB, ND_MUL, ND_DIV, ND_EQ, ND_NE, ND_LT, ND_LE,
)


def ast(source):
    return parse(tokenize(source))


def test_number():
    assert ast("42") == Number(42)


def test_precedence():
    assert ast("1+2*3") == BinaryOp(ND_ADD, Number(1), BinaryOp(ND_MUL, Number(2), Number(3)))


def test_grouping():
    assert ast("(1+2)*3") == BinaryOp(ND_MUL, BinaryOp(ND_ADD, Number(1), Number(2)), Number(3))


def test_left_associative():
    assert ast("10-2-3") == BinaryOp(ND_SUB, BinaryOp(ND_SUB, Number(10), Number(2)), Number(3))
    assert ast("8/4/2") == BinaryOp(ND_DIV, BinaryOp(ND_DIV, Number(8), Number(4)), Number(2))


def test_greater_than_swaps_operands():
    assert ast("3>2") == ast("2<3")
    assert ast("3>2") == BinaryOp(ND_LT, Number(2), Number(3))
    assert ast("5>=4") == BinaryOp(ND_LE, Number(4), Number(5))


def test_equality_binds_looser_than_relational():
    assert ast("1<2==1") == BinaryOp(ND_EQ, BinaryOp(ND_LT, Number(1), Number(2)), Number(1))
    assert ast("1!=2<=3") == BinaryOp(ND_NE, Number(1), BinaryOp(ND_LE, Number(2), Number(3)))


def test_relational_binds_looser_than_additive():
    assert ast("1+1<3") == BinaryOp(ND_LT, BinaryOp(ND_ADD, Number(1), Number(1)), Number(3))


def test_unary_minus_is_subtraction_from_zero():
    assert ast("-5") == BinaryOp(ND_SUB, Number(0), Number(5))
    assert ast("-5+8") == BinaryOp(ND_ADD, BinaryOp(ND_SUB, Number(0), Number(5)), Number(8))


def test_unary_plus_is_dropped():
    assert ast("+5") == Number(5)


def test_nested_unary():
    inner = BinaryOp(ND_SUB, Number(0), Number(3))
    assert ast("-(-3)") == BinaryOp(ND_SUB, Number(0), inner)
    assert ast("--3") == BinaryOp(ND_SUB, Number(0), inner)


def test_grammar_levels_can_be_driven_directly():
    p = Parser(tokenize("2*3+1"))
    assert p.multiplicative() == BinaryOp(ND_MUL, Number(2), Number(3))
    assert p.peek().text == "+"


def test_expression_leaves_trailing_tokens():
    p = Parser(tokenize("1 2"))
    assert p.expression() == Number(1)
    assert p.peek().text == "2"


@pytest.mark.parametrize("source,pos,msg", [
    ("1+", 2, "expected a number"),
    ("1+*2", 2, "expected a number"),
    ("", 0, "expected a number"),
    ("()", 1, "expected a number"),
    ("(1+2", 4, "expected ')' but got end of input"),
    ("(1+2(", 4, "expected ')' but got '('"),
    ("1 2", 2, "unexpected trailing input '2'"),
    ("(1))", 3, "unexpected trailing input ')'"),
])
def test_syntax_errors(source, pos, msg):
    with pytest.raises(CompileError) as exc:
        ast(source)
    assert exc.value.phase == "Syntax"
    assert exc.value.pos == pos
    assert exc.value.msg == msg


def test_moderate_nesting():
    assert ast("(" * 20 + "1" + ")" * 20) == Number(1)


def test_deep_nesting_is_a_syntax_error():
    source = "(" * 2000 + "1" + ")" * 2000
    with pytest.raises(CompileError) as exc:
        ast(source)
    assert exc.value.phase == "Syntax"
    assert exc.value.msg == "expression nested too deeply"
    assert 0 <= exc.value.pos < len(source)
