import math

import pytest

from errors import ParseError, ParseErrorKind
from evaluator import evaluate, parse_and_validate
from expr_parser import expr_tokenize, parse_expression_edag


def test_precedence_and_associativity():
    assert evaluate("2+3*4", 0) == 14
    assert evaluate("10-2-3", 0) == 5
    assert evaluate("10/2/5", 0) == 1
    assert evaluate("2^3^2", 0) == 512
    assert evaluate("(2^3)^2", 0) == 64


def test_unary_minus():
    assert evaluate("-x^2", 3) == -9
    assert evaluate("-3^2", 0) == -9
    assert evaluate("(-3)^2", 0) == 9
    assert evaluate("2^-1", 0) == 0.5
    assert evaluate("x*-3", 2) == -6
    assert evaluate("x - -3", 1) == 4
    assert evaluate("-(x+1)", 1) == -2


def test_numbers():
    assert evaluate("2.5*x", 2) == 5
    assert evaluate(".5", 0) == 0.5
    assert evaluate("-3", 0) == -3


def test_functions_and_constants():
    assert evaluate("sin(x)^2 + cos(x)^2", 0.7) == pytest.approx(1.0)
    assert evaluate("ln(e)", 0) == pytest.approx(1.0)
    assert evaluate("log(exp(2))", 0) == pytest.approx(2.0)
    assert evaluate("log10(1000)", 0) == pytest.approx(3.0)
    assert evaluate("sqrt(16)", 0) == 4
    assert evaluate("abs(-2.5)", 0) == 2.5
    assert evaluate("tan(pi/4)", 0) == pytest.approx(1.0)
    assert evaluate("SIN(0) + Cos(0)", 0) == pytest.approx(1.0)


@pytest.mark.parametrize("variable, expr", [("s", "s*sin(s)"), ("n", "sin(n)*n"), ("t", "t + sqrt(t^2)")])
def test_variable_never_corrupts_function_names(variable, expr):
    x = math.pi / 2
    expected = {"s": x * math.sin(x), "n": math.sin(x) * x, "t": 2 * x}[variable]
    assert evaluate(expr, x, variable=variable) == pytest.approx(expected)


def test_variable_is_a_single_shared_leaf():
    dag = parse_expression_edag("x*x + x - sin(x)")
    leaves = [n for n, d in dag.g.nodes(data="data") if d.type == "VAR"]
    assert len(leaves) == 1
    assert dag.eval(2.0) == pytest.approx(6 - math.sin(2.0))


@pytest.mark.parametrize(
    "expr, kind",
    [
        ("(x+1", ParseErrorKind.UNBALANCED_PARENS),
        ("x+1)", ParseErrorKind.UNBALANCED_PARENS),
        ("((x)", ParseErrorKind.UNBALANCED_PARENS),
        ("sin(x", ParseErrorKind.UNBALANCED_PARENS),
        ("foo(x)", ParseErrorKind.UNKNOWN_FUNCTION),
        ("y + 1", ParseErrorKind.UNKNOWN_FUNCTION),
        ("sin x", ParseErrorKind.MISSING_ARGUMENT_PAREN),
        ("sqrt", ParseErrorKind.MISSING_ARGUMENT_PAREN),
        (".", ParseErrorKind.INVALID_NUMBER),
        ("1.+x", ParseErrorKind.INVALID_NUMBER),
        ("-.", ParseErrorKind.INVALID_NUMBER),
        ("9" * 400, ParseErrorKind.INVALID_NUMBER),
        ("-" + "9" * 400, ParseErrorKind.INVALID_NUMBER),
        ("x + 1" + "0" * 400, ParseErrorKind.INVALID_NUMBER),
        ("", ParseErrorKind.UNEXPECTED_TOKEN),
        ("   ", ParseErrorKind.UNEXPECTED_TOKEN),
        ("x+", ParseErrorKind.UNEXPECTED_TOKEN),
        ("*x", ParseErrorKind.UNEXPECTED_TOKEN),
        ("2 3", ParseErrorKind.UNEXPECTED_TOKEN),
        ("x $ 2", ParseErrorKind.UNEXPECTED_TOKEN),
        ("()", ParseErrorKind.UNEXPECTED_TOKEN),
    ],
)
def test_parse_errors(expr, kind):
    with pytest.raises(ParseError) as err:
        parse_and_validate(expr)
    assert err.value.kind is kind
    assert isinstance(err.value, ValueError)


def test_parse_error_reports_position():
    with pytest.raises(ParseError) as err:
        parse_and_validate("x + foo(2)")
    assert err.value.position == 4


def test_tokenizer_marks_unary_minus():
    kinds = [t.kind for t in expr_tokenize("-x - -2")]
    assert kinds == ["NEG", "ID", "-", "NEG", "NUM", "END"]


@pytest.mark.parametrize(
    "expr, rendered",
    [
        ("x^2-4", "x^2 - 4"),
        ("-(x+1)", "-(x + 1)"),
        ("(2^3)^2", "(2^3)^2"),
        ("2^3^2", "2^3^2"),
        ("(-3)^2", "(-3)^2"),
        ("x-(1-x)", "x - (1 - x)"),
        ("x*log10(x) - 1.2", "x*log10(x) - 1.2"),
    ],
)
def test_rendering(expr, rendered):
    parsed = parse_and_validate(expr)
    assert str(parsed) == rendered
    # the rendering parses back to the same function
    assert evaluate(str(parsed), 1.5) == pytest.approx(evaluate(expr, 1.5))


@pytest.mark.parametrize("variable", ["sin", "2x", "", "x y"])
def test_bad_variable_names(variable):
    with pytest.raises(ValueError):
        parse_expression_edag("1", variable=variable)
