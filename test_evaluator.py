import math

import pytest

from errors import EvalError, EvalErrorKind
from evaluator import ExpressionEvaluator, Expression, evaluate, evaluate_derivative, parse_and_validate


def test_quadratic_roots_evaluate_to_zero():
    assert evaluate("x^2-4", 2) == pytest.approx(0, abs=1e-6)
    assert evaluate("x^2-4", -2) == pytest.approx(0, abs=1e-6)


def test_central_difference():
    assert evaluate_derivative("x^2", 3, h=1e-4) == pytest.approx(6, abs=1e-2)
    assert evaluate_derivative("sin(x)", 0) == pytest.approx(1.0, abs=1e-6)
    assert evaluate_derivative("x*log10(x) - 1.2", 2.74) == pytest.approx(math.log10(2.74) + 1 / math.log(10), abs=1e-6)


def test_derivative_step_must_be_positive():
    with pytest.raises(ValueError):
        evaluate_derivative("x^2", 1, h=0)


def test_derivative_propagates_domain_errors():
    with pytest.raises(EvalError) as err:
        evaluate_derivative("log(x)", 5e-5, h=1e-4)
    assert err.value.kind is EvalErrorKind.DOMAIN_ERROR


@pytest.mark.parametrize(
    "expr, x",
    [
        ("x^3 - 2*x + 1", -3.5),
        ("sin(x)*exp(-x) + cos(x)/2", 10),
        ("sqrt(abs(x)) - log10(x^2 + 1)", -7.25),
        ("tan(x) - x", 0.3),
        ("(x+1)^(1/2)", 8),
        ("2^x - ln(x)", 0.01),
    ],
)
def test_results_are_finite(expr, x):
    assert math.isfinite(evaluate(expr, x))


@pytest.mark.parametrize(
    "expr, x, kind",
    [
        ("1/0", 0, EvalErrorKind.DIVISION_BY_ZERO),
        ("1/(x-2)", 2, EvalErrorKind.DIVISION_BY_ZERO),
        ("0^-1", 0, EvalErrorKind.DIVISION_BY_ZERO),
        ("log(x)", 0, EvalErrorKind.DOMAIN_ERROR),
        ("ln(x)", -1, EvalErrorKind.DOMAIN_ERROR),
        ("log10(x)", -1, EvalErrorKind.DOMAIN_ERROR),
        ("sqrt(x)", -1, EvalErrorKind.DOMAIN_ERROR),
        ("(-8)^(1/3)", 0, EvalErrorKind.DOMAIN_ERROR),
        ("exp(x)", 1000, EvalErrorKind.OVERFLOW),
        ("10^400", 0, EvalErrorKind.OVERFLOW),
        ("x^2", 1e200, EvalErrorKind.OVERFLOW),
    ],
)
def test_eval_errors(expr, x, kind):
    with pytest.raises(EvalError) as err:
        evaluate(expr, x)
    assert err.value.kind is kind
    assert isinstance(err.value, ArithmeticError)


def test_domain_boundaries_are_allowed():
    assert evaluate("sqrt(x)", 0) == 0
    assert evaluate("(-2)^3", 0) == -8
    assert evaluate("0^0", 0) == 1


def test_non_finite_argument_is_rejected():
    with pytest.raises(EvalError):
        evaluate("x + 1", float("inf"))


def test_parse_once_evaluate_many():
    expr = parse_and_validate("x^2 - 2*x")
    assert isinstance(expr, Expression)
    assert [expr.eval(v) for v in (0, 1, 2, 3)] == [0, -1, 0, 3]
    assert evaluate(expr, 4) == 8
    assert expr.text == "x^2 - 2*x"


def test_parsed_text_is_cached():
    assert parse_and_validate("x^3 + 1") is parse_and_validate("x^3 + 1")
    assert parse_and_validate("x^3 + 1") == parse_and_validate("x^3 + 1", variable="x")


def test_evaluator_with_other_variable_and_step():
    ev = ExpressionEvaluator(variable="t", step=1e-3)
    assert ev.evaluate("t^2 + 1", 2) == 5
    assert ev.evaluate_derivative("t^3", 1) == pytest.approx(3, abs=1e-5)
    assert ev.evaluate(parse_and_validate("t*2", variable="t"), 4) == 8


def test_parse_rejects_other_types():
    with pytest.raises(TypeError):
        ExpressionEvaluator().parse(42)
