from __future__ import annotations
from functools import lru_cache
from typing import Union
import logging

from edag import EDAG, DERIVATIVE_STEP
from expr_parser import parse_expression_edag

logger = logging.getLogger(__name__)

DEFAULT_VARIABLE = "x"
PARSE_CACHE_SIZE = 256


class Expression:
    """A parsed, immutable expression of one variable.

    The text is parsed once into an EDAG whose variable leaf is bound to a
    value on every evaluation.
    """

    __slots__ = ("_text", "_dag")

    def __init__(self, text: str, dag: EDAG) -> None:
        self._text = text
        self._dag = dag

    @property
    def text(self) -> str:
        return self._text

    @property
    def variable(self) -> str:
        return self._dag.variable

    def eval(self, x: float) -> float:
        return self._dag.eval(x)

    def derivative(self, x: float, h: float = DERIVATIVE_STEP) -> float:
        return self._dag.derivative_at(x, h)

    def __str__(self) -> str:
        return self._dag.to_string()

    def __repr__(self) -> str:
        return f"Expression({self._text!r})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Expression):
            return NotImplemented
        return self._text == other._text and self.variable == other.variable

    def __hash__(self) -> int:
        return hash((self._text, self.variable))


ExprLike = Union[str, Expression]


class ExpressionEvaluator:
    def __init__(self, variable: str = DEFAULT_VARIABLE, step: float = DERIVATIVE_STEP) -> None:
        self.variable = variable
        self.step = step

    def parse(self, expr: ExprLike) -> Expression:
        if isinstance(expr, Expression):
            if expr.variable != self.variable:
                return _parse_cached(expr.text, self.variable)
            return expr
        if isinstance(expr, str):
            return _parse_cached(expr, self.variable)
        raise TypeError(f"Cannot parse expression of type {type(expr)}")

    def evaluate(self, expr: ExprLike, x: float) -> float:
        return self.parse(expr).eval(x)

    def evaluate_derivative(self, expr: ExprLike, x: float, h: float | None = None) -> float:
        return self.parse(expr).derivative(x, self.step if h is None else h)


@lru_cache(maxsize=PARSE_CACHE_SIZE)
def _parse_cached(text: str, variable: str) -> Expression:
    # ParseError propagates and is not cached
    return Expression(text, parse_expression_edag(text, variable))


_default = ExpressionEvaluator()


def parse_and_validate(expr: ExprLike, variable: str = DEFAULT_VARIABLE) -> Expression:
    return ExpressionEvaluator(variable).parse(expr)


def evaluate(expr: ExprLike, x: float, variable: str = DEFAULT_VARIABLE) -> float:
    """Evaluate ``expr`` at ``x``; raises ParseError or EvalError."""
    if variable == DEFAULT_VARIABLE:
        return _default.evaluate(expr, x)
    return ExpressionEvaluator(variable).evaluate(expr, x)


def evaluate_derivative(
    expr: ExprLike, x: float, h: float = DERIVATIVE_STEP, variable: str = DEFAULT_VARIABLE
) -> float:
    """Central-difference derivative of ``expr`` at ``x``."""
    return ExpressionEvaluator(variable, h).evaluate_derivative(expr, x)
