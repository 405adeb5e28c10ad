from __future__ import annotations
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union
import logging

from edag import DERIVATIVE_STEP
from errors import EvalError
from evaluator import DEFAULT_VARIABLE, ExprLike, Expression, parse_and_validate

logger = logging.getLogger(__name__)

PROBE_POINT = 1.0


@dataclass(frozen=True)
class Evaluation:
    """Outcome of evaluating f at one point: a value or the error that stopped it."""

    x: float
    value: Optional[float] = None
    error: Optional[EvalError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> float:
        if self.error is not None:
            raise self.error
        return self.value


class FunctionHandle:
    """A validated expression bound to repeated evaluation.

    The constructor parses ``expr`` (if it is text) and evaluates it once at
    ``probe``. A ParseError or EvalError raised there propagates, so a handle
    that exists is always usable.
    """

    __slots__ = ("_expr",)

    def __init__(
        self,
        expr: ExprLike,
        variable: str = DEFAULT_VARIABLE,
        probe: float = PROBE_POINT,
    ) -> None:
        expression = parse_and_validate(expr, variable)
        expression.eval(probe)
        object.__setattr__(self, "_expr", expression)
        logger.debug("validated %r at %s = %r", expression.text, variable, probe)

    def __setattr__(self, name: str, value: object) -> None:
        raise AttributeError("FunctionHandle is immutable")

    @classmethod
    def from_file(
        cls,
        path: Union[str, Path],
        variable: str = DEFAULT_VARIABLE,
        probe: float = PROBE_POINT,
    ) -> "FunctionHandle":
        return cls(load_expression(path), variable, probe)

    @property
    def expression(self) -> Expression:
        return self._expr

    def __call__(self, x: float) -> float:
        return self._expr.eval(x)

    def derivative(self, x: float, h: float = DERIVATIVE_STEP) -> float:
        return self._expr.derivative(x, h)

    def try_evaluate(self, x: float) -> Evaluation:
        try:
            return Evaluation(x, value=self._expr.eval(x))
        except EvalError as exc:
            return Evaluation(x, error=exc)

    def try_derivative(self, x: float, h: float = DERIVATIVE_STEP) -> Evaluation:
        try:
            return Evaluation(x, value=self._expr.derivative(x, h))
        except EvalError as exc:
            return Evaluation(x, error=exc)

    def __str__(self) -> str:
        return str(self._expr)

    def __repr__(self) -> str:
        return f"FunctionHandle({self._expr.text!r})"


def load_expression(path: Union[str, Path]) -> str:
    """Read the expression from the first non-blank line of a text file."""
    path = Path(path)
    with path.open("r", encoding="utf-8") as f:
        for line in f:
            line = line.strip()
            if line:
                return line
    raise ValueError(f"{path} does not contain an expression")
