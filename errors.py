from __future__ import annotations
from enum import Enum
from typing import Optional


class ParseErrorKind(Enum):
    UNBALANCED_PARENS = "UnbalancedParens"
    INVALID_NUMBER = "InvalidNumber"
    UNKNOWN_FUNCTION = "UnknownFunction"
    MISSING_ARGUMENT_PAREN = "MissingArgumentParen"
    UNEXPECTED_TOKEN = "UnexpectedToken"


class EvalErrorKind(Enum):
    DIVISION_BY_ZERO = "DivisionByZero"
    DOMAIN_ERROR = "DomainError"
    OVERFLOW = "Overflow"


class FailureKind(Enum):
    NEAR_ZERO_DENOMINATOR = "near-zero-denominator"
    NEAR_ZERO_DERIVATIVE = "near-zero-derivative"
    NEGATIVE_DISCRIMINANT = "negative-discriminant"
    EVALUATION_FAILED = "evaluation-failed"


class ExpressionError(Exception):
    """Base class for problems with a user-supplied expression."""


class ParseError(ExpressionError, ValueError):
    """Raised while building an expression; never raised while solving."""

    def __init__(
        self, kind: ParseErrorKind, message: str, position: Optional[int] = None
    ) -> None:
        self.kind = kind
        self.position = position
        where = f" at position {position}" if position is not None else ""
        super().__init__(f"{kind.value}: {message}{where}")


class EvalError(ExpressionError, ArithmeticError):
    """Raised by a single evaluation of a parsed expression."""

    def __init__(self, kind: EvalErrorKind, message: str) -> None:
        self.kind = kind
        super().__init__(f"{kind.value}: {message}")


class NumericalFailure(Exception):
    """Raised inside a solver step when the method's arithmetic breaks down.

    The solver loop catches it and reports a ``numerical-failure`` result with
    ``estimate`` (the last valid estimate) as the root.
    """

    def __init__(
        self, kind: FailureKind, message: str, estimate: Optional[float] = None
    ) -> None:
        self.kind = kind
        self.estimate = estimate
        super().__init__(f"{kind.value}: {message}")


class BracketError(ValueError):
    """Raised when no bracketing interval could be established."""
