"""
Iterative root finders.

Each finder is built from a FunctionHandle and its seeds. ``iterate()`` is a
generator that yields one IterationRecord per completed step and returns the
SolverResult; ``solve()`` drives it to the end. Calling ``iterate()`` again
starts over from the seeds.
"""
from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, Generator, Iterator, Optional, Tuple, Type, Union
import logging
import math
import time

from edag import DERIVATIVE_STEP
from errors import FailureKind, NumericalFailure
from function_handle import FunctionHandle
from interval import DEFAULT_SCAN_STEP, DEFAULT_SEARCH, Interval, resolve_bracket

logger = logging.getLogger(__name__)

DEFAULT_TOLERANCE = 1e-4
DEFAULT_MAX_ITERATIONS = 100
DENOMINATOR_EPS = 1e-10


class Termination(Enum):
    CONVERGED = "converged"
    MAX_ITERATIONS = "max-iterations-reached"
    NUMERICAL_FAILURE = "numerical-failure"


@dataclass(frozen=True)
class IterationRecord:
    """One solver step: the points it used, f there, and the new estimate."""

    index: int
    labels: Tuple[str, ...]
    points: Tuple[float, ...]
    values: Tuple[float, ...]
    estimate: float
    f_estimate: float
    extras: Tuple[Tuple[str, float], ...] = ()

    def as_dict(self) -> Dict[str, Union[int, float]]:
        out: Dict[str, Union[int, float]] = {"iteration": self.index}
        for label, x, y in zip(self.labels, self.points, self.values):
            out[label] = x
            out[f"f({label})"] = y
        out.update(self.extras)
        out["estimate"] = self.estimate
        out["f(estimate)"] = self.f_estimate
        return out

    def __str__(self) -> str:
        parts = [f"{label} = {x:.6g}  f({label}) = {y:.6g}" for label, x, y in zip(self.labels, self.points, self.values)]
        parts.extend(f"{k} = {v:.6g}" for k, v in self.extras)
        parts.append(f"next = {self.estimate:.8g}  f(next) = {self.f_estimate:.6g}")
        return f"{self.index}) " + "   ".join(parts)


@dataclass(frozen=True)
class SolverResult:
    root: float
    iterations: int
    termination: Termination
    reason: Optional[FailureKind] = None
    message: str = ""
    history: Tuple[IterationRecord, ...] = field(default=(), repr=False)

    @property
    def converged(self) -> bool:
        return self.termination is Termination.CONVERGED

    @property
    def tag(self) -> str:
        if self.reason is not None:
            return f"{self.termination.value}: {self.reason.value}"
        return self.termination.value

    def __str__(self) -> str:
        return f"{self.tag} after {self.iterations} iterations, root ~ {self.root:.8g}"


Pacer = Callable[[IterationRecord], None]


def sleep_pacer(seconds: float) -> Pacer:
    """Cosmetic delay between displayed iterations."""

    def pace(record: IterationRecord) -> None:
        time.sleep(seconds)

    return pace


class RootFinder:
    name = "root finder"

    def __init__(
        self,
        f: FunctionHandle,
        tolerance: float = DEFAULT_TOLERANCE,
        max_iterations: int = DEFAULT_MAX_ITERATIONS,
    ) -> None:
        if not (isinstance(tolerance, (int, float)) and tolerance > 0 and math.isfinite(tolerance)):
            raise ValueError(f"tolerance must be a positive number, got {tolerance!r}")
        if isinstance(max_iterations, bool) or not isinstance(max_iterations, int) or max_iterations < 1:
            raise ValueError(f"max_iterations must be a positive integer, got {max_iterations!r}")
        self.f = f
        self.tolerance = float(tolerance)
        self.max_iterations = max_iterations

    # subclasses provide the seeds-to-state setup and one step

    def _start(self) -> dict:
        raise NotImplementedError

    def _step(self, state: dict, index: int) -> IterationRecord:
        raise NotImplementedError

    def _eval(self, x: float, estimate: float) -> float:
        ev = self.f.try_evaluate(x)
        if not ev.ok:
            raise NumericalFailure(FailureKind.EVALUATION_FAILED, f"f({x!r}): {ev.error}", estimate)
        return ev.value

    def iterate(self) -> Generator[IterationRecord, None, SolverResult]:
        count = 0
        estimate = math.nan
        try:
            state = self._start()
            estimate = state["estimate"]
            while count < self.max_iterations:
                record = self._step(state, count + 1)
                count += 1
                estimate = record.estimate
                logger.debug("%s %s", self.name, record)
                yield record
                if abs(record.f_estimate) < self.tolerance:
                    return self._finish(estimate, count, Termination.CONVERGED)
        except NumericalFailure as exc:
            if exc.estimate is not None:
                estimate = exc.estimate
            return self._finish(estimate, count, Termination.NUMERICAL_FAILURE, exc.kind, str(exc))
        return self._finish(estimate, count, Termination.MAX_ITERATIONS)

    def _finish(
        self,
        root: float,
        count: int,
        termination: Termination,
        reason: Optional[FailureKind] = None,
        message: str = "",
    ) -> SolverResult:
        result = SolverResult(root, count, termination, reason, message)
        logger.info("%s on %s: %s", self.name, self.f, result)
        return result

    def solve(self, pace: Optional[Pacer] = None, keep_history: bool = True) -> SolverResult:
        history = []
        gen = self.iterate()
        while True:
            try:
                record = next(gen)
            except StopIteration as stop:
                result: SolverResult = stop.value
                break
            if keep_history:
                history.append(record)
            if pace is not None:
                pace(record)
        if keep_history:
            return SolverResult(
                result.root, result.iterations, result.termination, result.reason, result.message, tuple(history)
            )
        return result

    def __iter__(self) -> Iterator[IterationRecord]:
        return self.iterate()


def _false_position(a: float, b: float, fa: float, fb: float, estimate: float) -> float:
    denom = fb - fa
    if abs(denom) < DENOMINATOR_EPS:
        raise NumericalFailure(
            FailureKind.NEAR_ZERO_DENOMINATOR, f"f(b) - f(a) = {denom!r} at a = {a!r}, b = {b!r}", estimate
        )
    return (a * fb - b * fa) / denom


class RegulaFalsi(RootFinder):
    """False position on a bracket [a, b]; keeps the sign change."""

    name = "Regula Falsi"

    def __init__(self, f: FunctionHandle, a: float, b: float, **kwargs) -> None:
        super().__init__(f, **kwargs)
        self.a, self.b = float(a), float(b)
        if not Interval.closed(self.a, self.b).brackets(f):
            logger.warning("(%g, %g) does not bracket a root of %s", self.a, self.b, f)

    @classmethod
    def from_search(
        cls,
        f: FunctionHandle,
        search: Interval = Interval(*DEFAULT_SEARCH),
        step: float = DEFAULT_SCAN_STEP,
        fallback: Optional[Interval] = None,
        **kwargs,
    ) -> "RegulaFalsi":
        bracket = resolve_bracket(f, search, step, fallback)
        return cls(f, bracket.a, bracket.b, **kwargs)

    def _start(self) -> dict:
        a, b = self.a, self.b
        return {"a": a, "b": b, "fa": self._eval(a, b), "fb": self._eval(b, b), "estimate": b}

    def _step(self, state: dict, index: int) -> IterationRecord:
        a, b, fa, fb = state["a"], state["b"], state["fa"], state["fb"]
        c = _false_position(a, b, fa, fb, state["estimate"])
        fc = self._eval(c, state["estimate"])
        # replace the endpoint on the same side as c
        if (fc < 0) == (fb < 0):
            state["b"], state["fb"] = c, fc
        else:
            state["a"], state["fa"] = c, fc
        state["estimate"] = c
        return IterationRecord(index, ("a", "b", "c"), (a, b, c), (fa, fb, fc), c, fc)


class Secant(RootFinder):
    """Two-point secant; the window shifts every step."""

    name = "Secant"

    def __init__(self, f: FunctionHandle, a: float, b: float, **kwargs) -> None:
        super().__init__(f, **kwargs)
        self.a, self.b = float(a), float(b)

    @classmethod
    def from_search(
        cls,
        f: FunctionHandle,
        search: Interval = Interval(*DEFAULT_SEARCH),
        step: float = DEFAULT_SCAN_STEP,
        **kwargs,
    ) -> "Secant":
        """Seed with the ends of the first sign change found in ``search``."""
        bracket = resolve_bracket(f, search, step)
        return cls(f, bracket.a, bracket.b, **kwargs)

    def _start(self) -> dict:
        a, b = self.a, self.b
        return {"a": a, "b": b, "fa": self._eval(a, b), "fb": self._eval(b, b), "estimate": b}

    def _step(self, state: dict, index: int) -> IterationRecord:
        a, b, fa, fb = state["a"], state["b"], state["fa"], state["fb"]
        c = _false_position(a, b, fa, fb, b)
        fc = self._eval(c, b)
        state.update(a=b, fa=fb, b=c, fb=fc, estimate=c)
        return IterationRecord(index, ("a", "b", "c"), (a, b, c), (fa, fb, fc), c, fc)


class NewtonRaphson(RootFinder):
    """x' = x - f(x)/f'(x) with a central-difference derivative."""

    name = "Newton-Raphson"

    def __init__(self, f: FunctionHandle, x0: float, step: float = DERIVATIVE_STEP, **kwargs) -> None:
        super().__init__(f, **kwargs)
        if not step > 0:
            raise ValueError(f"derivative step must be positive, got {step!r}")
        self.x0 = float(x0)
        self.step = step

    def _start(self) -> dict:
        x = self.x0
        return {"x": x, "fx": self._eval(x, x), "estimate": x}

    def _step(self, state: dict, index: int) -> IterationRecord:
        x, fx = state["x"], state["fx"]
        d = self.f.try_derivative(x, self.step)
        if not d.ok:
            raise NumericalFailure(FailureKind.EVALUATION_FAILED, f"f'({x!r}): {d.error}", x)
        if abs(d.value) < DENOMINATOR_EPS:
            raise NumericalFailure(FailureKind.NEAR_ZERO_DERIVATIVE, f"f'({x!r}) = {d.value!r}", x)
        x_new = x - fx / d.value
        fx_new = self._eval(x_new, x)
        state.update(x=x_new, fx=fx_new, estimate=x_new)
        return IterationRecord(index, ("x",), (x,), (fx,), x_new, fx_new, (("f'(x)", d.value),))


class Muller(RootFinder):
    """Muller's method: quadratic through the last three points.

    ``discriminant`` chooses what happens when B^2 - 4*A*y0 < 0:
    ``"absolute"`` continues with sqrt(|D|), ``"fail"`` stops with a
    negative-discriminant failure.
    """

    name = "Muller"
    POLICIES = ("absolute", "fail")

    def __init__(
        self,
        f: FunctionHandle,
        x2: float,
        x1: float,
        x0: float,
        discriminant: str = "absolute",
        **kwargs,
    ) -> None:
        super().__init__(f, **kwargs)
        if discriminant not in self.POLICIES:
            raise ValueError(f"discriminant policy must be one of {self.POLICIES}, got {discriminant!r}")
        self.seeds = (float(x2), float(x1), float(x0))
        self.discriminant = discriminant

    def _start(self) -> dict:
        x2, x1, x0 = self.seeds
        return {
            "x": [x2, x1, x0],
            "y": [self._eval(x2, x0), self._eval(x1, x0), self._eval(x0, x0)],
            "estimate": x0,
        }

    def _step(self, state: dict, index: int) -> IterationRecord:
        (x2, x1, x0), (y2, y1, y0) = state["x"], state["y"]
        h = x1 - x0
        t2 = (x1 - x2) * h
        t4 = (x2 - x1) * (x2 - x0)
        if h == 0 or t2 == 0 or t4 == 0:
            raise NumericalFailure(
                FailureKind.NEAR_ZERO_DENOMINATOR, f"coincident points {x2!r}, {x1!r}, {x0!r}", x0
            )
        t1 = y1 - y0
        t3 = y2 - y0
        A = t1 / t2 + t3 / t4
        B = t1 / h - A * h
        D = B * B - 4 * A * y0
        if D < 0:
            if self.discriminant == "fail":
                raise NumericalFailure(FailureKind.NEGATIVE_DISCRIMINANT, f"D = {D!r}", x0)
            logger.warning("%s: negative discriminant %g, continuing with sqrt(|D|)", self.name, D)
        root_d = math.sqrt(abs(D))
        plus, minus = B + root_d, B - root_d
        big, small = (plus, minus) if abs(plus) > abs(minus) else (minus, plus)
        if abs(big) > DENOMINATOR_EPS:
            denom = big
        elif abs(small) > DENOMINATOR_EPS:
            denom = small
        else:
            raise NumericalFailure(FailureKind.NEAR_ZERO_DENOMINATOR, f"B +/- sqrt(D) ~ 0 (B = {B!r})", x0)
        x3 = x0 - 2 * y0 / denom
        y3 = self._eval(x3, x0)
        state.update(x=[x1, x0, x3], y=[y1, y0, y3], estimate=x3)
        return IterationRecord(
            index,
            ("x(i-2)", "x(i-1)", "x(i)"),
            (x2, x1, x0),
            (y2, y1, y0),
            x3,
            y3,
            (("A", A), ("B", B), ("D", D)),
        )


METHODS: Dict[str, Type[RootFinder]] = {
    "regula-falsi": RegulaFalsi,
    "secant": Secant,
    "newton": NewtonRaphson,
    "muller": Muller,
}

SEED_COUNTS: Dict[str, int] = {
    "regula-falsi": 2,
    "secant": 2,
    "newton": 1,
    "muller": 3,
}


def make_solver(method: str, f: FunctionHandle, seeds, **kwargs) -> RootFinder:
    """Build the named finder from a flat list of seeds."""
    try:
        cls = METHODS[method]
    except KeyError:
        raise ValueError(f"Unknown method {method!r}; choose from {sorted(METHODS)}") from None
    seeds = [float(s) for s in seeds]
    if len(seeds) != SEED_COUNTS[method]:
        raise ValueError(f"{cls.name} needs {SEED_COUNTS[method]} seed(s), got {len(seeds)}")
    return cls(f, *seeds, **kwargs)
