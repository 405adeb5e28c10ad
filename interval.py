from __future__ import annotations
from dataclasses import dataclass
from typing import Optional, Tuple
import logging
import math

import numpy as np

from errors import BracketError
from function_handle import FunctionHandle

logger = logging.getLogger(__name__)

# Default bracket scan: the integers 0..10
DEFAULT_SEARCH: Tuple[float, float] = (0.0, 10.0)
DEFAULT_SCAN_STEP = 1.0


@dataclass(frozen=True)
class Interval:
    """Closed interval [a, b] of the real line."""

    a: float
    b: float

    def __post_init__(self) -> None:
        if not (math.isfinite(self.a) and math.isfinite(self.b)):
            raise ValueError(f"Interval endpoints must be finite, got {self}")
        if self.a > self.b:
            raise ValueError(f"Interval is empty: {self}")

    @staticmethod
    def closed(a: float, b: float) -> "Interval":
        return Interval(min(a, b), max(a, b))

    def width(self) -> float:
        return self.b - self.a

    def contains(self, x: float) -> bool:
        return self.a <= x <= self.b

    def brackets(self, f: FunctionHandle) -> bool:
        """True when f changes sign (or vanishes) between the endpoints."""
        fa = f.try_evaluate(self.a)
        fb = f.try_evaluate(self.b)
        if not (fa.ok and fb.ok):
            return False
        return fa.value * fb.value <= 0

    def __iter__(self):
        return iter((self.a, self.b))

    def __str__(self) -> str:
        return f"[{self.a:g}, {self.b:g}]"


def _sign_change(f_lo: float, f_hi: float) -> bool:
    return (f_lo < 0 <= f_hi) or (f_hi < 0 <= f_lo)


def scan_for_bracket(
    f: FunctionHandle, search: Interval, step: float = DEFAULT_SCAN_STEP
) -> Optional[Interval]:
    """Sample ``search`` every ``step`` and return the first sub-interval
    where f changes sign, or None. Points where f cannot be evaluated are
    skipped."""
    if not step > 0:
        raise ValueError(f"step must be positive, got {step!r}")
    count = int(math.floor(search.width() / step + 1e-9)) + 1
    samples = search.a + step * np.arange(count)
    prev: Optional[Tuple[float, float]] = None
    for x in samples:
        x = float(x)
        ev = f.try_evaluate(x)
        if not ev.ok:
            logger.debug("skipping sample %g: %s", x, ev.error)
            prev = None
            continue
        if prev is not None and _sign_change(prev[1], ev.value):
            bracket = Interval(prev[0], x)
            logger.debug("sign change in %s", bracket)
            return bracket
        prev = (x, ev.value)
    return None


def resolve_bracket(
    f: FunctionHandle,
    search: Interval = Interval(*DEFAULT_SEARCH),
    step: float = DEFAULT_SCAN_STEP,
    fallback: Optional[Interval] = None,
) -> Interval:
    """Scan for a bracket; fall back to manual endpoints when none is found.

    Fallback endpoints that do not bracket a root are still returned, with a
    warning. Raises BracketError when there is neither a scan hit nor a
    fallback.
    """
    bracket = scan_for_bracket(f, search, step)
    if bracket is not None:
        logger.info("root lies between %s", bracket)
        return bracket
    if fallback is None:
        raise BracketError(f"no sign change of {f} found in {search} with step {step:g}")
    if not fallback.brackets(f):
        logger.warning("endpoints %s do not bracket a root of %s", fallback, f)
    return fallback
