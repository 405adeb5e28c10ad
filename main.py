#!/usr/bin/env python3
from __future__ import annotations
import argparse
import logging
import sys
from typing import List, Optional

from errors import BracketError, ExpressionError
from function_handle import FunctionHandle, load_expression
from interval import DEFAULT_SCAN_STEP, DEFAULT_SEARCH, Interval
from solver import (
    DEFAULT_MAX_ITERATIONS,
    DEFAULT_TOLERANCE,
    METHODS,
    SEED_COUNTS,
    IterationRecord,
    RegulaFalsi,
    Secant,
    make_solver,
    sleep_pacer,
)

logger = logging.getLogger(__name__)

# Pacing is off unless --delay is given
DEFAULT_DELAY = 0.0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="numroots",
        description="Find a root of f(x) with Regula Falsi, Secant, Newton-Raphson or Muller's method.",
    )
    parser.add_argument("expression", nargs="?", help="f(x), e.g. 'x*log10(x) - 1.2'")
    parser.add_argument("-f", "--file", type=str, help="Read the expression from the first line of a file")
    parser.add_argument(
        "-m",
        "--method",
        choices=sorted(METHODS),
        default="regula-falsi",
        help="Root-finding method (default: regula-falsi)",
    )
    parser.add_argument(
        "-s",
        "--seeds",
        type=float,
        nargs="+",
        help="Initial values: 2 for secant, 1 for newton, 3 for muller (oldest first); "
        "for regula-falsi, fallback endpoints used when the search finds no sign change; "
        "secant without seeds starts from the search result",
    )
    parser.add_argument(
        "--search",
        type=float,
        nargs=2,
        metavar=("LO", "HI"),
        default=list(DEFAULT_SEARCH),
        help="Range scanned for a sign change by regula-falsi and unseeded secant (default: 0 10)",
    )
    parser.add_argument("--step", type=float, default=DEFAULT_SCAN_STEP, help="Scan step (default: 1)")
    parser.add_argument("-t", "--tolerance", type=float, default=DEFAULT_TOLERANCE)
    parser.add_argument("-n", "--max-iterations", type=int, default=DEFAULT_MAX_ITERATIONS)
    parser.add_argument("--variable", type=str, default="x", help="Name of the variable (default: x)")
    parser.add_argument(
        "--discriminant",
        choices=["absolute", "fail"],
        default="absolute",
        help="Muller: what to do with a negative discriminant",
    )
    parser.add_argument(
        "--delay", type=float, default=DEFAULT_DELAY, help="Seconds to pause between printed iterations"
    )
    parser.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="WARNING",
        help="Set logging level",
    )
    parser.add_argument("--log-file", type=str, help="Write logs to file")
    return parser


def configure_logging(level: str, log_file: Optional[str] = None) -> None:
    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_file:
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))
    logging.basicConfig(
        level=getattr(logging, level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        handlers=handlers,
        force=True,
    )


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.log_level, args.log_file)

    try:
        if args.file:
            text = load_expression(args.file)
        elif args.expression:
            text = args.expression
        else:
            parser.error("an expression or --file is required")
        f = FunctionHandle(text, variable=args.variable)
        options = {"tolerance": args.tolerance, "max_iterations": args.max_iterations}
        if args.method == "muller":
            options["discriminant"] = args.discriminant
        if args.method == "regula-falsi":
            fallback = None
            if args.seeds:
                if len(args.seeds) != SEED_COUNTS["regula-falsi"]:
                    parser.error("regula-falsi takes exactly 2 fallback endpoints")
                fallback = Interval.closed(*args.seeds)
            finder = RegulaFalsi.from_search(
                f, Interval.closed(*args.search), args.step, fallback, **options
            )
            print(f"Root lies between ({finder.a:g}, {finder.b:g})")
        elif args.method == "secant" and not args.seeds:
            finder = Secant.from_search(f, Interval.closed(*args.search), args.step, **options)
            print(f"Root lies between ({finder.a:g}, {finder.b:g})")
        else:
            if not args.seeds:
                parser.error(f"--seeds is required for {args.method}")
            finder = make_solver(args.method, f, args.seeds, **options)
    except (ExpressionError, BracketError, OSError, ValueError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2

    print(f"f({args.variable}) = {f}")
    pacer = sleep_pacer(args.delay) if args.delay > 0 else None

    def show(record: IterationRecord) -> None:
        print(record)
        if pacer is not None:
            pacer(record)

    result = finder.solve(pace=show, keep_history=False)
    print()
    print(f"Number of iterations = {result.iterations}")
    if result.converged:
        print(f"By {finder.name} method, root = {result.root:.8g} (approximately)")
        return 0
    print(f"Stopped ({result.tag}); last estimate = {result.root:.8g}")
    if result.message:
        print(result.message)
    return 1


if __name__ == "__main__":
    sys.exit(main())
