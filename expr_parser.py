from __future__ import annotations
import logging
import math
from typing import Dict, List, Optional

from edag import EDAG, FUNCTIONS
from errors import ParseError, ParseErrorKind

logger = logging.getLogger(__name__)

CONSTANTS: Dict[str, float] = {
    "pi": math.pi,
    "e": math.e,
}

# =====================
# Tokenizer
# =====================


class ExprTok:
    def __init__(self, kind: str, lex: str = "", pos: int = 0, value: Optional[float] = None):
        self.kind, self.lex, self.pos, self.value = kind, lex, pos, value

    def __repr__(self) -> str:
        return f"ExprTok({self.kind!r}, {self.lex!r}, {self.pos})"


def _scan_number(s: str, i: int) -> int:
    """Return the end index of the numeric literal starting at i."""
    n = len(s)
    j = i
    while j < n and s[j].isdigit():
        j += 1
    if j < n and s[j] == ".":
        j += 1
        k = j
        while j < n and s[j].isdigit():
            j += 1
        if j == k:
            raise ParseError(
                ParseErrorKind.INVALID_NUMBER,
                f"expected digits after '.' in {s[i:j]!r}",
                i,
            )
    if j == i:
        raise ParseError(ParseErrorKind.INVALID_NUMBER, "no digits", i)
    return j


def expr_tokenize(expr: str) -> List[ExprTok]:
    s = expr
    i, n = 0, len(s)
    toks: List[ExprTok] = []
    prev: Optional[ExprTok] = None
    while i < n:
        c = s[i]
        if c.isspace():
            i += 1
            continue
        if c in "+-*/^()":
            k = c
            # a minus that cannot be binary negates what follows
            if k == "-" and (
                prev is None or prev.kind in ("+", "-", "*", "/", "^", "(", "NEG")
            ):
                k = "NEG"
            t = ExprTok(k, c, i)
            toks.append(t)
            prev = t
            i += 1
            continue
        if c.isdigit() or c == ".":
            j = _scan_number(s, i)
            value = float(s[i:j])
            if not math.isfinite(value):
                raise ParseError(
                    ParseErrorKind.INVALID_NUMBER, f"literal {s[i:j][:20]}... is out of range", i
                )
            t = ExprTok("NUM", s[i:j], i, value)
            toks.append(t)
            prev = t
            i = j
            continue
        if c.isalpha() or c == "_":
            j = i + 1
            while j < n and (s[j].isalnum() or s[j] == "_"):
                j += 1
            t = ExprTok("ID", s[i:j], i)
            toks.append(t)
            prev = t
            i = j
            continue
        raise ParseError(ParseErrorKind.UNEXPECTED_TOKEN, f"unexpected character {c!r}", i)
    toks.append(ExprTok("END", "", n))
    return toks


# =====================
# Recursive descent
# =====================
#
#   expression := term (('+'|'-') term)*
#   term       := factor (('*'|'/') factor)*
#   factor     := '-' factor | primary ('^' factor)?
#   primary    := '(' expression ')' | name '(' expression ')' | number | variable | constant


class _Parser:
    def __init__(self, toks: List[ExprTok], dag: EDAG) -> None:
        self.toks = toks
        self.i = 0
        self.dag = dag

    def peek(self) -> ExprTok:
        return self.toks[self.i]

    def advance(self) -> ExprTok:
        t = self.toks[self.i]
        if t.kind != "END":
            self.i += 1
        return t

    def parse(self) -> str:
        if self.peek().kind == "END":
            raise ParseError(ParseErrorKind.UNEXPECTED_TOKEN, "empty expression", 0)
        root = self.expression()
        t = self.peek()
        if t.kind == ")":
            raise ParseError(ParseErrorKind.UNBALANCED_PARENS, "unmatched ')'", t.pos)
        if t.kind != "END":
            raise ParseError(ParseErrorKind.UNEXPECTED_TOKEN, f"unexpected {t.lex!r}", t.pos)
        return root

    def expression(self) -> str:
        left = self.term()
        while self.peek().kind in ("+", "-"):
            op = self.advance().kind
            left = self.dag._add_op(op, [left, self.term()])
        return left

    def term(self) -> str:
        left = self.factor()
        while self.peek().kind in ("*", "/"):
            op = self.advance().kind
            left = self.dag._add_op(op, [left, self.factor()])
        return left

    def factor(self) -> str:
        if self.peek().kind == "NEG":
            self.advance()
            return self._negate(self.factor())
        base = self.primary()
        if self.peek().kind == "^":
            self.advance()
            # recursion makes a^b^c nest as a^(b^c)
            return self.dag._add_op("^", [base, self.factor()])
        return base

    def _negate(self, nid: str) -> str:
        data = self.dag.node(nid)
        if data.type == "CONST" and not data.symbol.startswith("-"):
            # negative literal
            data.value = -data.value
            data.symbol = "-" + data.symbol
            return nid
        return self.dag._add_op("-", [nid], is_unary=True)

    def _close(self, opening: ExprTok) -> None:
        t = self.peek()
        if t.kind == ")":
            self.advance()
            return
        if t.kind == "END":
            raise ParseError(
                ParseErrorKind.UNBALANCED_PARENS,
                f"'(' opened at position {opening.pos} is never closed",
                t.pos,
            )
        raise ParseError(ParseErrorKind.UNEXPECTED_TOKEN, f"expected ')' but found {t.lex!r}", t.pos)

    def primary(self) -> str:
        t = self.peek()
        if t.kind == "NUM":
            self.advance()
            return self.dag._add_const(t.value, t.lex)
        if t.kind == "(":
            self.advance()
            inner = self.expression()
            self._close(t)
            return inner
        if t.kind == "ID":
            self.advance()
            if t.lex == self.dag.variable:
                return self.dag._add_var()
            name = t.lex.lower()
            if name in FUNCTIONS:
                opening = self.peek()
                if opening.kind != "(":
                    raise ParseError(
                        ParseErrorKind.MISSING_ARGUMENT_PAREN,
                        f"function '{t.lex}' needs a parenthesized argument",
                        opening.pos,
                    )
                self.advance()
                arg = self.expression()
                self._close(opening)
                return self.dag._add_func(name, arg)
            if name in CONSTANTS:
                return self.dag._add_const(CONSTANTS[name], name)
            raise ParseError(ParseErrorKind.UNKNOWN_FUNCTION, f"unknown name '{t.lex}'", t.pos)
        if t.kind == "END":
            raise ParseError(ParseErrorKind.UNEXPECTED_TOKEN, "missing operand at end of expression", t.pos)
        raise ParseError(ParseErrorKind.UNEXPECTED_TOKEN, f"missing operand before {t.lex!r}", t.pos)


def check_variable(variable: str) -> str:
    if not variable or not (variable[0].isalpha() or variable[0] == "_") or not all(
        ch.isalnum() or ch == "_" for ch in variable
    ):
        raise ValueError(f"Invalid variable name {variable!r}")
    if variable.lower() in FUNCTIONS:
        raise ValueError(f"Variable name {variable!r} clashes with a function name")
    return variable


def parse_expression_edag(expr: str, variable: str = "x") -> EDAG:
    toks = expr_tokenize(expr)
    dag = EDAG(check_variable(variable))
    dag.root = _Parser(toks, dag).parse()
    logger.debug("parsed %r into %d nodes", expr, len(dag))
    return dag
