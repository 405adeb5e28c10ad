from __future__ import annotations
import logging
import math
import networkx as nx
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from errors import EvalError, EvalErrorKind

logger = logging.getLogger(__name__)

DERIVATIVE_STEP = 1e-4

FUNCTIONS: Dict[str, Callable[[float], float]] = {
	'sin': math.sin,
	'cos': math.cos,
	'tan': math.tan,
	'exp': math.exp,
	'log': math.log,
	'ln': math.log,
	'log10': math.log10,
	'sqrt': math.sqrt,
	'abs': abs,
}
_POSITIVE_ARG = {'log', 'ln', 'log10'}
_NON_NEGATIVE_ARG = {'sqrt'}

# Precedences for printing
_PREC = {'+': 1, '-': 1, '*': 2, '/': 2, 'NEG': 3, '^': 4}
_ATOM = 6


def _finite(value: float, what: str) -> float:
	if not math.isfinite(value):
		raise EvalError(EvalErrorKind.OVERFLOW, f"{what} is not finite")
	return value


def _apply_function(name: str, v: float) -> float:
	if name in _POSITIVE_ARG and v <= 0:
		raise EvalError(EvalErrorKind.DOMAIN_ERROR, f"{name} requires a positive argument, got {v!r}")
	if name in _NON_NEGATIVE_ARG and v < 0:
		raise EvalError(EvalErrorKind.DOMAIN_ERROR, f"{name} requires a non-negative argument, got {v!r}")
	try:
		return _finite(FUNCTIONS[name](v), f"{name}({v!r})")
	except OverflowError as exc:
		raise EvalError(EvalErrorKind.OVERFLOW, f"{name}({v!r}) overflows") from exc
	except ValueError as exc:
		raise EvalError(EvalErrorKind.DOMAIN_ERROR, f"{name}({v!r}): {exc}") from exc


def _power(a: float, b: float) -> float:
	if a == 0.0 and b < 0:
		raise EvalError(EvalErrorKind.DIVISION_BY_ZERO, f"0 raised to negative power {b!r}")
	if a < 0 and not float(b).is_integer():
		raise EvalError(EvalErrorKind.DOMAIN_ERROR, f"negative base {a!r} with non-integer exponent {b!r}")
	try:
		return a ** b
	except OverflowError as exc:
		raise EvalError(EvalErrorKind.OVERFLOW, f"{a!r}^{b!r} overflows") from exc


def _apply_binary(op: str, a: float, b: float) -> float:
	if op == '+':
		r = a + b
	elif op == '-':
		r = a - b
	elif op == '*':
		r = a * b
	elif op == '/':
		if b == 0.0:
			raise EvalError(EvalErrorKind.DIVISION_BY_ZERO, f"{a!r} divided by zero")
		r = a / b
	elif op == '^':
		r = _power(a, b)
	else:
		raise ValueError(f"Unknown op {op}")
	return _finite(r, f"{a!r} {op} {b!r}")


# Lightweight eDAG leveraging networkx.DiGraph.
# Edges run from operand to operator; all occurrences of the variable share one leaf.
@dataclass
class Node:
	type: str  # 'VAR','CONST','OP','FUNC'
	symbol: str
	value: Optional[float] = None
	op: Optional[str] = None
	is_unary: bool = False
	children: List[str] = field(default_factory=list)  # ordered child node ids


class EDAG:
	def __init__(self, variable: str = 'x') -> None:
		self.g = nx.DiGraph()
		self.root: Optional[str] = None
		self.variable = variable
		self._id = 0
		self._var_id: Optional[str] = None
		self._order: Optional[List[str]] = None

	def _nid(self) -> str:
		self._id += 1
		return f"n{self._id}"

	def _add(self, node: Node) -> str:
		n = self._nid()
		self.g.add_node(n, data=node)
		for c in node.children:
			self.g.add_edge(c, n)
		self._order = None
		return n

	def _add_const(self, value: float, symbol: Optional[str] = None) -> str:
		return self._add(Node('CONST', symbol if symbol is not None else repr(value), value=float(value)))

	def _add_var(self) -> str:
		if self._var_id is None:
			self._var_id = self._add(Node('VAR', self.variable))
		return self._var_id

	def _add_op(self, op: str, children: List[str], is_unary: bool = False) -> str:
		return self._add(Node('OP', op, op=op, is_unary=is_unary, children=list(children)))

	def _add_func(self, name: str, arg: str) -> str:
		return self._add(Node('FUNC', name, op=name, is_unary=True, children=[arg]))

	def node(self, nid: str) -> Node:
		return self.g.nodes[nid]['data']

	def __len__(self) -> int:
		return self.g.number_of_nodes()

	def _evaluation_order(self) -> List[str]:
		if self._order is None:
			# operands before operators; only nodes feeding the root matter
			keep = nx.ancestors(self.g, self.root) | {self.root}
			self._order = [n for n in nx.topological_sort(self.g) if n in keep]
		return self._order

	def eval(self, x: float) -> float:
		"""Evaluate the expression with the variable bound to ``x``.

		Raises EvalError on division by zero, domain violations and non-finite
		results, so a returned value is always a finite float.
		"""
		if self.root is None:
			raise RuntimeError('no expression parsed')
		x = _finite(float(x), f"{self.variable} = {x!r}")
		values: Dict[str, float] = {}
		for nid in self._evaluation_order():
			data = self.node(nid)
			if data.type == 'CONST':
				values[nid] = data.value
			elif data.type == 'VAR':
				values[nid] = x
			elif data.type == 'FUNC':
				values[nid] = _apply_function(data.op, values[data.children[0]])
			elif data.type == 'OP':
				if data.is_unary:
					values[nid] = -values[data.children[0]]
				else:
					a, b = (values[c] for c in data.children)
					values[nid] = _apply_binary(data.op, a, b)
			else:
				raise ValueError('Unknown node type')
		return values[self.root]

	def derivative_at(self, x: float, h: float = DERIVATIVE_STEP) -> float:
		"""Central difference (f(x+h) - f(x-h)) / 2h."""
		if not h > 0:
			raise ValueError(f"step must be positive, got {h!r}")
		return _finite((self.eval(x + h) - self.eval(x - h)) / (2 * h), f"f'({x!r})")

	# -----------------
	# Stringification
	# -----------------
	def _prec(self, nid: str) -> int:
		data = self.node(nid)
		if data.type == 'OP':
			return _PREC['NEG'] if data.is_unary else _PREC[data.op]
		if data.type == 'CONST' and data.symbol.startswith('-'):
			return _PREC['NEG']
		return _ATOM

	def _wrap(self, child: str, parent_op: str, is_right: bool = False) -> str:
		s = self._node_to_string(child)
		cp, pp = self._prec(child), _PREC[parent_op]
		# '^' groups to the right, everything else to the left
		need = cp < pp or (cp == pp and parent_op != 'NEG' and is_right != (parent_op == '^'))
		return f"({s})" if need else s

	def _node_to_string(self, nid: str) -> str:
		data = self.node(nid)
		if data.type in ('CONST', 'VAR'):
			return data.symbol
		if data.type == 'FUNC':
			return f"{data.op}({self._node_to_string(data.children[0])})"
		if data.is_unary:
			return f"-{self._wrap(data.children[0], 'NEG')}"
		left = self._wrap(data.children[0], data.op)
		right = self._wrap(data.children[1], data.op, is_right=True)
		if data.op in ('+', '-'):
			return f"{left} {data.op} {right}"
		return f"{left}{data.op}{right}"

	def to_string(self) -> str:
		if self.root is None:
			return ''
		return self._node_to_string(self.root)

	def __str__(self) -> str:
		return self.to_string()
