"""
nodes.py — Immutable expression tree and its canonical text form.

Nodes are frozen dataclasses.  They are built bottom-up by the parser (or by
the calculus rewrites) and never modified afterwards, so any tree can be
cached and shared.  str(node) gives the canonical syntax, e.g. "3 * x ^ 2".
"""
import math
from dataclasses import dataclass


class Node:
    """Base class for expression tree nodes."""

    def children(self):
        return ()

    def __str__(self):
        return to_string(self)


@dataclass(frozen=True, eq=True)
class Number(Node):
    value: float


@dataclass(frozen=True, eq=True)
class Symbol(Node):
    name: str


@dataclass(frozen=True, eq=True)
class Text(Node):
    """Quoted string literal, e.g. the 'x^2' in derivative('x^2', 'x')."""
    value: str


@dataclass(frozen=True, eq=True)
class UnaryOp(Node):
    op: str
    operand: Node

    def children(self):
        return (self.operand,)


@dataclass(frozen=True, eq=True)
class BinaryOp(Node):
    op: str
    left: Node
    right: Node

    def children(self):
        return (self.left, self.right)


@dataclass(frozen=True, eq=True)
class Call(Node):
    name: str
    args: tuple

    def children(self):
        return self.args


@dataclass(frozen=True, eq=True)
class MatrixLiteral(Node):
    """Rows of element nodes.  A vector literal is stored as one row."""
    rows: tuple
    vector: bool = False

    def children(self):
        return tuple(item for row in self.rows for item in row)


@dataclass(frozen=True, eq=True)
class Assignment(Node):
    name: str
    value: Node

    def children(self):
        return (self.value,)


COMPARISON_OPS = ('<', '<=', '>', '>=', '==', '!=')


# ── Tree queries ────────────────────────────────────────────

def walk(node):
    """Yield node and all of its descendants, parents first."""
    stack = [node]
    while stack:
        current = stack.pop()
        yield current
        stack.extend(reversed(current.children()))


def free_symbols(node):
    return {n.name for n in walk(node) if isinstance(n, Symbol)}


def depends_on(node, name):
    return any(isinstance(n, Symbol) and n.name == name for n in walk(node))


# ── Printing ────────────────────────────────────────────────

_PRECEDENCE = {
    '==': 1, '!=': 1, '<': 1, '<=': 1, '>': 1, '>=': 1,
    '+': 2, '-': 2,
    '*': 3, '/': 3,
    'unary': 4,
    '^': 5,
}
_ATOM = 6


def format_number(value):
    if math.isnan(value):
        return 'NaN'
    if math.isinf(value):
        return 'Infinity' if value > 0 else '-Infinity'
    if value == int(value) and abs(value) < 1e15:
        return str(int(value))
    return repr(value)


def precedence(node):
    if isinstance(node, BinaryOp):
        return _PRECEDENCE[node.op]
    if isinstance(node, UnaryOp):
        return _PRECEDENCE['unary']
    if isinstance(node, Number) and (node.value < 0 or str(node).startswith('-')):
        return _PRECEDENCE['unary']
    if isinstance(node, Assignment):
        return 0
    return _ATOM


def _wrap(node, parens):
    text = to_string(node)
    return f'({text})' if parens else text


def to_string(node):
    if isinstance(node, Number):
        return format_number(node.value)
    if isinstance(node, Symbol):
        return node.name
    if isinstance(node, Text):
        return f"'{node.value}'"
    if isinstance(node, UnaryOp):
        inner = node.operand
        parens = precedence(inner) <= _PRECEDENCE['unary']
        return f'{node.op}{_wrap(inner, parens)}'
    if isinstance(node, BinaryOp):
        mine = _PRECEDENCE[node.op]
        if node.op == '^':
            # right-associative
            left_parens = precedence(node.left) <= mine
            right_parens = precedence(node.right) < mine
        else:
            left_parens = precedence(node.left) < mine
            right_parens = precedence(node.right) <= mine
        return f'{_wrap(node.left, left_parens)} {node.op} {_wrap(node.right, right_parens)}'
    if isinstance(node, Call):
        return f"{node.name}({', '.join(to_string(a) for a in node.args)})"
    if isinstance(node, MatrixLiteral):
        rows = ['[' + ', '.join(to_string(x) for x in row) + ']' for row in node.rows]
        if node.vector:
            return rows[0]
        return '[' + ', '.join(rows) + ']'
    if isinstance(node, Assignment):
        return f'{node.name} = {to_string(node.value)}'
    raise TypeError(f'Unknown node type: {type(node).__name__}')
