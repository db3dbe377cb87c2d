"""
evaluator.py — Compile node trees into closures and run them against a scope.

compile_node() walks the tree once and returns nested Python closures; the
closure is a pure function of the scope mapping it receives, so one compiled
expression can be called once per pixel without re-walking the tree.
Function names are resolved from the builtin table when a call executes.
"""
from collections import ChainMap

from . import builtins, calculus, values
from .errors import EvaluationError, ParseError
from .nodes import (
    COMPARISON_OPS, Assignment, BinaryOp, Call, MatrixLiteral, Number, Symbol,
    Text, UnaryOp,
)
from .values import Matrix, require_scalar, to_value


_ARITHMETIC = {
    '+': values.add,
    '-': values.subtract,
    '*': values.multiply,
    '/': values.divide,
    '^': values.power,
}


class CompiledExpression:
    """Reusable evaluator bound to one node tree."""

    __slots__ = ('node', '_run')

    def __init__(self, node):
        self.node = node
        try:
            self._run = compile_node(node)
        except RecursionError:
            raise ParseError('Expression is nested too deeply')

    def __call__(self, scope):
        try:
            return self._run(scope)
        except RecursionError:
            raise EvaluationError('Expression is nested too deeply to evaluate')

    def __repr__(self):
        return f'CompiledExpression({str(self.node)!r})'


def evaluate(node, scope):
    """Evaluate a node tree against a scope mapping."""
    return compile_node(node)(scope)


def compile_node(node):
    if isinstance(node, Number):
        return _constant(node.value)
    if isinstance(node, Symbol):
        return _compile_symbol(node.name)
    if isinstance(node, Text):
        return _compile_text(node.value)
    if isinstance(node, UnaryOp):
        return _compile_unary(node)
    if isinstance(node, BinaryOp):
        return _compile_binary(node)
    if isinstance(node, Call):
        if node.name == 'derivative':
            return _compile_derivative(node)
        if node.name == 'integrate':
            return _compile_integrate(node)
        return _compile_call(node)
    if isinstance(node, MatrixLiteral):
        return _compile_matrix(node)
    if isinstance(node, Assignment):
        return _compile_assignment(node)
    raise TypeError(f'Cannot compile node of type {type(node).__name__}')


# ── Leaves ──────────────────────────────────────────────────

def _constant(value):
    def run(scope):
        return value
    return run


def _compile_symbol(name):
    def run(scope):
        try:
            return to_value(scope[name])
        except KeyError:
            pass
        if name in builtins.CONSTANTS:
            return builtins.CONSTANTS[name]
        if builtins.lookup(name) is not None:
            raise EvaluationError(f'Function {name!r} used without arguments')
        raise EvaluationError(f'Undefined symbol {name!r}')
    return run


def _compile_text(text):
    def run(scope):
        raise EvaluationError(
            f"String '{text}' is only valid as an argument of derivative() or integrate()")
    return run


# ── Operators ───────────────────────────────────────────────

def _compile_unary(node):
    operand = compile_node(node.operand)
    if node.op == '-':
        def run(scope):
            return values.negate(operand(scope))
    else:
        def run(scope):
            return operand(scope)
    return run


def _compile_binary(node):
    left = compile_node(node.left)
    right = compile_node(node.right)
    if node.op in COMPARISON_OPS:
        op = node.op

        def run(scope):
            return values.compare(op, left(scope), right(scope))
        return run
    fn = _ARITHMETIC[node.op]

    def run(scope):
        return fn(left(scope), right(scope))
    return run


def _compile_call(node):
    name = node.name
    args = [compile_node(arg) for arg in node.args]

    def run(scope):
        builtin = builtins.lookup(name)
        if builtin is None:
            raise EvaluationError(f'Undefined function {name!r}')
        problem = builtin.check_arity(len(args))
        if problem:
            raise EvaluationError(problem)
        return builtin.fn(*[arg(scope) for arg in args])
    return run


def _compile_matrix(node):
    rows = [[compile_node(item) for item in row] for row in node.rows]
    vector = node.vector

    def run(scope):
        return Matrix(tuple(
            tuple(require_scalar(item(scope), 'A matrix element') for item in row)
            for row in rows), vector)
    return run


def _compile_assignment(node):
    name = node.name
    value = compile_node(node.value)

    def run(scope):
        result = value(scope)
        try:
            scope[name] = result
        except TypeError:
            raise EvaluationError(f'Cannot assign {name!r}: scope is read-only')
        return result
    return run


# ── Calculus special forms ──────────────────────────────────

def _compile_derivative(node):
    expr = calculus.expression_arg(node.args[0])
    var = calculus.variable_arg(node.args[1], 'derivative') if len(node.args) > 1 else 'x'
    return compile_node(calculus.differentiate(expr, var))


def _compile_integrate(node):
    body = compile_node(calculus.expression_arg(node.args[0]))
    lower = compile_node(node.args[1])
    upper = compile_node(node.args[2])
    extra = list(node.args[3:])
    var = 'x'
    if extra and isinstance(extra[0], Text):
        var = calculus.variable_arg(extra.pop(0), 'integrate')
    if len(extra) > 1:
        raise EvaluationError('integrate() takes (expr, a, b[, variable][, steps])')
    steps = compile_node(extra[0]) if extra else None

    def run(scope):
        a = require_scalar(lower(scope), 'integrate() lower bound')
        b = require_scalar(upper(scope), 'integrate() upper bound')
        n = require_scalar(steps(scope), 'integrate() steps') if steps else None

        def f(t):
            return body(ChainMap({var: t}, scope))
        return calculus.simpson(f, a, b, n)
    return run
