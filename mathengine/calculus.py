"""
calculus.py — Symbolic derivatives, simplification and numerical integration.

  • differentiate(node, var)  pure tree rewrite, returns a new tree
  • simplify(text)            round-trips through SymPy's simplify()
  • simpson(f, a, b, steps)   composite Simpson's rule

Derivatives are only tidied by the smart constructors below (0 + u -> u,
1 * u -> u, u ^ 1 -> u, numeric folding); call simplify() for a minimal form.
"""
import logging
import math
from collections import ChainMap

import sympy

from . import config, evaluator, normalizer, parser
from .errors import EvaluationError
from .nodes import (
    COMPARISON_OPS, Assignment, BinaryOp, Call, MatrixLiteral, Number, Symbol,
    Text, UnaryOp, depends_on, free_symbols,
)
from .values import Matrix, exact, ieee_div, ieee_pow

logger = logging.getLogger(__name__)


def parse_text(text):
    """Parse an expression given in any supported notation."""
    return parser.parse(normalizer.normalize(text))


def expression_arg(node):
    """First argument of derivative()/integrate(): quoted text or an inline expression."""
    if isinstance(node, Text):
        return parse_text(node.value)
    return node


def variable_arg(node, fn_name):
    if isinstance(node, Text) and node.value.strip().isidentifier():
        return node.value.strip()
    if isinstance(node, Symbol):
        return node.name
    raise EvaluationError(f'{fn_name}() variable must be a name, got {str(node)!r}')


# ── Smart constructors ──────────────────────────────────────

def _is_num(node, value=None):
    return isinstance(node, Number) and (value is None or node.value == value)


def _num(value):
    return Number(float(value))


def _neg(a):
    if isinstance(a, Number):
        return _num(-a.value)
    if isinstance(a, UnaryOp) and a.op == '-':
        return a.operand
    return UnaryOp('-', a)


def _add(a, b):
    if _is_num(a, 0):
        return b
    if _is_num(b, 0):
        return a
    if _is_num(a) and _is_num(b):
        return _num(a.value + b.value)
    return BinaryOp('+', a, b)


def _sub(a, b):
    if _is_num(b, 0):
        return a
    if _is_num(a, 0):
        return _neg(b)
    if _is_num(a) and _is_num(b):
        return _num(a.value - b.value)
    return BinaryOp('-', a, b)


def _mul(a, b):
    if _is_num(a, 0) or _is_num(b, 0):
        return _num(0)
    if _is_num(a, 1):
        return b
    if _is_num(b, 1):
        return a
    if _is_num(a) and _is_num(b):
        return _num(a.value * b.value)
    return BinaryOp('*', a, b)


def _div(a, b):
    if _is_num(b, 1):
        return a
    if _is_num(a, 0):
        return _num(0)
    if _is_num(a) and _is_num(b):
        return _num(ieee_div(a.value, b.value))
    return BinaryOp('/', a, b)


def _pow(a, b):
    if _is_num(b, 1):
        return a
    if _is_num(b, 0):
        return _num(1)
    if _is_num(a) and _is_num(b):
        return _num(ieee_pow(a.value, b.value))
    return BinaryOp('^', a, b)


def _call(name, *args):
    return Call(name, tuple(args))


# ── Differentiation ─────────────────────────────────────────

def _d_sin(u):
    return _call('cos', u)


def _d_cos(u):
    return _neg(_call('sin', u))


def _d_tan(u):
    return _div(_num(1), _pow(_call('cos', u), _num(2)))


def _d_asin(u):
    return _div(_num(1), _call('sqrt', _sub(_num(1), _pow(u, _num(2)))))


def _d_acos(u):
    return _neg(_d_asin(u))


def _d_atan(u):
    return _div(_num(1), _add(_num(1), _pow(u, _num(2))))


def _d_tanh(u):
    return _sub(_num(1), _pow(_call('tanh', u), _num(2)))


def _d_sqrt(u):
    return _div(_num(1), _mul(_num(2), _call('sqrt', u)))


def _d_cbrt(u):
    return _div(_num(1), _mul(_num(3), _pow(_call('cbrt', u), _num(2))))


def _d_log_base(base):
    def rule(u):
        return _div(_num(1), _mul(u, _call('log', _num(base))))
    return rule


# outer derivative f'(u) for one-argument functions
_CHAIN_RULES = {
    'sin': _d_sin,
    'cos': _d_cos,
    'tan': _d_tan,
    'asin': _d_asin,
    'arcsin': _d_asin,
    'acos': _d_acos,
    'arccos': _d_acos,
    'atan': _d_atan,
    'arctan': _d_atan,
    'sinh': lambda u: _call('cosh', u),
    'cosh': lambda u: _call('sinh', u),
    'tanh': _d_tanh,
    'sqrt': _d_sqrt,
    'cbrt': _d_cbrt,
    'exp': lambda u: _call('exp', u),
    'ln': lambda u: _div(_num(1), u),
    'log10': _d_log_base(10),
    'log2': _d_log_base(2),
    'abs': lambda u: _div(u, _call('abs', u)),
}

_PIECEWISE_CONSTANT = {'sign', 'floor', 'ceil', 'round'}


def differentiate(node, var):
    """Return the derivative tree of `node` with respect to `var`."""
    if isinstance(node, Call) and node.name == 'derivative':
        inner = expression_arg(node.args[0])
        inner_var = variable_arg(node.args[1], 'derivative') if len(node.args) > 1 else 'x'
        return differentiate(differentiate(inner, inner_var), var)
    if isinstance(node, Call) and node.name == 'integrate':
        return _d_integral(node, var)
    if isinstance(node, MatrixLiteral):
        return MatrixLiteral(tuple(tuple(differentiate(x, var) for x in row)
                                   for row in node.rows), node.vector)
    if isinstance(node, (Assignment, Text)):
        raise EvaluationError(f'Cannot differentiate {str(node)!r}')
    if not depends_on(node, var):
        return _num(0)
    if isinstance(node, Symbol):
        return _num(1)
    if isinstance(node, UnaryOp):
        inner = differentiate(node.operand, var)
        return _neg(inner) if node.op == '-' else inner
    if isinstance(node, BinaryOp):
        return _d_binary(node, var)
    if isinstance(node, Call):
        return _d_call(node, var)
    raise EvaluationError(f'Cannot differentiate {str(node)!r}')


def _d_binary(node, var):
    op, u, v = node.op, node.left, node.right
    if op in COMPARISON_OPS:
        raise EvaluationError(f'Cannot differentiate comparison {str(node)!r}')
    du = differentiate(u, var)
    dv = differentiate(v, var)
    if op == '+':
        return _add(du, dv)
    if op == '-':
        return _sub(du, dv)
    if op == '*':
        if not depends_on(u, var):
            return _mul(u, dv)
        if not depends_on(v, var):
            return _mul(du, v)
        return _add(_mul(du, v), _mul(u, dv))
    if op == '/':
        if not depends_on(v, var):
            return _div(du, v)
        return _div(_sub(_mul(du, v), _mul(u, dv)), _pow(v, _num(2)))
    # op == '^'
    if not depends_on(v, var):
        # power rule
        return _mul(_mul(v, _pow(u, _sub(v, _num(1)))), du)
    if not depends_on(u, var):
        if isinstance(u, Symbol) and u.name == 'e':
            return _mul(node, dv)
        return _mul(_mul(node, _call('log', u)), dv)
    # u^v = e^(v log u)
    return _mul(node, _add(_mul(dv, _call('log', u)), _div(_mul(v, du), u)))


def _d_call(node, var):
    name, args = node.name, node.args
    if name in _PIECEWISE_CONSTANT:
        return _num(0)
    if name == 'log' and len(args) == 2:
        return differentiate(_div(_call('log', args[0]), _call('log', args[1])), var)
    if name == 'log' and len(args) == 1:
        return _mul(_div(_num(1), args[0]), differentiate(args[0], var))
    if name == 'atan2' and len(args) == 2:
        y, x = args
        numerator = _sub(_mul(x, differentiate(y, var)), _mul(y, differentiate(x, var)))
        return _div(numerator, _add(_pow(x, _num(2)), _pow(y, _num(2))))
    rule = _CHAIN_RULES.get(name)
    if rule is None or len(args) != 1:
        raise EvaluationError(f'Derivative of {name}() is not supported')
    return _mul(rule(args[0]), differentiate(args[0], var))


def _d_integral(node, var):
    bounds = node.args[1:3]
    if any(depends_on(b, var) for b in bounds):
        raise EvaluationError('Cannot differentiate an integral with variable bounds')
    body = expression_arg(node.args[0])
    inner_var = 'x'
    if len(node.args) > 3 and isinstance(node.args[3], Text):
        inner_var = node.args[3].value.strip()
    if var != inner_var and var in free_symbols(body):
        raise EvaluationError('Cannot differentiate under the integral sign')
    return _num(0)


def derivative(expression, variable='x'):
    """Symbolic derivative of `expression` with respect to `variable`, as text."""
    return str(differentiate(parse_text(expression), variable))


# ── Simplification (via SymPy) ──────────────────────────────

class _Unrepresentable(Exception):
    pass


# real cube root; sympy.cbrt is the principal root, which is complex for x < 0
_CBRT = sympy.Function('cbrt')

_TO_SYMPY = {
    'sin': sympy.sin, 'cos': sympy.cos, 'tan': sympy.tan,
    'asin': sympy.asin, 'arcsin': sympy.asin,
    'acos': sympy.acos, 'arccos': sympy.acos,
    'atan': sympy.atan, 'arctan': sympy.atan,
    'atan2': sympy.atan2,
    'sinh': sympy.sinh, 'cosh': sympy.cosh, 'tanh': sympy.tanh,
    'sqrt': sympy.sqrt, 'cbrt': _CBRT, 'exp': sympy.exp,
    'log': sympy.log, 'ln': sympy.log,
    'log10': lambda u: sympy.log(u, 10), 'log2': lambda u: sympy.log(u, 2),
    'abs': sympy.Abs, 'sign': sympy.sign,
    'floor': sympy.floor, 'ceil': sympy.ceiling,
    'min': sympy.Min, 'max': sympy.Max,
}

_FROM_SYMPY = {
    'sin': 'sin', 'cos': 'cos', 'tan': 'tan',
    'asin': 'asin', 'acos': 'acos', 'atan': 'atan', 'atan2': 'atan2',
    'sinh': 'sinh', 'cosh': 'cosh', 'tanh': 'tanh',
    'exp': 'exp', 'log': 'log', 'Abs': 'abs', 'sign': 'sign',
    'floor': 'floor', 'ceiling': 'ceil', 'Min': 'min', 'Max': 'max',
    'cbrt': 'cbrt',
}

_BINARY_SYMPY = {
    '+': lambda a, b: a + b,
    '-': lambda a, b: a - b,
    '*': lambda a, b: a * b,
    '/': lambda a, b: a / b,
    '^': lambda a, b: a ** b,
}


def _to_sympy(node, opaque):
    if isinstance(node, Number):
        return exact(node.value)
    if isinstance(node, Symbol):
        if node.name == 'pi':
            return sympy.pi
        if node.name == 'e':
            return sympy.E
        return sympy.Symbol(node.name, real=True)
    if isinstance(node, UnaryOp):
        inner = _to_sympy(node.operand, opaque)
        return -inner if node.op == '-' else inner
    if isinstance(node, BinaryOp) and node.op in _BINARY_SYMPY:
        return _BINARY_SYMPY[node.op](_to_sympy(node.left, opaque),
                                      _to_sympy(node.right, opaque))
    if isinstance(node, Call) and node.name == 'derivative':
        inner = expression_arg(node.args[0])
        var = variable_arg(node.args[1], 'derivative') if len(node.args) > 1 else 'x'
        return _to_sympy(differentiate(inner, var), opaque)
    if isinstance(node, Call) and node.name in _TO_SYMPY:
        return _TO_SYMPY[node.name](*[_to_sympy(a, opaque) for a in node.args])
    # anything sympy has no counterpart for travels through as a placeholder
    placeholder = sympy.Dummy(real=True)
    opaque[placeholder] = node
    return placeholder


def _product(factors):
    result = factors[0]
    for factor in factors[1:]:
        result = BinaryOp('*', result, factor)
    return result


def _from_sympy(expr, opaque):
    if expr in opaque:
        return opaque[expr]
    if expr is sympy.nan:
        return Number(math.nan)
    if expr is sympy.oo or expr is sympy.zoo:
        return Number(math.inf)
    if expr is sympy.S.NegativeInfinity:
        return Number(-math.inf)
    if expr is sympy.pi:
        return Symbol('pi')
    if expr is sympy.E:
        return Symbol('e')
    if expr.is_Integer:
        return _num(int(expr))
    if expr.is_Rational:
        return BinaryOp('/', _num(expr.p), _num(expr.q))
    if expr.is_Float:
        return _num(float(expr))
    if expr.is_Symbol:
        return Symbol(expr.name)
    if expr.is_Add:
        return _from_sympy_add(expr, opaque)
    if expr.is_Mul:
        return _from_sympy_mul(expr, opaque)
    if expr.is_Pow:
        return _from_sympy_pow(expr, opaque)
    if expr.is_Function:
        name = _FROM_SYMPY.get(type(expr).__name__)
        if name is not None:
            return Call(name, tuple(_from_sympy(a, opaque) for a in expr.args))
    raise _Unrepresentable(str(expr))


def _from_sympy_add(expr, opaque):
    terms = expr.as_ordered_terms()
    result = _from_sympy(terms[0], opaque)
    for term in terms[1:]:
        if term.could_extract_minus_sign():
            result = BinaryOp('-', result, _from_sympy(-term, opaque))
        else:
            result = BinaryOp('+', result, _from_sympy(term, opaque))
    return result


def _from_sympy_mul(expr, opaque):
    coeff, rest = expr.as_coeff_Mul()
    if coeff.is_Rational and coeff.p == -1:
        # -x, -(x / 2)
        return UnaryOp('-', _from_sympy(-expr, opaque))
    numerator, denominator = [], []
    if coeff.is_Rational:
        if coeff.p != 1:
            numerator.append(_num(coeff.p))
        if coeff.q != 1:
            denominator.append(_num(coeff.q))
    elif coeff != 1:
        numerator.append(_from_sympy(coeff, opaque))
    for factor in rest.as_ordered_factors():
        base, exponent = factor.as_base_exp()
        if factor.is_Pow and exponent.is_number and exponent.is_negative:
            denominator.append(_from_sympy(base ** -exponent, opaque))
        else:
            numerator.append(_from_sympy(factor, opaque))
    top = _product(numerator) if numerator else _num(1)
    if not denominator:
        return top
    return BinaryOp('/', top, _product(denominator))


def _from_sympy_pow(expr, opaque):
    base, exponent = expr.as_base_exp()
    if exponent == sympy.S.Half:
        return Call('sqrt', (_from_sympy(base, opaque),))
    if exponent.is_number and exponent.is_negative:
        return BinaryOp('/', _num(1), _from_sympy(base ** -exponent, opaque))
    return BinaryOp('^', _from_sympy(base, opaque), _from_sympy(exponent, opaque))


def _simplify_node(node):
    if isinstance(node, Assignment):
        return Assignment(node.name, _simplify_node(node.value))
    if isinstance(node, BinaryOp) and node.op in COMPARISON_OPS:
        return BinaryOp(node.op, _simplify_node(node.left), _simplify_node(node.right))
    if isinstance(node, MatrixLiteral):
        return MatrixLiteral(tuple(tuple(_simplify_node(x) for x in row)
                                   for row in node.rows), node.vector)
    opaque = {}
    try:
        result = sympy.simplify(_to_sympy(node, opaque))
        return _from_sympy(result, opaque)
    except _Unrepresentable as exc:
        logger.debug('simplify: no calculator syntax for %s, keeping %s', exc, node)
        return node


def simplify(expression):
    """Algebraically simplify `expression` and return its canonical text.

    Passes repeat until the text stops changing, which makes the result a
    fixed point: simplify(simplify(e)) == simplify(e).
    """
    text = str(_simplify_node(parse_text(expression)))
    for _ in range(config.SIMPLIFY_MAX_PASSES):
        again = str(_simplify_node(parser.parse(text)))
        if again == text:
            break
        text = again
    else:
        logger.debug('simplify: no fixed point after %d passes for %r',
                     config.SIMPLIFY_MAX_PASSES, expression)
    return text


# ── Numerical integration ───────────────────────────────────

def _steps(steps):
    if steps is None:
        steps = config.DEFAULT_INTEGRATION_STEPS
    if isinstance(steps, float):
        if not steps.is_integer():
            raise EvaluationError(f'integrate() steps must be a whole number, got {steps}')
        steps = int(steps)
    if steps < 1 or steps > config.MAX_INTEGRATION_STEPS:
        raise EvaluationError(
            f'integrate() steps must be between 1 and {config.MAX_INTEGRATION_STEPS}, got {steps}')
    # Simpson's rule needs an even number of sub-intervals
    if steps % 2:
        steps += 1
    return steps


def _sample(f, t):
    value = f(t)
    if isinstance(value, Matrix):
        raise EvaluationError('integrate() needs a scalar-valued integrand')
    return value


def simpson(f, a, b, steps=None):
    """Composite Simpson's rule for f over [a, b]."""
    n = _steps(steps)
    h = (b - a) / n
    total = _sample(f, a) + _sample(f, b)
    for i in range(1, n):
        total += _sample(f, a + i * h) * (4 if i % 2 else 2)
    return h / 3 * total


def integrate(expression, a, b, steps=None, variable='x', scope=None):
    """Definite integral of `expression` over [a, b] in `variable`.

    The expression is compiled once; names other than `variable` resolve in
    `scope` when one is given.
    """
    compiled = evaluator.CompiledExpression(parse_text(expression))
    base = scope if scope is not None else {}

    def f(t):
        return compiled(ChainMap({variable: t}, base))
    return simpson(f, float(a), float(b), steps)
