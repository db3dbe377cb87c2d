"""
values.py — The engine's value types and the arithmetic defined on them.

A Value is either a float (IEEE double) or a Matrix.  Every operator and
matrix function in the engine dispatches on exactly these two kinds.

Scalar arithmetic follows IEEE 754 uniformly: division by zero yields
±inf / nan, domain violations yield nan, overflow yields ±inf.  Nothing on
the scalar path raises.
"""
import math
from dataclasses import dataclass
from fractions import Fraction

import sympy

from . import config
from .errors import EvaluationError


# ── Matrix ──────────────────────────────────────────────────

@dataclass(frozen=True)
class Matrix:
    """Immutable rectangular block of floats.

    `rows` is a tuple of equal-length tuples.  `vector` marks a 1-D value
    (stored as a single row) such as the literal [1, 2, 3].
    """
    rows: tuple
    vector: bool = False

    def __post_init__(self):
        if not self.rows or not self.rows[0]:
            raise EvaluationError('Empty matrix')
        width = len(self.rows[0])
        for i, row in enumerate(self.rows):
            if len(row) != width:
                raise EvaluationError(
                    f'Jagged matrix: row {i} has {len(row)} cols, expected {width}')
        if self.vector and len(self.rows) != 1:
            raise EvaluationError('A vector must be stored as a single row')

    @classmethod
    def from_nested(cls, data):
        """Build from a list of numbers (vector) or a list of lists (matrix)."""
        if isinstance(data, Matrix):
            return data
        items = list(data)
        if not items:
            raise EvaluationError('Empty matrix')
        if all(isinstance(item, (list, tuple)) for item in items):
            return cls(tuple(tuple(ieee_float(x) for x in row) for row in items))
        if any(isinstance(item, (list, tuple)) for item in items):
            raise EvaluationError('Cannot mix numbers and rows in one matrix')
        return cls((tuple(ieee_float(x) for x in items),), vector=True)

    @classmethod
    def column(cls, values):
        return cls(tuple((ieee_float(v),) for v in values))

    @property
    def shape(self):
        if self.vector:
            return (len(self.rows[0]),)
        return (len(self.rows), len(self.rows[0]))

    @property
    def nrows(self):
        return len(self.rows)

    @property
    def ncols(self):
        return len(self.rows[0])

    def elements(self):
        for row in self.rows:
            yield from row

    def map(self, fn):
        return Matrix(tuple(tuple(fn(x) for x in row) for row in self.rows), self.vector)

    def to_list(self):
        if self.vector:
            return list(self.rows[0])
        return [list(row) for row in self.rows]

    def is_square(self):
        return not self.vector and self.nrows == self.ncols

    def describe(self):
        if self.vector:
            return f'vector of length {self.ncols}'
        return f'{self.nrows}×{self.ncols} matrix'


def is_matrix(value):
    return isinstance(value, Matrix)


def to_value(obj):
    """Coerce a Python object supplied by a caller into an engine Value."""
    if isinstance(obj, Matrix):
        return obj
    if isinstance(obj, bool):
        return 1.0 if obj else 0.0
    if isinstance(obj, (int, float)):
        return ieee_float(obj)
    if isinstance(obj, (list, tuple)):
        return Matrix.from_nested(obj)
    # numpy scalars, sympy Floats and the like
    try:
        return ieee_float(obj)
    except (TypeError, ValueError):
        raise EvaluationError(f'Unsupported value of type {type(obj).__name__}')


def require_scalar(value, what):
    if isinstance(value, Matrix):
        raise EvaluationError(f'{what} expects a scalar, got a {value.describe()}')
    return value


def require_matrix(value, what):
    if not isinstance(value, Matrix):
        raise EvaluationError(f'{what} expects a matrix or vector, got a scalar')
    return value


# ── IEEE scalar helpers ─────────────────────────────────────

def _is_odd_integer(x):
    return math.isfinite(x) and x == int(x) and int(x) % 2 == 1


def ieee_div(a, b):
    try:
        return a / b
    except ZeroDivisionError:
        if a == 0 or math.isnan(a):
            return math.nan
        return math.copysign(math.inf, a) * math.copysign(1.0, b)


def ieee_pow(a, b):
    try:
        return math.pow(a, b)
    except ValueError:
        if a == 0 and b < 0:
            return math.copysign(math.inf, a) if _is_odd_integer(b) else math.inf
        return math.nan
    except OverflowError:
        if a < 0 and _is_odd_integer(b):
            return -math.inf
        return math.inf


def ieee_call(fn, *args):
    """Call a math-module function, mapping its exceptions onto IEEE results."""
    try:
        return float(fn(*args))
    except ValueError:
        return math.nan
    except OverflowError:
        return math.inf


def ieee_sum(terms):
    """Accurate sum of floats that overflows to ±inf instead of raising."""
    terms = list(terms)
    try:
        return math.fsum(terms)
    except OverflowError:
        # plain float addition saturates at ±inf
        return sum(terms)
    except ValueError:
        # inf + -inf
        return math.nan


def ieee_float(number):
    """float() of an int or sympy number, saturating to ±inf."""
    try:
        return float(number)
    except OverflowError:
        return math.inf if number > 0 else -math.inf


def exact(x):
    """Convert a float to the sympy number it was written as (0.1 -> 1/10)."""
    if math.isnan(x):
        return sympy.nan
    if math.isinf(x):
        return sympy.oo if x > 0 else -sympy.oo
    frac = Fraction(repr(x))
    return sympy.Rational(frac.numerator, frac.denominator)


# ── Elementwise arithmetic ──────────────────────────────────

def _broadcast(op, a, b, symbol):
    if isinstance(a, Matrix) and isinstance(b, Matrix):
        if a.shape != b.shape:
            raise EvaluationError(
                f'Dimension mismatch: {a.describe()} {symbol} {b.describe()}')
        return Matrix(tuple(tuple(op(x, y) for x, y in zip(ra, rb))
                            for ra, rb in zip(a.rows, b.rows)), a.vector)
    if isinstance(a, Matrix):
        return a.map(lambda x: op(x, b))
    if isinstance(b, Matrix):
        return b.map(lambda y: op(a, y))
    return op(a, b)


def add(a, b):
    return _broadcast(lambda x, y: x + y, a, b, '+')


def subtract(a, b):
    return _broadcast(lambda x, y: x - y, a, b, '-')


def negate(a):
    if isinstance(a, Matrix):
        return a.map(lambda x: -x)
    return -a


def multiply(a, b):
    if isinstance(a, Matrix) and isinstance(b, Matrix):
        return matmul(a, b)
    return _broadcast(lambda x, y: x * y, a, b, '*')


def divide(a, b):
    if isinstance(b, Matrix):
        # a / B == a * inv(B)
        return multiply(a, inverse(b))
    return _broadcast(ieee_div, a, b, '/')


def power(a, b):
    if isinstance(b, Matrix):
        raise EvaluationError('Exponent must be a scalar')
    if isinstance(a, Matrix):
        return matrix_power(a, b)
    return ieee_pow(a, b)


def compare(op, a, b):
    if isinstance(a, Matrix) or isinstance(b, Matrix):
        raise EvaluationError(f'Operator {op} is not defined for matrices')
    return 1.0 if _COMPARATORS[op](a, b) else 0.0


_COMPARATORS = {
    '<': lambda a, b: a < b,
    '<=': lambda a, b: a <= b,
    '>': lambda a, b: a > b,
    '>=': lambda a, b: a >= b,
    '==': lambda a, b: a == b,
    '!=': lambda a, b: a != b,
}


# ── Linear algebra ──────────────────────────────────────────

def matmul(a, b):
    """Matrix product; a vector acts as a row on the left, a column on the right."""
    left = a.rows
    right = b.rows if not b.vector else tuple((x,) for x in b.rows[0])
    if len(left[0]) != len(right):
        raise EvaluationError(
            f'Dimension mismatch: {a.describe()} * {b.describe()}')
    product = tuple(
        tuple(ieee_sum(x * y for x, y in zip(row, col)) for col in zip(*right))
        for row in left)
    if a.vector and b.vector:
        return product[0][0]
    if b.vector:
        return Matrix((tuple(r[0] for r in product),), vector=True)
    return Matrix(product, vector=a.vector)


def identity(n):
    return Matrix(tuple(tuple(1.0 if i == j else 0.0 for j in range(n)) for i in range(n)))


def matrix_power(m, exponent):
    if not m.is_square():
        raise EvaluationError(f'Matrix power requires a square matrix, got a {m.describe()}')
    if not math.isfinite(exponent) or exponent != int(exponent) or exponent < 0:
        raise EvaluationError('Matrix power requires a non-negative integer exponent')
    n = int(exponent)
    if n > config.MAX_MATRIX_POWER:
        raise EvaluationError(f'Matrix exponent {n} exceeds {config.MAX_MATRIX_POWER}')
    result = identity(m.nrows)
    base = m
    while n:
        if n & 1:
            result = matmul(result, base)
        base = matmul(base, base)
        n >>= 1
    return result


def transpose(m):
    if m.vector:
        return m
    return Matrix(tuple(zip(*m.rows)))


def _is_finite(m):
    return all(math.isfinite(x) for x in m.elements())


def _to_sympy(m):
    return sympy.Matrix([[exact(x) for x in row] for row in m.rows])


def determinant(m):
    if not m.is_square():
        raise EvaluationError(f'det() requires a square matrix, got a {m.describe()}')
    if not _is_finite(m):
        return math.nan
    return ieee_float(_to_sympy(m).det())


def inverse(m):
    if not m.is_square():
        raise EvaluationError(f'inv() requires a square matrix, got a {m.describe()}')
    if not _is_finite(m):
        raise EvaluationError('inv() requires finite matrix entries')
    try:
        inv = _to_sympy(m).inv()
    except ValueError as exc:
        raise EvaluationError(f'Matrix is singular or non-invertible: {exc}')
    return Matrix(tuple(tuple(ieee_float(x) for x in row) for row in inv.tolist()))


def trace(m):
    if not m.is_square():
        raise EvaluationError(f'trace() requires a square matrix, got a {m.describe()}')
    return ieee_sum(m.rows[i][i] for i in range(m.nrows))


def _as_flat_vector(m, what):
    if m.vector or m.nrows == 1:
        return m.rows[0]
    if m.ncols == 1:
        return tuple(row[0] for row in m.rows)
    raise EvaluationError(f'{what} expects a vector, got a {m.describe()}')


def dot(a, b):
    u = _as_flat_vector(a, 'dot()')
    v = _as_flat_vector(b, 'dot()')
    if len(u) != len(v):
        raise EvaluationError(f'dot() needs vectors of equal length, got {len(u)} and {len(v)}')
    return ieee_sum(x * y for x, y in zip(u, v))


def cross(a, b):
    u = _as_flat_vector(a, 'cross()')
    v = _as_flat_vector(b, 'cross()')
    if len(u) != 3 or len(v) != 3:
        raise EvaluationError('cross() is only defined for vectors of length 3')
    return Matrix(((u[1] * v[2] - u[2] * v[1],
                    u[2] * v[0] - u[0] * v[2],
                    u[0] * v[1] - u[1] * v[0]),), vector=True)


def norm(value, p=2.0):
    if not isinstance(value, Matrix):
        return abs(value)
    if value.vector or value.nrows == 1 or value.ncols == 1:
        xs = [abs(x) for x in _as_flat_vector(value, 'norm()')]
        if math.isinf(p):
            return max(xs)
        if p <= 0:
            raise EvaluationError('norm() order must be positive')
        if p == 1:
            return ieee_sum(xs)
        return ieee_pow(ieee_sum(ieee_pow(x, p) for x in xs), 1.0 / p)
    if p != 2:
        raise EvaluationError('Only the Frobenius norm is supported for matrices')
    return math.sqrt(ieee_sum(x * x for x in value.elements()))
