"""
builtins.py — Function table for the expression language.

Functions are looked up by name when a call is evaluated, not when it is
parsed; the parser only consults the arity bounds recorded here.
`derivative` and `integrate` are special forms: they receive unevaluated
argument nodes and are implemented by the evaluator.
"""
import math
from dataclasses import dataclass

from . import values
from .errors import EvaluationError
from .values import Matrix, ieee_call, ieee_div, ieee_pow, require_matrix, require_scalar


@dataclass(frozen=True)
class Builtin:
    name: str
    min_args: int
    max_args: int  # None means variadic
    fn: object = None  # None for special forms

    @property
    def special(self):
        return self.fn is None

    def check_arity(self, count):
        """Return an error message when `count` arguments do not fit, else None."""
        if count < self.min_args or (self.max_args is not None and count > self.max_args):
            if self.max_args is None:
                expected = f'at least {self.min_args}'
            elif self.min_args == self.max_args:
                expected = str(self.min_args)
            else:
                expected = f'{self.min_args} to {self.max_args}'
            return f'{self.name}() takes {expected} argument(s), got {count}'
        return None


# ── Scalar functions ────────────────────────────────────────

def _scalar(name, fn):
    def apply(x):
        return ieee_call(fn, require_scalar(x, f'{name}()'))
    return apply


def _log_scalar(x):
    if x == 0:
        return -math.inf
    return ieee_call(math.log, x)


def _log(x, base=None):
    x = require_scalar(x, 'log()')
    if base is None:
        return _log_scalar(x)
    return ieee_div(_log_scalar(x), _log_scalar(require_scalar(base, 'log()')))


def _log_base(base):
    def apply(x):
        return ieee_div(_log_scalar(require_scalar(x, f'log{base}()')), math.log(base))
    return apply


def _cbrt(x):
    x = require_scalar(x, 'cbrt()')
    return math.copysign(abs(x) ** (1.0 / 3.0), x)


def _abs(x):
    if isinstance(x, Matrix):
        return x.map(abs)
    return abs(x)


def _sign(x):
    x = require_scalar(x, 'sign()')
    if math.isnan(x):
        return math.nan
    return float((x > 0) - (x < 0))


def _rounding(name, fn):
    def apply(x):
        x = require_scalar(x, f'{name}()')
        if not math.isfinite(x):
            return x
        return float(fn(x))
    return apply


def _round(x, digits=0.0):
    x = require_scalar(x, 'round()')
    digits = require_scalar(digits, 'round()')
    if not math.isfinite(digits) or digits != int(digits):
        raise EvaluationError('round() digits must be an integer')
    if not math.isfinite(x):
        return x
    scale = ieee_pow(10.0, digits)
    if scale == 0:
        return math.copysign(0.0, x)
    scaled = abs(x) * scale
    if not math.isfinite(scaled):
        # already exact at this many digits
        return x
    # half away from zero
    return math.copysign(math.floor(scaled + 0.5), x) / scale


def _extremum(name, pick):
    def apply(*args):
        items = []
        for arg in args:
            if isinstance(arg, Matrix):
                items.extend(arg.elements())
            else:
                items.append(arg)
        if any(math.isnan(x) for x in items):
            return math.nan
        return pick(items)
    apply.__name__ = name
    return apply


# ── Matrix functions ────────────────────────────────────────

def _transpose(m):
    return values.transpose(require_matrix(m, 'transpose()'))


def _inv(m):
    if isinstance(m, Matrix):
        return values.inverse(m)
    return ieee_div(1.0, m)


def _det(m):
    if isinstance(m, Matrix):
        return values.determinant(m)
    return m


def _trace(m):
    if isinstance(m, Matrix):
        return values.trace(m)
    return m


def _dot(a, b):
    return values.dot(require_matrix(a, 'dot()'), require_matrix(b, 'dot()'))


def _cross(a, b):
    return values.cross(require_matrix(a, 'cross()'), require_matrix(b, 'cross()'))


def _norm(x, p=2.0):
    return values.norm(x, require_scalar(p, 'norm()'))


# ── Table ───────────────────────────────────────────────────

def _unary(name, fn):
    return Builtin(name, 1, 1, fn)


BUILTINS = {b.name: b for b in (
    _unary('sin', _scalar('sin', math.sin)),
    _unary('cos', _scalar('cos', math.cos)),
    _unary('tan', _scalar('tan', math.tan)),
    _unary('asin', _scalar('asin', math.asin)),
    _unary('acos', _scalar('acos', math.acos)),
    _unary('atan', _scalar('atan', math.atan)),
    _unary('arcsin', _scalar('arcsin', math.asin)),
    _unary('arccos', _scalar('arccos', math.acos)),
    _unary('arctan', _scalar('arctan', math.atan)),
    Builtin('atan2', 2, 2, lambda y, x: ieee_call(
        math.atan2, require_scalar(y, 'atan2()'), require_scalar(x, 'atan2()'))),
    _unary('sinh', _scalar('sinh', math.sinh)),
    _unary('cosh', _scalar('cosh', math.cosh)),
    _unary('tanh', _scalar('tanh', math.tanh)),
    _unary('sqrt', _scalar('sqrt', math.sqrt)),
    _unary('cbrt', _cbrt),
    _unary('exp', _scalar('exp', math.exp)),
    Builtin('log', 1, 2, _log),
    _unary('ln', lambda x: _log(x)),
    _unary('log10', _log_base(10)),
    _unary('log2', _log_base(2)),
    _unary('abs', _abs),
    _unary('sign', _sign),
    _unary('floor', _rounding('floor', math.floor)),
    _unary('ceil', _rounding('ceil', math.ceil)),
    Builtin('round', 1, 2, _round),
    Builtin('min', 1, None, _extremum('min', min)),
    Builtin('max', 1, None, _extremum('max', max)),
    _unary('transpose', _transpose),
    _unary('inv', _inv),
    _unary('det', _det),
    _unary('trace', _trace),
    Builtin('dot', 2, 2, _dot),
    Builtin('cross', 2, 2, _cross),
    Builtin('norm', 1, 2, _norm),
    Builtin('derivative', 1, 2),
    Builtin('integrate', 3, 5),
)}


CONSTANTS = {
    'pi': math.pi,
    'e': math.e,
    'Infinity': math.inf,
    'NaN': math.nan,
}


def lookup(name):
    return BUILTINS.get(name)
