"""
formatter.py — Display strings for results.
"""
import math

from . import config
from .values import Matrix


def format_scalar(value, precision=None):
    """Format a float with `precision` significant digits, trailing zeros trimmed."""
    digits = config.RESULT_PRECISION if precision is None else precision
    value = float(value)
    if math.isnan(value):
        return 'NaN'
    if math.isinf(value):
        return 'Infinity' if value > 0 else '-Infinity'
    text = f'{value:.{digits}g}'
    if text == '-0':
        return '0'
    return text


def format_result(result, precision=None):
    """Render an engine value (float or Matrix) as a deterministic string."""
    if result is None:
        return '0'
    if isinstance(result, Matrix):
        rows = ['[' + ', '.join(format_scalar(x, precision) for x in row) + ']'
                for row in result.rows]
        return rows[0] if result.vector else '[' + ', '.join(rows) + ']'
    if isinstance(result, (list, tuple)):
        return format_result(Matrix.from_nested(result), precision)
    if isinstance(result, (bool, int, float)):
        return format_scalar(result, precision)
    return str(result)
