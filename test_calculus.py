"""
test_calculus.py — Symbolic derivatives, simplification and numerical integration.
Run:  pytest test_calculus.py
"""
import logging
import math

import pytest

from mathengine import (
    EvaluationError, clear_scope, derivative, evaluate_math, integrate,
    set_variable, simplify,
)
from mathengine.calculus import simpson


@pytest.fixture(autouse=True)
def fresh_scope():
    clear_scope()
    yield
    clear_scope()


# ══════════════════════════════════════════════════════════════
# 1. Derivatives
# ══════════════════════════════════════════════════════════════

@pytest.mark.parametrize('expression, expected', [
    ('x^2', '2 * x'),
    ('sin(x)', 'cos(x)'),
    ('x^3', '3 * x ^ 2'),
    ('ln(x)', '1 / x'),
    ('log(x)', '1 / x'),
    ('e^x', 'e ^ x'),
    ('5', '0'),
    ('x', '1'),
    ('-x', '-1'),
])
def test_derivative_text(expression, expected):
    assert derivative(expression, 'x') == expected


def test_derivative_respects_variable():
    assert derivative('a*x^2', 'a') == 'x ^ 2'
    assert derivative('y^2 + x', 'y') == '2 * y'


def _slope(expression, at):
    return evaluate_math(derivative(expression, 'x'), {'x': at})


@pytest.mark.parametrize('expression, at, expected', [
    ('x^3', 2, 12),
    ('1/x', 2, -0.25),
    ('sin(2*x)', 0, 2),
    ('tan(x)', 0, 1),
    ('sqrt(x)', 4, 0.25),
    ('2^x', 1, 2 * math.log(2)),
    ('x^x', 1, 1),
    ('(x+1)*(x-1)', 3, 6),
    ('exp(x^2)', 1, 2 * math.e),
    ('atan(x)', 1, 0.5),
    ('log(x, 2)', 2, 1 / (2 * math.log(2))),
])
def test_derivative_values(expression, at, expected):
    assert _slope(expression, at) == pytest.approx(expected)


def test_derivative_of_piecewise_constant_is_zero():
    assert derivative('floor(x)') == '0'


def test_unsupported_derivative_raises():
    with pytest.raises(EvaluationError):
        derivative('max(x, 1)', 'x')


# ══════════════════════════════════════════════════════════════
# 2. Derivative Notation Inside Expressions
# ══════════════════════════════════════════════════════════════

def test_derivative_call_evaluates_at_scope():
    assert evaluate_math("derivative('x^3', 'x')", {'x': 2}) == 12


def test_leibniz_notation():
    assert evaluate_math('d/dx(x^3)', {'x': 2}) == 12
    assert evaluate_math('(d)/(dx)(x^2)', {'x': 5}) == 10
    assert evaluate_math(r'\frac{d}{dx}\left(x^2\right)', {'x': 4}) == 8


def test_leibniz_with_nested_parentheses():
    assert evaluate_math('d/dx((x+1)*(x-1))', {'x': 3}) == 6


def test_derivative_of_derivative():
    assert evaluate_math('d/dx(d/dx(x^3))', {'x': 2}) == 12


# ══════════════════════════════════════════════════════════════
# 3. Simplification
# ══════════════════════════════════════════════════════════════

@pytest.mark.parametrize('expression, expected', [
    ('2x + 3x', '5 * x'),
    ('x * x', 'x ^ 2'),
    ('x + 0', 'x'),
    ('1 * x', 'x'),
    ('0 * x', '0'),
    ('sin(x)^2 + cos(x)^2', '1'),
    ('x / 2 + x / 3', '5 * x / 6'),
    ('1/2', '1 / 2'),
    ('', '0'),
])
def test_simplify(expression, expected):
    assert simplify(expression) == expected


def test_simplify_keeps_comparisons():
    assert simplify('x + x > 2') == '2 * x > 2'


def test_simplify_matrix_elementwise():
    assert simplify('[[x + x, 1], [0, y * y]]') == '[[2 * x, 1], [0, y ^ 2]]'


def test_simplify_passes_unknown_calls_through():
    assert simplify('det([[1,2],[3,4]]) + 0') == 'det([[1, 2], [3, 4]])'


@pytest.mark.parametrize('expression', [
    '2x + 3x',
    'x * x',
    '(x + 1)^2 - 1',
    'sin(x)^2 + cos(x)^2',
    'x / 2 + x / 3',
    'a*b + b*a',
])
def test_simplify_is_idempotent(expression):
    once = simplify(expression)
    assert simplify(once) == once


def test_simplified_form_evaluates_the_same():
    original = '(x + 1)^2 - 1'
    simplified = simplify(original)
    for x in (-2, 0, 1.5, 3):
        assert evaluate_math(simplified, {'x': x}) == pytest.approx(
            evaluate_math(original, {'x': x}))


def test_simplify_keeps_the_real_cube_root():
    assert simplify('cbrt(x)') == 'cbrt(x)'
    assert simplify('cbrt(x) + cbrt(x)') == '2 * cbrt(x)'
    simplified = simplify('cbrt(x) * 1')
    assert evaluate_math(simplified, {'x': -8}) == pytest.approx(-2)


def test_simplify_logs_when_passes_run_out(monkeypatch, caplog):
    monkeypatch.setattr('mathengine.config.SIMPLIFY_MAX_PASSES', 0)
    with caplog.at_level(logging.DEBUG, logger='mathengine.calculus'):
        assert simplify('2x + 3x') == '5 * x'
    assert 'no fixed point' in caplog.text


# ══════════════════════════════════════════════════════════════
# 4. Integration
# ══════════════════════════════════════════════════════════════

def test_integrate_basic():
    assert integrate('x', 0, 1) == pytest.approx(0.5, abs=1e-9)
    assert integrate('sin(x)', 0, math.pi) == pytest.approx(2, abs=1e-4)


def test_integrate_other_variable():
    assert integrate('t^2', 0, 3, variable='t') == pytest.approx(9)


def test_integrate_uses_session_variables():
    set_variable('k', 2)
    assert integrate('k*x', 0, 1) == pytest.approx(1)


def test_odd_steps_round_up_to_even():
    assert integrate('x^4', 0, 1, steps=3) == integrate('x^4', 0, 1, steps=4)


def test_simpson_is_exact_for_cubics():
    assert simpson(lambda t: t ** 3, 0.0, 2.0, 2) == pytest.approx(4)


@pytest.mark.parametrize('steps', [0, -4, 10 ** 9])
def test_steps_out_of_range(steps):
    with pytest.raises(EvaluationError):
        integrate('x', 0, 1, steps=steps)


def test_integral_notation():
    assert evaluate_math('int_{0}^{3} (x^2) dx') == pytest.approx(9)
    assert evaluate_math(r'\int_0^1 x dx') == pytest.approx(0.5)
    assert evaluate_math('int_0^2 (t) dt') == pytest.approx(2)
    assert evaluate_math('int_0^1 ((x+1)*(x-1)) dx') == pytest.approx(-2 / 3)


def test_integrate_call_sees_scope():
    set_variable('k', 3)
    assert evaluate_math("integrate('k * x', 0, 2)") == pytest.approx(6)


def test_integrate_call_with_variable_and_steps():
    assert evaluate_math("integrate('t', 0, 2, 't', 10)") == pytest.approx(2)


def test_integrand_must_be_scalar():
    with pytest.raises(EvaluationError):
        integrate('[x, 1]', 0, 1)
