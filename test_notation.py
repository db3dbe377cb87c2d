"""
test_notation.py — Input normalization and parsing.
Run:  pytest test_notation.py
"""
import dataclasses

import pytest

from mathengine import NormalizationAmbiguity, ParseError, evaluate_math, normalize, parse
from mathengine.nodes import Assignment, BinaryOp, Number, Symbol, Text, UnaryOp


# ══════════════════════════════════════════════════════════════
# 1. Operator Glyphs & LaTeX Commands
# ══════════════════════════════════════════════════════════════

@pytest.mark.parametrize('raw, expected', [
    ('4 × 5', '4 * 5'),
    ('20 ÷ 4', '20 / 4'),
    ('3 · 2', '3 * 2'),
    ('5 − 2', '5 - 2'),
    ('cos(π)', 'cos(pi)'),
    ('2**3', '2^3'),
    (r'2 \cdot 3', '2 * 3'),
    (r'2 \times 3', '2 * 3'),
    (r'6 \div 3', '6 / 3'),
    ('x ≤ 2', 'x <= 2'),
    (r'\sin(x)', 'sin(x)'),
    (r'\left(1 + 2\right)', '(1 + 2)'),
    (r'\left|-3\right|', 'abs(-3)'),
    (r'\operatorname{det}(A)', 'det(A)'),
    (r'\sqrt{16}', 'sqrt(16)'),
    (r'\frac{1}{2}', r'\frac{1}{2}'),
])
def test_normalize_glyphs_and_commands(raw, expected):
    assert normalize(raw) == expected


def test_trailing_equals_key_is_dropped():
    assert normalize('2+2=') == '2+2'
    assert normalize('a == b') == 'a == b'


def test_blank_input():
    assert normalize('') == ''
    assert normalize(None) == ''
    assert normalize('   ') == ''


def test_nth_root():
    assert normalize(r'\sqrt[3]{8}') == '((8)^(1/(3)))'
    assert evaluate_math(r'\sqrt[3]{8}') == pytest.approx(2)


# ══════════════════════════════════════════════════════════════
# 2. Calculus Notation
# ══════════════════════════════════════════════════════════════

@pytest.mark.parametrize('raw, expected', [
    ('d/dx(x^2)', "derivative('x^2', 'x')"),
    ('(d)/(dx)(x^2)', "derivative('x^2', 'x')"),
    (r'\frac{d}{dt}(t^2)', "derivative('t^2', 't')"),
    ('d/dx(sin(x)*(x+1))', "derivative('sin(x)*(x+1)', 'x')"),
])
def test_normalize_derivatives(raw, expected):
    assert normalize(raw) == expected


@pytest.mark.parametrize('raw, expected', [
    ('int_0^1(x^2) dx', "integrate('x^2', 0, 1)"),
    ('int_{-1}^{2.5}(x) dx', "integrate('x', -1, 2.5)"),
    ('int_0^1(y) dy', "integrate('y', 0, 1, 'y')"),
    ('int_0^pi sin(x) dx', "integrate('sin(x)', 0, pi)"),
])
def test_normalize_integrals(raw, expected):
    assert normalize(raw) == expected


@pytest.mark.parametrize('raw', [
    'd/dx(x^2',
    'int_0^1(x dx',
    'int_0^1(x^2)',
    r'\sqrt{4',
])
def test_undelimited_bodies_are_ambiguous(raw):
    with pytest.raises(NormalizationAmbiguity):
        normalize(raw)


# ══════════════════════════════════════════════════════════════
# 3. Matrix Notation
# ══════════════════════════════════════════════════════════════

@pytest.mark.parametrize('raw, expected', [
    (r'\begin{pmatrix} 1 & 2 \\ 3 & 4 \end{pmatrix}', '[[1, 2], [3, 4]]'),
    (r'\begin{bmatrix}1&2\\3&4\end{bmatrix}', '[[1, 2], [3, 4]]'),
    (r'\begin{vmatrix} 1 & 2 \\ 3 & 4 \end{vmatrix}', 'det([[1, 2], [3, 4]])'),
    (r'\begin{array}{cc} 1 & 2 \\ 3 & 4 \end{array}', '[[1, 2], [3, 4]]'),
    ('((1,2),(3,4))', '[[1, 2], [3, 4]]'),
    ('2*((1,2),(3,4))', '2*[[1, 2], [3, 4]]'),
])
def test_normalize_matrices(raw, expected):
    assert normalize(raw) == expected


@pytest.mark.parametrize('raw', ['sin((x))', '((1+2))', '(1, 2)', 'max(1, 2)'])
def test_plain_parentheses_are_not_matrices(raw):
    assert normalize(raw) == raw


# ══════════════════════════════════════════════════════════════
# 4. Parser
# ══════════════════════════════════════════════════════════════

def test_power_is_right_associative():
    assert parse('2^3^2') == BinaryOp('^', Number(2.0), BinaryOp('^', Number(3.0), Number(2.0)))


def test_unary_minus_binds_looser_than_power():
    assert parse('-2^2') == UnaryOp('-', BinaryOp('^', Number(2.0), Number(2.0)))


def test_implicit_product():
    assert parse('2x') == BinaryOp('*', Number(2.0), Symbol('x'))


def test_blank_parses_to_zero():
    assert parse('') == Number(0.0)


def test_string_literal():
    assert parse("'x^2'") == Text('x^2')


def test_assignment_statement():
    node = parse('a = 1 + 2')
    assert isinstance(node, Assignment)
    assert node.name == 'a'
    assert str(node) == 'a = 1 + 2'


@pytest.mark.parametrize('source', ['1 + 2 * 3', '(1 + 2) * 3', '2 ^ (x + 1)', 'cos(x) / 2'])
def test_canonical_printing(source):
    assert str(parse(source)) == source


@pytest.mark.parametrize('source', [
    '(1', '1)', '[]', '[[1, 2], [3]]', '[[1, 2], 3]', 'sin(1, 2)',
    'derivative()', '2 $ 3', r'\alpha + 1', '1 = 2', 'x + y = 3',
])
def test_malformed_input(source):
    with pytest.raises(ParseError):
        parse(source)


def test_unknown_command_is_named():
    with pytest.raises(ParseError, match='alpha'):
        parse(r'\alpha')


def test_nesting_limit():
    with pytest.raises(ParseError):
        parse('(' * 500 + '1' + ')' * 500)


def test_nodes_are_immutable():
    node = parse('1 + 2')
    with pytest.raises(dataclasses.FrozenInstanceError):
        node.op = '-'
