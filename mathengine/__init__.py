"""
mathengine — Expression engine for the graphing / scientific calculator.

    >>> from mathengine import evaluate_math, format_result
    >>> format_result(evaluate_math(r'\\frac{1}{2} + 2 × 3'))
    '6.5'
"""
from .calculus import derivative, simplify
from .errors import EvaluationError, MathError, NormalizationAmbiguity, ParseError
from .evaluator import CompiledExpression
from .formatter import format_result
from .normalizer import normalize
from .parser import parse
from .scope import Scope
from .session import (
    MathSession, clear_scope, compile_expression, compile_math, default_session,
    evaluate_math, get_scope, integrate, set_variable,
)
from .values import Matrix

__version__ = '0.1.0'

__all__ = [
    'CompiledExpression', 'EvaluationError', 'MathError', 'MathSession', 'Matrix',
    'NormalizationAmbiguity', 'ParseError', 'Scope', 'clear_scope',
    'compile_expression', 'compile_math', 'default_session', 'derivative',
    'evaluate_math', 'format_result', 'get_scope', 'integrate', 'normalize',
    'parse', 'set_variable', 'simplify',
]
