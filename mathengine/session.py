"""
session.py — Calculator sessions and the module-level convenience API.

A MathSession owns one Scope and a short result history.  Servers handling
several users create one session per user; single-user embeddings can use
the module-level functions, which share a default session.
"""
import logging
from collections import ChainMap, deque

from . import calculus, config
from .errors import MathError
from .evaluator import CompiledExpression
from .formatter import format_result
from .scope import Scope

logger = logging.getLogger(__name__)


# failures the zero-fallback callables absorb
_PLOT_FAILURES = (MathError, ArithmeticError, RecursionError)


def _zero(overrides=None):
    return 0.0


class MathSession:
    """Evaluation context with its own variables."""

    def __init__(self, scope=None, history_size=None):
        self.scope = scope if scope is not None else Scope()
        size = config.HISTORY_SIZE if history_size is None else history_size
        self._history = deque(maxlen=size)

    # ── Evaluation ──────────────────────────────────────────

    def evaluate(self, expression, scope=None):
        """Normalize, parse and evaluate `expression`.

        `scope`, when given, replaces the session scope for this call.
        Blank input evaluates to 0.  Errors propagate.
        """
        if expression is None or not expression.strip():
            return 0.0
        try:
            compiled = CompiledExpression(calculus.parse_text(expression))
            result = compiled(self.scope if scope is None else scope)
        except MathError as exc:
            logger.debug('Evaluation failed for %r: %s', expression, exc)
            raise
        self._history.appendleft((expression, result))
        return result

    def compile_expression(self, expression):
        """Compile `expression` into a callable; raises ParseError on bad syntax.

        The callable takes an optional mapping of overrides (e.g. {'x': 1.5})
        that is consulted before the session scope.
        """
        compiled = CompiledExpression(calculus.parse_text(expression or ''))
        session_scope = self.scope

        def run(overrides=None):
            if overrides:
                return compiled(ChainMap(overrides, session_scope))
            return compiled(session_scope)
        run.expression = compiled
        return run

    def compile(self, expression):
        """Like compile_expression, but never raises.

        Invalid input, and any failure while the callable runs, yields 0 so a
        plotting loop can keep drawing the other equations.
        """
        if expression is None or not expression.strip():
            return _zero
        try:
            run = self.compile_expression(expression)
        except _PLOT_FAILURES as exc:
            logger.debug('Compile failed for %r: %s', expression, exc)
            return _zero

        def safe(overrides=None):
            try:
                return run(overrides)
            except _PLOT_FAILURES as exc:
                logger.debug('Plot evaluation failed for %r: %s', expression, exc)
                return 0.0
        safe.expression = run.expression
        return safe

    # ── Scope ───────────────────────────────────────────────

    def set_variable(self, name, value):
        self.scope.set_variable(name, value)

    def get_scope(self):
        return self.scope

    def clear_scope(self):
        self.scope.clear()

    # ── Calculus ────────────────────────────────────────────

    def derivative(self, expression, variable='x'):
        return calculus.derivative(expression, variable)

    def simplify(self, expression):
        return calculus.simplify(expression)

    def integrate(self, expression, a, b, steps=None, variable='x'):
        return calculus.integrate(expression, a, b, steps, variable, scope=self.scope)

    # ── History ─────────────────────────────────────────────

    def history(self):
        """Recent (expression, formatted result) pairs, newest first."""
        return [(expr, format_result(value)) for expr, value in self._history]

    def clear_history(self):
        self._history.clear()


# ── Default session ─────────────────────────────────────────

_default_session = MathSession()


def default_session():
    return _default_session


def evaluate_math(expression, scope=None):
    return _default_session.evaluate(expression, scope)


def compile_math(expression):
    return _default_session.compile(expression)


def compile_expression(expression):
    return _default_session.compile_expression(expression)


def set_variable(name, value):
    _default_session.set_variable(name, value)


def get_scope():
    return _default_session.get_scope()


def clear_scope():
    _default_session.clear_scope()


def integrate(expression, a, b, steps=None, variable='x'):
    return _default_session.integrate(expression, a, b, steps, variable)
