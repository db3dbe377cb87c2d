"""
errors.py — Exception hierarchy for the math engine.

Everything the engine raises on bad input derives from MathError, so edge
adapters (compile_math, the web service) can catch one type.
"""


class MathError(Exception):
    """Base class for all math engine failures."""


class ParseError(MathError):
    """Malformed syntax: bad token, unbalanced grouping, wrong arity."""

    def __init__(self, message, position=None):
        if position is not None:
            message = f'{message} (at position {position})'
        super().__init__(message)
        self.position = position


class NormalizationAmbiguity(ParseError):
    """A notation rewrite matched its prefix but its body could not be delimited."""


class EvaluationError(MathError):
    """Unbound name, bad operand kind, or mismatched matrix dimensions."""
