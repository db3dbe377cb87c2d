"""
parser.py — Tokenizer and recursive-descent parser for canonical syntax.

Grammar, lowest precedence first:

    statement   := NAME '=' expression | expression
    expression  := additive (('<' | '<=' | '>' | '>=' | '==' | '!=') additive)*
    additive    := term (('+' | '-') term)*
    term        := unary (('*' | '/') unary | <implicit> unary)*
    unary       := ('-' | '+') unary | power
    power       := primary ('^' unary)?            (right-associative)
    primary     := NUMBER | STRING | NAME | NAME '(' args ')'
                 | '(' expression ')' | '{' expression '}'
                 | '[' expression (',' expression)* ']'
                 | '\\frac' '{' expression '}' '{' expression '}'

Implicit multiplication applies after a number or a closing bracket when the
next token starts a name or a group: 2x, 3(x + 1), (x + 1)(x - 1).

Grouping, calls and each operator of a flat chain count towards
MAX_PARSE_DEPTH, which bounds the height of every tree the parser returns.
"""
import re
from dataclasses import dataclass

from . import builtins, config
from .errors import ParseError
from .nodes import (
    COMPARISON_OPS, Assignment, BinaryOp, Call, MatrixLiteral, Number, Symbol,
    Text, UnaryOp,
)


# ── Tokenizer ───────────────────────────────────────────────

@dataclass(frozen=True)
class Token:
    kind: str
    text: str
    pos: int


_TOKEN_SPEC = [
    ('NUMBER', r'(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?'),
    ('STRING', r"'[^']*'|\"[^\"]*\""),
    ('FRAC', r'\\frac(?![A-Za-z])'),
    ('NAME', r'[^\W\d]\w*'),
    ('OP', r'<=|>=|==|!=|[-+*/^<>=]'),
    ('LPAREN', r'\('),
    ('RPAREN', r'\)'),
    ('LBRACE', r'\{'),
    ('RBRACE', r'\}'),
    ('LBRACKET', r'\['),
    ('RBRACKET', r'\]'),
    ('COMMA', r','),
    ('SKIP', r'\s+'),
    ('MISMATCH', r'.'),
]
_TOKEN_RE = re.compile('|'.join(f'(?P<{name}>{pattern})' for name, pattern in _TOKEN_SPEC))

_CLOSERS = {'LPAREN': 'RPAREN', 'LBRACE': 'RBRACE', 'LBRACKET': 'RBRACKET'}


def tokenize(source):
    tokens = []
    for m in _TOKEN_RE.finditer(source):
        kind = m.lastgroup
        text = m.group()
        if kind == 'SKIP':
            continue
        if kind == 'MISMATCH':
            if text == '\\':
                command = re.match(r'\\[A-Za-z]*', source[m.start():]).group()
                raise ParseError(f'Unknown command {command!r}', m.start())
            raise ParseError(f'Unexpected character {text!r}', m.start())
        tokens.append(Token(kind, text, m.start()))
    tokens.append(Token('END', '', len(source)))
    return tokens


# ── Parser ──────────────────────────────────────────────────

class Parser:
    """Builds a node tree from a token list.  One instance per parse."""

    def __init__(self, source):
        self.source = source
        self.tokens = tokenize(source)
        self.index = 0
        self.depth = 0

    # token helpers

    @property
    def current(self):
        return self.tokens[self.index]

    @property
    def previous(self):
        return self.tokens[self.index - 1] if self.index else None

    def peek(self, offset=1):
        i = min(self.index + offset, len(self.tokens) - 1)
        return self.tokens[i]

    def advance(self):
        token = self.current
        if token.kind != 'END':
            self.index += 1
        return token

    def at_op(self, *ops):
        return self.current.kind == 'OP' and self.current.text in ops

    def expect(self, kind, what):
        token = self.current
        if token.kind != kind:
            raise ParseError(f'Expected {what}, found {_describe(token)}', token.pos)
        return self.advance()

    def enter(self):
        self.depth += 1
        if self.depth > config.MAX_PARSE_DEPTH:
            raise ParseError('Expression is nested too deeply', self.current.pos)

    def leave(self):
        self.depth -= 1

    def link(self):
        # each operator in a flat chain adds a level to the left-deep tree
        self.enter()
        return 1

    # grammar

    def parse(self):
        if self.current.kind == 'END':
            return Number(0.0)
        node = self.statement()
        if self.current.kind != 'END':
            token = self.current
            if token.kind in ('RPAREN', 'RBRACE', 'RBRACKET'):
                raise ParseError(f'Unbalanced {token.text!r}', token.pos)
            raise ParseError(f'Unexpected {_describe(token)}', token.pos)
        return node

    def statement(self):
        if (self.current.kind == 'NAME' and self.peek().kind == 'OP'
                and self.peek().text == '='):
            name = self.advance().text
            self.advance()
            if name in builtins.CONSTANTS or builtins.lookup(name):
                raise ParseError(f'Cannot assign to reserved name {name!r}')
            return Assignment(name, self.expression())
        return self.expression()

    def expression(self):
        node = self.additive()
        links = 0
        try:
            while self.at_op(*COMPARISON_OPS):
                op = self.advance().text
                links += self.link()
                node = BinaryOp(op, node, self.additive())
        finally:
            self.depth -= links
        if self.at_op('='):
            raise ParseError('Assignment is only allowed at the start of an expression',
                             self.current.pos)
        return node

    def additive(self):
        node = self.term()
        links = 0
        try:
            while self.at_op('+', '-'):
                op = self.advance().text
                links += self.link()
                node = BinaryOp(op, node, self.term())
        finally:
            self.depth -= links
        return node

    def term(self):
        node = self.unary()
        links = 0
        try:
            while True:
                if self.at_op('*', '/'):
                    op = self.advance().text
                elif self._implicit_product():
                    op = '*'
                else:
                    return node
                links += self.link()
                node = BinaryOp(op, node, self.unary())
        finally:
            self.depth -= links

    def _implicit_product(self):
        prev = self.previous
        if prev is None or prev.kind not in ('NUMBER', 'RPAREN', 'RBRACE'):
            return False
        return self.current.kind in ('NAME', 'LPAREN', 'LBRACE', 'FRAC')

    def unary(self):
        self.enter()
        try:
            if self.at_op('-', '+'):
                op = self.advance().text
                return UnaryOp(op, self.unary())
            return self.power()
        finally:
            self.leave()

    def power(self):
        base = self.primary()
        if self.at_op('^'):
            self.advance()
            return BinaryOp('^', base, self.unary())
        return base

    def primary(self):
        token = self.current
        if token.kind == 'NUMBER':
            self.advance()
            return Number(float(token.text))
        if token.kind == 'STRING':
            self.advance()
            return Text(token.text[1:-1])
        if token.kind == 'NAME':
            self.advance()
            if self.current.kind == 'LPAREN':
                return self.call(token)
            return Symbol(token.text)
        if token.kind in ('LPAREN', 'LBRACE'):
            return self.group()
        if token.kind == 'LBRACKET':
            return self.matrix()
        if token.kind == 'FRAC':
            self.advance()
            numerator = self.group('LBRACE')
            denominator = self.group('LBRACE')
            return BinaryOp('/', numerator, denominator)
        if token.kind == 'END':
            raise ParseError('Unexpected end of expression', token.pos)
        if token.kind in ('RPAREN', 'RBRACE', 'RBRACKET'):
            raise ParseError(f'Unbalanced {token.text!r}', token.pos)
        raise ParseError(f'Unexpected {_describe(token)}', token.pos)

    def group(self, kind=None):
        opener = self.current
        if kind is not None and opener.kind != kind:
            raise ParseError(f'Expected {{, found {_describe(opener)}', opener.pos)
        self.advance()
        self.enter()
        try:
            node = self.expression()
        finally:
            self.leave()
        self._close(opener)
        return node

    def _close(self, opener):
        closer = _CLOSERS[opener.kind]
        if self.current.kind != closer:
            raise ParseError(f'Unbalanced {opener.text!r}: expected closing bracket, '
                             f'found {_describe(self.current)}', opener.pos)
        self.advance()

    def _arguments(self, opener):
        args = []
        if self.current.kind != _CLOSERS[opener.kind]:
            args.append(self.expression())
            while self.current.kind == 'COMMA':
                self.advance()
                args.append(self.expression())
        self._close(opener)
        return args

    def call(self, name_token):
        opener = self.advance()
        self.enter()
        try:
            args = self._arguments(opener)
        finally:
            self.leave()
        builtin = builtins.lookup(name_token.text)
        if builtin is not None:
            problem = builtin.check_arity(len(args))
            if problem:
                raise ParseError(problem, name_token.pos)
        return Call(name_token.text, tuple(args))

    def matrix(self):
        opener = self.advance()
        if self.current.kind == 'RBRACKET':
            raise ParseError('Empty matrix literal', opener.pos)
        self.enter()
        try:
            items = self._arguments(opener)
        finally:
            self.leave()
        nested = [isinstance(item, MatrixLiteral) for item in items]
        if not any(nested):
            return MatrixLiteral((tuple(items),), vector=True)
        if not all(nested) or any(not item.vector for item in items):
            raise ParseError('Matrix rows must all be flat bracketed lists', opener.pos)
        width = len(items[0].rows[0])
        for i, row in enumerate(items):
            if len(row.rows[0]) != width:
                raise ParseError(f'Jagged matrix: row {i} has {len(row.rows[0])} '
                                 f'elements, expected {width}', opener.pos)
        return MatrixLiteral(tuple(row.rows[0] for row in items))


def _describe(token):
    if token.kind == 'END':
        return 'end of expression'
    return f'{token.text!r}'


def parse(source):
    """Parse canonical syntax into a node tree.  Blank input gives Number(0)."""
    try:
        return Parser(source).parse()
    except RecursionError:
        raise ParseError('Expression is nested too deeply')
