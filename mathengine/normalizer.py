"""
normalizer.py — Rewrite calculator / LaTeX / AsciiMath notation into the
canonical syntax accepted by the parser.

Handles the output of visual math editors: operator glyphs, \\left/\\right
sizing, text wrappers, \\sqrt, matrix environments, AsciiMath matrices,
Leibniz derivatives d/dx(...) and definite integrals int_a^b(...) dx.
Nested constructs are delimited by bracket matching, never by regex alone.
"""
import re

from .errors import NormalizationAmbiguity

# ── Simple substitutions ────────────────────────────────────

_GLYPHS = [
    ('\u00d7', '*'),   # ×
    ('\u00b7', '*'),   # ·
    ('\u22c5', '*'),   # ⋅
    ('\u00f7', '/'),   # ÷
    ('\u2212', '-'),   # −
    ('\u03c0', 'pi'),  # π
    ('\u2264', '<='),
    ('\u2265', '>='),
    ('\u2260', '!='),
    ('**', '^'),
]

_LATEX_OPERATORS = [
    (re.compile(r'\\cdot(?![A-Za-z])'), '*'),
    (re.compile(r'\\times(?![A-Za-z])'), '*'),
    (re.compile(r'\\div(?![A-Za-z])'), '/'),
    (re.compile(r'\\(?:leq|le)(?![A-Za-z])'), '<='),
    (re.compile(r'\\(?:geq|ge)(?![A-Za-z])'), '>='),
    (re.compile(r'\\(?:neq|ne)(?![A-Za-z])'), '!='),
    (re.compile(r'\\(?:qquad|quad)(?![A-Za-z])|\\[,;:! ]'), ' '),
]

_ABS_BARS = [
    (re.compile(r'\\left\s*\|'), 'abs('),
    (re.compile(r'\\right\s*\|'), ')'),
    (re.compile(r'\\lvert(?![A-Za-z])'), 'abs('),
    (re.compile(r'\\rvert(?![A-Za-z])'), ')'),
]

_SIZING_RE = re.compile(r'\\(?:left|right)(?![A-Za-z])\s*')
_ESCAPED_BRACE_RE = re.compile(r'\\([{}])')
_WRAPPER_RE = re.compile(r'\\(?:text|operatorname|mathrm|math[a-z]+)\s*(?=\{)')
_SPACED_WRAPPER_RE = re.compile(r'\\(?:text|operatorname|mathrm|math[a-z]+)\s+')
_COMMAND_RE = re.compile(r'\\(?!frac(?![A-Za-z]))([A-Za-z]+)')

_MATRIX_ENV_RE = re.compile(
    r'\\begin\{(?P<env>(?:p|b|B|v|V|small)?matrix|array)\}(?P<body>.*?)\\end\{(?P=env)\}',
    re.DOTALL,
)

# d/dx(  (d)/(dx)(  \frac{d}{dx}(
_DERIVATIVE_RE = re.compile(
    r'(?:\\frac\s*\{\s*d\s*\}\s*\{\s*d\s*([A-Za-z])\s*\}'
    r'|\(\s*d\s*\)\s*/\s*\(\s*d\s*([A-Za-z])\s*\)'
    r'|(?<![\w\\])d\s*/\s*d\s*([A-Za-z]))\s*(?=\()'
)

_BOUND = r'-?(?:\d+(?:\.\d*)?|\.\d+|pi|e)'
_INTEGRAL_RE = re.compile(
    r'(?<![\w])\\?int\s*_\s*(?:\{\s*(' + _BOUND + r')\s*\}|(' + _BOUND + r'))'
    r'\s*\^\s*(?:\{\s*(' + _BOUND + r')\s*\}|(' + _BOUND + r'))\s*'
)
_DIFFERENTIAL_RE = re.compile(r'\s*d([A-Za-z])(?![\w])')
_BARE_INTEGRAND_RE = re.compile(r'(.+?)(?<![A-Za-z_])d([A-Za-z])(?![\w])')


# ── Bracket helpers ─────────────────────────────────────────

def _extract_group(s, pos, opener='{', closer='}'):
    """Extract content between balanced brackets starting at pos.
    Returns (content, end_pos) or (None, pos) if no balanced group at pos."""
    if pos >= len(s) or s[pos] != opener:
        return None, pos
    depth = 0
    start = pos + 1
    for i in range(pos, len(s)):
        if s[i] == opener:
            depth += 1
        elif s[i] == closer:
            depth -= 1
            if depth == 0:
                return s[start:i], i + 1
    return None, pos


def _split_top_level(inner, sep=','):
    """Split on separators that are not inside parentheses, braces or brackets."""
    parts = []
    depth = 0
    current = []
    for ch in inner:
        if ch in '({[':
            depth += 1
        elif ch in ')}]':
            depth -= 1
        if ch == sep and depth == 0:
            parts.append(''.join(current).strip())
            current = []
        else:
            current.append(ch)
    parts.append(''.join(current).strip())
    return parts


def _quote(body):
    """Wrap an expression as a string argument, picking a free quote style."""
    if "'" not in body:
        return f"'{body}'"
    if '"' not in body:
        return f'"{body}"'
    return f'({body})'


# ── Matrices ────────────────────────────────────────────────

def _matrix_env(m):
    env = m.group('env')
    body = m.group('body')
    if env == 'array':
        # drop the column spec, e.g. {cc}
        spec, end = _extract_group(body.lstrip(), 0)
        if spec is not None:
            body = body.lstrip()[end:]
    rows = []
    for row in body.split('\\\\'):
        if not row.strip():
            continue
        cells = [cell.strip() or '0' for cell in row.split('&')]
        rows.append('[' + ', '.join(cells) + ']')
    literal = '[' + ', '.join(rows) + ']'
    if env in ('vmatrix', 'Vmatrix'):
        return f'det({literal})'
    return literal


def _rewrite_ascii_matrices(s):
    """((a,b),(c,d)) -> [[a, b], [c, d]], skipping function-call parentheses."""
    out = []
    i = 0
    while i < len(s):
        if s[i] == '(' and not _follows_word(s, i):
            inner, end = _extract_group(s, i, '(', ')')
            rows = _ascii_rows(inner) if inner is not None else None
            if rows is not None:
                out.append('[' + ', '.join(rows) + ']')
                i = end
                continue
        out.append(s[i])
        i += 1
    return ''.join(out)


def _follows_word(s, i):
    j = i - 1
    while j >= 0 and s[j].isspace():
        j -= 1
    return j >= 0 and (s[j].isalnum() or s[j] == '_')


def _ascii_rows(inner):
    parts = _split_top_level(inner)
    rows = []
    for part in parts:
        content, end = _extract_group(part, 0, '(', ')')
        if content is None or end != len(part):
            return None
        rows.append(_split_top_level(content))
    if len(rows) == 1 and len(rows[0]) == 1:
        # plain double parentheses such as ((x + 1))
        return None
    return ['[' + ', '.join(_rewrite_ascii_matrices(cell) for cell in row) + ']'
            for row in rows]


# ── LaTeX constructs ────────────────────────────────────────

def _unwrap_text_commands(s):
    r"""\text{abc} -> abc, \operatorname{det} -> det."""
    while True:
        m = _WRAPPER_RE.search(s)
        if not m:
            break
        content, end = _extract_braced_or_fail(s, m.end(), m.group())
        s = s[:m.start()] + content + s[end:]
    return _SPACED_WRAPPER_RE.sub(' ', s)


def _extract_braced_or_fail(s, pos, command):
    content, end = _extract_group(s, pos)
    if content is None:
        raise NormalizationAmbiguity(f'Unclosed brace after {command.strip()}', pos)
    return content, end


def _rewrite_sqrt(s):
    r"""\sqrt{a} -> sqrt(a), \sqrt[n]{a} -> ((a)^(1/(n)))."""
    while True:
        idx = s.find(r'\sqrt')
        if idx == -1:
            return s
        pos = idx + 5
        if pos < len(s) and s[pos] == '[':
            n_arg, pos = _extract_group(s, pos, '[', ']')
            if n_arg is None:
                raise NormalizationAmbiguity(r'Unclosed index in \sqrt[...]', idx)
            arg, end = _extract_braced_or_fail(s, pos, r'\sqrt')
            s = s[:idx] + f'(({_rewrite_sqrt(arg)})^(1/({n_arg})))' + s[end:]
        elif pos < len(s) and s[pos] == '{':
            arg, end = _extract_braced_or_fail(s, pos, r'\sqrt')
            s = s[:idx] + f'sqrt({_rewrite_sqrt(arg)})' + s[end:]
        else:
            # \sqrt(x) or \sqrt x: the plain function name is enough
            s = s[:idx] + 'sqrt' + s[pos:]


# ── Calculus notation ───────────────────────────────────────

def _rewrite_derivatives(s):
    """d/dx(expr) -> derivative('expr', 'x'), with nested parentheses matched."""
    while True:
        m = _DERIVATIVE_RE.search(s)
        if not m:
            return s
        var = m.group(1) or m.group(2) or m.group(3)
        body, end = _extract_group(s, m.end(), '(', ')')
        if body is None:
            raise NormalizationAmbiguity(
                f'Derivative d/d{var}( is missing its closing parenthesis', m.start())
        body = _rewrite_integrals(_rewrite_derivatives(body)).strip()
        s = s[:m.start()] + f"derivative({_quote(body)}, '{var}')" + s[end:]


def _rewrite_integrals(s):
    """int_a^b(expr) dx -> integrate('expr', a, b)."""
    while True:
        m = _INTEGRAL_RE.search(s)
        if not m:
            return s
        lower = m.group(1) or m.group(2)
        upper = m.group(3) or m.group(4)
        pos = m.end()
        if pos < len(s) and s[pos] == '(':
            body, end = _extract_group(s, pos, '(', ')')
            if body is None:
                raise NormalizationAmbiguity(
                    'Integral body is missing its closing parenthesis', pos)
            d = _DIFFERENTIAL_RE.match(s, end)
            if not d:
                raise NormalizationAmbiguity(
                    f'Integral from {lower} to {upper} has no d<variable>', end)
            var, end = d.group(1), d.end()
        else:
            bare = _BARE_INTEGRAND_RE.match(s, pos)
            if not bare:
                raise NormalizationAmbiguity(
                    f'Integral from {lower} to {upper} has no d<variable>', pos)
            body, var, end = bare.group(1), bare.group(2), bare.end()
        body = _rewrite_integrals(_rewrite_derivatives(body)).strip()
        args = [_quote(body), lower, upper]
        if var != 'x':
            args.append(f"'{var}'")
        s = s[:m.start()] + f"integrate({', '.join(args)})" + s[end:]


# ── Entry point ─────────────────────────────────────────────

def _strip_equals_key(s):
    if s.endswith('=') and not s.endswith(('==', '<=', '>=', '!=')):
        return s[:-1].rstrip()
    return s


def normalize(raw):
    """Rewrite human / LaTeX-influenced input into canonical syntax."""
    if raw is None:
        return ''
    s = _strip_equals_key(raw.strip())
    if not s:
        return ''

    s = _MATRIX_ENV_RE.sub(_matrix_env, s)

    for pattern, repl in _ABS_BARS:
        s = pattern.sub(repl, s)
    s = _SIZING_RE.sub('', s)
    s = _ESCAPED_BRACE_RE.sub(r'\1', s)

    for glyph, repl in _GLYPHS:
        s = s.replace(glyph, repl)
    for pattern, repl in _LATEX_OPERATORS:
        s = pattern.sub(repl, s)

    s = _unwrap_text_commands(s)
    s = _rewrite_sqrt(s)
    s = _COMMAND_RE.sub(r'\1', s)
    s = _rewrite_derivatives(s)
    s = _rewrite_integrals(s)
    s = _rewrite_ascii_matrices(s)
    return s.strip()
