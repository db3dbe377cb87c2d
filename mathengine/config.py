"""
config.py — Engine tunables.

Each value can be overridden with a MATHENGINE_<NAME> environment variable,
read once at import time.
"""
import os


def _env_int(name, default):
    raw = os.environ.get(f'MATHENGINE_{name}')
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f'MATHENGINE_{name} must be an integer, got {raw!r}')


# Simpson's rule sub-intervals when the caller gives none
DEFAULT_INTEGRATION_STEPS = _env_int('DEFAULT_INTEGRATION_STEPS', 1000)

# Upper bound on sub-intervals accepted by integrate()
MAX_INTEGRATION_STEPS = _env_int('MAX_INTEGRATION_STEPS', 1_000_000)

# Maximum tree depth the parser accepts: grouping, calls and operator chains
MAX_PARSE_DEPTH = _env_int('MAX_PARSE_DEPTH', 200)

# Significant digits used when formatting scalars
RESULT_PRECISION = _env_int('RESULT_PRECISION', 14)

# simplify() repeats until the printed form stops changing, at most this often
SIMPLIFY_MAX_PASSES = _env_int('SIMPLIFY_MAX_PASSES', 4)

# Results remembered per calculator session
HISTORY_SIZE = _env_int('HISTORY_SIZE', 5)

# Largest integer exponent accepted for matrix powers
MAX_MATRIX_POWER = _env_int('MAX_MATRIX_POWER', 1024)

# Calculator sessions the web service keeps before evicting the least recently used
MAX_SESSIONS = _env_int('MAX_SESSIONS', 1000)
