"""
scope.py — Variable storage for a calculator session.

A Scope maps case-sensitive names to engine Values.  It is a plain mutable
mapping with no locking; each session owns its own instance.
"""
import re
from collections.abc import MutableMapping

from .values import to_value

_NAME_RE = re.compile(r'^[A-Za-z_][A-Za-z0-9_]*$')


class Scope(MutableMapping):
    """Mutable name -> Value store."""

    def __init__(self, initial=None):
        self._values = {}
        if initial:
            for name, value in dict(initial).items():
                self.set_variable(name, value)

    def set_variable(self, name, value):
        if not isinstance(name, str) or not _NAME_RE.match(name):
            raise ValueError(f'Invalid variable name: {name!r}')
        self._values[name] = to_value(value)

    def snapshot(self):
        """Return a shallow copy of the current bindings."""
        return dict(self._values)

    # Mapping protocol

    def __getitem__(self, name):
        return self._values[name]

    def __setitem__(self, name, value):
        self.set_variable(name, value)

    def __delitem__(self, name):
        del self._values[name]

    def __iter__(self):
        return iter(self._values)

    def __len__(self):
        return len(self._values)

    def clear(self):
        self._values.clear()

    def __repr__(self):
        return f'Scope({self._values!r})'
