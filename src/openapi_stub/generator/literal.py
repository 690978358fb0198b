"""Conversion between JSON values and Python literal expressions.

Route adapters carry a self-contained copy of their Operation Object, so
the dereferenced JSON is turned into a literal expression that needs no
access to the source document at request time.
"""

import ast
import math

from openapi_stub.errors import LiteralConversionError


class _Missing:
    """Stands in for an absent value. Rendered as `...`."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self):
        return "MISSING"

    def __bool__(self):
        return False


MISSING = _Missing()

_SCALARS = (str, bool, int, float, type(None))


def embed_literal(value, _stack: frozenset = frozenset()) -> ast.expr:
    """Convert a JSON value into an ast literal expression."""
    if value is MISSING:
        return ast.Constant(value=...)
    if isinstance(value, float) and not math.isfinite(value):
        raise LiteralConversionError(f"Non-finite number: {value!r}")
    if isinstance(value, _SCALARS):
        return ast.Constant(value=value)

    if isinstance(value, (list, dict)):
        if id(value) in _stack:
            raise LiteralConversionError("Circular structure cannot be embedded")
        stack = _stack | {id(value)}
        if isinstance(value, list):
            return ast.List(elts=[embed_literal(item, stack) for item in value], ctx=ast.Load())
        keys = []
        for key in value:
            if not isinstance(key, _SCALARS):
                raise LiteralConversionError(f"Unknown key type: {key!r}")
            keys.append(embed_literal(key, stack))
        return ast.Dict(keys=keys, values=[embed_literal(v, stack) for v in value.values()])

    raise LiteralConversionError(f"Unknown type: {value!r}")


def decode_literal(node: ast.expr):
    """Evaluate a literal expression produced by embed_literal."""
    return _restore(ast.literal_eval(node))


def _restore(value):
    if value is ...:
        return MISSING
    if isinstance(value, list):
        return [_restore(item) for item in value]
    if isinstance(value, dict):
        return {key: _restore(item) for key, item in value.items()}
    return value


def render_literal(value) -> str:
    return ast.unparse(embed_literal(value))
