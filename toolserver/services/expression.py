"""
Arithmetic expression evaluation for the calculator tool.

Only numeric literals, the four binary operators ``+ - * /``, unary sign and
parentheses are understood. Nothing is ever handed to ``eval``.

Grammar::

    expression := term (("+" | "-") term)*
    term       := unary (("*" | "/") unary)*
    unary      := ("+" | "-") unary | primary
    primary    := NUMBER | "(" expression ")"
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from typing import List, Optional, Union

from ..core.errors import ExpressionError

Number = Union[int, float]

_TOKEN_RE = re.compile(r"\s*(?:(\d+\.\d*|\.\d+|\d+)|(\S))")
_OPERATORS = "+-*/()"


@dataclass(frozen=True)
class Token:
    kind: str  # "number", "op" or "end"
    text: str
    position: int


def tokenize(source: str) -> List[Token]:
    tokens: List[Token] = []
    position = 0
    while position < len(source):
        match = _TOKEN_RE.match(source, position)
        if match is None:
            # only trailing whitespace is left
            break
        number, other = match.groups()
        if number is not None:
            tokens.append(Token("number", number, match.start(1)))
        elif other is not None:
            if other not in _OPERATORS:
                raise ExpressionError(f"unexpected character {other!r} at position {match.start(2)}")
            tokens.append(Token("op", other, match.start(2)))
        position = match.end()
    tokens.append(Token("end", "", len(source)))
    return tokens


def _divide(left: Number, right: Number) -> Number:
    if right == 0:
        if left == 0 or math.isnan(left):
            return math.nan
        return math.copysign(math.inf, left) * math.copysign(1.0, right)
    return left / right


class _Parser:
    def __init__(self, tokens: List[Token]) -> None:
        self._tokens = tokens
        self._index = 0

    @property
    def _current(self) -> Token:
        return self._tokens[self._index]

    def _accept(self, *ops: str) -> Optional[str]:
        token = self._current
        if token.kind == "op" and token.text in ops:
            self._index += 1
            return token.text
        return None

    def _unexpected(self) -> ExpressionError:
        token = self._current
        if token.kind == "end":
            return ExpressionError("unexpected end of expression")
        return ExpressionError(f"unexpected token {token.text!r} at position {token.position}")

    def parse(self) -> Number:
        value = self._expression()
        if self._current.kind != "end":
            raise self._unexpected()
        return value

    def _expression(self) -> Number:
        value = self._term()
        while True:
            op = self._accept("+", "-")
            if op is None:
                return value
            right = self._term()
            value = value + right if op == "+" else value - right

    def _term(self) -> Number:
        value = self._unary()
        while True:
            op = self._accept("*", "/")
            if op is None:
                return value
            right = self._unary()
            value = value * right if op == "*" else _divide(value, right)

    def _unary(self) -> Number:
        op = self._accept("+", "-")
        if op is None:
            return self._primary()
        operand = self._unary()
        return -operand if op == "-" else operand

    def _primary(self) -> Number:
        token = self._current
        if token.kind == "number":
            self._index += 1
            return float(token.text) if "." in token.text else int(token.text)
        if self._accept("("):
            value = self._expression()
            if self._accept(")") is None:
                raise self._unexpected()
            return value
        raise self._unexpected()


def evaluate(source: str) -> Number:
    """Evaluate ``source`` with standard operator precedence.

    Raises ``ExpressionError`` for anything that is not a well formed
    expression. Division by zero follows IEEE semantics (``inf``/``nan``) so the
    caller decides how to report a non-finite result. Mixing integers too large
    for a float with floats raises ``OverflowError``.
    """
    return _Parser(tokenize(source)).parse()


def format_number(value: Number) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)
