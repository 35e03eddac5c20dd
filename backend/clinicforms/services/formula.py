"""Arithmetic expression parser for custom calculated fields.

Only numbers, ``+ - * /`` and parentheses are understood. The expression
is parsed by recursive descent and evaluated directly; nothing is ever
handed to ``eval``.
"""

import re
from typing import List, Tuple


MAX_NESTING = 64

_TOKEN_PATTERN = re.compile(r"\s*(?:(\d+\.\d*|\.\d+|\d+)|(.))")


class FormulaError(ValueError):
    """Raised for expressions that are not well-formed arithmetic."""


def tokenize(expression: str) -> List[Tuple[str, str]]:
    """Split an expression into ``("num", text)`` and ``("op", char)`` tokens."""
    tokens = []
    position = 0
    expression = expression.rstrip()
    while position < len(expression):
        match = _TOKEN_PATTERN.match(expression, position)
        if not match:
            raise FormulaError(f"Unexpected input at position {position}")
        number, operator = match.groups()
        if number is not None:
            tokens.append(("num", number))
        elif operator in "+-*/()":
            tokens.append(("op", operator))
        else:
            raise FormulaError(f"Unexpected character '{operator}'")
        position = match.end()
    return tokens


class FormulaParser:
    """
    Grammar::

        expr   := term (('+' | '-') term)*
        term   := factor (('*' | '/') factor)*
        factor := ('+' | '-') factor | NUMBER | '(' expr ')'
    """

    def __init__(self, expression: str):
        self.tokens = tokenize(expression)
        self.index = 0
        self.depth = 0

    def evaluate(self) -> float:
        """Parse and evaluate the whole expression."""
        if not self.tokens:
            raise FormulaError("Empty expression")
        value = self._expr()
        if self.index != len(self.tokens):
            raise FormulaError(f"Unexpected token '{self.tokens[self.index][1]}'")
        return value

    def _peek(self) -> Tuple[str, str]:
        if self.index < len(self.tokens):
            return self.tokens[self.index]
        return ("end", "")

    def _advance(self) -> Tuple[str, str]:
        token = self._peek()
        self.index += 1
        return token

    def _expr(self) -> float:
        value = self._term()
        while self._peek() in (("op", "+"), ("op", "-")):
            _, operator = self._advance()
            right = self._term()
            value = value + right if operator == "+" else value - right
        return value

    def _term(self) -> float:
        value = self._factor()
        while self._peek() in (("op", "*"), ("op", "/")):
            _, operator = self._advance()
            right = self._factor()
            if operator == "*":
                value = value * right
            else:
                # ZeroDivisionError propagates to the caller
                value = value / right
        return value

    def _factor(self) -> float:
        self.depth += 1
        if self.depth > MAX_NESTING:
            raise FormulaError("Expression is nested too deeply")
        try:
            kind, text = self._advance()
            if kind == "num":
                return float(text)
            if (kind, text) == ("op", "-"):
                return -self._factor()
            if (kind, text) == ("op", "+"):
                return self._factor()
            if (kind, text) == ("op", "("):
                value = self._expr()
                if self._advance() != ("op", ")"):
                    raise FormulaError("Missing closing parenthesis")
                return value
            raise FormulaError("Unexpected end of expression" if kind == "end" else f"Unexpected token '{text}'")
        finally:
            self.depth -= 1


def evaluate_expression(expression: str) -> float:
    """Evaluate an arithmetic expression string."""
    return FormulaParser(expression).evaluate()
