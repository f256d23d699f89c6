"""
Calculator Handler - Inline arithmetic in the search box.

Triggers on the "=" prefix. Everything except digits, parentheses, the
decimal point and + - * / is deleted first; what is left is evaluated by
simpleeval with only the four arithmetic operators (plus unary signs)
available. No names, no functions, no attribute access.
"""

import ast
import math
import operator
import re

from loguru import logger
from simpleeval import InvalidExpression, SimpleEval

from startpage.search.router import CommandHandler, CommandResult

ALLOWED_CHARS = re.compile(r"[^-()\d/*+.]")

OPERATORS = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.USub: operator.neg,
    ast.UAdd: operator.pos,
}

INVALID = "invalid expression"


def sanitize(expression: str) -> str:
    """Drop every character that cannot be part of an arithmetic expression."""
    return ALLOWED_CHARS.sub("", expression)


class CalculatorHandler(CommandHandler):
    """Evaluate arithmetic expressions prefixed with '='."""

    name = "calculator"

    def __init__(self):
        self.evaluator = SimpleEval(operators=OPERATORS, functions={}, names={})

    async def execute(self, args: str) -> CommandResult:
        return self.calculate(args)

    def calculate(self, expression: str) -> CommandResult:
        expr = sanitize(expression)
        if not expr:
            return self.failure(expression, INVALID)

        try:
            result = self.evaluator.eval(expr)
            display = self._format(result)
        except (InvalidExpression, SyntaxError):
            return self.failure(expression, INVALID)
        except (TypeError, ValueError, ZeroDivisionError, OverflowError) as e:
            logger.debug(f"Math error for '{expr[:60]}': {e}")
            return self.failure(expression, INVALID)
        except (MemoryError, RecursionError):
            # Deeply nested input blows up the parser before evaluation
            logger.debug(f"Expression too complex: {len(expr)} characters")
            return self.failure(expression, INVALID)

        if display is None:
            return self.failure(expression, INVALID)

        return CommandResult(
            kind=self.name,
            success=True,
            query=expr,
            data=display[0],
            title=display[1],
        )

    def _format(self, result):
        """(value, text) for a numeric result, or None if it is not a usable number."""
        if not isinstance(result, (int, float)) or isinstance(result, bool):
            logger.warning(f"Non-numeric calculator result: {result!r}")
            return None
        # Results must fit a float; float() raises OverflowError for huge ints
        if not math.isfinite(float(result)):
            return None
        # Whole floats read better as integers (6/2 → 3)
        if isinstance(result, float) and result.is_integer():
            result = int(result)
        return result, str(result)
