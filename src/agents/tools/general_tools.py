"""
General-purpose tools available to any agent by name.
"""

import ast
import operator
import re
from datetime import datetime, timezone

from langchain_core.tools import tool
from pydantic import BaseModel, Field

_OPERATORS = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.USub: operator.neg,
    ast.UAdd: operator.pos,
}

_ALLOWED_CHARS = re.compile(r"[^0-9+\-*/().]")


def _evaluate(node):
    if isinstance(node, ast.Expression):
        return _evaluate(node.body)
    if isinstance(node, ast.Constant) and isinstance(node.value, (int, float)):
        return node.value
    if isinstance(node, ast.BinOp) and type(node.op) in _OPERATORS:
        return _OPERATORS[type(node.op)](_evaluate(node.left), _evaluate(node.right))
    if isinstance(node, ast.UnaryOp) and type(node.op) in _OPERATORS:
        return _OPERATORS[type(node.op)](_evaluate(node.operand))
    raise ValueError("unsupported expression")


def evaluate_expression(expression: str):
    """Evaluate basic arithmetic (+ - * / and parentheses) without ``eval``."""
    cleaned = _ALLOWED_CHARS.sub("", expression)
    return _evaluate(ast.parse(cleaned, mode="eval"))


class CalculatorInput(BaseModel):
    expression: str = Field(
        description="Mathematical expression to calculate (e.g., '2+2', '10*5', '100/4')"
    )


@tool("calculator", args_schema=CalculatorInput)
def calculator(expression: str) -> str:
    """Performs basic arithmetic calculations. Input should be a mathematical expression as a string."""
    try:
        return f"The result is: {evaluate_expression(expression)}"
    except (ValueError, SyntaxError, ZeroDivisionError) as exc:
        return f"Error calculating: {exc}"


@tool("current_time")
def current_time() -> str:
    """Gets the current date and time"""
    return f"Current time: {datetime.now(timezone.utc).isoformat()} (UTC)"
